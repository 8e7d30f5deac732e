"""Uniswap V3 concentrated-liquidity quote source.

Each hop is quoted with QuoterV2.quoteExactInputSingle on every configured
fee tier at once; the tier giving the most output wins, the lower fee on an
exact tie. Spot price comes from the winning pool's slot0; when it cannot
be read the quote is kept with a zero spot price (price impact 0).

Docs: https://docs.uniswap.org/contracts/v3/reference/periphery/lens/QuoterV2
"""

import asyncio
import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Optional, Sequence

from eth_abi.exceptions import DecodingError
from web3 import Web3

from swapsim.chain.base import ChainGateway
from swapsim.contracts import (
    UNISWAP_V3_FACTORY,
    UNISWAP_V3_QUOTER_V2,
    V3_FEE_TIERS,
    V3_GET_POOL,
    V3_QUOTE_EXACT_INPUT_SINGLE,
    V3_SLOT0,
    ZERO_ADDRESS,
    sort_tokens,
)
from swapsim.errors import InsufficientLiquidity, RpcError, RpcTimeout, SwapSimError
from swapsim.routing.base import Protocol, Quote, QuoteSource, SwapRoute

logger = logging.getLogger(__name__)

Q192 = 2**192


@dataclass(frozen=True)
class TierQuote:
    """Output of one fee tier for one hop."""

    fee: int
    amount_out: int
    gas_estimate: int = 0


def spot_price_from_sqrt(sqrt_price_x96: int, token_in: str, token_out: str) -> Fraction:
    """Raw ``token_out`` per raw ``token_in`` from a pool's sqrtPriceX96."""
    price_token1_per_token0 = Fraction(sqrt_price_x96 * sqrt_price_x96, Q192)
    token0, _ = sort_tokens(token_in, token_out)
    if token0.lower() == token_in.lower():
        return price_token1_per_token0
    return 1 / price_token1_per_token0


class UniswapV3Source(QuoteSource):
    """Concentrated-liquidity quotes from the Uniswap V3 QuoterV2."""

    def __init__(
        self,
        gateway: ChainGateway,
        fee_tiers: Sequence[int] = V3_FEE_TIERS,
        quoter: str = UNISWAP_V3_QUOTER_V2,
        factory: str = UNISWAP_V3_FACTORY,
    ):
        self.gateway = gateway
        self.fee_tiers = tuple(sorted(fee_tiers))
        self.quoter = quoter
        self.factory = factory

    @property
    def protocol(self) -> Protocol:
        return Protocol.V3

    async def quote_tier(
        self, token_in: str, token_out: str, amount_in: int, fee: int
    ) -> TierQuote:
        """Quote one hop on one fee tier. Reverts if the pool does not exist."""
        data = V3_QUOTE_EXACT_INPUT_SINGLE.encode_call((token_in, token_out, amount_in, fee, 0))
        raw = await self.gateway.call(self.quoter, data)
        amount_out, _, _, gas_estimate = V3_QUOTE_EXACT_INPUT_SINGLE.decode_output(raw)
        return TierQuote(fee=fee, amount_out=amount_out, gas_estimate=gas_estimate)

    async def best_tier(self, token_in: str, token_out: str, amount_in: int) -> TierQuote:
        """Quote every fee tier concurrently and keep the best one.

        Raises:
            InsufficientLiquidity: if no tier returns a non-zero quote
            RpcTimeout: if every tier failed and at least one timed out
        """
        results = await asyncio.gather(
            *(self.quote_tier(token_in, token_out, amount_in, fee) for fee in self.fee_tiers),
            return_exceptions=True,
        )

        valid: list[TierQuote] = []
        timed_out = False
        for fee, result in zip(self.fee_tiers, results):
            if isinstance(result, RpcError):
                timed_out = timed_out or isinstance(result, RpcTimeout)
                logger.debug(f"V3 tier {fee} failed for {token_in}->{token_out}: {result}")
                continue
            # Malformed quoter output (e.g. "0x" from a node) drops the tier
            if isinstance(result, (DecodingError, ValueError)):
                logger.warning(
                    f"V3 tier {fee} returned undecodable data for {token_in}->{token_out}: {result}"
                )
                continue
            if isinstance(result, BaseException):
                raise result
            if result.amount_out > 0:
                valid.append(result)

        if not valid:
            if timed_out:
                raise RpcTimeout(f"V3 quotes timed out for {token_in}->{token_out}")
            raise InsufficientLiquidity(
                f"No Uniswap V3 pool quotes {token_in}->{token_out}",
                {"token_in": token_in, "token_out": token_out, "fee_tiers": list(self.fee_tiers)},
            )

        # fee_tiers are sorted, so max() keeps the lowest fee among equal outputs
        best = max(valid, key=lambda q: q.amount_out)
        logger.debug(f"V3 best tier {best.fee} for {token_in}->{token_out}: {best.amount_out}")
        return best

    async def get_pool(self, token_a: str, token_b: str, fee: int) -> Optional[str]:
        raw = await self.gateway.call(self.factory, V3_GET_POOL.encode_call(token_a, token_b, fee))
        pool = Web3.to_checksum_address(V3_GET_POOL.decode_output(raw)[0])
        return None if pool == ZERO_ADDRESS else pool

    async def spot_price(self, token_in: str, token_out: str, fee: int) -> Fraction:
        """Pre-trade price of the pool from ``slot0().sqrtPriceX96``."""
        pool = await self.get_pool(token_in, token_out, fee)
        if pool is None:
            raise InsufficientLiquidity(f"No Uniswap V3 pool for {token_in}/{token_out} at {fee}")
        raw = await self.gateway.call(pool, V3_SLOT0.encode_call())
        sqrt_price_x96 = V3_SLOT0.decode_output(raw)[0]
        if sqrt_price_x96 == 0:
            raise InsufficientLiquidity(f"Uniswap V3 pool {pool} is not initialized")
        return spot_price_from_sqrt(sqrt_price_x96, token_in, token_out)

    async def quote(self, path: Sequence[str], amount_in: int) -> Quote:
        path = tuple(path)
        amount = amount_in
        fees: list[int] = []
        hops: list[tuple[str, str, int]] = []

        # Hops depend on the previous output, so they run in order
        for token_in, token_out in zip(path, path[1:]):
            best = await self.best_tier(token_in, token_out, amount)
            fees.append(best.fee)
            amount = best.amount_out
            hops.append((token_in, token_out, best.fee))

        prices = await asyncio.gather(
            *(self.spot_price(*hop) for hop in hops), return_exceptions=True
        )
        spot_price = Fraction(1)
        for (token_in, token_out, fee), hop_price in zip(hops, prices):
            if isinstance(hop_price, (SwapSimError, DecodingError, ValueError)):
                # The quote itself stands; only price impact loses its reference
                logger.warning(
                    f"V3 spot price unavailable for {token_in}->{token_out} at {fee}, "
                    f"price impact reported as 0: {hop_price}"
                )
                spot_price = Fraction(0)
                break
            if isinstance(hop_price, BaseException):
                raise hop_price
            spot_price *= hop_price

        return Quote(
            route=SwapRoute(protocol=Protocol.V3, path=path, fee_tiers=tuple(fees)),
            amount_in=amount_in,
            amount_out=amount,
            spot_price=spot_price,
        )
