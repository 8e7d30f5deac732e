"""Uniswap V2 constant-product quote source.

Reads pair reserves through the chain gateway and prices the swap with the
closed-form 0.3% fee formula, hop by hop. The router's getAmountsOut is
not used: the reserves are the input and the math is done locally.

Docs: https://docs.uniswap.org/contracts/v2/concepts/protocol-overview/how-uniswap-works
"""

import asyncio
import logging
from fractions import Fraction
from typing import Sequence

from web3 import Web3

from swapsim.chain.base import ChainGateway
from swapsim.contracts import (
    UNISWAP_V2_FACTORY,
    V2_FEE_DENOMINATOR,
    V2_FEE_NUMERATOR,
    V2_GET_PAIR,
    V2_GET_RESERVES,
    V2_TOKEN0,
    ZERO_ADDRESS,
)
from swapsim.errors import InsufficientLiquidity
from swapsim.routing.base import Protocol, Quote, QuoteSource, SwapRoute

logger = logging.getLogger(__name__)


def get_amount_out(amount_in: int, reserve_in: int, reserve_out: int) -> int:
    """Constant-product output for one hop, fee included.

    ``amount_in*997*reserve_out // (reserve_in*1000 + amount_in*997)``
    """
    if amount_in <= 0:
        raise InsufficientLiquidity("Input amount must be positive")
    if reserve_in <= 0 or reserve_out <= 0:
        raise InsufficientLiquidity("Pool has no reserves")
    amount_in_with_fee = amount_in * V2_FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * V2_FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


class UniswapV2Source(QuoteSource):
    """Constant-product quotes from Uniswap V2 pair reserves."""

    def __init__(self, gateway: ChainGateway, factory: str = UNISWAP_V2_FACTORY):
        self.gateway = gateway
        self.factory = factory

    @property
    def protocol(self) -> Protocol:
        return Protocol.V2

    async def get_pair(self, token_a: str, token_b: str) -> str:
        """Pair address for two tokens.

        Raises:
            InsufficientLiquidity: if the factory has no such pair
        """
        raw = await self.gateway.call(self.factory, V2_GET_PAIR.encode_call(token_a, token_b))
        pair = Web3.to_checksum_address(V2_GET_PAIR.decode_output(raw)[0])
        if pair == ZERO_ADDRESS:
            raise InsufficientLiquidity(
                f"No Uniswap V2 pair for {token_a}/{token_b}",
                {"token_a": token_a, "token_b": token_b},
            )
        return pair

    async def get_reserves(self, token_in: str, token_out: str) -> tuple[int, int]:
        """Reserves of the pair oriented as (reserve_in, reserve_out)."""
        pair = await self.get_pair(token_in, token_out)
        reserves_raw, token0_raw = await asyncio.gather(
            self.gateway.call(pair, V2_GET_RESERVES.encode_call()),
            self.gateway.call(pair, V2_TOKEN0.encode_call()),
        )
        reserve0, reserve1, _ = V2_GET_RESERVES.decode_output(reserves_raw)
        token0 = V2_TOKEN0.decode_output(token0_raw)[0]

        if token0.lower() == token_in.lower():
            reserve_in, reserve_out = reserve0, reserve1
        else:
            reserve_in, reserve_out = reserve1, reserve0

        if reserve_in == 0 or reserve_out == 0:
            raise InsufficientLiquidity(
                f"Uniswap V2 pair {pair} has zero reserves", {"pair": pair}
            )
        logger.debug(f"V2 pair {pair}: reserve_in={reserve_in} reserve_out={reserve_out}")
        return reserve_in, reserve_out

    async def quote(self, path: Sequence[str], amount_in: int) -> Quote:
        path = tuple(path)
        hops = list(zip(path, path[1:]))

        # Reserves of every hop are independent reads
        reserves = await asyncio.gather(
            *(self.get_reserves(token_in, token_out) for token_in, token_out in hops)
        )

        amount = amount_in
        spot_price = Fraction(1)
        for reserve_in, reserve_out in reserves:
            spot_price *= Fraction(reserve_out, reserve_in)
            amount = get_amount_out(amount, reserve_in, reserve_out)
            if amount == 0:
                raise InsufficientLiquidity(
                    "Uniswap V2 output rounds to zero", {"path": list(path)}
                )

        return Quote(
            route=SwapRoute(protocol=Protocol.V2, path=path),
            amount_in=amount_in,
            amount_out=amount,
            spot_price=spot_price,
        )
