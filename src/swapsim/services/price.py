"""Token price lookups in USD or ETH.

USD prices come from Chainlink aggregators where a feed is known. Anything
else, or a feed that fails validation, falls back to Uniswap: V3 QuoterV2
for one whole token first, then V2 pair reserves. USDC stands in for USD
and WETH for ETH.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Callable, Optional, Union

from eth_abi.exceptions import DecodingError

from swapsim.chain.base import ChainGateway
from swapsim.contracts import (
    CHAINLINK_DECIMALS,
    CHAINLINK_LATEST_ROUND_DATA,
    CHAINLINK_USD_FEEDS,
    USDC_ADDRESS,
    WETH_ADDRESS,
)
from swapsim.errors import (
    InvalidInput,
    PriceOracleError,
    QuoteUnavailable,
    RevertError,
    RpcError,
    RpcTimeout,
    SwapSimError,
)
from swapsim.routing.uniswap_v2 import UniswapV2Source
from swapsim.routing.uniswap_v3 import UniswapV3Source
from swapsim.tokens.resolver import TokenMetadata, TokenMetadataResolver
from swapsim.tokens.units import format_fraction

logger = logging.getLogger(__name__)

# Chainlink answers older than this are rejected
STALENESS_SECONDS = 3600

USDC_DECIMALS = 6
WETH_DECIMALS = 18


class QuoteCurrency(str, Enum):
    """Currency a price is expressed in."""

    USD = "USD"
    ETH = "ETH"

    @classmethod
    def parse(cls, value: Union[str, "QuoteCurrency", None]) -> "QuoteCurrency":
        if value is None:
            return cls.USD
        if isinstance(value, QuoteCurrency):
            return value
        try:
            return cls(value.strip().upper())
        except ValueError:
            raise InvalidInput(
                f"Unsupported quote currency: {value}. Use USD or ETH.",
                {"field": "quote_currency"},
            ) from None

    @property
    def proxy(self) -> tuple[str, int]:
        """Token standing in for the currency on Uniswap, with its decimals."""
        if self == QuoteCurrency.USD:
            return USDC_ADDRESS, USDC_DECIMALS
        return WETH_ADDRESS, WETH_DECIMALS


class PriceSource(str, Enum):
    """Where a price was read from."""

    CHAINLINK = "chainlink"
    UNISWAP_V2 = "uniswap_v2"
    UNISWAP_V3 = "uniswap_v3"


@dataclass
class PriceInfo:
    """Price of one whole token."""

    token: TokenMetadata
    price: Fraction
    quote_currency: QuoteCurrency
    source: PriceSource
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "token": self.token.to_dict(),
            "price": format_fraction(self.price),
            "quote_currency": self.quote_currency.value,
            "source": self.source.value,
            "timestamp": self.timestamp,
        }


class PriceService:
    """Reads token prices through the chain gateway.

    Args:
        gateway: Read-only chain accessor
        resolver: Token identifier resolution
        v2: Uniswap V2 source used for reserve prices
        v3: Uniswap V3 source used for QuoterV2 prices
        feeds: Token address -> Chainlink USD aggregator
        clock: Current Unix time, for staleness checks
    """

    def __init__(
        self,
        gateway: ChainGateway,
        resolver: TokenMetadataResolver,
        v2: Optional[UniswapV2Source] = None,
        v3: Optional[UniswapV3Source] = None,
        feeds: Optional[dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.gateway = gateway
        self.resolver = resolver
        self.v2 = v2 or UniswapV2Source(gateway)
        self.v3 = v3 or UniswapV3Source(gateway)
        feeds = CHAINLINK_USD_FEEDS if feeds is None else feeds
        self.feeds = {token.lower(): feed for token, feed in feeds.items()}
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    async def get_price(
        self,
        token: str,
        quote_currency: Union[str, QuoteCurrency, None] = None,
    ) -> PriceInfo:
        """Get the price of one whole ``token`` in ``quote_currency``.

        Args:
            token: Symbol or address ("ETH" prices as WETH)
            quote_currency: "USD" (default) or "ETH"

        Raises:
            InvalidInput, TokenNotFound, QuoteUnavailable, RpcError, RpcTimeout
        """
        currency = QuoteCurrency.parse(quote_currency)
        metadata = await self.resolver.resolve(token)
        address = metadata.routing_address
        proxy, _ = currency.proxy

        logger.debug(f"Pricing {metadata.symbol} in {currency.value}")

        # WETH in ETH and USDC in USD are 1 by definition
        if address.lower() == proxy.lower():
            source = PriceSource.CHAINLINK if currency == QuoteCurrency.USD else PriceSource.UNISWAP_V3
            return PriceInfo(metadata, Fraction(1), currency, source, self._now())

        if currency == QuoteCurrency.USD:
            feed = self.feeds.get(address.lower())
            if feed is not None:
                try:
                    price = await self.chainlink_price(feed)
                    return PriceInfo(metadata, price, currency, PriceSource.CHAINLINK, self._now())
                except (SwapSimError, DecodingError) as e:
                    logger.warning(
                        f"Chainlink feed {feed} unusable for {metadata.symbol}, "
                        f"falling back to Uniswap: {e}"
                    )

        return await self.uniswap_price(metadata, currency)

    async def chainlink_price(self, feed: str) -> Fraction:
        """Latest answer of a Chainlink aggregator.

        Raises:
            PriceOracleError: answer is stale, from an unfinished round, or
                not positive
        """
        round_raw, decimals_raw = await asyncio.gather(
            self.gateway.call(feed, CHAINLINK_LATEST_ROUND_DATA.encode_call()),
            self.gateway.call(feed, CHAINLINK_DECIMALS.encode_call()),
        )
        round_id, answer, _, updated_at, answered_in_round = (
            CHAINLINK_LATEST_ROUND_DATA.decode_output(round_raw)
        )
        decimals = CHAINLINK_DECIMALS.decode_output(decimals_raw)[0]

        if answered_in_round < round_id:
            raise PriceOracleError(
                f"Stale Chainlink round: answered in {answered_in_round} < {round_id}",
                {"feed": feed},
            )
        age = self._now() - updated_at
        if age > STALENESS_SECONDS:
            raise PriceOracleError(
                f"Stale Chainlink data: last update {age}s ago (limit {STALENESS_SECONDS}s)",
                {"feed": feed, "updated_at": updated_at},
            )
        if answer <= 0:
            raise PriceOracleError(
                f"Invalid Chainlink answer: {answer}", {"feed": feed}
            )

        return Fraction(answer, 10**decimals)

    async def uniswap_price(self, metadata: TokenMetadata, currency: QuoteCurrency) -> PriceInfo:
        """Price against the currency's proxy token, V3 first, then V2."""
        address = metadata.routing_address
        proxy, proxy_decimals = currency.proxy
        one_token = 10**metadata.decimals
        errors: list[SwapSimError] = []

        try:
            best = await self.v3.best_tier(address, proxy, one_token)
            price = Fraction(best.amount_out, 10**proxy_decimals)
            return PriceInfo(metadata, price, currency, PriceSource.UNISWAP_V3, self._now())
        except SwapSimError as e:
            logger.debug(f"No V3 price for {metadata.symbol}/{currency.value}: {e}")
            errors.append(e)

        try:
            reserve_in, reserve_out = await self.v2.get_reserves(address, proxy)
            price = Fraction(reserve_out * one_token, reserve_in * 10**proxy_decimals)
            return PriceInfo(metadata, price, currency, PriceSource.UNISWAP_V2, self._now())
        except SwapSimError as e:
            logger.debug(f"No V2 price for {metadata.symbol}/{currency.value}: {e}")
            errors.append(e)
        except DecodingError as e:
            logger.warning(f"V2 pair for {metadata.symbol}/{currency.value} returned bad data: {e}")
            errors.append(QuoteUnavailable(f"Undecodable V2 pair data: {e}"))

        details = {"errors": [e.to_dict() for e in errors]}
        for error in errors:
            if isinstance(error, RpcTimeout):
                raise RpcTimeout(f"Pricing {metadata.symbol} timed out", details)
        for error in errors:
            if isinstance(error, RpcError) and not isinstance(error, RevertError):
                raise RpcError(f"Pricing {metadata.symbol} failed: {error.message}", details)
        raise QuoteUnavailable(f"No price source for {metadata.symbol} in {currency.value}", details)
