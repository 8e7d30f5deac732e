"""Tests for token price lookups."""

import time
from fractions import Fraction

import pytest

from conftest import DAI, USDC, WETH
from swapsim.contracts import CHAINLINK_LATEST_ROUND_DATA, ETH_USD_FEED
from swapsim.errors import InvalidInput, QuoteUnavailable, RpcTimeout
from swapsim.services.price import PriceService, PriceSource, QuoteCurrency
from swapsim.tokens.resolver import TokenMetadataResolver

# 2000 USDC per WETH in raw units
WETH_USDC_PRICE = Fraction(2000 * 10**6, 10**18)


@pytest.fixture
def prices(gateway):
    return PriceService(gateway, TokenMetadataResolver(gateway))


class TestQuoteCurrency:
    """Tests for quote currency parsing."""

    def test_parse(self):
        assert QuoteCurrency.parse(None) == QuoteCurrency.USD
        assert QuoteCurrency.parse("eth") == QuoteCurrency.ETH
        assert QuoteCurrency.parse(" Usd ") == QuoteCurrency.USD

    def test_unknown_currency(self):
        with pytest.raises(InvalidInput):
            QuoteCurrency.parse("EUR")


class TestChainlinkPrices:
    """Tests for USD prices from Chainlink feeds."""

    @pytest.mark.asyncio
    async def test_weth_usd(self, gateway, prices):
        gateway.add_price_feed(ETH_USD_FEED, 2500_12345678, decimals=8)

        info = await prices.get_price("WETH", "USD")

        assert info.source == PriceSource.CHAINLINK
        assert info.price == Fraction(250012345678, 10**8)
        assert info.to_dict()["price"] == "2500.12345678"
        assert info.to_dict()["quote_currency"] == "USD"

    @pytest.mark.asyncio
    async def test_native_eth_uses_weth_feed(self, gateway, prices):
        gateway.add_price_feed(ETH_USD_FEED, 3000 * 10**8)

        info = await prices.get_price("ETH")

        assert info.token.is_native
        assert info.token.symbol == "ETH"
        assert info.to_dict()["price"] == "3000"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "feed",
        [
            {"updated_at": int(time.time()) - 7200},
            {"round_id": 10, "answered_in_round": 9},
            {"answer": -1},
            {"answer": 0},
        ],
    )
    async def test_bad_feed_falls_back_to_uniswap(self, gateway, prices, feed):
        """Test stale, incomplete or non-positive answers are not used."""
        feed = dict(feed)
        answer = feed.pop("answer", 2500 * 10**8)
        gateway.add_price_feed(ETH_USD_FEED, answer, **feed)
        gateway.add_v3_pool(WETH, USDC, 500, WETH_USDC_PRICE)

        info = await prices.get_price("WETH", "USD")

        assert info.source == PriceSource.UNISWAP_V3
        assert info.to_dict()["price"] == "1999"

    @pytest.mark.asyncio
    async def test_feed_read_failure_falls_back(self, gateway, prices):
        gateway.add_price_feed(ETH_USD_FEED, 2500 * 10**8)
        gateway.raw_outputs[CHAINLINK_LATEST_ROUND_DATA.selector] = b""
        gateway.add_v3_pool(WETH, USDC, 500, WETH_USDC_PRICE)

        info = await prices.get_price("WETH")

        assert info.source == PriceSource.UNISWAP_V3


class TestUniswapPrices:
    """Tests for prices read from Uniswap pools."""

    @pytest.mark.asyncio
    async def test_v3_in_eth(self, gateway, prices):
        gateway.add_v3_pool(USDC, WETH, 3000, 1 / WETH_USDC_PRICE)

        info = await prices.get_price("USDC", "ETH")

        assert info.source == PriceSource.UNISWAP_V3
        # One USDC is 0.0005 WETH, less the 0.3% fee
        assert info.price == Fraction(498_500_000_000_000, 10**18)

    @pytest.mark.asyncio
    async def test_v2_fallback_uses_reserves(self, gateway, prices):
        """Test a token with only a V2 pair is priced from its reserves."""
        gateway.add_v2_pair(DAI, WETH, 2_000_000 * 10**18, 1000 * 10**18)

        info = await prices.get_price("DAI", "ETH")

        assert info.source == PriceSource.UNISWAP_V2
        assert info.to_dict()["price"] == "0.0005"

    @pytest.mark.asyncio
    async def test_proxy_tokens_price_at_one(self, gateway, prices):
        weth = await prices.get_price("WETH", "ETH")
        usdc = await prices.get_price(USDC, "USD")

        assert weth.price == 1
        assert usdc.price == 1
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_no_pool(self, gateway, prices):
        with pytest.raises(QuoteUnavailable):
            await prices.get_price("DAI", "ETH")

    @pytest.mark.asyncio
    async def test_timeout_is_reported(self, gateway, prices):
        async def timeout(*args, **kwargs):
            raise RpcTimeout("eth_call timed out")

        gateway.call = timeout

        with pytest.raises(RpcTimeout):
            await prices.get_price("DAI", "ETH")
