"""Tests for token metadata resolution and the token registry."""

import asyncio

import httpx
import pytest

from conftest import PEPE, USDC, WETH
from swapsim.contracts import ERC20_DECIMALS, ERC20_SYMBOL
from swapsim.errors import RpcError, RpcTimeout, TokenNotFound
from swapsim.tokens.registry import TokenRegistry
from swapsim.tokens.resolver import TokenMetadata, TokenMetadataResolver
from swapsim.utils.singleflight import SingleFlight


class TestTokenMetadata:
    """Tests for the metadata value."""

    def test_native(self):
        eth = TokenMetadata.native()

        assert eth.is_native
        assert eth.routing_address == WETH
        assert eth.to_dict() == {"symbol": "ETH", "decimals": 18}

    def test_equality_by_address(self):
        assert TokenMetadata(USDC, "USDC", 6) == TokenMetadata(USDC, "usdc?", 18)


class TestSymbolResolution:
    """Tests for symbols and addresses that need no chain reads."""

    @pytest.mark.asyncio
    async def test_well_known_symbol_case_insensitive(self, gateway):
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve("usdc")

        assert token == TokenMetadata(USDC, "USDC", 6)
        assert token.decimals == 6
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_eth_is_native(self, gateway):
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(" eth ")

        assert token.is_native
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_well_known_address(self, gateway):
        """Test a lowercase well-known address resolves without chain reads."""
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(USDC.lower())

        assert token.address == USDC
        assert token.symbol == "USDC"
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_address_without_prefix(self, gateway):
        """Test a bare 40-hex-digit address resolves like a 0x-prefixed one."""
        gateway.add_token(PEPE, "PEPE", 18)
        resolver = TokenMetadataResolver(gateway)

        usdc = await resolver.resolve(USDC[2:].lower())
        pepe = await resolver.resolve(PEPE[2:])

        assert usdc.address == USDC
        assert pepe.address == PEPE
        assert pepe.symbol == "PEPE"

    @pytest.mark.parametrize(
        "identifier", ["", "   ", "NOTATOKEN", "0x1234", "0xZZ", "g" * 40, USDC[2:-1]]
    )
    def test_check_identifier_rejects(self, gateway, identifier):
        """Test identifiers that cannot resolve are rejected offline."""
        resolver = TokenMetadataResolver(gateway)

        with pytest.raises(TokenNotFound):
            resolver.check_identifier(identifier)

        assert gateway.calls == []


class TestOnChainResolution:
    """Tests for reading ERC20 metadata from chain."""

    @pytest.mark.asyncio
    async def test_reads_decimals_and_symbol(self, gateway):
        gateway.add_token(PEPE, "PEPE", 18)
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(PEPE.lower())

        assert token.address == PEPE
        assert token.symbol == "PEPE"
        assert token.decimals == 18
        assert gateway.count("eth_call", ERC20_DECIMALS.selector) == 1
        assert gateway.count("eth_call", ERC20_SYMBOL.selector) == 1

    @pytest.mark.asyncio
    async def test_bytes32_symbol(self, gateway):
        """Test legacy tokens returning bytes32 from symbol()."""
        gateway.add_token(PEPE, "MKR", 18, bytes32_symbol=True)
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(PEPE)

        assert token.symbol == "MKR"

    @pytest.mark.asyncio
    async def test_missing_symbol_uses_placeholder(self, gateway):
        gateway.add_token(PEPE, None, 9)
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(PEPE)

        assert token.symbol == "UNKNOWN"
        assert token.decimals == 9

    @pytest.mark.asyncio
    async def test_missing_decimals_defaults_to_18(self, gateway):
        gateway.add_token(PEPE, "PEPE", None)
        resolver = TokenMetadataResolver(gateway)

        token = await resolver.resolve(PEPE)

        assert token.decimals == 18

    @pytest.mark.asyncio
    async def test_not_a_token(self, gateway):
        """Test an address answering neither call is not a token."""
        resolver = TokenMetadataResolver(gateway)

        with pytest.raises(TokenNotFound):
            await resolver.resolve(PEPE)

    @pytest.mark.asyncio
    async def test_timeout_propagates(self, gateway):
        resolver = TokenMetadataResolver(gateway)

        async def timeout(*args, **kwargs):
            raise RpcTimeout("eth_call timed out")

        gateway.call = timeout

        with pytest.raises(RpcTimeout):
            await resolver.resolve(PEPE)

    @pytest.mark.asyncio
    async def test_node_error_propagates(self, gateway):
        """Test a node failure is not mistaken for a missing token."""
        resolver = TokenMetadataResolver(gateway)

        async def broken(*args, **kwargs):
            raise RpcError("RPC error -32000: header not found")

        gateway.call = broken

        with pytest.raises(RpcError) as exc_info:
            await resolver.resolve(PEPE)
        assert not isinstance(exc_info.value, TokenNotFound)


class TestSingleFlight:
    """Tests for collapsing concurrent metadata fetches."""

    @pytest.mark.asyncio
    async def test_concurrent_resolves_fetch_once(self, gateway):
        """Test concurrent lookups of one address issue a single fetch."""
        gateway.add_token(PEPE, "PEPE", 18)
        gateway.delay = 0.01
        resolver = TokenMetadataResolver(gateway)

        tokens = await asyncio.gather(*(resolver.resolve(PEPE) for _ in range(10)))

        assert all(t == tokens[0] for t in tokens)
        assert gateway.count("eth_call", ERC20_DECIMALS.selector) == 1
        assert gateway.count("eth_call", ERC20_SYMBOL.selector) == 1

    @pytest.mark.asyncio
    async def test_no_cache_refetches(self, gateway):
        """Test a later lookup fetches again when caching is off."""
        gateway.add_token(PEPE, "PEPE", 18)
        resolver = TokenMetadataResolver(gateway)

        await resolver.resolve(PEPE)
        await resolver.resolve(PEPE)

        assert gateway.count("eth_call", ERC20_DECIMALS.selector) == 2

    @pytest.mark.asyncio
    async def test_cache_keeps_result(self, gateway):
        gateway.add_token(PEPE, "PEPE", 18)
        resolver = TokenMetadataResolver(gateway, cache=True)

        await resolver.resolve(PEPE)
        await resolver.resolve(PEPE)

        assert gateway.count("eth_call", ERC20_DECIMALS.selector) == 1

    @pytest.mark.asyncio
    async def test_entry_removed_after_completion(self):
        flight = SingleFlight()

        async def fetch():
            return 42

        assert await flight.do("key", fetch) == 42
        await asyncio.sleep(0)
        assert len(flight) == 0
        assert not flight.in_flight("key")

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_fetch(self):
        """Test one caller giving up leaves the shared fetch running for others."""
        flight = SingleFlight()
        release = asyncio.Event()

        async def fetch():
            await release.wait()
            return "done"

        first = asyncio.ensure_future(flight.do("key", fetch))
        second = asyncio.ensure_future(flight.do("key", fetch))
        await asyncio.sleep(0)

        first.cancel()
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_errors_are_shared(self):
        flight = SingleFlight()

        async def fetch():
            await asyncio.sleep(0.01)
            raise TokenNotFound("nope")

        results = await asyncio.gather(
            flight.do("key", fetch), flight.do("key", fetch), return_exceptions=True
        )

        assert all(isinstance(r, TokenNotFound) for r in results)


class TestTokenRegistry:
    """Tests for the remote token list."""

    def _client(self, payload: dict, calls: list) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(str(request.url))
            return httpx.Response(200, json=payload)

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_listed_symbol(self, gateway):
        """Test a symbol from the token list resolves on our chain only."""
        calls = []
        payload = {
            "tokens": [
                {"chainId": 1, "address": PEPE.lower(), "symbol": "PEPE", "decimals": 18},
                {"chainId": 10, "address": USDC, "symbol": "OPUSDC", "decimals": 6},
            ]
        }
        registry = TokenRegistry(
            "https://tokens.example/list.json", client=self._client(payload, calls)
        )
        resolver = TokenMetadataResolver(gateway, registry=registry)

        token = await resolver.resolve("pepe")

        assert token.address == PEPE
        assert token.decimals == 18
        assert await registry.resolve_symbol("OPUSDC") is None
        assert len(calls) == 1
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_well_known_not_overridden(self):
        calls = []
        payload = {
            "tokens": [{"chainId": 1, "address": PEPE, "symbol": "USDC", "decimals": 18}]
        }
        registry = TokenRegistry("https://tokens.example/list.json", client=self._client(payload, calls))

        entry = await registry.resolve_symbol("USDC")

        assert entry.address == USDC
        assert calls == []

    @pytest.mark.asyncio
    async def test_refresh_failure_is_not_fatal(self, gateway):
        """Test a failing token list leaves only well-known symbols."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        registry = TokenRegistry(
            "https://tokens.example/list.json",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        resolver = TokenMetadataResolver(gateway, registry=registry)

        with pytest.raises(TokenNotFound):
            await resolver.resolve("PEPE")
