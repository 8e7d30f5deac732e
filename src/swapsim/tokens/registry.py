"""Symbol directory for Ethereum mainnet tokens.

Well-known tokens are fixed. An optional remote token list (tokenlists.org
schema, e.g. https://tokens.uniswap.org) can add more symbols; it never
overrides a well-known entry.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from web3 import Web3

from swapsim.contracts import USDC_ADDRESS, WBTC_ADDRESS, WETH_ADDRESS

logger = logging.getLogger(__name__)

NATIVE_SYMBOL = "ETH"
NATIVE_DECIMALS = 18


@dataclass(frozen=True)
class TokenEntry:
    """A directory entry: checksum address, symbol and decimals."""

    address: str
    symbol: str
    decimals: int
    name: str = ""


WELL_KNOWN_TOKENS: dict[str, TokenEntry] = {
    "WETH": TokenEntry(WETH_ADDRESS, "WETH", 18, "Wrapped Ether"),
    "USDC": TokenEntry(USDC_ADDRESS, "USDC", 6, "USD Coin"),
    "USDT": TokenEntry("0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6, "Tether USD"),
    "DAI": TokenEntry("0x6B175474E89094C44Da98b954EedcdeCB5BE3830", "DAI", 18, "Dai Stablecoin"),
    "WBTC": TokenEntry(WBTC_ADDRESS, "WBTC", 8, "Wrapped BTC"),
    "UNI": TokenEntry("0x1f9840a85d5aF5bf1D1762F925BDADdC4201F984", "UNI", 18, "Uniswap"),
    "LINK": TokenEntry("0x514910771AF9Ca656af840dff83E8264EcF986CA", "LINK", 18, "ChainLink Token"),
}


class TokenRegistry:
    """Symbol and address lookups over well-known and listed tokens."""

    def __init__(
        self,
        token_list_url: Optional[str] = None,
        chain_id: int = 1,
        ttl_seconds: int = 86400,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token_list_url = token_list_url
        self.chain_id = chain_id
        self.ttl_seconds = ttl_seconds
        self._client = client
        self._listed_by_symbol: dict[str, TokenEntry] = {}
        self._listed_by_address: dict[str, TokenEntry] = {}
        self._last_refresh: Optional[float] = None
        self._refresh_lock = asyncio.Lock()
        self._by_address = {t.address.lower(): t for t in WELL_KNOWN_TOKENS.values()}

    @property
    def remote_enabled(self) -> bool:
        return bool(self.token_list_url)

    def _is_stale(self) -> bool:
        if self._last_refresh is None:
            return True
        return time.monotonic() - self._last_refresh > self.ttl_seconds

    async def refresh(self) -> int:
        """Fetch the remote token list and index entries for our chain.

        Returns:
            Number of tokens loaded
        """
        if not self.token_list_url:
            return 0

        logger.info(f"Refreshing token list from {self.token_list_url}")
        client = self._client or httpx.AsyncClient(timeout=30.0)
        try:
            response = await client.get(self.token_list_url)
            response.raise_for_status()
            payload = response.json()
        finally:
            if self._client is None:
                await client.aclose()

        by_symbol: dict[str, TokenEntry] = {}
        by_address: dict[str, TokenEntry] = {}
        for item in payload.get("tokens", []):
            if item.get("chainId") != self.chain_id:
                continue
            address = item.get("address", "")
            if not Web3.is_address(address):
                continue
            entry = TokenEntry(
                address=Web3.to_checksum_address(address),
                symbol=item.get("symbol", ""),
                decimals=int(item.get("decimals", 18)),
                name=item.get("name", ""),
            )
            # First listing of a symbol wins
            by_symbol.setdefault(entry.symbol.upper(), entry)
            by_address[entry.address.lower()] = entry

        self._listed_by_symbol = by_symbol
        self._listed_by_address = by_address
        self._last_refresh = time.monotonic()
        logger.info(f"Loaded {len(by_address)} tokens for chain {self.chain_id}")
        return len(by_address)

    async def _ensure_fresh(self) -> None:
        if not self.remote_enabled or not self._is_stale():
            return
        async with self._refresh_lock:
            if not self._is_stale():
                return
            try:
                await self.refresh()
            except (httpx.HTTPError, ValueError) as e:
                # Retry on the next lookup
                logger.warning(f"Token list refresh failed: {e}")

    def is_well_known(self, symbol: str) -> bool:
        return symbol.strip().upper() in WELL_KNOWN_TOKENS

    async def resolve_symbol(self, symbol: str) -> Optional[TokenEntry]:
        """Look up a symbol, case-insensitively."""
        key = symbol.strip().upper()
        if key in WELL_KNOWN_TOKENS:
            return WELL_KNOWN_TOKENS[key]
        await self._ensure_fresh()
        return self._listed_by_symbol.get(key)

    def lookup_address(self, address: str) -> Optional[TokenEntry]:
        """Look up a known address without touching the network."""
        key = address.lower()
        return self._by_address.get(key) or self._listed_by_address.get(key)
