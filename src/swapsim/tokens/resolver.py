"""Token metadata resolution.

Maps a symbol or an address to ``TokenMetadata``. Unknown addresses are
read from chain (``decimals()`` and ``symbol()``) through the gateway, with
concurrent lookups of the same address collapsed into one fetch.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from swapsim.chain.base import ChainGateway
from swapsim.contracts import ERC20_DECIMALS, ERC20_SYMBOL, WETH_ADDRESS
from swapsim.errors import RevertError, RpcError, RpcTimeout, TokenNotFound
from swapsim.tokens.registry import NATIVE_DECIMALS, NATIVE_SYMBOL, TokenRegistry
from swapsim.utils.singleflight import SingleFlight

logger = logging.getLogger(__name__)

DEFAULT_DECIMALS = 18
UNKNOWN_SYMBOL = "UNKNOWN"


@dataclass(frozen=True)
class TokenMetadata:
    """Resolved token. Equality is by address; native ETH has none."""

    address: Optional[str]
    symbol: str = field(compare=False)
    decimals: int = field(compare=False)

    @classmethod
    def native(cls) -> "TokenMetadata":
        return cls(address=None, symbol=NATIVE_SYMBOL, decimals=NATIVE_DECIMALS)

    @property
    def is_native(self) -> bool:
        return self.address is None

    @property
    def routing_address(self) -> str:
        """Address used in pool paths (WETH stands in for native ETH)."""
        return WETH_ADDRESS if self.address is None else self.address

    def to_dict(self) -> dict:
        data = {"symbol": self.symbol, "decimals": self.decimals}
        if self.address is not None:
            data["address"] = self.address
        return data


def _normalize_identifier(identifier: str) -> str:
    """Strip whitespace and add ``0x`` to a bare 40-hex-digit address."""
    identifier = identifier.strip()
    if len(identifier) == 40 and Web3.is_address(identifier):
        return "0x" + identifier
    return identifier


def _decode_symbol(raw: bytes) -> str:
    """Decode ``symbol()`` output, accepting legacy bytes32 symbols."""
    try:
        return str(decode(["string"], raw)[0])
    except (DecodingError, OverflowError):
        pass
    if len(raw) == 32:
        return raw.rstrip(b"\x00").decode("utf-8", errors="replace")
    raise DecodingError(f"Cannot decode symbol from {len(raw)} bytes")


class TokenMetadataResolver:
    """Resolve identifiers to canonical token metadata.

    Args:
        gateway: Read-only chain accessor for on-chain metadata
        registry: Symbol directory (defaults to well-known tokens only)
        cache: Keep fetched metadata for the life of this resolver
    """

    def __init__(
        self,
        gateway: ChainGateway,
        registry: Optional[TokenRegistry] = None,
        cache: bool = False,
    ):
        self.gateway = gateway
        self.registry = registry or TokenRegistry()
        self.cache_enabled = cache
        self._cache: dict[str, TokenMetadata] = {}
        self._flight: SingleFlight[str, TokenMetadata] = SingleFlight()

    def check_identifier(self, identifier: str) -> None:
        """Reject identifiers that can be ruled out without any network access.

        Raises:
            TokenNotFound: empty identifier, malformed address, or a symbol
                unknown to the local directory when no token list is configured
        """
        identifier = _normalize_identifier(identifier)
        if not identifier:
            raise TokenNotFound("Token identifier is empty")
        if identifier.upper() == NATIVE_SYMBOL:
            return
        if identifier.lower().startswith("0x"):
            if not Web3.is_address(identifier):
                raise TokenNotFound(
                    f"Invalid token address: {identifier}", {"identifier": identifier}
                )
            return
        if not self.registry.remote_enabled and not self.registry.is_well_known(identifier):
            raise TokenNotFound(
                f"Unknown token symbol: {identifier}. Use the contract address instead.",
                {"identifier": identifier},
            )

    async def resolve(self, identifier: str) -> TokenMetadata:
        """Resolve a symbol ("ETH", "usdc") or an address, with or without ``0x``.

        Raises:
            TokenNotFound: unknown symbol, malformed address, or a contract
                that answers neither ``decimals()`` nor ``symbol()``
        """
        self.check_identifier(identifier)
        identifier = _normalize_identifier(identifier)

        if identifier.upper() == NATIVE_SYMBOL:
            return TokenMetadata.native()

        if identifier.lower().startswith("0x"):
            return await self.resolve_address(Web3.to_checksum_address(identifier))

        entry = await self.registry.resolve_symbol(identifier)
        if entry is None:
            raise TokenNotFound(
                f"Unknown token symbol: {identifier}. Use the contract address instead.",
                {"identifier": identifier},
            )
        return TokenMetadata(entry.address, entry.symbol, entry.decimals)

    async def resolve_address(self, address: str) -> TokenMetadata:
        """Resolve a checksum address, reading chain for unknown tokens."""
        entry = self.registry.lookup_address(address)
        if entry is not None:
            return TokenMetadata(entry.address, entry.symbol, entry.decimals)

        cached = self._cache.get(address)
        if cached is not None:
            return cached

        metadata = await self._flight.do(address, lambda: self._fetch(address))
        if self.cache_enabled:
            self._cache[address] = metadata
        return metadata

    async def _fetch(self, address: str) -> TokenMetadata:
        logger.debug(f"Fetching token metadata for {address}")
        decimals_result, symbol_result = await asyncio.gather(
            self.gateway.call(address, ERC20_DECIMALS.encode_call()),
            self.gateway.call(address, ERC20_SYMBOL.encode_call()),
            return_exceptions=True,
        )

        for result in (decimals_result, symbol_result):
            if isinstance(result, RpcTimeout):
                raise result

        decimals = self._parse_decimals(address, decimals_result)
        symbol = self._parse_symbol(address, symbol_result)

        if decimals is None and symbol is None:
            for result in (decimals_result, symbol_result):
                if isinstance(result, RpcError) and not isinstance(result, RevertError):
                    raise result
            raise TokenNotFound(
                f"No ERC20 token at {address}", {"address": address}
            )

        metadata = TokenMetadata(
            address=address,
            symbol=symbol if symbol is not None else UNKNOWN_SYMBOL,
            decimals=decimals if decimals is not None else DEFAULT_DECIMALS,
        )
        logger.info(f"Resolved {address} -> {metadata.symbol} ({metadata.decimals} decimals)")
        return metadata

    @staticmethod
    def _parse_decimals(address: str, result: object) -> Optional[int]:
        if isinstance(result, BaseException):
            if not isinstance(result, RpcError):
                raise result
            logger.debug(f"decimals() failed for {address}: {result}")
            return None
        try:
            return ERC20_DECIMALS.decode_output(result)[0]
        except (DecodingError, OverflowError):
            logger.debug(f"decimals() returned undecodable data for {address}")
            return None

    @staticmethod
    def _parse_symbol(address: str, result: object) -> Optional[str]:
        if isinstance(result, BaseException):
            if not isinstance(result, RpcError):
                raise result
            logger.debug(f"symbol() failed for {address}: {result}")
            return None
        try:
            return _decode_symbol(result)
        except (DecodingError, OverflowError):
            logger.debug(f"symbol() returned undecodable data for {address}")
            return None
