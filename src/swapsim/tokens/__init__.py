"""Token metadata, symbol directory and unit conversions."""

from swapsim.tokens.registry import WELL_KNOWN_TOKENS, TokenEntry, TokenRegistry
from swapsim.tokens.resolver import TokenMetadata, TokenMetadataResolver
from swapsim.tokens.units import format_units, parse_units, to_decimal, to_raw

__all__ = [
    "TokenEntry",
    "TokenMetadata",
    "TokenMetadataResolver",
    "TokenRegistry",
    "WELL_KNOWN_TOKENS",
    "format_units",
    "parse_units",
    "to_decimal",
    "to_raw",
]
