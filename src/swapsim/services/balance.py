"""Balance queries for native ETH and ERC20 tokens."""

import logging
from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from swapsim.chain.base import ChainGateway
from swapsim.contracts import ERC20_BALANCE_OF
from swapsim.errors import InvalidInput
from swapsim.tokens.resolver import TokenMetadata, TokenMetadataResolver
from swapsim.tokens.units import format_units

logger = logging.getLogger(__name__)


@dataclass
class BalanceInfo:
    """Balance of one token held by one address."""

    address: str
    token: TokenMetadata
    balance_raw: int

    @property
    def balance(self) -> str:
        return format_units(self.balance_raw, self.token.decimals)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "token": self.token.to_dict(),
            "balance": self.balance,
            "balance_raw": str(self.balance_raw),
        }


class BalanceService:
    """Reads balances through the chain gateway."""

    def __init__(self, gateway: ChainGateway, resolver: TokenMetadataResolver):
        self.gateway = gateway
        self.resolver = resolver

    async def get_balance(self, address: str, token: Optional[str] = None) -> BalanceInfo:
        """Get the balance of ``address``.

        Args:
            address: Holder address
            token: Symbol or token address; native ETH when omitted
        """
        if not Web3.is_address(address):
            raise InvalidInput(f"Invalid address: {address}", {"field": "address"})
        address = Web3.to_checksum_address(address)

        metadata = await self.resolver.resolve(token) if token else TokenMetadata.native()

        if metadata.is_native:
            raw = await self.gateway.get_balance(address)
        else:
            output = await self.gateway.call(
                metadata.address, ERC20_BALANCE_OF.encode_call(address)
            )
            raw = ERC20_BALANCE_OF.decode_output(output)[0]

        logger.debug(f"Balance of {address}: {raw} {metadata.symbol} (raw)")
        return BalanceInfo(address=address, token=metadata, balance_raw=raw)
