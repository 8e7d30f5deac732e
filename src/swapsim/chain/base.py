"""Read-only chain access used by the quote and simulation engine.

Nothing behind this interface commits state: ``call`` and ``estimate_gas``
execute against the latest block without broadcasting anything.
"""

from abc import ABC, abstractmethod
from typing import Optional


class ChainGateway(ABC):
    """Side-effect-free accessor for current chain state."""

    @abstractmethod
    async def call(
        self,
        to: str,
        data: bytes,
        value: int = 0,
        from_address: Optional[str] = None,
    ) -> bytes:
        """Execute a non-committing call and return its output.

        Raises:
            RevertError: if execution reverts
            RpcError: if the node could not be reached or answered badly
        """
        pass

    @abstractmethod
    async def estimate_gas(
        self,
        to: str,
        data: bytes,
        value: int = 0,
        from_address: Optional[str] = None,
    ) -> int:
        """Estimate gas for a call. Raises RevertError like ``call``."""
        pass

    @abstractmethod
    async def gas_price(self) -> int:
        """Current gas price in wei."""
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        """Native balance of an address in wei."""
        pass

    @abstractmethod
    async def chain_id(self) -> int:
        pass

    async def close(self) -> None:
        """Release network resources."""
        pass
