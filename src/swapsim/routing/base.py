"""Quote source interface and the values it produces."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Sequence, Union

from swapsim.contracts import WETH_ADDRESS
from swapsim.errors import InvalidInput, SwapSimError

logger = logging.getLogger(__name__)


class Protocol(str, Enum):
    """AMM protocol family."""

    V2 = "uniswap_v2"
    V3 = "uniswap_v3"


# Lower rank wins exact ties in route selection
PROTOCOL_RANK = {Protocol.V3: 0, Protocol.V2: 1}


@dataclass(frozen=True)
class SwapRoute:
    """Protocol plus token path, with one fee tier per hop for V3."""

    protocol: Protocol
    path: tuple[str, ...]
    fee_tiers: tuple[int, ...] = ()

    def __post_init__(self):
        if not 2 <= len(self.path) <= 3:
            raise InvalidInput(f"Route path must have 2 or 3 tokens, got {len(self.path)}")
        if len(self.path) == 3 and self.path[1].lower() != WETH_ADDRESS.lower():
            raise InvalidInput("The only allowed intermediate token is WETH")
        if self.protocol == Protocol.V3 and len(self.fee_tiers) != self.hops:
            raise InvalidInput(f"V3 route needs {self.hops} fee tiers, got {len(self.fee_tiers)}")
        if self.protocol == Protocol.V2 and self.fee_tiers:
            raise InvalidInput("V2 routes have no fee tiers")

    @property
    def hops(self) -> int:
        return len(self.path) - 1

    @property
    def is_direct(self) -> bool:
        return self.hops == 1

    @property
    def total_fee(self) -> int:
        return sum(self.fee_tiers)

    def to_dict(self) -> dict:
        """Convert to the transport shape (``fee_tier`` int, list or None)."""
        if not self.fee_tiers:
            fee_tier = None
        elif self.is_direct:
            fee_tier = self.fee_tiers[0]
        else:
            fee_tier = list(self.fee_tiers)
        return {
            "protocol": self.protocol.value,
            "path": list(self.path),
            "fee_tier": fee_tier,
        }


@dataclass(frozen=True)
class Quote:
    """Expected output of a route for a raw input amount.

    ``spot_price`` is raw output units per raw input unit before the trade,
    multiplied across hops.
    """

    route: SwapRoute
    amount_in: int
    amount_out: int
    spot_price: Fraction

    @property
    def execution_price(self) -> Fraction:
        return Fraction(self.amount_out, self.amount_in)

    def price_impact(self) -> Fraction:
        """``max(0, (spot - execution) / spot)``."""
        if self.spot_price <= 0:
            return Fraction(0)
        impact = (self.spot_price - self.execution_price) / self.spot_price
        return max(Fraction(0), impact)

    def selection_key(self) -> tuple:
        """Sort key: best quote first."""
        return (
            -self.amount_out,
            PROTOCOL_RANK[self.route.protocol],
            self.route.total_fee,
            self.route.hops,
        )


@dataclass(frozen=True)
class QuoteFailure:
    """A failed quote attempt, kept as a value next to successful quotes."""

    protocol: Protocol
    path: tuple[str, ...]
    error: SwapSimError = field(compare=False)

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol.value,
            "path": list(self.path),
            "code": self.error.code,
            "message": self.error.message,
        }


QuoteResult = Union[Quote, QuoteFailure]


class QuoteSource(ABC):
    """An AMM protocol that can price an exact-input swap along a path."""

    @property
    @abstractmethod
    def protocol(self) -> Protocol:
        pass

    @property
    def name(self) -> str:
        return self.protocol.value

    @abstractmethod
    async def quote(self, path: Sequence[str], amount_in: int) -> Quote:
        """
        Quote an exact-input swap along ``path``.

        Args:
            path: Token addresses, first = input, last = output
            amount_in: Raw input amount

        Returns:
            Quote with the route actually used (including V3 fee tiers)

        Raises:
            InsufficientLiquidity: a pool is missing, empty or quotes zero
            RpcError: the chain could not be read
        """
        pass
