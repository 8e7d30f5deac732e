"""Swap transaction builder.

Encodes the router call for a selected route. The payload is only ever
used for a non-committing simulation: nothing here signs or broadcasts.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from swapsim.contracts import (
    UNISWAP_V2_ROUTER,
    UNISWAP_V3_ROUTER,
    V2_SWAP_EXACT_ETH_FOR_TOKENS,
    V2_SWAP_EXACT_TOKENS_FOR_ETH,
    V2_SWAP_EXACT_TOKENS_FOR_TOKENS,
    V3_EXACT_INPUT,
    V3_EXACT_INPUT_SINGLE,
    V3_MULTICALL,
    V3_UNWRAP_WETH9,
    encode_v3_path,
)
from swapsim.errors import InvalidInput
from swapsim.routing.base import Protocol, SwapRoute

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 1200  # 20 minutes


@dataclass(frozen=True)
class TransactionPayload:
    """Unsigned call: target, calldata and attached native value."""

    to: str
    data: bytes
    value: int = 0

    @property
    def data_hex(self) -> str:
        return "0x" + self.data.hex()

    def to_dict(self) -> dict:
        return {"to": self.to, "data": self.data_hex, "value": str(self.value)}


class SwapTransactionBuilder:
    """Builds Uniswap router calls for exact-input swaps.

    Native ETH input attaches ``value = amount_in`` and relies on the
    router to wrap it; no separate WETH deposit call is added.
    """

    def __init__(self, deadline_seconds: int = DEFAULT_DEADLINE_SECONDS):
        self.deadline_seconds = deadline_seconds
        self._encoders = {
            Protocol.V2: self._encode_v2,
            Protocol.V3: self._encode_v3,
        }

    def deadline(self) -> int:
        """Unix timestamp after which the router rejects the swap."""
        return int(time.time()) + self.deadline_seconds

    def build(
        self,
        route: SwapRoute,
        amount_in: int,
        amount_out_minimum: int,
        recipient: str,
        native_in: bool = False,
        native_out: bool = False,
        deadline: Optional[int] = None,
    ) -> TransactionPayload:
        """Build the swap call for a route.

        Args:
            route: Selected route (path uses WETH for native ETH)
            amount_in: Raw input amount
            amount_out_minimum: Raw minimum output after slippage
            recipient: Address receiving the output
            native_in: Input is native ETH
            native_out: Output should be delivered as native ETH
            deadline: Unix deadline (defaults to now + deadline window)

        Returns:
            TransactionPayload with ``value = amount_in`` only for native input
        """
        if amount_in <= 0:
            raise InvalidInput("amount_in must be positive")
        if amount_out_minimum < 0:
            raise InvalidInput("amount_out_minimum cannot be negative")
        if native_in and native_out:
            raise InvalidInput("Swap cannot be native on both sides")

        deadline = deadline if deadline is not None else self.deadline()
        to, data = self._encoders[route.protocol](
            route, amount_in, amount_out_minimum, recipient, deadline, native_in, native_out
        )
        value = amount_in if native_in else 0

        logger.debug(
            f"Built {route.protocol.value} swap: to={to} value={value} "
            f"selector=0x{data[:4].hex()} deadline={deadline}"
        )
        return TransactionPayload(to=to, data=data, value=value)

    @staticmethod
    def _encode_v2(
        route: SwapRoute,
        amount_in: int,
        amount_out_minimum: int,
        recipient: str,
        deadline: int,
        native_in: bool,
        native_out: bool,
    ) -> tuple[str, bytes]:
        path = list(route.path)
        if native_in:
            # swapExactETHForTokens takes amountIn from msg.value
            data = V2_SWAP_EXACT_ETH_FOR_TOKENS.encode_call(
                amount_out_minimum, path, recipient, deadline
            )
        elif native_out:
            data = V2_SWAP_EXACT_TOKENS_FOR_ETH.encode_call(
                amount_in, amount_out_minimum, path, recipient, deadline
            )
        else:
            data = V2_SWAP_EXACT_TOKENS_FOR_TOKENS.encode_call(
                amount_in, amount_out_minimum, path, recipient, deadline
            )
        return UNISWAP_V2_ROUTER, data

    @staticmethod
    def _encode_v3(
        route: SwapRoute,
        amount_in: int,
        amount_out_minimum: int,
        recipient: str,
        deadline: int,
        native_in: bool,
        native_out: bool,
    ) -> tuple[str, bytes]:
        # Native output: the router keeps WETH, then unwraps it to the recipient
        swap_recipient = UNISWAP_V3_ROUTER if native_out else recipient

        if route.is_direct:
            swap = V3_EXACT_INPUT_SINGLE.encode_call(
                (
                    route.path[0],
                    route.path[1],
                    route.fee_tiers[0],
                    swap_recipient,
                    deadline,
                    amount_in,
                    amount_out_minimum,
                    0,
                )
            )
        else:
            swap = V3_EXACT_INPUT.encode_call(
                (
                    encode_v3_path(route.path, route.fee_tiers),
                    swap_recipient,
                    deadline,
                    amount_in,
                    amount_out_minimum,
                )
            )

        if not native_out:
            return UNISWAP_V3_ROUTER, swap

        unwrap = V3_UNWRAP_WETH9.encode_call(amount_out_minimum, recipient)
        return UNISWAP_V3_ROUTER, V3_MULTICALL.encode_call([swap, unwrap])
