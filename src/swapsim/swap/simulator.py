"""Simulation executor.

Runs the built swap as an ``eth_call``, estimates gas and prices it. A
revert is an answer, not an error: the result carries
``simulation_success=False`` and the revert reason next to the quote.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Optional

from eth_abi.exceptions import DecodingError

from swapsim.chain.base import ChainGateway
from swapsim.contracts import (
    V2_SWAP_EXACT_ETH_FOR_TOKENS,
    V2_SWAP_EXACT_TOKENS_FOR_ETH,
    V2_SWAP_EXACT_TOKENS_FOR_TOKENS,
    V3_EXACT_INPUT,
    V3_EXACT_INPUT_SINGLE,
    V3_MULTICALL,
)
from swapsim.errors import RevertError, RpcError, SimulationReverted
from swapsim.routing.base import Quote, SwapRoute
from swapsim.swap.builder import TransactionPayload
from swapsim.tokens.resolver import TokenMetadata

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 200_000
FALLBACK_GAS_PRICE_WEI = 30 * 10**9  # 30 gwei


class SimulationState(str, Enum):
    """Request lifecycle up to and including the simulation outcome."""

    VALIDATED = "validated"
    QUOTED = "quoted"
    ROUTE_SELECTED = "route_selected"
    BUILT = "built"
    SIMULATED = "simulated"
    SUCCESS = "success"
    REVERTED = "reverted"


@dataclass
class SwapSimulationResult:
    """Everything known about a simulated swap."""

    from_token: TokenMetadata
    to_token: TokenMetadata
    amount_in: int
    amount_out_expected: int
    amount_out_minimum: int
    price_impact: Fraction
    gas_estimate: int
    gas_price: int
    route: SwapRoute
    transaction: TransactionPayload
    simulation_success: bool
    simulation_error: Optional[str] = None
    simulated_amount_out: Optional[int] = None
    gas_estimated: bool = True
    state: SimulationState = field(default=SimulationState.SUCCESS)

    @property
    def gas_cost_native(self) -> int:
        """Gas cost in wei."""
        return self.gas_estimate * self.gas_price

    @property
    def error_code(self) -> Optional[str]:
        """``SIMULATION_REVERTED`` when the simulated call reverted."""
        return None if self.simulation_success else SimulationReverted.code


# Output decoders by router function selector
_SWAP_OUTPUTS = {
    fn.selector: fn
    for fn in (
        V2_SWAP_EXACT_TOKENS_FOR_TOKENS,
        V2_SWAP_EXACT_ETH_FOR_TOKENS,
        V2_SWAP_EXACT_TOKENS_FOR_ETH,
        V3_EXACT_INPUT_SINGLE,
        V3_EXACT_INPUT,
    )
}


def decode_swap_output(calldata: bytes, output: bytes) -> Optional[int]:
    """Amount out returned by a router call, or None if it cannot be read.

    V2 routers return the amounts of every hop (the last is the output),
    V3 returns the output directly, multicall wraps the first call's result.
    """
    selector = calldata[:4]
    try:
        if selector == V3_MULTICALL.selector:
            inner_calls = V3_MULTICALL.decode_call(calldata)[0]
            results = V3_MULTICALL.decode_output(output)[0]
            if not inner_calls or not results:
                return None
            return decode_swap_output(inner_calls[0], results[0])

        fn = _SWAP_OUTPUTS.get(selector)
        if fn is None:
            return None
        (value,) = fn.decode_output(output)
    except (DecodingError, ValueError):
        return None

    if isinstance(value, (list, tuple)):
        return value[-1] if value else None
    return value


class SimulationExecutor:
    """Issues the built swap through the gateway and assembles the result.

    Args:
        gateway: Chain gateway used for eth_call, eth_estimateGas, eth_gasPrice
        sender: Address the call is simulated from
        default_gas_limit: Gas used when estimation reverts or fails
        fallback_gas_price: Gas price used when eth_gasPrice fails
    """

    def __init__(
        self,
        gateway: ChainGateway,
        sender: str,
        default_gas_limit: int = DEFAULT_GAS_LIMIT,
        fallback_gas_price: int = FALLBACK_GAS_PRICE_WEI,
    ):
        self.gateway = gateway
        self.sender = sender
        self.default_gas_limit = default_gas_limit
        self.fallback_gas_price = fallback_gas_price

    async def simulate_call(self, tx: TransactionPayload) -> tuple[bool, Optional[str], Optional[int]]:
        """Run the call. Returns (success, revert reason, decoded amount out)."""
        try:
            output = await self.gateway.call(tx.to, tx.data, tx.value, self.sender)
        except RevertError as e:
            logger.info(f"Simulation reverted: {e.reason}")
            return False, e.reason, None

        amount_out = decode_swap_output(tx.data, output)
        logger.debug(f"Simulation succeeded, router returned {amount_out}")
        return True, None, amount_out

    async def estimate_gas(self, tx: TransactionPayload) -> tuple[int, bool]:
        """Gas estimate, or the default limit when estimation fails."""
        try:
            return await self.gateway.estimate_gas(tx.to, tx.data, tx.value, self.sender), True
        except RpcError as e:
            logger.warning(
                f"Gas estimation failed ({e.message}), using default {self.default_gas_limit}"
            )
            return self.default_gas_limit, False

    async def gas_price(self) -> int:
        try:
            return await self.gateway.gas_price()
        except RpcError as e:
            logger.warning(
                f"Failed to get gas price ({e.message}), using {self.fallback_gas_price} wei"
            )
            return self.fallback_gas_price

    async def run(
        self,
        quote: Quote,
        from_token: TokenMetadata,
        to_token: TokenMetadata,
        amount_out_minimum: int,
        tx: TransactionPayload,
    ) -> SwapSimulationResult:
        """Simulate a built swap and assemble the final result.

        Quote-derived fields are always filled in; the simulation only
        decides ``simulation_success`` and ``simulation_error``.
        """
        success, error, simulated_out = await self.simulate_call(tx)
        logger.debug(f"[{SimulationState.SIMULATED.value}] success={success}")
        gas_estimate, gas_estimated = await self.estimate_gas(tx)
        gas_price = await self.gas_price()

        result = SwapSimulationResult(
            from_token=from_token,
            to_token=to_token,
            amount_in=quote.amount_in,
            amount_out_expected=quote.amount_out,
            amount_out_minimum=amount_out_minimum,
            price_impact=quote.price_impact(),
            gas_estimate=gas_estimate,
            gas_price=gas_price,
            route=quote.route,
            transaction=tx,
            simulation_success=success,
            simulation_error=error,
            simulated_amount_out=simulated_out,
            gas_estimated=gas_estimated,
            state=SimulationState.SUCCESS if success else SimulationState.REVERTED,
        )

        logger.info(
            f"Simulated {from_token.symbol}->{to_token.symbol} via {quote.route.protocol.value}: "
            f"success={success} gas={gas_estimate} gas_price={gas_price}"
            + (f" error={error}" if error else "")
        )
        return result
