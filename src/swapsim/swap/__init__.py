"""Swap transaction building, simulation and orchestration."""

from swapsim.swap.builder import SwapTransactionBuilder, TransactionPayload
from swapsim.swap.engine import SwapEngine, validate_request
from swapsim.swap.simulator import (
    SimulationExecutor,
    SimulationState,
    SwapSimulationResult,
)

__all__ = [
    "SimulationExecutor",
    "SimulationState",
    "SwapEngine",
    "SwapSimulationResult",
    "SwapTransactionBuilder",
    "TransactionPayload",
    "validate_request",
]
