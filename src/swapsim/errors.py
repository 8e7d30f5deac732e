"""Typed errors with machine-readable codes.

Fatal errors abort a request and surface as ``{"error": {"code", "message",
"details"}}`` at the transport edge. Per-route quoting errors are collected
as values by the route selector and only become fatal in aggregate.
"""

from typing import Any, Optional


class SwapSimError(Exception):
    """Base exception for swapsim."""

    code = "INTERNAL"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class InvalidInput(SwapSimError):
    """Malformed amount, slippage, address or token pair."""

    code = "INVALID_INPUT"


class TokenNotFound(SwapSimError):
    """Identifier is neither a known symbol nor a usable token address."""

    code = "TOKEN_NOT_FOUND"


class InsufficientLiquidity(SwapSimError):
    """A pool needed by a route is missing, empty, or quotes zero output."""

    code = "INSUFFICIENT_LIQUIDITY"


class QuoteUnavailable(SwapSimError):
    """Every attempted protocol/path combination failed."""

    code = "QUOTE_UNAVAILABLE"


class RpcError(SwapSimError):
    """The chain gateway could not complete a request."""

    code = "RPC_ERROR"


class RpcTimeout(RpcError):
    """A chain request or the quoting deadline timed out."""

    code = "RPC_TIMEOUT"


class RevertError(RpcError):
    """A non-committing call or gas estimate reverted."""

    code = "EXECUTION_REVERTED"

    def __init__(self, reason: str, data: Optional[str] = None):
        super().__init__(reason, {"data": data} if data else None)
        self.reason = reason
        self.data = data


class SimulationReverted(SwapSimError):
    """Code carried by a successful response whose simulation reverted.

    Never raised by the engine: a reverted simulation is a normal result.
    """

    code = "SIMULATION_REVERTED"


class PriceOracleError(SwapSimError):
    """A Chainlink answer is stale, incomplete or not positive."""

    code = "PRICE_ORACLE_ERROR"


class ConfigError(SwapSimError):
    """Configuration does not match the connected chain."""

    code = "CONFIG_ERROR"


class InternalError(SwapSimError):
    """Unexpected failure."""

    code = "INTERNAL"
