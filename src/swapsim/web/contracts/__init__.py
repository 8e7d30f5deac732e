"""Pydantic contracts for the tool endpoints."""

from swapsim.web.contracts.balances import BalanceRequest, BalanceResponse
from swapsim.web.contracts.swaps import (
    ErrorResponse,
    RouteInfo,
    SwapTokensRequest,
    SwapTokensResponse,
    TokenInfo,
    TransactionInfo,
)

__all__ = [
    "BalanceRequest",
    "BalanceResponse",
    "ErrorResponse",
    "RouteInfo",
    "SwapTokensRequest",
    "SwapTokensResponse",
    "TokenInfo",
    "TransactionInfo",
]
