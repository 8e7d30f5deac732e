"""swap_tokens request/response contracts.

Amounts are human-readable decimal strings in token units. Raw integers
(wei, gas) are decimal strings so no client loses precision.
"""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field


class SwapTokensRequest(BaseModel):
    """Request to simulate a swap."""

    from_token: str = Field(..., description="Input token symbol or address (ETH for native)")
    to_token: str = Field(..., description="Output token symbol or address")
    amount: str = Field(..., description="Amount of from_token, as a decimal string")
    slippage_tolerance: Optional[Decimal] = Field(
        default=None,
        description="Slippage tolerance in percent (0.5 = 0.5%); server default if omitted",
    )


class TokenInfo(BaseModel):
    """Resolved token."""

    address: Optional[str] = Field(None, description="Contract address (absent for ETH)")
    symbol: str = Field(..., description="Token symbol")
    decimals: int = Field(..., description="Token decimals")


class RouteInfo(BaseModel):
    """Selected route."""

    protocol: str = Field(..., description="uniswap_v2 or uniswap_v3")
    path: list[str] = Field(..., description="Token addresses from input to output")
    fee_tier: Optional[Union[int, list[int]]] = Field(
        None, description="V3 fee tier (list for multi-hop, null for V2)"
    )


class TransactionInfo(BaseModel):
    """Unsigned router call that was simulated."""

    to: str = Field(..., description="Router address")
    data: str = Field(..., description="Calldata (hex)")
    value: str = Field(..., description="Native value in wei")


class SwapTokensResponse(BaseModel):
    """Result of a swap simulation."""

    from_token: TokenInfo
    to_token: TokenInfo
    amount_in: str = Field(..., description="Input amount")
    amount_out_expected: str = Field(..., description="Quoted output amount")
    amount_out_minimum: str = Field(..., description="Minimum output after slippage")
    price_impact: str = Field(..., description="Price impact in percent")
    gas_estimate: str = Field(..., description="Gas units")
    gas_price: str = Field(..., description="Gas price in wei")
    gas_cost_native: str = Field(..., description="Gas cost in ETH")
    route: RouteInfo
    transaction: TransactionInfo
    simulation_success: bool = Field(..., description="Whether the simulated call succeeded")
    simulation_error: Optional[str] = Field(None, description="Revert reason if it did not")


class ErrorBody(BaseModel):
    """Machine-readable error."""

    code: str
    message: str
    details: dict = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Fatal error envelope."""

    error: ErrorBody
