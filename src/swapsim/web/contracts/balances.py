"""get_balance request/response contracts."""

from typing import Optional

from pydantic import BaseModel, Field

from swapsim.web.contracts.swaps import TokenInfo


class BalanceRequest(BaseModel):
    """Request for a wallet balance."""

    address: str = Field(..., description="Wallet address")
    token: Optional[str] = Field(None, description="Token symbol or address (ETH if omitted)")


class BalanceResponse(BaseModel):
    """Wallet balance of one token."""

    address: str
    token: TokenInfo
    balance: str = Field(..., description="Balance in token units")
    balance_raw: str = Field(..., description="Balance in smallest units")
