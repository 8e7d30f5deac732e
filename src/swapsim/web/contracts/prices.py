"""get_token_price request/response contracts."""

from typing import Optional

from pydantic import BaseModel, Field

from swapsim.web.contracts.swaps import TokenInfo


class TokenPriceRequest(BaseModel):
    """Request for a token price."""

    token: str = Field(..., description="Token symbol or address (e.g. WETH, UNI, 0x...)")
    quote_currency: Optional[str] = Field(None, description="USD or ETH (USD if omitted)")


class TokenPriceResponse(BaseModel):
    """Price of one whole token."""

    token: TokenInfo
    price: str = Field(..., description="Price of 1 token in the quote currency")
    quote_currency: str
    source: str = Field(..., description="chainlink, uniswap_v2 or uniswap_v3")
    timestamp: int = Field(..., description="Unix time the price was read")
