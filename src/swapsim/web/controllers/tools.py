"""Tool endpoints.

``swap_tokens`` quotes and simulates a swap; ``get_balance`` and
``get_token_price`` are plain reads. None of them signs or broadcasts.
"""

from fastapi import APIRouter, Depends

from swapsim.web.contracts.balances import BalanceRequest, BalanceResponse
from swapsim.web.contracts.prices import TokenPriceRequest, TokenPriceResponse
from swapsim.web.contracts.swaps import ErrorResponse, SwapTokensRequest, SwapTokensResponse
from swapsim.web.services.tool_service import ToolService, get_tool_service

router = APIRouter(prefix="/tools", tags=["tools"])

_error_responses = {
    400: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    504: {"model": ErrorResponse},
}


@router.post("/swap_tokens", response_model=SwapTokensResponse, responses=_error_responses)
async def swap_tokens(
    request: SwapTokensRequest,
    service: ToolService = Depends(get_tool_service),
) -> SwapTokensResponse:
    """Simulate swapping ``amount`` of ``from_token`` into ``to_token``.

    Returns the best Uniswap V2/V3 route, expected and minimum output, price
    impact, gas estimate and the router call that was simulated. A reverted
    simulation is reported with ``simulation_success=false``, not as an
    error.
    """
    return await service.swap_tokens(request)


@router.post("/get_balance", response_model=BalanceResponse, responses=_error_responses)
async def get_balance(
    request: BalanceRequest,
    service: ToolService = Depends(get_tool_service),
) -> BalanceResponse:
    """Get the ETH or ERC20 balance of an address."""
    return await service.get_balance(request)


@router.post("/get_token_price", response_model=TokenPriceResponse, responses=_error_responses)
async def get_token_price(
    request: TokenPriceRequest,
    service: ToolService = Depends(get_tool_service),
) -> TokenPriceResponse:
    """Get the USD or ETH price of one token from Chainlink or Uniswap."""
    return await service.get_token_price(request)
