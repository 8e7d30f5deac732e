"""Tool service: maps transport requests onto the swap engine.

SECURITY: nothing here signs or broadcasts. Every chain interaction is a
read or an ``eth_call`` simulation.
"""

import logging
from decimal import Decimal
from typing import Optional

from swapsim.chain.base import ChainGateway
from swapsim.chain.jsonrpc import JsonRpcGateway
from swapsim.config import Settings, get_settings
from swapsim.errors import ConfigError, InvalidInput
from swapsim.services.balance import BalanceService
from swapsim.routing.uniswap_v3 import UniswapV3Source
from swapsim.services.price import PriceService
from swapsim.swap.engine import SwapEngine
from swapsim.swap.simulator import SwapSimulationResult
from swapsim.tokens.units import (
    format_percent,
    format_units,
    parse_decimal,
    percent_to_fraction,
)
from swapsim.web.contracts.balances import BalanceRequest, BalanceResponse
from swapsim.web.contracts.prices import TokenPriceRequest, TokenPriceResponse
from swapsim.web.contracts.swaps import (
    RouteInfo,
    SwapTokensRequest,
    SwapTokensResponse,
    TokenInfo,
    TransactionInfo,
)

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


def parse_amount(text: str) -> Decimal:
    """Parse a positive decimal amount string."""
    amount = parse_decimal(text)
    if amount <= 0:
        raise InvalidInput(f"Amount must be positive: {text}", {"field": "amount"})
    return amount


def to_response(result: SwapSimulationResult) -> SwapTokensResponse:
    """Render an engine result in the transport shape."""
    return SwapTokensResponse(
        from_token=TokenInfo(**result.from_token.to_dict()),
        to_token=TokenInfo(**result.to_token.to_dict()),
        amount_in=format_units(result.amount_in, result.from_token.decimals),
        amount_out_expected=format_units(result.amount_out_expected, result.to_token.decimals),
        amount_out_minimum=format_units(result.amount_out_minimum, result.to_token.decimals),
        price_impact=format_percent(result.price_impact),
        gas_estimate=str(result.gas_estimate),
        gas_price=str(result.gas_price),
        gas_cost_native=format_units(result.gas_cost_native, NATIVE_DECIMALS),
        route=RouteInfo(**result.route.to_dict()),
        transaction=TransactionInfo(**result.transaction.to_dict()),
        simulation_success=result.simulation_success,
        simulation_error=result.simulation_error,
    )


class ToolService:
    """Owns the gateway and engine behind the tool endpoints.

    Built lazily from settings; pass a gateway or engine to override.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        gateway: Optional[ChainGateway] = None,
        engine: Optional[SwapEngine] = None,
    ):
        self.settings = settings or get_settings()
        self._gateway = gateway
        self._engine = engine
        self._balances: Optional[BalanceService] = None
        self._prices: Optional[PriceService] = None

    @property
    def gateway(self) -> ChainGateway:
        if self._gateway is None:
            self._gateway = JsonRpcGateway(
                self.settings.ethereum_rpc_url, timeout=self.settings.rpc_timeout_seconds
            )
        return self._gateway

    @property
    def engine(self) -> SwapEngine:
        if self._engine is None:
            self._engine = SwapEngine.from_settings(self.gateway, self.settings)
        return self._engine

    @property
    def balances(self) -> BalanceService:
        if self._balances is None:
            self._balances = BalanceService(self.gateway, self.engine.resolver)
        return self._balances

    @property
    def prices(self) -> PriceService:
        if self._prices is None:
            self._prices = PriceService(
                self.gateway,
                self.engine.resolver,
                v3=UniswapV3Source(self.gateway, fee_tiers=self.settings.v3_fee_tiers),
            )
        return self._prices

    async def swap_tokens(self, request: SwapTokensRequest) -> SwapTokensResponse:
        """Simulate a swap described by a transport request."""
        amount = parse_amount(request.amount)
        percent = request.slippage_tolerance
        if percent is None:
            percent = Decimal(str(self.settings.default_slippage_percent))
        slippage = percent_to_fraction(percent)

        result = await self.engine.simulate_swap(
            request.from_token, request.to_token, amount, slippage
        )
        return to_response(result)

    async def get_balance(self, request: BalanceRequest) -> BalanceResponse:
        """Read a native or ERC20 balance."""
        info = await self.balances.get_balance(request.address, request.token)
        return BalanceResponse(**info.to_dict())

    async def get_token_price(self, request: TokenPriceRequest) -> TokenPriceResponse:
        """Price one whole token in USD or ETH."""
        info = await self.prices.get_price(request.token, request.quote_currency)
        return TokenPriceResponse(**info.to_dict())

    async def check_ready(self) -> dict:
        """Verify the RPC endpoint answers and serves the configured chain."""
        chain_id = await self.gateway.chain_id()
        if chain_id != self.settings.ethereum_chain_id:
            raise ConfigError(
                f"RPC endpoint serves chain {chain_id}, expected {self.settings.ethereum_chain_id}",
                {"chain_id": chain_id, "expected": self.settings.ethereum_chain_id},
            )
        return {"chain_id": chain_id}

    async def close(self) -> None:
        if self._gateway is not None:
            await self._gateway.close()


_tool_service: Optional[ToolService] = None


def get_tool_service() -> ToolService:
    """FastAPI dependency returning the process-wide tool service."""
    global _tool_service
    if _tool_service is None:
        _tool_service = ToolService()
    return _tool_service


async def close_tool_service() -> None:
    global _tool_service
    if _tool_service is not None:
        await _tool_service.close()
        _tool_service = None
