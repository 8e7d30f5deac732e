"""Swap engine: validate, resolve, quote, build, simulate.

Flow:
1. Validate amount and slippage (no network access)
2. Resolve both tokens concurrently
3. Convert the amount to raw units of the input token
4. Select the best route across Uniswap V2/V3 and direct/WETH paths
5. Apply slippage to get the minimum output
6. Build the router call and simulate it with eth_call
"""

import asyncio
import logging
from decimal import Decimal
from fractions import Fraction
from typing import Optional, Union

from swapsim.chain.base import ChainGateway
from swapsim.config import Settings, get_settings
from swapsim.errors import InvalidInput
from swapsim.routing.factory import create_route_selector
from swapsim.routing.selector import RouteSelector
from swapsim.swap.builder import SwapTransactionBuilder
from swapsim.swap.simulator import SimulationExecutor, SimulationState, SwapSimulationResult
from swapsim.tokens.registry import TokenRegistry
from swapsim.tokens.resolver import TokenMetadata, TokenMetadataResolver
from swapsim.tokens.units import minimum_output, to_fraction, to_raw

logger = logging.getLogger(__name__)


def validate_request(amount: Decimal, slippage: Union[Fraction, Decimal]) -> Fraction:
    """Check amount and slippage before anything touches the network.

    Returns:
        Slippage as an exact fraction in [0, 1)
    """
    if not isinstance(amount, Decimal) or not amount.is_finite():
        raise InvalidInput(f"Amount must be a finite decimal: {amount!r}", {"field": "amount"})
    if amount <= 0:
        raise InvalidInput(f"Amount must be positive: {amount}", {"field": "amount"})

    slippage = to_fraction(slippage)
    if not 0 <= slippage < 1:
        raise InvalidInput(
            f"Slippage tolerance must be in [0, 1), got {float(slippage)}",
            {"field": "slippage_tolerance"},
        )
    return slippage


def _log_state(state: SimulationState, message: str) -> None:
    logger.debug(f"[{state.value}] {message}")


def _consume_simulation_error(task: asyncio.Task) -> None:
    # Marks the exception retrieved when the caller was cancelled first
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug(f"Simulation task finished with {type(error).__name__}: {error}")


def _same_asset(a: TokenMetadata, b: TokenMetadata) -> bool:
    return a.routing_address.lower() == b.routing_address.lower()


class SwapEngine:
    """Orchestrates one swap simulation per call.

    Example:
        engine = SwapEngine(gateway, wallet_address)
        result = await engine.simulate_swap("ETH", "USDC", Decimal("1"), Fraction(1, 200))
    """

    def __init__(
        self,
        gateway: ChainGateway,
        wallet_address: str,
        resolver: Optional[TokenMetadataResolver] = None,
        selector: Optional[RouteSelector] = None,
        builder: Optional[SwapTransactionBuilder] = None,
        executor: Optional[SimulationExecutor] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        self.gateway = gateway
        self.wallet_address = wallet_address
        self.resolver = resolver or TokenMetadataResolver(gateway)
        self.selector = selector or create_route_selector(gateway, settings)
        self.builder = builder or SwapTransactionBuilder(settings.swap_deadline_seconds)
        self.executor = executor or SimulationExecutor(
            gateway,
            wallet_address,
            default_gas_limit=settings.default_gas_limit,
            fallback_gas_price=settings.fallback_gas_price_wei,
        )

    @classmethod
    def from_settings(cls, gateway: ChainGateway, settings: Optional[Settings] = None) -> "SwapEngine":
        """Create an engine wired from settings (resolver cache, token list)."""
        settings = settings or get_settings()
        registry = TokenRegistry(
            token_list_url=settings.token_list_url,
            chain_id=settings.ethereum_chain_id,
            ttl_seconds=settings.token_list_ttl_seconds,
        )
        resolver = TokenMetadataResolver(
            gateway, registry=registry, cache=settings.cache_token_metadata
        )
        return cls(gateway, settings.wallet_address, resolver=resolver, settings=settings)

    async def resolve_pair(
        self, from_token: str, to_token: str
    ) -> tuple[TokenMetadata, TokenMetadata]:
        """Resolve both identifiers concurrently and reject same-asset pairs."""
        if from_token.strip().lower() == to_token.strip().lower():
            raise InvalidInput("from_token and to_token must differ", {"token": from_token})
        for identifier in (from_token, to_token):
            self.resolver.check_identifier(identifier)

        token_in, token_out = await asyncio.gather(
            self.resolver.resolve(from_token),
            self.resolver.resolve(to_token),
        )

        if _same_asset(token_in, token_out):
            if token_in.is_native or token_out.is_native:
                raise InvalidInput(
                    "ETH and WETH convert 1:1 by wrapping, not by swapping",
                    {"from_token": token_in.symbol, "to_token": token_out.symbol},
                )
            raise InvalidInput(
                "from_token and to_token resolve to the same token",
                {"address": token_in.address},
            )
        return token_in, token_out

    async def simulate_swap(
        self,
        from_token: str,
        to_token: str,
        amount: Decimal,
        slippage: Union[Fraction, Decimal],
    ) -> SwapSimulationResult:
        """Quote and simulate swapping ``amount`` of ``from_token`` into ``to_token``.

        Args:
            from_token: Symbol or address of the input token ("ETH" for native)
            to_token: Symbol or address of the output token
            amount: Human-scale input amount
            slippage: Tolerance as a fraction in [0, 1) (0.005 = 0.5%)

        Returns:
            SwapSimulationResult, whether or not the simulated call reverted

        Raises:
            InvalidInput, TokenNotFound, QuoteUnavailable, RpcError, RpcTimeout
        """
        slippage = validate_request(amount, slippage)
        logger.info(f"Simulating swap: {amount} {from_token} -> {to_token} (slippage {float(slippage):.4%})")

        token_in, token_out = await self.resolve_pair(from_token, to_token)

        amount_in = to_raw(amount, token_in.decimals)
        if amount_in == 0:
            raise InvalidInput(
                f"Amount {amount} is below the smallest unit of {token_in.symbol}",
                {"decimals": token_in.decimals},
            )
        _log_state(SimulationState.VALIDATED, f"{amount_in} raw {token_in.symbol} -> {token_out.symbol}")

        selection = await self.selector.select_all(
            token_in.routing_address, token_out.routing_address, amount_in
        )
        _log_state(
            SimulationState.QUOTED,
            f"{len(selection.quotes)} quote(s), {len(selection.failures)} failure(s)",
        )
        quote = self.selector.choose(
            selection, token_in.routing_address, token_out.routing_address
        )
        _log_state(SimulationState.ROUTE_SELECTED, f"{quote.route.protocol.value} {quote.amount_out}")

        amount_out_minimum = minimum_output(quote.amount_out, slippage)
        tx = self.builder.build(
            route=quote.route,
            amount_in=amount_in,
            amount_out_minimum=amount_out_minimum,
            recipient=self.wallet_address,
            native_in=token_in.is_native,
            native_out=token_out.is_native,
        )
        _log_state(SimulationState.BUILT, f"to={tx.to} min_out={amount_out_minimum}")

        # A cancelled caller stops waiting; the read-only call runs to completion
        task = asyncio.ensure_future(
            self.executor.run(quote, token_in, token_out, amount_out_minimum, tx)
        )
        task.add_done_callback(_consume_simulation_error)
        return await asyncio.shield(task)
