"""Factory for creating quote sources and the route selector from settings."""

import logging
from typing import Optional

from swapsim.chain.base import ChainGateway
from swapsim.config import Settings, get_settings
from swapsim.routing.base import QuoteSource
from swapsim.routing.selector import RouteSelector
from swapsim.routing.uniswap_v2 import UniswapV2Source
from swapsim.routing.uniswap_v3 import UniswapV3Source

logger = logging.getLogger(__name__)


def create_uniswap_v2_source(gateway: ChainGateway) -> QuoteSource:
    """Create the Uniswap V2 constant-product source."""
    return UniswapV2Source(gateway)


def create_uniswap_v3_source(
    gateway: ChainGateway,
    settings: Optional[Settings] = None,
) -> QuoteSource:
    """Create the Uniswap V3 source probing the configured fee tiers."""
    settings = settings or get_settings()
    return UniswapV3Source(gateway, fee_tiers=settings.v3_fee_tiers)


def create_route_selector(
    gateway: ChainGateway,
    settings: Optional[Settings] = None,
) -> RouteSelector:
    """Create a route selector over both Uniswap protocols.

    Args:
        gateway: Chain gateway shared by all sources
        settings: Settings override (defaults to environment settings)
    """
    settings = settings or get_settings()
    selector = RouteSelector(timeout=settings.quote_timeout_seconds)
    selector.add_source(create_uniswap_v3_source(gateway, settings))
    selector.add_source(create_uniswap_v2_source(gateway))

    logger.info(
        f"Created route selector with sources: {[s.name for s in selector.sources]} "
        f"(V3 fee tiers {settings.v3_fee_tiers}, deadline {settings.quote_timeout_seconds}s)"
    )
    return selector
