"""Quote sources and route selection.

Sources:
- Uniswap V2: constant-product pools, priced locally from reserves
- Uniswap V3: concentrated-liquidity pools, priced by QuoterV2 per fee tier
"""

from swapsim.routing.base import (
    Protocol,
    Quote,
    QuoteFailure,
    QuoteSource,
    SwapRoute,
)
from swapsim.routing.factory import (
    create_route_selector,
    create_uniswap_v2_source,
    create_uniswap_v3_source,
)
from swapsim.routing.selector import RouteSelector, SelectionResult
from swapsim.routing.uniswap_v2 import UniswapV2Source, get_amount_out
from swapsim.routing.uniswap_v3 import UniswapV3Source

__all__ = [
    # Base classes
    "Protocol",
    "Quote",
    "QuoteFailure",
    "QuoteSource",
    "SwapRoute",
    # Selection
    "RouteSelector",
    "SelectionResult",
    # Sources
    "UniswapV2Source",
    "UniswapV3Source",
    "get_amount_out",
    # Factory functions
    "create_route_selector",
    "create_uniswap_v2_source",
    "create_uniswap_v3_source",
]
