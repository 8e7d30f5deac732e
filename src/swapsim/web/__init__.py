"""Web boundary layer exposing the engine as tools.

This layer only reads chain state and simulates calls:
1. contracts/ - request and response models
2. services/ - maps requests onto the swap engine
3. controllers/ - FastAPI routers
"""

__all__ = [
    "contracts",
    "services",
    "controllers",
]
