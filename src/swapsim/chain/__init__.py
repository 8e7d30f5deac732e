"""Chain state gateway (read-only JSON-RPC access)."""

from swapsim.chain.base import ChainGateway
from swapsim.chain.jsonrpc import JsonRpcGateway

__all__ = [
    "ChainGateway",
    "JsonRpcGateway",
]
