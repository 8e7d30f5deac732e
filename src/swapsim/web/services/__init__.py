"""Services behind the tool endpoints."""

from swapsim.web.services.tool_service import ToolService, get_tool_service

__all__ = ["ToolService", "get_tool_service"]
