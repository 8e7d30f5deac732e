"""API controllers for the tool endpoints."""

from swapsim.web.controllers.tools import router as tools_router

__all__ = ["tools_router"]
