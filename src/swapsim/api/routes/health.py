"""Health check endpoints."""

from fastapi import APIRouter, Depends

from swapsim.config import get_settings
from swapsim.web.services.tool_service import ToolService, get_tool_service

router = APIRouter()


@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "swapsim"}


@router.get("/health/detailed")
async def detailed_health():
    """Detailed health check with configuration info."""
    settings = get_settings()
    return {
        "status": "healthy",
        "service": "swapsim",
        "version": "0.1.0",
        "config": settings.get_safe_dict(),
    }


@router.get("/health/ready")
async def readiness(service: ToolService = Depends(get_tool_service)):
    """Readiness check: the RPC endpoint answers with the expected chain id."""
    chain = await service.check_ready()
    return {"status": "ready", "service": "swapsim", **chain}
