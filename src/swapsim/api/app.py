"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from swapsim.config import get_settings
from swapsim.errors import (
    ConfigError,
    InsufficientLiquidity,
    InternalError,
    InvalidInput,
    QuoteUnavailable,
    RpcError,
    RpcTimeout,
    SwapSimError,
    TokenNotFound,
)
from swapsim.web.services.tool_service import close_tool_service

logger = logging.getLogger(__name__)

# Most specific class first
ERROR_STATUS: list[tuple[type[SwapSimError], int]] = [
    (InvalidInput, 400),
    (TokenNotFound, 400),
    (InsufficientLiquidity, 422),
    (QuoteUnavailable, 422),
    (RpcTimeout, 504),
    (RpcError, 502),
    (ConfigError, 503),
]


def status_for(error: SwapSimError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(error, error_type):
            return status
    return 500


async def swapsim_error_handler(request: Request, exc: SwapSimError) -> JSONResponse:
    status = status_for(exc)
    if status >= 500:
        logger.error(f"{request.url.path} failed: {exc}")
    else:
        logger.info(f"{request.url.path} rejected: {exc}")
    return JSONResponse(status_code=status, content={"error": exc.to_dict()})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidInput("Malformed request", {"errors": jsonable_errors(exc)})
    return JSONResponse(status_code=400, content={"error": error.to_dict()})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.url.path}")
    error = InternalError(f"Internal error: {type(exc).__name__}")
    return JSONResponse(status_code=500, content={"error": error.to_dict()})


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    yield
    # Shutdown
    await close_tool_service()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="swapsim API",
        description="Uniswap swap quoting and eth_call simulation tools",
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.debug,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.debug else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SwapSimError, swapsim_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Register routes
    from swapsim.api.routes import health
    from swapsim.web.controllers import tools_router

    app.include_router(health.router, tags=["Health"])
    app.include_router(tools_router)

    return app
