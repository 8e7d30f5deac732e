"""Main entry point - runs the tool API."""

import asyncio
import logging
import signal

import uvicorn

from swapsim.api.app import create_app
from swapsim.config import get_settings
from swapsim.errors import ConfigError, RpcError
from swapsim.web.services.tool_service import close_tool_service, get_tool_service

logger = logging.getLogger(__name__)


class Application:
    """Runs the API server until a shutdown signal arrives."""

    def __init__(self):
        self.settings = get_settings()
        self._shutdown_event = asyncio.Event()

    def configure_logging(self) -> None:
        log_level = logging.DEBUG if self.settings.debug else self.settings.log_level.upper()
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )
        # Per-request httpx logs drown out the quoting logs
        logging.getLogger("httpx").setLevel(logging.WARNING)

    async def start(self):
        """Start all services."""
        self.configure_logging()

        logger.info("Starting swapsim...")
        logger.info(f"Environment: {self.settings.environment}")
        logger.info(f"Configuration: {self.settings.get_safe_dict()}")
        if not self.settings.has_wallet:
            logger.warning("WALLET_ADDRESS not set - simulating from the zero address")

        # Check the RPC endpoint BEFORE serving requests
        await self._check_chain()

        api_task = asyncio.create_task(self._run_api())
        shutdown_task = asyncio.create_task(self._shutdown_event.wait())

        await asyncio.wait({api_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED)

        for task in (api_task, shutdown_task):
            task.cancel()
        await asyncio.gather(api_task, shutdown_task, return_exceptions=True)

        await self._cleanup()

    async def _check_chain(self):
        """Log whether the RPC endpoint serves the configured chain."""
        try:
            chain = await get_tool_service().check_ready()
        except ConfigError as e:
            logger.error(f"Chain mismatch: {e.message}")
        except RpcError as e:
            logger.warning(f"RPC endpoint not reachable at startup: {e.message}")
        else:
            logger.info(f"Connected to chain {chain['chain_id']}")

    async def _run_api(self):
        """Run the FastAPI server."""
        try:
            app = create_app()
            config = uvicorn.Config(
                app,
                host=self.settings.api_host,
                port=self.settings.api_port,
                log_level="debug" if self.settings.debug else "info",
            )
            server = uvicorn.Server(config)
            logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
            await server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")
        except Exception as e:
            logger.error(f"API error: {e}")
            raise

    async def _cleanup(self):
        """Cleanup resources."""
        logger.info("Cleaning up...")
        await close_tool_service()
        logger.info("Cleanup complete")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()


def main():
    """Main entry point."""
    app = Application()

    # Setup signal handlers
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
