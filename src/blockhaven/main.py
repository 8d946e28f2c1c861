"""Process entry point: serves the storefront API under uvicorn."""

import asyncio
import logging
import signal
from typing import Optional

import uvicorn

from blockhaven.api.app import create_app
from blockhaven.config import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every provider request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


class Application:
    """Runs the API server until it exits or a shutdown signal arrives."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.server: Optional[uvicorn.Server] = None

    def build_server(self) -> uvicorn.Server:
        config = uvicorn.Config(
            create_app(),
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )
        return uvicorn.Server(config)

    async def start(self) -> None:
        logger.info(
            f"Starting BlockHaven ({self.settings.environment}) with provider "
            f"{self.settings.provider} on {self.settings.api_host}:{self.settings.api_port}"
        )
        self.server = self.build_server()
        try:
            # Engine and database shutdown run in the app lifespan
            await self.server.serve()
        except Exception as e:
            logger.error(f"API server stopped with error: {e}")
            raise
        logger.info("Shutdown complete")

    def shutdown(self) -> None:
        logger.info("Shutdown requested")
        if self.server is not None:
            self.server.should_exit = True


def main():
    settings = get_settings()
    configure_logging(settings)
    app = Application(settings)

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
