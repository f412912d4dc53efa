from __future__ import annotations

import asyncio
import logging

from ..config import Settings


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def _run_async_server(settings: Settings) -> None:
    """Serve the registration and signing-proxy API."""
    from ..api.server import create_app

    app = create_app(settings)

    import uvicorn

    logger = logging.getLogger(__name__)
    logger.info(f"Starting server on {settings.host}:{settings.port}")

    config = uvicorn.Config(app, host=settings.host, port=settings.port, log_level="info")
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Main entry point: read settings from the environment and serve."""
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    asyncio.run(_run_async_server(settings))
