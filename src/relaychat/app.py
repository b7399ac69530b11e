"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI

from relaychat import __version__
from relaychat.api.chat import router as chat_router
from relaychat.api.exceptions import register_exception_handlers
from relaychat.configs.config import get_app_config
from relaychat.core.metrics import instrument_app
from relaychat.core.provider import build_http_client
from relaychat.infra.logging import setup_logging
from relaychat.infra.telemetry import init_telemetry

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Own the pooled upstream HTTP client for the process lifetime."""
    config = get_app_config()
    app.state.http_client = build_http_client(config.upstream)
    logger.info("Relay started (upstream=%s).", config.upstream.base_url)

    yield

    await app.state.http_client.aclose()
    logger.info("Relay stopped.")


async def health() -> dict[str, str]:
    """Liveness probe."""
    return {"status": "ok"}


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_app_config()
    setup_logging(config.logging)

    app = FastAPI(
        title="relaychat",
        description="Streaming chat relay for OpenAI-compatible providers",
        version=__version__,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    app.include_router(chat_router)
    app.add_api_route("/health", health, methods=["GET"], tags=["health"])

    instrument_app(app, config.metrics, config.tracing)
    init_telemetry(app, config.tracing)

    return app


app = get_app()


def main() -> None:
    """Run the relay with uvicorn using the configured bind address."""
    config = get_app_config()
    uvicorn.run(app, host=config.server.host, port=config.server.port, log_config=None)


if __name__ == "__main__":
    main()
