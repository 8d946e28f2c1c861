"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from blockhaven.config import get_settings
from blockhaven.exchange.engine import get_exchange_engine
from blockhaven.ledger.database import close_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    await init_db()
    engine = get_exchange_engine()
    logger.info(f"API ready (provider: {engine.provider.name})")
    yield
    # Shutdown
    await engine.close()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="BlockHaven Exchange API",
        description="Quote, rate lock and order lifecycle for the BlockHaven storefront",
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

    # Register routes
    from blockhaven.api.routes import health
    from blockhaven.web.controllers import (
        addresses_router,
        currencies_router,
        orders_router,
        quotes_router,
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(currencies_router, prefix="/api/v1")
    app.include_router(quotes_router, prefix="/api/v1")
    app.include_router(addresses_router, prefix="/api/v1")
    app.include_router(orders_router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
