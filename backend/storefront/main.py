"""
Poster Storefront API - Main Application Entry Point.

Takes payment confirmations, turns them into print orders, pushes them to
the fulfillment provider and follows them until they ship.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.core.config import settings
from storefront.core.database import close_db, init_db
from storefront.core.logging import configure_logging, get_logger
from storefront.dependencies import Services, build_services
from storefront.middleware import (
    ErrorHandlerMiddleware,
    RequestIdMiddleware,
    register_exception_handlers,
)
from storefront.routers import (
    admin_router,
    checkout_router,
    health_router,
    webhooks_router,
)

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Builds the capability container unless one was injected.
    """
    logger.info(
        "Starting application",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    owns_services = getattr(app.state, "services", None) is None
    if owns_services:
        app.state.services = build_services(settings)
        await init_db(app.state.services.engine)

    if settings.sentry_dsn:
        import sentry_sdk

        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            traces_sample_rate=0.1,
        )
        logger.info("Sentry initialized")

    yield

    logger.info("Shutting down application")
    if owns_services and app.state.services.engine is not None:
        await close_db(app.state.services.engine)


def create_app(services: Optional[Services] = None) -> FastAPI:
    """
    Application factory function.

    Tests pass a prebuilt `services` container with fake providers; in
    production it is built from settings at startup.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Poster storefront: checkout, payment webhooks and print fulfillment",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.services = services

    register_exception_handlers(app)

    # Add middleware (order matters - last added = outermost)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Request-ID",
        ],
    )

    app.include_router(health_router)
    app.include_router(webhooks_router, prefix="/api")
    app.include_router(checkout_router, prefix="/api")
    app.include_router(admin_router, prefix="/api")

    logger.info(
        "Application created",
        routes=len(app.routes),
        cors_origins=len(settings.allowed_origins),
    )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "storefront.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
