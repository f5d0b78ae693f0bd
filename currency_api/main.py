import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import get_settings, Settings
from .core.logging import init_logging, request_context_middleware
from .core import errors
from .routers import currency, health
from .services.maintenance import maintenance_loop, refresh_catalog
from .services.registry import Services, build_services

logger = logging.getLogger("currency_api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    settings = services.settings
    snapshot = settings.catalog_snapshot_path

    if snapshot is not None:
        services.catalog.load_snapshot(snapshot)
    if settings.refresh_catalog_on_startup and services.catalog.is_stale(
        settings.catalog_refresh_hours
    ):
        await refresh_catalog(services.catalog, snapshot)

    task = asyncio.create_task(
        maintenance_loop(
            (services.rate_cache, services.country_cache),
            services.catalog,
            interval_seconds=settings.cache_cleanup_interval_minutes * 60,
            catalog_max_age_hours=settings.catalog_refresh_hours,
            snapshot_path=snapshot,
        )
    )
    logger.info("currency converter service started")
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        await services.aclose()
        logger.info("currency converter service stopped")


def create_app(
    settings_override: Settings | None = None,
    services_override: Services | None = None,
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment. Falls back to cached get_settings().
    services_override: prebuilt services (e.g. with fake upstream clients).
    """
    settings = settings_override or (
        services_override.settings if services_override else get_settings()
    )
    # Initialize logging early
    init_logging(debug=settings.debug)

    app = FastAPI(
        title=settings.app_name,
        debug=settings.debug,
        version=settings.version,
        lifespan=lifespan,
    )
    app.state.services = services_override or build_services(settings)

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(errors.ServiceError, errors.service_error_handler)
    app.add_exception_handler(StarletteHTTPException, errors.not_found_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(health.router)
    app.include_router(currency.router)

    @app.get("/")
    async def root():
        return {"message": settings.app_name, "version": settings.version}

    return app


app = create_app()
