# ward_planner/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
from typing import Optional
from dotenv import load_dotenv
load_dotenv()

from .settings import settings, SUPPORTED_STORAGE_BACKENDS
from .errors import WardPlannerError, ValidationFailedError
from .storage.sqlite_base import close_sqlite_db_connection
from .tenants.storage_interfaces import AbstractTenantStore
from .tenants.sqlite_tenant_store import SQLiteTenantStore
from .tenants.redis_tenant_store import RedisTenantStore
from .tenants.service import TenantService
from .tenants.endpoints import wards_router
from .sync.notifications import AbstractChangeChannel, LocalChangeChannel, RedisChangeChannel

# Configure logging based on debug mode setting
if not logging.getLogger().hasHandlers():
    logging.basicConfig(
        level=settings.effective_log_level(),
        format='%(asctime)s - %(name)s [%(levelname)s] - %(message)s'
    )

logger = logging.getLogger(__name__)
logger.setLevel(settings.effective_log_level())


def build_tenant_store(backend: Optional[str] = None) -> AbstractTenantStore:
    """Create the ward store for the configured backend."""
    backend = backend or settings.storage_backend
    if backend == "sqlite":
        return SQLiteTenantStore()
    if backend == "redis":
        return RedisTenantStore()
    raise ValueError(
        f"Unsupported storage_backend: {backend}. Expected one of {', '.join(SUPPORTED_STORAGE_BACKENDS)}."
    )


def build_change_channel(backend: Optional[str] = None) -> AbstractChangeChannel:
    """In-process fan-out next to SQLite, Redis pub/sub next to the Redis store."""
    backend = backend or settings.storage_backend
    if backend == "redis":
        return RedisChangeChannel()
    return LocalChangeChannel()


def create_app(
    tenant_store: Optional[AbstractTenantStore] = None,
    change_channel: Optional[AbstractChangeChannel] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Stores and channels passed in are used as-is (tests inject private
    ones); otherwise they are built from settings at startup.
    """

    @asynccontextmanager
    async def ward_planner_lifespan(app_instance: FastAPI):
        """
        Initialize the ward store (schema + seed) and the change channel on
        startup, tear them down in reverse order on shutdown.
        """
        logger.info("Application startup initiated.")
        store = tenant_store or build_tenant_store()
        channel = change_channel or build_change_channel()
        initialized = []

        try:
            await store.initialize()
            initialized.append(store)
            logger.info(f"Ward store initialized ({type(store).__name__}).")
            await channel.initialize()
            initialized.append(channel)
            logger.info(f"Change channel initialized ({type(channel).__name__}).")
        except Exception as e:
            logger.error(f"Error during storage backend initialization: {e}", exc_info=True)
            raise

        app_instance.state.tenant_store = store
        app_instance.state.change_channel = channel
        app_instance.state.tenant_service = TenantService(store, channel)

        yield

        # Cleanup phase - ensure all resources are properly released
        logger.info("Application shutdown initiated.")
        app_instance.state.tenant_service = None
        for component in reversed(initialized):
            try:
                await component.teardown()
            except Exception as e_td:
                logger.error(f"Teardown error: {e_td}", exc_info=True)
        if tenant_store is None and isinstance(store, SQLiteTenantStore):
            close_sqlite_db_connection()
        logger.info("All components torn down.")

    app_instance = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=ward_planner_lifespan,
    )
    app_instance.include_router(wards_router)

    @app_instance.exception_handler(WardPlannerError)
    async def ward_planner_error_handler(request: Request, exc: WardPlannerError):
        if exc.status_code >= 500:
            logger.error(f"API: {request.method} {request.url.path} failed: {exc.detail}")
        else:
            logger.info(f"API: {request.method} {request.url.path} -> {exc.status_code} {exc.error_code}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response_body())

    @app_instance.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        error = ValidationFailedError(f"Malformed request: {exc.errors()}")
        logger.warning(f"API: {request.method} {request.url.path} rejected: {error.detail}")
        return JSONResponse(status_code=error.status_code, content=error.to_response_body())

    @app_instance.get("/")
    async def root() -> dict:
        return {
            "status": "ok",
            "docs": "/docs",
            "health": "/health",
            "api": {
                "login": "/api/login",
                "wards": "/api/wards",
                "ward": "/api/ward/{id}",
            },
        }

    @app_instance.get("/health")
    async def health() -> dict:
        return {"status": "ok", "storage_backend": settings.storage_backend}

    return app_instance


app = create_app()
