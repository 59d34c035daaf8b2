# ward_planner/dependencies.py
import logging
from fastapi import Request

from .errors import StorageUnavailableError
from .tenants.service import TenantService

logger = logging.getLogger(__name__)


async def get_tenant_service(request: Request) -> TenantService:
    """
    Return the TenantService built during application startup.

    Raises StorageUnavailableError when the lifespan did not (or could not)
    wire the ward store, so clients see a transient outage instead of a crash.
    """
    service = getattr(request.app.state, "tenant_service", None)
    if service is None:
        logger.critical("TenantService is not configured on the application. Ward endpoints are unavailable.")
        raise StorageUnavailableError("Ward store is not initialized.")
    return service
