# ward_planner/tenants/endpoints.py
import logging
from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel
from typing import Any, Dict, List, Optional, Annotated

from .models import TenantDocument, TenantSummary
from .service import TenantService
from ..dependencies import get_tenant_service

logger = logging.getLogger(__name__)

# Ward API consumed by the presentation layer and the sync gateway
wards_router = APIRouter(prefix="/api", tags=["Wards"])


class LoginRequest(BaseModel):
    password: Optional[str] = None


class WardDataRequest(BaseModel):
    data: Optional[TenantDocument] = None


@wards_router.post("/login")
async def login_endpoint(
    login_request: LoginRequest,
    service: Annotated[TenantService, Depends(get_tenant_service)]
) -> Dict[str, Any]:
    """Authenticate a ward by passphrase. Returns 401 when nothing matches."""
    result = await service.authenticate(login_request.password)
    return result.to_wire()


@wards_router.get("/wards", response_model=List[TenantSummary])
async def list_wards_endpoint(
    service: Annotated[TenantService, Depends(get_tenant_service)]
):
    """List ward ids and display names. Passphrases are never exposed."""
    return await service.list_tenants()


@wards_router.get("/ward/{ward_id}")
async def get_ward_endpoint(
    ward_id: Annotated[str, Path(description="The id of the ward to retrieve")],
    service: Annotated[TenantService, Depends(get_tenant_service)]
) -> Dict[str, Any]:
    """Retrieve a ward's display name and plan. Returns 404 if the ward does not exist."""
    tenant = await service.get_tenant(ward_id)
    return {"id": tenant.id, "name": tenant.name, "data": tenant.data.to_wire()}


@wards_router.post("/ward/{ward_id}")
async def update_ward_endpoint(
    ward_id: Annotated[str, Path(description="The id of the ward to update")],
    ward_data: WardDataRequest,
    service: Annotated[TenantService, Depends(get_tenant_service)]
) -> Dict[str, Any]:
    """Replace a ward's whole plan (last write wins). Returns 400 without `data`, 404 for an unknown ward."""
    await service.persist_document(ward_id, ward_data.data)
    return {"success": True}
