# ward_planner/sync/gateway.py
import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, Optional

import httpx

from ..errors import (
    ERRORS_BY_CODE,
    AuthenticationFailedError,
    StorageUnavailableError,
    TenantNotFoundError,
    ValidationFailedError,
    WardPlannerError,
)
from ..tenants.models import AuthenticationResult, TenantDocument

if TYPE_CHECKING:
    from ..tenants.service import TenantService

logger = logging.getLogger(__name__)


class AbstractWardGateway(ABC):
    """
    The three calls a client needs from the core: authenticate, fetch and
    persist. Failures are raised as WardPlannerError subclasses whichever
    transport is used.
    """

    @abstractmethod
    async def authenticate(self, passphrase: str) -> AuthenticationResult:
        pass

    @abstractmethod
    async def fetch_document(self, tenant_id: str) -> TenantDocument:
        pass

    @abstractmethod
    async def persist_document(self, tenant_id: str, document: TenantDocument) -> None:
        pass

    async def aclose(self) -> None:
        """Release transport resources. No-op by default."""


class ServiceWardGateway(AbstractWardGateway):
    """In-process gateway calling a TenantService directly."""

    def __init__(self, service: "TenantService"):
        self.service = service

    async def authenticate(self, passphrase: str) -> AuthenticationResult:
        return await self.service.authenticate(passphrase)

    async def fetch_document(self, tenant_id: str) -> TenantDocument:
        # Callers mutate what they get back; never hand out the store's instance
        document = await self.service.fetch_document(tenant_id)
        return document.snapshot()

    async def persist_document(self, tenant_id: str, document: TenantDocument) -> None:
        await self.service.persist_document(tenant_id, document.snapshot())


def _error_from_response(response: httpx.Response) -> WardPlannerError:
    """Rebuild the core's error from an HTTP error response."""
    detail = response.text
    code: Optional[str] = None
    try:
        body = response.json()
        if isinstance(body, dict):
            code = body.get("error")
            detail = str(body.get("detail", detail))
    except ValueError:
        pass

    error_cls = ERRORS_BY_CODE.get(code or "")
    if error_cls is not None:
        return error_cls(detail)
    if response.status_code == 401:
        return AuthenticationFailedError(detail)
    if response.status_code == 404:
        return TenantNotFoundError(detail)
    if response.status_code in (400, 422):
        return ValidationFailedError(detail)
    return StorageUnavailableError(f"Unexpected response {response.status_code}: {detail}")


class HttpWardGateway(AbstractWardGateway):
    """Gateway speaking the ward HTTP API with httpx."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self._owns_client = client is None

    async def _request(self, method: str, path: str, json_payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        logger.debug(f"HTTP {method} {path}")
        try:
            response = await self._client.request(method, path, json=json_payload)
        except httpx.HTTPError as e:
            logger.warning(f"HTTP {method} {path} failed: {e}")
            raise StorageUnavailableError(f"Could not reach the ward API: {e}") from e

        if response.status_code != 200:
            raise _error_from_response(response)
        return response.json()

    async def authenticate(self, passphrase: str) -> AuthenticationResult:
        body = await self._request("POST", "/api/login", {"password": passphrase})
        return AuthenticationResult.model_validate(body)

    async def fetch_document(self, tenant_id: str) -> TenantDocument:
        body = await self._request("GET", f"/api/ward/{tenant_id}")
        return TenantDocument.model_validate(body.get("data"))

    async def persist_document(self, tenant_id: str, document: TenantDocument) -> None:
        await self._request("POST", f"/api/ward/{tenant_id}", {"data": document.to_wire()})

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
