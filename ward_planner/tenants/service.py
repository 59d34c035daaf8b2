# ward_planner/tenants/service.py
import logging
from typing import List, Optional

from .models import AuthenticationResult, Tenant, TenantDocument, TenantSummary
from .storage_interfaces import AbstractTenantStore
from ..errors import AuthenticationFailedError, TenantNotFoundError, ValidationFailedError
from ..sync.notifications import AbstractChangeChannel, NullChangeChannel

logger = logging.getLogger(__name__)


class TenantService:
    """
    Service layer behind the network-facing contract.

    Turns store results into the error taxonomy (AuthenticationFailed,
    NotFound, StorageUnavailable, ValidationFailed) and announces persisted
    plans on the change channel.
    """

    def __init__(self, tenant_store: AbstractTenantStore, change_channel: Optional[AbstractChangeChannel] = None):
        """Initialize the service with a ward store and an optional change channel."""
        self.tenant_store = tenant_store
        self.change_channel = change_channel or NullChangeChannel()

    async def authenticate(self, passphrase: Optional[str]) -> AuthenticationResult:
        """
        Identify a ward by its shared passphrase.

        Matching is exact string equality. Storage failures propagate as
        StorageUnavailableError, distinct from a wrong passphrase.
        """
        if not passphrase:
            raise ValidationFailedError("Password is required.")

        tenant = await self.tenant_store.find_by_passphrase(passphrase)
        if tenant is None:
            logger.info("Service: Authentication failed, no ward matches the submitted passphrase.")
            raise AuthenticationFailedError()

        logger.info(f"Service: Ward '{tenant.id}' authenticated.")
        return AuthenticationResult(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            document=tenant.data,
        )

    async def get_tenant(self, tenant_id: str) -> Tenant:
        """Load a ward's name and plan in one store read."""
        tenant = await self.tenant_store.find_by_id(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Ward '{tenant_id}' not found.")
        return tenant

    async def fetch_document(self, tenant_id: str) -> TenantDocument:
        """Return the stored plan of a ward."""
        logger.debug(f"Service: Fetching plan for ward '{tenant_id}'.")
        tenant = await self.get_tenant(tenant_id)
        return tenant.data

    async def persist_document(self, tenant_id: str, document: Optional[TenantDocument]) -> None:
        """
        Replace the stored plan of a ward (last write wins).

        A backend that does not publish by itself gets the change announced
        here once the write succeeded.
        """
        if document is None:
            raise ValidationFailedError("Data is required.")

        logger.info(f"Service: Persisting plan for ward '{tenant_id}'.")
        written = await self.tenant_store.replace_document(tenant_id, document)
        if not written:
            raise TenantNotFoundError(f"Ward '{tenant_id}' not found.")

        if not self.tenant_store.publishes_changes:
            try:
                await self.change_channel.publish(tenant_id, document)
            except Exception as e:
                # Write already succeeded; subscribers see it on their next fetch
                logger.error(f"Service: Failed to announce plan change for ward '{tenant_id}': {e}", exc_info=True)

    async def list_tenants(self) -> List[TenantSummary]:
        tenants = await self.tenant_store.list_tenants()
        return [tenant.summary() for tenant in tenants]
