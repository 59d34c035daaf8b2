# ward_planner/tenants/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from .models import Tenant, TenantDocument, TenantSeed


class AbstractTenantStore(ABC):
    """
    Abstract base class defining the interface for ward storage operations.

    Backends are mutually exclusive alternatives (a SQL table or a Redis
    document store). Every backend reports infrastructure failures as
    StorageUnavailableError and a missing ward as None/False, so callers can
    always tell the two apart.
    """

    @abstractmethod
    async def initialize(self, seeds: Optional[Iterable[TenantSeed]] = None) -> None:
        """
        Ensure the storage schema exists and seed it when no ward is stored yet.

        Idempotent. Seeding never overwrites a ward that already exists, so two
        concurrent calls on a cold start leave exactly one row per seed.

        Args:
            seeds: Wards to provision. Defaults to the configured seed list.
        """
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Clean up resources and properly close the storage backend."""
        pass

    @abstractmethod
    async def find_by_passphrase(self, candidate: str) -> Optional[Tenant]:
        """
        Look up a ward by exact, case-sensitive passphrase equality.

        Returns:
            The matching ward, or None
        """
        pass

    @abstractmethod
    async def find_by_id(self, tenant_id: str) -> Optional[Tenant]:
        """Retrieve a ward by id, or None if it does not exist."""
        pass

    @abstractmethod
    async def replace_document(self, tenant_id: str, document: TenantDocument) -> bool:
        """
        Overwrite the stored plan of a ward. Last write wins: no merge and no
        version check.

        Returns:
            True if the ward exists and was written, False if it does not exist
        """
        pass

    @abstractmethod
    async def list_tenants(self) -> List[Tenant]:
        """Retrieve every ward ordered by id."""
        pass

    # Whether replace_document itself broadcasts changes to subscribers
    publishes_changes: bool = False
