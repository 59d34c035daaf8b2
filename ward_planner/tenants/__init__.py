# ward_planner/tenants/__init__.py
"""
Ward (tenant) management.

Data model of a ward plan, storage abstraction with SQLite and Redis
backends, the service behind the network contract, and the HTTP endpoints.
"""

from .areas import AreaId, AreaConfig, AREA_CONFIGS, ExampleGoal
from .models import GoalItem, AreaRecord, TenantDocument, Tenant, TenantSeed, TenantSummary, AuthenticationResult
from .storage_interfaces import AbstractTenantStore

# Export the data model and the storage contract. Concrete stores, the
# service and the router are imported from their modules.
__all__ = [
    "AreaId",
    "AreaConfig",
    "AREA_CONFIGS",
    "ExampleGoal",
    "GoalItem",
    "AreaRecord",
    "TenantDocument",
    "Tenant",
    "TenantSeed",
    "TenantSummary",
    "AuthenticationResult",
    "AbstractTenantStore",
]
