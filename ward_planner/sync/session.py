# ward_planner/sync/session.py
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..tenants.models import TenantDocument


class SessionStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    LOADING = "loading"
    READY = "ready"
    SAVING = "saving"


class TenantSession(BaseModel):
    """
    The active ward of one client.

    Created when a passphrase is accepted and discarded on logout. The
    document held here is the authoritative copy for rendering.
    """

    tenant_id: str = Field(description="Id of the authenticated ward.")
    tenant_name: str = Field(description="Display name of the authenticated ward.")
    document: TenantDocument = Field(default_factory=TenantDocument)

    # Last known persistence outcome, drives the connectivity indicator
    is_online: bool = True
    last_error: Optional[str] = None

    # Set when the initial fetch failed and the plan shown is an empty fallback
    loaded_from_fallback: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_saved_at: Optional[datetime] = None

    def mark_saved(self) -> None:
        self.is_online = True
        self.last_error = None
        self.last_saved_at = datetime.now(timezone.utc)

    def mark_offline(self, error: str) -> None:
        self.is_online = False
        self.last_error = error
