# ward_planner/tenants/models.py
import threading
import time
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from .areas import AREA_CONFIGS, AreaId

_id_lock = threading.Lock()
_last_item_id = 0


def generate_item_id() -> str:
    """
    Generate a goal item id from the current time in milliseconds.

    Ids are strictly increasing within the process: two calls in the same
    millisecond get consecutive values instead of colliding.
    """
    global _last_item_id
    with _id_lock:
        candidate = int(time.time() * 1000)
        if candidate <= _last_item_id:
            candidate = _last_item_id + 1
        _last_item_id = candidate
        return str(candidate)


class GoalItem(BaseModel):
    """A single completable goal within an area."""
    id: str = Field(default_factory=generate_item_id)
    what: str = ""
    how: str = Field(default="", description="Free text or checklist markup ('[x] ' / '[ ] ' lines).")
    when: str = Field(default="", description="Human readable date, not normalized.")
    is_completed: bool = Field(default=False, alias="isCompleted")

    class Config:
        populate_by_name = True
        validate_assignment = True


# Fields a client may change through an update edit
EDITABLE_ITEM_FIELDS = {"what", "how", "when", "is_completed"}
_WIRE_FIELD_NAMES = {"isCompleted": "is_completed"}


def normalize_item_patch(patch: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map wire field names onto GoalItem attributes.

    Raises:
        ValueError: If the patch names a field that cannot be edited.
    """
    normalized: Dict[str, Any] = {}
    for key, value in patch.items():
        attr = _WIRE_FIELD_NAMES.get(key, key)
        if attr not in EDITABLE_ITEM_FIELDS:
            raise ValueError(f"Field '{key}' cannot be edited on a goal item.")
        normalized[attr] = value
    return normalized


class AreaRecord(BaseModel):
    """One area of a ward plan: fixed display metadata plus ordered goals."""
    id: AreaId
    title: str
    description: str
    color: str
    icon_name: str = Field(alias="iconName")
    items: List[GoalItem] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    def find_item(self, item_id: str) -> Optional[GoalItem]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


def empty_area(area_id: AreaId) -> AreaRecord:
    """Build an area with catalogue metadata and no goals."""
    config = AREA_CONFIGS[area_id]
    return AreaRecord(
        id=area_id,
        title=config.title,
        description=config.description,
        color=config.color,
        icon_name=config.icon_name,
        items=[],
    )


def _area_defaults(area_id: AreaId) -> Dict[str, Any]:
    return empty_area(area_id).model_dump(by_alias=True)


class TenantDocument(BaseModel):
    """
    The whole plan of a ward: exactly the four known areas.

    Each area is optional on the wire. A missing or null area is read as an
    empty area with catalogue metadata, and unknown keys are dropped.
    """
    finding: AreaRecord = Field(default_factory=lambda: empty_area(AreaId.FINDING))
    teaching: AreaRecord = Field(default_factory=lambda: empty_area(AreaId.TEACHING))
    new_members: AreaRecord = Field(default_factory=lambda: empty_area(AreaId.NEW_MEMBERS))
    returning: AreaRecord = Field(default_factory=lambda: empty_area(AreaId.RETURNING))

    class Config:
        extra = "ignore"

    @model_validator(mode="before")
    @classmethod
    def _fill_missing_areas(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        filled: Dict[str, Any] = {}
        for area_id in AreaId:
            raw = data.get(area_id.value)
            if raw is None:
                continue
            if isinstance(raw, dict):
                # Stored metadata may be partial; the area id always wins
                filled[area_id.value] = {**_area_defaults(area_id), **raw, "id": area_id.value}
            else:
                filled[area_id.value] = raw
        return filled

    def area(self, area_id: AreaId) -> AreaRecord:
        return getattr(self, AreaId(area_id).value)

    def completion_percentage(self, area_id: AreaId) -> float:
        """Share of completed goals in an area, 0..100. An empty area is 0."""
        items = self.area(area_id).items
        if not items:
            return 0.0
        completed = sum(1 for item in items if item.is_completed)
        return completed / len(items) * 100

    def snapshot(self) -> "TenantDocument":
        return self.model_copy(deep=True)

    def to_wire(self) -> Dict[str, Any]:
        """Serialize to the wire layout: a mapping keyed by area id, camelCase fields."""
        return self.model_dump(mode="json", by_alias=True)


class TenantSeed(BaseModel):
    """A ward entry from the provisioning configuration."""
    id: str = Field(min_length=1)
    name: str
    passphrase: Optional[str] = None

    @property
    def effective_passphrase(self) -> str:
        return self.passphrase if self.passphrase else self.id


class TenantSummary(BaseModel):
    """Public view of a ward. Never carries the passphrase."""
    id: str
    name: str


class Tenant(TenantSummary):
    """A ward as stored: identity, shared passphrase and its plan."""
    passphrase: str
    data: TenantDocument = Field(default_factory=TenantDocument)

    def summary(self) -> TenantSummary:
        return TenantSummary(id=self.id, name=self.name)


class AuthenticationResult(BaseModel):
    """Successful login payload of the network contract."""
    success: bool = True
    tenant_id: str = Field(alias="wardId")
    tenant_name: str = Field(alias="wardName")
    document: TenantDocument = Field(alias="data")

    class Config:
        populate_by_name = True

    def to_wire(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "wardId": self.tenant_id,
            "wardName": self.tenant_name,
            "data": self.document.to_wire(),
        }
