"""
Shared record schemas for the syncable collections.

One pydantic model per collection. The sync server validates every pushed
record against these before it is written, and the client validates local
edits before they are queued, so both ends enforce the same rules.
"""

from datetime import datetime
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from .constants import (
    EquipmentCategory,
    EquipmentStatus,
    InventoryCategory,
    InventoryUnit,
    RecurrencePattern,
    TaskPriority,
    TaskStatus,
    TaskType,
    ZoneHealth,
    ZoneType,
    is_syncable_collection,
)

# Server-assigned record ids are uuid4 hex strings
RECORD_ID_PATTERN = r"^[0-9a-f]{32}$"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"
TIME_OF_DAY_PATTERN = r"^\d{2}:\d{2}$"

RecordId = Annotated[str, StringConstraints(pattern=RECORD_ID_PATTERN)]


class SyncableRecordSchema(BaseModel):
    """Fields every syncable record carries besides its server metadata."""

    model_config = ConfigDict(extra="ignore", use_enum_values=True)

    deleted: bool = False


# === Zones ===


class ZoneSchema(SyncableRecordSchema):
    name: str = Field(..., min_length=1, max_length=200)
    type: ZoneType
    hole_number: Optional[int] = Field(None, ge=1, le=36)
    area: Optional[float] = Field(None, gt=0)
    geometry: Optional[Dict[str, Any]] = None  # GeoJSON polygon
    health: ZoneHealth = ZoneHealth.GOOD
    grass_type: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)


# === Tasks ===


class Recurrence(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    enabled: bool = False
    pattern: Optional[RecurrencePattern] = None
    interval: Optional[int] = Field(None, gt=0)
    end_date: Optional[datetime] = None
    days_of_week: Optional[List[Annotated[int, Field(ge=0, le=6)]]] = None


class InventoryUsage(BaseModel):
    item_id: RecordId
    quantity: float = Field(..., gt=0)


class WeatherDependency(BaseModel):
    max_wind: Optional[float] = Field(None, gt=0)
    no_rain: bool = False
    min_temp: Optional[float] = None
    max_temp: Optional[float] = None


class TaskSchema(SyncableRecordSchema):
    title: str = Field(..., min_length=1, max_length=300)
    description: Optional[str] = Field(None, max_length=5000)
    type: TaskType
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    zone_id: Optional[RecordId] = None
    assignee_ids: List[RecordId] = Field(default_factory=list)
    scheduled_date: datetime
    scheduled_time: Optional[str] = Field(None, pattern=TIME_OF_DAY_PATTERN)
    estimated_duration: Optional[int] = Field(None, gt=0)  # minutes
    actual_duration: Optional[int] = Field(None, gt=0)
    recurrence: Recurrence = Field(default_factory=Recurrence)
    equipment_ids: List[RecordId] = Field(default_factory=list)
    inventory_used: List[InventoryUsage] = Field(default_factory=list)
    weather_dependency: WeatherDependency = Field(default_factory=WeatherDependency)
    notes: Optional[str] = Field(None, max_length=5000)


# === Team members ===


class Certification(BaseModel):
    name: str = Field(..., max_length=200)
    expires_at: Optional[datetime] = None


class Shift(BaseModel):
    start: str = Field(..., pattern=TIME_OF_DAY_PATTERN)
    end: str = Field(..., pattern=TIME_OF_DAY_PATTERN)


class TeamMemberSchema(SyncableRecordSchema):
    user_id: str = Field(..., min_length=1, max_length=64)
    position: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    skills: List[Annotated[str, Field(max_length=100)]] = Field(default_factory=list)
    certifications: List[Certification] = Field(default_factory=list)
    # Keyed by day: mon, tue, ... sun. A missing day means unavailable.
    availability: Dict[str, Optional[Shift]] = Field(default_factory=dict)
    is_active: bool = True


# === Equipment ===


class EquipmentSchema(SyncableRecordSchema):
    name: str = Field(..., min_length=1, max_length=200)
    category: EquipmentCategory
    brand: Optional[str] = Field(None, max_length=100)
    model: Optional[str] = Field(None, max_length=100)
    serial_number: Optional[str] = Field(None, max_length=100)
    purchase_date: Optional[datetime] = None
    last_service_date: Optional[datetime] = None
    next_service_date: Optional[datetime] = None
    hours_used: float = Field(0, ge=0)
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    location: Optional[str] = Field(None, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


# === Inventory ===


class InventoryItemSchema(SyncableRecordSchema):
    name: str = Field(..., min_length=1, max_length=200)
    category: InventoryCategory
    unit: InventoryUnit
    current_stock: float = Field(0, ge=0)
    min_stock: float = Field(0, ge=0)
    max_stock: Optional[float] = Field(None, gt=0)
    location: Optional[str] = Field(None, max_length=200)
    supplier: Optional[str] = Field(None, max_length=200)
    unit_cost: Optional[float] = Field(None, gt=0)
    safety_data_sheet: Optional[str] = None
    expiration_date: Optional[datetime] = None


COLLECTION_SCHEMAS: Dict[str, type] = {
    "zones": ZoneSchema,
    "tasks": TaskSchema,
    "team_members": TeamMemberSchema,
    "equipment": EquipmentSchema,
    "inventory_items": InventoryItemSchema,
}


def get_schema(collection: str) -> type:
    """Return the schema model for a syncable collection.

    Raises:
        ValueError: If the collection does not take part in sync.
    """
    if not is_syncable_collection(collection):
        raise ValueError(f"Unknown collection: {collection}")
    return COLLECTION_SCHEMAS[collection]


def validate_record(collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Validate entity fields of a record and return them normalized.

    Server metadata (id, version, timestamps) and unknown keys are dropped;
    defaults are filled in. Raises ``pydantic.ValidationError`` on invalid
    data and ``ValueError`` on an unknown collection.
    """
    schema = get_schema(collection)
    return schema.model_validate(data).model_dump(mode="json")
