"""
Shared constants for GreenKeep.

Used by both the sync server (request handling, validation) and the client
(offline cache, CLI). Keep the two sides importing from here so the
vocabulary cannot drift.
"""

from enum import Enum


class Role(str, Enum):
    """Account roles carried in the JWT ``role`` claim."""

    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    TEAM = "team"


ROLE_HIERARCHY = {
    Role.SUPERADMIN: 3,
    Role.ADMIN: 2,
    Role.TEAM: 1,
}


class ZoneType(str, Enum):
    GREEN = "green"
    FAIRWAY = "fairway"
    ROUGH = "rough"
    BUNKER = "bunker"
    TEEBOX = "teebox"
    WATER = "water"
    PATH = "path"
    BUILDING = "building"
    OTHER = "other"


class ZoneHealth(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    CRITICAL = "critical"


class TaskType(str, Enum):
    MOWING = "mowing"
    WATERING = "watering"
    FERTILIZING = "fertilizing"
    AERATION = "aeration"
    TOPDRESSING = "topdressing"
    PEST_TREATMENT = "pest_treatment"
    SEEDING = "seeding"
    REPAIR = "repair"
    INSPECTION = "inspection"
    OTHER = "other"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DEFERRED = "deferred"


class RecurrencePattern(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class EquipmentCategory(str, Enum):
    MOWER = "mower"
    TRACTOR = "tractor"
    SPRAYER = "sprayer"
    AERATOR = "aerator"
    ROLLER = "roller"
    UTILITY_VEHICLE = "utility_vehicle"
    HAND_TOOL = "hand_tool"
    IRRIGATION = "irrigation"
    OTHER = "other"


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    BROKEN = "broken"
    RETIRED = "retired"


class InventoryCategory(str, Enum):
    SEED = "seed"
    FERTILIZER = "fertilizer"
    PESTICIDE = "pesticide"
    FUNGICIDE = "fungicide"
    HERBICIDE = "herbicide"
    FUEL = "fuel"
    SPARE_PART = "spare_part"
    SAND = "sand"
    SOIL = "soil"
    OTHER = "other"


class InventoryUnit(str, Enum):
    KG = "kg"
    LITER = "L"
    UNIT = "unit"
    CUBIC_METER = "m3"
    BAG = "bag"


# === Sync protocol ===

# Collections that participate in offline sync, in pull order.
SYNCABLE_COLLECTIONS = (
    "zones",
    "tasks",
    "team_members",
    "equipment",
    "inventory_items",
)


class MutationOperation(str, Enum):
    """Kinds of locally queued change."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"  # soft delete: an update that sets ``deleted``


class RejectReason(str, Enum):
    """Reason codes for records the server refused during a push."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    ERROR = "error"


# Fields owned by the server. Clients may send them but they are never
# applied from a push payload.
SERVER_MANAGED_FIELDS = frozenset({"id", "version", "temp_id", "created_at", "updated_at"})

TEMP_ID_PREFIX = "tmp_"


def is_syncable_collection(collection: str) -> bool:
    """Return True if ``collection`` takes part in the sync protocol."""
    return collection in SYNCABLE_COLLECTIONS
