import enum


# ============================================================================
# ENUMS
# ============================================================================

class EntityType(str, enum.Enum):
    """Billing entity types that can be migrated"""
    CUSTOMERS = "customers"
    TRANSACTIONS = "transactions"
    SUBSCRIPTIONS = "subscriptions"
    PLANS = "plans"


class FieldType(str, enum.Enum):
    """Primitive types a target schema field can declare"""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARRAY = "array"
    OBJECT = "object"


class RunStatus(str, enum.Enum):
    """Migration run status"""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class LogLevel(str, enum.Enum):
    """Run log entry level"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class EventType(str, enum.Enum):
    """Events pushed to run observers"""
    LOG = "log"
    PROGRESS = "progress"
    APPROVALS = "approvals"
    STATE = "state"
