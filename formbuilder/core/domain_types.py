"""Domain Types: enums and aliases shared by every layer of the record editor.

Invariants:
    - Field types mirror the names the metadata service sends on the wire
    - Phase is the only lifecycle indicator; there is no terminal phase
    - The reserved metadata key and audit field names live here and nowhere else

Design Decisions:
    - str Enums: values compare equal to the raw wire strings
"""

from enum import Enum
from typing import Union


# ─── Field Values ────────────────────────────────────────────────

FieldValue = Union[str, bool, int, float, None]


# ─── Constants ───────────────────────────────────────────────────

UI_INFO_KEY = "_ui_info_"
AUDIT_FIELDS = frozenset({"CreatedById", "UpdatedById"})
NO_PERMISSION = "NONE"


def id_field_for(table_name: str) -> str:
    """Name of a table's own identifier field."""
    return f"{table_name}Id"


# ─── Enums ───────────────────────────────────────────────────────

class FieldType(str, Enum):
    """Field types reported by the metadata service."""
    SINGLE = "Single"
    INT32 = "Int32"
    INT64 = "Int64"
    DOUBLE = "Double"
    DECIMAL = "Decimal"
    STRING = "String"
    GUID = "Guid"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    LOOKUP = "Lookup"


NUMERIC_TYPES = frozenset({
    FieldType.SINGLE,
    FieldType.INT32,
    FieldType.INT64,
    FieldType.DOUBLE,
    FieldType.DECIMAL,
})


class Phase(str, Enum):
    """Lifecycle phase of a record editor."""
    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    SUBMIT_CANCELLED = "submit_cancelled"


class Operation(str, Enum):
    """Persistence operation kind; FAILED is only used in post-save notifications."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    FAILED = "FAILED"


class SaveEvent(str, Enum):
    """Named events listeners can subscribe to."""
    PRE_SAVE = "PRE_SAVE"
    POST_SAVE = "POST_SAVE"


class LoadOutcome(str, Enum):
    """What a load call ended up doing."""
    LOADED = "loaded"
    MISSING = "missing"
    ABORTED = "aborted"
    SKIPPED = "skipped"


class SaveStatus(str, Enum):
    """What a save call ended up doing."""
    SAVED = "saved"
    FAILED = "failed"
    INVALID = "invalid"
    CANCELLED = "cancelled"
    ABORTED = "aborted"
    REJECTED = "rejected"
