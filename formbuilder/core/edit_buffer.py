"""Edit Buffer Synthesis: turns a schema plus optional snapshot into an editable record.

Invariants:
    - build_edit_buffer is PURE: same (schema, snapshot, defaults, now) gives the same buffer
    - Create path: keys are the schema fields, the reserved metadata key and any caller defaults
    - Update path: snapshot keys survive only when non-null AND known (schema field,
      metadata key or the table's own id field)
    - Lookup label pre-warming is described here but performed by the shell

Design Decisions:
    - Nullable numerics default to "" to match the numeric input convention of the UI
    - DateTime default is midnight UTC of the current day in JS ISO format (millisecond precision)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from formbuilder.core.domain_types import (
    FieldType, FieldValue, UI_INFO_KEY, id_field_for,
)
from formbuilder.core.record_schema import TableSchema


@dataclass(frozen=True)
class FieldDefault:
    """Caller-supplied default value for one field."""
    field: str
    value: FieldValue


@dataclass(frozen=True)
class LookupRequest:
    """A lookup label that must be resolved before a default lookup can be shown."""
    field: str
    lookup_table: str | None
    name_field: str | None
    record_id: str


def default_ui_info() -> dict[str, bool]:
    return {"canUpdate": True, "canDelete": True}


def start_of_day_iso(now: datetime) -> str:
    """Midnight UTC of `now`'s day, formatted like JS Date.toISOString()."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT00:00:00.000Z")


def _default_for_lookup(name: str, defaults: tuple[FieldDefault, ...]) -> FieldValue:
    for d in defaults:
        if d.field == name and d.value is not None:
            return d.value
    return None


def cleared_values(
    schema: TableSchema,
    defaults: tuple[FieldDefault, ...] = (),
    now: datetime | None = None,
) -> dict[str, Any]:
    """Type-appropriate empty values for every schema field."""
    now = now or datetime.now(timezone.utc)
    values: dict[str, Any] = {}
    for f in schema.fields:
        if f.is_numeric:
            values[f.name] = "" if f.is_nullable else 0
        elif f.type in (FieldType.STRING, FieldType.GUID):
            values[f.name] = ""
        elif f.type == FieldType.BOOLEAN:
            values[f.name] = False
        elif f.type == FieldType.DATETIME:
            values[f.name] = None if f.is_nullable else start_of_day_iso(now)
        elif f.type == FieldType.LOOKUP:
            values[f.name] = _default_for_lookup(f.name, defaults)
        # unknown types get no default
    values[UI_INFO_KEY] = default_ui_info()
    return values


def _keep_snapshot_key(schema: TableSchema, key: str, value: Any) -> bool:
    if value is None:
        return False
    return (
        schema.has_field(key)
        or key == UI_INFO_KEY
        or key == id_field_for(schema.table_name)
    )


def build_edit_buffer(
    schema: TableSchema,
    snapshot: dict | None,
    defaults: tuple[FieldDefault, ...] = (),
    now: datetime | None = None,
) -> dict[str, Any]:
    """Synthesize a complete edit buffer. Pure, no IO."""
    buffer = cleared_values(schema, defaults, now)
    if snapshot is None:
        for d in defaults:
            buffer[d.field] = d.value
        return buffer
    for key, value in snapshot.items():
        if _keep_snapshot_key(schema, key, value):
            buffer[key] = dict(value) if isinstance(value, dict) else value
    return buffer


def lookup_labels_to_prewarm(
    schema: TableSchema, defaults: tuple[FieldDefault, ...],
) -> list[LookupRequest]:
    """Lookup fields that carry a caller default and need their label cached."""
    requests = []
    for f in schema.fields:
        if not f.is_lookup:
            continue
        for d in defaults:
            if d.field == f.name and d.value is not None:
                requests.append(LookupRequest(
                    field=f.name,
                    lookup_table=f.lookup_table,
                    name_field=f.lookup_table_name_field,
                    record_id=str(d.value),
                ))
    return requests


def snapshot_can_update(snapshot: dict | None) -> bool:
    """Read the embedded update permission of a persisted row."""
    if not snapshot:
        return False
    ui_info = snapshot.get(UI_INFO_KEY)
    if not isinstance(ui_info, dict):
        return False
    return bool(ui_info.get("canUpdate", False))
