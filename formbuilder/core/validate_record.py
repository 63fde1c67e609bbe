"""Edit Buffer Validation: schema-driven rules plus per-editor required overrides.

Invariants:
    - validate_edit_buffer is PURE: same (schema, data, required_fields) gives the same messages
    - Messages are ordered by schema field order, then by rule order within a field
    - A field may produce several messages; audit fields are never checked
    - An empty tuple means the buffer is valid

Design Decisions:
    - Rules return descriptors; the shell decides whether to publish them to state
"""

import re
from dataclasses import dataclass
from typing import Any, Collection

from formbuilder.core.domain_types import AUDIT_FIELDS, FieldType
from formbuilder.core.record_schema import FieldDescriptor, TableSchema


PARTIAL_NUMBER_INPUTS = frozenset({"-", "."})

_GUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ValidationMessage:
    """A single user-facing validation message bound to a field."""
    field: str
    message: str


def is_valid_guid(value: Any) -> bool:
    return isinstance(value, str) and bool(_GUID_PATTERN.match(value))


def _is_required(field: FieldDescriptor, required_fields: Collection[str]) -> bool:
    return field.is_required or field.name in required_fields


def _check_field(
    field: FieldDescriptor, value: Any, required_fields: Collection[str],
) -> list[ValidationMessage]:
    messages = []

    # Rule 1: partial numeric input
    if field.is_numeric and isinstance(value, str) and value in PARTIAL_NUMBER_INPUTS:
        messages.append(ValidationMessage(
            field.name, f'"{value}" is not a valid number',
        ))

    # Rule 2: lookups and dates cannot be null when non-nullable or required
    if field.type in (FieldType.LOOKUP, FieldType.DATETIME):
        must_have = not field.is_nullable or _is_required(field, required_fields)
        if must_have and value is None:
            messages.append(ValidationMessage(
                field.name, f"{field.label} is required",
            ))

    # Rule 3: required fields cannot be empty
    if _is_required(field, required_fields) and (value is None or value == ""):
        messages.append(ValidationMessage(
            field.name, f"{field.label} is required",
        ))

    # Rule 4: identifiers must look like a GUID
    if field.type == FieldType.GUID and value not in (None, ""):
        if not is_valid_guid(value):
            messages.append(ValidationMessage(
                field.name, f"{field.label} is not a valid Id",
            ))

    return messages


def validate_edit_buffer(
    schema: TableSchema,
    data: dict,
    required_fields: Collection[str] = (),
) -> tuple[ValidationMessage, ...]:
    """Run every rule over every non-audit schema field."""
    messages: list[ValidationMessage] = []
    for field in schema.fields:
        if field.name in AUDIT_FIELDS:
            continue
        messages.extend(_check_field(field, data.get(field.name), required_fields))
    return tuple(messages)
