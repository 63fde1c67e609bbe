"""Edit State: the record editor's state and its pure transition function.

Invariants:
    - reduce(state, action) is PURE: never mutates its inputs, never does IO
    - Every buffer replacement (StartLoad, LoadComplete, SetDataToEdit, ClearRecord,
      ClearEdits) resets the dirty set, the validation messages and is_submitted
    - SetFieldValue is idempotent with respect to the dirty set
    - operation is CREATE exactly when no snapshot is held

Design Decisions:
    - Frozen dataclasses for state and actions; transitions use dataclasses.replace
    - One action class per transition, dispatched with an explicit isinstance chain
"""

from dataclasses import dataclass, field, replace
from typing import Any

from formbuilder.core.domain_types import (
    FieldValue, Operation, Phase, id_field_for,
)
from formbuilder.core.record_schema import TableSchema
from formbuilder.core.validate_record import ValidationMessage


@dataclass(frozen=True)
class ReadAccess:
    """Whether the loaded record is readable, with a user-facing reason if not."""
    can_read: bool = True
    message: str = ""


@dataclass(frozen=True)
class EditState:
    """Authoritative in-memory state of one record editor."""
    table_name: str | None = None
    metadata: TableSchema | None = None
    snapshot: dict | None = None
    data: dict | None = None
    pristine_data: dict | None = None
    dirty_fields: frozenset[str] = frozenset()
    validation_messages: tuple[ValidationMessage, ...] = ()
    phase: Phase = Phase.UNINITIALIZED
    can_update: bool = False
    can_create: bool = False
    can_read: ReadAccess = field(default_factory=ReadAccess)
    force_loading: bool = False
    is_submitted: bool = False

    @property
    def is_loading(self) -> bool:
        return self.force_loading or self.phase in (Phase.LOADING, Phase.SUBMITTING)

    @property
    def operation(self) -> Operation:
        return Operation.CREATE if self.snapshot is None else Operation.UPDATE

    @property
    def record_id(self) -> Any:
        if self.snapshot is None or not self.table_name:
            return None
        return self.snapshot.get(id_field_for(self.table_name))


# ─── Actions ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class StartLoad:
    table_name: str
    data: dict | None = None
    force_loading: bool = False


@dataclass(frozen=True)
class LoadComplete:
    metadata: TableSchema
    snapshot: dict | None
    data: dict
    can_update: bool
    can_create: bool
    can_read: ReadAccess


@dataclass(frozen=True)
class SetDataToEdit:
    data: dict
    snapshot: dict | None
    can_update: bool | None = None
    force_loading: bool = False


@dataclass(frozen=True)
class SetFieldValue:
    field: str
    value: FieldValue


@dataclass(frozen=True)
class SetValidationMessages:
    messages: tuple[ValidationMessage, ...]


@dataclass(frozen=True)
class AddValidationMessage:
    message: ValidationMessage


@dataclass(frozen=True)
class SubmitStarted:
    pass


@dataclass(frozen=True)
class SubmitCancelled:
    pass


@dataclass(frozen=True)
class SubmitComplete:
    pass


@dataclass(frozen=True)
class ClearEdits:
    pass


@dataclass(frozen=True)
class ClearRecord:
    data: dict


@dataclass(frozen=True)
class SetForceLoading:
    force_loading: bool


Action = (
    StartLoad | LoadComplete | SetDataToEdit | SetFieldValue
    | SetValidationMessages | AddValidationMessage | SubmitStarted
    | SubmitCancelled | SubmitComplete | ClearEdits | ClearRecord
    | SetForceLoading
)


def _replace_buffer(state: EditState, data: dict, **changes) -> EditState:
    return replace(
        state,
        data=data,
        pristine_data=dict(data),
        dirty_fields=frozenset(),
        validation_messages=(),
        is_submitted=False,
        **changes,
    )


def reduce(state: EditState, action: Action) -> EditState:
    """Apply one action. Pure, returns a new EditState."""
    if isinstance(action, StartLoad):
        return replace(
            state,
            table_name=action.table_name,
            data=action.data,
            pristine_data=dict(action.data) if action.data is not None else None,
            dirty_fields=frozenset(),
            validation_messages=(),
            is_submitted=False,
            phase=Phase.LOADING,
            force_loading=action.force_loading,
        )

    if isinstance(action, LoadComplete):
        return _replace_buffer(
            state, action.data,
            metadata=action.metadata,
            snapshot=action.snapshot,
            can_update=action.can_update,
            can_create=action.can_create,
            can_read=action.can_read,
            phase=Phase.READY,
        )

    if isinstance(action, SetDataToEdit):
        changes: dict[str, Any] = {
            "snapshot": action.snapshot,
            "phase": Phase.READY,
            "force_loading": action.force_loading,
        }
        if action.can_update is not None:
            changes["can_update"] = action.can_update
        return _replace_buffer(state, action.data, **changes)

    if isinstance(action, SetFieldValue):
        data = dict(state.data or {})
        data[action.field] = action.value
        return replace(
            state,
            data=data,
            dirty_fields=state.dirty_fields | {action.field},
        )

    if isinstance(action, SetValidationMessages):
        return replace(state, validation_messages=tuple(action.messages))

    if isinstance(action, AddValidationMessage):
        return replace(
            state,
            validation_messages=state.validation_messages + (action.message,),
        )

    if isinstance(action, SubmitStarted):
        return replace(state, phase=Phase.SUBMITTING, is_submitted=True)

    if isinstance(action, SubmitCancelled):
        return replace(state, phase=Phase.SUBMIT_CANCELLED)

    if isinstance(action, SubmitComplete):
        return replace(state, phase=Phase.READY)

    if isinstance(action, ClearEdits):
        pristine = dict(state.pristine_data) if state.pristine_data is not None else None
        return replace(
            state,
            data=pristine,
            dirty_fields=frozenset(),
            validation_messages=(),
            is_submitted=False,
        )

    if isinstance(action, ClearRecord):
        return _replace_buffer(
            state, action.data,
            snapshot=None,
            can_read=ReadAccess(),
            phase=Phase.READY,
        )

    if isinstance(action, SetForceLoading):
        return replace(state, force_loading=action.force_loading)

    raise TypeError(f"Unknown edit state action: {type(action).__name__}")
