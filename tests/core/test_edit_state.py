"""Tests for the edit state transition function.

Tests cover:
    - Load lifecycle: StartLoad then LoadComplete
    - Buffer replacement resets dirty fields, messages and the submitted flag
    - SetFieldValue dirty tracking (idempotent) and ClearEdits
    - Submit phases and derived properties (is_loading, operation, record_id)
    - reduce never mutates the incoming state
"""

import pytest

from formbuilder.core.domain_types import FieldType, Operation, Phase
from formbuilder.core.edit_state import (
    AddValidationMessage, ClearEdits, ClearRecord, EditState, LoadComplete,
    ReadAccess, SetDataToEdit, SetFieldValue, SetForceLoading,
    SetValidationMessages, StartLoad, SubmitCancelled, SubmitComplete,
    SubmitStarted, reduce,
)
from formbuilder.core.record_schema import FieldDescriptor, TableSchema
from formbuilder.core.validate_record import ValidationMessage


SCHEMA = TableSchema("Widget", (FieldDescriptor("Name", FieldType.STRING),))


def _ready(snapshot: dict | None = None, data: dict | None = None) -> EditState:
    state = reduce(EditState(), StartLoad("Widget"))
    return reduce(state, LoadComplete(
        metadata=SCHEMA,
        snapshot=snapshot,
        data=data if data is not None else {"Name": "Sprocket"},
        can_update=True,
        can_create=True,
        can_read=ReadAccess(),
    ))


# ─── Loading ─────────────────────────────────────────────────────

def test_start_load_enters_loading_phase():
    state = reduce(EditState(), StartLoad("Widget", data={"Name": ""}))

    assert state.phase == Phase.LOADING
    assert state.is_loading
    assert state.table_name == "Widget"
    assert state.data == {"Name": ""}


def test_load_complete_publishes_record():
    state = _ready(snapshot={"WidgetId": "w-1", "Name": "Sprocket"})

    assert state.phase == Phase.READY
    assert not state.is_loading
    assert state.metadata is SCHEMA
    assert state.pristine_data == {"Name": "Sprocket"}
    assert state.operation == Operation.UPDATE
    assert state.record_id == "w-1"


def test_load_complete_without_snapshot_is_create():
    state = _ready()
    assert state.operation == Operation.CREATE
    assert state.record_id is None


# ─── Editing ─────────────────────────────────────────────────────

def test_set_field_marks_dirty():
    state = reduce(_ready(), SetFieldValue("Name", "Gear"))

    assert state.data["Name"] == "Gear"
    assert state.dirty_fields == frozenset({"Name"})
    assert state.pristine_data["Name"] == "Sprocket"


def test_set_field_twice_is_idempotent_for_dirty_set():
    once = reduce(_ready(), SetFieldValue("Name", "Gear"))
    twice = reduce(once, SetFieldValue("Name", "Gear"))

    assert twice.dirty_fields == once.dirty_fields
    assert twice.data == once.data


def test_set_field_does_not_mutate_previous_state():
    before = _ready()
    reduce(before, SetFieldValue("Name", "Gear"))

    assert before.data == {"Name": "Sprocket"}
    assert before.dirty_fields == frozenset()


def test_clear_edits_restores_pristine_buffer():
    state = reduce(_ready(), SetFieldValue("Name", "Gear"))
    state = reduce(state, AddValidationMessage(ValidationMessage("Name", "bad")))
    state = reduce(state, ClearEdits())

    assert state.data == {"Name": "Sprocket"}
    assert state.dirty_fields == frozenset()
    assert state.validation_messages == ()


def test_buffer_replacement_resets_dirty_and_messages():
    state = reduce(_ready(), SetFieldValue("Name", "Gear"))
    state = reduce(state, SetValidationMessages((ValidationMessage("Name", "bad"),)))
    state = reduce(state, SubmitStarted())
    state = reduce(state, SetDataToEdit({"Name": "Other"}, {"WidgetId": "w-2"}))

    assert state.dirty_fields == frozenset()
    assert state.validation_messages == ()
    assert state.is_submitted is False
    assert state.phase == Phase.READY
    assert state.record_id == "w-2"


def test_start_load_resets_dirty_and_messages():
    state = reduce(_ready(), SetFieldValue("Name", "Gear"))
    state = reduce(state, AddValidationMessage(ValidationMessage("Name", "bad")))
    state = reduce(state, StartLoad("Widget", data={"Name": ""}))

    assert state.dirty_fields == frozenset()
    assert state.validation_messages == ()
    assert state.is_submitted is False
    assert state.pristine_data == {"Name": ""}
    assert state.phase == Phase.LOADING


def test_set_data_to_edit_keeps_can_update_when_not_given():
    state = reduce(_ready(), SetDataToEdit({"Name": "x"}, None))
    assert state.can_update is True

    state = reduce(state, SetDataToEdit({"Name": "x"}, None, can_update=False))
    assert state.can_update is False


def test_clear_record_drops_snapshot():
    state = _ready(snapshot={"WidgetId": "w-1"})
    state = reduce(state, ClearRecord({"Name": ""}))

    assert state.snapshot is None
    assert state.operation == Operation.CREATE
    assert state.data == {"Name": ""}
    assert state.can_read == ReadAccess()


# ─── Messages ────────────────────────────────────────────────────

def test_add_validation_message_appends():
    state = reduce(_ready(), SetValidationMessages((ValidationMessage("Name", "a"),)))
    state = reduce(state, AddValidationMessage(ValidationMessage("Name", "b")))
    assert [m.message for m in state.validation_messages] == ["a", "b"]


# ─── Submitting ──────────────────────────────────────────────────

def test_submit_phases():
    state = reduce(_ready(), SubmitStarted())
    assert state.phase == Phase.SUBMITTING
    assert state.is_loading
    assert state.is_submitted

    cancelled = reduce(state, SubmitCancelled())
    assert cancelled.phase == Phase.SUBMIT_CANCELLED
    assert not cancelled.is_loading

    done = reduce(state, SubmitComplete())
    assert done.phase == Phase.READY


def test_force_loading_overrides_phase():
    state = reduce(_ready(), SetForceLoading(True))
    assert state.is_loading
    assert reduce(state, SetForceLoading(False)).is_loading is False


def test_unknown_action_raises():
    with pytest.raises(TypeError):
        reduce(EditState(), object())
