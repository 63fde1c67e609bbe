"""Tests for the save sequence.

Tests cover:
    - Create vs update routing and the returned SaveResult
    - pre_validate cancel leaves the editor untouched
    - Validation failure publishes messages and never persists
    - Interceptor order and cancellation (instance hook, PRE_SAVE listeners, call-site hook)
    - Post-save fan-out order, FAILED notifications, failing callbacks
    - Concurrent save rejection, transport errors, save_silent
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import httpx
import pytest

from formbuilder.core.domain_types import (
    Operation, Phase, SaveEvent, SaveStatus, UI_INFO_KEY,
)
from formbuilder.core.errors import SchemaNotLoadedError
from formbuilder.core.save_hooks import Cancel, Proceed
from formbuilder.core.service_protocols import ServiceResponse
from formbuilder.core.validate_record import ValidationMessage
from tests.services.fakes import FakeView


async def _ready_editor(make_editor, **kwargs):
    editor = make_editor(**kwargs)
    await editor.start()
    editor.set_field("Name", "Gadget")
    return editor


# ─── Persistence routing ─────────────────────────────────────────

async def test_new_record_is_created(make_editor, data_service):
    editor = await _ready_editor(make_editor)

    result = await editor.save()

    assert result.status == SaveStatus.SAVED
    assert result.succeeded
    assert result.operation == Operation.CREATE
    assert result.record_id == "new-1"
    assert editor.phase == Phase.READY
    table, fields, parameters = data_service.create_calls[0]
    assert table == "Widget"
    assert fields["Name"] == "Gadget"
    assert UI_INFO_KEY in fields
    assert parameters == {}
    assert data_service.update_calls == []


async def test_loaded_record_is_updated(make_editor, data_service):
    data_service.rows["Widget"] = [{"WidgetId": "w-1", "Name": "Sprocket"}]
    editor = await _ready_editor(make_editor, record_id="w-1")

    result = await editor.save()

    assert result.operation == Operation.UPDATE
    assert result.record_id == "w-1"
    assert data_service.update_calls[0][1]["WidgetId"] == "w-1"
    assert data_service.create_calls == []


async def test_save_before_load_raises(make_editor):
    editor = make_editor()
    with pytest.raises(SchemaNotLoadedError):
        await editor.save()


async def test_numeric_record_id_is_stringified(make_editor, data_service):
    data_service.save_response = ServiceResponse(True, {"WidgetId": 17, "Name": "Gadget"})
    editor = await _ready_editor(make_editor)
    result = await editor.save()
    assert result.record_id == "17"


# ─── Pre-validate and validation ─────────────────────────────────

async def test_pre_validate_cancel_changes_nothing(make_editor, data_service):
    editor = await _ready_editor(make_editor)
    editor.set_field("Name", "")
    before = editor.state

    result = await editor.save(pre_validate=lambda payload: Cancel("not now"))

    assert result.status == SaveStatus.ABORTED
    assert editor.state == before
    assert editor.validation_messages == ()
    assert data_service.create_calls == []


async def test_invalid_buffer_is_not_persisted(make_editor, data_service):
    editor = make_editor()
    await editor.start()

    result = await editor.save()

    assert result.status == SaveStatus.INVALID
    assert result.messages == (ValidationMessage("Name", "Name is required"),)
    assert editor.validation_messages == result.messages
    assert editor.phase == Phase.READY
    assert editor.is_submitted is False
    assert data_service.create_calls == []


async def test_partial_number_message(make_editor):
    editor = await _ready_editor(make_editor)
    editor.set_field("Price", "-")

    assert editor.validate() is False
    assert editor.validation_messages == (
        ValidationMessage("Price", '"-" is not a valid number'),
    )


async def test_required_override_blocks_save(make_editor, data_service):
    editor = await _ready_editor(make_editor)
    editor.add_required_field("CategoryId")

    result = await editor.save()

    assert result.status == SaveStatus.INVALID
    assert {m.field for m in result.messages} == {"CategoryId"}

    editor.remove_required_field("CategoryId")
    assert (await editor.save()).status == SaveStatus.SAVED


async def test_invalid_hook_result_raises(make_editor):
    editor = await _ready_editor(make_editor)
    with pytest.raises(TypeError):
        await editor.save(pre_validate=lambda payload: True)


# ─── Interceptors ────────────────────────────────────────────────

async def test_interceptors_run_in_order_and_merge_parameters(make_editor, data_service):
    calls = []

    async def instance_hook(payload):
        calls.append("instance")
        return Proceed({"source": "instance", "a": 1})

    def listener(payload, parameters):
        calls.append(("listener", dict(parameters)))

    def call_site(payload):
        calls.append("call_site")
        return Proceed({"source": "call_site"})

    editor = await _ready_editor(make_editor, on_pre_save=instance_hook)
    editor.on(SaveEvent.PRE_SAVE, listener)

    await editor.save(
        pre_validate=lambda payload: Proceed({"pv": True}),
        pre_save=call_site,
    )

    assert calls == [
        "instance",
        ("listener", {"pv": True, "source": "instance", "a": 1}),
        "call_site",
    ]
    assert data_service.create_calls[0][2] == {
        "pv": True, "source": "call_site", "a": 1,
    }


async def test_listener_returning_false_cancels(make_editor, data_service):
    later = []
    editor = await _ready_editor(make_editor)
    editor.on("PRE_SAVE", lambda payload, parameters: False)
    editor.on("PRE_SAVE", lambda payload, parameters: later.append(1))
    data_before = editor.data
    dirty_before = editor.state.dirty_fields

    result = await editor.save()

    assert result.status == SaveStatus.CANCELLED
    assert editor.phase == Phase.SUBMIT_CANCELLED
    assert not editor.is_loading
    assert later == []
    assert data_service.create_calls == []
    assert editor.data == data_before
    assert editor.state.dirty_fields == dirty_before


async def test_listener_returning_none_proceeds(make_editor, data_service):
    editor = await _ready_editor(make_editor)
    editor.on("PRE_SAVE", lambda payload, parameters: None)
    assert (await editor.save()).status == SaveStatus.SAVED


async def test_instance_hook_cancel(make_editor, data_service):
    editor = await _ready_editor(make_editor, on_pre_save=lambda payload: Cancel())
    result = await editor.save()

    assert result.status == SaveStatus.CANCELLED
    assert editor.phase == Phase.SUBMIT_CANCELLED
    assert data_service.create_calls == []


async def test_call_site_hook_cancel(make_editor, data_service):
    editor = await _ready_editor(make_editor)
    result = await editor.save(pre_save=lambda payload: Cancel())

    assert result.status == SaveStatus.CANCELLED
    assert data_service.create_calls == []


async def test_save_after_cancel_can_succeed(make_editor):
    editor = await _ready_editor(make_editor)
    await editor.save(pre_save=lambda payload: Cancel())
    assert (await editor.save()).status == SaveStatus.SAVED


async def test_save_while_submitting_is_rejected(make_editor, data_service):
    nested = []

    async def reentrant(payload):
        nested.append(await editor.save())
        return Proceed()

    editor = await _ready_editor(make_editor, on_pre_save=reentrant)
    result = await editor.save()

    assert nested[0].status == SaveStatus.REJECTED
    assert result.status == SaveStatus.SAVED
    assert len(data_service.create_calls) == 1


async def test_overlapping_saves_persist_once(make_editor, data_service):
    gate = asyncio.Event()

    async def wait_for_gate(payload):
        await gate.wait()
        return Proceed()

    editor = await _ready_editor(make_editor)
    first = asyncio.create_task(editor.save(pre_validate=wait_for_gate))
    second = asyncio.create_task(editor.save(pre_validate=wait_for_gate))
    await asyncio.sleep(0)
    gate.set()
    results = await asyncio.gather(first, second)

    assert sorted(r.status.value for r in results) == ["rejected", "saved"]
    assert len(data_service.create_calls) == 1
    assert editor.phase == Phase.READY


async def test_raising_instance_hook_does_not_wedge_editor(make_editor, data_service):
    calls = []

    def flaky(payload):
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("hook exploded")
        return Proceed()

    editor = await _ready_editor(make_editor, on_pre_save=flaky)

    with pytest.raises(RuntimeError):
        await editor.save()
    assert editor.phase == Phase.SUBMIT_CANCELLED
    assert not editor.is_loading
    assert data_service.create_calls == []

    assert (await editor.save()).status == SaveStatus.SAVED
    assert len(data_service.create_calls) == 1


async def test_raising_listener_does_not_wedge_editor(make_editor, data_service):
    raised = []

    def listener(payload, parameters):
        if not raised:
            raised.append(1)
            raise ValueError("listener exploded")

    editor = await _ready_editor(make_editor)
    editor.on(SaveEvent.PRE_SAVE, listener)

    with pytest.raises(ValueError):
        await editor.save()
    assert editor.phase == Phase.SUBMIT_CANCELLED
    assert (await editor.save()).status == SaveStatus.SAVED


async def test_bad_pre_save_result_does_not_wedge_editor(make_editor, data_service):
    editor = await _ready_editor(make_editor)

    with pytest.raises(TypeError):
        await editor.save(pre_save=lambda payload: "yes")
    assert editor.phase == Phase.SUBMIT_CANCELLED
    assert data_service.create_calls == []

    assert (await editor.save()).status == SaveStatus.SAVED


# ─── Post-save fan-out ───────────────────────────────────────────

async def test_post_save_fan_out_order(make_editor):
    calls = []
    editor = await _ready_editor(
        make_editor,
        on_post_save=lambda op, rid, data: calls.append(("instance", op, rid)),
    )
    editor.on("POST_SAVE", lambda op, rid, data: calls.append(("listener", op, rid)))

    async def call_site(op, rid, data):
        calls.append(("call_site", op, rid))

    await editor.save(post_save=call_site)

    assert calls == [
        ("instance", Operation.CREATE, "new-1"),
        ("listener", Operation.CREATE, "new-1"),
        ("call_site", Operation.CREATE, "new-1"),
    ]


async def test_failed_persist_notifies_failed(make_editor, data_service):
    data_service.save_response = ServiceResponse(False, friendly_message="Duplicate name")
    notified = []
    editor = await _ready_editor(make_editor)
    editor.on("POST_SAVE", lambda op, rid, data: notified.append((op, rid, data)))

    result = await editor.save()

    assert result.status == SaveStatus.FAILED
    assert notified == [(Operation.FAILED, "", {})]
    assert editor.phase == Phase.READY


async def test_failing_post_save_callback_does_not_stop_others(make_editor, caplog):
    reached = []

    def broken(op, rid, data):
        raise RuntimeError("listener bug")

    editor = await _ready_editor(make_editor, on_post_save=broken)
    editor.on("POST_SAVE", lambda op, rid, data: reached.append(rid))

    with caplog.at_level(logging.ERROR):
        result = await editor.save()

    assert result.status == SaveStatus.SAVED
    assert reached == ["new-1"]
    assert "listener bug" in caplog.text


async def test_views_refresh_after_save(make_editor):
    view = FakeView("grid")
    editor = await _ready_editor(make_editor)
    editor.add_dependent_view(view)

    await editor.save()

    assert view.refresh_count == 1


async def test_snapshot_not_replaced_after_save(make_editor):
    editor = await _ready_editor(make_editor)
    await editor.save()
    assert editor.snapshot is None
    assert editor.is_submitted is True


# ─── Errors ──────────────────────────────────────────────────────

async def test_transport_error_propagates_and_resets_phase(make_editor, data_service):
    data_service.create = AsyncMock(side_effect=httpx.ConnectError("down"))
    editor = await _ready_editor(make_editor)

    with pytest.raises(httpx.ConnectError):
        await editor.save()
    assert editor.phase == Phase.READY


# ─── save_silent ─────────────────────────────────────────────────

async def test_save_silent_skips_validation_and_state(make_editor, data_service):
    editor = make_editor()
    await editor.start()
    before = editor.state
    notified = []
    editor.on("POST_SAVE", lambda *args: notified.append(args))

    data = await editor.save_silent({"quiet": True})

    assert data["WidgetId"] == "new-1"
    assert data_service.create_calls[0][2] == {"quiet": True}
    assert editor.state == before
    assert notified == []
