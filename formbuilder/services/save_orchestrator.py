"""Save Orchestrator: pre-save interception, validation, persistence and post-save fan-out.

Invariants:
    - Step order: pre_validate -> validate -> SUBMITTING -> instance pre-save hook ->
      PRE_SAVE listeners -> call-site pre_save -> create/update -> post-save fan-out ->
      READY -> dependent view refresh
    - pre_validate Cancel: nothing changes (phase, buffer, dirty set all untouched)
    - Any later Cancel (or a PRE_SAVE listener returning False) moves to
      SUBMIT_CANCELLED and stops; remaining listeners are not called
    - Post-save fan-out order: instance hook -> POST_SAVE listeners -> call-site hook,
      all with the same (operation, record_id, data); return values ignored
    - succeeded=False persists fan out ("FAILED", "", {}) and do not raise
    - A save while another save() call is in flight is rejected without side effects,
      including overlap during an awaited pre_validate hook
    - An interceptor that raises moves to SUBMIT_CANCELLED before the error propagates;
      a persist call that raises moves back to READY
    - Cancellation never touches the edit buffer or the dirty set
"""

import logging

from formbuilder.core.domain_types import (
    Operation, SaveEvent, SaveStatus, id_field_for,
)
from formbuilder.core.edit_state import (
    SetValidationMessages, SubmitCancelled, SubmitComplete, SubmitStarted,
)
from formbuilder.core.errors import ErrorContext, SchemaNotLoadedError
from formbuilder.core.save_hooks import (
    Cancel, PostSaveHook, PreSaveHook, SaveResult,
    check_hook_result, merge_parameters,
)
from formbuilder.core.service_protocols import ServiceResponse
from formbuilder.core.validate_record import validate_edit_buffer
from formbuilder.services.editor_context import EditorContext, call_maybe_async

logger = logging.getLogger(__name__)


class SaveOrchestrator:
    """Validation and persistence for one editor."""

    def __init__(self, ctx: EditorContext):
        self.ctx = ctx
        self._in_flight = False

    def validate(self) -> bool:
        """Run the validator and publish its messages. True when valid."""
        state = self.ctx.container.state
        if state.metadata is None:
            raise SchemaNotLoadedError(
                "validate", ErrorContext(table_name=self.ctx.options.table_name),
            )
        messages = validate_edit_buffer(
            state.metadata, state.data or {}, self.ctx.required_fields,
        )
        self.ctx.container.dispatch(SetValidationMessages(messages))
        if messages:
            for m in messages:
                logger.warning(
                    m.message,
                    extra={"table_name": state.metadata.table_name},
                )
            return False
        return True

    async def save(
        self,
        pre_validate: PreSaveHook | None = None,
        pre_save: PreSaveHook | None = None,
        post_save: PostSaveHook | None = None,
    ) -> SaveResult:
        start = self.ctx.container.state
        if self._in_flight:
            logger.warning(
                "Save rejected: another save is in flight",
                extra={"table_name": start.table_name, "phase": start.phase.value},
            )
            return SaveResult(SaveStatus.REJECTED)
        if start.metadata is None:
            raise SchemaNotLoadedError(
                "save", ErrorContext(table_name=self.ctx.options.table_name),
            )

        self._in_flight = True
        try:
            return await self._run_save(pre_validate, pre_save, post_save)
        finally:
            self._in_flight = False

    async def _run_save(
        self,
        pre_validate: PreSaveHook | None,
        pre_save: PreSaveHook | None,
        post_save: PostSaveHook | None,
    ) -> SaveResult:
        container = self.ctx.container
        start = container.state

        # ── Step 1-2: payload + pre-validate hook ──
        submission = dict(start.data or {})
        parameters: dict = {}
        if pre_validate is not None:
            result = check_hook_result(
                await call_maybe_async(pre_validate, submission), "pre_validate",
            )
            if isinstance(result, Cancel):
                return SaveResult(SaveStatus.ABORTED)
            parameters = merge_parameters(parameters, result)

        # ── Step 3: validate ──
        if not self.validate():
            return SaveResult(
                SaveStatus.INVALID,
                messages=container.state.validation_messages,
            )

        # ── Step 4-7: submitting, cancellable interceptors ──
        container.dispatch(SubmitStarted())
        try:
            parameters = await self._intercept(submission, parameters, pre_save)
        except Exception:
            container.dispatch(SubmitCancelled())
            raise
        if parameters is None:
            return SaveResult(SaveStatus.CANCELLED)

        # ── Step 8: persist ──
        operation = start.operation
        table = start.metadata.table_name
        try:
            resp = await self._persist(operation, table, submission, parameters)
        except Exception:
            container.dispatch(SubmitComplete())
            raise

        # ── Step 9-11: fan-out, complete, refresh ──
        if resp.succeeded:
            data = resp.data if isinstance(resp.data, dict) else {}
            new_id = data.get(id_field_for(table))
            record_id = "" if new_id is None else str(new_id)
            await self._notify_post_save(post_save, operation, record_id, data)
            outcome = SaveResult(SaveStatus.SAVED, operation, record_id, data)
            logger.info(
                "Record saved",
                extra={
                    "table_name": table,
                    "record_id": record_id,
                    "operation": operation.value,
                },
            )
        else:
            await self._notify_post_save(post_save, Operation.FAILED, "", {})
            outcome = SaveResult(SaveStatus.FAILED, operation)
            logger.warning(
                f"Save failed: {resp.friendly_message or resp.log_message or 'no message'}",
                extra={"table_name": table, "operation": operation.value},
            )

        container.dispatch(SubmitComplete())
        await self.ctx.refresh_dependent_views()
        return outcome

    async def save_silent(self, parameters: dict | None = None):
        """Persist the current buffer: no validation, no hooks, no state change."""
        state = self.ctx.container.state
        if state.metadata is None:
            raise SchemaNotLoadedError(
                "save", ErrorContext(table_name=self.ctx.options.table_name),
            )
        resp = await self._persist(
            state.operation, state.metadata.table_name,
            dict(state.data or {}), parameters or {},
        )
        return resp.data

    async def _intercept(
        self, submission: dict, parameters: dict, pre_save: PreSaveHook | None,
    ) -> dict | None:
        """Run the cancellable interceptors. None means the save was cancelled."""
        if self.ctx.options.on_pre_save is not None:
            result = check_hook_result(
                await call_maybe_async(self.ctx.options.on_pre_save, submission),
                "on_pre_save",
            )
            if isinstance(result, Cancel):
                return self._cancelled("on_pre_save")
            parameters = merge_parameters(parameters, result)

        for listener in self.ctx.listeners.listeners_for(SaveEvent.PRE_SAVE):
            if await call_maybe_async(listener, submission, parameters) is False:
                return self._cancelled("PRE_SAVE listener")

        if pre_save is not None:
            result = check_hook_result(
                await call_maybe_async(pre_save, submission), "pre_save",
            )
            if isinstance(result, Cancel):
                return self._cancelled("pre_save")
            parameters = merge_parameters(parameters, result)
        return parameters

    async def _persist(
        self, operation: Operation, table: str, fields: dict, parameters: dict,
    ) -> ServiceResponse:
        data_service = self.ctx.services.data_service
        if operation == Operation.CREATE:
            return await data_service.create(table, fields, parameters)
        return await data_service.update(table, fields, parameters)

    def _cancelled(self, source: str) -> None:
        self.ctx.container.dispatch(SubmitCancelled())
        logger.info(
            f"Save cancelled by {source}",
            extra={"table_name": self.ctx.container.state.table_name},
        )

    async def _notify_post_save(
        self,
        post_save: PostSaveHook | None,
        operation: Operation,
        record_id: str,
        data: dict,
    ) -> None:
        """Instance hook, then POST_SAVE listeners, then the call-site hook.

        A failing callback is logged and the remaining ones still run.
        """
        callbacks = []
        if self.ctx.options.on_post_save is not None:
            callbacks.append(self.ctx.options.on_post_save)
        callbacks.extend(self.ctx.listeners.listeners_for(SaveEvent.POST_SAVE))
        if post_save is not None:
            callbacks.append(post_save)

        for callback in callbacks:
            try:
                await call_maybe_async(callback, operation, record_id, data)
            except Exception as e:
                logger.error(
                    f"Post-save callback failed: {e}",
                    extra={"operation": operation.value},
                    exc_info=True,
                )
