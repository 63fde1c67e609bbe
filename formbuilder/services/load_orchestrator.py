"""Load Orchestrator: metadata, record, permissions and defaults sequenced into one READY state.

Invariants:
    - No table configured: load is a no-op
    - A non-refresh load moves to LOADING at once, with a provisional buffer when
      the schema is already known
    - A read that reports succeeded=False aborts the load and leaves the phase as it is
      (a load that already entered LOADING stays there; check `phase`)
    - Zero rows is a missing record: can_read=False with a message naming the table
    - Only the "NONE" grant disables create; caller overrides can only disable
    - A caller-supplied snapshot decides can_update even when a refresh re-read the row
    - Dependent views refresh BEFORE LoadComplete is dispatched
    - A snapshot assigned before the schema was known is replayed once after LoadComplete
    - Transport exceptions propagate to the caller untouched
"""

import logging

from formbuilder.core.domain_types import LoadOutcome, NO_PERMISSION
from formbuilder.core.edit_buffer import snapshot_can_update
from formbuilder.core.edit_state import (
    LoadComplete, ReadAccess, SetDataToEdit, StartLoad,
)
from formbuilder.core.service_protocols import ReadQuery
from formbuilder.services.editor_context import EditorContext, PendingSnapshot

logger = logging.getLogger(__name__)


def missing_record_message(table_name: str) -> str:
    return (
        "This record doesn't exist or you are missing the required "
        f"permissions to access {table_name}"
    )


class LoadOrchestrator:
    """Drives load, refresh and snapshot assignment for one editor."""

    def __init__(self, ctx: EditorContext):
        self.ctx = ctx

    async def load(
        self,
        record_id=None,
        *,
        is_refresh: bool = False,
        refresh_dependent_views: bool = False,
        force_loading: bool | None = None,
    ) -> LoadOutcome:
        opts = self.ctx.options
        container = self.ctx.container
        table = opts.table_name
        if not table:
            logger.debug("Load skipped: no table configured")
            return LoadOutcome.SKIPPED

        prior = container.state
        if not is_refresh:
            provisional = None
            if prior.metadata is not None:
                provisional = await self.ctx.synthesize(prior.metadata, None)
            container.dispatch(StartLoad(
                table_name=table,
                data=provisional,
                force_loading=(
                    force_loading if force_loading is not None
                    else opts.force_loading
                ),
            ))

        schema = opts.metadata
        if schema is None:
            schema = await self.ctx.services.schema_service.fetch_schema(table)

        snapshot = opts.snapshot
        missing = False
        can_update = False
        target_id = prior.record_id if is_refresh else record_id
        if target_id is None and is_refresh:
            target_id = record_id

        if (opts.snapshot is None and record_id is not None) or is_refresh:
            if target_id is not None:
                resp = await self.ctx.services.data_service.read(
                    table,
                    ReadQuery(fields=("*",), page=1, max_results=1, id=str(target_id)),
                )
                if not resp.succeeded:
                    logger.warning(
                        "Record read failed, load aborted",
                        extra={
                            "table_name": table,
                            "record_id": str(target_id),
                            "phase": container.state.phase.value,
                        },
                    )
                    return LoadOutcome.ABORTED
                rows = resp.results
                if not rows:
                    missing = True
                    snapshot = None
                else:
                    snapshot = rows[0]
                    can_update = snapshot_can_update(snapshot)
        if opts.snapshot is not None:
            can_update = snapshot_can_update(opts.snapshot)

        grant = await self.ctx.services.permission_service.get_create_permission(table)
        can_create = grant != NO_PERMISSION

        if opts.can_update is False:
            can_update = False
        if opts.can_create is False:
            can_create = False

        if refresh_dependent_views:
            await self.ctx.refresh_dependent_views()

        data = await self.ctx.synthesize(schema, snapshot)
        container.dispatch(LoadComplete(
            metadata=schema,
            snapshot=snapshot,
            data=data,
            can_update=can_update,
            can_create=can_create,
            can_read=(
                ReadAccess(False, missing_record_message(table)) if missing
                else ReadAccess(True, "")
            ),
        ))
        logger.info(
            "Record loaded" if not missing else "Record missing",
            extra={
                "table_name": table,
                "record_id": None if target_id is None else str(target_id),
                "operation": container.state.operation.value,
            },
        )

        pending = self.ctx.take_pending_snapshot()
        if pending is not None:
            await self.assign_snapshot(pending.snapshot, pending.force_loading)

        return LoadOutcome.MISSING if missing else LoadOutcome.LOADED

    async def assign_snapshot(
        self, snapshot: dict | None, force_loading: bool = False,
    ) -> bool:
        """Replace the snapshot and rebuild the buffer; queue it if no schema yet."""
        schema = self.ctx.container.state.metadata
        if schema is None:
            self.ctx.pending_snapshot = PendingSnapshot(snapshot, force_loading)
            logger.debug(
                "Snapshot queued until metadata is loaded",
                extra={"table_name": self.ctx.options.table_name},
            )
            return False

        data = await self.ctx.synthesize(schema, snapshot)
        self.ctx.container.dispatch(SetDataToEdit(
            data=data,
            snapshot=snapshot,
            can_update=self.ctx.options.can_update,
            force_loading=force_loading,
        ))
        return True
