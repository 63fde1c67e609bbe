"""Editor Context: per-editor options, collaborators and registries shared by the orchestrators.

Invariants:
    - One EditorContext per RecordEditor; nothing here is shared across editors
    - The pending snapshot slot holds at most one entry (latest wins)
    - Dependent views are refreshed from a tuple copy, in registration order
"""

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

from formbuilder.core.edit_buffer import (
    FieldDefault, build_edit_buffer, lookup_labels_to_prewarm,
)
from formbuilder.core.record_schema import TableSchema
from formbuilder.core.registries import DependentViews, EventListeners, RequiredFields
from formbuilder.core.save_hooks import PostSaveHook, PreSaveHook
from formbuilder.core.service_protocols import (
    DataService, LookupService, PermissionService, SchemaService,
)
from formbuilder.services.state_container import RecordStateContainer

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def call_maybe_async(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callback and return its (awaited) result."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass(frozen=True)
class EditorOptions:
    """Caller configuration for one editor."""
    table_name: str | None
    record_id: str | None = None
    metadata: TableSchema | None = None
    snapshot: dict | None = None
    defaults: tuple[FieldDefault, ...] = ()
    can_update: bool | None = None
    can_create: bool | None = None
    force_loading: bool = False
    on_pre_save: PreSaveHook | None = None
    on_post_save: PostSaveHook | None = None


@dataclass(frozen=True)
class Collaborators:
    """Remote services the editor talks to."""
    schema_service: SchemaService
    data_service: DataService
    permission_service: PermissionService
    lookup_service: LookupService | None = None


@dataclass(frozen=True)
class PendingSnapshot:
    snapshot: dict | None
    force_loading: bool = False


@dataclass
class EditorContext:
    """Everything an orchestrator needs, owned by one RecordEditor."""
    options: EditorOptions
    services: Collaborators
    container: RecordStateContainer = field(default_factory=RecordStateContainer)
    listeners: EventListeners = field(default_factory=EventListeners)
    views: DependentViews = field(default_factory=DependentViews)
    required_fields: RequiredFields = field(default_factory=RequiredFields)
    clock: Callable[[], datetime] = utc_now
    pending_snapshot: PendingSnapshot | None = None

    def take_pending_snapshot(self) -> PendingSnapshot | None:
        pending, self.pending_snapshot = self.pending_snapshot, None
        return pending

    async def synthesize(self, schema: TableSchema, snapshot: dict | None) -> dict:
        """Build an edit buffer, pre-warming default lookup labels first."""
        lookup = self.services.lookup_service
        if lookup is not None:
            for req in lookup_labels_to_prewarm(schema, self.options.defaults):
                await lookup.resolve_label(
                    req.field, req.lookup_table, req.name_field, req.record_id,
                )
        return build_edit_buffer(
            schema, snapshot, self.options.defaults, self.clock(),
        )

    async def refresh_dependent_views(self) -> None:
        for view in self.views.snapshot():
            logger.debug(
                "Refreshing dependent view", extra={"view_id": view.view_id},
            )
            await call_maybe_async(view.refresh)
