"""Record Editor: the public face of the engine, one instance per edited record.

Invariants:
    - Owns exactly one state container, one set of registries and one pending-snapshot slot
    - Every state change goes through the container; reads are snapshots of EditState
    - operation is CREATE until a snapshot is held (caller-supplied or loaded)

Design Decisions:
    - Load and save logic live in LoadOrchestrator / SaveOrchestrator; this class wires
      them together and exposes the consumer-facing properties
"""

import logging
from datetime import datetime
from typing import Any, Callable, Iterable

from formbuilder.core.domain_types import (
    FieldValue, LoadOutcome, Operation, Phase,
)
from formbuilder.core.edit_buffer import FieldDefault
from formbuilder.core.edit_state import (
    AddValidationMessage, ClearEdits, ClearRecord, EditState, ReadAccess,
    SetFieldValue, SetForceLoading,
)
from formbuilder.core.errors import ErrorContext, SchemaNotLoadedError
from formbuilder.core.record_schema import TableSchema
from formbuilder.core.save_hooks import PostSaveHook, PreSaveHook, SaveResult
from formbuilder.core.service_protocols import (
    DataService, DependentView, LookupService, PermissionService, SchemaService,
)
from formbuilder.core.validate_record import ValidationMessage
from formbuilder.services.editor_context import (
    Collaborators, EditorContext, EditorOptions, utc_now,
)
from formbuilder.services.load_orchestrator import LoadOrchestrator
from formbuilder.services.save_orchestrator import SaveOrchestrator

logger = logging.getLogger(__name__)


class RecordEditor:
    """Load, edit, validate and save one record of one table."""

    def __init__(
        self,
        table_name: str | None,
        *,
        schema_service: SchemaService,
        data_service: DataService,
        permission_service: PermissionService,
        lookup_service: LookupService | None = None,
        record_id: str | None = None,
        metadata: TableSchema | None = None,
        snapshot: dict | None = None,
        defaults: Iterable[FieldDefault] = (),
        can_update: bool | None = None,
        can_create: bool | None = None,
        force_loading: bool = False,
        on_pre_save: PreSaveHook | None = None,
        on_post_save: PostSaveHook | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._ctx = EditorContext(
            options=EditorOptions(
                table_name=table_name,
                record_id=record_id,
                metadata=metadata,
                snapshot=snapshot,
                defaults=tuple(defaults),
                can_update=can_update,
                can_create=can_create,
                force_loading=force_loading,
                on_pre_save=on_pre_save,
                on_post_save=on_post_save,
            ),
            services=Collaborators(
                schema_service=schema_service,
                data_service=data_service,
                permission_service=permission_service,
                lookup_service=lookup_service,
            ),
            clock=clock,
        )
        self._loader = LoadOrchestrator(self._ctx)
        self._saver = SaveOrchestrator(self._ctx)

    @classmethod
    def from_client(cls, table_name: str | None, client, **kwargs) -> "RecordEditor":
        """Wire an editor to a DataApiClient with permission and lookup caches."""
        from formbuilder.infrastructure.lookup_cache import LookupLabelCache
        from formbuilder.infrastructure.permission_cache import PermissionCache

        kwargs.setdefault("permission_service", PermissionCache(client))
        kwargs.setdefault("lookup_service", LookupLabelCache(client))
        return cls(
            table_name, schema_service=client, data_service=client, **kwargs,
        )

    # --- Consumer-facing state -------------------------------------------------

    @property
    def state(self) -> EditState:
        return self._ctx.container.state

    @property
    def table_name(self) -> str | None:
        return self._ctx.options.table_name

    @property
    def metadata(self) -> TableSchema | None:
        return self.state.metadata

    @property
    def snapshot(self) -> dict | None:
        return self.state.snapshot

    @property
    def data(self) -> dict | None:
        return self.state.data

    @property
    def defaults(self) -> tuple[FieldDefault, ...]:
        return self._ctx.options.defaults

    @property
    def can_update(self) -> bool:
        return self.state.can_update

    @property
    def can_create(self) -> bool:
        return self.state.can_create

    @property
    def can_read(self) -> ReadAccess:
        return self.state.can_read

    @property
    def validation_messages(self) -> tuple[ValidationMessage, ...]:
        return self.state.validation_messages

    @property
    def is_loading(self) -> bool:
        return self.state.is_loading

    @property
    def is_submitted(self) -> bool:
        return self.state.is_submitted

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def operation(self) -> Operation:
        if self._ctx.options.snapshot is not None:
            return Operation.UPDATE
        return self.state.operation

    def subscribe(self, callback: Callable[[EditState], None]) -> None:
        """Be told about every state transition."""
        self._ctx.container.subscribe(callback)

    # --- Loading ---------------------------------------------------------------

    async def start(self) -> LoadOutcome:
        """Initial load for the configured record id (if any)."""
        return await self._loader.load(self._ctx.options.record_id)

    async def load(
        self,
        record_id=None,
        *,
        is_refresh: bool = False,
        refresh_dependent_views: bool = False,
        force_loading: bool | None = None,
    ) -> LoadOutcome:
        return await self._loader.load(
            record_id,
            is_refresh=is_refresh,
            refresh_dependent_views=refresh_dependent_views,
            force_loading=force_loading,
        )

    async def load_record(
        self, record_id, force_loading: bool | None = None,
    ) -> LoadOutcome:
        """Load another record and refresh dependent views alongside."""
        return await self._loader.load(
            record_id, refresh_dependent_views=True, force_loading=force_loading,
        )

    async def reload(self, refresh_dependent_views: bool = True) -> LoadOutcome:
        """Re-read the current record from the data service."""
        return await self._loader.load(
            self.state.record_id,
            is_refresh=True,
            refresh_dependent_views=refresh_dependent_views,
        )

    async def assign_snapshot(
        self, snapshot: dict | None, force_loading: bool = False,
    ) -> bool:
        return await self._loader.assign_snapshot(snapshot, force_loading)

    # --- Editing ---------------------------------------------------------------

    def set_field(self, name: str, value: FieldValue) -> None:
        self._ctx.container.dispatch(SetFieldValue(name, value))

    def set_field_error(self, field: str, message: str) -> None:
        self._ctx.container.dispatch(
            AddValidationMessage(ValidationMessage(field, message)),
        )

    def is_dirty(self, name: str | None = None) -> bool:
        dirty = self.state.dirty_fields
        if name is None:
            return len(dirty) > 0
        return name in dirty

    def clear_edits(self) -> None:
        """Drop every edit since the last load or snapshot assignment."""
        self._ctx.container.dispatch(ClearEdits())

    async def clear(self) -> None:
        """Forget the current record and start a new one from defaults."""
        schema = self.state.metadata
        if schema is None:
            raise SchemaNotLoadedError(
                "clear", ErrorContext(table_name=self.table_name),
            )
        data = await self._ctx.synthesize(schema, None)
        self._ctx.container.dispatch(ClearRecord(data))

    def set_force_loading(self, loading: bool) -> None:
        self._ctx.container.dispatch(SetForceLoading(loading))

    # --- Validation & saving ---------------------------------------------------

    def validate(self) -> bool:
        return self._saver.validate()

    async def save(
        self,
        pre_validate: PreSaveHook | None = None,
        pre_save: PreSaveHook | None = None,
        post_save: PostSaveHook | None = None,
    ) -> SaveResult:
        return await self._saver.save(pre_validate, pre_save, post_save)

    async def save_silent(self, parameters: dict | None = None) -> Any:
        return await self._saver.save_silent(parameters)

    # --- Extension points ------------------------------------------------------

    def on(self, event_name: str, callback: Callable[..., Any]) -> None:
        self._ctx.listeners.on(event_name, callback)

    def add_dependent_view(self, view: DependentView) -> None:
        self._ctx.views.add(view)

    def add_required_field(self, name: str) -> None:
        self._ctx.required_fields.add(name)

    def remove_required_field(self, name: str) -> None:
        self._ctx.required_fields.remove(name)

    async def refresh_dependent_views(self) -> None:
        await self._ctx.refresh_dependent_views()
