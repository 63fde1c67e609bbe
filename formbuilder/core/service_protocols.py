"""Boundary Protocols: contracts between the core and the collaborators that do IO.

Invariants:
    - Core NEVER imports from services/ or infrastructure/; dependency arrows point inward
    - All remote calls go through these Protocol types
    - Implementations are injected by the caller (see infrastructure/ for the HTTP ones)

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no base class
    - Async in Protocol: the implementations do IO; the pure functions in core that
      consume their results are never async themselves
    - An expected remote failure is a ServiceResponse with succeeded=False;
      only transport problems raise
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Protocol, Union

from formbuilder.core.record_schema import TableSchema


@dataclass(frozen=True)
class ServiceResponse:
    """Envelope returned by every data service call."""
    succeeded: bool
    data: Any = None
    friendly_message: str | None = None
    log_message: str | None = None

    @property
    def results(self) -> list[dict]:
        """Rows of a read response; empty when absent."""
        if not isinstance(self.data, dict):
            return []
        rows = self.data.get("results")
        return list(rows) if isinstance(rows, list) else []


@dataclass(frozen=True)
class ReadQuery:
    """Arguments of a data service read."""
    fields: tuple[str, ...] = ("*",)
    page: int = 1
    max_results: int = 1
    id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


class SchemaService(Protocol):
    """Fetches table metadata."""
    async def fetch_schema(self, table_name: str) -> TableSchema: ...


class DataService(Protocol):
    """Remote CRUD endpoint. Create and update hit distinct endpoints."""
    async def read(self, table_name: str, query: ReadQuery) -> ServiceResponse: ...
    async def create(
        self, table_name: str, fields: dict, parameters: dict,
    ) -> ServiceResponse: ...
    async def update(
        self, table_name: str, fields: dict, parameters: dict,
    ) -> ServiceResponse: ...


class PermissionService(Protocol):
    """Resolves table-level grants. "NONE" is the only disabling level."""
    async def get_create_permission(self, table_name: str) -> str: ...


class LookupService(Protocol):
    """Resolves and caches the display label of a lookup value."""
    async def resolve_label(
        self,
        field_name: str,
        lookup_table: str | None,
        lookup_display_field: str | None,
        record_id: str,
    ) -> str | None: ...


class DependentView(Protocol):
    """A list or table view that repaints when the record changes."""
    view_id: str

    def refresh(self) -> Union[None, Awaitable[None]]: ...
