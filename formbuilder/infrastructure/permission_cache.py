"""Permission Cache: table grant levels fetched once per table.

Invariants:
    - At most one remote permission call per table for the life of the cache
    - invalidate() drops one table (or all) so grants can be re-read after a role change
"""

from typing import Protocol

from formbuilder.schemas.data_api import TablePermissions


class TablePermissionSource(Protocol):
    async def get_table_permissions(self, table_name: str) -> TablePermissions: ...


class PermissionCache:
    """PermissionService that memoizes a TablePermissionSource."""

    def __init__(self, source: TablePermissionSource):
        self._source = source
        self._grants: dict[str, TablePermissions] = {}

    async def get_table_permissions(self, table_name: str) -> TablePermissions:
        if table_name not in self._grants:
            self._grants[table_name] = await self._source.get_table_permissions(
                table_name,
            )
        return self._grants[table_name]

    async def get_create_permission(self, table_name: str) -> str:
        return (await self.get_table_permissions(table_name)).create

    def invalidate(self, table_name: str | None = None) -> None:
        if table_name is None:
            self._grants.clear()
        else:
            self._grants.pop(table_name, None)
