"""Lookup Label Cache: resolves and remembers display labels for lookup ids.

Invariants:
    - One remote read per (lookup_table, id) for the life of the cache
    - A failed or empty read caches nothing, so the next call retries
"""

import logging

from formbuilder.core.domain_types import id_field_for
from formbuilder.core.service_protocols import DataService, ReadQuery

logger = logging.getLogger(__name__)


class LookupLabelCache:
    """LookupService backed by a DataService."""

    def __init__(self, data_service: DataService):
        self._data = data_service
        self._labels: dict[tuple[str, str], str] = {}

    def cached_label(self, lookup_table: str, record_id: str) -> str | None:
        return self._labels.get((lookup_table, str(record_id)))

    async def resolve_label(
        self,
        field_name: str,
        lookup_table: str | None,
        lookup_display_field: str | None,
        record_id: str,
    ) -> str | None:
        if not lookup_table or not lookup_display_field:
            logger.warning(
                f"Lookup field '{field_name}' has no target table or display field",
            )
            return None
        key = (lookup_table, str(record_id))
        if key in self._labels:
            return self._labels[key]

        resp = await self._data.read(
            lookup_table,
            ReadQuery(
                fields=(id_field_for(lookup_table), lookup_display_field),
                id=str(record_id),
            ),
        )
        if not resp.succeeded or not resp.results:
            logger.info(
                f"No label for lookup '{field_name}' id {record_id}",
                extra={"table_name": lookup_table, "record_id": str(record_id)},
            )
            return None
        label = resp.results[0].get(lookup_display_field)
        if label is None:
            return None
        self._labels[key] = str(label)
        return self._labels[key]
