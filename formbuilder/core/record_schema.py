"""Record Schema: immutable field descriptors for one table.

Invariants:
    - A TableSchema never changes after it is built; field order is preserved
    - Field types the engine does not know are kept as raw strings
"""

from dataclasses import dataclass

from formbuilder.core.domain_types import FieldType, NUMERIC_TYPES


@dataclass(frozen=True)
class FieldDescriptor:
    """One column of a table, as described by the metadata service."""
    name: str
    type: FieldType | str
    display_name: str = ""
    is_nullable: bool = True
    is_required: bool = False
    lookup_table: str | None = None
    lookup_table_name_field: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.name

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.type, FieldType) and self.type in NUMERIC_TYPES

    @property
    def is_lookup(self) -> bool:
        return self.type == FieldType.LOOKUP


@dataclass(frozen=True)
class TableSchema:
    """Ordered field descriptors for one table."""
    table_name: str
    fields: tuple[FieldDescriptor, ...] = ()

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def get(self, name: str) -> FieldDescriptor | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def has_field(self, name: str) -> bool:
        return self.get(name) is not None


def parse_field_type(raw: str) -> FieldType | str:
    """Map a wire type name to FieldType, keeping unknown names as-is."""
    try:
        return FieldType(raw)
    except ValueError:
        return raw
