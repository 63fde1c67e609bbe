"""Data API Schemas: Pydantic models for the remote metadata/data/permission envelopes.

Invariants:
    - Wire names are camelCase; Python attributes are snake_case (populate_by_name)
    - Unknown keys in responses are ignored, never rejected
    - to_schema() is the only path from wire metadata to the core TableSchema

Design Decisions:
    - Pydantic at the boundary only; core works on frozen dataclasses
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from formbuilder.core.record_schema import FieldDescriptor, TableSchema, parse_field_type
from formbuilder.core.service_protocols import ServiceResponse


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore",
    )


class ApiEnvelope(_WireModel):
    """Every data API response: {succeeded, friendlyMessage, logMessage, data}."""
    succeeded: bool = False
    friendly_message: str | None = None
    log_message: str | None = None
    data: Any = None

    def to_service_response(self) -> ServiceResponse:
        return ServiceResponse(
            succeeded=self.succeeded,
            data=self.data,
            friendly_message=self.friendly_message,
            log_message=self.log_message,
        )


class FieldMetadata(_WireModel):
    """One field descriptor as sent by the metadata endpoint."""
    name: str = Field(min_length=1)
    type: str
    display_name: str | None = None
    is_nullable: bool = True
    is_required: bool = False
    lookup_table: str | None = None
    lookup_table_name_field: str | None = None


class MetadataResponse(_WireModel):
    """Table metadata payload."""
    table_name: str
    fields: list[FieldMetadata] = Field(default_factory=list)

    def to_schema(self) -> TableSchema:
        return TableSchema(
            table_name=self.table_name,
            fields=tuple(
                FieldDescriptor(
                    name=f.name,
                    type=parse_field_type(f.type),
                    display_name=f.display_name or f.name,
                    is_nullable=f.is_nullable,
                    is_required=f.is_required,
                    lookup_table=f.lookup_table,
                    lookup_table_name_field=f.lookup_table_name_field,
                )
                for f in self.fields
            ),
        )


class MetadataRequest(_WireModel):
    """Body of the metadata call: {method, parameters}."""
    method: str = "table_metadata"
    parameters: dict[str, Any] = Field(default_factory=dict)


class ReadRequest(_WireModel):
    """Body of a read call."""
    table_name: str
    fields: list[str] = Field(default_factory=lambda: ["*"])
    page: int = Field(1, ge=1)
    max_results: int = Field(1, ge=1)
    id: str | None = None

    @field_validator("fields")
    @classmethod
    def fields_not_empty(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("fields cannot be empty")
        return v


class SaveRequest(_WireModel):
    """Body of a create or update call."""
    table_name: str
    fields: dict[str, Any]
    parameters: dict[str, Any] = Field(default_factory=dict)


class TablePermissions(_WireModel):
    """Grant levels for one table; "NONE" disables the operation."""
    create: str = "NONE"
    read: str = "NONE"
    update: str = "NONE"
    delete: str = "NONE"
