"""Shared fixtures for service tests."""

import pytest

from formbuilder.services.record_editor import RecordEditor
from tests.services.fakes import (
    FakeDataService, FakeLookupService, FakePermissionService,
    FakeSchemaService, fixed_clock,
)


@pytest.fixture
def schema_service():
    return FakeSchemaService()


@pytest.fixture
def data_service():
    return FakeDataService()


@pytest.fixture
def permission_service():
    return FakePermissionService()


@pytest.fixture
def lookup_service():
    return FakeLookupService()


@pytest.fixture
def make_editor(schema_service, data_service, permission_service, lookup_service):
    """Factory: build a RecordEditor wired to the in-memory fakes."""
    def _make(table_name="Widget", **kwargs) -> RecordEditor:
        kwargs.setdefault("schema_service", schema_service)
        kwargs.setdefault("data_service", data_service)
        kwargs.setdefault("permission_service", permission_service)
        kwargs.setdefault("lookup_service", lookup_service)
        kwargs.setdefault("clock", fixed_clock)
        return RecordEditor(table_name, **kwargs)
    return _make
