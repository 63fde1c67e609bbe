"""Extension Registries: listeners, dependent views and required-field overrides.

Invariants:
    - One set of registries per editor; nothing here is module-global
    - Event listeners are append-only and kept in registration order, never deduplicated
    - Dependent views are unique by view_id; re-registering replaces the old entry
    - Iteration helpers return tuple copies so callers can mutate during notification
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from formbuilder.core.service_protocols import DependentView


def _event_key(event_name: str | Enum) -> str:
    return event_name.value if isinstance(event_name, Enum) else event_name


@dataclass(frozen=True)
class EventListener:
    event_name: str
    callback: Callable[..., Any]


class EventListeners:
    """Ordered, append-only listener list."""

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []

    def on(self, event_name: str, callback: Callable[..., Any]) -> None:
        self._listeners.append(EventListener(_event_key(event_name), callback))

    def listeners_for(self, event_name: str) -> tuple[Callable[..., Any], ...]:
        name = _event_key(event_name)
        return tuple(
            entry.callback for entry in self._listeners
            if entry.event_name == name
        )

    def __len__(self) -> int:
        return len(self._listeners)


class DependentViews:
    """Views that must refresh whenever the record changes."""

    def __init__(self) -> None:
        self._views: list[DependentView] = []

    def add(self, view: DependentView) -> None:
        self._views = [v for v in self._views if v.view_id != view.view_id]
        self._views.append(view)

    def snapshot(self) -> tuple[DependentView, ...]:
        return tuple(self._views)

    def __len__(self) -> int:
        return len(self._views)


class RequiredFields:
    """Field names treated as required regardless of the schema."""

    def __init__(self) -> None:
        self._names: list[str] = []

    def add(self, name: str) -> None:
        if name not in self._names:
            self._names.append(name)

    def remove(self, name: str) -> None:
        self._names = [n for n in self._names if n != name]

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self):
        return iter(tuple(self._names))

    def __len__(self) -> int:
        return len(self._names)
