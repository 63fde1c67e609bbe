"""Record State Container: holds the current EditState and applies actions to it.

Invariants:
    - The only way to change state is dispatch(action); reduce() does the work
    - Subscribers are called after every transition, in subscription order,
      with the new state
"""

import logging
from typing import Callable

from formbuilder.core.edit_state import Action, EditState, reduce

logger = logging.getLogger(__name__)


class RecordStateContainer:
    """Imperative shell around the pure reduce() transition function."""

    def __init__(self, initial: EditState | None = None):
        self._state = initial or EditState()
        self._subscribers: list[Callable[[EditState], None]] = []

    @property
    def state(self) -> EditState:
        return self._state

    def subscribe(self, callback: Callable[[EditState], None]) -> None:
        self._subscribers.append(callback)

    def dispatch(self, action: Action) -> EditState:
        self._state = reduce(self._state, action)
        logger.debug(
            "State transition",
            extra={
                "action": type(action).__name__,
                "phase": self._state.phase.value,
                "table_name": self._state.table_name,
            },
        )
        for callback in tuple(self._subscribers):
            callback(self._state)
        return self._state
