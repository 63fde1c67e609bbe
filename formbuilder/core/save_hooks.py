"""Save Hooks: the tagged result type hooks return, the callback signatures and SaveResult.

Invariants:
    - A hook either Proceeds (optionally contributing parameters) or Cancels; nothing else
    - merge_parameters never mutates its inputs; later hooks win on key collisions
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from formbuilder.core.domain_types import Operation, SaveStatus
from formbuilder.core.validate_record import ValidationMessage


@dataclass(frozen=True)
class Proceed:
    """Continue the save, merging `parameters` into the request parameter bag."""
    parameters: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Cancel:
    """Stop the save. Not an error."""
    reason: str = ""


HookResult = Union[Proceed, Cancel]


@dataclass(frozen=True)
class SaveResult:
    """What a save did. `record_id` and `data` are only set after a persist call."""
    status: SaveStatus
    operation: Operation | None = None
    record_id: str = ""
    data: dict = field(default_factory=dict)
    messages: tuple[ValidationMessage, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == SaveStatus.SAVED

# Hooks may be plain functions or coroutines.
PreSaveHook = Callable[[dict], Union[HookResult, Awaitable[HookResult]]]
PostSaveHook = Callable[[Operation, str, dict], Union[None, Awaitable[None]]]


def merge_parameters(bag: dict[str, Any], result: HookResult) -> dict[str, Any]:
    if isinstance(result, Proceed):
        return {**bag, **result.parameters}
    return dict(bag)


def check_hook_result(result: Any, hook_name: str) -> HookResult:
    """Reject anything that is not a Proceed or Cancel."""
    if isinstance(result, (Proceed, Cancel)):
        return result
    raise TypeError(
        f"{hook_name} must return Proceed or Cancel, got {type(result).__name__}",
    )
