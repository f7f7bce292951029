"""Three-state lazily computed value."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Unloaded:
    """Nothing has been computed yet."""


@dataclass(frozen=True)
class Absent:
    """Computed, and confirmed to have no value. Do not re-check."""


@dataclass(frozen=True)
class Present(Generic[T]):
    value: T


LazyState = Union[Unloaded, Absent, Present[T]]


class Lazy(Generic[T]):
    """Slot holding one of Unloaded, Absent or Present(value)."""

    def __init__(self) -> None:
        self._state: LazyState[T] = Unloaded()

    @property
    def state(self) -> LazyState[T]:
        return self._state

    @property
    def loaded(self) -> bool:
        return not isinstance(self._state, Unloaded)

    def get(self) -> T | None:
        """Return the value when present, ``None`` when absent.

        Raises ``LookupError`` when nothing has been loaded yet, so callers
        cannot confuse "not checked" with "checked and empty".
        """

        state = self._state
        if isinstance(state, Present):
            return state.value
        if isinstance(state, Absent):
            return None
        raise LookupError("value has not been loaded")

    def set(self, value: T | None) -> None:
        self._state = Absent() if value is None else Present(value)

    def reset(self) -> None:
        self._state = Unloaded()
