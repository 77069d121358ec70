"""Key-value storage for conversation state."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

V = TypeVar("V")


class StateStore(ABC, Generic[V]):
    """
    Storage keyed by conversation (or user) id.

    The in-memory implementation is only safe within one process running one
    event loop; multi-instance deployments need a shared backend behind this
    same interface.
    """

    @abstractmethod
    def get(self, key: str) -> V | None:
        """Return the stored value or None."""

    @abstractmethod
    def set(self, key: str, value: V) -> None:
        """Store value under key, replacing any previous one."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key if present."""


class InMemoryStateStore(StateStore[V]):
    """Process-local dict store."""

    def __init__(self) -> None:
        self._data: dict[str, V] = {}

    def get(self, key: str) -> V | None:
        return self._data.get(key)

    def set(self, key: str, value: V) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data
