"""Port describing the durable existence-marker store."""

from __future__ import annotations

from typing import Protocol


class DurableStorePort(Protocol):
    """Key/value store whose contents survive a process restart."""

    def put(self, key: str, value: bool) -> None:
        """Persist ``value`` under ``key``."""

    def get(self, key: str) -> bool | None:
        """Return the stored value, or None when absent."""

    def delete(self, key: str) -> None:
        """Remove ``key``; absent keys are ignored."""

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        """Return all stored keys starting with ``prefix``."""


__all__ = ["DurableStorePort"]
