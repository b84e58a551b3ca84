"""Durable existence-marker stores."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import Lock

from sse_relay.application.ports.durable_store import DurableStorePort
from sse_relay.domain.exceptions import DurableStoreError

logger = logging.getLogger("sse_relay.state")


class InMemoryDurableStore(DurableStorePort):
    """Process-local store; contents are lost on restart."""

    def __init__(self) -> None:
        self._values: dict[str, bool] = {}
        self._lock = Lock()

    def put(self, key: str, value: bool) -> None:
        with self._lock:
            self._values[key] = value

    def get(self, key: str) -> bool | None:
        with self._lock:
            return self._values.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        with self._lock:
            return tuple(key for key in self._values if key.startswith(prefix))


class FileDurableStore(DurableStorePort):
    """JSON-file store rewritten atomically on every mutation."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = Lock()
        self._values = self._load(path)

    # ------------------------------------------------------------------
    # public API

    def put(self, key: str, value: bool) -> None:
        with self._lock:
            updated = dict(self._values)
            updated[key] = value
            self._write(updated)
            self._values = updated

    def get(self, key: str) -> bool | None:
        with self._lock:
            return self._values.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            if key not in self._values:
                return
            updated = dict(self._values)
            del updated[key]
            self._write(updated)
            self._values = updated

    def keys(self, prefix: str = "") -> tuple[str, ...]:
        with self._lock:
            return tuple(key for key in self._values if key.startswith(prefix))

    # ------------------------------------------------------------------
    # helpers

    def _load(self, path: Path) -> dict[str, bool]:
        if not path.exists():
            return {}
        text = path.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        try:
            data = json.loads(text)
        except ValueError as exc:
            raise ValueError(f"durable store {path} contains invalid JSON") from exc
        if not isinstance(data, dict):
            raise ValueError(f"durable store {path} must contain a JSON object")
        logger.info(
            "loaded durable store",
            extra={"data": {"path": str(path), "entries": len(data)}},
        )
        return {str(key): bool(value) for key, value in data.items()}

    def _write(self, values: dict[str, bool]) -> None:
        tmp_path = Path(f"{self._path}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(values, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            raise DurableStoreError(f"failed to write durable store {self._path}: {exc}") from exc


__all__ = ["FileDurableStore", "InMemoryDurableStore"]
