"""Bounded history of completed quiz sessions."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, List, Protocol, Sequence

from ..errors import HistoryError
from .models import HistoryItem

__all__ = [
    "MAX_HISTORY_ITEMS",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonHistoryStore",
]


MAX_HISTORY_ITEMS = 50
_HISTORY_FILENAME = "history.json"


class HistoryStore(Protocol):
    """Persistence surface for completed sessions, most recent first."""

    def insert_front(self, item: HistoryItem) -> None: ...

    def list_all(self) -> List[HistoryItem]: ...

    def delete_by_id(self, item_id: str) -> None: ...

    def get(self, item_id: str) -> HistoryItem | None: ...


class InMemoryHistoryStore:
    """History kept in process memory."""

    def __init__(self, limit: int = MAX_HISTORY_ITEMS) -> None:
        self._limit = limit
        self._items: List[HistoryItem] = []

    def insert_front(self, item: HistoryItem) -> None:
        self._items.insert(0, item)
        del self._items[self._limit :]

    def list_all(self) -> List[HistoryItem]:
        return list(self._items)

    def delete_by_id(self, item_id: str) -> None:
        self._items = [item for item in self._items if item.id != item_id]

    def get(self, item_id: str) -> HistoryItem | None:
        return _find(self._items, item_id)


class JsonHistoryStore:
    """History persisted as a JSON array under the workspace history dir."""

    def __init__(self, root: Path, *, limit: int = MAX_HISTORY_ITEMS) -> None:
        self._root = root
        self._limit = limit

    @property
    def path(self) -> Path:
        return self._root / _HISTORY_FILENAME

    def insert_front(self, item: HistoryItem) -> None:
        items = self._read()
        items.insert(0, item)
        self._write(items[: self._limit])

    def list_all(self) -> List[HistoryItem]:
        return self._read()

    def delete_by_id(self, item_id: str) -> None:
        items = self._read()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) != len(items):
            self._write(remaining)

    def get(self, item_id: str) -> HistoryItem | None:
        return _find(self._read(), item_id)

    def _read(self) -> List[HistoryItem]:
        target = self.path
        if not target.exists():
            return []
        try:
            payload = json.loads(target.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise HistoryError(
                f"Failed to parse history file: {target}"
            ) from exc
        except OSError as exc:
            raise HistoryError(f"Failed to read history file: {target}") from exc
        if not isinstance(payload, list):
            raise HistoryError(
                f"History file must contain a JSON array: {target}"
            )
        try:
            return [
                HistoryItem.from_dict(entry)
                for entry in payload
                if isinstance(entry, dict)
            ]
        except (TypeError, ValueError) as exc:
            raise HistoryError(
                f"History file holds an invalid entry: {target} ({exc})"
            ) from exc

    def _write(self, items: Sequence[HistoryItem]) -> None:
        try:
            _atomic_write_json(self.path, [item.to_dict() for item in items])
        except OSError as exc:
            raise HistoryError(
                f"Failed to write history file: {self.path}"
            ) from exc


def _find(items: Sequence[HistoryItem], item_id: str) -> HistoryItem | None:
    for item in items:
        if item.id == item_id:
            return item
    return None


def _atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = tempfile.NamedTemporaryFile(
        "w",
        delete=False,
        encoding="utf-8",
        dir=str(path.parent),
    )
    try:
        try:
            json.dump(payload, handle, indent=2, ensure_ascii=False)
            handle.flush()
            os.fsync(handle.fileno())
        finally:
            handle.close()
        os.replace(handle.name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(handle.name)
        raise
    try:
        path.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
