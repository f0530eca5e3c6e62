"""File-backed record store.

One JSON file per record: ``<base_dir>/<collection>/<key>.json``. Each call
touches exactly one record; callers sequence multi-record updates
themselves. Blocking file I/O runs in a worker thread so every operation is
a single await point for the caller.
"""
from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from ..logging_conf import get_logger

__all__ = [
    "StoreError",
    "InvalidKey",
    "RecordExists",
    "RecordNotFound",
    "RecordCorrupt",
    "StoreIOError",
    "RecordStore",
]

logger = get_logger("service.store")

_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


# ------------------------
# Errors
# ------------------------
class StoreError(Exception):
    """Base class for record store failures."""

    def __init__(self, collection: str, key: str, message: str) -> None:
        super().__init__(f"{collection}/{key}: {message}")
        self.collection = collection
        self.key = key


class InvalidKey(StoreError):
    pass


class RecordExists(StoreError):
    pass


class RecordNotFound(StoreError):
    pass


class RecordCorrupt(StoreError):
    """The record exists but does not decode as a JSON object."""


class StoreIOError(StoreError):
    pass


class RecordStore:
    def __init__(self, base_dir: Path | str) -> None:
        self.base_dir = Path(base_dir)

    def _path(self, collection: str, key: str) -> Path:
        if not _KEY_RE.match(collection or ""):
            raise InvalidKey(collection, key, "invalid collection name")
        if not isinstance(key, str) or not _KEY_RE.match(key):
            raise InvalidKey(collection, str(key), "invalid record key")
        return self.base_dir / collection / f"{key}.json"

    # ------------------------
    # Public API
    # ------------------------
    async def create(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Write a new record; fails with RecordExists instead of overwriting."""
        path = self._path(collection, key)
        await asyncio.to_thread(self._create_sync, path, collection, key, record)

    async def read(self, collection: str, key: str) -> dict[str, Any]:
        path = self._path(collection, key)
        return await asyncio.to_thread(self._read_sync, path, collection, key)

    async def update(self, collection: str, key: str, record: dict[str, Any]) -> None:
        """Replace an existing record's content entirely."""
        path = self._path(collection, key)
        await asyncio.to_thread(self._update_sync, path, collection, key, record)

    async def delete(self, collection: str, key: str) -> None:
        path = self._path(collection, key)
        await asyncio.to_thread(self._delete_sync, path, collection, key)

    async def list_keys(self, collection: str) -> list[str]:
        """Return the keys stored in a collection, sorted."""
        if not _KEY_RE.match(collection or ""):
            raise InvalidKey(collection, "", "invalid collection name")
        return await asyncio.to_thread(self._list_sync, self.base_dir / collection)

    # ------------------------
    # Blocking implementations
    # ------------------------
    @staticmethod
    def _create_sync(path: Path, collection: str, key: str, record: dict[str, Any]) -> None:
        text = json.dumps(record)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # "x" makes the existence check and the creation one atomic step
            with path.open("x", encoding="utf-8") as fh:
                fh.write(text)
        except FileExistsError as e:
            raise RecordExists(collection, key, "record already exists") from e
        except OSError as e:
            logger.error(
                "store.create_failed",
                extra={"event": "store_create_failed", "collection": collection, "key": key, "error": str(e)},
            )
            raise StoreIOError(collection, key, f"could not create record: {e}") from e

    @staticmethod
    def _read_sync(path: Path, collection: str, key: str) -> dict[str, Any]:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RecordNotFound(collection, key, "record does not exist") from e
        except OSError as e:
            raise StoreIOError(collection, key, f"could not read record: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise RecordCorrupt(collection, key, f"record is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise RecordCorrupt(collection, key, "record is not a JSON object")
        return data

    @staticmethod
    def _update_sync(path: Path, collection: str, key: str, record: dict[str, Any]) -> None:
        text = json.dumps(record)
        try:
            with path.open("r+", encoding="utf-8") as fh:
                fh.seek(0)
                fh.truncate()
                fh.write(text)
        except FileNotFoundError as e:
            raise RecordNotFound(collection, key, "record does not exist") from e
        except OSError as e:
            logger.error(
                "store.update_failed",
                extra={"event": "store_update_failed", "collection": collection, "key": key, "error": str(e)},
            )
            raise StoreIOError(collection, key, f"could not update record: {e}") from e

    @staticmethod
    def _delete_sync(path: Path, collection: str, key: str) -> None:
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise RecordNotFound(collection, key, "record does not exist") from e
        except OSError as e:
            raise StoreIOError(collection, key, f"could not delete record: {e}") from e

    @staticmethod
    def _list_sync(directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        return sorted(p.stem for p in directory.glob("*.json") if p.is_file())
