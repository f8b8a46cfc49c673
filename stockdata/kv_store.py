# stockdata/kv_store.py
from __future__ import annotations
import asyncio
import json
import os
from typing import Dict, Optional, Protocol

from stockdata.errors import PersistenceError


class KeyValueStore(Protocol):
    async def get_item(self, key: str) -> Optional[str]: ...
    async def set_item(self, key: str, value: str) -> None: ...
    async def remove_item(self, key: str) -> None: ...


class MemoryStore:
    """Process-local store. Nothing survives a restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    async def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.data[key] = value

    async def remove_item(self, key: str) -> None:
        self.data.pop(key, None)


# simple JSON-on-disk store: one file, one string value per slot
class JsonFileStore:
    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Unexpected content in {self.path}")
        return data

    def _save(self, obj: Dict[str, str]) -> None:
        tmp = self.path + ".tmp"
        try:
            folder = os.path.dirname(self.path)
            if folder:
                os.makedirs(folder, exist_ok=True)
            with open(tmp, "w") as f:
                json.dump(obj, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def _set(self, key: str, value: Optional[str]) -> None:
        try:
            data = self._load()
        except PersistenceError:
            # unreadable file gets overwritten rather than blocking every write
            data = {}
        if value is None:
            if key not in data:
                return
            data.pop(key)
        else:
            data[key] = value
        self._save(data)

    async def get_item(self, key: str) -> Optional[str]:
        data = await asyncio.to_thread(self._load)
        value = data.get(key)
        return value if isinstance(value, str) else None

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def remove_item(self, key: str) -> None:
        await asyncio.to_thread(self._set, key, None)
