"""Durable key-value storage and the stored-user record"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ..constants import DEFAULT_STORAGE_KEY

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String key-value store with localStorage semantics"""

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove_item(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """Process-local store, mostly for tests and short-lived scripts"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Store persisted as a single JSON object on disk"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning(f"Ignoring unreadable store file {self.path}: {exc}")
            return {}
        if not isinstance(data, dict):
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def _save(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._save(items)


class StoredUser(BaseModel):
    """The connected identity: username plus smart-account address"""
    username: str = Field(..., min_length=1)
    address: str = Field(..., min_length=1)


class UserStore:
    """Reads and writes the stored user under a configurable key.

    Callers re-read on every use; nothing here caches the record.
    """

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_STORAGE_KEY):
        self.store = store
        self.key = key

    def get(self) -> Optional[StoredUser]:
        raw = self.store.get_item(self.key)
        if not raw:
            return None
        try:
            return StoredUser.model_validate_json(raw)
        except ValidationError:
            logger.debug(f"Discarding incomplete stored user under {self.key!r}")
            return None

    def set(self, user: StoredUser) -> None:
        self.store.set_item(self.key, user.model_dump_json())

    def clear(self) -> None:
        logger.info(f"Clearing stored user {self.key!r}")
        self.store.remove_item(self.key)
