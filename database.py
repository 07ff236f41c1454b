from __future__ import annotations
import json
import os
import tempfile
from datetime import datetime, timezone
from typing import Optional, Protocol

import structlog
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)

# what a Storage write can raise: FileStorage hits the filesystem, MongoStorage the server
STORAGE_ERRORS = (OSError, PyMongoError)


class Settings(BaseSettings):
    API_URL: str = os.getenv("API_URL", "http://localhost:5000/api")
    STORAGE_PATH: str = os.getenv("STORAGE_PATH", ".storefront.json")
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "storefront")
    STATE_COLLECTION: str = "client_state"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()


# Persisted client state: a string key/value store, like browser local storage.

class Storage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...
    def set_item(self, key: str, value: str) -> None: ...
    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Transient storage, lost with the process (session storage)."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._data: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """Keeps every key in one JSON object on disk, rewritten on each change."""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> dict[str, str]:
        try:
            with open(self.path, encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            logger.warning("storage.unreadable", path=self.path, error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("storage.unreadable", path=self.path, error="not a JSON object")
            return {}
        return data

    def _write(self, data: dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".storage-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    def get_item(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return value if isinstance(value, str) else None

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class MongoStorage:
    """One document per key in a MongoDB collection."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def get_item(self, key: str) -> Optional[str]:
        doc = self.collection.find_one({"key": key})
        if not doc:
            return None
        return doc.get("value")

    def set_item(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc)
        self.collection.update_one(
            {"key": key},
            {"$set": {"value": value, "updated_at": now}, "$setOnInsert": {"created_at": now}},
            upsert=True,
        )

    def remove_item(self, key: str) -> None:
        self.collection.delete_one({"key": key})


_client: Optional[MongoClient] = None
_db: Optional[Database] = None

def get_db() -> Database:
    global _client, _db
    if _db is None:
        _client = MongoClient(settings.DATABASE_URL)
        _db = _client[settings.DATABASE_NAME]
    return _db

def get_storage() -> Storage:
    if settings.DATABASE_URL:
        return MongoStorage(get_db()[settings.STATE_COLLECTION])
    return FileStorage(settings.STORAGE_PATH)
