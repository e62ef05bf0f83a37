"""
Infrastructure layer: key/value persistence adapters.

Every collection of the entity store is kept as one JSON text blob under a
fixed key. Adapters only move raw strings; parsing happens in the store.
"""
import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol

from app.config import Settings
from app.domain.errors import StorageUnavailableError

logger = logging.getLogger(__name__)


class StorageKeys:
    """Storage keys, one per collection."""

    FIELDS = "hatake_health_fields"
    DIRECTORIES = "hatake_health_directories"
    ANALYSIS_RESULTS = "agrilens_analysis_results"
    ANALYSIS_HISTORY = "agrilens_analysis_history"
    ANALYSIS_SETTINGS = "agrilens_analysis_settings"

    @classmethod
    def analysis_keys(cls) -> tuple[str, ...]:
        return (cls.ANALYSIS_RESULTS, cls.ANALYSIS_HISTORY, cls.ANALYSIS_SETTINGS)


class PersistenceAdapter(Protocol):
    """Durable key/value store of raw string blobs."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryStorage:
    """Process-local adapter, used for tests and ephemeral deployments."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class FileStorage:
    """
    Adapter storing each key as a file inside a directory.

    Writes go to a temporary file first and are moved into place, so a
    crash never leaves a half-written blob behind.
    """

    def __init__(self, directory: str | os.PathLike):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9_.-]", "_", key)
        return self.directory / f"{safe_key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailableError(f"Failed to read '{key}': {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageUnavailableError(f"Failed to write '{key}': {e}") from e

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Failed to remove '{key}': {e}") from e


def create_storage(settings: Settings) -> PersistenceAdapter:
    """
    Build the adapter selected by ``settings.storage_backend``.

    Args:
        settings: Application settings

    Returns:
        PersistenceAdapter instance
    """
    backend = settings.storage_backend.lower()
    if backend == "memory":
        logger.info("Using in-memory storage")
        return InMemoryStorage()
    if backend == "file":
        logger.info(f"Using file storage in {settings.storage_dir}")
        return FileStorage(settings.storage_dir)
    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")
