"""
JSON File Storage Implementation

One JSON object on disk maps each key to its string value. Writes
replace the file atomically (temp file + rename), and every set()
rewrites the whole file. Single writer; there is no locking.

File writes are retried a few times with backoff.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from billtracker.services.storage.interface import KeyValueStorage, StorageError


logger = structlog.get_logger(__name__)


class JsonFileStorage(KeyValueStorage):
    """
    Key-value storage persisted as one JSON document.

    The file is created on first write; reading a missing file
    behaves like an empty store.
    """

    def __init__(self, path: Union[str, Path]):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, str]:
        """Load the whole key -> value map."""
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as e:
            raise StorageError(f"Storage file {self._path} is not valid JSON: {e}") from e
        except OSError as e:
            raise StorageError(f"Could not read storage file {self._path}: {e}") from e

        if not isinstance(data, dict):
            raise StorageError(f"Storage file {self._path} does not hold a JSON object")
        return data

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=0.5),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    def _write_all(self, data: dict[str, str]) -> None:
        """Replace the file atomically."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self._path.name}.",
            dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
            os.replace(tmp_name, self._path)
        except OSError:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        if value is not None and not isinstance(value, str):
            raise StorageError(f"Value under key '{key}' is not a string")
        return value

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        try:
            self._write_all(data)
        except OSError as e:
            logger.error("storage_write_failed", path=str(self._path), key=key, error=str(e))
            raise StorageError(f"Could not write storage file {self._path}: {e}") from e
