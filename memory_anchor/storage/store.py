"""Key-value persistence boundary.

The registry only needs `get`/`put` of one string value under one key. Two
implementations are provided: a directory of JSON files for real use and an
in-process dict for tests and ephemeral sessions.
"""

from __future__ import annotations

import os
import re
import tempfile
import threading

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from memory_anchor.errors import StorageCorrupt
from memory_anchor.utils.log import get_logger

logger = get_logger(__name__)


_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key was never written."""
        pass

    @abstractmethod
    def put(self, key: str, value: str) -> None:
        pass


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = str(value)


class JsonFileStore(KeyValueStore):
    """One `<key>.json` file per key under `root`.

    Writes go to a temp file in the same directory followed by `os.replace`, so a
    crash mid-write leaves either the old or the new document, never a truncated one.
    """

    def __init__(self, root):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(str(key)):
            raise ValueError(f"invalid storage key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        fp = self._path(key)
        if not fp.exists():
            return None
        try:
            return fp.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise StorageCorrupt(f"{fp.name} is not valid UTF-8: {e}") from e

    def put(self, key: str, value: str) -> None:
        fp = self._path(key)
        self.root.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=str(self.root))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, fp)
        except BaseException:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise
        logger.debug(f"已写入 {fp} ({len(value)} bytes)")
