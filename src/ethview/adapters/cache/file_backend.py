from __future__ import annotations

import hashlib
import logging
from pathlib import Path
from typing import Optional

import joblib

from ethview.config.settings import CACHE_DIR
from ethview.ports.cache_backend_port import CacheBackendPort, CacheEntry

logger = logging.getLogger(__name__)


class FileCacheBackend(CacheBackendPort):
    """
    One joblib pickle per key under cache_dir. File names are the sha1 of
    the serialized key.
    """

    def __init__(self, cache_dir: str = CACHE_DIR) -> None:
        self._dir = Path(cache_dir)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha1(key.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.pkl"

    def load(self, key: str) -> Optional[CacheEntry]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            entry = joblib.load(path)
        except Exception as e:
            logger.warning("Unreadable cache file %s: %s", path, e)
            return None
        if not isinstance(entry, CacheEntry) or entry.key != key:
            logger.warning("Unexpected cache file content in %s", path)
            return None
        return entry

    def dump(self, entry: CacheEntry) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(entry.key)
        tmp = path.with_suffix(".tmp")
        joblib.dump(entry, tmp)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
