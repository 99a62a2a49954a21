from typing import Dict, Optional

from ethview.ports.cache_backend_port import CacheBackendPort, CacheEntry


class MemoryCacheBackend(CacheBackendPort):
    def __init__(self) -> None:
        self._entries: Dict[str, CacheEntry] = {}

    def load(self, key: str) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def dump(self, entry: CacheEntry) -> None:
        self._entries[entry.key] = entry

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
