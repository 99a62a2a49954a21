from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float

    def is_expired(self, now: float, ttl: int) -> bool:
        return now - self.stored_at > ttl


class CacheBackendPort(ABC):

    @abstractmethod
    def load(self, key: str) -> Optional[CacheEntry]:
        raise NotImplementedError

    @abstractmethod
    def dump(self, entry: CacheEntry) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        raise NotImplementedError
