from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ethview.config.settings import CACHE_DEFAULT_TTL
from ethview.ports.cache_backend_port import CacheBackendPort, CacheEntry

logger = logging.getLogger(__name__)


class _Miss:
    """Cache miss marker, distinct from every cacheable value (None, False, [])."""

    _instance: Optional["_Miss"] = None

    def __new__(cls) -> "_Miss":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISS"

    def __reduce__(self):
        return (_Miss, ())


MISS = _Miss()


@dataclass(frozen=True)
class CacheKey:
    """
    Structured cache key: an operation name plus its parameters.

    Serialized as canonical JSON so parameter values can never collide
    through delimiter characters.
    """

    operation: str
    params: Tuple[Any, ...] = ()

    def serialize(self) -> str:
        return json.dumps([self.operation, list(self.params)], sort_keys=True, default=str, separators=(",", ":"))

    def __str__(self) -> str:
        return self.serialize()


KeyLike = Union[CacheKey, str]


def _key_str(key: KeyLike) -> str:
    return key.serialize() if isinstance(key, CacheKey) else str(key)


class CacheStore:
    """
    Cache-aside store with read-time TTL.

    save() writes through to the backend; store() keeps a value for the
    lifetime of this object only and it never expires.
    """

    def __init__(
        self,
        backend: CacheBackendPort,
        default_ttl: int = CACHE_DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._backend = backend
        self._default_ttl = default_ttl
        self._clock = clock
        self._local: Dict[str, Any] = {}

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def get(self, key: KeyLike, allow_stale: bool = False, ttl: Optional[int] = None) -> Any:
        k = _key_str(key)
        if k in self._local:
            return self._local[k]

        entry = self._backend.load(k)
        if entry is None:
            logger.debug("Cache miss: %s", k)
            return MISS

        max_age = self._default_ttl if ttl is None else ttl
        if not allow_stale and entry.is_expired(self._clock(), max_age):
            logger.debug("Cache expired: %s (ttl=%s)", k, max_age)
            return MISS

        logger.debug("Cache hit: %s", k)
        return entry.value

    def save(self, key: KeyLike, value: Any) -> None:
        k = _key_str(key)
        # a process-lifetime value would shadow the fresh one
        self._local.pop(k, None)
        self._backend.dump(CacheEntry(key=k, value=value, stored_at=self._clock()))

    def store(self, key: KeyLike, value: Any) -> None:
        self._local[_key_str(key)] = value

    def delete(self, key: KeyLike) -> None:
        k = _key_str(key)
        self._local.pop(k, None)
        self._backend.delete(k)
