from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence


class DataSourcePort(ABC):
    """
    Abstract document store holding the explorer collections.

    Filters, sort specs and aggregation pipelines use the MongoDB dialect:
    sort is an ordered mapping of field -> 1 / -1.
    """

    # --- Queries ---

    @abstractmethod
    def find(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        projection: Optional[Sequence[str]] = None,
        sort: Optional[Dict[str, int]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def count(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> int:
        raise NotImplementedError

    # --- Aggregation ---

    @abstractmethod
    def aggregate(self, collection: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def find_one(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        projection: Optional[Sequence[str]] = None,
        sort: Optional[Dict[str, int]] = None,
    ) -> Optional[Dict[str, Any]]:
        rows = self.find(collection, filter, projection=projection, sort=sort, limit=1)
        return rows[0] if rows else None
