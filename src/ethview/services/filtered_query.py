from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ethview.ports.data_source_port import DataSourcePort

TEXT_FILTER_FIELDS: Tuple[str, ...] = ("from", "to", "address", "transactionHash")
DEFAULT_SORT: Dict[str, int] = {"timestamp": -1}


@dataclass(frozen=True)
class QueryPage:
    items: List[Dict[str, Any]]
    matched_count: int


def resolve_page(page: int, offset: int, count: int) -> Tuple[int, int]:
    """
    Clamps a page that starts past the last matching record back to page 1.

    An offset equal to the count is kept (and yields an empty page).
    """
    if offset and offset > count:
        return 1, 0
    return page, offset


def apply_text_filter(
    base_filter: Dict[str, Any],
    text_filter: Optional[str],
    fields: Sequence[str] = TEXT_FILTER_FIELDS,
) -> Dict[str, Any]:
    if not text_filter:
        return base_filter
    pattern = re.escape(text_filter)
    clauses = [{f: {"$regex": pattern}} for f in fields]
    text_clause = clauses[0] if len(clauses) == 1 else {"$or": clauses}
    return {"$and": [base_filter, text_clause]}


class FilteredQuery:
    """
    Filtered, sorted and paginated reads from one collection.

    Counts are never cached here: callers ask for the filtered and the
    unfiltered count on each request.
    """

    def __init__(self, data: DataSourcePort) -> None:
        self.data = data

    def count(
        self,
        collection: str,
        base_filter: Dict[str, Any],
        text_filter: Optional[str] = None,
        fields: Sequence[str] = TEXT_FILTER_FIELDS,
    ) -> int:
        return self.data.count(collection, apply_text_filter(base_filter, text_filter, fields))

    def find(
        self,
        collection: str,
        base_filter: Dict[str, Any],
        sort: Optional[Dict[str, int]] = None,
        limit: int = 0,
        offset: int = 0,
        text_filter: Optional[str] = None,
        fields: Sequence[str] = TEXT_FILTER_FIELDS,
    ) -> List[Dict[str, Any]]:
        return self.data.find(
            collection,
            apply_text_filter(base_filter, text_filter, fields),
            sort=DEFAULT_SORT if sort is None else sort,
            skip=max(0, int(offset or 0)),
            limit=max(0, int(limit or 0)),
        )

    def query(
        self,
        collection: str,
        base_filter: Dict[str, Any],
        sort: Optional[Dict[str, int]] = None,
        limit: int = 0,
        offset: int = 0,
        text_filter: Optional[str] = None,
        fields: Sequence[str] = TEXT_FILTER_FIELDS,
    ) -> QueryPage:
        matched = self.count(collection, base_filter, text_filter, fields)
        _, offset = resolve_page(1, offset, matched)
        items = self.find(collection, base_filter, sort, limit, offset, text_filter, fields)
        return QueryPage(items=items, matched_count=matched)
