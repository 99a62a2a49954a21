from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from functools import cmp_to_key
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from ethview.core.errors import DataSourceError
from ethview.ports.data_source_port import DataSourcePort

_MISSING = object()


def _get(doc: Dict[str, Any], path: str) -> Any:
    cur: Any = doc
    for part in path.split("."):
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        elif isinstance(cur, list) and part.isdigit() and int(part) < len(cur):
            cur = cur[int(part)]
        else:
            return _MISSING
    return cur


def _compare(a: Any, b: Any) -> Optional[int]:
    try:
        if a < b:
            return -1
        if a > b:
            return 1
        return 0
    except TypeError:
        return None


def _match_operator(value: Any, op: str, arg: Any) -> bool:
    present = value is not _MISSING
    if op == "$exists":
        return present == bool(arg)
    if op == "$eq":
        return present and value == arg
    if op == "$ne":
        return not present or value != arg
    if op == "$in":
        return present and value in arg
    if op == "$nin":
        return not present or value not in arg
    if op == "$regex":
        return present and isinstance(value, str) and re.search(arg, value) is not None
    if op in ("$gt", "$gte", "$lt", "$lte"):
        if not present or value is None:
            return False
        c = _compare(value, arg)
        if c is None:
            return False
        return {"$gt": c > 0, "$gte": c >= 0, "$lt": c < 0, "$lte": c <= 0}[op]
    raise DataSourceError(f"Unsupported query operator: {op}")


def matches(doc: Dict[str, Any], flt: Optional[Dict[str, Any]]) -> bool:
    for key, cond in (flt or {}).items():
        if key == "$and":
            if not all(matches(doc, sub) for sub in cond):
                return False
            continue
        if key == "$or":
            if not any(matches(doc, sub) for sub in cond):
                return False
            continue
        value = _get(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not all(_match_operator(value, op, arg) for op, arg in cond.items()):
                return False
        elif value is _MISSING or value != cond:
            return False
    return True


def _sort_docs(docs: List[Dict[str, Any]], sort: Dict[str, int]) -> List[Dict[str, Any]]:
    def cmp(a: Dict[str, Any], b: Dict[str, Any]) -> int:
        for field, direction in sort.items():
            va, vb = _get(a, field), _get(b, field)
            va = None if va is _MISSING else va
            vb = None if vb is _MISSING else vb
            # missing values sort first ascending
            if va is None or vb is None:
                c = (va is not None) - (vb is not None)
            else:
                c = _compare(va, vb) or 0
            if c:
                return c * (1 if direction >= 0 else -1)
        return 0

    return sorted(docs, key=cmp_to_key(cmp))


def _num(val: Any) -> Optional[float]:
    if isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return val
    return None


def evaluate(doc: Dict[str, Any], expr: Any) -> Any:
    """Evaluates the aggregation expressions used by the query services."""
    if isinstance(expr, str) and expr.startswith("$"):
        value = _get(doc, expr[1:])
        return None if value is _MISSING else value
    if isinstance(expr, dict):
        if "$multiply" in expr:
            result = 1
            for part in expr["$multiply"]:
                n = _num(evaluate(doc, part))
                if n is None:
                    return None
                result *= n
            return result
        if "$toDate" in expr:
            ms = _num(evaluate(doc, expr["$toDate"]))
            if ms is None:
                return None
            return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
        if "$dateToString" in expr:
            spec = expr["$dateToString"]
            date = evaluate(doc, spec["date"])
            if not isinstance(date, datetime):
                return None
            return date.strftime(spec.get("format", "%Y-%m-%d"))
        return {k: evaluate(doc, v) for k, v in expr.items()}
    return expr


def _group(docs: List[Dict[str, Any]], spec: Dict[str, Any]) -> List[Dict[str, Any]]:
    groups: Dict[str, Dict[str, Any]] = {}
    id_expr = spec.get("_id")
    accumulators = {k: v for k, v in spec.items() if k != "_id"}

    for doc in docs:
        gid = evaluate(doc, id_expr)
        gkey = json.dumps(gid, sort_keys=True, default=str)
        if gkey not in groups:
            row: Dict[str, Any] = {"_id": gid}
            for name, acc in accumulators.items():
                if "$sum" in acc:
                    row[name] = 0
                elif "$first" in acc:
                    row[name] = evaluate(doc, acc["$first"])
                else:
                    raise DataSourceError(f"Unsupported accumulator: {acc}")
            groups[gkey] = row
        row = groups[gkey]
        for name, acc in accumulators.items():
            if "$sum" in acc:
                n = _num(evaluate(doc, acc["$sum"]))
                if n is not None:
                    row[name] += n

    return list(groups.values())


class StaticDataSource(DataSourcePort):
    """
    In-memory document store (dev/testing).

    Supports the query operators, sort specs and pipeline stages
    ($match, $group, $sort, $limit) issued by the query services.
    """

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self._collections: Dict[str, List[Dict[str, Any]]] = {
            name: list(docs) for name, docs in (collections or {}).items()
        }

    @classmethod
    def from_json(cls, path: str) -> "StaticDataSource":
        p = Path(path)
        try:
            with p.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise DataSourceError(f"Cannot load data dump {p}: {e}") from e
        if not isinstance(data, dict):
            raise DataSourceError(f"Invalid data dump {p}: expected an object of collections")
        return cls(data)

    def insert(self, collection: str, *docs: Dict[str, Any]) -> None:
        self._collections.setdefault(collection, []).extend(docs)

    def _docs(self, collection: str) -> List[Dict[str, Any]]:
        return self._collections.get(collection, [])

    def find(
        self,
        collection: str,
        filter: Optional[Dict[str, Any]] = None,
        projection: Optional[Sequence[str]] = None,
        sort: Optional[Dict[str, int]] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        items = [d for d in self._docs(collection) if matches(d, filter)]
        if sort:
            items = _sort_docs(items, sort)
        if skip:
            items = items[skip:]
        if limit:
            items = items[:limit]
        if projection:
            return [{k: d[k] for k in projection if k in d} for d in items]
        return [dict(d) for d in items]

    def count(self, collection: str, filter: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for d in self._docs(collection) if matches(d, filter))

    def aggregate(self, collection: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        rows = [dict(d) for d in self._docs(collection)]
        for stage in pipeline:
            (op, arg), = stage.items()
            if op == "$match":
                rows = [r for r in rows if matches(r, arg)]
            elif op == "$group":
                rows = _group(rows, arg)
            elif op == "$sort":
                rows = _sort_docs(rows, arg)
            elif op == "$limit":
                rows = rows[: int(arg)]
            else:
                raise DataSourceError(f"Unsupported pipeline stage: {op}")
        return rows
