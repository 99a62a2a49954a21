from __future__ import annotations

from dataclasses import fields, is_dataclass
from decimal import Decimal
from typing import Any

# Field names exposed to clients; everything else is emitted as-is.
_RENAMES = {
    "from_address": "from",
    "to_address": "to",
    "transaction_hash": "transactionHash",
    "int_value": "intValue",
    "is_contract": "isContract",
    "balance_in": "balanceIn",
    "balance_out": "balanceOut",
    "page_size": "pageSize",
    "total_in": "totalIn",
    "total_out": "totalOut",
    "total_supply": "totalSupply",
    "estimated_decimals": "estimatedDecimals",
    "txs_count": "txsCount",
    "transfers_count": "transfersCount",
    "issuances_count": "issuancesCount",
    "holders_count": "holdersCount",
    "op_count": "opCount",
    "count_txs": "countTxs",
}
_SKIPPED = {"raw"}


def _dec_to_str(x: Decimal) -> str:
    # keep as string for JSON precision safety
    return format(x, "f")


def to_jsonable(obj: Any) -> Any:
    """Converts views, records and containers into JSON-safe structures."""
    if is_dataclass(obj) and not isinstance(obj, type):
        out = {}
        kind = getattr(type(obj), "kind", None)
        if kind:
            out["kind"] = kind
        for f in fields(obj):
            if f.name in _SKIPPED:
                continue
            value = getattr(obj, f.name)
            if f.name == "extra":
                for k, v in value.items():
                    out.setdefault(k, to_jsonable(v))
                continue
            out[_RENAMES.get(f.name, f.name)] = to_jsonable(value)
        return out
    if isinstance(obj, Decimal):
        return _dec_to_str(obj)
    if isinstance(obj, dict):
        return {str(k): to_jsonable(v) for k, v in obj.items() if k != "_id"}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj
