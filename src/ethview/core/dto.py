from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ethview.core.models import TokenView


def _float(val: Any) -> float:
    if val is None:
        return 0.0
    try:
        return float(val)
    except (TypeError, ValueError):
        return 0.0


@dataclass(frozen=True)
class Operation:
    transaction_hash: str
    timestamp: int
    contract: Optional[str]
    type: str
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    address: Optional[str] = None
    value: str = "0"          # raw integer amount (before decimals)
    int_value: Optional[float] = None
    priority: int = 0
    token: Optional["TokenView"] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Operation":
        return cls(
            transaction_hash=doc.get("transactionHash", ""),
            timestamp=int(doc.get("timestamp", 0)),
            contract=doc.get("contract"),
            type=doc.get("type", ""),
            from_address=doc.get("from"),
            to_address=doc.get("to"),
            address=doc.get("address"),
            value=str(doc.get("value", "0")),
            int_value=doc.get("intValue"),
            priority=int(doc.get("priority", 0) or 0),
            raw=dict(doc),
        )


@dataclass(frozen=True)
class Balance:
    address: str
    contract: str
    balance: float
    total_in: float
    total_out: float

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "Balance":
        return cls(
            address=doc.get("address", ""),
            contract=doc.get("contract", ""),
            balance=_float(doc.get("balance")),
            total_in=_float(doc.get("totalIn")),
            total_out=_float(doc.get("totalOut")),
        )


@dataclass(frozen=True)
class Holder:
    address: str
    balance: float
    share: float      # percent of the larger of page sum and total supply


@dataclass(frozen=True)
class ChainyEntry:
    hash: str
    timestamp: int
    input: str
    link: str


@dataclass(frozen=True)
class DailyCount:
    date: str         # YYYY-MM-DD, UTC
    ts: int           # first timestamp seen for the day
    count: int


@dataclass(frozen=True)
class PriceQuote:
    ts: int
    date: str
    open: float
    high: float
    low: float
    close: float
    hour: Optional[int] = None
    volume: Optional[float] = None

    @classmethod
    def from_record(cls, r: Dict[str, Any]) -> "PriceQuote":
        hour = r.get("hour")
        volume = r.get("volume")
        return cls(
            ts=int(r.get("ts", 0)),
            date=str(r.get("date", "")),
            open=_float(r.get("open")),
            high=_float(r.get("high")),
            low=_float(r.get("low")),
            close=_float(r.get("close")),
            hour=int(hour) if hour is not None else None,
            volume=_float(volume) if volume is not None else None,
        )


@dataclass(frozen=True)
class TokenPrice:
    rate: float
    currency: str = "USD"
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_record(cls, r: Dict[str, Any], currency: str = "USD") -> "TokenPrice":
        extra = {k: v for k, v in r.items() if k not in ("rate", "currency")}
        return cls(rate=_float(r.get("rate")), currency=currency, extra=extra)
