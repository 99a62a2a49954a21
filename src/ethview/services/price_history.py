from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from ethview.config import settings
from ethview.core.dto import DailyCount, PriceQuote, TokenPrice
from ethview.core.enums import ADDRESS_CHAINY, ADDRESS_ETH, ALL_OPERATION_TYPES, Collection, Granularity
from ethview.core.models import PriceHistoryGrouped, TokenView
from ethview.ports.data_source_port import DataSourcePort
from ethview.ports.rpc_port import RpcPort
from ethview.services.cache_store import MISS, CacheKey, CacheStore

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 3600

# Groups documents by the UTC calendar day of their unix timestamp.
DAY_OF_TIMESTAMP = {
    "$dateToString": {
        "format": "%Y-%m-%d",
        "date": {"$toDate": {"$multiply": ["$timestamp", 1000]}},
    }
}

_DROPPED_QUOTE_FIELDS = ("code_from", "code_to", "bid")


def utc_date(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")


def utc_day_start(now: float, days_back: int = 0) -> int:
    """Unix time of UTC midnight, days_back days before the day of now."""
    day = datetime.fromtimestamp(now, tz=timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    return int((day - timedelta(days=days_back)).timestamp())


def fold_daily(quotes: Sequence[PriceQuote]) -> List[PriceQuote]:
    """
    Folds sub-daily quotes (ordered by time) into one candle per date.

    The first record of a date seeds open/high/low, high and low track the
    running max/min and the last record of the date gives close.
    """
    daily: List[PriceQuote] = []
    candle: Optional[PriceQuote] = None
    for i, q in enumerate(quotes):
        if candle is None or candle.date != q.date:
            candle = q
        else:
            candle = replace(candle, high=max(candle.high, q.high), low=min(candle.low, q.low))
        is_last = i == len(quotes) - 1 or quotes[i + 1].date != q.date
        if is_last:
            daily.append(replace(candle, close=q.close))
    return daily


def _group_by_day(rows: Iterable[Dict[str, Any]], value_field: str) -> List[DailyCount]:
    return [
        DailyCount(date=str(r.get("_id")), ts=int(r.get("ts") or 0), count=int(r.get(value_field) or 0))
        for r in rows
    ]


class PriceHistoryEngine:
    """
    Current quotes, quote history and the aggregates derived from them.

    Only addresses listed in update_rates may trigger a call to the price
    service; every other address is served from the cache alone.
    """

    def __init__(
        self,
        cache: CacheStore,
        data: DataSourcePort,
        price: Optional[RpcPort] = None,
        update_rates: Iterable[str] = (),
        currency: str = settings.PRICE_CURRENCY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.data = data
        self.price = price
        self.update_rates = frozenset(a.lower() for a in update_rates)
        self.currency = currency
        self._clock = clock

    def _may_refresh(self, address: str) -> bool:
        return self.price is not None and address in self.update_rates

    # -------------------------
    # Current quote
    # -------------------------

    def get_token_price(self, address: str, force_refresh: bool = False) -> Optional[TokenPrice]:
        key = CacheKey("rates")
        rates = self.cache.get(key)
        missing = rates is MISS or address not in rates
        if (force_refresh and self.price is not None) or (missing and self._may_refresh(address)):
            quote = self.price.call("getCurrencyCurrent", [address, self.currency])
            if isinstance(quote, dict) and quote:
                quote = {k: v for k, v in quote.items() if k not in _DROPPED_QUOTE_FIELDS}
                rates = dict(rates) if rates is not MISS else {}
                rates[address] = quote
                self.cache.save(key, rates)
                logger.info("Refreshed %s rate for %s", self.currency, address)

        if rates is not MISS and address in rates:
            return TokenPrice.from_record(rates[address], currency=self.currency)
        return None

    def get_eth_price(self) -> Optional[TokenPrice]:
        return self.get_token_price(ADDRESS_ETH)

    # -------------------------
    # History
    # -------------------------

    def _history_records(self, address: str, force_refresh: bool = False) -> List[Dict[str, Any]]:
        key = CacheKey("rates-history", (address,))
        records = self.cache.get(key)
        if (force_refresh and self.price is not None) or (records is MISS and self._may_refresh(address)):
            fetched = self.price.call("getCurrencyHistory", [address, self.currency])
            if isinstance(fetched, list):
                self.cache.save(key, fetched)
                records = fetched
                logger.info("Refreshed rate history for %s (%d records)", address, len(fetched))
        if records is MISS or not isinstance(records, list):
            return []
        return records

    def get_token_price_history(
        self,
        address: str,
        period_days: int = 0,
        granularity: str = Granularity.HOURLY.value,
        force_refresh: bool = False,
    ) -> List[PriceQuote]:
        quotes = [PriceQuote.from_record(r) for r in self._history_records(address, force_refresh)]
        if period_days:
            ts_start = utc_day_start(self._clock(), period_days)
            quotes = [q for q in quotes if q.ts >= ts_start]
        if Granularity(granularity) is Granularity.DAILY:
            return fold_daily(quotes)
        return quotes

    def average_rate_by_date(self, address: str, date: str) -> float:
        """
        Mean of (open + close) / 2 over the 24 records starting at the first
        record of date. Assumes hourly records.
        """
        history = self.get_token_price_history(address)
        start = next((i for i, q in enumerate(history) if q.date == date), None)
        if start is None:
            return 0.0
        window = history[start:min(start + 24, len(history))]
        total = sum((q.open + q.close) / 2 for q in window)
        return round(total / len(window), 2)

    # -------------------------
    # Aggregates over operations
    # -------------------------

    def get_period_volume(self, token: TokenView, period_days: int) -> float:
        """USD volume of completed days in the window, at each day's average rate."""
        now = self._clock()
        rows = self.data.aggregate(Collection.OPERATIONS.value, [
            {"$match": {
                "contract": token.address,
                "type": {"$in": ALL_OPERATION_TYPES},
                "timestamp": {"$gt": now - period_days * SECONDS_PER_DAY},
            }},
            {"$group": {"_id": DAY_OF_TIMESTAMP, "ts": {"$first": "$timestamp"}, "sum": {"$sum": "$intValue"}}},
            {"$sort": {"ts": -1}},
        ])
        today = utc_date(now)
        divisor = 10 ** (token.decimals or 0)
        volume = 0.0
        for row in rows:
            date = str(row.get("_id"))
            if date == today:
                continue
            rate = self.average_rate_by_date(token.address, date)
            volume += (float(row.get("sum") or 0) / divisor) * rate
        return volume

    def get_token_history_grouped(self, period_days: int = 30, address: Optional[str] = None) -> List[DailyCount]:
        key = CacheKey("token_history_grouped", (address, period_days))
        cached = self.cache.get(key, ttl=settings.TOKEN_HISTORY_TTL)
        if cached is not MISS:
            return cached

        now = self._clock()
        if address == ADDRESS_CHAINY:
            collection = Collection.TRANSACTIONS.value
            match: Dict[str, Any] = {"timestamp": {"$gt": now - period_days * SECONDS_PER_DAY}, "to": ADDRESS_CHAINY}
        else:
            collection = Collection.OPERATIONS.value
            match = {"timestamp": {"$gt": utc_day_start(now, period_days)}}
            if address:
                match["contract"] = address

        rows = self.data.aggregate(collection, [
            {"$match": match},
            {"$group": {"_id": DAY_OF_TIMESTAMP, "ts": {"$first": "$timestamp"}, "cnt": {"$sum": 1}}},
            {"$sort": {"ts": -1}},
        ])
        result = _group_by_day(rows, "cnt")
        if result:
            self.cache.save(key, result)
        return result

    def get_token_price_history_grouped(
        self,
        address: str,
        period_days: int = 365,
        granularity: str = Granularity.DAILY.value,
    ) -> PriceHistoryGrouped:
        return PriceHistoryGrouped(
            count_txs=self.get_token_history_grouped(period_days, address),
            prices=self.get_token_price_history(address, period_days, granularity),
            current=self.get_token_price(address),
        )
