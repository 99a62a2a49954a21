from __future__ import annotations

import time
from typing import Any, Callable, Dict, List

from ethview.config import settings
from ethview.core.enums import ADDRESS_CHAINY, Collection
from ethview.core.models import SearchResult, TokenRank, TokenView
from ethview.services.cache_store import MISS, CacheKey, CacheStore
from ethview.services.price_history import SECONDS_PER_DAY, PriceHistoryEngine
from ethview.services.token_catalog import TokenCatalog

# Always searchable, ranked above every real token
CHAINY_PSEUDO_TOKEN = TokenView(address=ADDRESS_CHAINY, name="Chainy", symbol=None, txs_count=99999)


def _by_volume_desc(ranks: List[TokenRank]) -> List[TokenRank]:
    # stable: equal volumes keep catalog order
    return sorted(ranks, key=lambda r: r.volume or 0, reverse=True)


class TokenRanking:
    def __init__(
        self,
        cache: CacheStore,
        tokens: TokenCatalog,
        prices: PriceHistoryEngine,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache = cache
        self.tokens = tokens
        self.prices = prices
        self.data = tokens.data
        self._clock = clock

    # -------------------------
    # Search
    # -------------------------

    def search_token(self, query: str, limit: int = settings.SEARCH_RESULT_LIMIT) -> SearchResult:
        universe: Dict[str, TokenView] = dict(self.tokens.get_tokens())
        universe[ADDRESS_CHAINY] = CHAINY_PSEUDO_TOKEN

        needle = query.lower()
        found: List[TokenView] = []
        for address, token in universe.items():
            token = self.tokens.apply_overrides(token)
            if (
                needle in address
                or (token.name and needle in token.name.lower())
                or (token.symbol and needle in token.symbol.lower())
            ):
                found.append(token)

        found.sort(key=lambda t: t.txs_count or 0, reverse=True)
        results = [(t.name or "", t.symbol or "", t.address) for t in found[:limit]]
        return SearchResult(results=results, total=len(found), search=query)

    # -------------------------
    # Top lists
    # -------------------------

    def get_top_tokens(self, limit: int = 10, period_days: int = 30) -> List[TokenRank]:
        key = CacheKey("top_tokens", (period_days, limit))
        cached = self.cache.get(key, ttl=settings.TOP_TOKENS_TTL)
        if cached is not MISS:
            return cached

        rows = self.data.aggregate(Collection.OPERATIONS.value, [
            {"$match": {"timestamp": {"$gt": self._clock() - period_days * SECONDS_PER_DAY}}},
            {"$group": {"_id": "$contract", "cnt": {"$sum": 1}}},
            {"$sort": {"cnt": -1}},
            {"$limit": limit},
        ])
        result: List[TokenRank] = []
        for row in rows:
            token = self.tokens.get_token(row["_id"])
            if token is not None:
                result.append(TokenRank(token=token, op_count=int(row["cnt"])))
        if result:
            self.cache.save(key, result)
        return result

    def _rank_by_volume(self, volume_of: Callable[[TokenView, Any], float], limit: int) -> List[TokenRank]:
        ranks: List[TokenRank] = []
        for token in self.tokens.get_tokens().values():
            price = self.prices.get_token_price(token.address)
            if price is None or not token.total_supply:
                continue
            corrected = self.tokens.get_token(token.address) or token
            ranks.append(TokenRank(token=corrected, volume=volume_of(corrected, price)))
        return _by_volume_desc(ranks)[:limit]

    def get_top_tokens_by_period_volume(self, limit: int = 10, period_days: int = 30) -> List[TokenRank]:
        key = CacheKey("top_tokens-by-period-volume", (limit, period_days))
        cached = self.cache.get(key, ttl=settings.TOP_TOKENS_TTL)
        if cached is not MISS:
            return cached

        result = self._rank_by_volume(lambda t, _price: self.prices.get_period_volume(t, period_days), limit)
        self.cache.save(key, result)
        return result

    def get_top_tokens_by_current_volume(self, limit: int = 10) -> List[TokenRank]:
        key = CacheKey("top_tokens-by-current-volume", (limit,))
        cached = self.cache.get(key, ttl=settings.CURRENT_VOLUME_TTL)
        if cached is not MISS:
            return cached

        def current_volume(token: TokenView, price: Any) -> float:
            return price.rate * float(token.total_supply) / 10 ** (token.decimals or 0)

        result = self._rank_by_volume(current_volume, limit)
        self.cache.save(key, result)
        return result

