from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ethview.config import settings
from ethview.core.dto import Holder
from ethview.core.enums import ISSUANCE_TYPES, Collection, OperationType
from ethview.core.models import TokenView
from ethview.core.validators import is_chainy_address, is_valid_address
from ethview.services.cache_store import MISS, CacheKey, CacheStore
from ethview.services.operation_history import OperationHistory
from ethview.services.price_history import PriceHistoryEngine

# Above this raw supply a token without decimals is assumed to use 18.
ESTIMATED_DECIMALS_SUPPLY = Decimal("1e18")

_BALANCES = Collection.BALANCES.value
_HOLDER_FILTER_FIELDS = ("address",)


def infer_decimals(token: TokenView) -> TokenView:
    if token.decimals and token.decimals > 0:
        return token
    if token.total_supply is not None and token.total_supply > ESTIMATED_DECIMALS_SUPPLY:
        return replace(token, decimals=18, estimated_decimals=True)
    return replace(token, decimals=0)


class TokenCatalog:
    """
    Token metadata joined with balance aggregates, operation counts,
    client display overrides and the current price.
    """

    def __init__(
        self,
        cache: CacheStore,
        history: OperationHistory,
        prices: PriceHistoryEngine,
        client_tokens: Optional[Mapping[str, Mapping[str, Any]]] = None,
        token_ttl: int = settings.TOKEN_TTL,
    ) -> None:
        self.cache = cache
        self.history = history
        self.query = history.query
        self.data = history.data
        self.prices = prices
        self.client_tokens = {k.lower(): dict(v) for k, v in (client_tokens or {}).items()}
        self.token_ttl = token_ttl

    def apply_overrides(self, token: TokenView) -> TokenView:
        """Client overrides may only rename a token, never change its numbers."""
        override = self.client_tokens.get(token.address)
        if not override:
            return token
        changes = {f: override[f] for f in ("name", "symbol") if f in override}
        return replace(token, **changes) if changes else token

    # -------------------------
    # Catalog
    # -------------------------

    def get_tokens(self, force_refresh: bool = False) -> Dict[str, TokenView]:
        key = CacheKey("tokens")
        cached = MISS if force_refresh else self.cache.get(key)
        if cached is not MISS:
            return cached

        result: Dict[str, TokenView] = {}
        for doc in self.data.find(Collection.TOKENS.value, {}, sort={"transfersCount": -1}):
            token = TokenView.from_doc(doc)
            total_in, total_out = self.get_token_total_in_out(token.address)
            token = replace(
                token,
                total_in=total_in,
                total_out=total_out,
                holders_count=self.get_token_holders_count(token.address),
            )
            result[token.address] = self.apply_overrides(token)

        self.cache.save(key, result)
        return result

    def get_token(self, address: str) -> Optional[TokenView]:
        key = CacheKey("token", (address,))
        cached = self.cache.get(key, ttl=self.token_ttl)
        if cached is not MISS:
            return cached

        token = self.get_tokens().get(address)
        if token is not None:
            token = infer_decimals(token)
            token = replace(
                token,
                symbol=token.symbol if token.symbol is not None else "",
                txs_count=token.txs_count + 1 if token.txs_count is not None else None,
                transfers_count=self.history.count_contract_operations(OperationType.TRANSFER.value, address),
                issuances_count=self.history.count_contract_operations(ISSUANCE_TYPES, address),
                price=self.prices.get_token_price(address),
            )
            token = self.apply_overrides(token)

        # None is cached too: "checked, not a token"
        self.cache.save(key, token)
        return token

    # -------------------------
    # Balances
    # -------------------------

    def get_token_total_in_out(self, address: str) -> Tuple[float, float]:
        total_in, total_out = 0.0, 0.0
        if not is_valid_address(address):
            return total_in, total_out
        rows = self.data.aggregate(_BALANCES, [
            {"$match": {"contract": address}},
            {"$group": {"_id": "$contract", "totalIn": {"$sum": "$totalIn"}, "totalOut": {"$sum": "$totalOut"}}},
        ])
        for row in rows:
            total_in += float(row.get("totalIn") or 0)
            total_out += float(row.get("totalOut") or 0)
        return total_in, total_out

    def get_token_holders_count(self, address: str, text_filter: Optional[str] = None) -> int:
        base = {"contract": address, "balance": {"$gt": 0}}
        return self.query.count(_BALANCES, base, text_filter, fields=_HOLDER_FILTER_FIELDS)

    def get_token_holders(
        self,
        address: str,
        limit: int = 0,
        offset: int = 0,
        text_filter: Optional[str] = None,
    ) -> List[Holder]:
        token = self.get_token(address)
        if token is None:
            return []

        docs = self.query.find(
            _BALANCES,
            {"contract": address, "balance": {"$gt": 0}},
            sort={"balance": -1},
            limit=limit,
            offset=offset,
            text_filter=text_filter,
            fields=_HOLDER_FILTER_FIELDS,
        )
        balances = [(d.get("address", ""), float(d.get("balance") or 0)) for d in docs]
        total = sum(b for _, b in balances)
        if total <= 0:
            return []
        # shares are relative to the whole supply when the page holds less
        if token.total_supply and total < float(token.total_supply):
            total = float(token.total_supply)
        return [Holder(address=a, balance=b, share=round(b / total * 100, 2)) for a, b in balances]

    # -------------------------
    # Contracts
    # -------------------------

    def get_contract(self, address: str) -> Optional[Dict[str, Any]]:
        doc = self.data.find_one(Collection.CONTRACTS.value, {"address": address})
        if doc is None:
            return None
        doc.pop("_id", None)
        doc["txsCount"] = self.data.count(Collection.TRANSACTIONS.value, {"to": address}) + 1
        if is_chainy_address(address):
            doc["isChainy"] = True
        return doc
