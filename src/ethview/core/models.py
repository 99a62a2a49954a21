from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from ethview.config import settings
from ethview.core.dto import Balance, ChainyEntry, DailyCount, Holder, Operation, PriceQuote, TokenPrice
from ethview.core.errors import ConfigurationError


# Configuration model

@dataclass(frozen=True)
class ExplorerConfig:
    """
    Runtime configuration of the query layer.
    """

    ethereum_rpc_url: Optional[str]
    price_rpc_url: Optional[str] = None
    update_rates: Tuple[str, ...] = ()
    # display overrides: address -> {"name": ..., "symbol": ...}
    client_tokens: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    cache_backend: str = "file"
    cache_dir: str = ".cache/ethview"
    default_ttl: int = 3600
    page_size: int = 50
    rpc_timeout: int = 15

    @classmethod
    def from_settings(cls) -> "ExplorerConfig":
        client_tokens: Dict[str, Dict[str, Any]] = {}
        if settings.CLIENT_TOKENS_FILE:
            path = Path(settings.CLIENT_TOKENS_FILE)
            try:
                with path.open(encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                raise ConfigurationError(f"Cannot read client tokens file {path}: {e}") from e
            client_tokens = {k.lower(): v for k, v in data.items() if isinstance(v, dict)}

        return cls(
            ethereum_rpc_url=settings.ETHEREUM_RPC_URL,
            price_rpc_url=settings.PRICE_RPC_URL,
            update_rates=tuple(settings.UPDATE_RATES),
            client_tokens=client_tokens,
            cache_backend=settings.CACHE_BACKEND,
            cache_dir=settings.CACHE_DIR,
            default_ttl=settings.CACHE_DEFAULT_TTL,
            page_size=settings.PAGE_SIZE,
            rpc_timeout=settings.RPC_TIMEOUT_SEC,
        )


@dataclass(frozen=True)
class QueryContext:
    """
    Paging and filtering state for one request.

    pages maps a pager section (transfers, issuances, holders, chainy) to
    a 1-based page number. refresh names the only section to re-render.
    """

    page_size: int = 0
    pages: Dict[str, int] = field(default_factory=dict)
    text_filter: Optional[str] = None
    refresh: Optional[str] = None

    def page(self, section: str) -> int:
        return int(self.pages.get(section, 1))

    def offset(self, section: str, limit: int) -> int:
        page = self.page(section)
        return 0 if page == 1 else (page - 1) * limit

    def with_page(self, section: str, page: int) -> "QueryContext":
        pages = dict(self.pages)
        pages[section] = page
        return replace(self, pages=pages)


@dataclass(frozen=True)
class Pager:
    page: int
    records: int
    total: int


# Token model

def _to_decimal(val: Any) -> Optional[Decimal]:
    if val is None or val == "":
        return None
    try:
        return Decimal(str(val))
    except (InvalidOperation, ValueError):
        return None


def _to_int(val: Any) -> Optional[int]:
    if val is None or val == "":
        return None
    try:
        return int(val)
    except (TypeError, ValueError):
        try:
            return int(float(val))
        except (TypeError, ValueError):
            return None


_TOKEN_FIELDS = {
    "_id", "address", "name", "symbol", "decimals", "totalSupply", "txsCount",
    "transfersCount", "issuancesCount", "holdersCount",
}


@dataclass(frozen=True)
class TokenView:
    address: str
    name: Optional[str] = None
    symbol: Optional[str] = None
    decimals: Optional[int] = None
    estimated_decimals: bool = False
    total_supply: Optional[Decimal] = None
    txs_count: Optional[int] = None
    transfers_count: Optional[int] = None
    issuances_count: Optional[int] = None
    holders_count: Optional[int] = None
    total_in: float = 0.0
    total_out: float = 0.0
    price: Optional[TokenPrice] = None
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "TokenView":
        return cls(
            address=str(doc.get("address", "")).lower(),
            name=doc.get("name"),
            symbol=doc.get("symbol"),
            decimals=_to_int(doc.get("decimals")),
            total_supply=_to_decimal(doc.get("totalSupply")),
            txs_count=_to_int(doc.get("txsCount")),
            transfers_count=_to_int(doc.get("transfersCount")),
            issuances_count=_to_int(doc.get("issuancesCount")),
            holders_count=_to_int(doc.get("holdersCount")),
            extra={k: v for k, v in doc.items() if k not in _TOKEN_FIELDS},
        )


# View variants

@dataclass
class AddressView:
    kind: ClassVar[str] = "address"

    address: str = ""
    is_contract: bool = False
    balance: Optional[float] = None
    balance_in: Optional[float] = None
    balance_out: Optional[float] = None
    page_size: int = 0
    pager: Dict[str, Pager] = field(default_factory=dict)


@dataclass
class TokenAddressView(AddressView):
    kind: ClassVar[str] = "token"

    contract: Dict[str, Any] = field(default_factory=dict)
    token: Optional[TokenView] = None
    transfers: Optional[List[Operation]] = None
    issuances: Optional[List[Operation]] = None
    holders: Optional[List[Holder]] = None


@dataclass
class WalletView(AddressView):
    kind: ClassVar[str] = "wallet"

    balances: List[Balance] = field(default_factory=list)
    tokens: Dict[str, TokenView] = field(default_factory=dict)
    transfers: List[Operation] = field(default_factory=list)


@dataclass
class ContractView(WalletView):
    """A contract that is not a token. Chainy contracts list their transactions instead of operations."""

    kind: ClassVar[str] = "contract"

    contract: Dict[str, Any] = field(default_factory=dict)
    chainy: Optional[List[ChainyEntry]] = None


@dataclass
class TransactionDetails:
    tx: Optional[Dict[str, Any]]
    contracts: List[str] = field(default_factory=list)
    token: Optional[TokenView] = None
    operations: List[Operation] = field(default_factory=list)


@dataclass(frozen=True)
class TokenRank:
    token: TokenView
    op_count: Optional[int] = None
    volume: Optional[float] = None


@dataclass(frozen=True)
class SearchResult:
    results: List[Tuple[str, str, str]]     # (name, symbol, address)
    total: int
    search: str


@dataclass(frozen=True)
class PriceHistoryGrouped:
    count_txs: List[DailyCount]
    prices: List[PriceQuote]
    current: Optional[TokenPrice]
