from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from ethview.adapters.cache.file_backend import FileCacheBackend
from ethview.adapters.cache.memory_backend import MemoryCacheBackend
from ethview.adapters.rpc.jsonrpc_adapter import JsonRpcAdapter
from ethview.core import validators
from ethview.core.dto import DailyCount, Operation, TokenPrice
from ethview.core.enums import Granularity, OperationType
from ethview.core.errors import ConfigurationError
from ethview.core.models import (
    AddressView,
    ExplorerConfig,
    PriceHistoryGrouped,
    QueryContext,
    SearchResult,
    TokenRank,
    TokenView,
    TransactionDetails,
)
from ethview.io.csv_export import OperationsCsvExporter
from ethview.ports.cache_backend_port import CacheBackendPort
from ethview.ports.data_source_port import DataSourcePort
from ethview.ports.rpc_port import RpcPort
from ethview.services.address_details import AddressDetailsResolver
from ethview.services.cache_store import CacheStore
from ethview.services.filtered_query import FilteredQuery
from ethview.services.operation_history import OperationHistory
from ethview.services.price_history import PriceHistoryEngine
from ethview.services.ranking import TokenRanking
from ethview.services.token_catalog import TokenCatalog
from ethview.services.transaction_details import TransactionDetailsResolver

logger = logging.getLogger(__name__)

LAST_BLOCK_KEY = "lastBlock"


class ExplorerService:
    """
    Read-side explorer queries over the indexed collections.

    One instance per process; every collaborator is injected. The last
    block number is read once at construction and kept for the lifetime
    of the instance.
    """

    def __init__(
        self,
        data: Optional[DataSourcePort],
        cache_backend: CacheBackendPort,
        node: Optional[RpcPort],
        config: ExplorerConfig,
        price: Optional[RpcPort] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if data is None:
            raise ConfigurationError("Data source is not configured")
        if node is None:
            raise ConfigurationError("Ethereum node RPC is not configured")

        self.config = config
        self.data = data
        self.cache = CacheStore(cache_backend, default_ttl=config.default_ttl, clock=clock)

        self.query = FilteredQuery(data)
        self.history = OperationHistory(self.query)
        self.prices = PriceHistoryEngine(
            self.cache, data, price=price, update_rates=config.update_rates, clock=clock
        )
        self.tokens = TokenCatalog(self.cache, self.history, self.prices, client_tokens=config.client_tokens)
        self.addresses = AddressDetailsResolver(self.tokens, self.history, node)
        self.transactions = TransactionDetailsResolver(self.cache, self.tokens, self.history, self.get_last_block)
        self.ranking = TokenRanking(self.cache, self.tokens, self.prices, clock=clock)
        self.csv = OperationsCsvExporter(self.cache, self.tokens, self.history)

        last_block = self.history.get_last_block()
        self.cache.store(LAST_BLOCK_KEY, last_block)
        logger.info("Last block: %s", last_block)

    @classmethod
    def from_config(cls, data: DataSourcePort, config: Optional[ExplorerConfig] = None) -> "ExplorerService":
        """Builds the JSON-RPC clients and the cache backend named in the configuration."""
        config = config or ExplorerConfig.from_settings()
        node = JsonRpcAdapter(config.ethereum_rpc_url, timeout_sec=config.rpc_timeout)
        price = JsonRpcAdapter(config.price_rpc_url, timeout_sec=config.rpc_timeout) if config.price_rpc_url else None

        if config.cache_backend == "memory":
            backend: CacheBackendPort = MemoryCacheBackend()
        elif config.cache_backend == "file":
            backend = FileCacheBackend(config.cache_dir)
        else:
            raise ConfigurationError(f"Unknown cache backend: {config.cache_backend}")

        logger.info(
            "Explorer configured: node=%s price=%s cache=%s",
            config.ethereum_rpc_url,
            config.price_rpc_url or "-",
            config.cache_backend,
        )
        return cls(data, backend, node, config, price=price)

    def get_last_block(self) -> Optional[int]:
        return self.cache.get(LAST_BLOCK_KEY)

    # -------------------------
    # Validation
    # -------------------------

    @staticmethod
    def is_valid_address(address: str) -> bool:
        return validators.is_valid_address(address)

    @staticmethod
    def is_valid_transaction_hash(tx_hash: str) -> bool:
        return validators.is_valid_transaction_hash(tx_hash)

    # -------------------------
    # Details
    # -------------------------

    def get_address_details(self, address: str, ctx: Optional[QueryContext] = None) -> AddressView:
        ctx = ctx or QueryContext(page_size=self.config.page_size)
        return self.addresses.get_address_details(address.lower(), ctx, limit=self.config.page_size)

    def get_transaction_details(self, tx_hash: str) -> TransactionDetails:
        return self.transactions.get_transaction_details(tx_hash.lower())

    # -------------------------
    # Tokens
    # -------------------------

    def get_tokens(self, force_refresh: bool = False) -> Dict[str, TokenView]:
        return self.tokens.get_tokens(force_refresh)

    def get_token(self, address: str) -> Optional[TokenView]:
        return self.tokens.get_token(address.lower())

    def search_token(self, query: str) -> SearchResult:
        return self.ranking.search_token(query)

    def get_last_transfers(
        self,
        address: Optional[str] = None,
        op_type: Optional[str] = OperationType.TRANSFER.value,
        history: bool = False,
        token: Optional[str] = None,
        since: int = 0,
        limit: Optional[int] = None,
    ) -> List[Operation]:
        """Latest operations with the token of each one attached."""
        operations = self.history.get_last_transfers(address, op_type, history, token, since, limit)
        tokens: Dict[str, Optional[TokenView]] = {}
        result = []
        for op in operations:
            if op.contract not in tokens:
                tokens[op.contract] = self.tokens.get_token(op.contract) if op.contract else None
            result.append(replace(op, token=tokens[op.contract]))
        return result

    def get_transactions(self, address: str, limit: int = 10, show_zero: bool = False) -> List[Dict[str, Any]]:
        return self.history.get_transactions(address.lower(), limit, show_zero)

    def count_transactions(self, address: str) -> int:
        address = address.lower()
        return self.history.count_transactions(address, self.tokens.get_contract(address) is not None)

    # -------------------------
    # Rankings
    # -------------------------

    def get_top_tokens(self, limit: int = 10, period_days: int = 30) -> List[TokenRank]:
        return self.ranking.get_top_tokens(limit, period_days)

    def get_top_tokens_by_period_volume(self, limit: int = 10, period_days: int = 30) -> List[TokenRank]:
        return self.ranking.get_top_tokens_by_period_volume(limit, period_days)

    def get_top_tokens_by_current_volume(self, limit: int = 10) -> List[TokenRank]:
        return self.ranking.get_top_tokens_by_current_volume(limit)

    # -------------------------
    # Prices and history
    # -------------------------

    def get_token_price(self, address: str, force_refresh: bool = False) -> Optional[TokenPrice]:
        return self.prices.get_token_price(address.lower(), force_refresh)

    def get_eth_price(self) -> Optional[TokenPrice]:
        return self.prices.get_eth_price()

    def get_token_history_grouped(self, period_days: int = 30, address: Optional[str] = None) -> List[DailyCount]:
        return self.prices.get_token_history_grouped(period_days, address.lower() if address else None)

    def get_token_price_history_grouped(
        self,
        address: str,
        period_days: int = 365,
        granularity: str = Granularity.DAILY.value,
    ) -> PriceHistoryGrouped:
        return self.prices.get_token_price_history_grouped(address.lower(), period_days, granularity)

    # -------------------------
    # Export
    # -------------------------

    def get_address_operations_csv(self, address: str, op_type: str = OperationType.TRANSFER.value) -> str:
        return self.csv.get_address_operations_csv(address.lower(), op_type)
