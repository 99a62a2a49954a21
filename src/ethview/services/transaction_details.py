from __future__ import annotations

from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from ethview.core.enums import Collection
from ethview.core.models import TransactionDetails
from ethview.services.cache_store import MISS, CacheKey, CacheStore
from ethview.services.operation_history import OperationHistory
from ethview.services.token_catalog import TokenCatalog


class TransactionDetailsResolver:
    def __init__(
        self,
        cache: CacheStore,
        tokens: TokenCatalog,
        history: OperationHistory,
        last_block: Callable[[], Optional[int]],
    ) -> None:
        self.cache = cache
        self.tokens = tokens
        self.history = history
        self.data = history.data
        self._last_block = last_block

    def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        tx = self.data.find_one(Collection.TRANSACTIONS.value, {"hash": tx_hash})
        if tx is None:
            return None
        tx.pop("_id", None)
        receipt = tx.get("receipt") or None
        tx["gasLimit"] = tx.pop("gas", 0)
        tx["gasUsed"] = receipt.get("gasUsed", 0) if receipt else 0
        tx["success"] = tx["gasUsed"] < tx["gasLimit"] or bool(receipt and receipt.get("logs"))
        return tx

    def _build(self, tx_hash: str) -> TransactionDetails:
        tx = self.get_transaction(tx_hash)
        details = TransactionDetails(tx=tx)
        if tx is None:
            return details

        contracts: List[str] = []
        token_address = None
        if tx.get("creates"):
            contracts.append(tx["creates"])
            token_address = tx["creates"]
        if self.tokens.get_contract(tx["from"]) is not None:
            contracts.append(tx["from"])
        if tx.get("to") and self.tokens.get_contract(tx["to"]) is not None:
            contracts.append(tx["to"])
            token_address = tx["to"]
        if token_address:
            details.token = self.tokens.get_token(token_address)

        operations = self.history.get_operations(tx_hash)
        for idx, op in enumerate(operations):
            if op.contract != tx.get("to"):
                contracts.append(op.contract)
            token = self.tokens.get_token(op.contract) if op.contract else None
            if token is not None:
                details.token = token
                operations[idx] = replace(op, type=op.type.capitalize(), token=token)
        details.operations = operations
        details.contracts = list(dict.fromkeys(c for c in contracts if c))
        return details

    def get_transaction_details(self, tx_hash: str) -> TransactionDetails:
        key = CacheKey("tx", (tx_hash,))
        details = self.cache.get(key)
        if details is MISS:
            details = self._build(tx_hash)
            if details.tx is not None:
                self.cache.save(key, details)

        # confirmations and token price move on; never served from cache
        if details.tx is not None:
            last_block = self._last_block()
            tx = dict(details.tx)
            if last_block is not None and tx.get("blockNumber") is not None:
                tx["confirmations"] = last_block - int(tx["blockNumber"]) + 1
            details = replace(details, tx=tx)
        if details.token is not None:
            details = replace(details, token=self.tokens.get_token(details.token.address))
        return details
