from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence, Union

from ethview.core.dto import Balance, ChainyEntry, Operation
from ethview.core.enums import ADDRESS_CHAINY, ALL_OPERATION_TYPES, Collection, OperationType
from ethview.core.validators import is_valid_address
from ethview.services.filtered_query import FilteredQuery

OpTypes = Union[str, Sequence[str]]

_OPS = Collection.OPERATIONS.value
_TXS = Collection.TRANSACTIONS.value

# newest first, then in-transaction order
OPERATION_SORT: Dict[str, int] = {"timestamp": -1, "priority": 1}


def _type_condition(types: OpTypes) -> Any:
    if isinstance(types, str):
        return types
    return {"$in": list(types)}


def _participant_filter(address: str) -> Dict[str, Any]:
    return {"$or": [{"from": address}, {"to": address}, {"address": address}]}


def _chainy_link(data: str) -> str:
    # link bytes follow the ABI head of the first log's data
    link = re.sub(r"0+$", "", data[194:])
    if len(link) % 2:
        link += "0"
    return link


class OperationHistory:
    """
    Listings and counts over token operations and raw transactions.
    """

    def __init__(self, query: FilteredQuery) -> None:
        self.query = query
        self.data = query.data

    # -------------------------
    # Operations of one transaction
    # -------------------------

    def get_operations(self, tx_hash: str, types: Optional[OpTypes] = None) -> List[Operation]:
        search: Dict[str, Any] = {"transactionHash": tx_hash}
        if types:
            search["type"] = _type_condition(types)
        docs = self.data.find(_OPS, search, sort={"priority": 1})
        return [Operation.from_doc(d) for d in docs]

    # -------------------------
    # Address / contract operations
    # -------------------------

    def get_address_operations(
        self,
        address: str,
        limit: int = 10,
        offset: int = 0,
        types: Sequence[str] = tuple(ALL_OPERATION_TYPES),
        text_filter: Optional[str] = None,
    ) -> List[Operation]:
        base = _participant_filter(address)
        base["type"] = _type_condition(list(types))
        docs = self.query.find(_OPS, base, sort=OPERATION_SORT, limit=limit, offset=offset, text_filter=text_filter)
        return [Operation.from_doc(d) for d in docs]

    def count_operations(self, address: str, is_token: bool, text_filter: Optional[str] = None) -> int:
        if is_token:
            base: Dict[str, Any] = {"contract": address}
        else:
            base = _participant_filter(address)
            base["type"] = _type_condition(ALL_OPERATION_TYPES)
        return self.query.count(_OPS, base, text_filter)

    def get_contract_operations(
        self,
        types: OpTypes,
        address: str,
        limit: int = 10,
        offset: int = 0,
        text_filter: Optional[str] = None,
    ) -> List[Operation]:
        base = {"contract": address, "type": _type_condition(types)}
        docs = self.query.find(_OPS, base, sort=OPERATION_SORT, limit=limit, offset=offset, text_filter=text_filter)
        return [Operation.from_doc(d) for d in docs]

    def count_contract_operations(self, types: OpTypes, address: str, text_filter: Optional[str] = None) -> int:
        base = {"contract": address, "type": _type_condition(types)}
        return self.query.count(_OPS, base, text_filter)

    def get_last_transfers(
        self,
        address: Optional[str] = None,
        op_type: Optional[OpTypes] = OperationType.TRANSFER.value,
        history: bool = False,
        token: Optional[str] = None,
        since: int = 0,
        limit: Optional[int] = None,
    ) -> List[Operation]:
        """
        Latest operations, newest first.

        Without history, address selects the token contract; with history it
        selects the participant and token optionally narrows to one contract.
        op_type None lists every operation type.
        """
        search: Dict[str, Any] = {}
        if op_type:
            search["type"] = _type_condition(op_type)
        if address and not history:
            search["contract"] = address
        if address and history:
            search.update(_participant_filter(address))
        if token and history:
            search["contract"] = token
        if since > 0:
            search["timestamp"] = {"$gt": since}
        docs = self.data.find(_OPS, search, sort=OPERATION_SORT, limit=int(limit or 0))
        return [Operation.from_doc(d) for d in docs]

    # -------------------------
    # Balances
    # -------------------------

    def get_address_balances(self, address: str, with_zero: bool = True) -> List[Balance]:
        search: Dict[str, Any] = {"address": address, "totalIn": {"$gt": 0}}
        if not with_zero:
            search["balance"] = {"$gt": 0}
        docs = self.data.find(
            Collection.BALANCES.value,
            search,
            projection=("address", "contract", "balance", "totalIn", "totalOut"),
        )
        return [Balance.from_doc(d) for d in docs]

    def get_ether_total_out(self, address: str) -> float:
        result = 0.0
        if not is_valid_address(address):
            return result
        rows = self.data.aggregate(_TXS, [
            {"$match": {"from": address}},
            {"$group": {"_id": "$from", "out": {"$sum": "$value"}}},
        ])
        for row in rows:
            result += float(row.get("out") or 0)
        return result

    # -------------------------
    # Transactions
    # -------------------------

    def get_transactions(self, address: str, limit: int = 10, show_zero: bool = False) -> List[Dict[str, Any]]:
        search: Dict[str, Any] = {"$or": [{"from": address}, {"to": address}]}
        if not show_zero:
            search = {"$and": [search, {"value": {"$gt": 0}}]}
        docs = self.data.find(_TXS, search, sort={"timestamp": -1}, limit=limit)
        keys = ("timestamp", "from", "to", "hash", "value", "input")
        return [{k: tx.get(k) for k in keys} for tx in docs]

    def count_transactions(self, address: str, is_contract: bool) -> int:
        result = self.data.count(_TXS, {"$or": [{"from": address}, {"to": address}]})
        if is_contract:
            result += 1  # contract creation
        return result

    def get_last_block(self) -> Optional[int]:
        block = self.data.find_one(Collection.BLOCKS.value, {}, projection=("number",), sort={"number": -1})
        if block and block.get("number") is not None:
            return int(block["number"])
        return None

    # -------------------------
    # Chainy
    # -------------------------

    def get_chainy_transactions(self, limit: int = 10, offset: int = 0, text_filter: Optional[str] = None) -> List[ChainyEntry]:
        docs = self.query.find(
            _TXS,
            {"to": ADDRESS_CHAINY},
            limit=limit,
            offset=offset,
            text_filter=text_filter,
            fields=("hash",),
        )
        result: List[ChainyEntry] = []
        for tx in docs:
            logs = (tx.get("receipt") or {}).get("logs") or []
            if not logs:
                continue
            result.append(
                ChainyEntry(
                    hash=tx.get("hash", ""),
                    timestamp=int(tx.get("timestamp", 0)),
                    input=tx.get("input", ""),
                    link=_chainy_link(logs[0].get("data", "")),
                )
            )
        return result

    def count_chainy(self, text_filter: Optional[str] = None) -> int:
        return self.query.count(_TXS, {"to": ADDRESS_CHAINY}, text_filter, fields=("hash",))
