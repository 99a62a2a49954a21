import unittest

from ethview.adapters.store.static_data_source import StaticDataSource
from ethview.services.filtered_query import FilteredQuery
from ethview.services.operation_history import OperationHistory

TOKEN = "0x" + "a" * 40
WALLET = "0x" + "b" * 40
PEER = "0x" + "e" * 40


def _op(tx: str, ts: int, priority: int, op_type: str = "transfer"):
    return {"transactionHash": tx, "timestamp": ts, "priority": priority, "contract": TOKEN,
            "type": op_type, "from": WALLET, "to": PEER, "value": "1"}


def _history(collections) -> OperationHistory:
    return OperationHistory(FilteredQuery(StaticDataSource(collections)))


class OperationOrderTests(unittest.TestCase):
    def setUp(self) -> None:
        # store order differs from in-transaction order
        self.history = _history({"operations": [
            _op("0x01", 100, 2),
            _op("0x01", 100, 1),
            _op("0x02", 200, 0),
        ]})

    def _order(self, ops):
        return [(op.transaction_hash, op.priority) for op in ops]

    def test_contract_operations_newest_first_then_priority(self) -> None:
        ops = self.history.get_contract_operations("transfer", TOKEN)
        self.assertEqual(self._order(ops), [("0x02", 0), ("0x01", 1), ("0x01", 2)])

    def test_address_operations_follow_priority(self) -> None:
        ops = self.history.get_address_operations(WALLET)
        self.assertEqual(self._order(ops), [("0x02", 0), ("0x01", 1), ("0x01", 2)])

    def test_last_transfers_follow_priority(self) -> None:
        ops = self.history.get_last_transfers(address=TOKEN, limit=2)
        self.assertEqual(self._order(ops), [("0x02", 0), ("0x01", 1)])

    def test_operations_of_one_transaction(self) -> None:
        ops = self.history.get_operations("0x01")
        self.assertEqual([op.priority for op in ops], [1, 2])


class TransactionListingTests(unittest.TestCase):
    def setUp(self) -> None:
        self.history = _history({"transactions": [
            {"hash": "0x01", "timestamp": 10, "from": WALLET, "to": PEER, "value": 5, "input": "0x", "gas": 21000},
            {"hash": "0x02", "timestamp": 20, "from": PEER, "to": WALLET, "value": 0, "input": "0x"},
            {"hash": "0x03", "timestamp": 30, "from": PEER, "to": TOKEN, "value": 1, "input": "0x"},
        ]})

    def test_zero_value_transactions_are_hidden_by_default(self) -> None:
        txs = self.history.get_transactions(WALLET)
        self.assertEqual([tx["hash"] for tx in txs], ["0x01"])
        self.assertEqual(set(txs[0]), {"timestamp", "from", "to", "hash", "value", "input"})

    def test_show_zero_lists_newest_first(self) -> None:
        txs = self.history.get_transactions(WALLET, show_zero=True)
        self.assertEqual([tx["hash"] for tx in txs], ["0x02", "0x01"])

    def test_count_includes_contract_creation(self) -> None:
        self.assertEqual(self.history.count_transactions(WALLET, is_contract=False), 2)
        self.assertEqual(self.history.count_transactions(TOKEN, is_contract=True), 2)


if __name__ == "__main__":
    unittest.main()
