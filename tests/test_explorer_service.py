import json
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path

from ethview.adapters.cache.memory_backend import MemoryCacheBackend
from ethview.adapters.rpc.static_rpc_adapter import StaticRpcAdapter
from ethview.adapters.store.static_data_source import StaticDataSource
from ethview.core.errors import ConfigurationError
from ethview.core.models import ExplorerConfig, QueryContext, TokenView
from ethview.io.output_writer import write_csv, write_view_json
from ethview.io.schemas import to_jsonable
from ethview.services.explorer_service import ExplorerService

TOKEN = "0x" + "a" * 40
WALLET = "0x" + "b" * 40
TX = "0x" + "1" * 64
NOW = 1_700_000_000


def _data():
    return StaticDataSource({
        "blocks": [{"number": 7}, {"number": 12}, {"number": 9}],
        "tokens": [{"address": TOKEN, "name": "Alpha", "symbol": "ALP", "decimals": 2, "totalSupply": "1000", "txsCount": 1}],
        "contracts": [{"address": TOKEN}],
        "transactions": [{"hash": TX, "from": WALLET, "to": TOKEN, "gas": 10, "blockNumber": 10, "receipt": {"gasUsed": 5}}],
        "operations": [
            {"transactionHash": TX, "timestamp": NOW - 10, "contract": TOKEN, "type": "transfer",
             "from": WALLET, "to": TOKEN, "value": "250"},
        ],
        "balances": [{"contract": TOKEN, "address": WALLET, "balance": 250, "totalIn": 250, "totalOut": 0}],
    })


def _config(**overrides):
    defaults = dict(ethereum_rpc_url="http://node", cache_backend="memory", page_size=10,
                    client_tokens={TOKEN: {"name": "Alpha Prime"}})
    defaults.update(overrides)
    return ExplorerConfig(**defaults)


class ExplorerServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.node = StaticRpcAdapter({"eth_getBalance": "0x0"})
        self.svc = ExplorerService(_data(), MemoryCacheBackend(), self.node, _config(), clock=lambda: float(NOW))

    def test_missing_collaborators_are_configuration_errors(self) -> None:
        with self.assertRaises(ConfigurationError):
            ExplorerService(None, MemoryCacheBackend(), self.node, _config())
        with self.assertRaises(ConfigurationError):
            ExplorerService(_data(), MemoryCacheBackend(), None, _config())

    def test_unknown_cache_backend(self) -> None:
        with self.assertRaises(ConfigurationError):
            ExplorerService.from_config(_data(), _config(cache_backend="redis"))

    def test_last_block_is_loaded_once(self) -> None:
        self.assertEqual(self.svc.get_last_block(), 12)
        self.svc.data.insert("blocks", {"number": 99})
        self.assertEqual(self.svc.get_last_block(), 12)

    def test_transaction_details_use_last_block(self) -> None:
        details = self.svc.get_transaction_details(TX.upper().replace("0X", "0x"))
        self.assertEqual(details.tx["confirmations"], 3)
        self.assertEqual(details.token.name, "Alpha Prime")

    def test_address_details_use_configured_page_size(self) -> None:
        view = self.svc.get_address_details(TOKEN)
        self.assertEqual(view.page_size, 10)
        self.assertEqual(view.pager["transfers"].records, 1)

        view = self.svc.get_address_details(TOKEN, QueryContext(page_size=1))
        self.assertEqual(view.page_size, 1)

    def test_last_transfers_attach_tokens(self) -> None:
        ops = self.svc.get_last_transfers(address=TOKEN, limit=5)
        self.assertEqual(len(ops), 1)
        self.assertEqual(ops[0].token.symbol, "ALP")

    def test_transaction_listing(self) -> None:
        self.assertEqual(self.svc.get_transactions(WALLET.upper().replace("0X", "0x")), [])
        self.assertEqual([tx["hash"] for tx in self.svc.get_transactions(WALLET, show_zero=True)], [TX])
        self.assertEqual(self.svc.count_transactions(WALLET), 1)
        self.assertEqual(self.svc.count_transactions(TOKEN), 2)

    def test_queries_are_exposed(self) -> None:
        self.assertEqual([r.token.address for r in self.svc.get_top_tokens()], [TOKEN])
        self.assertEqual(self.svc.search_token("prime").total, 1)
        self.assertIn(TOKEN, self.svc.get_tokens())
        self.assertIsNone(self.svc.get_token_price(TOKEN))
        self.assertEqual(self.svc.get_token_history_grouped(30, TOKEN)[0].count, 1)
        self.assertTrue(self.svc.get_address_operations_csv(WALLET).startswith("date;txhash"))
        self.assertTrue(self.svc.is_valid_address(WALLET))
        self.assertFalse(self.svc.is_valid_transaction_hash(WALLET))


class SchemaAndWriterTests(unittest.TestCase):
    def test_views_become_json_safe(self) -> None:
        token = TokenView(address=TOKEN, name="Alpha", total_supply=Decimal("1000.5"), extra={"website": "x"})
        out = to_jsonable(token)
        self.assertEqual(out["totalSupply"], "1000.5")
        self.assertEqual(out["website"], "x")
        self.assertNotIn("extra", out)
        json.dumps(out)

    def test_view_kind_is_emitted(self) -> None:
        node = StaticRpcAdapter({"eth_getBalance": "0x0"})
        svc = ExplorerService(_data(), MemoryCacheBackend(), node, _config(), clock=lambda: float(NOW))
        out = to_jsonable(svc.get_address_details(WALLET))
        self.assertEqual(out["kind"], "wallet")
        self.assertEqual(out["transfers"][0]["from"], WALLET)
        self.assertNotIn("raw", out["transfers"][0])

    def test_writers(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            json_path = write_view_json({"a": Decimal("1.10")}, tmp, "x.json")
            csv_path = write_csv("h\r\nr\r\n", tmp)
            self.assertEqual(json.loads(Path(json_path).read_text()), {"a": "1.10"})
            self.assertEqual(Path(csv_path).read_bytes(), b"h\r\nr\r\n")


if __name__ == "__main__":
    unittest.main()
