import unittest

from ethview.adapters.store.static_data_source import StaticDataSource
from ethview.core.errors import DataSourceError
from ethview.services.filtered_query import FilteredQuery, apply_text_filter, resolve_page


def _ops(n: int, contract: str = "0xtoken"):
    return [
        {
            "transactionHash": f"0xhash{i:02d}",
            "timestamp": 1000 + i,
            "contract": contract,
            "type": "transfer",
            "from": f"0xfrom{i % 3}",
            "to": f"0xto{i}",
            "value": str(i),
        }
        for i in range(n)
    ]


class ResolvePageTests(unittest.TestCase):
    def test_offset_past_count_resets_to_first_page(self) -> None:
        self.assertEqual(resolve_page(3, 100, 5), (1, 0))

    def test_offset_equal_to_count_is_kept(self) -> None:
        self.assertEqual(resolve_page(2, 5, 5), (2, 5))

    def test_first_page(self) -> None:
        self.assertEqual(resolve_page(1, 0, 0), (1, 0))


class TextFilterTests(unittest.TestCase):
    def test_no_filter_leaves_base_untouched(self) -> None:
        base = {"contract": "0xtoken"}
        self.assertIs(apply_text_filter(base, None), base)
        self.assertIs(apply_text_filter(base, ""), base)

    def test_filter_is_literal(self) -> None:
        flt = apply_text_filter({"a": 1}, "0x.*", fields=("from",))
        self.assertEqual(flt, {"$and": [{"a": 1}, {"from": {"$regex": r"0x\.\*"}}]})

    def test_filter_spans_all_fields(self) -> None:
        flt = apply_text_filter({}, "abc")
        clauses = flt["$and"][1]["$or"]
        self.assertEqual([list(c)[0] for c in clauses], ["from", "to", "address", "transactionHash"])


class FilteredQueryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.data = StaticDataSource({"operations": _ops(5)})
        self.query = FilteredQuery(self.data)

    def test_query_clamps_offset_past_matches(self) -> None:
        page = self.query.query("operations", {"contract": "0xtoken"}, limit=2, offset=100)
        self.assertEqual(page.matched_count, 5)
        self.assertEqual([d["transactionHash"] for d in page.items], ["0xhash04", "0xhash03"])

    def test_default_sort_is_newest_first(self) -> None:
        docs = self.query.find("operations", {})
        self.assertEqual([d["timestamp"] for d in docs], [1004, 1003, 1002, 1001, 1000])

    def test_text_filter_narrows_count(self) -> None:
        self.assertEqual(self.query.count("operations", {"contract": "0xtoken"}), 5)
        self.assertEqual(self.query.count("operations", {"contract": "0xtoken"}, "0xfrom1"), 2)

    def test_regex_characters_match_literally(self) -> None:
        self.assertEqual(self.query.count("operations", {}, ".*"), 0)


class StaticDataSourceTests(unittest.TestCase):
    def test_projection_and_skip(self) -> None:
        data = StaticDataSource({"operations": _ops(4)})
        docs = data.find("operations", {}, projection=("value",), sort={"timestamp": 1}, skip=1, limit=2)
        self.assertEqual(docs, [{"value": "1"}, {"value": "2"}])

    def test_operators(self) -> None:
        data = StaticDataSource({"balances": [
            {"address": "0x1", "balance": 5},
            {"address": "0x2", "balance": 0},
            {"address": "0x3"},
        ]})
        self.assertEqual(data.count("balances", {"balance": {"$gt": 0}}), 1)
        self.assertEqual(data.count("balances", {"balance": {"$exists": False}}), 1)
        self.assertEqual(data.count("balances", {"address": {"$in": ["0x1", "0x3"]}}), 2)
        self.assertEqual(data.count("balances", {"$or": [{"balance": 0}, {"address": "0x3"}]}), 2)

    def test_group_by_utc_day(self) -> None:
        data = StaticDataSource({"operations": [
            {"timestamp": 86400 * 2 + 10, "intValue": 1},
            {"timestamp": 86400 * 2 + 20, "intValue": 2},
            {"timestamp": 86400 * 3 + 5, "intValue": 4},
        ]})
        rows = data.aggregate("operations", [
            {"$group": {
                "_id": {"$dateToString": {"format": "%Y-%m-%d", "date": {"$toDate": {"$multiply": ["$timestamp", 1000]}}}},
                "ts": {"$first": "$timestamp"},
                "sum": {"$sum": "$intValue"},
            }},
            {"$sort": {"ts": -1}},
            {"$limit": 5},
        ])
        self.assertEqual(rows, [
            {"_id": "1970-01-04", "ts": 86400 * 3 + 5, "sum": 4},
            {"_id": "1970-01-03", "ts": 86400 * 2 + 10, "sum": 3},
        ])

    def test_unknown_operator_raises(self) -> None:
        data = StaticDataSource({"x": [{"a": 1}]})
        with self.assertRaises(DataSourceError):
            data.count("x", {"a": {"$where": "1"}})

    def test_find_returns_copies(self) -> None:
        data = StaticDataSource({"contracts": [{"address": "0x1", "_id": 7}]})
        data.find_one("contracts", {"address": "0x1"}).pop("_id")
        self.assertEqual(data.find_one("contracts", {"address": "0x1"})["_id"], 7)


if __name__ == "__main__":
    unittest.main()
