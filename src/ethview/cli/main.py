from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import replace
from typing import Any, Optional

from ethview.adapters.cache.memory_backend import MemoryCacheBackend
from ethview.adapters.rpc.static_rpc_adapter import StaticRpcAdapter
from ethview.adapters.store.static_data_source import StaticDataSource
from ethview.config import settings
from ethview.core.enums import Granularity, PagerSection
from ethview.core.errors import ExplorerError
from ethview.core.models import ExplorerConfig, QueryContext
from ethview.io.output_writer import write_csv, write_view_json
from ethview.io.schemas import to_jsonable
from ethview.services.explorer_service import ExplorerService


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="ethview", description="Block explorer queries over an indexed chain dump")
    p.add_argument("--data", required=True, help="JSON dump of the indexed collections")
    p.add_argument("--use-static", action="store_true", help="Use static node/price adapters and a memory cache (dev/testing)")
    p.add_argument("--address", help="Show address details")
    p.add_argument("--tx", help="Show transaction details")
    p.add_argument("--token", help="Show token info")
    p.add_argument("--top", choices=["operations", "period-volume", "current-volume"], help="Show a top token list")
    p.add_argument("--limit", type=int, default=10, help="Top list length")
    p.add_argument("--period", type=int, default=30, help="Period in days for top lists and history")
    p.add_argument("--search", help="Search tokens by address, name or symbol")
    p.add_argument("--csv", help="Export operations of an address as CSV")
    p.add_argument("--price-history", help="Show grouped price history of a token")
    p.add_argument("--granularity", choices=[g.value for g in Granularity], default=Granularity.DAILY.value)
    p.add_argument("--page", type=int, default=1, help="Page number for --section")
    p.add_argument("--page-size", type=int, default=0, help="Rows per page (0=configured default)")
    p.add_argument("--filter", help="Text filter for address listings")
    p.add_argument("--section", choices=[s.value for s in PagerSection], default=PagerSection.TRANSFERS.value)
    p.add_argument("--refresh", action="store_true", help="Render only --section, skipping balances and the other sections")
    p.add_argument("--out", help="Write the result to this folder instead of stdout")
    return p


def _build_service(args: argparse.Namespace) -> ExplorerService:
    data = StaticDataSource.from_json(args.data)
    if args.use_static:
        config = ExplorerConfig(ethereum_rpc_url=None, cache_backend="memory", page_size=settings.PAGE_SIZE)
        return ExplorerService(data, MemoryCacheBackend(), StaticRpcAdapter(), config)
    return ExplorerService.from_config(data)


def _emit(result: Any, args: argparse.Namespace, filename: str) -> None:
    if args.out:
        print(f"Wrote: {write_view_json(result, args.out, filename)}")
    else:
        print(json.dumps(to_jsonable(result), indent=2))


def main(argv: Optional[list] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        svc = _build_service(args)
    except ExplorerError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.address:
        if not svc.is_valid_address(args.address.lower()):
            print(f"Invalid address: {args.address}", file=sys.stderr)
            return 2
        ctx = QueryContext(page_size=args.page_size, text_filter=args.filter)
        if args.page > 1:
            ctx = ctx.with_page(args.section, args.page)
        if args.refresh:
            ctx = replace(ctx, refresh=args.section)
        _emit(svc.get_address_details(args.address, ctx), args, "address.json")
        return 0

    if args.tx:
        if not svc.is_valid_transaction_hash(args.tx.lower()):
            print(f"Invalid transaction hash: {args.tx}", file=sys.stderr)
            return 2
        _emit(svc.get_transaction_details(args.tx), args, "tx.json")
        return 0

    if args.token:
        _emit(svc.get_token(args.token), args, "token.json")
        return 0

    if args.top:
        if args.top == "operations":
            result = svc.get_top_tokens(args.limit, args.period)
        elif args.top == "period-volume":
            result = svc.get_top_tokens_by_period_volume(args.limit, args.period)
        else:
            result = svc.get_top_tokens_by_current_volume(args.limit)
        _emit(result, args, "top.json")
        return 0

    if args.search:
        _emit(svc.search_token(args.search), args, "search.json")
        return 0

    if args.csv:
        text = svc.get_address_operations_csv(args.csv)
        if args.out:
            print(f"Wrote: {write_csv(text, args.out)}")
        else:
            sys.stdout.write(text)
        return 0

    if args.price_history:
        result = svc.get_token_price_history_grouped(args.price_history, args.period, args.granularity)
        _emit(result, args, "price_history.json")
        return 0

    print("Nothing to do: pass one of --address, --tx, --token, --top, --search, --csv, --price-history", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
