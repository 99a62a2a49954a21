from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Dict, List, Optional

from ethview.config import settings
from ethview.core.dto import Operation
from ethview.core.enums import OperationType
from ethview.core.models import TokenView
from ethview.services.cache_store import MISS, CacheKey, CacheStore
from ethview.services.operation_history import OperationHistory
from ethview.services.token_catalog import TokenCatalog

CSV_HEADER = ["date", "txhash", "from", "to", "token-name", "token-address", "value", "symbol"]
CSV_SEPARATOR = ";"
CSV_LINE_END = "\r\n"

_FOUR_PLACES = Decimal("0.0001")


def format_value(raw: str, decimals: Optional[int]) -> str:
    """Raw integer amount scaled by 10^decimals, 4 places, half-up. Raw when decimals unknown."""
    if decimals is None:
        return str(raw)
    raw = str(raw)
    with localcontext() as ctx:
        # exact for any uint256 amount
        ctx.prec = len(raw) + abs(int(decimals)) + 8
        try:
            amount = Decimal(raw).scaleb(-int(decimals))
            return str(amount.quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP))
        except InvalidOperation:
            return raw


def format_row(fields: List[str]) -> str:
    return CSV_SEPARATOR.join(fields) + CSV_LINE_END


class OperationsCsvExporter:
    def __init__(self, cache: CacheStore, tokens: TokenCatalog, history: OperationHistory) -> None:
        self.cache = cache
        self.tokens = tokens
        self.history = history

    def _operations(self, address: str, op_type: str, token: Optional[TokenView]) -> List[Operation]:
        if token is not None:
            return self.history.get_last_transfers(address=address, op_type=op_type, limit=settings.CSV_ROW_LIMIT)
        return self.history.get_address_operations(
            address, settings.CSV_ROW_LIMIT, 0, types=[OperationType.TRANSFER.value]
        )

    def get_address_operations_csv(self, address: str, op_type: str = OperationType.TRANSFER.value) -> str:
        key = CacheKey("address_operations_csv", (address, op_type, settings.CSV_ROW_LIMIT))
        cached = self.cache.get(key, ttl=settings.CSV_TTL)
        if cached is not MISS:
            return cached

        # rows of a contract's own operations carry no per-row token info
        add_token_info = self.tokens.get_contract(address) is None
        own_token = self.tokens.get_token(address)

        decimals: Optional[int] = None
        token_name = token_symbol = ""
        if own_token is not None:
            decimals = own_token.decimals
            token_name = own_token.name or ""
            token_symbol = own_token.symbol or ""

        seen: Dict[str, Optional[TokenView]] = {}
        lines = [format_row(CSV_HEADER)]
        for op in self._operations(address, op_type, own_token):
            token_address = ""
            if add_token_info and op.contract:
                token_name = token_symbol = ""
                decimals = None
                if op.contract not in seen:
                    seen[op.contract] = self.tokens.get_token(op.contract)
                token = seen[op.contract]
                if token is not None:
                    token_name = token.name or ""
                    token_symbol = token.symbol or ""
                    token_address = token.address
                    if token.decimals is not None:
                        decimals = token.decimals
            lines.append(format_row([
                datetime.fromtimestamp(op.timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S"),
                op.transaction_hash,
                op.from_address or "",
                op.to_address or "",
                token_name,
                token_address,
                format_value(op.value, decimals),
                token_symbol,
            ]))

        result = "".join(lines)
        self.cache.save(key, result)
        return result
