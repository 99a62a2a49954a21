from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from ethview.core.enums import ISSUANCE_TYPES, OperationType, PagerSection
from ethview.core.models import (
    AddressView,
    ContractView,
    Pager,
    QueryContext,
    TokenAddressView,
    TokenView,
    WalletView,
)
from ethview.core.validators import is_chainy_address
from ethview.ports.rpc_port import RpcPort
from ethview.services.filtered_query import resolve_page
from ethview.services.operation_history import OperationHistory
from ethview.services.token_catalog import TokenCatalog

WEI_PER_ETH = 10 ** 18

TOKEN_SECTIONS = (PagerSection.TRANSFERS.value, PagerSection.ISSUANCES.value, PagerSection.HOLDERS.value)


class AddressDetailsResolver:
    """
    Assembles the view of one address.

    Decision order: contract that is a token, Chainy contract, bare
    contract, token without a contract record, and finally a plain wallet.
    A bare contract gets the same balances and transfer listing as a wallet.
    """

    def __init__(self, tokens: TokenCatalog, history: OperationHistory, node: RpcPort) -> None:
        self.tokens = tokens
        self.history = history
        self.node = node

    def get_balance(self, address: str) -> Optional[float]:
        raw = self.node.call("eth_getBalance", [address, "latest"])
        if not isinstance(raw, str):
            return None
        try:
            return int(raw, 16) / WEI_PER_ETH
        except ValueError:
            return None

    def get_address_details(self, address: str, ctx: Optional[QueryContext] = None, limit: int = 50) -> AddressView:
        ctx = ctx or QueryContext()
        if ctx.page_size:
            limit = ctx.page_size

        balance = balance_in = balance_out = None
        if not ctx.refresh:
            balance = self.get_balance(address)
            balance_out = self.history.get_ether_total_out(address)
            balance_in = balance_out + (balance or 0)
        common = dict(address=address, balance=balance, balance_in=balance_in, balance_out=balance_out)

        contract = self.tokens.get_contract(address)
        token: Optional[TokenView] = None
        if contract is not None:
            token = self.tokens.get_token(address)
            if token is None:
                view = ContractView(is_contract=True, contract=contract, **common)
                if is_chainy_address(address):
                    self._fill_chainy(view, ctx, limit)
                else:
                    self._fill_wallet(view, ctx, limit)
                return view
        else:
            token = self.tokens.get_token(address)

        if token is not None:
            view = TokenAddressView(
                is_contract=True,
                contract=contract or {},
                token=token,
                page_size=limit,
                **common,
            )
            self._fill_token_sections(view, ctx, limit)
            return view

        view = WalletView(**common)
        self._fill_wallet(view, ctx, limit)
        return view

    # -------------------------
    # Sections
    # -------------------------

    def _fill_chainy(self, view: ContractView, ctx: QueryContext, limit: int) -> None:
        section = PagerSection.CHAINY.value
        page = ctx.page(section)
        count = self.history.count_chainy(ctx.text_filter)
        page, offset = resolve_page(page, ctx.offset(section, limit), count)
        view.chainy = self.history.get_chainy_transactions(limit, offset, ctx.text_filter)
        total = self.history.count_chainy() if ctx.text_filter else count
        view.pager[section] = Pager(page=page, records=count, total=total)

    def _section_sources(self, address: str, ctx: QueryContext) -> Dict[str, Tuple[Callable[..., int], Callable[..., List]]]:
        h, t = self.history, self.tokens
        transfer = OperationType.TRANSFER.value
        return {
            PagerSection.TRANSFERS.value: (
                lambda flt: h.count_contract_operations(transfer, address, flt),
                lambda lim, off: h.get_contract_operations(transfer, address, lim, off, ctx.text_filter),
            ),
            PagerSection.ISSUANCES.value: (
                lambda flt: h.count_contract_operations(ISSUANCE_TYPES, address, flt),
                lambda lim, off: h.get_contract_operations(ISSUANCE_TYPES, address, lim, off, ctx.text_filter),
            ),
            PagerSection.HOLDERS.value: (
                lambda flt: t.get_token_holders_count(address, flt),
                lambda lim, off: t.get_token_holders(address, lim, off, ctx.text_filter),
            ),
        }

    def _fill_token_sections(self, view: TokenAddressView, ctx: QueryContext, limit: int) -> None:
        sources = self._section_sources(view.address, ctx)
        for section in TOKEN_SECTIONS:
            if ctx.refresh and section != ctx.refresh:
                continue
            count_fn, fetch_fn = sources[section]
            # one count decides the clamp and is reported as records
            count = count_fn(ctx.text_filter)
            total = count_fn(None) if ctx.text_filter else count
            page, offset = resolve_page(ctx.page(section), ctx.offset(section, limit), count)
            setattr(view, section, fetch_fn(limit, offset))
            view.pager[section] = Pager(page=page, records=count, total=total)

    def _fill_wallet(self, view: WalletView, ctx: QueryContext, limit: int) -> None:
        address = view.address
        view.balances = self.history.get_address_balances(address)
        for balance in view.balances:
            token = self.tokens.get_token(balance.contract)
            if token is not None:
                view.tokens[balance.contract] = token

        section = PagerSection.TRANSFERS.value
        records = self.history.count_operations(address, is_token=False, text_filter=ctx.text_filter)
        total = self.history.count_operations(address, is_token=False)
        page, offset = resolve_page(ctx.page(section), ctx.offset(section, limit), records)
        view.transfers = self.history.get_address_operations(address, limit, offset, text_filter=ctx.text_filter)
        view.pager[section] = Pager(page=page, records=records, total=total)
