from __future__ import annotations

from enum import Enum


class Collection(str, Enum):
    TRANSACTIONS = "transactions"
    BLOCKS = "blocks"
    CONTRACTS = "contracts"
    TOKENS = "tokens"
    OPERATIONS = "operations"
    BALANCES = "balances"


class OperationType(str, Enum):
    TRANSFER = "transfer"
    ISSUANCE = "issuance"
    BURN = "burn"
    MINT = "mint"


class PagerSection(str, Enum):
    TRANSFERS = "transfers"
    ISSUANCES = "issuances"
    HOLDERS = "holders"
    CHAINY = "chainy"


class Granularity(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


ALL_OPERATION_TYPES = [t.value for t in OperationType]
ISSUANCE_TYPES = [OperationType.ISSUANCE.value, OperationType.BURN.value, OperationType.MINT.value]

# Contract of the "Chainy" log-anchoring application
ADDRESS_CHAINY = "0xf3763c30dd6986b53402d41a8552b8f7f6a6089b"
ADDRESS_ETH = "0x0000000000000000000000000000000000000000"
