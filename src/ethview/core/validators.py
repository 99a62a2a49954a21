import re

from ethview.core.enums import ADDRESS_CHAINY

_ADDRESS_RE = re.compile(r"0x[0-9a-f]{40}")
_TX_HASH_RE = re.compile(r"0x[0-9a-f]{64}")


def is_valid_address(address) -> bool:
    """Lowercase, 0x-prefixed, 40 hex chars."""
    return isinstance(address, str) and _ADDRESS_RE.fullmatch(address) is not None


def is_valid_transaction_hash(tx_hash) -> bool:
    return isinstance(tx_hash, str) and _TX_HASH_RE.fullmatch(tx_hash) is not None


def is_chainy_address(address) -> bool:
    return address == ADDRESS_CHAINY
