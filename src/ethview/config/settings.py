import os
from dotenv import load_dotenv
load_dotenv()
# ---- Node RPC ----
ETHEREUM_RPC_URL = os.environ.get("ETHEREUM_RPC_URL")
RPC_TIMEOUT_SEC = int(os.environ.get("RPC_TIMEOUT_SEC", "15"))
# TLS verification is disabled for both JSON-RPC endpoints
RPC_VERIFY_TLS = False

# ---- Price service ----
PRICE_RPC_URL = os.environ.get("PRICE_RPC_URL")
PRICE_CURRENCY = "USD"

# Addresses allowed to trigger a live quote refresh. Lowercase.
UPDATE_RATES = [
    a.strip().lower()
    for a in os.environ.get("UPDATE_RATES", "").split(",")
    if a.strip()
]

# ---- Cache ----
CACHE_BACKEND = os.environ.get("CACHE_BACKEND", "file")   # file | memory
CACHE_DIR = os.environ.get("CACHE_DIR", ".cache/ethview")
CACHE_DEFAULT_TTL = int(os.environ.get("CACHE_DEFAULT_TTL", "3600"))

TOKEN_TTL = 30
TOKEN_HISTORY_TTL = 600
CSV_TTL = 600
TOP_TOKENS_TTL = 24 * 3600
CURRENT_VOLUME_TTL = 600

# ---- Views ----
PAGE_SIZE = int(os.environ.get("PAGE_SIZE", "50"))
CSV_ROW_LIMIT = 1000
SEARCH_RESULT_LIMIT = 6

# JSON file: {"0xaddress": {"name": "...", "symbol": "..."}}
CLIENT_TOKENS_FILE = os.environ.get("CLIENT_TOKENS_FILE")

# ---- Logging ----
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
