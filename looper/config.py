# looper/config.py
"""
Leverage Loop Configuration
USDC supply / USDH borrow loop on HyperEVM
"""

import os
from dotenv import load_dotenv
from pathlib import Path
from decimal import Decimal

# -----------------------------
# Load .env (config/.env first, then process environment)
# -----------------------------
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / "config" / ".env"

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
else:
    load_dotenv()

# -----------------------------
# Chain Configuration
# -----------------------------
CHAIN_ID = int(os.getenv("CHAIN_ID", "999"))  # HyperEVM mainnet
CHAIN_NAME = "hyperevm"

RPC_URL = os.getenv("RPC_URL", "https://rpc.hyperliquid.xyz/evm")

# -----------------------------
# Wallet Configuration
# -----------------------------
PRIVATE_KEY = os.getenv("PRIVATE_KEY")
PUBLIC_ADDRESS = os.getenv("PUBLIC_ADDRESS")  # optional, derived from key when unset

# -----------------------------
# Contract Addresses
# -----------------------------
USDC_ADDRESS = "0xb88339CB7199b77E23DB6E890353E22632Ba630f"
USDH_ADDRESS = "0x111111a1a0667d36bD57c0A9f569b98057111111"
HYPURR_POOL = "0xceCcE0EB9DD2Ef7996e01e25DD70e461F918A14b"
SWAP_CONTRACT = "0xe95f6eaeae1e4d650576af600b33d9f7e5f9f7fd"
VAULT_ADDRESS = os.getenv("VAULT_ADDRESS")

TOKEN_DECIMALS = 6  # USDC and USDH

# -----------------------------
# Loop Parameters
# -----------------------------
BORROW_PERCENTAGE = 80                  # borrow 80% of what was supplied
VARIABLE_RATE_MODE = 2
REFERRAL_CODE = 0

# 0.1 USDC in smallest units
MIN_SUPPLY_AMOUNT_RAW = 100_000
MAX_LOOPS = 50

BLOCK_CONFIRMATIONS = 5
SWAP_CONFIRMATIONS = 2

# Used only for the end-of-run estimate
SUPPLY_APY_PCT = Decimal("7.5")
BORROW_APY_PCT = Decimal("4.0")

# -----------------------------
# Swap Quote API (GlueX)
# -----------------------------
GLUEX_API_URL = os.getenv("GLUEX_API_URL", "https://router.gluex.xyz/v1/quote")
GLUEX_API_KEY = os.getenv("GLUEX_API_KEY")
GLUEX_PARTNER_ID = os.getenv(
    "GLUEX_PARTNER_ID",
    "214a4a77d04f9707b04366ca91e554207d6fa7cdb0129943774f26aad1a41bee",
)
QUOTE_CHAIN = "hyperevm"
QUOTE_TIMEOUT_SECONDS = 30
QUOTE_HTTP_RETRIES = 5

# -----------------------------
# Transaction Submission
# -----------------------------
MAX_TX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 2               # attempt * 2s
SETTLE_DELAY_SECONDS = 1.0
RECEIPT_TIMEOUT_SECONDS = 180

CONFIRMATION_POLL_SECONDS = 3
CONFIRMATION_TIMEOUT_SECONDS = 300

# -----------------------------
# Gas Configuration
# -----------------------------
FALLBACK_GAS_LIMIT = 3_000_000

# Gas price limits (in Gwei)
MAX_GAS_PRICE_GWEI = 100
TARGET_GAS_PRICE_GWEI = 1

# -----------------------------
# Safety Thresholds
# -----------------------------
MAX_RPC_LATENCY = 2.0          # seconds

# -----------------------------
# Logging
# -----------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def validate(require_quote_key: bool = True):
    """Raise RuntimeError naming every required setting that is missing"""
    missing = []
    if not PRIVATE_KEY:
        missing.append("PRIVATE_KEY")
    if not RPC_URL:
        missing.append("RPC_URL")
    if require_quote_key and not GLUEX_API_KEY:
        missing.append("GLUEX_API_KEY")

    if missing:
        raise RuntimeError(f"Missing required settings in .env: {', '.join(missing)}")
