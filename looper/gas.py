# looper/gas.py

import logging

from web3 import Web3

from looper.config import (
    FALLBACK_GAS_LIMIT,
    MAX_GAS_PRICE_GWEI,
    TARGET_GAS_PRICE_GWEI,
)

logger = logging.getLogger(__name__)


def estimate_gas_limit(w3: Web3, tx: dict, fallback: int = FALLBACK_GAS_LIMIT) -> int:
    """
    eth_estimateGas for tx, or the fixed fallback limit when estimation fails.
    Estimation never aborts a submission.
    """
    request = {k: v for k, v in tx.items() if k in ("from", "to", "data", "value")}
    try:
        estimate = w3.eth.estimate_gas(request)
        logger.debug(f"Gas estimate: {estimate}")
        return int(estimate)
    except Exception as e:
        logger.warning(f"⚠️ Gas estimation failed: {e}")
        logger.debug(f"Using fallback gas limit: {fallback}")
        return fallback


def get_gas_price(w3: Web3) -> int:
    """Network gas price + 10% buffer, capped at MAX_GAS_PRICE_GWEI"""
    max_price = int(MAX_GAS_PRICE_GWEI * 10**9)
    try:
        buffered = int(w3.eth.gas_price * 1.1)
    except Exception as e:
        logger.warning(f"⚠️ Gas price lookup failed: {e}")
        logger.debug(f"Using target gas price: {TARGET_GAS_PRICE_GWEI} gwei")
        return int(TARGET_GAS_PRICE_GWEI * 10**9)

    if buffered > max_price:
        logger.warning(f"Gas price {buffered / 10**9:.1f} gwei exceeds max {MAX_GAS_PRICE_GWEI}")
        return max_price

    return buffered
