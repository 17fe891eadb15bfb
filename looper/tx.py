# looper/tx.py
"""
Transaction Submitter
Signs, broadcasts and confirms transactions for the loop wallet.

Every attempt reads a fresh *pending* nonce from the RPC right before the
send. A nonce race (stale nonce, or an equal-nonce tx already priced higher)
is retried with a linear backoff; anything else propagates immediately.
"""

import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from web3 import Web3

from looper.config import (
    CHAIN_ID,
    MAX_TX_RETRIES,
    RETRY_BACKOFF_SECONDS,
    SETTLE_DELAY_SECONDS,
    RECEIPT_TIMEOUT_SECONDS,
)
from looper.gas import estimate_gas_limit, get_gas_price

logger = logging.getLogger(__name__)

# Lower-cased fragments of the RPC error messages geth-style nodes return
NONCE_RACE_MARKERS = (
    "nonce too low",
    "nonce is too low",
    "nonce has already been used",
    "nonce expired",
    "replacement transaction underpriced",
)


class TransactionReverted(RuntimeError):
    """Mined with status 0"""

    def __init__(self, tx_hash: str, receipt: Any):
        super().__init__(f"Transaction reverted: {tx_hash}")
        self.tx_hash = tx_hash
        self.receipt = receipt


@dataclass
class TxResult:
    """A confirmed submission"""
    tx_hash: str
    receipt: Any
    nonce: int
    attempts: int

    @property
    def block_number(self) -> int:
        return self.receipt["blockNumber"]

    @property
    def gas_used(self) -> int:
        return self.receipt["gasUsed"]


def is_nonce_race(error: Exception) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in NONCE_RACE_MARKERS)


def _to_hex(tx_hash) -> str:
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
    return Web3.to_hex(tx_hash)


class TransactionSubmitter:
    """
    Submit-wait-confirm for a single signing account.

    Only one logical operation runs at a time, so the account's nonce space
    needs no lock: the pending count is re-read before every attempt.
    """

    def __init__(
        self,
        w3: Web3,
        account,
        chain_id: int = CHAIN_ID,
        max_retries: int = MAX_TX_RETRIES,
        backoff_seconds: float = RETRY_BACKOFF_SECONDS,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        receipt_timeout: float = RECEIPT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.w3 = w3
        self.account = account
        self.address = Web3.to_checksum_address(account.address)
        self.chain_id = chain_id
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.settle_delay = settle_delay
        self.receipt_timeout = receipt_timeout
        self.sleep = sleep

    @classmethod
    def from_key(cls, w3: Web3, private_key: str, **kwargs) -> "TransactionSubmitter":
        return cls(w3, w3.eth.account.from_key(private_key), **kwargs)

    def pending_nonce(self) -> int:
        """Pending-pool count, so in-flight txs from this account are skipped"""
        return self.w3.eth.get_transaction_count(self.address, "pending")

    def sign_and_send(self, tx: dict) -> bytes:
        """
        Fill from/chainId/gasPrice/gas where missing, sign locally and broadcast.
        Returns the tx hash.
        """
        tx = dict(tx)
        tx.setdefault("from", self.address)
        tx.setdefault("chainId", self.chain_id)
        tx.setdefault("value", 0)
        if "gasPrice" not in tx and "maxFeePerGas" not in tx:
            tx["gasPrice"] = get_gas_price(self.w3)
        if "gas" not in tx:
            tx["gas"] = estimate_gas_limit(self.w3, tx)

        signed = self.account.sign_transaction(tx)
        return self.w3.eth.send_raw_transaction(signed.raw_transaction)

    def submit(self, send_fn: Callable[[int], Any], label: str = "tx") -> TxResult:
        """
        Run send_fn(nonce) until its transaction is mined.

        send_fn must broadcast exactly one transaction using the nonce it is
        given and return the transaction hash.
        """
        for attempt in range(1, self.max_retries + 1):
            nonce: Optional[int] = None
            try:
                nonce = self.pending_nonce()
                logger.debug(f"[{label}] Attempt {attempt}: using nonce {nonce}")

                tx_hash = _to_hex(send_fn(nonce))
                logger.info(f"[{label}] Tx sent: {tx_hash}")

                logger.debug(f"[{label}] Waiting for transaction to be mined...")
                receipt = self.w3.eth.wait_for_transaction_receipt(
                    tx_hash, timeout=self.receipt_timeout
                )

                # Let follow-up reads (balances, allowances) see the new state
                self.sleep(self.settle_delay)

            except Exception as e:
                if is_nonce_race(e) and attempt < self.max_retries:
                    wait = attempt * self.backoff_seconds
                    logger.warning(f"[{label}] Nonce error on attempt {attempt} (nonce {nonce}): {e}")
                    logger.debug(f"[{label}] Waiting {wait}s before retry...")
                    self.sleep(wait)
                    continue
                raise

            if receipt["status"] != 1:
                logger.error(f"[{label}] ❌ Reverted in block {receipt['blockNumber']}: {tx_hash}")
                raise TransactionReverted(tx_hash, receipt)

            logger.debug(
                f"[{label}] Block: {receipt['blockNumber']}, Status: {receipt['status']}, "
                f"Gas used: {receipt['gasUsed']}"
            )
            return TxResult(tx_hash=tx_hash, receipt=receipt, nonce=nonce, attempts=attempt)

        raise AssertionError("unreachable")
