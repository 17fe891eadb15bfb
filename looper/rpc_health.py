# looper/rpc_health.py
"""
RPC Health Monitoring
Connection, latency check and block-confirmation waits
"""

import time
import logging
from typing import Callable

from web3 import Web3
from web3.middleware import ExtraDataToPOAMiddleware

from looper.config import (
    RPC_URL,
    MAX_RPC_LATENCY,
    CONFIRMATION_POLL_SECONDS,
    CONFIRMATION_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class ConfirmationTimeout(TimeoutError):
    """Chain did not reach the wanted height in time"""


class RPCHealth:
    """
    Single-endpoint RPC connection with a basic health probe
    """

    def __init__(self, rpc_url: str = None):
        if rpc_url is None:
            rpc_url = RPC_URL

        self.rpc_url = rpc_url
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)

        if not self.w3.is_connected():
            raise RuntimeError(f"RPC not connected: {rpc_url}")

    def check(self) -> tuple:
        """
        Check RPC health
        Returns (is_healthy: bool, status_message: str)
        """
        try:
            start = time.time()
            latest = self.w3.eth.block_number
            latency = time.time() - start

            if latency > MAX_RPC_LATENCY:
                return False, f"High latency {latency:.2f}s"

            return True, f"OK (latency={latency:.2f}s, block={latest})"

        except Exception as e:
            return False, str(e)

    def get_chain_id(self) -> int:
        """Get chain ID"""
        return self.w3.eth.chain_id

    def get_block_number(self) -> int:
        return self.w3.eth.block_number


def wait_for_confirmations(
    w3: Web3,
    start_block: int,
    confirmations: int,
    poll_interval: float = CONFIRMATION_POLL_SECONDS,
    timeout: float = CONFIRMATION_TIMEOUT_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> int:
    """
    Block until the chain is `confirmations` blocks past start_block.
    Returns the final block number; raises ConfirmationTimeout after `timeout` seconds.
    """
    logger.info(f"⏳ Waiting for {confirmations} block confirmations...")
    logger.debug(f"Start block: {start_block}")

    deadline = clock() + timeout
    current = w3.eth.block_number
    logger.debug(f"Current block: {current}")

    while current - start_block < confirmations:
        if clock() >= deadline:
            raise ConfirmationTimeout(
                f"Only {current - start_block}/{confirmations} confirmations "
                f"after {timeout}s (start block {start_block}, current {current})"
            )
        sleep(poll_interval)
        current = w3.eth.block_number
        remaining = confirmations - (current - start_block)
        if remaining > 0:
            logger.info(f"Blocks remaining: {remaining} (current: {current})")

    logger.debug(f"Final block: {current}")
    logger.info("✅ Confirmations received")
    return current
