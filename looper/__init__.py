# looper/__init__.py
"""
Hypurr Pool Leverage Looper
Supply USDC, borrow USDH, swap back, repeat

Modules:
- config: Configuration and environment
- tx: Transaction submission with nonce-race retry
- gas: Gas limit estimation and gas price
- rpc_health: RPC connection and confirmation waits
- tokens: ERC20 helpers
- pool: Lending pool supply/borrow
- swap: Quote API and swap execution
- loop: The leverage loop
- vault: Companion vault client
- main: Entry point
"""

__version__ = "1.0.0"

from looper.config import (
    CHAIN_ID,
    USDC_ADDRESS,
    USDH_ADDRESS,
    HYPURR_POOL,
    SWAP_CONTRACT,
)
from looper.tx import TransactionSubmitter, TxResult, TransactionReverted

__all__ = [
    "CHAIN_ID",
    "USDC_ADDRESS",
    "USDH_ADDRESS",
    "HYPURR_POOL",
    "SWAP_CONTRACT",
    "TransactionSubmitter",
    "TxResult",
    "TransactionReverted",
]
