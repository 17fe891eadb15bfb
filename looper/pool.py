# looper/pool.py
"""
Aave V3-style Lending Pool (Hypurr pool)
Supply collateral and borrow against it through the transaction submitter
"""

import logging

from web3 import Web3

from looper.config import HYPURR_POOL, VARIABLE_RATE_MODE, REFERRAL_CODE
from looper.tx import TransactionSubmitter, TxResult

logger = logging.getLogger(__name__)

# =============================================================================
# POOL ABI (supply / borrow only)
# =============================================================================

POOL_ABI = [
    {
        "name": "supply",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "onBehalfOf", "type": "address"},
            {"name": "referralCode", "type": "uint16"},
        ],
        "outputs": [],
    },
    {
        "name": "borrow",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "amount", "type": "uint256"},
            {"name": "interestRateMode", "type": "uint256"},
            {"name": "referralCode", "type": "uint16"},
            {"name": "onBehalfOf", "type": "address"},
        ],
        "outputs": [],
    },
]


class LendingPool:
    def __init__(self, w3: Web3, submitter: TransactionSubmitter, address: str = HYPURR_POOL):
        self.w3 = w3
        self.submitter = submitter
        self.address = Web3.to_checksum_address(address)
        self.contract = w3.eth.contract(address=self.address, abi=POOL_ABI)

    def _submit_call(self, data: str, label: str) -> TxResult:
        return self.submitter.submit(
            lambda nonce: self.submitter.sign_and_send({"to": self.address, "data": data, "nonce": nonce}),
            label=label,
        )

    def supply(self, asset: str, amount: int, on_behalf_of: str) -> TxResult:
        """supply(asset, amount, onBehalfOf, 0)"""
        asset = Web3.to_checksum_address(asset)
        on_behalf_of = Web3.to_checksum_address(on_behalf_of)

        logger.debug(f"Pool: {self.address}, asset: {asset}, amount: {amount}, on behalf of: {on_behalf_of}")
        data = self.contract.encode_abi("supply", args=[asset, amount, on_behalf_of, REFERRAL_CODE])

        result = self._submit_call(data, label="supply")
        logger.info(f"✅ Supply confirmed in block {result.block_number}: {result.tx_hash}")
        return result

    def borrow(
        self,
        asset: str,
        amount: int,
        on_behalf_of: str,
        rate_mode: int = VARIABLE_RATE_MODE,
    ) -> TxResult:
        """borrow(asset, amount, rateMode, 0, onBehalfOf); rate mode 2 is variable"""
        asset = Web3.to_checksum_address(asset)
        on_behalf_of = Web3.to_checksum_address(on_behalf_of)

        logger.debug(
            f"Pool: {self.address}, asset: {asset}, amount: {amount}, "
            f"rate mode: {rate_mode}, on behalf of: {on_behalf_of}"
        )
        data = self.contract.encode_abi(
            "borrow", args=[asset, amount, rate_mode, REFERRAL_CODE, on_behalf_of]
        )

        result = self._submit_call(data, label="borrow")
        logger.info(f"✅ Borrow confirmed in block {result.block_number}: {result.tx_hash}")
        return result
