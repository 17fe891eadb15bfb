# looper/vault.py
"""
Client for the companion vault contract.
A single deposit() supplies USDC and borrows USDH on the depositor's behalf.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from web3 import Web3

from looper.tokens import Token, ensure_allowance, require_balance
from looper.tx import TransactionSubmitter, TxResult

logger = logging.getLogger(__name__)

SHARE_DECIMALS = 18

VAULT_ABI = [
    {
        "name": "name",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "symbol",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "assets", "type": "uint256"},
            {"name": "receiver", "type": "address"},
        ],
        "outputs": [{"name": "shares", "type": "uint256"}],
    },
    {
        "name": "deposit",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "amount", "type": "uint256"}],
        "outputs": [],
    },
    {
        "name": "getUserPosition",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "user", "type": "address"}],
        "outputs": [
            {"name": "supplied", "type": "uint256"},
            {"name": "borrowed", "type": "uint256"},
        ],
    },
    {
        "name": "getTotalPositions",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [
            {"name": "totalSupplied", "type": "uint256"},
            {"name": "totalBorrowed", "type": "uint256"},
        ],
    },
]


@dataclass
class VaultPosition:
    supplied: int
    borrowed: int

    @property
    def ltv_pct(self) -> Decimal:
        if self.supplied == 0:
            return Decimal(0)
        return Decimal(self.borrowed) * 100 / Decimal(self.supplied)


class VaultClient:
    def __init__(self, w3: Web3, submitter: TransactionSubmitter, address: str, asset: Token):
        if not address:
            raise RuntimeError("VAULT_ADDRESS not set")

        self.w3 = w3
        self.submitter = submitter
        self.address = Web3.to_checksum_address(address)
        self.asset = asset
        self.contract = w3.eth.contract(address=self.address, abi=VAULT_ABI)

    def info(self) -> dict:
        return {
            "address": self.address,
            "name": self.contract.functions.name().call(),
            "symbol": self.contract.functions.symbol().call(),
        }

    def shares_of(self, user: str) -> int:
        return self.contract.functions.balanceOf(Web3.to_checksum_address(user)).call()

    def user_position(self, user: str) -> VaultPosition:
        supplied, borrowed = self.contract.functions.getUserPosition(
            Web3.to_checksum_address(user)
        ).call()
        return VaultPosition(supplied=supplied, borrowed=borrowed)

    def total_positions(self) -> VaultPosition:
        supplied, borrowed = self.contract.functions.getTotalPositions().call()
        return VaultPosition(supplied=supplied, borrowed=borrowed)

    def deposit(self, amount: int, receiver: Optional[str] = None) -> TxResult:
        """
        Deposit `amount` of the asset. With a receiver the ERC4626-style
        deposit(assets, receiver) is used, otherwise deposit(amount).
        """
        user = self.submitter.address
        require_balance(self.asset, user, amount)
        ensure_allowance(self.submitter, self.asset, self.address, amount)

        if receiver:
            data = self.contract.encode_abi(
                "deposit(uint256,address)", args=[amount, Web3.to_checksum_address(receiver)]
            )
        else:
            data = self.contract.encode_abi("deposit(uint256)", args=[amount])

        logger.info(f"[VAULT] Depositing {self.asset.format(amount)} into {self.address}...")
        result = self.submitter.submit(
            lambda nonce: self.submitter.sign_and_send({"to": self.address, "data": data, "nonce": nonce}),
            label="vault deposit",
        )
        logger.info(f"✅ Deposit successful! Block: {result.block_number}")
        return result
