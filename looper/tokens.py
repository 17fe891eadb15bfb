# looper/tokens.py
"""
ERC20 helpers: smallest-unit conversion, balance precondition, approve-if-needed
"""

import logging
from decimal import Decimal, ROUND_DOWN
from typing import Optional

from web3 import Web3

from looper.config import TOKEN_DECIMALS
from looper.tx import TransactionSubmitter, TxResult

logger = logging.getLogger(__name__)


# =============================================================================
# ABI DEFINITIONS
# =============================================================================

ERC20_ABI = [
    {
        "name": "approve",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "allowance",
        "type": "function",
        "stateMutability": "view",
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "name": "decimals",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]


class InsufficientBalanceError(RuntimeError):
    def __init__(self, symbol: str, required: int, available: int, decimals: int = TOKEN_DECIMALS):
        super().__init__(
            f"Insufficient {symbol} balance: required {format_units(required, decimals)}, "
            f"available {format_units(available, decimals)}"
        )
        self.symbol = symbol
        self.required = required
        self.available = available


# =============================================================================
# UNIT CONVERSION
# =============================================================================

def to_raw(amount, decimals: int = TOKEN_DECIMALS) -> int:
    """Human amount -> smallest units, truncated toward zero"""
    scaled = (Decimal(str(amount)) * (Decimal(10) ** decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def format_units(raw: int, decimals: int = TOKEN_DECIMALS) -> str:
    value = Decimal(int(raw)).scaleb(-decimals)
    return f"{value:.{decimals}f}"


# =============================================================================
# TOKEN WRAPPER
# =============================================================================

class Token:
    """ERC20 contract plus the label used in logs"""

    def __init__(self, w3: Web3, address: str, symbol: str):
        self.w3 = w3
        self.address = Web3.to_checksum_address(address)
        self.symbol = symbol
        self.contract = w3.eth.contract(address=self.address, abi=ERC20_ABI)
        self._decimals: Optional[int] = None

    @property
    def decimals(self) -> int:
        if self._decimals is None:
            self._decimals = self.contract.functions.decimals().call()
        return self._decimals

    def balance_of(self, owner: str) -> int:
        return self.contract.functions.balanceOf(Web3.to_checksum_address(owner)).call()

    def allowance(self, owner: str, spender: str) -> int:
        return self.contract.functions.allowance(
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(spender),
        ).call()

    def format(self, raw: int) -> str:
        return f"{format_units(raw, self.decimals)} {self.symbol}"


def require_balance(token: Token, owner: str, amount: int) -> int:
    """Raise InsufficientBalanceError unless owner holds at least `amount`"""
    balance = token.balance_of(owner)
    if balance < amount:
        logger.error(f"❌ Insufficient balance! Required: {token.format(amount)}, Available: {token.format(balance)}")
        raise InsufficientBalanceError(token.symbol, amount, balance, token.decimals)

    logger.debug(f"Balance check passed: {token.format(balance)} >= {token.format(amount)}")
    return balance


def ensure_allowance(
    submitter: TransactionSubmitter,
    token: Token,
    spender: str,
    amount: int,
) -> Optional[TxResult]:
    """
    Approve `amount` to spender if the current allowance is short.
    Returns the approval TxResult, or None when no approval was needed.
    """
    owner = submitter.address
    spender = Web3.to_checksum_address(spender)

    current_allowance = token.allowance(owner, spender)
    logger.debug(f"Current {token.symbol} allowance for {spender}: {token.format(current_allowance)}")

    if current_allowance >= amount:
        logger.info(f"✓ {token.symbol} allowance sufficient, skipping approve")
        return None

    logger.info(f"[APPROVE] Approving {token.format(amount)} to {spender}...")
    data = token.contract.encode_abi("approve", args=[spender, amount])

    result = submitter.submit(
        lambda nonce: submitter.sign_and_send({"to": token.address, "data": data, "nonce": nonce}),
        label=f"approve {token.symbol}",
    )

    logger.info(f"✅ Approve confirmed: {result.tx_hash}")
    return result
