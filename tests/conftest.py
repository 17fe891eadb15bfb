"""
Pytest configuration and shared fixtures for the test suite.
"""

from unittest.mock import MagicMock

import pytest

from looper.config import USDC_ADDRESS, USDH_ADDRESS
from looper.tokens import Token
from looper.tx import TransactionSubmitter, TxResult

USER = "0x1111111111111111111111111111111111111111"
SPENDER = "0x2222222222222222222222222222222222222222"


# ============================================================================
# Test Data Generators
# ============================================================================

def make_receipt(block_number: int = 100, status: int = 1, gas_used: int = 21_000) -> dict:
    return {"blockNumber": block_number, "status": status, "gasUsed": gas_used}


def make_result(block_number: int = 100, nonce: int = 0, tx_hash: str = "0xabc") -> TxResult:
    return TxResult(tx_hash=tx_hash, receipt=make_receipt(block_number), nonce=nonce, attempts=1)


def set_token_state(token: Token, balance: int = 0, allowance: int = 0, decimals: int = 6):
    fns = token.contract.functions
    fns.balanceOf.return_value.call.return_value = balance
    fns.allowance.return_value.call.return_value = allowance
    fns.decimals.return_value.call.return_value = decimals


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def w3() -> MagicMock:
    """Web3 stand-in; every contract() call yields an independent mock"""
    mock = MagicMock()
    mock.eth.contract.side_effect = lambda address, abi: MagicMock(address=address)
    return mock


@pytest.fixture
def account() -> MagicMock:
    acct = MagicMock()
    acct.address = USER
    acct.sign_transaction.return_value.raw_transaction = b"\x02signed"
    return acct


@pytest.fixture
def sleeps() -> list:
    return []


@pytest.fixture
def submitter(w3, account, sleeps) -> TransactionSubmitter:
    return TransactionSubmitter(w3, account, chain_id=999, sleep=sleeps.append)


@pytest.fixture
def mock_submitter() -> MagicMock:
    """Submitter whose submit() runs the send function once with nonce 7"""
    sub = MagicMock()
    sub.address = USER

    def _submit(send_fn, label="tx"):
        send_fn(7)
        return make_result(nonce=7)

    sub.submit.side_effect = _submit
    return sub


@pytest.fixture
def usdc(w3) -> Token:
    token = Token(w3, USDC_ADDRESS, "USDC")
    set_token_state(token)
    return token


@pytest.fixture
def usdh(w3) -> Token:
    token = Token(w3, USDH_ADDRESS, "USDH")
    set_token_state(token)
    return token
