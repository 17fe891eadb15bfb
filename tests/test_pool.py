"""
Tests for lending pool supply and borrow calls.
"""

from web3 import Web3

from looper.config import HYPURR_POOL, USDC_ADDRESS, USDH_ADDRESS
from looper.pool import LendingPool
from tests.conftest import USER


class TestLendingPool:

    def test_supply(self, w3, mock_submitter):
        pool = LendingPool(w3, mock_submitter)
        pool.contract.encode_abi.return_value = "0xsupply"

        result = pool.supply(USDC_ADDRESS, 1_000_000, USER)

        pool.contract.encode_abi.assert_called_once_with(
            "supply", args=[Web3.to_checksum_address(USDC_ADDRESS), 1_000_000, USER, 0]
        )
        mock_submitter.sign_and_send.assert_called_once_with(
            {"to": pool.address, "data": "0xsupply", "nonce": 7}
        )
        assert pool.address.lower() == HYPURR_POOL.lower()
        assert result.nonce == 7

    def test_borrow_variable_rate(self, w3, mock_submitter):
        pool = LendingPool(w3, mock_submitter)
        pool.contract.encode_abi.return_value = "0xborrow"

        pool.borrow(USDH_ADDRESS, 800_000, USER)

        pool.contract.encode_abi.assert_called_once_with(
            "borrow", args=[Web3.to_checksum_address(USDH_ADDRESS), 800_000, 2, 0, USER]
        )
        assert mock_submitter.submit.call_args.kwargs["label"] == "borrow"

    def test_borrow_rate_mode_override(self, w3, mock_submitter):
        pool = LendingPool(w3, mock_submitter)

        pool.borrow(USDH_ADDRESS, 1, USER, rate_mode=1)

        assert pool.contract.encode_abi.call_args.kwargs["args"][2] == 1
