"""
Tests for transaction submission and nonce-race retry.
"""

from unittest.mock import MagicMock

import pytest

from looper.tx import (
    TransactionReverted,
    TransactionSubmitter,
    is_nonce_race,
)
from tests.conftest import USER, make_receipt


def nonce_too_low():
    return ValueError({"code": -32000, "message": "nonce too low"})


def underpriced():
    return ValueError({"code": -32000, "message": "replacement transaction underpriced"})


class TestNonceRaceClassification:

    @pytest.mark.parametrize("message", [
        "nonce too low",
        "Nonce too low: next nonce 5, tx nonce 4",
        "nonce is too low",
        "replacement transaction underpriced",
        "nonce has already been used",
        "NONCE EXPIRED",
    ])
    def test_race_messages(self, message):
        assert is_nonce_race(ValueError(message)) is True

    @pytest.mark.parametrize("message", [
        "insufficient funds for gas * price + value",
        "execution reverted",
        "connection reset by peer",
    ])
    def test_other_messages(self, message):
        assert is_nonce_race(ValueError(message)) is False

    def test_rpc_error_dict(self):
        assert is_nonce_race(nonce_too_low()) is True


class TestSubmit:

    def test_first_attempt_success(self, submitter, w3, sleeps):
        w3.eth.get_transaction_count.return_value = 12
        w3.eth.wait_for_transaction_receipt.return_value = make_receipt(block_number=500)
        send_fn = MagicMock(return_value="0xaaa")

        result = submitter.submit(send_fn)

        send_fn.assert_called_once_with(12)
        w3.eth.get_transaction_count.assert_called_once_with(USER, "pending")
        assert result.tx_hash == "0xaaa"
        assert result.nonce == 12
        assert result.attempts == 1
        assert result.block_number == 500
        # settle delay only
        assert sleeps == [1.0]

    def test_bytes_hash_is_hex_encoded(self, submitter, w3):
        w3.eth.get_transaction_count.return_value = 0
        w3.eth.wait_for_transaction_receipt.return_value = make_receipt()

        result = submitter.submit(lambda nonce: b"\xab\xcd")

        assert result.tx_hash == "0xabcd"

    def test_race_then_success_uses_second_attempt(self, submitter, w3, sleeps):
        w3.eth.get_transaction_count.side_effect = [7, 8]
        second_receipt = make_receipt(block_number=901)
        w3.eth.wait_for_transaction_receipt.return_value = second_receipt
        send_fn = MagicMock(side_effect=[nonce_too_low(), "0xbbb"])

        result = submitter.submit(send_fn)

        assert [c.args[0] for c in send_fn.call_args_list] == [7, 8]
        assert result.nonce == 8
        assert result.attempts == 2
        assert result.receipt is second_receipt
        assert result.tx_hash == "0xbbb"
        # exactly one transaction reached inclusion
        w3.eth.wait_for_transaction_receipt.assert_called_once()
        assert sleeps == [2, 1.0]

    def test_nonce_requeried_before_every_attempt(self, submitter, w3):
        w3.eth.get_transaction_count.side_effect = [3, 3, 4]
        w3.eth.wait_for_transaction_receipt.return_value = make_receipt()
        send_fn = MagicMock(side_effect=[underpriced(), nonce_too_low(), "0xccc"])

        result = submitter.submit(send_fn)

        assert w3.eth.get_transaction_count.call_count == 3
        assert result.nonce == 4
        assert result.attempts == 3

    def test_retries_are_capped(self, submitter, w3, sleeps):
        w3.eth.get_transaction_count.side_effect = [1, 2, 3, 4]
        send_fn = MagicMock(side_effect=underpriced())

        with pytest.raises(ValueError, match="underpriced"):
            submitter.submit(send_fn)

        assert send_fn.call_count == 3
        assert sleeps == [2, 4]
        w3.eth.wait_for_transaction_receipt.assert_not_called()

    def test_custom_max_retries(self, w3, account, sleeps):
        submitter = TransactionSubmitter(w3, account, max_retries=1, sleep=sleeps.append)
        w3.eth.get_transaction_count.return_value = 0
        send_fn = MagicMock(side_effect=nonce_too_low())

        with pytest.raises(ValueError):
            submitter.submit(send_fn)

        assert send_fn.call_count == 1
        assert sleeps == []

    def test_other_errors_are_not_retried(self, submitter, w3, sleeps):
        w3.eth.get_transaction_count.return_value = 5
        send_fn = MagicMock(side_effect=ValueError("insufficient funds for gas"))

        with pytest.raises(ValueError, match="insufficient funds"):
            submitter.submit(send_fn)

        send_fn.assert_called_once()
        assert sleeps == []

    def test_receipt_wait_failure_propagates(self, submitter, w3, sleeps):
        w3.eth.get_transaction_count.return_value = 5
        w3.eth.wait_for_transaction_receipt.side_effect = TimeoutError("not mined")
        send_fn = MagicMock(return_value="0xddd")

        with pytest.raises(TimeoutError):
            submitter.submit(send_fn)

        send_fn.assert_called_once()
        assert sleeps == []

    def test_reverted_receipt_raises(self, submitter, w3):
        w3.eth.get_transaction_count.return_value = 5
        w3.eth.wait_for_transaction_receipt.return_value = make_receipt(status=0)
        send_fn = MagicMock(return_value="0xeee")

        with pytest.raises(TransactionReverted) as exc:
            submitter.submit(send_fn)

        assert exc.value.tx_hash == "0xeee"
        send_fn.assert_called_once()

    def test_rejects_zero_retries(self, w3, account):
        with pytest.raises(ValueError):
            TransactionSubmitter(w3, account, max_retries=0)


class TestSignAndSend:

    def test_fills_defaults(self, submitter, w3, account):
        w3.eth.gas_price = 10**9
        w3.eth.estimate_gas.return_value = 150_000
        w3.eth.send_raw_transaction.return_value = b"\x01" * 32

        tx_hash = submitter.sign_and_send({"to": USER, "data": "0x", "nonce": 3})

        signed_tx = account.sign_transaction.call_args.args[0]
        assert signed_tx["from"] == USER
        assert signed_tx["chainId"] == 999
        assert signed_tx["nonce"] == 3
        assert signed_tx["gas"] == 150_000
        assert signed_tx["gasPrice"] == int(10**9 * 1.1)
        w3.eth.send_raw_transaction.assert_called_once_with(b"\x02signed")
        assert tx_hash == b"\x01" * 32

    def test_keeps_explicit_gas(self, submitter, w3, account):
        w3.eth.gas_price = 10**9

        submitter.sign_and_send({"to": USER, "data": "0x", "nonce": 0, "gas": 42_000})

        w3.eth.estimate_gas.assert_not_called()
        assert account.sign_transaction.call_args.args[0]["gas"] == 42_000

    def test_gas_estimation_failure_still_submits(self, submitter, w3, account):
        w3.eth.gas_price = 10**9
        w3.eth.estimate_gas.side_effect = ValueError("execution reverted")
        w3.eth.get_transaction_count.return_value = 9
        w3.eth.send_raw_transaction.return_value = b"\x03" * 32
        w3.eth.wait_for_transaction_receipt.return_value = make_receipt()

        result = submitter.submit(
            lambda nonce: submitter.sign_and_send({"to": USER, "data": "0x1234", "nonce": nonce})
        )

        assert account.sign_transaction.call_args.args[0]["gas"] == 3_000_000
        w3.eth.send_raw_transaction.assert_called_once()
        assert result.nonce == 9
