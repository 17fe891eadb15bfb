# looper/swap.py
"""
USDH -> USDC swap via the GlueX router
Quote API returns ready-to-send calldata for the swap contract
"""

import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter, Retry
from web3 import Web3

from looper.config import (
    GLUEX_API_URL,
    GLUEX_API_KEY,
    GLUEX_PARTNER_ID,
    QUOTE_CHAIN,
    QUOTE_TIMEOUT_SECONDS,
    QUOTE_HTTP_RETRIES,
    SWAP_CONTRACT,
)
from looper.gas import estimate_gas_limit
from looper.tokens import Token, ensure_allowance
from looper.tx import TransactionSubmitter, TxResult

logger = logging.getLogger(__name__)

# Where the quote payload may carry the calldata, in lookup order.
# () is the top level.
CALLDATA_LOCATIONS = [
    (),
    ("result",),
    ("data",),
    ("quote",),
]


class QuoteError(RuntimeError):
    """Quote request failed or the response had no usable calldata"""


def ensure_hex_prefix(data: str) -> str:
    return data if data.startswith("0x") else "0x" + data


def extract_calldata(payload: Any) -> str:
    """First non-empty `calldata` string found in CALLDATA_LOCATIONS"""
    for path in CALLDATA_LOCATIONS:
        node = payload
        for key in path:
            node = node.get(key) if isinstance(node, dict) else None
        if not isinstance(node, dict):
            continue

        calldata = node.get("calldata")
        if isinstance(calldata, str) and calldata:
            where = ".".join(("json",) + path + ("calldata",))
            logger.debug(f"Found calldata at {where}")
            return ensure_hex_prefix(calldata)

    logger.error(f"Full quote response: {json.dumps(payload, indent=2, default=str)}")
    raise QuoteError("Calldata not found in quote response")


def build_quote_request(
    input_token: str,
    output_token: str,
    input_amount: int,
    user_address: str,
    receiver: Optional[str] = None,
    partner_id: str = GLUEX_PARTNER_ID,
    chain: str = QUOTE_CHAIN,
) -> Dict[str, str]:
    return {
        "chainID": chain,
        "inputToken": input_token,
        "outputToken": output_token,
        "inputAmount": str(input_amount),
        "orderType": "SELL",
        "userAddress": user_address,
        "outputReceiver": receiver or user_address,
        "uniquePID": partner_id,
    }


def make_session(retries: int = QUOTE_HTTP_RETRIES) -> requests.Session:
    s = requests.Session()
    retry = Retry(
        total=retries,
        backoff_factor=1,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods=["POST"],
        raise_on_status=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retry))
    return s


class QuoteClient:
    def __init__(
        self,
        api_url: str = GLUEX_API_URL,
        api_key: Optional[str] = GLUEX_API_KEY,
        partner_id: str = GLUEX_PARTNER_ID,
        session: Optional[requests.Session] = None,
        timeout: float = QUOTE_TIMEOUT_SECONDS,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.partner_id = partner_id
        self.session = session or make_session()
        self.timeout = timeout

    def fetch_calldata(
        self,
        input_token: str,
        output_token: str,
        input_amount: int,
        user_address: str,
    ) -> str:
        body = build_quote_request(
            input_token, output_token, input_amount, user_address,
            partner_id=self.partner_id,
        )
        logger.debug(f"Quote request body: {json.dumps(body, indent=2)}")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        try:
            res = self.session.post(self.api_url, json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise QuoteError(f"Quote request failed: {e}") from e

        if not res.ok:
            raise QuoteError(f"Quote request failed: {res.status_code} {res.reason} - {res.text}")

        try:
            payload = res.json()
        except ValueError as e:
            raise QuoteError(f"Quote response is not JSON: {res.text[:200]}") from e

        logger.debug(f"Quote response: {json.dumps(payload, indent=2, default=str)}")

        calldata = extract_calldata(payload)
        logger.debug(f"Calldata length: {len(calldata)} characters")
        return calldata


class Swapper:
    """Sells input_token for output_token through the swap contract"""

    def __init__(
        self,
        w3: Web3,
        submitter: TransactionSubmitter,
        quotes: QuoteClient,
        input_token: Token,
        output_token: Token,
        swap_contract: str = SWAP_CONTRACT,
    ):
        self.w3 = w3
        self.submitter = submitter
        self.quotes = quotes
        self.input_token = input_token
        self.output_token = output_token
        self.swap_contract = Web3.to_checksum_address(swap_contract)

    def swap(self, amount: int) -> TxResult:
        user = self.submitter.address

        logger.debug(f"Input: {self.input_token.format(amount)}, output token: {self.output_token.symbol}")
        logger.debug(f"Swap contract: {self.swap_contract}")

        ensure_allowance(self.submitter, self.input_token, self.swap_contract, amount)

        logger.info("[SWAP] Fetching quote...")
        calldata = self.quotes.fetch_calldata(
            self.input_token.address, self.output_token.address, amount, user,
        )
        logger.info("✓ Received swap calldata")

        # Estimated once, without a nonce, and reused across retries
        tx_base = {"from": user, "to": self.swap_contract, "data": calldata}
        gas_limit = estimate_gas_limit(self.w3, tx_base)

        logger.info("[SWAP] Sending swap transaction...")
        result = self.submitter.submit(
            lambda nonce: self.submitter.sign_and_send({**tx_base, "nonce": nonce, "gas": gas_limit}),
            label="swap",
        )
        logger.info(f"✅ Swap confirmed in block {result.block_number}: {result.tx_hash}")
        return result
