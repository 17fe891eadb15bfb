# looper/main.py
"""
Leveraged USDC supply for the Hypurr pool

THIS IS THE ENTRY POINT - Run with: python -m looper.main

MODES:
1. loop: supply / borrow / swap until the loop amount drops below the minimum
2. vault: single deposit through the companion vault
3. balances: print wallet and position info, no transactions
"""

import sys
import logging
import argparse
from datetime import datetime
from pathlib import Path

from looper import config
from looper.config import (
    RPC_URL, USDC_ADDRESS, USDH_ADDRESS, HYPURR_POOL, SWAP_CONTRACT,
)
from looper.loop import LeverageLoop, LoopParams
from looper.pool import LendingPool
from looper.rpc_health import RPCHealth
from looper.swap import QuoteClient, Swapper
from looper.tokens import Token, to_raw, format_units
from looper.tx import TransactionSubmitter
from looper.vault import VaultClient, SHARE_DECIMALS

logger = logging.getLogger(__name__)

LOG_DIR = Path(__file__).parent.parent / "logs"


# =============================================================================
# LOGGING SETUP
# =============================================================================

def setup_logging(level: str = config.LOG_LEVEL):
    LOG_DIR.mkdir(exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s | %(levelname)-8s | %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(LOG_DIR / f"looper_{datetime.now().strftime('%Y%m%d')}.log"),
        ]
    )


# =============================================================================
# HELPERS
# =============================================================================

def parse_amount(text: str, decimals: int) -> int:
    """User input -> smallest units; rejects non-numeric and non-positive values"""
    try:
        raw = to_raw(text.strip(), decimals)
    except Exception as e:
        raise ValueError(f"Invalid supply amount: {text!r}") from e

    if raw <= 0:
        raise ValueError(f"Invalid supply amount: {text!r}")
    return raw


def ask_amount(prompt: str) -> str:
    return input(prompt)


def connect():
    logger.info(f"Connecting to RPC: {RPC_URL}")
    rpc = RPCHealth(RPC_URL)

    ok, status = rpc.check()
    if ok:
        logger.info(f"✅ RPC healthy: {status}")
    else:
        logger.warning(f"⚠️ RPC unhealthy: {status}")

    logger.info(f"Network: chain ID {rpc.get_chain_id()}, current block {rpc.get_block_number()}")
    return rpc.w3


def log_balances(usdc: Token, usdh: Token, user: str):
    logger.info("Fetching token balances...")
    logger.info(f"{usdc.symbol} Balance: {usdc.format(usdc.balance_of(user))}")
    logger.info(f"{usdh.symbol} Balance: {usdh.format(usdh.balance_of(user))}")


def log_vault_position(vault: VaultClient, user: str):
    position = vault.user_position(user)
    totals = vault.total_positions()
    shares = vault.shares_of(user)

    logger.info(f"Vault shares: {format_units(shares, SHARE_DECIMALS)}")
    logger.info(
        f"Your position: supplied {format_units(position.supplied)} USDC, "
        f"borrowed {format_units(position.borrowed)} USDH (LTV {position.ltv_pct:.2f}%)"
    )
    logger.info(
        f"Vault totals: supplied {format_units(totals.supplied)} USDC, "
        f"borrowed {format_units(totals.borrowed)} USDH"
    )


# =============================================================================
# MODES
# =============================================================================

def run(args) -> int:
    config.validate(require_quote_key=(args.mode == "loop"))

    w3 = connect()
    submitter = TransactionSubmitter.from_key(w3, config.PRIVATE_KEY)
    user = submitter.address
    logger.info(f"Wallet: {user}")

    if config.PUBLIC_ADDRESS and config.PUBLIC_ADDRESS.lower() != user.lower():
        logger.warning(f"⚠️ PUBLIC_ADDRESS {config.PUBLIC_ADDRESS} does not match the signing key ({user})")

    usdc = Token(w3, USDC_ADDRESS, "USDC")
    usdh = Token(w3, USDH_ADDRESS, "USDH")

    logger.debug(f"USDC: {USDC_ADDRESS}, USDH: {USDH_ADDRESS}")
    logger.debug(f"Pool: {HYPURR_POOL}, Swap contract: {SWAP_CONTRACT}")
    log_balances(usdc, usdh, user)

    vault = VaultClient(w3, submitter, config.VAULT_ADDRESS, usdc) if config.VAULT_ADDRESS else None

    if args.mode == "balances":
        if vault:
            log_vault_position(vault, user)
        return 0

    text = args.amount if args.amount is not None else ask_amount(f"How much {usdc.symbol} do you want to supply? ")
    amount = parse_amount(str(text), usdc.decimals)
    logger.debug(f"Raw amount (with decimals): {amount}")

    if args.mode == "vault":
        if vault is None:
            raise RuntimeError("VAULT_ADDRESS not set in .env")
        vault.deposit(amount, receiver=args.receiver)
        log_vault_position(vault, user)
        return 0

    pool = LendingPool(w3, submitter)
    swapper = Swapper(w3, submitter, QuoteClient(), input_token=usdh, output_token=usdc)
    params = LoopParams(max_loops=args.max_loops)

    LeverageLoop(w3, pool, swapper, collateral=usdc, debt=usdh, params=params).run(amount)
    return 0


# =============================================================================
# ENTRY POINT
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hypurr pool leveraged supply loop")
    parser.add_argument(
        "--mode",
        choices=["loop", "vault", "balances"],
        default="loop",
        help="loop (supply/borrow/swap), vault (single vault deposit), balances (read only)"
    )
    parser.add_argument(
        "--amount",
        type=str,
        default=None,
        help="USDC amount to supply; prompted for when omitted"
    )
    parser.add_argument(
        "--max-loops",
        type=int,
        default=config.MAX_LOOPS,
        help=f"Stop after this many loops (default: {config.MAX_LOOPS})"
    )
    parser.add_argument(
        "--receiver",
        type=str,
        default=None,
        help="Vault share receiver (vault mode only)"
    )
    parser.add_argument(
        "--log-level",
        default=config.LOG_LEVEL,
        help="DEBUG, INFO, WARNING or ERROR"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    logger.info("=" * 40)
    logger.info("🐱 Hypurr Pool Leveraged Supply")
    logger.info("=" * 40)

    try:
        return run(args)
    except KeyboardInterrupt:
        logger.info("\n🛑 Interrupted")
        return 130
    except Exception as e:
        logger.error(f"❌ Error: {e}", exc_info=logger.isEnabledFor(logging.DEBUG))
        return 1


if __name__ == "__main__":
    sys.exit(main())
