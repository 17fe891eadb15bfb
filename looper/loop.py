# looper/loop.py
"""
Leverage Loop
supply USDC -> borrow USDH -> swap USDH to USDC -> supply again,
until the next supply amount falls below the minimum.

Amounts are integers in smallest units end to end.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Callable, Optional

from web3 import Web3

from looper.config import (
    BORROW_PERCENTAGE,
    MIN_SUPPLY_AMOUNT_RAW,
    MAX_LOOPS,
    BLOCK_CONFIRMATIONS,
    SWAP_CONFIRMATIONS,
    SUPPLY_APY_PCT,
    BORROW_APY_PCT,
)
from looper.pool import LendingPool
from looper.rpc_health import wait_for_confirmations
from looper.swap import Swapper
from looper.tokens import Token, ensure_allowance, require_balance, format_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoopParams:
    borrow_percentage: int = BORROW_PERCENTAGE
    min_supply_amount: int = MIN_SUPPLY_AMOUNT_RAW
    max_loops: int = MAX_LOOPS
    block_confirmations: int = BLOCK_CONFIRMATIONS
    swap_confirmations: int = SWAP_CONFIRMATIONS
    supply_apy_pct: Decimal = SUPPLY_APY_PCT
    borrow_apy_pct: Decimal = BORROW_APY_PCT


@dataclass(frozen=True)
class LoopState:
    """Running totals, replaced (never mutated) after each iteration"""
    initial_amount: int
    loop_count: int = 0
    total_supplied: int = 0
    total_borrowed: int = 0

    def record(self, supplied: int, borrowed: int) -> "LoopState":
        return replace(
            self,
            loop_count=self.loop_count + 1,
            total_supplied=self.total_supplied + supplied,
            total_borrowed=self.total_borrowed + borrowed,
        )

    @property
    def effective_leverage(self) -> Decimal:
        if self.initial_amount == 0:
            return Decimal(0)
        return Decimal(self.total_supplied) / Decimal(self.initial_amount)

    def estimated_net_apy(self, supply_apy_pct: Decimal, borrow_apy_pct: Decimal) -> Decimal:
        if self.initial_amount == 0:
            return Decimal(0)
        initial = Decimal(self.initial_amount)
        return (
            supply_apy_pct * Decimal(self.total_supplied) / initial
            - borrow_apy_pct * Decimal(self.total_borrowed) / initial
        )


def borrow_amount_for(supplied: int, borrow_percentage: int = BORROW_PERCENTAGE) -> int:
    return supplied * borrow_percentage // 100


def should_continue(amount: int, min_amount: int = MIN_SUPPLY_AMOUNT_RAW) -> bool:
    return amount >= min_amount


def format_summary(
    state: LoopState,
    params: LoopParams,
    decimals: int = 6,
    unsupplied: Optional[int] = None,
) -> str:
    """unsupplied is the amount left over when max_loops ended the run"""
    net_apy = state.estimated_net_apy(params.supply_apy_pct, params.borrow_apy_pct)
    stop_line = ""
    if unsupplied is not None:
        stop_line = (
            f"Stopped at max loops ({params.max_loops}), "
            f"{format_units(unsupplied, decimals)} USDC not supplied\n"
        )
    return (
        f"\n{'='*50}\n"
        f"🎉 LEVERAGED SUPPLY COMPLETE\n"
        f"{'='*50}\n"
        f"Total Loops: {state.loop_count}\n"
        f"Total USDC Supplied: {format_units(state.total_supplied, decimals)} USDC\n"
        f"Total USDH Borrowed: {format_units(state.total_borrowed, decimals)} USDH\n"
        f"Effective Leverage: {state.effective_leverage:.2f}x\n"
        f"Estimated Net APY: {net_apy:.2f}%\n"
        f"{stop_line}"
        f"{'='*50}\n"
    )


class LeverageLoop:
    """
    Drives the supply/borrow/swap cycle for one wallet.

    The collateral token is supplied, the debt token is borrowed and sold
    back into collateral by the swapper.
    """

    def __init__(
        self,
        w3: Web3,
        pool: LendingPool,
        swapper: Swapper,
        collateral: Token,
        debt: Token,
        params: Optional[LoopParams] = None,
        wait_for_blocks: Callable[..., int] = wait_for_confirmations,
    ):
        self.w3 = w3
        self.pool = pool
        self.swapper = swapper
        self.collateral = collateral
        self.debt = debt
        self.params = params or LoopParams()
        self.wait_for_blocks = wait_for_blocks
        self.submitter = pool.submitter
        self.user = self.submitter.address

    def run(self, initial_amount: int) -> LoopState:
        p = self.params

        if initial_amount <= 0:
            raise ValueError("Invalid supply amount")

        # Fails before anything is submitted
        require_balance(self.collateral, self.user, initial_amount)

        logger.info(f"✓ Starting leveraged supply with {self.collateral.format(initial_amount)}")
        logger.info(f"  - Borrow ratio: {p.borrow_percentage}%")
        logger.info(f"  - Min supply threshold: {self.collateral.format(p.min_supply_amount)}")
        logger.info(f"  - Supply APY: {p.supply_apy_pct}%")
        logger.info(f"  - Borrow APY: {p.borrow_apy_pct}%")

        state = LoopState(initial_amount=initial_amount)
        amount = initial_amount
        unsupplied = None

        while should_continue(amount, p.min_supply_amount):
            if state.loop_count >= p.max_loops:
                unsupplied = amount
                logger.warning(
                    f"⚠️ Reached max loops ({p.max_loops}) with {self.collateral.format(amount)} "
                    f"still above the minimum, stopping"
                )
                break

            state, amount = self.run_iteration(state, amount)

            if not should_continue(amount, p.min_supply_amount):
                logger.info(
                    f"✓ Reached minimum threshold ({self.collateral.format(p.min_supply_amount)}). Exiting loop."
                )

        logger.info(format_summary(state, p, self.collateral.decimals, unsupplied))
        return state

    def run_iteration(self, state: LoopState, supply_amount: int):
        """One supply/borrow/swap cycle. Returns (new_state, next_supply_amount)."""
        p = self.params
        loop_no = state.loop_count + 1

        logger.info(f"\n{'='*50}\nLOOP {loop_no}\n{'='*50}")
        logger.info(f"Supplying: {self.collateral.format(supply_amount)}")

        # Step 1-2: approve + supply collateral
        logger.info(f"[STEP 1/9] Approving {self.collateral.symbol} for pool...")
        ensure_allowance(self.submitter, self.collateral, self.pool.address, supply_amount)

        logger.info(f"[STEP 2/9] Supplying {self.collateral.symbol}...")
        supply = self.pool.supply(self.collateral.address, supply_amount, self.user)

        # Step 3
        logger.info("[STEP 3/9] Waiting for supply confirmations...")
        self.wait_for_blocks(self.w3, supply.block_number, p.block_confirmations)

        # Step 4-5: borrow
        borrow_amount = borrow_amount_for(supply_amount, p.borrow_percentage)
        logger.info(f"[STEP 4/9] Borrow amount: {self.debt.format(borrow_amount)} ({p.borrow_percentage}%)")

        logger.info(f"[STEP 5/9] Borrowing {self.debt.symbol}...")
        borrow = self.pool.borrow(self.debt.address, borrow_amount, self.user)

        state = state.record(supply_amount, borrow_amount)
        logger.info(f"Total supplied so far: {self.collateral.format(state.total_supplied)}")
        logger.info(f"Total borrowed so far: {self.debt.format(state.total_borrowed)}")

        # Step 6
        logger.info("[STEP 6/9] Waiting for borrow confirmations...")
        self.wait_for_blocks(self.w3, borrow.block_number, p.block_confirmations)
        logger.info(f"{self.debt.symbol} balance after borrow: {self.debt.format(self.debt.balance_of(self.user))}")

        # Step 7-8: approve (inside swap) + swap debt back into collateral
        logger.info(f"[STEP 7-8/9] Swapping {self.debt.symbol} to {self.collateral.symbol}...")
        swap = self.swapper.swap(borrow_amount)

        # Step 9
        logger.info("[STEP 9/9] Checking balances after swap...")
        self.wait_for_blocks(self.w3, swap.block_number, p.swap_confirmations)
        collateral_balance = self.collateral.balance_of(self.user)

        # Swap output can land slightly under 1:1
        next_amount = min(borrow_amount, collateral_balance)

        logger.info(
            f"\n📊 Loop {loop_no} Summary:\n"
            f"  Total Supplied: {self.collateral.format(state.total_supplied)}\n"
            f"  Total Borrowed: {self.debt.format(state.total_borrowed)}\n"
            f"  Current {self.collateral.symbol} Balance: {self.collateral.format(collateral_balance)}\n"
            f"  Next supply amount: {self.collateral.format(next_amount)}"
        )
        return state, next_amount
