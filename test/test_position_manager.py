"""
Unit tests for deposit, withdraw, borrow, repay and claim on the lending ledger.
"""

import unittest
import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from asset_token import AssetToken
from ledger_errors import (
    CollateralBreach,
    InsufficientBalance,
    InsufficientCollateral,
    InvalidAmount,
    NoOutstandingDebt,
    NothingToClaim,
    ProtocolPaused,
    TransferFailed,
)
from lending_ledger import LendingLedger
from ledger_events import EventKind
from ledger_parameters import LedgerParameters, MAX_UINT

THIRTY_DAYS = 30 * 24 * 60 * 60


class TestPositionManager(unittest.TestCase):
    def setUp(self):
        """Initialize a fresh ledger with a 75% collateral factor for each test"""
        self.collateral = AssetToken("COLL", owner="admin")
        self.debt = AssetToken("DEBT", owner="admin")
        self.ledger = LendingLedger(
            "admin",
            collateral_token=self.collateral,
            debt_token=self.debt,
            parameters=LedgerParameters(
                collateral_factor_bp=7_500,
                liquidation_threshold_bp=5_000,
                base_interest_rate_bp=500,
                reserve_factor_bp=1_000,
            ),
            mint_debt=True,
        )
        self.collateral.mint("alice", 1_000)
        self.debt.mint("alice", 1_000)

    def test_basic_cycle(self):
        """Deposit, borrow to the limit, fail one more unit, repay everything"""
        self.ledger.deposit("alice", 1_000)
        self.assertEqual(self.ledger.borrow("alice", 750), 750)

        with self.assertRaises(InsufficientCollateral):
            self.ledger.borrow("alice", 1)

        self.ledger.update_time(THIRTY_DAYS)
        owed = self.ledger.account("alice").borrowed
        # 750 * 5% * 30/365 truncates to 3
        self.assertEqual(owed, 753)

        charged = self.ledger.repay("alice", 10_000)

        self.assertEqual(charged, 753)
        self.assertEqual(self.ledger.account("alice").borrowed, 0)
        self.assertEqual(self.ledger.totals.total_borrowed, 0)
        self.assertEqual(self.debt.balance_of("alice"), 1_000 + 750 - 753)

    def test_deposit_moves_collateral(self):
        """A deposit is collected from the caller and credited to the account"""
        self.ledger.deposit("alice", 400)

        self.assertEqual(self.ledger.account("alice").deposited, 400)
        self.assertEqual(self.ledger.totals.total_deposited, 400)
        self.assertEqual(self.collateral.balance_of("alice"), 600)
        self.assertEqual(self.collateral.balance_of(self.ledger.address), 400)
        self.assertEqual(self.ledger.events.last().kind, EventKind.DEPOSIT)

    def test_deposit_invalid_amount(self):
        """Zero and negative deposits are rejected"""
        with self.assertRaises(InvalidAmount):
            self.ledger.deposit("alice", 0)
        with self.assertRaises(InvalidAmount):
            self.ledger.deposit("alice", -5)

    def test_deposit_without_funds_fails_cleanly(self):
        """A rejected collateral transfer credits nothing"""
        with self.assertRaises(TransferFailed):
            self.ledger.deposit("bob", 100)

        self.assertEqual(self.ledger.account("bob").deposited, 0)
        self.assertEqual(self.ledger.totals.total_deposited, 0)
        self.assertEqual(len(self.ledger.events), 0)

    def test_withdraw_more_than_deposited(self):
        """Withdrawing beyond the deposit raises InsufficientBalance"""
        self.ledger.deposit("alice", 100)
        with self.assertRaises(InsufficientBalance):
            self.ledger.withdraw("alice", 101)

    def test_withdraw_collateral_breach(self):
        """A withdrawal may not leave the debt above the collateral factor"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 600)

        # 799 * 75% = 599 < 600
        with self.assertRaises(CollateralBreach):
            self.ledger.withdraw("alice", 201)

        # 800 * 75% = 600
        self.assertEqual(self.ledger.withdraw("alice", 200), 800)
        self.assertEqual(self.collateral.balance_of("alice"), 200)
        self.assertEqual(self.ledger.totals.total_deposited, 800)

    def test_withdraw_transfer_failure_rolls_back(self):
        """If the collateral cannot be sent out, the balances are restored"""
        self.ledger.deposit("alice", 500)
        self.collateral.freeze("alice")

        with self.assertRaises(TransferFailed):
            self.ledger.withdraw("alice", 100)

        self.assertEqual(self.ledger.account("alice").deposited, 500)
        self.assertEqual(self.ledger.totals.total_deposited, 500)
        self.assertEqual(self.collateral.balance_of(self.ledger.address), 500)

    def test_borrow_mints_debt(self):
        """Borrowing an IOU-style debt asset mints it to the borrower"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 300)

        self.assertEqual(self.debt.balance_of("alice"), 1_300)
        self.assertEqual(self.ledger.totals.total_borrowed, 300)

    def test_borrow_without_collateral(self):
        """Borrowing with nothing deposited fails"""
        with self.assertRaises(InsufficientCollateral):
            self.ledger.borrow("alice", 1)

    def test_repay_without_debt(self):
        """Repaying an account with no debt raises NoOutstandingDebt"""
        self.ledger.deposit("alice", 100)
        with self.assertRaises(NoOutstandingDebt):
            self.ledger.repay("alice", 10)

    def test_repay_credits_reserve(self):
        """A reserve-factor share of each repayment is kept for depositors"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 500)

        charged = self.ledger.repay("alice", 200)

        self.assertEqual(charged, 200)
        self.assertEqual(self.ledger.account("alice").borrowed, 300)
        self.assertEqual(self.ledger.totals.unallocated_interest_reserve, 20)
        # The reserve share stays with the ledger, the rest is burned
        self.assertEqual(self.debt.balance_of(self.ledger.address), 20)

    def test_claim_interest(self):
        """A depositor claims its share of the reserve once"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 500)
        self.ledger.repay("alice", 500)
        self.ledger.update_time(1)

        claimed = self.ledger.claim_interest("alice")

        self.assertEqual(claimed, 50)
        self.assertEqual(self.debt.balance_of("alice"), 1_000 + 500 - 500 + 50)
        self.assertEqual(self.ledger.account("alice").interest_reserve_owed, 0)
        self.assertEqual(self.ledger.totals.unallocated_interest_reserve, 0)

        with self.assertRaises(NothingToClaim):
            self.ledger.claim_interest("alice")

    def test_paused_operations(self):
        """Deposit, withdraw and borrow stop while paused; repay and claim continue"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 500)
        self.ledger.repay("alice", 100)
        self.ledger.pause("admin")

        with self.assertRaises(ProtocolPaused):
            self.ledger.deposit("alice", 1)
        with self.assertRaises(ProtocolPaused):
            self.ledger.withdraw("alice", 1)
        with self.assertRaises(ProtocolPaused):
            self.ledger.borrow("alice", 1)

        self.assertEqual(self.ledger.repay("alice", 100), 100)
        self.ledger.update_time(1)
        # Both repayments fed the reserve; alice is the only depositor
        self.assertEqual(self.ledger.claim_interest("alice"), 20)

    def test_health_factor(self):
        """Health is maximal without debt and a truncated percentage otherwise"""
        self.assertEqual(self.ledger.health_factor("alice"), MAX_UINT)
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 750)
        self.assertEqual(self.ledger.health_factor("alice"), 133)

    def test_borrow_and_withdraw_headroom(self):
        """Headroom queries agree with the borrow and withdraw checks"""
        self.ledger.deposit("alice", 1_000)
        self.ledger.borrow("alice", 600)

        self.assertEqual(self.ledger.max_borrowable("alice"), 150)
        self.assertEqual(self.ledger.max_withdrawable("alice"), 200)

        self.ledger.withdraw("alice", self.ledger.max_withdrawable("alice"))
        self.assertEqual(self.ledger.max_withdrawable("alice"), 0)

    def test_account_returns_to_zero(self):
        """An account that unwinds completely stays on record as all zero"""
        self.ledger.deposit("alice", 100)
        self.ledger.withdraw("alice", 100)

        self.assertTrue(self.ledger.account("alice").is_empty())
        self.assertIn("alice", self.ledger.store)


class TestPooledDebtAsset(unittest.TestCase):
    def setUp(self):
        """Ledger lending out a pre-funded debt asset instead of minting it"""
        self.collateral = AssetToken("COLL", owner="admin")
        self.debt = AssetToken("DEBT", owner="admin")
        self.ledger = LendingLedger("admin", self.collateral, self.debt)
        self.collateral.mint("alice", 1_000)

    def test_borrow_without_liquidity_fails(self):
        """Borrowing more than the ledger holds is rejected without side effects"""
        self.ledger.deposit("alice", 1_000)

        with self.assertRaises(TransferFailed):
            self.ledger.borrow("alice", 100)

        self.assertEqual(self.ledger.account("alice").borrowed, 0)
        self.assertEqual(self.ledger.totals.total_borrowed, 0)

    def test_borrow_and_repay_from_liquidity(self):
        """Borrowed funds come out of the ledger's balance and repayments return to it"""
        self.debt.mint(self.ledger.address, 10_000)
        self.ledger.deposit("alice", 1_000)

        self.ledger.borrow("alice", 700)
        self.assertEqual(self.debt.balance_of(self.ledger.address), 9_300)
        self.assertEqual(self.debt.balance_of("alice"), 700)

        self.ledger.repay("alice", 700)
        self.assertEqual(self.debt.balance_of(self.ledger.address), 10_000)
        self.assertEqual(self.debt.total_supply, 10_000)


if __name__ == '__main__':
    unittest.main()
