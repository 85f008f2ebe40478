"""
Simple simulation for the lending ledger.

This script walks one borrower through a deposit, borrow, repay cycle and
then drives a second borrower into liquidation through accrued interest.
"""

import sys
import os

# Add the core directory to the path
sys.path.append(os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "core"))
from asset_token import AssetToken
from ledger_errors import LedgerError
from lending_ledger import LendingLedger
from ledger_parameters import LedgerParameters, LiquidationPolicy, SECONDS_PER_YEAR


def print_account(ledger, owner):
    account = ledger.account(owner)
    health = ledger.health_factor(owner)
    health_text = "max" if account.borrowed == 0 else f"{health}%"
    print(f"  {owner}: deposited={account.deposited} borrowed={account.borrowed} "
          f"owed_interest={account.interest_reserve_owed} health={health_text}")


def run_basic_simulation():
    collateral = AssetToken("COLL", owner="admin")
    debt = AssetToken("DEBT", owner="admin")
    parameters = LedgerParameters(
        collateral_factor_bp=9_000,
        liquidation_threshold_bp=8_500,
        base_interest_rate_bp=5_000,
        liquidation_policy=LiquidationPolicy.FULL_SEIZURE,
    )
    ledger = LendingLedger("admin", collateral, debt, parameters, mint_debt=True)

    for owner in ("alice", "bob"):
        collateral.mint(owner, 1_000)
        debt.mint(owner, 500)
    debt.mint("carol", 10_000)

    print("Basic cycle...")
    ledger.deposit("alice", 1_000)
    limit = ledger.max_borrowable("alice")
    ledger.borrow("alice", limit)
    print(f"Alice borrowed her full limit of {limit}")
    try:
        ledger.borrow("alice", 1)
    except LedgerError as e:
        print(f"One more unit is refused: {type(e).__name__}")

    ledger.update_time(30 * 24 * 60 * 60)
    print_account(ledger, "alice")
    charged = ledger.repay("alice", 10_000)
    print(f"Alice repaid {charged} (capped at her debt)")
    print_account(ledger, "alice")

    print("\nLiquidation...")
    ledger.deposit("bob", 100)
    ledger.borrow("bob", 80)
    print_account(ledger, "bob")
    ledger.update_time(SECONDS_PER_YEAR)
    print_account(ledger, "bob")
    if ledger.is_liquidatable("bob"):
        result = ledger.liquidate("carol", "bob")
        print(f"Carol repaid {result.repaid} and seized {result.seized} collateral")
    print_account(ledger, "bob")

    print("\nAlice collects her share of the reserve...")
    ledger.update_time(60)
    try:
        print(f"Alice claimed {ledger.claim_interest('alice')}")
    except LedgerError as e:
        print(f"Nothing claimed: {type(e).__name__}")

    print("\nFinal ledger state:")
    for key, value in ledger.get_system_state().items():
        print(f"  {key}: {value}")
    print(f"  solvent: {ledger.check_solvency()}")


if __name__ == "__main__":
    run_basic_simulation()
