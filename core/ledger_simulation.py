"""
Simulation for the lending ledger.

This module drives a ledger with randomized borrowers and a liquidator to
study how debt, collateral and the depositor reserve evolve, and to check the
solvency invariants after every step. It can be used to simulate various
scenarios and plot the results.
"""

import numpy as np
import matplotlib.pyplot as plt

from asset_token import AssetToken
from ledger_errors import LedgerError
from lending_ledger import LendingLedger
from ledger_parameters import LedgerParameters, LiquidationPolicy

SECONDS_PER_HOUR = 60 * 60
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR

ACTIONS = ("deposit", "borrow", "repay", "withdraw", "claim_interest")


class LedgerSimulation:
    """
    Randomized multi-account model of the lending ledger.
    """

    def __init__(self, num_borrowers=10, seed=None, parameters=None,
                 initial_collateral=10_000, initial_debt_balance=5_000):
        self.rng = np.random.default_rng(seed)

        self.admin = "admin"
        self.liquidator = "liquidator"
        self.borrowers = [f"user{i}" for i in range(num_borrowers)]

        self.collateral_token = AssetToken("COLL", owner=self.admin)
        self.debt_token = AssetToken("DEBT", owner=self.admin)

        if parameters is None:
            parameters = LedgerParameters(
                collateral_factor_bp=9_000,
                liquidation_threshold_bp=8_500,
                base_interest_rate_bp=5_000,
                reserve_factor_bp=1_000,
                liquidation_policy=LiquidationPolicy.FULL_SEIZURE,
            )

        self.ledger = LendingLedger(
            self.admin,
            collateral_token=self.collateral_token,
            debt_token=self.debt_token,
            parameters=parameters,
            mint_debt=True,
        )

        # Fund the participants
        for owner in self.borrowers:
            self.collateral_token.mint(owner, initial_collateral)
            self.debt_token.mint(owner, initial_debt_balance)
        self.debt_token.mint(self.liquidator, initial_debt_balance * num_borrowers * 10)

        self.stats = {action: 0 for action in ACTIONS}
        self.stats["rejected"] = 0
        self.stats["liquidations"] = 0
        self.solvency_violations = []
        self.history = []

    def step(self):
        """Run one random action for every borrower, then liquidate what is unsafe."""
        for owner in self.rng.permutation(self.borrowers):
            action = ACTIONS[self.rng.integers(len(ACTIONS))]
            try:
                self._perform(str(owner), action)
                self.stats[action] += 1
            except LedgerError:
                self.stats["rejected"] += 1

        for target in self.ledger.liquidatable_accounts():
            self._liquidate(target)

        if not self.ledger.check_solvency():
            self.solvency_violations.append(self.ledger.current_time)

    def _perform(self, owner, action):
        ledger = self.ledger
        if action == "deposit":
            balance = self.collateral_token.balance_of(owner)
            if balance > 0:
                ledger.deposit(owner, int(self.rng.integers(1, balance + 1)))
        elif action == "borrow":
            headroom = ledger.max_borrowable(owner)
            if headroom > 0:
                ledger.borrow(owner, int(self.rng.integers(1, headroom + 1)))
        elif action == "repay":
            owed = ledger.account(owner).borrowed
            if owed > 0:
                ledger.repay(owner, int(self.rng.integers(1, owed + 1)))
        elif action == "withdraw":
            available = ledger.max_withdrawable(owner)
            if available > 0:
                ledger.withdraw(owner, int(self.rng.integers(1, available + 1)))
        else:
            ledger.claim_interest(owner)

    def _liquidate(self, target):
        ledger = self.ledger
        repay_amount = 0
        if ledger.parameters.liquidation_policy is LiquidationPolicy.PARTIAL_CAPPED:
            owed = ledger.account(target).borrowed
            repay_amount = max(1, owed // 2)
        try:
            ledger.liquidate(self.liquidator, target, repay_amount)
            self.stats["liquidations"] += 1
        except LedgerError:
            self.stats["rejected"] += 1

    def _min_health(self):
        healths = [self.ledger.health_factor(owner) for owner in self.borrowers
                   if self.ledger.account(owner).borrowed > 0]
        return min(healths) if healths else np.nan

    def simulate_market_scenario(self, days, step_hours=24, plot_results=True):
        """
        Run the simulation for the specified number of days.

        Args:
            days: Number of days to simulate
            step_hours: Ledger time between steps
            plot_results: Whether to generate plots of the results

        Returns:
            Dictionary with simulation results
        """
        step_size = step_hours * SECONDS_PER_HOUR
        steps = max(1, days * SECONDS_PER_DAY // step_size)

        # Arrays to store history
        time_points = np.zeros(steps)
        deposited_points = np.zeros(steps)
        borrowed_points = np.zeros(steps)
        reserve_points = np.zeros(steps)
        health_points = np.zeros(steps)

        for i in range(steps):
            self.ledger.update_time(step_size)
            self.step()

            state = self.ledger.get_system_state()
            self.history.append(state)

            time_points[i] = self.ledger.current_time / SECONDS_PER_DAY
            deposited_points[i] = state["total_deposited"]
            borrowed_points[i] = state["total_borrowed"]
            reserve_points[i] = state["unallocated_interest_reserve"] + state["interest_owed"]
            health_points[i] = self._min_health()

        if plot_results:
            fig, axs = plt.subplots(4, 1, figsize=(12, 16), sharex=True)

            axs[0].plot(time_points, deposited_points)
            axs[0].set_title('Total Deposited')
            axs[0].set_ylabel('COLL')

            axs[1].plot(time_points, borrowed_points)
            axs[1].set_title('Total Borrowed')
            axs[1].set_ylabel('DEBT')

            axs[2].plot(time_points, reserve_points)
            axs[2].set_title('Depositor Reserve (unallocated + owed)')
            axs[2].set_ylabel('DEBT')

            axs[3].plot(time_points, health_points)
            axs[3].axhline(self.ledger.parameters.liquidation_threshold_bp / 100,
                           color='r', linestyle='--')
            axs[3].set_title('Lowest Health Factor')
            axs[3].set_ylabel('%')
            axs[3].set_xlabel('Days')

            plt.tight_layout()
            plt.show()

        final = self.ledger.get_system_state()
        return {
            'final_total_deposited': final["total_deposited"],
            'final_total_borrowed': final["total_borrowed"],
            'final_reserve': final["unallocated_interest_reserve"],
            'interest_owed': final["interest_owed"],
            'liquidations': self.stats["liquidations"],
            'rejected': self.stats["rejected"],
            'solvent': not self.solvency_violations,
        }
