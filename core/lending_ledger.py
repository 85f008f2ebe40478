"""
Lending Ledger for the collateralized lending system.

This main module combines the individual components into the public ledger:
account holders deposit collateral, borrow the debt asset against it, accrue
interest over time and can be liquidated when their position becomes unsafe.

Every mutating call runs as one serialized operation:
1. A ledger-wide reentrancy guard is taken; a call arriving while it is held
   fails with ReentrantCall
2. A checkpoint is opened: the parameters are copied, and each account and
   asset balance is journaled the first time the operation changes it
3. The component operation runs against the current ledger time
4. On any error the checkpoint is rolled back, so the call is all-or-nothing
5. The journals and the guard are released on every exit path
"""

import copy
import json
import logging
from contextlib import contextmanager
from pathlib import Path

from account_store import AccountStore
from admin_gate import AdminGate
from asset_token import AssetToken
from ledger_errors import InvalidAmount, ReentrantCall
from interest_engine import preview_accrual
from ledger_events import EventLog
from ledger_parameters import LedgerParameters
from liquidation_engine import LiquidationEngine, is_liquidatable
from position_manager import PositionManager, health_factor, max_borrowable, max_withdrawable

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_ADDRESS = "lending_ledger"


class ReentrancyGuard:
    """
    Ledger-wide in-progress flag used as a context manager.

    Entering while already held raises ReentrantCall; leaving always releases,
    whether the body returned or raised.
    """

    def __init__(self):
        self.held = False

    def __enter__(self):
        if self.held:
            logger.warning("Reentrant ledger call rejected", extra={"event": "ledger.reentrant"})
            raise ReentrantCall("Ledger operation already in progress")
        self.held = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.held = False
        return False


class LendingLedger:
    """
    Collateralized lending ledger.

    Combines the account store, interest accrual, position manager,
    liquidation engine and admin gate, and owns the ledger clock.
    """

    def __init__(self, admin, collateral_token=None, debt_token=None, parameters=None,
                 address=DEFAULT_LEDGER_ADDRESS, mint_debt=False, start_time=0):
        # Assets
        if collateral_token is None:
            collateral_token = AssetToken("COLL", owner=admin)
        if debt_token is None:
            debt_token = AssetToken("DEBT", owner=admin)
        self.collateral_token = collateral_token
        self.debt_token = debt_token
        self.address = address

        if mint_debt:
            if not self.debt_token.owner:
                self.debt_token.set_owner(admin)
            self.debt_token.add_minter(address)

        # State
        self.parameters = parameters if parameters is not None else LedgerParameters()
        self.parameters.validate()
        self.store = AccountStore()
        self.events = EventLog()
        self.current_time = start_time

        # Components
        self.positions = PositionManager(
            self.store, self.parameters, self.collateral_token, self.debt_token,
            self.events, address, mint_debt=mint_debt,
        )
        self.liquidations = LiquidationEngine(self.positions)
        self.admin_gate = AdminGate(self.parameters, self.events, admin)

        self._guard = ReentrancyGuard()

    # --- Clock ---

    def update_time(self, seconds):
        """
        Advance the ledger clock by the specified number of seconds.

        Accounts are not accrued here; each one catches up when next touched.
        """
        if seconds < 0:
            raise InvalidAmount("The ledger clock cannot move backwards")
        self.current_time += seconds

    def set_time(self, now):
        if now < self.current_time:
            raise InvalidAmount(f"Ledger time {now} is before current time {self.current_time}")
        self.current_time = now

    # --- Operation scope ---

    @contextmanager
    def _operation(self, name):
        with self._guard:
            checkpoint = self._checkpoint()
            try:
                yield
            except Exception as exc:
                self._rollback(checkpoint)
                logger.info(
                    "Operation reverted",
                    extra={"event": "ledger.revert", "operation": name,
                           "error": type(exc).__name__},
                )
                raise
            finally:
                self._release(checkpoint)

    def _checkpoint(self):
        self.store.begin()
        return {
            "parameters": copy.copy(self.parameters.__dict__),
            "admin": self.admin_gate.admin,
            "events": len(self.events),
            "collateral_token": self.collateral_token.begin(),
            "debt_token": self.debt_token.begin(),
        }

    def _rollback(self, checkpoint):
        self.store.rollback()
        self.parameters.__dict__.update(checkpoint["parameters"])
        self.admin_gate.admin = checkpoint["admin"]
        self.events.truncate(checkpoint["events"])
        self.collateral_token.rollback(checkpoint["collateral_token"])
        self.debt_token.rollback(checkpoint["debt_token"])

    def _release(self, checkpoint):
        self.store.end()
        self.collateral_token.end(checkpoint["collateral_token"])
        self.debt_token.end(checkpoint["debt_token"])

    # --- Position operations ---

    def deposit(self, caller, amount):
        with self._operation("deposit"):
            return self.positions.deposit(caller, amount, self.current_time)

    def withdraw(self, caller, amount):
        with self._operation("withdraw"):
            return self.positions.withdraw(caller, amount, self.current_time)

    def borrow(self, caller, amount):
        with self._operation("borrow"):
            return self.positions.borrow(caller, amount, self.current_time)

    def repay(self, caller, amount):
        with self._operation("repay"):
            return self.positions.repay(caller, amount, self.current_time)

    def claim_interest(self, caller):
        with self._operation("claim_interest"):
            return self.positions.claim_interest(caller, self.current_time)

    def accrue(self, owner):
        """Bring an account up to the current ledger time without any other change."""
        with self._operation("accrue"):
            return copy.copy(self.positions.touch(owner, self.current_time))

    def liquidate(self, liquidator, target, repay_amount=0):
        with self._operation("liquidate"):
            return self.liquidations.liquidate(liquidator, target, repay_amount, self.current_time)

    # --- Admin operations ---

    def pause(self, caller):
        with self._operation("pause"):
            self.admin_gate.pause(caller, self.current_time)

    def unpause(self, caller):
        with self._operation("unpause"):
            self.admin_gate.unpause(caller, self.current_time)

    def update_parameters(self, caller, collateral_factor_bp, liquidation_threshold_bp):
        with self._operation("update_parameters"):
            self.admin_gate.update_parameters(
                caller, collateral_factor_bp, liquidation_threshold_bp, self.current_time
            )

    def update_interest_rate(self, caller, base_interest_rate_bp):
        with self._operation("update_interest_rate"):
            self.admin_gate.update_interest_rate(caller, base_interest_rate_bp, self.current_time)

    def update_reserve_factor(self, caller, reserve_factor_bp):
        with self._operation("update_reserve_factor"):
            self.admin_gate.update_reserve_factor(caller, reserve_factor_bp, self.current_time)

    def set_liquidation_policy(self, caller, policy):
        with self._operation("set_liquidation_policy"):
            self.admin_gate.set_liquidation_policy(caller, policy, self.current_time)

    def transfer_admin(self, caller, new_admin):
        with self._operation("transfer_admin"):
            self.admin_gate.transfer_admin(caller, new_admin, self.current_time)

    # --- Queries ---

    @property
    def admin(self):
        return self.admin_gate.admin

    @property
    def paused(self):
        return self.parameters.paused

    @property
    def totals(self):
        return copy.copy(self.store.totals)

    def get_parameters(self):
        return copy.copy(self.parameters)

    def account(self, owner):
        """
        Returns a copy of the owner's account as it would read if accrued now.
        Nothing is written.
        """
        account = self.store.view(owner)
        if owner not in self.store:
            return account
        account, _, _ = preview_accrual(account, self.store.totals, self.parameters,
                                        self.current_time)
        return account

    def recorded_account(self, owner):
        """Returns a copy of the owner's account as last written."""
        return self.store.view(owner)

    def health_factor(self, owner):
        return health_factor(self.account(owner))

    def is_liquidatable(self, owner):
        return is_liquidatable(self.account(owner), self.parameters)

    def liquidatable_accounts(self):
        return self.liquidations.liquidatable_accounts(self.current_time)

    def max_borrowable(self, owner):
        return max_borrowable(self.account(owner), self.parameters)

    def max_withdrawable(self, owner):
        return max_withdrawable(self.account(owner), self.parameters)

    def check_solvency(self):
        """
        Check the solvency properties of the recorded state.

        Returns:
            True if the totals equal the account sums and the ledger holds
            exactly the deposited collateral
        """
        return (self.store.is_consistent()
                and self.collateral_token.balance_of(self.address) == self.store.totals.total_deposited)

    def get_system_state(self):
        """Summary of the ledger for reports and simulations."""
        totals = self.store.totals
        borrowers = [account for account in self.store if account.borrowed > 0]
        return {
            "time": self.current_time,
            "accounts": len(self.store),
            "borrowers": len(borrowers),
            "total_deposited": totals.total_deposited,
            "total_borrowed": totals.total_borrowed,
            "unallocated_interest_reserve": totals.unallocated_interest_reserve,
            "interest_owed": self.store.sum_interest_owed(),
            "collateral_held": self.collateral_token.balance_of(self.address),
            "debt_asset_held": self.debt_token.balance_of(self.address),
            "paused": self.parameters.paused,
            "events": len(self.events),
        }

    # --- Persistence ---

    def to_dict(self):
        return {
            "address": self.address,
            "admin": self.admin_gate.admin,
            "current_time": self.current_time,
            "mint_debt": self.positions.mint_debt,
            "parameters": self.parameters.to_dict(),
            "store": self.store.to_dict(),
            "events": self.events.to_list(),
        }

    @classmethod
    def from_dict(cls, data, collateral_token=None, debt_token=None):
        """
        Rebuild a ledger from to_dict() output.

        The assets are external state and are passed in rather than restored.
        """
        ledger = cls(
            data["admin"],
            collateral_token=collateral_token,
            debt_token=debt_token,
            parameters=LedgerParameters.from_dict(data["parameters"]),
            address=data.get("address", DEFAULT_LEDGER_ADDRESS),
            mint_debt=data.get("mint_debt", False),
            start_time=data.get("current_time", 0),
        )
        store = AccountStore.from_dict(data["store"])
        ledger.store.accounts = store.accounts
        ledger.store.totals = store.totals
        ledger.events.events = EventLog.from_list(data.get("events", [])).events
        return ledger

    def save(self, path):
        Path(path).write_text(json.dumps(self.to_dict(), indent=2))
        logger.info("Ledger saved", extra={"event": "ledger.save", "path": str(path)})

    @classmethod
    def load(cls, path, collateral_token=None, debt_token=None):
        data = json.loads(Path(path).read_text())
        return cls.from_dict(data, collateral_token=collateral_token, debt_token=debt_token)
