"""
Position Manager for the lending ledger.

This module handles the operations an account holder performs on their own
position: depositing and withdrawing collateral, borrowing and repaying the
debt asset, and claiming depositor yield.

Every operation:
1. Brings the acting account up to the current ledger time
2. Checks the circuit breaker (repay and claim stay open while paused)
3. Re-validates the collateralization invariant
4. Orders asset transfers so the ledger is never credited for value it has
   not received, and never pays out before its own books are updated
"""

import logging

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
from interest_engine import accrue
from ledger_events import EventKind
from ledger_parameters import BASIS_POINTS, MAX_UINT

logger = logging.getLogger(__name__)


def health_factor(account):
    """
    Collateral-to-debt ratio of an account as a truncated percentage.

    Collateral is valued 1:1 with debt units. An account without debt has
    maximal health.
    """
    if account.borrowed == 0:
        return MAX_UINT
    return account.deposited * 100 // account.borrowed


def max_borrowable(account, parameters):
    """Additional debt the account can take on under the collateral factor."""
    return max(0, parameters.max_debt_for(account.deposited) - account.borrowed)


def max_withdrawable(account, parameters):
    """Largest withdrawal that keeps the account within the collateral factor."""
    if account.borrowed == 0:
        return account.deposited
    if parameters.collateral_factor_bp == 0:
        return 0
    # Smallest deposit d with d * factor // BASIS_POINTS >= borrowed
    required = -(-account.borrowed * BASIS_POINTS // parameters.collateral_factor_bp)
    return max(0, account.deposited - required)


class PositionManager:
    """
    Applies deposit, withdraw, borrow, repay and claim operations to the
    account store and moves the matching assets.
    """

    def __init__(self, store, parameters, collateral_token, debt_token, events,
                 ledger_address, mint_debt=False):
        self.store = store
        self.parameters = parameters
        self.collateral_token = collateral_token
        self.debt_token = debt_token
        self.events = events

        # Identity the ledger holds assets under
        self.ledger_address = ledger_address

        # IOU-style debt: borrows are minted and repayments burned
        self.mint_debt = mint_debt

    # --- Helpers ---

    def touch(self, owner, now):
        """Returns the owner's account accrued up to `now`, creating it on first touch."""
        account = self.store.get_or_create(owner, now)
        result = accrue(account, self.store.totals, self.parameters, now)
        if result.changed:
            self.events.emit(
                EventKind.INTEREST_ACCRUED, now, (owner,),
                interest=result.interest, reserve_share=result.reserve_share,
            )
        return account

    def require_not_paused(self, operation):
        if self.parameters.paused:
            logger.warning(
                "Operation blocked while paused",
                extra={"event": "ledger.paused_reject", "operation": operation},
            )
            raise ProtocolPaused(f"Ledger is paused; {operation} is unavailable")

    @staticmethod
    def require_amount(amount):
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise InvalidAmount(f"Amount must be a positive integer, got {amount!r}")

    def pull(self, token, owner, amount):
        """Collects `amount` of token from owner into the ledger."""
        if not token.transfer_from(owner, self.ledger_address, amount):
            raise TransferFailed(f"Could not collect {amount} {token.symbol} from {owner}")

    def push(self, token, recipient, amount):
        """Pays `amount` of token out of the ledger to recipient."""
        if not token.transfer(self.ledger_address, recipient, amount):
            raise TransferFailed(f"Could not pay {amount} {token.symbol} to {recipient}")

    def pay_out_debt(self, recipient, amount):
        if self.mint_debt:
            self.debt_token.mint(recipient, amount, minter=self.ledger_address)
        else:
            self.push(self.debt_token, recipient, amount)

    def retire_debt(self, amount):
        """Burns repaid IOU debt held by the ledger; pooled debt stays as liquidity."""
        if self.mint_debt and amount > 0:
            if not self.debt_token.burn_from(self.ledger_address, amount):
                raise TransferFailed(f"Could not burn {amount} {self.debt_token.symbol}")

    # --- Operations ---

    def deposit(self, caller, amount, now):
        """
        Add collateral to the caller's position.

        The collateral is collected before anything is credited.

        Returns:
            The caller's new deposited balance
        """
        self.require_amount(amount)
        self.require_not_paused("deposit")
        account = self.touch(caller, now)

        self.pull(self.collateral_token, caller, amount)

        account.deposited += amount
        self.store.totals.total_deposited += amount

        self.events.emit(EventKind.DEPOSIT, now, (caller,), amount=amount)
        logger.info(
            "Collateral deposited",
            extra={"event": "ledger.deposit", "account": caller, "amount": amount},
        )
        return account.deposited

    def withdraw(self, caller, amount, now):
        """
        Remove collateral from the caller's position.

        The remaining collateral must still cover the debt under the collateral
        factor. Balances are reduced before the collateral is sent out.

        Returns:
            The caller's new deposited balance
        """
        self.require_amount(amount)
        self.require_not_paused("withdraw")
        account = self.touch(caller, now)

        if account.deposited < amount:
            logger.warning(
                "Withdrawal exceeds deposit",
                extra={"event": "ledger.withdraw_reject", "account": caller,
                       "amount": amount, "deposited": account.deposited},
            )
            raise InsufficientBalance(
                f"Cannot withdraw {amount}; {caller} has {account.deposited} deposited"
            )

        remaining = account.deposited - amount
        if account.borrowed > self.parameters.max_debt_for(remaining):
            logger.warning(
                "Withdrawal would breach collateral factor",
                extra={"event": "ledger.withdraw_reject", "account": caller,
                       "amount": amount, "borrowed": account.borrowed},
            )
            raise CollateralBreach(
                f"Withdrawing {amount} leaves {remaining} collateral for {account.borrowed} debt"
            )

        account.deposited = remaining
        self.store.totals.total_deposited -= amount

        self.push(self.collateral_token, caller, amount)

        self.events.emit(EventKind.WITHDRAW, now, (caller,), amount=amount)
        logger.info(
            "Collateral withdrawn",
            extra={"event": "ledger.withdraw", "account": caller, "amount": amount},
        )
        return account.deposited

    def borrow(self, caller, amount, now):
        """
        Borrow the debt asset against the caller's collateral.

        Returns:
            The caller's new borrowed balance
        """
        self.require_amount(amount)
        self.require_not_paused("borrow")
        account = self.touch(caller, now)

        limit = self.parameters.max_debt_for(account.deposited)
        if account.borrowed + amount > limit:
            logger.warning(
                "Borrow exceeds collateral factor",
                extra={"event": "ledger.borrow_reject", "account": caller,
                       "amount": amount, "borrowed": account.borrowed, "limit": limit},
            )
            raise InsufficientCollateral(
                f"Borrowing {amount} on top of {account.borrowed} exceeds limit {limit}"
            )

        account.borrowed += amount
        self.store.totals.total_borrowed += amount

        self.pay_out_debt(caller, amount)

        self.events.emit(EventKind.BORROW, now, (caller,), amount=amount)
        logger.info(
            "Debt borrowed",
            extra={"event": "ledger.borrow", "account": caller, "amount": amount},
        )
        return account.borrowed

    def repay(self, caller, amount, now):
        """
        Repay the caller's debt. Available while paused.

        The caller is charged at most what it owes. A reserve-factor share of
        the payment is kept for depositors.

        Returns:
            The amount actually charged
        """
        self.require_amount(amount)
        account = self.touch(caller, now)

        if account.borrowed == 0:
            raise NoOutstandingDebt(f"{caller} has no outstanding debt")

        charged = min(amount, account.borrowed)

        self.pull(self.debt_token, caller, charged)

        reserve_share = charged * self.parameters.reserve_factor_bp // BASIS_POINTS
        account.borrowed -= charged
        self.store.totals.total_borrowed -= charged
        self.store.totals.unallocated_interest_reserve += reserve_share
        self.retire_debt(charged - reserve_share)

        self.events.emit(
            EventKind.REPAY, now, (caller,), amount=charged, reserve_share=reserve_share
        )
        logger.info(
            "Debt repaid",
            extra={"event": "ledger.repay", "account": caller, "amount": charged,
                   "reserve_share": reserve_share},
        )
        return charged

    def claim_interest(self, caller, now):
        """
        Pay out the depositor yield credited to the caller. Available while paused.

        Returns:
            The amount paid
        """
        account = self.touch(caller, now)

        owed = account.interest_reserve_owed
        if owed == 0:
            raise NothingToClaim(f"{caller} has no interest to claim")

        account.interest_reserve_owed = 0
        self.push(self.debt_token, caller, owed)

        self.events.emit(EventKind.CLAIM_INTEREST, now, (caller,), amount=owed)
        logger.info(
            "Interest claimed",
            extra={"event": "ledger.claim_interest", "account": caller, "amount": owed},
        )
        return owed
