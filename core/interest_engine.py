"""
Interest Accrual Engine for the lending ledger.

Interest is applied lazily: an account is brought up to the current ledger
time only when it is touched, so no job ever has to walk every account.

Accrual does two things:
1. Charges simple interest on the account's debt for the time elapsed since
   its last accrual. The charge is non-compounding within one call, but the
   next call charges on the grown debt, so interest compounds across touches.
2. Pays the account its pro-rata share of the unallocated interest reserve,
   weighted by its deposit. Nothing is paid when no time has elapsed.

Integer division truncates; the dust stays in the reserve or the debt pool,
so value is never created or destroyed by rounding.
"""

import copy
import logging
from dataclasses import dataclass

from ledger_errors import InvalidAmount
from ledger_parameters import BASIS_POINTS, SECONDS_PER_YEAR

logger = logging.getLogger(__name__)


@dataclass
class AccrualResult:
    elapsed: int = 0        # Seconds brought up to date
    interest: int = 0       # Debt added to the account
    reserve_share: int = 0  # Reserve credited to the account's owed interest

    @property
    def changed(self):
        return self.interest > 0 or self.reserve_share > 0


def calc_interest(borrowed, rate_bp, elapsed):
    """Simple interest on borrowed for elapsed seconds at an annual rate in basis points."""
    if borrowed <= 0 or elapsed <= 0 or rate_bp <= 0:
        return 0
    return borrowed * rate_bp * elapsed // (BASIS_POINTS * SECONDS_PER_YEAR)


def calc_reserve_share(deposited, reserve, total_deposited):
    """Pro-rata share of the reserve for a deposit; zero when nothing is deposited."""
    if reserve <= 0 or deposited <= 0 or total_deposited <= 0:
        return 0
    return deposited * reserve // total_deposited


def accrue(account, totals, parameters, now):
    """
    Bring an account up to the ledger time `now`.

    Mutates the account and the protocol totals in place. Both interest and
    the reserve share are tied to elapsed time, so calling it again with the
    same `now` changes nothing.

    Args:
        account: Account to update
        totals: ProtocolTotals shared by all accounts
        parameters: LedgerParameters supplying the base interest rate
        now: Current ledger time in seconds

    Returns:
        AccrualResult describing what was applied

    Raises:
        InvalidAmount: If `now` is earlier than the account's last accrual
    """
    elapsed = now - account.last_accrual_time
    if elapsed < 0:
        raise InvalidAmount(
            f"Ledger time {now} is before last accrual {account.last_accrual_time} for {account.owner}"
        )

    result = AccrualResult(elapsed=elapsed)

    if elapsed > 0 and account.borrowed > 0:
        interest = calc_interest(account.borrowed, parameters.base_interest_rate_bp, elapsed)
        account.borrowed += interest
        totals.total_borrowed += interest
        result.interest = interest

    if elapsed > 0:
        share = calc_reserve_share(
            account.deposited, totals.unallocated_interest_reserve, totals.total_deposited
        )
    else:
        share = 0
    if share > 0:
        account.interest_reserve_owed += share
        totals.unallocated_interest_reserve -= share
        result.reserve_share = share

    account.last_accrual_time = now

    if result.changed:
        logger.debug(
            "Accrued account",
            extra={"event": "ledger.accrue", "account": account.owner,
                   "interest": result.interest, "reserve_share": result.reserve_share},
        )
    return result


def preview_accrual(account, totals, parameters, now):
    """
    Compute what accrue() would produce without touching the live records.

    Returns:
        Tuple of (account copy, totals copy, AccrualResult)
    """
    account_copy = copy.copy(account)
    totals_copy = copy.copy(totals)
    if now < account_copy.last_accrual_time:
        return account_copy, totals_copy, AccrualResult()
    result = accrue(account_copy, totals_copy, parameters, now)
    return account_copy, totals_copy, result
