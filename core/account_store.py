"""
Account Store for the lending ledger.

This module keeps one Account per identity and the protocol-wide totals.
Accounts come into existence, all zero, the first time they are touched
and are never removed, even when every balance returns to zero.
"""

import copy
from dataclasses import dataclass, asdict
from typing import Dict, Optional


@dataclass
class Account:
    """
    Represents a participant's position in the ledger.

    Collateral is tracked in collateral units, debt and owed interest in debt
    units. None of the balances may ever go negative.
    """
    owner: str
    deposited: int = 0              # Collateral held for this account
    borrowed: int = 0               # Outstanding debt, accrued interest included
    interest_reserve_owed: int = 0  # Depositor yield credited but not yet claimed
    last_accrual_time: int = 0      # Ledger time of the last accrual

    def is_empty(self) -> bool:
        return self.deposited == 0 and self.borrowed == 0 and self.interest_reserve_owed == 0


@dataclass
class ProtocolTotals:
    """
    Aggregates across all accounts.

    total_deposited and total_borrowed track the sums of the account fields;
    unallocated_interest_reserve holds repayment shares not yet distributed
    to depositors.
    """
    total_deposited: int = 0
    total_borrowed: int = 0
    unallocated_interest_reserve: int = 0


class AccountStore:
    """
    Holds every Account record and the ProtocolTotals singleton.
    """

    def __init__(self):
        self.accounts: Dict[str, Account] = {}  # owner -> Account
        self.totals = ProtocolTotals()

        # owner -> pre-operation copy, or None for accounts created since begin()
        self._journal: Optional[Dict[str, Optional[Account]]] = None
        self._saved_totals: Optional[ProtocolTotals] = None

    def get(self, owner) -> Optional[Account]:
        """Returns the account for owner, or None if it has never been touched."""
        return self.accounts.get(owner)

    def get_or_create(self, owner, now=0) -> Account:
        """Returns the account for owner, creating an all-zero one on first touch."""
        account = self.accounts.get(owner)
        if self._journal is not None and owner not in self._journal:
            self._journal[owner] = copy.copy(account) if account is not None else None
        if account is None:
            account = Account(owner=owner, last_accrual_time=now)
            self.accounts[owner] = account
        return account

    def view(self, owner) -> Account:
        """Returns a detached copy of the account; untouched owners read as all zero."""
        account = self.accounts.get(owner)
        if account is None:
            return Account(owner=owner)
        return copy.copy(account)

    def __contains__(self, owner):
        return owner in self.accounts

    def __iter__(self):
        return iter(self.accounts.values())

    def __len__(self):
        return len(self.accounts)

    def sum_deposited(self) -> int:
        return sum(account.deposited for account in self.accounts.values())

    def sum_borrowed(self) -> int:
        return sum(account.borrowed for account in self.accounts.values())

    def sum_interest_owed(self) -> int:
        return sum(account.interest_reserve_owed for account in self.accounts.values())

    def is_consistent(self) -> bool:
        """Check that the totals match the sum of the account balances."""
        return (self.totals.total_deposited == self.sum_deposited()
                and self.totals.total_borrowed == self.sum_borrowed())

    # --- Journal ---

    def begin(self):
        """
        Starts recording changes for a later rollback.

        Only the accounts handed out by get_or_create() are copied, each the
        first time it is requested, so the cost follows what an operation
        touches rather than how many accounts exist.
        """
        self._journal = {}
        self._saved_totals = copy.copy(self.totals)

    def rollback(self):
        """Puts back every account touched since begin() and the totals."""
        for owner, saved in self._journal.items():
            if saved is None:
                self.accounts.pop(owner, None)
            else:
                self.accounts[owner] = saved
        self.totals = self._saved_totals

    def end(self):
        self._journal = None
        self._saved_totals = None

    # --- Serialization ---

    def to_dict(self):
        return {
            "accounts": {owner: asdict(account) for owner, account in self.accounts.items()},
            "totals": asdict(self.totals),
        }

    @classmethod
    def from_dict(cls, data):
        store = cls()
        store.accounts = {
            owner: Account(**fields) for owner, fields in data.get("accounts", {}).items()
        }
        store.totals = ProtocolTotals(**data.get("totals", {}))
        return store
