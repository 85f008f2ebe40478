"""
Asset Token Model for the lending ledger.

This module simulates the fungible asset contracts the ledger talks to: one
for collateral and one for the borrowed asset. It handles balances,
transfers, minting and burning.

Transfers report failure by returning False rather than raising, the way a
token contract's boolean return value does. Recipients may register a
receive hook, which is called after their balance is credited; this models
tokens that call back into the receiver and lets the ledger's reentrancy
guard be exercised.
"""

import logging

logger = logging.getLogger(__name__)


class AssetToken:
    """
    Simulates a fungible asset contract.
    """

    def __init__(self, symbol, initial_supply=0, owner=None):
        self.symbol = symbol

        # Total token supply
        self.total_supply = 0

        # Mapping of addresses to token balances
        self.balances = {}

        # Mapping of accounts that are allowed to mint tokens
        self.minters = set()

        # Owner of the contract
        self.owner = owner

        # Accounts whose transfers are rejected
        self.frozen = set()

        # Mapping of addresses to callables run after they receive tokens
        self.receive_hooks = {}

        # Open rollback journals, see begin()
        self._journals = []

        if initial_supply:
            if owner is None:
                raise ValueError("Owner required for an initial supply")
            self.balances[owner] = initial_supply
            self.total_supply = initial_supply

    def set_owner(self, owner):
        """Sets the owner of the contract."""
        self.owner = owner

    def add_minter(self, minter):
        """
        Adds an address to the list of allowed minters.
        Only callable once an owner is set.
        """
        if not self.owner:
            raise ValueError("Owner not set")

        self.minters.add(minter)

    def remove_minter(self, minter):
        """Removes an address from the list of allowed minters."""
        if not self.owner:
            raise ValueError("Owner not set")

        self.minters.discard(minter)

    def is_minter(self, account):
        return account in self.minters

    def freeze(self, account):
        """Makes every transfer to or from the account fail."""
        self.frozen.add(account)

    def unfreeze(self, account):
        self.frozen.discard(account)

    def on_receive(self, account, hook):
        """
        Registers a hook called as hook(token, sender, amount) after the
        account is credited. Passing None removes the hook.
        """
        if hook is None:
            self.receive_hooks.pop(account, None)
        else:
            self.receive_hooks[account] = hook

    def balance_of(self, account):
        """Returns the token balance of the given account."""
        return self.balances.get(account, 0)

    def transfer(self, sender, recipient, amount):
        """
        Transfers tokens from sender to recipient.

        Args:
            sender: Address sending the tokens
            recipient: Address receiving the tokens
            amount: Amount of tokens to transfer

        Returns:
            True if successful, False if the sender's balance is too low or
            either side is frozen
        """
        _require_positive(amount)

        sender_balance = self.balances.get(sender, 0)

        if sender_balance < amount or sender in self.frozen or recipient in self.frozen:
            logger.debug(
                "Transfer rejected",
                extra={"event": "token.transfer_rejected", "symbol": self.symbol,
                       "sender": sender, "recipient": recipient, "amount": amount},
            )
            return False

        # Update balances
        self._record(sender, recipient)
        self.balances[sender] = sender_balance - amount
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

        self._notify(recipient, sender, amount)
        return True

    def transfer_from(self, owner, recipient, amount):
        """
        Pulls tokens from owner to recipient on the recipient's behalf.
        Used by the ledger to collect deposits and repayments.
        """
        return self.transfer(owner, recipient, amount)

    def mint(self, recipient, amount, minter=None):
        """
        Mints new tokens to the recipient account.
        When a minter is given it must be authorized.

        Returns:
            True if successful
        """
        _require_positive(amount)

        if minter is not None and minter not in self.minters:
            raise ValueError(f"{minter} is not allowed to mint {self.symbol}")

        # Update recipient balance
        self._record(recipient)
        self.balances[recipient] = self.balances.get(recipient, 0) + amount

        # Update total supply
        self.total_supply += amount

        self._notify(recipient, minter, amount)
        return True

    def burn_from(self, from_account, amount):
        """
        Burns tokens from the given account.

        Returns:
            True if successful, False if the balance is too low or the
            account is frozen
        """
        _require_positive(amount)

        from_balance = self.balances.get(from_account, 0)

        if from_balance < amount or from_account in self.frozen:
            return False

        # Update balance
        self._record(from_account)
        self.balances[from_account] = from_balance - amount

        # Update total supply
        self.total_supply -= amount

        return True

    def begin(self):
        """
        Starts recording balances as they change so a reverted operation can
        put them back. Only the holders a transfer, mint or burn touches are
        recorded.

        Returns:
            Journal to pass to rollback() and end()
        """
        journal = {"balances": {}, "total_supply": self.total_supply}
        self._journals.append(journal)
        return journal

    def rollback(self, journal):
        for account, balance in journal["balances"].items():
            if balance is None:
                self.balances.pop(account, None)
            else:
                self.balances[account] = balance
        self.total_supply = journal["total_supply"]

    def end(self, journal):
        self._journals = [open_journal for open_journal in self._journals
                          if open_journal is not journal]

    def _record(self, *accounts):
        for journal in self._journals:
            saved = journal["balances"]
            for account in accounts:
                if account not in saved:
                    saved[account] = self.balances.get(account)

    def _notify(self, recipient, sender, amount):
        hook = self.receive_hooks.get(recipient)
        if hook is not None:
            hook(self, sender, amount)


def _require_positive(amount):
    if not isinstance(amount, int) or amount <= 0:
        raise ValueError("Amount must be a positive integer")
