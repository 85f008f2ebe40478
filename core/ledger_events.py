"""
Notification stream for the lending ledger.

Every state transition appends a LedgerEvent. The log is append-only and
ordered with the operations that produced it; events belonging to an
operation that is rolled back are truncated away with it.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of ledger events observed off-ledger."""
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    BORROW = "borrow"
    REPAY = "repay"
    CLAIM_INTEREST = "claim_interest"
    INTEREST_ACCRUED = "interest_accrued"
    LIQUIDATE = "liquidate"
    PAUSED = "paused"
    UNPAUSED = "unpaused"
    PARAMETERS_UPDATED = "parameters_updated"
    ADMIN_TRANSFERRED = "admin_transferred"


@dataclass(frozen=True)
class LedgerEvent:
    sequence: int                  # Position in the log, starting at 0
    kind: EventKind
    timestamp: int                 # Ledger time of the operation
    accounts: Tuple[str, ...] = ()
    amounts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return {
            "sequence": self.sequence,
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "accounts": list(self.accounts),
            "amounts": dict(self.amounts),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            sequence=data["sequence"],
            kind=EventKind(data["kind"]),
            timestamp=data["timestamp"],
            accounts=tuple(data.get("accounts", ())),
            amounts=dict(data.get("amounts", {})),
        )


class EventLog:
    """
    Ordered, append-only record of ledger events.

    Subscribers are called with each event as it is emitted. Because an
    operation can still be rolled back after emitting, subscribers that
    need only committed events should read the log after the call returns.
    """

    def __init__(self):
        self.events: List[LedgerEvent] = []
        self.subscribers: List[Callable[[LedgerEvent], None]] = []

    def emit(self, kind, timestamp, accounts=(), **amounts):
        event = LedgerEvent(
            sequence=len(self.events),
            kind=kind,
            timestamp=timestamp,
            accounts=tuple(accounts),
            amounts=amounts,
        )
        self.events.append(event)
        for subscriber in self.subscribers:
            subscriber(event)
        return event

    def subscribe(self, callback):
        self.subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self.subscribers:
            self.subscribers.remove(callback)

    def of_kind(self, kind):
        return [event for event in self.events if event.kind == kind]

    def for_account(self, account):
        return [event for event in self.events if account in event.accounts]

    def last(self):
        return self.events[-1] if self.events else None

    def __len__(self):
        return len(self.events)

    def __iter__(self):
        return iter(self.events)

    def truncate(self, length):
        """Drops events appended after the log had the given length."""
        if length < len(self.events):
            logger.debug("Discarding %d events from a reverted operation", len(self.events) - length)
            del self.events[length:]

    def to_list(self):
        return [event.to_dict() for event in self.events]

    @classmethod
    def from_list(cls, data):
        log = cls()
        log.events = [LedgerEvent.from_dict(item) for item in data]
        return log
