"""Custom errors for the lending ledger"""


class LedgerError(ValueError):
    """Base error class for ledger errors"""
    pass


class InvalidAmount(LedgerError):
    """Error for zero, negative or out-of-range amounts"""
    pass


class InsufficientBalance(LedgerError):
    """Error for withdrawing more than an account holds"""
    pass


class InsufficientCollateral(LedgerError):
    """Error for borrowing beyond the collateral factor"""
    pass


class CollateralBreach(LedgerError):
    """Error for a withdrawal that would leave debt above the collateral factor"""
    pass


class NoOutstandingDebt(LedgerError):
    """Error for repaying an account that owes nothing"""
    pass


class NothingToClaim(LedgerError):
    """Error for claiming interest when none is owed"""
    pass


class PositionHealthy(LedgerError):
    """Error for liquidating an account above the liquidation threshold"""
    pass


class TransferFailed(LedgerError):
    """Error for a rejected asset transfer"""
    pass


class ReentrantCall(LedgerError):
    """Error for a ledger call made while another operation is in progress"""
    pass


class InvalidParameters(LedgerError):
    """Error for risk parameters that break the ledger invariants"""
    pass


class Unauthorized(LedgerError):
    """Error for admin operations called by anyone but the admin"""
    pass


class ProtocolPaused(LedgerError):
    """Error for operations blocked by the circuit breaker"""
    pass
