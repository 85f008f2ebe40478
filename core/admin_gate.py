"""
Admin Gate for the lending ledger.

A single administrator identity may pause and unpause the ledger, change the
risk parameters and hand the role to someone else. Every call compares the
caller with the stored admin and fails with Unauthorized otherwise. None of
these operations touch accounts or protocol totals.
"""

import logging

from ledger_errors import InvalidParameters, Unauthorized
from ledger_events import EventKind
from ledger_parameters import BASIS_POINTS, LiquidationPolicy, is_int, validate_risk_ratios

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40


def is_null_identity(identity):
    """Check for a missing, blank or zero identity."""
    if identity is None:
        return True
    if isinstance(identity, str):
        stripped = identity.strip().lower()
        if stripped in ("", "0"):
            return True
        return stripped.startswith("0x") and set(stripped[2:]) <= {"0"}
    return identity == 0


class AdminGate:
    """
    Capability-gated parameter updates and circuit breaker.
    """

    def __init__(self, parameters, events, admin):
        if is_null_identity(admin):
            raise InvalidParameters("Admin identity must not be empty")
        self.parameters = parameters
        self.events = events
        self.admin = admin

    def require_admin(self, caller):
        if caller != self.admin:
            logger.warning(
                "Unauthorized admin call",
                extra={"event": "ledger.unauthorized", "caller": caller},
            )
            raise Unauthorized(f"{caller} is not the ledger admin")

    def pause(self, caller, now):
        self.require_admin(caller)
        self.parameters.paused = True
        self.events.emit(EventKind.PAUSED, now, (caller,))
        logger.info("Ledger paused", extra={"event": "ledger.pause", "caller": caller})

    def unpause(self, caller, now):
        self.require_admin(caller)
        self.parameters.paused = False
        self.events.emit(EventKind.UNPAUSED, now, (caller,))
        logger.info("Ledger unpaused", extra={"event": "ledger.unpause", "caller": caller})

    def update_parameters(self, caller, collateral_factor_bp, liquidation_threshold_bp, now):
        """
        Replace the collateral factor and liquidation threshold.

        Raises:
            Unauthorized: If the caller is not the admin
            InvalidParameters: Unless 0 <= threshold < factor <= 10000
        """
        self.require_admin(caller)
        validate_risk_ratios(collateral_factor_bp, liquidation_threshold_bp)

        self.parameters.collateral_factor_bp = collateral_factor_bp
        self.parameters.liquidation_threshold_bp = liquidation_threshold_bp

        self._parameters_updated(
            caller, now,
            collateral_factor_bp=collateral_factor_bp,
            liquidation_threshold_bp=liquidation_threshold_bp,
        )

    def update_interest_rate(self, caller, base_interest_rate_bp, now):
        """Set the annual base interest rate. Accounts pick it up on their next accrual."""
        self.require_admin(caller)
        if not is_int(base_interest_rate_bp) or base_interest_rate_bp < 0:
            raise InvalidParameters(f"Invalid base interest rate: {base_interest_rate_bp}")

        self.parameters.base_interest_rate_bp = base_interest_rate_bp
        self._parameters_updated(caller, now, base_interest_rate_bp=base_interest_rate_bp)

    def update_reserve_factor(self, caller, reserve_factor_bp, now):
        """Set the share of repayments routed to depositors; 0 turns depositor yield off."""
        self.require_admin(caller)
        if not is_int(reserve_factor_bp) or not 0 <= reserve_factor_bp <= BASIS_POINTS:
            raise InvalidParameters(f"Invalid reserve factor: {reserve_factor_bp}")

        self.parameters.reserve_factor_bp = reserve_factor_bp
        self._parameters_updated(caller, now, reserve_factor_bp=reserve_factor_bp)

    def set_liquidation_policy(self, caller, policy, now):
        self.require_admin(caller)
        if not isinstance(policy, LiquidationPolicy):
            try:
                policy = LiquidationPolicy(policy)
            except ValueError:
                raise InvalidParameters(f"Unknown liquidation policy: {policy!r}") from None

        self.parameters.liquidation_policy = policy
        self.events.emit(EventKind.PARAMETERS_UPDATED, now, (caller,))
        logger.info(
            "Liquidation policy changed",
            extra={"event": "ledger.parameters", "caller": caller, "policy": policy.value},
        )

    def transfer_admin(self, caller, new_admin, now):
        """
        Hand the admin role to another identity.

        Raises:
            InvalidParameters: If new_admin is empty or the zero identity
        """
        self.require_admin(caller)
        if is_null_identity(new_admin):
            raise InvalidParameters("New admin must not be the zero identity")

        self.admin = new_admin
        self.events.emit(EventKind.ADMIN_TRANSFERRED, now, (caller, new_admin))
        logger.info(
            "Admin transferred",
            extra={"event": "ledger.transfer_admin", "old_admin": caller, "new_admin": new_admin},
        )

    def _parameters_updated(self, caller, now, **values):
        self.events.emit(EventKind.PARAMETERS_UPDATED, now, (caller,), **values)
        logger.info(
            "Parameters updated",
            extra={"event": "ledger.parameters", "caller": caller, **values},
        )
