"""
Ledger Parameters for the lending ledger.

This module holds the risk constants that every position check reads:
the collateral factor (loan-to-value cap), the liquidation threshold, the
annual base interest rate, the share of repayments routed to depositors,
the liquidation payout policy and the circuit breaker flag.

All ratios are integer basis points (1/10000) so no floating point enters
the accounting.

The health factor is a percentage of collateral over debt, while the
threshold is read against it in basis points. Because the threshold sits
below the collateral factor, an account only becomes liquidatable once its
debt exceeds its collateral: with the default 5000 bp threshold, debt has
to reach twice the deposit. Callers that want liquidations to start closer
to the borrowing limit set both ratios high, e.g. 9000 and 8500.
"""

from dataclasses import dataclass, asdict
from enum import Enum

from ledger_errors import InvalidParameters

# Constants
BASIS_POINTS = 10_000
SECONDS_PER_YEAR = 365 * 24 * 60 * 60
MAX_UINT = 2**256 - 1

# Default risk parameters
DEFAULT_COLLATERAL_FACTOR_BP = 7_500   # 75% - maximum loan-to-value
DEFAULT_LIQUIDATION_THRESHOLD_BP = 5_000  # 50% - liquidatable once debt passes 2x collateral
DEFAULT_BASE_INTEREST_RATE_BP = 500    # 5% - annualized simple interest
DEFAULT_RESERVE_FACTOR_BP = 1_000      # 10% - share of repayments paid to depositors


class LiquidationPolicy(Enum):
    """
    How a liquidation settles an unsafe position.

    FULL_SEIZURE closes the position in one shot: the liquidator repays all
    of the debt and takes all of the collateral. PARTIAL_CAPPED lets the
    liquidator repay part of the debt and receive collateral 1:1 for it,
    capped at what the target has deposited.
    """
    FULL_SEIZURE = "full_seizure"
    PARTIAL_CAPPED = "partial_capped"


@dataclass
class LedgerParameters:
    """
    Risk parameters of the ledger.

    The liquidation threshold must stay strictly below the collateral factor;
    an update that breaks this is rejected and leaves the parameters as they were.
    """
    collateral_factor_bp: int = DEFAULT_COLLATERAL_FACTOR_BP
    liquidation_threshold_bp: int = DEFAULT_LIQUIDATION_THRESHOLD_BP
    base_interest_rate_bp: int = DEFAULT_BASE_INTEREST_RATE_BP
    reserve_factor_bp: int = DEFAULT_RESERVE_FACTOR_BP
    liquidation_policy: LiquidationPolicy = LiquidationPolicy.FULL_SEIZURE
    paused: bool = False

    def __post_init__(self):
        self.validate()

    def validate(self):
        """
        Check the parameter invariants.

        Raises:
            InvalidParameters: If any ratio is outside 0-10000 basis points,
                               the rate is negative, or the liquidation threshold
                               is not below the collateral factor
        """
        validate_risk_ratios(self.collateral_factor_bp, self.liquidation_threshold_bp)
        if not is_int(self.base_interest_rate_bp) or self.base_interest_rate_bp < 0:
            raise InvalidParameters(f"Invalid base interest rate: {self.base_interest_rate_bp}")
        if not is_int(self.reserve_factor_bp) or not 0 <= self.reserve_factor_bp <= BASIS_POINTS:
            raise InvalidParameters(f"Invalid reserve factor: {self.reserve_factor_bp}")
        if not isinstance(self.liquidation_policy, LiquidationPolicy):
            raise InvalidParameters(f"Invalid liquidation policy: {self.liquidation_policy}")

    def max_debt_for(self, deposited):
        """Largest debt the given collateral can carry under the collateral factor."""
        return deposited * self.collateral_factor_bp // BASIS_POINTS

    def to_dict(self):
        data = asdict(self)
        data["liquidation_policy"] = self.liquidation_policy.value
        return data

    @classmethod
    def from_dict(cls, data):
        data = dict(data)
        if "liquidation_policy" in data:
            data["liquidation_policy"] = LiquidationPolicy(data["liquidation_policy"])
        return cls(**data)


def validate_risk_ratios(collateral_factor_bp, liquidation_threshold_bp):
    """Raise InvalidParameters unless 0 <= threshold < factor <= 10000."""
    for name, value in (("collateral factor", collateral_factor_bp),
                        ("liquidation threshold", liquidation_threshold_bp)):
        if not is_int(value) or not 0 <= value <= BASIS_POINTS:
            raise InvalidParameters(f"Invalid {name}: {value}")
    if liquidation_threshold_bp >= collateral_factor_bp:
        raise InvalidParameters(
            f"Liquidation threshold {liquidation_threshold_bp} must be below "
            f"collateral factor {collateral_factor_bp}"
        )


def is_int(value):
    return isinstance(value, int) and not isinstance(value, bool)
