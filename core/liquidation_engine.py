"""
Liquidation Engine for the lending ledger.

Any account may liquidate another whose health factor has fallen below the
liquidation threshold. The target is accrued to the current ledger time
first, so interest alone can make a position liquidatable.

Two payout policies are supported (see LiquidationPolicy):
- FULL_SEIZURE: the liquidator repays all of the target's debt and takes all
  of its collateral, closing the position in one shot.
- PARTIAL_CAPPED: the liquidator repays a chosen amount up to the debt and
  receives collateral 1:1 for it, capped at the target's deposit. The
  residual position stays open, possibly still under-collateralized.

The debt asset is collected from the liquidator before the target's books
change; collateral is paid out last.
"""

import logging
from dataclasses import dataclass

from ledger_errors import InvalidAmount, PositionHealthy
from interest_engine import preview_accrual
from ledger_events import EventKind
from ledger_parameters import LiquidationPolicy
from position_manager import health_factor

logger = logging.getLogger(__name__)


@dataclass
class LiquidationResult:
    target: str
    liquidator: str
    repaid: int       # Debt units collected from the liquidator
    seized: int       # Collateral units paid to the liquidator
    policy: LiquidationPolicy
    health_factor: int  # Target health factor when the liquidation was checked


def is_liquidatable(account, parameters):
    """
    Check whether an account is below the liquidation threshold.

    The health factor is a percentage and the threshold is in basis points,
    so the health factor is scaled by 100 before comparing. Accounts without
    debt are never liquidatable.
    """
    if account.borrowed == 0:
        return False
    return health_factor(account) * 100 < parameters.liquidation_threshold_bp


class LiquidationEngine:
    """
    Settles unsafe positions through the position manager's accounts and assets.
    """

    def __init__(self, positions):
        self.positions = positions

    @property
    def parameters(self):
        return self.positions.parameters

    def liquidate(self, liquidator, target, repay_amount, now):
        """
        Liquidate the target's position.

        Args:
            liquidator: Account repaying debt and receiving collateral
            target: Account being liquidated
            repay_amount: Debt to repay; ignored under FULL_SEIZURE
            now: Current ledger time

        Returns:
            LiquidationResult with the amounts moved

        Raises:
            ProtocolPaused: If the ledger is paused
            InvalidAmount: If the liquidator targets itself or, under
                           PARTIAL_CAPPED, repay_amount is not in 1..debt
            PositionHealthy: If the target is at or above the threshold
            TransferFailed: If either asset transfer is rejected
        """
        positions = self.positions
        positions.require_not_paused("liquidate")

        if liquidator == target:
            raise InvalidAmount("An account cannot liquidate itself")

        policy = self.parameters.liquidation_policy
        if policy is LiquidationPolicy.PARTIAL_CAPPED:
            positions.require_amount(repay_amount)

        positions.touch(liquidator, now)
        account = positions.touch(target, now)

        health = health_factor(account)
        if not is_liquidatable(account, self.parameters):
            logger.warning(
                "Liquidation of healthy position rejected",
                extra={"event": "ledger.liquidate_reject", "target": target,
                       "health_factor": health},
            )
            raise PositionHealthy(
                f"{target} is not eligible for liquidation (health factor {health})"
            )

        if policy is LiquidationPolicy.FULL_SEIZURE:
            repaid = account.borrowed
            seized = account.deposited
        else:
            if repay_amount > account.borrowed:
                raise InvalidAmount(
                    f"Repay amount {repay_amount} exceeds {target}'s debt of {account.borrowed}"
                )
            repaid = repay_amount
            seized = min(repay_amount, account.deposited)

        positions.pull(positions.debt_token, liquidator, repaid)
        positions.retire_debt(repaid)

        account.borrowed -= repaid
        account.deposited -= seized
        totals = positions.store.totals
        totals.total_borrowed -= repaid
        totals.total_deposited -= seized

        if seized > 0:
            positions.push(positions.collateral_token, liquidator, seized)

        positions.events.emit(
            EventKind.LIQUIDATE, now, (liquidator, target),
            repaid=repaid, seized=seized,
        )
        logger.info(
            "Position liquidated",
            extra={"event": "ledger.liquidate", "target": target, "liquidator": liquidator,
                   "repaid": repaid, "seized": seized, "policy": policy.value},
        )
        return LiquidationResult(
            target=target,
            liquidator=liquidator,
            repaid=repaid,
            seized=seized,
            policy=policy,
            health_factor=health,
        )

    def liquidatable_accounts(self, now=None):
        """
        List the owners currently below the liquidation threshold.

        When `now` is given, each account is judged on a preview of its
        accrual to that time; nothing is mutated.
        """
        owners = []
        totals = self.positions.store.totals
        for account in self.positions.store:
            if now is not None:
                account, _, _ = preview_accrual(account, totals, self.parameters, now)
            if is_liquidatable(account, self.parameters):
                owners.append(account.owner)
        return owners
