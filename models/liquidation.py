"""
Liquidation mechanics with a fixed-point health-factor gate.
"""

import math
from dataclasses import dataclass

from config.params import (
    BPS, COLLATERAL_UNIT, LIQUIDATION, PRECISION, PRICE_SCALE, LiquidationParams,
)

MIN_HEALTH_FACTOR = PRECISION
# 1.0 in the 1e18 fixed-point scale
INFINITE_HEALTH_FACTOR = math.inf


def round_half_up(value: float) -> int:
    """Nearest integer, .5 rounded up. Integers pass through untouched."""
    if isinstance(value, int):
        return value
    return math.floor(value + 0.5)


def scaled_price(price_multiplier: float) -> int:
    """Collateral price in 6-decimal USD per whole token, rounded half up."""
    return round_half_up(PRICE_SCALE * price_multiplier)


def health_factor(collateral_amount: float, principal_amount: float,
                  price_multiplier: float, threshold_bps: int) -> int | float:
    """
    Health factor scaled by 1e18, computed on Python integers.

    HF = (collateral * price / 1e18) * threshold_bps * 1e18 / (10000 * principal)

    Each division floors. Zero principal returns INFINITE_HEALTH_FACTOR.
    """
    coll = round_half_up(collateral_amount)
    princ = round_half_up(principal_amount)
    if princ == 0:
        return INFINITE_HEALTH_FACTOR
    collateral_value = coll * scaled_price(price_multiplier) // COLLATERAL_UNIT
    return collateral_value * threshold_bps * PRECISION // (BPS * princ)


def is_liquidatable(hf: int | float) -> bool:
    return hf < MIN_HEALTH_FACTOR


@dataclass(frozen=True)
class LiquidationResult:
    """Result of a single liquidation event."""
    repay_amount: float
    collateral_seized: float
    health_factor: int


class LiquidationEngine:
    """
    Single-step liquidation against one price level.

    Repay: principal * close_factor
    Seize: repay * (1 + bonus) / price, capped at the borrower's collateral
    """

    def __init__(self, params: LiquidationParams = LIQUIDATION):
        self.params = params

    def health_factor(self, collateral_amount: float, principal_amount: float,
                      price_multiplier: float) -> int | float:
        return health_factor(collateral_amount, principal_amount,
                             price_multiplier, self.params.threshold_bps)

    def liquidatable_amount(self, collateral_amount: float, principal_amount: float,
                            price_multiplier: float) -> LiquidationResult | None:
        """Return repay/seize amounts, or None when HF >= 1.0."""
        hf = self.health_factor(collateral_amount, principal_amount, price_multiplier)
        if not is_liquidatable(hf):
            return None

        repay = principal_amount * self.params.close_factor_bps / BPS
        price = PRICE_SCALE * price_multiplier
        if price <= 0:
            seized = collateral_amount
        else:
            to_seize = repay * COLLATERAL_UNIT * (BPS + self.params.bonus_bps) / (price * BPS)
            seized = min(to_seize, collateral_amount)
        return LiquidationResult(
            repay_amount=repay,
            collateral_seized=seized,
            health_factor=hf,
        )
