"""
Synthetic borrower portfolio for simulation.
"""

import math
from dataclasses import dataclass

from config.params import BPS, PORTFOLIO, SCORE_BANDS, PortfolioParams, terms_for_score
from models.distributions import RandomSource, normal, weighted

MIN_COLLATERAL = 1e18
# 1 whole collateral token
LTV_FLOOR_BPS = 3000
LTV_CAP_BPS = 9000
UTILIZATION_MIN = 0.5
UTILIZATION_MAX = 1.0

# Representative score per sampled band
SCORE_MIDPOINTS = (200, 550, 775, 925)

# 18-decimal collateral at price 1.0 -> 6-decimal USD
_COLLATERAL_TO_USD = 1e12


@dataclass(frozen=True)
class Borrower:
    """One borrower position, fixed for the lifetime of a simulation run."""
    borrower_id: int
    collateral_amount: float
    score: int
    ltv_bps: int
    interest_rate_bps: int
    utilization: float
    principal_amount: float


def effective_ltv_bps(base_ltv_bps: int, multiplier: float | None = None) -> int:
    """Apply the optional LTV multiplier and clamp to [3000, 9000] bps."""
    mult = 1.0 if multiplier is None else multiplier
    return max(LTV_FLOOR_BPS, min(LTV_CAP_BPS, math.floor(base_ltv_bps * mult)))


def generate_portfolio(rng: RandomSource, params: PortfolioParams = PORTFOLIO,
                       score_bands=SCORE_BANDS) -> list[Borrower]:
    """
    Draw `params.borrower_count` borrowers from the master random source.

    Draw order per borrower: collateral, score band, utilization.
    """
    params.validate()
    borrowers = []
    for i in range(params.borrower_count):
        collateral = max(MIN_COLLATERAL,
                         normal(rng, params.collateral_mean, params.collateral_std))
        band = weighted(rng, params.score_weights)
        score = SCORE_MIDPOINTS[band] if band < len(SCORE_MIDPOINTS) else 500
        base_ltv_bps, rate_bps = terms_for_score(score, score_bands)
        ltv_bps = effective_ltv_bps(base_ltv_bps, params.ltv_multiplier)

        max_borrow = collateral * ltv_bps / BPS / _COLLATERAL_TO_USD
        utilization = max(UTILIZATION_MIN, min(UTILIZATION_MAX,
                          normal(rng, params.utilization_mean, params.utilization_std)))

        borrowers.append(Borrower(
            borrower_id=i,
            collateral_amount=collateral,
            score=score,
            ltv_bps=ltv_bps,
            interest_rate_bps=rate_bps,
            utilization=utilization,
            principal_amount=max_borrow * utilization,
        ))
    return borrowers


def total_principal(borrowers: list[Borrower]) -> float:
    return sum(b.principal_amount for b in borrowers)
