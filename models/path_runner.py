"""
Single Monte Carlo path: worst price of one market path applied to the portfolio.
"""

from dataclasses import dataclass

from config.params import LIQUIDATION, SimulationConfig
from models.distributions import RandomSource
from models.liquidation import INFINITE_HEALTH_FACTOR, LiquidationEngine
from models.market_shock import MarketShockModel, worst_price
from models.portfolio import Borrower


@dataclass(frozen=True)
class RunResult:
    """Outcome of one simulated path."""
    liquidations: int
    principal_liquidated: float
    # USD, 6 decimals
    collateral_seized: float
    # Collateral, 18 decimals
    min_health_factor: int | float
    # Scaled 1e18; inf when no borrower has principal
    worst_price_multiplier: float


def run_path(rng: RandomSource, borrowers: list[Borrower], config: SimulationConfig,
             engine: LiquidationEngine | None = None) -> RunResult:
    """Simulate one price path and liquidate every borrower at its worst point."""
    if engine is None:
        engine = LiquidationEngine(config.liquidation or LIQUIDATION)
    path = MarketShockModel(config.market).simulate(rng, config.periods)
    worst = worst_price(path)

    liquidations = 0
    principal_liquidated = 0.0
    collateral_seized = 0.0
    min_hf = INFINITE_HEALTH_FACTOR

    for b in borrowers:
        hf = engine.health_factor(b.collateral_amount, b.principal_amount, worst)
        if hf < min_hf:
            min_hf = hf

        liq = engine.liquidatable_amount(b.collateral_amount, b.principal_amount, worst)
        if liq is not None:
            liquidations += 1
            principal_liquidated += liq.repay_amount
            collateral_seized += liq.collateral_seized

    return RunResult(
        liquidations=liquidations,
        principal_liquidated=principal_liquidated,
        collateral_seized=collateral_seized,
        min_health_factor=min_hf,
        worst_price_multiplier=worst,
    )
