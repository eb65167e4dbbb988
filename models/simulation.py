"""
Monte Carlo aggregator: N independent paths over one generated portfolio.
"""

import logging
import math
from dataclasses import dataclass, fields

from config.params import (
    PORTFOLIO, PRECISION, PROTOCOL, SIM_CONFIG,
    ConfigError, PortfolioParams, ProtocolParams, SimulationConfig,
)
from models.distributions import RandomSource
from models.liquidation import LiquidationEngine
from models.path_runner import RunResult, run_path
from models.portfolio import generate_portfolio, total_principal

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationResult:
    """Aggregate statistics for one run of N paths."""
    runs: int
    seed: int | str
    borrower_count: int
    periods: int
    liquidation_frequency: float
    # Fraction of paths with >= 1 liquidation
    avg_liquidations_per_run: float
    # Mean count over liquidating paths only
    expected_loss_pct: float
    # Mean principal liquidated / total principal, in %
    p95_drawdown: float
    p99_drawdown: float
    min_hf_p50: float
    min_hf_p95: float
    min_hf_p99: float
    total_principal: float
    worst_price_p99: float
    run_results: tuple = ()

    def summary(self) -> dict:
        """Scalar fields only (no per-path detail)."""
        return {f.name: getattr(self, f.name) for f in fields(self)
                if f.name != "run_results"}


def percentile(sorted_values, q: float) -> float:
    """
    Rank percentile on an ascending sequence.

    index = floor(len * q / 100), clamped to len - 1. Empty input gives 0.0.
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = math.floor(n * q / 100)
    idx = max(0, min(idx, n - 1))
    return sorted_values[idx]


def _validate(runs: int, portfolio_params: PortfolioParams, sim_config: SimulationConfig):
    if runs <= 0:
        raise ConfigError(f"runs must be positive, got {runs}")
    portfolio_params.validate()
    sim_config.validate()


def run_simulation(runs: int, seed: int | str,
                   portfolio_params: PortfolioParams = PORTFOLIO,
                   sim_config: SimulationConfig = SIM_CONFIG,
                   protocol: ProtocolParams = PROTOCOL) -> SimulationResult:
    """
    Run `runs` paths against one portfolio drawn from the master seed.

    Path i uses RandomSource(seed, path_index=i); results are reduced in
    path-index order.
    """
    _validate(runs, portfolio_params, sim_config)

    master = RandomSource(seed)
    borrowers = generate_portfolio(master, portfolio_params, protocol.score_bands)
    principal_total = total_principal(borrowers)
    liquidation = sim_config.liquidation or protocol.liquidation
    engine = LiquidationEngine(liquidation)

    LOGGER.debug(
        "Simulating %d paths: seed=%s borrowers=%d periods=%d threshold=%dbps",
        runs, seed, len(borrowers), sim_config.periods, liquidation.threshold_bps,
    )

    run_results: list[RunResult] = []
    for i in range(runs):
        run_results.append(run_path(RandomSource(seed, path_index=i), borrowers,
                                    sim_config, engine))

    min_hfs = sorted(r.min_health_factor for r in run_results)
    worst_prices = sorted(r.worst_price_multiplier for r in run_results)

    liquidating = [r for r in run_results if r.liquidations > 0]
    avg_liq = (sum(r.liquidations for r in liquidating) / len(liquidating)
               if liquidating else 0.0)

    if principal_total > 0:
        loss_ratios = [r.principal_liquidated / principal_total for r in run_results]
        avg_loss = sum(loss_ratios) / len(loss_ratios)
    else:
        avg_loss = 0.0

    result = SimulationResult(
        runs=runs,
        seed=seed,
        borrower_count=len(borrowers),
        periods=sim_config.periods,
        liquidation_frequency=len(liquidating) / runs,
        avg_liquidations_per_run=avg_liq,
        expected_loss_pct=avg_loss * 100,
        p95_drawdown=(1 - percentile(worst_prices, 5)) * 100,
        p99_drawdown=(1 - percentile(worst_prices, 1)) * 100,
        min_hf_p50=percentile(min_hfs, 50) / PRECISION,
        min_hf_p95=percentile(min_hfs, 5) / PRECISION,
        min_hf_p99=percentile(min_hfs, 1) / PRECISION,
        total_principal=principal_total,
        worst_price_p99=percentile(worst_prices, 1),
        run_results=tuple(run_results),
    )
    LOGGER.info(
        "Simulation done: liq_freq=%.4f EL=%.4f%% p95_dd=%.2f%%",
        result.liquidation_frequency, result.expected_loss_pct, result.p95_drawdown,
    )
    return result
