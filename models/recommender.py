"""
Liquidation-parameter recommendation: penalty-scored threshold grid search.

Stage A sweeps the liquidation threshold with every other parameter at its
protocol default. Stage B escalates to a harsher close factor / bonus when
the best penalty is still above PENALTY_ESCALATION. Independent sweeps over
utilization and LTV multiplier measure which input moves liquidation
frequency the most.
"""

import logging
from dataclasses import asdict, dataclass, field, replace

from config.params import (
    PORTFOLIO, PROTOCOL, SIM_CONFIG, TARGETS,
    LiquidationParams, PortfolioParams, ProtocolParams, RecommendTargets, SimulationConfig,
)
from models.simulation import SimulationResult, run_simulation

LOGGER = logging.getLogger(__name__)

THRESHOLD_CANDIDATES_BPS = (9000, 8800, 8600, 8400, 8200, 8000)
UTILIZATION_CANDIDATES = (0.45, 0.6, 0.75)
UTILIZATION_SWEEP_STD = 0.1
LTV_MULTIPLIER_CANDIDATES = (0.85, 1.0)

PENALTY_ESCALATION = 0.5
# Fixed Stage B fallbacks. Placeholder heuristic, tunable.
ESCALATION_CLOSE_FACTOR_BPS = 3500
ESCALATION_BONUS_BPS = 600

SATURATION_RANGE = 0.02
LEVERAGE_RATIO = 2.0
LOW_THRESHOLD_LEVERAGE = 0.05

KNOB_RATIONALE = (
    "Adjusting threshold affects liquidation buffer; lowering close factor reduces "
    "cascade risk; lowering bonus reduces liquidator extraction"
)
SUGGESTED_KNOBS = (
    "reduce utilizationMean (borrowers take less risk)",
    "reduce starting LTVs via ltvMultiplier < 1",
    "add collateral haircuts in valuation",
    "soften jump parameters (jumpProbability, jumpMean)",
)


@dataclass(frozen=True)
class SensitivityPoint:
    threshold_bps: int
    liq_freq: float
    expected_loss_pct: float
    p95_drawdown: float
    penalty: float


@dataclass
class Recommendation:
    """Proposed liquidation parameters plus the evidence behind them."""
    target: dict
    current: dict
    proposed: dict
    rationale: list[str]
    sensitivity: dict
    utilization_sensitivity: list[dict] = field(default_factory=list)
    ltv_sensitivity: list[dict] = field(default_factory=list)
    leverage_notes: list[str] = field(default_factory=list)
    most_sensitive_inputs: list[str] = field(default_factory=list)
    suggested_next_knobs: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def compute_penalty(result: SimulationResult, targets: RecommendTargets) -> float:
    """Penalty = 3*(liq freq excess) + 2*(EL excess)/100 + 1*(p95 drawdown excess)/100."""
    liq_excess = max(0.0, result.liquidation_frequency - targets.max_liquidation_frequency)
    el_excess = max(0.0, result.expected_loss_pct - targets.max_expected_loss_pct) / 100
    p95_excess = max(0.0, result.p95_drawdown - targets.max_p95_drawdown_pct) / 100
    return 3 * liq_excess + 2 * el_excess + 1 * p95_excess


def _param_dict(params: LiquidationParams) -> dict:
    return {
        "liquidation_threshold_bps": params.threshold_bps,
        "close_factor_bps": params.close_factor_bps,
        "bonus_bps": params.bonus_bps,
    }


def _spread(values) -> float:
    values = list(values)
    return max(values) - min(values) if values else 0.0


def rank_sensitive_inputs(utilization_range: float, ltv_range: float,
                          threshold_range: float) -> list[str]:
    """Input names ordered by liquidation-frequency range, largest first (stable)."""
    ranges = [
        ("utilizationMean", utilization_range),
        ("ltvMultiplier", ltv_range),
        ("liquidationThresholdBps", threshold_range),
    ]
    return [name for name, _ in sorted(ranges, key=lambda item: -item[1])]


def leverage_notes(threshold_range: float, utilization_range: float,
                   ltv_range: float) -> list[str]:
    notes = []
    if threshold_range <= SATURATION_RANGE:
        notes.append(
            f"Threshold sweep produced ≤2% change in liq freq (range "
            f"{threshold_range * 100:.1f}%); model likely saturating under this stress."
        )
    if utilization_range > threshold_range * LEVERAGE_RATIO:
        notes.append(
            f"Utilization has stronger leverage than threshold (util range "
            f"{utilization_range * 100:.1f}% vs threshold {threshold_range * 100:.1f}%)."
        )
    if ltv_range > threshold_range * LEVERAGE_RATIO:
        notes.append(
            f"LTV multiplier has stronger leverage than threshold (LTV range "
            f"{ltv_range * 100:.1f}% vs threshold {threshold_range * 100:.1f}%)."
        )
    if not notes:
        notes.append("Parameter changes show moderate leverage under this stress model.")
    return notes


def baseline_rationale(baseline: SimulationResult, targets: RecommendTargets) -> list[str]:
    lines = []
    if baseline.liquidation_frequency > targets.max_liquidation_frequency:
        lines.append(
            f"Liquidation frequency ({baseline.liquidation_frequency * 100:.2f}%) exceeds "
            f"target ({targets.max_liquidation_frequency * 100:g}%)"
        )
    if baseline.expected_loss_pct > targets.max_expected_loss_pct:
        lines.append(
            f"Expected loss ({baseline.expected_loss_pct:.2f}%) exceeds "
            f"target ({targets.max_expected_loss_pct:g}%)"
        )
    if baseline.p95_drawdown > targets.max_p95_drawdown_pct:
        lines.append(
            f"95th percentile drawdown ({baseline.p95_drawdown:.1f}%) exceeds "
            f"target ({targets.max_p95_drawdown_pct:g}%)"
        )
    lines.append(KNOB_RATIONALE)
    return lines


class ParameterRecommender:
    """
    Two-stage heuristic recommender over the Monte Carlo aggregator.

    `simulate` defaults to run_simulation and is called as
    simulate(runs, seed, portfolio_params, sim_config, protocol).
    """

    def __init__(self, runs: int, seed: int | str,
                 targets: RecommendTargets = TARGETS,
                 portfolio_params: PortfolioParams = PORTFOLIO,
                 sim_config: SimulationConfig = SIM_CONFIG,
                 protocol: ProtocolParams = PROTOCOL,
                 simulate=run_simulation,
                 threshold_candidates=THRESHOLD_CANDIDATES_BPS):
        self.runs = runs
        self.seed = seed
        self.targets = targets
        self.portfolio_params = portfolio_params
        self.sim_config = replace(sim_config, liquidation=None)
        self.protocol = protocol
        self.simulate = simulate
        self.threshold_candidates = tuple(threshold_candidates)

    def _run(self, portfolio_params: PortfolioParams,
             liquidation: LiquidationParams | None = None) -> SimulationResult:
        config = replace(self.sim_config, liquidation=liquidation)
        return self.simulate(self.runs, self.seed, portfolio_params, config, self.protocol)

    def threshold_sweep(self):
        """Stage A. Returns (points, best params, best penalty, baseline result)."""
        defaults = self.protocol.liquidation
        points = []
        best_penalty = float("inf")
        best = defaults
        baseline = None

        for threshold in self.threshold_candidates:
            candidate = replace(defaults, threshold_bps=threshold)
            result = self._run(self.portfolio_params, candidate)
            if threshold == defaults.threshold_bps:
                baseline = result
            penalty = compute_penalty(result, self.targets)
            points.append(SensitivityPoint(
                threshold_bps=threshold,
                liq_freq=result.liquidation_frequency,
                expected_loss_pct=result.expected_loss_pct,
                p95_drawdown=result.p95_drawdown,
                penalty=penalty,
            ))
            LOGGER.debug("Threshold %dbps: penalty=%.4f", threshold, penalty)
            if penalty < best_penalty:
                best_penalty = penalty
                best = candidate

        return points, best, best_penalty, baseline

    def escalate(self, best: LiquidationParams, best_penalty: float) -> LiquidationParams:
        """Stage B: harsher close factor / bonus, adopted only if strictly better."""
        if best_penalty <= PENALTY_ESCALATION:
            return best
        reduced = replace(best, close_factor_bps=ESCALATION_CLOSE_FACTOR_BPS,
                          bonus_bps=ESCALATION_BONUS_BPS)
        reduced_penalty = compute_penalty(self._run(self.portfolio_params, reduced),
                                          self.targets)
        LOGGER.info("Stage B escalation: penalty %.4f -> %.4f", best_penalty, reduced_penalty)
        if reduced_penalty < best_penalty:
            return reduced
        return best

    def utilization_sweep(self) -> list[dict]:
        out = []
        for u in UTILIZATION_CANDIDATES:
            params = replace(self.portfolio_params, utilization_mean=u,
                             utilization_std=UTILIZATION_SWEEP_STD)
            res = self._run(params)
            out.append({
                "utilization_mean": u,
                "liq_freq": round(res.liquidation_frequency, 2),
                "expected_loss_pct": round(res.expected_loss_pct, 2),
            })
        return out

    def ltv_sweep(self) -> list[dict]:
        out = []
        for mult in LTV_MULTIPLIER_CANDIDATES:
            params = replace(self.portfolio_params, ltv_multiplier=mult)
            res = self._run(params)
            out.append({
                "ltv_multiplier": mult,
                "liq_freq": round(res.liquidation_frequency, 2),
                "expected_loss_pct": round(res.expected_loss_pct, 2),
            })
        return out

    def recommend(self) -> tuple[SimulationResult, Recommendation]:
        LOGGER.info(
            "Running recommendation (%d runs x %d thresholds, seed=%s)",
            self.runs, len(self.threshold_candidates), self.seed,
        )
        points, best, best_penalty, baseline = self.threshold_sweep()
        proposed = self.escalate(best, best_penalty)
        if baseline is None:
            baseline = self._run(self.portfolio_params)

        summary = [
            {
                "threshold_bps": p.threshold_bps,
                "liq_freq": round(p.liq_freq, 2),
                "expected_loss_pct": round(p.expected_loss_pct, 2),
            }
            for i, p in enumerate(points)
            if i % 2 == 0 or p.threshold_bps == proposed.threshold_bps
        ][:6]

        utilization = self.utilization_sweep()
        ltv = self.ltv_sweep()

        threshold_range = _spread(p.liq_freq for p in points)
        utilization_range = _spread(p["liq_freq"] for p in utilization)
        ltv_range = _spread(p["liq_freq"] for p in ltv)

        knobs = list(SUGGESTED_KNOBS) if threshold_range < LOW_THRESHOLD_LEVERAGE else []

        recommendation = Recommendation(
            target=asdict(self.targets),
            current=_param_dict(self.protocol.liquidation),
            proposed=_param_dict(proposed),
            rationale=baseline_rationale(baseline, self.targets),
            sensitivity={
                "threshold_bps_candidates": list(self.threshold_candidates),
                "summary": summary,
                "full": [asdict(p) for p in points],
            },
            utilization_sensitivity=utilization,
            ltv_sensitivity=ltv,
            leverage_notes=leverage_notes(threshold_range, utilization_range, ltv_range),
            most_sensitive_inputs=rank_sensitive_inputs(
                utilization_range, ltv_range, threshold_range),
            suggested_next_knobs=knobs,
        )
        LOGGER.info(
            "Proposed: threshold=%dbps close=%dbps bonus=%dbps",
            proposed.threshold_bps, proposed.close_factor_bps, proposed.bonus_bps,
        )
        return baseline, recommendation


def run_recommendation(runs: int, seed: int | str,
                       targets: RecommendTargets = TARGETS,
                       portfolio_params: PortfolioParams = PORTFOLIO,
                       sim_config: SimulationConfig = SIM_CONFIG,
                       protocol: ProtocolParams = PROTOCOL) -> tuple[SimulationResult, Recommendation]:
    return ParameterRecommender(
        runs, seed, targets=targets, portfolio_params=portfolio_params,
        sim_config=sim_config, protocol=protocol,
    ).recommend()
