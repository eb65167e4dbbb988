"""
Protocol, market and portfolio parameters for the lending risk simulator.

Protocol values mirror the on-chain v0 constants (liquidation model and
score-to-terms curve). Everything here is static configuration: defaults
are module-level frozen instances, and `load_params` can overlay a JSON
file named by RISK_SIM_PARAMS_FILE.
"""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

LOGGER = logging.getLogger(__name__)

BPS = 10_000
PRECISION = 10**18
PRICE_SCALE = 1_000_000
# 1.0 USDC = 1_000_000
COLLATERAL_UNIT = 10**18
USD_DECIMALS = 6
COLLATERAL_DECIMALS = 18

PARAMS_FILE_ENV = "RISK_SIM_PARAMS_FILE"


class ConfigError(ValueError):
    """Invalid simulation configuration, rejected before any run starts."""


def _check_bps(name: str, value: int) -> None:
    # Integer only: the health-factor gate is exact fixed point
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer bps value, got {value!r}")
    if not 0 <= value <= BPS:
        raise ConfigError(f"{name} must be within [0, {BPS}] bps, got {value}")


@dataclass(frozen=True)
class LiquidationParams:
    """Liquidation parameters (v0)."""
    threshold_bps: int = 8800
    # Health-factor break point
    close_factor_bps: int = 5000
    # Max fraction of principal repayable in one liquidation
    bonus_bps: int = 800
    # Liquidator incentive on seized collateral

    def __post_init__(self):
        _check_bps("threshold_bps", self.threshold_bps)
        _check_bps("close_factor_bps", self.close_factor_bps)
        _check_bps("bonus_bps", self.bonus_bps)


@dataclass(frozen=True)
class ScoreBand:
    """One row of the score -> terms curve."""
    min_score: int
    ltv_bps: int
    interest_rate_bps: int


DEFAULT_SCORE_BANDS = (
    ScoreBand(min_score=851, ltv_bps=8500, interest_rate_bps=500),
    ScoreBand(min_score=700, ltv_bps=7500, interest_rate_bps=700),
    ScoreBand(min_score=400, ltv_bps=6500, interest_rate_bps=1000),
    ScoreBand(min_score=0, ltv_bps=5000, interest_rate_bps=1500),
)


def validate_score_bands(bands) -> None:
    """Reject an empty table or one without a min_score == 0 fallback."""
    if not bands:
        raise ConfigError("score band table is empty")
    if not any(b.min_score == 0 for b in bands):
        raise ConfigError("score band table needs a fallback band with min_score=0")
    for b in bands:
        _check_bps("ltv_bps", b.ltv_bps)
        _check_bps("interest_rate_bps", b.interest_rate_bps)


@dataclass(frozen=True)
class ProtocolParams:
    """Snapshot of protocol parameters consumed by the simulator."""
    liquidation: LiquidationParams = field(default_factory=LiquidationParams)
    score_bands: tuple = DEFAULT_SCORE_BANDS

    def __post_init__(self):
        validate_score_bands(self.score_bands)


@dataclass(frozen=True)
class MarketShockParams:
    """GBM + jump-diffusion stress parameters."""
    drift: float = -0.02
    # Annual drift (-2% = bearish stress)
    volatility: float = 0.40
    # Annualized volatility
    jump_probability: float = 0.05
    # Probability of a jump per period
    jump_mean: float = -0.25
    # Mean log-return on jump
    jump_vol: float = 0.15
    periods_per_year: int = 365
    # 365 = daily periods

    def __post_init__(self):
        if self.periods_per_year <= 0:
            raise ConfigError("periods_per_year must be positive")
        if self.volatility < 0 or self.jump_vol < 0:
            raise ConfigError("volatility and jump_vol must be non-negative")
        if not 0.0 <= self.jump_probability <= 1.0:
            raise ConfigError("jump_probability must be within [0, 1]")


@dataclass(frozen=True)
class PortfolioParams:
    """Distributional parameters for the synthetic borrower population."""
    borrower_count: int = 100
    collateral_mean: float = 50 * 1e18
    collateral_std: float = 30 * 1e18
    # Collateral in 18-decimal base units
    score_weights: tuple = (0.15, 0.25, 0.35, 0.25)
    # Bands: 0-399, 400-699, 700-850, 851-1000
    utilization_mean: float = 0.75
    utilization_std: float = 0.15
    ltv_multiplier: float | None = None
    # e.g. 0.85 = 15% haircut on every LTV band

    def validate(self) -> None:
        if self.borrower_count <= 0:
            raise ConfigError(f"borrower_count must be positive, got {self.borrower_count}")
        if self.collateral_std < 0 or self.utilization_std < 0:
            raise ConfigError("standard deviations must be non-negative")
        weights = list(self.score_weights)
        if not weights:
            raise ConfigError("score_weights must not be empty")
        if any(w < 0 for w in weights):
            raise ConfigError("score_weights must be non-negative")
        if sum(weights) <= 0:
            raise ConfigError("score_weights sum to zero")


@dataclass(frozen=True)
class SimulationConfig:
    """Per-run simulation configuration."""
    market: MarketShockParams = field(default_factory=MarketShockParams)
    periods: int = 90
    # Path length, in periods (90 days)
    liquidation: LiquidationParams | None = None
    # Per-candidate override; None uses the protocol defaults

    def validate(self) -> None:
        if self.periods <= 0:
            raise ConfigError(f"periods must be positive, got {self.periods}")


@dataclass(frozen=True)
class RecommendTargets:
    """Risk limits the recommender scores candidates against."""
    max_expected_loss_pct: float = 10.0
    max_liquidation_frequency: float = 0.2
    max_p95_drawdown_pct: float = 50.0


def terms_for_score(score: float, bands=DEFAULT_SCORE_BANDS) -> tuple[int, int]:
    """
    Look up (ltv_bps, interest_rate_bps) for a credit score.

    Bands are scanned in order and the first with score >= min_score wins.
    """
    for band in bands:
        if score >= band.min_score:
            return band.ltv_bps, band.interest_rate_bps
    raise ConfigError(f"no score band matches score {score}")


def _build(cls, raw: dict, base):
    """Overlay a raw JSON mapping onto a frozen dataclass instance."""
    if not isinstance(raw, dict):
        raise ConfigError(f"{cls.__name__} section must be an object")
    known = set(base.__dataclass_fields__)
    unknown = set(raw) - known
    if unknown:
        raise ConfigError(f"unknown {cls.__name__} keys: {sorted(unknown)}")
    try:
        return replace(base, **raw)
    except TypeError as exc:
        raise ConfigError(str(exc)) from exc


def load_params(path: str | Path | None = None) -> dict:
    """
    Load simulator parameters, overlaying an optional JSON file on defaults.

    The file path comes from `path` or the RISK_SIM_PARAMS_FILE environment
    variable. Recognized top-level sections: "liquidation", "score_bands",
    "market", "portfolio", "simulation", "targets". Missing sections keep
    their defaults.

    Returns dict with the parameter instances plus a "source" label.
    """
    path = path or os.environ.get(PARAMS_FILE_ENV)
    raw: dict = {}
    source = "defaults"
    if path:
        path = Path(path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ConfigError(f"params file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(f"params file is not valid JSON: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError("params file must contain a JSON object")
        source = str(path)
        LOGGER.info("Loaded parameter overrides from %s", path)

    liquidation = _build(LiquidationParams, raw.get("liquidation", {}), LIQUIDATION)
    if "score_bands" in raw:
        try:
            bands = tuple(ScoreBand(**b) for b in raw["score_bands"])
        except TypeError as exc:
            raise ConfigError(f"invalid score band: {exc}") from exc
    else:
        bands = SCORE_BANDS
    protocol = ProtocolParams(liquidation=liquidation, score_bands=bands)

    market = _build(MarketShockParams, raw.get("market", {}), MARKET)
    portfolio_raw = dict(raw.get("portfolio", {}))
    if "score_weights" in portfolio_raw:
        portfolio_raw["score_weights"] = tuple(portfolio_raw["score_weights"])
    portfolio = _build(PortfolioParams, portfolio_raw, PORTFOLIO)
    portfolio.validate()

    sim_raw = dict(raw.get("simulation", {}))
    if set(sim_raw) - {"periods"}:
        raise ConfigError("simulation section only accepts 'periods'")
    sim_config = replace(SIM_CONFIG, market=market,
                         periods=int(sim_raw.get("periods", SIM_CONFIG.periods)))
    sim_config.validate()
    targets = _build(RecommendTargets, raw.get("targets", {}), TARGETS)

    return {
        "protocol": protocol,
        "market": market,
        "portfolio": portfolio,
        "sim_config": sim_config,
        "targets": targets,
        "source": source,
    }


# Convenient default instances (used throughout codebase)
LIQUIDATION = LiquidationParams()
SCORE_BANDS = DEFAULT_SCORE_BANDS
PROTOCOL = ProtocolParams(liquidation=LIQUIDATION, score_bands=SCORE_BANDS)
MARKET = MarketShockParams()
PORTFOLIO = PortfolioParams()
SIM_CONFIG = SimulationConfig(market=MARKET)
TARGETS = RecommendTargets()
