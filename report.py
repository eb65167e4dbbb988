"""
Report generation: structured JSON document + Markdown narrative.

Both renderings come from the same SimulationReport, and every field of the
JSON document appears in the Markdown. Keys of `meta` and `results` are
labelled by META_LABELS / RESULT_LABELS.
"""

import json
import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path

from config.params import MARKET, PORTFOLIO, PROTOCOL

LOGGER = logging.getLogger(__name__)

META_LABELS = {
    "timestamp": "Generated",
    "runs": "Monte Carlo runs",
    "seed": "Seed",
    "borrower_count": "Borrowers",
    "periods": "Periods (days)",
}

RESULT_LABELS = {
    "liquidation_frequency": "Liquidation frequency (of runs)",
    "avg_liquidations_per_run": "Avg liquidations per run (when any)",
    "expected_loss_pct": "Expected loss (% of principal)",
    "p95_drawdown": "95th percentile drawdown (%)",
    "p99_drawdown": "99th percentile drawdown (%)",
    "min_hf_p50": "Min HF (median)",
    "min_hf_p95": "Min HF (5th pctl)",
    "min_hf_p99": "Min HF (1st pctl)",
    "total_principal": "Total portfolio principal (USDC)",
    "worst_price_p99": "Worst price (1st pctl, % of initial)",
}


@dataclass
class SimulationReport:
    """Complete simulation report."""
    meta: dict
    protocol_snapshot: dict
    market_params: dict
    portfolio_params: dict
    results: dict
    recommendations: dict | None = None

    def to_dict(self) -> dict:
        out = asdict(self)
        if out["recommendations"] is None:
            del out["recommendations"]
        return out

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def to_markdown(self) -> str:
        return render_markdown(self)


def build_report(result, protocol=PROTOCOL, market=MARKET, portfolio=PORTFOLIO,
                 recommendation=None, timestamp: str | None = None) -> SimulationReport:
    """Assemble the report document from a SimulationResult and the parameters used."""
    liq = protocol.liquidation
    return SimulationReport(
        meta={
            "timestamp": timestamp or datetime.now(timezone.utc).isoformat(),
            "runs": result.runs,
            "seed": result.seed,
            "borrower_count": result.borrower_count,
            "periods": result.periods,
        },
        protocol_snapshot={
            "liquidation_threshold_bps": liq.threshold_bps,
            "close_factor_bps": liq.close_factor_bps,
            "bonus_bps": liq.bonus_bps,
            "score_bands": [asdict(b) for b in protocol.score_bands],
        },
        market_params=asdict(market),
        portfolio_params=asdict(portfolio),
        results=result.summary(),
        recommendations=recommendation.to_dict() if recommendation is not None else None,
    )


def _fmt(value, digits: int = 4) -> str:
    if isinstance(value, float):
        if math.isinf(value):
            return "inf"
        return f"{value:.{digits}f}"
    return str(value)


def _pct(value: float) -> str:
    return f"{value / 100:g}%"


def _table(header: tuple, rows) -> list[str]:
    lines = ["| " + " | ".join(header) + " |",
             "|" + "|".join("---" for _ in header) + "|"]
    lines += ["| " + " | ".join(str(c) for c in row) + " |" for row in rows]
    return lines


def _result_value(key: str, value) -> str:
    if key == "liquidation_frequency":
        return f"{value * 100:.2f}%"
    if key == "total_principal":
        return f"{value / 1e6:,.2f}"
    if key == "worst_price_p99":
        return f"{value * 100:.1f}%"
    if key in ("p95_drawdown", "p99_drawdown", "expected_loss_pct"):
        return _fmt(value, 2)
    return _fmt(value, 3)


def render_markdown(report: SimulationReport) -> str:
    meta = report.meta
    res = report.results
    snap = report.protocol_snapshot
    market = report.market_params
    lines = ["# Lending Risk Simulation Report", ""]

    lines += ["## Configuration", ""]
    lines += _table(("Parameter", "Value"),
                    [(label, meta[key]) for key, label in META_LABELS.items()])

    lines += ["", "## Protocol Snapshot", ""]
    lines += _table(("Parameter", "Value"), [
        ("Liquidation threshold", _pct(snap["liquidation_threshold_bps"])),
        ("Close factor", _pct(snap["close_factor_bps"])),
        ("Liquidation bonus", _pct(snap["bonus_bps"])),
    ])
    lines += ["", "### Score Bands", ""]
    lines += _table(("Min score", "LTV", "Interest rate"), [
        (b["min_score"], _pct(b["ltv_bps"]), _pct(b["interest_rate_bps"]))
        for b in snap["score_bands"]
    ])

    lines += ["", "## Simulation Assumptions", ""]
    lines += [
        f"- **Drift:** {market['drift'] * 100:g}% annual",
        f"- **Volatility:** {market['volatility'] * 100:g}% annualized",
        f"- **Jump probability:** {market['jump_probability'] * 100:g}% per period",
        f"- **Jump magnitude:** {market['jump_mean'] * 100:g}% mean, "
        f"{market['jump_vol'] * 100:g}% vol",
        f"- **Periods per year:** {market['periods_per_year']}",
    ]
    port = report.portfolio_params
    lines += [
        f"- **Borrowers:** {port['borrower_count']}",
        f"- **Collateral:** mean {port['collateral_mean'] / 1e18:g}, "
        f"std {port['collateral_std'] / 1e18:g} tokens",
        f"- **Score weights:** {', '.join(f'{w:g}' for w in port['score_weights'])}",
        f"- **Utilization:** mean {port['utilization_mean']:g}, std {port['utilization_std']:g}",
        f"- **LTV multiplier:** {port['ltv_multiplier'] if port['ltv_multiplier'] is not None else 1}",
    ]

    lines += ["", "## Results", ""]
    lines += _table(("Metric", "Value"),
                    [(label, _result_value(key, res[key])) for key, label in RESULT_LABELS.items()])

    lines += ["", "## Summary", ""]
    lines += [
        f"- **Runs with ≥1 liquidation:** {round(res['liquidation_frequency'] * res['runs'])}",
        f"- **Tail risk:** In 1% of scenarios, min HF drops to {_fmt(res['min_hf_p99'], 2)} "
        f"and price to {res['worst_price_p99'] * 100:.1f}% of initial.",
    ]

    if report.recommendations:
        lines += ["", *_render_recommendations(report.recommendations)]
    return "\n".join(lines) + "\n"


def _render_recommendations(rec: dict) -> list[str]:
    target = rec["target"]
    cur, prop = rec["current"], rec["proposed"]
    lines = ["## Parameter Recommendations", "", "### Targets", ""]
    lines += _table(("Metric", "Target"), [
        ("Max liquidation frequency", f"{target['max_liquidation_frequency'] * 100:.0f}%"),
        ("Max expected loss", f"{target['max_expected_loss_pct']:g}%"),
        ("Max 95th percentile drawdown", f"{target['max_p95_drawdown_pct']:g}%"),
    ])
    lines += ["", "### Current vs Proposed", ""]
    lines += _table(("Parameter", "Current", "Proposed"), [
        ("Liquidation threshold", _pct(cur["liquidation_threshold_bps"]),
         _pct(prop["liquidation_threshold_bps"])),
        ("Close factor", _pct(cur["close_factor_bps"]), _pct(prop["close_factor_bps"])),
        ("Liquidation bonus", _pct(cur["bonus_bps"]), _pct(prop["bonus_bps"])),
    ])
    lines += ["", "### Rationale", ""]
    lines += [f"- {r}" for r in rec["rationale"]]

    lines += ["", "### Sensitivity Summary (threshold sweep)", ""]
    lines += _table(("Threshold (bps)", "Liq Freq", "EL (%)"), [
        (s["threshold_bps"], f"{s['liq_freq']:.2f}", f"{s['expected_loss_pct']:.2f}")
        for s in rec["sensitivity"]["summary"]
    ])
    lines += ["", "### Threshold Sweep (all candidates)", ""]
    candidates = rec["sensitivity"]["threshold_bps_candidates"]
    lines += [f"Candidates (bps): {', '.join(str(t) for t in candidates)}", ""]
    lines += _table(("Threshold (bps)", "Liq Freq", "EL (%)", "P95 drawdown (%)", "Penalty"), [
        (s["threshold_bps"], f"{s['liq_freq']:.4f}", f"{s['expected_loss_pct']:.4f}",
         f"{s['p95_drawdown']:.4f}", f"{s['penalty']:.4f}")
        for s in rec["sensitivity"]["full"]
    ])
    lines += ["", "### Utilization Sensitivity", ""]
    lines += _table(("Utilization", "Liq Freq", "EL (%)"), [
        (s["utilization_mean"], f"{s['liq_freq']:.2f}", f"{s['expected_loss_pct']:.2f}")
        for s in rec["utilization_sensitivity"]
    ])
    lines += ["", "### LTV Multiplier Sensitivity", ""]
    lines += _table(("LTV Mult", "Liq Freq", "EL (%)"), [
        (s["ltv_multiplier"], f"{s['liq_freq']:.2f}", f"{s['expected_loss_pct']:.2f}")
        for s in rec["ltv_sensitivity"]
    ])
    lines += ["", "### Leverage Diagnostics", ""]
    lines += [f"- {n}" for n in rec["leverage_notes"]]
    lines += [
        "",
        f"**Most sensitive inputs:** {' > '.join(rec['most_sensitive_inputs'])}",
        "",
        f"**Suggested next knobs:** {'; '.join(rec['suggested_next_knobs']) or 'none'}",
    ]
    return lines


def write_reports(report: SimulationReport, out_dir: str | Path) -> list[Path]:
    """
    Write latest.json / latest.md plus dated run-YYYYMMDD copies.

    Returns the written paths in that order.
    """
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    payload_json = report.to_json()
    payload_md = report.to_markdown()
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d")

    paths = [
        out_dir / "latest.json",
        out_dir / "latest.md",
        out_dir / f"run-{stamp}.json",
        out_dir / f"run-{stamp}.md",
    ]
    for path in paths:
        path.write_text(payload_json if path.suffix == ".json" else payload_md,
                        encoding="utf-8")
        LOGGER.debug("Wrote %s", path)
    return paths
