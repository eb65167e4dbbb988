"""
CLI entry point for the lending portfolio Monte Carlo risk simulation.

Usage:
    python run_simulation.py --runs 10000 --seed 42
    python run_simulation.py --runs 500 --borrowers 200 --no-recommend
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

from config.params import ConfigError, load_params
from models.recommender import run_recommendation
from models.simulation import run_simulation
from report import build_report, write_reports

DEFAULT_REPORTS_DIR = Path(__file__).parent / "reports"


def parse_seed(raw: str) -> int | str:
    """Digit strings become integer seeds; anything else is a string seed."""
    return int(raw) if raw.isdigit() else raw


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Lending portfolio Monte Carlo risk simulation"
    )
    parser.add_argument("-r", "--runs", type=int, default=500,
                        help="Monte Carlo runs per sensitivity point (default: 500)")
    parser.add_argument("-s", "--seed", type=parse_seed, default=42,
                        help="RNG seed for reproducibility (default: 42)")
    parser.add_argument("-b", "--borrowers", type=int, default=None,
                        help="Portfolio size (default: 100)")
    parser.add_argument("--no-recommend", dest="recommend", action="store_false",
                        help="Skip parameter recommendation (faster)")
    parser.add_argument("--json", action="store_true",
                        help="Print the JSON report instead of the text summary")
    parser.add_argument("--out-dir", type=Path, default=DEFAULT_REPORTS_DIR,
                        help="Directory for report files (default: ./reports)")
    parser.add_argument("--params-file", type=Path, default=None,
                        help="JSON parameter overrides (default: $RISK_SIM_PARAMS_FILE)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Debug logging")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        params = load_params(args.params_file)
        portfolio = params["portfolio"]
        if args.borrowers is not None:
            portfolio = replace(portfolio, borrower_count=args.borrowers)
            portfolio.validate()
        if args.runs <= 0:
            raise ConfigError(f"runs must be positive, got {args.runs}")
    except ConfigError as exc:
        print(f"  [ERROR] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    protocol = params["protocol"]
    sim_config = params["sim_config"]

    start = time.time()
    recommendation = None
    if args.recommend:
        if not args.json:
            print(f"Running recommendation ({args.runs} runs x 6 thresholds, seed={args.seed})...")
        result, recommendation = run_recommendation(
            args.runs, args.seed, targets=params["targets"],
            portfolio_params=portfolio, sim_config=sim_config, protocol=protocol,
        )
        prop = recommendation.proposed
        if not args.json:
            print(f"Proposed: threshold={prop['liquidation_threshold_bps']}bps, "
                  f"close={prop['close_factor_bps']}bps, bonus={prop['bonus_bps']}bps")
    else:
        if not args.json:
            print(f"Running {args.runs} paths (seed={args.seed}, "
                  f"borrowers={portfolio.borrower_count})...")
        result = run_simulation(args.runs, args.seed, portfolio, sim_config, protocol)
    elapsed = time.time() - start

    report = build_report(result, protocol=protocol, market=sim_config.market,
                          portfolio=portfolio, recommendation=recommendation)
    paths = write_reports(report, args.out_dir)

    if args.json:
        print(report.to_json())
        return 0

    print()
    print("Report written:")
    for path in paths:
        print(f"  {path}")
    print()
    print(f"Liquidation frequency: {result.liquidation_frequency * 100:.2f}%")
    print(f"Expected loss: {result.expected_loss_pct:.2f}%")
    print(f"Completed in {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
