from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, List

from .config.loader import load_inputs_file
from .errors import CompilationError, ConfigurationError, SolveError
from .postprocess.investment import investment_summary
from .simulation.orchestrator import HorizonOrchestrator
from .simulation.sensitivity import SWEEP_TARGETS, run_sensitivity


def _parse_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _parse_date(raw: str) -> date:
    return date.fromisoformat(raw)


def _write_outputs(results, out_dir: Path) -> None:
    out_dir.mkdir(parents=True, exist_ok=True)
    results.time_series.to_csv(out_dir / "time_series.csv", index=False)
    if results.electricity_bill is not None:
        results.electricity_bill.to_csv(out_dir / "electricity_bill.csv", index_label="month")
    if results.investment_costs is not None:
        (out_dir / "investment_costs.json").write_text(
            results.investment_costs.to_json(orient="index", indent=2)
        )
    (out_dir / "summary.json").write_text(json.dumps(results.to_dict(), indent=2, default=str))


def _annual_bill(results) -> float:
    bill = results.electricity_bill
    if bill is None or "Total" not in bill.index:
        return float("nan")
    return float(bill.loc["Total", "total_charge"])


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Behind-the-meter solar, storage and flexible demand optimization under retail tariffs."
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Simulate one set of inputs.")
    run_p.add_argument("--input", "-i", required=True, help="Path to simulation input JSON.")
    run_p.add_argument("--output-dir", "-o", default="derive_output", help="Directory for result files.")
    run_p.add_argument("--start", type=_parse_date, help="First simulated day (YYYY-MM-DD).")
    run_p.add_argument("--end", type=_parse_date, help="Last simulated day (YYYY-MM-DD).")

    sweep_p = sub.add_parser("sweep", help="Simulate variations of one input field.")
    sweep_p.add_argument("--input", "-i", required=True, help="Path to simulation input JSON.")
    sweep_p.add_argument("--target", required=True, choices=SWEEP_TARGETS, help="Record to vary.")
    sweep_p.add_argument("--parameter", required=True, help="Field of the record to vary.")
    sweep_p.add_argument("--values", required=True, nargs="+", help="Values (parsed as JSON when possible).")
    sweep_p.add_argument("--workers", type=int, default=None, help="Process pool size (1 = in-process).")
    sweep_p.add_argument("--start", type=_parse_date, help="First simulated day (YYYY-MM-DD).")
    sweep_p.add_argument("--end", type=_parse_date, help="Last simulated day (YYYY-MM-DD).")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        inputs = load_inputs_file(args.input)
    except (FileNotFoundError, json.JSONDecodeError) as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2
    except ConfigurationError as e:
        print("Input validation error:", file=sys.stderr)
        print(e, file=sys.stderr)
        return 2

    if args.command == "sweep":
        values: List[Any] = [_parse_value(v) for v in args.values]
        try:
            outcomes = run_sensitivity(
                inputs,
                args.target,
                args.parameter,
                values,
                max_workers=args.workers,
                start_date=args.start,
                end_date=args.end,
            )
        except (ConfigurationError, CompilationError) as e:
            print(f"Input error: {e}", file=sys.stderr)
            return 2
        for key, results in outcomes.items():
            print(f"{key}: annual bill ${_annual_bill(results):,.2f}")
        return 0

    try:
        results = HorizonOrchestrator(inputs).run(args.start, args.end)
    except (ConfigurationError, CompilationError) as e:
        print(f"Input error: {e}", file=sys.stderr)
        return 2
    except SolveError as e:
        print(f"Solve failed: {e}", file=sys.stderr)
        if e.partial_results is not None and e.partial_results.windows:
            _write_outputs(e.partial_results, Path(args.output_dir))
            print(f"Partial results for {len(e.partial_results.windows)} windows written.", file=sys.stderr)
        return 1

    _write_outputs(results, Path(args.output_dir))

    # Minimal console summary
    print(f"Windows solved: {len(results.windows)}")
    print(f"Objective: ${results.objective_value:,.2f}")
    for name, value in results.cost_summary().items():
        print(f"  {name}: ${value:,.2f}")
    print(f"Annual bill: ${_annual_bill(results):,.2f}")
    if results.investment_costs is not None:
        for line in investment_summary(results.investment_costs):
            print(line)
    print(f"Outputs written to {args.output_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
