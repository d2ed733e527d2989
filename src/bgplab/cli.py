from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List

from bgplab.common import dump_json
from bgplab.phases import PHASE_NAMES
from bgplab.scenario import load_scenario
from bgplab.suite import SuiteOptions, VariantResult, run_suite

DEFAULT_SCENARIO = Path(__file__).resolve().parents[2] / "scenarios" / "bgp" / "bgp.yaml"


def _env_flag(name: str, fallback: bool) -> bool:
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return fallback
    return value in ("1", "true", "yes", "on")


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Deploy BGP router labs with containerlab, check sessions, routes and "
            "connectivity, flap links, and destroy the labs."
        )
    )
    # scenarios/ ships with the source tree only, not with an installed wheel.
    bundled = DEFAULT_SCENARIO.is_file()
    parser.add_argument(
        "--scenario",
        default=str(DEFAULT_SCENARIO) if bundled else None,
        required=not bundled,
        help="Scenario YAML with variants and expectation tables (default: the checkout's scenarios/bgp/bgp.yaml).",
    )
    parser.add_argument(
        "--variant",
        action="append",
        default=[],
        help="Variant to run (repeatable). Defaults to every variant in the scenario.",
    )
    parser.add_argument(
        "--phase",
        action="append",
        default=[],
        choices=list(PHASE_NAMES),
        help="Phase to run (repeatable). Defaults to all phases in order.",
    )
    parser.add_argument(
        "--sudo",
        action=argparse.BooleanOptionalAction,
        default=_env_flag("BGPLAB_SUDO", False),
        help="Prefix containerlab/docker commands with sudo (default from BGPLAB_SUDO).",
    )
    parser.add_argument(
        "--keep-lab",
        action="store_true",
        help="Keep labs running after checks (skip destroy).",
    )
    parser.add_argument("--clab-bin", default="", help="containerlab binary (default: auto-detect)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity.",
    )
    parser.add_argument(
        "--output-json",
        default="",
        help="Optional path to dump the full report as JSON.",
    )
    return parser.parse_args(argv)


def print_summary(results: List[VariantResult]) -> None:
    print("=== BGP Lab Check ===")
    for result in results:
        print(f"{result.variant}: {'passed' if result.passed else 'FAILED'}")
        if result.error:
            print(f"  error: {result.error}")
        for phase in result.phases:
            line = f"  {phase.name}: {phase.status} ({phase.duration_s:.1f}s)"
            if phase.error:
                line += f" - {phase.error.splitlines()[0]}"
            print(line)


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    scenario = load_scenario(Path(args.scenario))
    options = SuiteOptions(
        use_sudo=bool(args.sudo),
        keep_lab=bool(args.keep_lab),
        clab_bin=str(args.clab_bin),
        variants=tuple(args.variant),
        phases=tuple(args.phase),
    )
    results = run_suite(scenario, options)
    print_summary(results)

    passed = all(result.passed for result in results)
    if args.output_json:
        dump_json(
            Path(args.output_json),
            {
                "scenario": scenario.name,
                "scenario_file": str(scenario.source_path),
                "passed": passed,
                "variants": [result.to_dict() for result in results],
            },
        )
        print(f"report_json: {args.output_json}")
    return 0 if passed else 2


if __name__ == "__main__":
    raise SystemExit(main())
