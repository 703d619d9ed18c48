"""Command-line entry point for the supply chain ABM."""

from __future__ import annotations

import argparse
import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .config import (
    ConfigurationError,
    ScenarioProfile,
    SupplyChainConfig,
    apply_profile,
    get_profile,
    list_profiles,
    load_profile,
)
from .demand import DemandParseError
from .simulation import SupplyChainSimulation


def _print_profile_catalog() -> None:
    """Display the registered scenario profiles."""
    catalog: List[ScenarioProfile] = sorted(list_profiles(), key=lambda profile: profile.name.lower())
    if not catalog:
        print("No built-in scenario profiles are registered.")
        return
    print("Available scenario profiles:")
    for profile in catalog:
        print(f"  - {profile.name}: {profile.description}")


def _parse_assignments(items: Optional[Iterable[str]], flag: str) -> Dict[str, Any]:
    """Turn ``KEY=VALUE`` strings into a dict; values are read as JSON when possible."""
    parsed: Dict[str, Any] = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"{flag} expects KEY=VALUE, got '{item}'.")
        key, raw = item.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{flag} has an empty key in '{item}'.")
        try:
            parsed[key] = json.loads(raw)
        except json.JSONDecodeError:
            parsed[key] = raw
    return parsed


def _parse_cli_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Three-tier supply chain ABM launcher")
    parser.add_argument(
        "--ticks",
        type=int,
        help="Number of ticks to simulate (defaults to N_TICKS).",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Override RANDOM_SEED for this run.",
    )
    parser.add_argument(
        "--profile",
        help="Apply a built-in scenario profile (see --list-profiles).",
    )
    parser.add_argument(
        "--profile-file",
        help="Apply a scenario profile loaded from a JSON file.",
    )
    parser.add_argument(
        "--list-profiles",
        action="store_true",
        help="List the built-in scenario profiles and exit.",
    )
    parser.add_argument(
        "--override",
        action="append",
        metavar="KEY=JSON",
        help="Override a configuration attribute; dotted keys reach into dict parameters. Repeatable.",
    )
    parser.add_argument(
        "--results-dir",
        default="results",
        help="Directory receiving the run folder with logs and exports.",
    )
    parser.add_argument(
        "--run-id",
        default="run",
        help="Name of the run folder inside --results-dir.",
    )
    parser.add_argument(
        "--price-mode",
        choices=["auto", "manual"],
        help="Price controller mode applied from the first tick.",
    )
    parser.add_argument(
        "--manual-price",
        type=float,
        help="Pinned price for manual mode (implies --price-mode manual).",
    )
    parser.add_argument(
        "--demand-equation",
        help="Free-text demand equation planners use instead of the internal estimate, e.g. 'q = a - b p'.",
    )
    parser.add_argument(
        "--param",
        action="append",
        metavar="NAME=VALUE",
        help="Named parameter substituted into --demand-equation. Repeatable.",
    )
    parser.add_argument(
        "--survey",
        type=int,
        metavar="N",
        help="After the run, fit an OLS demand line on a survey of N consumers.",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the resolved configuration as JSON before running.",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def run_cli(
    base_config: Optional[SupplyChainConfig] = None,
    argv: Optional[Iterable[str]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Parse CLI arguments, run one simulation and write its artefacts.
    Returns a result dictionary (paths, summary, survey) for programmatic reuse.
    """
    args = _parse_cli_args(argv)
    if args.list_profiles:
        _print_profile_catalog()
        return None

    cfg = copy.deepcopy(base_config or SupplyChainConfig())
    profile_metadata: List[Dict[str, Any]] = []
    try:
        if args.profile:
            builtin_profile = get_profile(args.profile)
            cfg = apply_profile(cfg, builtin_profile)
            profile_metadata.append(builtin_profile.to_metadata())
        if args.profile_file:
            file_profile = load_profile(args.profile_file)
            cfg = apply_profile(cfg, file_profile)
            profile_metadata.append(file_profile.to_metadata())
        overrides = _parse_assignments(args.override, "--override")
        if overrides:
            cfg = cfg.copy_with_overrides(overrides)
    except (FileNotFoundError, ValueError, KeyError) as exc:
        print(f"[CLI] Profile error: {exc}")
        return None
    if args.seed is not None:
        cfg.RANDOM_SEED = args.seed
    if args.ticks is not None:
        cfg.N_TICKS = args.ticks

    if args.dump_config:
        print(json.dumps(cfg.snapshot(), indent=2, sort_keys=True, default=list))

    try:
        sim = SupplyChainSimulation(cfg, output_dir=args.results_dir, run_id=args.run_id)
    except ConfigurationError as exc:
        print(f"[CLI] Configuration error: {exc}")
        return None

    try:
        if args.demand_equation:
            params = _parse_assignments(args.param, "--param")
            curve = sim.install_demand_equation(args.demand_equation, {k: float(v) for k, v in params.items()})
            print(f"[CLI] Planner demand curve: {curve.family.value} (a={curve.a:g}, b={curve.b:g})")
        if args.manual_price is not None:
            sim.set_price_mode("manual")
            sim.set_manual_price(args.manual_price)
        elif args.price_mode:
            sim.set_price_mode(args.price_mode)
    except (DemandParseError, ValueError) as exc:
        print(f"[CLI] Invalid command: {exc}")
        return None

    print(
        f"[CLI] Opening price {sim.initial_state['price']:.4f}, "
        f"Final-tier capacity {sim.initial_state['final_capacity']:.2f}, "
        f"firms {sim.initial_state['firms']}"
    )
    summary = sim.run(cfg.N_TICKS)

    survey = None
    if args.survey:
        estimate = sim.survey_sample(args.survey)
        survey = {"intercept": estimate.intercept, "slope": estimate.slope, "sample_size": estimate.sample_size}
        print(f"[CLI] Survey fit: q = {estimate.intercept:.3f} + {estimate.slope:.3f} p (n={estimate.sample_size})")

    paths = sim.save_results()
    if profile_metadata:
        profile_path = Path(sim.run_dir) / "profiles.json"
        with profile_path.open("w", encoding="utf-8") as handle:
            json.dump(profile_metadata, handle, indent=2)
        paths["profiles"] = str(profile_path)

    print(f"[CLI] Results directory: {sim.run_dir}")
    print(
        f"[CLI] Regret {summary.regret:.2f}, welfare {summary.welfare:.2f}, "
        f"tracking efficiency {summary.tracking_efficiency:.3f}, balance {summary.balance}"
    )
    print("[CLI] Task completed.")
    return {
        "results_dir": sim.run_dir,
        "paths": paths,
        "summary": summary.to_dict(),
        "survey": survey,
        "round_log": os.path.join(sim.run_dir, "run_log.jsonl"),
    }


def main(argv: Optional[Iterable[str]] = None) -> None:  # pragma: no cover - thin wrapper
    run_cli(argv=argv)


if __name__ == "__main__":  # pragma: no cover
    main()


__all__ = ["run_cli", "main"]
