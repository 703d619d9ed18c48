"""
Simulation configuration dataclass and scenario profiles for the supply chain ABM.

This module provides the configuration system for the three-tier supply chain
model: every tunable parameter of the demand model, the firm tiers, the order
ledger, the innovation scheduler, the price controller and the metrics
recorder. The configuration structure is designed to support:

1. **Reproducibility**: Every run captures a complete configuration snapshot,
   which together with the seed and the external command sequence replays
   the run exactly.

2. **Validation**: Invalid ranges and counts are rejected before any
   simulation state exists (see ``SupplyChainConfig.validate``).

3. **Scenarios**: Named profiles bundle overrides for the two engine
   variants (``baseline`` with partial fulfilment and per-firm innovation,
   ``simple`` with strict escalation and a single innovation roll) and for
   stress scenarios such as ``tight_supply``.

Usage
-----
Basic configuration:

    >>> config = SupplyChainConfig()
    >>> config = config.copy_with_overrides({"N_CONSUMERS": 350})

With a scenario profile:

    >>> from supplychain_abm.config import get_profile, apply_profile
    >>> config = apply_profile(SupplyChainConfig(), get_profile("simple"))
"""

from __future__ import annotations

import copy
import json
import math
import os
from dataclasses import asdict, dataclass, field
from numbers import Number
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


TIERS = ("final", "intermediate", "raw")
FAMILIES = ("linear", "log", "exp", "poly", "logistic")
ROUTES = ("final_to_intermediate", "intermediate_to_raw", "external_to_raw")
CALIBRATION_TARGETS = ("capacity", "price", "none")
INNOVATION_MODES = ("per_firm", "single")


class ConfigurationError(ValueError):
    """Raised when a configuration cannot produce a valid simulation."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


@dataclass
class SupplyChainConfig:
    """Configuration for one run of the three-tier supply chain economy."""

    # Run
    RANDOM_SEED: int = 12345
    N_TICKS: int = 500
    N_CONSUMERS: int = 200

    # Price controller
    INITIAL_PRICE: float = 1.0
    PRICE_FLOOR: float = 0.01
    PRICE_ADJUST_GAIN: float = 0.08

    # =========================================================================
    # CONSUMERS
    # =========================================================================
    # Family mix of the hidden willingness-to-buy curves. Logistic is part of
    # the curve variant but is not drawn unless given a positive weight.
    CONSUMER_FAMILY_WEIGHTS: Dict[str, float] = field(
        default_factory=lambda: {
            "linear": 0.60,
            "log": 0.25,
            "exp": 0.13,
            "poly": 0.02,
            "logistic": 0.0,
        }
    )
    CONSUMER_A_RANGE: Tuple[float, float] = (5.0, 200.0)
    CONSUMER_B_RANGE: Tuple[float, float] = (0.01, 10.0)
    # b sign: 75% positive, 20% zero, 5% negative (atypical buyers)
    CONSUMER_B_ZERO_PROB: float = 0.20
    CONSUMER_B_NEGATIVE_PROB: float = 0.05
    CONSUMER_B_NEGATIVE_RANGE: Tuple[float, float] = (0.1, 5.0)
    CONSUMER_UPDATE_RANGE: Tuple[int, int] = (30, 90)
    CONSUMER_RESAMPLE_PROB: float = 0.15
    CONSUMER_DRIFT_A: float = 0.10  # total width of the uniform drift band
    CONSUMER_DRIFT_B: float = 0.05
    CONSUMER_SHOCK_PROB: float = 0.01
    CONSUMER_SHOCK_RANGE: Tuple[float, float] = (1.5, 3.0)
    CONSUMER_JITTER: float = 0.01
    DEMAND_NOISE: float = 0.05

    # Preference regimes (richer variant): full family reassignment
    REGIME_SWITCHING: bool = True
    REGIME_SWITCH_RANGE: Tuple[int, int] = (30, 100)
    REGIME_COEFFICIENT_RANGES: Dict[str, Dict[str, Tuple[float, float]]] = field(
        default_factory=lambda: {
            "linear": {"a": (20.0, 200.0), "b": (0.5, 10.0)},
            "log": {"a": (20.0, 200.0), "b": (1.0, 40.0)},
            "exp": {"a": (20.0, 200.0), "b": (0.05, 1.5)},
            "poly": {"a": (20.0, 200.0), "b": (0.5, 8.0)},
            "logistic": {"a": (20.0, 200.0), "b": (0.1, 2.0)},
        }
    )
    FEEDBACK_STRENGTH: float = 0.0

    # Perceived demand and observation
    PERCEIVED_DEMAND_BAND: Tuple[float, float] = (0.8, 1.2)
    OBSERVATION_SAMPLE_SIZE: int = 30
    OBSERVATION_NOISE: float = 0.20
    OBSERVATION_PRICE_JITTER: float = 0.04
    SURVEY_PRICE_JITTER: float = 0.04
    SURVEY_RESPONSE_NOISE: float = 0.15

    # =========================================================================
    # FIRM TIERS
    # =========================================================================
    # final = PBC (consumer goods), intermediate = PFP, raw = PMP
    FIRM_COUNT_RANGES: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: {
            "final": (3, 8),
            "intermediate": (3, 8),
            "raw": (2, 5),
        }
    )
    FIRM_PRODUCTIVITY_RANGE: Tuple[float, float] = (0.6, 1.4)
    FIRM_CAPACITY_RANGES: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {
            "final": (1.0, 1.0),  # placeholder, calibrated against demand
            "intermediate": (10.0, 50.0),
            "raw": (20.0, 100.0),
        }
    )
    FIRM_COST_RANGES: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {
            "final": (0.2, 1.2),
            "intermediate": (0.1, 0.8),
            "raw": (0.05, 0.6),
        }
    )
    INITIAL_INVENTORY_RATIOS: Dict[str, float] = field(
        default_factory=lambda: {"final": 1.0, "intermediate": 0.5, "raw": 0.7}
    )
    UPSTREAM_OUTPUT_RANGE: Tuple[float, float] = (0.4, 1.0)
    # Optional explicit firms per tier, e.g. {"final": [{"capacity": 1000.0}]}.
    # Keys per firm: A, capacity, marginal_cost, inventory.
    FIRM_SPECS: Dict[str, List[Dict[str, float]]] = field(default_factory=dict)
    FIRM_HISTORY_DEPTH: int = 1000

    # Initial equilibrium calibration
    CALIBRATION_TARGET: str = "capacity"
    CALIBRATION_MAX_ITERATIONS: int = 40
    CALIBRATION_TOLERANCE: float = 0.01
    MIN_FINAL_CAPACITY: float = 0.1

    # =========================================================================
    # LOGISTICS
    # =========================================================================
    DELAY_RANGES: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: {
            "final_to_intermediate": (5, 15),
            "intermediate_to_raw": (5, 20),
            "external_to_raw": (10, 25),
        }
    )
    PARTIAL_FULFILLMENT: bool = True
    MAX_ACTIVE_ORDERS: int = 5000

    # =========================================================================
    # INNOVATION
    # =========================================================================
    INNOVATION_MODE: str = "per_firm"
    INNOVATION_PROBABILITY: float = 0.02
    INNOVATION_SINGLE_PROBABILITY: float = 0.03
    INNOVATION_COST_RANGE: Tuple[float, float] = (0.92, 0.99)
    INNOVATION_TFP_RANGE: Tuple[float, float] = (1.02, 1.25)
    INNOVATION_ADOPTION_RANGE: Tuple[int, int] = (10, 60)

    # =========================================================================
    # METRICS
    # =========================================================================
    HISTORY_WINDOW: int = 1000
    EVENT_LOG_CAP: int = 5000
    EVENT_LOG_TRIM_TO: int = 2000
    WELFARE_PRICE_MULTIPLIER: float = 5.0
    WELFARE_GRID_POINTS: int = 41
    RECENT_WINDOW: int = 20

    # Performance / logging toggles
    round_log_interval: int = 25
    enable_round_logging: bool = True

    def validate(self) -> "SupplyChainConfig":
        """Raise ``ConfigurationError`` listing every invalid setting."""
        problems: List[str] = []

        def check_range(name: str, bounds: Any, minimum: Optional[float] = None) -> None:
            try:
                low, high = bounds
                low, high = float(low), float(high)
            except (TypeError, ValueError):
                problems.append(f"{name} must be a (low, high) pair, got {bounds!r}")
                return
            if not (math.isfinite(low) and math.isfinite(high)):
                problems.append(f"{name} bounds must be finite")
                return
            if low > high:
                problems.append(f"{name} has low > high ({low} > {high})")
            if minimum is not None and low < minimum:
                problems.append(f"{name} lower bound {low} is below {minimum}")

        def check_probability(name: str, value: float) -> None:
            if not (0.0 <= float(value) <= 1.0):
                problems.append(f"{name} must lie in [0, 1], got {value}")

        if int(self.RANDOM_SEED) < 0:
            problems.append("RANDOM_SEED must be non-negative")
        if int(self.N_CONSUMERS) < 1:
            problems.append("N_CONSUMERS must be at least 1")
        if int(self.N_TICKS) < 0:
            problems.append("N_TICKS must be non-negative")
        if not float(self.PRICE_FLOOR) > 0.0:
            problems.append("PRICE_FLOOR must be positive")
        if float(self.INITIAL_PRICE) < float(self.PRICE_FLOOR):
            problems.append("INITIAL_PRICE must not be below PRICE_FLOOR")
        if float(self.PRICE_ADJUST_GAIN) < 0.0:
            problems.append("PRICE_ADJUST_GAIN must be non-negative")

        weights = self.CONSUMER_FAMILY_WEIGHTS or {}
        unknown = sorted(set(weights) - set(FAMILIES))
        if unknown:
            problems.append(f"Unknown demand families: {', '.join(unknown)}")
        if any(float(w) < 0.0 for w in weights.values()):
            problems.append("CONSUMER_FAMILY_WEIGHTS must be non-negative")
        elif sum(float(w) for w in weights.values()) <= 0.0:
            problems.append("CONSUMER_FAMILY_WEIGHTS must have a positive total")
        check_range("CONSUMER_A_RANGE", self.CONSUMER_A_RANGE, minimum=0.0)
        check_range("CONSUMER_B_RANGE", self.CONSUMER_B_RANGE)
        check_range("CONSUMER_B_NEGATIVE_RANGE", self.CONSUMER_B_NEGATIVE_RANGE, minimum=0.0)
        check_probability("CONSUMER_B_ZERO_PROB", self.CONSUMER_B_ZERO_PROB)
        check_probability("CONSUMER_B_NEGATIVE_PROB", self.CONSUMER_B_NEGATIVE_PROB)
        if float(self.CONSUMER_B_ZERO_PROB) + float(self.CONSUMER_B_NEGATIVE_PROB) > 1.0:
            problems.append("CONSUMER_B_ZERO_PROB + CONSUMER_B_NEGATIVE_PROB exceeds 1")
        check_range("CONSUMER_UPDATE_RANGE", self.CONSUMER_UPDATE_RANGE, minimum=1)
        check_probability("CONSUMER_RESAMPLE_PROB", self.CONSUMER_RESAMPLE_PROB)
        check_probability("CONSUMER_SHOCK_PROB", self.CONSUMER_SHOCK_PROB)
        check_range("CONSUMER_SHOCK_RANGE", self.CONSUMER_SHOCK_RANGE, minimum=0.0)
        for name in ("CONSUMER_DRIFT_A", "CONSUMER_DRIFT_B", "CONSUMER_JITTER", "DEMAND_NOISE",
                     "OBSERVATION_NOISE", "OBSERVATION_PRICE_JITTER", "SURVEY_PRICE_JITTER",
                     "SURVEY_RESPONSE_NOISE"):
            value = float(getattr(self, name))
            if not (0.0 <= value < 2.0):
                problems.append(f"{name} must lie in [0, 2), got {value}")
        check_range("REGIME_SWITCH_RANGE", self.REGIME_SWITCH_RANGE, minimum=1)
        for family, ranges in (self.REGIME_COEFFICIENT_RANGES or {}).items():
            if family not in FAMILIES:
                problems.append(f"Unknown family '{family}' in REGIME_COEFFICIENT_RANGES")
                continue
            for coefficient in ("a", "b"):
                if coefficient not in ranges:
                    problems.append(f"REGIME_COEFFICIENT_RANGES[{family}] lacks '{coefficient}'")
                else:
                    check_range(f"REGIME_COEFFICIENT_RANGES[{family}][{coefficient}]", ranges[coefficient])
        check_range("PERCEIVED_DEMAND_BAND", self.PERCEIVED_DEMAND_BAND, minimum=0.0)
        if int(self.OBSERVATION_SAMPLE_SIZE) < 0:
            problems.append("OBSERVATION_SAMPLE_SIZE must be non-negative")

        for tier in TIERS:
            if tier in (self.FIRM_SPECS or {}):
                continue
            bounds = (self.FIRM_COUNT_RANGES or {}).get(tier)
            if bounds is None:
                problems.append(f"FIRM_COUNT_RANGES lacks tier '{tier}'")
            else:
                check_range(f"FIRM_COUNT_RANGES[{tier}]", bounds, minimum=1)
            for table_name in ("FIRM_CAPACITY_RANGES", "FIRM_COST_RANGES"):
                bounds = (getattr(self, table_name) or {}).get(tier)
                if bounds is None:
                    problems.append(f"{table_name} lacks tier '{tier}'")
                else:
                    check_range(f"{table_name}[{tier}]", bounds, minimum=0.0)
        for tier, specs in (self.FIRM_SPECS or {}).items():
            if tier not in TIERS:
                problems.append(f"Unknown tier '{tier}' in FIRM_SPECS")
                continue
            if not specs:
                problems.append(f"FIRM_SPECS[{tier}] must define at least one firm")
            for i, spec in enumerate(specs):
                for key, value in spec.items():
                    if key not in ("A", "capacity", "marginal_cost", "inventory"):
                        problems.append(f"FIRM_SPECS[{tier}][{i}] has unknown key '{key}'")
                    elif not (math.isfinite(float(value)) and float(value) >= 0.0):
                        problems.append(f"FIRM_SPECS[{tier}][{i}].{key} must be finite and >= 0")
        unknown_tiers = sorted(set(self.INITIAL_INVENTORY_RATIOS or {}) - set(TIERS))
        if unknown_tiers:
            problems.append(f"Unknown tiers in INITIAL_INVENTORY_RATIOS: {', '.join(unknown_tiers)}")
        if any(float(v) < 0.0 for v in (self.INITIAL_INVENTORY_RATIOS or {}).values()):
            problems.append("INITIAL_INVENTORY_RATIOS must be non-negative")
        check_range("FIRM_PRODUCTIVITY_RANGE", self.FIRM_PRODUCTIVITY_RANGE, minimum=0.0)
        check_range("UPSTREAM_OUTPUT_RANGE", self.UPSTREAM_OUTPUT_RANGE, minimum=0.0)
        if int(self.FIRM_HISTORY_DEPTH) < 1:
            problems.append("FIRM_HISTORY_DEPTH must be at least 1")

        if self.CALIBRATION_TARGET not in CALIBRATION_TARGETS:
            problems.append(
                f"CALIBRATION_TARGET must be one of {', '.join(CALIBRATION_TARGETS)}, got '{self.CALIBRATION_TARGET}'"
            )
        if int(self.CALIBRATION_MAX_ITERATIONS) < 1:
            problems.append("CALIBRATION_MAX_ITERATIONS must be at least 1")
        if not float(self.CALIBRATION_TOLERANCE) > 0.0:
            problems.append("CALIBRATION_TOLERANCE must be positive")
        if float(self.MIN_FINAL_CAPACITY) < 0.0:
            problems.append("MIN_FINAL_CAPACITY must be non-negative")

        for route in ROUTES:
            bounds = (self.DELAY_RANGES or {}).get(route)
            if bounds is None:
                problems.append(f"DELAY_RANGES lacks route '{route}'")
            else:
                check_range(f"DELAY_RANGES[{route}]", bounds, minimum=1)
        if int(self.MAX_ACTIVE_ORDERS) < 1:
            problems.append("MAX_ACTIVE_ORDERS must be at least 1")

        if self.INNOVATION_MODE not in INNOVATION_MODES:
            problems.append(
                f"INNOVATION_MODE must be one of {', '.join(INNOVATION_MODES)}, got '{self.INNOVATION_MODE}'"
            )
        check_probability("INNOVATION_PROBABILITY", self.INNOVATION_PROBABILITY)
        check_probability("INNOVATION_SINGLE_PROBABILITY", self.INNOVATION_SINGLE_PROBABILITY)
        check_range("INNOVATION_COST_RANGE", self.INNOVATION_COST_RANGE)
        low, high = self.INNOVATION_COST_RANGE
        if not (0.0 < float(low) and float(high) <= 1.0):
            problems.append("INNOVATION_COST_RANGE must lie within (0, 1]")
        check_range("INNOVATION_TFP_RANGE", self.INNOVATION_TFP_RANGE, minimum=1.0)
        check_range("INNOVATION_ADOPTION_RANGE", self.INNOVATION_ADOPTION_RANGE, minimum=0)

        if int(self.HISTORY_WINDOW) < 1:
            problems.append("HISTORY_WINDOW must be at least 1")
        if int(self.EVENT_LOG_TRIM_TO) < 1:
            problems.append("EVENT_LOG_TRIM_TO must be at least 1")
        if int(self.EVENT_LOG_TRIM_TO) >= int(self.EVENT_LOG_CAP):
            problems.append("EVENT_LOG_TRIM_TO must be below EVENT_LOG_CAP")
        if float(self.WELFARE_PRICE_MULTIPLIER) <= 1.0:
            problems.append("WELFARE_PRICE_MULTIPLIER must exceed 1")
        if int(self.WELFARE_GRID_POINTS) < 2:
            problems.append("WELFARE_GRID_POINTS must be at least 2")
        if int(self.RECENT_WINDOW) < 1:
            problems.append("RECENT_WINDOW must be at least 1")
        if int(self.round_log_interval) < 1:
            problems.append("round_log_interval must be at least 1")

        if problems:
            raise ConfigurationError(problems)
        return self

    def snapshot(self) -> Dict[str, Any]:
        """Return a deep-copied, JSON-safe representation of the configuration."""
        return asdict(self)

    def copy_with_overrides(self, overrides: Optional[Dict[str, Any]] = None) -> "SupplyChainConfig":
        """Return a new config with the provided overrides merged in."""
        new_cfg = copy.deepcopy(self)
        if overrides:
            _apply_overrides(new_cfg, overrides)
        return new_cfg


# Attributes whose overrides replace the whole value instead of merging:
# a scenario that lists two Final firms must not inherit a third from the
# base FIRM_SPECS, and a one-family mix must drop the other weights.
REPLACE_KEYS = frozenset({"FIRM_SPECS", "CONSUMER_FAMILY_WEIGHTS"})


def _apply_overrides(config: SupplyChainConfig, overrides: Dict[str, Any]) -> None:
    """Write ``overrides`` into ``config`` in place.

    Keys are attribute names or dotted paths into a dict attribute, such as
    ``"DELAY_RANGES.external_to_raw"`` or ``"REGIME_COEFFICIENT_RANGES.exp.b"``.
    Dict attributes are merged key by key unless listed in ``REPLACE_KEYS``;
    range attributes stay tuples when the override arrives as a JSON list.
    Unknown attributes raise ``KeyError``.
    """
    for key, value in overrides.items():
        top, _, path = key.partition(".")
        if not hasattr(config, top):
            raise KeyError(f"Unknown configuration attribute '{top}' in override.")
        current = getattr(config, top)
        if path:
            if not isinstance(current, dict):
                raise KeyError(f"Attribute '{top}' is not a dictionary; cannot set '{key}'.")
            _set_path(current, path.split("."), value)
        elif top in REPLACE_KEYS:
            current = copy.deepcopy(value)
        elif isinstance(current, dict) and isinstance(value, dict):
            current = _merge_ranges(current, value)
        elif isinstance(current, tuple):
            current = _as_range(value, current)
        else:
            current = copy.deepcopy(value)
        setattr(config, top, current)


def _set_path(target: Dict[str, Any], parts: List[str], value: Any) -> None:
    *parents, leaf = parts
    for part in parents:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    existing = target.get(leaf)
    target[leaf] = _as_range(value, existing) if isinstance(existing, tuple) else copy.deepcopy(value)


def _merge_ranges(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Merge nested dicts such as ``DELAY_RANGES``; lists land as tuples."""
    merged = copy.deepcopy(base)
    for key, value in updates.items():
        existing = merged.get(key)
        if isinstance(existing, dict) and isinstance(value, dict):
            merged[key] = _merge_ranges(existing, value)
        elif isinstance(existing, tuple):
            merged[key] = _as_range(value, existing)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _as_range(value: Any, template: Tuple[Any, ...]) -> Tuple[Any, ...]:
    """Coerce an override for a ``(low, high)`` style attribute to a tuple.

    A scalar collapses the range to that single value.
    """
    if isinstance(value, (list, tuple)):
        return tuple(value)
    if isinstance(value, Number):
        return (value,) * (len(template) or 1)
    return tuple(copy.deepcopy(value) for _ in range(len(template) or 1))


@dataclass(frozen=True)
class ScenarioProfile:
    """Reusable parameter bundle for a named scenario."""

    name: str
    description: str
    overrides: Dict[str, Any] = field(default_factory=dict)
    source: str = "built-in"

    def to_metadata(self) -> Dict[str, Any]:
        """Return a serializable summary for run artefacts."""
        return {
            "name": self.name,
            "description": self.description,
            "source": self.source,
            "overrides": copy.deepcopy(self.overrides),
        }


def apply_profile(config: SupplyChainConfig, profile: Optional[ScenarioProfile]) -> SupplyChainConfig:
    """Return a config with the profile overrides applied."""
    if profile is None:
        return config
    return config.copy_with_overrides(profile.overrides)


def list_profiles() -> List[ScenarioProfile]:
    """Return the available built-in scenario profiles."""
    return list(PROFILE_LIBRARY.values())


def get_profile(name: str) -> ScenarioProfile:
    """Fetch a built-in profile by name (case-insensitive)."""
    normalized = name.strip().lower()
    for profile in PROFILE_LIBRARY.values():
        if profile.name.lower() == normalized:
            return profile
    raise KeyError(f"Unknown scenario profile '{name}'. Available: {', '.join(PROFILE_LIBRARY.keys())}")


def load_profile(path: str | os.PathLike[str]) -> ScenarioProfile:
    """Load a scenario profile definition from a JSON file."""
    file_path = Path(path).expanduser().resolve()
    if not file_path.exists():
        raise FileNotFoundError(f"Profile file not found: {file_path}")
    with file_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    overrides = payload.get("overrides") or payload.get("parameters") or {}
    if not isinstance(overrides, dict):
        raise ValueError(f"Profile file {file_path} must define an 'overrides' dictionary.")
    name = payload.get("name") or file_path.stem
    description = payload.get("description", f"Custom profile loaded from {file_path.name}")
    return ScenarioProfile(
        name=name,
        description=description,
        overrides=overrides,
        source=str(file_path),
    )


PROFILE_LIBRARY: Dict[str, ScenarioProfile] = {
    "baseline": ScenarioProfile(
        name="baseline",
        description=(
            "Richer engine: partial fulfilment with external replenishment, per-firm "
            "innovation rolls and consumer preference regime switching."
        ),
        overrides={},
    ),
    "simple": ScenarioProfile(
        name="simple",
        description=(
            "Simpler engine: any Raw-tier shortfall escalates in full, one random firm "
            "rolls for innovation per tick, no regime switching."
        ),
        overrides={
            "PARTIAL_FULFILLMENT": False,
            "INNOVATION_MODE": "single",
            "REGIME_SWITCHING": False,
        },
    ),
    "tight_supply": ScenarioProfile(
        name="tight_supply",
        description="Upstream capacity halved and slower logistics to stress the order cascade.",
        overrides={
            "FIRM_CAPACITY_RANGES.intermediate": (5.0, 25.0),
            "FIRM_CAPACITY_RANGES.raw": (10.0, 50.0),
            "DELAY_RANGES.final_to_intermediate": (10, 25),
            "DELAY_RANGES.intermediate_to_raw": (10, 30),
        },
    ),
}


__all__ = [
    "SupplyChainConfig",
    "ConfigurationError",
    "ScenarioProfile",
    "apply_profile",
    "get_profile",
    "list_profiles",
    "load_profile",
    "PROFILE_LIBRARY",
    "TIERS",
    "FAMILIES",
    "ROUTES",
]
