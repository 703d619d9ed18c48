"""Simulation engine for the supply chain ABM."""

from __future__ import annotations

import collections
import json
import math
import os
from dataclasses import asdict
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple, Union

import pandas as pd

from .config import SupplyChainConfig
from .demand import DemandModel, ols_line, parse_demand_equation
from .firms import FirmTiers
from .innovation import InnovationScheduler
from .ledger import OrderLedger
from .metrics import EventLog, MetricsRecorder, SessionSummary
from .models import DemandCurve, FirmTier, MetricsPoint, PriceMode, SurveyEstimate
from .pricing import PriceController
from .random_source import RandomSource
from .utils import finite_or_zero, safe_ratio


class SupplyChainSimulation:
    """
    Owns the full state of one run and advances it one tick at a time.

    External callers never write into firms, orders or consumers directly.
    Overrides (perceived-demand function, price mode, manual price, forced
    innovations, feedback strength) are validated when submitted and queued;
    the queue is drained at the start of the next tick, in submission order.
    """

    def __init__(
        self,
        config: Optional[SupplyChainConfig] = None,
        seed: Optional[int] = None,
        output_dir: Optional[str] = None,
        run_id: Union[int, str] = "run",
    ):
        config = config if config is not None else SupplyChainConfig()
        if seed is not None:
            config = config.copy_with_overrides({"RANDOM_SEED": int(seed)})
        # Invalid configuration is reported before any state is built
        config.validate()
        self.config = config
        self.run_id = str(run_id)

        self.rng = RandomSource(config.RANDOM_SEED)
        self.events = EventLog(config.EVENT_LOG_CAP, config.EVENT_LOG_TRIM_TO)

        # 1. Consumers, then firms, then the start-up equilibrium.
        self.demand = DemandModel(config, self.rng)
        self.demand.spawn_consumers()
        self.firms = FirmTiers(config, self.rng).spawn()
        opening_price = self.firms.calibrate(self.demand.oracle_demand, float(config.INITIAL_PRICE))

        # 2. Components that act on the populated economy.
        self.pricing = PriceController(config, opening_price)
        self.ledger = OrderLedger(config, self.rng, self.firms, self.events)
        self.innovation = InnovationScheduler(config, self.rng, self.firms, self.events)
        self.metrics = MetricsRecorder(config)

        self.tick_count = 0
        self.previous_price = self.pricing.price
        self._commands: Deque[Tuple[str, Any]] = collections.deque()
        self._last_tick_of_run: Optional[int] = None

        self.initial_state = {
            "price": self.pricing.price,
            "oracle_demand": self.demand.oracle_demand(self.pricing.price),
            "final_capacity": self.firms.total_capacity(FirmTier.FINAL),
            "calibration_target": config.CALIBRATION_TARGET,
            "calibration_iterations": self.firms.calibration_iterations,
            "calibration_converged": self.firms.calibration_converged,
            "firms": {tier.value: len(self.firms.tier(tier)) for tier in FirmTier},
        }
        if not self.firms.calibration_converged:
            self.events.record(
                0,
                "calibration_unconverged",
                target=config.CALIBRATION_TARGET,
                iterations=self.firms.calibration_iterations,
                price=self.initial_state["price"],
                oracle_demand=self.initial_state["oracle_demand"],
                final_capacity=self.initial_state["final_capacity"],
            )
            print(
                f"[{self.run_id}] Calibration did not converge after "
                f"{self.firms.calibration_iterations} iterations "
                f"(demand {self.initial_state['oracle_demand']:.2f}, "
                f"capacity {self.initial_state['final_capacity']:.2f})."
            )

        self.round_log_interval = max(1, int(getattr(config, "round_log_interval", 1)))
        self.enable_round_logging = bool(getattr(config, "enable_round_logging", True))
        self.output_dir = output_dir
        self.run_dir: Optional[str] = None
        self.round_log_path: Optional[str] = None
        if output_dir is not None:
            self.run_dir = os.path.join(output_dir, self.run_id)
            os.makedirs(self.run_dir, exist_ok=True)
            self.round_log_path = os.path.join(self.run_dir, "run_log.jsonl")

    # ------------------------------------------------------------------
    # Commands (validated now, applied at the start of the next tick)
    # ------------------------------------------------------------------
    def set_perceived_demand_override(self, fn: Optional[Callable[[float], float]]) -> None:
        """Install ``fn(price) -> quantity`` as the planners' demand estimate.

        ``None`` reverts to the internal noisy estimator.
        """
        if fn is not None and not callable(fn):
            raise ValueError("Perceived-demand override must be callable or None.")
        self._commands.append(("override", fn))

    def install_demand_equation(self, text: str, params: Optional[Dict[str, float]] = None) -> DemandCurve:
        """Parse a free-text demand equation and queue it as the override."""
        curve = parse_demand_equation(text, params)
        self._commands.append(("override", curve))
        return curve

    def set_price_mode(self, mode: Union[str, PriceMode]) -> None:
        try:
            mode = PriceMode(mode)
        except ValueError:
            raise ValueError(f"Unknown price mode {mode!r}; expected 'auto' or 'manual'.") from None
        self._commands.append(("price_mode", mode))

    def set_manual_price(self, value: float) -> None:
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Manual price must be finite, got {value!r}.")
        self._commands.append(("manual_price", value))

    def schedule_innovation(
        self,
        firm_id: str,
        cost_multiplier: float,
        tfp_multiplier: float,
        adopt_at: Optional[int] = None,
    ) -> None:
        """Force an innovation for ``firm_id``; adopted at ``adopt_at``."""
        if self.firms.get(firm_id) is None:
            raise ValueError(f"Unknown firm '{firm_id}'.")
        cost_multiplier = float(cost_multiplier)
        tfp_multiplier = float(tfp_multiplier)
        if not (0.0 < cost_multiplier <= 1.0):
            raise ValueError(f"Cost multiplier must lie in (0, 1], got {cost_multiplier}.")
        if not (math.isfinite(tfp_multiplier) and tfp_multiplier >= 1.0):
            raise ValueError(f"Productivity multiplier must be >= 1, got {tfp_multiplier}.")
        if adopt_at is not None and int(adopt_at) < self.tick_count + 1:
            raise ValueError(f"adopt_at={adopt_at} lies before the next tick ({self.tick_count + 1}).")
        self._commands.append(("innovation", (firm_id, cost_multiplier, tfp_multiplier, adopt_at)))

    def set_feedback_strength(self, value: float) -> None:
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"Feedback strength must be finite, got {value!r}.")
        self._commands.append(("feedback", value))

    def _apply_commands(self, tick: int) -> None:
        while self._commands:
            name, payload = self._commands.popleft()
            if name == "override":
                self.demand.override = payload
                if payload is None:
                    self.events.record(tick, "override_cleared")
                elif isinstance(payload, DemandCurve):
                    self.events.record(
                        tick, "override_installed", family=payload.family.value, a=payload.a, b=payload.b, c=payload.c
                    )
                else:
                    self.events.record(tick, "override_installed", source=getattr(payload, "__name__", "callable"))
            elif name == "price_mode":
                self.pricing.set_mode(payload)
                self.events.record(tick, "price_mode", mode=payload.value)
            elif name == "manual_price":
                self.pricing.set_manual_price(payload)
                self.events.record(tick, "manual_price", value=payload)
            elif name == "innovation":
                firm_id, cost_multiplier, tfp_multiplier, adopt_at = payload
                self.innovation.schedule(
                    self.firms.get(firm_id),
                    tick,
                    cost_multiplier=cost_multiplier,
                    tfp_multiplier=tfp_multiplier,
                    adopt_at=adopt_at,
                )
            elif name == "feedback":
                self.demand.feedback_strength = payload
                self.events.record(tick, "feedback_strength", value=payload)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def run(self, n_ticks: Optional[int] = None) -> SessionSummary:
        n_ticks = int(self.config.N_TICKS if n_ticks is None else n_ticks)
        self._last_tick_of_run = self.tick_count + n_ticks
        print(f"[{self.run_id}] Starting simulation...")
        for _ in range(n_ticks):
            self.tick()
        summary = self.summary()
        print(
            f"[{self.run_id}] Simulation finished after {self.tick_count} ticks "
            f"(mean efficiency {summary.mean_efficiency:.3f}, final price {summary.final_price:.3f})."
        )
        return summary

    def tick(self) -> MetricsPoint:
        """Advance one step and return its metrics record.

        Random draws are consumed in a fixed order: consumers, observations,
        one perceived-demand draw per Final firm, Final-tier orders, upstream
        production, order resolution, innovations.
        """
        self.tick_count += 1
        t = self.tick_count
        self._apply_commands(t)
        price = self.pricing.open_tick()

        self.demand.update_consumers(t, price, self.previous_price)
        demand = finite_or_zero(self.demand.aggregate_demand(price))
        oracle = finite_or_zero(self.demand.oracle_demand(price))
        self.demand.observe(price)
        faults: List[str] = []

        def perceive() -> float:
            value = finite_or_zero(self.demand.perceived_demand(price, demand))
            if self.demand.last_fault is not None:
                faults.append(self.demand.last_fault)
            return value

        for firm, deficit in self.firms.plan(perceive):
            self.ledger.request_restock(firm, deficit, t)
        perceived = self.firms.last_perceived
        if faults:
            self.events.record(t, "override_fault", price=price, message=faults[0], firms=len(faults))
        self.firms.produce_upstream(t)
        self.ledger.resolve(t)
        served = self.firms.serve(t, price)

        self.previous_price = price
        self.pricing.update(demand, served)
        self.innovation.step(t)
        self.ledger.sweep()
        self.ledger.enforce_cap(t)

        point = MetricsPoint(
            tick=t,
            price=price,
            demand=demand,
            served=served,
            efficiency=safe_ratio(served, max(1.0, demand)),
            perceived_demand=perceived,
            oracle_demand=oracle,
            consumer_surplus=finite_or_zero(self.demand.consumer_surplus(price)),
            shortage=max(0.0, demand - served),
            open_orders=len(self.ledger),
        )
        self.metrics.record(point)
        self._log_round_summary(point)
        return point

    def _log_round_summary(self, point: MetricsPoint) -> None:
        """Append a plain-text JSON record for quick diagnostics."""
        if not self.enable_round_logging or self.round_log_path is None:
            return
        if point.tick != self._last_tick_of_run and point.tick % self.round_log_interval != 0:
            return
        record = point.to_dict()
        record.update(
            run_id=self.run_id,
            price_mode=self.pricing.mode.value,
            next_price=self.pricing.price,
            rng_draws=self.rng.draws,
            events_recorded=self.events.total_recorded,
            override_faults=self.demand.override_faults,
        )
        for key, value in list(record.items()):
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                record[key] = 0.0
        with open(self.round_log_path, "a", encoding="utf-8") as log_file:
            log_file.write(json.dumps(record, default=float) + "\n")

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------
    def survey_sample(self, sample_size: int) -> SurveyEstimate:
        """Fit ``quantity = intercept + slope * price`` on a noisy consumer sample.

        Only random draws are consumed; consumers and firms are untouched.
        """
        sample_size = int(sample_size)
        if sample_size < 1:
            raise ValueError(f"Survey sample size must be positive, got {sample_size}.")
        prices, quantities = self.demand.survey(self.pricing.price, sample_size)
        intercept, slope = ols_line(prices, quantities)
        self.events.record(self.tick_count, "survey", sample_size=sample_size, intercept=intercept, slope=slope)
        return SurveyEstimate(
            intercept=intercept,
            slope=slope,
            sample_size=sample_size,
            prices=tuple(float(p) for p in prices),
            quantities=tuple(float(q) for q in quantities),
        )

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------
    @property
    def price(self) -> float:
        """Price the next tick will clear at (before any queued command)."""
        return self.pricing.price

    def snapshot(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "tick": self.tick_count,
            "price": self.pricing.price,
            "price_mode": self.pricing.mode.value,
            "manual_price": self.pricing.manual_price,
            "rng": {"seed": self.rng.seed, "draws": self.rng.draws},
            "consumers": len(self.demand.consumers),
            "firms": {tier.value: len(self.firms.tier(tier)) for tier in FirmTier},
            "open_orders": len(self.ledger),
            "innovations": len(self.innovation.innovations),
            "pending_commands": len(self._commands),
            "override_active": self.demand.override is not None,
            "balance": self.metrics.balance_signal(),
        }

    def firm_records(self, tier: Optional[FirmTier] = None) -> List[Dict[str, Any]]:
        firms = self.firms.tier(FirmTier(tier)) if tier is not None else list(self.firms)
        return [firm.to_record() for firm in firms]

    def firm_history(self, firm_id: str) -> List[Tuple[int, float]]:
        firm = self.firms.get(firm_id)
        if firm is None:
            raise KeyError(f"Unknown firm '{firm_id}'.")
        return list(firm.history)

    def active_orders(self) -> List[Dict[str, Any]]:
        return [order.to_record() for order in self.ledger.orders.values()]

    def innovation_records(self) -> List[Dict[str, Any]]:
        records = []
        for innovation in self.innovation.innovations:
            record = asdict(innovation)
            record["tier"] = innovation.tier.value
            records.append(record)
        return records

    def recent_events(self, n: int = 200) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self.events.recent(n)]

    def observations(self) -> List[Tuple[float, float]]:
        return list(self.demand.observations)

    def last_service(self) -> List[Dict[str, float]]:
        return [dict(record) for record in self.firms.last_service]

    def series(self) -> List[Dict[str, Any]]:
        return self.metrics.to_records()

    def table(self) -> pd.DataFrame:
        return self.metrics.table()

    def summary(self) -> SessionSummary:
        return self.metrics.summarize(aggregate_profit=self.firms.aggregate_profit())

    # ------------------------------------------------------------------
    # Artefacts
    # ------------------------------------------------------------------
    def save_results(self, directory: Optional[str] = None) -> Dict[str, str]:
        """Write the series, events, summary and configuration of the run."""
        target = directory or self.run_dir
        if target is None:
            raise ValueError("No output directory configured for this simulation.")
        os.makedirs(target, exist_ok=True)
        paths = {
            "series_csv": os.path.join(target, "series.csv"),
            "series_json": os.path.join(target, "series.json"),
            "events": os.path.join(target, "events.jsonl"),
            "summary": os.path.join(target, "summary.json"),
            "config": os.path.join(target, "config.json"),
        }
        self.table().to_csv(paths["series_csv"], index=False)
        with open(paths["series_json"], "w", encoding="utf-8") as handle:
            json.dump(self.series(), handle, indent=2, default=float)
        with open(paths["events"], "w", encoding="utf-8") as handle:
            for record in self.events.to_records():
                handle.write(json.dumps(record, default=_json_default) + "\n")
        summary = self.summary().to_dict()
        summary.update(run_id=self.run_id, initial_state=self.initial_state, snapshot=self.snapshot())
        with open(paths["summary"], "w", encoding="utf-8") as handle:
            json.dump(summary, handle, indent=2, default=_json_default)
        with open(paths["config"], "w", encoding="utf-8") as handle:
            json.dump(self.config.snapshot(), handle, indent=2, sort_keys=True, default=_json_default)
        return paths


def _json_default(value: Any) -> Any:
    if hasattr(value, "value"):
        return value.value
    if isinstance(value, (set, tuple)):
        return list(value)
    return float(value)


def initialize(seed: int, config: Optional[SupplyChainConfig] = None, **kwargs: Any) -> SupplyChainSimulation:
    """Build a fresh simulation state for ``seed``."""
    return SupplyChainSimulation(config, seed=seed, **kwargs)


def tick(state: SupplyChainSimulation) -> MetricsPoint:
    return state.tick()


def survey_sample(state: SupplyChainSimulation, sample_size: int) -> SurveyEstimate:
    return state.survey_sample(sample_size)


__all__ = ["SupplyChainSimulation", "initialize", "tick", "survey_sample"]
