"""
Metrics recorder, event log and end-of-session statistics.

The recorder keeps two views of the per-tick ``MetricsPoint`` series: a
bounded rolling window for live display (oldest points evicted once
``HISTORY_WINDOW`` is exceeded) and the full run series used for export and
for the session summary. Discrete events live in ``EventLog``, a soft-capped
list trimmed to the most recent ``EVENT_LOG_TRIM_TO`` entries once it grows
past ``EVENT_LOG_CAP``.

Session statistics
------------------
- means of price, demand, served and efficiency;
- population variance of price and demand;
- cumulative regret ``sum |served - oracle_demand|`` where the oracle is the
  noise-free hidden demand at the price the market actually cleared at;
- welfare proxy ``sum (consumer_surplus - price * served)``;
- tracking efficiency ``1 - sum |served - demand| / sum demand``.
"""

from __future__ import annotations

import collections
from dataclasses import asdict, dataclass
from typing import Any, Deque, Dict, Iterator, List, Optional

import numpy as np
import pandas as pd

from .config import SupplyChainConfig
from .models import MetricsPoint, SimulationEvent
from .utils import safe_mean, safe_ratio, safe_variance

TABLE_COLUMNS = ["tick", "price", "demand", "served", "efficiency"]


class EventLog:
    """Discrete simulation events with a soft cap."""

    def __init__(self, cap: int = 5000, trim_to: int = 2000):
        self.cap = int(cap)
        self.trim_to = int(trim_to)
        self._events: List[SimulationEvent] = []
        self.total_recorded = 0
        self.counts: Dict[str, int] = collections.Counter()

    def record(self, tick: int, kind: str, **detail: Any) -> SimulationEvent:
        event = SimulationEvent(tick=int(tick), kind=kind, detail=detail)
        self._events.append(event)
        self.total_recorded += 1
        self.counts[kind] += 1
        if len(self._events) > self.cap:
            self._events = self._events[-self.trim_to:]
        return event

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[SimulationEvent]:
        return iter(list(self._events))

    def recent(self, n: int = 200) -> List[SimulationEvent]:
        return self._events[-n:] if n > 0 else []

    def of_kind(self, kind: str) -> List[SimulationEvent]:
        return [event for event in self._events if event.kind == kind]

    def to_records(self) -> List[Dict[str, Any]]:
        return [event.to_dict() for event in self._events]


@dataclass(frozen=True)
class SessionSummary:
    """End-of-session statistics derived from the full tick series."""

    ticks: int
    mean_price: float
    mean_demand: float
    mean_served: float
    mean_efficiency: float
    price_variance: float
    demand_variance: float
    regret: float
    regret_ratio: float
    welfare: float
    tracking_efficiency: float
    balance: str
    final_price: float
    aggregate_profit: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MetricsRecorder:
    """Accumulates ``MetricsPoint`` records for live and final reporting."""

    def __init__(self, config: SupplyChainConfig):
        self.config = config
        self.window: Deque[MetricsPoint] = collections.deque(maxlen=int(config.HISTORY_WINDOW))
        self.series: List[MetricsPoint] = []

    def record(self, point: MetricsPoint) -> MetricsPoint:
        self.window.append(point)
        self.series.append(point)
        return point

    def __len__(self) -> int:
        return len(self.series)

    @property
    def latest(self) -> Optional[MetricsPoint]:
        return self.series[-1] if self.series else None

    def live(self, n: Optional[int] = None) -> List[MetricsPoint]:
        """Most recent points of the rolling window (all of it by default)."""
        points = list(self.window)
        if n is not None:
            points = points[-n:] if n > 0 else []
        return points

    def to_records(self) -> List[Dict[str, Any]]:
        """Full series as structured records (JSON export surface)."""
        return [point.to_dict() for point in self.series]

    def to_frame(self) -> pd.DataFrame:
        if not self.series:
            return pd.DataFrame(columns=list(MetricsPoint.__dataclass_fields__))
        return pd.DataFrame(self.to_records())

    def table(self) -> pd.DataFrame:
        """Flat ``(tick, price, demand, served, efficiency)`` table (CSV export surface)."""
        frame = self.to_frame()
        return frame[TABLE_COLUMNS] if not frame.empty else pd.DataFrame(columns=TABLE_COLUMNS)

    def balance_signal(self) -> str:
        """``shortage`` / ``excess`` / ``balanced`` from the last served quantity."""
        if len(self.series) < 5:
            return "insufficient_data"
        window = int(self.config.RECENT_WINDOW)
        recent_demand = safe_mean([point.demand for point in self.series[-window:]])
        last_served = self.series[-1].served
        if last_served < 0.9 * recent_demand:
            return "shortage"
        if last_served > 1.2 * recent_demand:
            return "excess"
        return "balanced"

    def summarize(self, aggregate_profit: float = 0.0) -> SessionSummary:
        frame = self.to_frame()
        if frame.empty:
            return SessionSummary(
                ticks=0,
                mean_price=0.0,
                mean_demand=0.0,
                mean_served=0.0,
                mean_efficiency=0.0,
                price_variance=0.0,
                demand_variance=0.0,
                regret=0.0,
                regret_ratio=0.0,
                welfare=0.0,
                tracking_efficiency=0.0,
                balance="insufficient_data",
                final_price=0.0,
                aggregate_profit=float(aggregate_profit),
            )
        served = frame["served"].to_numpy(dtype=float)
        demand = frame["demand"].to_numpy(dtype=float)
        oracle = frame["oracle_demand"].to_numpy(dtype=float)
        price = frame["price"].to_numpy(dtype=float)
        regret = float(np.abs(served - oracle).sum())
        welfare = float((frame["consumer_surplus"].to_numpy(dtype=float) - price * served).sum())
        tracking = 1.0 - safe_ratio(float(np.abs(served - demand).sum()), float(demand.sum()), default=1.0)
        return SessionSummary(
            ticks=int(len(frame)),
            mean_price=safe_mean(price),
            mean_demand=safe_mean(demand),
            mean_served=safe_mean(served),
            mean_efficiency=safe_mean(frame["efficiency"]),
            price_variance=safe_variance(price),
            demand_variance=safe_variance(demand),
            regret=regret,
            regret_ratio=safe_ratio(regret, float(oracle.sum())),
            welfare=welfare,
            tracking_efficiency=float(tracking),
            balance=self.balance_signal(),
            final_price=float(price[-1]),
            aggregate_profit=float(aggregate_profit),
        )
