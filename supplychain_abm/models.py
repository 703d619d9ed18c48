"""
Core dataclasses used across the supply chain ABM.

This module defines the entities of the stylised three-tier economy:

- **Consumers** hold a hidden willingness-to-buy curve (a ``DemandCurve``
  tagged by ``DemandFamily``) and their own update countdowns.

- **Firms** belong to one of three tiers. Final-tier firms (PBC) sell
  consumer goods, intermediate-tier firms (PFP) supply them, and raw-tier
  firms (PMP) produce base inputs, optionally topped up by an unmodelled
  outside market.

- **Orders** are in-flight replenishment requests between adjacent tiers,
  resolved on their due tick and possibly escalated one tier down.

- **Innovations** are scheduled, later-adopted permanent multiplicative
  shifts of a firm's marginal cost and productivity.

- **MetricsPoint** is the flat per-tick record consumed by reporting, and
  **SimulationEvent** the discrete log entry.
"""

from __future__ import annotations

import collections
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Tuple


class FirmTier(str, Enum):
    FINAL = "final"
    INTERMEDIATE = "intermediate"
    RAW = "raw"


class DemandFamily(str, Enum):
    LINEAR = "linear"
    LOG = "log"
    EXP = "exp"
    POLY = "poly"
    LOGISTIC = "logistic"


class OrderRoute(str, Enum):
    FINAL_TO_INTERMEDIATE = "final_to_intermediate"
    INTERMEDIATE_TO_RAW = "intermediate_to_raw"
    EXTERNAL_TO_RAW = "external_to_raw"


class OrderStatus(str, Enum):
    PENDING = "pending"
    ESCALATED = "escalated"
    FILLED = "filled"
    EXPIRED = "expired"


class PriceMode(str, Enum):
    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class DemandCurve:
    """Closed-form demand curve ``q(p)``; ``c`` only applies to ``poly``.

    When ``c`` is None the quadratic term of a polynomial curve is derived
    from the slope as ``max(0.001, 0.01 * b)``.
    """

    family: DemandFamily
    a: float
    b: float
    c: Optional[float] = None

    def __call__(self, price: float) -> float:
        from .demand import evaluate_curve

        return float(evaluate_curve(self, price))


@dataclass(slots=True)
class Consumer:
    """A member of the fixed consumer population with a hidden demand curve."""

    id: str
    family: DemandFamily
    a: float
    b: float
    next_update_at: int
    next_change: Optional[int] = None
    last_update: int = 0

    @property
    def curve(self) -> DemandCurve:
        return DemandCurve(self.family, self.a, self.b)


@dataclass(slots=True)
class Innovation:
    """Scheduled productivity/cost shift; adoption is terminal."""

    id: str
    firm_id: str
    tier: FirmTier
    cost_multiplier: float
    tfp_multiplier: float
    scheduled_at: int
    adopt_at: int
    adopted: bool = False
    adopted_at: Optional[int] = None


@dataclass(slots=True)
class Firm:
    """A producer in one tier of the chain.

    Attributes
    ----------
    A : float
        Productivity multiplier; weights the Final-tier demand share and
        compounds with every adopted innovation.
    capacity : float
        Production ceiling per tick.
    inventory : float
        Tier-specific input stock, owned exclusively by the firm.
    planned : float
        This tick's production target (Final tier only).
    cash : float
        Illustrative running balance of revenue minus marginal cost.
    """

    id: str
    tier: FirmTier
    A: float
    capacity: float
    marginal_cost: float
    inventory: float = 0.0
    planned: float = 0.0
    cash: float = 0.0
    history: Deque[Tuple[int, float]] = field(default_factory=collections.deque)
    innovations: List[Innovation] = field(default_factory=list)

    def record_production(self, tick: int, quantity: float) -> None:
        self.history.append((tick, float(quantity)))

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tier": self.tier.value,
            "A": self.A,
            "capacity": self.capacity,
            "marginal_cost": self.marginal_cost,
            "inventory": self.inventory,
            "planned": self.planned,
            "cash": self.cash,
            "innovations_adopted": sum(1 for innov in self.innovations if innov.adopted),
            "innovations_pending": sum(1 for innov in self.innovations if not innov.adopted),
        }


@dataclass(slots=True)
class Order:
    """Replenishment request between adjacent tiers (or from outside to Raw)."""

    id: int
    route: OrderRoute
    source_id: str  # requesting (downstream) firm, or "external"
    supplier_id: str
    amount: float
    created_at: int
    due: int
    status: OrderStatus = OrderStatus.PENDING
    origin_id: Optional[int] = None
    child_id: Optional[int] = None
    filled_at: Optional[int] = None

    @property
    def filled(self) -> bool:
        return self.status is OrderStatus.FILLED

    @property
    def is_open(self) -> bool:
        return self.status in (OrderStatus.PENDING, OrderStatus.ESCALATED)

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "route": self.route.value,
            "from": self.source_id,
            "to": self.supplier_id,
            "amount": self.amount,
            "created_at": self.created_at,
            "due": self.due,
            "status": self.status.value,
            "origin_id": self.origin_id,
            "child_id": self.child_id,
            "filled_at": self.filled_at,
        }


@dataclass(frozen=True)
class MetricsPoint:
    """Flat per-tick record consumed by live and final reporting."""

    tick: int
    price: float
    demand: float
    served: float
    efficiency: float
    perceived_demand: float = 0.0
    oracle_demand: float = 0.0
    consumer_surplus: float = 0.0
    shortage: float = 0.0
    open_orders: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SimulationEvent:
    """Discrete log entry (order fill, escalation, innovation, ...)."""

    tick: int
    kind: str
    detail: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"tick": self.tick, "kind": self.kind, "detail": dict(self.detail)}


@dataclass(frozen=True)
class SurveyEstimate:
    """OLS fit ``quantity = intercept + slope * price`` over a noisy sample."""

    intercept: float
    slope: float
    sample_size: int
    prices: Tuple[float, ...] = ()
    quantities: Tuple[float, ...] = ()
