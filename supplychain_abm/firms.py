"""
Firm tiers for the supply chain ABM.

The three tiers share one ``Firm`` record and differ only in who they buy
from and sell to:

- Final tier (PBC) firms each draw their own perceived demand, take a
  share in proportion to ``A * capacity``, plan ``planned = perceived *
  share`` and order the deficit against inventory from a random
  Intermediate firm.
- Intermediate (PFP) and Raw (PMP) tiers produce autonomously every tick,
  ``capacity * U(0.4, 1.0)``, independent of downstream demand.
- Once the ledger has resolved the tick's orders, Final firms serve
  ``min(planned, inventory, capacity)`` out of carried inventory.

At start-up the Final tier is calibrated so that aggregate capacity matches
the noise-free aggregate demand at the opening price (or, with
``CALIBRATION_TARGET="price"``, the opening price is moved until it does).
"""

from __future__ import annotations

import collections
from typing import Callable, Dict, Iterator, List, Optional, Tuple

import numpy as np

from .config import SupplyChainConfig
from .models import Firm, FirmTier
from .random_source import RandomSource

TIER_PREFIX = {
    FirmTier.FINAL: "PBC",
    FirmTier.INTERMEDIATE: "PFP",
    FirmTier.RAW: "PMP",
}


class FirmTiers:
    """Owns every firm of the run, grouped by tier in creation order."""

    def __init__(self, config: SupplyChainConfig, rng: RandomSource):
        self.config = config
        self.rng = rng
        self.tiers: Dict[FirmTier, List[Firm]] = {tier: [] for tier in FirmTier}
        self._index: Dict[str, Firm] = {}
        self._explicit_inventory: Dict[str, bool] = {}
        self.last_service: List[Dict[str, float]] = []
        self.calibration_iterations = 0
        self.calibration_converged = True
        self.last_perceived = 0.0

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def spawn(self) -> "FirmTiers":
        cfg = self.config
        specs = cfg.FIRM_SPECS or {}
        counts = {}
        for tier in FirmTier:
            if tier.value not in specs:
                counts[tier] = self.rng.integer_range(cfg.FIRM_COUNT_RANGES[tier.value])
        for tier in FirmTier:
            if tier.value in specs:
                for spec in specs[tier.value]:
                    self._add_explicit(tier, spec)
            else:
                for _ in range(counts[tier]):
                    self._add_random(tier)
        return self

    def _new_firm(self, tier: FirmTier, A: float, capacity: float, marginal_cost: float) -> Firm:
        firm = Firm(
            id=f"{TIER_PREFIX[tier]}{len(self.tiers[tier])}",
            tier=tier,
            A=float(A),
            capacity=float(capacity),
            marginal_cost=float(marginal_cost),
            history=collections.deque(maxlen=int(self.config.FIRM_HISTORY_DEPTH)),
        )
        self.tiers[tier].append(firm)
        self._index[firm.id] = firm
        return firm

    def _add_random(self, tier: FirmTier) -> Firm:
        cfg = self.config
        A = self.rng.uniform_range(cfg.FIRM_PRODUCTIVITY_RANGE)
        if tier is FirmTier.FINAL:
            # Final capacity is a placeholder until calibration
            capacity = float(cfg.FIRM_CAPACITY_RANGES[tier.value][0])
        else:
            capacity = self.rng.uniform_range(cfg.FIRM_CAPACITY_RANGES[tier.value])
        marginal_cost = self.rng.uniform_range(cfg.FIRM_COST_RANGES[tier.value])
        firm = self._new_firm(tier, A, capacity, marginal_cost)
        firm.inventory = capacity * self._inventory_ratio(tier)
        self._explicit_inventory[firm.id] = False
        return firm

    def _add_explicit(self, tier: FirmTier, spec: Dict[str, float]) -> Firm:
        capacity = float(spec.get("capacity", 1.0))
        firm = self._new_firm(
            tier,
            spec.get("A", 1.0),
            capacity,
            spec.get("marginal_cost", 0.5),
        )
        if "inventory" in spec:
            firm.inventory = float(spec["inventory"])
            self._explicit_inventory[firm.id] = True
        else:
            firm.inventory = capacity * self._inventory_ratio(tier)
            self._explicit_inventory[firm.id] = False
        return firm

    def _inventory_ratio(self, tier: FirmTier) -> float:
        return float((self.config.INITIAL_INVENTORY_RATIOS or {}).get(tier.value, 0.0))

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def tier(self, tier: FirmTier) -> List[Firm]:
        return self.tiers[tier]

    def get(self, firm_id: str) -> Optional[Firm]:
        return self._index.get(firm_id)

    def __iter__(self) -> Iterator[Firm]:
        for tier in FirmTier:
            yield from self.tiers[tier]

    def __len__(self) -> int:
        return len(self._index)

    def total_capacity(self, tier: FirmTier = FirmTier.FINAL) -> float:
        return float(sum(firm.capacity for firm in self.tiers[tier]))

    # ------------------------------------------------------------------
    # Initial equilibrium
    # ------------------------------------------------------------------
    def calibrate(self, oracle_demand, price: float) -> float:
        """Match Final-tier capacity and demand at start-up; returns the price.

        ``oracle_demand`` maps a price to noise-free aggregate demand.
        """
        target = self.config.CALIBRATION_TARGET
        self.calibration_converged = True
        if target == "capacity":
            demand = float(oracle_demand(price))
            self._calibrate_capacity(demand)
            self.calibration_converged = self._within_tolerance(demand, self.total_capacity())
            return price
        if target == "price":
            price = self._calibrate_price(oracle_demand, price)
            self.calibration_converged = self._within_tolerance(
                float(oracle_demand(price)), self.total_capacity()
            )
            return price
        return price

    def _within_tolerance(self, demand: float, supply: float) -> bool:
        if supply <= 0:
            return demand <= 0
        return abs(demand - supply) <= float(self.config.CALIBRATION_TOLERANCE) * supply

    def _calibrate_capacity(self, demand: float) -> None:
        cfg = self.config
        firms = self.tiers[FirmTier.FINAL]
        if not firms:
            return
        total_a = sum(firm.A for firm in firms)
        weights = [firm.A / total_a if total_a > 0 else 1.0 / len(firms) for firm in firms]
        floor = float(cfg.MIN_FINAL_CAPACITY)
        tolerance = float(cfg.CALIBRATION_TOLERANCE)
        iterations = 0
        while iterations < int(cfg.CALIBRATION_MAX_ITERATIONS):
            supply = self.total_capacity()
            if supply > 0 and abs(demand - supply) <= tolerance * supply:
                break
            if supply <= 0:
                for firm, weight in zip(firms, weights):
                    firm.capacity = max(floor, demand * weight)
            else:
                factor = demand / supply
                for firm in firms:
                    firm.capacity = max(floor, firm.capacity * factor)
            iterations += 1
        self.calibration_iterations = iterations
        ratio = self._inventory_ratio(FirmTier.FINAL)
        for firm in firms:
            if not self._explicit_inventory.get(firm.id, False):
                firm.inventory = firm.capacity * ratio

    def _calibrate_price(self, oracle_demand, price: float) -> float:
        """Bracket then bisect the opening price until demand meets capacity."""
        cfg = self.config
        supply = self.total_capacity()
        floor = float(cfg.PRICE_FLOOR)
        if supply <= 0:
            return price
        tolerance = float(cfg.CALIBRATION_TOLERANCE) * supply
        budget = int(cfg.CALIBRATION_MAX_ITERATIONS)
        iterations = 0

        def excess(p: float) -> float:
            return float(oracle_demand(p)) - supply

        gap = excess(price)
        if abs(gap) <= tolerance:
            self.calibration_iterations = 0
            return price
        if gap > 0:
            low, high = price, price
            while excess(high) > 0 and iterations < budget:
                low, high = high, high * 2.0
                iterations += 1
        else:
            low, high = price, price
            while excess(low) < 0 and low > floor and iterations < budget:
                low, high = max(floor, low / 2.0), low
                iterations += 1
        best = price
        best_gap = abs(gap)
        for candidate in (low, high):
            if abs(excess(candidate)) < best_gap:
                best, best_gap = candidate, abs(excess(candidate))
        while best_gap > tolerance and iterations < budget:
            mid = 0.5 * (low + high)
            gap = excess(mid)
            iterations += 1
            if abs(gap) < best_gap:
                best, best_gap = mid, abs(gap)
            if gap > 0:
                low = mid
            else:
                high = mid
        self.calibration_iterations = iterations
        return max(floor, best)

    # ------------------------------------------------------------------
    # Per-tick behaviour
    # ------------------------------------------------------------------
    def plan(self, perceive: Callable[[], float]) -> List[Tuple[Firm, float]]:
        """Set each Final firm's target; return ``(firm, deficit)`` pairs to order.

        ``perceive`` is called once per firm, in tier order, so every firm
        plans against its own estimate of total demand. The mean estimate is
        kept in ``last_perceived``.
        """
        firms = self.tiers[FirmTier.FINAL]
        self.last_perceived = 0.0
        if not firms:
            return []
        weights = np.array([firm.A * firm.capacity for firm in firms], dtype=float)
        total = float(weights.sum())
        if total > 0:
            shares = weights / total
        else:
            shares = np.full(len(firms), 1.0 / len(firms))
        deficits = []
        estimates = []
        for firm, share in zip(firms, shares):
            perceived_total = float(perceive())
            estimates.append(perceived_total)
            firm.planned = max(0.0, perceived_total * float(share))
            if firm.planned > firm.inventory + 1e-6:
                deficits.append((firm, firm.planned - firm.inventory))
        self.last_perceived = float(np.mean(estimates))
        return deficits

    def produce_upstream(self, tick: int) -> float:
        """Autonomous production of the Intermediate and Raw tiers."""
        produced_total = 0.0
        for tier in (FirmTier.INTERMEDIATE, FirmTier.RAW):
            for firm in self.tiers[tier]:
                produced = max(0.0, firm.capacity * self.rng.uniform_range(self.config.UPSTREAM_OUTPUT_RANGE))
                firm.inventory += produced
                firm.record_production(tick, produced)
                produced_total += produced
        return produced_total

    def serve(self, tick: int, price: float) -> float:
        """Final firms serve out of carried inventory; returns total served."""
        served_total = 0.0
        service = []
        for firm in self.tiers[FirmTier.FINAL]:
            available = firm.inventory
            served = max(0.0, min(firm.planned, available, firm.capacity))
            firm.inventory = max(0.0, available - served)
            firm.cash += (price - firm.marginal_cost) * served
            firm.record_production(tick, served)
            served_total += served
            service.append(
                {
                    "firm_id": firm.id,
                    "planned": firm.planned,
                    "inventory_before": available,
                    "capacity": firm.capacity,
                    "served": served,
                }
            )
        self.last_service = service
        return served_total

    def aggregate_profit(self) -> float:
        return float(sum(firm.cash for firm in self))
