"""
Order ledger: in-flight replenishment between tiers.

Every order moves through a small state machine::

    pending --(due, supplier covers amount)--> filled
    pending --(due, shortfall)---------------> escalated --(child resolves)--> filled | pending

A Final->Intermediate order that comes due against an Intermediate firm
without enough stock spawns exactly one Intermediate->Raw child for the
shortfall and waits for it. A Raw-tier child that comes due short of stock
either transfers what there is (``PARTIAL_FULFILLMENT``) or nothing at all,
and in both cases books an external replenishment for the Raw firm; the
child stays open with its due tick moved to the arrival of that delivery.
When a child fills, its parent is filled in the same tick if the
Intermediate firm now covers it.

Due orders are resolved upstream first (external arrivals, then Raw->
Intermediate, then Intermediate->Final) so that goods can cascade up the
chain within one tick. Filled and expired orders are swept at the end of
every tick; if the open ledger still exceeds ``MAX_ACTIVE_ORDERS`` the
oldest Final-tier requests are expired together with their open children.
"""

from __future__ import annotations

import collections
from typing import Dict, List, Optional

from .config import SupplyChainConfig
from .firms import FirmTiers
from .metrics import EventLog
from .models import Firm, FirmTier, Order, OrderRoute, OrderStatus
from .random_source import RandomSource

EXTERNAL_SOURCE = "external"

RESOLUTION_ORDER = (
    OrderRoute.EXTERNAL_TO_RAW,
    OrderRoute.INTERMEDIATE_TO_RAW,
    OrderRoute.FINAL_TO_INTERMEDIATE,
)


class OrderLedger:
    """Active orders keyed by id, in creation order."""

    def __init__(self, config: SupplyChainConfig, rng: RandomSource, firms: FirmTiers, events: EventLog):
        self.config = config
        self.rng = rng
        self.firms = firms
        self.events = events
        self.orders: Dict[int, Order] = {}
        self._next_id = 1
        self.stats = collections.Counter()

    def __len__(self) -> int:
        return len(self.orders)

    def get(self, order_id: Optional[int]) -> Optional[Order]:
        if order_id is None:
            return None
        return self.orders.get(order_id)

    def open_orders(self, route: Optional[OrderRoute] = None) -> List[Order]:
        return [
            order for order in self.orders.values()
            if order.is_open and (route is None or order.route is route)
        ]

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------
    def place(
        self,
        route: OrderRoute,
        source_id: str,
        supplier_id: str,
        amount: float,
        tick: int,
        origin_id: Optional[int] = None,
    ) -> Order:
        delay = self.rng.integer_range(self.config.DELAY_RANGES[route.value])
        order = Order(
            id=self._next_id,
            route=route,
            source_id=source_id,
            supplier_id=supplier_id,
            amount=max(0.0, float(amount)),
            created_at=tick,
            due=tick + max(1, delay),
            origin_id=origin_id,
        )
        self._next_id += 1
        self.orders[order.id] = order
        self.stats[f"placed_{route.value}"] += 1
        return order

    def request_restock(self, firm: Firm, deficit: float, tick: int) -> Optional[Order]:
        """Final firm orders ``deficit`` from a uniformly chosen Intermediate firm."""
        suppliers = self.firms.tier(FirmTier.INTERMEDIATE)
        if not suppliers or deficit <= 0:
            return None
        supplier = suppliers[self.rng.index(len(suppliers))]
        return self.place(OrderRoute.FINAL_TO_INTERMEDIATE, firm.id, supplier.id, deficit, tick)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def resolve(self, tick: int) -> int:
        """Resolve every open order due at ``tick``; returns the number filled."""
        filled_before = self.stats["filled"]
        for route in RESOLUTION_ORDER:
            due = [order for order in self.orders.values() if order.route is route and order.is_open and order.due <= tick]
            for order in due:
                if not order.is_open:
                    continue
                if route is OrderRoute.EXTERNAL_TO_RAW:
                    self._resolve_external(order, tick)
                elif route is OrderRoute.INTERMEDIATE_TO_RAW:
                    self._resolve_raw(order, tick)
                else:
                    self._resolve_intermediate(order, tick)
        return self.stats["filled"] - filled_before

    def _transfer(self, supplier: Firm, receiver: Optional[Firm], amount: float) -> None:
        supplier.inventory = max(0.0, supplier.inventory - amount)
        if receiver is not None:
            receiver.inventory += amount

    def _fill(self, order: Order, tick: int, kind: str = "order_filled") -> None:
        if order.status is OrderStatus.FILLED:
            return
        order.status = OrderStatus.FILLED
        order.filled_at = tick
        self.stats["filled"] += 1
        self.events.record(tick, kind, order=order.to_record())

    def _resolve_intermediate(self, order: Order, tick: int) -> None:
        supplier = self.firms.get(order.supplier_id)
        requester = self.firms.get(order.source_id)
        if supplier is None:
            return
        if supplier.inventory >= order.amount:
            self._transfer(supplier, requester, order.amount)
            self._fill(order, tick)
            return
        child = self.get(order.child_id)
        if order.status is OrderStatus.ESCALATED and child is not None and child.is_open:
            return
        raws = self.firms.tier(FirmTier.RAW)
        if not raws:
            return
        shortfall = max(0.0, order.amount - supplier.inventory)
        raw = raws[self.rng.index(len(raws))]
        child = self.place(OrderRoute.INTERMEDIATE_TO_RAW, supplier.id, raw.id, shortfall, tick, origin_id=order.id)
        order.status = OrderStatus.ESCALATED
        order.child_id = child.id
        self.stats["escalated"] += 1
        self.events.record(tick, "order_escalated", order=order.to_record(), child=child.to_record())

    def _resolve_raw(self, order: Order, tick: int) -> None:
        raw = self.firms.get(order.supplier_id)
        requester = self.firms.get(order.source_id)
        if raw is None:
            return
        if raw.inventory >= order.amount:
            self._transfer(raw, requester, order.amount)
            self._fill(order, tick)
            self._cascade(order, requester, tick)
            return
        if self.config.PARTIAL_FULFILLMENT and raw.inventory > 0:
            supplied = raw.inventory
            self._transfer(raw, requester, supplied)
            order.amount -= supplied
            self.stats["partial_transfers"] += 1
            self.events.record(tick, "order_partial", order=order.to_record(), supplied=supplied)
        arrival = self.place(OrderRoute.EXTERNAL_TO_RAW, EXTERNAL_SOURCE, raw.id, order.amount, tick)
        order.due = arrival.due
        self.stats["external_scheduled"] += 1
        self.events.record(tick, "external_replenishment_scheduled", order=arrival.to_record(), covering=order.id)

    def _resolve_external(self, order: Order, tick: int) -> None:
        raw = self.firms.get(order.supplier_id)
        if raw is not None:
            raw.inventory += order.amount
        self._fill(order, tick, kind="external_delivery")

    def _cascade(self, child: Order, intermediate: Optional[Firm], tick: int) -> None:
        parent = self.get(child.origin_id)
        if parent is None or not parent.is_open or intermediate is None:
            return
        if intermediate.inventory >= parent.amount:
            self._transfer(intermediate, self.firms.get(parent.source_id), parent.amount)
            self._fill(parent, tick, kind="order_filled_after_raw")
        else:
            parent.status = OrderStatus.PENDING

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------
    def sweep(self) -> int:
        """Drop filled and expired orders from the active ledger."""
        closed = [order_id for order_id, order in self.orders.items() if not order.is_open]
        for order_id in closed:
            del self.orders[order_id]
        return len(closed)

    def enforce_cap(self, tick: int) -> int:
        """Expire the oldest Final-tier requests while the ledger is over cap."""
        cap = int(self.config.MAX_ACTIVE_ORDERS)
        if len(self.orders) <= cap:
            return 0
        expired = 0
        for order in self.open_orders(OrderRoute.FINAL_TO_INTERMEDIATE):
            if len(self.orders) <= cap:
                break
            for victim in (self.get(order.child_id), order):
                if victim is not None and victim.is_open:
                    victim.status = OrderStatus.EXPIRED
                    del self.orders[victim.id]
                    expired += 1
            self.events.record(tick, "order_expired", order=order.to_record())
        self.stats["expired"] += expired
        return expired
