"""Innovation scheduler for the supply chain ABM.

Innovations are drawn stochastically, scheduled for a later adoption tick and
then adopted irreversibly: ``marginal_cost *= cost_multiplier`` and
``A *= tfp_multiplier``. A firm may compound any number of adopted
innovations over its lifetime.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .config import SupplyChainConfig
from .firms import FirmTiers
from .metrics import EventLog
from .models import Firm, FirmTier, Innovation
from .random_source import RandomSource


class InnovationScheduler:
    """Schedules and adopts productivity/cost innovations."""

    def __init__(self, config: SupplyChainConfig, rng: RandomSource, firms: FirmTiers, events: EventLog):
        self.config = config
        self.rng = rng
        self.firms = firms
        self.events = events
        self.innovations: List[Innovation] = []
        self.adoptions_by_tier: Dict[str, int] = {tier.value: 0 for tier in FirmTier}

    def step(self, tick: int) -> List[Innovation]:
        """Roll for new innovations, then adopt everything that is due."""
        if self.config.INNOVATION_MODE == "single":
            self._roll_single(tick)
            adopted = []
            for firm in self.firms:
                adopted.extend(self._adopt_due(firm, tick))
            return adopted
        adopted = []
        probability = float(self.config.INNOVATION_PROBABILITY)
        for firm in self.firms:
            if self.rng.random() < probability:
                self.schedule(firm, tick)
            adopted.extend(self._adopt_due(firm, tick))
        return adopted

    def _roll_single(self, tick: int) -> Optional[Innovation]:
        populated = [tier for tier in FirmTier if self.firms.tier(tier)]
        if not populated:
            return None
        tier = populated[self.rng.index(len(populated))]
        candidates = self.firms.tier(tier)
        firm = candidates[self.rng.index(len(candidates))]
        if self.rng.random() < float(self.config.INNOVATION_SINGLE_PROBABILITY):
            return self.schedule(firm, tick)
        return None

    def schedule(
        self,
        firm: Firm,
        tick: int,
        cost_multiplier: Optional[float] = None,
        tfp_multiplier: Optional[float] = None,
        adopt_at: Optional[int] = None,
    ) -> Innovation:
        cfg = self.config
        if cost_multiplier is None:
            cost_multiplier = self.rng.uniform_range(cfg.INNOVATION_COST_RANGE)
        if tfp_multiplier is None:
            tfp_multiplier = self.rng.uniform_range(cfg.INNOVATION_TFP_RANGE)
        if adopt_at is None:
            adopt_at = tick + self.rng.integer_range(cfg.INNOVATION_ADOPTION_RANGE)
        innovation = Innovation(
            id=f"I{len(self.innovations) + 1}",
            firm_id=firm.id,
            tier=firm.tier,
            cost_multiplier=float(cost_multiplier),
            tfp_multiplier=float(tfp_multiplier),
            scheduled_at=tick,
            adopt_at=max(tick, int(adopt_at)),
        )
        firm.innovations.append(innovation)
        self.innovations.append(innovation)
        self.events.record(
            tick,
            "innovation_scheduled",
            firm=firm.id,
            innovation=innovation.id,
            cost_multiplier=innovation.cost_multiplier,
            tfp_multiplier=innovation.tfp_multiplier,
            adopt_at=innovation.adopt_at,
        )
        return innovation

    def _adopt_due(self, firm: Firm, tick: int) -> List[Innovation]:
        adopted = []
        for innovation in firm.innovations:
            if innovation.adopted or innovation.adopt_at > tick:
                continue
            firm.marginal_cost *= innovation.cost_multiplier
            firm.A *= innovation.tfp_multiplier
            innovation.adopted = True
            innovation.adopted_at = tick
            self.adoptions_by_tier[firm.tier.value] += 1
            self.events.record(
                tick,
                "innovation_adopted",
                firm=firm.id,
                innovation=innovation.id,
                marginal_cost=firm.marginal_cost,
                A=firm.A,
            )
            adopted.append(innovation)
        return adopted

    def pending(self) -> List[Innovation]:
        return [innovation for innovation in self.innovations if not innovation.adopted]
