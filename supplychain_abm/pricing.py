"""Price controller: multiplicative gap adjustment or an external pin."""

from __future__ import annotations

import math
from typing import Optional

from .config import SupplyChainConfig
from .models import PriceMode


class PriceController:
    """Holds the market price and the externally selected mode.

    In ``auto`` mode the price moves once per tick by
    ``price * (1 + gain * (demand - served) / max(1, demand))``; in
    ``manual`` mode it is pinned to the supplied value. Both are floored.
    """

    def __init__(self, config: SupplyChainConfig, price: Optional[float] = None):
        self.config = config
        self.floor = float(config.PRICE_FLOOR)
        self.gain = float(config.PRICE_ADJUST_GAIN)
        self.price = max(self.floor, float(config.INITIAL_PRICE if price is None else price))
        self.mode = PriceMode.AUTO
        self.manual_price: Optional[float] = None

    def set_mode(self, mode) -> PriceMode:
        self.mode = PriceMode(mode)
        if self.mode is PriceMode.MANUAL and self.manual_price is None:
            self.manual_price = self.price
        return self.mode

    def set_manual_price(self, value: float) -> None:
        self.manual_price = float(value)

    def pinned(self) -> float:
        return max(self.floor, float(self.manual_price if self.manual_price is not None else self.price))

    def open_tick(self) -> float:
        """Price the market clears at this tick."""
        if self.mode is PriceMode.MANUAL:
            self.price = self.pinned()
        return self.price

    def update(self, demand: float, served: float) -> float:
        """Apply the end-of-tick adjustment; returns the next tick's price."""
        if self.mode is PriceMode.MANUAL:
            self.price = self.pinned()
            return self.price
        gap = (demand - served) / max(1.0, demand)
        candidate = self.price * (1.0 + self.gain * gap)
        if not math.isfinite(candidate):
            candidate = self.price
        self.price = max(self.floor, candidate)
        return self.price
