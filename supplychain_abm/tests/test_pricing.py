"""Price controller modes and the manual pin scenario."""

from __future__ import annotations

import pytest

from supplychain_abm.config import SupplyChainConfig
from supplychain_abm.models import PriceMode
from supplychain_abm.pricing import PriceController
from supplychain_abm.simulation import SupplyChainSimulation


def test_auto_mode_moves_with_the_gap() -> None:
    controller = PriceController(SupplyChainConfig())
    assert controller.update(demand=100.0, served=50.0) == pytest.approx(1.04)
    assert controller.update(demand=100.0, served=150.0) == pytest.approx(1.04 * 0.96)


def test_zero_demand_leaves_price_unchanged() -> None:
    controller = PriceController(SupplyChainConfig(), price=3.0)
    assert controller.update(demand=0.0, served=0.0) == 3.0


def test_price_never_drops_below_floor() -> None:
    cfg = SupplyChainConfig()
    controller = PriceController(cfg, price=cfg.PRICE_FLOOR)
    assert controller.update(demand=0.0, served=1000.0) == cfg.PRICE_FLOOR


def test_manual_mode_pins_price() -> None:
    controller = PriceController(SupplyChainConfig())
    controller.set_mode("manual")
    controller.set_manual_price(2.5)
    assert controller.open_tick() == 2.5
    assert controller.update(demand=1000.0, served=0.0) == 2.5
    controller.set_manual_price(-4.0)
    assert controller.open_tick() == controller.floor


def test_manual_mode_without_value_keeps_current_price() -> None:
    controller = PriceController(SupplyChainConfig(), price=1.7)
    assert controller.set_mode(PriceMode.MANUAL) is PriceMode.MANUAL
    assert controller.update(demand=500.0, served=0.0) == 1.7


def test_unknown_mode_rejected() -> None:
    with pytest.raises(ValueError):
        PriceController(SupplyChainConfig()).set_mode("bogus")


def test_manual_price_pinned_through_the_engine() -> None:
    cfg = SupplyChainConfig(N_CONSUMERS=60)
    sim = SupplyChainSimulation(cfg)
    for _ in range(4):
        sim.tick()
    sim.set_price_mode("manual")
    sim.set_manual_price(2.5)
    assert sim.pricing.mode is PriceMode.AUTO  # queued until the next tick
    points = [sim.tick() for _ in range(5, 21)]
    assert [point.tick for point in points] == list(range(5, 21))
    assert all(point.price == max(cfg.PRICE_FLOOR, 2.5) for point in points)

    sim.set_price_mode("auto")
    sim.tick()
    assert sim.metrics.latest.price == 2.5


def test_engine_rejects_invalid_price_commands() -> None:
    sim = SupplyChainSimulation(SupplyChainConfig(N_CONSUMERS=10))
    with pytest.raises(ValueError):
        sim.set_price_mode("sometimes")
    with pytest.raises(ValueError):
        sim.set_manual_price(float("nan"))
