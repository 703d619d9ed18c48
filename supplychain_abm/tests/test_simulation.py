"""Engine determinism, invariants, calibration and the command queue."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from supplychain_abm import simulation
from supplychain_abm.config import SupplyChainConfig
from supplychain_abm.models import FirmTier, MetricsPoint
from supplychain_abm.simulation import SupplyChainSimulation


def _scripted_run(cfg: SupplyChainConfig, n_ticks: int):
    sim = SupplyChainSimulation(cfg)
    points = []
    for t in range(1, n_ticks + 1):
        if t == 10:
            sim.set_price_mode("manual")
            sim.set_manual_price(1.8)
        if t == 15:
            sim.set_perceived_demand_override(lambda price: 300.0 / price)
        if t == 20:
            sim.set_price_mode("auto")
            sim.set_perceived_demand_override(None)
        points.append(sim.tick())
    return sim, points


def test_same_seed_and_commands_reproduce_the_run(small_config) -> None:
    first_sim, first = _scripted_run(small_config, 30)
    second_sim, second = _scripted_run(small_config, 30)
    assert first == second
    assert first_sim.rng.state() == second_sim.rng.state()
    assert first_sim.firm_records() == second_sim.firm_records()
    assert first_sim.active_orders() == second_sim.active_orders()


def test_different_seeds_diverge(small_config) -> None:
    first = SupplyChainSimulation(small_config, seed=1)
    second = SupplyChainSimulation(small_config, seed=2)
    assert [first.tick() for _ in range(5)] != [second.tick() for _ in range(5)]


def test_invariants_hold_every_tick(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    for _ in range(80):
        point = sim.tick()
        assert point.price >= small_config.PRICE_FLOOR
        assert point.demand >= 0.0
        assert point.served >= 0.0
        assert point.efficiency == pytest.approx(point.served / max(1.0, point.demand))
        assert point.shortage == pytest.approx(max(0.0, point.demand - point.served))
        for firm in sim.firms:
            assert firm.inventory >= 0.0
            assert firm.capacity >= 0.0
        for record in sim.last_service():
            assert record["served"] <= record["planned"] + 1e-9
            assert record["served"] <= record["inventory_before"] + 1e-9
            assert record["served"] <= record["capacity"] + 1e-9
        for order in sim.active_orders():
            assert order["due"] > order["created_at"]
            assert order["amount"] >= 0.0
    for record in sim.innovation_records():
        assert record["adopt_at"] >= record["scheduled_at"]
    snapshot = sim.snapshot()
    assert snapshot["tick"] == 80
    assert snapshot["consumers"] == small_config.N_CONSUMERS
    assert sum(snapshot["firms"].values()) == len(sim.firms)


def test_capacity_calibration_at_start(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    demand = sim.initial_state["oracle_demand"]
    capacity = sim.initial_state["final_capacity"]
    assert sim.price == small_config.INITIAL_PRICE
    assert abs(demand - capacity) <= 0.01 * capacity + 1e-9


def test_price_calibration_scenario() -> None:
    cfg = SupplyChainConfig(
        RANDOM_SEED=12345,
        N_CONSUMERS=350,
        CONSUMER_FAMILY_WEIGHTS={"linear": 1.0},
        CONSUMER_A_RANGE=(120.0, 120.0),
        CONSUMER_B_RANGE=(6.0, 6.0),
        CONSUMER_B_ZERO_PROB=0.0,
        CONSUMER_B_NEGATIVE_PROB=0.0,
        FIRM_SPECS={"final": [{"capacity": 1000.0}]},
        CALIBRATION_TARGET="price",
    )
    sim = SupplyChainSimulation(cfg)
    capacity = sim.firms.total_capacity(FirmTier.FINAL)
    assert capacity == 1000.0
    assert sim.price > cfg.INITIAL_PRICE
    assert abs(sim.demand.oracle_demand(sim.price) - capacity) < 0.01 * capacity
    assert abs(sim.demand.aggregate_demand(sim.price) - capacity) < 0.01 * capacity


def test_commands_apply_at_next_tick(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    sim.set_perceived_demand_override(lambda price: 123.0)
    assert sim.demand.override is None
    point = sim.tick()
    assert point.perceived_demand == pytest.approx(123.0)
    assert sim.events.of_kind("override_installed")


def test_faulty_override_does_not_abort_tick(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    sim.set_perceived_demand_override(lambda price: 1.0 / 0.0)
    point = sim.tick()
    assert point.perceived_demand == 0.0
    faults = sim.events.of_kind("override_fault")
    assert len(faults) == 1
    assert "ZeroDivisionError" in faults[0].detail["message"]
    assert faults[0].detail["firms"] == len(sim.firms.tier(FirmTier.FINAL))
    sim.set_perceived_demand_override(None)
    assert sim.tick().perceived_demand > 0.0


def test_final_firms_draw_separate_perceived_demand() -> None:
    cfg = SupplyChainConfig(
        N_CONSUMERS=60,
        CALIBRATION_TARGET="none",
        FIRM_SPECS={
            "final": [
                {"A": 1.0, "capacity": 100.0, "inventory": 0.0},
                {"A": 1.0, "capacity": 100.0, "inventory": 0.0},
                {"A": 1.0, "capacity": 100.0, "inventory": 0.0},
            ]
        },
    )
    sim = SupplyChainSimulation(cfg)
    point = sim.tick()
    factors = [firm.planned / (point.demand / 3.0) for firm in sim.firms.tier(FirmTier.FINAL)]
    assert len(set(factors)) == 3
    low, high = cfg.PERCEIVED_DEMAND_BAND
    assert all(low - 1e-9 <= factor <= high + 1e-9 for factor in factors)
    assert point.perceived_demand == pytest.approx(point.demand * sum(factors) / 3.0)


def test_unconverged_calibration_is_reported(capsys) -> None:
    cfg = SupplyChainConfig(
        N_CONSUMERS=50,
        CONSUMER_FAMILY_WEIGHTS={"linear": 1.0},
        CONSUMER_B_ZERO_PROB=1.0,
        CONSUMER_B_NEGATIVE_PROB=0.0,
        FIRM_SPECS={"final": [{"capacity": 10.0}]},
        CALIBRATION_TARGET="price",
    )
    sim = SupplyChainSimulation(cfg, run_id="flat")
    assert sim.initial_state["calibration_converged"] is False
    events = sim.events.of_kind("calibration_unconverged")
    assert len(events) == 1
    assert events[0].tick == 0
    assert events[0].detail["iterations"] == cfg.CALIBRATION_MAX_ITERATIONS
    assert "[flat] Calibration did not converge" in capsys.readouterr().out


def test_converged_calibration_records_no_event(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    assert sim.initial_state["calibration_converged"] is True
    assert not sim.events.of_kind("calibration_unconverged")


def test_override_must_be_callable(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    with pytest.raises(ValueError):
        sim.set_perceived_demand_override(42)


def test_installed_equation_drives_planning(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    curve = sim.install_demand_equation("q = a - b p", {"a": 1000, "b": 1})
    assert curve.a == 1000.0
    point = sim.tick()
    assert point.perceived_demand == pytest.approx(1000.0 - point.price)


def test_feedback_strength_command(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    sim.set_feedback_strength(0.5)
    sim.tick()
    assert sim.demand.feedback_strength == 0.5
    with pytest.raises(ValueError):
        sim.set_feedback_strength(float("inf"))


def test_survey_sample_fits_downward_slope() -> None:
    cfg = SupplyChainConfig(
        N_CONSUMERS=350,
        CONSUMER_FAMILY_WEIGHTS={"linear": 1.0},
        CONSUMER_A_RANGE=(120.0, 120.0),
        CONSUMER_B_RANGE=(6.0, 6.0),
        CONSUMER_B_ZERO_PROB=0.0,
        CONSUMER_B_NEGATIVE_PROB=0.0,
        FIRM_SPECS={"final": [{"capacity": 1000.0}]},
        CALIBRATION_TARGET="price",
    )
    sim = SupplyChainSimulation(cfg)
    coefficients = [(c.a, c.b) for c in sim.demand.consumers]
    draws = sim.rng.draws
    estimate = simulation.survey_sample(sim, 200)
    assert estimate.sample_size == 200
    assert len(estimate.prices) == len(estimate.quantities) == 200
    assert estimate.slope < 0.0
    assert sim.rng.draws > draws
    assert [(c.a, c.b) for c in sim.demand.consumers] == coefficients
    assert sim.tick_count == 0
    with pytest.raises(ValueError):
        sim.survey_sample(0)


def test_module_level_interface() -> None:
    state = simulation.initialize(7, SupplyChainConfig(N_CONSUMERS=30))
    assert state.config.RANDOM_SEED == 7
    point = simulation.tick(state)
    assert isinstance(point, MetricsPoint)
    assert point.tick == 1


def test_export_surfaces(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    for _ in range(6):
        sim.tick()
    table = sim.table()
    assert isinstance(table, pd.DataFrame)
    assert list(table.columns) == ["tick", "price", "demand", "served", "efficiency"]
    assert table["tick"].tolist() == [1, 2, 3, 4, 5, 6]
    records = sim.series()
    assert len(records) == 6
    assert set(records[0]) >= {"tick", "price", "demand", "served", "efficiency", "oracle_demand"}
    assert sim.observations()
    history = sim.firm_history(sim.firms.tier(FirmTier.FINAL)[0].id)
    assert [tick for tick, _ in history] == [1, 2, 3, 4, 5, 6]
    with pytest.raises(KeyError):
        sim.firm_history("missing")


def test_run_writes_round_log_and_results(tmp_path: Path, small_config) -> None:
    small_config.round_log_interval = 25
    sim = SupplyChainSimulation(small_config, output_dir=str(tmp_path), run_id="logged")
    summary = sim.run(30)
    assert summary.ticks == 30
    run_dir = tmp_path / "logged"
    lines = (run_dir / "run_log.jsonl").read_text(encoding="utf-8").strip().splitlines()
    assert [json.loads(line)["tick"] for line in lines] == [25, 30]
    paths = sim.save_results()
    for path in paths.values():
        assert Path(path).exists()
    saved = json.loads((run_dir / "summary.json").read_text(encoding="utf-8"))
    assert saved["ticks"] == 30
    assert saved["run_id"] == "logged"
    assert len(pd.read_csv(run_dir / "series.csv")) == 30


def test_save_results_requires_a_directory(small_config) -> None:
    sim = SupplyChainSimulation(small_config)
    with pytest.raises(ValueError):
        sim.save_results()
