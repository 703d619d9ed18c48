"""Metrics recorder, event log and session statistics."""

from __future__ import annotations

import pytest

from supplychain_abm.config import SupplyChainConfig
from supplychain_abm.metrics import TABLE_COLUMNS, EventLog, MetricsRecorder
from supplychain_abm.models import MetricsPoint


def _point(tick, price, demand, served, oracle=0.0, surplus=0.0) -> MetricsPoint:
    return MetricsPoint(
        tick=tick,
        price=price,
        demand=demand,
        served=served,
        efficiency=served / max(1.0, demand),
        oracle_demand=oracle,
        consumer_surplus=surplus,
    )


def test_event_log_trims_to_most_recent() -> None:
    log = EventLog(cap=10, trim_to=4)
    for tick in range(11):
        log.record(tick, "order_filled", order=tick)
    assert len(log) == 4
    assert log.total_recorded == 11
    assert [event.tick for event in log] == [7, 8, 9, 10]
    assert log.counts["order_filled"] == 11
    assert log.to_records()[-1] == {"tick": 10, "kind": "order_filled", "detail": {"order": 10}}


def test_event_log_queries() -> None:
    log = EventLog()
    log.record(1, "innovation_scheduled", firm="PBC0")
    log.record(2, "order_filled")
    assert [event.kind for event in log.of_kind("order_filled")] == ["order_filled"]
    assert len(log.recent(1)) == 1
    assert log.recent(0) == []


def test_rolling_window_drops_oldest() -> None:
    recorder = MetricsRecorder(SupplyChainConfig(HISTORY_WINDOW=3))
    for tick in range(1, 6):
        recorder.record(_point(tick, 1.0, 10.0, 5.0))
    assert [point.tick for point in recorder.live()] == [3, 4, 5]
    assert [point.tick for point in recorder.live(2)] == [4, 5]
    assert len(recorder) == 5
    assert recorder.latest.tick == 5


def test_table_export() -> None:
    recorder = MetricsRecorder(SupplyChainConfig())
    assert list(recorder.table().columns) == TABLE_COLUMNS
    recorder.record(_point(1, 2.0, 10.0, 8.0))
    table = recorder.table()
    assert list(table.columns) == TABLE_COLUMNS
    assert table.iloc[0]["efficiency"] == pytest.approx(0.8)
    assert recorder.to_records()[0]["tick"] == 1


def test_session_summary() -> None:
    recorder = MetricsRecorder(SupplyChainConfig())
    recorder.record(_point(1, 2.0, 10.0, 8.0, oracle=9.0, surplus=30.0))
    recorder.record(_point(2, 4.0, 20.0, 20.0, oracle=18.0, surplus=50.0))
    summary = recorder.summarize(aggregate_profit=12.5)
    assert summary.ticks == 2
    assert summary.mean_price == pytest.approx(3.0)
    assert summary.mean_demand == pytest.approx(15.0)
    assert summary.mean_served == pytest.approx(14.0)
    assert summary.mean_efficiency == pytest.approx(0.9)
    assert summary.price_variance == pytest.approx(1.0)
    assert summary.demand_variance == pytest.approx(25.0)
    assert summary.regret == pytest.approx(3.0)
    assert summary.regret_ratio == pytest.approx(3.0 / 27.0)
    assert summary.welfare == pytest.approx((30.0 - 16.0) + (50.0 - 80.0))
    assert summary.tracking_efficiency == pytest.approx(1.0 - 2.0 / 30.0)
    assert summary.final_price == 4.0
    assert summary.aggregate_profit == 12.5
    assert summary.balance == "insufficient_data"


def test_empty_summary_is_defined() -> None:
    summary = MetricsRecorder(SupplyChainConfig()).summarize()
    assert summary.ticks == 0
    assert summary.regret == 0.0
    assert summary.to_dict()["balance"] == "insufficient_data"


@pytest.mark.parametrize(
    "served, expected",
    [(50.0, "shortage"), (130.0, "excess"), (100.0, "balanced")],
)
def test_balance_signal(served, expected) -> None:
    recorder = MetricsRecorder(SupplyChainConfig())
    for tick in range(1, 5):
        recorder.record(_point(tick, 1.0, 100.0, 100.0))
    recorder.record(_point(5, 1.0, 100.0, served))
    assert recorder.balance_signal() == expected
