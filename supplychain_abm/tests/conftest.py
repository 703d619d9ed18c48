"""Shared fixtures for the supply chain ABM test-suite."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
PARENT = ROOT.parent
for candidate in (PARENT, ROOT):
    path_str = str(candidate)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

import pytest

from supplychain_abm.config import SupplyChainConfig


@pytest.fixture
def small_config() -> SupplyChainConfig:
    """Default economy with a reduced consumer population."""
    return SupplyChainConfig(N_CONSUMERS=60, N_TICKS=40)


@pytest.fixture
def chain_config() -> SupplyChainConfig:
    """One firm per tier with explicit stocks and no start-up calibration."""
    return SupplyChainConfig(
        N_CONSUMERS=30,
        CALIBRATION_TARGET="none",
        FIRM_SPECS={
            "final": [{"A": 1.0, "capacity": 100.0, "marginal_cost": 0.5, "inventory": 0.0}],
            "intermediate": [{"A": 1.0, "capacity": 0.0, "marginal_cost": 0.3, "inventory": 10.0}],
            "raw": [{"A": 1.0, "capacity": 0.0, "marginal_cost": 0.1, "inventory": 0.0}],
        },
    )
