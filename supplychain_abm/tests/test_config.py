"""Configuration validation, overrides and scenario profiles."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from supplychain_abm.config import (
    ConfigurationError,
    SupplyChainConfig,
    apply_profile,
    get_profile,
    list_profiles,
    load_profile,
)
from supplychain_abm.simulation import SupplyChainSimulation


def test_default_config_is_valid() -> None:
    cfg = SupplyChainConfig()
    assert cfg.validate() is cfg


def test_validate_collects_every_problem() -> None:
    cfg = SupplyChainConfig()
    cfg.CONSUMER_A_RANGE = (10.0, 5.0)
    cfg.N_CONSUMERS = 0
    cfg.INNOVATION_PROBABILITY = 1.5
    with pytest.raises(ConfigurationError) as excinfo:
        cfg.validate()
    problems = excinfo.value.problems
    assert len(problems) >= 3
    assert any("CONSUMER_A_RANGE" in problem for problem in problems)
    assert any("N_CONSUMERS" in problem for problem in problems)
    assert any("INNOVATION_PROBABILITY" in problem for problem in problems)


def test_configuration_error_is_value_error() -> None:
    assert issubclass(ConfigurationError, ValueError)


@pytest.mark.parametrize(
    "overrides",
    [
        {"DELAY_RANGES.final_to_intermediate": [0, 5]},
        {"PRICE_FLOOR": 0.0},
        {"INITIAL_PRICE": 0.001},
        {"EVENT_LOG_TRIM_TO": 5000},
        {"CALIBRATION_TARGET": "magic"},
        {"INNOVATION_MODE": "sometimes"},
        {"INNOVATION_COST_RANGE": (0.9, 1.1)},
        {"INNOVATION_TFP_RANGE": (0.9, 1.1)},
        {"FIRM_COUNT_RANGES.raw": (0, 3)},
        {"CONSUMER_FAMILY_WEIGHTS": {"linear": 1.0, "cubic": 1.0}},
        {"FIRM_SPECS": {"final": [{"capacity": -1.0}]}},
    ],
)
def test_invalid_settings_are_rejected(overrides) -> None:
    cfg = SupplyChainConfig().copy_with_overrides(overrides)
    with pytest.raises(ConfigurationError):
        cfg.validate()


def test_invalid_config_rejected_before_state_is_built() -> None:
    cfg = SupplyChainConfig(CONSUMER_UPDATE_RANGE=(90, 30))
    with pytest.raises(ConfigurationError):
        SupplyChainSimulation(cfg)


def test_negative_seed_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        SupplyChainSimulation(SupplyChainConfig(N_CONSUMERS=10), seed=-1)


def test_copy_with_overrides_leaves_original_untouched() -> None:
    base = SupplyChainConfig()
    updated = base.copy_with_overrides(
        {"N_CONSUMERS": 350, "DELAY_RANGES.external_to_raw": [12, 30]}
    )
    assert updated.N_CONSUMERS == 350
    assert updated.DELAY_RANGES["external_to_raw"] == (12, 30)
    assert base.N_CONSUMERS == 200
    assert base.DELAY_RANGES["external_to_raw"] == (10, 25)


def test_list_overrides_become_tuples() -> None:
    cfg = SupplyChainConfig().copy_with_overrides({"CONSUMER_A_RANGE": [120, 120]})
    assert cfg.CONSUMER_A_RANGE == (120, 120)


def test_replace_keys_are_not_merged() -> None:
    cfg = SupplyChainConfig().copy_with_overrides({"CONSUMER_FAMILY_WEIGHTS": {"linear": 1.0}})
    assert cfg.CONSUMER_FAMILY_WEIGHTS == {"linear": 1.0}


def test_nested_dicts_are_merged() -> None:
    cfg = SupplyChainConfig().copy_with_overrides({"FIRM_COUNT_RANGES": {"raw": [1, 1]}})
    assert cfg.FIRM_COUNT_RANGES["raw"] == (1, 1)
    assert cfg.FIRM_COUNT_RANGES["final"] == (3, 8)


def test_dotted_path_reaches_nested_ranges() -> None:
    base = SupplyChainConfig()
    cfg = base.copy_with_overrides({"REGIME_COEFFICIENT_RANGES.exp.b": [0.2, 0.4]})
    assert cfg.REGIME_COEFFICIENT_RANGES["exp"]["b"] == (0.2, 0.4)
    assert cfg.REGIME_COEFFICIENT_RANGES["exp"]["a"] == (20.0, 200.0)
    assert base.REGIME_COEFFICIENT_RANGES["exp"]["b"] == (0.05, 1.5)


def test_scalar_override_collapses_a_range() -> None:
    cfg = SupplyChainConfig().copy_with_overrides({"CONSUMER_B_RANGE": 3.0})
    assert cfg.CONSUMER_B_RANGE == (3.0, 3.0)


def test_replace_keys_cover_firm_specs() -> None:
    base = SupplyChainConfig(FIRM_SPECS={"final": [{"capacity": 5.0}], "raw": [{"capacity": 1.0}]})
    cfg = base.copy_with_overrides({"FIRM_SPECS": {"final": [{"capacity": 9.0}]}})
    assert cfg.FIRM_SPECS == {"final": [{"capacity": 9.0}]}


def test_unknown_override_key_raises() -> None:
    with pytest.raises(KeyError):
        SupplyChainConfig().copy_with_overrides({"NOT_A_SETTING": 1})
    with pytest.raises(KeyError):
        SupplyChainConfig().copy_with_overrides({"N_CONSUMERS.nested": 1})


def test_snapshot_is_json_serialisable() -> None:
    payload = json.dumps(SupplyChainConfig().snapshot())
    assert "PRICE_ADJUST_GAIN" in payload


def test_builtin_profiles() -> None:
    names = {profile.name for profile in list_profiles()}
    assert {"baseline", "simple", "tight_supply"} <= names

    simple = apply_profile(SupplyChainConfig(), get_profile("SIMPLE"))
    assert simple.PARTIAL_FULFILLMENT is False
    assert simple.INNOVATION_MODE == "single"
    assert simple.REGIME_SWITCHING is False
    simple.validate()

    tight = apply_profile(SupplyChainConfig(), get_profile("tight_supply"))
    assert tight.FIRM_CAPACITY_RANGES["raw"] == (10.0, 50.0)
    assert tight.FIRM_CAPACITY_RANGES["final"] == (1.0, 1.0)
    tight.validate()

    assert apply_profile(SupplyChainConfig(), None).N_CONSUMERS == 200


def test_unknown_profile_raises() -> None:
    with pytest.raises(KeyError):
        get_profile("does-not-exist")


def test_load_profile_from_json(tmp_path: Path) -> None:
    path = tmp_path / "slow_logistics.json"
    path.write_text(
        json.dumps(
            {
                "description": "Slow trucks",
                "overrides": {"DELAY_RANGES.final_to_intermediate": [20, 30]},
            }
        ),
        encoding="utf-8",
    )
    profile = load_profile(path)
    assert profile.name == "slow_logistics"
    assert profile.source == str(path.resolve())
    cfg = apply_profile(SupplyChainConfig(), profile)
    assert cfg.DELAY_RANGES["final_to_intermediate"] == (20, 30)
    assert profile.to_metadata()["description"] == "Slow trucks"


def test_load_profile_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_profile(tmp_path / "missing.json")
