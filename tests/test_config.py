"""Tests for configuration defaults, validation and loading."""

import json

import pytest

from fabricsim import ConfigError, DEFAULT_BLOCKED_RANGES, SimConfig, load_config


def test_defaults_are_valid():
    config = SimConfig().validate()

    assert config.blocked_ranges == list(DEFAULT_BLOCKED_RANGES)
    assert config.burst_probability == pytest.approx(1 / 11)
    assert config.max_burst == 80


@pytest.mark.parametrize(
    "overrides",
    [
        {"cooldown": 0},
        {"max_process_time": 0},
        {"min_threshold": -1},
        {"min_threshold": 6, "max_threshold": 5},
        {"initial_workers": -1},
        {"total_ticks": -5},
        {"dos_rate_limit": -1},
        {"burst_probability": 1.5},
        {"attack_share": 0.3},
        {"max_burst": 0},
        {"prefill_per_worker": -1},
    ],
)
def test_validate_rejects_bad_values(overrides):
    with pytest.raises(ConfigError):
        SimConfig(**overrides).validate()


def test_config_error_is_a_value_error():
    with pytest.raises(ValueError):
        SimConfig(cooldown=0).validate()


def test_load_config_merges_with_defaults(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps({"cooldown": 4, "blocked_ranges": ["10.0.0.0/8"]}))

    config = load_config(path)

    assert config.cooldown == 4
    assert config.blocked_ranges == ["10.0.0.0/8"]
    assert config.max_threshold == SimConfig().max_threshold


def test_load_config_rejects_unknown_keys(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps({"cooldwn": 4}))

    with pytest.raises(ConfigError, match="cooldwn"):
        load_config(path)


def test_load_config_rejects_non_object(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text("[1, 2]")

    with pytest.raises(ConfigError):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


def test_replace_ignores_none_overrides():
    config = SimConfig(cooldown=7).replace(cooldown=None, seed=99)

    assert config.cooldown == 7
    assert config.seed == 99


def test_dict_round_trip():
    config = SimConfig(attacker_addresses=["1.2.3.4"], attack_share=0.1)

    assert SimConfig.from_dict(config.to_dict()) == config
