"""Tests for config.py — settings file + environment."""

import pytest

from popen_bridge.config import (
    DEFAULT_CAPACITY,
    BridgeConfig,
    config_path,
    load_config,
    parse_config,
)


def test_defaults():
    assert parse_config(None) == BridgeConfig(verbose=0, capacity=DEFAULT_CAPACITY)
    assert parse_config({}) == BridgeConfig()


def test_parse_section():
    cfg = parse_config({"popen-bridge": {"verbose": 2, "capacity": 4096}})
    assert cfg.verbose == 2
    assert cfg.capacity == 4096


def test_parse_bare_mapping():
    cfg = parse_config({"capacity": 10})
    assert cfg.capacity == 10


def test_parse_ignores_unknown_keys():
    cfg = parse_config({"popen-bridge": {"capacity": 10, "colour": "blue"}})
    assert cfg == BridgeConfig(verbose=0, capacity=10)


def test_parse_string_numbers():
    cfg = parse_config({"verbose": "1", "capacity": "64"})
    assert cfg == BridgeConfig(verbose=1, capacity=64)


def test_verbose_clamped():
    assert parse_config({"verbose": 9}).verbose == 3
    assert parse_config({"verbose": -2}).verbose == 0


def test_invalid_capacity():
    with pytest.raises(ValueError, match="capacity"):
        parse_config({"capacity": 0})
    with pytest.raises(ValueError, match="capacity must be an integer"):
        parse_config({"capacity": "lots"})


def test_bool_is_not_an_integer():
    with pytest.raises(ValueError):
        parse_config({"verbose": True})


def test_non_mapping_rejected():
    with pytest.raises(ValueError):
        parse_config(["verbose"])
    with pytest.raises(ValueError):
        parse_config({"popen-bridge": "loud"})


def test_config_path_order(monkeypatch):
    monkeypatch.delenv("POPEN_BRIDGE_CONFIG", raising=False)
    assert config_path() == ".popen-bridge.yml"
    monkeypatch.setenv("POPEN_BRIDGE_CONFIG", "/etc/bridge.yml")
    assert config_path() == "/etc/bridge.yml"
    assert config_path("explicit.yml") == "explicit.yml"


def test_load_missing_file(no_env_config):
    assert load_config() == BridgeConfig()


def test_load_from_cwd(no_env_config):
    (no_env_config / ".popen-bridge.yml").write_text("popen-bridge:\n  verbose: 1\n  capacity: 128\n")
    assert load_config() == BridgeConfig(verbose=1, capacity=128)


def test_load_from_env_path(no_env_config, monkeypatch):
    path = no_env_config / "other.yml"
    path.write_text("capacity: 7\n")
    monkeypatch.setenv("POPEN_BRIDGE_CONFIG", str(path))
    assert load_config().capacity == 7


def test_load_empty_file(no_env_config):
    (no_env_config / ".popen-bridge.yml").write_text("")
    assert load_config() == BridgeConfig()


def test_env_verbose_overrides_file(no_env_config, monkeypatch):
    (no_env_config / ".popen-bridge.yml").write_text("verbose: 1\n")
    monkeypatch.setenv("POPEN_BRIDGE_VERBOSE", "3")
    assert load_config().verbose == 3
