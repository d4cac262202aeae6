"""Load bridge settings from .popen-bridge.yml + environment."""

import os
from dataclasses import dataclass

import yaml

from popen_bridge.log import DETAIL, QUIET

CONFIG_FILE = ".popen-bridge.yml"
SECTION = "popen-bridge"
DEFAULT_CAPACITY = 1024 * 1024


@dataclass
class BridgeConfig:
    verbose: int = QUIET
    capacity: int = DEFAULT_CAPACITY


def _get_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        try:
            value = int(str(value))
        except ValueError:
            raise ValueError(f"{key} must be an integer, got {value!r}") from None
    return value


def clamp_verbose(level: int) -> int:
    return max(QUIET, min(DETAIL, level))


def parse_config(raw: dict | None) -> BridgeConfig:
    """Parse a config mapping into a BridgeConfig.

    Settings live under a top-level `popen-bridge:` key; a mapping without
    that key is read as the settings themselves. Unknown keys are ignored.
    """
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ValueError("config must be a mapping")
    section = raw.get(SECTION, raw) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{SECTION}' must be a mapping")

    capacity = _get_int(section, "capacity", DEFAULT_CAPACITY)
    if capacity < 1:
        raise ValueError(f"capacity must be at least 1, got {capacity}")

    return BridgeConfig(
        verbose=clamp_verbose(_get_int(section, "verbose", QUIET)),
        capacity=capacity,
    )


def config_path(path: str | None = None) -> str:
    """Resolve the config file.

    Order: explicit path → POPEN_BRIDGE_CONFIG env → .popen-bridge.yml.
    """
    return path or os.environ.get("POPEN_BRIDGE_CONFIG") or CONFIG_FILE


def load_config(path: str | None = None) -> BridgeConfig:
    """Read the config file (if any), then apply POPEN_BRIDGE_VERBOSE."""
    try:
        with open(config_path(path)) as f:
            config = parse_config(yaml.safe_load(f))
    except FileNotFoundError:
        config = BridgeConfig()

    env_verbose = os.environ.get("POPEN_BRIDGE_VERBOSE")
    if env_verbose:
        config.verbose = clamp_verbose(_get_int({"verbose": env_verbose}, "verbose", QUIET))
    return config
