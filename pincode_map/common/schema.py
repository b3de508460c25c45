"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from pincode_map.common.errors import ConfigError
from pincode_map.common.geometry import Coordinates, parse_coordinates

SECTION_KEYS = {
    "geocoder": {"endpoint", "country", "result_limit", "user_agent", "timeout", "max_attempts"},
    "resolution": {"delay_ms", "failure_warn_ratio"},
    "cache": {"storage_key", "storage_filename"},
    "heat": {"intensity_floor", "low_threshold", "mid_threshold"},
    "display": {"currency_symbol", "top_n", "limit_options"},
    "output": {"resolved_filename", "view_filename", "export_filename", "report_filename"},
}


def _assert_mapping(obj, ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_number(value, ctx: str, *, minimum: float | None = None, maximum: float | None = None) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{ctx} must be a number")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{ctx} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ConfigError(f"{ctx} must be <= {maximum}")


def validate_app_config(cfg, *, allow_unknown: bool = False) -> dict:
    _assert_mapping(cfg, "pincode_map config")
    _assert_required_keys(cfg, set(SECTION_KEYS), "pincode_map config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "pincode_map config", allow_unknown)

    for section, keys in SECTION_KEYS.items():
        _assert_mapping(cfg[section], section)
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    _assert_required_keys(cfg["geocoder"]["timeout"], {"connect", "read"}, "geocoder.timeout")
    _assert_number(cfg["geocoder"]["max_attempts"], "geocoder.max_attempts", minimum=1)
    _assert_number(cfg["resolution"]["delay_ms"], "resolution.delay_ms", minimum=0)
    _assert_number(cfg["resolution"]["failure_warn_ratio"], "resolution.failure_warn_ratio", minimum=0, maximum=1)

    heat = cfg["heat"]
    _assert_number(heat["intensity_floor"], "heat.intensity_floor", minimum=0, maximum=1)
    _assert_number(heat["low_threshold"], "heat.low_threshold", minimum=0, maximum=1)
    _assert_number(heat["mid_threshold"], "heat.mid_threshold", minimum=0, maximum=1)
    if heat["low_threshold"] > heat["mid_threshold"]:
        raise ConfigError("heat.low_threshold must not exceed heat.mid_threshold")

    _assert_number(cfg["display"]["top_n"], "display.top_n", minimum=0)
    options = cfg["display"]["limit_options"]
    if not isinstance(options, list):
        raise ConfigError("display.limit_options must be a list")
    for option in options:
        if isinstance(option, bool) or not isinstance(option, int) or option < 1:
            raise ConfigError(f"display.limit_options entries must be positive integers, got {option!r}")
    return cfg


def validate_seed_table(cfg) -> dict[str, Coordinates]:
    _assert_mapping(cfg, "seed_coordinates")
    _assert_required_keys(cfg, {"coordinates"}, "seed_coordinates")
    entries = cfg["coordinates"] or {}
    _assert_mapping(entries, "seed_coordinates.coordinates")

    table: dict[str, Coordinates] = {}
    for postal_code, value in entries.items():
        coords = parse_coordinates(value)
        if coords is None:
            raise ConfigError(f"Invalid seed coordinates for {postal_code}: {value!r}")
        table[str(postal_code)] = coords
    return table
