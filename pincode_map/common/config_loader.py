"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from pincode_map.common.errors import ConfigError
from pincode_map.common.fs import read_yaml
from pincode_map.common.geometry import Coordinates
from pincode_map.common.schema import validate_app_config, validate_seed_table

APP_CONFIG_FILENAME = "pincode_map.yml"
SEED_TABLE_FILENAME = "seed_coordinates.yml"


@dataclass(frozen=True)
class ConfigBundle:
    settings: dict
    seed_table: Mapping[str, Coordinates]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> Any:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    def _overlay(name: str) -> Path | None:
        if overlay_config_dir is None:
            return None
        return overlay_config_dir / name

    settings = validate_app_config(
        _load_yaml_with_overlay(config_dir / APP_CONFIG_FILENAME, _overlay(APP_CONFIG_FILENAME)),
        allow_unknown=allow_unknown,
    )
    seed_table = validate_seed_table(
        _load_yaml_with_overlay(config_dir / SEED_TABLE_FILENAME, _overlay(SEED_TABLE_FILENAME))
    )
    # Seed data is reference data; nothing downstream may write to it.
    return ConfigBundle(settings=settings, seed_table=MappingProxyType(seed_table))
