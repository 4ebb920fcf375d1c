"""Configuration loading and validation."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from geosheet.common.constants import ENV_GEOCODE_API_KEY, ENV_SPREADSHEET_ID
from geosheet.common.errors import ConfigError
from geosheet.common.fs import read_yaml
from geosheet.common.schema import require_runtime_values, validate_config

CONFIG_FILENAME = "geosheet.yml"


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


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path) or {}
    return _deep_merge(base, overlay)


def _apply_env_overrides(cfg: dict, environ: Mapping[str, str]) -> dict:
    spreadsheet_id = environ.get(ENV_SPREADSHEET_ID)
    if spreadsheet_id:
        cfg["spreadsheet"]["id"] = spreadsheet_id
    api_key = environ.get(ENV_GEOCODE_API_KEY)
    if api_key:
        cfg["geocoding"]["api_key"] = api_key
    return cfg


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
    require_runtime: bool = True,
) -> dict:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path)
    cfg = validate_config(cfg, allow_unknown=allow_unknown)
    cfg = _apply_env_overrides(cfg, os.environ if environ is None else environ)
    if require_runtime:
        require_runtime_values(cfg)
    return cfg
