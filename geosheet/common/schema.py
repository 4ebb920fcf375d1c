"""Minimal strict schema for YAML config validation."""

from __future__ import annotations

from geosheet.common.errors import ConfigError

TOP_LEVEL_KEYS = {"spreadsheet", "columns", "geocoding", "pacing", "auth"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
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


def _assert_positive(value, ctx: str) -> None:
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"{ctx} must be a positive number")


def validate_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "config", allow_unknown)

    _assert_required_keys(
        cfg["spreadsheet"],
        {"id", "read_range", "write_columns", "write_start_row"},
        "spreadsheet",
    )
    _assert_required_keys(cfg["spreadsheet"]["write_columns"], {"lat", "lng"}, "spreadsheet.write_columns")
    _assert_positive(cfg["spreadsheet"]["write_start_row"], "spreadsheet.write_start_row")

    _assert_required_keys(cfg["columns"], {"country_index", "city_index"}, "columns")
    for key in ("country_index", "city_index"):
        value = cfg["columns"][key]
        if not isinstance(value, int) or value < 0:
            raise ConfigError(f"columns.{key} must be a non-negative integer")

    _assert_required_keys(cfg["geocoding"], {"endpoint", "api_key", "timeout_seconds"}, "geocoding")
    _assert_positive(cfg["geocoding"]["timeout_seconds"], "geocoding.timeout_seconds")

    _assert_required_keys(cfg["pacing"], {"rate_per_sec", "capacity", "max_workers"}, "pacing")
    _assert_positive(cfg["pacing"]["rate_per_sec"], "pacing.rate_per_sec")
    _assert_positive(cfg["pacing"]["capacity"], "pacing.capacity")
    if cfg["pacing"]["capacity"] < 1:
        raise ConfigError("pacing.capacity must be at least 1")
    _assert_positive(cfg["pacing"]["max_workers"], "pacing.max_workers")

    _assert_required_keys(
        cfg["auth"],
        {"client_secret_path", "token_dir", "token_file", "scopes"},
        "auth",
    )
    if not isinstance(cfg["auth"]["scopes"], list) or not cfg["auth"]["scopes"]:
        raise ConfigError("auth.scopes must be a non-empty list")

    return cfg


def require_runtime_values(cfg: dict) -> dict:
    if not str(cfg["spreadsheet"]["id"] or "").strip():
        raise ConfigError("spreadsheet.id is empty")
    if not str(cfg["geocoding"]["api_key"] or "").strip():
        raise ConfigError("geocoding.api_key is empty")
    return cfg
