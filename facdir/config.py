"""Layered configuration: YAML < .env < CLI args."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# Each setting takes the first non-empty variable in its list.
ENV_MAPPINGS: dict[tuple[str, ...], tuple[str, ...]] = {
    ("SUPABASE_URL", "VITE_SUPABASE_URL"): ("store", "url"),
    ("SUPABASE_ANON_KEY", "VITE_SUPABASE_PUBLISHABLE_KEY"): ("store", "anon_key"),
    ("SUPABASE_SERVICE_ROLE_KEY",): ("store", "service_key"),
    ("FACDIR_LOG_LEVEL",): ("logging", "level"),
}


class ConfigError(ValueError):
    """Required configuration is missing or malformed."""


def load_config(
    config_path: Path | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Load configuration with layered precedence.

    Priority (highest to lowest):
    1. CLI argument overrides
    2. Environment variables (.env)
    3. YAML config file

    Args:
        config_path: Path to YAML config file. Defaults to config/default.yaml
        cli_overrides: Dict of CLI argument overrides (e.g. {"log_level": "DEBUG"})

    Returns:
        Merged configuration dict.
    """
    # 1. Load YAML defaults
    if config_path is None:
        config_path = Path("config/default.yaml")

    config: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

    # 2. Load .env and apply environment variable overrides
    load_dotenv()
    for env_vars, config_path_tuple in ENV_MAPPINGS.items():
        value = next((os.environ[v] for v in env_vars if os.environ.get(v)), None)
        if value:
            _set_nested(config, config_path_tuple, value)

    # 3. Apply CLI overrides (only non-None values)
    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    return config


def store_settings(config: dict[str, Any]) -> dict[str, Any]:
    """Connection settings for the remote store.

    The service-role key is preferred over the anon key when both are set.

    Raises:
        ConfigError: the store URL or both keys are missing.
    """
    store = config.get("store") or {}
    url = store.get("url")
    api_key = store.get("service_key") or store.get("anon_key")
    if not url or not api_key:
        raise ConfigError(
            "Missing store credentials: set SUPABASE_URL and SUPABASE_ANON_KEY "
            "(or store.url / store.anon_key in the config file)"
        )
    return {
        "url": url,
        "api_key": api_key,
        "schema": store.get("schema") or "public",
        "timeout": store.get("timeout"),
        "tables": store.get("tables") or {},
    }


def _set_nested(d: dict, keys: tuple[str, ...], value: Any) -> None:
    """Set a value in a nested dict using a tuple of keys."""
    for key in keys[:-1]:
        d = d.setdefault(key, {})
    d[keys[-1]] = value
