"""
Configuration module for the Paprika recipe cache
=================================================

This module centralizes all configuration for the local recipe cache that
mirrors a Paprika account:
- Paprika cloud sync API (recipes + categories, HTTP Basic auth)
- Local SQLite cache (recipes, categories, recipe/category links)
- Sync pacing (courtesy delay between per-recipe detail fetches)

CONFIGURATION:
- data/config.yaml: User-specific settings (API URL, database path, pacing)
- data/secrets.yaml: Credentials (paprika email + password)

Usage:
    from config import DATABASE_PATH, SYNC_CONFIG, validate_credentials

    email, password = validate_credentials()

A missing config.yaml is not an error: the built-in defaults below are used
(config.yaml.example documents every key).
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


# =============================================================================
# PATHS
# =============================================================================

# Project root directory (where this file lives)
PROJECT_ROOT = Path(__file__).parent

# Data directory - THE canonical location for all runtime data
DATA_DIR = Path(os.getenv("PAPRIKA_SYNC_DATA_DIR", str(PROJECT_ROOT / "data")))

CONFIG_PATH = DATA_DIR / "config.yaml"

# Secrets path - credential storage
SECRETS_PATH = DATA_DIR / "secrets.yaml"


# =============================================================================
# USER CONFIGURATION LOADING
# =============================================================================

DEFAULT_CONFIG: Dict[str, Any] = {
    "connection": {
        "api_url": "https://www.paprikaapp.com/api/v1",
        "timeout": 30,
    },
    "storage": {
        "database_path": str(DATA_DIR / "recipes.db"),
    },
    "sync": {
        # none | fixed | token_bucket
        "pacing": "fixed",
        "item_delay_seconds": 0.1,
        "rate_per_second": 10.0,
        "burst": 1,
    },
}

VALID_PACING_MODES = ("none", "fixed", "token_bucket")


def get_config_path() -> Path:
    """Get the config.yaml path. Always data/config.yaml."""
    return CONFIG_PATH


def _config_error(title: str, *lines: str) -> ValueError:
    body = "\n".join(lines)
    return ValueError(
        f"\n{'='*60}\n"
        f"ERROR: {title}\n"
        f"{'='*60}\n"
        f"{body}\n"
        f"{'='*60}"
    )


def _merge(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validate_user_config(config: Dict[str, Any], config_path: Path) -> None:
    """Type-check the few knobs the sync engine depends on."""
    timeout = config["connection"].get("timeout")
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise _config_error(
            "config.yaml connection.timeout must be a positive number",
            f"File: {config_path}",
            f"Got: {timeout!r}",
        )

    sync = config["sync"]
    if sync.get("pacing") not in VALID_PACING_MODES:
        raise _config_error(
            "config.yaml sync.pacing is invalid",
            f"File: {config_path}",
            f"Got: {sync.get('pacing')!r}",
            f"Allowed: {list(VALID_PACING_MODES)}",
        )

    for key in ("item_delay_seconds", "rate_per_second"):
        value = sync.get(key)
        if not isinstance(value, (int, float)) or value < 0:
            raise _config_error(
                f"config.yaml sync.{key} must be a non-negative number",
                f"File: {config_path}",
                f"Got: {value!r}",
            )

    burst = sync.get("burst")
    if not isinstance(burst, int) or burst < 1:
        raise _config_error(
            "config.yaml sync.burst must be an integer >= 1",
            f"File: {config_path}",
            f"Got: {burst!r}",
        )


def load_user_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load user configuration from data/config.yaml merged over DEFAULT_CONFIG.

    Args:
        config_path: Override the config location (tests use tmp paths)

    Returns:
        Dict containing the merged configuration

    Raises:
        ValueError: If YAML is invalid or a known key has the wrong type
    """
    config_path = config_path or CONFIG_PATH

    if not config_path.exists():
        config = copy.deepcopy(DEFAULT_CONFIG)
        _validate_user_config(config, config_path)
        return config

    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise _config_error(
            "config.yaml has invalid YAML syntax",
            f"File: {config_path}",
            f"Error: {e}",
        ) from e

    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise _config_error(
            "config.yaml must contain a mapping at the top level",
            f"File: {config_path}",
        )

    for section in DEFAULT_CONFIG:
        if section in loaded and not isinstance(loaded[section], dict):
            raise _config_error(
                f"config.yaml section '{section}' must be a mapping",
                f"File: {config_path}",
            )

    config = _merge(DEFAULT_CONFIG, loaded)
    _validate_user_config(config, config_path)
    return config


# Load user config at module initialization (FAIL FAST on invalid files)
USER_CONFIG = load_user_config()


# =============================================================================
# SECRETS
# =============================================================================
"""
Credential storage in data/secrets.yaml.
Environment variables take priority over file-based secrets.
"""


def load_secrets(secrets_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load secrets from data/secrets.yaml.

    Returns:
        dict with keys 'email' and 'password' (may be None).
        Returns empty dict if the file doesn't exist.
    """
    secrets_path = secrets_path or SECRETS_PATH
    if not secrets_path.exists():
        return {}

    try:
        with open(secrets_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise _config_error(
            "secrets.yaml has invalid YAML syntax",
            f"File: {secrets_path}",
            f"Error: {e}",
        ) from e

    paprika = data.get('paprika', {}) or {}
    return {
        'email': paprika.get('email'),
        'password': paprika.get('password'),
    }


def load_credentials() -> Tuple[Optional[str], Optional[str]]:
    """
    Load Paprika credentials.

    Priority order (ENV VAR IS SOURCE OF TRUTH):
    1. PAPRIKA_EMAIL / PAPRIKA_PASSWORD environment variables
    2. data/secrets.yaml (fallback)
    """
    email = os.getenv("PAPRIKA_EMAIL", "").strip() or None
    password = os.getenv("PAPRIKA_PASSWORD", "").strip() or None

    if email and password:
        return email, password

    secrets = load_secrets()
    return email or secrets.get('email'), password or secrets.get('password')


def validate_credentials() -> Tuple[str, str]:
    """
    Return (email, password) or raise if either is missing.

    Raises:
        ValueError: With setup instructions when credentials are not configured
    """
    email, password = load_credentials()
    if not email or not password:
        raise _config_error(
            "Paprika credentials are not configured",
            "Set PAPRIKA_EMAIL and PAPRIKA_PASSWORD environment variables",
            f"or add paprika.email / paprika.password to {SECRETS_PATH}",
        )
    return email, password


# =============================================================================
# PAPRIKA API + STORAGE
# =============================================================================

# Env var override supported for containerized deployments
API_BASE_URL = os.getenv("PAPRIKA_API_URL", USER_CONFIG["connection"]["api_url"])
API_TIMEOUT = USER_CONFIG["connection"]["timeout"]

DATABASE_PATH = os.getenv("PAPRIKA_DATABASE_PATH", USER_CONFIG["storage"]["database_path"])

SYNC_CONFIG = USER_CONFIG["sync"]


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
"""Centralized logging configuration for all modules."""
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        },
        "detailed": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": os.getenv("PAPRIKA_SYNC_LOG_LEVEL", "WARNING"),
            "formatter": "standard",
            "stream": "ext://sys.stderr"
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "detailed",
            "filename": str(DATA_DIR / "logs" / "paprika_sync.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }
    },
    "root": {
        "level": "DEBUG",
        "handlers": ["console", "file"]
    }
}
