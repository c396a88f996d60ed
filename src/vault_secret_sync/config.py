"""Operator configuration.

Configuration is read once at startup from environment variables and a YAML
file holding the secret mappings, and handed to every component as a single
immutable object.

Example file::

    refresh_interval: 30
    vault:
      address: http://vault.vault.svc:8200
      auth_method: kubernetes
      role: vault-secret-sync
    secrets:
      - path: app/db-creds
        destination_namespace: app
        destination_name: db-secret
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .constants import (
    APP_NAME,
    DEFAULT_CONFIG_PATH,
    DEFAULT_METRICS_PORT,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH,
    DEFAULT_VAULT_ADDR,
    DEFAULT_VAULT_AUTH_METHOD,
    DEFAULT_VAULT_KV_MOUNT,
    DEFAULT_VAULT_KV_VERSION,
    DEFAULT_WATCH_WINDOW_SECONDS,
    DEFAULT_WORKER_COUNT,
    VAULT_AUTH_METHODS,
)
from .models import MappingRegistry
from .utils.errors import ConfigurationError
from .utils.sharding import resolve_shard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VaultConfig:
    """Connection and authentication settings for Vault."""

    address: str = DEFAULT_VAULT_ADDR
    auth_method: str = DEFAULT_VAULT_AUTH_METHOD
    role: str = APP_NAME
    token: str | None = field(default=None, repr=False)
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    kv_mount: str = DEFAULT_VAULT_KV_MOUNT
    kv_version: int = DEFAULT_VAULT_KV_VERSION
    jwt_path: str = DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH
    namespace: str | None = None
    verify: bool = True


@dataclass(frozen=True)
class OperatorConfig:
    """Process-lifetime configuration for the operator."""

    registry: MappingRegistry
    vault: VaultConfig = field(default_factory=VaultConfig)
    refresh_interval: float = DEFAULT_REFRESH_INTERVAL_SECONDS
    owner: str = APP_NAME
    worker_count: int = DEFAULT_WORKER_COUNT
    queue_size: int = DEFAULT_QUEUE_SIZE
    watch_window_seconds: int = DEFAULT_WATCH_WINDOW_SECONDS
    metrics_port: int = DEFAULT_METRICS_PORT
    shard_index: int = 0
    shard_count: int = 1


def parse_interval(value: Any) -> float:
    """Parse a refresh interval in seconds.

    Unset, zero, negative or non-numeric values fall back to the default.
    """
    if value is None or value == "":
        return DEFAULT_REFRESH_INTERVAL_SECONDS
    try:
        interval = float(value)
    except (TypeError, ValueError):
        logger.warning(
            f"Invalid refresh interval {value!r}, using default {DEFAULT_REFRESH_INTERVAL_SECONDS}s"
        )
        return DEFAULT_REFRESH_INTERVAL_SECONDS
    if interval <= 0:
        logger.info(f"No positive refresh interval set, using default {DEFAULT_REFRESH_INTERVAL_SECONDS}s")
        return DEFAULT_REFRESH_INTERVAL_SECONDS
    return interval


def _positive_int(name: str, value: Any, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {number}")
    return number


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Read the YAML configuration file.

    Raises:
        ConfigurationError: If the file is missing, unreadable or not a mapping
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found at: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {config_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {config_path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
    return raw


def build_vault_config(file_settings: dict[str, Any], env: Mapping[str, str]) -> VaultConfig:
    """Merge Vault settings from the file and the environment (environment wins)."""
    if not isinstance(file_settings, dict):
        raise ConfigurationError("vault settings must be a mapping")

    def pick(env_name: str, key: str, default: Any = None) -> Any:
        value = env.get(env_name)
        if value not in (None, ""):
            return value
        value = file_settings.get(key)
        return default if value in (None, "") else value

    address = pick("VAULT_ADDR", "address")
    if not address:
        logger.info(f"No vault address provided, using default address {DEFAULT_VAULT_ADDR}")
        address = DEFAULT_VAULT_ADDR

    auth_method = str(pick("VAULT_AUTH_METHOD", "auth_method", DEFAULT_VAULT_AUTH_METHOD)).lower()
    if auth_method not in VAULT_AUTH_METHODS:
        raise ConfigurationError(
            f"VAULT_AUTH_METHOD must be one of {', '.join(VAULT_AUTH_METHODS)}, got {auth_method!r}"
        )

    token = pick("VAULT_TOKEN", "token")
    username = pick("VAULT_USERNAME", "username")
    password = pick("VAULT_PASSWORD", "password")
    if auth_method == "token" and not token:
        raise ConfigurationError("VAULT_TOKEN is required for token authentication")
    if auth_method == "userpass" and (not username or not password):
        raise ConfigurationError("VAULT_USERNAME and VAULT_PASSWORD are required for userpass authentication")

    kv_version = _positive_int("VAULT_KV_VERSION", pick("VAULT_KV_VERSION", "kv_version"), DEFAULT_VAULT_KV_VERSION)
    if kv_version not in (1, 2):
        raise ConfigurationError(f"VAULT_KV_VERSION must be 1 or 2, got {kv_version}")

    verify = str(pick("VAULT_SKIP_VERIFY", "skip_verify", "false")).lower() not in ("true", "1", "yes")

    return VaultConfig(
        address=str(address),
        auth_method=auth_method,
        role=str(pick("VAULT_ROLE", "role", APP_NAME)),
        token=token,
        username=username,
        password=password,
        kv_mount=str(pick("VAULT_KV_MOUNT", "kv_mount", DEFAULT_VAULT_KV_MOUNT)).strip("/"),
        kv_version=kv_version,
        jwt_path=str(pick("VAULT_JWT_PATH", "jwt_path", DEFAULT_SERVICE_ACCOUNT_TOKEN_PATH)),
        namespace=pick("VAULT_NAMESPACE", "namespace"),
        verify=verify,
    )


def load_config(environ: Mapping[str, str] | None = None) -> OperatorConfig:
    """Load and validate the operator configuration.

    Args:
        environ: Environment to read (defaults to os.environ)

    Returns:
        Immutable OperatorConfig

    Raises:
        ConfigurationError: On any invalid or missing setting
    """
    env = os.environ if environ is None else environ
    config_path = env.get("SECRETS_CONFIG_PATH", DEFAULT_CONFIG_PATH)
    raw = read_config_file(config_path)

    specs = raw.get("secrets") or []
    if not isinstance(specs, list):
        raise ConfigurationError("secrets must be a list of mappings")
    registry = MappingRegistry.from_specs(specs)
    if len(registry) == 0:
        logger.warning(f"No secret mappings declared in {config_path}")

    shard_index, shard_count = resolve_shard(env)

    return OperatorConfig(
        registry=registry,
        vault=build_vault_config(raw.get("vault") or {}, env),
        refresh_interval=parse_interval(env.get("REFRESH_INTERVAL_SECONDS") or raw.get("refresh_interval")),
        owner=env.get("OWNER_IDENTITY") or str(raw.get("owner") or APP_NAME),
        worker_count=_positive_int("WORKER_COUNT", env.get("WORKER_COUNT"), DEFAULT_WORKER_COUNT),
        queue_size=_positive_int("QUEUE_SIZE", env.get("QUEUE_SIZE"), DEFAULT_QUEUE_SIZE),
        watch_window_seconds=_positive_int(
            "WATCH_WINDOW_SECONDS", env.get("WATCH_WINDOW_SECONDS"), DEFAULT_WATCH_WINDOW_SECONDS
        ),
        metrics_port=_positive_int("METRICS_PORT", env.get("METRICS_PORT"), DEFAULT_METRICS_PORT),
        shard_index=shard_index,
        shard_count=shard_count,
    )
