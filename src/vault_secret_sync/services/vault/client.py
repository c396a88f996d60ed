"""HashiCorp Vault client implementation."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Any

import hvac
import requests
from hvac.exceptions import Forbidden, InvalidPath, VaultError

from ... import metrics
from ...config import VaultConfig
from ...utils.errors import MalformedPayloadError, SecretNotFoundError, SecretStoreError, sanitize_exception
from ...utils.rate_limit import rate_limit_vault

logger = logging.getLogger(__name__)


class VaultSecretStore:
    """Vault KV secret store."""

    def __init__(self, config: VaultConfig, client: hvac.Client | None = None) -> None:
        """Initialize the Vault store.

        Args:
            config: Vault connection and authentication settings
            client: Preconfigured hvac client (a new one is created when omitted)
        """
        self.config = config
        self.client = client or hvac.Client(
            url=config.address,
            token=config.token if config.auth_method == "token" else None,
            namespace=config.namespace,
            verify=config.verify,
        )
        self._auth_lock = threading.Lock()
        # Bumped on every successful login; 0 until the first one
        self._auth_generation = 0

    def login(self) -> None:
        """Authenticate with the configured auth method.

        Raises:
            SecretStoreError: If authentication fails
        """
        method = self.config.auth_method
        try:
            if method == "kubernetes":
                jwt = Path(self.config.jwt_path).read_text(encoding="utf-8").strip()
                self.client.auth.kubernetes.login(role=self.config.role, jwt=jwt)
            elif method == "userpass":
                self.client.auth.userpass.login(
                    username=self.config.username,
                    password=self.config.password,
                )
            else:
                self.client.token = self.config.token
        except (VaultError, requests.RequestException, OSError) as e:
            metrics.api_call_total.labels(api_type="vault", operation="login", result="error").inc()
            raise SecretStoreError(f"Vault {method} login failed: {sanitize_exception(e)}") from e

        metrics.api_call_total.labels(api_type="vault", operation="login", result="success").inc()
        logger.info(f"Authenticated to Vault at {self.config.address} using {method} auth")

    def _login_if_current(self, generation: int) -> None:
        """Log in unless another worker already did since ``generation`` was observed."""
        with self._auth_lock:
            if self._auth_generation != generation:
                return
            self.login()
            self._auth_generation += 1

    def read(self, path: str, mount: str | None = None) -> dict[str, Any]:
        """Read the key/value payload stored at path.

        Logs in on first use. A permission error is retried once after a
        fresh login, since an expired or revoked token also answers 403.

        Args:
            path: Secret path relative to the KV mount
            mount: KV mount to read from (defaults to the configured mount)

        Returns:
            Key/value payload of the latest version

        Raises:
            SecretNotFoundError: If the path does not exist
            MalformedPayloadError: If the response carries no key/value mapping
            SecretStoreError: On authentication, permission or transport failure
        """
        mount_point = mount or self.config.kv_mount
        if self._auth_generation == 0:
            self._login_if_current(0)
        generation = self._auth_generation

        try:
            response = self._timed_read(path, mount_point)
        except Forbidden:
            self._login_if_current(generation)
            try:
                response = self._timed_read(path, mount_point)
            except Forbidden as e:
                metrics.api_call_total.labels(api_type="vault", operation="read", result="error").inc()
                raise SecretStoreError(f"permission denied reading {path!r} in mount {mount_point!r}") from e

        metrics.api_call_total.labels(api_type="vault", operation="read", result="success").inc()
        return self._extract_payload(path, response)

    def _timed_read(self, path: str, mount_point: str) -> Any:
        """Read the raw KV response; Forbidden is left to the caller."""
        start_time = time.time()
        try:
            return rate_limit_vault(self._read_raw)(path, mount_point)
        except Forbidden:
            raise
        except InvalidPath as e:
            metrics.api_call_total.labels(api_type="vault", operation="read", result="not_found").inc()
            raise SecretNotFoundError(f"secret {path!r} not found in mount {mount_point!r}") from e
        except (VaultError, requests.RequestException) as e:
            metrics.api_call_total.labels(api_type="vault", operation="read", result="error").inc()
            raise SecretStoreError(f"error reading {path!r} from Vault: {sanitize_exception(e)}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="vault", operation="read").observe(duration)

    def _read_raw(self, path: str, mount_point: str) -> Any:
        kv = self.client.secrets.kv
        if self.config.kv_version == 1:
            return kv.v1.read_secret(path=path, mount_point=mount_point)
        return kv.v2.read_secret_version(
            path=path,
            mount_point=mount_point,
            raise_on_deleted_version=True,
        )

    def _extract_payload(self, path: str, response: Any) -> dict[str, Any]:
        """Unwrap the key/value mapping from a KV response envelope."""
        if not isinstance(response, dict) or not isinstance(response.get("data"), dict):
            raise MalformedPayloadError(f"unexpected Vault response shape for {path!r}")

        data = response["data"]
        if self.config.kv_version == 2:
            data = data.get("data")
            if not isinstance(data, dict):
                raise MalformedPayloadError(f"secret {path!r} has no key/value data")
        return data
