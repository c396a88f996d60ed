"""Tests for the kopf startup and cleanup hooks."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import MagicMock, patch

import kopf
import pytest

from vault_secret_sync import main
from vault_secret_sync.config import OperatorConfig
from vault_secret_sync.utils.errors import ConfigurationError


def make_settings():
    return kopf.OperatorSettings()


class TestConfigure:
    """Test cases for the startup handler."""

    @pytest.mark.asyncio
    @patch("vault_secret_sync.main.initialize_tracing")
    @patch("vault_secret_sync.main.structured_logging.setup_structured_logging")
    @patch("vault_secret_sync.main.load_config", side_effect=ConfigurationError("secrets must be a list"))
    async def test_invalid_config_is_permanent(self, mock_load, mock_logging, mock_tracing):
        """Test that a bad configuration stops the operator instead of retrying."""
        with pytest.raises(kopf.PermanentError, match="secrets must be a list"):
            await main.configure(settings=make_settings(), memo=kopf.Memo())

    @pytest.mark.asyncio
    @patch("vault_secret_sync.main.initialize_tracing")
    @patch("vault_secret_sync.main.structured_logging.setup_structured_logging")
    @patch("vault_secret_sync.main.health.start_metrics_server")
    @patch("vault_secret_sync.main.VaultSecretStore")
    @patch("vault_secret_sync.main.get_core_api")
    @patch("vault_secret_sync.main.load_config")
    async def test_startup_and_cleanup(
        self, mock_load, mock_core_api, mock_store, mock_server, mock_logging, mock_tracing, registry
    ):
        """Test that startup launches the sync and cleanup stops it."""
        mock_load.return_value = OperatorConfig(registry=registry, metrics_port=9100)
        memo = kopf.Memo()

        with patch("vault_secret_sync.main.SecretSyncOperator") as mock_operator_cls:
            operator = mock_operator_cls.return_value
            stopped = asyncio.Event()

            async def run():
                await stopped.wait()

            operator.run.side_effect = run
            operator.stop.side_effect = stopped.set

            await main.configure(settings=make_settings(), memo=memo)
            assert memo.operator is operator
            assert mock_server.call_args[0][0] == 9100

            await asyncio.wait_for(main.cleanup(memo=memo), timeout=5)

        operator.stop.assert_called_once()
        mock_server.return_value.shutdown.assert_called_once()

    @pytest.mark.asyncio
    @patch("vault_secret_sync.main.initialize_tracing")
    @patch("vault_secret_sync.main.structured_logging.setup_structured_logging")
    @patch("vault_secret_sync.main.health.start_metrics_server")
    @patch("vault_secret_sync.main.VaultSecretStore")
    @patch("vault_secret_sync.main.get_core_api")
    @patch("vault_secret_sync.main.load_config")
    async def test_crashed_sync_is_logged_and_cleaned_up(
        self, mock_load, mock_core_api, mock_store, mock_server, mock_logging, mock_tracing, registry, caplog
    ):
        """Test that a dead sync task is logged and the metrics server still stops."""
        mock_load.return_value = OperatorConfig(registry=registry)
        memo = kopf.Memo()

        with patch("vault_secret_sync.main.SecretSyncOperator") as mock_operator_cls:
            operator = mock_operator_cls.return_value

            async def run():
                raise RuntimeError("vault client exploded")

            operator.run.side_effect = run

            with caplog.at_level(logging.ERROR, logger="vault_secret_sync.main"):
                await main.configure(settings=make_settings(), memo=memo)
                await asyncio.wait([memo.sync_task], timeout=5)
                await asyncio.sleep(0)

            assert "Secret sync stopped unexpectedly" in caplog.text

            with pytest.raises(RuntimeError, match="exploded"):
                await main.cleanup(memo=memo)

        mock_server.return_value.shutdown.assert_called_once()


class TestProbes:
    """Test cases for the liveness probes."""

    def test_probes(self):
        """Test that the probes report queue depth and readiness."""
        memo = kopf.Memo()
        memo.operator = MagicMock(ready=True)
        memo.operator.queue.qsize.return_value = 4

        assert main.queue_depth(memo=memo) == 4
        assert main.ready(memo=memo) is True
