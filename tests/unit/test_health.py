"""Tests for health check endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from vault_secret_sync.health import create_combined_wsgi_app, start_metrics_server


def make_environ(path):
    return {
        "REQUEST_METHOD": "GET",
        "PATH_INFO": path,
        "SCRIPT_NAME": "",
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "wsgi.url_scheme": "http",
    }


class TestCombinedWsgiApp:
    """Test cases for combined WSGI application."""

    def test_combined_app_healthz(self):
        """Test combined app handles /healthz."""
        app = create_combined_wsgi_app()

        start_response = MagicMock()
        result = app(make_environ("/healthz"), start_response)

        assert b'"status":"ok"' in b"".join(result)
        assert "200" in start_response.call_args[0][0]

    def test_combined_app_readyz(self):
        """Test combined app reports ready without a readiness check."""
        app = create_combined_wsgi_app()

        result = app(make_environ("/readyz"), MagicMock())

        assert b'"status":"ready"' in b"".join(result)

    def test_readyz_not_ready(self):
        """Test that /readyz returns 503 until the operator is ready."""
        app = create_combined_wsgi_app(readiness_check=lambda: False)

        start_response = MagicMock()
        result = app(make_environ("/readyz"), start_response)

        assert b'"status":"not ready"' in b"".join(result)
        assert "503" in start_response.call_args[0][0]

    def test_readyz_follows_check(self):
        """Test that readiness is evaluated per request."""
        state = {"ready": False}
        app = create_combined_wsgi_app(readiness_check=lambda: state["ready"])

        state["ready"] = True
        start_response = MagicMock()
        app(make_environ("/readyz"), start_response)

        assert "200" in start_response.call_args[0][0]

    def test_content_type_is_json(self):
        """Test that content type is application/json."""
        app = create_combined_wsgi_app()

        start_response = MagicMock()
        app(make_environ("/healthz"), start_response)

        headers = start_response.call_args[0][1]
        content_type_header = [h for h in headers if h[0].lower() == "content-type"]
        assert "application/json" in content_type_header[0][1]

    @patch("vault_secret_sync.health.make_wsgi_app")
    def test_combined_app_delegates_to_metrics(self, mock_make_wsgi):
        """Test combined app delegates /metrics to prometheus."""
        mock_metrics_app = MagicMock(return_value=[b"metrics data"])
        mock_make_wsgi.return_value = mock_metrics_app

        app = create_combined_wsgi_app()
        result = app(make_environ("/metrics"), MagicMock())

        assert mock_metrics_app.called
        assert result == [b"metrics data"]


class TestStartMetricsServer:
    """Integration tests for the metrics server."""

    @patch("vault_secret_sync.health.make_server")
    @patch("vault_secret_sync.health.threading.Thread")
    def test_starts_daemon_thread(self, mock_thread, mock_make_server):
        """Test that the server is created on the port and served from a daemon thread."""
        mock_server = MagicMock()
        mock_make_server.return_value = mock_server

        server = start_metrics_server(8080)

        assert server is mock_server
        assert mock_make_server.call_args[0][1] == 8080
        assert mock_thread.call_args[1].get("daemon") is True
        mock_thread.return_value.start.assert_called_once()
