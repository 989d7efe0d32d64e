"""
Tests for the app shell: health check, JSON error envelopes, CORS and
security headers, and configuration loading.
"""

import logging
import os
import re

import pytest
from unittest.mock import patch

from fastapi.testclient import TestClient

from app.config import DEFAULT_TEMPLATES_DIR, Settings
from app.main import DEFAULT_CORS_ORIGINS, app, get_cors_origins
from app.security import SECURITY_HEADERS


@pytest.fixture()
def client():
    return TestClient(app)


class TestHealth:

    def test_health_returns_success_and_timestamp(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["message"] == "Portfolio API is running!"
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z", body["timestamp"])


class TestErrorEnvelope:

    def test_unknown_route_is_404_json(self, client):
        response = client.get("/api/nope")

        assert response.status_code == 404
        assert response.json() == {"success": False, "message": "Endpoint not found"}

    def test_wrong_method_keeps_status(self, client):
        response = client.get("/api/contact")

        assert response.status_code == 405
        assert response.json() == {"success": False, "message": "Method Not Allowed"}


class TestSecurityHeaders:

    @pytest.mark.parametrize("path", ["/api/health", "/api/nope"])
    def test_headers_on_every_response(self, client, path):
        response = client.get(path)

        for header, value in SECURITY_HEADERS.items():
            assert response.headers[header] == value


class TestCors:

    def test_preflight_from_allowed_origin(self, client):
        response = client.options(
            "/api/contact",
            headers={
                "Origin": "https://abhishekgoel.dev",
                "Access-Control-Request-Method": "POST",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://abhishekgoel.dev"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_unknown_origin_gets_no_cors_headers(self, client):
        response = client.get("/api/health", headers={"Origin": "https://evil.example"})

        assert "access-control-allow-origin" not in response.headers

    def test_extra_origins_are_normalized_and_deduplicated(self):
        settings = Settings(
            cors_origins=[
                "https://preview.example.com/",
                "https://abhishekgoel.dev",
                "https://preview.example.com",
            ]
        )

        origins = get_cors_origins(settings)

        assert origins[: len(DEFAULT_CORS_ORIGINS)] == DEFAULT_CORS_ORIGINS
        assert origins.count("https://preview.example.com") == 1
        assert origins.count("https://abhishekgoel.dev") == 1
        assert all(not o.endswith("/") for o in origins)


class TestLifecycle:

    def test_startup_logs_banner(self, caplog):
        with caplog.at_level(logging.INFO, logger="app.main"):
            with TestClient(app):
                pass

        assert "Portfolio API started" in caplog.text
        assert "/api/contact" in caplog.text


class TestSettingsFromEnv:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.port == 3000
        assert settings.environment == "development"
        assert settings.uses_gmail is True
        assert (settings.mail_host, settings.mail_port, settings.mail_use_tls) == ("smtp.gmail.com", 465, True)
        assert settings.email_password is None
        assert settings.email_pool is True
        assert settings.templates_dir == DEFAULT_TEMPLATES_DIR
        assert (settings.connection_timeout, settings.greeting_timeout, settings.socket_timeout) == (60, 30, 60)
        assert (settings.max_connections, settings.max_messages_per_connection) == (5, 100)

    def test_custom_smtp(self):
        env = {
            "EMAIL_SERVICE": "smtp",
            "SMTP_HOST": "mail.example.com",
            "SMTP_PORT": "2525",
            "SMTP_SECURE": "true",
            "EMAIL_USER": "me@example.com",
            "EMAIL_PASSWORD": "secret",
            "EMAIL_POOL": "false",
            "NODE_ENV": "production",
            "PORT": "8080",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = Settings.from_env()

        assert (settings.mail_host, settings.mail_port, settings.mail_use_tls) == ("mail.example.com", 2525, True)
        assert settings.email_pool is False
        assert settings.environment == "production"
        assert settings.port == 8080

    def test_owner_email_defaults_to_email_user(self):
        with patch.dict(os.environ, {"EMAIL_USER": "me@example.com"}, clear=True):
            settings = Settings.from_env()

        assert settings.owner_email == "me@example.com"
        assert settings.contact_address == "me@example.com"

    def test_cors_origins_are_split(self):
        with patch.dict(os.environ, {"CORS_ORIGINS": " https://a.example , ,https://b.example"}, clear=True):
            settings = Settings.from_env()

        assert settings.cors_origins == ["https://a.example", "https://b.example"]

    def test_bad_port_is_rejected(self):
        with patch.dict(os.environ, {"SMTP_PORT": "smtp"}, clear=True):
            with pytest.raises(ValueError, match="SMTP_PORT"):
                Settings.from_env()

    def test_settings_are_immutable(self):
        settings = Settings()
        with pytest.raises(Exception):
            settings.port = 1
