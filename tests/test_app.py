"""
App factory, middleware and health checks.
"""

import pytest

from actionhub.config import ProductionConfig
from actionhub.middleware.logging_config import JSONFormatter


class TestHealth:

    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live_reports_dependencies(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        checks = res.get_json()["checks"]
        assert checks["database"]["status"] == "ok"
        assert checks["workspace"]["status"] == "ok"
        assert checks["firebase"]["status"] == "ok"


class TestMiddleware:

    def test_unknown_api_route_is_json_404(self, client):
        res = client.get("/api/v1/nothing-here")
        assert res.status_code == 404
        assert res.get_json()["code"] == "NOT_FOUND"

    def test_method_not_allowed(self, client):
        assert client.delete("/api/v1/health/ready").status_code == 405

    def test_security_and_timing_headers(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.headers["X-Content-Type-Options"] == "nosniff"
        assert "identitytoolkit.googleapis.com" in res.headers["Content-Security-Policy"]
        assert res.headers["X-Request-ID"] == "abc123"
        assert float(res.headers["X-Request-Duration-Ms"]) >= 0


class TestConfig:

    def test_production_requires_environment(self, monkeypatch):
        monkeypatch.delenv("SECRET_KEY", raising=False)
        with pytest.raises(RuntimeError):
            ProductionConfig()

    def test_testing_config_loaded(self, app):
        assert app.config["TESTING"] is True
        assert app.config["FIREBASE_PROJECT_ID"] == "actionhub-test"


class TestLogging:

    def test_json_formatter_includes_extra_fields(self):
        import json
        import logging

        record = logging.LogRecord("actionhub.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.user_id = "u-1"
        record.group_id = "quality@acme.com"
        payload = json.loads(JSONFormatter().format(record))
        assert payload["message"] == "hello world"
        assert payload["user_id"] == "u-1"
        assert payload["group_id"] == "quality@acme.com"
