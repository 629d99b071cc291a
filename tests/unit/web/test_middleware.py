"""Tests for the validation exception handler and request logging middleware."""

import logging
from decimal import Decimal

import pytest
from fastapi import FastAPI
from starlette.testclient import TestClient

from Aktien_Alerts.models.alerts import parse_alert
from Aktien_Alerts.web.middleware import RequestLoggingMiddleware, register_exception_handlers


def _make_test_app() -> FastAPI:
    """Create a minimal FastAPI app with exception handlers for testing."""
    app = FastAPI()
    register_exception_handlers(app)

    @app.get("/raise-validation")
    async def raise_validation() -> None:
        parse_alert({"user_id": "u", "symbol": "AAPL", "direction": "rise", "percent": Decimal("5")})

    return app


class TestValidationHandler:
    """Model validation errors raised inside handlers become HTTP 422."""

    def setup_method(self) -> None:
        self.client = TestClient(_make_test_app(), raise_server_exceptions=False)

    def test_returns_422(self) -> None:
        response = self.client.get("/raise-validation")
        assert response.status_code == 422

    def test_detail_lists_errors(self) -> None:
        detail = self.client.get("/raise-validation").json()["detail"]
        assert detail
        assert {"loc", "msg", "type"} <= set(detail[0])
        assert any("baseline" in err["loc"] for err in detail)


class TestRequestLoggingMiddleware:
    """Test request logging middleware integration."""

    @staticmethod
    def _app() -> FastAPI:
        app = FastAPI()
        app.add_middleware(RequestLoggingMiddleware)

        @app.get("/test-log")
        async def test_endpoint() -> dict[str, str]:
            return {"status": "ok"}

        @app.get("/api/health")
        async def health() -> dict[str, str]:
            return {"status": "ok"}

        return app

    def test_middleware_logs_request(self, caplog: pytest.LogCaptureFixture) -> None:
        """RequestLoggingMiddleware should log method, path, status, and duration."""
        client = TestClient(self._app())
        with caplog.at_level(logging.INFO, logger="Aktien_Alerts.web.middleware"):
            response = client.get("/test-log")

        assert response.status_code == 200
        assert any(
            "GET" in record.message and "/test-log" in record.message and "200" in record.message
            for record in caplog.records
        )

    def test_health_check_logged_at_debug(self, caplog: pytest.LogCaptureFixture) -> None:
        client = TestClient(self._app())
        with caplog.at_level(logging.DEBUG, logger="Aktien_Alerts.web.middleware"):
            client.get("/api/health")

        records = [r for r in caplog.records if "/api/health" in r.message]
        assert records
        assert all(r.levelno == logging.DEBUG for r in records)
