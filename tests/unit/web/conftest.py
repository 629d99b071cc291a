"""Shared fixtures for web route tests.

Routes run against the real app in demo mode (no provider key) with an
in-memory SQLite database, so no test reaches the network.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from Aktien_Alerts.config import Settings
from Aktien_Alerts.web.app import create_app

CRON_SECRET = "test-cron-secret"


@pytest.fixture()
def settings() -> Settings:
    """Demo-mode settings backed by an in-memory database."""
    return Settings(db_path=":memory:")


@pytest.fixture()
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    """TestClient with the lifespan running, so app.state.runtime exists."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest.fixture()
def secured_client() -> Iterator[TestClient]:
    """Client for an app that requires the cron bearer secret."""
    app = create_app(Settings(db_path=":memory:", cron_secret=CRON_SECRET))
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
