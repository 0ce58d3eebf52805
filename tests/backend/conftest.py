"""Shared fixtures for API tests: dependency overrides, no database required."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.core.dependencies import (
    get_current_user,
    get_email_sender,
    get_segment_refresher,
    get_trigger_engine,
)
from app.db.session import get_async_session
from app.main import app
from app.models.segment import CustomerSegment
from packages.core.automation import AutomationTriggerEngine
from packages.core.segmentation import SegmentRefresher, SegmentType

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_segment_row(tenant_id: UUID, **overrides) -> CustomerSegment:
    """Transient CustomerSegment row with every column populated."""
    data = {
        "id": uuid4(),
        "tenant_id": tenant_id,
        "name": "Regulars",
        "description": None,
        "type": SegmentType.CUSTOM,
        "criteria": {"match": "all", "rules": [{"condition": "min_bookings", "value": 3}]},
        "color": "#22C55E",
        "icon": "heart",
        "auto_actions": [],
        "customer_count": 4,
        "is_active": True,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return CustomerSegment(**data)


@pytest.fixture
def tenant_id() -> UUID:
    return uuid4()


@pytest.fixture
def current_user(tenant_id):
    return SimpleNamespace(id=uuid4(), email="owner@example.com", tenant_id=tenant_id)


@pytest.fixture
def session():
    """Stand-in AsyncSession; service functions are patched per test."""
    session = MagicMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()
    session.delete = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=None)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested.return_value = savepoint
    return session


@pytest.fixture
def refresher():
    return AsyncMock(spec=SegmentRefresher)


@pytest.fixture
def trigger_engine():
    return AsyncMock(spec=AutomationTriggerEngine)


@pytest.fixture
def email_sender():
    return MagicMock()


@pytest.fixture
def settings(monkeypatch):
    """Cached settings with both shared secrets unset."""
    settings = get_settings()
    monkeypatch.setattr(settings, "cron_secret", None)
    monkeypatch.setattr(settings, "internal_api_secret", None)
    return settings


@pytest.fixture
def client(current_user, session, refresher, trigger_engine, email_sender, settings):
    """TestClient with auth, database and service dependencies overridden."""
    app.dependency_overrides[get_current_user] = lambda: current_user
    app.dependency_overrides[get_async_session] = lambda: session
    app.dependency_overrides[get_segment_refresher] = lambda: refresher
    app.dependency_overrides[get_trigger_engine] = lambda: trigger_engine
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture
def segment_row():
    """Factory for transient CustomerSegment rows."""
    return make_segment_row
