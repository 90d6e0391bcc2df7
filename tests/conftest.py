"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("SUPABASE_KEY", "test-service-key")

from comex_ledger.services import build_services  # noqa: E402
from fakes import FakeStore  # noqa: E402

FIXED_NOW = datetime(2026, 10, 17, 12, 0, tzinfo=UTC)


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def store():
    """Empty in-memory entity store."""
    return FakeStore()


@pytest.fixture
def clock():
    """Frozen clock for lifecycle timestamps."""
    return lambda: FIXED_NOW


@pytest.fixture
def services(store, clock):
    """All services wired over the in-memory store."""
    return build_services(store, clock=clock)


@pytest.fixture
def mock_client_row():
    """Client row as the store returns it."""
    return {
        "id": "44444444-4444-4444-4444-444444444444",
        "code": "0058",
        "name": "Acme Trading",
        "cnpj": "12.345.678/0001-90",
        "email": "finance@acme.example",
        "phone": None,
        "balance": "15000.00",
        "active": True,
        "created_at": "2026-01-15T10:00:00+00:00",
        "updated_at": None,
    }
