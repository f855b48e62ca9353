"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, sets a test environment before any of them
reads settings, and swaps Supabase and the payment gateway for in-memory fakes.
"""

import os
import sys
from pathlib import Path

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_KEY"] = "test-key"
os.environ["JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["MP_ACCESS_TOKEN"] = ""
os.environ["MP_WEBHOOK_SECRET"] = "test-webhook-secret"
os.environ["CATALOG_CACHE_TTL_SECONDS"] = "0"

import pytest

from fakes import FakeGateway, FakeSupabase
from settings import get_settings

get_settings.cache_clear()

from repositories import product_repository, sale_repository, user_repository

CATALOG = {"Brinco": "50.00", "Colar": "120.00", "Anel": "35.50"}


@pytest.fixture
def fake_db(monkeypatch) -> FakeSupabase:
    db = FakeSupabase()
    db.seed_products(CATALOG)
    for module in (user_repository, product_repository, sale_repository):
        monkeypatch.setattr(module, "get_supabase", lambda: db)
    product_repository.clear_catalog_cache()
    return db


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def client(fake_db, fake_gateway):
    from fastapi.testclient import TestClient

    from api.dependencies import (
        gateway_resolver,
        get_api_limiter,
        get_auth_limiter,
        optional_gateway,
        require_gateway,
    )
    from api.main import app

    get_auth_limiter().reset()
    get_api_limiter().reset()
    app.dependency_overrides[optional_gateway] = lambda: fake_gateway
    app.dependency_overrides[require_gateway] = lambda: fake_gateway
    app.dependency_overrides[gateway_resolver] = lambda: (lambda: fake_gateway)
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
