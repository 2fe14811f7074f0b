import os

os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import pytest
from typing import Generator
from fastapi.testclient import TestClient

from fakes import FakeStripe, FakeSupabase
from hoopshop.app import create_app
from hoopshop.orders import events

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)

# Base Supabase en mémoire pour tous les tests (aucun accès réseau)
@pytest.fixture(autouse=True)
def store(monkeypatch) -> FakeSupabase:
    fake = FakeSupabase()

    async def _client():
        return fake

    monkeypatch.setattr("hoopshop.infra.supabase_client.get_supabase", _client)
    monkeypatch.setattr("hoopshop.infra.supabase_client.get_service_supabase", _client)
    return fake

# Stripe simulé: create/retrieve intent, retrieve customer
@pytest.fixture(autouse=True)
def stripe_fake(monkeypatch) -> FakeStripe:
    fake = FakeStripe()
    monkeypatch.setattr("hoopshop.payments.stripe_client.create_intent", fake.create_intent)
    monkeypatch.setattr("hoopshop.payments.stripe_client.retrieve_intent", fake.retrieve_intent)
    monkeypatch.setattr("hoopshop.payments.stripe_client.retrieve_customer", fake.retrieve_customer)
    return fake

# Bus d'événements neuf par test (le lifespan y enregistre les abonnés par défaut)
@pytest.fixture(autouse=True)
def event_bus(monkeypatch) -> events.EventBus:
    bus = events.EventBus()
    monkeypatch.setattr(events, "bus", bus)
    return bus

@pytest.fixture()
def app():
    return create_app()

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture()
def user_headers(store):
    store.add_user("user-token", "user-1", "player@example.com")
    return {"Authorization": "Bearer user-token"}

@pytest.fixture()
def admin_headers(store):
    store.add_user("admin-token", "admin-1", "admin@example.com", role="admin")
    return {"Authorization": "Bearer admin-token"}

@pytest.fixture()
def recorded_events(event_bus):
    """Liste des OrderMaterialized publiés pendant le test."""
    seen = []

    async def _record(event):
        seen.append(event)

    event_bus.subscribe(events.OrderMaterialized, _record)
    return seen
