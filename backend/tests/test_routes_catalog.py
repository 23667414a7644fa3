"""
HTTP tests for the catalog and health routes.
get_db is overridden with the per-test SQLite session.
"""

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from atma_catalog.core.config import PLACEHOLDER_ADMIN_KEY, settings
from atma_catalog.db.database import get_db
from atma_catalog.main import app

API = settings.api_prefix


def _client_for(session):
    app.dependency_overrides[get_db] = lambda: session
    return TestClient(app)


@pytest.fixture
def client(db):
    yield _client_for(db)
    app.dependency_overrides.clear()


@pytest.fixture
def broken_client(broken_db):
    yield _client_for(broken_db)
    app.dependency_overrides.clear()


class TestCatalogListing:

    def test_lists_retreats(self, client, factory):
        prop = factory.property("Cliff House", city="Uluwatu", country="ID")
        retreat = factory.retreat("Surf & Stillness", prop=prop)
        factory.price(850, retreat_id=retreat.id, date_start=date.today() - timedelta(days=1))

        response = client.get(f"{API}/catalog/retreats")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "results"
        assert data["kind"] == "retreats"
        assert data["total_count"] == 1
        item = data["items"][0]
        assert item["id"] == retreat.id
        assert item["location"] == "Uluwatu, Indonesia"
        assert item["price"] == {"available": True, "amount": 850, "currency": "USD", "label": "From 850 USD"}
        assert item["details"]["property_name"] == "Cliff House"

    def test_empty_state_has_message(self, client):
        data = client.get(f"{API}/catalog/programs", params={"category": "yoga"}).json()
        assert data["state"] == "empty"
        assert data["items"] == []
        assert data["total_count"] == 0
        assert data["message"]

    def test_malformed_params_never_fail(self, client, factory):
        factory.property()
        response = client.get(
            f"{API}/catalog/properties",
            params={"page": "zero", "pageSize": "9999", "priceMin": "cheap", "sort": "???", "verified": "perhaps"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["page"] == 1
        assert data["page_size"] == 100
        assert data["sort"] == "created" and data["direction"] == "desc"
        assert data["total_count"] == 1

    def test_pagination_fields(self, client, factory):
        for i in range(5):
            factory.property(f"P{i}")
        data = client.get(f"{API}/catalog/properties", params={"pageSize": "2", "page": "3"}).json()
        assert len(data["items"]) == 1
        assert data["total_pages"] == 3

    def test_past_end_state(self, client, factory):
        factory.property()
        data = client.get(f"{API}/catalog/properties", params={"page": "4"}).json()
        assert data["state"] == "past_end"
        assert data["total_count"] == 1

    @pytest.mark.parametrize("params", [
        {"priceMin": "0", "priceMax": str(10 ** 20)},
        {"page": str(10 ** 20)},
    ])
    def test_oversized_numbers_are_not_server_errors(self, client, factory, params):
        factory.property()
        response = client.get(f"{API}/catalog/properties", params=params)
        assert response.status_code == 200
        assert response.json()["total_count"] == 1

    def test_radius_search_reports_distance(self, client, factory):
        prop = factory.property("Cliff House", city="Uluwatu", lat=-8.8291, lng=115.0849)
        factory.property("Far Away", city="Tokyo", country="JP", lat=35.6762, lng=139.6503)
        data = client.get(f"{API}/catalog/properties", params={"lat": "-8.8291", "lng": "115.0849"}).json()
        assert [item["id"] for item in data["items"]] == [prop.id]
        assert data["items"][0]["details"]["distance_miles"] == 0.0

    def test_unknown_catalog_is_404(self, client):
        assert client.get(f"{API}/catalog/spaceships").status_code == 404

    def test_store_failure_is_503(self, broken_client):
        response = broken_client.get(f"{API}/catalog/retreats")
        assert response.status_code == 503
        assert response.json() == {"state": "error", "message": "Unable to load results. Please try again."}


class TestAdminScope:

    def test_admin_key_unlocks_drafts(self, client, factory):
        factory.retreat("Live")
        factory.retreat("Draft", status="draft")

        public = client.get(f"{API}/catalog/retreats").json()
        admin = client.get(f"{API}/catalog/retreats", headers={"X-API-Key": settings.admin_api_key}).json()
        wrong_key = client.get(f"{API}/catalog/retreats", headers={"X-API-Key": "nope"}).json()

        assert public["total_count"] == 1
        assert admin["total_count"] == 2
        assert wrong_key["total_count"] == 1

    def test_placeholder_key_never_grants_admin(self, client, factory, monkeypatch):
        monkeypatch.setattr(settings, "admin_api_key", PLACEHOLDER_ADMIN_KEY)
        factory.retreat("Live")
        factory.retreat("Draft", status="draft")
        data = client.get(f"{API}/catalog/retreats", headers={"X-API-Key": PLACEHOLDER_ADMIN_KEY}).json()
        assert data["total_count"] == 1


class TestTabbedSearch:

    def test_every_kind_is_returned(self, client, factory):
        prop = factory.property("Garden Spa", type="spa")
        factory.retreat("Spa Weekend", prop=prop, category="spa")
        factory.program("Meditation Basics", prop=prop, category="meditation")

        data = client.get(f"{API}/catalog/search", params={"category": "spa"}).json()

        assert set(data["results"]) == {"retreats", "programs", "properties"}
        assert data["results"]["retreats"]["total_count"] == 1
        assert data["results"]["programs"]["state"] == "empty"
        assert data["results"]["properties"]["total_count"] == 1

    def test_store_failure_is_503(self, broken_client):
        assert broken_client.get(f"{API}/catalog/search").status_code == 503


class TestHealth:

    def test_health_counts_listings(self, client, factory):
        factory.property()
        data = client.get(f"{API}/health/").json()
        assert data["status"] == "healthy"
        assert data["listings"] == {"retreats": 0, "programs": 0, "properties": 1}

    def test_health_degraded_without_tables(self, broken_client):
        data = broken_client.get(f"{API}/health/").json()
        assert data["status"] == "degraded"

    def test_liveness(self, client):
        assert client.get(f"{API}/health/live").json()["alive"] is True

    def test_request_id_is_echoed(self, client):
        response = client.get(f"{API}/health/live", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"
