from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from src.shiprate.api import dependencies
from src.shiprate.api.dependencies import get_engine_context
from src.shiprate.config import Settings
from src.shiprate.errors import StorageError
from src.shiprate.main import create_app
from src.shiprate.persistence.memory import InMemoryStore
from src.shiprate.services.context import EngineContext

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(
        {
            "geo_locations": [
                {"id": "loc_1", "city": "Toronto", "province_state": "ON", "country": "CA",
                 "postal_code": "M5V 3A8", "latitude": 43.6426, "longitude": -79.3871},
                {"id": "loc_2", "city": "Toronto", "province_state": "ON", "country": "CA",
                 "postal_code": "M4C 1A1", "latitude": 43.6890, "longitude": -79.3080},
            ],
            "dim_factors": [
                {"id": "f_c1", "carrier_id": "c1", "service_type": "all", "zone": "all", "factor": 166,
                 "unit": "in³/lb", "effective_date": "2024-01-01", "is_active": True},
            ],
            "simple_carrier_rates": [
                {
                    "id": "rc_maple",
                    "carrier_id": "c1",
                    "carrier_name": "Maple Freight",
                    "currency": "CAD",
                    "is_active": True,
                    "rates": [
                        {
                            "from_location": {"city": "Toronto", "state": "ON"},
                            "to_location": {"city": "Montreal", "state": "QC"},
                            "rate_type": "weight_based",
                            "rate_per_100_lbs": 25,
                            "min_charge": 75,
                        }
                    ],
                }
            ],
        }
    )


@pytest.fixture
def api_client(store: InMemoryStore, tmp_path) -> TestClient:
    context = EngineContext(
        store=store,
        settings=Settings(persist_import_reports=False, import_batch_pause_seconds=0.0, data_root=tmp_path),
        clock=lambda: NOW,
    )
    app = create_app()
    app.dependency_overrides[get_engine_context] = lambda: context
    return TestClient(app)


ZONE = {
    "zone_id": "ON-TOR-01",
    "zone_name": "Toronto Core",
    "country_code": "ca",
    "state_province_code": "on",
    "city": "Toronto",
    "postal_codes": ["M5V"],
    "latitude": 43.6532,
    "longitude": -79.3832,
    "search_radius_meters": 20000,
}


def test_health(api_client: TestClient) -> None:
    response = api_client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_resolve_zone_endpoint(api_client: TestClient) -> None:
    response = api_client.post("/api/zones/resolve", json=ZONE)

    assert response.status_code == 200
    body = response.json()
    assert body["zone_id"] == "ON-TOR-01"
    assert body["match_quality"] == "perfect"
    assert len(body["matches"]) == 2


def test_import_then_browse_zones(api_client: TestClient) -> None:
    response = api_client.post("/api/zones/import", json={"zones": [ZONE]})

    assert response.status_code == 200
    report = response.json()
    assert report["successful"] == 1
    assert report["state"] == "done"

    listing = api_client.get("/api/zones", params={"search": "toronto"}).json()
    assert listing["total_count"] == 1
    zone_doc_id = listing["zones"][0]["id"]

    cities = api_client.get(f"/api/zones/{zone_doc_id}/cities").json()
    assert cities["summary"]["total_cities"] == 2

    added = api_client.post(f"/api/zones/{zone_doc_id}/cities", json={"city": "Etobicoke", "province": "ON"})
    assert added.status_code == 201
    duplicate = api_client.post(f"/api/zones/{zone_doc_id}/cities", json={"city": "Etobicoke", "province": "ON"})
    assert duplicate.status_code == 400

    removed = api_client.delete(f"/api/zones/cities/{added.json()['zone_city_id']}")
    assert removed.status_code == 200


def test_unknown_zone_is_404(api_client: TestClient) -> None:
    response = api_client.get("/api/zones/missing/cities")

    assert response.status_code == 404


def test_import_requires_zones(api_client: TestClient) -> None:
    response = api_client.post("/api/zones/import", json={"zones": []})

    assert response.status_code == 422


def test_chargeable_weight_endpoint(api_client: TestClient) -> None:
    response = api_client.post(
        "/api/rates/chargeable-weight",
        json={"carrier_id": "c1", "packages": [{"weight": 10, "length": 24, "width": 18, "height": 12}]},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["total_chargeable"] == 31.3
    assert body["dim_weight_applied"] is True
    assert body["per_package"][0]["volumetric_weight"] == pytest.approx(31.2289, abs=1e-4)


def test_calculate_rate_endpoint(api_client: TestClient) -> None:
    payload = {
        "carrier_id": "c1",
        "from_location": {"city": "Toronto"},
        "to_location": {"city": "Montreal"},
        "packages": [{"weight": 500}],
    }

    response = api_client.post("/api/rates/calculate", json=payload)

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["rate"]["total_rate"] == 125.0
    assert body["rate"]["weight_basis"] == "actual"


def test_calculate_rate_without_route_returns_success_false(api_client: TestClient) -> None:
    payload = {
        "carrier_id": "c1",
        "from_location": {"city": "Toronto"},
        "to_location": {"city": "Halifax"},
        "packages": [{"weight": 500}],
    }

    response = api_client.post("/api/rates/calculate", json=payload)

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["rate"]["suggestions"]["locations"] == ["Montreal, QC"]


def test_dim_factor_admin_endpoints(api_client: TestClient) -> None:
    created = api_client.post("/api/dim-factors", json={"carrier_id": "c2", "factor": 139, "unit": "in3/lb"})
    assert created.status_code == 201
    dim_factor_id = created.json()["dim_factor_id"]

    listing = api_client.get("/api/dim-factors", params={"carrier_id": "c2"}).json()
    assert listing["count"] == 1
    assert listing["dim_factors"][0]["unit"] == "in³/lb"

    updated = api_client.patch(f"/api/dim-factors/{dim_factor_id}", json={"factor": 150})
    assert updated.status_code == 200

    invalid = api_client.post("/api/dim-factors", json={"carrier_id": "c2", "factor": 139, "unit": "ft3/lb"})
    assert invalid.status_code == 400

    deleted = api_client.delete(f"/api/dim-factors/{dim_factor_id}")
    assert deleted.status_code == 200
    assert api_client.delete(f"/api/dim-factors/{dim_factor_id}").status_code == 404


def test_storage_failure_is_503(api_client: TestClient, store: InMemoryStore) -> None:
    store.fail_when("find")

    response = api_client.get("/api/zones")

    assert response.status_code == 503
    assert response.json()["detail"].startswith("Database connection error")


def test_unconfigured_database_is_503(monkeypatch: pytest.MonkeyPatch) -> None:
    def _unconfigured():
        raise StorageError("Supabase is not configured")

    monkeypatch.setattr(dependencies, "build_default_context", _unconfigured)
    client = TestClient(create_app())

    response = client.get("/api/zones")

    assert response.status_code == 503
