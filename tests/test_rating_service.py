from datetime import datetime, timezone

import pytest

from src.shiprate.config import Settings
from src.shiprate.errors import ValidationError
from src.shiprate.models.domain import Package, RateNotFound, RateResult
from src.shiprate.persistence.memory import InMemoryStore
from src.shiprate.persistence.store import WriteBatch
from src.shiprate.services.context import EngineContext
from src.shiprate.services.rating.service import calculate_rate, rate_shipment

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


@pytest.fixture
def context() -> EngineContext:
    store = InMemoryStore(
        {
            "dim_factors": [
                {
                    "id": "f_c1",
                    "carrier_id": "c1",
                    "service_type": "all",
                    "zone": "all",
                    "factor": 166,
                    "unit": "in³/lb",
                    "effective_date": "2024-01-01T00:00:00Z",
                    "is_active": True,
                }
            ],
            "customer_dim_factor_overrides": [
                {
                    "id": "o_acme",
                    "customer_id": "acme",
                    "carrier_id": "c1",
                    "service_type": "all",
                    "zone": "all",
                    "factor": 250,
                    "unit": "in³/lb",
                    "effective_date": "2024-01-01T00:00:00Z",
                    "is_active": True,
                }
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
                            "weight_max": 5000,
                            "rate_per_100_lbs": 50,
                            "min_charge": 10,
                        }
                    ],
                }
            ],
        }
    )
    return EngineContext(store=store, settings=Settings(persist_import_reports=False), clock=lambda: NOW)


def test_rate_uses_chargeable_weight(context) -> None:
    packages = [Package(weight=10, length=24, width=18, height=12, quantity=2)]

    result = calculate_rate(context, "c1", {"city": "Toronto"}, {"city": "Montreal"}, packages)

    assert isinstance(result, RateResult)
    assert result.chargeable_weight == pytest.approx(62.6)
    assert result.actual_weight == 20
    assert result.weight_basis == "chargeable"
    # 0.626 cwt at $50
    assert result.base_rate == 31.3
    assert result.total_rate == 31.3
    assert result.currency == "CAD"


def test_customer_override_changes_chargeable_weight(context) -> None:
    packages = [Package(weight=10, length=24, width=18, height=12)]

    result = calculate_rate(context, "c1", "Toronto", "Montreal", packages, "acme")

    # 5184 / 250 = 20.736
    assert result.chargeable_weight == 20.8


def test_rating_includes_weight_metrics_and_skids(context) -> None:
    packages = [
        Package(weight=300, length=48, width=40, height=40, package_type="skid", declared_value=2000),
    ]

    rating = rate_shipment(context, "c1", "Toronto", "Montreal", packages)
    payload = rating.to_dict()

    assert payload["success"] is True
    assert payload["skids"] == 1
    assert payload["package_metrics"]["total_declared_value"] == 2000
    assert payload["dim_weight"]["dim_weight_applied"] is True
    assert [a["code"] for a in payload["rate"]["adjustments"]] == ["declared_value"]
    assert payload["rate"]["total_rate"] == pytest.approx(payload["rate"]["base_rate"] + 20.0)


def test_missing_route_is_a_result_not_an_error(context) -> None:
    rating = rate_shipment(context, "c1", "Toronto", "Halifax", [Package(weight=10)])

    assert isinstance(rating.result, RateNotFound)
    assert rating.to_dict()["success"] is False
    assert rating.result.suggestions["type"] == "available_destinations"


def test_rate_requires_packages(context) -> None:
    with pytest.raises(ValidationError):
        calculate_rate(context, "c1", "Toronto", "Montreal", [])


def test_metric_factor_is_priced_in_pounds(context) -> None:
    context.store.commit_batch(
        WriteBatch().set(
            "customer_dim_factor_overrides",
            "o_metric",
            {
                "customer_id": "metric",
                "carrier_id": "c1",
                "service_type": "all",
                "zone": "all",
                "factor": 5000,
                "unit": "cm³/kg",
                "effective_date": "2024-01-01T00:00:00Z",
                "is_active": True,
            },
        )
    )
    packages = [Package(weight=100, length=10, width=10, height=10, dimension_unit="cm"), Package(weight=100)]

    rating = rate_shipment(context, "c1", "Toronto", "Montreal", packages, customer_id="metric")

    # 45.4 kg + 45.3592 kg
    assert rating.weight.total_chargeable_weight == pytest.approx(90.7592)
    assert rating.result.chargeable_weight == pytest.approx(200.09, abs=0.01)
    assert rating.result.actual_weight == pytest.approx(200.0, abs=0.01)
    assert rating.result.base_rate == pytest.approx(100.04, abs=0.01)


def test_region_catalog_is_shared_across_ratings(context) -> None:
    catalog = context.region_catalog()

    rate_shipment(context, "c1", "Toronto", "Montreal", [Package(weight=10)])
    rate_shipment(context, "c1", "Toronto", "Montreal", [Package(weight=20)])

    assert context.region_catalog() is catalog
