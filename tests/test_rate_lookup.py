from datetime import datetime, timezone

import pytest

from src.shiprate.config import Settings
from src.shiprate.errors import ValidationError
from src.shiprate.models.domain import Package, RateNotFound, RateQuote, ShipmentLocation
from src.shiprate.persistence.memory import InMemoryStore
from src.shiprate.services.catalog import RegionCatalog
from src.shiprate.services.context import EngineContext
from src.shiprate.services.rating.lookup import (
    NO_MATCHING_RATE,
    NO_RATE_CARDS,
    RateLookupEngine,
    estimate_skids,
    score_location,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)

MAPLE_CARD = {
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
            "weight_min": 0,
            "weight_max": 1000,
            "rate_per_100_lbs": 25,
            "min_charge": 75,
        },
        {
            "from_location": {"city": "Toronto", "state": "ON"},
            "to_location": {"city": "Vancouver"},
            "rate_type": "skid_based",
            "skid_rates": {"1": 485, "2": 650},
            "min_weight": 100,
        },
        {
            "from_location": {"state": "ON"},
            "to_location": {"state": "QC"},
            "rate_type": "weight_based",
            "weight_min": 0,
            "weight_max": 10000,
            "rate_per_100_lbs": 20,
            "min_charge": 50,
        },
    ],
}


def _context(*cards: dict, regions: list[dict] | None = None) -> EngineContext:
    store = InMemoryStore({"simple_carrier_rates": list(cards), "regions": regions or []})
    return EngineContext(store=store, settings=Settings(persist_import_reports=False), clock=lambda: NOW)


def _engine(*cards: dict, regions: list[dict] | None = None) -> RateLookupEngine:
    context = _context(*cards, regions=regions)
    return RateLookupEngine(context, catalog=RegionCatalog(context.store))


@pytest.mark.parametrize(
    "rate_location, shipment_location, expected",
    [
        (ShipmentLocation(city="Toronto"), ShipmentLocation(city="toronto"), 100),
        (ShipmentLocation(postal="M5V 1A1"), ShipmentLocation(postal="m5v 3a8"), 80),
        (ShipmentLocation(state="ON"), ShipmentLocation(city="Ottawa", state="on"), 20),
        (ShipmentLocation(city="Toronto", state="ON"), ShipmentLocation(city="Montreal", state="QC"), 0),
        (None, ShipmentLocation(city="Toronto"), 0),
    ],
)
def test_score_location(rate_location, shipment_location, expected) -> None:
    assert score_location(rate_location, shipment_location) == expected


def test_weight_based_rate_applies_per_hundredweight() -> None:
    quote = _engine(MAPLE_CARD).lookup("c1", {"city": "Toronto"}, {"city": "Montreal"}, 400)

    assert isinstance(quote, RateQuote)
    assert quote.score == 200
    assert quote.base_rate == 100.0
    assert quote.total_rate == 100.0
    assert quote.weight_used == 400
    assert quote.calculation == "4.00 cwt × $25/cwt = $100.00, min charge $75 = $100.00"
    assert quote.entry.carrier_name == "Maple Freight"


def test_minimum_charge_applies() -> None:
    quote = _engine(MAPLE_CARD).lookup("c1", {"city": "Toronto"}, {"city": "Montreal"}, 100)

    assert quote.base_rate == 25.0
    assert quote.total_rate == 75.0


def test_state_level_match_keeps_first_entry_with_that_score() -> None:
    quote = _engine(MAPLE_CARD).lookup(
        "c1", {"city": "Ottawa", "state": "ON"}, {"city": "Quebec City", "state": "QC"}, 500
    )

    # The Toronto-Montreal line also matches on state and comes before the ON-QC line.
    assert quote.score == 40
    assert quote.entry.to_location.city == "Montreal"
    assert quote.total_rate == 125.0


def test_weight_outside_bracket_falls_through_to_next_best_entry() -> None:
    quote = _engine(MAPLE_CARD).lookup(
        "c1", {"city": "Toronto", "state": "ON"}, {"city": "Montreal", "state": "QC"}, 2000
    )

    assert quote.score == 40
    assert quote.total_rate == 400.0


def test_skid_rate_uses_skid_count() -> None:
    quote = _engine(MAPLE_CARD).lookup("c1", "Toronto", "Vancouver", 300, skid_count=2)

    assert quote.total_rate == 650.0
    assert quote.skids_used == 2
    assert quote.weight_used is None
    assert quote.calculation == "2 skid(s) × $650.00 = $650.00"


def test_unpriced_skid_count_suggests_destinations() -> None:
    result = _engine(MAPLE_CARD).lookup("c1", "Toronto", "Vancouver", 300, skid_count=3)

    assert isinstance(result, RateNotFound)
    assert result.reason == NO_MATCHING_RATE
    assert result.suggestions == {
        "type": "available_destinations",
        "locations": ["Montreal, QC", "Vancouver"],
    }


def test_skid_minimum_weight_is_enforced() -> None:
    result = _engine(MAPLE_CARD).lookup("c1", "Toronto", "Vancouver", 50, skid_count=1)

    assert isinstance(result, RateNotFound)


def test_unknown_origin_suggests_origins() -> None:
    result = _engine(MAPLE_CARD).lookup("c1", {"city": "Calgary", "state": "AB"}, "Montreal", 100)

    assert result.suggestions["type"] == "available_origins"
    assert result.suggestions["locations"] == ["Toronto, ON", "ON"]


def test_carrier_without_cards() -> None:
    result = _engine(MAPLE_CARD).lookup("c2", "Toronto", "Montreal", 100)

    assert result.reason == NO_RATE_CARDS
    assert result.suggestions is None


def test_inactive_cards_are_ignored() -> None:
    result = _engine({**MAPLE_CARD, "is_active": False}).lookup("c1", "Toronto", "Montreal", 100)

    assert result.reason == NO_RATE_CARDS


def test_equal_scores_keep_first_entry_in_card_id_order() -> None:
    def card(card_id: str, rate: float) -> dict:
        return {
            "id": card_id,
            "carrier_id": "c1",
            "is_active": True,
            "rates": [
                {
                    "from_location": {"city": "Toronto"},
                    "to_location": {"city": "Montreal"},
                    "rate_type": "weight_based",
                    "rate_per_100_lbs": rate,
                },
                {
                    "from_location": {"city": "Toronto"},
                    "to_location": {"city": "Montreal"},
                    "rate_type": "weight_based",
                    "rate_per_100_lbs": rate + 1,
                },
            ],
        }

    quote = _engine(card("rc_b", 30), card("rc_a", 20)).lookup("c1", "Toronto", "Montreal", 100)

    assert quote.entry.rate_card_id == "rc_a"
    assert quote.total_rate == 20.0


def test_missing_state_is_filled_from_postal_region() -> None:
    regions = [
        {"id": "state_province_qc", "code": "QC", "name": "Quebec", "type": "state_province", "enabled": True,
         "metadata": {"country": "CA"}},
        {"id": "fsa_h3b", "code": "H3B", "name": "Montreal Downtown", "type": "fsa",
         "parent_region_id": "state_province_qc", "enabled": True, "metadata": {"country": "CA"}},
    ]

    quote = _engine(MAPLE_CARD, regions=regions).lookup(
        "c1", {"city": "Kingston", "state": "ON"}, {"postal": "H3B 2G7"}, 500
    )

    assert quote.score == 40
    assert quote.entry.to_location.state == "QC"


def test_lookup_requires_locations() -> None:
    with pytest.raises(ValidationError):
        _engine(MAPLE_CARD).lookup("c1", "", "Montreal", 100)


def test_estimate_skids() -> None:
    settings = Settings(persist_import_reports=False)

    assert estimate_skids([Package(weight=10, package_type="Pallet", quantity=2)], settings) == 2
    assert estimate_skids([Package(weight=250)], settings) == 1
    assert estimate_skids([Package(weight=100, weight_unit="kg"), Package(weight=300)], settings) == 2
    assert estimate_skids([Package(weight=50, length=48, width=40, height=20, quantity=3)], settings) == 3
    assert estimate_skids([Package(weight=5, length=10, width=10, height=10)], settings) == 1
    assert estimate_skids([Package(weight=500, weight_unit="stone")], settings) == 1
