"""Greedy best-route lookup over a carrier's simple rate cards."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence, Union

from ...config import Settings
from ...errors import ValidationError
from ...models.domain import (
    Package,
    RateCardEntry,
    RateNotFound,
    RateQuote,
    RateType,
    ShipmentLocation,
    first_present,
)
from ...persistence.store import SIMPLE_CARRIER_RATES
from ..catalog import RegionCatalog
from ..context import EngineContext
from ..units import CUBIC_INCHES_PER_CUBIC_FOOT, convert_length, convert_weight

logger = logging.getLogger(__name__)

CITY_SCORE = 100
POSTAL_SCORE = 80
STATE_SCORE = 20
MAX_SUGGESTIONS = 10
SKID_PACKAGE_TYPES = ("skid", "pallet", "crate")

NO_RATE_CARDS = "No rates found for this carrier"
NO_MATCHING_RATE = "No matching rate found for this route and shipment details"


def resolve_carrier_name(record: Mapping[str, Any]) -> Optional[str]:
    return first_present(record.get("carrier_name"), record.get("carrierName"), record.get("name"))


def score_location(rate_location: Optional[ShipmentLocation], shipment_location: Optional[ShipmentLocation]) -> int:
    """Exact city 100, same three-character postal prefix 80, same state 20, otherwise 0."""
    if rate_location is None or shipment_location is None:
        return 0
    if rate_location.city and shipment_location.city and rate_location.city.lower() == shipment_location.city.lower():
        return CITY_SCORE
    if rate_location.postal and shipment_location.postal:
        if rate_location.postal[:3].upper() == shipment_location.postal[:3].upper():
            return POSTAL_SCORE
    if rate_location.state and shipment_location.state and rate_location.state.lower() == shipment_location.state.lower():
        return STATE_SCORE
    return 0


def route_score(entry: RateCardEntry, origin: ShipmentLocation, destination: ShipmentLocation) -> int:
    from_score = score_location(entry.from_location, origin)
    to_score = score_location(entry.to_location, destination)
    if from_score == 0 or to_score == 0:
        return 0
    return from_score + to_score


def estimate_skids(packages: Sequence[Package], settings: Settings) -> int:
    """Count skid-like packages; at least one skid is always charged."""
    skids = 0
    for package in packages:
        package_type = (package.package_type or "").lower()
        if any(kind in package_type for kind in SKID_PACKAGE_TYPES):
            skids += package.quantity
            continue
        try:
            weight_lbs = convert_weight(package.weight, package.weight_unit, "lb")
            cubic_inches = 1.0
            for side in package.dimensions:
                cubic_inches *= convert_length(side, package.dimension_unit, "in")
        except ValueError as exc:
            logger.warning(f"Cannot size package for skid estimate: {exc}")
            continue
        cubic_feet = cubic_inches / CUBIC_INCHES_PER_CUBIC_FOOT
        if weight_lbs > settings.skid_weight_threshold_lbs or cubic_feet > settings.skid_volume_threshold_cubic_feet:
            skids += package.quantity
    return max(1, skids)


def price_entry(entry: RateCardEntry, weight: float, skids: int) -> Optional[tuple[float, float, str]]:
    """``(base_rate, total_rate, calculation)`` when the entry can price the shipment."""
    if entry.rate_type is RateType.SKID_BASED:
        price = entry.skid_rates.get(str(skids))
        if not price:
            return None
        if entry.min_weight and weight < entry.min_weight:
            return None
        return price, price, f"{skids} skid(s) × ${price:.2f} = ${price:.2f}"

    if weight < entry.weight_min:
        return None
    if entry.weight_max is not None and weight > entry.weight_max:
        return None
    cwt = weight / 100
    base = cwt * entry.rate_per_100_lbs
    total = max(base, entry.min_charge)
    calculation = (
        f"{cwt:.2f} cwt × ${entry.rate_per_100_lbs:g}/cwt = ${base:.2f}, "
        f"min charge ${entry.min_charge:g} = ${total:.2f}"
    )
    return round(base, 2), round(total, 2), calculation


class RateLookupEngine:
    def __init__(self, context: EngineContext, catalog: Optional[RegionCatalog] = None) -> None:
        self.context = context
        self.store = context.store
        self.catalog = catalog

    def load_entries(self, carrier_id: str) -> list[RateCardEntry]:
        """Flatten the carrier's active rate cards. Cards are taken in id order, entries in card order."""
        cards = sorted(
            self.store.find(SIMPLE_CARRIER_RATES, carrier_id=carrier_id, is_active=True),
            key=lambda card: str(card.get("id")),
        )
        entries: list[RateCardEntry] = []
        for card in cards:
            for row_number, row in enumerate(card.get("rates") or (), start=1):
                try:
                    entries.append(
                        RateCardEntry.from_record(
                            row,
                            rate_card_id=str(card.get("id")),
                            carrier_name=resolve_carrier_name(card),
                            currency=card.get("currency"),
                        )
                    )
                except (ValueError, TypeError) as exc:
                    logger.warning(f"Skipping rate card {card.get('id')} row {row_number}: {exc}")
        return entries

    def with_state(self, location: ShipmentLocation) -> ShipmentLocation:
        """Fill a missing state from the postal code's FSA/ZIP3 region."""
        if location.state or not location.postal or self.catalog is None:
            return location
        state = self.catalog.state_for_postal(location.country or self._guess_country(location.postal), location.postal)
        if state is None:
            return location
        return ShipmentLocation(city=location.city, postal=location.postal, state=state, country=location.country)

    @staticmethod
    def _guess_country(postal: str) -> str:
        return "US" if postal.strip()[:1].isdigit() else "CA"

    def lookup(
        self,
        carrier_id: str,
        from_location: Union[ShipmentLocation, Mapping[str, Any], str],
        to_location: Union[ShipmentLocation, Mapping[str, Any], str],
        chargeable_weight: float,
        skid_count: int = 1,
    ) -> Union[RateQuote, RateNotFound]:
        origin = ShipmentLocation.from_value(from_location)
        destination = ShipmentLocation.from_value(to_location)
        if not carrier_id or origin is None or destination is None:
            raise ValidationError("Carrier ID and from/to locations are required")
        origin, destination = self.with_state(origin), self.with_state(destination)

        entries = self.load_entries(carrier_id)
        if not entries:
            return RateNotFound(reason=NO_RATE_CARDS)

        best: Optional[RateQuote] = None
        for entry in entries:
            score = route_score(entry, origin, destination)
            if score == 0 or (best is not None and score <= best.score):
                continue
            priced = price_entry(entry, chargeable_weight, skid_count)
            if priced is None:
                continue
            base_rate, total_rate, calculation = priced
            best = RateQuote(
                entry=entry,
                score=score,
                base_rate=base_rate,
                total_rate=total_rate,
                calculation=calculation,
                skids_used=skid_count if entry.rate_type is RateType.SKID_BASED else None,
                weight_used=chargeable_weight if entry.rate_type is RateType.WEIGHT_BASED else None,
            )

        if best is None:
            logger.info(f"No rate for {carrier_id}: {origin.label()} → {destination.label()}")
            return RateNotFound(reason=NO_MATCHING_RATE, suggestions=available_routes(entries, origin))
        return best


def available_routes(entries: Sequence[RateCardEntry], origin: ShipmentLocation) -> dict[str, Any]:
    """Up to ten known origins, or destinations served from a matching origin."""
    from_matches = [entry for entry in entries if score_location(entry.from_location, origin) > 0]
    if not from_matches:
        kind, labels = "available_origins", [entry.from_location.label() for entry in entries]
    else:
        kind, labels = "available_destinations", [entry.to_location.label() for entry in from_matches]
    return {"type": kind, "locations": list(dict.fromkeys(labels))[:MAX_SUGGESTIONS]}
