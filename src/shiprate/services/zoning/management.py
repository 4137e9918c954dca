"""Browsing and hand-editing of imported zones."""

from __future__ import annotations

import logging
import math
from typing import Any, Mapping, Optional

from ...errors import RecordNotFound, ValidationError
from ...models.domain import MatchType
from ...persistence.store import ZONE_CITIES, ZONE_POSTAL_CODES, ZONES, WriteBatch
from ..context import EngineContext

logger = logging.getLogger(__name__)

SEARCH_FIELDS = ("zone_name", "zone_code", "primary_city", "description", "state_province")
SORTABLE_FIELDS = {"zone_name", "zone_code", "country_code", "state_province_code", "zone_type", "primary_city"}


def _matches_search(zone: Mapping[str, Any], term: str) -> bool:
    for field_name in SEARCH_FIELDS:
        value = zone.get(field_name)
        if value and term in str(value).lower():
            return True
    return any(term in str(variation).lower() for variation in zone.get("city_variations") or ())


def list_zones(
    context: EngineContext,
    *,
    search: Optional[str] = None,
    country_code: Optional[str] = None,
    state_province_code: Optional[str] = None,
    zone_type: Optional[str] = None,
    page: int = 0,
    page_size: int = 50,
    sort_by: str = "zone_name",
    descending: bool = False,
) -> dict[str, Any]:
    """Filter, search, sort and paginate zones."""
    if page < 0 or page_size < 1:
        raise ValidationError("page must be >= 0 and page_size >= 1")
    if sort_by not in SORTABLE_FIELDS:
        raise ValidationError(f"Cannot sort zones by '{sort_by}'")

    filters: dict[str, Any] = {}
    if country_code:
        filters["country_code"] = country_code.upper()
    if state_province_code:
        filters["state_province_code"] = state_province_code.upper()
    if zone_type:
        filters["zone_type"] = zone_type
    zones = context.store.find(ZONES, **filters)

    if search and search.strip():
        term = search.strip().lower()
        zones = [zone for zone in zones if _matches_search(zone, term)]

    zones.sort(key=lambda zone: str(zone.get(sort_by) or "").lower(), reverse=descending)
    total_count = len(zones)
    start = page * page_size
    page_zones = zones[start : start + page_size]
    return {
        "zones": page_zones,
        "total_count": total_count,
        "has_more": start + len(page_zones) < total_count,
        "pagination": {
            "current_page": page,
            "page_size": page_size,
            "total_pages": math.ceil(total_count / page_size) if total_count else 0,
        },
    }


def get_zone_cities(
    context: EngineContext,
    zone_id: str,
    *,
    include_coordinates: bool = True,
    include_postal_codes: bool = True,
) -> dict[str, Any]:
    zone = context.store.get(ZONES, zone_id)
    if zone is None:
        raise RecordNotFound(ZONES, zone_id)

    cities = [city for city in context.store.find(ZONE_CITIES, zone_id=zone_id) if city.get("enabled", True)]
    cities.sort(key=lambda city: str(city.get("city") or ""))
    if not include_coordinates:
        for city in cities:
            city.pop("latitude", None)
            city.pop("longitude", None)

    postal_codes: list[dict[str, Any]] = []
    if include_postal_codes:
        postal_codes = sorted(
            context.store.find(ZONE_POSTAL_CODES, zone_id=zone_id),
            key=lambda record: str(record.get("postal_code") or ""),
        )

    return {
        "zone": zone,
        "cities": cities,
        "postal_codes": postal_codes,
        "summary": {
            "total_cities": len(cities),
            "total_postal_codes": len(postal_codes),
            "coverage": {
                "countries": sorted({city["country"] for city in cities if city.get("country")}),
                "provinces": sorted({city["province"] for city in cities if city.get("province")}),
            },
        },
    }


def _adjust_city_total(context: EngineContext, zone: Mapping[str, Any], delta: int) -> WriteBatch:
    metadata = dict(zone.get("metadata") or {})
    metadata["total_cities"] = max(0, int(metadata.get("total_cities") or 0) + delta)
    return WriteBatch().update(
        ZONES, zone["id"], {"metadata": metadata, "updated_at": context.now().isoformat()}
    )


def add_city_to_zone(context: EngineContext, zone_id: str, city_data: Mapping[str, Any]) -> dict[str, Any]:
    """Attach a city to a zone by hand. A city already present for the same province is rejected."""
    if not zone_id or not city_data or not city_data.get("city"):
        raise ValidationError("Zone ID and city data are required")
    zone = context.store.get(ZONES, zone_id)
    if zone is None:
        raise RecordNotFound(ZONES, zone_id)

    existing = context.store.find(
        ZONE_CITIES, zone_id=zone_id, city=city_data["city"], province=city_data.get("province")
    )
    if existing:
        raise ValidationError(f"{city_data['city']}, {city_data.get('province')} already exists in this zone")

    zone_city_id = context.store.new_id(ZONE_CITIES)
    record = {
        "zone_id": zone_id,
        "zone_code": zone.get("zone_code"),
        "city_id": city_data.get("city_id"),
        "city": city_data["city"],
        "province": city_data.get("province"),
        "country": city_data.get("country"),
        "primary_postal": city_data.get("primary_postal"),
        "latitude": city_data.get("latitude"),
        "longitude": city_data.get("longitude"),
        "distance_meters": city_data.get("distance_meters"),
        "match_type": MatchType.MANUAL_ADD.value,
        "matched_name": None,
        "matched_postal": None,
        "enabled": True,
        "added_at": context.now().isoformat(),
    }
    batch = _adjust_city_total(context, zone, +1)
    batch.set(ZONE_CITIES, zone_city_id, record)
    context.store.commit_batch(batch)
    logger.info(f"Added {record['city']}, {record['province']} to zone {zone_id}")
    return {
        "success": True,
        "zone_city_id": zone_city_id,
        "message": f"Added {record['city']}, {record['province']} to zone",
    }


def remove_city_from_zone(context: EngineContext, zone_city_id: str) -> dict[str, Any]:
    if not zone_city_id:
        raise ValidationError("Zone city ID is required")
    zone_city = context.store.get(ZONE_CITIES, zone_city_id)
    if zone_city is None:
        raise RecordNotFound(ZONE_CITIES, zone_city_id)

    batch = WriteBatch()
    zone = context.store.get(ZONES, zone_city["zone_id"])
    if zone is not None:
        batch = _adjust_city_total(context, zone, -1)
    batch.delete(ZONE_CITIES, zone_city_id)
    context.store.commit_batch(batch)
    logger.info(f"Removed {zone_city.get('city')} from zone {zone_city['zone_id']}")
    return {
        "success": True,
        "message": f"Removed {zone_city.get('city')}, {zone_city.get('province')} from zone",
    }
