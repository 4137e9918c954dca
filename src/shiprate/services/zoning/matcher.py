"""Multi-tier resolution of a zone definition to catalog locations.

Three tiers run for every zone whose inputs allow them:

1. coordinate: locations inside ``search_radius_meters`` of the zone centre,
2. postal: locations whose postal code starts with one of the zone's prefixes,
3. name: locations named after the primary city or one of its variations, queried
   exactly, case-insensitively and in title case.

Results are de-duplicated on (city, province/state, postal code, latitude, longitude)
keeping the first occurrence, so coordinate matches take precedence over postal matches,
which take precedence over name matches. A failing store query is logged and recorded on
the resolution; the remaining queries still run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from ...models.domain import Location, MatchedLocation, MatchQuality, MatchType, ZoneDefinition
from ..context import EngineContext
from ..geospatial import bounding_box, haversine_meters

logger = logging.getLogger(__name__)

TIERS = ("coordinate", "postal", "name")


@dataclass(slots=True)
class ZoneResolution:
    zone: ZoneDefinition
    matches: list[MatchedLocation] = field(default_factory=list)
    match_type_counts: dict[str, int] = field(default_factory=lambda: {tier: 0 for tier in TIERS})
    errors: list[str] = field(default_factory=list)

    @property
    def match_quality(self) -> MatchQuality:
        return classify_quality(self.match_type_counts, len(self.matches))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "zone_id": self.zone.zone_id,
            "matches": [match.to_dict() for match in self.matches],
            "match_counts": dict(self.match_type_counts),
            "match_quality": self.match_quality.value,
            "errors": list(self.errors),
        }


def classify_quality(match_type_counts: dict[str, int], match_count: int) -> MatchQuality:
    if all(match_type_counts.get(tier, 0) > 0 for tier in TIERS):
        return MatchQuality.PERFECT
    if match_count > 0:
        return MatchQuality.PARTIAL
    return MatchQuality.NO_MATCH


def deduplicate(matches: Iterable[MatchedLocation]) -> list[MatchedLocation]:
    seen: set[tuple] = set()
    unique: list[MatchedLocation] = []
    for match in matches:
        key = match.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(match)
    return unique


def normalize_postal_prefix(country_code: str, prefix: str) -> str:
    compact = prefix.strip()
    if country_code == "CA":
        compact = compact.replace(" ", "").upper()
    return compact


def title_case(name: str) -> str:
    return name[:1].upper() + name[1:].lower()


class ZoneMatcher:
    def __init__(self, context: EngineContext) -> None:
        self.context = context
        self.store = context.store
        self.settings = context.settings

    def resolve(self, zone: ZoneDefinition) -> ZoneResolution:
        resolution = ZoneResolution(zone=zone)
        found: list[MatchedLocation] = []

        if zone.has_coordinates:
            coordinate_matches = self._run(resolution, f"coordinate search around {zone.zone_id}", lambda: self.by_coordinates(zone))
            resolution.match_type_counts["coordinate"] = len(coordinate_matches)
            found.extend(coordinate_matches)

        if zone.postal_codes:
            postal_matches = self.by_postal_codes(zone, resolution)
            resolution.match_type_counts["postal"] = len(postal_matches)
            found.extend(postal_matches)

        name_matches = self.by_names(zone, resolution)
        resolution.match_type_counts["name"] = len(name_matches)
        found.extend(name_matches)

        resolution.matches = deduplicate(found)
        logger.debug(
            f"Zone {zone.zone_id}: {len(resolution.matches)} unique matches "
            f"({resolution.match_type_counts}), quality {resolution.match_quality.value}"
        )
        return resolution

    def _run(
        self,
        resolution: ZoneResolution,
        description: str,
        query: Callable[[], list[MatchedLocation]],
    ) -> list[MatchedLocation]:
        try:
            return query()
        except Exception as exc:
            logger.warning(f"Zone {resolution.zone.zone_id}: {description} failed: {exc}")
            resolution.errors.append(f"{description}: {exc}")
            return []

    def by_coordinates(self, zone: ZoneDefinition) -> list[MatchedLocation]:
        lat, lng, radius = zone.latitude, zone.longitude, zone.search_radius_meters
        min_lat, max_lat, min_lng, max_lng = bounding_box(lat, lng, radius)
        records = self.store.find_locations_in_bounds(
            zone.country_code, zone.state_province_code, min_lat, max_lat, min_lng, max_lng
        )
        matches = []
        for record in records:
            location = Location.from_record(record)
            if location.latitude is None or location.longitude is None:
                continue
            distance = haversine_meters(lat, lng, location.latitude, location.longitude)
            if distance <= radius:
                matches.append(
                    MatchedLocation(location, MatchType.COORDINATE, distance_meters=int(round(distance)))
                )
        return matches

    def by_postal_codes(self, zone: ZoneDefinition, resolution: ZoneResolution) -> list[MatchedLocation]:
        matches: list[MatchedLocation] = []
        for raw_prefix in zone.postal_codes:
            prefix = normalize_postal_prefix(zone.country_code, raw_prefix)
            if not prefix:
                continue
            matches.extend(
                self._run(resolution, f"postal search for {prefix}", lambda prefix=prefix: self._postal_query(zone, prefix))
            )
        return matches

    def _postal_query(self, zone: ZoneDefinition, prefix: str) -> list[MatchedLocation]:
        records = self.store.find_locations_by_postal_prefix(
            zone.country_code, zone.state_province_code, prefix, self.settings.postal_query_limit
        )
        return [
            MatchedLocation(Location.from_record(record), MatchType.POSTAL, matched_postal=prefix)
            for record in records
            if str(record.get("postal_code") or "").startswith(prefix)
        ]

    def by_names(self, zone: ZoneDefinition, resolution: ZoneResolution) -> list[MatchedLocation]:
        matches: list[MatchedLocation] = []
        for name in [zone.city, *zone.city_variations]:
            if not name:
                continue
            matches.extend(
                self._run(resolution, f"name search for {name}", lambda name=name: self._name_queries(zone, name))
            )
        return matches

    def _name_queries(self, zone: ZoneDefinition, name: str) -> list[MatchedLocation]:
        country, state = zone.country_code, zone.state_province_code
        matches = [
            MatchedLocation(Location.from_record(record), MatchType.NAME_EXACT, matched_name=name)
            for record in self.store.find_locations_by_city(
                country, state, name, limit=self.settings.name_exact_query_limit
            )
        ]
        lowered = name.lower()
        matches.extend(
            MatchedLocation(Location.from_record(record), MatchType.NAME_CASE_INSENSITIVE, matched_name=name)
            for record in self.store.find_locations_by_city(
                country, state, name, case_insensitive=True, limit=self.settings.name_fuzzy_query_limit
            )
            if str(record.get("city") or "").lower() == lowered
        )
        titled = title_case(name)
        if titled != name:
            matches.extend(
                MatchedLocation(Location.from_record(record), MatchType.NAME_TITLE_CASE, matched_name=name)
                for record in self.store.find_locations_by_city(
                    country, state, titled, limit=self.settings.name_fuzzy_query_limit
                )
            )
        return matches

