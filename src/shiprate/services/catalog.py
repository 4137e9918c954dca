"""Region hierarchy lookups and zone membership queries."""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..models.domain import Region, RegionType
from ..persistence.store import REGIONS, ZONE_CITIES, ZONE_POSTAL_CODES, ZONES, DocumentStore

logger = logging.getLogger(__name__)

POSTAL_REGION_TYPES = {"CA": RegionType.FSA, "US": RegionType.ZIP3}


def region_id(region_type: RegionType | str, code: str) -> str:
    """Canonical region document id, e.g. ``state_province_ca_on`` or ``fsa_m5v``."""
    type_value = region_type.value if isinstance(region_type, RegionType) else region_type
    return f"{type_value}_{code}".lower()


def postal_prefix(country: Optional[str], postal: Optional[str]) -> Optional[str]:
    """Three-character routing prefix of a postal code: FSA in Canada, ZIP3 in the US."""
    if not postal:
        return None
    compact = str(postal).replace(" ", "").upper()
    if (country or "").upper() == "US":
        compact = compact.split("-")[0]
    prefix = compact[:3]
    return prefix if len(prefix) == 3 else None


class RegionCatalog:
    """Read access to the region tree and to persisted zone associations.

    Regions are loaded from the store once per catalog instance.
    """

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self._regions: Optional[dict[str, Region]] = None

    def _load(self) -> dict[str, Region]:
        if self._regions is None:
            regions: dict[str, Region] = {}
            for record in self.store.find(REGIONS, enabled=True):
                region = Region.from_record(record)
                regions[region.id] = region
            logger.debug(f"Loaded {len(regions)} regions")
            self._regions = regions
        return self._regions

    def get_region(self, region_id_value: str) -> Optional[Region]:
        return self._load().get(region_id_value)

    def find_region(self, region_type: RegionType, code: str, country: Optional[str] = None) -> Optional[Region]:
        """Find a region by type and code or pattern, optionally scoped to a country."""
        wanted = code.upper()
        for region in self._load().values():
            if region.type is not region_type:
                continue
            if country and region.country and region.country.upper() != country.upper():
                continue
            if region.code.upper() == wanted or wanted in (pattern.upper() for pattern in region.patterns):
                return region
        return None

    def children(self, parent_id: str) -> list[Region]:
        return [region for region in self._load().values() if region.parent_region_id == parent_id]

    def path_to_root(self, region_id_value: str) -> list[Region]:
        """Ancestors of a region ordered root first, ending with the region itself."""
        regions = self._load()
        path: list[Region] = []
        seen: set[str] = set()
        current = regions.get(region_id_value)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            path.append(current)
            current = regions.get(current.parent_region_id) if current.parent_region_id else None
        path.reverse()
        return path

    def state_for_postal(self, country: Optional[str], postal: Optional[str]) -> Optional[str]:
        """State/province code owning the FSA or ZIP3 of ``postal``."""
        country_code = (country or "").upper()
        region_type = POSTAL_REGION_TYPES.get(country_code)
        prefix = postal_prefix(country_code, postal)
        if region_type is None or prefix is None:
            return None
        region = self.find_region(region_type, prefix, country_code)
        if region is None:
            return None
        for ancestor in reversed(self.path_to_root(region.id)[:-1]):
            if ancestor.type is RegionType.STATE_PROVINCE:
                return ancestor.code.upper()
        state = region.metadata.get("province") or region.metadata.get("state")
        if state and state != "XX":
            return str(state).upper()
        return None

    def cities_for_zone(self, zone_id: str) -> list[dict[str, Any]]:
        return self.store.find(ZONE_CITIES, zone_id=zone_id)

    def postal_codes_for_zone(self, zone_id: str) -> list[str]:
        return sorted(record["postal_code"] for record in self.store.find(ZONE_POSTAL_CODES, zone_id=zone_id))

    def zones_for_postal(self, country: str, postal: str) -> list[dict[str, Any]]:
        """Enabled zones whose defined postal prefixes cover ``postal``."""
        prefix = postal_prefix(country, postal)
        if prefix is None:
            return []
        zone_ids: list[str] = []
        for record in self.store.find(ZONE_POSTAL_CODES, country=country.upper(), postal_code=prefix):
            if record["zone_id"] not in zone_ids:
                zone_ids.append(record["zone_id"])
        zones = []
        for zone_id in zone_ids:
            zone = self.store.get(ZONES, zone_id)
            if zone is not None and zone.get("enabled", True):
                zones.append(zone)
        return zones
