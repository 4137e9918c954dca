"""Domain models for regions, zones, DIM factors and rate cards."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from ..errors import ValidationError

ALL = "all"


class RegionType(str, Enum):
    COUNTRY = "country"
    STATE_PROVINCE = "state_province"
    FSA = "fsa"
    ZIP3 = "zip3"


class MatchType(str, Enum):
    COORDINATE = "coordinate"
    POSTAL = "postal"
    NAME_EXACT = "name_exact"
    NAME_CASE_INSENSITIVE = "name_case_insensitive"
    NAME_TITLE_CASE = "name_title_case"
    MANUAL_ADD = "manual_add"

    @property
    def tier(self) -> str:
        """Matching tier this match type is counted under."""
        if self in (MatchType.COORDINATE, MatchType.POSTAL, MatchType.MANUAL_ADD):
            return self.value
        return "name"


class MatchQuality(str, Enum):
    NO_MATCH = "no_match"
    PARTIAL = "partial"
    PERFECT = "perfect"


class LengthUnit(str, Enum):
    IN = "in"
    CM = "cm"


class WeightUnit(str, Enum):
    LB = "lb"
    KG = "kg"


class DimUnit(str, Enum):
    """Volumetric unit of a DIM factor: a cubed length unit per weight unit."""

    IN3_LB = "in³/lb"
    CM3_KG = "cm³/kg"
    IN3_KG = "in³/kg"
    CM3_LB = "cm³/lb"

    @property
    def length_unit(self) -> LengthUnit:
        return LengthUnit.IN if self.value.startswith("in") else LengthUnit.CM

    @property
    def weight_unit(self) -> WeightUnit:
        return WeightUnit.LB if self.value.endswith("/lb") else WeightUnit.KG

    @classmethod
    def parse(cls, value: Any) -> "DimUnit":
        """Parse a stored unit label. ``in3/lb`` and ``in^3/lb`` spellings are accepted."""
        if isinstance(value, DimUnit):
            return value
        text = str(value or "").strip().lower().replace(" ", "")
        text = text.replace("^3", "³").replace("3/", "³/")
        for unit in cls:
            if unit.value == text:
                return unit
        valid = ", ".join(unit.value for unit in cls)
        raise ValidationError(f"Unit must be one of: {valid} (got '{value}')")


class RateType(str, Enum):
    SKID_BASED = "skid_based"
    WEIGHT_BASED = "weight_based"


def parse_datetime(value: Any) -> Optional[datetime]:
    """Coerce ISO strings and datetimes to timezone-aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Unable to parse date from value '{value}'") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def first_present(*values: Any) -> Any:
    """Return the first value that is neither ``None`` nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _coerce_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(str(value).replace(",", ""))
    except ValueError as exc:
        raise ValidationError(f"Unable to parse float from value '{value}'") from exc


@dataclass(slots=True)
class Region:
    """A node in the country → state/province → FSA/ZIP3 hierarchy."""

    id: str
    code: str
    name: str
    type: RegionType
    parent_region_id: Optional[str] = None
    patterns: tuple[str, ...] = ()
    metadata: dict = field(default_factory=dict)
    enabled: bool = True

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Region":
        return cls(
            id=str(record["id"]),
            code=str(record.get("code") or ""),
            name=str(record.get("name") or ""),
            type=RegionType(record.get("type")),
            parent_region_id=record.get("parent_region_id"),
            patterns=tuple(record.get("patterns") or ()),
            metadata=dict(record.get("metadata") or {}),
            enabled=bool(record.get("enabled", True)),
        )

    @property
    def country(self) -> Optional[str]:
        return self.metadata.get("country")


@dataclass(frozen=True, slots=True)
class ZoneDefinition:
    """A rate zone to resolve, as supplied by the zone catalog."""

    zone_id: str
    zone_name: str
    country_code: str
    state_province_code: str
    city: str
    city_variations: tuple[str, ...] = ()
    postal_codes: tuple[str, ...] = ()
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    search_radius_meters: Optional[float] = None
    country: Optional[str] = None
    state_province: Optional[str] = None
    zone_type: Optional[str] = None
    primary_postal: Optional[str] = None
    notes: Optional[str] = None

    @property
    def has_coordinates(self) -> bool:
        return (
            self.latitude is not None
            and self.longitude is not None
            and bool(self.search_radius_meters)
        )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ZoneDefinition":
        """Build a definition from snake_case or camelCase catalog entries."""
        zone_id = first_present(data.get("zone_id"), data.get("zoneId"))
        if not zone_id:
            raise ValidationError("Zone definition is missing 'zone_id'.")
        return cls(
            zone_id=str(zone_id),
            zone_name=str(first_present(data.get("zone_name"), data.get("zoneName"), zone_id)),
            country_code=str(first_present(data.get("country_code"), data.get("countryCode")) or "").upper(),
            state_province_code=str(
                first_present(data.get("state_province_code"), data.get("stateProvinceCode")) or ""
            ).upper(),
            city=str(data.get("city") or ""),
            city_variations=tuple(first_present(data.get("city_variations"), data.get("cityVariations")) or ()),
            postal_codes=tuple(first_present(data.get("postal_codes"), data.get("postalCodes")) or ()),
            latitude=_coerce_float(data.get("latitude")),
            longitude=_coerce_float(data.get("longitude")),
            search_radius_meters=_coerce_float(
                first_present(
                    data.get("search_radius_meters"),
                    data.get("searchRadiusMeters"),
                    data.get("searchRadius"),
                )
            ),
            country=data.get("country"),
            state_province=first_present(data.get("state_province"), data.get("stateProvince")),
            zone_type=first_present(data.get("zone_type"), data.get("zoneType")),
            primary_postal=first_present(data.get("primary_postal"), data.get("primaryPostal")),
            notes=data.get("notes"),
        )


@dataclass(slots=True)
class Location:
    """A concrete place in the location catalog."""

    id: str
    city: Optional[str]
    province_state: Optional[str]
    country: Optional[str]
    postal_code: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    province_state_name: Optional[str] = None
    country_name: Optional[str] = None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Location":
        return cls(
            id=str(record.get("id") or ""),
            city=record.get("city"),
            province_state=record.get("province_state"),
            country=record.get("country"),
            postal_code=record.get("postal_code"),
            latitude=_coerce_float(record.get("latitude")),
            longitude=_coerce_float(record.get("longitude")),
            province_state_name=record.get("province_state_name"),
            country_name=record.get("country_name"),
        )

    @property
    def dedup_key(self) -> tuple:
        return (self.city, self.province_state, self.postal_code, self.latitude, self.longitude)


@dataclass(slots=True)
class MatchedLocation:
    """A location found by one of the zone matching tiers."""

    location: Location
    match_type: MatchType
    distance_meters: Optional[int] = None
    matched_name: Optional[str] = None
    matched_postal: Optional[str] = None

    @property
    def dedup_key(self) -> tuple:
        return self.location.dedup_key

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self.location)
        payload.update(
            {
                "match_type": self.match_type.value,
                "distance_meters": self.distance_meters,
                "matched_name": self.matched_name,
                "matched_postal": self.matched_postal,
            }
        )
        return payload


@dataclass(slots=True)
class DimFactor:
    """A carrier DIM factor, or a customer override when ``customer_id`` is set."""

    id: str
    carrier_id: str
    factor: float
    unit: DimUnit
    effective_date: datetime
    service_type: str = ALL
    zone: str = ALL
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    customer_id: Optional[str] = None
    carrier_name: Optional[str] = None
    notes: str = ""

    @property
    def is_customer_override(self) -> bool:
        return self.customer_id is not None

    def is_expired(self, now: datetime) -> bool:
        return self.expiry_date is not None and self.expiry_date <= now

    def is_effective(self, now: datetime) -> bool:
        return self.effective_date <= now

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "DimFactor":
        factor = _coerce_float(first_present(record.get("factor"), record.get("dim_factor")))
        if factor is None or factor <= 0:
            raise ValidationError("DIM factor must be greater than 0")
        effective = parse_datetime(record.get("effective_date"))
        if effective is None:
            raise ValidationError("DIM factor is missing 'effective_date'")
        return cls(
            id=str(record.get("id") or ""),
            carrier_id=str(record["carrier_id"]),
            factor=factor,
            unit=DimUnit.parse(record.get("unit")),
            effective_date=effective,
            service_type=record.get("service_type") or ALL,
            zone=record.get("zone") or ALL,
            expiry_date=parse_datetime(record.get("expiry_date")),
            is_active=bool(record.get("is_active", True)),
            customer_id=record.get("customer_id"),
            carrier_name=record.get("carrier_name"),
            notes=record.get("notes") or "",
        )

    def to_record(self) -> dict[str, Any]:
        record = {
            "carrier_id": self.carrier_id,
            "carrier_name": self.carrier_name,
            "service_type": self.service_type,
            "zone": self.zone,
            "factor": self.factor,
            "unit": self.unit.value,
            "effective_date": self.effective_date.isoformat(),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "is_active": self.is_active,
            "notes": self.notes,
        }
        if self.customer_id is not None:
            record["customer_id"] = self.customer_id
        return record

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "factor": self.factor,
            "unit": self.unit.value,
            "service_type": self.service_type,
            "zone": self.zone,
            "is_customer_override": self.is_customer_override,
        }


@dataclass(slots=True)
class Package:
    """A line of identical packages in a shipment."""

    weight: float
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    quantity: int = 1
    dimension_unit: str = LengthUnit.IN.value
    weight_unit: str = "lbs"
    package_type: Optional[str] = None
    declared_value: float = 0.0

    @property
    def has_dimensions(self) -> bool:
        return all(side for side in (self.length, self.width, self.height))

    @property
    def dimensions(self) -> tuple[float, float, float]:
        return (self.length or 0.0, self.width or 0.0, self.height or 0.0)


@dataclass(slots=True)
class ShipmentLocation:
    """Origin or destination of a shipment, or a rate card route end."""

    city: Optional[str] = None
    postal: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> Optional["ShipmentLocation"]:
        """Accept a mapping, another ShipmentLocation, or a bare city/postal string."""
        if value is None:
            return None
        if isinstance(value, ShipmentLocation):
            return value
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if any(char.isdigit() for char in text):
                return cls(postal=text)
            return cls(city=text)
        return cls(
            city=first_present(value.get("city")),
            postal=first_present(value.get("postal"), value.get("postal_code"), value.get("postalCode")),
            state=first_present(
                value.get("state"),
                value.get("province"),
                value.get("province_state"),
                value.get("state_province"),
            ),
            country=first_present(value.get("country"), value.get("country_code")),
        )

    def label(self) -> str:
        if self.city:
            return f"{self.city}, {self.state}" if self.state else self.city
        return self.postal or self.state or "unknown"


@dataclass(slots=True)
class RateCardEntry:
    """One route line of a simple carrier rate card."""

    from_location: ShipmentLocation
    to_location: ShipmentLocation
    rate_type: RateType
    rate_card_id: str
    skid_rates: dict[str, float] = field(default_factory=dict)
    min_weight: Optional[float] = None
    weight_min: float = 0.0
    weight_max: Optional[float] = None
    rate_per_100_lbs: float = 0.0
    min_charge: float = 0.0
    carrier_name: Optional[str] = None
    currency: Optional[str] = None

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        *,
        rate_card_id: str,
        carrier_name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> "RateCardEntry":
        skid_rates = {
            str(count): float(price)
            for count, price in (record.get("skid_rates") or {}).items()
            if price is not None and price != ""
        }
        return cls(
            from_location=ShipmentLocation.from_value(record.get("from_location")) or ShipmentLocation(),
            to_location=ShipmentLocation.from_value(record.get("to_location")) or ShipmentLocation(),
            rate_type=RateType(record.get("rate_type") or RateType.WEIGHT_BASED.value),
            rate_card_id=rate_card_id,
            skid_rates=skid_rates,
            min_weight=_coerce_float(record.get("min_weight")),
            weight_min=_coerce_float(record.get("weight_min")) or 0.0,
            weight_max=_coerce_float(record.get("weight_max")),
            rate_per_100_lbs=_coerce_float(record.get("rate_per_100_lbs")) or 0.0,
            min_charge=_coerce_float(record.get("min_charge")) or 0.0,
            carrier_name=carrier_name,
            currency=currency,
        )


@dataclass(slots=True)
class Adjustment:
    code: str
    description: str
    amount: float


@dataclass(slots=True)
class RateQuote:
    """Base rate selected by the lookup engine, before surcharges."""

    entry: RateCardEntry
    score: int
    base_rate: float
    total_rate: float
    calculation: str
    skids_used: Optional[int] = None
    weight_used: Optional[float] = None

    @property
    def rate_type(self) -> RateType:
        return self.entry.rate_type


@dataclass(slots=True)
class RateResult:
    """Final rate for a shipment."""

    base_rate: float
    total_rate: float
    chargeable_weight: float
    actual_weight: float
    weight_basis: str
    adjustments: list[Adjustment]
    calculation: str
    currency: str
    rate_type: str
    carrier_name: Optional[str] = None
    rate_card_id: Optional[str] = None
    success: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class RateNotFound:
    """Explicit "no rate available" result."""

    reason: str
    suggestions: Optional[dict[str, Any]] = None
    success: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def packages_from_payload(items: Sequence[Mapping[str, Any]]) -> list[Package]:
    """Build packages from request payload rows, validating required fields."""
    packages: list[Package] = []
    for index, item in enumerate(items):
        weight = _coerce_float(item.get("weight"))
        if weight is None:
            raise ValidationError(f"Package {index + 1} is missing a weight.")
        if weight < 0:
            raise ValidationError(f"Package {index + 1} has a negative weight.")
        quantity = int(item.get("quantity") or 1)
        if quantity < 1:
            raise ValidationError(f"Package {index + 1} quantity must be >= 1.")
        packages.append(
            Package(
                weight=weight,
                length=_coerce_float(item.get("length")),
                width=_coerce_float(item.get("width")),
                height=_coerce_float(item.get("height")),
                quantity=quantity,
                dimension_unit=str(item.get("dimension_unit") or LengthUnit.IN.value),
                weight_unit=str(item.get("weight_unit") or "lbs"),
                package_type=item.get("package_type"),
                declared_value=_coerce_float(item.get("declared_value")) or 0.0,
            )
        )
    return packages
