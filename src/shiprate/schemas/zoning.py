"""Pydantic request/response models for zoning endpoints."""

from __future__ import annotations

from typing import Any, Optional, Sequence

from pydantic import BaseModel, Field, field_validator


class ZoneDefinitionModel(BaseModel):
    zone_id: str = Field(..., description="Zone code, e.g. 'ON-TOR-01'.")
    zone_name: str
    country_code: str = Field(..., min_length=2, max_length=2)
    state_province_code: str
    city: str = Field(..., description="Primary city name.")
    city_variations: Sequence[str] = Field(default_factory=list)
    postal_codes: Sequence[str] = Field(default_factory=list, description="FSA or ZIP3 prefixes.")
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)
    search_radius_meters: Optional[float] = Field(default=None, gt=0.0)
    country: Optional[str] = None
    state_province: Optional[str] = None
    zone_type: Optional[str] = None
    primary_postal: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("country_code", "state_province_code")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.strip().upper()


class ZoneResolutionResponse(BaseModel):
    zone_id: str
    matches: list[dict[str, Any]]
    match_counts: dict[str, int]
    match_quality: str
    errors: list[str] = Field(default_factory=list)


class ZoneImportRequest(BaseModel):
    zones: Sequence[ZoneDefinitionModel] = Field(..., min_length=1)
    clear_existing: bool = Field(default=False, description="Delete all zones, zone cities and zone postal codes first.")


class ZoneImportResponse(BaseModel):
    total_zones: int
    processed: int
    successful: int
    failed: int
    total_cities_matched: int
    cleared_documents: int
    matching_report: dict[str, int]
    errors: list[dict[str, Any]]
    zone_details: list[dict[str, Any]]
    performance: dict[str, Any]
    duration_seconds: float
    state: str
    aborted_reason: Optional[str] = None
    report_path: Optional[str] = None


class ZoneCityRequest(BaseModel):
    city: str
    province: Optional[str] = None
    country: Optional[str] = None
    city_id: Optional[str] = None
    primary_postal: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_meters: Optional[int] = None
