"""Pydantic request models for rating endpoints."""

from __future__ import annotations

from typing import Optional, Sequence

from pydantic import BaseModel, Field

from ..models.domain import Package, ShipmentLocation


class PackageModel(BaseModel):
    weight: float = Field(..., ge=0.0)
    length: Optional[float] = Field(default=None, ge=0.0)
    width: Optional[float] = Field(default=None, ge=0.0)
    height: Optional[float] = Field(default=None, ge=0.0)
    quantity: int = Field(default=1, ge=1)
    dimension_unit: str = "in"
    weight_unit: str = "lbs"
    package_type: Optional[str] = Field(default=None, description="'skid', 'pallet' and 'crate' count as skids.")
    declared_value: float = Field(default=0.0, ge=0.0)

    def to_domain(self) -> Package:
        return Package(**self.model_dump())


class LocationModel(BaseModel):
    city: Optional[str] = None
    postal: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None

    def to_domain(self) -> ShipmentLocation:
        return ShipmentLocation(**self.model_dump())


class DimScope(BaseModel):
    carrier_id: str
    service_type: Optional[str] = None
    zone: Optional[str] = None
    customer_id: Optional[str] = None


class ChargeableWeightRequest(DimScope):
    packages: Sequence[PackageModel] = Field(..., min_length=1)


class VolumetricWeightRequest(DimScope):
    package: PackageModel


class RateRequest(DimScope):
    from_location: LocationModel
    to_location: LocationModel
    packages: Sequence[PackageModel] = Field(..., min_length=1)
