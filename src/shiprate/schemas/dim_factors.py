"""Pydantic models for DIM factor administration."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class DimFactorCreate(BaseModel):
    carrier_id: str
    carrier_name: Optional[str] = None
    service_type: Optional[str] = Field(default=None, description="Defaults to 'all'.")
    zone: Optional[str] = Field(default=None, description="Defaults to 'all'.")
    factor: float = Field(..., gt=0.0)
    unit: str = Field(..., description="One of in³/lb, cm³/kg, in³/kg, cm³/lb.")
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: bool = True
    notes: Optional[str] = None


class CustomerOverrideCreate(DimFactorCreate):
    customer_id: str
    reason: Optional[str] = None


class DimFactorUpdate(BaseModel):
    carrier_name: Optional[str] = None
    service_type: Optional[str] = None
    zone: Optional[str] = None
    factor: Optional[float] = Field(default=None, gt=0.0)
    unit: Optional[str] = None
    effective_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    is_active: Optional[bool] = None
    notes: Optional[str] = None
