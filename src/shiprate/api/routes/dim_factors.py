"""API routes for DIM factor administration."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ...schemas.dim_factors import CustomerOverrideCreate, DimFactorCreate, DimFactorUpdate
from ...services.context import EngineContext
from ...services.rating import dim_factors
from ..dependencies import get_engine_context, translate_errors

router = APIRouter(prefix="/dim-factors", tags=["dim-factors"])


@router.get("", status_code=status.HTTP_200_OK)
def list_dim_factors_endpoint(
    carrier_id: str | None = Query(default=None),
    service_type: str | None = Query(default=None),
    zone: str | None = Query(default=None),
    active_only: bool = Query(default=True),
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("get DIM factors"):
        return dim_factors.list_dim_factors(
            context,
            carrier_id=carrier_id,
            service_type=service_type,
            zone=zone,
            active_only=active_only,
        )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_dim_factor_endpoint(
    payload: DimFactorCreate,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("create DIM factor"):
        return dim_factors.create_dim_factor(context, payload.model_dump())


@router.post("/overrides", status_code=status.HTTP_201_CREATED)
def create_override_endpoint(
    payload: CustomerOverrideCreate,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("create customer DIM factor override"):
        return dim_factors.create_customer_override(context, payload.model_dump())


@router.patch("/{dim_factor_id}", status_code=status.HTTP_200_OK)
def update_dim_factor_endpoint(
    dim_factor_id: str,
    payload: DimFactorUpdate,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("update DIM factor"):
        return dim_factors.update_dim_factor(context, dim_factor_id, payload.model_dump(exclude_unset=True))


@router.delete("/{dim_factor_id}", status_code=status.HTTP_200_OK)
def delete_dim_factor_endpoint(
    dim_factor_id: str,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("delete DIM factor"):
        return dim_factors.delete_dim_factor(context, dim_factor_id)
