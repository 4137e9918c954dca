"""API routes for chargeable weight and rate calculation."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, status

from ...schemas.rating import ChargeableWeightRequest, RateRequest, VolumetricWeightRequest
from ...services.context import EngineContext
from ...services.rating.service import rate_shipment
from ...services.rating.weights import calculate_chargeable_weight, calculate_volumetric_weight
from ..dependencies import get_engine_context, translate_errors

router = APIRouter(prefix="/rates", tags=["rates"])


@router.post("/chargeable-weight", status_code=status.HTTP_200_OK)
def chargeable_weight_endpoint(
    payload: ChargeableWeightRequest,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("calculate chargeable weight"):
        weight = calculate_chargeable_weight(
            context,
            payload.carrier_id,
            [package.to_domain() for package in payload.packages],
            service_type=payload.service_type,
            zone=payload.zone,
            customer_id=payload.customer_id,
        )
        return weight.to_dict()


@router.post("/volumetric-weight", status_code=status.HTTP_200_OK)
def volumetric_weight_endpoint(
    payload: VolumetricWeightRequest,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("calculate volumetric weight"):
        return calculate_volumetric_weight(
            context,
            payload.carrier_id,
            payload.package.to_domain(),
            service_type=payload.service_type,
            zone=payload.zone,
            customer_id=payload.customer_id,
        )


@router.post("/calculate", status_code=status.HTTP_200_OK)
def calculate_rate_endpoint(
    payload: RateRequest,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    """Rate a shipment. A missing rate is a ``success: false`` body, not an error status."""
    with translate_errors("calculate rate"):
        rating = rate_shipment(
            context,
            payload.carrier_id,
            payload.from_location.to_domain(),
            payload.to_location.to_domain(),
            [package.to_domain() for package in payload.packages],
            customer_id=payload.customer_id,
            service_type=payload.service_type,
            zone=payload.zone,
        )
        return rating.to_dict()
