"""API routes for zone resolution, import and management."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ...schemas.zoning import (
    ZoneCityRequest,
    ZoneDefinitionModel,
    ZoneImportRequest,
    ZoneImportResponse,
    ZoneResolutionResponse,
)
from ...services.context import EngineContext
from ...services.zoning import management
from ...services.zoning.service import import_zones, resolve_zone
from ..dependencies import get_engine_context, translate_errors

router = APIRouter(prefix="/zones", tags=["zones"])


@router.post("/resolve", response_model=ZoneResolutionResponse, status_code=status.HTTP_200_OK)
def resolve_zone_endpoint(
    payload: ZoneDefinitionModel,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    """Preview which catalog locations a zone definition resolves to. Nothing is persisted."""
    with translate_errors("resolve zone"):
        return resolve_zone(payload.model_dump(), context)


@router.post("/import", response_model=ZoneImportResponse, status_code=status.HTTP_200_OK)
def import_zones_endpoint(
    payload: ZoneImportRequest,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    """Resolve and persist a zone catalog, optionally clearing existing zones first.

    Individual zone failures are reported in the response rather than failing the request.
    """
    with translate_errors("import zones"):
        logging.info(f"Zone import requested: {len(payload.zones)} zones, clear_existing={payload.clear_existing}")
        report = import_zones(
            [zone.model_dump() for zone in payload.zones],
            context,
            clear_existing=payload.clear_existing,
        )
        return report.to_dict()


@router.get("", status_code=status.HTTP_200_OK)
def list_zones_endpoint(
    search: str | None = Query(default=None, description="Case-insensitive search across names, codes and cities"),
    country_code: str | None = Query(default=None),
    state_province_code: str | None = Query(default=None),
    zone_type: str | None = Query(default=None),
    page: int = Query(default=0, ge=0),
    page_size: int = Query(default=50, ge=1, le=500),
    sort_by: str = Query(default="zone_name"),
    descending: bool = Query(default=False),
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("list zones"):
        return management.list_zones(
            context,
            search=search,
            country_code=country_code,
            state_province_code=state_province_code,
            zone_type=zone_type,
            page=page,
            page_size=page_size,
            sort_by=sort_by,
            descending=descending,
        )


@router.get("/{zone_id}/cities", status_code=status.HTTP_200_OK)
def get_zone_cities_endpoint(
    zone_id: str,
    include_coordinates: bool = Query(default=True),
    include_postal_codes: bool = Query(default=True),
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("get zone cities"):
        return management.get_zone_cities(
            context,
            zone_id,
            include_coordinates=include_coordinates,
            include_postal_codes=include_postal_codes,
        )


@router.post("/{zone_id}/cities", status_code=status.HTTP_201_CREATED)
def add_city_endpoint(
    zone_id: str,
    payload: ZoneCityRequest,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("add city to zone"):
        return management.add_city_to_zone(context, zone_id, payload.model_dump())


@router.delete("/cities/{zone_city_id}", status_code=status.HTTP_200_OK)
def remove_city_endpoint(
    zone_city_id: str,
    context: EngineContext = Depends(get_engine_context),
) -> dict[str, Any]:
    with translate_errors("remove city from zone"):
        return management.remove_city_from_zone(context, zone_city_id)
