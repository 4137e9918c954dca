"""Request-level zoning operations."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from ...models.domain import ZoneDefinition
from ..context import EngineContext
from .importer import ImportReport, ZoneImportOrchestrator
from .matcher import ZoneMatcher


def resolve_zone(zone_definition: ZoneDefinition | Mapping[str, Any], context: EngineContext) -> dict[str, Any]:
    """Resolve a single zone definition without persisting anything."""
    definition = (
        zone_definition
        if isinstance(zone_definition, ZoneDefinition)
        else ZoneDefinition.from_mapping(zone_definition)
    )
    return ZoneMatcher(context).resolve(definition).to_dict()


def import_zones(
    zone_catalog: Iterable[ZoneDefinition | Mapping[str, Any]],
    context: EngineContext,
    *,
    clear_existing: bool = False,
) -> ImportReport:
    return ZoneImportOrchestrator(context).run(zone_catalog, clear_existing=clear_existing)
