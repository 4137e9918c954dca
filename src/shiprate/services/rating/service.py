"""Request-level rating operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

from ...errors import ValidationError
from ...models.domain import Package, RateNotFound, RateResult, ShipmentLocation
from ..context import EngineContext
from .lookup import RateLookupEngine, estimate_skids
from .surcharges import FinalRateCalculator, PackageMetrics, package_metrics
from .weights import ChargeableWeightCalculator, ShipmentWeight, resolve_for_packages

logger = logging.getLogger(__name__)

LocationInput = Union[ShipmentLocation, Mapping[str, Any], str]


@dataclass(slots=True)
class ShipmentRating:
    result: Union[RateResult, RateNotFound]
    weight: ShipmentWeight
    metrics: PackageMetrics
    skids: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.result.success,
            "rate": self.result.to_dict(),
            "dim_weight": self.weight.to_dict(),
            "package_metrics": self.metrics.to_dict(),
            "skids": self.skids,
        }


def rate_shipment(
    context: EngineContext,
    carrier_id: str,
    from_location: LocationInput,
    to_location: LocationInput,
    packages: Sequence[Package],
    *,
    customer_id: Optional[str] = None,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
) -> ShipmentRating:
    if not carrier_id or not from_location or not to_location or not packages:
        raise ValidationError("Carrier ID, from/to locations, and packages are required")

    factor = resolve_for_packages(context, packages, carrier_id, service_type, zone, customer_id)
    weight = ChargeableWeightCalculator().calculate(packages, factor)
    metrics = package_metrics(packages)
    skids = estimate_skids(packages, context.settings)

    engine = RateLookupEngine(context, catalog=context.region_catalog())
    # Rate cards price per 100 lb.
    quote = engine.lookup(carrier_id, from_location, to_location, weight.total_chargeable_lbs, skids)
    if isinstance(quote, RateNotFound):
        return ShipmentRating(result=quote, weight=weight, metrics=metrics, skids=skids)

    result = FinalRateCalculator(context.settings).calculate(quote, weight, metrics)
    logger.info(
        f"Rated {carrier_id} shipment: {result.total_rate:.2f} {result.currency} "
        f"({result.weight_basis} weight {result.chargeable_weight:.1f} lbs)"
    )
    return ShipmentRating(result=result, weight=weight, metrics=metrics, skids=skids)


def calculate_rate(
    context: EngineContext,
    carrier_id: str,
    from_location: LocationInput,
    to_location: LocationInput,
    packages: Sequence[Package],
    customer_id: Optional[str] = None,
    *,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
) -> Union[RateResult, RateNotFound]:
    return rate_shipment(
        context,
        carrier_id,
        from_location,
        to_location,
        packages,
        customer_id=customer_id,
        service_type=service_type,
        zone=zone,
    ).result
