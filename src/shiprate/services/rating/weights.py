"""Chargeable weight: the greater of actual and volumetric weight, rounded up to 0.1."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from decimal import ROUND_CEILING, Decimal
from typing import Any, Optional, Sequence

from ...errors import ValidationError
from ...models.domain import DimFactor, Package, WeightUnit
from ..context import EngineContext
from ..units import convert_length, convert_weight
from .dim_factors import DimFactorResolver

logger = logging.getLogger(__name__)

NO_DIMENSIONS = "No dimensions provided - using actual weight"
NO_DIM_FACTOR = "No DIM factor found - using actual weight"
CALCULATION_ERROR = "Error calculating DIM weight - using actual weight"


def ceil_to_tenth(value: float) -> float:
    """Round up to the next 0.1; ``31.3`` stays ``31.3`` and ``31.31`` becomes ``31.4``."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_CEILING))


def weight_label(unit: WeightUnit) -> str:
    return "lbs" if unit is WeightUnit.LB else "kg"


@dataclass(slots=True)
class PackageWeight:
    package_index: int
    quantity: int
    actual_weight: float
    volumetric_weight: float
    chargeable_weight: float
    calculation: str
    dim_factor_used: Optional[dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def total_actual_weight(self) -> float:
        return self.actual_weight * self.quantity

    @property
    def total_volumetric_weight(self) -> float:
        return self.volumetric_weight * self.quantity

    @property
    def total_chargeable_weight(self) -> float:
        return self.chargeable_weight * self.quantity

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload.update(
            total_actual_weight=self.total_actual_weight,
            total_volumetric_weight=self.total_volumetric_weight,
            total_chargeable_weight=self.total_chargeable_weight,
        )
        return payload


@dataclass(slots=True)
class ShipmentWeight:
    packages: list[PackageWeight] = field(default_factory=list)
    dim_factor: Optional[DimFactor] = None

    @property
    def total_actual_weight(self) -> float:
        return sum(package.total_actual_weight for package in self.packages)

    @property
    def total_volumetric_weight(self) -> float:
        return sum(package.total_volumetric_weight for package in self.packages)

    @property
    def total_chargeable_weight(self) -> float:
        return sum(package.total_chargeable_weight for package in self.packages)

    @property
    def weight_unit(self) -> WeightUnit:
        """Unit of every total: the DIM factor's weight unit, pounds without a factor."""
        return self.dim_factor.unit.weight_unit if self.dim_factor else WeightUnit.LB

    @property
    def total_actual_lbs(self) -> float:
        return convert_weight(self.total_actual_weight, self.weight_unit, WeightUnit.LB)

    @property
    def total_chargeable_lbs(self) -> float:
        return convert_weight(self.total_chargeable_weight, self.weight_unit, WeightUnit.LB)

    @property
    def dim_weight_applied(self) -> bool:
        return self.total_chargeable_weight > self.total_actual_weight

    @property
    def weight_savings(self) -> float:
        return max(0.0, self.total_actual_weight - self.total_chargeable_weight)

    @property
    def weight_penalty(self) -> float:
        return max(0.0, self.total_chargeable_weight - self.total_actual_weight)

    @property
    def summary(self) -> str:
        unit = weight_label(self.weight_unit)
        actual = self.total_actual_weight
        chargeable = self.total_chargeable_weight
        difference = chargeable - actual
        sign = "+" if difference > 0 else ""
        return (
            f"Total: {actual:.2f} {unit} actual → {chargeable:.2f} {unit} chargeable "
            f"({sign}{difference:.2f} {unit})"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_actual": self.total_actual_weight,
            "total_volumetric": self.total_volumetric_weight,
            "total_chargeable": self.total_chargeable_weight,
            "dim_weight_applied": self.dim_weight_applied,
            "weight_savings": self.weight_savings,
            "weight_penalty": self.weight_penalty,
            "dim_factor_used": self.dim_factor.summary() if self.dim_factor else None,
            "summary": self.summary,
            "per_package": [package.to_dict() for package in self.packages],
        }


class ChargeableWeightCalculator:
    """Applies one resolved DIM factor to every package of a shipment."""

    def package_weight(self, package: Package, factor: Optional[DimFactor], index: int = 0) -> PackageWeight:
        if not package.has_dimensions:
            return self._actual(package, factor, index, NO_DIMENSIONS)
        if factor is None:
            return self._actual(package, factor, index, NO_DIM_FACTOR)
        try:
            return self._dimensional(package, factor, index)
        except ValueError as exc:
            logger.warning(f"DIM weight for package {index} failed, using actual weight: {exc}")
            return self._actual(package, factor, index, CALCULATION_ERROR, error=str(exc))

    def _actual(
        self,
        package: Package,
        factor: Optional[DimFactor],
        index: int,
        reason: str,
        *,
        error: Optional[str] = None,
    ) -> PackageWeight:
        # Totals are summed in one unit; an unknown unit keeps the declared value.
        target = factor.unit.weight_unit if factor else WeightUnit.LB
        try:
            weight = convert_weight(package.weight, package.weight_unit, target)
        except ValueError as exc:
            logger.warning(f"Package {index} weight kept in '{package.weight_unit}': {exc}")
            weight = package.weight
        return PackageWeight(
            package_index=index,
            quantity=package.quantity,
            actual_weight=weight,
            volumetric_weight=0.0,
            chargeable_weight=weight,
            calculation=reason,
            error=error,
        )

    def _dimensional(self, package: Package, factor: DimFactor, index: int) -> PackageWeight:
        length_unit = factor.unit.length_unit
        weight_unit = factor.unit.weight_unit
        length, width, height = (
            convert_length(side, package.dimension_unit, length_unit) for side in package.dimensions
        )
        actual = convert_weight(package.weight, package.weight_unit, weight_unit)
        volume = length * width * height
        volumetric = volume / factor.factor
        chargeable = ceil_to_tenth(max(actual, volumetric))
        unit = length_unit.value
        calculation = (
            f"Volume: {length:g}{unit}×{width:g}{unit}×{height:g}{unit} = {volume:.2f}{unit}³ "
            f"÷ {factor.factor:g} = {volumetric:.2f} {weight_label(weight_unit)}. "
            f"Chargeable: max({actual:.2f}, {volumetric:.2f}) = {chargeable:g}"
        )
        return PackageWeight(
            package_index=index,
            quantity=package.quantity,
            actual_weight=actual,
            volumetric_weight=volumetric,
            chargeable_weight=chargeable,
            calculation=calculation,
            dim_factor_used=factor.summary(),
        )

    def calculate(self, packages: Sequence[Package], factor: Optional[DimFactor]) -> ShipmentWeight:
        return ShipmentWeight(
            packages=[self.package_weight(package, factor, index) for index, package in enumerate(packages)],
            dim_factor=factor,
        )


def resolve_for_packages(
    context: EngineContext,
    packages: Sequence[Package],
    carrier_id: str,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> Optional[DimFactor]:
    """Resolve the shipment's DIM factor once; skipped when no package has dimensions."""
    if not any(package.has_dimensions for package in packages):
        return None
    return DimFactorResolver(context).resolve(carrier_id, service_type, zone, customer_id)


def calculate_chargeable_weight(
    context: EngineContext,
    carrier_id: str,
    packages: Sequence[Package],
    *,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> ShipmentWeight:
    if not carrier_id:
        raise ValidationError("Carrier ID is required")
    if not packages:
        raise ValidationError("At least one package is required")
    factor = resolve_for_packages(context, packages, carrier_id, service_type, zone, customer_id)
    return ChargeableWeightCalculator().calculate(packages, factor)


def calculate_volumetric_weight(
    context: EngineContext,
    carrier_id: str,
    package: Package,
    *,
    service_type: Optional[str] = None,
    zone: Optional[str] = None,
    customer_id: Optional[str] = None,
) -> dict[str, Any]:
    """Single-package preview of the volumetric and chargeable weight."""
    if not carrier_id or not package.has_dimensions or not package.weight:
        raise ValidationError("Carrier ID, dimensions, and actual weight are required")
    factor = DimFactorResolver(context).resolve(carrier_id, service_type, zone, customer_id)
    result = ChargeableWeightCalculator().package_weight(package, factor)
    if result.error:
        raise ValidationError(result.error)
    return {
        "success": True,
        "volumetric_weight": round(result.volumetric_weight, 2),
        "chargeable_weight": result.chargeable_weight,
        "actual_weight": package.weight,
        "dim_factor_used": result.dim_factor_used,
        "calculation": result.calculation,
    }
