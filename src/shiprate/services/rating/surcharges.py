"""Final rate assembly: base rate plus oversize and declared-value surcharges."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Sequence

from ...config import Settings
from ...models.domain import Adjustment, Package, RateQuote, RateResult
from .weights import ShipmentWeight


@dataclass(slots=True)
class PackageMetrics:
    total_weight: float = 0.0
    total_pieces: int = 0
    total_volume: float = 0.0
    max_length: float = 0.0
    max_width: float = 0.0
    max_height: float = 0.0
    total_declared_value: float = 0.0
    package_count: int = 0

    @property
    def max_dimension(self) -> float:
        return max(self.max_length, self.max_width, self.max_height)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def package_metrics(packages: Sequence[Package]) -> PackageMetrics:
    """Totals in each package's declared units; maxima are per single package."""
    metrics = PackageMetrics(package_count=len(packages))
    for package in packages:
        length, width, height = package.dimensions
        metrics.total_weight += package.weight * package.quantity
        metrics.total_pieces += package.quantity
        metrics.total_volume += length * width * height * package.quantity
        metrics.total_declared_value += package.declared_value * package.quantity
        metrics.max_length = max(metrics.max_length, length)
        metrics.max_width = max(metrics.max_width, width)
        metrics.max_height = max(metrics.max_height, height)
    return metrics


class FinalRateCalculator:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def adjustments(self, metrics: PackageMetrics) -> list[Adjustment]:
        adjustments = []
        if metrics.max_dimension > self.settings.oversize_threshold:
            amount = round(self.settings.oversize_surcharge, 2)
            adjustments.append(Adjustment("oversize", f"Oversize Surcharge: +${amount:.2f}", amount))
        if metrics.total_declared_value > self.settings.declared_value_threshold:
            amount = round(metrics.total_declared_value * self.settings.declared_value_rate, 2)
            adjustments.append(Adjustment("declared_value", f"Declared Value Surcharge: +${amount:.2f}", amount))
        return adjustments

    def calculate(self, quote: RateQuote, weight: ShipmentWeight, metrics: PackageMetrics) -> RateResult:
        adjustments = self.adjustments(metrics)
        calculation = quote.calculation
        if weight.dim_weight_applied:
            calculation += f" | DIM: {weight.summary}"
        if adjustments:
            calculation += " | Adjustments: " + ", ".join(adjustment.description for adjustment in adjustments)
        total = quote.total_rate + sum(adjustment.amount for adjustment in adjustments)
        entry = quote.entry
        return RateResult(
            base_rate=quote.total_rate,
            total_rate=round(total, 2),
            chargeable_weight=weight.total_chargeable_lbs,
            actual_weight=weight.total_actual_lbs,
            weight_basis="chargeable" if weight.dim_weight_applied else "actual",
            adjustments=adjustments,
            calculation=calculation,
            currency=entry.currency or self.settings.default_currency,
            rate_type=entry.rate_type.value,
            carrier_name=entry.carrier_name,
            rate_card_id=entry.rate_card_id,
        )
