from datetime import datetime, timezone

import pytest

from src.shiprate.config import Settings
from src.shiprate.errors import ValidationError
from src.shiprate.models.domain import DimFactor, DimUnit, Package
from src.shiprate.persistence.memory import InMemoryStore
from src.shiprate.services.context import EngineContext
from src.shiprate.services.rating.weights import (
    CALCULATION_ERROR,
    NO_DIM_FACTOR,
    NO_DIMENSIONS,
    ChargeableWeightCalculator,
    calculate_chargeable_weight,
    calculate_volumetric_weight,
    ceil_to_tenth,
)

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _dim_factor(factor: float = 166, unit: DimUnit = DimUnit.IN3_LB) -> DimFactor:
    return DimFactor(
        id="f1",
        carrier_id="c1",
        factor=factor,
        unit=unit,
        effective_date=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def _context(*factors: dict) -> EngineContext:
    store = InMemoryStore({"dim_factors": list(factors)})
    return EngineContext(store=store, settings=Settings(persist_import_reports=False), clock=lambda: NOW)


def test_volumetric_weight_exceeds_actual() -> None:
    package = Package(weight=10, length=24, width=18, height=12)

    result = ChargeableWeightCalculator().package_weight(package, _dim_factor())

    assert result.volumetric_weight == pytest.approx(5184 / 166)
    assert result.volumetric_weight == pytest.approx(31.2289, abs=1e-4)
    assert result.chargeable_weight == 31.3
    assert result.dim_factor_used["factor"] == 166
    assert result.calculation == (
        "Volume: 24in×18in×12in = 5184.00in³ ÷ 166 = 31.23 lbs. Chargeable: max(10.00, 31.23) = 31.3"
    )


def test_actual_weight_wins_for_dense_package() -> None:
    package = Package(weight=50, length=10, width=10, height=10)

    result = ChargeableWeightCalculator().package_weight(package, _dim_factor())

    assert result.chargeable_weight == 50.0
    assert result.volumetric_weight == pytest.approx(1000 / 166)


def test_missing_dimension_uses_unrounded_actual_weight() -> None:
    package = Package(weight=12.34, length=10, width=0, height=5)

    result = ChargeableWeightCalculator().package_weight(package, _dim_factor())

    assert result.chargeable_weight == 12.34
    assert result.volumetric_weight == 0.0
    assert result.dim_factor_used is None
    assert result.calculation == NO_DIMENSIONS


def test_missing_factor_uses_actual_weight() -> None:
    package = Package(weight=10, length=24, width=18, height=12)

    result = ChargeableWeightCalculator().package_weight(package, None)

    assert result.chargeable_weight == 10
    assert result.calculation == NO_DIM_FACTOR


def test_packages_are_converted_into_factor_units() -> None:
    package = Package(weight=22.0462, length=50, width=40, height=30, dimension_unit="cm", weight_unit="lbs")

    result = ChargeableWeightCalculator().package_weight(package, _dim_factor(5000, DimUnit.CM3_KG))

    assert result.actual_weight == pytest.approx(10.0, abs=1e-3)
    assert result.volumetric_weight == pytest.approx(12.0)
    assert result.chargeable_weight == 12.0


@pytest.mark.parametrize(
    "package, factor",
    [
        (Package(weight=3.01, length=11, width=7, height=5), _dim_factor()),
        (Package(weight=5, length=13.3, width=9.1, height=7.7), _dim_factor(139)),
        (Package(weight=2.2, length=30, width=20, height=15, dimension_unit="cm", weight_unit="kg"), _dim_factor(5000, DimUnit.CM3_KG)),
        (Package(weight=7, length=10, width=10, height=10, dimension_unit="in", weight_unit="kg"), _dim_factor(305, DimUnit.IN3_KG)),
    ],
)
def test_chargeable_weight_is_smallest_tenth_covering_both_weights(package, factor) -> None:
    result = ChargeableWeightCalculator().package_weight(package, factor)

    heavier = max(result.actual_weight, result.volumetric_weight)
    assert result.chargeable_weight >= heavier
    assert result.chargeable_weight - heavier < 0.1 + 1e-9
    assert round(result.chargeable_weight * 10) == pytest.approx(result.chargeable_weight * 10)


def test_ceil_to_tenth_keeps_exact_tenths() -> None:
    assert ceil_to_tenth(12.0) == 12.0
    assert ceil_to_tenth(12.01) == 12.1
    assert ceil_to_tenth(31.22891566) == 31.3
    assert ceil_to_tenth(31.3) == 31.3
    assert ceil_to_tenth(0.1) == 0.1
    assert ceil_to_tenth(2.3) == 2.3


def test_dense_package_on_an_exact_tenth_is_not_rounded_up() -> None:
    package = Package(weight=31.3, length=10, width=10, height=10)

    result = ChargeableWeightCalculator().package_weight(package, _dim_factor())

    assert result.chargeable_weight == 31.3


def test_packages_without_dimensions_are_totalled_in_factor_units() -> None:
    packages = [
        Package(weight=100, length=10, width=10, height=10, dimension_unit="cm"),
        Package(weight=100),
    ]

    shipment = ChargeableWeightCalculator().calculate(packages, _dim_factor(5000, DimUnit.CM3_KG))

    measured, unmeasured = shipment.packages
    assert measured.chargeable_weight == 45.4
    assert unmeasured.actual_weight == pytest.approx(45.3592)
    assert unmeasured.chargeable_weight == pytest.approx(45.3592)
    assert shipment.total_actual_weight == pytest.approx(90.7184)
    assert shipment.total_chargeable_lbs == pytest.approx(200.09, abs=0.01)
    assert shipment.summary == "Total: 90.72 kg actual → 90.76 kg chargeable (+0.04 kg)"


def test_unsupported_units_fall_back_for_that_package_only() -> None:
    packages = [
        Package(weight=4, length=10, width=10, height=10, dimension_unit="mm"),
        Package(weight=10, length=24, width=18, height=12),
    ]

    shipment = ChargeableWeightCalculator().calculate(packages, _dim_factor())

    broken, fine = shipment.packages
    assert broken.chargeable_weight == 4
    assert broken.calculation == CALCULATION_ERROR
    assert "mm" in broken.error
    assert fine.chargeable_weight == 31.3


def test_shipment_totals_respect_quantity() -> None:
    packages = [
        Package(weight=10, length=24, width=18, height=12, quantity=2),
        Package(weight=5, quantity=3),
    ]

    shipment = ChargeableWeightCalculator().calculate(packages, _dim_factor())

    assert shipment.total_actual_weight == pytest.approx(35.0)
    assert shipment.total_chargeable_weight == pytest.approx(77.6)
    assert shipment.dim_weight_applied is True
    assert shipment.weight_penalty == pytest.approx(42.6)
    assert shipment.weight_savings == 0.0
    assert shipment.summary == "Total: 35.00 lbs actual → 77.60 lbs chargeable (+42.60 lbs)"


def test_calculate_chargeable_weight_resolves_factor_once() -> None:
    context = _context(
        {
            "id": "f1",
            "carrier_id": "c1",
            "service_type": "all",
            "zone": "all",
            "factor": 166,
            "unit": "in³/lb",
            "effective_date": "2024-01-01",
            "is_active": True,
        }
    )

    shipment = calculate_chargeable_weight(context, "c1", [Package(weight=10, length=24, width=18, height=12)])

    payload = shipment.to_dict()
    assert payload["total_chargeable"] == 31.3
    assert payload["dim_factor_used"]["id"] == "f1"
    assert payload["per_package"][0]["total_chargeable_weight"] == 31.3


def test_factor_is_not_looked_up_without_dimensions() -> None:
    context = _context()
    context.store.fail_when("find")

    shipment = calculate_chargeable_weight(context, "c1", [Package(weight=8)])

    assert shipment.total_chargeable_weight == 8
    assert shipment.dim_factor is None


def test_calculate_chargeable_weight_validates_input() -> None:
    with pytest.raises(ValidationError):
        calculate_chargeable_weight(_context(), "c1", [])
    with pytest.raises(ValidationError):
        calculate_chargeable_weight(_context(), "", [Package(weight=1)])


def test_volumetric_weight_preview() -> None:
    context = _context(
        {
            "id": "f1",
            "carrier_id": "c1",
            "factor": 166,
            "unit": "in3/lb",
            "effective_date": "2024-01-01",
            "is_active": True,
            "service_type": "all",
            "zone": "all",
        }
    )

    preview = calculate_volumetric_weight(context, "c1", Package(weight=10, length=24, width=18, height=12))

    assert preview["volumetric_weight"] == 31.23
    assert preview["chargeable_weight"] == 31.3
    assert preview["actual_weight"] == 10

    with pytest.raises(ValidationError):
        calculate_volumetric_weight(context, "c1", Package(weight=10))
