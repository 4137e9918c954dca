"""Length and weight conversions used by the DIM weight calculations."""

from __future__ import annotations

from typing import Union

from ..errors import UnsupportedConversion
from ..models.domain import LengthUnit, WeightUnit

CM_PER_INCH = 2.54
INCHES_PER_CM = 0.393701
KG_PER_LB = 0.453592
LBS_PER_KG = 2.20462
CUBIC_INCHES_PER_CUBIC_FOOT = 1728.0

_WEIGHT_ALIASES = {"lbs": WeightUnit.LB.value, "kgs": WeightUnit.KG.value}

_LENGTH_FACTORS = {
    (LengthUnit.IN, LengthUnit.CM): CM_PER_INCH,
    (LengthUnit.CM, LengthUnit.IN): INCHES_PER_CM,
}
_WEIGHT_FACTORS = {
    (WeightUnit.LB, WeightUnit.KG): KG_PER_LB,
    (WeightUnit.KG, WeightUnit.LB): LBS_PER_KG,
}


def parse_length_unit(unit: Union[str, LengthUnit], *, other: object = None) -> LengthUnit:
    if isinstance(unit, LengthUnit):
        return unit
    try:
        return LengthUnit(str(unit).strip().lower())
    except ValueError as exc:
        raise UnsupportedConversion(unit, other, kind="length") from exc


def parse_weight_unit(unit: Union[str, WeightUnit], *, other: object = None) -> WeightUnit:
    if isinstance(unit, WeightUnit):
        return unit
    text = str(unit).strip().lower()
    try:
        return WeightUnit(_WEIGHT_ALIASES.get(text, text))
    except ValueError as exc:
        raise UnsupportedConversion(unit, other, kind="weight") from exc


def convert_length(value: float, from_unit: Union[str, LengthUnit], to_unit: Union[str, LengthUnit]) -> float:
    """Convert ``value`` between inches and centimetres."""
    source = parse_length_unit(from_unit, other=to_unit)
    target = parse_length_unit(to_unit, other=from_unit)
    if source is target:
        return value
    return value * _LENGTH_FACTORS[(source, target)]


def convert_weight(value: float, from_unit: Union[str, WeightUnit], to_unit: Union[str, WeightUnit]) -> float:
    """Convert ``value`` between pounds and kilograms (``lbs`` is accepted for ``lb``)."""
    source = parse_weight_unit(from_unit, other=to_unit)
    target = parse_weight_unit(to_unit, other=from_unit)
    if source is target:
        return value
    return value * _WEIGHT_FACTORS[(source, target)]
