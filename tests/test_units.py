import pytest

from src.shiprate.errors import UnsupportedConversion
from src.shiprate.models.domain import DimUnit, LengthUnit, WeightUnit
from src.shiprate.services.geospatial import bounding_box, haversine_meters
from src.shiprate.services.units import convert_length, convert_weight


def test_length_conversions_use_fixed_constants() -> None:
    assert convert_length(10, "in", "cm") == pytest.approx(25.4)
    assert convert_length(100, "cm", "in") == pytest.approx(39.3701)
    assert convert_length(12, LengthUnit.IN, LengthUnit.IN) == 12


def test_weight_conversions_accept_lbs_alias() -> None:
    assert convert_weight(10, "lbs", "kg") == pytest.approx(4.53592)
    assert convert_weight(10, "kg", "lb") == pytest.approx(22.0462)
    assert convert_weight(7.5, "LBS", WeightUnit.LB) == 7.5


@pytest.mark.parametrize(
    "converter, source, target",
    [
        (convert_length, "mm", "in"),
        (convert_length, "in", "ft"),
        (convert_weight, "oz", "lb"),
        (convert_weight, "kg", "tonne"),
    ],
)
def test_unknown_units_are_rejected(converter, source, target) -> None:
    with pytest.raises(UnsupportedConversion) as excinfo:
        converter(1.0, source, target)

    assert isinstance(excinfo.value, ValueError)


def test_dim_unit_parses_ascii_spellings() -> None:
    assert DimUnit.parse("in3/lb") is DimUnit.IN3_LB
    assert DimUnit.parse("cm^3/kg") is DimUnit.CM3_KG
    assert DimUnit.parse("in³/kg").length_unit is LengthUnit.IN
    assert DimUnit.parse("cm³/lb").weight_unit is WeightUnit.LB

    with pytest.raises(ValueError):
        DimUnit.parse("ft3/lb")


def test_haversine_identical_points_is_zero() -> None:
    assert haversine_meters(43.6532, -79.3832, 43.6532, -79.3832) == 0


def test_haversine_one_degree_of_latitude() -> None:
    distance = haversine_meters(45.0, -75.0, 46.0, -75.0)

    assert distance == pytest.approx(111_000, rel=0.01)


def test_bounding_box_contains_radius() -> None:
    lat, lon, radius = 60.0, -110.0, 10_000
    min_lat, max_lat, min_lon, max_lon = bounding_box(lat, lon, radius)

    assert haversine_meters(lat, lon, max_lat, lon) >= radius * 0.99
    assert haversine_meters(lat, lon, lat, max_lon) >= radius * 0.99
    assert min_lat < lat < max_lat
    assert min_lon < lon < max_lon
    # Longitude span doubles at 60 degrees north.
    assert (max_lon - lon) == pytest.approx(2 * (max_lat - lat), rel=1e-6)


def test_bounding_box_at_pole_spans_all_longitudes() -> None:
    _, _, min_lon, max_lon = bounding_box(90.0, 0.0, 5_000)

    assert max_lon - min_lon == pytest.approx(360.0)
