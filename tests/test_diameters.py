# path: tests/test_diameters.py
from beam_rebar.domain.context import ProjectConstraints
from beam_rebar.engine.diameters import (
    allowed_diameters,
    closest_diameter,
    filter_even_diameters,
    format_range,
    is_valid_range,
    parse_range,
)
from beam_rebar.services.settings import DEFAULT_INVENTORY, BeamConfig, DesignSettings

INV = DEFAULT_INVENTORY


def test_parse_range_basic_and_reversed():
    assert parse_range("16-25", INV) == [16, 18, 20, 22, 25]
    assert parse_range("25-16", INV) == [16, 18, 20, 22, 25]


def test_parse_range_lists_and_mixed_tokens():
    assert parse_range("12-16, 20; 25", INV) == [12, 14, 16, 20, 25]
    assert parse_range("18 20 99", INV) == [18, 20]


def test_parse_range_skips_malformed_tokens():
    assert parse_range("abc, 16-x, 20, 1-2-3", INV) == [20]


def test_parse_range_empty_returns_inventory():
    assert parse_range("", [25, 16, 20]) == [16, 20, 25]
    assert parse_range("16-25", []) == []


def test_is_valid_range():
    assert is_valid_range("16", INV)
    assert not is_valid_range("40-50", INV)


def test_format_range():
    assert format_range([16, 18, 20, 22, 28]) == "16-22, 28"
    assert format_range([20, 16], compact=False) == "16, 20"
    assert format_range([]) == ""
    assert format_range([25]) == "25"


def test_even_and_closest():
    assert filter_even_diameters([16, 18, 25]) == [16, 18]
    assert closest_diameter(19, INV) == 20
    assert closest_diameter(40, INV) == 32
    assert closest_diameter(19, INV, prefer_larger=False) == 18
    assert closest_diameter(19, []) == 19


def test_allowed_diameters_from_settings():
    assert allowed_diameters(DesignSettings()) == [16, 18, 20, 22, 25]

    even = DesignSettings(beam=BeamConfig(prefer_even_diameter=True))
    assert allowed_diameters(even) == [16, 18, 20, 22]

    out_of_stock = DesignSettings(beam=BeamConfig(main_bar_range="40-50"))
    assert allowed_diameters(out_of_stock) == [16, 18, 20, 22, 25]


def test_allowed_diameters_project_override():
    pc = ProjectConstraints(allowed_diameters_override=[25, 20, 99])
    assert allowed_diameters(DesignSettings(), pc) == [20, 25]
