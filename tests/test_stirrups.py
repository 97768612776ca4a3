# path: tests/test_stirrups.py
import pytest

from beam_rebar.engine.stirrups import (
    auto_legs,
    calculate_stirrup,
    calculate_web_bars,
    parse_auto_legs_rules,
    parse_stirrup_area_per_length,
    stirrup_legs,
)
from beam_rebar.services.settings import BeamConfig, DesignSettings


def test_parse_auto_legs_rules():
    assert parse_auto_legs_rules("600-6 250-2 400-4 bad x-3") == [(250, 2), (400, 4), (600, 6)]
    assert parse_auto_legs_rules("") == []


def test_auto_legs_by_width():
    s = DesignSettings()
    assert auto_legs(200, s) == 2
    assert auto_legs(300, s) == 4
    assert auto_legs(700, s) == 6

    ladder = DesignSettings(beam=BeamConfig(auto_legs_rules=""))
    assert auto_legs(300, ladder) == 3
    assert auto_legs(650, ladder) == 5

    fixed = DesignSettings(beam=BeamConfig(auto_legs_from_width=False, stirrup_legs=2))
    assert auto_legs(600, fixed) == 2


def test_calculate_stirrup():
    s = DesignSettings()
    assert calculate_stirrup(0.0, 0.0, 300, s) == "-"
    assert calculate_stirrup(0.05, 0.0, 300, s) == "4-d8a250"
    assert calculate_stirrup(0.3, 0.0, 300, s) == "6-d8a100"
    # torsión cuenta doble
    assert calculate_stirrup(0.1, 0.1, 300, s) == "6-d8a100"
    assert calculate_stirrup(2.0, 0.0, 300, s) == "6-d10a100*"


def test_calculate_stirrup_forced_legs():
    s = DesignSettings()
    assert calculate_stirrup(0.05, 0.0, 300, s, forced_legs=2) == "2-d8a200"


def test_parse_stirrup_text():
    assert parse_stirrup_area_per_length("4-d8a100") == pytest.approx(4 * 0.50265 / 10.0, rel=1e-3)
    assert parse_stirrup_area_per_length("d10a200") == pytest.approx(2 * 0.7854 / 20.0, rel=1e-3)
    assert parse_stirrup_area_per_length("-") == 0.0
    assert stirrup_legs("6-d8a100") == 6
    assert stirrup_legs("d8a100") == 2


def test_web_bars():
    s = DesignSettings()
    assert calculate_web_bars(0.0, 0.5, 500, s) == "-"
    assert calculate_web_bars(0.0, 0.5, 800, s) == "2d12"
    assert calculate_web_bars(4.0, 0.5, 500, s) == "2d12"
    assert calculate_web_bars(10.0, 0.5, 500, s) == "6d12"
