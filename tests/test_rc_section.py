import pytest

from beam_rebar.sections.rc_section import RCSection, clear_spacing, max_bars_per_layer
from beam_rebar.services.settings import BeamConfig


def test_usable_width_and_bars_per_layer():
    # b=300, recubrimiento 25, estribo 10, d=20
    sec = RCSection.from_config(300, 500, BeamConfig())
    assert sec.usable_width_mm == pytest.approx(230.0)
    assert sec.min_clear_spacing(20) == pytest.approx(26.6)
    assert sec.max_bars_per_layer(20) == 5


def test_clear_spacing_bounds():
    sec = RCSection.from_config(300, 500, BeamConfig())
    assert sec.clear_spacing(5, 20) == pytest.approx(32.5)
    assert sec.spacing_ok(5, 20)
    assert not sec.spacing_ok(6, 20)

    wide = RCSection.from_config(700, 500, BeamConfig())
    # 2 barras en 630 mm superan la separación máxima de 300 mm
    assert not wide.spacing_ok(2, 16)


def test_max_layers_capped():
    sec = RCSection.from_config(300, 600, BeamConfig())
    assert sec.max_layers(20) == 5
    assert RCSection(300, 50).max_layers(20) == 1


def test_mixed_fits():
    sec = RCSection.from_config(300, 500, BeamConfig())
    assert sec.mixed_fits((25, 25, 20, 20))
    assert not sec.mixed_fits((25,) * 4 + (20,) * 2)


def test_module_helpers():
    assert max_bars_per_layer(10, 20, 25) == 0
    assert clear_spacing(230, 1, 20) == pytest.approx(230.0)
