# path: tests/test_optimizer.py
import pytest

from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.solution import BackboneConfig
from beam_rebar.engine.normalize import PositionRequirement, extract_positions
from beam_rebar.engine.optimizer import BeamAwareOptimizer
from beam_rebar.services.settings import BeamConfig, DesignSettings


def _group():
    return BeamGroup("V1", [BeamSpan("S1", 300, 600, 6000)])


def _results(top=(5.0, 0.0, 5.0), bot=(0.0, 8.0, 0.0)):
    return [BeamResultData(top_area=top, bot_area=bot)]


def _pos(req, is_top=False):
    return PositionRequirement(
        position_id="S1_Bot_Mid", span_id="S1", is_top=is_top, is_support=False,
        width_mm=300.0, height_mm=600.0, length_mm=6000.0, as_required=req,
    )


def test_solutions_strictly_ascending_by_weight():
    sols = BeamAwareOptimizer(DesignSettings()).optimize(_group(), _results())
    weights = [s.total_steel_weight for s in sols]
    assert 1 <= len(sols) <= 10
    assert all(a < b for a, b in zip(weights, weights[1:]))


def test_solutions_cover_every_position():
    settings = DesignSettings()
    sols = BeamAwareOptimizer(settings).optimize(_group(), _results())
    positions = extract_positions(_group(), _results(), settings)
    for sol in sols:
        for p in positions:
            assert sol.provided_area(p.position_id, p.is_top) >= p.as_required - 0.01


def test_zero_demand_gives_minimum_backbone():
    zero = _results(top=(0.0, 0.0, 0.0), bot=(0.0, 0.0, 0.0))
    sols = BeamAwareOptimizer(DesignSettings()).optimize(_group(), zero)
    assert sols[0].option_name == "T:2D16/B:2D16"
    assert sols[0].reinforcements == {}

    three = DesignSettings(beam=BeamConfig(min_bars_per_layer=3))
    sols = BeamAwareOptimizer(three).optimize(_group(), zero)
    assert sols[0].option_name == "T:3D16/B:3D16"


def test_over_designed_backbones_are_excess_pruned():
    tiny = _results(top=(0.5, 0.5, 0.5), bot=(0.5, 0.5, 0.5))
    opt = BeamAwareOptimizer(DesignSettings())
    assert opt.optimize(_group(), tiny) == []
    assert opt.last_stats.excess_pruned > 0
    assert opt.last_stats.tested == 0


def test_addon_beyond_capacity_returns_none():
    opt = BeamAwareOptimizer(DesignSettings())
    bb = BackboneConfig(16, 2, 16, 2)
    assert opt.find_best_addon_for_position(_pos(80.0), 80.0 - bb.bot_area, bb) is None
    assert opt.optimize(_group(), _results(bot=(0.0, 80.0, 0.0))) == []


def test_addon_prefers_lightest_layer_one_fill():
    opt = BeamAwareOptimizer(DesignSettings())
    addon = opt.find_best_addon_for_position(_pos(8.0), 4.0, BackboneConfig(16, 2, 16, 2))
    assert (addon.diameter, addon.count, addon.layer) == (16, 2, 1)
    assert addon.layer_breakdown == (4,)


def test_addon_stacks_into_second_layer_when_first_is_full():
    opt = BeamAwareOptimizer(DesignSettings())
    addon = opt.find_best_addon_for_position(_pos(16.0), 4.0, BackboneConfig(16, 6, 16, 6))
    assert addon.diameter == 16
    assert addon.layer_breakdown == (6, 2)
    assert addon.layer == 2


def test_global_diameter_filter():
    opt = BeamAwareOptimizer(DesignSettings())
    assert opt.filter_globally_valid_diameters([_pos(30.0)], [16, 18, 20, 22, 25]) == [20, 22, 25]
    assert opt.filter_globally_valid_diameters([_pos(0.0)], [25, 16]) == [16, 25]


def test_parallel_search_matches_serial_best():
    serial = BeamAwareOptimizer(DesignSettings()).optimize(_group(), _results())
    threaded = BeamAwareOptimizer(DesignSettings(), max_workers=4).optimize(_group(), _results())
    assert threaded[0].total_steel_weight == pytest.approx(serial[0].total_steel_weight)
    weights = [s.total_steel_weight for s in threaded]
    assert all(a < b for a, b in zip(weights, weights[1:]))


def test_step_budget_bounds_search():
    opt = BeamAwareOptimizer(DesignSettings(), step_budget=3)
    opt.optimize(_group(), _results())
    assert opt.last_stats.budget_exhausted
    assert opt.last_stats.tested <= 3


def test_none_settings_raise():
    with pytest.raises(ValueError):
        BeamAwareOptimizer(None)
