# path: tests/test_section_solver.py
import pytest

from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.sections import EMPTY_ARRANGEMENT, RebarPosition
from beam_rebar.engine.normalize import build_design_sections
from beam_rebar.engine.section_solver import SectionSolver
from beam_rebar.services.settings import DesignSettings, SearchConfig


def _sections(top=(0.0, 0.0, 19.0), bot=(0.0, 9.0, 0.0)):
    group = BeamGroup("V1", [BeamSpan("S1", 300, 600, 6000)])
    res = [BeamResultData(top_area=top, bot_area=bot)]
    return build_design_sections(group, res, DesignSettings())


def test_zero_demand_returns_single_empty():
    solver = SectionSolver(DesignSettings())
    left = _sections()[0]
    assert solver.solve(left, RebarPosition.TOP) == [EMPTY_ARRANGEMENT]
    assert solver.solve(None, RebarPosition.BOT) == [EMPTY_ARRANGEMENT]


def test_arrangements_cover_area_and_spacing():
    solver = SectionSolver(DesignSettings())
    right = _sections()[2]
    arrs = solver.solve(right, RebarPosition.TOP)

    assert arrs
    assert len(arrs) <= 50
    for a in arrs:
        assert a.total_area >= 19.0 * 0.98
        assert 26.6 - 1e-9 <= a.clear_spacing <= 300.0
        assert a.layer_count <= 2


def test_arrangements_ranked_and_unique():
    solver = SectionSolver(DesignSettings())
    mid = _sections()[1]
    arrs = solver.solve(mid, RebarPosition.BOT)

    scores = [a.score for a in arrs]
    assert scores == sorted(scores, reverse=True)
    labels = [a.to_display_string() for a in arrs]
    assert len(labels) == len(set(labels))


def test_solve_is_idempotent():
    solver = SectionSolver(DesignSettings())
    mid = _sections()[1]
    first = solver.solve(mid, RebarPosition.BOT)
    second = solver.solve(mid, RebarPosition.BOT)
    assert first == second
    assert [a.score for a in first] == [a.score for a in second]


def test_truncated_to_configured_maximum():
    solver = SectionSolver(DesignSettings(search=SearchConfig(max_arrangements_per_section=3)))
    arrs = solver.solve(_sections()[2], RebarPosition.TOP)
    assert 0 < len(arrs) <= 3


def test_unsatisfiable_section_returns_empty_list():
    solver = SectionSolver(DesignSettings())
    right = _sections(top=(0.0, 0.0, 200.0))[2]
    assert solver.solve(right, RebarPosition.TOP) == []


def test_layer_configurations_pack_outer_layers_first():
    solver = SectionSolver(DesignSettings())
    assert solver.layer_configurations(4, 5, 2) == [(4,)]
    assert solver.layer_configurations(7, 5, 2) == [(5, 2), (4, 3)]
    for config in solver.layer_configurations(9, 5, 2):
        assert list(config) == sorted(config, reverse=True)


def test_solve_all_fills_both_faces():
    sections = _sections()
    SectionSolver(DesignSettings()).solve_all(sections)
    for s in sections:
        assert s.valid_top
        assert s.valid_bot


def test_none_settings_raise():
    with pytest.raises(ValueError):
        SectionSolver(None)
