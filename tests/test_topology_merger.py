# path: tests/test_topology_merger.py
import pytest

from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.sections import DesignSection, SectionArrangement, SectionType
from beam_rebar.engine.normalize import build_design_sections
from beam_rebar.engine.section_solver import SectionSolver
from beam_rebar.engine.topology_merger import TopologyMerger, find_intersection, merge_governing
from beam_rebar.services.settings import DesignSettings, StirrupConfig


def _two_spans(left_req=19.0, right_req=8.0):
    group = BeamGroup("V1", [BeamSpan("S1", 300, 600, 6000), BeamSpan("S2", 300, 600, 6000)])
    res = [
        BeamResultData(top_area=(0.0, 0.0, left_req), bot_area=(0.0, 6.0, 0.0)),
        BeamResultData(top_area=(right_req, 0.0, 0.0), bot_area=(0.0, 6.0, 0.0)),
    ]
    settings = DesignSettings()
    sections = build_design_sections(group, res, settings)
    SectionSolver(settings).solve_all(sections)
    return settings, sections


def _arr(d, n, layers, area, score=50.0):
    return SectionArrangement(primary_diameter=d, total_count=n, bars_per_layer=layers, total_area=area, score=score)


def test_support_pairs_are_linked():
    settings, sections = _two_spans()
    pairs = TopologyMerger(settings).support_pairs(sections)
    assert len(pairs) == 1
    assert pairs[0].left.section_id == "S1_Right"
    assert pairs[0].right.section_id == "S2_Left"
    assert pairs[0].left.linked_section_id == "S2_Left"


def test_merged_sides_agree_and_cover_governing():
    settings, sections = _two_spans()
    ok = TopologyMerger(settings).apply_constraints(sections)
    by_id = {s.section_id: s for s in sections}
    left, right = by_id["S1_Right"], by_id["S2_Left"]

    assert ok
    assert left.valid_top == right.valid_top
    assert left.valid_bot == right.valid_bot
    assert left.valid_top
    assert all(a.total_area >= 19.0 for a in left.valid_top)


def test_merge_with_rebalance_flag():
    settings, sections = _two_spans()
    ok = TopologyMerger(settings, use_rebalance=True).apply_constraints(sections)
    by_id = {s.section_id: s for s in sections}
    assert ok
    assert by_id["S1_Right"].valid_top == by_id["S2_Left"].valid_top
    assert all(a.total_area >= 19.0 for a in by_id["S2_Left"].valid_top)


def test_rebalance_single_layer_layouts():
    settings, sections = _two_spans()
    by_id = {s.section_id: s for s in sections}
    out = TopologyMerger(settings).rebalance(by_id["S1_Right"], by_id["S2_Left"], 19.0)
    assert 0 < len(out) <= 5
    for a in out:
        assert a.layer_count == 1
        assert a.total_area >= 19.0
    assert {a.to_display_string() for a in out} == {"4D25", "5D22"}


def test_find_intersection_keeps_best_score():
    a = _arr(20, 4, (4,), 12.57, score=80.0)
    b = _arr(20, 4, (2, 2), 12.57, score=70.0)
    c = _arr(16, 6, (6,), 12.06)
    assert find_intersection([a, c], [b]) == (a,)
    assert find_intersection([c], [a]) == ()


def test_merge_governing_fallbacks():
    a = _arr(20, 4, (4,), 12.57)
    c = _arr(16, 6, (6,), 12.06)
    # el lado izquierdo no cubre el gobernante: se usa el derecho
    assert merge_governing([c], [a], governing=12.5) == (a,)
    # sin intersección: lado izquierdo primero
    assert merge_governing([a], [c], governing=12.0) == (a,)
    assert merge_governing([c], [c], governing=20.0) == ()


def _support(section_id, span_id, index, width, left_end, top, bot, req_top=10.0):
    return DesignSection(
        section_id=section_id,
        span_id=span_id,
        span_index=index,
        position_m=6.0,
        section_type=SectionType.SUPPORT,
        width_mm=width,
        height_mm=600.0,
        usable_width_mm=width - 70.0,
        usable_height_mm=530.0,
        req_top=req_top,
        is_support_left=not left_end,
        is_support_right=left_end,
        valid_top=tuple(top),
        valid_bot=tuple(bot),
    )


def _narrow_support_pair():
    six = _arr(16, 6, (6,), 12.06, score=60.0)
    four = _arr(20, 4, (4,), 12.57, score=50.0)
    bot = _arr(16, 2, (2,), 4.02, score=40.0)
    left = _support("S1_Right", "S1", 0, 250.0, True, [six, four], [bot])
    right = _support("S2_Left", "S2", 1, 300.0, False, [six, four], [bot])
    return left, right, six, four


def test_stirrup_compatibility_on_narrow_side_keeps_pair_equal():
    # 250 mm -> estribo de 2 ramas, hasta 4 barras por cara
    left, right, six, four = _narrow_support_pair()
    ok = TopologyMerger(DesignSettings()).apply_constraints([left, right])

    assert ok
    assert all(a.total_count <= 4 for a in left.valid_top)
    assert left.valid_top == right.valid_top == (four,)
    assert left.valid_bot == right.valid_bot


def test_stirrup_compatibility_can_be_disabled():
    left, right, six, four = _narrow_support_pair()
    settings = DesignSettings(stirrup=StirrupConfig(enable_advanced_rules=False))
    TopologyMerger(settings).apply_constraints([left, right])

    assert six in left.valid_top
    assert left.valid_top == right.valid_top


def test_vertical_alignment_penalizes_parity_mismatch():
    odd = _arr(20, 3, (3,), 9.42, score=50.0)
    even = _arr(20, 4, (4,), 12.57, score=50.0)
    mid = DesignSection(
        section_id="S1_Mid", span_id="S1", span_index=0, position_m=3.0,
        section_type=SectionType.MID_SPAN, width_mm=300.0, height_mm=600.0,
        usable_width_mm=230.0, usable_height_mm=530.0, req_top=9.0, req_bot=4.0,
        valid_top=(odd, even), valid_bot=(_arr(16, 2, (2,), 4.02, score=40.0),),
    )
    settings = DesignSettings()
    TopologyMerger(settings).apply_constraints([mid])

    penalty = settings.rules_cfg().alignment_penalty_score / 5.0
    scores = {a.total_count: a.score for a in mid.valid_top}
    assert scores[3] == pytest.approx(50.0 - penalty)
    assert scores[4] == pytest.approx(50.0)
    assert mid.valid_bot[0].score == pytest.approx(40.0)
