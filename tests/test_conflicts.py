from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.context import SolutionContext
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.solution import ContinuousBeamSolution, RebarSpec
from beam_rebar.engine.conflicts import (
    DEVELOPMENT_LENGTH,
    DIAMETER_JUMP,
    HOOK_ANCHORAGE,
    INSUFFICIENT_CLEAR_SPACING,
    LAYER_JUMP,
    STIRRUP_LEG_DEFICIT,
    ConflictResolver,
)
from beam_rebar.services.settings import DesignSettings


def _solution(reinforcements=None, d=16, n=2):
    return ContinuousBeamSolution(
        option_name=f"T:{n}D{d}/B:{n}D{d}",
        backbone_diameter_top=d,
        backbone_diameter_bot=d,
        backbone_count_top=n,
        backbone_count_bot=n,
        reinforcements=dict(reinforcements or {}),
    )


def _ctx(sol, widths=(300,), legs=4):
    spans = [BeamSpan(f"S{i + 1}", w, 600, 6000) for i, w in enumerate(widths)]
    return SolutionContext(
        group=BeamGroup("V1", spans),
        span_results=[BeamResultData() for _ in spans],
        settings=DesignSettings(),
        scenario_id="t",
        current_solution=sol,
        stirrup_leg_count=legs,
    )


def _types(reports):
    return [r.conflict_type for r in reports]


def test_clean_solution_has_no_conflicts():
    assert ConflictResolver().resolve(_ctx(_solution())) == []


def test_stirrup_leg_deficit():
    sol = _solution({"S1_Bot_Mid": RebarSpec(16, 4, 1, "Bot", (6,))})
    reports = ConflictResolver().resolve(_ctx(sol, legs=2))
    assert _types(reports) == [STIRRUP_LEG_DEFICIT]
    assert reports[0].span_id == "S1"


def test_clear_spacing_in_narrow_beam():
    # 250 mm -> ancho útil 180 mm, 6D16 deja 16.8 mm libres
    sol = _solution({"S1_Bot_Mid": RebarSpec(16, 4, 1, "Bot", (6,))})
    reports = ConflictResolver().resolve(_ctx(sol, widths=(250,), legs=6))
    assert _types(reports) == [INSUFFICIENT_CLEAR_SPACING]
    assert "Bot" in reports[0].description


def test_layer_jump_between_spans():
    sol = _solution({"S1_Bot_Mid": RebarSpec(16, 4, 3, "Bot", (2, 2, 2))})
    reports = ConflictResolver().resolve(_ctx(sol, widths=(300, 300), legs=6))
    assert _types(reports) == [LAYER_JUMP]
    assert reports[0].span_id == "S2"


def test_diameter_jump_reported_once():
    sol = _solution({
        "S1_Bot_Left": RebarSpec(25, 2, 1, "Bot", (4,)),
        "S1_Bot_Mid": RebarSpec(25, 2, 1, "Bot", (4,)),
    })
    reports = ConflictResolver().resolve(_ctx(sol))
    assert _types(reports).count(DIAMETER_JUMP) == 1


def test_mid_span_development_length():
    # D25: Ld = 40·25 = 1000 mm > 0.15·6000 = 900 mm
    sol = _solution({"S1_Bot_Mid": RebarSpec(25, 2, 1, "Bot", (4,))})
    reports = ConflictResolver().resolve(_ctx(sol))
    dev = [r for r in reports if r.conflict_type == DEVELOPMENT_LENGTH]
    assert len(dev) == 1
    assert dev[0].description.startswith("S1_Bot_Mid")


def test_injected_hook_length():
    resolver = ConflictResolver(hooked_fn=lambda d, s: 1000.0)
    reports = resolver.resolve(_ctx(_solution()))
    assert _types(reports) == [HOOK_ANCHORAGE] * 4


def test_execute_attaches_reports_without_invalidating():
    ctx = _ctx(_solution({"S1_Bot_Mid": RebarSpec(16, 4, 1, "Bot", (6,))}), legs=2)
    out = list(ConflictResolver().execute([ctx]))
    assert out[0].is_valid
    assert _types(out[0].conflicts) == [STIRRUP_LEG_DEFICIT]
