import pytest

from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.context import ProjectConstraints, SolutionContext
from beam_rebar.domain.solution import ContinuousBeamSolution, RebarSpec
from beam_rebar.engine.rules import PreferredDiameterRule, RuleEngine, Severity, SymmetryRule
from beam_rebar.services.settings import BeamConfig, DesignSettings


def _ctx(top=(16, 2), bot=(16, 2), reinforcements=None, gc=None, settings=None):
    sol = ContinuousBeamSolution(
        backbone_diameter_top=top[0],
        backbone_count_top=top[1],
        backbone_diameter_bot=bot[0],
        backbone_count_bot=bot[1],
        reinforcements=dict(reinforcements or {}),
    )
    return SolutionContext(
        group=BeamGroup("V1", [BeamSpan("S1", 300, 600, 6000)]),
        span_results=[],
        settings=settings or DesignSettings(),
        global_constraints=gc,
        current_solution=sol,
    )


def test_default_rules_by_priority():
    engine = RuleEngine()
    assert engine.rule_names() == ["Pyramid", "Symmetry", "PreferredDiameter"]
    assert engine.remove_rule("Symmetry")
    assert not engine.remove_rule("Symmetry")
    engine.add_rule(SymmetryRule())
    assert engine.rule_names() == ["Pyramid", "Symmetry", "PreferredDiameter"]


def test_inverted_pyramid_is_critical_and_stops():
    ctx = _ctx(reinforcements={"S1_Bot_Mid": RebarSpec(16, 3, 2, "Bot", (2, 3))})
    RuleEngine().validate_all(ctx)
    assert not ctx.is_valid
    assert ctx.fail_stage == "Rule:Pyramid"
    assert [r.severity for r in ctx.validation_results] == [Severity.CRITICAL]
    assert ctx.current_solution.is_valid is False


def test_odd_backbone_counts_are_penalized():
    ctx = _ctx(top=(16, 3), bot=(16, 3))
    RuleEngine().validate_all(ctx)
    assert ctx.is_valid
    assert ctx.total_penalty == pytest.approx(4.0)


def test_symmetry_off_means_no_penalty():
    ctx = _ctx(top=(16, 3), bot=(16, 3), settings=DesignSettings(beam=BeamConfig(prefer_symmetric=False)))
    RuleEngine().validate_all(ctx)
    assert ctx.total_penalty == 0.0


def test_preferred_diameter_bonus():
    gc = ProjectConstraints(preferred_main_diameter=16)
    both = _ctx(gc=gc)
    RuleEngine().validate_all(both)
    assert both.preferred_diameter_bonus == pytest.approx(5.0)

    one = _ctx(bot=(20, 2), gc=gc)
    RuleEngine().validate_all(one)
    assert one.preferred_diameter_bonus == pytest.approx(2.5)

    res = PreferredDiameterRule().validate(_ctx(top=(20, 2), bot=(20, 2), gc=gc))
    assert res.severity is Severity.PASS
