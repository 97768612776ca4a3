import math

import pytest

from beam_rebar.domain.solution import ContinuousBeamSolution, RebarSpec
from beam_rebar.materials.rebar_db import bar_area_cm2
from beam_rebar.sections.check import audit_solution, parse_rebar_area


def test_parse_rebar_area():
    assert parse_rebar_area("2d16+3d18") == pytest.approx(2 * bar_area_cm2(16) + 3 * bar_area_cm2(18))
    assert parse_rebar_area("3D20 + 2D16") == pytest.approx(3 * bar_area_cm2(20) + 2 * bar_area_cm2(16))
    assert parse_rebar_area("-") == 0.0
    assert parse_rebar_area("") == 0.0
    assert parse_rebar_area("sin datos") == 0.0


def test_audit_rows():
    sol = ContinuousBeamSolution(
        backbone_diameter_top=16, backbone_count_top=2,
        backbone_diameter_bot=16, backbone_count_bot=2,
        reinforcements={"S1_Bot_Mid": RebarSpec(16, 2, 1, "Bot", (4,))},
    )
    rows = audit_solution(solution=sol, requirements={"S1_Top_Left": 0.0, "S1_Bot_Mid": 8.0})

    assert [r.position for r in rows] == ["S1_Bot_Mid", "S1_Top_Left"]
    mid, top = rows
    assert mid.provided_text == "2d16+2d16"
    assert mid.ratio == pytest.approx(1.01)
    assert mid.ok
    assert top.provided_text == "2d16"
    assert math.isinf(top.ratio)
    assert top.ok

    short = audit_solution(solution=sol, requirements={"S1_Bot_Left": 8.0})[0]
    assert not short.ok
