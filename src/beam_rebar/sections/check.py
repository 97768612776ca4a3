from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Dict, List

from beam_rebar.domain.labels import is_top_key
from beam_rebar.domain.solution import ContinuousBeamSolution
from beam_rebar.materials.rebar_db import bar_area_cm2

_BAR_GROUP_RE = re.compile(r"(\d+)\s*[dD](\d+)")


def _ceil_dec(v: float, dec: int = 2) -> float:
    """Redondeo hacia arriba con 'dec' decimales."""
    p = 10 ** dec
    return math.ceil(float(v) * p) / p


def parse_rebar_area(text: str) -> float:
    """
    Área total (cm²) de un texto de armado: "4d20", "2d16+3d18", "3D20 + 2D16".
    Grupos que no siguen el formato NdD se ignoran.
    """
    t = (text or "").strip()
    if not t or t == "-":
        return 0.0
    total = 0.0
    for part in t.split("+"):
        m = _BAR_GROUP_RE.search(part)
        if not m:
            continue
        total += int(m.group(1)) * bar_area_cm2(int(m.group(2)))
    return total


@dataclass(frozen=True)
class AuditRow:
    idx: int
    position: str
    provided_text: str
    required_cm2: float
    provided_cm2: float
    ratio: float
    ok: bool


def audit_solution(
    *,
    solution: ContinuousBeamSolution,
    requirements: Dict[str, float],   # {"S1_Top_Left": As_req [cm²], ...}
    ceil_decimals: int = 2,
) -> List[AuditRow]:
    """
    Tabla de verificación por posición:
    - provisto = corrida + refuerzo local
    - ratio = provisto / requerido (inf si no hay demanda)
    """
    out: List[AuditRow] = []
    for k, key in enumerate(sorted(requirements), start=1):
        req = max(0.0, float(requirements[key]))
        top = is_top_key(key)

        n_bb = solution.backbone_count_top if top else solution.backbone_count_bot
        d_bb = solution.backbone_diameter_top if top else solution.backbone_diameter_bot
        text = f"{n_bb}d{d_bb}" if n_bb > 0 else "-"
        spec = solution.reinforcements.get(key)
        if spec is not None and spec.count > 0:
            text = f"{text}+{spec.count}d{spec.diameter}"

        provided = parse_rebar_area(text)
        ratio = float("inf") if req <= 0.01 else provided / req

        out.append(
            AuditRow(
                idx=k,
                position=key,
                provided_text=text,
                required_cm2=_ceil_dec(req, ceil_decimals),
                provided_cm2=_ceil_dec(provided, ceil_decimals),
                ratio=ratio if math.isinf(ratio) else _ceil_dec(ratio, ceil_decimals),
                ok=provided >= req * 0.99,
            )
        )
    return out
