from __future__ import annotations

import logging
import math
import re
from typing import Iterable, Iterator, List, Optional, Tuple

from beam_rebar.domain.context import ProjectConstraints, SolutionContext
from beam_rebar.domain.labels import stirrup_key
from beam_rebar.domain.results import ZONE_NAMES, BeamResultData
from beam_rebar.materials.rebar_db import bar_area_cm2
from beam_rebar.services.settings import DesignSettings

log = logging.getLogger(__name__)

NEGLIGIBLE_DEMAND = 0.001
WEB_NEGLIGIBLE_AREA = 0.01
MAX_WEB_BARS = 6

_STIRRUP_RE = re.compile(r"(?:(\d+)-)?[dD](\d+)[aA](\d+)")


# ---------------- número de ramas ----------------

def parse_auto_legs_rules(rules: str) -> List[Tuple[int, int]]:
    """
    "250-2 400-4 600-6" -> [(250, 2), (400, 4), (600, 6)]  (ancho máximo, ramas), ordenado.
    Pares mal formados se ignoran.
    """
    out: List[Tuple[int, int]] = []
    for part in re.split(r"[\s,]+", rules or ""):
        kv = part.split("-")
        if len(kv) != 2 or not kv[0].isdigit() or not kv[1].isdigit():
            continue
        out.append((int(kv[0]), int(kv[1])))
    return sorted(out)


def auto_legs(width_mm: float, settings: DesignSettings) -> int:
    """Ramas de estribo según el ancho de la viga."""
    beam = settings.beam_cfg()
    if not beam.auto_legs_from_width:
        return beam.stirrup_legs if beam.stirrup_legs > 0 else 2

    rules = parse_auto_legs_rules(beam.auto_legs_rules)
    if not rules:
        if width_mm <= 250:
            return 2
        if width_mm <= 400:
            return 3
        if width_mm <= 600:
            return 4
        return 5

    for max_w, legs in rules:
        if width_mm <= max_w:
            return legs
    return rules[-1][1]


# ---------------- estribos ----------------

def _try_spacing(demand: float, d: int, legs: int, spacings: Iterable[int], s_min: int) -> Optional[str]:
    as_layer = bar_area_cm2(d) * legs
    s_max = as_layer / demand * 10.0  # mm
    for s in sorted(spacings, reverse=True):
        if s_min <= s <= s_max:
            return f"{legs}-d{d}a{s}"
    return None


def calculate_stirrup(
    shear_area: float,
    tt_area: float,
    width_mm: float,
    settings: DesignSettings,
    forced_legs: Optional[int] = None,
) -> str:
    """
    Estribo para una demanda Av/s + 2·At/s (cm²/cm).

    Prueba diámetros de menor a mayor y, para cada uno, ramas base-1..base+2;
    toma la mayor separación de la lista que cubra la demanda.
    Salida "4-d8a150"; "-" sin demanda; con '*' si se forzó el máximo.
    """
    demand = max(0.0, shear_area) + 2.0 * max(0.0, tt_area)
    if demand <= NEGLIGIBLE_DEMAND:
        return "-"

    st = settings.stirrup_cfg()
    diameters = sorted(st.diameters) if st.diameters else [settings.beam_cfg().estimated_stirrup_diameter or 8]
    spacings = list(st.spacings) if st.spacings else [100, 150, 200, 250]

    base = forced_legs if forced_legs else auto_legs(width_mm, settings)
    options = [base, base + 1, base + 2]
    if base - 1 >= 2:
        options.insert(0, base - 1)
    if not st.allow_odd_legs:
        options = [n for n in options if n % 2 == 0]
    if not options:
        options = [2, 4]

    for d in diameters:
        for legs in options:
            res = _try_spacing(demand, d, legs, spacings, st.min_acceptable_spacing_mm)
            if res is not None:
                return res

    return f"{options[-1]}-d{max(diameters)}a{min(spacings)}*"


def parse_stirrup_area_per_length(text: str, default_legs: int = 2) -> float:
    """"4-d8a100" -> 4·As(8)/10 cm²/cm. Sin prefijo de ramas se usa default_legs."""
    t = (text or "").strip()
    if not t or t == "-":
        return 0.0
    m = _STIRRUP_RE.search(t)
    if not m:
        return 0.0
    legs = int(m.group(1)) if m.group(1) else default_legs
    d = int(m.group(2))
    s = int(m.group(3))
    if s <= 0:
        return 0.0
    return legs * bar_area_cm2(d) / (s / 10.0)


def stirrup_legs(text: str, default: int = 2) -> int:
    m = _STIRRUP_RE.search(text or "")
    if not m or not m.group(1):
        return default
    return int(m.group(1))


# ---------------- barras de alma ----------------

def calculate_web_bars(torsion_total: float, side_ratio: float, height_mm: float, settings: DesignSettings) -> str:
    """
    Barras laterales: envolvente entre torsión (fracción lateral) y constructivas
    (2 barras si h >= altura mínima). Cantidad par.
    """
    beam = settings.beam_cfg()
    diameters = sorted(beam.web_bar_diameters) if beam.web_bar_diameters else [12]
    min_h = beam.web_bar_min_height_mm if beam.web_bar_min_height_mm > 0 else 700.0

    req = max(0.0, torsion_total) * max(0.0, side_ratio)
    constructive = 2 if height_mm >= min_h else 0

    for d in diameters:
        n_tors = math.ceil(req / bar_area_cm2(d)) if req > WEB_NEGLIGIBLE_AREA else 0
        n = max(n_tors, constructive)
        if n % 2:
            n += 1
        if 0 < n <= MAX_WEB_BARS:
            return f"{n}d{d}"

    d_max = diameters[-1]
    n = math.ceil(req / bar_area_cm2(d_max)) if req > WEB_NEGLIGIBLE_AREA else constructive
    if n % 2:
        n += 1
    return "-" if n == 0 else f"{n}d{d_max}"


# ---------------- etapa del pipeline ----------------

class StirrupCalculator:
    """Etapa: estribos por zona (Left/Mid/Right) + gobernante por tramo, y barras de alma."""

    name = "StirrupCalculator"
    order = 3

    def execute(
        self,
        contexts: Iterable[SolutionContext],
        global_constraints: Optional[ProjectConstraints] = None,
    ) -> Iterator[SolutionContext]:
        for ctx in contexts:
            if ctx.is_valid:
                self.design(ctx)
            yield ctx

    def design(self, ctx: SolutionContext) -> None:
        sol = ctx.current_solution
        if sol is None:
            return
        settings = ctx.settings
        forced = ctx.external_constraints.forced_stirrup_legs if ctx.external_constraints else None
        side_ratio = settings.beam_cfg().torsion_ratio_side

        n = min(len(ctx.group.spans), len(ctx.span_results or []))
        for i in range(n):
            span = ctx.group.spans[i]
            res: Optional[BeamResultData] = ctx.span_results[i]
            if res is None:
                continue
            width = span.width_mm if span.width_mm > 0 else ctx.beam_width

            gov_v, gov_t = 0.0, 0.0
            for zone, zone_name in enumerate(ZONE_NAMES):
                v, t = res.shear(zone), res.tt(zone)
                sol.stirrup_designs[stirrup_key(span.span_id, zone_name)] = calculate_stirrup(
                    v, t, width, settings, forced_legs=forced
                )
                if v + 2.0 * t > gov_v + 2.0 * gov_t:
                    gov_v, gov_t = v, t

            sol.stirrup_designs[stirrup_key(span.span_id, "Governing")] = calculate_stirrup(
                gov_v, gov_t, width, settings, forced_legs=forced
            )

            torsion = max(res.torsion(z) for z in range(3))
            sol.web_bar_designs[f"{span.span_id}_Web"] = calculate_web_bars(
                torsion, side_ratio, span.height_mm, settings
            )

        log.debug("%s: estribos %s", ctx.scenario_id, sol.stirrup_designs)
