from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from beam_rebar.domain.beam import BeamSpan
from beam_rebar.domain.context import ProjectConstraints, SolutionContext
from beam_rebar.domain.labels import FACE_BOT, FACE_TOP, ZONE_LEFT, ZONE_MID, ZONE_RIGHT, position_key, span_of_key
from beam_rebar.domain.solution import ConflictReport, ContinuousBeamSolution
from beam_rebar.engine.anchorage import AnchorageFn, available_hook_length, hooked_length, straight_length
from beam_rebar.engine.stirrups import auto_legs
from beam_rebar.sections.rc_section import AGGREGATE_SPACING_FACTOR, RCSection, mixed_clear_spacing

log = logging.getLogger(__name__)

STIRRUP_LEG_DEFICIT = "StirrupLegDeficit"
INSUFFICIENT_CLEAR_SPACING = "InsufficientClearSpacing"
LAYER_JUMP = "LayerJump"
DIAMETER_JUMP = "DiameterJump"
HOOK_ANCHORAGE = "InsufficientHookAnchorage"
DEVELOPMENT_LENGTH = "InsufficientDevelopmentLength"

MAX_DIAMETER_RATIO = 1.5
MAX_LAYER_DIFFERENCE = 1
SUPPORT_DEVELOPMENT_RATIO = 0.25
MID_DEVELOPMENT_RATIO = 0.15


class ConflictResolver:
    """
    Etapa: validación constructiva. Nunca invalida una solución,
    solo agrega ConflictReport al contexto.

    Los largos de anclaje se calculan con funciones inyectables
    f(diametro, settings) -> mm.
    """

    name = "ConflictResolver"
    order = 4

    def __init__(
        self,
        straight_fn: AnchorageFn = straight_length,
        hooked_fn: AnchorageFn = hooked_length,
    ):
        self.straight_fn: AnchorageFn = straight_fn
        self.hooked_fn: AnchorageFn = hooked_fn

    def execute(
        self,
        contexts: Iterable[SolutionContext],
        global_constraints: Optional[ProjectConstraints] = None,
    ) -> Iterator[SolutionContext]:
        for ctx in contexts:
            if ctx.is_valid and ctx.current_solution is not None:
                ctx.conflicts.extend(self.resolve(ctx))
            yield ctx

    def resolve(self, ctx: SolutionContext) -> List[ConflictReport]:
        sol = ctx.current_solution
        out: List[ConflictReport] = []
        checks: Tuple[Callable[[SolutionContext, ContinuousBeamSolution], List[ConflictReport]], ...] = (
            self.check_stirrup_legs,
            self.check_clear_spacing,
            self.check_layer_jumps,
            self.check_diameter_jumps,
            self.check_anchorage,
        )
        for check in checks:
            out.extend(check(ctx, sol))
        if out:
            log.info("%s: %d conflictos constructivos", ctx.scenario_id, len(out))
        return out

    # 1) ramas de estribo
    def check_stirrup_legs(self, ctx: SolutionContext, sol: ContinuousBeamSolution) -> List[ConflictReport]:
        out = []
        for span in ctx.group.spans:
            legs = ctx.stirrup_leg_count or auto_legs(span.effective_width_mm, ctx.settings)
            worst = max(
                _layer1_count(sol, span.span_id, face)
                for face in (FACE_TOP, FACE_BOT)
            )
            if worst > legs:
                out.append(ConflictReport(
                    conflict_type=STIRRUP_LEG_DEFICIT,
                    span_id=span.span_id,
                    description=f"{worst} barras en la capa 1 con estribo de {legs} ramas",
                    suggested_fix=f"Usar estribos de {worst if worst % 2 == 0 else worst + 1} ramas o menos barras por capa",
                ))
        return out

    # 2) separación libre real en la capa 1
    def check_clear_spacing(self, ctx: SolutionContext, sol: ContinuousBeamSolution) -> List[ConflictReport]:
        beam = ctx.settings.beam_cfg()
        s_req = max(float(beam.min_clear_spacing_mm), AGGREGATE_SPACING_FACTOR * float(beam.aggregate_size_mm))
        out = []
        for span in ctx.group.spans:
            geom = RCSection.from_config(span.effective_width_mm, span.height_mm, beam)
            for face in (FACE_TOP, FACE_BOT):
                bars = _layer1_diameters(sol, span.span_id, face)
                if len(bars) < 2:
                    continue
                s = mixed_clear_spacing(geom.usable_width_mm, bars)
                if s < s_req:
                    out.append(ConflictReport(
                        conflict_type=INSUFFICIENT_CLEAR_SPACING,
                        span_id=span.span_id,
                        description=f"{face}: separación libre {s:.1f} mm < {s_req:.1f} mm ({len(bars)} barras)",
                        suggested_fix="Pasar barras a una segunda capa o usar un diámetro mayor",
                    ))
        return out

    # 3) saltos de capas entre tramos
    def check_layer_jumps(self, ctx: SolutionContext, sol: ContinuousBeamSolution) -> List[ConflictReport]:
        out = []
        spans = ctx.group.spans
        for a, b in zip(spans, spans[1:]):
            for face in (FACE_TOP, FACE_BOT):
                la, lb = _span_layers(sol, a.span_id, face), _span_layers(sol, b.span_id, face)
                if abs(la - lb) > MAX_LAYER_DIFFERENCE:
                    out.append(ConflictReport(
                        conflict_type=LAYER_JUMP,
                        span_id=b.span_id,
                        description=f"{face}: {a.span_id} con {la} capas y {b.span_id} con {lb} capas, "
                                    f"difícil de doblar en continuidad",
                        suggested_fix="Uniformar la cantidad de capas entre tramos",
                    ))
        return out

    # 4) relación de diámetros refuerzo/corrida (una sola vez por solución)
    def check_diameter_jumps(self, ctx: SolutionContext, sol: ContinuousBeamSolution) -> List[ConflictReport]:
        for key in sorted(sol.reinforcements):
            spec = sol.reinforcements[key]
            base = sol.backbone_diameter_top if spec.position == FACE_TOP else sol.backbone_diameter_bot
            small, big = sorted((base, spec.diameter))
            if small > 0 and big / small > MAX_DIAMETER_RATIO:
                return [ConflictReport(
                    conflict_type=DIAMETER_JUMP,
                    span_id=span_of_key(key),
                    description=f"{key}: refuerzo D{spec.diameter} con corrida D{base} (relación {big / small:.2f})",
                    suggested_fix="Acercar los diámetros de refuerzo y corrida",
                )]
        return []

    # 5) anclajes
    def check_anchorage(self, ctx: SolutionContext, sol: ContinuousBeamSolution) -> List[ConflictReport]:
        settings = ctx.settings
        out = []
        spans = ctx.group.spans
        if not spans:
            return out

        available = available_hook_length(settings)
        edges = ((spans[0], ZONE_LEFT), (spans[-1], ZONE_RIGHT))
        for span, zone in edges:
            for face, base_d in ((FACE_TOP, sol.backbone_diameter_top), (FACE_BOT, sol.backbone_diameter_bot)):
                spec = sol.reinforcements.get(position_key(span.span_id, face, zone))
                d = max(base_d, spec.diameter if spec else 0)
                if d <= 0:
                    continue
                ldh = self.hooked_fn(d, settings)
                if ldh > available:
                    out.append(ConflictReport(
                        conflict_type=HOOK_ANCHORAGE,
                        span_id=span.span_id,
                        description=f"{face} apoyo {zone}: Ldh={ldh:.0f} mm > disponible {available:.0f} mm (D{d})",
                        suggested_fix="Reducir diámetro o ampliar la columna de borde",
                    ))

        lengths: Dict[str, BeamSpan] = {s.span_id: s for s in spans}
        for key in sorted(sol.reinforcements):
            spec = sol.reinforcements[key]
            span = lengths.get(span_of_key(key))
            if span is None:
                continue
            ratio = MID_DEVELOPMENT_RATIO if key.endswith(ZONE_MID) else SUPPORT_DEVELOPMENT_RATIO
            available_len = float(span.length_mm) * ratio
            ld = self.straight_fn(spec.diameter, settings)
            if ld > available_len:
                out.append(ConflictReport(
                    conflict_type=DEVELOPMENT_LENGTH,
                    span_id=span.span_id,
                    description=f"{key}: Ld={ld:.0f} mm > {available_len:.0f} mm disponibles (D{spec.diameter})",
                    suggested_fix="Usar más barras de menor diámetro",
                ))
        return out


def _face_keys(span_id: str, face: str) -> List[str]:
    return [position_key(span_id, face, z) for z in (ZONE_LEFT, ZONE_MID, ZONE_RIGHT)]


def _layer1_count(sol: ContinuousBeamSolution, span_id: str, face: str) -> int:
    base = sol.backbone_count_top if face == FACE_TOP else sol.backbone_count_bot
    n = base
    for key in _face_keys(span_id, face):
        spec = sol.reinforcements.get(key)
        if spec is not None and spec.layer1_count:
            n = max(n, spec.layer1_count)
    return n


def _layer1_diameters(sol: ContinuousBeamSolution, span_id: str, face: str) -> List[int]:
    """Diámetros reales en la capa 1 del punto más cargado de la cara."""
    base_d = sol.backbone_diameter_top if face == FACE_TOP else sol.backbone_diameter_bot
    base_n = sol.backbone_count_top if face == FACE_TOP else sol.backbone_count_bot
    worst = [base_d] * base_n
    for key in _face_keys(span_id, face):
        spec = sol.reinforcements.get(key)
        if spec is None:
            continue
        extra = max(0, spec.layer1_count - base_n) if spec.layer_breakdown else 0
        bars = [base_d] * base_n + [spec.diameter] * extra
        if len(bars) > len(worst):
            worst = bars
    return worst


def _span_layers(sol: ContinuousBeamSolution, span_id: str, face: str) -> int:
    layers = 1
    for key in _face_keys(span_id, face):
        spec = sol.reinforcements.get(key)
        if spec is not None:
            layers = max(layers, spec.layer)
    return layers

