from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, Optional

from beam_rebar.domain.context import ProjectConstraints, SolutionContext
from beam_rebar.domain.labels import (
    FACE_BOT,
    FACE_TOP,
    ZONE_LEFT,
    ZONE_MID,
    ZONE_RIGHT,
    parse_position_key,
    position_key,
)
from beam_rebar.domain.solution import ContinuousBeamSolution, RebarSpec
from beam_rebar.engine.normalize import position_requirements
from beam_rebar.engine.stirrups import auto_legs
from beam_rebar.engine.strategies import FillingContext, StrategyKind, compute_fill, pick_plan
from beam_rebar.materials.rebar_db import bar_weight_kg
from beam_rebar.sections.rc_section import RCSection

log = logging.getLogger(__name__)

BACKBONE_COVERS = 0.99       # la corrida alcanza si cubre el 99 % de la demanda
LOW_WEIGHT_LENGTH_MM = 10000.0
LOW_WEIGHT_KG = 10.0

DESCRIPTIONS = {2: "Económica", 3: "Equilibrada", 4: "Segura"}


class ReinforcementFiller:
    """
    Etapa: completa refuerzos locales sobre una armadura corrida fija.

    Los apoyos compartidos se llenan con la envolvente de ambos lados
    (derecha del tramo i con izquierda del i+1), así el refuerzo es el mismo
    a ambos lados de la columna.
    """

    name = "ReinforcementFiller"
    order = 2

    def execute(
        self,
        contexts: Iterable[SolutionContext],
        global_constraints: Optional[ProjectConstraints] = None,
    ) -> Iterator[SolutionContext]:
        for ctx in contexts:
            if ctx.is_valid and ctx.backbone is not None:
                self.fill(ctx)
            yield ctx

    def fill(self, ctx: SolutionContext) -> SolutionContext:
        bb = ctx.backbone
        ctx.current_solution = ContinuousBeamSolution(
            option_name=bb.to_id(),
            backbone_diameter_top=bb.top_diameter,
            backbone_diameter_bot=bb.bot_diameter,
            backbone_count_top=bb.top_count,
            backbone_count_bot=bb.bot_count,
        )
        ext = ctx.external_constraints
        if ext is not None and ext.forced_stirrup_legs:
            ctx.stirrup_leg_count = int(ext.forced_stirrup_legs)
        else:
            ctx.stirrup_leg_count = auto_legs(ctx.beam_width, ctx.settings)

        reqs = position_requirements(ctx.group, ctx.span_results, ctx.settings)
        for span in ctx.group.spans:
            # apoyos superiores, centros y apoyos inferiores
            for face, zone in (
                (FACE_TOP, ZONE_LEFT),
                (FACE_TOP, ZONE_RIGHT),
                (FACE_TOP, ZONE_MID),
                (FACE_BOT, ZONE_MID),
                (FACE_BOT, ZONE_LEFT),
                (FACE_BOT, ZONE_RIGHT),
            ):
                key = position_key(span.span_id, face, zone)
                if key not in reqs:
                    continue
                is_top = face == FACE_TOP
                if not self.try_auto_fill(ctx, key, reqs[key], is_top, span.effective_width_mm, span.height_mm):
                    return ctx

        self.compute_metrics(ctx)
        return ctx

    def try_auto_fill(
        self, ctx: SolutionContext, key: str, required: float, is_top: bool, width_mm: float, height_mm: float
    ) -> bool:
        """
        Cubre 'required' en la posición 'key' con barras del diámetro de la corrida.
        Compara Greedy y Balanced y se queda con el de menos barras (luego menos desperdicio).
        """
        bb = ctx.backbone
        bb_area = bb.area(is_top)
        if bb_area >= required * BACKBONE_COVERS:
            return True

        beam = ctx.settings.beam_cfg()
        d = bb.diameter(is_top)
        n_bb = bb.count(is_top)
        geom = RCSection.from_config(width_mm, height_mm, beam)
        capacity = geom.max_bars_per_layer(d)
        if n_bb > capacity:
            ctx.fail(self.name, f"La corrida {n_bb}D{d} no entra en {key} (capacidad={capacity})", key)
            return False

        fctx = FillingContext(
            required_area=required,
            backbone_area=bb_area,
            backbone_count=n_bb,
            backbone_diameter=d,
            layer_capacity=capacity,
            stirrup_leg_count=ctx.stirrup_leg_count,
            max_layers=max(1, min(int(beam.max_layers), geom.max_layers(d))),
            min_bars_per_layer=max(1, int(beam.min_bars_per_layer)),
            prefer_symmetric=beam.prefer_symmetric,
        )
        greedy = compute_fill(StrategyKind.GREEDY, fctx)
        balanced = compute_fill(StrategyKind.BALANCED, fctx)
        plan = pick_plan(greedy, balanced)
        if plan is None:
            ctx.fail(
                self.name,
                f"No se puede completar {key}: As={required:.2f} cm² con D{d} "
                f"({greedy.fail_reason}; {balanced.fail_reason})",
                key,
            )
            return False

        ctx.accumulated_waste_count += plan.waste_count
        layers = plan.layer_counts
        addon = (layers[0] - n_bb) + sum(layers[1:])
        if addon <= 0:
            return True

        ctx.current_solution.reinforcements[key] = RebarSpec(
            diameter=d,
            count=addon,
            layer=len(layers),
            position=FACE_TOP if is_top else FACE_BOT,
            layer_breakdown=tuple(layers),
        )
        log.debug("%s %s: +%dD%d capas=%s", ctx.scenario_id, key, addon, d, layers)
        return True

    def compute_metrics(self, ctx: SolutionContext) -> None:
        sol = ctx.current_solution
        cur = ctx.settings.curtailment_cfg()
        length = ctx.group.total_length_mm
        spans: Dict[str, float] = {s.span_id: float(s.length_mm) for s in ctx.group.spans}
        first_span = ctx.group.spans[0].span_id if ctx.group.spans else ""

        weight = ctx.backbone.base_weight(length, cur.lap_factor)
        for key, spec in sol.reinforcements.items():
            parsed = parse_position_key(key)
            if parsed is None:
                continue
            span_id, _, zone = parsed
            # Apoyo izquierdo interior: mismas barras que el derecho del tramo anterior
            if zone == ZONE_LEFT and span_id != first_span:
                continue
            ratio = cur.mid_span_ratio if zone == ZONE_MID else cur.support_ratio
            span_len = spans.get(span_id, 0.0)
            weight += bar_weight_kg(spec.diameter, span_len * ratio, spec.count)
        sol.total_steel_weight = weight

        if length > LOW_WEIGHT_LENGTH_MM and weight < LOW_WEIGHT_KG:
            msg = f"Peso sospechosamente bajo: {weight:.1f} kg para {length / 1000.0:.1f} m"
            sol.validation_message = msg
            log.warning("%s: %s", ctx.scenario_id, msg)

        eff = 10000.0 / (weight + 1.0)
        if any(spec.layer >= 2 for spec in sol.reinforcements.values()):
            eff *= 0.95
        if sol.backbone_count_top != sol.backbone_count_bot:
            eff *= 0.98
        sol.efficiency_score = eff
        sol.total_score = eff
        sol.description = DESCRIPTIONS.get(sol.backbone_count_top, f"{sol.backbone_count_top} barras")

