from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from beam_rebar.domain.beam import BeamGroup, BeamSpan
from beam_rebar.domain.labels import FACE_BOT, FACE_TOP, ZONE_LEFT, ZONE_MID, ZONE_RIGHT, position_key
from beam_rebar.domain.results import ZONE_LEFT as Z_L
from beam_rebar.domain.results import ZONE_MID as Z_M
from beam_rebar.domain.results import ZONE_RIGHT as Z_R
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.sections import DesignSection, SectionType
from beam_rebar.sections.rc_section import RCSection
from beam_rebar.services.settings import DesignSettings

log = logging.getLogger(__name__)

NEGLIGIBLE_AREA = 0.01


@dataclass(frozen=True)
class PositionRequirement:
    """Demanda longitudinal en un punto de la viga continua (cm²)."""
    position_id: str
    span_id: str
    is_top: bool
    is_support: bool
    width_mm: float
    height_mm: float
    length_mm: float
    as_required: float


def paired_spans(group: BeamGroup, span_results: Sequence[Optional[BeamResultData]]) -> List[tuple]:
    """Pares (tramo, resultado) hasta el menor de ambos largos."""
    n = min(len(group.spans), len(span_results or []))
    if len(group.spans) != len(span_results or []):
        log.warning(
            "Grupo %s: %d tramos vs %d resultados, se usan %d",
            group.group_name, len(group.spans), len(span_results or []), n,
        )
    return [(group.spans[i], span_results[i]) for i in range(n)]


def required_area(res: Optional[BeamResultData], is_top: bool, zone: int, settings: DesignSettings) -> float:
    """
    Área longitudinal requerida en una cara/zona:
    flexión + fracción de la torsión asignada a esa cara.
    """
    if res is None:
        return 0.0
    beam = settings.beam_cfg()
    flex = res.top(zone) if is_top else res.bot(zone)
    ratio = beam.torsion_ratio_top if is_top else beam.torsion_ratio_bot
    return flex + res.torsion(zone) * max(0.0, ratio)


def _enveloped(
    results: Sequence[Optional[BeamResultData]], i: int, is_top: bool, zone: int, settings: DesignSettings
) -> float:
    """Envolvente en apoyos compartidos: derecha del tramo i con izquierda del i+1 (y viceversa)."""
    req = required_area(results[i], is_top, zone, settings)
    if zone == Z_R and i + 1 < len(results):
        req = max(req, required_area(results[i + 1], is_top, Z_L, settings))
    elif zone == Z_L and i > 0:
        req = max(req, required_area(results[i - 1], is_top, Z_R, settings))
    return req


def position_requirements(
    group: BeamGroup,
    span_results: Sequence[Optional[BeamResultData]],
    settings: DesignSettings,
) -> Dict[str, float]:
    """{"S1_Top_Left": As, ...} para las 6 posiciones de cada tramo, con envolvente en apoyos."""
    pairs = paired_spans(group, span_results)
    results = [r for _, r in pairs]
    out: Dict[str, float] = {}
    for i, (span, _) in enumerate(pairs):
        for zone_name, zone in ((ZONE_LEFT, Z_L), (ZONE_MID, Z_M), (ZONE_RIGHT, Z_R)):
            out[position_key(span.span_id, FACE_TOP, zone_name)] = _enveloped(results, i, True, zone, settings)
            out[position_key(span.span_id, FACE_BOT, zone_name)] = _enveloped(results, i, False, zone, settings)
    return out


def extract_positions(
    group: BeamGroup,
    span_results: Sequence[Optional[BeamResultData]],
    settings: DesignSettings,
) -> List[PositionRequirement]:
    """
    Puntos estructuralmente distintos de la viga:
      - apoyo izquierdo solo en el primer tramo (los demás coinciden con el apoyo derecho previo)
      - centro de cada tramo
      - apoyo derecho de cada tramo, envolvente con el izquierdo del tramo siguiente
    Arriba y abajo en cada punto.
    """
    pairs = paired_spans(group, span_results)
    results = [r for _, r in pairs]
    out: List[PositionRequirement] = []
    for i, (span, res) in enumerate(pairs):
        if res is None:
            continue
        zones = [(ZONE_MID, Z_M), (ZONE_RIGHT, Z_R)]
        if i == 0:
            zones.insert(0, (ZONE_LEFT, Z_L))
        for zone_name, zone in zones:
            for is_top, face in ((True, FACE_TOP), (False, FACE_BOT)):
                out.append(PositionRequirement(
                    position_id=position_key(span.span_id, face, zone_name),
                    span_id=span.span_id,
                    is_top=is_top,
                    is_support=zone != Z_M,
                    width_mm=span.effective_width_mm,
                    height_mm=float(span.height_mm),
                    length_mm=float(span.length_mm),
                    as_required=_enveloped(results, i, is_top, zone, settings),
                ))
    return out


def _section(
    span: BeamSpan, index: int, zone_name: str, x_m: float, res: Optional[BeamResultData], settings: DesignSettings
) -> DesignSection:
    geom = RCSection.from_config(span.effective_width_mm, span.height_mm, settings.beam_cfg())
    zone = {ZONE_LEFT: Z_L, ZONE_MID: Z_M, ZONE_RIGHT: Z_R}[zone_name]
    return DesignSection(
        section_id=f"{span.span_id}_{zone_name}",
        span_id=span.span_id,
        span_index=index,
        position_m=x_m,
        section_type=SectionType.MID_SPAN if zone_name == ZONE_MID else SectionType.SUPPORT,
        width_mm=geom.width_mm,
        height_mm=geom.height_mm,
        usable_width_mm=geom.usable_width_mm,
        usable_height_mm=geom.usable_height_mm,
        req_top=required_area(res, True, zone, settings),
        req_bot=required_area(res, False, zone, settings),
        is_support_left=zone_name == ZONE_LEFT,
        is_support_right=zone_name == ZONE_RIGHT,
    )


def build_design_sections(
    group: BeamGroup,
    span_results: Sequence[Optional[BeamResultData]],
    settings: DesignSettings,
) -> List[DesignSection]:
    """
    3 secciones por tramo (apoyo izq. / centro / apoyo der.) con posición acumulada en m.
    Apoyos compartidos quedan en la misma posición: el fusionador los empareja.
    """
    pairs = paired_spans(group, span_results)
    bounds = group.span_bounds_m()
    out: List[DesignSection] = []
    for i, (span, res) in enumerate(pairs):
        x0, x1 = bounds[i]
        out.append(_section(span, i, ZONE_LEFT, x0, res, settings))
        out.append(_section(span, i, ZONE_MID, 0.5 * (x0 + x1), res, settings))
        out.append(_section(span, i, ZONE_RIGHT, x1, res, settings))
    return out
