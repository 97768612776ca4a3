from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from beam_rebar.domain.sections import DesignSection, SectionArrangement, SectionType
from beam_rebar.engine.diameters import allowed_diameters
from beam_rebar.engine.normalize import NEGLIGIBLE_AREA
from beam_rebar.engine.scoring import rebalance_score
from beam_rebar.engine.stirrups import auto_legs
from beam_rebar.materials.rebar_db import bar_area_cm2
from beam_rebar.sections.rc_section import RCSection
from beam_rebar.services.settings import DesignSettings, require_settings

log = logging.getLogger(__name__)

Arrangements = Tuple[SectionArrangement, ...]

REBALANCE_EXTRA_BARS = 2
REBALANCE_MAX_RESULTS = 5


@dataclass
class SupportPair:
    """Dos secciones (fin de un tramo / inicio del siguiente) sobre la misma columna."""
    support_index: int
    left: DesignSection
    right: DesignSection
    position_m: float
    merged_top: Arrangements = ()
    merged_bot: Arrangements = ()

    @property
    def is_merged(self) -> bool:
        return bool(self.merged_top) or bool(self.merged_bot)


def _filter_governing(arrs: Optional[Sequence[SectionArrangement]], governing: float, tolerance: float) -> Arrangements:
    return tuple(a for a in (arrs or ()) if a.total_area >= governing * (1.0 - tolerance))


def find_intersection(list1: Sequence[SectionArrangement], list2: Sequence[SectionArrangement],
                      max_layer_diff: int = 1) -> Arrangements:
    """
    Disposiciones presentes en ambos lados: mismo diámetro, misma cantidad,
    diferencia de capas <= max_layer_diff. De cada coincidencia queda la de mayor puntaje.
    """
    picked: Dict[tuple, SectionArrangement] = {}
    for a in list1:
        match = next(
            (b for b in list2
             if b.primary_diameter == a.primary_diameter
             and b.total_count == a.total_count
             and b.bar_diameters == a.bar_diameters
             and abs(b.layer_count - a.layer_count) <= max_layer_diff),
            None,
        )
        if match is None:
            continue
        key = (a.primary_diameter, a.total_count, a.bar_diameters)
        if key not in picked:
            picked[key] = a if a.score >= match.score else match
    return tuple(sorted(picked.values(), key=lambda r: -r.score))


def merge_governing(list1: Sequence[SectionArrangement], list2: Sequence[SectionArrangement],
                    governing: float, tolerance: float = 0.0, max_layer_diff: int = 1) -> Arrangements:
    """
    Fusión por defecto: intersección -> respaldo (lado con opciones, izquierdo primero).
    Todo lo devuelto cubre el requerimiento gobernante.
    """
    valid1 = _filter_governing(list1, governing, tolerance)
    valid2 = _filter_governing(list2, governing, tolerance)

    common = find_intersection(valid1, valid2, max_layer_diff)
    if common:
        return common
    if valid1:
        return valid1
    return valid2


class TopologyMerger:
    """
    Reconciliación de apoyos compartidos entre tramos contiguos y restricciones blandas
    (compatibilidad con ramas de estribo, alineación vertical par/impar).

    Las listas de disposiciones son tuplas inmutables: ambos lados del apoyo reciben
    el mismo resultado.
    """

    def __init__(
        self,
        settings: Optional[DesignSettings],
        *,
        position_tolerance_m: float = 0.02,
        max_layer_difference: int = 1,
        use_rebalance: bool = False,
    ):
        self.settings = require_settings(settings, "TopologyMerger")
        self.position_tolerance_m = position_tolerance_m
        self.max_layer_difference = max_layer_difference
        self.use_rebalance = use_rebalance
        self.diameters = allowed_diameters(self.settings)

    @property
    def tolerance(self) -> float:
        return max(0.0, 1.0 - self.settings.rules_cfg().safety_factor)

    # -------- API --------

    def apply_constraints(self, sections: Sequence[DesignSection]) -> bool:
        if not sections:
            return False

        pairs = self.support_pairs(sections)
        log.info("TopologyMerger: %d pares de apoyo", len(pairs))

        for pair in pairs:
            self._merge_pair(pair)

        self._apply_stirrup_compatibility(sections)
        self._apply_vertical_alignment(sections)
        self._resync_pairs(pairs)

        return self._validate(sections)

    def support_pairs(self, sections: Sequence[DesignSection]) -> List[SupportPair]:
        supports = sorted(
            (s for s in sections if s.section_type is SectionType.SUPPORT),
            key=lambda s: s.position_m,
        )

        groups: List[Tuple[float, List[DesignSection]]] = []
        for s in supports:
            for x, members in groups:
                if abs(x - s.position_m) <= self.position_tolerance_m:
                    members.append(s)
                    break
            else:
                groups.append((s.position_m, [s]))

        pairs: List[SupportPair] = []
        for idx, (x, members) in enumerate(sorted(groups, key=lambda g: g[0])):
            if len(members) < 2:
                continue
            left = next((s for s in members if s.is_support_right), None)
            right = next((s for s in members if s.is_support_left), None)
            if left is None or right is None or left is right:
                continue
            left.linked_section_id = right.section_id
            right.linked_section_id = left.section_id
            pairs.append(SupportPair(support_index=idx, left=left, right=right, position_m=x))
        return pairs

    # -------- fusión --------

    def _merge_pair(self, pair: SupportPair) -> None:
        left, right = pair.left, pair.right
        log.info("Fusión apoyo x=%.2f m: %s(T=%.2f B=%.2f) / %s(T=%.2f B=%.2f)",
                 pair.position_m, left.section_id, left.req_top, left.req_bot,
                 right.section_id, right.req_top, right.req_bot)

        merged_top = self._merge_side(left.valid_top, right.valid_top, left.req_top, right.req_top, left, right, "Top")
        if merged_top:
            pair.merged_top = merged_top
            left.valid_top = merged_top
            right.valid_top = merged_top
        else:
            log.error("Fusión Top fallida en %s/%s", left.section_id, right.section_id)

        merged_bot = self._merge_side(left.valid_bot, right.valid_bot, left.req_bot, right.req_bot, left, right, "Bot")
        if merged_bot:
            pair.merged_bot = merged_bot
            left.valid_bot = merged_bot
            right.valid_bot = merged_bot
        else:
            log.error("Fusión Bot fallida en %s/%s", left.section_id, right.section_id)

    def _merge_side(self, list1: Arrangements, list2: Arrangements, req1: float, req2: float,
                    s1: DesignSection, s2: DesignSection, side: str) -> Arrangements:
        if self.use_rebalance:
            return self.merge_with_rebalance(list1, list2, req1, req2, s1, s2, side)
        governing = max(req1, req2)
        merged = merge_governing(list1, list2, governing, self.tolerance, self.max_layer_difference)
        if merged and not all(any(a.total_area >= r for a in merged) for r in (req1, req2) if r > NEGLIGIBLE_AREA):
            log.warning("  %s: fusión deficiente frente a un lado (req=%.2f/%.2f)", side, req1, req2)
        return merged

    def merge_with_rebalance(self, list1: Arrangements, list2: Arrangements, req1: float, req2: float,
                             s1: DesignSection, s2: DesignSection, side: str = "") -> Arrangements:
        """
        intersección -> re-derivación común -> lado gobernante -> respaldo.
        """
        tol = self.tolerance
        governing = max(req1, req2)
        valid1 = _filter_governing(list1, governing, tol)
        valid2 = _filter_governing(list2, governing, tol)

        common = find_intersection(valid1, valid2, self.max_layer_difference)
        if common:
            log.info("  %s: intersección con %d opciones", side, len(common))
            return common

        rebalanced = self.rebalance(s1, s2, governing)
        if rebalanced:
            log.info("  %s: re-balanceo a %s", side, rebalanced[0].to_display_string())
            return rebalanced

        gov_list, other = (valid1, valid2) if req1 >= req2 else (valid2, valid1)
        if gov_list:
            both = tuple(a for a in gov_list if a.total_area >= req1 * (1 - tol) and a.total_area >= req2 * (1 - tol))
            log.info("  %s: se impone el lado gobernante", side)
            return both or gov_list

        if other:
            log.warning("  %s: respaldo con el otro lado", side)
            return other

        log.error("  %s: sin opción de fusión", side)
        return ()

    def rebalance(self, s1: DesignSection, s2: DesignSection, governing: float) -> Arrangements:
        """Una capa de un solo diámetro que cubra el gobernante en el ancho útil menor."""
        beam = self.settings.beam_cfg()
        tol = self.tolerance
        width = min(s1.usable_width_mm, s2.usable_width_mm)
        geom = RCSection(
            width_mm=width, height_mm=min(s1.usable_height_mm, s2.usable_height_mm),
            cover_mm=0.0, stirrup_diameter_mm=0.0,
            min_clear_spacing_mm=beam.min_clear_spacing_mm,
            max_clear_spacing_mm=beam.max_clear_spacing_mm,
            min_layer_spacing_mm=beam.min_layer_spacing_mm,
            aggregate_size_mm=beam.aggregate_size_mm,
        )
        min_bars = max(1, beam.min_bars_per_layer)

        out: List[SectionArrangement] = []
        for d in sorted(self.diameters, reverse=True):
            a1 = bar_area_cm2(d)
            n_min = max(min_bars, math.ceil(governing / a1))
            n_max = min(n_min + REBALANCE_EXTRA_BARS, geom.max_bars_per_layer(d))
            for n in range(n_min, n_max + 1):
                if not geom.spacing_ok(n, d):
                    continue
                area = n * a1
                if area < governing * (1 - tol):
                    continue
                out.append(SectionArrangement(
                    primary_diameter=d,
                    total_count=n,
                    bars_per_layer=(n,),
                    total_area=area,
                    clear_spacing=geom.clear_spacing(n, d),
                    vertical_spacing=geom.min_layer_spacing_mm,
                    score=rebalance_score(area, governing, n, d),
                    efficiency=area / governing if governing > 0 else 0.0,
                ))
        out.sort(key=lambda r: -r.score)
        return tuple(out[:REBALANCE_MAX_RESULTS])

    # -------- restricciones blandas --------

    def _stirrup_compatible(self, top: SectionArrangement, bot: SectionArrangement, section: DesignSection) -> bool:
        if top.total_count == 0 and bot.total_count == 0:
            return True
        legs = auto_legs(section.width_mm, self.settings)
        cells = legs - 1
        if cells <= 0:
            return top.total_count <= 2 and bot.total_count <= 2
        max_bars = 2 * cells + 2
        return top.total_count <= max_bars and bot.total_count <= max_bars

    def _apply_stirrup_compatibility(self, sections: Sequence[DesignSection]) -> None:
        if not self.settings.stirrup_cfg().enable_advanced_rules:
            return
        for s in sections:
            pairs = [(t, b) for t in s.valid_top for b in s.valid_bot if self._stirrup_compatible(t, b, s)]
            if not pairs:
                continue
            ok_top = {t for t, _ in pairs}
            ok_bot = {b for _, b in pairs}
            s.valid_top = tuple(a for a in s.valid_top if a in ok_top)
            s.valid_bot = tuple(a for a in s.valid_bot if a in ok_bot)

    def _apply_vertical_alignment(self, sections: Sequence[DesignSection]) -> None:
        if not self.settings.beam_cfg().prefer_vertical_alignment:
            return
        penalty = self.settings.rules_cfg().alignment_penalty_score / 5.0
        for s in sections:
            aligned = [(t, b) for t in s.valid_top for b in s.valid_bot if t.is_even_count == b.is_even_count]
            if not aligned:
                continue
            ok_top = {t for t, _ in aligned}
            ok_bot = {b for _, b in aligned}
            s.valid_top = tuple(a if a in ok_top else a.with_score(max(0.0, a.score - penalty)) for a in s.valid_top)
            s.valid_bot = tuple(a if a in ok_bot else a.with_score(max(0.0, a.score - penalty)) for a in s.valid_bot)

    def _resync_pairs(self, pairs: Sequence[SupportPair]) -> None:
        """Tras las restricciones blandas ambos lados de cada apoyo vuelven a coincidir."""
        for p in pairs:
            for attr, merged in (("valid_top", p.merged_top), ("valid_bot", p.merged_bot)):
                left, right = getattr(p.left, attr), getattr(p.right, attr)
                if left is right:
                    continue
                # El puntaje no entra en la igualdad: se conserva el menor de ambos lados
                right_by_key = {a: a for a in right}
                common = tuple(
                    a if a.score <= right_by_key[a].score else right_by_key[a]
                    for a in left if a in right_by_key
                )
                chosen = common or (merged or left)
                setattr(p.left, attr, chosen)
                setattr(p.right, attr, chosen)

    def _validate(self, sections: Sequence[DesignSection]) -> bool:
        ok = True
        for s in sections:
            top_ok = s.req_top <= NEGLIGIBLE_AREA or len(s.valid_top) > 0
            bot_ok = s.req_bot <= NEGLIGIBLE_AREA or len(s.valid_bot) > 0
            if not (top_ok and bot_ok):
                log.error("Sección %s sin disposiciones tras la fusión: Top=%s Bot=%s", s.section_id, top_ok, bot_ok)
                ok = False
        return ok
