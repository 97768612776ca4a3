from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from beam_rebar.domain.sections import EMPTY_ARRANGEMENT, DesignSection, RebarPosition, SectionArrangement
from beam_rebar.engine.diameters import allowed_diameters
from beam_rebar.engine.normalize import NEGLIGIBLE_AREA
from beam_rebar.engine.scoring import AREA_TOLERANCE, score_arrangement
from beam_rebar.materials.rebar_db import bar_area_cm2
from beam_rebar.sections.rc_section import RCSection, mixed_clear_spacing
from beam_rebar.services.settings import DesignSettings, require_settings

log = logging.getLogger(__name__)

# Si todas las disposiciones de diámetro único puntúan por debajo, se prueban mixtas
MIXED_TRIGGER_SCORE = 60.0
MIXED_TOP_DIAMETERS = 3
MIXED_MAX_PRIMARY_BARS = 6
MIXED_MAX_RESULTS = 10


class SectionSolver:
    """
    Enumera disposiciones válidas (diámetro único y mixtas) para una cara de una sección.

    No lanza excepciones por inviabilidad: una sección imposible devuelve lista vacía.
    """

    def __init__(self, settings: Optional[DesignSettings]):
        self.settings = require_settings(settings, "SectionSolver")
        beam = self.settings.beam_cfg()
        search = self.settings.search_cfg()

        self.diameters: List[int] = allowed_diameters(self.settings)
        self.max_layers = max(1, int(beam.max_layers))
        self.min_bars_per_layer = max(1, int(beam.min_bars_per_layer))
        self.max_arrangements = max(1, int(search.max_arrangements_per_section))
        self.max_partitions = max(1, int(search.max_layer_partitions))
        self.allow_mixed = not beam.prefer_single_diameter

    def _geometry(self, section: DesignSection) -> RCSection:
        beam = self.settings.beam_cfg()
        # Ancho/alto útiles vienen ya calculados en la sección
        return RCSection(
            width_mm=section.usable_width_mm,
            height_mm=section.usable_height_mm,
            cover_mm=0.0,
            stirrup_diameter_mm=0.0,
            min_clear_spacing_mm=beam.min_clear_spacing_mm,
            max_clear_spacing_mm=beam.max_clear_spacing_mm,
            min_layer_spacing_mm=beam.min_layer_spacing_mm,
            aggregate_size_mm=beam.aggregate_size_mm,
        )

    def solve(self, section: Optional[DesignSection], position: RebarPosition) -> List[SectionArrangement]:
        if section is None:
            return [EMPTY_ARRANGEMENT]

        req = section.required(position)
        if req <= NEGLIGIBLE_AREA:
            return [EMPTY_ARRANGEMENT]

        geom = self._geometry(section)
        results = self._single_diameter(req, geom)
        if self.allow_mixed and (not results or all(r.score < MIXED_TRIGGER_SCORE for r in results)):
            results.extend(self._mixed_diameter(req, geom))

        valid = [r for r in results if r.total_area >= req * AREA_TOLERANCE]
        valid.sort(key=lambda r: (-r.score, r.layer_count, r.total_count))

        out: List[SectionArrangement] = []
        seen = set()
        for r in valid:
            key = r.to_display_string()
            if key in seen:
                continue
            seen.add(key)
            out.append(r)
            if len(out) >= self.max_arrangements:
                break

        if not out:
            log.warning("Sección %s (%s): sin disposiciones para As=%.2f cm²", section.section_id, position.value, req)
        else:
            log.debug("Sección %s (%s): %d disposiciones, mejor=%s", section.section_id, position.value,
                      len(out), out[0].to_display_string())
        return out

    def solve_all(self, sections: Sequence[DesignSection]) -> None:
        for s in sections or []:
            s.valid_top = tuple(self.solve(s, RebarPosition.TOP))
            s.valid_bot = tuple(self.solve(s, RebarPosition.BOT))

    def _score(self, arr: SectionArrangement, req: float) -> SectionArrangement:
        beam = self.settings.beam_cfg()
        score = score_arrangement(
            arr,
            req,
            min_bars=self.min_bars_per_layer,
            min_spacing_mm=beam.min_clear_spacing_mm,
            max_spacing_mm=beam.max_clear_spacing_mm,
            preferred_diameter=beam.preferred_diameter,
        )
        eff = arr.total_area / req if req > 0 else 0.0
        return replace(arr, score=score, efficiency=eff)

    # -------- diámetro único --------

    def _single_diameter(self, req: float, geom: RCSection) -> List[SectionArrangement]:
        results: List[SectionArrangement] = []
        seen = set()
        limit = self.max_arrangements * 2

        for d in sorted(self.diameters, reverse=True):
            a1 = bar_area_cm2(d)
            per_layer = geom.max_bars_per_layer(d)
            if per_layer < self.min_bars_per_layer:
                continue

            layers = min(self.max_layers, geom.max_layers(d))
            min_bars = max(self.min_bars_per_layer, _ceil_div(req, a1))

            for total in range(min_bars, per_layer * layers + 1):
                if total * a1 < req * AREA_TOLERANCE:
                    continue
                for config in self.layer_configurations(total, per_layer, layers):
                    if not geom.spacing_ok(config[0], d):
                        continue
                    arr = SectionArrangement(
                        primary_diameter=d,
                        total_count=total,
                        bars_per_layer=tuple(config),
                        total_area=total * a1,
                        clear_spacing=geom.clear_spacing(config[0], d),
                        vertical_spacing=geom.min_layer_spacing_mm,
                    )
                    if arr in seen:
                        continue
                    seen.add(arr)
                    results.append(self._score(arr, req))
                if len(results) >= limit:
                    break
            if len(results) >= limit:
                break
        return results

    def layer_configurations(self, total: int, per_layer: int, max_layers: int) -> List[Tuple[int, ...]]:
        """
        Particiones de 'total' barras en capas (exterior primero).
        La primera capa va casi llena (>= per_layer - 2), cada capa lleva a lo sumo lo que
        la anterior y ninguna queda con menos de min_bars_per_layer. Se corta en max_partitions resultados.
        """
        if total <= per_layer:
            return [(total,)]
        out: List[Tuple[int, ...]] = []
        self._partitions(total, per_layer, max_layers, [], out)
        return out

    def _partitions(self, remaining: int, per_layer: int, max_layers: int, current: List[int],
                    out: List[Tuple[int, ...]]) -> None:
        if len(current) >= max_layers or remaining == 0:
            if remaining == 0:
                out.append(tuple(current))
            return

        lo = max(self.min_bars_per_layer, remaining - per_layer * (max_layers - len(current) - 1))
        hi = min(remaining, per_layer, current[-1] if current else per_layer)
        if not current:
            lo = max(lo, per_layer - 2)

        for n in range(hi, lo - 1, -1):
            after = remaining - n
            if 0 < after < self.min_bars_per_layer and len(current) < max_layers - 1:
                continue
            current.append(n)
            self._partitions(after, per_layer, max_layers, current, out)
            current.pop()
            if len(out) >= self.max_partitions:
                return

    # -------- diámetros mixtos --------

    def _mixed_diameter(self, req: float, geom: RCSection) -> List[SectionArrangement]:
        results: List[SectionArrangement] = []
        seen = set()
        top = sorted(self.diameters, reverse=True)[:MIXED_TOP_DIAMETERS]

        for d1 in top:
            for d2 in (d for d in top if d < d1):
                a1, a2 = bar_area_cm2(d1), bar_area_cm2(d2)
                for n1 in range(self.min_bars_per_layer, MIXED_MAX_PRIMARY_BARS + 1):
                    rest = req - n1 * a1
                    if rest <= 0:
                        continue
                    n2 = max(1, _ceil_div(rest, a2))
                    bars = (d1,) * n1 + (d2,) * n2
                    if not geom.mixed_fits(bars):
                        continue
                    spacing = mixed_clear_spacing(geom.usable_width_mm, bars)
                    if spacing > geom.max_clear_spacing_mm:
                        continue
                    arr = SectionArrangement(
                        primary_diameter=d1,
                        total_count=n1 + n2,
                        bars_per_layer=(n1 + n2,),
                        bar_diameters=bars,
                        total_area=n1 * a1 + n2 * a2,
                        clear_spacing=spacing,
                        vertical_spacing=geom.min_layer_spacing_mm,
                    )
                    if arr in seen:
                        continue
                    seen.add(arr)
                    results.append(self._score(arr, req))
        return results[:MIXED_MAX_RESULTS]


def _ceil_div(area: float, bar_area: float) -> int:
    n = area / bar_area
    k = int(n)
    return k if abs(n - k) < 1e-9 else k + 1
