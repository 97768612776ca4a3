from __future__ import annotations

import logging
import math
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from beam_rebar.domain.beam import BeamGroup
from beam_rebar.domain.context import ProjectConstraints
from beam_rebar.domain.labels import FACE_BOT, FACE_TOP
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.solution import AddonConfig, BackboneConfig, ContinuousBeamSolution, RebarSpec
from beam_rebar.engine.diameters import allowed_diameters
from beam_rebar.engine.normalize import NEGLIGIBLE_AREA, PositionRequirement, extract_positions
from beam_rebar.materials.rebar_db import UNIT_WEIGHT_DIVISOR, bar_area_cm2, bar_weight_kg
from beam_rebar.sections.rc_section import RCSection
from beam_rebar.services.logging_setup import log_phase
from beam_rebar.services.settings import DesignSettings, require_settings

log = logging.getLogger(__name__)

MIN_BACKBONE_BARS = 2


@dataclass(frozen=True)
class DiameterLimits:
    """Límites de un diámetro en una posición."""
    diameter: int
    capacity_per_layer: int
    max_layers: int
    min_required: int

    @property
    def absolute_max(self) -> int:
        return self.capacity_per_layer * self.max_layers

    @property
    def feasible(self) -> bool:
        return self.min_required <= self.absolute_max


@dataclass
class SearchStats:
    tested: int = 0
    excess_pruned: int = 0
    weight_pruned: int = 0
    addon_pruned: int = 0
    infeasible: int = 0
    accepted: int = 0
    budget_exhausted: bool = False


class BeamAwareOptimizer:
    """
    Branch & bound sobre la armadura corrida de una viga continua.

    Fase 0: posiciones y límites por diámetro.
    Fase 1: candidatos (diámetro sup × diámetro inf × cantidad sup × cantidad inf)
            con poda por exceso y por peso.
    Fase 2: refuerzos locales por posición, abandonando el candidato apenas
            el peso acumulado alcanza al mejor conocido.

    Devuelve las soluciones aceptadas ordenadas por peso ascendente.
    """

    def __init__(self, settings: Optional[DesignSettings], max_workers: Optional[int] = None,
                 step_budget: Optional[int] = None):
        self.settings = require_settings(settings, "BeamAwareOptimizer")
        search = self.settings.search_cfg()
        self.max_workers = max(1, int(max_workers if max_workers is not None else search.max_workers))
        self.step_budget = int(step_budget if step_budget is not None else search.step_budget)
        self.last_stats = SearchStats()

        self._lock = threading.Lock()
        self._best_weight = math.inf
        self._solutions: List[ContinuousBeamSolution] = []

    # ---------------- API ----------------

    def optimize(
        self,
        group: BeamGroup,
        span_results: Sequence[Optional[BeamResultData]],
        settings: Optional[DesignSettings] = None,
        constraints: Optional[ProjectConstraints] = None,
    ) -> List[ContinuousBeamSolution]:
        if settings is not None:
            self.settings = settings
        settings = self.settings
        search = settings.search_cfg()

        self.last_stats = SearchStats()
        self._best_weight = math.inf
        self._solutions = []

        log_phase(log, f"Optimización {group.group_name}")

        positions = extract_positions(group, span_results, settings)
        if not positions:
            log.warning("Grupo %s: sin posiciones de diseño", group.group_name)
            return []

        diameters = self.filter_globally_valid_diameters(positions, allowed_diameters(settings, constraints))
        if not diameters:
            log.warning("Grupo %s: ningún diámetro es factible", group.group_name)
            return []

        candidates = self.backbone_candidates(group, positions, diameters)
        if self.step_budget > 0 and len(candidates) > self.step_budget:
            candidates = candidates[: self.step_budget]
            self.last_stats.budget_exhausted = True
            log.warning("Grupo %s: búsqueda truncada a %d candidatos", group.group_name, self.step_budget)

        base = self.backbone_weights(candidates, group.total_length_mm)
        if self.max_workers > 1 and len(candidates) > 1:
            self._run_parallel(candidates, base, positions, diameters)
        else:
            for bb, w in zip(candidates, base):
                self._evaluate(bb, float(w), positions, diameters)

        out = sorted(self._solutions, key=lambda s: s.total_steel_weight)[: max(1, search.top_solutions)]
        st = self.last_stats
        log.info(
            "Grupo %s: probados=%d exceso=%d peso=%d refuerzo=%d inviables=%d aceptados=%d",
            group.group_name, st.tested, st.excess_pruned, st.weight_pruned,
            st.addon_pruned, st.infeasible, st.accepted,
        )
        if out:
            log.info("Mejor: %s (%.1f kg)", out[0].option_name, out[0].total_steel_weight)
        return out

    # ---------------- fase 0 ----------------

    def _geometry(self, width_mm: float, height_mm: float) -> RCSection:
        return RCSection.from_config(width_mm, height_mm, self.settings.beam_cfg())

    def diameter_limits(self, pos: PositionRequirement, diameter: int, area: Optional[float] = None) -> DiameterLimits:
        beam = self.settings.beam_cfg()
        geom = self._geometry(pos.width_mm, pos.height_mm)
        layers = max(1, min(int(beam.max_layers), geom.max_layers(diameter)))
        req = pos.as_required if area is None else area
        return DiameterLimits(
            diameter=diameter,
            capacity_per_layer=geom.max_bars_per_layer(diameter),
            max_layers=layers,
            min_required=math.ceil(req / bar_area_cm2(diameter) - 1e-9) if req > NEGLIGIBLE_AREA else 0,
        )

    def filter_globally_valid_diameters(
        self, positions: Sequence[PositionRequirement], diameters: Sequence[int]
    ) -> List[int]:
        """
        Quita un diámetro solo si no alcanza en ninguna posición con demanda.
        Sin demanda en toda la viga se conservan todos.
        """
        loaded = [p for p in positions if p.as_required > NEGLIGIBLE_AREA]
        if not loaded:
            return sorted(diameters)
        out = []
        for d in sorted(diameters):
            if any(self.diameter_limits(p, d).feasible for p in loaded):
                out.append(d)
            else:
                log.debug("Diámetro %d descartado: inviable en todas las posiciones", d)
        return out

    # ---------------- fase 1 ----------------

    def backbone_candidates(
        self, group: BeamGroup, positions: Sequence[PositionRequirement], diameters: Sequence[int]
    ) -> List[BackboneConfig]:
        """
        Candidatos en orden (d_sup, d_inf, n_sup, n_inf) ascendente, ya filtrados por exceso.
        La cantidad máxima por cara es la capacidad de una capa en el tramo más angosto.
        """
        beam = self.settings.beam_cfg()
        search = self.settings.search_cfg()
        n_min = max(MIN_BACKBONE_BARS, int(beam.min_bars_per_layer))
        threshold = float(search.excess_threshold)

        max_top = max((p.as_required for p in positions if p.is_top), default=0.0)
        max_bot = max((p.as_required for p in positions if not p.is_top), default=0.0)

        min_height = min(float(s.height_mm) for s in group.spans) if group.spans else 0.0
        geom = self._geometry(group.min_width_mm, min_height)
        caps = {d: geom.max_bars_per_layer(d) for d in diameters}

        out: List[BackboneConfig] = []
        for td in diameters:
            if caps[td] < n_min:
                continue
            nt = np.arange(n_min, caps[td] + 1)
            for bd in diameters:
                if caps[bd] < n_min:
                    continue
                nb = np.arange(n_min, caps[bd] + 1)
                grid_t, grid_b = np.meshgrid(nt, nb, indexing="ij")
                area_t = grid_t * bar_area_cm2(td)
                area_b = grid_b * bar_area_cm2(bd)

                exceed_t = (area_t > threshold * max_top) if max_top > NEGLIGIBLE_AREA else np.zeros_like(area_t, bool)
                exceed_b = (area_b > threshold * max_bot) if max_bot > NEGLIGIBLE_AREA else np.zeros_like(area_b, bool)
                pruned = exceed_t & exceed_b
                self.last_stats.excess_pruned += int(pruned.sum())

                for i, j in zip(*np.nonzero(~pruned)):
                    out.append(BackboneConfig(
                        top_diameter=int(td), top_count=int(grid_t[i, j]),
                        bot_diameter=int(bd), bot_count=int(grid_b[i, j]),
                    ))
        log.debug("Candidatos de armadura corrida: %d (poda por exceso=%d)", len(out), self.last_stats.excess_pruned)
        return out

    def backbone_weights(self, candidates: Sequence[BackboneConfig], length_mm: float) -> np.ndarray:
        """Peso propio (kg) de cada candidato, vectorizado."""
        if not candidates:
            return np.zeros(0)
        lap = self.settings.curtailment_cfg().lap_factor
        td = np.array([c.top_diameter for c in candidates], dtype=float)
        bd = np.array([c.bot_diameter for c in candidates], dtype=float)
        nt = np.array([c.top_count for c in candidates], dtype=float)
        nb = np.array([c.bot_count for c in candidates], dtype=float)
        w_m = nt * unit_weight_table(td) + nb * unit_weight_table(bd)
        return w_m * (float(length_mm) / 1000.0) * float(lap)

    # ---------------- fase 2 ----------------

    def _evaluate(
        self,
        backbone: BackboneConfig,
        base_weight: float,
        positions: Sequence[PositionRequirement],
        diameters: Sequence[int],
    ) -> Optional[ContinuousBeamSolution]:
        with self._lock:
            self.last_stats.tested += 1

        # Lectura optimista del incumbente: solo afecta cuánto se poda
        best = self._best_weight
        weight = base_weight
        if weight >= best:
            with self._lock:
                self.last_stats.weight_pruned += 1
            return None

        addons: Dict[str, AddonConfig] = {}
        for pos in positions:
            deficit = pos.as_required - backbone.area(pos.is_top)
            if deficit <= NEGLIGIBLE_AREA:
                continue
            addon = self.find_best_addon_for_position(pos, deficit, backbone, diameters)
            if addon is None:
                with self._lock:
                    self.last_stats.infeasible += 1
                log.debug("%s: sin refuerzo posible en %s", backbone.to_id(), pos.position_id)
                return None
            addons[pos.position_id] = addon
            weight += self.addon_weight(addon, pos)
            if weight >= self._best_weight:
                with self._lock:
                    self.last_stats.addon_pruned += 1
                return None

        sol = self._solution(backbone, addons, weight)
        with self._lock:
            if weight >= self._best_weight:
                self.last_stats.addon_pruned += 1
                return None
            self._best_weight = weight
            self._solutions.append(sol)
            self.last_stats.accepted += 1
        log.debug("Aceptado %s: %.2f kg", sol.option_name, weight)
        return sol

    def addon_weight(self, addon: AddonConfig, pos: PositionRequirement) -> float:
        cur = self.settings.curtailment_cfg()
        ratio = cur.support_ratio if pos.is_support else cur.mid_span_ratio
        return bar_weight_kg(addon.diameter, pos.length_mm * ratio, addon.count)

    def _addon_diameters(self, backbone_diameter: int, diameters: Sequence[int]) -> List[int]:
        beam = self.settings.beam_cfg()
        if beam.prefer_single_diameter:
            return [backbone_diameter]
        rest = [d for d in sorted(diameters) if d != backbone_diameter]
        return [backbone_diameter] + rest

    def find_best_addon_for_position(
        self,
        pos: PositionRequirement,
        deficit: float,
        backbone: BackboneConfig,
        diameters: Optional[Sequence[int]] = None,
    ) -> Optional[AddonConfig]:
        """
        Refuerzo más liviano que cubre 'deficit' en una posición.

        Por diámetro se toma la primera cantidad que entra: capa 1 hasta completar la
        capacidad (descontando la corrida), luego capas interiores con regla de pirámide
        y mínimo de barras por capa. None si ningún diámetro entra.
        """
        if deficit <= NEGLIGIBLE_AREA:
            return AddonConfig.none(pos.position_id, pos.is_top)

        beam = self.settings.beam_cfg()
        min_per_layer = max(1, int(beam.min_bars_per_layer))
        bb_d = backbone.diameter(pos.is_top)
        bb_n = backbone.count(pos.is_top)
        pool = diameters if diameters is not None else allowed_diameters(self.settings)

        best: Optional[AddonConfig] = None
        best_area = math.inf
        for d in self._addon_diameters(bb_d, pool):
            lim = self.diameter_limits(pos, max(d, bb_d), area=deficit)
            cap = lim.capacity_per_layer
            if cap < bb_n:
                continue
            n_min = math.ceil(deficit / bar_area_cm2(d) - 1e-9)
            for n in range(n_min, cap * lim.max_layers + 1):
                breakdown = _stack_layers(n, bb_n, cap, lim.max_layers, min_per_layer)
                if breakdown is None:
                    continue
                area = n * bar_area_cm2(d)
                if area < best_area:
                    best_area = area
                    best = AddonConfig(
                        position_id=pos.position_id,
                        is_top=pos.is_top,
                        diameter=d,
                        count=n,
                        layer=len(breakdown),
                        layer_breakdown=breakdown,
                    )
                break
        return best

    def _solution(self, backbone: BackboneConfig, addons: Dict[str, AddonConfig],
                  weight: float) -> ContinuousBeamSolution:
        reinforcements = {
            pid: RebarSpec(
                diameter=a.diameter,
                count=a.count,
                layer=a.layer,
                position=FACE_TOP if a.is_top else FACE_BOT,
                layer_breakdown=a.layer_breakdown,
            )
            for pid, a in addons.items()
            if a.count > 0
        }
        return ContinuousBeamSolution(
            option_name=backbone.to_id(),
            backbone_diameter_top=backbone.top_diameter,
            backbone_diameter_bot=backbone.bot_diameter,
            backbone_count_top=backbone.top_count,
            backbone_count_bot=backbone.bot_count,
            reinforcements=reinforcements,
            total_steel_weight=weight,
            efficiency_score=10000.0 / (weight + 1.0),
            total_score=10000.0 / (weight + 1.0),
            description=f"{len(reinforcements)} refuerzos",
        )

    # ---------------- paralelo ----------------

    def _run_parallel(
        self,
        candidates: Sequence[BackboneConfig],
        base: np.ndarray,
        positions: Sequence[PositionRequirement],
        diameters: Sequence[int],
    ) -> None:
        workers = max(1, min(self.max_workers, len(candidates)))
        log.info("Evaluando %d candidatos con %d hilos", len(candidates), workers)
        with ThreadPoolExecutor(max_workers=workers) as ex:
            futs = [
                ex.submit(self._evaluate, bb, float(w), positions, diameters)
                for bb, w in zip(candidates, base)
            ]
            for fut in as_completed(futs):
                fut.result()


def _stack_layers(
    addon_count: int, backbone_count: int, capacity: int, max_layers: int, min_per_layer: int
) -> Optional[tuple]:
    """
    Reparte addon_count barras: capa 1 hasta la capacidad, luego capas interiores
    con n_i <= n_(i-1) y n_i >= min_per_layer. Devuelve barras totales por capa.
    """
    first = min(addon_count, max(0, capacity - backbone_count))
    layers = [backbone_count + first]
    rest = addon_count - first
    while rest > 0:
        if len(layers) >= max_layers:
            return None
        n = min(rest, capacity, layers[-1])
        if n < min_per_layer:
            return None
        layers.append(n)
        rest -= n
    return tuple(layers)


def unit_weight_table(diameters: np.ndarray) -> np.ndarray:
    """kg/m por diámetro (d²/162), vectorizado."""
    return np.asarray(diameters, dtype=float) ** 2 / UNIT_WEIGHT_DIVISOR
