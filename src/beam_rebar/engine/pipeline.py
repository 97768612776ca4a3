from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple

from beam_rebar.domain.beam import BeamGroup
from beam_rebar.domain.context import ExternalConstraints, NeighborDesign, ProjectConstraints, SolutionContext
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.sections import DesignSection
from beam_rebar.domain.solution import BackboneConfig, ContinuousBeamSolution
from beam_rebar.engine.conflicts import ConflictResolver
from beam_rebar.engine.filler import ReinforcementFiller
from beam_rebar.engine.normalize import build_design_sections
from beam_rebar.engine.optimizer import MIN_BACKBONE_BARS, BeamAwareOptimizer
from beam_rebar.engine.rules import RuleEngine
from beam_rebar.engine.section_solver import SectionSolver
from beam_rebar.engine.stirrups import StirrupCalculator
from beam_rebar.engine.topology_merger import TopologyMerger
from beam_rebar.services.logging_setup import log_phase
from beam_rebar.services.settings import DesignSettings, require_settings

log = logging.getLogger(__name__)


class PipelineStage(Protocol):
    name: str
    order: int

    def execute(
        self,
        contexts: Iterable[SolutionContext],
        global_constraints: Optional[ProjectConstraints] = None,
    ) -> Iterator[SolutionContext]:
        ...


class ScenarioGenerator:
    """
    Etapa 1: un contexto por armadura corrida candidata.
    Con una corrida forzada (bloqueo del usuario) se genera solo esa.
    """

    name = "ScenarioGenerator"
    order = 1

    def __init__(self, optimizer_factory=BeamAwareOptimizer):
        self.optimizer_factory = optimizer_factory

    def execute(
        self,
        contexts: Iterable[SolutionContext],
        global_constraints: Optional[ProjectConstraints] = None,
    ) -> Iterator[SolutionContext]:
        for seed in contexts:
            for i, bb in enumerate(self.backbones(seed, global_constraints)):
                yield seed.fork(f"{seed.group.group_name}#{i + 1} {bb.to_id()}", bb)

    def backbones(
        self, seed: SolutionContext, global_constraints: Optional[ProjectConstraints] = None
    ) -> List[BackboneConfig]:
        ext = seed.external_constraints
        if ext is not None and ext.forces_backbone:
            n_min = max(MIN_BACKBONE_BARS, int(seed.settings.beam_cfg().min_bars_per_layer))
            d = int(ext.forced_backbone_diameter)
            bb = BackboneConfig(
                top_diameter=d,
                top_count=int(ext.forced_backbone_count_top or n_min),
                bot_diameter=d,
                bot_count=int(ext.forced_backbone_count_bot or n_min),
            )
            log.info("%s: corrida forzada %s (%s)", seed.group.group_name, bb.to_id(), ext.source or "externa")
            return [bb]

        optimizer = self.optimizer_factory(seed.settings)
        sols = optimizer.optimize(seed.group, seed.span_results, seed.settings, global_constraints)
        return [s.backbone for s in sols]


class RebarPipeline:
    """
    Contexto semilla -> etapas ordenadas -> reglas -> mejores soluciones.

    Las etapas son generadores: cada contexto avanza solo y los inválidos
    se descartan entre etapas.
    """

    def __init__(self, stages: Optional[Sequence[PipelineStage]] = None, rule_engine: Optional[RuleEngine] = None):
        if stages is None:
            stages = [ScenarioGenerator(), ReinforcementFiller(), StirrupCalculator(), ConflictResolver()]
        self.stages: List[PipelineStage] = sorted(stages, key=lambda s: s.order)
        self.rule_engine = rule_engine if rule_engine is not None else RuleEngine()
        self.last_failures: List[SolutionContext] = []

    def execute(
        self,
        group: BeamGroup,
        span_results: Sequence[Optional[BeamResultData]],
        settings: Optional[DesignSettings],
        global_constraints: Optional[ProjectConstraints] = None,
        external_constraints: Optional[ExternalConstraints] = None,
    ) -> List[ContinuousBeamSolution]:
        settings = require_settings(settings, "RebarPipeline")
        log_phase(log, f"Pipeline {group.group_name}")
        self.last_failures = []

        seed = SolutionContext(
            group=group,
            span_results=list(span_results or []),
            settings=settings,
            global_constraints=global_constraints,
            external_constraints=external_constraints,
            scenario_id=group.group_name,
        )

        contexts: List[SolutionContext] = [seed]
        for stage in self.stages:
            out = list(stage.execute(contexts, global_constraints))
            alive = [c for c in out if c.is_valid]
            self.last_failures.extend(c for c in out if not c.is_valid)
            log.info("%s: %d/%d contextos válidos", stage.name, len(alive), len(out))
            if not alive:
                for c in self.last_failures[-3:]:
                    log.warning("  %s falló en %s [%s]: %s", c.scenario_id, c.fail_stage,
                                c.fail_position, c.validation_message)
                log.warning("Grupo %s: sin soluciones tras %s", group.group_name, stage.name)
                return []
            contexts = alive

        ranked: List[ContinuousBeamSolution] = []
        for ctx in contexts:
            self.rule_engine.validate_all(ctx)
            if not ctx.is_valid or ctx.current_solution is None:
                self.last_failures.append(ctx)
                continue
            sol = ctx.current_solution
            sol.total_score = sol.efficiency_score - ctx.total_penalty + ctx.preferred_diameter_bonus
            ranked.append(sol)

        ranked.sort(key=lambda s: (-s.total_score, s.total_steel_weight))
        top = ranked[: max(1, settings.search_cfg().pipeline_top_solutions)]
        if top:
            log.info("Grupo %s: ganador %s (%.1f kg, puntaje %.1f)", group.group_name,
                     top[0].option_name, top[0].total_steel_weight, top[0].total_score)
        return top


class MultiBeamOrchestrator:
    """
    Diseña varias vigas de un piso en orden.
    El ganador de cada una queda como diseño vecino; el primero fija el
    diámetro preferido del proyecto.
    """

    def __init__(self, pipeline: Optional[RebarPipeline] = None):
        self.pipeline = pipeline if pipeline is not None else RebarPipeline()
        self.constraints = ProjectConstraints()
        self.results: Dict[str, List[ContinuousBeamSolution]] = {}

    def solve_floor(
        self,
        beams: Sequence[tuple],
        settings: Optional[DesignSettings],
        initial_constraints: Optional[ProjectConstraints] = None,
    ) -> Dict[str, List[ContinuousBeamSolution]]:
        """beams: [(BeamGroup, [BeamResultData, ...]), ...]"""
        settings = require_settings(settings, "MultiBeamOrchestrator")
        self.constraints = initial_constraints if initial_constraints is not None else ProjectConstraints()
        self.results = {}

        for group, span_results in beams:
            self.recalculate_single(group, span_results, settings)
        return self.results

    def recalculate_single(
        self,
        group: BeamGroup,
        span_results: Sequence[Optional[BeamResultData]],
        settings: Optional[DesignSettings],
    ) -> List[ContinuousBeamSolution]:
        settings = require_settings(settings, "MultiBeamOrchestrator")
        sols = self.pipeline.execute(
            group, span_results, settings,
            global_constraints=self.constraints,
            external_constraints=lock_constraints(group),
        )
        self.results[group.group_name] = sols
        if not sols:
            log.warning("Viga %s: sin arreglo factible", group.group_name)
            return sols

        best = sols[0]
        self.constraints.neighbor_designs[group.group_name] = NeighborDesign(
            backbone_diameter=best.backbone_diameter_top,
            backbone_count=best.backbone_count_top,
            stirrup_diameter=self.constraints.preferred_stirrup_diameter or NeighborDesign.stirrup_diameter,
        )
        if self.constraints.preferred_main_diameter is None:
            self.constraints.preferred_main_diameter = best.backbone_diameter_top
            log.info("Diámetro preferido del proyecto: D%d (de %s)", best.backbone_diameter_top, group.group_name)
        return sols


def lock_constraints(group: BeamGroup) -> Optional[ExternalConstraints]:
    """Restricción externa desde el diseño bloqueado por el usuario, si hay."""
    locked = group.locked_design
    if locked is None or locked.backbone_diameter_top <= 0:
        return None
    return ExternalConstraints(
        forced_backbone_diameter=locked.backbone_diameter_top,
        forced_backbone_count_top=locked.backbone_count_top or None,
        forced_backbone_count_bot=locked.backbone_count_bot or None,
        source="UserLock",
    )



def section_pass(
    group: BeamGroup,
    span_results: Sequence[Optional[BeamResultData]],
    settings: Optional[DesignSettings],
    use_rebalance: bool = False,
) -> Tuple[List[DesignSection], bool]:
    """
    Recorrido por secciones: 3 secciones por tramo, disposiciones por cara
    y fusión de apoyos compartidos. Devuelve (secciones, todas_con_opciones).
    """
    settings = require_settings(settings, "section_pass")
    log_phase(log, f"Secciones {group.group_name}")
    sections = build_design_sections(group, span_results, settings)
    SectionSolver(settings).solve_all(sections)
    ok = TopologyMerger(settings, use_rebalance=use_rebalance).apply_constraints(sections)
    return sections, ok
