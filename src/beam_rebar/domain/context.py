from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Dict, List, Optional

from beam_rebar.domain.beam import BeamGroup
from beam_rebar.domain.results import BeamResultData
from beam_rebar.domain.solution import BackboneConfig, ConflictReport, ContinuousBeamSolution

if TYPE_CHECKING:
    from beam_rebar.engine.rules import ValidationResult
    from beam_rebar.services.settings import DesignSettings


@dataclass(frozen=True)
class ExternalConstraints:
    """
    Restricciones obligatorias para una viga puntual (bloqueo del usuario, sincronización, ...).
    None = libre.
    """
    forced_backbone_diameter: Optional[int] = None
    forced_backbone_count_top: Optional[int] = None
    forced_backbone_count_bot: Optional[int] = None
    forced_stirrup_legs: Optional[int] = None
    source: str = ""

    @property
    def forces_backbone(self) -> bool:
        return self.forced_backbone_diameter is not None


@dataclass(frozen=True)
class NeighborDesign:
    backbone_diameter: int
    backbone_count: int
    stirrup_diameter: int = 10


@dataclass
class ProjectConstraints:
    """Restricciones a nivel proyecto/piso para homogeneizar vigas."""
    preferred_main_diameter: Optional[int] = None
    preferred_stirrup_diameter: Optional[int] = None
    allowed_diameters_override: Optional[List[int]] = None
    neighbor_designs: Dict[str, NeighborDesign] = field(default_factory=dict)
    neighbor_match_bonus: float = 5.0


@dataclass
class SolutionContext:
    """
    Portador de una solución en curso a través del pipeline.
    Cada contexto viaja solo: las etapas nunca comparten un contexto entre hermanos.
    """
    group: BeamGroup
    span_results: List[BeamResultData]
    settings: "DesignSettings"
    global_constraints: Optional[ProjectConstraints] = None
    external_constraints: Optional[ExternalConstraints] = None

    scenario_id: str = ""
    backbone: Optional[BackboneConfig] = None
    current_solution: Optional[ContinuousBeamSolution] = None

    is_valid: bool = True
    fail_stage: str = ""
    fail_position: str = ""
    validation_message: str = ""
    stirrup_leg_count: int = 0
    accumulated_waste_count: int = 0

    conflicts: List[ConflictReport] = field(default_factory=list)
    validation_results: List["ValidationResult"] = field(default_factory=list)
    total_penalty: float = 0.0
    preferred_diameter_bonus: float = 0.0

    @property
    def beam_width(self) -> float:
        return self.group.min_width_mm

    def fork(self, scenario_id: str, backbone: BackboneConfig) -> "SolutionContext":
        """Nuevo contexto independiente para un escenario de armadura corrida."""
        return replace(
            self,
            scenario_id=scenario_id,
            backbone=backbone,
            current_solution=None,
            conflicts=[],
            validation_results=[],
        )

    def fail(self, stage: str, message: str, position: str = "") -> "SolutionContext":
        self.is_valid = False
        self.fail_stage = stage
        self.fail_position = position
        self.validation_message = message
        if self.current_solution is not None:
            self.current_solution.is_valid = False
            self.current_solution.validation_message = message
        return self
