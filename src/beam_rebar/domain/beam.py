from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Tuple

if TYPE_CHECKING:
    from beam_rebar.domain.solution import ContinuousBeamSolution


DEFAULT_SPAN_WIDTH_MM = 300.0
DEFAULT_SPAN_LENGTH_MM = 6000.0


@dataclass(frozen=True)
class BeamSpan:
    """
    Un tramo de viga continua.
    Todas las dimensiones en mm.
    """
    span_id: str
    width_mm: float
    height_mm: float
    length_mm: float

    @property
    def effective_width_mm(self) -> float:
        return float(self.width_mm) if self.width_mm > 0 else DEFAULT_SPAN_WIDTH_MM


@dataclass
class BeamGroup:
    """
    Grupo de tramos que se arman como una sola viga continua.
    locked_design: diseño fijado por el usuario (se respeta como restricción externa).
    """
    group_name: str
    spans: List[BeamSpan] = field(default_factory=list)
    locked_design: Optional["ContinuousBeamSolution"] = None

    @property
    def total_length_mm(self) -> float:
        if not self.spans:
            return DEFAULT_SPAN_LENGTH_MM
        return float(sum(s.length_mm for s in self.spans))

    @property
    def min_width_mm(self) -> float:
        if not self.spans:
            return DEFAULT_SPAN_WIDTH_MM
        return float(min(s.effective_width_mm for s in self.spans))

    def span_bounds_m(self) -> List[Tuple[float, float]]:
        """(x_inicio, x_fin) de cada tramo en metros, acumulado desde el primer apoyo."""
        out: List[Tuple[float, float]] = []
        x = 0.0
        for s in self.spans:
            x_end = x + float(s.length_mm) / 1000.0
            out.append((x, x_end))
            x = x_end
        return out
