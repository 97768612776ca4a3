from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Tuple


class SectionType(Enum):
    SUPPORT = "Support"
    MID_SPAN = "MidSpan"


class RebarPosition(Enum):
    TOP = "Top"
    BOT = "Bot"


@dataclass(frozen=True)
class SectionArrangement:
    """
    Disposición física candidata en una cara de la sección.

    - bars_per_layer: cantidad de barras por capa, de la capa exterior hacia adentro.
    - bar_diameters: diámetro de cada barra (solo en disposiciones mixtas).

    Igualdad estructural: diámetro principal + cantidad + capas (+ diámetros si es mixta).
    score / efficiency / área / separación no intervienen en la comparación.
    """
    primary_diameter: int
    total_count: int
    bars_per_layer: Tuple[int, ...] = ()
    bar_diameters: Tuple[int, ...] = ()

    total_area: float = field(default=0.0, compare=False)
    clear_spacing: float = field(default=0.0, compare=False)
    vertical_spacing: float = field(default=0.0, compare=False)
    score: float = field(default=0.0, compare=False)
    efficiency: float = field(default=0.0, compare=False)

    @property
    def layer_count(self) -> int:
        return len(self.bars_per_layer)

    @property
    def is_single_diameter(self) -> bool:
        return len(set(self.bar_diameters)) <= 1

    @property
    def is_even_count(self) -> bool:
        return self.total_count % 2 == 0

    @property
    def is_empty(self) -> bool:
        return self.total_count == 0

    def with_score(self, score: float) -> "SectionArrangement":
        return replace(self, score=float(score))

    def to_display_string(self) -> str:
        if self.is_empty:
            return "-"
        if not self.is_single_diameter:
            groups = []
            for d in sorted(set(self.bar_diameters), reverse=True):
                groups.append(f"{self.bar_diameters.count(d)}D{d}")
            return "+".join(groups)
        if self.layer_count <= 1:
            return f"{self.total_count}D{self.primary_diameter}"
        layers = "+".join(str(n) for n in self.bars_per_layer)
        return f"{self.total_count}D{self.primary_diameter}({layers})"


EMPTY_ARRANGEMENT = SectionArrangement(primary_diameter=0, total_count=0, score=100.0)


@dataclass
class DesignSection:
    """
    Sección de diseño: cara de apoyo o centro de un tramo.

    Anchos/alturas útiles en mm (ya descontados recubrimiento y estribo),
    áreas requeridas en cm², posición en m desde el primer apoyo.
    """
    section_id: str
    span_id: str
    span_index: int
    position_m: float
    section_type: SectionType
    width_mm: float
    height_mm: float
    usable_width_mm: float
    usable_height_mm: float
    req_top: float = 0.0
    req_bot: float = 0.0
    is_support_left: bool = False
    is_support_right: bool = False

    valid_top: Tuple[SectionArrangement, ...] = ()
    valid_bot: Tuple[SectionArrangement, ...] = ()

    # id de la sección del otro lado del mismo apoyo (se completa al fusionar)
    linked_section_id: str = ""

    def required(self, position: RebarPosition) -> float:
        return self.req_top if position is RebarPosition.TOP else self.req_bot

    def arrangements(self, position: RebarPosition) -> Tuple[SectionArrangement, ...]:
        return self.valid_top if position is RebarPosition.TOP else self.valid_bot
