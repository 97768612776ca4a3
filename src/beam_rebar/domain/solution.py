from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from beam_rebar.materials.rebar_db import bar_area_cm2, bar_weight_kg


@dataclass(frozen=True)
class BackboneConfig:
    """Armadura corrida (chief) en todo el largo de la viga: diámetro y cantidad por cara."""
    top_diameter: int
    top_count: int
    bot_diameter: int
    bot_count: int

    @property
    def top_area(self) -> float:
        return self.top_count * bar_area_cm2(self.top_diameter)

    @property
    def bot_area(self) -> float:
        return self.bot_count * bar_area_cm2(self.bot_diameter)

    def area(self, is_top: bool) -> float:
        return self.top_area if is_top else self.bot_area

    def diameter(self, is_top: bool) -> int:
        return self.top_diameter if is_top else self.bot_diameter

    def count(self, is_top: bool) -> int:
        return self.top_count if is_top else self.bot_count

    def base_weight(self, length_mm: float, lap_factor: float = 1.0) -> float:
        """Peso (kg) de las barras corridas superior + inferior en length_mm."""
        return (
            bar_weight_kg(self.top_diameter, length_mm, self.top_count)
            + bar_weight_kg(self.bot_diameter, length_mm, self.bot_count)
        ) * float(lap_factor)

    def to_id(self) -> str:
        return f"T:{self.top_count}D{self.top_diameter}/B:{self.bot_count}D{self.bot_diameter}"


@dataclass(frozen=True)
class AddonConfig:
    """
    Barras de refuerzo local en una posición (ej. "S1_Top_Left").
    layer: capa más interna ocupada (1 = misma capa que la corrida).
    layer_breakdown: barras totales por capa (la capa 1 incluye la corrida).
    """
    position_id: str
    is_top: bool
    diameter: int = 0
    count: int = 0
    layer: int = 0
    layer_breakdown: Tuple[int, ...] = ()

    @property
    def area(self) -> float:
        return self.count * bar_area_cm2(self.diameter) if self.count > 0 else 0.0

    @classmethod
    def none(cls, position_id: str, is_top: bool) -> "AddonConfig":
        return cls(position_id=position_id, is_top=is_top)


@dataclass(frozen=True)
class RebarSpec:
    """Especificación final de un refuerzo local dentro de una solución."""
    diameter: int
    count: int
    layer: int
    position: str = ""  # "Top" / "Bot"
    layer_breakdown: Tuple[int, ...] = ()

    @property
    def area(self) -> float:
        return self.count * bar_area_cm2(self.diameter)

    @property
    def layer1_count(self) -> int:
        return self.layer_breakdown[0] if self.layer_breakdown else 0

    def to_display_string(self) -> str:
        return f"{self.count}D{self.diameter}"


@dataclass
class ConflictReport:
    conflict_type: str
    span_id: str
    description: str
    suggested_fix: str = ""


@dataclass
class ContinuousBeamSolution:
    """
    Un diseño completo para un grupo de vigas.
    Se completa por etapas: relleno (reinforcements), estribos (stirrup_designs), pesos y puntajes.
    """
    option_name: str = ""
    backbone_diameter_top: int = 0
    backbone_diameter_bot: int = 0
    backbone_count_top: int = 0
    backbone_count_bot: int = 0

    reinforcements: Dict[str, RebarSpec] = field(default_factory=dict)
    stirrup_designs: Dict[str, str] = field(default_factory=dict)
    web_bar_designs: Dict[str, str] = field(default_factory=dict)

    total_steel_weight: float = 0.0
    efficiency_score: float = 0.0
    total_score: float = 0.0
    is_valid: bool = True
    description: str = ""
    validation_message: str = ""

    @property
    def as_backbone_top(self) -> float:
        return self.backbone_count_top * bar_area_cm2(self.backbone_diameter_top)

    @property
    def as_backbone_bot(self) -> float:
        return self.backbone_count_bot * bar_area_cm2(self.backbone_diameter_bot)

    @property
    def backbone(self) -> BackboneConfig:
        return BackboneConfig(
            top_diameter=self.backbone_diameter_top,
            top_count=self.backbone_count_top,
            bot_diameter=self.backbone_diameter_bot,
            bot_count=self.backbone_count_bot,
        )

    def provided_area(self, key: str, is_top: bool) -> float:
        base = self.as_backbone_top if is_top else self.as_backbone_bot
        spec: Optional[RebarSpec] = self.reinforcements.get(key)
        return base + (spec.area if spec is not None else 0.0)

    def summary(self) -> List[str]:
        lines = [f"{self.option_name}: {self.total_steel_weight:.1f} kg ({self.description})"]
        for k in sorted(self.reinforcements):
            lines.append(f"  {k}: +{self.reinforcements[k].to_display_string()}")
        return lines
