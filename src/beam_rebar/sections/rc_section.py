from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from beam_rebar.services.settings import BeamConfig

AGGREGATE_SPACING_FACTOR = 1.33


@dataclass(frozen=True)
class RCSection:
    """
    Sección rectangular de hormigón armado (geometría para el armado).
    Todas las dimensiones en mm.

    Ancho útil = b - 2*recubrimiento - 2*estribo (ancho libre interior de estribos).
    """
    width_mm: float
    height_mm: float
    cover_mm: float = 25.0
    stirrup_diameter_mm: float = 10.0
    min_clear_spacing_mm: float = 25.0
    max_clear_spacing_mm: float = 300.0
    min_layer_spacing_mm: float = 25.0
    aggregate_size_mm: float = 20.0

    @classmethod
    def from_config(cls, width_mm: float, height_mm: float, beam: BeamConfig) -> "RCSection":
        return cls(
            width_mm=float(width_mm),
            height_mm=float(height_mm),
            cover_mm=float(beam.cover_mm),
            stirrup_diameter_mm=float(beam.estimated_stirrup_diameter),
            min_clear_spacing_mm=float(beam.min_clear_spacing_mm),
            max_clear_spacing_mm=float(beam.max_clear_spacing_mm),
            min_layer_spacing_mm=float(beam.min_layer_spacing_mm),
            aggregate_size_mm=float(beam.aggregate_size_mm),
        )

    @property
    def usable_width_mm(self) -> float:
        return float(self.width_mm - 2.0 * self.cover_mm - 2.0 * self.stirrup_diameter_mm)

    @property
    def usable_height_mm(self) -> float:
        return float(self.height_mm - 2.0 * self.cover_mm - 2.0 * self.stirrup_diameter_mm)

    def min_clear_spacing(self, diameter_mm: float) -> float:
        """Separación libre mínima: max(d, s_min, 1.33*agregado)."""
        return max(float(diameter_mm), self.min_clear_spacing_mm, AGGREGATE_SPACING_FACTOR * self.aggregate_size_mm)

    def max_bars_per_layer(self, diameter_mm: float) -> int:
        return max_bars_per_layer(self.usable_width_mm, diameter_mm, self.min_clear_spacing(diameter_mm))

    def max_layers(self, diameter_mm: float, cap: int = 5) -> int:
        """Capas que entran en la altura útil (mínimo 1, tope 'cap')."""
        h = self.usable_height_mm
        if h <= 0:
            return 1
        n = int(math.floor(h / (float(diameter_mm) + self.min_layer_spacing_mm)))
        return max(1, min(n, cap))

    def clear_spacing(self, bars_in_layer: int, diameter_mm: float) -> float:
        return clear_spacing(self.usable_width_mm, bars_in_layer, diameter_mm)

    def spacing_ok(self, bars_in_layer: int, diameter_mm: float) -> bool:
        s = self.clear_spacing(bars_in_layer, diameter_mm)
        return self.min_clear_spacing(diameter_mm) <= s <= self.max_clear_spacing_mm

    def mixed_fits(self, diameters: Sequence[int]) -> bool:
        """Entran todas las barras (diámetros mixtos) en una sola capa."""
        if not diameters:
            return True
        s_min = max(self.min_clear_spacing(d) for d in diameters)
        return sum(diameters) + (len(diameters) - 1) * s_min <= self.usable_width_mm


def max_bars_per_layer(usable_width_mm: float, diameter_mm: float, min_clear_mm: float) -> int:
    """
    n*d + (n-1)*s <= b_util  =>  n <= (b_util + s) / (d + s)
    """
    if usable_width_mm < diameter_mm or diameter_mm <= 0:
        return 0
    n = (float(usable_width_mm) + float(min_clear_mm)) / (float(diameter_mm) + float(min_clear_mm))
    return max(0, int(math.floor(n + 1e-9)))


def clear_spacing(usable_width_mm: float, bars_in_layer: int, diameter_mm: float) -> float:
    if bars_in_layer <= 1:
        return float(usable_width_mm)
    return (float(usable_width_mm) - bars_in_layer * float(diameter_mm)) / (bars_in_layer - 1)


def mixed_clear_spacing(usable_width_mm: float, diameters: Sequence[int]) -> float:
    if len(diameters) <= 1:
        return float(usable_width_mm)
    return (float(usable_width_mm) - float(sum(diameters))) / (len(diameters) - 1)
