from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

ZONE_LEFT = 0
ZONE_MID = 1
ZONE_RIGHT = 2

ZONE_NAMES = ("Left", "Mid", "Right")


def _at(values: Sequence[float], zone: int) -> float:
    if values is None or zone >= len(values):
        return 0.0
    v = float(values[zone])
    return v if v > 0 else 0.0


@dataclass(frozen=True)
class BeamResultData:
    """
    Demanda de un tramo (ya mayorada) en las 3 zonas: izquierda / centro / derecha.

    Unidades:
      - top_area, bot_area, torsion_area: cm² (armadura longitudinal)
      - shear_area, tt_area: cm²/cm (Av/s y At/s)

    Los combos y ubicaciones solo sirven para trazabilidad.
    """
    top_area: Tuple[float, ...] = (0.0, 0.0, 0.0)
    bot_area: Tuple[float, ...] = (0.0, 0.0, 0.0)
    shear_area: Tuple[float, ...] = (0.0, 0.0, 0.0)
    tt_area: Tuple[float, ...] = (0.0, 0.0, 0.0)
    torsion_area: Tuple[float, ...] = (0.0, 0.0, 0.0)

    top_combo: Tuple[str, ...] = ()
    bot_combo: Tuple[str, ...] = ()
    shear_combo: Tuple[str, ...] = ()
    torsion_combo: Tuple[str, ...] = ()
    location_mm: Tuple[float, ...] = ()

    def top(self, zone: int) -> float:
        return _at(self.top_area, zone)

    def bot(self, zone: int) -> float:
        return _at(self.bot_area, zone)

    def shear(self, zone: int) -> float:
        return _at(self.shear_area, zone)

    def tt(self, zone: int) -> float:
        return _at(self.tt_area, zone)

    def torsion(self, zone: int) -> float:
        return _at(self.torsion_area, zone)
