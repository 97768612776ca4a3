from __future__ import annotations

from typing import Callable

from beam_rebar.services.settings import DesignSettings

# f(diametro_mm, settings) -> largo en mm
AnchorageFn = Callable[[int, DesignSettings], float]


def straight_length(diameter_mm: int, settings: DesignSettings) -> float:
    """Ld: largo de desarrollo recto = múltiplo · d."""
    return float(settings.anchorage_cfg().straight_multiple) * float(diameter_mm)


def hooked_length(diameter_mm: int, settings: DesignSettings) -> float:
    """Ldh: largo de desarrollo con gancho estándar."""
    return float(settings.anchorage_cfg().hooked_multiple) * float(diameter_mm)


def available_hook_length(settings: DesignSettings) -> float:
    """Largo disponible en la columna de borde (profundidad - recubrimiento)."""
    return float(settings.anchorage_cfg().column_depth_mm) - float(settings.beam_cfg().cover_mm)
