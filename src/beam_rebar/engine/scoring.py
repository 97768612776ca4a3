from __future__ import annotations

import math

from beam_rebar.domain.sections import SectionArrangement

AREA_TOLERANCE = 0.98

MAX_WASTE_PENALTY = 30.0
LAYER_PENALTY = 8.0
MAX_BAR_PENALTY = 15.0
SPACING_BONUS_BAND_MM = 30.0


def clamp_score(v: float) -> float:
    return max(0.0, min(100.0, float(v)))


def score_arrangement(
    arr: SectionArrangement,
    required: float,
    *,
    min_bars: int,
    min_spacing_mm: float,
    max_spacing_mm: float,
    preferred_diameter: int,
) -> float:
    """
    Puntaje 0..100 de una disposición (más alto = mejor).

    Parte de 100 y descuenta desperdicio de área, capas extra y barras de más;
    suma por separación cercana a la media geométrica [s_min, s_max], cantidad par,
    diámetro preferido y diámetro único.
    """
    if arr.total_area < required * AREA_TOLERANCE:
        return 0.0

    score = 100.0
    waste = (arr.total_area - required) / max(required, 0.01)
    score -= min(MAX_WASTE_PENALTY, waste * 50.0)
    score -= (arr.layer_count - 1) * LAYER_PENALTY
    score -= min(MAX_BAR_PENALTY, max(0, arr.total_count - min_bars) * 2.0)

    target = math.sqrt(max(min_spacing_mm, 0.0) * max(max_spacing_mm, 0.0))
    if abs(arr.clear_spacing - target) < SPACING_BONUS_BAND_MM:
        score += 5.0
    if arr.is_even_count:
        score += 3.0
    if arr.primary_diameter == preferred_diameter:
        score += 5.0
    if arr.is_single_diameter:
        score += 3.0

    return clamp_score(score)


def rebalance_score(provided: float, required: float, count: int, diameter: int) -> float:
    """Puntaje de las disposiciones re-derivadas al fusionar apoyos (menos desperdicio, menos barras)."""
    score = 100.0
    if required > 0:
        score -= (provided - required) / required * 100.0 * 0.5
    if count > 4:
        score -= (count - 4) * 5.0
    if diameter >= 22:
        score += 5.0
    return clamp_score(score)
