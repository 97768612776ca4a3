from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from beam_rebar.materials.rebar_db import bar_area_cm2

NEGLIGIBLE_MISSING = 0.01


class StrategyKind(Enum):
    GREEDY = "Greedy"        # menos barras: llena cada capa al máximo
    BALANCED = "Balanced"    # reparte parejo entre capas


@dataclass(frozen=True)
class FillingContext:
    """Datos de una posición a completar sobre una corrida fija."""
    required_area: float
    backbone_area: float
    backbone_count: int
    backbone_diameter: int
    layer_capacity: int
    stirrup_leg_count: int
    max_layers: int
    min_bars_per_layer: int = 2
    prefer_symmetric: bool = True


@dataclass
class FillingResult:
    """
    layer_counts: barras totales por capa (la capa 1 incluye la corrida).
    waste_count: barras agregadas solo por reglas constructivas.
    """
    is_valid: bool
    layer_counts: List[int] = field(default_factory=list)
    waste_count: int = 0
    fail_reason: str = ""

    @property
    def total_bars(self) -> int:
        return sum(self.layer_counts)

    @classmethod
    def fail(cls, reason: str) -> "FillingResult":
        return cls(is_valid=False, fail_reason=reason)


def compute_fill(kind: StrategyKind, ctx: FillingContext) -> FillingResult:
    """Plan de barras por capa para cubrir required_area con el diámetro de la corrida."""
    missing = ctx.required_area - ctx.backbone_area
    if missing <= NEGLIGIBLE_MISSING:
        return FillingResult(is_valid=True, layer_counts=[ctx.backbone_count])

    total = math.ceil(ctx.required_area / bar_area_cm2(ctx.backbone_diameter) - 1e-9)

    if kind is StrategyKind.GREEDY:
        layers = _greedy_layers(total, ctx)
    else:
        layers = _balanced_layers(total, ctx)
    if isinstance(layers, str):
        return FillingResult.fail(layers)
    return _apply_constraints(layers, ctx)


def _greedy_layers(total: int, ctx: FillingContext):
    layers: List[int] = []
    remaining = total
    for i in range(ctx.max_layers):
        if remaining <= 0:
            break
        cap = ctx.layer_capacity if i == 0 else layers[i - 1]
        n = min(remaining, cap)
        if i == 0:
            n = max(n, ctx.backbone_count)
        layers.append(n)
        remaining -= n
    if remaining > 0:
        return f"No entran {total} barras en {ctx.max_layers} capas (capacidad={ctx.layer_capacity})"
    return layers


def _balanced_layers(total: int, ctx: FillingContext):
    cap = ctx.layer_capacity
    if cap <= 0:
        return "Capacidad de capa nula"
    needed = math.ceil(total / cap)
    if needed > ctx.max_layers:
        return f"Se necesitan {needed} capas, máximo={ctx.max_layers}"

    base, rem = divmod(total, needed)
    layers = [base + (1 if i < rem else 0) for i in range(needed)]

    # La capa 1 contiene al menos la corrida
    if layers[0] < ctx.backbone_count:
        deficit = ctx.backbone_count - layers[0]
        layers[0] = ctx.backbone_count
        for i in range(needed - 1, 0, -1):
            if deficit <= 0:
                break
            take = min(deficit, layers[i])
            layers[i] -= take
            deficit -= take

    layers.sort(reverse=True)

    if layers[0] > cap:
        overflow = layers[0] - cap
        layers[0] = cap
        for i in range(1, needed):
            if overflow <= 0:
                break
            add = min(overflow, layers[i - 1] - layers[i])
            layers[i] += add
            overflow -= add
        if overflow > 0:
            return f"No se pueden repartir {total} barras en {needed} capas"

    if sum(layers) < total:
        return f"No se pueden repartir {total} barras en {needed} capas"

    while len(layers) > 1 and layers[-1] == 0:
        layers.pop()
    return layers


def _pyramid_ok(layers: List[int]) -> Optional[int]:
    for i in range(1, len(layers)):
        if layers[i] > layers[i - 1]:
            return i
    return None


def _apply_constraints(layers: List[int], ctx: FillingContext) -> FillingResult:
    """Pirámide, capacidad, ajuste a ramas de estribo, simetría y mínimo por capa."""
    bad = _pyramid_ok(layers)
    if bad is not None:
        return FillingResult.fail(f"Pirámide: L{bad + 1}={layers[bad]} > L{bad}={layers[bad - 1]}")
    if layers and layers[0] > ctx.layer_capacity:
        return FillingResult.fail(f"L1={layers[0]} supera la capacidad={ctx.layer_capacity}")

    legs = ctx.stirrup_leg_count
    if legs > 2:
        for i in range(1, len(layers)):
            n = layers[i]
            if n > 0 and legs - 1 <= n < legs and legs <= layers[i - 1]:
                layers[i] = legs

    if ctx.prefer_symmetric:
        for i, n in enumerate(layers):
            limit = ctx.layer_capacity if i == 0 else layers[i - 1]
            if n % 2 and n + 1 <= limit:
                layers[i] = n + 1

    waste = 0
    for i in range(1, len(layers)):
        n = layers[i]
        if 0 < n < ctx.min_bars_per_layer:
            if ctx.min_bars_per_layer <= layers[i - 1]:
                waste += ctx.min_bars_per_layer - n
                layers[i] = ctx.min_bars_per_layer
            else:
                return FillingResult.fail(f"L{i + 1} con {n} barras, mínimo {ctx.min_bars_per_layer}")

    bad = _pyramid_ok(layers)
    if bad is not None:
        return FillingResult.fail("No se cumple la pirámide tras los ajustes de simetría")

    return FillingResult(is_valid=True, layer_counts=layers, waste_count=waste)


def pick_plan(greedy: FillingResult, balanced: FillingResult) -> Optional[FillingResult]:
    """Menos barras; a igualdad, menos desperdicio. Empate -> greedy."""
    if greedy.is_valid and not balanced.is_valid:
        return greedy
    if balanced.is_valid and not greedy.is_valid:
        return balanced
    if not greedy.is_valid:
        return None
    if balanced.total_bars < greedy.total_bars:
        return balanced
    if balanced.total_bars == greedy.total_bars and balanced.waste_count < greedy.waste_count:
        return balanced
    return greedy
