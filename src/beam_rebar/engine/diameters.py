from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable, List, Optional

if TYPE_CHECKING:
    from beam_rebar.domain.context import ProjectConstraints
    from beam_rebar.services.settings import DesignSettings

_SPLIT_RE = re.compile(r"[,;]")

# Salto máximo (mm) entre diámetros consecutivos para considerarlos un rango continuo
CONTIGUOUS_GAP_MM = 4


def _to_int(s: str) -> Optional[int]:
    t = (s or "").strip()
    if not t.isdigit():
        return None
    return int(t)


def parse_range(text: str, inventory: Optional[Iterable[int]]) -> List[int]:
    """
    Interpreta un texto de diámetros contra el stock disponible.

    Acepta rangos ("16-25"), listas ("16,20,25" / "16;20" / "18 20 22") y combinaciones
    ("12-16, 20, 25"). Solo se devuelven diámetros presentes en el inventario, ordenados.
    Texto vacío => todo el inventario. Tokens mal formados se ignoran.
    """
    inv = sorted(set(int(d) for d in (inventory or [])))
    if not (text or "").strip():
        return inv
    if not inv:
        return []

    out = set()
    for raw in _SPLIT_RE.split(text):
        part = raw.strip()
        if not part:
            continue
        if "-" in part:
            bounds = part.split("-")
            if len(bounds) != 2:
                continue
            a, b = _to_int(bounds[0]), _to_int(bounds[1])
            if a is None or b is None:
                continue
            lo, hi = min(a, b), max(a, b)
            out.update(d for d in inv if lo <= d <= hi)
        else:
            for tok in part.split():
                d = _to_int(tok)
                if d is not None and d in inv:
                    out.add(d)
    return sorted(out)


def is_valid_range(text: str, inventory: Optional[Iterable[int]]) -> bool:
    return len(parse_range(text, inventory)) > 0


def format_range(diameters: Iterable[int], compact: bool = True) -> str:
    """[16, 18, 20, 22, 28] -> "16-22, 28"."""
    ds = sorted(set(int(d) for d in diameters))
    if not ds:
        return ""
    if not compact:
        return ", ".join(str(d) for d in ds)

    chunks: List[str] = []
    start = prev = ds[0]
    for d in ds[1:]:
        if d - prev <= CONTIGUOUS_GAP_MM:
            prev = d
            continue
        chunks.append(str(start) if start == prev else f"{start}-{prev}")
        start = prev = d
    chunks.append(str(start) if start == prev else f"{start}-{prev}")
    return ", ".join(chunks)


def filter_even_diameters(diameters: Iterable[int]) -> List[int]:
    return [d for d in diameters if d % 2 == 0]


def closest_diameter(target: int, inventory: Optional[Iterable[int]], prefer_larger: bool = True) -> int:
    inv = sorted(set(int(d) for d in (inventory or [])))
    if not inv:
        return int(target)
    if prefer_larger:
        for d in inv:
            if d >= target:
                return d
        return inv[-1]
    return min(inv, key=lambda d: (abs(d - target), d))


def allowed_diameters(
    settings: "DesignSettings",
    constraints: Optional["ProjectConstraints"] = None,
) -> List[int]:
    """
    Diámetros candidatos para barras principales:
      1) override del proyecto (si hay)
      2) rango beam.main_bar_range contra general.available_diameters
      3) filtro de pares si beam.prefer_even_diameter
    Si el resultado queda vacío se usa 16..25 del inventario.
    """
    inventory = settings.general_cfg().available_diameters or []
    beam = settings.beam_cfg()

    if constraints is not None and constraints.allowed_diameters_override:
        ds = sorted(d for d in set(constraints.allowed_diameters_override) if d in inventory)
    else:
        ds = parse_range(beam.main_bar_range or "16-25", inventory)

    if beam.prefer_even_diameter:
        ds = filter_even_diameters(ds)

    if not ds:
        ds = sorted(d for d in set(inventory) if 16 <= d <= 25)
    return ds
