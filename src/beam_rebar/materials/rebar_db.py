from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional

# Kg/m de una barra: d²/162 (equivale a ρ=7850 kg/m³ con d en mm)
UNIT_WEIGHT_DIVISOR = 162.0


def bar_area_cm2(diameter_mm: float) -> float:
    """Área de una barra en cm² (d en mm)."""
    d = float(diameter_mm)
    return math.pi * d * d / 400.0


def unit_weight_kg_m(diameter_mm: float) -> float:
    d = float(diameter_mm)
    return d * d / UNIT_WEIGHT_DIVISOR


def bar_weight_kg(diameter_mm: float, length_mm: float, count: int = 1) -> float:
    """Peso de 'count' barras de largo length_mm."""
    if count <= 0 or diameter_mm <= 0 or length_mm <= 0:
        return 0.0
    return unit_weight_kg_m(diameter_mm) * (float(length_mm) / 1000.0) * int(count)


@dataclass(frozen=True)
class RebarBar:
    """
    Barra disponible en stock.

    Campos mínimos: diameter_mm. El resto se deriva si no viene en el archivo.
    """
    diameter_mm: int
    grade: str = ""
    area_cm2: float = 0.0
    unit_weight_kg_m: float = 0.0
    notes: str = ""


class RebarDB:
    def __init__(self, bars: Iterable[RebarBar]):
        self.bars: List[RebarBar] = sorted(bars, key=lambda b: b.diameter_mm)
        self.by_diameter: Dict[int, RebarBar] = {b.diameter_mm: b for b in self.bars}

    def diameters(self) -> List[int]:
        return [b.diameter_mm for b in self.bars]

    def get(self, diameter_mm: int) -> Optional[RebarBar]:
        return self.by_diameter.get(int(diameter_mm))

    @classmethod
    def from_txt(cls, path: str | Path) -> "RebarDB":
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"No existe el archivo de stock de barras: {p}")

        rows: List[List[str]] = []
        for ln in p.read_text(encoding="utf-8", errors="replace").splitlines():
            t = ln.strip()
            if not t:
                continue
            if t.startswith("#") or t.startswith("//"):
                continue
            rows.append([c.strip() for c in t.split(";")])

        if not rows:
            raise ValueError("Archivo de stock vacío o sin filas válidas.")

        header = [h.strip().lower() for h in rows[0]]
        has_header = any(h in {"diameter_mm", "diameter", "d_mm", "grade"} for h in header)
        data_rows = rows[1:] if has_header else rows

        def idx(*names: str) -> Optional[int]:
            if not has_header:
                return None
            for name in names:
                if name in header:
                    return header.index(name)
            return None

        i_d = idx("diameter_mm", "diameter", "d_mm")
        i_grade = idx("grade")
        i_area = idx("area_cm2")
        i_w = idx("unit_weight_kg_m", "kg_m")
        i_notes = idx("notes")

        def get_cell(row: List[str], i: Optional[int]) -> str:
            if i is None:
                return ""
            return row[i] if i < len(row) else ""

        def try_float(s: str) -> Optional[float]:
            t = (s or "").strip().replace(",", ".")
            if t == "":
                return None
            try:
                return float(t)
            except ValueError:
                return None

        bars: List[RebarBar] = []
        for r in data_rows:
            raw_d = get_cell(r, i_d) if i_d is not None else (r[0] if r else "")
            d = try_float(raw_d)
            if d is None or d <= 0:
                continue
            area = try_float(get_cell(r, i_area))
            w = try_float(get_cell(r, i_w))
            bars.append(RebarBar(
                diameter_mm=int(round(d)),
                grade=get_cell(r, i_grade),
                area_cm2=area if area is not None else bar_area_cm2(d),
                unit_weight_kg_m=w if w is not None else unit_weight_kg_m(d),
                notes=get_cell(r, i_notes),
            ))

        if not bars:
            raise ValueError("No se pudieron cargar barras: falta la columna de diámetro.")

        return cls(bars)


def default_inventory_path() -> Path:
    """
    Ruta por defecto dentro del paquete:
      src/beam_rebar/data/rebar_inventory.txt
    """
    here = Path(__file__).resolve()
    return here.parents[1] / "data" / "rebar_inventory.txt"
