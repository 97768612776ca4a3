# path: src/beam_rebar/services/settings.py
from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from beam_rebar.materials.rebar_db import RebarDB, default_inventory_path

DEFAULT_INVENTORY = [6, 8, 10, 12, 14, 16, 18, 20, 22, 25, 28, 32]


@dataclass
class GeneralConfig:
    available_diameters: List[int] = field(default_factory=lambda: list(DEFAULT_INVENTORY))


@dataclass
class BeamConfig:
    """
    Límites de armado longitudinal. Dimensiones en mm.
    Las fracciones de torsión reparten el área longitudinal de torsión entre caras.
    """
    main_bar_range: str = "16-25"
    cover_mm: float = 25.0
    estimated_stirrup_diameter: int = 10
    min_clear_spacing_mm: float = 25.0
    max_clear_spacing_mm: float = 300.0
    min_layer_spacing_mm: float = 25.0
    aggregate_size_mm: float = 20.0
    min_bars_per_layer: int = 2
    max_layers: int = 2
    preferred_diameter: int = 20

    prefer_even_diameter: bool = False
    prefer_single_diameter: bool = False
    prefer_symmetric: bool = True
    prefer_vertical_alignment: bool = True

    auto_legs_from_width: bool = True
    auto_legs_rules: str = "250-2 400-4 600-6"
    stirrup_legs: int = 2

    torsion_ratio_top: float = 0.25
    torsion_ratio_bot: float = 0.25
    torsion_ratio_side: float = 0.5

    web_bar_diameters: List[int] = field(default_factory=lambda: [12, 14])
    web_bar_min_height_mm: float = 700.0


@dataclass
class StirrupConfig:
    diameters: List[int] = field(default_factory=lambda: [8, 10])
    spacings: List[int] = field(default_factory=lambda: [100, 150, 200, 250])
    min_acceptable_spacing_mm: int = 100
    allow_odd_legs: bool = False
    enable_advanced_rules: bool = True


@dataclass
class CurtailmentConfig:
    """Largo de refuerzos como fracción del largo del tramo."""
    support_ratio: float = 0.33
    mid_span_ratio: float = 0.8
    lap_factor: float = 1.02


@dataclass
class RulesConfig:
    safety_factor: float = 1.0
    alignment_penalty_score: float = 25.0


@dataclass
class AnchorageConfig:
    """
    Longitudes de anclaje como múltiplos del diámetro:
      - straight_multiple: barra recta (Ld)
      - hooked_multiple: barra con gancho (Ldh)
    column_depth_mm: ancho de columna supuesto en apoyos extremos.
    """
    straight_multiple: float = 40.0
    hooked_multiple: float = 15.0
    column_depth_mm: float = 400.0


@dataclass
class SearchConfig:
    max_arrangements_per_section: int = 50
    max_layer_partitions: int = 10
    excess_threshold: float = 1.10
    top_solutions: int = 10
    pipeline_top_solutions: int = 5
    max_workers: int = 1
    step_budget: int = 0  # 0 = sin límite


@dataclass
class DesignSettings:
    """
    Configuración completa del diseño.
    Cualquier sub-sección puede ser None: cada consumidor usa los valores por defecto.
    """
    general: Optional[GeneralConfig] = field(default_factory=GeneralConfig)
    beam: Optional[BeamConfig] = field(default_factory=BeamConfig)
    stirrup: Optional[StirrupConfig] = field(default_factory=StirrupConfig)
    curtailment: Optional[CurtailmentConfig] = field(default_factory=CurtailmentConfig)
    rules: Optional[RulesConfig] = field(default_factory=RulesConfig)
    anchorage: Optional[AnchorageConfig] = field(default_factory=AnchorageConfig)
    search: Optional[SearchConfig] = field(default_factory=SearchConfig)
    notes: List[str] = field(default_factory=list)

    def general_cfg(self) -> GeneralConfig:
        return self.general if self.general is not None else GeneralConfig()

    def beam_cfg(self) -> BeamConfig:
        return self.beam if self.beam is not None else BeamConfig()

    def stirrup_cfg(self) -> StirrupConfig:
        return self.stirrup if self.stirrup is not None else StirrupConfig()

    def curtailment_cfg(self) -> CurtailmentConfig:
        return self.curtailment if self.curtailment is not None else CurtailmentConfig()

    def rules_cfg(self) -> RulesConfig:
        return self.rules if self.rules is not None else RulesConfig()

    def anchorage_cfg(self) -> AnchorageConfig:
        return self.anchorage if self.anchorage is not None else AnchorageConfig()

    def search_cfg(self) -> SearchConfig:
        return self.search if self.search is not None else SearchConfig()

    def load_inventory(self, path: Optional[str | Path] = None) -> RebarDB:
        """Carga el stock de barras y deja sus diámetros como general.available_diameters."""
        db = RebarDB.from_txt(path if path is not None else default_inventory_path())
        if self.general is None:
            self.general = GeneralConfig()
        self.general.available_diameters = db.diameters()
        return db

    @classmethod
    def from_txt(cls, path: str | Path) -> "DesignSettings":
        """
        Formato (una clave por línea):
            beam.cover_mm; 30
            beam.main_bar_range; 16-25
            general.available_diameters; 12 16 20 25
        Comentarios con # o //. Decimales con coma aceptados.
        """
        p = Path(path)
        if not p.exists():
            raise FileNotFoundError(f"No existe el archivo de configuración: {p}")

        settings = cls()
        sections: Dict[str, Any] = {f.name: getattr(settings, f.name) for f in fields(settings) if f.name != "notes"}

        for n, ln in enumerate(p.read_text(encoding="utf-8", errors="replace").splitlines(), start=1):
            t = ln.strip()
            if not t or t.startswith("#") or t.startswith("//"):
                continue
            if ";" not in t:
                raise ValueError(f"Línea {n}: se esperaba 'seccion.clave; valor' -> {t!r}")

            key, raw = [c.strip() for c in t.split(";", 1)]
            if "." not in key:
                settings.notes.append(f"Línea {n}: clave sin sección ignorada ({key}).")
                continue

            sec_name, attr = key.split(".", 1)
            target = sections.get(sec_name.strip().lower())
            attr = attr.strip()
            if target is None or not hasattr(target, attr):
                settings.notes.append(f"Línea {n}: clave desconocida ignorada ({key}).")
                continue

            current = getattr(target, attr)
            try:
                value = _coerce(raw, current)
            except ValueError as exc:
                raise ValueError(f"Línea {n}: valor inválido para {key}: {raw!r}") from exc
            setattr(target, attr, value)

        return settings


def _coerce(raw: str, current: Any) -> Any:
    t = (raw or "").strip()
    if isinstance(current, bool):
        low = t.lower()
        if low in {"1", "true", "si", "sí", "yes", "y"}:
            return True
        if low in {"0", "false", "no", "n"}:
            return False
        raise ValueError(t)
    if isinstance(current, int):
        return int(float(t.replace(",", ".")))
    if isinstance(current, float):
        return float(t.replace(",", "."))
    if isinstance(current, list):
        parts = t.replace(",", " ").split()
        return [int(x) for x in parts]
    return t


def require_settings(settings: Optional[DesignSettings], owner: str) -> DesignSettings:
    if settings is None:
        raise ValueError(f"{owner}: settings no puede ser None.")
    return settings
