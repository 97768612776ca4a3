# path: tests/test_settings.py
import os
import tempfile

import pytest

from beam_rebar.materials.rebar_db import RebarDB, bar_area_cm2
from beam_rebar.services.settings import DEFAULT_INVENTORY, DesignSettings, require_settings


def _write(td, name, text):
    p = os.path.join(td, name)
    with open(p, "w", encoding="utf-8") as f:
        f.write(text)
    return p


def test_from_txt_reads_known_keys():
    with tempfile.TemporaryDirectory() as td:
        p = _write(td, "diseno.txt", (
            "# recubrimiento\n"
            "beam.cover_mm; 30,5\n"
            "general.available_diameters; 12 16 20\n"
            "beam.prefer_symmetric; no\n"
            "search.max_workers; 4\n"
            "// notas\n"
            "sin_seccion; 1\n"
            "beam.no_existe; 3\n"
        ))
        s = DesignSettings.from_txt(p)

    assert s.beam.cover_mm == pytest.approx(30.5)
    assert s.general.available_diameters == [12, 16, 20]
    assert s.beam.prefer_symmetric is False
    assert s.search.max_workers == 4
    assert len(s.notes) == 2


def test_from_txt_errors():
    with tempfile.TemporaryDirectory() as td:
        with pytest.raises(FileNotFoundError):
            DesignSettings.from_txt(os.path.join(td, "no.txt"))

        bad = _write(td, "bad.txt", "beam.cover_mm 30\n")
        with pytest.raises(ValueError):
            DesignSettings.from_txt(bad)

        bad = _write(td, "bad.txt", "beam.max_layers; muchas\n")
        with pytest.raises(ValueError):
            DesignSettings.from_txt(bad)


def test_missing_sections_fall_back_to_defaults():
    s = DesignSettings(beam=None, search=None)
    assert s.beam_cfg().cover_mm == 25.0
    assert s.search_cfg().excess_threshold == pytest.approx(1.10)
    with pytest.raises(ValueError):
        require_settings(None, "Prueba")
    assert require_settings(s, "Prueba") is s


def test_load_inventory_sets_available_diameters():
    s = DesignSettings(general=None)
    db = s.load_inventory()
    assert db.diameters() == DEFAULT_INVENTORY
    assert s.general.available_diameters == DEFAULT_INVENTORY
    assert db.get(16).area_cm2 == pytest.approx(bar_area_cm2(16))
    assert db.get(16).grade == "CB400-V"


def test_rebar_db_from_txt():
    with tempfile.TemporaryDirectory() as td:
        db = RebarDB.from_txt(_write(td, "stock.txt", "diameter_mm;area_cm2\n20;3,15\n16;\n"))
        assert db.diameters() == [16, 20]
        assert db.get(20).area_cm2 == pytest.approx(3.15)

        assert RebarDB.from_txt(_write(td, "plain.txt", "12\n25\n")).diameters() == [12, 25]

        with pytest.raises(ValueError):
            RebarDB.from_txt(_write(td, "empty.txt", "# vacío\n"))
