from __future__ import annotations

import re
from typing import Optional, Tuple

FACE_TOP = "Top"
FACE_BOT = "Bot"

ZONE_LEFT = "Left"
ZONE_MID = "Mid"
ZONE_RIGHT = "Right"


POSITION_KEY_RE = re.compile(r"^(?P<span>.+?)_(?P<face>Top|Bot)_(?P<zone>Left|Mid|Right)$")


def position_key(span_id: str, face: str, zone: str) -> str:
    """Ej: ("S1", "Top", "Left") -> "S1_Top_Left"."""
    return f"{span_id}_{face}_{zone}"


def stirrup_key(span_id: str, station: str) -> str:
    return f"{span_id}_Stirrup_{station}"


def parse_position_key(key: str) -> Optional[Tuple[str, str, str]]:
    m = POSITION_KEY_RE.match((key or "").strip())
    if not m:
        return None
    return m.group("span"), m.group("face"), m.group("zone")


def span_of_key(key: str) -> str:
    """
    Span al que pertenece una clave de posición.
    Si la clave no sigue el formato, se toma el prefijo hasta el primer "_".
    """
    parsed = parse_position_key(key)
    if parsed is not None:
        return parsed[0]
    return (key or "").split("_")[0]


def is_top_key(key: str) -> bool:
    parsed = parse_position_key(key)
    if parsed is not None:
        return parsed[1] == FACE_TOP
    return "Top" in (key or "")
