from datetime import datetime, timezone
from typing import Optional

def to_int(v) -> Optional[int]:
    try:
        if v is None or v == "" or str(v).lower() == "null":
            return None
        return int(float(v))
    except Exception:
        return None

def to_float(v) -> Optional[float]:
    try:
        if v is None or v == "" or str(v).lower() == "null":
            return None
        return float(v)
    except Exception:
        return None

def to_str(v) -> str:
    return "" if v is None else str(v)

def to_bool(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in {"1", "true", "yes", "y"}
    return bool(v)

def to_datetime(v) -> Optional[datetime]:
    """Parse ISO-8601 strings (including a trailing ``Z``) or epoch milliseconds."""
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        return v
    try:
        if isinstance(v, (int, float)):
            return datetime.fromtimestamp(v / 1000.0, tz=timezone.utc)
        text = str(v).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        return datetime.fromisoformat(text)
    except Exception:
        return None

def clamp(v: Optional[float], lower: float, upper: float) -> float:
    if v is None:
        return lower
    return max(lower, min(upper, v))
