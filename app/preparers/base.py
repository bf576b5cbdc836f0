from __future__ import annotations
from typing import Any, Optional


def to_float(value: Any, default: float = 0.0) -> float:
    """Source prices and totals arrive as strings, numbers or blanks."""
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def optional_price(value: Any) -> Optional[float]:
    price = to_float(value)
    return price if price > 0 else None


def custom_field(name: str, value: Any) -> dict:
    return {"name": name, "value": str(value)}
