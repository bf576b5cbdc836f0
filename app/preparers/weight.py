"""Weight normalization.

Source weights are free text in grams: either a single value ("3.5g") or a
range ("2.9-3.5"). Ranges are often entered with the decimal point dropped
from the lower bound ("29-3.5"), which is repaired before the maximum of
the pair becomes the canonical weight.
"""
from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Optional

log = logging.getLogger(__name__)

GRAMS_TO_OUNCES = 0.035274
MAX_SHIFT_DIVISIONS = 4

_DASHES = re.compile(r"[-–—]")
_NON_NUMERIC = re.compile(r"[^0-9.]")


def parse_weight_value(value: str) -> float:
    cleaned = _NON_NUMERIC.sub("", value or "")
    try:
        return float(cleaned) if cleaned else 0.0
    except ValueError:
        return 0.0


def _fmt(value: float) -> str:
    return f"{round(value, 4):g}"


@dataclass(frozen=True)
class NormalizedWeight:
    original: str
    grams: float
    low: Optional[float] = None
    high: Optional[float] = None

    @property
    def is_range(self) -> bool:
        return self.low is not None and self.high is not None

    @property
    def range_label(self) -> str:
        if not self.is_range:
            return ""
        return f"{_fmt(self.low)}-{_fmt(self.high)} grams"


def _shift_basic(first: float, second: float) -> float:
    if first > second and first > 10 and second < 10:
        return first / 10
    return first


def _shift_thorough(first: float, second: float) -> float:
    if first <= second:
        return first
    shifted = first
    for _ in range(MAX_SHIFT_DIVISIONS):
        shifted = shifted / 10
        if shifted <= second:
            return shifted
    return first


def normalize_weight(text: Optional[str], thorough: bool = False) -> NormalizedWeight:
    """Parse a source weight string into grams.

    ``thorough`` keeps shifting the lower bound's decimal point (up to four
    places) until it no longer exceeds the upper bound; the basic repair
    only handles the single-digit shift seen in most bad entries.
    """
    original = (text or "").strip()
    if not original:
        return NormalizedWeight(original="", grams=0.0)

    parts = [p.strip() for p in _DASHES.split(original)]
    if len(parts) != 2 or not parts[0] or not parts[1]:
        return NormalizedWeight(original=original, grams=round(parse_weight_value(original), 2))

    first, second = parse_weight_value(parts[0]), parse_weight_value(parts[1])
    fixed = _shift_thorough(first, second) if thorough else _shift_basic(first, second)
    if fixed != first:
        log.info("Fixed weight range %r -> %s-%s", original, _fmt(fixed), _fmt(second))

    low, high = min(fixed, second), max(fixed, second)
    return NormalizedWeight(original=original, grams=round(high, 2), low=low, high=high)


def convert_grams(grams: float, unit: str) -> float:
    """Express grams in the destination's weight unit."""
    if unit == "oz":
        return round(grams * GRAMS_TO_OUNCES, 2)
    if unit == "g":
        return round(grams, 2)
    raise ValueError(f"Unsupported weight unit: {unit}")


def destination_weight(text: Optional[str], unit: str, thorough: bool = False) -> float:
    return convert_grams(normalize_weight(text, thorough=thorough).grams, unit)
