"""Land size recognition in OCR text"""

import re
from typing import List, Optional

from agriverify.domain.models import LandSizeReading

ACRES_TO_HECTARES = 0.4047
SQUARE_METERS_PER_HECTARE = 10_000

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?)"
_UNIT = r"(hectares?|ha|acres?|sq\.?\s*m|square\s*met(?:er|re)s?|sqm)"

# Keyword-anchored pattern first so it wins confidence ties
LAND_SIZE_PATTERNS = [
    re.compile(r"(?:area|land\s*size|farm\s*size)\s*:?\s*" + _NUMBER + r"\s*" + _UNIT + r"\b", re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(hectares?|ha)\b", re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(acres?)\b", re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(sq\.?\s*m|square\s*met(?:er|re)s?|sqm)\b", re.IGNORECASE),
]

CONTEXT_WORDS = ("total", "size", "cultivated", "agricultural")


def detect_unit(unit_text: str) -> str:
    unit_text = unit_text.lower()
    if unit_text.startswith("ha") or "hectare" in unit_text:
        return "hectares"
    if "acre" in unit_text:
        return "acres"
    if unit_text.startswith("sq") or "square" in unit_text:
        return "square_meters"
    return "unknown"


def to_hectares(value: float, unit: str) -> float:
    if unit == "acres":
        return value * ACRES_TO_HECTARES
    if unit == "square_meters":
        return value / SQUARE_METERS_PER_HECTARE
    return value


def match_confidence(match_text: str, full_text: str) -> float:
    """Heuristic 0-95 confidence that a match is the plot size"""
    match_text = match_text.lower()
    confidence = 50

    if "area" in match_text or "land" in match_text or "farm" in match_text:
        confidence += 30

    if "hectare" in match_text or "acre" in match_text:
        confidence += 20

    full_text = full_text.lower()
    if any(word in full_text for word in CONTEXT_WORDS):
        confidence += 10

    return min(confidence, 95)


def parse_land_size(text: str) -> Optional[LandSizeReading]:
    """
    Find the most plausible land size in document text.

    Returns None when nothing recognisable is present; that is a valid
    outcome, distinct from the extractor itself failing.
    """
    if not text:
        return None

    readings: List[LandSizeReading] = []
    for pattern in LAND_SIZE_PATTERNS:
        for match in pattern.finditer(text):
            value = float(match.group(1).replace(",", ""))
            if value <= 0:
                continue
            unit = detect_unit(match.group(2))
            readings.append(
                LandSizeReading(
                    hectares=to_hectares(value, unit),
                    confidence=match_confidence(match.group(0), text),
                    unit=unit,
                    original_value=value,
                )
            )

    if not readings:
        return None

    # max() keeps the first of equally confident readings
    return max(readings, key=lambda reading: reading.confidence)
