import re
from collections.abc import Iterable

from medaid.models.profile import Severity, VitalsRecord

MAX_SCORE = 100
CRITICAL_PENALTY = 15
ELEVATED_PENALTY = 5

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:\.\d*)?|\.\d+))")


def compute_health_score(vitals: Iterable[VitalsRecord]) -> int:
    """Score in [0, 100]: 100 minus 15 per Critical and 5 per Elevated vital.

    An empty collection scores 100. Only severity counts matter, so the
    result does not depend on order.
    """
    criticals = 0
    elevateds = 0
    for vital in vitals:
        if vital.severity == Severity.CRITICAL:
            criticals += 1
        elif vital.severity == Severity.ELEVATED:
            elevateds += 1
    return max(0, MAX_SCORE - criticals * CRITICAL_PENALTY - elevateds * ELEVATED_PENALTY)


def health_status(score: int) -> str:
    if score > 80:
        return "Optimal Status"
    if score > 50:
        return "Action Recommended"
    return "Attention Required"


def vitals_timeline(vitals: Iterable[VitalsRecord]) -> list[VitalsRecord]:
    # sorted() is stable, so equal timestamps keep insertion order
    return sorted(vitals, key=lambda v: v.timestamp)


def parse_reading(reading: str) -> float:
    """Leading numeric part of a free-text reading ("120/80" -> 120.0), 0.0 if none."""
    match = _LEADING_NUMBER.match(reading or "")
    if not match:
        return 0.0
    return float(match.group(1))


def trend_points(vitals: Iterable[VitalsRecord], limit: int = 12) -> list[dict]:
    if limit <= 0:
        return []
    timeline = vitals_timeline(vitals)[-limit:]
    return [
        {"timestamp": v.timestamp, "parameter": v.parameter, "value": parse_reading(v.reading)}
        for v in timeline
    ]
