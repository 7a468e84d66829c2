from __future__ import annotations

from typing import Mapping, NamedTuple

from ..logging_setup import get_logger

logger = get_logger("render")


class ScorePredicateRange(NamedTuple):
    min_score: float
    max_score: float
    predicate: str


DEFAULT_PREDICATE_RANGES: tuple[ScorePredicateRange, ...] = (
    ScorePredicateRange(90, 100, "SANGAT BAIK"),
    ScorePredicateRange(75, 89, "BAIK"),
    ScorePredicateRange(0, 74, "KURANG BAIK"),
)

SCORE_FIELD = "nilai"
PREDICATE_FIELD = "prestasi"


def _numeric(value) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    return None if number != number else number


def get_score_predicate(score, ranges=DEFAULT_PREDICATE_RANGES) -> str:
    """Predicate label for ``score``; empty for blanks, text and out-of-range values."""

    number = _numeric(score)
    if number is None:
        return ""
    for band in ranges:
        if band.min_score <= number <= band.max_score:
            return band.predicate
    logger.warning("[render] score %s matches no predicate range", number)
    return ""


def auto_populate_prestasi(values: Mapping[str, object] | None) -> dict[str, object]:
    """Fill an empty ``prestasi`` from a numeric ``nilai``; text scores are left alone."""

    result = dict(values or {})
    score = result.get(SCORE_FIELD)
    current = result.get(PREDICATE_FIELD)
    if score is None or not str(score).strip() or (current is not None and str(current).strip()):
        return result
    predicate = get_score_predicate(score)
    if predicate:
        result[PREDICATE_FIELD] = predicate
        logger.info("[render] prestasi auto-populated nilai=%s → %s", score, predicate)
    return result


def batch_auto_populate_prestasi(values_by_member: Mapping[str, Mapping[str, object]]) -> dict:
    return {member: auto_populate_prestasi(values) for member, values in values_by_member.items()}
