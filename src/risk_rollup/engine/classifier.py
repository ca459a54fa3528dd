from __future__ import annotations

from risk_rollup.core.errors import InvalidInputError
from risk_rollup.domain.bands import MAX_RANK, UNASSESSED_RANK
from risk_rollup.domain.dots import DotColor


GREEN_MAX_RANK = 1
YELLOW_MAX_RANK = 4
# predicted rank at or below this counts as mitigated (orange)
MITIGATED_MAX_RANK = 3


class DotClassifier:
    """
    Priority dot for a step from its worst current and predicted rank.

    - nothing scored: gray
    - VERY_LOW: green
    - LOW / MEDIUM / MEDIUM_PLUS: yellow
    - HIGH / VERY_HIGH with a plan that brings it to MEDIUM or lower: orange
    - HIGH / VERY_HIGH otherwise: red

    The current rank splits at 1 and 4 while the predicted rank splits at 3.
    The asymmetry is the business rule, MEDIUM_PLUS after controls is not
    treated as mitigated.
    """

    def classify(self, current_rank: int, predicted_rank: int) -> DotColor:
        current = _check_rank(current_rank, "current")
        predicted = _check_rank(predicted_rank, "predicted")

        if current == UNASSESSED_RANK:
            return DotColor.GRAY
        if current <= GREEN_MAX_RANK:
            return DotColor.GREEN
        if current <= YELLOW_MAX_RANK:
            return DotColor.YELLOW
        if UNASSESSED_RANK < predicted <= MITIGATED_MAX_RANK:
            return DotColor.ORANGE
        return DotColor.RED


def classify(current_rank: int, predicted_rank: int) -> DotColor:
    return DotClassifier().classify(current_rank, predicted_rank)


def parse_dot(value: str | None) -> DotColor | None:
    if value is None or not str(value).strip():
        return None
    try:
        return DotColor(str(value).strip().lower())
    except ValueError:
        raise InvalidInputError(f"Invalid dot filter: {value}") from None


def _check_rank(rank: int, label: str) -> int:
    r = int(rank)
    if r < UNASSESSED_RANK or r > MAX_RANK:
        raise InvalidInputError(f"{label} rank out of range 0..{MAX_RANK}: {rank}")
    return r
