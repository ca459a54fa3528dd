from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from risk_rollup.core.models import Assessment
from risk_rollup.domain.bands import (
    UNASSESSED_RANK,
    RiskBand,
    band_of,
    is_high_risk_rank,
    rank_of,
)
from risk_rollup.domain.controls import ControlPhase, ControlType
from risk_rollup.domain.dots import DotColor
from risk_rollup.engine.classifier import DotClassifier


TRAINING_KEYWORD = "train"


def is_training_recommendation(
    control_type: ControlType | str | None,
    description: str | None,
    keyword: str = TRAINING_KEYWORD,
) -> bool:
    """
    True when a control reads as a training action.

    The TRAINING type tag is canonical. The substring match on the
    description is a fuzzy fallback for controls typed ADMIN/OTHER: it also
    matches words like "restrain" and misses "induction" or "toolbox talk".
    """
    if getattr(control_type, "value", control_type) == ControlType.TRAINING.value:
        return True
    needle = (keyword or "").strip().lower()
    if not needle:
        return False
    return needle in (description or "").lower()


@dataclass(frozen=True)
class StepSummary:
    current_rank: int
    predicted_rank: int
    dot: DotColor
    has_training_recommendation: bool = False

    @property
    def worst_existing_band(self) -> Optional[RiskBand]:
        return band_of(self.current_rank)

    @property
    def worst_predicted_band(self) -> Optional[RiskBand]:
        return band_of(self.predicted_rank)

    @property
    def is_high_risk(self) -> bool:
        return is_high_risk_rank(self.current_rank)

    @property
    def training_fixable(self) -> bool:
        return self.is_high_risk and self.has_training_recommendation


class StepSummarizer:
    def __init__(self, classifier: Optional[DotClassifier] = None, training_keyword: str = TRAINING_KEYWORD):
        self.classifier = classifier or DotClassifier()
        self.training_keyword = training_keyword

    def summarize(self, assessments: Iterable[Assessment]) -> StepSummary:
        current = UNASSESSED_RANK
        predicted = UNASSESSED_RANK
        training = False

        for a in assessments:
            current = max(current, rank_of(a.existing_band))
            predicted = max(predicted, rank_of(a.new_band))
            if not training:
                training = any(
                    is_training_recommendation(c.type, c.description, self.training_keyword)
                    for c in a.controls
                    if c.phase == ControlPhase.ADDITIONAL
                )

        return StepSummary(
            current_rank=current,
            predicted_rank=predicted,
            dot=self.classifier.classify(current, predicted),
            has_training_recommendation=training,
        )
