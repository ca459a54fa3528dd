from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from risk_rollup.core.models import Step
from risk_rollup.domain.dots import DotColor
from risk_rollup.engine.attribution import CategoryAttribution
from risk_rollup.engine.summarizer import StepSummarizer, StepSummary


CategoryCounts = Dict[str, int]

_RANK_FIELDS = ("unassessed", "very_low", "low", "medium", "medium_plus", "high", "very_high")


@dataclass
class RiskCounts:
    total: int = 0
    unassessed: int = 0
    very_low: int = 0
    low: int = 0
    medium: int = 0
    medium_plus: int = 0
    high: int = 0
    very_high: int = 0

    def bump(self, rank: int) -> None:
        self.total += 1
        name = _RANK_FIELDS[rank]
        setattr(self, name, getattr(self, name) + 1)

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "unassessed": self.unassessed,
            "veryLow": self.very_low,
            "low": self.low,
            "medium": self.medium,
            "mediumPlus": self.medium_plus,
            "high": self.high,
            "veryHigh": self.very_high,
        }


@dataclass
class DotCounts:
    gray: int = 0
    green: int = 0
    yellow: int = 0
    orange: int = 0
    red: int = 0

    def bump(self, dot: DotColor) -> None:
        setattr(self, dot.value, getattr(self, dot.value) + 1)

    def to_dict(self) -> Dict[str, int]:
        return {d.value: getattr(self, d.value) for d in DotColor}


@dataclass
class ScopeRollup:
    risk: RiskCounts = field(default_factory=RiskCounts)
    dots: DotCounts = field(default_factory=DotCounts)
    categories: CategoryCounts = field(default_factory=dict)
    training_fixable_high: int = 0

    def add(self, summary: StepSummary, high_risk_categories: Iterable[str]) -> None:
        self.risk.bump(summary.current_rank)
        self.dots.bump(summary.dot)
        for category_id in high_risk_categories:
            self.categories[category_id] = self.categories.get(category_id, 0) + 1
        if summary.training_fixable:
            self.training_fixable_high += 1


class RollupAggregator:
    """
    Group-by on step -> child scope id followed by a per-group reduction.

    Every known child gets a bucket up front, so a child without steps still
    reports zero counts. Steps keyed to an unknown child are skipped.
    """

    def __init__(
        self,
        summarizer: Optional[StepSummarizer] = None,
        attribution: Optional[CategoryAttribution] = None,
    ):
        self.summarizer = summarizer or StepSummarizer()
        self.attribution = attribution or CategoryAttribution()

    def aggregate(
        self,
        child_ids: Iterable[str],
        keyed_steps: Sequence[Tuple[str, Step]],
    ) -> Dict[str, ScopeRollup]:
        buckets: Dict[str, ScopeRollup] = {cid: ScopeRollup() for cid in child_ids}
        categories_by_step = self.attribution.category_map(step for _, step in keyed_steps)

        for child_id, step in keyed_steps:
            bucket = buckets.get(child_id)
            if bucket is None:
                continue

            summary = self.summarizer.summarize(step.assessments)
            bucket.add(
                summary,
                self.attribution.high_risk_categories(summary, categories_by_step.get(step.id, [])),
            )

        return buckets


def rollup_to_dict(rollup: ScopeRollup) -> Dict[str, Any]:
    return {
        "counts": rollup.risk.to_dict(),
        "dots": rollup.dots.to_dict(),
        "highRiskRecommendedCategoryCounts": dict(rollup.categories),
        "trainingFixableHigh": rollup.training_fixable_high,
    }
