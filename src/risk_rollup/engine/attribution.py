from __future__ import annotations

from typing import Dict, Iterable, List

from risk_rollup.core.models import Step
from risk_rollup.engine.summarizer import StepSummary


class CategoryAttribution:
    """Recommendation categories carried by each step's ADDITIONAL controls."""

    def category_map(self, steps: Iterable[Step]) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for step in steps:
            ids: Dict[str, None] = {}
            for assessment in step.assessments:
                for control in assessment.additional_controls():
                    if control.category_id:
                        ids.setdefault(control.category_id, None)
            if ids:
                out[step.id] = list(ids)
        return out

    def high_risk_categories(self, summary: StepSummary, category_ids: Iterable[str]) -> List[str]:
        # Lower-risk steps never count, even with recommended actions.
        if not summary.is_high_risk:
            return []
        return list(category_ids)
