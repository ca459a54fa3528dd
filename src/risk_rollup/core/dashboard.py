from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from risk_rollup.core.engine import (
    apply_assessment_update,
    apply_control_update,
    replace_assessment,
    replace_control,
    set_control_implemented,
)
from risk_rollup.core.errors import InvalidInputError
from risk_rollup.core.hierarchy import HierarchyIndex
from risk_rollup.core.models import (
    Assessment,
    Control,
    HierarchySnapshot,
    Step,
    UpdateAssessmentRequest,
    UpdateControlRequest,
)
from risk_rollup.core.policy import RiskPolicy, default_policy
from risk_rollup.core.rollup_types import (
    RecommendationScope,
    RecommendationsResponse,
    ScopeSummary,
    StepFilters,
    StepRow,
    StepsResponse,
    TaskFilters,
)
from risk_rollup.engine.aggregator import RollupAggregator
from risk_rollup.engine.attribution import CategoryAttribution
from risk_rollup.engine.progress import ControlProgressCounter, is_implemented
from risk_rollup.engine.recommendations import RecommendationGrouper
from risk_rollup.engine.summarizer import StepSummarizer


logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HierarchySource(Protocol):
    def load(self) -> HierarchySnapshot:
        raise NotImplementedError

    def save(self, snapshot: HierarchySnapshot) -> None:
        raise NotImplementedError

    def append_audit(self, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        raise NotImplementedError


def _active_sorted(items: Sequence[Any]) -> List[Any]:
    return sorted((x for x in items if x.is_active), key=lambda x: (x.sort_order, x.name))


def parse_limit(value: Optional[str]) -> Optional[int]:
    if value is None or not str(value).strip():
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"Invalid limit: {value}") from None


@dataclass
class RiskDashboard:
    """
    Read-side rollups for the Line -> Machine -> Task -> Step hierarchy plus
    the few writes that change them.

    Every call loads the current snapshot from the source and recomputes;
    nothing is cached between calls.
    """

    source: HierarchySource
    policy: RiskPolicy = field(default_factory=default_policy)
    summarizer: Optional[StepSummarizer] = None
    attribution: CategoryAttribution = field(default_factory=CategoryAttribution)
    aggregator: Optional[RollupAggregator] = None
    progress: ControlProgressCounter = field(default_factory=ControlProgressCounter)
    recommender: RecommendationGrouper = field(default_factory=RecommendationGrouper)
    clock: Callable[[], datetime] = utc_now

    def __post_init__(self) -> None:
        if self.summarizer is None:
            self.summarizer = StepSummarizer(training_keyword=self.policy.training_keyword())
        if self.aggregator is None:
            self.aggregator = RollupAggregator(summarizer=self.summarizer, attribution=self.attribution)

    def _index(self) -> HierarchyIndex:
        return HierarchyIndex(self.source.load())

    def meta(self) -> Dict[str, Any]:
        snapshot = self.source.load()
        return {
            "actionCategories": [
                {"id": c.id, "name": c.name, "color": c.color, "sortOrder": c.sort_order}
                for c in _active_sorted(snapshot.action_categories)
            ],
            "taskCategories": [
                {"id": c.id, "name": c.name, "sortOrder": c.sort_order}
                for c in _active_sorted(snapshot.task_categories)
            ],
            "taskPhases": [
                {"id": p.id, "name": p.name, "sortOrder": p.sort_order}
                for p in _active_sorted(snapshot.task_phases)
            ],
        }

    def lines(self) -> List[ScopeSummary]:
        idx = self._index()
        now = self.clock()
        lines = sorted(idx.lines.values(), key=lambda x: x.name)

        keyed = [(loc.line.id, loc.step) for loc in idx.locations]
        buckets = self.aggregator.aggregate([l.id for l in lines], keyed)
        logger.debug("Rolled up %d steps over %d lines", len(keyed), len(lines))

        return [
            ScopeSummary(
                id=l.id,
                name=l.name,
                updated_at=l.updated_at,
                rollup=buckets[l.id],
                progress=self.progress.count(
                    (r.control for r in idx.additional_controls_under(line_id=l.id)), now
                ),
            )
            for l in lines
        ]

    def machines(self, line_id: str) -> List[ScopeSummary]:
        idx = self._index()
        line = idx.require_line(line_id)
        now = self.clock()
        machines = sorted(line.machines, key=lambda x: x.name)

        keyed = [(loc.machine.id, loc.step) for loc in idx.steps_under(line_id=line_id)]
        buckets = self.aggregator.aggregate([m.id for m in machines], keyed)

        return [
            ScopeSummary(
                id=m.id,
                name=m.name,
                updated_at=m.updated_at,
                rollup=buckets[m.id],
                progress=self.progress.count(
                    (r.control for r in idx.additional_controls_under(machine_id=m.id)), now
                ),
            )
            for m in machines
        ]

    def tasks(self, machine_id: str, filters: Optional[TaskFilters] = None) -> List[ScopeSummary]:
        f = filters or TaskFilters()
        idx = self._index()
        machine = idx.require_machine(machine_id)
        now = self.clock()

        tasks = [
            t
            for t in machine.tasks
            if (not f.task_category_id or t.category_id == f.task_category_id)
            and (not f.task_phase_id or t.phase_id == f.task_phase_id)
        ]
        tasks.sort(key=lambda x: x.name)

        # steps of filtered-out tasks fall through the aggregator unbucketed
        keyed = [(loc.task.id, loc.step) for loc in idx.steps_under(machine_id=machine_id)]
        buckets = self.aggregator.aggregate([t.id for t in tasks], keyed)

        return [
            ScopeSummary(
                id=t.id,
                name=t.name,
                updated_at=t.updated_at,
                rollup=buckets[t.id],
                progress=self.progress.count(
                    (r.control for r in idx.additional_controls_under(task_id=t.id)), now
                ),
                extra={"categoryId": t.category_id, "phaseId": t.phase_id},
            )
            for t in tasks
        ]

    def steps(self, task_id: str, filters: Optional[StepFilters] = None) -> StepsResponse:
        f = filters or StepFilters()
        idx = self._index()
        task = idx.require_task(task_id)

        steps: List[Step] = sorted(task.steps, key=lambda s: s.step_no)
        categories_by_step = self.attribution.category_map(steps)

        rows: List[StepRow] = []
        for s in steps:
            summary = self.summarizer.summarize(s.assessments)
            category_ids = categories_by_step.get(s.id, [])

            if f.dot is not None and summary.dot != f.dot:
                continue
            if f.category_id and f.category_id not in category_ids:
                continue

            rows.append(
                StepRow(
                    id=s.id,
                    step_no=s.step_no,
                    title=s.title,
                    method=s.method,
                    status=s.status,
                    updated_at=s.updated_at,
                    summary=summary,
                    recommended_action_category_ids=list(category_ids),
                )
            )

        return StepsResponse(
            action_categories=_active_sorted(idx.snapshot.action_categories),
            steps=rows,
        )

    def recommendations(self, scope: Optional[RecommendationScope] = None) -> RecommendationsResponse:
        sc = scope or RecommendationScope()
        idx = self._index()
        active_categories = _active_sorted(idx.snapshot.action_categories)

        default_limit = self.policy.recommendations_default_limit()
        max_limit = self.policy.recommendations_max_limit()
        limit = min(max(sc.limit if sc.limit is not None else default_limit, 1), max_limit)

        if sc.task_id:
            idx.require_task(sc.task_id)
            records = idx.additional_controls_under(task_id=sc.task_id)
        elif sc.machine_id:
            idx.require_machine(sc.machine_id)
            records = idx.additional_controls_under(machine_id=sc.machine_id)
        elif sc.line_id:
            idx.require_line(sc.line_id)
            records = idx.additional_controls_under(line_id=sc.line_id)
        else:
            records = idx.additional_controls_under()

        groups = self.recommender.group(
            records,
            categories=idx.snapshot.action_categories,
            ordered_categories=active_categories,
            now=self.clock(),
            limit=limit,
            only_open=sc.only_open,
        )
        return RecommendationsResponse(action_categories=active_categories, groups=groups)

    def set_control_implemented(self, control_id: str, implemented: bool, actor: Optional[str] = None) -> Dict[str, Any]:
        snapshot = self.source.load()
        record = HierarchyIndex(snapshot).require_control(control_id)

        updated = set_control_implemented(record.control, implemented, self.clock())
        self.source.save(replace_control(snapshot, updated))
        self.source.append_audit(
            "control_implemented" if implemented else "control_reopened",
            {"control_id": control_id, "actor": actor or "anonymous"},
        )
        logger.info("Control %s implemented=%s by %s", control_id, implemented, actor or "anonymous")

        return control_to_dict(updated)

    def update_control(self, control_id: str, request: UpdateControlRequest, actor: Optional[str] = None) -> Dict[str, Any]:
        snapshot = self.source.load()
        record = HierarchyIndex(snapshot).require_control(control_id)

        known = {c.id for c in snapshot.action_categories}
        if request.category_id and request.category_id not in known:
            raise InvalidInputError(f"Unknown action category: {request.category_id}")

        updated = apply_control_update(record.control, request, self.clock())
        self.source.save(replace_control(snapshot, updated))
        self.source.append_audit("control_updated", {"control_id": control_id, "actor": actor or "anonymous"})
        logger.info("Control %s updated by %s", control_id, actor or "anonymous")

        return control_to_dict(updated)

    def update_assessment(
        self,
        assessment_id: str,
        request: UpdateAssessmentRequest,
        actor: Optional[str] = None,
    ) -> Assessment:
        snapshot = self.source.load()
        before, _ = HierarchyIndex(snapshot).require_assessment(assessment_id)

        after = apply_assessment_update(
            before,
            request,
            resolver=self.policy.resolver(),
            active_matrix_id=self.policy.active_matrix_id,
        )
        self.source.save(replace_assessment(snapshot, after))
        self.source.append_audit(
            "assessment_updated",
            {
                "assessment_id": assessment_id,
                "actor": actor or "anonymous",
                "existing_band": _band_value(after.existing_band),
                "new_band": _band_value(after.new_band),
            },
        )
        logger.info(
            "Assessment %s rescored: existing=%s new=%s",
            assessment_id,
            _band_value(after.existing_band),
            _band_value(after.new_band),
        )
        return after


def control_to_dict(control: Control) -> Dict[str, Any]:
    out = control.model_dump(mode="json", by_alias=True)
    out["isImplemented"] = is_implemented(control.status, control.verified_at)
    out["implementedAt"] = out.get("verifiedAt")
    return out


def _band_value(band: Any) -> Optional[str]:
    return band.value if band is not None else None
