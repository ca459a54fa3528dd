from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Sequence

from risk_rollup.core.hierarchy import ControlRecord
from risk_rollup.core.models import ActionCategory
from risk_rollup.core.rollup_types import NamedRef, RecommendationControlItem, RecommendationGroup
from risk_rollup.engine.progress import is_implemented, is_overdue


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)
_UNORDERED = 9999


class RecommendationGrouper:
    """
    Groups categorised ADDITIONAL controls by action category.

    Rows are ordered by due date (undated last), then newest first, and cut
    to `limit` before grouping. Groups follow the active category order;
    categories outside it go last.
    """

    def group(
        self,
        records: Iterable[ControlRecord],
        categories: Sequence[ActionCategory],
        ordered_categories: Sequence[ActionCategory],
        now: datetime,
        limit: int,
        only_open: bool = False,
    ) -> List[RecommendationGroup]:
        by_id: Dict[str, ActionCategory] = {c.id: c for c in categories}

        rows = [r for r in records if r.control.category_id]
        if only_open:
            rows = [r for r in rows if not is_implemented(r.control.status, r.control.verified_at)]

        rows.sort(key=lambda r: r.control.created_at or _EPOCH, reverse=True)
        rows.sort(key=lambda r: (r.control.due_date is None, r.control.due_date or _EPOCH))
        rows = rows[:limit]

        groups: Dict[str, RecommendationGroup] = {}
        for r in rows:
            category = by_id.get(r.control.category_id or "")
            if category is None:
                continue

            g = groups.get(category.id)
            if g is None:
                g = RecommendationGroup(
                    category_id=category.id,
                    category_name=category.name,
                    color=category.color,
                )
                groups[category.id] = g

            done = is_implemented(r.control.status, r.control.verified_at)
            g.total += 1
            if done:
                g.implemented += 1
            elif is_overdue(r.control, now):
                g.overdue += 1
            g.controls.append(_control_item(r, done))

        position = {c.id: i for i, c in enumerate(ordered_categories)}
        out = list(groups.values())
        out.sort(key=lambda g: position.get(g.category_id, _UNORDERED))
        return out


def _control_item(record: ControlRecord, done: bool) -> RecommendationControlItem:
    c = record.control
    loc = record.location
    return RecommendationControlItem(
        id=c.id,
        description=c.description,
        owner=c.owner,
        due_date=c.due_date,
        status=c.status.value,
        is_implemented=done,
        implemented_at=c.verified_at,
        created_at=c.created_at,
        assessment_id=record.assessment.id,
        step={"id": loc.step.id, "stepNo": loc.step.step_no, "title": loc.step.title},
        task=NamedRef(loc.task.id, loc.task.name),
        machine=NamedRef(loc.machine.id, loc.machine.name),
        line=NamedRef(loc.line.id, loc.line.name),
    )
