from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from risk_rollup.core.models import ActionCategory
from risk_rollup.domain.dots import DotColor
from risk_rollup.engine.aggregator import ScopeRollup, rollup_to_dict
from risk_rollup.engine.progress import ControlsProgress
from risk_rollup.engine.summarizer import StepSummary


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def category_meta(category: ActionCategory) -> Dict[str, Any]:
    return {
        "id": category.id,
        "name": category.name,
        "color": category.color,
        "sortOrder": category.sort_order,
    }


@dataclass(frozen=True)
class TaskFilters:
    task_category_id: Optional[str] = None
    task_phase_id: Optional[str] = None


@dataclass(frozen=True)
class StepFilters:
    dot: Optional[DotColor] = None
    category_id: Optional[str] = None


@dataclass(frozen=True)
class RecommendationScope:
    line_id: Optional[str] = None
    machine_id: Optional[str] = None
    task_id: Optional[str] = None
    limit: Optional[int] = None
    only_open: bool = False


@dataclass(frozen=True)
class ScopeSummary:
    id: str
    name: str
    rollup: ScopeRollup
    progress: ControlsProgress
    updated_at: Optional[datetime] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "updatedAt": iso(self.updated_at),
        }
        out.update(self.extra)
        out.update(rollup_to_dict(self.rollup))
        out["additionalControls"] = self.progress.to_dict()
        return out


@dataclass(frozen=True)
class StepRow:
    id: str
    step_no: int
    title: str
    summary: StepSummary
    recommended_action_category_ids: List[str] = field(default_factory=list)
    method: Optional[str] = None
    status: Optional[str] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        current = self.summary.worst_existing_band
        predicted = self.summary.worst_predicted_band
        return {
            "id": self.id,
            "stepNo": self.step_no,
            "title": self.title,
            "method": self.method,
            "status": self.status,
            "updatedAt": iso(self.updated_at),
            "currentBand": current.value if current else None,
            "predictedBand": predicted.value if predicted else None,
            "dot": self.summary.dot.value,
            "recommendedActionCategoryIds": list(self.recommended_action_category_ids),
            "trainingFixable": self.summary.training_fixable,
        }


@dataclass(frozen=True)
class StepsResponse:
    action_categories: List[ActionCategory]
    steps: List[StepRow]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actionCategories": [category_meta(c) for c in self.action_categories],
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass(frozen=True)
class NamedRef:
    id: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class RecommendationControlItem:
    id: str
    description: str
    status: str
    is_implemented: bool
    assessment_id: str
    step: Dict[str, Any]
    task: NamedRef
    machine: NamedRef
    line: NamedRef
    owner: Optional[str] = None
    due_date: Optional[datetime] = None
    implemented_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "owner": self.owner,
            "dueDate": iso(self.due_date),
            "status": self.status,
            "isImplemented": self.is_implemented,
            "implementedAt": iso(self.implemented_at),
            "assessmentId": self.assessment_id,
            "createdAt": iso(self.created_at),
            "step": dict(self.step),
            "task": self.task.to_dict(),
            "machine": self.machine.to_dict(),
            "line": self.line.to_dict(),
        }


@dataclass
class RecommendationGroup:
    category_id: str
    category_name: str
    color: Optional[str] = None
    total: int = 0
    implemented: int = 0
    overdue: int = 0
    controls: List[RecommendationControlItem] = field(default_factory=list)

    @property
    def open(self) -> int:
        return self.total - self.implemented

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "color": self.color,
            "total": self.total,
            "implemented": self.implemented,
            "overdue": self.overdue,
            "open": self.open,
            "controls": [c.to_dict() for c in self.controls],
        }


@dataclass(frozen=True)
class RecommendationsResponse:
    action_categories: List[ActionCategory]
    groups: List[RecommendationGroup]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "actionCategories": [category_meta(c) for c in self.action_categories],
            "groups": [g.to_dict() for g in self.groups],
        }
