from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from risk_rollup.domain.bands import RiskBand
from risk_rollup.domain.controls import (
    PROBABILITY_SCALE,
    SEVERITY_SCALE,
    ControlPhase,
    ControlStatus,
    ControlType,
)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionCategory(CamelModel):
    id: str
    name: str = Field(..., min_length=1)
    color: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True


class TaskCategory(CamelModel):
    id: str
    name: str = Field(..., min_length=1)
    sort_order: int = 0
    is_active: bool = True


class TaskPhase(CamelModel):
    id: str
    name: str = Field(..., min_length=1)
    sort_order: int = 0
    is_active: bool = True


class Control(CamelModel):
    id: str
    phase: ControlPhase
    type: ControlType = ControlType.OTHER
    description: str = ""
    category_id: Optional[str] = None
    owner: Optional[str] = None
    due_date: Optional[datetime] = None
    status: ControlStatus = ControlStatus.OPEN
    verified_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @field_validator("due_date", "verified_at", "created_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class Assessment(CamelModel):
    id: str
    hazard_id: Optional[str] = None
    matrix_id: Optional[str] = None

    unsafe_conditions: Optional[str] = None
    unsafe_acts: Optional[str] = None
    potential_harm: Optional[str] = None
    notes: Optional[str] = None

    existing_severity: Optional[int] = None
    existing_probability: Optional[int] = None
    existing_rating: Optional[int] = None
    existing_band: Optional[RiskBand] = None

    new_severity: Optional[int] = None
    new_probability: Optional[int] = None
    new_rating: Optional[int] = None
    new_band: Optional[RiskBand] = None

    controls: List[Control] = Field(default_factory=list)

    def additional_controls(self) -> List[Control]:
        return [c for c in self.controls if c.phase == ControlPhase.ADDITIONAL]


class Step(CamelModel):
    id: str
    step_no: int = Field(..., ge=0)
    title: str = ""
    method: Optional[str] = None
    status: Optional[str] = None
    updated_at: Optional[datetime] = None
    assessments: List[Assessment] = Field(default_factory=list)

    @field_validator("updated_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class Task(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    category_id: Optional[str] = None
    phase_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    steps: List[Step] = Field(default_factory=list)

    @field_validator("updated_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class Machine(CamelModel):
    id: str
    name: str
    updated_at: Optional[datetime] = None
    tasks: List[Task] = Field(default_factory=list)

    @field_validator("updated_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class Line(CamelModel):
    id: str
    name: str
    updated_at: Optional[datetime] = None
    machines: List[Machine] = Field(default_factory=list)

    @field_validator("updated_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)


class HierarchySnapshot(CamelModel):
    lines: List[Line] = Field(default_factory=list)
    action_categories: List[ActionCategory] = Field(default_factory=list)
    task_categories: List[TaskCategory] = Field(default_factory=list)
    task_phases: List[TaskPhase] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "HierarchySnapshot":
        seen: Set[Tuple[str, str]] = set()
        for kind, ident in _walk_ids(self):
            if (kind, ident) in seen:
                raise ValueError(f"Duplicate {kind} id: {ident}")
            seen.add((kind, ident))
        return self


def _walk_ids(snapshot: HierarchySnapshot):
    for line in snapshot.lines:
        yield "line", line.id
        for machine in line.machines:
            yield "machine", machine.id
            for task in machine.tasks:
                yield "task", task.id
                for step in task.steps:
                    yield "step", step.id
                    for assessment in step.assessments:
                        yield "assessment", assessment.id
                        for control in assessment.controls:
                            yield "control", control.id


def _check_scale(value: Optional[int], scale: tuple, label: str) -> Optional[int]:
    if value is None:
        return None
    if int(value) not in scale:
        allowed = ", ".join(str(x) for x in scale)
        raise ValueError(f"{label} must be one of {allowed}.")
    return int(value)


class UpdateAssessmentRequest(CamelModel):
    """
    Partial update of an assessment.

    A field left out of the request keeps its current value; a field sent as
    null clears it. `model_fields_set` tells the two apart.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    unsafe_conditions: Optional[str] = None
    unsafe_acts: Optional[str] = None
    potential_harm: Optional[str] = None
    notes: Optional[str] = None

    existing_severity: Optional[int] = None
    existing_probability: Optional[int] = None
    new_severity: Optional[int] = None
    new_probability: Optional[int] = None

    @field_validator("existing_severity", "new_severity")
    @classmethod
    def validate_severity(cls, v: Optional[int]) -> Optional[int]:
        return _check_scale(v, SEVERITY_SCALE, "Severity")

    @field_validator("existing_probability", "new_probability")
    @classmethod
    def validate_probability(cls, v: Optional[int]) -> Optional[int]:
        return _check_scale(v, PROBABILITY_SCALE, "Probability")

    def provided(self, name: str) -> bool:
        return name in self.model_fields_set


class UpdateControlRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    phase: Optional[ControlPhase] = None
    type: Optional[ControlType] = None
    description: Optional[str] = None
    category_id: Optional[str] = None
    owner: Optional[str] = None
    due_date: Optional[datetime] = None

    is_verified: Optional[bool] = None
    status: Optional[ControlStatus] = None
    verified_at: Optional[datetime] = None

    @field_validator("due_date", "verified_at")
    @classmethod
    def validate_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v)

    def provided(self, name: str) -> bool:
        return name in self.model_fields_set
