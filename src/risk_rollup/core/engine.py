from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from risk_rollup.core.errors import InvalidInputError, NotFoundError
from risk_rollup.core.models import (
    Assessment,
    Control,
    HierarchySnapshot,
    UpdateAssessmentRequest,
    UpdateControlRequest,
    as_utc,
)
from risk_rollup.domain.controls import ControlPhase, ControlStatus
from risk_rollup.engine.matrix import MatrixResolver


_TEXT_FIELDS = ("unsafe_conditions", "unsafe_acts", "potential_harm", "notes")


def apply_assessment_update(
    before: Assessment,
    request: UpdateAssessmentRequest,
    resolver: MatrixResolver,
    active_matrix_id: str,
) -> Assessment:
    """
    Merge a partial update into an assessment and re-stamp rating/band.

    Each snapshot (existing, new) is re-resolved only when its severity or
    probability is part of the request. If either value is unset after the
    merge, rating and band are cleared.
    """
    data: Dict[str, Any] = {}

    for name in _TEXT_FIELDS:
        if request.provided(name):
            data[name] = getattr(request, name)

    matrix_id = before.matrix_id or active_matrix_id

    for prefix in ("existing", "new"):
        sev_field = f"{prefix}_severity"
        prob_field = f"{prefix}_probability"
        if not (request.provided(sev_field) or request.provided(prob_field)):
            continue

        severity = getattr(request, sev_field) if request.provided(sev_field) else getattr(before, sev_field)
        probability = getattr(request, prob_field) if request.provided(prob_field) else getattr(before, prob_field)

        data[sev_field] = severity
        data[prob_field] = probability

        if severity is not None and probability is not None:
            cell = resolver.resolve(matrix_id, severity, probability)
            data[f"{prefix}_rating"] = cell.rating
            data[f"{prefix}_band"] = cell.band
            data["matrix_id"] = matrix_id
        else:
            data[f"{prefix}_rating"] = None
            data[f"{prefix}_band"] = None

    return before.model_copy(update=data)


def apply_control_update(before: Control, request: UpdateControlRequest, now: datetime) -> Control:
    next_phase = request.phase if request.phase is not None else before.phase

    if next_phase != ControlPhase.ADDITIONAL and request.provided("due_date"):
        raise InvalidInputError("dueDate is only allowed for ADDITIONAL controls")

    next_category = request.category_id if request.provided("category_id") else before.category_id
    if next_phase == ControlPhase.ADDITIONAL and not next_category:
        raise InvalidInputError("categoryId required for ADDITIONAL controls")

    data: Dict[str, Any] = {}

    if request.phase is not None:
        data["phase"] = request.phase
    if request.type is not None:
        data["type"] = request.type

    if request.description is not None:
        description = request.description.strip()
        if not description:
            raise InvalidInputError("description cannot be blank")
        data["description"] = description

    if request.provided("category_id"):
        data["category_id"] = request.category_id
    if request.provided("owner"):
        data["owner"] = request.owner
    if request.provided("due_date"):
        data["due_date"] = request.due_date

    # explicit verification toggle > explicit status > existing
    if request.is_verified is not None:
        if request.is_verified:
            data["status"] = ControlStatus.VERIFIED
            data["verified_at"] = as_utc(now)
        else:
            data["status"] = ControlStatus.IMPLEMENTED if before.status == ControlStatus.VERIFIED else before.status
            data["verified_at"] = None
    elif request.status is not None:
        data["status"] = request.status
        if request.status == ControlStatus.VERIFIED:
            data["verified_at"] = as_utc(now)

    if request.provided("verified_at"):
        data["verified_at"] = request.verified_at
        if request.verified_at is not None and "status" not in data:
            data["status"] = ControlStatus.VERIFIED

    return before.model_copy(update=data)


def set_control_implemented(control: Control, implemented: bool, now: datetime) -> Control:
    if control.phase != ControlPhase.ADDITIONAL:
        raise InvalidInputError("Only ADDITIONAL controls can be marked implemented.")

    if implemented:
        return control.model_copy(update={"status": ControlStatus.IMPLEMENTED, "verified_at": as_utc(now)})
    return control.model_copy(update={"status": ControlStatus.OPEN, "verified_at": None})


def replace_assessment(snapshot: HierarchySnapshot, updated: Assessment) -> HierarchySnapshot:
    out = snapshot.model_copy(deep=True)
    for step in _iter_steps(out):
        for i, assessment in enumerate(step.assessments):
            if assessment.id == updated.id:
                step.assessments[i] = updated
                return out
    raise NotFoundError("Assessment", updated.id)


def replace_control(snapshot: HierarchySnapshot, updated: Control) -> HierarchySnapshot:
    out = snapshot.model_copy(deep=True)
    for step in _iter_steps(out):
        for assessment in step.assessments:
            for i, control in enumerate(assessment.controls):
                if control.id == updated.id:
                    assessment.controls[i] = updated
                    return out
    raise NotFoundError("Control", updated.id)


def _iter_steps(snapshot: HierarchySnapshot):
    for line in snapshot.lines:
        for machine in line.machines:
            for task in machine.tasks:
                yield from task.steps
