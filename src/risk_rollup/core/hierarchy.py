from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from risk_rollup.core.errors import NotFoundError
from risk_rollup.core.models import (
    Assessment,
    Control,
    HierarchySnapshot,
    Line,
    Machine,
    Step,
    Task,
)
from risk_rollup.domain.controls import ControlPhase


@dataclass(frozen=True)
class StepLocation:
    line: Line
    machine: Machine
    task: Task
    step: Step


@dataclass(frozen=True)
class ControlRecord:
    control: Control
    assessment: Assessment
    location: StepLocation


class HierarchyIndex:
    """
    Flat lookups and parent links over one snapshot.

    Built once per request; the snapshot itself is never mutated.
    """

    def __init__(self, snapshot: HierarchySnapshot):
        self.snapshot = snapshot
        self.lines: Dict[str, Line] = {}
        self.machines: Dict[str, Machine] = {}
        self.tasks: Dict[str, Task] = {}
        self.locations: List[StepLocation] = []
        self.assessments: Dict[str, Tuple[Assessment, StepLocation]] = {}
        self.controls: Dict[str, ControlRecord] = {}

        for line in snapshot.lines:
            self.lines[line.id] = line
            for machine in line.machines:
                self.machines[machine.id] = machine
                for task in machine.tasks:
                    self.tasks[task.id] = task
                    for step in task.steps:
                        loc = StepLocation(line=line, machine=machine, task=task, step=step)
                        self.locations.append(loc)
                        for assessment in step.assessments:
                            self.assessments[assessment.id] = (assessment, loc)
                            for control in assessment.controls:
                                self.controls[control.id] = ControlRecord(control, assessment, loc)

    def require_line(self, line_id: str) -> Line:
        line = self.lines.get(line_id)
        if line is None:
            raise NotFoundError("Line", line_id)
        return line

    def require_machine(self, machine_id: str) -> Machine:
        machine = self.machines.get(machine_id)
        if machine is None:
            raise NotFoundError("Machine", machine_id)
        return machine

    def require_task(self, task_id: str) -> Task:
        task = self.tasks.get(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def require_control(self, control_id: str) -> ControlRecord:
        record = self.controls.get(control_id)
        if record is None:
            raise NotFoundError("Control", control_id)
        return record

    def require_assessment(self, assessment_id: str) -> Tuple[Assessment, StepLocation]:
        found = self.assessments.get(assessment_id)
        if found is None:
            raise NotFoundError("Assessment", assessment_id)
        return found

    def steps_under(
        self,
        line_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> Iterator[StepLocation]:
        for loc in self.locations:
            if task_id is not None and loc.task.id != task_id:
                continue
            if machine_id is not None and loc.machine.id != machine_id:
                continue
            if line_id is not None and loc.line.id != line_id:
                continue
            yield loc

    def additional_controls_under(
        self,
        line_id: Optional[str] = None,
        machine_id: Optional[str] = None,
        task_id: Optional[str] = None,
    ) -> Iterator[ControlRecord]:
        for loc in self.steps_under(line_id=line_id, machine_id=machine_id, task_id=task_id):
            for assessment in loc.step.assessments:
                for control in assessment.controls:
                    if control.phase == ControlPhase.ADDITIONAL:
                        yield ControlRecord(control, assessment, loc)
