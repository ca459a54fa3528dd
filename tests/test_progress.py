from datetime import timedelta

import pytest

from builders import NOW, control

from risk_rollup.core.errors import InvalidInputError
from risk_rollup.engine.progress import ControlProgressCounter, is_implemented, is_overdue


def test_is_implemented_accepts_either_signal():
    assert not is_implemented("OPEN", None)
    assert is_implemented("IMPLEMENTED", None)
    assert is_implemented("VERIFIED", None)
    assert is_implemented("OPEN", NOW)
    assert not is_implemented(None, None)


def test_overdue_only_for_open_controls_past_due():
    yesterday = NOW - timedelta(days=1)
    tomorrow = NOW + timedelta(days=1)

    assert is_overdue(control("c1", due_date=yesterday), NOW)
    assert not is_overdue(control("c2", due_date=tomorrow), NOW)
    assert not is_overdue(control("c3"), NOW)
    assert not is_overdue(control("c4", due_date=yesterday, status="IMPLEMENTED"), NOW)
    assert not is_overdue(control("c5", due_date=yesterday, verified_at=yesterday), NOW)


def test_counter_ignores_existing_controls():
    yesterday = NOW - timedelta(days=1)
    controls = [
        control("c1", due_date=yesterday),
        control("c2", status="VERIFIED"),
        control("c3"),
        control("c4", phase="EXISTING", due_date=None),
    ]
    progress = ControlProgressCounter().count(controls, NOW)
    assert progress.to_dict() == {"total": 3, "implemented": 1, "overdue": 1, "open": 2}


def test_implement_then_query_moves_counts(sample_dashboard):
    before = sample_dashboard.lines()[0].progress
    assert (before.implemented, before.overdue, before.open) == (1, 1, 2)

    out = sample_dashboard.set_control_implemented("c-loto-interlock", True, actor="tester")
    assert out["isImplemented"] is True
    assert out["status"] == "IMPLEMENTED"
    assert out["implementedAt"] is not None

    after = sample_dashboard.lines()[0].progress
    assert (after.implemented, after.overdue, after.open) == (2, 0, 1)

    undone = sample_dashboard.set_control_implemented("c-loto-interlock", False)
    assert undone["isImplemented"] is False
    assert undone["status"] == "OPEN"
    assert undone["implementedAt"] is None

    again = sample_dashboard.lines()[0].progress
    assert (again.implemented, again.overdue, again.open) == (1, 1, 2)


def test_existing_controls_cannot_be_implemented(sample_dashboard):
    with pytest.raises(InvalidInputError):
        sample_dashboard.set_control_implemented("c-loto-existing", True)
