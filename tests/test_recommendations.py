from datetime import timedelta

import pytest

from builders import NOW, assessment, control, dashboard_for, line, machine, snapshot, step, task

from risk_rollup.core.errors import NotFoundError
from risk_rollup.core.models import ActionCategory
from risk_rollup.core.rollup_types import RecommendationScope


def test_groups_follow_category_order(sample_dashboard):
    response = sample_dashboard.recommendations()
    groups = response.to_dict()["groups"]

    assert [g["categoryId"] for g in groups] == ["cat-eng", "cat-admin", "cat-ppe"]

    eng = groups[0]
    assert [c["id"] for c in eng["controls"]] == ["c-loto-interlock", "c-lift-hoist"]
    assert (eng["total"], eng["implemented"], eng["overdue"], eng["open"]) == (2, 0, 1, 2)
    assert eng["controls"][0]["line"] == {"id": "line-1", "name": "Filling Line 1"}
    assert eng["controls"][0]["step"]["stepNo"] == 1

    ppe = groups[2]
    assert ppe["implemented"] == 1
    assert ppe["controls"][0]["isImplemented"] is True


def test_limit_applies_before_grouping(sample_dashboard):
    groups = sample_dashboard.recommendations(RecommendationScope(limit=2)).groups
    assert [g.category_id for g in groups] == ["cat-eng", "cat-admin"]
    assert [c.id for c in groups[0].controls] == ["c-loto-interlock"]


def test_limit_is_clamped(sample_dashboard):
    zero = sample_dashboard.recommendations(RecommendationScope(limit=0)).groups
    assert sum(g.total for g in zero) == 1

    huge = sample_dashboard.recommendations(RecommendationScope(limit=10_000)).groups
    assert sum(g.total for g in huge) == 4


def test_only_open_drops_implemented(sample_dashboard):
    groups = sample_dashboard.recommendations(RecommendationScope(only_open=True)).groups
    assert [g.category_id for g in groups] == ["cat-eng", "cat-admin"]


def test_scope_narrows_to_line(sample_dashboard):
    groups = sample_dashboard.recommendations(RecommendationScope(line_id="line-2")).groups
    assert [(g.category_id, [c.id for c in g.controls]) for g in groups] == [("cat-eng", ["c-lift-hoist"])]


def test_task_scope_wins_over_line(sample_dashboard):
    groups = sample_dashboard.recommendations(RecommendationScope(line_id="line-2", task_id="t-nozzle")).groups
    assert {g.category_id for g in groups} == {"cat-eng", "cat-admin", "cat-ppe"}


def test_unknown_scope_raises(sample_dashboard):
    with pytest.raises(NotFoundError):
        sample_dashboard.recommendations(RecommendationScope(machine_id="nope"))


def test_undated_rows_sort_last_newest_first():
    old = NOW - timedelta(days=10)
    new = NOW - timedelta(days=1)
    due = NOW + timedelta(days=3)
    s = step(
        "s1",
        1,
        [
            assessment(
                "a1",
                existing="HIGH",
                controls=[
                    control("c-old", category_id="cat-eng", created_at=old),
                    control("c-new", category_id="cat-eng", created_at=new),
                    control("c-due", category_id="cat-eng", due_date=due, created_at=old),
                ],
            )
        ],
    )
    snap = snapshot([line("l1", "L1", [machine("m1", "M1", [task("t1", "T1", [s])])])])
    groups = dashboard_for(snap).recommendations().groups
    assert [c.id for c in groups[0].controls] == ["c-due", "c-new", "c-old"]


def test_inactive_category_groups_go_last_and_unknown_are_skipped():
    categories = [
        ActionCategory(id="cat-eng", name="Engineering", sort_order=1),
        ActionCategory(id="cat-old", name="Old", sort_order=0, is_active=False),
    ]
    s = step(
        "s1",
        1,
        [
            assessment(
                "a1",
                controls=[
                    control("c1", category_id="cat-old"),
                    control("c2", category_id="cat-eng"),
                    control("c3", category_id="cat-missing"),
                    control("c4"),
                ],
            )
        ],
    )
    snap = snapshot([line("l1", "L1", [machine("m1", "M1", [task("t1", "T1", [s])])])], categories=categories)
    groups = dashboard_for(snap).recommendations().groups
    assert [g.category_id for g in groups] == ["cat-eng", "cat-old"]
    assert sum(g.total for g in groups) == 2
