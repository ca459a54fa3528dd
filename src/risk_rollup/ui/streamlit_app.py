from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import streamlit as st

SRC_PATH = Path(__file__).resolve().parents[2]
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from risk_rollup.core.dashboard import RiskDashboard
from risk_rollup.core.errors import RiskRollupError
from risk_rollup.core.fingerprints import build_fingerprints
from risk_rollup.core.policy import policy_from_env
from risk_rollup.core.rollup_types import RecommendationScope, ScopeSummary, StepFilters, TaskFilters
from risk_rollup.core.storage import SnapshotStore, dump_snapshot
from risk_rollup.domain.dots import DotColor


APP_TITLE = "Risk Rollup"

DEFAULT_SNAPSHOT = SRC_PATH.parent / "data" / "sample_snapshot.json"

_DOT_BADGE = {
    DotColor.GRAY.value: "⚪",
    DotColor.GREEN.value: "🟢",
    DotColor.YELLOW.value: "🟡",
    DotColor.ORANGE.value: "🟠",
    DotColor.RED.value: "🔴",
}


def _scope_rows(items: List[ScopeSummary]) -> List[Dict[str, Any]]:
    rows = []
    for s in items:
        d = s.to_dict()
        counts = d["counts"]
        dots = d["dots"]
        progress = d["additionalControls"]
        rows.append(
            {
                "Name": s.name,
                "Steps": counts["total"],
                "High": counts["high"],
                "Very high": counts["veryHigh"],
                "Red": dots["red"],
                "Orange": dots["orange"],
                "Training-fixable": d["trainingFixableHigh"],
                "Controls open": progress["open"],
                "Controls overdue": progress["overdue"],
            }
        )
    return rows


def _pick(label: str, items: List[ScopeSummary], key: str) -> Optional[str]:
    if not items:
        return None
    names = {s.id: s.name for s in items}
    return st.selectbox(label, options=list(names), format_func=lambda i: names[i], key=key)


def _render_drilldown(dashboard: RiskDashboard) -> None:
    meta = dashboard.meta()

    st.subheader("Lines")
    lines = dashboard.lines()
    st.dataframe(_scope_rows(lines), width="stretch")
    line_id = _pick("Line", lines, "line")
    if line_id is None:
        st.info("No lines in snapshot.")
        return

    st.divider()
    st.subheader("Machines")
    machines = dashboard.machines(line_id)
    st.dataframe(_scope_rows(machines), width="stretch")
    machine_id = _pick("Machine", machines, "machine")
    if machine_id is None:
        st.info("No machines on this line.")
        return

    st.divider()
    st.subheader("Tasks")
    c1, c2 = st.columns([1, 1])
    categories = {c["id"]: c["name"] for c in meta["taskCategories"]}
    phases = {p["id"]: p["name"] for p in meta["taskPhases"]}
    category_id = c1.selectbox(
        "Task category", options=[None] + list(categories), format_func=lambda i: categories.get(i, "All")
    )
    phase_id = c2.selectbox("Task phase", options=[None] + list(phases), format_func=lambda i: phases.get(i, "All"))

    tasks = dashboard.tasks(machine_id, TaskFilters(task_category_id=category_id, task_phase_id=phase_id))
    st.dataframe(_scope_rows(tasks), width="stretch")
    task_id = _pick("Task", tasks, "task")
    if task_id is None:
        st.info("No tasks match the filters.")
        return

    st.divider()
    st.subheader("Steps")
    dot = st.selectbox("Dot", options=[None] + [d for d in DotColor], format_func=lambda d: d.value if d else "All")
    response = dashboard.steps(task_id, StepFilters(dot=dot))
    category_names = {c.id: c.name for c in response.action_categories}

    step_rows = []
    for row in response.to_dict()["steps"]:
        step_rows.append(
            {
                "#": row["stepNo"],
                "Dot": _DOT_BADGE.get(row["dot"], row["dot"]),
                "Title": row["title"],
                "Current": row["currentBand"] or "",
                "Predicted": row["predictedBand"] or "",
                "Recommended": ", ".join(category_names.get(i, i) for i in row["recommendedActionCategoryIds"]),
                "Training-fixable": row["trainingFixable"],
            }
        )
    if step_rows:
        st.dataframe(step_rows, width="stretch")
    else:
        st.write("No steps match the filters.")


def _render_recommendations(dashboard: RiskDashboard) -> None:
    only_open = st.checkbox("Only open controls", value=False)
    limit = st.number_input("Limit", value=200, min_value=1, max_value=500, step=50)
    response = dashboard.recommendations(RecommendationScope(limit=int(limit), only_open=only_open))

    if not response.groups:
        st.write("No recommended controls.")
        return

    for group in response.groups:
        st.markdown(f"**{group.category_name}**  ·  {group.implemented}/{group.total} implemented  ·  {group.overdue} overdue")
        for item in group.controls:
            due = item.due_date.date().isoformat() if item.due_date else "no due date"
            label = f"{item.description} ({item.line.name} / {item.machine.name} / {item.task.name}, {due})"
            checked = st.checkbox(label, value=item.is_implemented, key=f"ctl-{item.id}")
            if checked != item.is_implemented:
                dashboard.set_control_implemented(item.id, checked, actor="streamlit")
                st.rerun()


def snapshot_problem(store: SnapshotStore) -> Optional[str]:
    """Message for a snapshot that cannot be shown, None when it loads."""
    try:
        store.load()
    except FileNotFoundError as e:
        return str(e)
    except ValueError as e:
        return f"Invalid snapshot {store.path}: {e}"
    return None


def main() -> None:
    st.set_page_config(page_title=APP_TITLE, layout="wide")
    st.title(APP_TITLE)

    with st.sidebar:
        st.subheader("Data")
        snapshot_path = st.text_input(
            "Snapshot file", value=os.environ.get("RISK_ROLLUP_SNAPSHOT", str(DEFAULT_SNAPSHOT))
        )

    try:
        policy = policy_from_env()
    except ValueError as e:
        st.error(f"Invalid policy: {e}")
        return

    store = SnapshotStore(Path(snapshot_path))
    problem = snapshot_problem(store)
    if problem:
        st.error(problem)
        return

    dashboard = RiskDashboard(source=store, policy=policy)

    tab_drill, tab_recs = st.tabs(["Drill-down", "Recommendations"])
    try:
        with tab_drill:
            _render_drilldown(dashboard)
        with tab_recs:
            _render_recommendations(dashboard)
    except RiskRollupError as e:
        st.error(f"{e}")
        return
    except (FileNotFoundError, ValueError) as e:
        st.error(f"Invalid snapshot: {e}")
        return

    st.divider()
    st.subheader("Audit and reproducibility")
    st.json(
        build_fingerprints(
            snapshot=dump_snapshot(store.load()),
            policy=policy.raw,
            policy_version=policy.policy_version,
        )
    )


if __name__ == "__main__":
    main()
