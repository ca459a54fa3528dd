from risk_rollup.core.storage import SnapshotStore
from risk_rollup.ui.streamlit_app import snapshot_problem


def test_snapshot_problem_reports_unreadable_files(tmp_path, snapshot_path):
    assert snapshot_problem(SnapshotStore(snapshot_path)) is None

    missing = snapshot_problem(SnapshotStore(tmp_path / "missing.json"))
    assert "not found" in missing

    broken_json = tmp_path / "broken.json"
    broken_json.write_text("{not json", encoding="utf-8")
    assert snapshot_problem(SnapshotStore(broken_json)).startswith("Invalid snapshot")

    bad_shape = tmp_path / "bad.json"
    bad_shape.write_text('{"lines": [{"id": "l1"}]}', encoding="utf-8")
    assert snapshot_problem(SnapshotStore(bad_shape)).startswith("Invalid snapshot")
