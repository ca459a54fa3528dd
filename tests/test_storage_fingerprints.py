import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from builders import NOW

from risk_rollup.core.dashboard import RiskDashboard
from risk_rollup.core.fingerprints import build_fingerprints, hash_object
from risk_rollup.core.models import HierarchySnapshot, Step
from risk_rollup.core.policy import default_policy
from risk_rollup.core.storage import SnapshotStore, dump_snapshot


def test_hash_is_stable_under_key_order():
    a = {"x": 1, "y": [1, 2, 3], "z": {"k": "v"}}
    b = {"z": {"k": "v"}, "y": [1, 2, 3], "x": 1}
    assert hash_object(a) == hash_object(b)
    assert hash_object(a) != hash_object({"x": 2, "y": [1, 2, 3], "z": {"k": "v"}})


def test_fingerprints_track_snapshot_and_policy(sample_snapshot):
    policy = default_policy()
    fp = build_fingerprints(dump_snapshot(sample_snapshot), policy.raw, policy.policy_version)
    assert set(fp) == {"snapshot_hash", "policy_hash", "policy_version"}
    assert len(fp["snapshot_hash"]) == 64
    assert fp["policy_version"] == "v1"

    changed = sample_snapshot.model_copy(deep=True)
    changed.lines[0].name = "Renamed"
    assert build_fingerprints(dump_snapshot(changed), policy.raw)["snapshot_hash"] != fp["snapshot_hash"]


def test_store_round_trip(tmp_path, sample_snapshot):
    store = SnapshotStore(tmp_path / "nested" / "snapshot.json")
    store.save(sample_snapshot)

    loaded = store.load()
    assert dump_snapshot(loaded) == dump_snapshot(sample_snapshot)
    assert not (tmp_path / "nested" / "snapshot.json.tmp").exists()


def test_store_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        SnapshotStore(tmp_path / "missing.json").load()


def test_writes_are_persisted_and_audited(snapshot_path):
    store = SnapshotStore(snapshot_path)
    dashboard = RiskDashboard(source=store, clock=lambda: NOW)

    dashboard.set_control_implemented("c-lift-hoist", True, actor="qa")

    reloaded = RiskDashboard(source=SnapshotStore(snapshot_path), clock=lambda: NOW)
    assert reloaded.lines()[1].progress.implemented == 1

    events = [json.loads(x) for x in store.audit_path.read_text(encoding="utf-8").splitlines()]
    assert [e["event"] for e in events] == ["control_implemented"]
    assert events[0]["details"] == {"control_id": "c-lift-hoist", "actor": "qa"}


def test_snapshot_rejects_duplicate_ids(sample_snapshot):
    raw = dump_snapshot(sample_snapshot)
    raw["lines"][1]["id"] = "line-1"
    with pytest.raises(ValidationError, match="Duplicate line id"):
        HierarchySnapshot.model_validate(raw)


def test_naive_timestamps_are_read_as_utc():
    s = Step(id="s1", step_no=0, updated_at=datetime(2026, 1, 1, 9, 0))
    assert s.updated_at.utcoffset().total_seconds() == 0

    with pytest.raises(ValidationError):
        Step(id="s2", step_no=-1)
