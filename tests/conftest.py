from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from builders import NOW, SAMPLE_SNAPSHOT
from risk_rollup.core.dashboard import RiskDashboard
from risk_rollup.core.models import HierarchySnapshot
from risk_rollup.core.storage import StaticSource


@pytest.fixture
def sample_snapshot() -> HierarchySnapshot:
    raw = json.loads(SAMPLE_SNAPSHOT.read_text(encoding="utf-8"))
    return HierarchySnapshot.model_validate(raw)


@pytest.fixture
def sample_dashboard(sample_snapshot) -> RiskDashboard:
    return RiskDashboard(source=StaticSource(sample_snapshot), clock=lambda: NOW)


@pytest.fixture
def snapshot_path(tmp_path) -> Path:
    path = tmp_path / "snapshot.json"
    shutil.copyfile(SAMPLE_SNAPSHOT, path)
    return path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("RISK_ROLLUP_POLICY", raising=False)
    monkeypatch.delenv("RISK_ROLLUP_SNAPSHOT", raising=False)
