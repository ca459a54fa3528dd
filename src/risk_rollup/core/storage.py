from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from risk_rollup.core.models import HierarchySnapshot


logger = logging.getLogger(__name__)


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _write_json_atomic(path: Path, obj: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(obj, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)


def _append_jsonl(path: Path, obj: Dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    line = json.dumps(obj, ensure_ascii=False)
    with path.open("a", encoding="utf-8") as f:
        f.write(line + "\n")


def dump_snapshot(snapshot: HierarchySnapshot) -> Dict[str, Any]:
    return snapshot.model_dump(mode="json", by_alias=True)


@dataclass
class StaticSource:
    """In-memory hierarchy source; `save` replaces the held snapshot."""

    snapshot: HierarchySnapshot

    def load(self) -> HierarchySnapshot:
        return self.snapshot

    def save(self, snapshot: HierarchySnapshot) -> None:
        self.snapshot = snapshot

    def append_audit(self, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        logger.debug("audit %s %s", event, details or {})


@dataclass(frozen=True)
class SnapshotStore:
    """
    Hierarchy snapshot kept as one JSON document, with a JSON-lines audit
    log next to it (`<name>.audit.jsonl`).
    """

    path: Path

    @property
    def audit_path(self) -> Path:
        return self.path.with_suffix(".audit.jsonl")

    def load(self) -> HierarchySnapshot:
        if not self.path.exists():
            raise FileNotFoundError(f"Snapshot file not found: {self.path}")
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        return HierarchySnapshot.model_validate(raw)

    def save(self, snapshot: HierarchySnapshot) -> None:
        _write_json_atomic(self.path, dump_snapshot(snapshot))
        logger.info("Saved snapshot to %s", self.path)

    def append_audit(self, event: str, details: Optional[Dict[str, Any]] = None) -> None:
        record: Dict[str, Any] = {"ts": _utc_iso(), "event": str(event)}
        if details:
            record["details"] = details
        _append_jsonl(self.audit_path, record)
