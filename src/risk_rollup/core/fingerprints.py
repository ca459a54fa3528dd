from __future__ import annotations

import hashlib
import json
from typing import Any, Dict


def _stable_serialize(obj: Any) -> str:
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def hash_object(obj: Any) -> str:
    serialized = _stable_serialize(obj)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def build_fingerprints(
    snapshot: Dict[str, Any],
    policy: Dict[str, Any],
    policy_version: str = "",
) -> Dict[str, str]:
    """Hashes that identify the data and configuration a rollup was computed from."""
    return {
        "snapshot_hash": hash_object(snapshot),
        "policy_hash": hash_object(policy),
        "policy_version": policy_version or "",
    }
