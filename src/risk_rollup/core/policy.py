from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from risk_rollup.domain.bands import RiskBand
from risk_rollup.domain.controls import PROBABILITY_SCALE, SEVERITY_SCALE
from risk_rollup.engine.matrix import (
    UNILEVER_BAND_TABLE,
    UNILEVER_MATRIX_ID,
    UNILEVER_MATRIX_NAME,
    MatrixResolver,
    RiskMatrix,
    matrix_from_band_table,
)
from risk_rollup.engine.summarizer import TRAINING_KEYWORD


POLICY_ENV_VAR = "RISK_ROLLUP_POLICY"


@dataclass(frozen=True)
class RiskPolicy:
    raw: Dict[str, Any]

    @property
    def policy_version(self) -> str:
        return str(self.raw.get("policy_version", "v0"))

    def matrices(self) -> List[RiskMatrix]:
        out: List[RiskMatrix] = []
        for m in self.raw["matrices"]:
            out.append(
                matrix_from_band_table(
                    matrix_id=str(m["id"]),
                    name=str(m.get("name", m["id"])),
                    band_table=m["bands_by_probability"],
                    version=int(m.get("version", 1)),
                    is_active=bool(m.get("is_active", False)),
                )
            )
        return out

    @property
    def active_matrix_id(self) -> str:
        active = [str(m["id"]) for m in self.raw["matrices"] if m.get("is_active")]
        if len(active) != 1:
            raise ValueError("Exactly one active risk matrix must be configured")
        return active[0]

    def resolver(self) -> MatrixResolver:
        return MatrixResolver(self.matrices())

    def recommendations_default_limit(self) -> int:
        return int(self.raw.get("recommendations", {}).get("default_limit", 200))

    def recommendations_max_limit(self) -> int:
        return int(self.raw.get("recommendations", {}).get("max_limit", 500))

    def training_keyword(self) -> str:
        return str(self.raw.get("training", {}).get("keyword", TRAINING_KEYWORD)).strip().lower()


def default_policy() -> RiskPolicy:
    raw = {
        "policy_version": "v1",
        "matrices": [
            {
                "id": UNILEVER_MATRIX_ID,
                "name": UNILEVER_MATRIX_NAME,
                "version": 1,
                "is_active": True,
                "bands_by_probability": {
                    str(p): {str(s): band.value for s, band in row.items()}
                    for p, row in UNILEVER_BAND_TABLE.items()
                },
            }
        ],
        "recommendations": {"default_limit": 200, "max_limit": 500},
        "training": {"keyword": TRAINING_KEYWORD},
    }
    _validate_policy(raw)
    return RiskPolicy(raw=raw)


def load_policy(path: Path) -> RiskPolicy:
    raw = json.loads(path.read_text(encoding="utf-8"))
    _validate_policy(raw)
    return RiskPolicy(raw=raw)


def policy_from_env(environ: Optional[Dict[str, str]] = None) -> RiskPolicy:
    env = os.environ if environ is None else environ
    path = (env.get(POLICY_ENV_VAR) or "").strip()
    if not path:
        return default_policy()
    return load_policy(Path(path))


def _validate_policy(raw: Dict[str, Any]) -> None:
    if not isinstance(raw, dict):
        raise ValueError("Policy must be a JSON object")
    if "matrices" not in raw:
        raise ValueError("Missing policy key: matrices")
    matrices = raw["matrices"]
    if not isinstance(matrices, list) or len(matrices) < 1:
        raise ValueError("Policy matrices invalid")

    ids = set()
    for m in matrices:
        if "id" not in m:
            raise ValueError("Matrix id missing")
        if m["id"] in ids:
            raise ValueError(f"Duplicate matrix id: {m['id']}")
        ids.add(m["id"])
        table = m.get("bands_by_probability")
        if not isinstance(table, dict):
            raise ValueError(f"Missing bands_by_probability for matrix: {m['id']}")
        for p, row in table.items():
            if int(p) not in PROBABILITY_SCALE:
                raise ValueError(f"Probability outside scale in matrix {m['id']}: {p}")
            for s, band in row.items():
                if int(s) not in SEVERITY_SCALE:
                    raise ValueError(f"Severity outside scale in matrix {m['id']}: {s}")
                if band not in RiskBand.__members__:
                    raise ValueError(f"Unknown band in matrix {m['id']}: {band}")

    if sum(1 for m in matrices if m.get("is_active")) != 1:
        raise ValueError("Exactly one active risk matrix must be configured")

    limits = raw.get("recommendations", {})
    default_limit = int(limits.get("default_limit", 200))
    max_limit = int(limits.get("max_limit", 500))
    if not 1 <= default_limit <= max_limit:
        raise ValueError("Invalid recommendations limits: require 1 <= default_limit <= max_limit")

    training = raw.get("training", {})
    if not isinstance(training, dict):
        raise ValueError("Policy training section invalid")
    keyword = training.get("keyword", TRAINING_KEYWORD)
    if not isinstance(keyword, str) or not keyword.strip():
        raise ValueError("Training keyword must be a non-blank string")
