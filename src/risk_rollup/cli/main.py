from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from risk_rollup.core.dashboard import RiskDashboard, parse_limit
from risk_rollup.core.errors import RiskRollupError
from risk_rollup.core.fingerprints import build_fingerprints
from risk_rollup.core.models import UpdateAssessmentRequest, UpdateControlRequest
from risk_rollup.core.policy import RiskPolicy, load_policy, policy_from_env
from risk_rollup.core.rollup_types import RecommendationScope, StepFilters, TaskFilters
from risk_rollup.core.storage import SnapshotStore, dump_snapshot
from risk_rollup.engine.classifier import parse_dot


SNAPSHOT_ENV_VAR = "RISK_ROLLUP_SNAPSHOT"

logger = logging.getLogger("risk_rollup.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="risk-rollup", description="Risk rollups over a line/machine/task/step hierarchy.")
    parser.add_argument("--snapshot", help=f"Hierarchy snapshot JSON (default: ${SNAPSHOT_ENV_VAR})")
    parser.add_argument("--policy", help="Policy JSON (default: $RISK_ROLLUP_POLICY or built-in)")
    parser.add_argument("--actor", default=None, help="Name recorded in the audit log for writes")
    parser.add_argument("-v", "--verbose", action="store_true")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("meta")
    sub.add_parser("lines")

    p = sub.add_parser("machines")
    p.add_argument("line_id")

    p = sub.add_parser("tasks")
    p.add_argument("machine_id")
    p.add_argument("--task-category", default=None)
    p.add_argument("--task-phase", default=None)

    p = sub.add_parser("steps")
    p.add_argument("task_id")
    p.add_argument("--dot", default=None)
    p.add_argument("--category", default=None)

    p = sub.add_parser("recommendations")
    p.add_argument("--line", default=None)
    p.add_argument("--machine", default=None)
    p.add_argument("--task", default=None)
    p.add_argument("--limit", default=None)
    p.add_argument("--only-open", action="store_true")

    p = sub.add_parser("implement")
    p.add_argument("control_id")
    p.add_argument("--undo", action="store_true")

    p = sub.add_parser("rescore")
    p.add_argument("assessment_id")
    p.add_argument("--existing-severity", type=int, default=None)
    p.add_argument("--existing-probability", type=int, default=None)
    p.add_argument("--new-severity", type=int, default=None)
    p.add_argument("--new-probability", type=int, default=None)
    p.add_argument("--notes", default=None)

    p = sub.add_parser("update-control")
    p.add_argument("control_id")
    p.add_argument("payload", help="JSON object, camelCase keys")

    p = sub.add_parser("resolve")
    p.add_argument("severity", type=int)
    p.add_argument("probability", type=int)
    p.add_argument("--matrix", default=None)

    return parser


def _load_policy(path: Optional[str]) -> RiskPolicy:
    if path:
        return load_policy(Path(path))
    return policy_from_env()


def _rescore_request(args: argparse.Namespace) -> UpdateAssessmentRequest:
    fields = ("existing_severity", "existing_probability", "new_severity", "new_probability", "notes")
    payload = {name: getattr(args, name) for name in fields if getattr(args, name) is not None}
    return UpdateAssessmentRequest.model_validate(payload)


def _run(args: argparse.Namespace, dashboard: RiskDashboard) -> Any:
    cmd = args.command

    if cmd == "meta":
        return dashboard.meta()
    if cmd == "lines":
        return [x.to_dict() for x in dashboard.lines()]
    if cmd == "machines":
        return [x.to_dict() for x in dashboard.machines(args.line_id)]
    if cmd == "tasks":
        filters = TaskFilters(task_category_id=args.task_category, task_phase_id=args.task_phase)
        return [x.to_dict() for x in dashboard.tasks(args.machine_id, filters)]
    if cmd == "steps":
        filters = StepFilters(dot=parse_dot(args.dot), category_id=args.category)
        return dashboard.steps(args.task_id, filters).to_dict()
    if cmd == "recommendations":
        scope = RecommendationScope(
            line_id=args.line,
            machine_id=args.machine,
            task_id=args.task,
            limit=parse_limit(args.limit),
            only_open=args.only_open,
        )
        return dashboard.recommendations(scope).to_dict()
    if cmd == "implement":
        return dashboard.set_control_implemented(args.control_id, not args.undo, actor=args.actor)
    if cmd == "rescore":
        after = dashboard.update_assessment(args.assessment_id, _rescore_request(args), actor=args.actor)
        return after.model_dump(mode="json", by_alias=True, exclude={"controls"})
    if cmd == "update-control":
        request = UpdateControlRequest.model_validate(json.loads(args.payload))
        return dashboard.update_control(args.control_id, request, actor=args.actor)

    raise ValueError(f"Unknown command: {cmd}")


def _resolve(args: argparse.Namespace, policy: RiskPolicy) -> Dict[str, Any]:
    matrix_id = args.matrix or policy.active_matrix_id
    cell = policy.resolver().resolve(matrix_id, args.severity, args.probability)
    return {
        "matrixId": matrix_id,
        "severity": args.severity,
        "probability": args.probability,
        "rating": cell.rating,
        "band": cell.band.value,
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        policy = _load_policy(args.policy)

        if args.command == "resolve":
            result: Dict[str, Any] = {"result": _resolve(args, policy), "policy_version": policy.policy_version}
        else:
            snapshot_path = args.snapshot or os.environ.get(SNAPSHOT_ENV_VAR, "").strip()
            if not snapshot_path:
                parser.print_usage(sys.stderr)
                sys.stderr.write(f"risk-rollup: --snapshot or ${SNAPSHOT_ENV_VAR} is required\n")
                return 2

            store = SnapshotStore(Path(snapshot_path))
            dashboard = RiskDashboard(source=store, policy=policy)
            output = _run(args, dashboard)
            result = {
                "result": output,
                "fingerprint": build_fingerprints(
                    snapshot=dump_snapshot(store.load()),
                    policy=policy.raw,
                    policy_version=policy.policy_version,
                ),
            }
    except (RiskRollupError, ValidationError, FileNotFoundError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        sys.stderr.write(f"risk-rollup: {e}\n")
        return 1

    sys.stdout.write(json.dumps(result, ensure_ascii=False, indent=2))
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
