#!/usr/bin/env python3
"""
Finish compound rejections that stopped after their first hop.

A rejection moves a case pending_review -> review_rejected -> in_design (or
pending_client_review -> client_rejected -> in_design) as two separately
committed transitions.  If the process died between them the case rests in
the rejected status.  This script lists such cases and, unless --dry-run is
given, performs the rework hop for each one as the given actor.

Usage:
    python3 scripts/resume_stalled_rejections.py --actor-id <uuid> --role employee --sub-role both
    python3 scripts/resume_stalled_rejections.py --actor-id <uuid> --role case_owner --dry-run

The actor must be allowed to perform the rework transition on each case
(assigned designer or reviewer, or the owner for client rejections).
Cases the actor may not resume are reported and skipped.

Exit status: 0 all resumed (or dry run), 1 error, 2 some cases skipped.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Resume compound rejections stalled in a rejected status.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--actor-id", required=True, help="UUID of the acting user")
    parser.add_argument(
        "--role", required=True,
        choices=["case_owner", "administrator", "employee"],
        help="Role of the acting user",
    )
    parser.add_argument(
        "--sub-role", default=None,
        choices=["none", "designer", "reviewer", "both"],
        help="Employee capability sub-role",
    )
    parser.add_argument(
        "--dry-run", action="store_true",
        help="List stalled cases without changing them",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Settings file (default: caseflow_config/sets/default.yaml)",
    )
    args = parser.parse_args()

    try:
        actor_id = UUID(args.actor_id)
    except ValueError as exc:
        print(f"  ERROR: Invalid UUID: {exc}", file=sys.stderr)
        return 1

    from sqlalchemy.exc import SQLAlchemyError

    from caseflow_config import get_active_settings
    from caseflow_config.bridges import build_workflow_engine, init_runtime
    from caseflow_kernel.db.engine import get_session
    from caseflow_kernel.exceptions import (
        CaseflowKernelError,
        TransitionConflictError,
        TransitionForbiddenError,
    )
    from caseflow_kernel.selectors.case_selector import CaseSelector

    try:
        settings = get_active_settings(args.config)
        init_runtime(settings)
    except (CaseflowKernelError, SQLAlchemyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    session = get_session()
    skipped = 0
    try:
        stalled = CaseSelector(session).find_stalled_rejections()
        print(f"Found {len(stalled)} stalled rejection(s)")

        engine = build_workflow_engine(session, settings)
        for case in stalled:
            print(f"  {case.id}  {case.status.value}  updated {case.updated_at.isoformat()}")
            if args.dry_run:
                continue
            try:
                resumed = engine.resume_rework(
                    case.id, actor_id, args.role, args.sub_role,
                )
            except (TransitionForbiddenError, TransitionConflictError) as exc:
                skipped += 1
                print(f"    skipped: {exc}")
                continue
            print(f"    -> {resumed.status.value}")

    except (CaseflowKernelError, SQLAlchemyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1

    finally:
        session.close()

    return 2 if skipped else 0


if __name__ == "__main__":
    sys.exit(main())
