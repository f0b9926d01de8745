#!/usr/bin/env python3
"""
Show a case's audit history, optionally verifying or reconciling it.

Usage:
    python3 scripts/case_history.py <case_id>
    python3 scripts/case_history.py <case_id> --verify
    python3 scripts/case_history.py <case_id> --reconcile

--verify replays the audit log and compares it with the cached status and
refinement count on the case row.  --reconcile additionally overwrites the
cached values when they drifted (the log wins); it refuses when the log
itself has a chain break.

Exit status: 0 consistent / reconciled, 1 error, 2 inconsistent.
"""

import argparse
import sys
from pathlib import Path
from uuid import UUID

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

W = 80


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def print_case(case) -> None:
    banner(f"CASE {case.id}")
    field("status", case.status.value)
    field("owner_id", case.owner_id)
    field("designer", case.designer_assignee_id or "-")
    field("reviewer", case.reviewer_assignee_id or "-")
    field("refinement_count", case.refinement_count)
    field("created_at", case.created_at)
    field("updated_at", case.updated_at)


def print_history(entries) -> None:
    print()
    print(f"--- HISTORY ({len(entries)} entries) ---")
    print()
    print(f"  {'seq':>4}  {'occurred_at':<32} {'action':<16} {'from':<22} {'to':<22}")
    for e in entries:
        from_status = e.from_status.value if e.from_status else "-"
        print(
            f"  {e.seq:>4}  {e.occurred_at.isoformat():<32} {e.action.value:<16} "
            f"{from_status:<22} {e.to_status.value:<22}"
        )
        if e.note:
            print(f"        note: {e.note}")


def print_report(report) -> None:
    print()
    print("--- REPLAY ---")
    print()
    replayed = report.replayed_status.value if report.replayed_status else "-"
    field("replayed_status", replayed)
    field("cached_status", report.cached_status.value)
    field("replayed_refinements", report.replayed_refinements)
    field("cached_refinements", report.cached_refinements)
    field("consistent", report.is_consistent)
    for brk in report.chain_breaks:
        field(f"break @ seq {brk.seq}", brk.reason)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Show, verify or reconcile a case's audit history.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("case_id", help="Case UUID")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--verify", action="store_true",
        help="Replay the audit log and compare with the case row",
    )
    mode.add_argument(
        "--reconcile", action="store_true",
        help="Overwrite a drifted case row with the replayed values",
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Settings file (default: caseflow_config/sets/default.yaml)",
    )
    args = parser.parse_args()

    try:
        case_id = UUID(args.case_id)
    except ValueError as exc:
        print(f"  ERROR: Invalid UUID: {exc}", file=sys.stderr)
        return 1

    from sqlalchemy.exc import SQLAlchemyError

    from caseflow_config import get_active_settings
    from caseflow_config.bridges import init_runtime
    from caseflow_kernel.db.engine import session_scope
    from caseflow_kernel.exceptions import CaseflowKernelError
    from caseflow_kernel.services.history_verifier import HistoryVerifier
    from caseflow_kernel.services.workflow_engine import WorkflowEngine

    try:
        settings = get_active_settings(args.config)
        init_runtime(settings)

        with session_scope() as session:
            engine = WorkflowEngine(session, auto_commit=False)
            print_case(engine.get_case(case_id))
            print_history(engine.get_history(case_id))

            if not (args.verify or args.reconcile):
                return 0

            verifier = HistoryVerifier(session)
            report = verifier.verify(case_id)
            print_report(report)

            if args.reconcile and not report.projection_matches:
                updated = verifier.reconcile(case_id)
                banner("RECONCILED")
                field("status", updated.status.value)
                field("refinement_count", updated.refinement_count)
                return 0

            return 0 if report.is_consistent else 2

    except (CaseflowKernelError, SQLAlchemyError) as exc:
        print(f"  ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
