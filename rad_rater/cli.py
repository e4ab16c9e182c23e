#!/usr/bin/env python3
"""
Command-line access to stored rater sessions.

Usage:
    # List raters with a locally cached session
    rad-rater list

    # Show a rater's progress
    rad-rater status alice

    # Preview the cases and blinded model orders a rater would receive
    rad-rater preview alice --sample-size 10

    # Write data/exports/rater_results_alice.json
    rad-rater export alice

    # Delete a rater's stored session (local and remote)
    rad-rater reset alice --yes

Any trailing key=value arguments are passed to Hydra as config overrides:
    rad-rater status alice storage.remote.backend=http
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from rad_rater.blinding import blinded_slots, build_blinded_order
from rad_rater.case_loader import CaseLoader
from rad_rater.config import RaterSettings, configure_logging, load_settings
from rad_rater.errors import LoadError
from rad_rater.export import build_export, write_export
from rad_rater.persistence import build_persistence
from rad_rater.response_models.status import PhaseKind
from rad_rater.session_machine import progress


def cmd_list(settings: RaterSettings, args: argparse.Namespace) -> int:
    persistence = build_persistence(settings)
    user_ids = persistence.local.list_user_ids()
    if not user_ids:
        print(f"No cached sessions in {persistence.local.sessions_dir}")
        return 0

    print(f"\n{len(user_ids)} cached session(s):")
    for user_id in user_ids:
        try:
            session = persistence.load(user_id)
        except LoadError as e:
            print(f"  {user_id:<24} [ERROR] {e}")
            continue
        if session is None:
            continue
        summary = progress(session)
        print(f"  {user_id:<24} {str(session.status):<16} {summary.done}/{summary.total}")
    print()
    return 0


def cmd_status(settings: RaterSettings, args: argparse.Namespace) -> int:
    session = build_persistence(settings).load(args.user_id)
    if session is None:
        print(f"No stored session for {args.user_id}")
        return 1

    summary = progress(session)
    print(f"\n{'='*60}")
    print(f"Session: {session.user_id}")
    print(f"{'='*60}")
    print(f"  Status: {session.status}")
    print(f"  Sample size per dataset: {session.config.sample_size_per_dataset}")
    print(f"  Saves: {session.audit.save_count} (last: {session.audit.last_saved_at or 'never'})")
    if session.position:
        print(f"  Position: {session.position.phase} / {session.position.scope}")
    print(f"  Overall: {summary.done}/{summary.total} ({summary.percent}%)")
    for phase in session.phases:
        print(f"\n  {phase.key} [{phase.kind}]"
              + (f" completed {phase.completed_at}" if phase.completed_at else ""))
        for scope in phase.scopes:
            print(f"    {settings.dataset_label(scope.key):<24} "
                  f"{scope.answer_count}/{scope.case_count}  cursor={scope.cursor}")
    for t in session.audit.transitions:
        print(f"  {t.at}: {t.from_status} -> {t.to_status}")
    print()
    return 0


def cmd_preview(settings: RaterSettings, args: argparse.Namespace) -> int:
    sample_size = args.sample_size or settings.sampling.default_sample_size
    if sample_size not in settings.sampling.allowed_sample_sizes:
        print(f"Sample size must be one of {settings.sampling.allowed_sample_sizes}")
        return 2

    loader = CaseLoader(settings)
    for phase in settings.phases:
        for dataset in phase.datasets:
            if args.dataset and dataset.key != args.dataset:
                continue
            cases = loader.sample_cases(args.user_id, dataset, phase.kind, sample_size)
            print(f"\n{dataset.label} ({dataset.key}): {len(cases)} cases")
            for case in cases:
                line = f"  {case.id}"
                if phase.kind == PhaseKind.MODEL_EVAL:
                    order = build_blinded_order(args.user_id, dataset.key, case.id, settings.model_ids)
                    line += "  " + " ".join(f"{label}={model}" for label, model in blinded_slots(order))
                print(line)
    print()
    return 0


def cmd_export(settings: RaterSettings, args: argparse.Namespace) -> int:
    session = build_persistence(settings).load(args.user_id)
    if session is None:
        print(f"No stored session for {args.user_id}")
        return 1
    output_dir = Path(args.output_dir) if args.output_dir else settings.resolve_path(settings.export.output_dir)
    path = write_export(build_export(session, settings), output_dir)
    print(f"✓ Exported {args.user_id} to {path}")
    return 0


def cmd_reset(settings: RaterSettings, args: argparse.Namespace) -> int:
    if not args.yes:
        print(f"[DRY RUN] Would delete the stored session of {args.user_id} (local and remote).")
        print("Run again with --yes to delete it.")
        return 0
    report = build_persistence(settings).delete(args.user_id)
    if report.ok:
        print(f"✓ Deleted stored session of {args.user_id}")
        return 0
    print(f"[ERROR] {report.describe()}")
    return 1


COMMANDS = {
    "list": cmd_list,
    "status": cmd_status,
    "preview": cmd_preview,
    "export": cmd_export,
    "reset": cmd_reset,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rad-rater",
        description="Inspect, export and reset radiology rater sessions",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    listing = sub.add_parser("list", help="List raters with a cached session")

    status = sub.add_parser("status", help="Show a rater's stored progress")
    status.add_argument("user_id")

    preview = sub.add_parser("preview", help="Show the cases a rater would be given")
    preview.add_argument("user_id")
    preview.add_argument("--sample-size", type=int, default=None,
                         help="Cases per dataset (default from config)")
    preview.add_argument("--dataset", default=None, help="Only this dataset key")

    export = sub.add_parser("export", help="Write a rater's results file")
    export.add_argument("user_id")
    export.add_argument("--output-dir", default=None, help="Directory for the results file")

    reset = sub.add_parser("reset", help="Delete a rater's stored session")
    reset.add_argument("user_id")
    reset.add_argument("--yes", action="store_true", help="Actually delete")

    for p in (listing, status, preview, export, reset):
        p.add_argument("overrides", nargs="*", help="Hydra config overrides (key=value)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.overrides)
    configure_logging(settings.logging.level)
    try:
        return COMMANDS[args.command](settings, args)
    except LoadError as e:
        print(f"[ERROR] {e.describe()}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
