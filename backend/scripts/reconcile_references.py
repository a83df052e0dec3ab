#!/usr/bin/env python3
"""
Repair users' games_participate / games_created from the games table.
Run after a create/add/remove/delete request failed part-way and left the back-references out of step.
Usage (from repo root):
  python -m backend.scripts.reconcile_references [--dry-run]
--dry-run prints what would change without saving.
"""
import json
import sys
import os

# Run from repo root so backend is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from backend.api.database import SessionLocal, init_db
from backend.api.store import make_store
from backend.engine.errors import StoreFailure
from backend.engine.reconcile import reconcile_back_references


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    unknown = [a for a in args if a != "--dry-run"]
    if unknown:
        print("Usage: python -m backend.scripts.reconcile_references [--dry-run]", file=sys.stderr)
        return 1
    dry_run = "--dry-run" in args

    init_db()
    db = SessionLocal()
    try:
        report = reconcile_back_references(make_store(db), dry_run=dry_run)
    except StoreFailure as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(json.dumps(report.to_dict(), indent=2))
    verb = "would be repaired" if dry_run else "repaired"
    print(f"{report.users_repaired} of {report.users_scanned} users {verb}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
