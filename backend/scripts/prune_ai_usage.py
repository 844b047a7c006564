#!/usr/bin/env python3
"""
Delete AI usage ledger records older than the retention window.

Usage (from backend directory; use the project venv so app deps are available):
  .venv/bin/python scripts/prune_ai_usage.py [--days N] [--dry-run]

Options:
  --days N     Retention window in days (default: AI_USAGE_RETENTION_DAYS, 90)
  --dry-run    Count what would be deleted without deleting
"""
import argparse
import os
import sys
from datetime import datetime, timedelta

# Ensure the package is importable when run as script from backend or project root
_script_dir = os.path.dirname(os.path.abspath(__file__))
_backend = os.path.dirname(_script_dir)
if _backend not in sys.path:
    sys.path.insert(0, _backend)

from jobassist.config import settings
from jobassist.database import SessionLocal
from jobassist.models import AIUsage
from jobassist.services import ai_usage


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--days", type=int, default=settings.ai_usage_retention_days)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    if args.days < 1:
        print("ERROR: --days must be at least 1", file=sys.stderr)
        return 2

    db = SessionLocal()
    try:
        if args.dry_run:
            cutoff = datetime.utcnow() - timedelta(days=args.days)
            count = db.query(AIUsage).filter(AIUsage.created_at < cutoff).count()
            print(f"Would delete {count} AI usage records older than {args.days} days")
            return 0
        deleted = ai_usage.prune(db, args.days)
        print(f"Deleted {deleted} AI usage records older than {args.days} days")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
