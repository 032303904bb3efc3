"""
Run all notification checks once.

Usage: python run_notifications.py [--as-of 2026-10-17T09:00:00]

Schedule a single daily invocation; overlapping runs are not guarded against.
"""

import argparse
import logging
import sys
from datetime import datetime

from database import get_db, init_db
from logging_config import configure_logging
from services.cadence import as_naive_utc
from services.notifications import run_notification_checks

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Send due compliance notifications")
    parser.add_argument("--as-of", type=datetime.fromisoformat, default=None,
                        help="Evaluate as of this timestamp (naive values are UTC) instead of now")
    args = parser.parse_args(argv)

    configure_logging()
    if not init_db():
        logger.error("DATABASE_URL is not set")
        return 1

    now = as_naive_utc(args.as_of) if args.as_of else datetime.utcnow()
    db = get_db()
    try:
        results = run_notification_checks(db, now)
    except Exception:
        logger.exception("Error running notification checks")
        return 1
    finally:
        db.close()

    print("Summary:")
    print(f"  Expiring certificates: {len(results.expiring)} notifications")
    print(f"  Expired certificates: {len(results.expired)} notifications")
    print(f"  Non-compliant vendors: {len(results.non_compliant)} notifications")
    print(f"  Pending requests: {len(results.pending)} notifications")
    print(f"\nTotal notifications sent: {results.total}")
    for description in results.expiring + results.expired + results.non_compliant + results.pending:
        print(f"  - {description}")
    if results.failures:
        print(f"\n{results.failures} record(s) failed, see log for details")
    return 0


if __name__ == "__main__":
    sys.exit(main())
