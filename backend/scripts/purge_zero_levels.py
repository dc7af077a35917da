"""Remove explicit level-0 rows from ``user_competencies``.

Older deployments initialised every profile with one row per competency at
level 0. Those rows carry no information: a missing row already reads as
level 0. Run with ``--dry-run`` first to see how many rows would go.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from competency_engine.db.session import session_scope
from competency_engine.repositories import user_competencies

LOGGER = logging.getLogger("competency_engine.purge_zero_levels")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete level-0 competency rows.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only count the rows that would be deleted.",
    )
    return parser.parse_args(argv)


def purge(*, dry_run: bool) -> int:
    with session_scope(commit=not dry_run) as session:
        pending = user_competencies.count_zero_levels(session)
        if dry_run or pending == 0:
            LOGGER.info("%d level-0 rows found%s.", pending, " (dry run)" if dry_run else "")
            return pending
        deleted = user_competencies.purge_zero_levels(session)
    LOGGER.info("Deleted %d level-0 rows.", deleted)
    return deleted


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.getenv("COMPETENCY_LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    args = parse_args(argv)
    try:
        purge(dry_run=args.dry_run)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Zero-level purge failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
