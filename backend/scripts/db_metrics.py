"""Print a one-off JSON snapshot of pool usage and stored level counts."""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from sqlalchemy import text

from competency_engine.db.monitoring import get_pool_snapshot
from competency_engine.db.session import get_engine, session_scope
from competency_engine.repositories import user_competencies

LOGGER = logging.getLogger("competency_engine.db_metrics")


def collect_snapshot() -> dict:
    engine = get_engine()
    with engine.connect() as connection:
        connection.execute(text("SELECT 1"))
    with session_scope(commit=False) as session:
        levels = user_competencies.level_distribution(session)
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "pool": get_pool_snapshot(engine),
        "stored_levels": {str(level): count for level, count in levels.items()},
        "zero_level_rows": levels.get(0, 0),
    }


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    try:
        payload = collect_snapshot()
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Failed to collect competency store metrics: %s", exc)
        return 1
    print(json.dumps(payload))
    return 0


if __name__ == "__main__":
    sys.exit(main())
