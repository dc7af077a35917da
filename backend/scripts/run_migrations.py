"""Bring the competency store schema up to the latest Alembic revision.

Deploys run this before the API starts. It waits for the database to accept
connections, then upgrades to ``head``; ``--current`` prints the revision the
database is at instead.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError

LOGGER = logging.getLogger("competency_engine.migrations")
BACKEND_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_TIMEOUT = int(os.getenv("COMPETENCY_DB_MIGRATION_TIMEOUT", "60"))
POLL_INTERVAL = 2.0


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Migrate the competency store to the latest revision.")
    parser.add_argument(
        "--timeout",
        type=int,
        default=DEFAULT_TIMEOUT,
        help=f"Seconds to wait for the database to accept connections (default: {DEFAULT_TIMEOUT}).",
    )
    parser.add_argument("--config", default=str(BACKEND_ROOT / "alembic.ini"), help="Path to alembic.ini.")
    parser.add_argument("--current", action="store_true", help="Print the current revision and exit.")
    return parser.parse_args(argv)


def get_alembic_config(config_path: str) -> Config:
    config = Config(config_path)
    config.set_main_option("script_location", str(BACKEND_ROOT / "alembic"))
    return config


def resolve_database_url(config: Config) -> str:
    """Return the store URL, taking it from COMPETENCY_DATABASE_URL when alembic.ini defers to it."""
    url = config.get_main_option("sqlalchemy.url")
    if url and "COMPETENCY_DATABASE_URL" not in url:
        return url
    env_url = os.getenv("COMPETENCY_DATABASE_URL")
    if not env_url:
        raise RuntimeError("COMPETENCY_DATABASE_URL must be set before running migrations.")
    config.set_main_option("sqlalchemy.url", env_url)
    return env_url


def wait_for_database(database_url: str, *, timeout: int, poll_interval: float) -> None:
    engine = create_engine(database_url, future=True)
    deadline = time.monotonic() + timeout
    attempts = 0
    try:
        while True:
            attempts += 1
            try:
                with engine.connect() as connection:
                    connection.execute(text("SELECT 1"))
                LOGGER.info("Competency store reachable after %d attempt(s).", attempts)
                return
            except OperationalError as exc:
                if time.monotonic() >= deadline:
                    raise RuntimeError(f"Competency store unreachable after {attempts} attempt(s).") from exc
                LOGGER.warning("Competency store not reachable yet: %s", exc)
            time.sleep(poll_interval)
    except SQLAlchemyError as exc:
        raise RuntimeError("Competency store rejected the readiness check.") from exc
    finally:
        engine.dispose()


def run_migrations(
    revision: str = "head",
    *,
    timeout: int = DEFAULT_TIMEOUT,
    poll_interval: float = POLL_INTERVAL,
    config: Optional[Config] = None,
) -> None:
    config = config or get_alembic_config(str(BACKEND_ROOT / "alembic.ini"))
    wait_for_database(resolve_database_url(config), timeout=timeout, poll_interval=poll_interval)
    command.upgrade(config, revision)
    LOGGER.info("Competency store migrated to %s.", revision)


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    args = parse_args(argv)
    try:
        config = get_alembic_config(args.config)
        if args.current:
            wait_for_database(resolve_database_url(config), timeout=args.timeout, poll_interval=POLL_INTERVAL)
            command.current(config)
        else:
            run_migrations(timeout=args.timeout, config=config)
    except (RuntimeError, SQLAlchemyError) as exc:
        LOGGER.error("Migration run failed: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
