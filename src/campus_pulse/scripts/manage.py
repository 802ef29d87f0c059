"""Operator commands: prepare the database and run sweeps from cron."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from urllib.parse import urlsplit, urlunsplit

import psycopg
from psycopg import sql
from sqlalchemy.exc import SQLAlchemyError

from campus_pulse.core.settings import settings

logger = logging.getLogger("campus_pulse.manage")


def to_libpq_url(uri: str) -> str:
    """Return ``uri`` with any SQLAlchemy driver suffix removed.

    ``postgresql+psycopg://u@h/db`` becomes ``postgresql://u@h/db``.
    """
    uri = (uri or "").strip().strip("'\"")
    if not uri:
        raise ValueError("DATABASE_URL is empty")
    parts = urlsplit(uri)
    scheme = parts.scheme.split("+", 1)[0]
    if scheme not in {"postgresql", "postgres"}:
        raise ValueError(f"Not a Postgres URL: {uri!r}")
    return urlunsplit(("postgresql", parts.netloc, parts.path, parts.query, parts.fragment))


def maintenance_url(db_url: str) -> tuple[str, str]:
    """Return ``(admin_url, database_name)`` for the server hosting ``db_url``."""
    parts = urlsplit(to_libpq_url(db_url))
    target_db = parts.path.lstrip("/") or "postgres"
    admin_url = urlunsplit(("postgresql", parts.netloc, "/postgres", parts.query, ""))
    return admin_url, target_db


def ensure_database(db_url: str) -> bool:
    """Create the Postgres database named in ``db_url`` if missing.

    Returns True when the database had to be created.
    """
    admin_url, target_db = maintenance_url(db_url)
    with psycopg.connect(admin_url, autocommit=True) as conn, conn.cursor() as cur:
        cur.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target_db,))
        if cur.fetchone() is not None:
            return False
        cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target_db)))
    return True


def _cmd_ensure_db(args: argparse.Namespace) -> int:
    url = args.url or settings.effective_database_url
    if url.startswith("sqlite"):
        print("[manage] SQLite database needs no provisioning")
        return 0
    created = ensure_database(url)
    print(f"[manage] database {'created' if created else 'already exists'}")
    return 0


def _cmd_create_tables(args: argparse.Namespace) -> int:
    from campus_pulse.db.session import create_tables, drop_tables

    if args.drop:
        drop_tables()
    create_tables()
    print("[manage] tables created")
    return 0


def _cmd_sweep(args: argparse.Namespace) -> int:
    from campus_pulse.services.sweeper import run_sweep

    report = run_sweep()
    print(json.dumps(report.as_dict()))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Campus Pulse operator commands")
    subcommands = parser.add_subparsers(dest="command", required=True)

    ensure_db = subcommands.add_parser("ensure-db", help="Create the Postgres database if missing")
    ensure_db.add_argument(
        "--url",
        default=None,
        help="Override database URL (defaults to effective settings URL)",
    )
    ensure_db.set_defaults(handler=_cmd_ensure_db)

    create = subcommands.add_parser("create-tables", help="Create all tables from the models")
    create.add_argument("--drop", action="store_true", help="Drop existing tables first")
    create.set_defaults(handler=_cmd_create_tables)

    sweep = subcommands.add_parser("sweep", help="Run one expiry sweep and print its report")
    sweep.set_defaults(handler=_cmd_sweep)
    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return int(args.handler(args))
    except (ValueError, psycopg.Error, SQLAlchemyError) as exc:
        print(f"[manage] ERROR: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
