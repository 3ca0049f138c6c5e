#!/usr/bin/env python3
"""
Create the bracket tables and optionally load the roster.

For PostgreSQL deployments prefer `alembic upgrade head`; this script is
for local SQLite databases and first-time setup.

The teams CSV needs the columns team_id, representative_name and
institution_name. Teams already present (by team_id) are left untouched.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --teams-csv roster.csv --judge "Justice Rao" --judge "Justice Okafor"
"""

import argparse
import csv
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mootbracket.config import settings
from mootbracket.db.models import Base, Judge, Team
from mootbracket.db.session import get_engine, get_session

logger = logging.getLogger("init_db")

REQUIRED_COLUMNS = ("team_id", "representative_name", "institution_name")


def load_teams(session, csv_path: Path) -> int:
    with csv_path.open(newline="", encoding="utf-8") as handle:
        reader = csv.DictReader(handle)
        missing = [c for c in REQUIRED_COLUMNS if c not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"{csv_path} is missing column(s): {', '.join(missing)}")

        existing = {code for (code,) in session.query(Team.team_id).all()}
        added = 0
        for row in reader:
            code = row["team_id"].strip()
            if not code or code in existing:
                continue
            session.add(
                Team(
                    team_id=code,
                    representative_name=row["representative_name"].strip(),
                    institution_name=row["institution_name"].strip(),
                )
            )
            existing.add(code)
            added += 1
    return added


def main() -> int:
    parser = argparse.ArgumentParser(description="Create tables and load the roster")
    parser.add_argument("--teams-csv", type=Path, default=None, help="Roster CSV to import")
    parser.add_argument(
        "--judge", action="append", default=[],
        help="Judge name to register (repeatable)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("Tables ready on %s", engine.url.render_as_string(hide_password=True))

    with get_session() as session:
        if args.teams_csv is not None:
            added = load_teams(session, args.teams_csv)
            logger.info("Imported %d team(s) from %s", added, args.teams_csv)

        known = {name for (name,) in session.query(Judge.name).all()}
        for name in args.judge:
            if name not in known:
                session.add(Judge(name=name))
                known.add(name)
                logger.info("Registered judge %s", name)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
