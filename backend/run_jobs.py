"""Run a maintenance job once and exit.

Usage:
    python -m backend.run_jobs no-shows
    python -m backend.run_jobs reminders [--date YYYY-MM-DD]

Meant to be triggered by cron or a container scheduler:
reminders daily at 09:00, no-shows daily at 23:00.
"""
import argparse
import logging
import sys
from datetime import date

from sqlalchemy.exc import SQLAlchemyError

from backend.core import config
from backend.database import SessionLocal, init_db
from backend.scheduling.tasks import mark_no_shows, send_session_reminders

JOBS = {
    "no-shows": mark_no_shows,
    "reminders": send_session_reminders,
}

logger = logging.getLogger("backend.run_jobs")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m backend.run_jobs", description="Run a booking maintenance job.")
    parser.add_argument("job", choices=sorted(JOBS))
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Treat this day as today (YYYY-MM-DD). Defaults to the current date.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    db = SessionLocal()
    try:
        init_db()
        count = JOBS[args.job](db, today=args.date)
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Job %s failed", args.job)
        return 1
    finally:
        db.close()

    print(f"{args.job}: {count}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
