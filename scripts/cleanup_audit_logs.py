#!/usr/bin/env python3
"""
Delete audit log entries older than the retention window.

Usage:
    python scripts/cleanup_audit_logs.py                # retention_days setting (default 90)
    python scripts/cleanup_audit_logs.py --days 30 --dry-run
    python scripts/cleanup_audit_logs.py --days 30 --yes
"""
import argparse
import sys
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from backoffice.config import settings
from backoffice.core.constants import AUDIT_RETENTION_DAYS_KEY
from backoffice.core.logging_config import setup_logging, get_logger
from backoffice.crud.audit_log import audit_log
from backoffice.database.session import SessionLocal
from backoffice.services.settings_service import SettingsService
from backoffice.utils.cache_manager import get_cache_manager

logger = get_logger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


def cleanup(
    db: Session,
    settings_service: SettingsService,
    days: Optional[int] = None,
    dry_run: bool = False,
    confirm: Optional[Callable[[str], bool]] = None,
) -> int:
    """Returns a process exit code"""
    if days is None:
        days = settings_service.get_int(AUDIT_RETENTION_DAYS_KEY, settings.AUDITLOG_RETENTION_DAYS)

    if days < 1:
        logger.error("Days must be a positive integer.")
        return EXIT_FAILURE

    count = audit_log.delete_older_than(db, days=days, dry_run=True)
    if count == 0:
        logger.info(f"No audit logs found older than {days} days.")
        return EXIT_SUCCESS

    if dry_run:
        logger.info(f"Would delete {count} audit log(s) older than {days} days.")
        return EXIT_SUCCESS

    if confirm is not None and not confirm(f"Are you sure you want to delete {count} audit log(s) older than {days} days?"):
        logger.info("Cleanup cancelled.")
        return EXIT_SUCCESS

    deleted = audit_log.delete_older_than(db, days=days)
    logger.info(f"Successfully deleted {deleted} audit log(s).")
    return EXIT_SUCCESS


def ask(question: str) -> bool:
    return input(f"{question} [y/N] ").strip().lower() in ("y", "yes")


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Clean up old audit logs older than specified days")
    parser.add_argument(
        "--days",
        type=int,
        default=None,
        help="Number of days to keep audit logs (defaults to the retention_days setting)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be deleted without actually deleting",
    )
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Do not ask for confirmation",
    )
    args = parser.parse_args(argv)

    setup_logging(log_level=settings.LOG_LEVEL)
    db = SessionLocal()
    try:
        return cleanup(
            db,
            SettingsService(db, get_cache_manager()),
            days=args.days,
            dry_run=args.dry_run,
            confirm=None if args.yes else ask,
        )
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
