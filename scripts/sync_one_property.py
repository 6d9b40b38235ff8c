import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import dataclasses
import json
import logging

from sync_ics.config import SyncSettings
from sync_ics.db.engine import engine
from sync_ics.logging_config import setup_logging
from sync_ics.normalizers.platforms import Platform
from sync_ics.services.sync import CalendarSyncOrchestrator

setup_logging()
logger = logging.getLogger(__name__)


def main() -> None:
    """
    Sync the configured default feeds into one property's bookings and print the report.
    """
    parser = argparse.ArgumentParser(description="Run one ICS calendar sync from the shell.")
    parser.add_argument("property_id", help="UUID of the property to sync")
    parser.add_argument("--platform", help="Only sync feeds of this platform (airbnb, vrbo, booking)")
    parser.add_argument("--dry-run", action="store_true", help="Reconcile without writing")
    args = parser.parse_args()

    settings = SyncSettings.from_env()
    if args.dry_run:
        settings = dataclasses.replace(settings, dry_run=True)

    platform = Platform.parse(args.platform) if args.platform else None

    logger.info("Starting sync for property_id=%s", args.property_id)
    try:
        report = CalendarSyncOrchestrator(engine, settings).sync(
            args.property_id, platform=platform
        )
    except Exception:
        logger.exception("Sync failed for property_id=%s", args.property_id)
        raise

    print(json.dumps(report.model_dump(by_alias=True, mode="json"), indent=2))
    if not report.success:
        sys.exit(1)


if __name__ == "__main__":
    main()
