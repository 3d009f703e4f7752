#!/usr/bin/env python3
"""
Check (and optionally rebuild) every plant's cached watering schedule.

`last_watered`, `next_water_date` and `needs_initial_watering` on a plant
instance are derived from its watering events. Writes that bypass the API
(manual edits, imports, restores) can leave them out of sync. This script
verifies each plant and, unless --dry-run is given, rebuilds the schedule of
the plants that disagree with their history.

Usage:
  python scripts/recompute_watering_cache.py --dry-run
  python scripts/recompute_watering_cache.py
"""

import argparse
import asyncio
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from plantcare.core.config import get_settings
from plantcare.core.database import get_client
from plantcare.core.exceptions import ConsistencyViolation
from plantcare.watering.ledger import WateringLedger
from plantcare.watering.mongo_repository import MongoWateringRepository

logger = logging.getLogger("recompute_watering_cache")


async def recompute(dry_run: bool):
    settings = get_settings()
    client = get_client(settings.MONGO_URI)
    repository = MongoWateringRepository(
        client[settings.MONGO_DB_NAME],
        use_transactions=settings.MONGO_USE_TRANSACTIONS,
    )
    ledger = WateringLedger(repository)

    scanned = 0
    out_of_sync = 0
    repaired = 0

    try:
        for plant in await repository.list_plants():
            scanned += 1
            try:
                await ledger.verify_cache(plant.id)
                continue
            except ConsistencyViolation as e:
                out_of_sync += 1
                logger.warning(str(e))

            if dry_run:
                continue

            await ledger.recompute_cache(plant.id)
            repaired += 1
    finally:
        client.close()

    print(f"Scanned: {scanned} | Out of sync: {out_of_sync} | Repaired: {repaired}")


def main():
    parser = argparse.ArgumentParser(
        description="Verify and rebuild cached watering schedules",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--dry-run", action="store_true", help="Report plants out of sync without updating Mongo")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    asyncio.run(recompute(args.dry_run))


if __name__ == "__main__":
    main()
