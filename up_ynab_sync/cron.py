"""Scheduled sync entrypoint, run by cron: `python -m up_ynab_sync.cron`"""

import asyncio
import logging
import sys
import time
from datetime import date

from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import DomainException
from up_ynab_sync.domain.models import SyncSummary
from up_ynab_sync.infrastructure.clients.up_bank import UpBankClient
from up_ynab_sync.infrastructure.clients.ynab import YnabClient
from up_ynab_sync.infrastructure.observability.logging import log_sync_outcome, setup_logging
from up_ynab_sync.services.sync import IncrementalSyncer
from up_ynab_sync.utils.date_utils import scheduled_start_date


async def run_scheduled_sync(syncer: IncrementalSyncer, today: date | None = None) -> SyncSummary:
    """Sync every mapped account over the trailing lookback window"""
    start_date = scheduled_start_date(
        today or date.today(),
        settings.scheduled_lookback_days,
        settings.sync_start_date,
    )
    logging.info(f"Scheduled sync from {start_date.isoformat()}")

    start_time = time.time()
    summary = await syncer.sync_all(settings.account_mappings(), start_date)
    log_sync_outcome("scheduled", summary, (time.time() - start_time) * 1000)
    return summary


def main() -> int:
    setup_logging(settings.log_level)
    syncer = IncrementalSyncer(UpBankClient(), YnabClient())
    try:
        asyncio.run(run_scheduled_sync(syncer))
    except DomainException as e:
        logging.error(f"Scheduled sync failed: {e}", extra={"error_type": type(e).__name__})
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
