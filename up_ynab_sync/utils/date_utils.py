"""Date manipulation utilities"""

import re
from datetime import date, timedelta

from up_ynab_sync.domain.exceptions import ConfigurationError

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_start_date(value: str) -> date:
    """Parse a YYYY-MM-DD start date, rejecting anything else"""
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ConfigurationError("start_date must be in YYYY-MM-DD format")
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise ConfigurationError(f"start_date is not a valid date: {value}") from e


def scheduled_start_date(today: date, lookback_days: int, earliest_allowed: date) -> date:
    """Start of the scheduled sync window, never before the configured earliest date"""
    return max(today - timedelta(days=lookback_days), earliest_allowed)
