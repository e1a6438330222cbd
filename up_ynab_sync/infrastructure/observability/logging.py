"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from up_ynab_sync.config import settings
from up_ynab_sync.domain.models import ReconciliationReport, SyncSummary


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_sync_outcome(trigger: str, summary: SyncSummary, duration_ms: float) -> None:
    """Log structured outcome counts of a sync run"""
    logging.info(
        "Sync completed",
        extra={
            "trigger": trigger,  # manual | scheduled | webhook
            "step": "sync_complete",
            "imported": summary.imported,
            "duplicates": summary.duplicates,
            "total": summary.total,
            "accounts": len(summary.accounts),
            "duration_ms": duration_ms,
        },
    )


def log_reconciliation(report: ReconciliationReport, duration_ms: float) -> None:
    """Log structured outcome counts of a reconciliation pass"""
    logging.info(
        report.message,
        extra={
            "step": "reconcile_complete",
            "dry_run": report.dry_run,
            "earliest_date": report.earliest_date.isoformat() if report.earliest_date else None,
            "imported": report.imported,
            "duplicates": report.duplicates,
            "total": report.total,
            "orphaned_found": len(report.orphaned_transactions),
            "orphaned_deleted": report.orphaned_deleted,
            "restore_candidates": len(report.restored_transactions),
            "restored": report.restored_count,
            "failures": len(report.failures),
            "duration_ms": duration_ms,
        },
    )
