"""Prometheus metrics for sync outcomes, reconciliation repairs and upstream API health"""

from prometheus_client import Counter, Histogram

from up_ynab_sync.domain.models import ReconciliationReport, SyncResult

# Sync metrics
synced_transactions_counter = Counter(
    "up_ynab_synced_transactions_total",
    "Transactions submitted to YNAB",
    ["outcome"],  # imported | duplicate
)

cleared_updates_counter = Counter(
    "up_ynab_cleared_updates_total",
    "Duplicate YNAB transactions whose cleared status was corrected",
)

mapping_warnings_counter = Counter(
    "up_ynab_mapping_warnings_total",
    "Up Bank transactions mapped with a fail-safe default",
)

best_effort_failures_counter = Counter(
    "up_ynab_best_effort_failures_total",
    "Failed items in best-effort phases",
    ["phase"],  # cleared_update | orphan_delete | restore
)

# Reconciliation metrics
reconciliation_counter = Counter(
    "up_ynab_reconciliations_total",
    "Reconciliation passes completed",
    ["mode"],  # live | dry_run
)

orphans_deleted_counter = Counter(
    "up_ynab_orphans_deleted_total",
    "Orphaned YNAB transactions deleted",
)

restored_counter = Counter(
    "up_ynab_restored_total",
    "Deleted YNAB transactions re-created from Up Bank",
)

# Upstream API metrics
upstream_latency_histogram = Histogram(
    "upstream_request_latency_seconds",
    "Ledger API response time",
    ["service"],  # up | ynab
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

upstream_failures_counter = Counter(
    "upstream_failures_total",
    "Failed ledger API calls",
    ["service", "operation"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_sync(result: SyncResult) -> None:
    """Record per-account sync outcome counts"""
    synced_transactions_counter.labels(outcome="imported").inc(result.imported)
    synced_transactions_counter.labels(outcome="duplicate").inc(result.duplicates)
    cleared_updates_counter.inc(result.cleared_updated)
    mapping_warnings_counter.inc(len(result.warnings))
    for failure in result.failures:
        best_effort_failures_counter.labels(phase=failure.phase).inc()


def record_reconciliation(report: ReconciliationReport) -> None:
    """Record repairs made by a reconciliation pass"""
    reconciliation_counter.labels(mode="dry_run" if report.dry_run else "live").inc()
    orphans_deleted_counter.inc(report.orphaned_deleted)
    restored_counter.inc(report.restored_count)
    # cleared_update failures were already counted by record_sync
    for failure in report.failures:
        if failure.phase != "cleared_update":
            best_effort_failures_counter.labels(phase=failure.phase).inc()
