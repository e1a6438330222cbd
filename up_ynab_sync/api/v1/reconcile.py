"""POST /v1/reconcile - Full reconciliation pass with orphan removal and restoration"""

import logging
import time
from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, Request

from up_ynab_sync.api.dependencies import get_account_mappings, get_reconciler, get_request_id, require_api_key
from up_ynab_sync.api.v1.schemas import ReconcileRequest, ReconcileResponse
from up_ynab_sync.domain.exceptions import UpstreamError
from up_ynab_sync.domain.models import AccountMapping
from up_ynab_sync.infrastructure.observability.logging import log_reconciliation
from up_ynab_sync.services.reconcile import ReconciliationEngine

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/reconcile", response_model=ReconcileResponse)
async def reconcile(
    request: Request,
    request_body: ReconcileRequest = ReconcileRequest(),
    mappings: Tuple[AccountMapping, ...] = Depends(get_account_mappings),
    reconciler: ReconciliationEngine = Depends(get_reconciler),
):
    """
    Reconcile YNAB against Up Bank from the earliest YNAB transaction onwards.

    Flow:
    1. Find orphaned YNAB entries (Up Bank transaction gone)
    2. Find deleted YNAB entries whose Up Bank transaction still exists
    3. Unless dry_run: delete orphans, restore deleted entries, resync

    A dry run reports the same plan and changes nothing.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        report = await reconciler.reconcile(mappings, dry_run=request_body.dry_run)
    except UpstreamError as e:
        logging.error(
            f"Reconciliation failed: {e}",
            extra={"request_id": request_id, "upstream": e.service, "dry_run": request_body.dry_run},
        )
        raise HTTPException(status_code=503, detail=str(e))

    log_reconciliation(report, (time.time() - start_time) * 1000)
    return ReconcileResponse.model_validate(report)
