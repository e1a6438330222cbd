"""POST /v1/sync - Manual sync of every mapped account from a start date"""

import logging
import time
from typing import Tuple

from fastapi import APIRouter, Depends, HTTPException, Request

from up_ynab_sync.api.dependencies import get_account_mappings, get_request_id, get_syncer, require_api_key
from up_ynab_sync.api.v1.schemas import SyncRequest, SyncResponse
from up_ynab_sync.domain.exceptions import ConfigurationError, UpstreamError
from up_ynab_sync.domain.models import AccountMapping
from up_ynab_sync.infrastructure.observability.logging import log_sync_outcome
from up_ynab_sync.services.sync import IncrementalSyncer
from up_ynab_sync.utils.date_utils import parse_start_date

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.post("/sync", response_model=SyncResponse)
async def sync(
    request_body: SyncRequest,
    request: Request,
    mappings: Tuple[AccountMapping, ...] = Depends(get_account_mappings),
    syncer: IncrementalSyncer = Depends(get_syncer),
):
    """
    Sync Up Bank transactions since start_date into YNAB for every mapped account.

    Safe to repeat: existing entries are reported as duplicates and only their
    cleared status is updated.
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        start_date = parse_start_date(request_body.start_date)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        summary = await syncer.sync_all(mappings, start_date)
    except UpstreamError as e:
        logging.error(f"Sync failed: {e}", extra={"request_id": request_id, "upstream": e.service})
        raise HTTPException(status_code=503, detail=str(e))

    log_sync_outcome("manual", summary, (time.time() - start_time) * 1000)
    return SyncResponse.model_validate(summary)
