"""POST /v1/webhook - Up Bank webhook receiver, and webhook registration"""

import json
import logging
from typing import Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Request

from up_ynab_sync.api.dependencies import (
    get_account_mappings,
    get_event_processor,
    get_request_id,
    get_up_client,
    require_api_key,
)
from up_ynab_sync.api.v1.schemas import WebhookRegistrationResponse, WebhookResponse
from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import ConfigurationError, UpstreamError
from up_ynab_sync.domain.models import AccountMapping
from up_ynab_sync.infrastructure.clients.up_bank import UpBankClient
from up_ynab_sync.services.events import WebhookEvent, WebhookEventProcessor, verify_signature

router = APIRouter()


@router.post("/webhook", response_model=WebhookResponse)
async def receive_webhook(
    request: Request,
    x_up_authenticity_signature: str | None = Header(None),
    mappings: Tuple[AccountMapping, ...] = Depends(get_account_mappings),
    processor: WebhookEventProcessor = Depends(get_event_processor),
):
    """
    Apply an Up Bank transaction event to YNAB.

    Created/settled events sync that one transaction, deleted events remove
    its YNAB entry, anything else is acknowledged.
    """
    request_id = get_request_id(request)
    body = await request.body()

    if not x_up_authenticity_signature:
        raise HTTPException(status_code=401, detail="Missing signature header")

    if settings.up_webhook_secret:
        if not verify_signature(body, x_up_authenticity_signature, settings.up_webhook_secret):
            logging.warning("Invalid webhook signature", extra={"request_id": request_id})
            raise HTTPException(status_code=401, detail="Invalid signature")
    else:
        logging.warning("No webhook secret configured, skipping verification", extra={"request_id": request_id})

    try:
        event = WebhookEvent.parse(json.loads(body))
        outcome = await processor.handle(event, mappings)
    except (ValueError, ConfigurationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamError as e:
        logging.error(f"Webhook processing error: {e}", extra={"request_id": request_id, "upstream": e.service})
        raise HTTPException(status_code=503, detail=str(e))

    logging.info(outcome.message, extra={"request_id": request_id, "event_type": outcome.event_type})
    return WebhookResponse.model_validate(outcome)


@router.post(
    "/webhook/register",
    response_model=WebhookRegistrationResponse,
    status_code=201,
    dependencies=[Depends(require_api_key)],
)
async def register_webhook(up_client: UpBankClient = Depends(get_up_client)):
    """Register this service's webhook URL with Up Bank"""
    webhook_url = f"{settings.base_url.rstrip('/')}/v1/webhook"
    try:
        registration = await up_client.register_webhook(webhook_url, "Up to YNAB sync")
    except UpstreamError as e:
        logging.error(f"Webhook registration error: {e}", extra={"upstream": e.service})
        raise HTTPException(status_code=503, detail=str(e))

    return WebhookRegistrationResponse(
        webhook_id=registration.webhook_id,
        webhook_url=registration.url,
        secret_key=registration.secret_key,
        message="Webhook created. Save secret_key as UP_WEBHOOK_SECRET, it will not be shown again.",
    )
