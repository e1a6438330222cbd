"""GET /v1/up/accounts and GET /v1/ynab/info - Account discovery for building ACCOUNT_MAPPING"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from up_ynab_sync.api.dependencies import get_up_client, get_ynab_client, require_api_key
from up_ynab_sync.api.v1.schemas import (
    BudgetSchema,
    UpAccountSchema,
    UpAccountsResponse,
    YnabAccountSchema,
    YnabInfoResponse,
)
from up_ynab_sync.domain.exceptions import UpstreamError
from up_ynab_sync.infrastructure.clients.up_bank import UpBankClient
from up_ynab_sync.infrastructure.clients.ynab import YnabClient

router = APIRouter(dependencies=[Depends(require_api_key)])


@router.get("/up/accounts", response_model=UpAccountsResponse)
async def list_up_accounts(up_client: UpBankClient = Depends(get_up_client)):
    """List Up Bank accounts with their ids"""
    try:
        accounts = await up_client.list_accounts()
    except UpstreamError as e:
        logging.error(f"Up Bank accounts error: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return UpAccountsResponse(accounts=[UpAccountSchema.model_validate(a) for a in accounts])


@router.get("/ynab/info", response_model=YnabInfoResponse)
async def ynab_info(ynab_client: YnabClient = Depends(get_ynab_client)):
    """List YNAB budgets and the accounts of the configured budget"""
    try:
        budgets = await ynab_client.list_budgets()
        accounts = await ynab_client.list_accounts()
    except UpstreamError as e:
        logging.error(f"YNAB info error: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return YnabInfoResponse(
        budgets=[BudgetSchema.model_validate(b) for b in budgets],
        configured_budget_id=ynab_client.budget_id,
        accounts=[YnabAccountSchema.model_validate(a) for a in accounts],
    )
