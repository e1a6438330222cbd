"""Configuration management using Pydantic Settings"""

from datetime import date
from typing import Dict, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from up_ynab_sync.domain.exceptions import ConfigurationError
from up_ynab_sync.domain.models import AccountMapping


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Up Bank (source ledger)
    up_api_base: str = "https://api.up.com.au/api/v1"
    up_api_key: str = ""
    up_webhook_secret: str = ""
    up_timezone_offset: str = "+11:00"  # Applied to filter[since]
    up_page_size: int = 100

    # YNAB (target ledger)
    ynab_api_base: str = "https://api.ynab.com/v1"
    ynab_access_token: str = ""
    ynab_budget_id: str = ""

    # Sync
    account_mapping: Dict[str, str] = {}  # JSON: {"<up account id>": "<ynab account id>"}
    sync_start_date: date = date(2000, 1, 1)
    scheduled_lookback_days: int = 30
    reconcile_fetch_margin_days: int = 7

    # Service
    service_name: str = "up-ynab-sync"
    api_key: str = ""
    base_url: str = "http://localhost:8000"
    log_level: str = "INFO"

    # HTTP Client
    http_timeout_seconds: float = 30.0

    @field_validator("account_mapping")
    @classmethod
    def _reject_blank_ids(cls, value: Dict[str, str]) -> Dict[str, str]:
        for up_account_id, ynab_account_id in value.items():
            if not up_account_id or not ynab_account_id:
                raise ValueError("account_mapping keys and values must be non-empty account ids")
        return value

    def account_mappings(self) -> Tuple[AccountMapping, ...]:
        """Immutable account pairings for one run"""
        if not self.account_mapping:
            raise ConfigurationError("ACCOUNT_MAPPING is empty, nothing to sync")
        return tuple(
            AccountMapping(source_account_id=up_id, target_account_id=ynab_id)
            for up_id, ynab_id in self.account_mapping.items()
        )


settings = Settings()
