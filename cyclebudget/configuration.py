"""Mini README: Centralised configuration models and helpers for cyclebudget.

Structure:
    * CycleBudgetSettings - Pydantic model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Import ``get_settings`` to read ``CYCLEBUDGET_`` environment variables
    (or a local ``.env`` file). The storage namespace follows the
    environment label so local development never writes to the records used
    by the deployed dashboard.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings

DEVELOPMENT_NAMESPACE = "expense_dev"
DEPLOYED_NAMESPACE = "expense"


class CycleBudgetSettings(BaseSettings):
    """Runtime configuration for the budget tracker."""

    environment: str = Field(
        "development",
        description="Environment label selecting the storage namespace and log verbosity.",
    )
    storage_base_url: str = Field(
        "https://api.rider.rahulnjs.com/exp",
        description="Base URL of the remote record store, without namespace.",
    )
    storage_namespace: Optional[str] = Field(
        None,
        description=(
            "Explicit storage namespace. Leave unset to derive it from the"
            " environment label."
        ),
    )
    request_timeout_seconds: float = Field(
        10.0,
        description="Timeout applied to every request against the record store.",
        gt=0,
    )
    cycle_start_day: int = Field(
        25,
        description="Day of month on which each billing cycle starts.",
        ge=1,
        le=28,
    )
    save_debounce_seconds: float = Field(
        0.5,
        description="Quiet period after the last change before state is written back.",
        ge=0,
    )
    persist_ready_delay_seconds: float = Field(
        1.0,
        description="Delay after a successful load before changes are persisted.",
        ge=0,
    )
    rent_budget_id: str = Field(
        "4",
        description="Budget identifier excluded from the daily spending rate.",
    )
    restrict_spending_to_cycle: bool = Field(
        False,
        description=(
            "Only count expenses dated on or after the cycle start. Disabled"
            " by default so totals include every stored expense."
        ),
    )
    currency_symbol: str = Field("₹", description="Symbol prefixed to rendered amounts.")
    interface_host: str = Field(
        "0.0.0.0",
        description="Network interface for the dashboard service to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Port the dashboard service exposes.",
        ge=1,
        le=65535,
    )

    class Config:
        env_prefix = "CYCLEBUDGET_"
        env_file = ".env"
        case_sensitive = False

    @validator("storage_base_url")
    def _strip_trailing_slash(cls, value: str) -> str:
        """Keep URL joins predictable regardless of how the base was written."""

        return value.rstrip("/")

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() == "development"

    @property
    def resource_namespace(self) -> str:
        """Namespace used in record store paths."""

        if self.storage_namespace:
            return self.storage_namespace
        return DEVELOPMENT_NAMESPACE if self.is_development else DEPLOYED_NAMESPACE


@lru_cache()
def get_settings() -> CycleBudgetSettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return CycleBudgetSettings()
