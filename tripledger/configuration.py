"""Mini README: Centralised configuration models and helpers for the trip ledger.

Structure:
    * TripLedgerSettings - Pydantic model describing runtime configuration.
    * get_settings - cached accessor for environment-aware settings.

Usage:
    Import ``get_settings`` to read environment variables (prefixed with
    ``TRIPLEDGER_``) for the server database, tolerances, and the offline
    client. Tests build ``TripLedgerSettings`` directly and hand it to the
    application factory instead of touching the cached instance.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings


class TripLedgerSettings(BaseSettings):
    """Runtime configuration for the ledger service and its offline client."""

    environment: str = Field(
        "development",
        description="Environment label controlling debug toggles and logging levels.",
    )
    database_url: str = Field(
        "sqlite:///./data/tripledger.db",
        description="SQLAlchemy URL of the ledger database.",
    )
    interface_host: str = Field(
        "0.0.0.0",
        description="Network interface for the HTTP service to bind to.",
    )
    interface_port: int = Field(
        8000,
        description="Port the HTTP service exposes.",
        ge=1,
        le=65535,
    )
    settlement_epsilon: Decimal = Field(
        Decimal("0.01"),
        description="Balances within this distance of zero count as settled.",
        ge=0,
    )
    split_tolerance: Decimal = Field(
        Decimal("0.01"),
        description="Allowed gap between an expense amount and the sum of its splits.",
        ge=0,
    )
    expose_internal_errors: Optional[bool] = Field(
        None,
        description=(
            "Include exception text in 500 responses. Defaults to on everywhere"
            " except the production environment."
        ),
    )
    client_base_url: str = Field(
        "http://127.0.0.1:8000",
        description="Server URL used by the offline client when draining its queue.",
    )
    client_queue_path: Path = Field(
        Path("data/offline_queue.json"),
        description="File holding the client's pending offline actions.",
    )
    request_timeout_seconds: float = Field(
        10.0,
        description="Upper bound for a single client request before it counts as a network failure.",
        gt=0,
    )

    class Config:
        env_prefix = "TRIPLEDGER_"
        env_file = ".env"
        case_sensitive = False

    @validator("client_queue_path", pre=True)
    def _expand_path(cls, value: Optional[str | Path]) -> Path:
        """Expand user directories so ``~/...`` works from the environment."""

        return Path(value).expanduser()

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def show_internal_errors(self) -> bool:
        """Resolve the error exposure toggle against the environment."""

        if self.expose_internal_errors is None:
            return not self.is_production
        return self.expose_internal_errors


@lru_cache()
def get_settings() -> TripLedgerSettings:
    """Return cached settings, ensuring consistent configuration across modules."""

    return TripLedgerSettings()
