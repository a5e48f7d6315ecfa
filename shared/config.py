"""
Shared configuration management for the Ledger Paywall Access Layer.

Settings are read once at startup (environment variables prefixed with
``ACCESS_`` or a ``.env`` file) and are immutable afterwards.
"""

import re
from decimal import Decimal
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Optionally schema-qualified SQL identifier, e.g. "transfers" or "ledger.transfers".
_TABLE_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def is_safe_table_identifier(value: str) -> bool:
    """Whether a configured table name can be interpolated into SQL."""
    return bool(_TABLE_IDENTIFIER.match(value))


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="ACCESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # External services
    redis_url: str = Field(default="redis://localhost:6379/0")
    postgres_dsn: str = Field(default="postgres://localhost:5432/ledger")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"


class PaywallConfig(ServiceConfig):
    """Settings for the ledger paywall service."""

    # Ledger
    dest_wallet: str = Field(default="", description="Wallet that must receive payments")
    price_per_day: Decimal = Field(default=Decimal("1"), description="Amount buying one day of access")
    ledger_table: str = Field(default="transactions", description="Table holding ingested transfers")

    # Identity
    allowlist: List[str] = Field(default_factory=list, description="Public keys exempt from payment")
    identity_header: str = Field(default="X-Pub-Key")
    address_scheme: Literal["hash", "checksum"] = Field(default="hash")
    network_id: int = Field(default=1, description="Network selector for checksum addresses")

    # Request handling
    decision_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("price_per_day")
    @classmethod
    def _price_must_be_positive(cls, value: Decimal) -> Decimal:
        if value <= 0:
            raise ValueError("price_per_day must be positive")
        return value

    @field_validator("ledger_table")
    @classmethod
    def _table_must_be_identifier(cls, value: str) -> str:
        if not is_safe_table_identifier(value):
            raise ValueError(f"ledger_table is not a safe identifier: {value!r}")
        return value

    @field_validator("allowlist")
    @classmethod
    def _drop_blank_entries(cls, value: List[str]) -> List[str]:
        return [entry.strip() for entry in value if entry and entry.strip()]


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)


def get_paywall_config(port: int = 8020, **overrides) -> PaywallConfig:
    """Get configuration for the paywall service."""
    return PaywallConfig(service_name="paywall", port=port, **overrides)
