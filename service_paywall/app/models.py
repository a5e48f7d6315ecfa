"""
Data models for the Paywall Service.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

SECONDS_PER_DAY = 86400
CACHE_KEY_PREFIX = "access:"


class AddressScheme(str, Enum):
    """Ledger address derivation schemes. One is fixed per deployment."""
    HASH = "hash"
    CHECKSUM = "checksum"


class DenyReason(str, Enum):
    """Why access was not granted."""
    MISSING_IDENTITY = "MISSING_IDENTITY"
    INVALID_KEY = "INVALID_KEY"
    EXPIRED = "EXPIRED"
    LEDGER_QUERY_FAILED = "LEDGER_QUERY_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"


class DecisionSource(str, Enum):
    """Which stage produced a grant."""
    ALLOWLIST = "allowlist"
    CACHE = "cache"
    LEDGER = "ledger"


@dataclass(frozen=True)
class PaymentEvent:
    """A transfer read from the ledger.

    ``sender`` and ``recipient`` are None when the ledger query already
    filtered on them.
    """
    timestamp: datetime
    amount: Decimal
    sender: Optional[str] = None
    recipient: Optional[str] = None


@dataclass
class ServicePeriod:
    """A contiguous span of paid-for access."""
    start: datetime
    end: datetime
    days: int

    def covers(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class EntitlementDecision:
    """Outcome of evaluating the ledger for one address."""
    granted: bool
    active_days_remaining: int

    @property
    def ttl_seconds(self) -> int:
        return self.active_days_remaining * SECONDS_PER_DAY


@dataclass(frozen=True)
class AccessDecision:
    """Final grant or deny returned to the transport layer."""
    granted: bool
    reason: Optional[DenyReason] = None
    source: Optional[DecisionSource] = None
    active_days: Optional[int] = None
    ttl_seconds: int = 0

    @classmethod
    def grant(cls, source: DecisionSource, active_days: Optional[int] = None, ttl_seconds: int = 0) -> "AccessDecision":
        return cls(granted=True, source=source, active_days=active_days, ttl_seconds=ttl_seconds)

    @classmethod
    def deny(cls, reason: DenyReason) -> "AccessDecision":
        return cls(granted=False, reason=reason)


class AccessCheckResponse(BaseModel):
    """Response model for the forward-auth endpoint."""
    allowed: bool = Field(..., description="Whether access is granted")
    reason: Optional[DenyReason] = Field(None, description="Reason for a denial")
    source: Optional[DecisionSource] = Field(None, description="Stage that granted access")
    active_days: Optional[int] = Field(None, description="Active entitlement days; only set when computed from the ledger")
    ttl_seconds: int = Field(0, description="Seconds of access granted when the decision was cached")

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "AccessCheckResponse":
        return cls(
            allowed=decision.granted,
            reason=decision.reason,
            source=decision.source,
            active_days=decision.active_days,
            ttl_seconds=decision.ttl_seconds,
        )
