"""
Ledger doubles and data factories for Paywall Service tests.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from shared.errors import LedgerQueryError
from .app.models import PaymentEvent


@dataclass
class StubLedger:
    """In-memory ledger collaborator recording every query it receives."""
    events: List[PaymentEvent] = field(default_factory=list)
    calls: List[Tuple[str, str]] = field(default_factory=list)
    healthy: bool = True

    async def fetch_payments(self, sender: str, recipient: str) -> List[PaymentEvent]:
        self.calls.append((sender, recipient))
        return list(self.events)

    async def start(self):
        return None

    async def stop(self):
        return None

    async def health_check(self) -> bool:
        return self.healthy


class FailingLedger(StubLedger):
    """Ledger whose every query fails like an unreachable database."""

    async def fetch_payments(self, sender: str, recipient: str):
        self.calls.append((sender, recipient))
        raise LedgerQueryError(details={"error": "connection refused"})


class ForbiddenLedger(StubLedger):
    """Ledger that must never be queried."""

    async def fetch_payments(self, sender: str, recipient: str):
        raise AssertionError("ledger must not be queried")


class TestDataFactory:
    """Factory for creating test data."""
    __test__ = False

    DEST_WALLET = "cb57bbbb54cdf60fa666fd741be78f794d4608d67109"
    PRICE_PER_DAY = Decimal("10")

    @staticmethod
    def public_key(seed: int = 0, size: int = 57) -> str:
        """Hex public key of ``size`` bytes."""
        return bytes((seed + i) % 256 for i in range(size)).hex()

    @staticmethod
    def at(days: float = 0, base: Optional[datetime] = None) -> datetime:
        """A UTC instant ``days`` after ``base`` (default 2024-01-01)."""
        base = base or datetime(2024, 1, 1, tzinfo=timezone.utc)
        return base + timedelta(days=days)

    @classmethod
    def payment(cls, when: datetime, days_paid: float, sender: Optional[str] = None,
                recipient: Optional[str] = None) -> PaymentEvent:
        """A payment buying ``days_paid`` days at the default price."""
        return PaymentEvent(
            timestamp=when,
            amount=cls.PRICE_PER_DAY * Decimal(str(days_paid)),
            sender=sender,
            recipient=recipient,
        )
