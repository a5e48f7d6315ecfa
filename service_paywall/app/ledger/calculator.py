"""
Entitlement calculation over ledger payment events.
"""

import time
from datetime import datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from typing import Iterable, List, Optional, Protocol

from shared.errors import LedgerQueryError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from ..models import PaymentEvent, ServicePeriod

ONE_DAY = timedelta(days=1)


class LedgerReader(Protocol):
    """Port for reading ingested transfers."""

    async def fetch_payments(self, sender: str, recipient: str) -> List[PaymentEvent]:
        """
        Transfers from ``sender`` to ``recipient``, oldest first.

        Raises:
            LedgerQueryError: the ledger could not be read.
        """
        ...


def service_days(amount: Decimal, price_per_day: Decimal) -> int:
    """Whole days bought by ``amount``; never negative."""
    days = int((amount / price_per_day).to_integral_value(rounding=ROUND_FLOOR))
    return max(days, 0)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def _checked(event: PaymentEvent) -> PaymentEvent:
    if not isinstance(event.timestamp, datetime):
        raise LedgerQueryError("Ledger row has no usable timestamp", {"timestamp": repr(event.timestamp)})
    try:
        amount = event.amount if isinstance(event.amount, Decimal) else Decimal(str(event.amount))
    except (InvalidOperation, ValueError, TypeError):
        raise LedgerQueryError("Ledger row has a non-numeric amount", {"amount": repr(event.amount)})
    if not amount.is_finite():
        raise LedgerQueryError("Ledger row has a non-numeric amount", {"amount": repr(event.amount)})
    return PaymentEvent(
        timestamp=_as_utc(event.timestamp),
        amount=amount,
        sender=event.sender,
        recipient=event.recipient,
    )


def coalesce_periods(events: Iterable[PaymentEvent], price_per_day: Decimal) -> List[ServicePeriod]:
    """
    Fold payments into service periods.

    A payment after the open period's end starts a new period at its own
    timestamp. Otherwise it joins the open period: its days are added and
    the period end becomes the payment's own reach (timestamp + its days),
    replacing the previous end rather than extending it.
    """
    # sorted() is stable: equal timestamps keep ledger order.
    ordered = sorted((_checked(event) for event in events), key=lambda event: event.timestamp)

    periods: List[ServicePeriod] = []
    current: Optional[ServicePeriod] = None

    for event in ordered:
        days = service_days(event.amount, price_per_day)
        reach = event.timestamp + days * ONE_DAY

        if current is None or event.timestamp > current.end:
            current = ServicePeriod(start=event.timestamp, end=reach, days=days)
            periods.append(current)
        else:
            current.end = reach
            current.days += days

    return periods


def _same_address(left: Optional[str], right: Optional[str]) -> bool:
    return (left or "").strip().casefold() == (right or "").strip().casefold()


def active_days(
    address: str,
    price_per_day: Decimal,
    now: datetime,
    events: Iterable[PaymentEvent],
    destination: Optional[str] = None,
) -> int:
    """Entitlement days of ``address`` active at ``now``."""
    if price_per_day <= 0:
        raise ValueError("price_per_day must be positive")

    relevant = [
        event for event in events
        if (event.sender is None or _same_address(event.sender, address))
        and (destination is None or event.recipient is None or _same_address(event.recipient, destination))
    ]

    moment = _as_utc(now)
    total = sum(
        period.days
        for period in coalesce_periods(relevant, price_per_day)
        if period.covers(moment)
    )
    return max(total, 0)


class EntitlementCalculator:
    """Computes active days for an address from the ledger collaborator."""

    def __init__(
        self,
        ledger: LedgerReader,
        destination_wallet: str,
        price_per_day: Decimal,
        metrics: Optional[MetricsCollector] = None,
    ):
        if price_per_day <= 0:
            raise ValueError("price_per_day must be positive")
        self.ledger = ledger
        self.destination_wallet = destination_wallet
        self.price_per_day = Decimal(price_per_day)
        self.metrics = metrics
        self.logger = get_logger("paywall.ledger.calculator")

    async def calculate(self, address: str, now: datetime) -> int:
        """Active entitlement days of ``address`` at ``now``."""
        start_time = time.time()
        outcome = "error"
        try:
            events = await self.ledger.fetch_payments(address, self.destination_wallet)
            days = active_days(address, self.price_per_day, now, events, self.destination_wallet)
            outcome = "ok"
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "ledger_query_duration_seconds", time.time() - start_time, outcome=outcome
                )

        self.logger.debug("Active days calculated", address=address, events=len(events), active_days=days)
        return days
