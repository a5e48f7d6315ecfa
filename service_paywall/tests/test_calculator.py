"""
Unit tests for service period coalescing and active-day calculation.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_paywall.app.ledger.calculator import (
    EntitlementCalculator,
    active_days,
    coalesce_periods,
    service_days,
)
from service_paywall.app.models import PaymentEvent
from service_paywall.testing import FailingLedger, StubLedger, TestDataFactory
from shared.errors import LedgerQueryError
from shared.metrics import MetricsCollector

PRICE = TestDataFactory.PRICE_PER_DAY
ADDRESS = "cb…00112233445566778899aabbccddeeff"
at = TestDataFactory.at
pay = TestDataFactory.payment


class TestServiceDays:
    """Test cases for days bought by one payment."""

    @pytest.mark.parametrize("amount,expected", [
        ("0", 0),
        ("9.99", 0),
        ("10", 1),
        ("29.5", 2),
        ("100", 10),
        ("-50", 0),
    ])
    def test_floor_of_amount_over_price(self, amount, expected):
        assert service_days(Decimal(amount), PRICE) == expected


class TestCoalescePeriods:
    """Test cases for folding payments into service periods."""

    def test_single_payment_opens_period(self):
        periods = coalesce_periods([pay(at(0), 3)], PRICE)

        assert len(periods) == 1
        assert periods[0].start == at(0)
        assert periods[0].end == at(3)
        assert periods[0].days == 3

    def test_payment_inside_period_accumulates_days_and_reanchors_end(self):
        events = [pay(at(0), 5), pay(at(0.5), 5)]

        periods = coalesce_periods(events, PRICE)

        assert len(periods) == 1
        assert periods[0].days == 10
        assert periods[0].start == at(0)
        assert periods[0].end == at(0.5) + timedelta(days=5)
        assert periods[0].end != at(10)

    def test_payment_after_gap_starts_new_period(self):
        events = [pay(at(0), 1), pay(at(10), 1)]

        periods = coalesce_periods(events, PRICE)

        assert len(periods) == 2
        assert (periods[0].start, periods[0].end, periods[0].days) == (at(0), at(1), 1)
        assert (periods[1].start, periods[1].end, periods[1].days) == (at(10), at(11), 1)

    def test_payment_exactly_at_end_extends(self):
        periods = coalesce_periods([pay(at(0), 2), pay(at(2), 1)], PRICE)

        assert len(periods) == 1
        assert periods[0].days == 3
        assert periods[0].end == at(3)

    def test_small_late_payment_can_pull_end_earlier(self):
        periods = coalesce_periods([pay(at(0), 10), pay(at(1), 1)], PRICE)

        assert len(periods) == 1
        assert periods[0].days == 11
        assert periods[0].end == at(2)

    def test_unordered_input_is_sorted(self):
        periods = coalesce_periods([pay(at(10), 1), pay(at(0), 1)], PRICE)

        assert [period.start for period in periods] == [at(0), at(10)]

    def test_end_never_precedes_start(self):
        events = [pay(at(0), 0), pay(at(0), 4), pay(at(0.1), 0), pay(at(9), 0.5)]

        for period in coalesce_periods(events, PRICE):
            assert period.end >= period.start
            assert period.days >= 0

    def test_naive_timestamps_are_utc(self):
        naive = PaymentEvent(timestamp=datetime(2024, 1, 1), amount=Decimal("20"))

        periods = coalesce_periods([naive], PRICE)

        assert periods[0].start == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_numeric_text_amount_is_accepted(self):
        event = PaymentEvent(timestamp=at(0), amount="30")

        assert coalesce_periods([event], PRICE)[0].days == 3

    @pytest.mark.parametrize("event", [
        PaymentEvent(timestamp=None, amount=Decimal("10")),
        PaymentEvent(timestamp="2024-01-01", amount=Decimal("10")),
        PaymentEvent(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc), amount="ten"),
        PaymentEvent(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc), amount=None),
        PaymentEvent(timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc), amount=Decimal("NaN")),
    ])
    def test_malformed_rows_fail_the_query(self, event):
        with pytest.raises(LedgerQueryError):
            coalesce_periods([event], PRICE)


class TestActiveDays:
    """Test cases for days active at a given moment."""

    def test_empty_history_is_zero(self):
        assert active_days(ADDRESS, PRICE, at(0), []) == 0

    def test_inside_stacked_period(self):
        events = [pay(at(0), 5), pay(at(0.5), 5)]

        assert active_days(ADDRESS, PRICE, at(3), events) == 10
        assert active_days(ADDRESS, PRICE, at(5.5), events) == 10
        assert active_days(ADDRESS, PRICE, at(6), events) == 0

    def test_now_in_gap_is_zero(self):
        events = [pay(at(0), 1), pay(at(10), 1)]

        assert active_days(ADDRESS, PRICE, at(5), events) == 0
        assert active_days(ADDRESS, PRICE, at(10.5), events) == 1

    def test_period_bounds_are_inclusive(self):
        events = [pay(at(0), 3)]

        assert active_days(ADDRESS, PRICE, at(0), events) == 3
        assert active_days(ADDRESS, PRICE, at(3), events) == 3
        assert active_days(ADDRESS, PRICE, at(3) + timedelta(seconds=1), events) == 0

    def test_before_first_payment_is_zero(self):
        assert active_days(ADDRESS, PRICE, at(-1), [pay(at(0), 3)]) == 0

    def test_other_senders_are_ignored(self):
        events = [
            pay(at(0), 3, sender=ADDRESS.upper()),
            pay(at(0), 30, sender="cb…ffffffffffffffffffffffffffffffff"),
        ]

        assert active_days(ADDRESS, PRICE, at(1), events) == 3

    def test_other_recipients_are_ignored_when_destination_given(self):
        events = [
            pay(at(0), 3, sender=ADDRESS, recipient=TestDataFactory.DEST_WALLET),
            pay(at(0), 30, sender=ADDRESS, recipient="cb00somewhere-else"),
        ]

        assert active_days(ADDRESS, PRICE, at(1), events, destination=TestDataFactory.DEST_WALLET) == 3
        assert active_days(ADDRESS, PRICE, at(1), events) == 33

    def test_never_negative(self):
        events = [
            PaymentEvent(timestamp=at(0), amount=Decimal("-1000")),
            PaymentEvent(timestamp=at(0.5), amount=Decimal("-1")),
        ]

        assert active_days(ADDRESS, PRICE, at(0.2), events) == 0

    def test_naive_now_is_utc(self):
        assert active_days(ADDRESS, PRICE, datetime(2024, 1, 2), [pay(at(0), 3)]) == 3

    def test_price_must_be_positive(self):
        with pytest.raises(ValueError):
            active_days(ADDRESS, Decimal("0"), at(0), [])


class TestEntitlementCalculator:
    """Test cases for the ledger-backed calculator."""

    @pytest.mark.asyncio
    async def test_queries_ledger_with_address_and_destination(self):
        ledger = StubLedger(events=[pay(at(0), 3)])
        calculator = EntitlementCalculator(ledger, TestDataFactory.DEST_WALLET, PRICE)

        days = await calculator.calculate(ADDRESS, at(1))

        assert days == 3
        assert ledger.calls == [(ADDRESS, TestDataFactory.DEST_WALLET)]

    @pytest.mark.asyncio
    async def test_ledger_failure_propagates(self):
        calculator = EntitlementCalculator(FailingLedger(), TestDataFactory.DEST_WALLET, PRICE)

        with pytest.raises(LedgerQueryError):
            await calculator.calculate(ADDRESS, at(1))

    @pytest.mark.asyncio
    async def test_records_query_duration(self):
        metrics = MetricsCollector("paywall")
        ledger = AsyncMock()
        ledger.fetch_payments.return_value = []
        calculator = EntitlementCalculator(ledger, TestDataFactory.DEST_WALLET, PRICE, metrics=metrics)

        await calculator.calculate(ADDRESS, at(0))

        count = metrics.registry.get_sample_value(
            "ledger_query_duration_seconds_count", {"outcome": "ok"}
        )
        assert count == 1.0

    def test_rejects_non_positive_price(self):
        with pytest.raises(ValueError):
            EntitlementCalculator(StubLedger(), TestDataFactory.DEST_WALLET, Decimal("0"))
