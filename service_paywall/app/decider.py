"""
Access decision orchestration for the Paywall Service.

Order of evaluation:

    identity present? -> allow-list -> decision cache -> derive address
        -> ledger entitlement -> cache write

Every failure ends the evaluation with a denial naming its reason. The
engine holds no locks and retries nothing: two first requests for the same
identity may both miss the cache, both read the ledger and both write the
same record, which is harmless. Cancellation from the caller (for example
an ``asyncio.wait_for`` deadline) is never caught here, so in-flight ledger
and cache calls are aborted with it.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

from shared.errors import (
    CacheCorruptedError,
    CacheUnavailableError,
    InvalidKeyError,
    LedgerQueryError,
    MissingIdentityError,
)
from shared.logging import get_logger, mask_identity, set_identity_context
from shared.metrics import MetricsCollector
from .address.deriver import AddressDeriver
from .allowlist import AllowList
from .cache.redis_cache import RedisDecisionCache
from .ledger.calculator import EntitlementCalculator
from .models import (
    AccessDecision,
    DecisionSource,
    DenyReason,
    EntitlementDecision,
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def presented_identity(public_key: Optional[str]) -> str:
    """The presented public key without surrounding whitespace."""
    if public_key is None or not public_key.strip():
        raise MissingIdentityError()
    return public_key.strip()


class AccessDecider:
    """Turns a presented public key into a grant or a reasoned denial."""

    def __init__(
        self,
        allowlist: AllowList,
        cache: RedisDecisionCache,
        deriver: AddressDeriver,
        calculator: EntitlementCalculator,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.allowlist = allowlist
        self.cache = cache
        self.deriver = deriver
        self.calculator = calculator
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("paywall.decider")

    async def decide(self, public_key: Optional[str], now: Optional[datetime] = None) -> AccessDecision:
        """Evaluate one request."""
        decision = await self._evaluate(public_key, now)

        if self.metrics:
            self.metrics.record_decision(
                decision.granted,
                decision.reason.value if decision.reason else None,
                decision.source.value if decision.source else None,
            )

        self.logger.info(
            "Access decision",
            granted=decision.granted,
            reason=decision.reason.value if decision.reason else None,
            source=decision.source.value if decision.source else None,
            active_days=decision.active_days,
        )
        return decision

    async def _evaluate(self, public_key: Optional[str], now: Optional[datetime]) -> AccessDecision:
        try:
            public_key = presented_identity(public_key)
        except MissingIdentityError:
            return AccessDecision.deny(DenyReason.MISSING_IDENTITY)

        set_identity_context(public_key)

        if self.allowlist.contains(public_key):
            return AccessDecision.grant(DecisionSource.ALLOWLIST)

        try:
            cached_seconds = await self._cached_seconds(public_key)
        except CacheUnavailableError:
            return AccessDecision.deny(DenyReason.CACHE_UNAVAILABLE)

        if cached_seconds is not None:
            # The record holds the seconds granted at write time, not what is left.
            return AccessDecision.grant(DecisionSource.CACHE, ttl_seconds=cached_seconds)

        try:
            address = self.deriver.derive(public_key)
        except InvalidKeyError as e:
            self.logger.info("Rejected public key", identity=mask_identity(public_key), error=e.message)
            return AccessDecision.deny(DenyReason.INVALID_KEY)

        try:
            entitlement = await self.evaluate_address(address, now or self.clock())
        except LedgerQueryError as e:
            self.logger.error("Ledger query failed", address=address, error=e.message, details=e.details)
            return AccessDecision.deny(DenyReason.LEDGER_QUERY_FAILED)

        if not entitlement.granted:
            # Nothing is cached so a new payment counts on the next request.
            return AccessDecision.deny(DenyReason.EXPIRED)

        try:
            await self.cache.put(public_key, entitlement.ttl_seconds)
        except CacheUnavailableError:
            return AccessDecision.deny(DenyReason.CACHE_UNAVAILABLE)

        self._cache_event("write")
        return AccessDecision.grant(
            DecisionSource.LEDGER,
            active_days=entitlement.active_days_remaining,
            ttl_seconds=entitlement.ttl_seconds,
        )

    async def evaluate_address(self, address: str, now: datetime) -> EntitlementDecision:
        """Entitlement of a ledger address at ``now``."""
        days = await self.calculator.calculate(address, now)
        return EntitlementDecision(granted=days > 0, active_days_remaining=max(days, 0))

    async def _cached_seconds(self, public_key: str) -> Optional[int]:
        try:
            seconds = await self.cache.get(public_key)
        except CacheCorruptedError as e:
            self.logger.warning(
                "Ignoring corrupted cache record",
                identity=mask_identity(public_key),
                details=e.details
            )
            self._cache_event("corrupted")
            return None

        self._cache_event("hit" if seconds is not None else "miss")
        return seconds

    def _cache_event(self, event: str):
        if self.metrics:
            self.metrics.record_cache_event(event)
