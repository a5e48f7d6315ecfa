"""
Paywall service for the Ledger Paywall Access Layer.

Exposes a forward-auth endpoint for a reverse proxy: the proxy forwards the
caller's identity header and lets the request through on 200. Denials are
4xx and infrastructure failures 5xx, so an outage never looks like
"you did not pay".
"""

import asyncio
from typing import Dict, Optional

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from shared.base_service import BaseService
from shared.config import PaywallConfig, get_paywall_config
from shared.errors import AccessLayerException, ConfigurationError, ErrorResponse, current_trace_id

from .address.deriver import AddressDeriver
from .allowlist import AllowList
from .cache.redis_cache import RedisDecisionCache
from .decider import AccessDecider
from .ledger.calculator import EntitlementCalculator
from .models import AccessCheckResponse, AccessDecision, DenyReason
from .persistence.postgres import PostgreSQLLedger

STATUS_BY_REASON: Dict[DenyReason, int] = {
    DenyReason.MISSING_IDENTITY: 401,
    DenyReason.EXPIRED: 402,
    DenyReason.INVALID_KEY: 403,
    DenyReason.CACHE_CORRUPTED: 500,
    DenyReason.CACHE_UNAVAILABLE: 502,
    DenyReason.LEDGER_QUERY_FAILED: 503,
}

MESSAGE_BY_REASON: Dict[DenyReason, str] = {
    DenyReason.MISSING_IDENTITY: "Missing public key",
    DenyReason.EXPIRED: "Service expired",
    DenyReason.INVALID_KEY: "Invalid public key",
    DenyReason.CACHE_CORRUPTED: "Internal server error",
    DenyReason.CACHE_UNAVAILABLE: "Decision cache unavailable",
    DenyReason.LEDGER_QUERY_FAILED: "Ledger unavailable",
}

DECISION_TIMEOUT_STATUS = 504


class AccessDeniedError(AccessLayerException):
    """Raised by the route dependency when a decision is a denial."""

    def __init__(self, reason: DenyReason):
        self.reason = reason
        super().__init__(reason.value, MESSAGE_BY_REASON[reason])


class DecisionTimeoutError(AccessLayerException):
    """The decision did not finish within the request deadline."""

    def __init__(self, timeout: float):
        super().__init__("DECISION_TIMEOUT", "Access decision timed out", {"timeout_seconds": timeout})


def status_for_decision(decision: AccessDecision) -> int:
    """HTTP status the transport answers a decision with."""
    if decision.granted:
        return 200
    return STATUS_BY_REASON[decision.reason]


class PaywallService(BaseService):
    """Paywall service implementation."""

    def __init__(
        self,
        config: Optional[PaywallConfig] = None,
        decider: Optional[AccessDecider] = None,
        ledger: Optional[PostgreSQLLedger] = None,
        cache: Optional[RedisDecisionCache] = None,
    ):
        config = config or get_paywall_config()
        super().__init__("paywall", config.port, config)

        if not config.dest_wallet and decider is None:
            raise ConfigurationError("dest_wallet must be configured")

        self.ledger = ledger or PostgreSQLLedger(config.postgres_dsn, config.ledger_table)
        self.cache = cache or RedisDecisionCache(config.redis_url)
        self.decider = decider or AccessDecider(
            allowlist=AllowList(config.allowlist),
            cache=self.cache,
            deriver=AddressDeriver(config.address_scheme, config.network_id),
            calculator=EntitlementCalculator(
                self.ledger, config.dest_wallet, config.price_per_day, metrics=self.metrics
            ),
            metrics=self.metrics,
        )

        self._setup_paywall_routes()

    async def check_access(self, request: Request) -> AccessDecision:
        """Run the decider for a request under the configured deadline."""
        public_key = request.headers.get(self.config.identity_header)
        timeout = self.config.decision_timeout_seconds
        try:
            return await asyncio.wait_for(self.decider.decide(public_key), timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.error("Access decision timed out", timeout_seconds=timeout)
            raise DecisionTimeoutError(timeout)

    def require_paid_access(self):
        """FastAPI dependency guarding routes in this app."""

        async def dependency(request: Request) -> AccessDecision:
            decision = await self.check_access(request)
            if not decision.granted:
                raise AccessDeniedError(decision.reason)
            return decision

        return dependency

    def _status_for_exception(self, exc: AccessLayerException) -> int:
        if isinstance(exc, AccessDeniedError):
            return STATUS_BY_REASON[exc.reason]
        if isinstance(exc, DecisionTimeoutError):
            return DECISION_TIMEOUT_STATUS
        return 500

    def _setup_paywall_routes(self):
        """Set up paywall-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "paywall",
                "message": "Ledger Paywall Access Layer - Paywall Service",
                "version": "1.0.0",
                "capabilities": ["allowlist", "ledger_entitlements", "decision_cache"]
            }

        @self.app.api_route("/auth/verify", methods=["GET", "HEAD"])
        async def verify(request: Request):
            """Forward-auth check for the identity header."""
            decision = await self.check_access(request)
            body = AccessCheckResponse.from_decision(decision)

            if decision.granted:
                headers = {"X-Access-Source": decision.source.value}
                if decision.active_days is not None:
                    headers["X-Access-Days"] = str(decision.active_days)
                return JSONResponse(status_code=200, content=body.model_dump(mode="json"), headers=headers)

            error = ErrorResponse(
                trace_id=current_trace_id(),
                code=decision.reason.value,
                message=MESSAGE_BY_REASON[decision.reason],
                details=body.model_dump(mode="json"),
            )
            return JSONResponse(status_code=status_for_decision(decision), content=error.model_dump())

        @self.app.get("/entitlements/me")
        async def my_entitlement(decision: AccessDecision = Depends(self.require_paid_access())):
            """Entitlement of the calling identity; denied callers get the mapped error."""
            return AccessCheckResponse.from_decision(decision)

        @self.app.get("/entitlements/stats")
        async def stats():
            """Allow-list and configuration summary."""
            return {
                "allowlist_size": len(self.decider.allowlist),
                "address_scheme": self.config.address_scheme,
                "price_per_day": str(self.config.price_per_day),
                "identity_header": self.config.identity_header,
            }

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check paywall service dependencies."""
        return {
            "redis": "ok" if await self.cache.health_check() else "error",
            "postgres": "ok" if await self.ledger.health_check() else "error",
        }

    async def start(self):
        """Start paywall service components."""
        await self.ledger.start()
        await self.cache.start()
        self.logger.info(
            "Paywall service started",
            allowlist_size=len(self.decider.allowlist),
            address_scheme=self.config.address_scheme,
        )

    async def stop(self):
        """Stop paywall service components."""
        await self.ledger.stop()
        await self.cache.stop()
        self.logger.info("Paywall service stopped")


def create_app(service: Optional[PaywallService] = None):
    """Create paywall service application."""
    service = service or PaywallService()
    return service.app


if __name__ == "__main__":
    PaywallService().run()
