"""
Paywall Service package for the Ledger Paywall Access Layer.

This package decides whether a caller, identified by the public key it
presents, has paid enough recently enough on the ledger to reach a
protected resource. It provides:

- app.address: Public key to ledger address derivation.
- app.allowlist: Static bypass set of pre-approved identities.
- app.ledger: Service period coalescing and active-day calculation.
- app.persistence: PostgreSQL reader for ingested ledger transfers.
- app.cache: Redis-backed cache for "granted for N seconds" decisions.
- app.decider: Orchestration of the above into one decision.
- app.main: Forward-auth HTTP surface and health.

Guidelines:
- The service is stateless; rely on external cache/DB.
- Never report an unreachable ledger as "not paid".
- Collaborators are injected; no process-wide singletons.
"""
