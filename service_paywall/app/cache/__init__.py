"""
Cache package for the Paywall Service.

Provides a Redis-backed cache of granted decisions. A record stores the
seconds of entitlement left when it was written, and expires after
exactly that many seconds.
"""
