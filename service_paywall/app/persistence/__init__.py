"""
Persistence package for the Paywall Service.

Read-only access to the externally ingested ledger of transfers. The
service never writes to the ledger.
"""
