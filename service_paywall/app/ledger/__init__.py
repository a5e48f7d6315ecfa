"""
Ledger entitlement package.

Turns the payment history of an address into the number of entitlement
days active right now. Payments are folded into service periods:

- a payment made after the current period ended opens a new period
  (unused days of a lapsed period are lost);
- a payment made while a period is open adds its days to that period and
  moves the period end to the payment's own reach.

Modules of interest:
- calculator: Period coalescing and the ledger-backed calculator.
"""

from .calculator import (
    EntitlementCalculator,
    active_days,
    coalesce_periods,
    service_days,
)

__all__ = [
    "EntitlementCalculator",
    "active_days",
    "coalesce_periods",
    "service_days",
]
