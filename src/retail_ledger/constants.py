"""Enumerations and fixed values shared across the retail ledger modules.

Centralises domain constants so that the data access layer (DAL), the ledger
engine, and the presentation layer rely on a single source of truth for sheet
names, ledger states, and money handling.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum


# Central schema version expected by all layers when validating workbooks.
EXPECTED_SCHEMA_VERSION = "1.0.0"

# Monetary amounts are stored with two fractional digits.
MONEY_QUANTUM = Decimal("0.01")
ZERO = Decimal("0.00")

DEFAULT_CURRENCY_SYMBOL = "₹"
DEFAULT_MAX_WRITE_RETRIES = 3


class LedgerStatus(str, Enum):
    """Enumerate the lifecycle states of a customer ledger entry."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"

    @property
    def is_open(self) -> bool:
        return self is not LedgerStatus.PAID


OPEN_STATUSES: tuple[LedgerStatus, ...] = (LedgerStatus.UNPAID, LedgerStatus.PARTIAL)


class PaymentKind(str, Enum):
    """Enumerate the settlement operations recorded in the payment log."""

    FULL = "FULL"
    PARTIAL = "PARTIAL"


class SheetName(str, Enum):
    """Enumerate the workbook sheet names managed by the DAL."""

    PRODUCTS = "Products"
    CUSTOMERS = "Customers"
    SALES = "Sales"
    SALE_LINES = "SaleLines"
    LEDGER = "Ledger"
    PAYMENTS = "Payments"


__all__ = [
    "EXPECTED_SCHEMA_VERSION",
    "MONEY_QUANTUM",
    "ZERO",
    "DEFAULT_CURRENCY_SYMBOL",
    "DEFAULT_MAX_WRITE_RETRIES",
    "LedgerStatus",
    "OPEN_STATUSES",
    "PaymentKind",
    "SheetName",
]
