"""Aggregate views over the sales log, the payment log, and the ledger.

Reports only read what the ledger engine and the sale recorder wrote; they
implement no ledger rules of their own. Periods are derived from the stored
ISO-8601 timestamps, so a day or month is the one recorded in the timestamp's
own offset.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Tuple

from . import log
from .constants import ZERO, LedgerStatus
from .core_logic import RuntimeContext, parse_timestamp


@dataclass(frozen=True)
class PeriodTotal:
    """Number of records and their summed amount for one day or month."""

    period: str
    count: int
    amount: Decimal


@dataclass(frozen=True)
class OutstandingSummary:
    """Snapshot of every balance still owed to the shop."""

    open_entries: int
    unpaid_entries: int
    partial_entries: int
    total_outstanding: Decimal


def _day_key(timestamp_iso: str) -> str:
    return parse_timestamp(timestamp_iso).strftime("%Y-%m-%d")


def _month_key(timestamp_iso: str) -> str:
    return parse_timestamp(timestamp_iso).strftime("%Y-%m")


def _group_totals(
    records: Iterable[Tuple[str, Decimal]],
    key: Callable[[str], str],
) -> List[PeriodTotal]:
    counts: Dict[str, int] = {}
    amounts: Dict[str, Decimal] = {}
    for timestamp_iso, amount in records:
        period = key(timestamp_iso)
        counts[period] = counts.get(period, 0) + 1
        amounts[period] = amounts.get(period, ZERO) + amount
    return [
        PeriodTotal(period=period, count=counts[period], amount=amounts[period])
        for period in sorted(counts)
    ]


def daily_sales_report(context: RuntimeContext) -> List[PeriodTotal]:
    """Return sale count and revenue per calendar day, oldest day first."""
    totals = _group_totals(
        ((sale.timestamp_iso, sale.sale_total) for sale in context.store.list_sales()),
        _day_key,
    )
    log.debug("Calculated daily sales report over %d day(s)", len(totals))
    return totals


def monthly_sales_report(context: RuntimeContext) -> List[PeriodTotal]:
    """Return sale count and revenue per calendar month, oldest month first."""
    totals = _group_totals(
        ((sale.timestamp_iso, sale.sale_total) for sale in context.store.list_sales()),
        _month_key,
    )
    log.debug("Calculated monthly sales report over %d month(s)", len(totals))
    return totals


def collections_report(context: RuntimeContext) -> List[PeriodTotal]:
    """Return settlement count and amount collected per calendar day.

    Full and partial payments are counted alike.
    """
    totals = _group_totals(
        ((payment.timestamp_iso, payment.amount) for payment in context.store.list_payments()),
        _day_key,
    )
    log.debug("Calculated collections report over %d day(s)", len(totals))
    return totals


def outstanding_summary(context: RuntimeContext) -> OutstandingSummary:
    """Summarize open ledger entries and the total amount still owed.

    Args:
        context (RuntimeContext): Runtime context providing the ledger store.

    Returns:
        OutstandingSummary: Entry counts per open status and the summed
            outstanding balance.
    """
    unpaid = context.store.entries_with_status(LedgerStatus.UNPAID)
    partial = context.store.entries_with_status(LedgerStatus.PARTIAL)
    total = sum((entry.total for entry in (*unpaid, *partial)), ZERO)
    summary = OutstandingSummary(
        open_entries=len(unpaid) + len(partial),
        unpaid_entries=len(unpaid),
        partial_entries=len(partial),
        total_outstanding=total,
    )
    log.debug(
        "Calculated outstanding summary: open=%d total=%s",
        summary.open_entries,
        summary.total_outstanding,
    )
    return summary
