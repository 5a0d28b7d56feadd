"""Sale recorder sitting in front of the ledger engine.

A sale is validated, priced once against the catalog, posted to the customer's
ledger entry, and only then appended to the ``Sales`` and ``SaleLines``
sheets together with the identifier of the entry it was posted to. A posting
that fails therefore leaves no sale behind.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from . import data_manager, log
from .core_logic import (
    MarkPaidCommand,
    NotFoundError,
    RuntimeContext,
    SaleLine,
    generate_id,
    mark_paid,
    post_priced_sale,
    price_lines,
    require_positive_quantity,
    resolve_customer,
    resolve_timestamp,
    sale_total,
)


@dataclass(frozen=True)
class SaleCommand:
    """User intent for ringing up a sale for a known customer."""

    customer_id: str
    lines: Tuple[SaleLine, ...]
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class RecordedSale:
    """A stored sale, its priced lines, and the ledger entry it landed on."""

    sale: data_manager.SaleRow
    lines: Tuple[data_manager.SaleLineRow, ...]
    entry: data_manager.LedgerRow


def normalize_lines(lines: Sequence[SaleLine]) -> List[SaleLine]:
    """Collapse repeated products into one line, keeping first-seen order.

    Each requested quantity is validated before it is added, so a negative
    line cannot hide inside a positive sum.
    """
    merged: Dict[str, Decimal] = {}
    for line in lines:
        require_positive_quantity(line.quantity)
        merged[line.product_id] = merged.get(line.product_id, Decimal("0")) + line.quantity
    return [SaleLine(product_id=product_id, quantity=quantity) for product_id, quantity in merged.items()]


def record_sale(context: RuntimeContext, command: SaleCommand) -> RecordedSale:
    """Record a sale and post its charges to the customer's ledger.

    Args:
        context (RuntimeContext): Runtime context providing the store and the
            catalog.
        command (SaleCommand): Customer and requested lines.

    Returns:
        RecordedSale: The appended sale header and lines plus the ledger entry
            as stored after the posting.

    Raises:
        ValidationError: If the request is empty or invalid.
        NotFoundError: If the customer or a product is unknown.
        ConflictError: If the ledger posting kept losing concurrent races.
    """
    customer = resolve_customer(context, command.customer_id)
    priced = price_lines(context, normalize_lines(command.lines))
    timestamp = resolve_timestamp(command.timestamp)

    entry = post_priced_sale(context, customer, priced, timestamp=timestamp)

    sale_id = generate_id("S", when=timestamp)
    sale = data_manager.SaleRow(
        sale_id=sale_id,
        timestamp_iso=timestamp.isoformat(),
        customer_id=customer.customer_id,
        sale_total=sale_total(priced),
        ledger_entry_id=entry.entry_id,
    )
    sale_lines = tuple(
        data_manager.SaleLineRow(
            sale_id=sale_id,
            line_no=line_no,
            product_id=line.product_id,
            product_name=line.product_name,
            quantity=line.quantity,
            unit_price=line.unit_price,
            line_total=line.line_total,
        )
        for line_no, line in enumerate(priced, start=1)
    )
    context.store.append_sale(sale, list(sale_lines))
    log.info(
        "Recorded sale '%s' for customer '%s' (total=%s, entry='%s')",
        sale.sale_id,
        customer.customer_id,
        sale.sale_total,
        entry.entry_id,
    )
    return RecordedSale(sale=sale, lines=sale_lines, entry=entry)


def record_paid_sale(context: RuntimeContext, command: SaleCommand) -> RecordedSale:
    """Record a sale and settle the customer's whole open balance at once.

    The settlement covers the entry the sale was posted to, so any balance the
    customer carried before this sale is cleared as well.
    """
    timestamp = resolve_timestamp(command.timestamp)
    recorded = record_sale(context, replace(command, timestamp=timestamp))
    paid = mark_paid(
        context,
        MarkPaidCommand(entry_id=recorded.entry.entry_id, timestamp=timestamp),
    )
    return RecordedSale(sale=recorded.sale, lines=recorded.lines, entry=paid)


def list_sales(context: RuntimeContext, *, customer_id: Optional[str] = None) -> List[data_manager.SaleRow]:
    sales = context.store.list_sales()
    if customer_id is None:
        return sales
    return [sale for sale in sales if sale.customer_id == customer_id]


def get_sale(context: RuntimeContext, sale_id: str) -> Tuple[data_manager.SaleRow, List[data_manager.SaleLineRow]]:
    """Return a sale header with its lines.

    Raises:
        NotFoundError: If no sale carries ``sale_id``.
    """
    for sale in context.store.list_sales():
        if sale.sale_id == sale_id:
            return sale, context.store.list_sale_lines(sale_id)
    log.warning("Sale lookup failed for id '%s'", sale_id)
    raise NotFoundError(f"Unknown sale id: {sale_id}")
