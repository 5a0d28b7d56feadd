"""Ledger engine for the retail back office.

This module turns sale postings and payment events into a consistent,
queryable outstanding balance per customer. It consumes the data access layer
through :class:`~retail_ledger.ledger_store.LedgerStore` and the read-only
:class:`~retail_ledger.catalog.WorkbookCatalog`.

The rules are written as pure ``build_*`` functions that take the current
entry and return the entry to persist. The ``post_sale``, ``mark_paid`` and
``apply_partial_payment`` orchestrators wrap them in the customer-scoped lock,
the optimistic version check and the bounded retry loop.

Ledger invariants enforced on every write:

1. ``total`` is never negative.
2. ``status == paid`` if and only if ``total == 0``.
3. ``status == partial`` if and only if a payment was applied and the balance
   is still positive.
4. ``status == unpaid`` if and only if no payment was ever applied.
5. A customer has at most one open (unpaid or partial) entry.
6. The product set of an open entry only grows.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from openpyxl.workbook import Workbook

from . import data_manager, log
from .catalog import WorkbookCatalog
from .constants import (
    EXPECTED_SCHEMA_VERSION,
    MONEY_QUANTUM,
    OPEN_STATUSES,
    ZERO,
    LedgerStatus,
    PaymentKind,
)
from .ledger_store import LedgerStore, OpenEntryExistsError


class LedgerError(Exception):
    """Base class for every recoverable ledger engine failure."""


class ValidationError(LedgerError, ValueError):
    """Raised when a request carries missing or invalid input."""


class NotFoundError(LedgerError):
    """Raised when a customer, product, or ledger entry id is unknown."""


class OverpaymentError(LedgerError):
    """Raised when a partial payment exceeds the outstanding balance."""


class ConflictError(LedgerError):
    """Raised when a concurrent write still wins after all retries."""


class LedgerIntegrityError(LedgerError):
    """Raised when an entry would violate a ledger invariant."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for configuration, workbook, and the services built on it."""

    settings: data_manager.ConfigSettings
    workbook: Workbook
    store: LedgerStore
    catalog: WorkbookCatalog


@dataclass(frozen=True)
class SaleLine:
    """One requested line of a sale: a product and how many units."""

    product_id: str
    quantity: Decimal


@dataclass(frozen=True)
class PricedLine:
    """A sale line after its unit price was resolved from the catalog."""

    product_id: str
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class PostSaleCommand:
    """User intent for posting a sale's charges to the customer ledger."""

    customer_id: str
    lines: Tuple[SaleLine, ...]
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MarkPaidCommand:
    """User intent for settling a ledger entry in full."""

    entry_id: str
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class PartialPaymentCommand:
    """User intent for reducing a ledger entry by ``amount``."""

    entry_id: str
    amount: Decimal
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class LedgerFilter:
    """Optional narrowing for :func:`list_ledger`.

    ``customer_id`` is an exact match; ``name_contains`` is a case-insensitive
    substring match on the customer name captured in the entry.
    """

    customer_id: Optional[str] = None
    name_contains: Optional[str] = None
    include_closed: bool = False


_T = TypeVar("_T")


def build_runtime_context(settings: data_manager.ConfigSettings, workbook: Workbook) -> RuntimeContext:
    """Wire the store and catalog around a live workbook.

    Both services share one re-entrant lock because they read the same
    ``openpyxl`` workbook.
    """

    workbook_lock = threading.RLock()
    return RuntimeContext(
        settings=settings,
        workbook=workbook,
        store=LedgerStore(workbook, lock=workbook_lock),
        catalog=WorkbookCatalog(workbook, lock=workbook_lock),
    )


def load_runtime_context(config_path: Optional[Path] = None) -> RuntimeContext:
    """Load configuration settings and a live workbook for the engine.

    Args:
        config_path (Path | None): Optional override path for the configuration
            file. When omitted the data layer performs its upward search from
            the current working directory.

    Returns:
        RuntimeContext: Fully populated context ready for ledger operations.

    Raises:
        FileNotFoundError: If the configuration file or workbook cannot be
            located.
        KeyError: When mandatory configuration options are missing.
    """
    located_config = data_manager.find_config_file(config_path)
    resolved_config = Path(located_config).expanduser().resolve()
    parser = data_manager.read_config(resolved_config)
    settings = data_manager.parse_settings(parser, base_path=resolved_config.parent)
    workbook = data_manager.open_workbook(settings.data_file)
    log.info("Loaded runtime context for workbook '%s'", settings.data_file)
    return build_runtime_context(settings, workbook)


def ensure_schema_version(context: RuntimeContext) -> None:
    """Refuse to operate on a workbook declared with another schema version.

    Raises:
        RuntimeError: If the configured schema version does not match
            ``EXPECTED_SCHEMA_VERSION``.
    """
    if context.settings.schema_version != EXPECTED_SCHEMA_VERSION:
        log.error(
            "Workbook schema mismatch: expected %s, found %s",
            EXPECTED_SCHEMA_VERSION,
            context.settings.schema_version,
        )
        raise RuntimeError(
            "Workbook schema mismatch: expected %s, found %s"
            % (EXPECTED_SCHEMA_VERSION, context.settings.schema_version)
        )

    log.debug("Schema version '%s' validated", context.settings.schema_version)


def persist_context(context: RuntimeContext) -> None:
    """Persist in-memory workbook changes to the configured data file."""
    data_manager.save_workbook(
        context.workbook,
        destination=context.settings.data_file,
    )
    log.info("Persisted workbook '%s'", context.settings.data_file)


def refresh_context(context: RuntimeContext) -> RuntimeContext:
    """Reload the workbook to discard unsaved modifications.

    A new :class:`RuntimeContext` is produced, so indexes and caches from the
    previous context are discarded along with any unsaved edits.
    """
    workbook = data_manager.refresh_workbook(context.settings.data_file)
    log.info("Reloaded workbook '%s'", context.settings.data_file)
    return build_runtime_context(context.settings, workbook)


def resolve_timestamp(candidate: Optional[datetime]) -> datetime:
    """Return ``candidate`` as an aware UTC datetime, defaulting to now.

    Naive datetimes are taken to already be in UTC.
    """
    if candidate is None:
        return datetime.now(UTC)
    if candidate.tzinfo is None:
        return candidate.replace(tzinfo=UTC)
    return candidate.astimezone(UTC)


def generate_id(prefix: str, *, when: Optional[datetime] = None) -> str:
    """Generate a sortable identifier such as ``L20250101093000123456-4F2A9C01B7E3``.

    The timestamp part keeps identifiers in chronological order; the random
    suffix keeps two identifiers minted in the same microsecond apart.
    """
    when = when or resolve_timestamp(None)
    return f"{prefix}{when.strftime('%Y%m%d%H%M%S%f')}-{uuid.uuid4().hex[:12].upper()}"


def quantize_money(amount: Decimal) -> Decimal:
    """Round ``amount`` to two fractional digits, half up."""
    return Decimal(amount).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal, currency_symbol: str) -> str:
    return f"{currency_symbol}{quantize_money(amount):.2f}"


def parse_timestamp(value: str) -> datetime:
    return resolve_timestamp(datetime.fromisoformat(value))


def require_positive_quantity(quantity: Decimal) -> None:
    """Validate that a line quantity is strictly positive.

    Raises:
        ValidationError: If ``quantity`` is not a finite number or is zero or
            negative.
    """
    if not quantity.is_finite():
        log.warning("Quantity is not a finite number: %s", quantity)
        raise ValidationError("Quantity must be a finite number")
    if quantity <= Decimal("0"):
        log.warning("Quantity validation failed: %s", quantity)
        raise ValidationError("Quantity must be greater than zero")


def require_payment_amount(amount: Decimal) -> Decimal:
    """Validate a settlement amount and return it as money.

    Raises:
        ValidationError: If ``amount`` is not a finite positive number or
            carries more than two fractional digits.
    """
    if not amount.is_finite():
        log.warning("Payment amount is not a finite number: %s", amount)
        raise ValidationError("Payment amount must be a finite number")
    if amount <= Decimal("0"):
        log.warning("Payment amount validation failed: %s", amount)
        raise ValidationError("Payment amount must be greater than zero")
    money = quantize_money(amount)
    if money != amount:
        log.warning("Payment amount has sub-cent precision: %s", amount)
        raise ValidationError("Payment amount must have at most two decimal places")
    return money


def derive_status(amount_paid: Decimal, total: Decimal) -> LedgerStatus:
    """Return the status implied by the stored amounts."""
    if total == ZERO:
        return LedgerStatus.PAID
    if amount_paid > ZERO:
        return LedgerStatus.PARTIAL
    return LedgerStatus.UNPAID


def entry_violations(entry: data_manager.LedgerRow) -> List[str]:
    """List every invariant ``entry`` breaks; empty when it is consistent."""
    problems: List[str] = []
    if not entry.customer_id:
        problems.append("entry has no customer")
    if entry.total < ZERO:
        problems.append(f"total {entry.total} is negative")
    if entry.amount_paid < ZERO:
        problems.append(f"amount paid {entry.amount_paid} is negative")
    if entry.total != entry.amount_charged - entry.amount_paid:
        problems.append(
            f"total {entry.total} != charged {entry.amount_charged} - paid {entry.amount_paid}"
        )
    try:
        status = LedgerStatus(entry.status)
    except ValueError:
        problems.append(f"unknown status '{entry.status}'")
        return problems
    expected = derive_status(entry.amount_paid, entry.total)
    if status is not expected:
        problems.append(
            f"status '{status.value}' does not match amounts (expected '{expected.value}')"
        )
    return problems


def validate_entry_invariants(entry: data_manager.LedgerRow) -> None:
    """Raise :class:`LedgerIntegrityError` if ``entry`` is inconsistent."""
    problems = entry_violations(entry)
    if problems:
        log.error("Ledger entry '%s' failed invariants: %s", entry.entry_id, "; ".join(problems))
        raise LedgerIntegrityError(f"Ledger entry {entry.entry_id}: {'; '.join(problems)}")


def resolve_customer(context: RuntimeContext, customer_id: str) -> data_manager.CustomerRow:
    """Look up an active customer for posting.

    Raises:
        ValidationError: If ``customer_id`` is blank or the customer is
            inactive.
        NotFoundError: If the catalog has no such customer.
    """
    if not customer_id:
        raise ValidationError("A customer is required")
    try:
        customer = context.catalog.get_customer(customer_id)
    except KeyError as exc:
        raise NotFoundError(f"Unknown customer id: {customer_id}") from exc
    if not customer.is_active:
        log.warning("Attempted posting for inactive customer '%s'", customer_id)
        raise ValidationError(f"Customer '{customer_id}' is inactive")
    return customer


def price_lines(context: RuntimeContext, lines: Sequence[SaleLine]) -> List[PricedLine]:
    """Resolve the current unit price of every line.

    Prices are read once, here, and carried on the returned lines; later
    catalog price changes never touch amounts already posted.

    Raises:
        ValidationError: If ``lines`` is empty, a quantity is not positive, or
            a product is inactive.
        NotFoundError: If a product id is unknown.
    """
    if not lines:
        log.warning("Rejected sale without lines")
        raise ValidationError("A sale needs at least one line")

    priced: List[PricedLine] = []
    for line in lines:
        require_positive_quantity(line.quantity)
        try:
            product = context.catalog.get_product(line.product_id)
        except KeyError as exc:
            raise NotFoundError(f"Unknown product id: {line.product_id}") from exc
        if not product.is_active:
            log.warning("Attempted sale of inactive product '%s'", line.product_id)
            raise ValidationError(f"Product '{line.product_id}' is inactive")
        priced.append(
            PricedLine(
                product_id=product.product_id,
                product_name=product.product_name,
                quantity=line.quantity,
                unit_price=product.unit_price,
                line_total=quantize_money(product.unit_price * line.quantity),
            )
        )
    return priced


def sale_total(lines: Sequence[PricedLine]) -> Decimal:
    return quantize_money(sum((line.line_total for line in lines), ZERO))


def build_opened_entry(
    customer: data_manager.CustomerRow,
    lines: Sequence[PricedLine],
    *,
    entry_id: str,
    timestamp: datetime,
) -> data_manager.LedgerRow:
    """Open a fresh unpaid entry carrying one sale's charges."""
    amount = sale_total(lines)
    return data_manager.LedgerRow(
        entry_id=entry_id,
        customer_id=customer.customer_id,
        customer_name=customer.customer_name,
        contact=customer.contact,
        address=customer.address,
        products=frozenset(line.product_name for line in lines),
        total=amount,
        amount_charged=amount,
        amount_paid=ZERO,
        status=LedgerStatus.UNPAID.value,
        created_at_iso=timestamp.isoformat(),
        updated_at_iso=timestamp.isoformat(),
    )


def build_merged_entry(
    entry: data_manager.LedgerRow,
    customer: data_manager.CustomerRow,
    lines: Sequence[PricedLine],
    *,
    timestamp: datetime,
) -> data_manager.LedgerRow:
    """Add a sale's charges to an open entry.

    The product set is a union, so names already on the entry collapse. The
    status is recomputed from the amounts: a partial entry stays partial, an
    unpaid one stays unpaid. The customer snapshot is refreshed from the
    catalog.

    Raises:
        LedgerIntegrityError: If ``entry`` is already paid.
    """
    if not LedgerStatus(entry.status).is_open:
        raise LedgerIntegrityError(f"Cannot merge a sale into closed entry {entry.entry_id}")
    amount = sale_total(lines)
    charged = entry.amount_charged + amount
    total = entry.total + amount
    return replace(
        entry,
        customer_name=customer.customer_name,
        contact=customer.contact,
        address=customer.address,
        products=entry.products | {line.product_name for line in lines},
        total=total,
        amount_charged=charged,
        status=derive_status(entry.amount_paid, total).value,
        updated_at_iso=timestamp.isoformat(),
    )


def build_paid_entry(entry: data_manager.LedgerRow, *, timestamp: datetime) -> data_manager.LedgerRow:
    """Settle the whole outstanding balance of ``entry``."""
    return replace(
        entry,
        total=ZERO,
        amount_paid=entry.amount_paid + entry.total,
        status=LedgerStatus.PAID.value,
        updated_at_iso=timestamp.isoformat(),
    )


def build_partially_paid_entry(
    entry: data_manager.LedgerRow,
    amount: Decimal,
    *,
    timestamp: datetime,
) -> data_manager.LedgerRow:
    """Reduce ``entry`` by ``amount``.

    An amount equal to the balance closes the entry as paid.

    Raises:
        OverpaymentError: If ``amount`` exceeds the outstanding total.
    """
    if amount > entry.total:
        log.warning(
            "Rejected overpayment of %s on entry '%s' (outstanding %s)",
            amount,
            entry.entry_id,
            entry.total,
        )
        raise OverpaymentError(
            f"Payment {amount} exceeds outstanding balance {entry.total} of entry {entry.entry_id}"
        )
    total = entry.total - amount
    paid = entry.amount_paid + amount
    return replace(
        entry,
        total=total,
        amount_paid=paid,
        status=derive_status(paid, total).value,
        updated_at_iso=timestamp.isoformat(),
    )


def build_payment(
    before: data_manager.LedgerRow,
    after: data_manager.LedgerRow,
    *,
    kind: PaymentKind,
    timestamp: datetime,
) -> data_manager.PaymentRow:
    return data_manager.PaymentRow(
        payment_id=generate_id("P", when=timestamp),
        timestamp_iso=timestamp.isoformat(),
        entry_id=after.entry_id,
        customer_id=after.customer_id,
        kind=kind.value,
        amount=before.total - after.total,
        balance_after=after.total,
    )


def _with_write_retries(context: RuntimeContext, description: str, attempt: Callable[[], _T]) -> _T:
    """Run ``attempt`` until it stops losing optimistic races.

    Raises:
        ConflictError: After ``max_write_retries`` stale attempts.
    """
    limit = context.settings.max_write_retries
    for attempt_number in range(1, limit + 1):
        try:
            return attempt()
        except (data_manager.StaleRowError, OpenEntryExistsError) as exc:
            log.warning(
                "Write conflict while %s (attempt %d/%d): %s",
                description,
                attempt_number,
                limit,
                exc,
            )
    log.error("Giving up on %s after %d conflicting attempts", description, limit)
    raise ConflictError(f"Concurrent update while {description}; please retry")


def find_open_entry(context: RuntimeContext, customer_id: str) -> Optional[data_manager.LedgerRow]:
    """Return the customer's open entry, if any.

    Raises:
        LedgerIntegrityError: If the store holds more than one open entry for
            the customer.
    """
    open_entries = context.store.open_entries_for_customer(customer_id)
    if len(open_entries) > 1:
        log.error(
            "Customer '%s' has %d open ledger entries", customer_id, len(open_entries)
        )
        raise LedgerIntegrityError(f"Customer {customer_id} has several open ledger entries")
    return open_entries[0] if open_entries else None


def post_priced_sale(
    context: RuntimeContext,
    customer: data_manager.CustomerRow,
    lines: Sequence[PricedLine],
    *,
    timestamp: datetime,
) -> data_manager.LedgerRow:
    """Merge already priced lines into the customer's open entry.

    Opens a new entry when the customer has none. The read of the open entry
    and the write that follows happen under the customer lock; a lost race is
    retried with a fresh read.

    Raises:
        ValidationError: If the lines add up to zero.
        ConflictError: If the write keeps losing races.
    """
    amount = sale_total(lines)
    if amount <= ZERO:
        log.warning("Rejected sale for '%s' with non-positive total %s", customer.customer_id, amount)
        raise ValidationError("Sale total must be greater than zero")

    def attempt() -> data_manager.LedgerRow:
        with context.store.customer_lock(customer.customer_id):
            current = find_open_entry(context, customer.customer_id)
            if current is None:
                entry = build_opened_entry(
                    customer,
                    lines,
                    entry_id=generate_id("L", when=timestamp),
                    timestamp=timestamp,
                )
                validate_entry_invariants(entry)
                context.store.insert(entry)
                log.info(
                    "Opened ledger entry '%s' for customer '%s' (total=%s)",
                    entry.entry_id,
                    customer.customer_id,
                    entry.total,
                )
                return entry

            merged = build_merged_entry(current, customer, lines, timestamp=timestamp)
            validate_entry_invariants(merged)
            stored = context.store.replace(merged, expected_version=current.version)
            log.info(
                "Merged sale of %s into ledger entry '%s' for customer '%s' (total=%s, status=%s)",
                amount,
                stored.entry_id,
                customer.customer_id,
                stored.total,
                stored.status,
            )
            return stored

    return _with_write_retries(context, f"posting a sale for customer {customer.customer_id}", attempt)


def post_sale(context: RuntimeContext, command: PostSaleCommand) -> data_manager.LedgerRow:
    """Post a sale's charges to the customer's ledger.

    Resolves the customer and the current unit prices, then merges the sale
    into the customer's open entry or opens a new one.

    Args:
        context (RuntimeContext): Runtime context providing the store and the
            catalog.
        command (PostSaleCommand): Customer and requested lines.

    Returns:
        data_manager.LedgerRow: The entry the sale was posted to, as stored.

    Raises:
        ValidationError: If the lines are empty or invalid, or the customer is
            inactive.
        NotFoundError: If the customer or a product is unknown.
        ConflictError: If concurrent writers kept winning.
    """
    customer = resolve_customer(context, command.customer_id)
    lines = price_lines(context, command.lines)
    timestamp = resolve_timestamp(command.timestamp)
    return post_priced_sale(context, customer, lines, timestamp=timestamp)


def get_entry(context: RuntimeContext, entry_id: str) -> data_manager.LedgerRow:
    """Return a ledger entry by id.

    Raises:
        NotFoundError: If the entry does not exist.
    """
    try:
        return context.store.get(entry_id)
    except KeyError as exc:
        log.warning("Ledger entry lookup failed for id '%s'", entry_id)
        raise NotFoundError(f"Unknown ledger entry id: {entry_id}") from exc


def mark_paid(context: RuntimeContext, command: MarkPaidCommand) -> data_manager.LedgerRow:
    """Settle a ledger entry in full.

    Calling it on an entry that is already paid succeeds and changes nothing.

    Raises:
        NotFoundError: If the entry does not exist.
        ConflictError: If concurrent writers kept winning.
    """
    entry = get_entry(context, command.entry_id)
    timestamp = resolve_timestamp(command.timestamp)

    def attempt() -> data_manager.LedgerRow:
        with context.store.customer_lock(entry.customer_id):
            current = get_entry(context, command.entry_id)
            if current.status == LedgerStatus.PAID.value:
                log.info("Ledger entry '%s' is already paid", current.entry_id)
                return current
            paid = build_paid_entry(current, timestamp=timestamp)
            validate_entry_invariants(paid)
            stored = context.store.replace(paid, expected_version=current.version)
            context.store.append_payment(
                build_payment(current, stored, kind=PaymentKind.FULL, timestamp=timestamp)
            )
            log.info(
                "Marked ledger entry '%s' as paid (settled %s)",
                stored.entry_id,
                current.total,
            )
            return stored

    return _with_write_retries(context, f"settling entry {command.entry_id}", attempt)


def apply_partial_payment(context: RuntimeContext, command: PartialPaymentCommand) -> data_manager.LedgerRow:
    """Apply a partial payment to a ledger entry.

    A payment equal to the outstanding balance closes the entry as paid.

    Raises:
        ValidationError: If the amount is not positive.
        NotFoundError: If the entry does not exist.
        OverpaymentError: If the amount exceeds the outstanding balance; the
            entry is left unchanged.
        ConflictError: If concurrent writers kept winning.
    """
    amount = require_payment_amount(command.amount)
    entry = get_entry(context, command.entry_id)
    timestamp = resolve_timestamp(command.timestamp)

    def attempt() -> data_manager.LedgerRow:
        with context.store.customer_lock(entry.customer_id):
            current = get_entry(context, command.entry_id)
            updated = build_partially_paid_entry(current, amount, timestamp=timestamp)
            validate_entry_invariants(updated)
            stored = context.store.replace(updated, expected_version=current.version)
            context.store.append_payment(
                build_payment(current, stored, kind=PaymentKind.PARTIAL, timestamp=timestamp)
            )
            log.info(
                "Applied payment of %s to ledger entry '%s' (balance=%s, status=%s)",
                amount,
                stored.entry_id,
                stored.total,
                stored.status,
            )
            return stored

    return _with_write_retries(context, f"applying a payment to entry {command.entry_id}", attempt)


def sort_entries(entries: Sequence[data_manager.LedgerRow]) -> List[data_manager.LedgerRow]:
    """Order entries by ``updated_at`` descending, then by id ascending."""
    ordered = sorted(entries, key=lambda entry: entry.entry_id)
    # list.sort is stable with reverse=True, so equal timestamps keep id order.
    ordered.sort(key=lambda entry: parse_timestamp(entry.updated_at_iso), reverse=True)
    return ordered


def list_ledger(context: RuntimeContext, ledger_filter: Optional[LedgerFilter] = None) -> List[data_manager.LedgerRow]:
    """Return ledger entries matching ``ledger_filter``, newest activity first.

    Only open entries are returned unless ``include_closed`` is set. Because a
    customer holds at most one open entry, the default view is one row per
    customer with an outstanding balance.
    """
    ledger_filter = ledger_filter or LedgerFilter()
    store = context.store

    if ledger_filter.customer_id is not None:
        candidates = store.entries_for_customer(ledger_filter.customer_id)
    else:
        candidates = store.all_entries()

    if not ledger_filter.include_closed:
        open_values = {status.value for status in OPEN_STATUSES}
        candidates = [entry for entry in candidates if entry.status in open_values]

    if ledger_filter.name_contains:
        needle = ledger_filter.name_contains.casefold()
        candidates = [entry for entry in candidates if needle in entry.customer_name.casefold()]

    return sort_entries(candidates)


def list_open_balances(
    context: RuntimeContext,
    *,
    customer_id: Optional[str] = None,
    name_contains: Optional[str] = None,
) -> List[data_manager.LedgerRow]:
    """Return one open entry per customer with an outstanding balance."""
    return list_ledger(
        context,
        LedgerFilter(customer_id=customer_id, name_contains=name_contains, include_closed=False),
    )


def list_payments(context: RuntimeContext, entry_id: Optional[str] = None) -> List[data_manager.PaymentRow]:
    return context.store.list_payments(entry_id)


def audit_ledger(context: RuntimeContext) -> List[str]:
    """Check the whole store against the ledger invariants.

    Besides the per-entry checks, verifies that no customer holds two open
    entries and that the payment log adds up to each entry's paid amount.

    Returns:
        list[str]: Human readable problems; empty when the ledger is
            consistent.
    """
    problems: List[str] = []
    open_by_customer: Dict[str, List[str]] = {}
    paid_by_entry: Dict[str, Decimal] = {}

    for payment in context.store.list_payments():
        paid_by_entry[payment.entry_id] = paid_by_entry.get(payment.entry_id, ZERO) + payment.amount

    for entry in context.store.all_entries():
        problems.extend(f"{entry.entry_id}: {problem}" for problem in entry_violations(entry))
        if entry.status in {status.value for status in OPEN_STATUSES}:
            open_by_customer.setdefault(entry.customer_id, []).append(entry.entry_id)
        logged = paid_by_entry.get(entry.entry_id, ZERO)
        if logged != entry.amount_paid:
            problems.append(
                f"{entry.entry_id}: payment log sums to {logged}, entry records {entry.amount_paid}"
            )

    for customer_id, entry_ids in open_by_customer.items():
        if len(entry_ids) > 1:
            problems.append(
                f"customer {customer_id} has {len(entry_ids)} open entries: {', '.join(entry_ids)}"
            )

    if problems:
        log.error("Ledger audit found %d problem(s)", len(problems))
    else:
        log.info("Ledger audit passed")
    return problems


def format_entry(entry: data_manager.LedgerRow, currency_symbol: str) -> str:
    """Render an entry as a short plain-text statement."""
    products = ", ".join(sorted(entry.products)) or "None"
    return "\n".join(
        [
            f"Entry:    {entry.entry_id} [{entry.status}]",
            f"Customer: {entry.customer_name or 'Unknown'} | {entry.contact or 'N/A'}",
            f"Address:  {entry.address or 'N/A'}",
            f"Date:     {entry.created_at_iso} (updated {entry.updated_at_iso})",
            f"Products: {products}",
            f"Pending:  {format_money(entry.total, currency_symbol)}",
        ]
    )
