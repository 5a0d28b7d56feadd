"""Data access layer for the retail ledger.

This module provides low-level helpers that read from and write to the
``master_workbook.xlsx`` workbook. Business logic belongs elsewhere.

The public API is designed around three responsibilities:

1. Configuration handling: finding and parsing ``config.ini``.
2. Workbook lifecycle: opening, validating, and persisting the Excel file.
3. Sheet operations: loading structured records, appending rows, and
   replacing ledger rows under an optimistic version check.
"""


from __future__ import annotations

import configparser
import json
from dataclasses import dataclass, replace
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Sequence

from openpyxl.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet
import openpyxl

from . import log
from .constants import (
    DEFAULT_CURRENCY_SYMBOL,
    DEFAULT_MAX_WRITE_RETRIES,
    MONEY_QUANTUM,
    SheetName,
)


CONFIG_FILE_NAME = "config.ini"
PRODUCTS_SHEET = SheetName.PRODUCTS.value
CUSTOMERS_SHEET = SheetName.CUSTOMERS.value
SALES_SHEET = SheetName.SALES.value
SALE_LINES_SHEET = SheetName.SALE_LINES.value
LEDGER_SHEET = SheetName.LEDGER.value
PAYMENTS_SHEET = SheetName.PAYMENTS.value


class StaleRowError(Exception):
    """Raised when a row changed since the caller last read it."""

    def __init__(self, entry_id: str, expected_version: int, stored_version: int) -> None:
        super().__init__(
            f"Ledger entry {entry_id} is at version {stored_version}, expected {expected_version}"
        )
        self.entry_id = entry_id
        self.expected_version = expected_version
        self.stored_version = stored_version


@dataclass(frozen=True)
class ConfigSettings:
    """Typed representation of the ``config.ini`` settings we care about."""

    data_file: Path
    shop_name: str
    schema_version: str
    currency_symbol: str = DEFAULT_CURRENCY_SYMBOL
    max_write_retries: int = DEFAULT_MAX_WRITE_RETRIES


@dataclass(frozen=True)
class ProductRow:
    """In-memory view of a row from the ``Products`` sheet."""

    product_id: str
    product_name: str
    unit_price: Decimal
    is_active: bool


@dataclass(frozen=True)
class CustomerRow:
    """In-memory view of a row from the ``Customers`` sheet."""

    customer_id: str
    customer_name: str
    contact: str
    address: str
    is_active: bool


@dataclass(frozen=True)
class SaleRow:
    """In-memory view of a row from the ``Sales`` sheet."""

    sale_id: str
    timestamp_iso: str
    customer_id: str
    sale_total: Decimal
    ledger_entry_id: Optional[str]


@dataclass(frozen=True)
class SaleLineRow:
    """In-memory view of a row from the ``SaleLines`` sheet."""

    sale_id: str
    line_no: int
    product_id: str
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class LedgerRow:
    """In-memory view of a row from the ``Ledger`` sheet.

    ``total`` is the outstanding balance, always equal to
    ``amount_charged - amount_paid``. ``version`` increases by one each time
    the row is replaced.
    """

    entry_id: str
    customer_id: str
    customer_name: str
    contact: str
    address: str
    products: FrozenSet[str]
    total: Decimal
    amount_charged: Decimal
    amount_paid: Decimal
    status: str
    created_at_iso: str
    updated_at_iso: str
    version: int = 1


@dataclass(frozen=True)
class PaymentRow:
    """In-memory view of a row from the ``Payments`` sheet."""

    payment_id: str
    timestamp_iso: str
    entry_id: str
    customer_id: str
    kind: str
    amount: Decimal
    balance_after: Decimal


def find_config_file(explicit_path: Optional[Path] = None) -> Path:
    """Locate the configuration file that controls how the data layer behaves.

    If the caller provides ``explicit_path`` the value is returned immediately
    without any verification, which allows the caller to deliberately target a
    non-standard location. When no explicit path is given the function walks up
    from the current working directory toward the filesystem root looking for a
    file named ``CONFIG_FILE_NAME``. The first match that exists on disk is
    considered authoritative.

    Args:
        explicit_path (Path | None): Optional path to use instead of performing
            the upward search. May be relative to the current working directory.

    Returns:
        Path: The path provided by the caller or the discovered configuration
            file.

    Raises:
        FileNotFoundError: If the search exhausts all parent directories without
            finding ``CONFIG_FILE_NAME``.
    """

    if explicit_path:
        return explicit_path

    current = Path.cwd()
    for p in (current, *current.parents):
        candidate = p / CONFIG_FILE_NAME
        if candidate.exists():
            return candidate

    raise FileNotFoundError(
        f"Configuration file not found: {CONFIG_FILE_NAME}")


def read_config(config_path: Path) -> configparser.ConfigParser:
    """Load ``config.ini`` and return a populated ``ConfigParser`` instance.

    The function expands user home references (``~``), resolves the absolute
    path, and validates that the file exists before parsing it. Validation of
    required entries happens in :func:`parse_settings`.

    Args:
        config_path (Path): Path to the configuration file, relative or
            absolute.

    Returns:
        configparser.ConfigParser: Initialized parser containing the raw
            configuration data.

    Raises:
        FileNotFoundError: If ``config_path`` does not exist after expansion and
            resolution.
    """

    config_path = config_path.expanduser().resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    parser = configparser.ConfigParser()
    parser.read(config_path, encoding="utf-8")
    return parser


def parse_settings(parser: configparser.ConfigParser, *, base_path: Optional[Path] = None) -> ConfigSettings:
    """Convert a ``ConfigParser`` into strongly typed :class:`ConfigSettings`.

    ``[System]`` entries are mandatory. The ``[Ledger]`` section is optional
    and falls back to the package defaults for the currency symbol and the
    number of optimistic write retries. Relative ``DataFile`` entries are
    expanded against ``base_path`` when provided, or against the current
    working directory as a fallback.

    Args:
        parser (configparser.ConfigParser): Parsed configuration data.
        base_path (Path | None): Directory to use as the anchor for relative
            ``DataFile`` entries.

    Returns:
        ConfigSettings: Immutable settings container.

    Raises:
        KeyError: If one of the required sections or options is missing.
        ValueError: If ``MaxWriteRetries`` is not a positive integer.
    """

    try:
        data_file_raw = parser.get("System", "DataFile")
        shop_name = parser.get("System", "ShopName")
        schema_version = parser.get("System", "SchemaVersion")
    except (configparser.NoSectionError, configparser.NoOptionError) as exc:
        raise KeyError(f"Missing required configuration entry: {exc}") from exc

    currency_symbol = parser.get("Ledger", "CurrencySymbol", fallback=DEFAULT_CURRENCY_SYMBOL)
    max_write_retries = parser.getint("Ledger", "MaxWriteRetries", fallback=DEFAULT_MAX_WRITE_RETRIES)
    if max_write_retries < 1:
        raise ValueError("MaxWriteRetries must be at least 1")

    data_file_path = Path(data_file_raw)
    if not data_file_path.is_absolute():
        if base_path is None:
            base_path = Path.cwd()
        data_file_path = (base_path / data_file_path).resolve()

    return ConfigSettings(
        data_file=data_file_path,
        shop_name=shop_name,
        schema_version=schema_version,
        currency_symbol=currency_symbol,
        max_write_retries=max_write_retries,
    )


def open_workbook(data_file: Path) -> Workbook:
    """Open the master Excel workbook and return a live ``openpyxl`` workbook.

    Args:
        data_file (Path): Filesystem path to the ``master_workbook.xlsx`` file.

    Returns:
        Workbook: ``openpyxl`` workbook instance backed by the provided file.

    Raises:
        FileNotFoundError: If ``data_file`` does not exist after expansion and
            resolution.
    """

    data_file = Path(data_file).expanduser().resolve()
    if not data_file.exists():
        raise FileNotFoundError(f"Workbook not found: {data_file}")

    return openpyxl.load_workbook(data_file)


def save_workbook(workbook: Workbook, destination: Path) -> None:
    """Persist the workbook to disk at an explicitly provided destination.

    Parent directories are created on demand.
    """

    dest = Path(destination).expanduser().resolve()
    dest.parent.mkdir(parents=True, exist_ok=True)
    workbook.save(dest)


def refresh_workbook(data_file: Path) -> Workbook:
    """Reload the workbook from disk, discarding any unsaved in-memory changes."""

    return open_workbook(data_file)


def _iter_sheet(workbook: Workbook, sheet_name: str) -> Iterable[tuple]:
    sheet = workbook[sheet_name]
    for raw in sheet.iter_rows(min_row=2, values_only=True):
        # skip fully empty rows
        if any(cell is not None for cell in raw):
            yield raw


def iter_products(workbook: Workbook) -> Iterable[ProductRow]:
    """Iterate over product records stored on the ``Products`` worksheet.

    The iterator skips the header row and any fully empty rows.
    """

    for raw in _iter_sheet(workbook, PRODUCTS_SHEET):
        yield deserialize_product(raw)


def iter_customers(workbook: Workbook) -> Iterable[CustomerRow]:
    """Iterate over the ``Customers`` worksheet and yield typed records."""

    for raw in _iter_sheet(workbook, CUSTOMERS_SHEET):
        yield deserialize_customer(raw)


def iter_sales(workbook: Workbook) -> Iterable[SaleRow]:
    """Stream sale headers from the ``Sales`` worksheet in append order."""

    for raw in _iter_sheet(workbook, SALES_SHEET):
        yield deserialize_sale(raw)


def iter_sale_lines(workbook: Workbook) -> Iterable[SaleLineRow]:
    """Stream sale lines from the ``SaleLines`` worksheet in append order."""

    for raw in _iter_sheet(workbook, SALE_LINES_SHEET):
        yield deserialize_sale_line(raw)


def iter_ledger_entries(workbook: Workbook) -> Iterable[LedgerRow]:
    """Stream ledger entries from the ``Ledger`` worksheet.

    Every meaningful row is converted via :func:`deserialize_ledger_entry`, so
    money columns come back as two-digit :class:`~decimal.Decimal` values and
    the product column as a frozen set of names.

    Args:
        workbook (Workbook): Workbook containing the ledger sheet.

    Yields:
        LedgerRow: Normalized ledger entry for each populated row.
    """

    for raw in _iter_sheet(workbook, LEDGER_SHEET):
        yield deserialize_ledger_entry(raw)


def iter_payments(workbook: Workbook) -> Iterable[PaymentRow]:
    """Stream settlement records from the ``Payments`` worksheet."""

    for raw in _iter_sheet(workbook, PAYMENTS_SHEET):
        yield deserialize_payment(raw)


def append_product(workbook: Workbook, record: ProductRow) -> None:
    """Append a product record to the ``Products`` worksheet."""

    workbook[PRODUCTS_SHEET].append(serialize_product(record))


def append_customer(workbook: Workbook, record: CustomerRow) -> None:
    """Append a customer record to the ``Customers`` worksheet."""

    workbook[CUSTOMERS_SHEET].append(serialize_customer(record))


def append_sale(workbook: Workbook, record: SaleRow, lines: Sequence[SaleLineRow]) -> None:
    """Append a sale header and its lines.

    The header lands on ``Sales`` and each line on ``SaleLines``; both sheets
    are append-only, so a sale is never rewritten once recorded.

    Args:
        workbook (Workbook): Workbook containing the sales sheets.
        record (SaleRow): Sale header to persist.
        lines (Sequence[SaleLineRow]): Priced lines belonging to ``record``.
    """

    workbook[SALES_SHEET].append(serialize_sale(record))
    line_sheet = workbook[SALE_LINES_SHEET]
    for line in lines:
        line_sheet.append(serialize_sale_line(line))


def append_ledger_entry(workbook: Workbook, record: LedgerRow) -> None:
    """Append a freshly opened ledger entry to the ``Ledger`` worksheet."""

    workbook[LEDGER_SHEET].append(serialize_ledger_entry(record))


def append_payment(workbook: Workbook, record: PaymentRow) -> None:
    """Append a settlement record to the ``Payments`` worksheet."""

    workbook[PAYMENTS_SHEET].append(serialize_payment(record))


def replace_ledger_entry(workbook: Workbook, record: LedgerRow, *, expected_version: int) -> LedgerRow:
    """Overwrite an existing ledger row if nobody changed it in the meantime.

    The stored ``Version`` cell must equal ``expected_version``; otherwise the
    caller worked from a stale read and :class:`StaleRowError` is raised
    without touching the sheet. On success every column of the row is
    rewritten and the version is bumped by one.

    Args:
        workbook (Workbook): Workbook containing the ledger sheet.
        record (LedgerRow): Replacement contents; its ``version`` is ignored.
        expected_version (int): Version the caller read before computing
            ``record``.

    Returns:
        LedgerRow: ``record`` carrying the new version number.

    Raises:
        KeyError: If no row carries ``record.entry_id``.
        StaleRowError: If the stored version differs from ``expected_version``.
    """

    row_index = locate_row(workbook, LEDGER_SHEET, "EntryID", record.entry_id)
    if row_index is None:
        raise KeyError(f"Ledger entry not found: {record.entry_id}")

    sheet = workbook[LEDGER_SHEET]
    header_map = _header_map(sheet)
    stored_raw = sheet.cell(row=row_index, column=header_map["Version"]).value
    stored_version = int(stored_raw) if stored_raw is not None else 0
    if stored_version != expected_version:
        log.warning(
            "Stale write rejected for ledger entry '%s' (expected v%s, stored v%s)",
            record.entry_id,
            expected_version,
            stored_version,
        )
        raise StaleRowError(record.entry_id, expected_version, stored_version)

    updated = replace(record, version=expected_version + 1)
    for column_index, value in enumerate(serialize_ledger_entry(updated), start=1):
        sheet.cell(row=row_index, column=column_index, value=value)
    return updated


def _header_map(sheet: Worksheet) -> Dict[Any, int]:
    return {cell.value: idx + 1 for idx, cell in enumerate(sheet[1])}


def locate_row(workbook: Workbook, sheet_name: str, key_column: str, key_value: str) -> Optional[int]:
    """Find a row by matching a key value within the specified worksheet.

    Args:
        workbook (Workbook): Workbook providing access to ``sheet_name``.
        sheet_name (str): Name of the worksheet to search.
        key_column (str): Header title identifying the column that stores the
            lookup key.
        key_value (str): Value to match within the key column.

    Returns:
        int | None: 1-based Excel row index when a match is found, otherwise
            ``None``.

    Raises:
        KeyError: If ``key_column`` is not present in the worksheet header.
    """

    sheet = workbook[sheet_name]
    header_map = _header_map(sheet)
    if key_column not in header_map:
        raise KeyError(f"Unknown column: {key_column}")

    key_col_index = header_map[key_column]

    for row_idx, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
        cell_value = row[key_col_index - 1]
        if cell_value is not None and str(cell_value) == key_value:
            return row_idx

    return None


def _money(raw: object) -> Decimal:
    if raw is None or raw == "":
        return Decimal("0.00")
    return Decimal(str(raw)).quantize(MONEY_QUANTUM)


def _optional_text(raw: object) -> Optional[str]:
    return str(raw) if raw is not None else None


def _text(raw: object) -> str:
    return str(raw) if raw is not None else ""


def serialize_product(record: ProductRow) -> list[object]:
    return [record.product_id, record.product_name, record.unit_price, record.is_active]


def serialize_customer(record: CustomerRow) -> list[object]:
    return [
        record.customer_id,
        record.customer_name,
        record.contact,
        record.address,
        record.is_active,
    ]


def serialize_sale(record: SaleRow) -> list[object]:
    return [
        record.sale_id,
        record.timestamp_iso,
        record.customer_id,
        record.sale_total,
        record.ledger_entry_id,
    ]


def serialize_sale_line(record: SaleLineRow) -> list[object]:
    return [
        record.sale_id,
        record.line_no,
        record.product_id,
        record.product_name,
        record.quantity,
        record.unit_price,
        record.line_total,
    ]


def serialize_ledger_entry(record: LedgerRow) -> list[object]:
    """Convert a ledger dataclass into the ``Ledger`` column order.

    The product set is written as a sorted JSON array so that the cell content
    is stable regardless of set iteration order.
    """

    return [
        record.entry_id,
        record.customer_id,
        record.customer_name,
        record.contact,
        record.address,
        json.dumps(sorted(record.products), ensure_ascii=False),
        record.total,
        record.amount_charged,
        record.amount_paid,
        record.status,
        record.created_at_iso,
        record.updated_at_iso,
        record.version,
    ]


def serialize_payment(record: PaymentRow) -> list[object]:
    return [
        record.payment_id,
        record.timestamp_iso,
        record.entry_id,
        record.customer_id,
        record.kind,
        record.amount,
        record.balance_after,
    ]


def deserialize_product(raw_row: Sequence[object]) -> ProductRow:
    """Convert a raw worksheet row into a strongly typed product record.

    Identifier and name fields are coerced to ``str`` to avoid surprises caused
    by Excel automatically interpreting numbers.
    """

    product_id, product_name, price_raw, is_active = raw_row[:4]
    return ProductRow(
        product_id=str(product_id),
        product_name=_text(product_name),
        unit_price=_money(price_raw),
        is_active=bool(is_active),
    )


def deserialize_customer(raw_row: Sequence[object]) -> CustomerRow:
    customer_id, customer_name, contact, address, is_active = raw_row[:5]
    return CustomerRow(
        customer_id=str(customer_id),
        customer_name=_text(customer_name),
        contact=_text(contact),
        address=_text(address),
        is_active=bool(is_active),
    )


def deserialize_sale(raw_row: Sequence[object]) -> SaleRow:
    sale_id, timestamp_iso, customer_id, total_raw, ledger_entry_id = raw_row[:5]
    return SaleRow(
        sale_id=str(sale_id),
        timestamp_iso=_text(timestamp_iso),
        customer_id=_text(customer_id),
        sale_total=_money(total_raw),
        ledger_entry_id=_optional_text(ledger_entry_id),
    )


def deserialize_sale_line(raw_row: Sequence[object]) -> SaleLineRow:
    (
        sale_id,
        line_no,
        product_id,
        product_name,
        quantity_raw,
        price_raw,
        line_total_raw,
    ) = raw_row[:7]
    return SaleLineRow(
        sale_id=str(sale_id),
        line_no=int(line_no) if line_no is not None else 0,
        product_id=_text(product_id),
        product_name=_text(product_name),
        quantity=Decimal(str(quantity_raw)) if quantity_raw is not None else Decimal("0"),
        unit_price=_money(price_raw),
        line_total=_money(line_total_raw),
    )


def deserialize_ledger_entry(raw_row: Sequence[object]) -> LedgerRow:
    """Convert a raw ``Ledger`` row into a :class:`LedgerRow`.

    Money columns are normalized to two fractional digits, the ``Products``
    JSON array becomes a frozen set, and a blank ``Version`` reads as ``1``.

    Args:
        raw_row (Sequence[object]): Raw cell values in worksheet order.

    Returns:
        LedgerRow: Dataclass reflecting the row contents.
    """

    (
        entry_id,
        customer_id,
        customer_name,
        contact,
        address,
        products_raw,
        total_raw,
        charged_raw,
        paid_raw,
        status,
        created_at_iso,
        updated_at_iso,
        version_raw,
    ) = raw_row[:13]

    products = frozenset(json.loads(products_raw)) if products_raw else frozenset()

    return LedgerRow(
        entry_id=str(entry_id),
        customer_id=_text(customer_id),
        customer_name=_text(customer_name),
        contact=_text(contact),
        address=_text(address),
        products=products,
        total=_money(total_raw),
        amount_charged=_money(charged_raw),
        amount_paid=_money(paid_raw),
        status=_text(status),
        created_at_iso=_text(created_at_iso),
        updated_at_iso=_text(updated_at_iso),
        version=int(version_raw) if version_raw is not None else 1,
    )


def deserialize_payment(raw_row: Sequence[object]) -> PaymentRow:
    (
        payment_id,
        timestamp_iso,
        entry_id,
        customer_id,
        kind,
        amount_raw,
        balance_raw,
    ) = raw_row[:7]
    return PaymentRow(
        payment_id=str(payment_id),
        timestamp_iso=_text(timestamp_iso),
        entry_id=_text(entry_id),
        customer_id=_text(customer_id),
        kind=_text(kind),
        amount=_money(amount_raw),
        balance_after=_money(balance_raw),
    )
