"""Durable collection of customer ledger entries.

Entries live on the ``Ledger`` sheet of the master workbook and are keyed by
``EntryID``. The store keeps three in-memory indexes over that sheet (by entry
id, by customer, and by status) and rebuilds them lazily after
:meth:`LedgerStore.invalidate`.

Two kinds of locks are involved:

* a re-entrant workbook lock that serializes every sheet read and write,
  because ``openpyxl`` objects are not safe to share between threads;
* one exclusive lock per customer identifier, handed out by
  :meth:`LedgerStore.customer_lock`, which callers hold for the whole
  read-modify-write of that customer's open entry.

Writes to an existing row carry the version the caller read. A mismatch raises
:class:`~retail_ledger.data_manager.StaleRowError`, and inserting a second open
entry for a customer raises :class:`OpenEntryExistsError`; both mean the
caller must re-read and try again.
"""

from __future__ import annotations

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Set

from openpyxl.workbook import Workbook

from . import data_manager, log
from .constants import OPEN_STATUSES, LedgerStatus


class OpenEntryExistsError(Exception):
    """Raised when inserting an open entry for a customer who already has one."""

    def __init__(self, customer_id: str, existing_entry_id: str) -> None:
        super().__init__(
            f"Customer {customer_id} already has open ledger entry {existing_entry_id}"
        )
        self.customer_id = customer_id
        self.existing_entry_id = existing_entry_id


class LedgerStore:
    """Indexed, lock-aware access to the ``Ledger`` sheet and its append-only logs."""

    def __init__(self, workbook: Workbook, *, lock: Optional[threading.RLock] = None) -> None:
        self._workbook = workbook
        self._lock = lock if lock is not None else threading.RLock()
        self._customer_locks: Dict[str, threading.Lock] = {}
        self._customer_locks_guard = threading.Lock()
        self._by_id: Optional[Dict[str, data_manager.LedgerRow]] = None
        self._by_customer: Dict[str, List[str]] = defaultdict(list)
        self._by_status: Dict[str, Set[str]] = defaultdict(set)

    @contextmanager
    def customer_lock(self, customer_id: str) -> Iterator[None]:
        """Hold the exclusive lock scoped to ``customer_id``.

        Different customers get different locks, so they never block each
        other.
        """

        with self._customer_locks_guard:
            lock = self._customer_locks.get(customer_id)
            if lock is None:
                lock = threading.Lock()
                self._customer_locks[customer_id] = lock
        with lock:
            yield

    def invalidate(self) -> None:
        """Drop the indexes; the next read rebuilds them from the sheet."""

        with self._lock:
            log.debug("Invalidating ledger store indexes")
            self._by_id = None
            self._by_customer = defaultdict(list)
            self._by_status = defaultdict(set)

    def _ensure_index(self) -> Dict[str, data_manager.LedgerRow]:
        # Callers hold self._lock.
        if self._by_id is None:
            by_id: Dict[str, data_manager.LedgerRow] = {}
            for entry in data_manager.iter_ledger_entries(self._workbook):
                by_id[entry.entry_id] = entry
                self._by_customer[entry.customer_id].append(entry.entry_id)
                self._by_status[entry.status].add(entry.entry_id)
            self._by_id = by_id
            log.debug("Indexed %d ledger entries", len(by_id))
        return self._by_id

    def _index(self, entry: data_manager.LedgerRow, previous: Optional[data_manager.LedgerRow] = None) -> None:
        by_id = self._ensure_index()
        if previous is None:
            self._by_customer[entry.customer_id].append(entry.entry_id)
        else:
            self._by_status[previous.status].discard(entry.entry_id)
        self._by_status[entry.status].add(entry.entry_id)
        by_id[entry.entry_id] = entry

    def find(self, entry_id: str) -> Optional[data_manager.LedgerRow]:
        with self._lock:
            return self._ensure_index().get(entry_id)

    def get(self, entry_id: str) -> data_manager.LedgerRow:
        """Return the entry stored under ``entry_id``.

        Raises:
            KeyError: If no entry carries that identifier.
        """

        entry = self.find(entry_id)
        if entry is None:
            raise KeyError(f"Ledger entry not found: {entry_id}")
        return entry

    def all_entries(self) -> List[data_manager.LedgerRow]:
        """Return every entry, open and closed, in sheet order."""

        with self._lock:
            return list(self._ensure_index().values())

    def entries_for_customer(self, customer_id: str) -> List[data_manager.LedgerRow]:
        """Return a customer's entries in the order they were opened."""

        with self._lock:
            by_id = self._ensure_index()
            return [by_id[entry_id] for entry_id in self._by_customer.get(customer_id, ())]

    def entries_with_status(self, *statuses: LedgerStatus) -> List[data_manager.LedgerRow]:
        with self._lock:
            by_id = self._ensure_index()
            ids: Set[str] = set()
            for status in statuses:
                ids |= self._by_status.get(status.value, set())
            return [entry for entry_id, entry in by_id.items() if entry_id in ids]

    def open_entries_for_customer(self, customer_id: str) -> List[data_manager.LedgerRow]:
        """Return the customer's entries whose status is unpaid or partial.

        A consistent store yields at most one element.
        """

        open_values = {status.value for status in OPEN_STATUSES}
        return [
            entry
            for entry in self.entries_for_customer(customer_id)
            if entry.status in open_values
        ]

    def insert(self, entry: data_manager.LedgerRow) -> data_manager.LedgerRow:
        """Append a new entry to the ledger sheet.

        Acts as a unique index on (customer, open status): an open entry is
        refused while the customer already has one.

        Raises:
            OpenEntryExistsError: If ``entry`` is open and the customer already
                has an open entry.
            ValueError: If the identifier is already taken.
        """

        with self._lock:
            by_id = self._ensure_index()
            if entry.entry_id in by_id:
                raise ValueError(f"Duplicate ledger entry id: {entry.entry_id}")
            if LedgerStatus(entry.status).is_open:
                existing = self.open_entries_for_customer(entry.customer_id)
                if existing:
                    raise OpenEntryExistsError(entry.customer_id, existing[0].entry_id)
            data_manager.append_ledger_entry(self._workbook, entry)
            self._index(entry)
            return entry

    def replace(self, entry: data_manager.LedgerRow, *, expected_version: int) -> data_manager.LedgerRow:
        """Overwrite an existing entry if it is still at ``expected_version``.

        Returns:
            data_manager.LedgerRow: The stored entry with its bumped version.

        Raises:
            KeyError: If the entry does not exist.
            data_manager.StaleRowError: If the entry changed since it was read.
        """

        with self._lock:
            previous = self.get(entry.entry_id)
            stored = data_manager.replace_ledger_entry(
                self._workbook, entry, expected_version=expected_version
            )
            self._index(stored, previous)
            return stored

    def append_payment(self, payment: data_manager.PaymentRow) -> None:
        with self._lock:
            data_manager.append_payment(self._workbook, payment)

    def list_payments(self, entry_id: Optional[str] = None) -> List[data_manager.PaymentRow]:
        """Return the settlement log, optionally narrowed to one entry."""

        with self._lock:
            payments = list(data_manager.iter_payments(self._workbook))
        if entry_id is None:
            return payments
        return [payment for payment in payments if payment.entry_id == entry_id]

    def append_sale(self, sale: data_manager.SaleRow, lines: List[data_manager.SaleLineRow]) -> None:
        with self._lock:
            data_manager.append_sale(self._workbook, sale, lines)

    def list_sales(self) -> List[data_manager.SaleRow]:
        with self._lock:
            return list(data_manager.iter_sales(self._workbook))

    def list_sale_lines(self, sale_id: Optional[str] = None) -> List[data_manager.SaleLineRow]:
        """Return recorded sale lines, optionally narrowed to one sale."""

        with self._lock:
            lines = list(data_manager.iter_sale_lines(self._workbook))
        if sale_id is None:
            return lines
        return [line for line in lines if line.sale_id == sale_id]
