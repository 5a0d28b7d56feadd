"""Read-only product and customer lookups backed by the master workbook.

The ledger engine never edits master data; it only needs a name and a unit
price for a product and a name, contact and address for a customer. Sheet
scans are memoized in cache buckets so repeated postings do not revisit the
worksheets. Unknown identifiers raise ``KeyError`` in the same way the data
access layer does; callers translate them into domain errors.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

from openpyxl.workbook import Workbook

from . import data_manager, log


class WorkbookCatalog:
    """Cached view over the ``Products`` and ``Customers`` sheets."""

    def __init__(self, workbook: Workbook, *, lock: Optional[threading.RLock] = None) -> None:
        self._workbook = workbook
        self._lock = lock if lock is not None else threading.RLock()
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _get_cache_bucket(self, name: str) -> Dict[str, Any]:
        bucket = self._cache.get(name)
        if bucket is None:
            log.debug("Initializing catalog cache bucket '%s'", name)
            bucket = {}
            self._cache[name] = bucket
        return bucket

    def invalidate(self, *names: str) -> None:
        """Evict cache buckets so the next lookup rescans the workbook.

        With no arguments every bucket is dropped.
        """

        with self._lock:
            targets = names or tuple(self._cache)
            log.debug("Invalidating catalog cache buckets: %s", ", ".join(targets))
            for name in targets:
                self._cache.pop(name, None)

    def _ensure_products(self) -> Dict[str, Any]:
        with self._lock:
            bucket = self._get_cache_bucket("products")
            if "all" not in bucket:
                all_products = list(data_manager.iter_products(self._workbook))
                bucket["all"] = all_products
                bucket["active"] = [product for product in all_products if product.is_active]
                bucket["by_id"] = {product.product_id: product for product in all_products}
                log.debug(
                    "Populated products cache with %d entries (%d active)",
                    len(all_products),
                    len(bucket["active"]),
                )
            return bucket

    def _ensure_customers(self) -> Dict[str, Any]:
        with self._lock:
            bucket = self._get_cache_bucket("customers")
            if "all" not in bucket:
                all_customers = list(data_manager.iter_customers(self._workbook))
                bucket["all"] = all_customers
                bucket["active"] = [customer for customer in all_customers if customer.is_active]
                bucket["by_id"] = {customer.customer_id: customer for customer in all_customers}
                log.debug(
                    "Populated customers cache with %d entries (%d active)",
                    len(all_customers),
                    len(bucket["active"]),
                )
            return bucket

    def list_products(self, *, include_inactive: bool = False) -> List[data_manager.ProductRow]:
        """Return product rows in sheet order, active ones only by default."""

        bucket = self._ensure_products()
        return list(bucket["all"] if include_inactive else bucket["active"])

    def list_customers(self, *, include_inactive: bool = False) -> List[data_manager.CustomerRow]:
        """Return customer rows in sheet order, active ones only by default."""

        bucket = self._ensure_customers()
        return list(bucket["all"] if include_inactive else bucket["active"])

    def get_product(self, product_id: str) -> data_manager.ProductRow:
        """Resolve a product by identifier.

        Raises:
            KeyError: If ``product_id`` is absent from the ``Products`` sheet.
        """

        try:
            return self._ensure_products()["by_id"][product_id]
        except KeyError:
            log.warning("Product lookup failed for id '%s'", product_id)
            raise KeyError(f"Unknown product id: {product_id}") from None

    def get_customer(self, customer_id: str) -> data_manager.CustomerRow:
        """Resolve a customer by identifier.

        Raises:
            KeyError: If ``customer_id`` is absent from the ``Customers`` sheet.
        """

        try:
            return self._ensure_customers()["by_id"][customer_id]
        except KeyError:
            log.warning("Customer lookup failed for id '%s'", customer_id)
            raise KeyError(f"Unknown customer id: {customer_id}") from None
