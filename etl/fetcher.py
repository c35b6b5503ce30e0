"""
Fetcher for the documents a sales report needs
Runs the collection queries concurrently and turns any store failure into an
empty, failed result
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from db.document_store import (
    ACCOUNTS, BRANCHES, COMPANIES, INVENTORY_ITEMS, SALES_INVOICES, SALES_RETURNS, WAREHOUSES,
    DocumentStore, FieldFilter,
)
from utils.dates_numbers import format_iso_date, normalize_text

logger = logging.getLogger(__name__)

FETCH_WORKERS = int(os.getenv('REPORTS_FETCH_WORKERS', '4'))

LOOKUP_COLLECTIONS = (BRANCHES, WAREHOUSES, ACCOUNTS, COMPANIES)

DateLike = Union[str, date, None]


@dataclass
class ReportFilters:
    """Filters the store can answer: equality on branch/warehouse/invoice number, date range"""
    branch_id: Optional[str] = None
    date_from: DateLike = None
    date_to: DateLike = None
    warehouse_id: Optional[str] = None
    invoice_number: Optional[str] = None

    def store_filters(self, include_invoice_number: bool = True) -> List[FieldFilter]:
        filters = []
        if normalize_text(self.branch_id):
            filters.append(FieldFilter('branch', '==', normalize_text(self.branch_id)))
        date_from = format_iso_date(self.date_from)
        if date_from:
            filters.append(FieldFilter('date', '>=', date_from))
        date_to = format_iso_date(self.date_to)
        if date_to:
            filters.append(FieldFilter('date', '<=', date_to))
        if normalize_text(self.warehouse_id):
            filters.append(FieldFilter('warehouse', '==', normalize_text(self.warehouse_id)))
        if include_invoice_number and normalize_text(self.invoice_number):
            filters.append(FieldFilter('invoiceNumber', '==', normalize_text(self.invoice_number)))
        return filters


@dataclass
class FetchResult:
    invoices: List[Dict[str, Any]] = field(default_factory=list)
    returns: List[Dict[str, Any]] = field(default_factory=list)
    catalog: List[Dict[str, Any]] = field(default_factory=list)
    lookups: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    failed: bool = False
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> 'FetchResult':
        return cls(failed=True, error=error)

    @property
    def document_count(self) -> int:
        return len(self.invoices) + len(self.returns)


def fetch_report_documents(store: DocumentStore, filters: Optional[ReportFilters] = None,
                           include_invoices: bool = True, include_returns: bool = True,
                           lookup_collections: Sequence[str] = LOOKUP_COLLECTIONS) -> FetchResult:
    """
    Fetch invoices, returns, the inventory catalog and the lookup collections

    Args:
        store: Document store to query
        filters: Server-side filters for the invoice and return queries
        include_invoices: Whether to query sales_invoices
        include_returns: Whether to query sales_returns
        lookup_collections: Name lookups to fetch alongside (branches, accounts, ...)

    Returns:
        FetchResult; on any failure the result is empty and marked failed
    """
    filters = filters or ReportFilters()
    invoice_filters = filters.store_filters()
    # a return's invoiceNumber is the invoice it reverses, not its own number
    return_filters = filters.store_filters(include_invoice_number=False)

    try:
        with ThreadPoolExecutor(max_workers=FETCH_WORKERS) as executor:
            catalog_future = executor.submit(store.query, INVENTORY_ITEMS)
            invoices_future = (executor.submit(store.query, SALES_INVOICES, invoice_filters)
                               if include_invoices else None)
            returns_future = (executor.submit(store.query, SALES_RETURNS, return_filters)
                              if include_returns else None)
            lookup_futures = {name: executor.submit(store.query, name) for name in lookup_collections}

            result = FetchResult(
                invoices=invoices_future.result() if invoices_future else [],
                returns=returns_future.result() if returns_future else [],
                catalog=catalog_future.result(),
                lookups={name: future.result() for name, future in lookup_futures.items()},
            )
    except Exception as e:
        logger.error(f"Error fetching report documents: {e}", exc_info=True)
        return FetchResult.failure(str(e))

    logger.info(
        f"Fetched {len(result.invoices)} invoices, {len(result.returns)} returns, "
        f"{len(result.catalog)} catalog items"
    )
    return result
