"""
One report run: fetch, normalize, aggregate
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from db.document_store import ACCOUNTS, BRANCHES, COMPANIES, WAREHOUSES, DocumentStore
from etl.catalog import VARIANT_LEVEL_ONE, VARIANT_PARENT, build_catalog_map
from etl.fetcher import FetchResult, ReportFilters, fetch_report_documents
from etl.normalizer import LineItem, normalize_documents
from reports.aggregator import (
    DIMENSION_BRANCH, DIMENSION_CATEGORY, DIMENSION_INVOICE, LineItemFilters, ReportRow,
    aggregate, summarize,
)
from reports.lookups import NameLookup, SellerDirectory, company_profile

logger = logging.getLogger(__name__)

REPORT_SALES = 'sales'
REPORT_RETURNS = 'returns'
REPORT_ALL = 'all'

REPORT_KINDS = (REPORT_SALES, REPORT_RETURNS, REPORT_ALL)


@dataclass
class ReportRequest:
    report: str = REPORT_ALL
    filters: ReportFilters = field(default_factory=ReportFilters)
    line_filters: LineItemFilters = field(default_factory=LineItemFilters)
    dimension: str = DIMENSION_BRANCH


@dataclass
class ReportResult:
    rows: List[ReportRow] = field(default_factory=list)
    line_items: List[LineItem] = field(default_factory=list)
    totals: Dict[str, float] = field(default_factory=dict)
    failed: bool = False
    error: Optional[str] = None
    generation: int = 0
    branch_names: Optional[NameLookup] = None
    warehouse_names: Optional[NameLookup] = None
    company: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.rows


def run_report(store: DocumentStore, request: ReportRequest, generation: int = 0) -> ReportResult:
    """
    Run one report end to end

    A failed fetch produces an empty result flagged as failed; it never raises.
    """
    if request.report not in REPORT_KINDS:
        raise ValueError(f"Unknown report kind: {request.report}")

    # invoices are fetched for every report kind: returns borrow their cost
    fetched: FetchResult = fetch_report_documents(
        store,
        request.filters,
        include_returns=request.report in (REPORT_RETURNS, REPORT_ALL),
    )
    if fetched.failed:
        logger.warning(f"Report generation {generation} returned no data: {fetched.error}")
        return ReportResult(totals=summarize([]), failed=True, error=fetched.error, generation=generation)

    catalog = build_catalog_map(fetched.catalog)
    variant = VARIANT_LEVEL_ONE if request.dimension == DIMENSION_CATEGORY else VARIANT_PARENT
    line_items = normalize_documents(fetched.invoices, fetched.returns, catalog, variant)
    if request.report == REPORT_RETURNS:
        line_items = [line for line in line_items if line.is_return]

    sellers = SellerDirectory.from_documents(fetched.lookups.get(ACCOUNTS, []))
    branch_names = NameLookup(fetched.lookups.get(BRANCHES, []))
    warehouse_names = NameLookup(fetched.lookups.get(WAREHOUSES, []))
    rows = aggregate(
        line_items,
        request.dimension,
        filters=request.line_filters,
        sellers=sellers,
        branch_names=branch_names,
        warehouse_names=warehouse_names,
        include_extra_discount=request.dimension in (DIMENSION_BRANCH, DIMENSION_INVOICE),
    )

    logger.info(f"Report generation {generation}: {len(rows)} {request.dimension} rows from {len(line_items)} lines")
    return ReportResult(
        rows=rows,
        line_items=line_items,
        totals=summarize(rows),
        generation=generation,
        branch_names=branch_names,
        warehouse_names=warehouse_names,
        company=company_profile(fetched.lookups.get(COMPANIES, [])),
    )


class SearchSession:
    """
    Tracks the searches of one user session

    Every search takes a new generation number. A result is only accepted
    while its generation is still the newest one started, so a slow search
    finishing after a newer one cannot overwrite it.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self._lock = threading.Lock()
        self._generation = 0
        self.current: Optional[ReportResult] = None

    @property
    def generation(self) -> int:
        return self._generation

    def begin(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def accept(self, result: ReportResult) -> bool:
        """Store a finished result unless a newer search has started"""
        with self._lock:
            if result.generation != self._generation:
                logger.info(f"Discarding stale report generation {result.generation} (current {self._generation})")
                return False
            self.current = result
            return True

    def search(self, request: ReportRequest) -> Optional[ReportResult]:
        """Run a report; None when the result was superseded before it finished"""
        generation = self.begin()
        result = run_report(self.store, request, generation)
        return result if self.accept(result) else None
