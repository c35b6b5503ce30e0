"""
Aggregation of normalized line items into report rows

Groups are accumulated from the sign-weighted components of each line;
after-discount, net and profit are derived once per group from those sums.
"""

import logging
from dataclasses import dataclass, field, fields
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from etl.normalizer import LineItem, RETURN, SALE, UNSPECIFIED
from reports.lookups import NameLookup, SellerDirectory
from utils.dates_numbers import contains_text, normalize_text

logger = logging.getLogger(__name__)

DIMENSION_BRANCH = 'branch'
DIMENSION_CATEGORY = 'category'
DIMENSION_TYPE = 'type'
DIMENSION_INVOICE = 'invoiceNumber'
DIMENSION_ITEM = 'item'

DIMENSIONS = (DIMENSION_BRANCH, DIMENSION_CATEGORY, DIMENSION_TYPE, DIMENSION_INVOICE, DIMENSION_ITEM)

# Dimensions whose rows carry a best-selling item
BEST_SELLER_DIMENSIONS = (DIMENSION_CATEGORY, DIMENSION_TYPE)

NO_BEST_SELLER = 'لا يوجد'


@dataclass
class LineItemFilters:
    """Filters applied after normalization; empty values are inactive"""
    invoice_number: Optional[str] = None
    payment_method: Optional[str] = None
    seller: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    item_name: Optional[str] = None
    item_number: Optional[str] = None
    kind: Optional[str] = None
    category: Optional[str] = None
    branch_ids: Optional[Sequence[str]] = None

    def accepts(self, line: LineItem, sellers: Optional[SellerDirectory] = None) -> bool:
        if self.invoice_number and not (contains_text(line.invoice_number, self.invoice_number)
                                        or contains_text(line.original_invoice_number, self.invoice_number)):
            return False
        if normalize_text(self.payment_method) and normalize_text(line.payment_method) != normalize_text(self.payment_method):
            return False
        if normalize_text(self.seller):
            directory = sellers or SellerDirectory()
            if not directory.matches(line.seller, self.seller):
                return False
        if not contains_text(line.customer_name, self.customer_name):
            return False
        if not contains_text(line.customer_phone, self.customer_phone):
            return False
        if not contains_text(line.item_name, self.item_name):
            return False
        if not contains_text(line.item_number, self.item_number):
            return False
        if self.kind and line.kind != self.kind:
            return False
        if not contains_text(line.category, self.category):
            return False
        if self.branch_ids and line.branch not in set(self.branch_ids):
            return False
        return True


@dataclass
class ReportRow:
    """One aggregated group of a report"""
    group_key: str
    name: str
    quantity: float = 0.0
    gross: float = 0.0
    discount: float = 0.0
    tax: float = 0.0
    cost: float = 0.0
    after_discount: float = 0.0
    net: float = 0.0
    profit: float = 0.0
    invoice_count: int = 0
    line_count: int = 0
    best_item: Optional[str] = None
    best_item_quantity: float = 0.0
    kind: Optional[str] = None
    # invoice dimension only
    date: str = ''
    branch: str = ''
    warehouse: str = ''
    customer_name: str = ''
    customer_phone: str = ''
    seller: str = ''
    payment_method: str = ''
    original_invoice_number: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class _Group:
    row: ReportRow
    invoices: set = field(default_factory=set)
    tallies: Dict[str, float] = field(default_factory=dict)

    def add(self, line: LineItem, include_extra_discount: bool) -> None:
        sign = line.sign
        row = self.row
        row.quantity += sign * line.quantity
        row.gross += sign * line.gross
        row.discount += sign * line.discount
        if include_extra_discount:
            row.discount += sign * line.extra_discount
        row.tax += sign * line.tax
        row.cost += sign * line.cost
        row.line_count += 1
        self.invoices.add((line.kind, line.document_id or line.invoice_number))

        # returns do not count towards the best seller
        if line.kind == SALE and line.quantity > 0:
            self.tallies[line.item_name] = self.tallies.get(line.item_name, 0.0) + line.quantity

    def finish(self, best_seller: bool) -> ReportRow:
        row = self.row
        row.after_discount = row.gross - row.discount
        row.net = row.after_discount + row.tax
        row.profit = row.after_discount - row.cost
        row.invoice_count = len(self.invoices)
        if best_seller:
            # ties go to the item seen first
            for item_name, tally in self.tallies.items():
                if tally > row.best_item_quantity:
                    row.best_item = item_name
                    row.best_item_quantity = tally
            if row.best_item is None:
                row.best_item = NO_BEST_SELLER
        else:
            row.best_item = None
            row.best_item_quantity = 0.0
        return row


def _group_of(line: LineItem, dimension: str, branch_names: Optional[NameLookup]) -> Tuple[str, str]:
    """(group key, display name) of a line under a dimension"""
    if dimension == DIMENSION_BRANCH:
        key = line.branch
        name = branch_names.name(key) if branch_names is not None else key
        return key, name or UNSPECIFIED
    if dimension == DIMENSION_CATEGORY:
        return line.category, line.category
    if dimension == DIMENSION_TYPE:
        return line.item_type, line.item_type
    if dimension == DIMENSION_INVOICE:
        # a sale and a return sharing a number stay separate rows
        return f"{line.kind}:{line.invoice_number}", line.invoice_number or UNSPECIFIED
    if dimension == DIMENSION_ITEM:
        key = line.item_number or line.item_name
        return key, line.item_name
    raise ValueError(f"Unknown report dimension: {dimension}")


def _invoice_row(key: str, name: str, line: LineItem, sellers: Optional[SellerDirectory],
                 branch_names: Optional[NameLookup], warehouse_names: Optional[NameLookup]) -> ReportRow:
    return ReportRow(
        group_key=key,
        name=name,
        kind=line.kind,
        date=line.date,
        branch=branch_names.name(line.branch) if branch_names is not None else line.branch,
        warehouse=warehouse_names.name(line.warehouse) if warehouse_names is not None else line.warehouse,
        customer_name=line.customer_name,
        customer_phone=line.customer_phone,
        seller=sellers.display_name(line.seller) if sellers is not None else line.seller,
        payment_method=line.payment_method,
        original_invoice_number=line.original_invoice_number if line.kind == RETURN else '',
    )


def aggregate(line_items: Iterable[LineItem], dimension: str,
              filters: Optional[LineItemFilters] = None,
              sellers: Optional[SellerDirectory] = None,
              branch_names: Optional[NameLookup] = None,
              warehouse_names: Optional[NameLookup] = None,
              include_extra_discount: bool = False) -> List[ReportRow]:
    """
    Group line items into report rows

    Args:
        line_items: Normalized line items of one report run
        dimension: One of DIMENSIONS
        filters: Post-normalization filters
        sellers: Seller directory for alias matching and display names
        branch_names: Branch id -> name lookup
        warehouse_names: Warehouse id -> name lookup for invoice rows
        include_extra_discount: Add invoice-level extra discounts to the discount sums

    Returns:
        Rows in first-seen group order
    """
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown report dimension: {dimension}")

    filters = filters or LineItemFilters()
    groups: Dict[str, _Group] = {}
    skipped = 0

    for line in line_items:
        if not filters.accepts(line, sellers):
            skipped += 1
            continue

        key, name = _group_of(line, dimension, branch_names)
        group = groups.get(key)
        if group is None:
            if dimension == DIMENSION_INVOICE:
                row = _invoice_row(key, name, line, sellers, branch_names, warehouse_names)
            else:
                row = ReportRow(group_key=key, name=name)
            group = groups[key] = _Group(row)
        group.add(line, include_extra_discount)

    best_seller = dimension in BEST_SELLER_DIMENSIONS
    rows = [group.finish(best_seller) for group in groups.values()]
    logger.debug(f"Aggregated {len(rows)} {dimension} rows, {skipped} lines filtered out")
    return rows


def summarize(rows: Iterable[ReportRow]) -> Dict[str, float]:
    """Grand totals over report rows"""
    totals = {
        'quantity': 0.0, 'gross': 0.0, 'discount': 0.0, 'tax': 0.0, 'cost': 0.0,
        'after_discount': 0.0, 'net': 0.0, 'profit': 0.0, 'invoice_count': 0, 'rows': 0,
    }
    for row in rows:
        for name in ('quantity', 'gross', 'discount', 'tax', 'cost', 'invoice_count'):
            totals[name] += getattr(row, name)
        totals['rows'] += 1

    totals['after_discount'] = totals['gross'] - totals['discount']
    totals['net'] = totals['after_discount'] + totals['tax']
    totals['profit'] = totals['after_discount'] - totals['cost']
    return totals


def rows_to_dataframe(rows: Sequence[ReportRow], dimension: str) -> pd.DataFrame:
    """Report rows as a DataFrame, dropping the columns a dimension does not use"""
    df = pd.DataFrame([row.to_dict() for row in rows], columns=[f.name for f in fields(ReportRow)])

    if dimension != DIMENSION_INVOICE:
        df = df.drop(columns=['kind', 'date', 'branch', 'warehouse', 'customer_name', 'customer_phone',
                              'seller', 'payment_method', 'original_invoice_number'])
    if dimension not in BEST_SELLER_DIMENSIONS:
        df = df.drop(columns=['best_item', 'best_item_quantity'])

    numeric_cols = ['quantity', 'gross', 'discount', 'tax', 'cost', 'after_discount', 'net', 'profit']
    df[numeric_cols] = df[numeric_cols].astype(float).round(2)
    return df
