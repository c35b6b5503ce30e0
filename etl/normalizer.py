"""
Normalizer for sales invoice and sales return documents
Flattens each document's item entries into canonical line items with the
derived financial fields, using +1 for sales and -1 for returns
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from etl.catalog import CatalogMap, UNCATEGORIZED, VARIANT_PARENT
from utils.dates_numbers import format_iso_date, normalize_number, normalize_text, to_number

logger = logging.getLogger(__name__)

SALE = 'sale'
RETURN = 'return'

UNSPECIFIED = 'غير محدد'
UNTYPED = 'بدون تصنيف'

# Item entries nest at most one level of sub-items
MAX_ITEM_DEPTH = 2


@dataclass(frozen=True)
class FieldChain:
    """Ordered candidate fields for one logical value; first non-empty wins"""
    name: str
    fields: Tuple[str, ...]
    strings_only: bool = False

    def first_text(self, *records: Dict[str, Any]) -> str:
        """Search every field of the first record, then the next record, ..."""
        for record in records:
            for field_name in self.fields:
                value = record.get(field_name)
                if isinstance(value, str) and value.strip():
                    return value.strip()
                if not self.strings_only and isinstance(value, (int, float)) and not isinstance(value, bool):
                    return normalize_text(value)
        return ''

    def first_number(self, *records: Dict[str, Any]) -> Optional[float]:
        for record in records:
            for field_name in self.fields:
                number = normalize_number(record.get(field_name))
                if number is not None:
                    return number
        return None


# Phone numbers are only taken from string fields
PHONE_FIELDS = FieldChain('customer_phone', (
    'customerPhone', 'customerMobile', 'customerNumber', 'phone', 'mobile', 'phoneNumber',
), strings_only=True)
CUSTOMER_NAME_FIELDS = FieldChain('customer_name', ('customerName', 'customer'))
SELLER_FIELDS = FieldChain('seller', ('delegate', 'seller'))
ITEM_NAME_FIELDS = FieldChain('item_name', ('itemName', 'name'))
ITEM_NUMBER_FIELDS = FieldChain('item_number', ('itemNumber', 'itemCode'))
ITEM_TYPE_FIELDS = FieldChain('item_type', ('itemType', 'type'))
WAREHOUSE_FIELDS = FieldChain('warehouse', ('warehouseId', 'warehouse'))
RETURN_NUMBER_FIELDS = FieldChain('return_number', ('referenceNumber', 'returnNumber'))
ORIGINAL_INVOICE_FIELDS = FieldChain('original_invoice', ('invoiceNumber', 'originalInvoiceNumber', 'referenceNumber'))
COST_FIELDS = FieldChain('cost', ('cost', 'purchasePrice'))
DISCOUNT_VALUE_FIELDS = FieldChain('discount_value', ('discountValue', 'discount'))


@dataclass(frozen=True)
class Transaction:
    """A sales invoice or a sales return, tagged by kind"""
    kind: str
    document: Dict[str, Any]

    @property
    def sign(self) -> int:
        return -1 if self.kind == RETURN else 1

    @property
    def document_id(self) -> str:
        return normalize_text(self.document.get('id'))

    @property
    def number(self) -> str:
        """Invoice number of a sale; the return's own number for a return"""
        if self.kind == RETURN:
            return RETURN_NUMBER_FIELDS.first_text(self.document) or self.document_id
        return normalize_text(self.document.get('invoiceNumber'))

    @property
    def original_invoice_number(self) -> str:
        if self.kind == RETURN:
            return ORIGINAL_INVOICE_FIELDS.first_text(self.document)
        return self.number

    @property
    def original_invoice_candidates(self) -> List[str]:
        """Every invoice number a return may reference, in lookup order"""
        if self.kind != RETURN:
            return [self.number]
        candidates = []
        for field_name in ORIGINAL_INVOICE_FIELDS.fields:
            value = normalize_text(self.document.get(field_name))
            if value and value not in candidates:
                candidates.append(value)
        return candidates

    def quantity_of(self, entry: Dict[str, Any]) -> float:
        if self.kind == RETURN and 'returnedQty' in entry:
            return to_number(entry.get('returnedQty'))
        return to_number(entry.get('quantity'))


def sale(document: Dict[str, Any]) -> Transaction:
    return Transaction(SALE, document)


def sales_return(document: Dict[str, Any]) -> Transaction:
    return Transaction(RETURN, document)


@dataclass
class LineItem:
    """One product row of an invoice or return, in canonical shape"""
    key: str
    invoice_number: str
    date: str
    branch: str
    item_number: str
    item_name: str
    category: str
    quantity: float
    price: float
    gross: float
    discount: float
    discount_percent: float
    after_discount: float
    tax: float
    tax_percent: float
    net: float
    unit_cost: float
    cost: float
    profit: float
    kind: str = SALE
    sign: int = 1
    item_type: str = UNTYPED
    unit: str = ''
    warehouse: str = ''
    customer_name: str = ''
    customer_phone: str = ''
    seller: str = ''
    payment_method: str = ''
    original_invoice_number: str = ''
    extra_discount: float = 0.0
    document_id: str = ''

    @property
    def is_return(self) -> bool:
        return self.kind == RETURN


def iter_item_entries(items: Any, depth: int = 1) -> Iterator[Dict[str, Any]]:
    """
    Flatten item entries, depth-capped

    An entry carrying a nested 'items' list is replaced by its sub-entries,
    each inheriting the parent's fields. Sub-entries are never expanded.
    """
    if not isinstance(items, list):
        return

    for entry in items:
        if not isinstance(entry, dict):
            logger.debug(f"Skipping non-object item entry: {entry!r}")
            continue

        nested = entry.get('items')
        if depth < MAX_ITEM_DEPTH and isinstance(nested, list) and nested:
            parent_fields = {k: v for k, v in entry.items() if k != 'items'}
            for sub_entry in nested:
                if isinstance(sub_entry, dict):
                    child_fields = {k: v for k, v in sub_entry.items() if k != 'items'}
                    yield {**parent_fields, **child_fields}
        else:
            yield entry


def compute_amounts(price: float, quantity: float, entry: Dict[str, Any],
                    unit_cost: float, sign: int) -> Dict[str, float]:
    """Derived financial fields of one line"""
    gross = price * quantity

    discount_percent = to_number(entry.get('discountPercent'))
    discount = DISCOUNT_VALUE_FIELDS.first_number(entry) or 0.0
    if not discount and discount_percent:
        discount = gross * discount_percent / 100
    after_discount = gross - discount

    tax_percent = to_number(entry.get('taxPercent'))
    tax = to_number(entry.get('taxValue'))
    if not tax and tax_percent:
        tax = after_discount * tax_percent / 100

    cost = unit_cost * quantity
    return {
        'gross': gross,
        'discount': discount,
        'discount_percent': discount_percent,
        'after_discount': after_discount,
        'tax': tax,
        'tax_percent': tax_percent,
        'net': after_discount + tax,
        'cost': cost,
        # a return's profit is the sale's profit negated
        'profit': sign * (after_discount - cost),
    }


def resolve_item_name(entry: Dict[str, Any], item_number: str, catalog: CatalogMap) -> str:
    name = ITEM_NAME_FIELDS.first_text(entry)
    if name:
        return name
    if item_number:
        catalog_entry = catalog.lookup(item_number)
        if catalog_entry is not None:
            return catalog_entry.name
        return item_number
    return UNSPECIFIED


def resolve_category(entry: Dict[str, Any], item_name: str, item_number: str,
                     catalog: CatalogMap, variant: str) -> str:
    lookup_value = item_name if catalog.lookup(item_name) is not None else item_number
    category = catalog.resolve_category(lookup_value, variant, fallback='')
    if category:
        return category
    if variant == VARIANT_PARENT:
        main_category = normalize_text(entry.get('mainCategory'))
        if main_category:
            return main_category
    return UNCATEGORIZED


def normalize_transaction(transaction: Transaction, catalog: CatalogMap,
                          variant: str = VARIANT_PARENT,
                          sale_costs: Optional[Dict[Tuple[str, str], float]] = None) -> List[LineItem]:
    """
    Flatten one transaction into line items

    Args:
        transaction: Sale or return to normalize
        catalog: Inventory catalog lookup map
        variant: Category resolution variant
        sale_costs: Unit costs of already-normalized sale lines keyed by
            (invoice number, item number), borrowed by returns without cost

    Returns:
        One line item per (flattened) item entry
    """
    document = transaction.document
    sign = transaction.sign
    number = transaction.number
    original_number = transaction.original_invoice_number
    date = format_iso_date(document.get('date')) or normalize_text(document.get('date'))
    branch = normalize_text(document.get('branch'))
    customer_name = CUSTOMER_NAME_FIELDS.first_text(document)
    seller = SELLER_FIELDS.first_text(document)
    payment_method = normalize_text(document.get('paymentMethod'))
    key_prefix = 'return-' if transaction.kind == RETURN else ''

    invoice_extra_discount = 0.0
    if transaction.kind == SALE:
        invoice_extra_discount = to_number(document.get('extraDiscount'))

    lines = []
    for index, entry in enumerate(iter_item_entries(document.get('items'))):
        item_number = ITEM_NUMBER_FIELDS.first_text(entry)
        item_name = resolve_item_name(entry, item_number, catalog)
        price = to_number(entry.get('price'))
        quantity = transaction.quantity_of(entry)

        unit_cost = COST_FIELDS.first_number(entry) or 0.0
        if not unit_cost and transaction.kind == RETURN and sale_costs:
            for candidate in transaction.original_invoice_candidates:
                unit_cost = sale_costs.get((candidate, item_number), 0.0)
                if unit_cost:
                    logger.debug(f"Return {number}: borrowed cost {unit_cost} for {item_number} from {candidate}")
                    break
        if not unit_cost:
            unit_cost = catalog.item_cost(item_number) or catalog.item_cost(item_name)

        amounts = compute_amounts(price, quantity, entry, unit_cost, sign)

        extra_discount = to_number(entry.get('extraDiscount')) if transaction.kind == SALE else 0.0
        if index == 0:
            extra_discount += invoice_extra_discount

        lines.append(LineItem(
            key=f"{key_prefix}{transaction.document_id}-{index}",
            invoice_number=number,
            date=date,
            branch=branch,
            item_number=item_number,
            item_name=item_name,
            category=resolve_category(entry, item_name, item_number, catalog, variant),
            quantity=quantity,
            price=price,
            unit_cost=unit_cost,
            kind=transaction.kind,
            sign=sign,
            item_type=ITEM_TYPE_FIELDS.first_text(entry) or UNTYPED,
            unit=normalize_text(entry.get('unit')),
            warehouse=WAREHOUSE_FIELDS.first_text(entry, document),
            customer_name=customer_name,
            customer_phone=PHONE_FIELDS.first_text(entry, document),
            seller=seller,
            payment_method=payment_method,
            original_invoice_number=original_number,
            extra_discount=extra_discount,
            document_id=transaction.document_id,
            **amounts,
        ))

    return lines


def collect_sale_costs(lines: Iterable[LineItem]) -> Dict[Tuple[str, str], float]:
    """First non-zero unit cost per (invoice number, item number) among sale lines"""
    costs: Dict[Tuple[str, str], float] = {}
    for line in lines:
        if line.kind != SALE or not line.unit_cost:
            continue
        costs.setdefault((line.invoice_number, line.item_number), line.unit_cost)
    return costs


def normalize_documents(invoices: Iterable[Dict[str, Any]], returns: Iterable[Dict[str, Any]],
                        catalog: CatalogMap, variant: str = VARIANT_PARENT) -> List[LineItem]:
    """
    Normalize a fetched document set into line items

    Sales are normalized first so that returns can borrow the cost of the
    sale line they reverse.
    """
    sale_lines: List[LineItem] = []
    for document in invoices:
        sale_lines.extend(normalize_transaction(sale(document), catalog, variant))

    sale_costs = collect_sale_costs(sale_lines)

    return_lines: List[LineItem] = []
    for document in returns:
        return_lines.extend(normalize_transaction(sales_return(document), catalog, variant, sale_costs))

    logger.info(f"Normalized {len(sale_lines)} sale lines and {len(return_lines)} return lines")
    return sale_lines + return_lines

