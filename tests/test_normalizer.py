# tests/test_normalizer.py

import pytest

from etl.catalog import UNCATEGORIZED, VARIANT_LEVEL_ONE, CatalogMap
from etl.normalizer import (
    PHONE_FIELDS, RETURN, SALE, UNSPECIFIED, UNTYPED,
    collect_sale_costs, iter_item_entries, normalize_documents, normalize_transaction, sale, sales_return,
)


def _invoice(items, **fields):
    return {'id': 'doc-1', 'invoiceNumber': 'INV-1', 'date': '2024-03-01', 'branch': 'B1', 'items': items, **fields}


def test_invoice_scenario_amounts():
    """gross=200, discount=10, afterDiscount=190, tax=5, net=195, profit=190-cost"""
    doc = _invoice([{'itemNumber': 'X1', 'price': 100, 'quantity': 2, 'discountValue': 10, 'taxValue': 5, 'cost': 30}])
    [line] = normalize_transaction(sale(doc), CatalogMap())

    assert line.gross == 200
    assert line.discount == 10
    assert line.after_discount == 190
    assert line.tax == 5
    assert line.net == 195
    assert line.cost == 60
    assert line.profit == 190 - 60
    assert line.sign == 1
    assert line.kind == SALE
    assert line.key == 'doc-1-0'


def test_return_borrows_cost_from_original_invoice():
    invoice = _invoice([{'itemNumber': 'X1', 'price': 100, 'quantity': 2, 'cost': 40}])
    ret = {
        'id': 'r-1', 'returnNumber': 'RET-1', 'invoiceNumber': 'INV-1', 'date': '2024-03-02', 'branch': 'B1',
        'items': [{'itemNumber': 'X1', 'price': 100, 'returnedQty': 1}],
    }
    lines = normalize_documents([invoice], [ret], CatalogMap())
    return_line = lines[-1]

    assert return_line.kind == RETURN
    assert return_line.sign == -1
    assert return_line.quantity == 1
    assert return_line.unit_cost == 40
    assert return_line.profit == -(100 - 40)
    assert return_line.invoice_number == 'RET-1'
    assert return_line.original_invoice_number == 'INV-1'
    assert return_line.key == 'return-r-1-0'


def test_return_profit_is_negated_sale_profit(invoice_docs, return_docs, catalog):
    lines = normalize_documents(invoice_docs, return_docs, catalog)
    for line in lines:
        as_if_sale = (line.gross - line.discount) - line.cost
        expected = -as_if_sale if line.kind == RETURN else as_if_sale
        assert line.profit == pytest.approx(expected)


def test_net_invariant(invoice_docs, return_docs, catalog):
    for line in normalize_documents(invoice_docs, return_docs, catalog):
        assert line.net == pytest.approx((line.gross - line.discount) + line.tax)


def test_percent_discount_and_tax():
    doc = _invoice([{'itemNumber': 'X1', 'price': 50, 'quantity': 4, 'discountPercent': 10, 'taxPercent': 15}])
    [line] = normalize_transaction(sale(doc), CatalogMap())

    assert line.discount == pytest.approx(20)
    assert line.after_discount == pytest.approx(180)
    assert line.tax == pytest.approx(27)
    assert line.net == pytest.approx(207)


def test_explicit_discount_wins_over_percent():
    doc = _invoice([{'price': 100, 'quantity': 1, 'discountValue': 5, 'discountPercent': 50}])
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.discount == 5


def test_non_numeric_price_is_zero():
    doc = _invoice([{'itemNumber': 'X1', 'price': 'abc', 'quantity': 3}])
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.gross == 0
    assert line.net == 0


def test_phone_fallback_order():
    doc = _invoice([{'price': 1, 'quantity': 1, 'customerMobile': 'A', 'phone': 'B'}])
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.customer_phone == 'A'


def test_phone_falls_back_to_document_and_skips_non_strings():
    doc = _invoice([{'price': 1, 'quantity': 1, 'customerPhone': 12345, 'mobile': '  '}], phoneNumber='0555')
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.customer_phone == '0555'
    assert PHONE_FIELDS.first_text({}, {}) == ''


def test_item_name_fallbacks(catalog):
    doc = _invoice([
        {'itemNumber': 'X2', 'price': 1, 'quantity': 1},
        {'itemNumber': 'Z9', 'price': 1, 'quantity': 1},
        {'price': 1, 'quantity': 1},
    ])
    lines = normalize_transaction(sale(doc), catalog)
    assert [line.item_name for line in lines] == ['مكيف شباك', 'Z9', UNSPECIFIED]
    assert all(line.item_type == UNTYPED for line in lines)


def test_category_resolution_variants(catalog):
    doc = _invoice([
        {'itemName': 'مكيف سبليت', 'price': 1, 'quantity': 1},
        {'itemName': 'صنف خارجي', 'mainCategory': 'متفرقات', 'price': 1, 'quantity': 1},
    ])
    parent_lines = normalize_transaction(sale(doc), catalog)
    level_one_lines = normalize_transaction(sale(doc), catalog, VARIANT_LEVEL_ONE)

    assert [line.category for line in parent_lines] == ['مكيفات', 'متفرقات']
    assert [line.category for line in level_one_lines] == ['مكيفات', UNCATEGORIZED]


def test_cost_falls_back_to_catalog(catalog):
    doc = _invoice([{'itemNumber': 'X1', 'price': 100, 'quantity': 2}])
    [line] = normalize_transaction(sale(doc), catalog)
    assert line.unit_cost == 60
    assert line.cost == 120


def test_purchase_price_used_when_cost_missing():
    doc = _invoice([{'price': 100, 'quantity': 1, 'purchasePrice': 45}])
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.cost == 45


def test_nested_items_are_flattened_one_level():
    items = [
        {'itemNumber': 'P', 'unit': 'كرتون', 'items': [
            {'itemNumber': 'C1', 'price': 10, 'quantity': 1},
            {'itemNumber': 'C2', 'price': 20, 'quantity': 1, 'items': [{'itemNumber': 'deep'}]},
        ]},
        {'itemNumber': 'S', 'price': 5, 'quantity': 2},
    ]
    flattened = list(iter_item_entries(items))

    assert [entry['itemNumber'] for entry in flattened] == ['C1', 'C2', 'S']
    assert flattened[0]['unit'] == 'كرتون'
    assert 'items' not in flattened[1]

    lines = normalize_transaction(sale(_invoice(items)), CatalogMap())
    assert [line.key for line in lines] == ['doc-1-0', 'doc-1-1', 'doc-1-2']


def test_invoice_extra_discount_on_first_line_only():
    doc = _invoice([{'price': 10, 'quantity': 1}, {'price': 10, 'quantity': 1}], extraDiscount=15)
    lines = normalize_transaction(sale(doc), CatalogMap())
    assert [line.extra_discount for line in lines] == [15, 0]
    assert lines[0].discount == 0


def test_return_quantity_falls_back_to_quantity():
    ret = {'id': 'r-2', 'invoiceNumber': 'INV-9', 'items': [{'price': 10, 'quantity': 3}]}
    [line] = normalize_transaction(sales_return(ret), CatalogMap())
    assert line.quantity == 3
    assert line.invoice_number == 'r-2'


def test_return_number_prefers_reference_number():
    ret = {
        'id': 'r-3', 'referenceNumber': 'R-77', 'returnNumber': 'RN-1', 'invoiceNumber': 'INV-9',
        'items': [{'price': 10, 'returnedQty': 1}],
    }
    [line] = normalize_transaction(sales_return(ret), CatalogMap())
    assert line.invoice_number == 'R-77'
    assert line.original_invoice_number == 'INV-9'

    del ret['referenceNumber']
    [line] = normalize_transaction(sales_return(ret), CatalogMap())
    assert line.invoice_number == 'RN-1'


def test_collect_sale_costs_keeps_first_nonzero():
    doc = _invoice([
        {'itemNumber': 'X1', 'price': 1, 'quantity': 1},
        {'itemNumber': 'X1', 'price': 1, 'quantity': 1, 'cost': 7},
        {'itemNumber': 'X1', 'price': 1, 'quantity': 1, 'cost': 9},
    ])
    costs = collect_sale_costs(normalize_transaction(sale(doc), CatalogMap()))
    assert costs == {('INV-1', 'X1'): 7}


def test_malformed_documents_are_tolerated():
    doc = {'id': 'odd', 'items': ['not an item', {'price': None, 'quantity': 'x'}]}
    [line] = normalize_transaction(sale(doc), CatalogMap())
    assert line.gross == 0
    assert line.invoice_number == ''
    assert normalize_transaction(sale({'id': 'empty'}), CatalogMap()) == []
