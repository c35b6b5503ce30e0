# tests/conftest.py
# ---------------------------------------------------------------------
# Shared fixtures:
# - small hand-written invoice / return / catalog documents
# - an in-memory document store loaded with them
# - a SQL-backed store on a private in-memory SQLite engine per test
# ---------------------------------------------------------------------

import pytest

from db.database import create_db_engine
from db.document_store import (
    ACCOUNTS, BRANCHES, COMPANIES, INVENTORY_ITEMS, SALES_INVOICES, SALES_RETURNS, WAREHOUSES,
    InMemoryDocumentStore, SqlDocumentStore,
)
from etl.catalog import build_catalog_map


@pytest.fixture
def catalog_docs():
    return [
        {'id': 1, 'type': 'رئيسي', 'name': 'أجهزة'},
        {'id': 2, 'parentId': 1, 'type': 'مستوى أول', 'name': 'مكيفات'},
        {'id': 3, 'parentId': 2, 'type': 'مستوى ثاني', 'name': 'مكيف سبليت', 'itemCode': 'X1', 'purchasePrice': 60},
        {'id': 4, 'parentId': 2, 'type': 'مستوى ثاني', 'name': 'مكيف شباك', 'itemCode': 'X2'},
    ]


@pytest.fixture
def catalog(catalog_docs):
    return build_catalog_map(catalog_docs)


@pytest.fixture
def invoice_docs():
    return [
        {
            'id': 'inv-1',
            'invoiceNumber': 'INV-1',
            'date': '2024-03-01',
            'branch': 'B1',
            'warehouse': 'W1',
            'customerName': 'محمد',
            'customerPhone': '0500000001',
            'delegate': 'rep-0000000001',
            'paymentMethod': 'نقدي',
            'items': [
                {'itemNumber': 'X1', 'itemName': 'مكيف سبليت', 'price': 100, 'quantity': 2,
                 'discountValue': 10, 'taxValue': 5, 'cost': 70},
            ],
        },
        {
            'id': 'inv-2',
            'invoiceNumber': 'INV-2',
            'date': '2024-03-05',
            'branch': 'B1',
            'warehouse': 'W1',
            'customerName': 'فهد',
            'delegate': 'أحمد علي',
            'paymentMethod': 'شبكة',
            'extraDiscount': 20,
            'items': [
                {'itemNumber': 'X2', 'itemName': 'مكيف شباك', 'price': 150, 'quantity': 2, 'cost': 100},
            ],
        },
        {
            'id': 'inv-3',
            'invoiceNumber': 'INV-3',
            'date': '2024-04-10',
            'branch': 'B2',
            'warehouse': 'W2',
            'customerName': 'نورة',
            'paymentMethod': 'نقدي',
            'items': [
                {'itemNumber': 'X1', 'itemName': 'مكيف سبليت', 'price': 100, 'quantity': 1, 'cost': 70},
            ],
        },
    ]


@pytest.fixture
def return_docs():
    return [
        {
            'id': 'ret-1',
            'returnNumber': 'RET-1',
            'invoiceNumber': 'INV-1',
            'date': '2024-03-02',
            'branch': 'B1',
            'warehouse': 'W1',
            'customerName': 'محمد',
            'paymentMethod': 'نقدي',
            'items': [
                {'itemNumber': 'X1', 'itemName': 'مكيف سبليت', 'price': 100, 'returnedQty': 1},
            ],
        },
    ]


@pytest.fixture
def lookup_docs():
    return {
        BRANCHES: [{'id': 'B1', 'nameAr': 'الفرع الرئيسي'}, {'id': 'B2', 'name': 'فرع جدة'}],
        WAREHOUSES: [{'id': 'W1', 'nameAr': 'المستودع الرئيسي'}],
        ACCOUNTS: [
            {'id': 'rep-0000000001', 'nameAr': 'أحمد علي', 'code': '5001'},
            {'id': 'rep-0000000002', 'nameAr': 'سارة محمد', 'code': '5002'},
        ],
        COMPANIES: [{'arabicName': 'شركة الاختبار', 'englishName': 'Test Co'}],
    }


@pytest.fixture
def memory_store(invoice_docs, return_docs, catalog_docs, lookup_docs):
    return InMemoryDocumentStore({
        SALES_INVOICES: invoice_docs,
        SALES_RETURNS: return_docs,
        INVENTORY_ITEMS: catalog_docs,
        **lookup_docs,
    })


@pytest.fixture
def sql_store():
    engine = create_db_engine('sqlite://')
    try:
        yield SqlDocumentStore(engine=engine)
    finally:
        engine.dispose()
