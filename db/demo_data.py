"""
Demo documents for trying the reports without a production store
"""

import logging
import random
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .document_store import (
    ACCOUNTS, BRANCHES, COMPANIES, INVENTORY_ITEMS, SALES_INVOICES, SALES_RETURNS, WAREHOUSES,
    DocumentStore,
)

logger = logging.getLogger(__name__)

BRANCH_DOCS = [
    {'id': 'B1', 'nameAr': 'الفرع الرئيسي', 'nameEn': 'Main Branch'},
    {'id': 'B2', 'nameAr': 'فرع جدة', 'nameEn': 'Jeddah Branch'},
]

WAREHOUSE_DOCS = [
    {'id': 'W1', 'nameAr': 'المستودع الرئيسي'},
    {'id': 'W2', 'nameAr': 'مستودع جدة'},
]

SELLER_DOCS = [
    {'id': 'rep-0000000001', 'nameAr': 'أحمد علي', 'code': '5001'},
    {'id': 'rep-0000000002', 'nameAr': 'سارة محمد', 'code': '5002'},
]

# (id, parentId, type, name, itemCode, purchasePrice)
CATALOG_ROWS = [
    (1, None, 'رئيسي', 'أجهزة', None, None),
    (2, 1, 'مستوى أول', 'أجهزة تكييف', None, None),
    (3, 1, 'مستوى أول', 'أجهزة منزلية', None, None),
    (10, 2, 'مستوى ثاني', 'مكيف سبليت 18000', 'AC-18', 1500),
    (11, 2, 'مستوى ثاني', 'مكيف شباك 12000', 'AC-12', 900),
    (12, 3, 'مستوى ثاني', 'غسالة 7 كيلو', 'WM-7', 1100),
    (13, 3, 'مستوى ثاني', 'ثلاجة 14 قدم', 'RF-14', 1800),
]

PAYMENT_METHODS = ['نقدي', 'شبكة', 'آجل']
CUSTOMERS = [('محمد عبدالله', '0500000001'), ('فهد سالم', '0500000002'), ('نورة خالد', '0500000003')]


def generate_demo_documents(invoice_count: int = 12, return_count: int = 3,
                            seed: Optional[int] = None) -> Dict[str, List[Dict[str, Any]]]:
    """
    Generate a consistent set of demo collections

    Args:
        invoice_count: Number of sales invoices
        return_count: Number of returns, each against one of the invoices
        seed: Random seed, for repeatable data

    Returns:
        Collection name -> documents
    """
    rng = random.Random(seed)
    today = date.today()

    catalog = [
        {
            'id': entry_id, 'parentId': parent_id, 'type': entry_type, 'name': name,
            'itemCode': code, 'purchasePrice': cost,
        }
        for entry_id, parent_id, entry_type, name, code, cost in CATALOG_ROWS
    ]
    products = [row for row in CATALOG_ROWS if row[4]]

    invoices = []
    for i in range(invoice_count):
        branch = rng.choice(BRANCH_DOCS)
        customer, phone = rng.choice(CUSTOMERS)
        items = []
        for _, _, _, name, code, cost in rng.sample(products, rng.randint(1, 3)):
            price = round(cost * rng.uniform(1.15, 1.4))
            items.append({
                'itemNumber': code,
                'itemName': name,
                'price': price,
                'quantity': rng.randint(1, 4),
                'cost': cost,
                'discountValue': rng.choice([0, 0, 50, 100]),
                'taxPercent': 15,
                'unit': 'حبة',
            })
        invoices.append({
            'id': f"inv-{i + 1:04d}",
            'invoiceNumber': f"INV-{1000 + i}",
            'date': (today - timedelta(days=rng.randint(0, 30))).isoformat(),
            'branch': branch['id'],
            'warehouse': 'W1' if branch['id'] == 'B1' else 'W2',
            'customerName': customer,
            'customerPhone': phone,
            'delegate': rng.choice(SELLER_DOCS)['id'],
            'paymentMethod': rng.choice(PAYMENT_METHODS),
            'type': 'فاتورة',
            'items': items,
            'extraDiscount': rng.choice([0, 0, 25]),
        })

    returns = []
    for i, invoice in enumerate(rng.sample(invoices, min(return_count, len(invoices)))):
        item = invoice['items'][0]
        returns.append({
            'id': f"ret-{i + 1:04d}",
            'returnNumber': f"RET-{500 + i}",
            'invoiceNumber': invoice['invoiceNumber'],
            'date': invoice['date'],
            'branch': invoice['branch'],
            'warehouse': invoice['warehouse'],
            'customerName': invoice['customerName'],
            'delegate': invoice['delegate'],
            'paymentMethod': invoice['paymentMethod'],
            # returns omit the cost; it is taken from the invoice line
            'items': [{
                'itemNumber': item['itemNumber'],
                'itemName': item['itemName'],
                'price': item['price'],
                'returnedQty': 1,
                'taxPercent': 15,
            }],
        })

    return {
        SALES_INVOICES: invoices,
        SALES_RETURNS: returns,
        INVENTORY_ITEMS: catalog,
        BRANCHES: BRANCH_DOCS,
        WAREHOUSES: WAREHOUSE_DOCS,
        ACCOUNTS: SELLER_DOCS,
        COMPANIES: [],
    }


def seed_store(store: DocumentStore, **kwargs) -> Dict[str, int]:
    """Write demo documents into a store; returns the count per collection"""
    counts = {}
    for collection, documents in generate_demo_documents(**kwargs).items():
        for document in documents:
            store.add(collection, document, document.get('id'))
        counts[collection] = len(documents)
    logger.info(f"Seeded demo data: {counts}")
    return counts
