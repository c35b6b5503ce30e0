"""
Document store access for the reports

Collections are addressed by name and queried with equality/range filters,
the only kind of query the backing store answers. Substring matching is
left to the callers, after retrieval.
"""

import copy
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .database import DatabaseSession, get_engine, init_database
from .models import INDEXED_FIELDS, StoredDocument

logger = logging.getLogger(__name__)

SALES_INVOICES = 'sales_invoices'
SALES_RETURNS = 'sales_returns'
INVENTORY_ITEMS = 'inventory_items'
BRANCHES = 'branches'
WAREHOUSES = 'warehouses'
ACCOUNTS = 'accounts'
COMPANIES = 'companies'


class DocumentStoreError(Exception):
    """Raised when the store cannot answer a query"""


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    '==': lambda left, right: left == right,
    '>=': lambda left, right: left is not None and left >= right,
    '<=': lambda left, right: left is not None and left <= right,
}


@dataclass(frozen=True)
class FieldFilter:
    """Equality or range condition on one document field"""
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, document: Dict[str, Any]) -> bool:
        return _OPERATORS[self.op](document.get(self.field), self.value)


class DocumentStore:
    """Interface shared by the store backends"""

    def query(self, collection: str, filters: Iterable[FieldFilter] = ()) -> List[Dict[str, Any]]:
        """Return the documents of a collection matching every filter, each with its 'id'"""
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def add(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        raise NotImplementedError


class InMemoryDocumentStore(DocumentStore):
    """Dictionary-backed store, used for demos and tests"""

    def __init__(self, collections: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        for name, documents in (collections or {}).items():
            for document in documents:
                self.add(name, document, document.get('id'))

    def query(self, collection, filters=()):
        filters = list(filters)
        documents = self._collections.get(collection, {})
        return [
            {**copy.deepcopy(data), 'id': doc_id}
            for doc_id, data in documents.items()
            if all(f.matches(data) for f in filters)
        ]

    def get(self, collection, doc_id):
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        return {**copy.deepcopy(data), 'id': doc_id}

    def add(self, collection, data, doc_id=None):
        doc_id = str(doc_id) if doc_id is not None else uuid.uuid4().hex
        body = {k: v for k, v in data.items() if k != 'id'}
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(body)
        return doc_id


class SqlDocumentStore(DocumentStore):
    """
    Store backed by the stored_documents table

    Filters on indexed fields (date, branch, warehouse, invoiceNumber) are
    pushed into SQL; any other filter is applied to the loaded documents.
    """

    def __init__(self, engine=None, create_tables: bool = True):
        self.engine = engine or get_engine()
        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        if create_tables:
            init_database(self.engine)

    def query(self, collection, filters=()):
        filters = list(filters)
        statement = select(StoredDocument).where(StoredDocument.collection == collection)
        remaining = []

        for f in filters:
            column = INDEXED_FIELDS.get(f.field)
            if column is None:
                remaining.append(f)
            elif f.op == '==':
                statement = statement.where(column == f.value)
            elif f.op == '>=':
                statement = statement.where(column >= f.value)
            else:
                statement = statement.where(column <= f.value)

        statement = statement.order_by(StoredDocument.id)

        try:
            with DatabaseSession(self.session_factory) as session:
                rows = session.execute(statement).scalars().all()
                documents = [{**row.data, 'id': row.doc_id} for row in rows]
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Query on {collection} failed: {e}") from e

        if remaining:
            documents = [d for d in documents if all(f.matches(d) for f in remaining)]

        logger.debug(f"Query on {collection} returned {len(documents)} documents")
        return documents

    def get(self, collection, doc_id):
        statement = select(StoredDocument).where(
            StoredDocument.collection == collection,
            StoredDocument.doc_id == str(doc_id),
        )
        try:
            with DatabaseSession(self.session_factory) as session:
                row = session.execute(statement).scalars().first()
                return {**row.data, 'id': row.doc_id} if row else None
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Read of {collection}/{doc_id} failed: {e}") from e

    def add(self, collection, data, doc_id=None):
        doc_id = str(doc_id) if doc_id is not None else uuid.uuid4().hex
        body = {k: v for k, v in data.items() if k != 'id'}
        record = StoredDocument(
            collection=collection,
            doc_id=doc_id,
            date=_indexed_value(body.get('date')),
            branch=_indexed_value(body.get('branch')),
            warehouse=_indexed_value(body.get('warehouse')),
            invoice_number=_indexed_value(body.get('invoiceNumber')),
            data=body,
        )
        try:
            with DatabaseSession(self.session_factory) as session:
                session.add(record)
        except SQLAlchemyError as e:
            raise DocumentStoreError(f"Write to {collection} failed: {e}") from e
        return doc_id


def _indexed_value(value: Any) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)
