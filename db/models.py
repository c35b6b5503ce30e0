"""
SQLAlchemy models for the document store backing the reports
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Index, UniqueConstraint
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class StoredDocument(Base):
    """One document of a logical collection (sales_invoices, inventory_items, ...)"""
    __tablename__ = 'stored_documents'

    id = Column(Integer, primary_key=True, autoincrement=True)
    collection = Column(String(100), nullable=False)
    doc_id = Column(String(100), nullable=False)

    # Denormalized copies of the fields reports filter on server-side
    date = Column(String(10))  # YYYY-MM-DD
    branch = Column(String(100))
    warehouse = Column(String(100))
    invoice_number = Column(String(100))

    data = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint('collection', 'doc_id', name='uq_collection_doc'),
    )


# Indexes for the range/equality filters pushed down by the fetcher
Index('idx_doc_collection_date', StoredDocument.collection, StoredDocument.date)
Index('idx_doc_collection_branch', StoredDocument.collection, StoredDocument.branch)
Index('idx_doc_collection_warehouse', StoredDocument.collection, StoredDocument.warehouse)

# Document field name -> indexed column
INDEXED_FIELDS = {
    'date': StoredDocument.date,
    'branch': StoredDocument.branch,
    'warehouse': StoredDocument.warehouse,
    'invoiceNumber': StoredDocument.invoice_number,
}
