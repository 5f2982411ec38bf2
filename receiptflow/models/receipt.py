"""
SQLAlchemy model for receipt persistence.
"""
from sqlalchemy import Column, DateTime, ForeignKey, Numeric, String, Text

from receiptflow.database import Base
from receiptflow.models.source_file import _utcnow


class ReceiptModel(Base):
    __tablename__ = "receipts"

    id = Column(String, primary_key=True)
    # UNIQUE: a source file yields at most one receipt
    file_id = Column(String, ForeignKey("source_files.id"), nullable=False, unique=True)
    merchant_name = Column(String)
    total_amount = Column(Numeric(12, 2))
    purchase_date = Column(DateTime)
    raw_text = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
