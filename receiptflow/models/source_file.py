"""
SQLAlchemy model for uploaded source documents.
"""
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String, Text

from receiptflow.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SourceFileModel(Base):
    """An uploaded PDF and its validate/process state."""
    __tablename__ = "source_files"

    id = Column(String, primary_key=True)
    file_name = Column(String, nullable=False)
    file_path = Column(String, nullable=False, unique=True)

    # NULL until the first validation run
    is_valid = Column(Boolean, nullable=True)
    invalid_reason = Column(Text)

    is_processed = Column(Boolean, nullable=False, default=False)
    receipt_id = Column(String)  # set together with is_processed

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
