"""
Record store — source files and receipts on top of SQLAlchemy.

Every call opens and closes its own session, so one store can be shared
by request handlers and OCR worker threads. Records leave the store as
pydantic models, never as ORM instances.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from receiptflow.database import SessionLocal
from receiptflow.models import ReceiptModel, SourceFileModel
from receiptflow.models.source_file import _utcnow
from receiptflow.pipeline.errors import NotValidatedError, SourceFileNotFoundError
from receiptflow.schemas import ParsedFields, ReceiptRecord, SourceFileRecord

logger = logging.getLogger(__name__)


class ReceiptStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # ── source files ──────────────────────────────────────────────────────
    def create_source_file(
        self, file_name: str, file_path: str, file_id: Optional[str] = None
    ) -> SourceFileRecord:
        with self._session() as db:
            row = SourceFileModel(
                id=file_id or str(uuid.uuid4()),
                file_name=file_name,
                file_path=file_path,
                is_valid=None,
                is_processed=False,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            logger.info("Stored source file %s (%s)", row.id, file_name)
            return SourceFileRecord.model_validate(row)

    def get_source_file(self, file_id: str) -> Optional[SourceFileRecord]:
        with self._session() as db:
            row = db.get(SourceFileModel, file_id)
            return SourceFileRecord.model_validate(row) if row else None

    def update_validity(
        self, file_id: str, valid: bool, reason: Optional[str] = None
    ) -> SourceFileRecord:
        with self._session() as db:
            row = db.get(SourceFileModel, file_id)
            if row is None:
                raise SourceFileNotFoundError(file_id)
            if row.is_processed and not valid:
                # A processed file keeps its valid flag; its receipt stands
                logger.warning(
                    "Not demoting processed file %s to invalid: %s", file_id, reason
                )
                return SourceFileRecord.model_validate(row)
            row.is_valid = valid
            row.invalid_reason = None if valid else reason
            row.updated_at = _utcnow()
            db.commit()
            db.refresh(row)
            return SourceFileRecord.model_validate(row)

    # ── receipts ─────────────────────────────────────────────────────────
    def commit_extraction(
        self, file_id: str, fields: ParsedFields, raw_text: str
    ) -> tuple[ReceiptRecord, bool]:
        """Insert the receipt and mark the source processed in one transaction.

        Returns ``(receipt, created)``. When another writer already
        committed a receipt for *file_id*, nothing is written and the
        existing receipt comes back with ``created=False``.
        """
        receipt_id = str(uuid.uuid4())
        with self._session() as db:
            db.add(
                ReceiptModel(
                    id=receipt_id,
                    file_id=file_id,
                    merchant_name=fields.merchant_name,
                    total_amount=fields.total_amount,
                    purchase_date=fields.purchased_at,
                    raw_text=raw_text,
                )
            )
            try:
                db.flush()
            except IntegrityError:
                db.rollback()
                existing = (
                    db.query(ReceiptModel).filter(ReceiptModel.file_id == file_id).first()
                )
                if existing is None:
                    raise
                logger.warning("Lost receipt race for %s; keeping %s", file_id, existing.id)
                return ReceiptRecord.model_validate(existing), False

            result = db.execute(
                update(SourceFileModel)
                .where(
                    SourceFileModel.id == file_id,
                    SourceFileModel.is_processed.is_(False),
                    SourceFileModel.is_valid.is_(True),
                )
                .values(is_processed=True, receipt_id=receipt_id, updated_at=_utcnow())
            )
            if result.rowcount != 1:
                db.rollback()
                source = db.get(SourceFileModel, file_id)
                if source is None:
                    raise SourceFileNotFoundError(file_id)
                if source.is_processed and source.receipt_id:
                    winner = db.get(ReceiptModel, source.receipt_id)
                    logger.warning("Source %s already processed as %s", file_id, winner.id)
                    return ReceiptRecord.model_validate(winner), False
                raise NotValidatedError(file_id, source.invalid_reason)

            db.commit()
            row = db.get(ReceiptModel, receipt_id)
            logger.info("Committed receipt %s for source %s", receipt_id, file_id)
            return ReceiptRecord.model_validate(row), True

    def get_receipt(self, receipt_id: str) -> Optional[ReceiptRecord]:
        with self._session() as db:
            row = db.get(ReceiptModel, receipt_id)
            return ReceiptRecord.model_validate(row) if row else None

    def get_receipt_for_file(self, file_id: str) -> Optional[ReceiptRecord]:
        with self._session() as db:
            row = db.query(ReceiptModel).filter(ReceiptModel.file_id == file_id).first()
            return ReceiptRecord.model_validate(row) if row else None

    def list_receipts(self) -> list[ReceiptRecord]:
        with self._session() as db:
            rows = db.query(ReceiptModel).order_by(ReceiptModel.created_at.desc()).all()
            return [ReceiptRecord.model_validate(r) for r in rows]


def get_store() -> ReceiptStore:
    """FastAPI dependency."""
    return ReceiptStore(SessionLocal)
