"""
Per-file state machine: Uploaded → Valid | Invalid(reason) → Processed.

``validate`` is cheap and always recomputed. ``process`` runs
rasterize → OCR → parse once per file and commits the receipt together
with the ``processed`` flag.
"""
from __future__ import annotations

import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from receiptflow.pipeline.errors import (
    AssetMissingError,
    NotValidatedError,
    SourceFileNotFoundError,
)
from receiptflow.pipeline.field_parser import parse_fields
from receiptflow.pipeline.locks import KeyedLock
from receiptflow.pipeline.ocr import EngineFactory, TextExtractor
from receiptflow.pipeline.validator import validate_pdf_file
from receiptflow.schemas import (
    ParsedFields,
    ProcessResult,
    ReceiptRecord,
    SourceFileRecord,
    ValidationVerdict,
)

if TYPE_CHECKING:
    from receiptflow.store import ReceiptStore

logger = logging.getLogger(__name__)

ASSET_MISSING_REASON = "asset missing"


class Rasterizer(Protocol):
    def rasterize(self, pdf_path: str | Path) -> Path: ...


class PipelineCoordinator:
    def __init__(
        self,
        store: "ReceiptStore",
        rasterizer: Rasterizer,
        engine_factory: EngineFactory,
        parser: Callable[[str], ParsedFields] = parse_fields,
        max_workers: int = 2,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.store = store
        self.rasterizer = rasterizer
        self.text_extractor = TextExtractor(engine_factory)
        self.parser = parser
        self._locks = KeyedLock()
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="receipt-ocr"
        )
        self._inflight: dict[str, concurrent.futures.Future] = {}
        self._inflight_guard = threading.Lock()

    def _load(self, file_id: str) -> SourceFileRecord:
        source = self.store.get_source_file(file_id)
        if source is None:
            raise SourceFileNotFoundError(file_id)
        return source

    # ── validate ─────────────────────────────────────────────────────────
    def validate(self, file_id: str) -> ValidationVerdict:
        with self._locks.hold(file_id):
            source = self._load(file_id)
            try:
                verdict = validate_pdf_file(source.file_path)
            except AssetMissingError:
                logger.warning("File %s: asset missing at %s", file_id, source.file_path)
                self.store.update_validity(file_id, False, ASSET_MISSING_REASON)
                raise

            self.store.update_validity(file_id, verdict.valid, verdict.reason)
            if verdict.valid:
                logger.info("File %s is a valid PDF", file_id)
            else:
                logger.warning("File %s is invalid: %s", file_id, verdict.reason)
            return verdict

    # ── process ──────────────────────────────────────────────────────────
    def process(self, file_id: str) -> ProcessResult:
        with self._locks.hold(file_id):
            source = self._load(file_id)
            if source.is_valid is not True:
                raise NotValidatedError(file_id, source.invalid_reason)

            if source.is_processed:
                existing = self._existing_receipt(source)
                logger.info("File %s already processed as %s", file_id, existing.id)
                return ProcessResult(receipt=existing, already_processed=True)

            pdf_path = Path(source.file_path)
            if not pdf_path.is_file():
                raise AssetMissingError(str(pdf_path))

            logger.info("Pipeline start for %s", file_id)
            raw_text = self._recognize(pdf_path)
            fields = self.parser(raw_text)
            logger.info(
                "Parsed %s: merchant=%r total=%s date=%s",
                file_id, fields.merchant_name, fields.total_amount, fields.purchased_at,
            )

            receipt, created = self.store.commit_extraction(file_id, fields, raw_text)
            return ProcessResult(receipt=receipt, already_processed=not created)

    def _recognize(self, pdf_path: Path) -> str:
        try:
            image_path = self.rasterizer.rasterize(pdf_path)
        except Exception:
            logger.exception("Rasterization failed for %s", pdf_path)
            raise
        try:
            return self.text_extractor.extract(image_path)
        except Exception:
            logger.exception("OCR failed for %s", pdf_path)
            raise

    def _existing_receipt(self, source: SourceFileRecord) -> ReceiptRecord:
        receipt = None
        if source.receipt_id:
            receipt = self.store.get_receipt(source.receipt_id)
        if receipt is None:
            receipt = self.store.get_receipt_for_file(source.id)
        if receipt is None:
            raise RuntimeError(f"File {source.id} is processed but has no receipt")
        return receipt

    # ── worker pool ──────────────────────────────────────────────────────
    def submit_process(self, file_id: str) -> concurrent.futures.Future:
        """Run ``process`` on the OCR worker pool.

        Requests for a file that is already queued or running share that
        job's future, so duplicates never occupy a worker while they wait
        on the per-file lock.
        """
        with self._inflight_guard:
            future = self._inflight.get(file_id)
            if future is not None and not future.done():
                logger.info("File %s already in flight; joining existing job", file_id)
                return future
            future = self._executor.submit(self.process, file_id)
            self._inflight[file_id] = future
        future.add_done_callback(lambda done: self._forget(file_id, done))
        return future

    def _forget(self, file_id: str, future: concurrent.futures.Future) -> None:
        with self._inflight_guard:
            if self._inflight.get(file_id) is future:
                del self._inflight[file_id]

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
