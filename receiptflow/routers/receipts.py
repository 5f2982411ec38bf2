"""
receiptflow API endpoints.

POST /upload          — store a PDF and register it as a source file
POST /validate        — structural PDF check, verdict persisted
POST /process         — rasterize → OCR → parse → receipt (once per file)
GET  /receipts        — list all receipts
GET  /receipts/{id}   — get one receipt
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from receiptflow.config import settings
from receiptflow.pipeline.coordinator import PipelineCoordinator
from receiptflow.pipeline.errors import (
    AssetMissingError,
    AssetUnreadableError,
    ExtractionError,
    NotValidatedError,
    RasterizationError,
    SourceFileNotFoundError,
)
from receiptflow.schemas import (
    ExtractedData,
    FileRequest,
    ProcessResponse,
    ReceiptRecord,
    UploadResponse,
    ValidateResponse,
)
from receiptflow.store import ReceiptStore, get_store

logger = logging.getLogger(__name__)
router = APIRouter()

PDF_CONTENT_TYPE = "application/pdf"


def get_coordinator(request: Request) -> PipelineCoordinator:
    return request.app.state.coordinator


def get_upload_dir() -> Path:
    return Path(settings.UPLOAD_DIR)


# ── POST /upload ─────────────────────────────────────────────────────────
@router.post("/upload", response_model=UploadResponse, status_code=201)
def upload(
    receipt_file: Optional[UploadFile] = File(None, alias="receiptFile"),
    store: ReceiptStore = Depends(get_store),
    upload_dir: Path = Depends(get_upload_dir),
):
    if receipt_file is None or not receipt_file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded.")
    if receipt_file.content_type != PDF_CONTENT_TYPE:
        raise HTTPException(status_code=415, detail="Only PDF files are allowed!")

    data = receipt_file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise HTTPException(status_code=413, detail=f"File too large. Max {limit_mb}MB allowed.")

    file_id = str(uuid.uuid4())
    suffix = Path(receipt_file.filename).suffix.lower() or ".pdf"
    upload_dir.mkdir(parents=True, exist_ok=True)
    dest = upload_dir / f"{file_id}{suffix}"
    dest.write_bytes(data)

    try:
        source = store.create_source_file(
            file_name=receipt_file.filename, file_path=str(dest), file_id=file_id
        )
    except Exception as exc:
        logger.exception("Failed to save metadata for %s", receipt_file.filename)
        dest.unlink(missing_ok=True)
        raise HTTPException(status_code=500, detail="Failed to save receipt metadata.") from exc

    return UploadResponse(
        message="Receipt uploaded and metadata saved successfully.",
        file_id=source.id,
        file_name=source.file_name,
        file_path=source.file_path,
    )


# ── POST /validate ───────────────────────────────────────────────────────
@router.post("/validate", response_model=ValidateResponse)
def validate(req: FileRequest, coordinator: PipelineCoordinator = Depends(get_coordinator)):
    try:
        verdict = coordinator.validate(req.file_id)
    except SourceFileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found.")
    except AssetMissingError:
        raise HTTPException(status_code=404, detail="Associated file not found on server disk.")
    except AssetUnreadableError as exc:
        logger.error("Validation I/O failure for %s: %s", req.file_id, exc)
        raise HTTPException(status_code=500, detail=str(exc))

    return ValidateResponse(
        message="Receipt validated successfully.",
        file_id=req.file_id,
        is_valid=verdict.valid,
        invalid_reason=verdict.reason,
    )


# ── POST /process ────────────────────────────────────────────────────────
@router.post("/process", response_model=ProcessResponse)
async def process(req: FileRequest, coordinator: PipelineCoordinator = Depends(get_coordinator)):
    try:
        result = await asyncio.wrap_future(coordinator.submit_process(req.file_id))
    except SourceFileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found.")
    except AssetMissingError:
        raise HTTPException(status_code=404, detail="Associated file not found on server disk.")
    except NotValidatedError as exc:
        raise HTTPException(
            status_code=400,
            detail={
                "message": "File is not marked as valid. Please validate it first.",
                "invalidReason": exc.reason,
            },
        )
    except RasterizationError as exc:
        raise HTTPException(
            status_code=500,
            detail={"message": f"PDF conversion failed: {exc}", "diagnostic": exc.diagnostic},
        )
    except ExtractionError as exc:
        raise HTTPException(status_code=500, detail={"message": f"OCR failed: {exc}"})

    receipt = result.receipt
    message = (
        "File has already been processed."
        if result.already_processed
        else "Receipt processed and data saved successfully."
    )
    return ProcessResponse(
        message=message,
        receipt_id=receipt.id,
        already_processed=result.already_processed,
        extracted_data=ExtractedData(
            merchant_name=receipt.merchant_name,
            total_amount=receipt.total_amount,
            purchase_date=receipt.purchase_date,
        ),
    )


# ── GET /receipts ────────────────────────────────────────────────────────
@router.get("/receipts", response_model=List[ReceiptRecord])
def list_receipts(store: ReceiptStore = Depends(get_store)):
    receipts = store.list_receipts()
    logger.info("Found %d receipts in database", len(receipts))
    return receipts


# ── GET /receipts/{receipt_id} ───────────────────────────────────────────
@router.get("/receipts/{receipt_id}", response_model=ReceiptRecord)
def get_receipt(receipt_id: str, store: ReceiptStore = Depends(get_store)):
    receipt = store.get_receipt(receipt_id)
    if receipt is None:
        logger.warning("Receipt not found: %s", receipt_id)
        raise HTTPException(status_code=404, detail="Receipt not found")
    return receipt
