"""
Structural PDF check — a cheap gate in front of OCR.
"""
from __future__ import annotations

import logging
from io import BytesIO
from pathlib import Path

from pypdf import PdfReader

from receiptflow.pipeline.errors import AssetMissingError, AssetUnreadableError
from receiptflow.schemas import ValidationVerdict

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 200


def _truncate(reason: str) -> str:
    return reason[:MAX_REASON_LENGTH]


def validate_pdf_bytes(data: bytes) -> ValidationVerdict:
    """Parse *data* as a PDF. Never raises for malformed content."""
    try:
        reader = PdfReader(BytesIO(data))
        page_count = len(reader.pages)
    except Exception as exc:  # pypdf surfaces many error types for broken files
        logger.warning("PDF parsing failed: %s", exc)
        return ValidationVerdict(valid=False, reason=_truncate(f"PDF parsing failed: {exc}"))

    if page_count == 0:
        return ValidationVerdict(valid=False, reason="PDF contains no pages")
    return ValidationVerdict(valid=True)


def validate_pdf_file(path: str | Path) -> ValidationVerdict:
    """Read *path* and validate its bytes.

    Raises ``AssetMissingError`` when the file is absent and
    ``AssetUnreadableError`` when it exists but cannot be read; both are
    storage problems, distinct from an invalid document.
    """
    path = Path(path)
    if not path.is_file():
        raise AssetMissingError(str(path))
    try:
        data = path.read_bytes()
    except FileNotFoundError as exc:
        raise AssetMissingError(str(path)) from exc
    except OSError as exc:
        raise AssetUnreadableError(f"Cannot read {path}: {exc}") from exc
    return validate_pdf_bytes(data)
