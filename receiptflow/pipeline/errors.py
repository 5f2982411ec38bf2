"""
Pipeline error taxonomy.

Invalid documents and repeated ``process`` calls are *not* errors: they
come back as ``ValidationVerdict`` and ``ProcessResult.already_processed``.
"""
from __future__ import annotations

from typing import Optional


class PipelineError(Exception):
    """Base class for every error raised by the receipt pipeline."""


class SourceFileNotFoundError(PipelineError):
    def __init__(self, file_id: str):
        super().__init__(f"Source file not found: {file_id}")
        self.file_id = file_id


class AssetMissingError(PipelineError):
    """The stored bytes of a source file are gone from disk."""

    def __init__(self, path: str):
        super().__init__(f"Asset missing from storage: {path}")
        self.path = path


class AssetUnreadableError(PipelineError):
    """The stored bytes exist but could not be read."""


class NotValidatedError(PipelineError):
    def __init__(self, file_id: str, reason: Optional[str] = None):
        super().__init__(f"Source file {file_id} is not marked as valid")
        self.file_id = file_id
        self.reason = reason


class RasterizationError(PipelineError):
    """PDF → image conversion failed. ``diagnostic`` holds the tool output."""

    def __init__(self, message: str, diagnostic: str = ""):
        super().__init__(message)
        self.diagnostic = diagnostic


class ExtractionError(PipelineError):
    """The OCR engine failed to recognize the image."""


class ToolUnavailableError(PipelineError):
    """A required external program (poppler, tesseract) is not installed."""
