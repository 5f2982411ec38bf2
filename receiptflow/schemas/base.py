"""
receiptflow contracts — pydantic v2 models shared by the pipeline, the
record store and the HTTP layer.

HTTP bodies use camelCase (``fileId``, ``isValid`` …); Python code uses
the snake_case field names.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ---------------------------------------------------------------------------
# Pipeline values
# ---------------------------------------------------------------------------

class ValidationVerdict(ApiModel):
    """Outcome of the structural PDF check. An invalid verdict is data, not an error."""
    valid: bool
    reason: Optional[str] = Field(None, description="Parser diagnostic, at most 200 chars")


class ParsedFields(ApiModel):
    """Heuristically parsed receipt fields; every field may be absent."""
    purchased_at: Optional[datetime] = None
    merchant_name: Optional[str] = None
    total_amount: Optional[Decimal] = None


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------

class SourceFileRecord(ApiModel):
    id: str
    file_name: str
    file_path: str
    is_valid: Optional[bool] = None
    invalid_reason: Optional[str] = None
    is_processed: bool = False
    receipt_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ReceiptRecord(ApiModel):
    id: str
    file_id: str
    merchant_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    purchase_date: Optional[datetime] = None
    raw_text: str
    created_at: datetime
    updated_at: datetime


class ProcessResult(ApiModel):
    receipt: ReceiptRecord
    # True when an earlier call already produced the receipt
    already_processed: bool = False


# ---------------------------------------------------------------------------
# API request / response envelopes
# ---------------------------------------------------------------------------

class FileRequest(ApiModel):
    file_id: str = Field(..., min_length=1)


class UploadResponse(ApiModel):
    message: str
    file_id: str
    file_name: str
    file_path: str


class ValidateResponse(ApiModel):
    message: str
    file_id: str
    is_valid: bool
    invalid_reason: Optional[str] = None


class ExtractedData(ApiModel):
    merchant_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    purchase_date: Optional[datetime] = None


class ProcessResponse(ApiModel):
    message: str
    receipt_id: str
    already_processed: bool = False
    extracted_data: ExtractedData
