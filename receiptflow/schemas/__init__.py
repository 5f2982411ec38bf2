from receiptflow.schemas.base import (
    ApiModel,
    ExtractedData,
    FileRequest,
    ParsedFields,
    ProcessResponse,
    ProcessResult,
    ReceiptRecord,
    SourceFileRecord,
    UploadResponse,
    ValidateResponse,
    ValidationVerdict,
)

__all__ = [
    "ApiModel",
    "ExtractedData",
    "FileRequest",
    "ParsedFields",
    "ProcessResponse",
    "ProcessResult",
    "ReceiptRecord",
    "SourceFileRecord",
    "UploadResponse",
    "ValidateResponse",
    "ValidationVerdict",
]
