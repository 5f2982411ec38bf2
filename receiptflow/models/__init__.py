from receiptflow.models.receipt import ReceiptModel
from receiptflow.models.source_file import SourceFileModel

__all__ = ["ReceiptModel", "SourceFileModel"]
