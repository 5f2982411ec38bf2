"""
receiptflow core pipeline.

Orchestrates: validate → rasterize → OCR → parse fields → commit receipt.
"""
import logging
from functools import partial

from sqlalchemy.orm import sessionmaker

from receiptflow.config import Settings
from receiptflow.pipeline.coordinator import PipelineCoordinator
from receiptflow.pipeline.ocr import TesseractEngine, use_tesseract_binary
from receiptflow.pipeline.rasterizer import PdfRasterizer

logger = logging.getLogger(__name__)


def build_coordinator(settings: Settings, session_factory: sessionmaker) -> PipelineCoordinator:
    """Wire the production pipeline: poppler rasterizer + tesseract engine."""
    from receiptflow.store import ReceiptStore

    rasterizer = PdfRasterizer(
        scratch_dir=settings.SCRATCH_DIR,
        dpi=settings.RASTER_DPI,
        size=(settings.RASTER_WIDTH, settings.RASTER_HEIGHT),
        timeout=settings.RASTER_TIMEOUT_SECONDS,
        poppler_path=settings.POPPLER_PATH,
    )
    engine_factory = partial(
        TesseractEngine,
        lang=settings.OCR_LANG,
        config=settings.OCR_CONFIG,
        timeout=settings.OCR_TIMEOUT_SECONDS,
    )
    use_tesseract_binary(settings.TESSERACT_CMD)

    if settings.VERIFY_EXTERNAL_TOOLS:
        rasterizer.check_available()
        version = TesseractEngine.check_available()
        logger.info("External tools ready (poppler, tesseract %s)", version)

    return PipelineCoordinator(
        store=ReceiptStore(session_factory),
        rasterizer=rasterizer,
        engine_factory=engine_factory,
        max_workers=settings.OCR_MAX_WORKERS,
    )
