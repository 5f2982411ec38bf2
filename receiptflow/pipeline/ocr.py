"""
OCR stage — Tesseract through ``pytesseract``.

``TextExtractor`` builds one engine per call through a factory, always
closes it, and always deletes the raster it was given.
"""
from __future__ import annotations

import logging
from contextlib import closing
from pathlib import Path
from typing import Callable, Optional, Protocol

import pytesseract
from PIL import Image, UnidentifiedImageError

from receiptflow.pipeline.errors import ExtractionError, ToolUnavailableError

logger = logging.getLogger(__name__)


def use_tesseract_binary(tesseract_cmd: Optional[str]) -> None:
    """Point pytesseract at *tesseract_cmd*; call once while wiring the app."""
    if tesseract_cmd:
        pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        logger.info("Using tesseract binary %s", tesseract_cmd)


class OcrEngine(Protocol):
    def recognize(self, image_path: Path) -> str: ...

    def close(self) -> None: ...


class TesseractEngine:
    """Single-use Tesseract handle."""

    def __init__(
        self,
        lang: str = "eng",
        config: str = "",
        timeout: int = 0,
    ) -> None:
        self.lang = lang
        self.config = config
        self.timeout = timeout
        self._closed = False

    @staticmethod
    def check_available() -> str:
        try:
            return str(pytesseract.get_tesseract_version())
        except pytesseract.TesseractNotFoundError as exc:
            raise ToolUnavailableError("tesseract binary not found") from exc

    def recognize(self, image_path: Path) -> str:
        if self._closed:
            raise ExtractionError("OCR engine already closed")
        try:
            with Image.open(image_path) as image:
                return pytesseract.image_to_string(
                    image, lang=self.lang, config=self.config, timeout=self.timeout
                )
        except pytesseract.TesseractNotFoundError as exc:
            raise ExtractionError("tesseract binary not found") from exc
        except pytesseract.TesseractError as exc:
            raise ExtractionError(f"Tesseract failed ({exc.status}): {exc.message}") from exc
        except RuntimeError as exc:
            # pytesseract signals its timeout with a bare RuntimeError
            raise ExtractionError(f"Tesseract timed out: {exc}") from exc
        except (UnidentifiedImageError, OSError) as exc:
            raise ExtractionError(f"Cannot open raster {image_path}: {exc}") from exc

    def close(self) -> None:
        self._closed = True


EngineFactory = Callable[[], OcrEngine]


class TextExtractor:
    def __init__(self, engine_factory: EngineFactory) -> None:
        self._engine_factory = engine_factory

    def extract(self, image_path: str | Path) -> str:
        """Recognize *image_path* and delete it, whatever the outcome."""
        image_path = Path(image_path)
        try:
            with closing(self._engine_factory()) as engine:
                text = engine.recognize(image_path)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"OCR engine failed: {exc}") from exc
        finally:
            _discard(image_path)

        logger.info("OCR recognized %d characters", len(text))
        logger.debug("Raw OCR text:\n%s", text)
        return text


def _discard(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.exception("Could not delete temporary raster %s", path)
    else:
        logger.info("Cleaned up temporary image: %s", path)
