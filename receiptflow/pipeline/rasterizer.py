"""
PDF page → PNG conversion through poppler (``pdf2image``).
"""
from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import Optional

from pdf2image import convert_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from receiptflow.pipeline.errors import RasterizationError, ToolUnavailableError

logger = logging.getLogger(__name__)

POPPLER_COMMANDS = ("pdfinfo", "pdftoppm")
FIRST_PAGE = 1


class PdfRasterizer:
    """Renders page one of a PDF into a uniquely named PNG in *scratch_dir*.

    The caller owns the returned file and must delete it.
    """

    def __init__(
        self,
        scratch_dir: str | Path,
        dpi: int = 300,
        size: tuple[int, int] = (1654, 2339),
        timeout: int = 120,
        poppler_path: Optional[str] = None,
    ) -> None:
        self.scratch_dir = Path(scratch_dir)
        self.dpi = dpi
        self.size = size
        self.timeout = timeout
        self.poppler_path = poppler_path

    def check_available(self) -> None:
        for command in POPPLER_COMMANDS:
            if shutil.which(command, path=self.poppler_path) is None:
                raise ToolUnavailableError(
                    f"poppler utility '{command}' not found"
                    + (f" in {self.poppler_path}" if self.poppler_path else " on PATH")
                )

    def rasterize(self, pdf_path: str | Path) -> Path:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        token = uuid.uuid4().hex

        try:
            paths = convert_from_path(
                str(pdf_path),
                dpi=self.dpi,
                first_page=FIRST_PAGE,
                last_page=FIRST_PAGE,
                fmt="png",
                size=self.size,
                output_folder=str(self.scratch_dir),
                output_file=token,
                single_file=True,
                paths_only=True,
                timeout=self.timeout,
                poppler_path=self.poppler_path,
            )
        except PDFInfoNotInstalledError as exc:
            raise RasterizationError("poppler is not installed", diagnostic=str(exc)) from exc
        except PDFPopplerTimeoutError as exc:
            raise RasterizationError(
                f"Rasterization timed out after {self.timeout}s", diagnostic=str(exc)
            ) from exc
        except (PDFPageCountError, PDFSyntaxError) as exc:
            raise RasterizationError(f"Cannot rasterize {pdf_path}", diagnostic=str(exc)) from exc

        if not paths or not Path(paths[0]).is_file():
            raise RasterizationError(
                f"Rasterization produced no image for {pdf_path}",
                diagnostic=f"expected {self.scratch_dir / (token + '.png')}",
            )

        image_path = Path(paths[0])
        logger.info("Rasterized %s → %s", pdf_path, image_path.name)
        return image_path
