"""Page rendering service.

Turns a document file into an ordered list of page images:
- Raster images (PNG, JPEG) pass through untouched as a single page
- PDFs are rasterized page by page with poppler (via pdf2image)

Based on pdf2image documentation:
https://github.com/Belval/pdf2image

Requirement: poppler (``pdftoppm``/``pdfinfo``) must be installed, either on PATH
or in the directory configured as Settings.poppler_path.
"""

import logging
import tempfile
from pathlib import Path

from pdf2image import convert_from_path
from pdf2image.exceptions import (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)

from invpa.extraction.schema import PageImage
from invpa.shared import metrics
from invpa.shared.config import Settings
from invpa.shared.errors import RenderError, UnsupportedFormatError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")
PDF_EXTENSIONS = (".pdf",)
SUPPORTED_EXTENSIONS = PDF_EXTENSIONS + IMAGE_EXTENSIONS

POPPLER_ERRORS = (
    PDFInfoNotInstalledError,
    PDFPageCountError,
    PDFPopplerTimeoutError,
    PDFSyntaxError,
)


def is_supported(path: Path) -> bool:
    """Check whether a file has an extension the renderer accepts."""
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


class PageRenderer:
    """Renders documents into page images ordered by page ordinal."""

    def __init__(self, settings: Settings) -> None:
        """Initialize page renderer.

        Args:
            settings: Application settings
        """
        self.settings = settings

    def render(self, path: Path) -> list[PageImage]:
        """Render a document into page images.

        Args:
            path: Document file (PDF, PNG, JPG or JPEG)

        Returns:
            Page images with ordinals 0..N-1 in document order

        Raises:
            UnsupportedFormatError: If the extension is not supported
            RenderError: If the file cannot be read or rasterized, or yields no pages
        """
        extension = path.suffix.lower()
        if extension not in SUPPORTED_EXTENSIONS:
            raise UnsupportedFormatError(extension or path.name, list(SUPPORTED_EXTENSIONS))

        if extension in IMAGE_EXTENSIONS:
            pages = [PageImage(ordinal=0, data=self._read_bytes(path))]
        else:
            pages = self._render_pdf(path)

        metrics.pages_rendered_total.inc(len(pages))
        return pages

    def _read_bytes(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise RenderError(f"Failed to read image file: {e}", {"file": str(path)}) from e

    def _render_pdf(self, path: Path) -> list[PageImage]:
        """Rasterize every PDF page into a scoped temporary directory.

        pdftoppm names its outputs ``page-01.png``, ``page-02.png``, ... with the
        sequence number zero-padded to the width of the page count, so a plain
        filename sort is the document page order.
        """
        logger.info(f"Converting PDF to images: {path.name}")
        with tempfile.TemporaryDirectory(prefix="invpa-pages-") as temp_dir:
            try:
                convert_from_path(
                    str(path),
                    dpi=self.settings.render_dpi,
                    output_folder=temp_dir,
                    output_file="page",
                    fmt="png",
                    paths_only=True,
                    poppler_path=self.settings.poppler_path,
                    timeout=self.settings.render_timeout_seconds,
                )
            except POPPLER_ERRORS as e:
                raise RenderError(
                    f"PDF rasterization failed. Is poppler installed? Error: {e}",
                    {"file": str(path)},
                ) from e
            except OSError as e:
                raise RenderError(f"PDF rasterization failed: {e}", {"file": str(path)}) from e

            page_files = sorted(
                (entry for entry in Path(temp_dir).iterdir() if entry.suffix == ".png"),
                key=lambda entry: entry.name,
            )
            if not page_files:
                raise RenderError("Rasterizer did not generate any images", {"file": str(path)})

            pages = [
                PageImage(ordinal=ordinal, data=self._read_bytes(page_file))
                for ordinal, page_file in enumerate(page_files)
            ]

        logger.info(f"Rendered {len(pages)} pages from {path.name}")
        return pages
