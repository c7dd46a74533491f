"""
Document writer for Order Sheets.

A thin wrapper over a reportlab canvas that works in millimetres with a
top-left origin, and records every element it places so the assembled
document can be inspected page by page without parsing the PDF.
"""

import io
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas as pdf_canvas
from loguru import logger

from .errors import DocumentSaveError, PlacementError, ProcessingError
from .models import EncodedImage


@dataclass
class Element:
    """A placed element; coordinates in mm from the top-left corner."""
    kind: str  # 'text', 'image' or 'line'
    x: float
    y: float
    width: float = 0.0
    height: float = 0.0
    text: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ClipRect:
    x: float
    y: float
    width: float
    height: float


class DocumentWriter:
    """Append-only page writer backed by reportlab."""

    def __init__(self, pagesize=A4, title: str = None):
        self._buffer = io.BytesIO()
        self._canvas = pdf_canvas.Canvas(self._buffer, pagesize=pagesize)
        if title:
            self._canvas.setTitle(title)
        self.width = pagesize[0] / mm
        self.height = pagesize[1] / mm
        self._pages: List[List[Element]] = [[]]
        self._saved = False

    @property
    def pages(self) -> List[List[Element]]:
        return [list(page) for page in self._pages]

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def page_has_content(self) -> bool:
        return bool(self._pages[-1])

    @property
    def is_saved(self) -> bool:
        return self._saved

    def _check_open(self) -> None:
        if self._saved:
            raise ProcessingError("Document has already been finalized")

    def _pdf_y(self, y: float) -> float:
        return (self.height - y) * mm

    def new_page(self) -> None:
        self._check_open()
        self._canvas.showPage()
        self._pages.append([])
        logger.debug(f"Started page {self.page_count}")

    def text(self, text: str, x: float, y: float, size: float = 12,
             bold: bool = False, align: str = 'left') -> Element:
        """Place a single line of text with its baseline at y."""
        self._check_open()
        self._canvas.setFillGray(0)
        self._canvas.setFont('Helvetica-Bold' if bold else 'Helvetica', size)
        if align == 'center':
            self._canvas.drawCentredString(x * mm, self._pdf_y(y), text)
        elif align == 'right':
            self._canvas.drawRightString(x * mm, self._pdf_y(y), text)
        else:
            self._canvas.drawString(x * mm, self._pdf_y(y), text)

        element = Element('text', x, y, text=text, meta={'size': size, 'bold': bold, 'align': align})
        self._pages[-1].append(element)
        return element

    def image(self, image: EncodedImage, x: float, y: float, width: float, height: float,
              clip: Optional[ClipRect] = None, label: str = None) -> Element:
        """Place an encoded image; raises PlacementError if it cannot be embedded."""
        self._check_open()
        try:
            reader = ImageReader(io.BytesIO(image.data))
            self._canvas.saveState()
            try:
                if clip is not None:
                    path = self._canvas.beginPath()
                    path.rect(clip.x * mm, self._pdf_y(clip.y + clip.height),
                              clip.width * mm, clip.height * mm)
                    self._canvas.clipPath(path, stroke=0, fill=0)
                self._canvas.drawImage(reader, x * mm, self._pdf_y(y + height),
                                       width=width * mm, height=height * mm, mask='auto')
            finally:
                self._canvas.restoreState()
        except Exception as e:
            raise PlacementError(
                f"Failed to embed image: {e}",
                details={'label': label, 'box': (x, y, width, height)}
            ) from e

        element = Element('image', x, y, width, height,
                          meta={'label': label, 'fmt': image.fmt, 'pixels': image.size,
                                'clipped': clip is not None})
        self._pages[-1].append(element)
        return element

    def line(self, x1: float, y1: float, x2: float, y2: float,
             width: float = 0.3, gray: int = 200, label: str = None) -> Element:
        """Draw a straight line; gray is 0 (black) to 255 (white)."""
        self._check_open()
        self._canvas.setStrokeGray(gray / 255.0)
        self._canvas.setLineWidth(width * mm)
        self._canvas.line(x1 * mm, self._pdf_y(y1), x2 * mm, self._pdf_y(y2))

        element = Element('line', x1, y1, x2 - x1, y2 - y1,
                          meta={'line_width': width, 'gray': gray, 'label': label})
        self._pages[-1].append(element)
        return element

    def save(self, path: Path) -> Path:
        """
        Finalize the document and write it to path.

        The PDF is written to a temporary file next to the target and renamed
        into place, so a failure never leaves a partial artifact behind.
        """
        self._check_open()
        path = Path(path)
        tmp_name = None
        try:
            self._canvas.save()
            self._saved = True
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(dir=path.parent, suffix='.part', delete=False) as tmp:
                tmp_name = tmp.name
                tmp.write(self._buffer.getvalue())
            os.replace(tmp_name, path)
        except Exception as e:
            if tmp_name and os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise DocumentSaveError(str(path), str(e)) from e

        logger.info(f"Saved {path} ({self.page_count} pages)")
        return path
