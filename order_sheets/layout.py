"""
Page layout engine for Order Sheets.

This module handles:
- Tracking the vertical write position with an immutable Cursor
- Breaking pages when a block would run past the bottom margin
- Computing image boxes (full width, centered, cover the page)
- Drawing separators between items and between orders

Geometry is computed by pure functions returning Box values so it can be
tested without a document; the place_* functions draw through a
DocumentWriter. All units are millimetres, origin at the top-left corner.
"""

from dataclasses import dataclass, replace
from typing import List, Optional, Tuple

from loguru import logger

from .errors import PlacementError
from .imaging import DEFAULT_DIMENSIONS, probe_dimensions
from .models import EncodedImage
from .writer import ClipRect, DocumentWriter


PAGE_MARGIN = 20.0
FULL_WIDTH_MARGIN = 15.0
COVER_MARGIN = 5.0
CENTERED_MAX_WIDTH = 90.0
SEPARATOR_INSET = 30.0
POINT_MM = 25.4 / 72


@dataclass(frozen=True)
class PageGeometry:
    """Page size and margins in millimetres."""
    width: float = 210.0
    height: float = 297.0
    top_margin: float = PAGE_MARGIN
    bottom_margin: float = PAGE_MARGIN
    side_margin: float = PAGE_MARGIN

    @property
    def bottom_limit(self) -> float:
        return self.height - self.bottom_margin

    @property
    def content_width(self) -> float:
        return self.width - 2 * self.side_margin

    @property
    def usable_height(self) -> float:
        return self.bottom_limit - self.top_margin

    @classmethod
    def for_writer(cls, writer: DocumentWriter, margin: float = PAGE_MARGIN) -> 'PageGeometry':
        return cls(width=writer.width, height=writer.height,
                   top_margin=margin, bottom_margin=margin, side_margin=margin)


@dataclass(frozen=True)
class Cursor:
    """Vertical write position on the current page."""
    y: float
    page: PageGeometry

    @classmethod
    def at_top(cls, page: PageGeometry) -> 'Cursor':
        return cls(y=page.top_margin, page=page)

    def advance(self, dy: float) -> 'Cursor':
        return replace(self, y=self.y + dy)

    def to_top(self) -> 'Cursor':
        return replace(self, y=self.page.top_margin)


@dataclass(frozen=True)
class Box:
    """A placement rectangle on the page."""
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2


@dataclass(frozen=True)
class CoverPlacement:
    """Where a cover image is drawn and the part of it that stays visible."""
    drawn: Box
    visible: Box


def _ratio(size: Tuple[int, int]) -> float:
    width, height = size
    if width <= 0 or height <= 0:
        width, height = DEFAULT_DIMENSIONS
    return width / height


def full_width_box(size: Tuple[int, int], page: PageGeometry, y: float,
                   margin: float = FULL_WIDTH_MARGIN,
                   max_height: Optional[float] = None) -> Box:
    """Scale to the page width minus symmetric margins; too-tall images shrink and center."""
    ratio = _ratio(size)
    width = page.width - margin * 2
    height = width / ratio
    if max_height is not None and height > max_height:
        height = max_height
        width = height * ratio
        return Box((page.width - width) / 2, y, width, height)
    return Box(margin, y, width, height)


def centered_box(size: Tuple[int, int], page: PageGeometry, y: float,
                 max_width: float = CENTERED_MAX_WIDTH,
                 max_height: Optional[float] = None) -> Box:
    """Scale to max_width, optionally shrink to max_height, center horizontally."""
    ratio = _ratio(size)
    width = max_width
    height = width / ratio
    if max_height is not None and height > max_height:
        height = max_height
        width = height * ratio
    return Box((page.width - width) / 2, y, width, height)


def cover_box(size: Tuple[int, int], page: PageGeometry,
              margin: float = COVER_MARGIN) -> CoverPlacement:
    """
    Cover the page area inside margin while preserving aspect ratio.

    The larger of the two per-axis scales is used so the image overflows on
    one axis instead of leaving blank space; the visible part is clamped to
    the page area. Both boxes are centered on the page.
    """
    img_width, img_height = size
    if img_width <= 0 or img_height <= 0:
        img_width, img_height = DEFAULT_DIMENSIONS

    area_width = page.width - margin * 2
    area_height = page.height - margin * 2
    scale = max(area_width / img_width, area_height / img_height)

    drawn_width = img_width * scale
    drawn_height = img_height * scale
    drawn = Box((page.width - drawn_width) / 2, (page.height - drawn_height) / 2,
                drawn_width, drawn_height)

    visible_width = min(drawn_width, area_width)
    visible_height = min(drawn_height, area_height)
    visible = Box((page.width - visible_width) / 2, (page.height - visible_height) / 2,
                  visible_width, visible_height)
    return CoverPlacement(drawn=drawn, visible=visible)


def needs_page_break(y: float, needed: float, page: PageGeometry) -> bool:
    return y + needed > page.bottom_limit


def ensure_space(writer: DocumentWriter, cursor: Cursor, needed: float) -> Cursor:
    """
    Start a new page when needed does not fit below the cursor.

    Returns the cursor unchanged when the block fits, otherwise a cursor at
    the top margin. An empty page is reused rather than followed by another.
    """
    if not needs_page_break(cursor.y, needed, cursor.page):
        return cursor

    if writer.page_has_content:
        writer.new_page()
    return cursor.to_top()


def _draw_image(writer: DocumentWriter, image: EncodedImage, box: Box, fallback: Box,
                clip: Optional[ClipRect] = None, label: str = None) -> Optional[Box]:
    """Draw at box; on failure retry once at fallback, then give up."""
    try:
        writer.image(image, box.x, box.y, box.width, box.height, clip=clip, label=label)
        return box
    except PlacementError as e:
        logger.warning(f"Placement of {label or 'image'} failed, retrying with default geometry: {e}")

    try:
        writer.image(image, fallback.x, fallback.y, fallback.width, fallback.height,
                     clip=clip, label=label)
        return fallback
    except PlacementError as e:
        logger.warning(f"Omitting {label or 'image'} after retry: {e}")
        return None


def place_full_width(writer: DocumentWriter, image: EncodedImage, cursor: Cursor,
                     margin: float = FULL_WIDTH_MARGIN, max_height: Optional[float] = None,
                     label: str = None) -> float:
    """Place at full content width below the cursor; returns the height used."""
    box = full_width_box(probe_dimensions(image), cursor.page, cursor.y, margin, max_height)
    fallback = full_width_box(DEFAULT_DIMENSIONS, cursor.page, cursor.y, margin, max_height)
    placed = _draw_image(writer, image, box, fallback, label=label)
    return placed.height if placed else 0.0


def place_centered(writer: DocumentWriter, image: EncodedImage, cursor: Cursor,
                   max_width: float = CENTERED_MAX_WIDTH, max_height: Optional[float] = None,
                   label: str = None) -> float:
    """Place horizontally centered at max_width; returns the height used."""
    box = centered_box(probe_dimensions(image), cursor.page, cursor.y, max_width, max_height)
    fallback = centered_box(DEFAULT_DIMENSIONS, cursor.page, cursor.y, max_width, max_height)
    placed = _draw_image(writer, image, box, fallback, label=label)
    return placed.height if placed else 0.0


def place_fill_page(writer: DocumentWriter, image: EncodedImage, page: PageGeometry,
                    margin: float = COVER_MARGIN, label: str = None) -> Optional[Box]:
    """Cover the current page with image; returns the visible box or None."""
    placement = cover_box(probe_dimensions(image), page, margin)
    fallback = cover_box(DEFAULT_DIMENSIONS, page, margin)
    visible = placement.visible
    clip = ClipRect(visible.x, visible.y, visible.width, visible.height)

    placed = _draw_image(writer, image, placement.drawn, fallback.drawn, clip=clip, label=label)
    if placed is None:
        return None
    return visible if placed == placement.drawn else fallback.visible


def place_text_lines(writer: DocumentWriter, lines: List[str], cursor: Cursor,
                     size: float = 12, leading: float = 8.0, x: Optional[float] = None,
                     bold_first: bool = False) -> Cursor:
    """Write lines top-down from the cursor, breaking pages as needed."""
    x = cursor.page.side_margin if x is None else x
    for index, line in enumerate(lines):
        cursor = ensure_space(writer, cursor, leading)
        writer.text(line, x, cursor.y + size * POINT_MM, size=size,
                    bold=bold_first and index == 0)
        cursor = cursor.advance(leading)
    return cursor


def draw_separator(writer: DocumentWriter, cursor: Cursor, thick: bool = False) -> None:
    """Horizontal rule across the content width; thick marks an order boundary."""
    page = cursor.page
    if thick:
        writer.line(page.side_margin, cursor.y, page.width - page.side_margin, cursor.y,
                    width=1.2, gray=80, label='order-separator')
    else:
        writer.line(SEPARATOR_INSET, cursor.y, page.width - SEPARATOR_INSET, cursor.y,
                    width=0.3, gray=200, label='item-separator')
