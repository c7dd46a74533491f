"""
Document orchestrator for Order Sheets.

Drives the layout engine over the items of one order, or of several
orders combined into one document, reports progress after every item and
saves the finished PDF under a name derived from the order or group.

Two layouts are supported:
- pages: a cover page with the customer artwork, a garment preview page
  and a details page with the order barcode, per item
- flow: header, artwork, product photo, item barcode and separator
  stacked on flowing pages, with a heavier rule between orders
"""

from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from loguru import logger

from .barcodes import BarcodeTier, item_payload, render_barcode
from .config import get_config
from .errors import ConfigurationError, ValidationError
from .imaging import ImageLoader, probe_dimensions
from .layout import (
    Cursor, PageGeometry, draw_separator, ensure_space, full_width_box,
    place_centered, place_fill_page, place_full_width, place_text_lines,
)
from .models import EncodedImage, Item, Order
from .utils import group_filename, order_filename
from .writer import DocumentWriter


ProgressListener = Callable[[int, int], None]
BarcodeRenderer = Callable[[str, BarcodeTier], EncodedImage]

HEADER_BLOCK = 30.0
HEADER_ADVANCE = 15.0
IMAGE_GAP = 15.0
PRODUCT_BLOCK = 110.0
BARCODE_BLOCK = 80.0
BARCODE_WIDTH = 140.0
BARCODE_HEIGHT = 55.0
BARCODE_GAP = 25.0
SEPARATOR_BLOCK = 20.0
DETAILS_FONT_SIZE = 14
DETAILS_LEADING = 9.0
DETAILS_BARCODE_WIDTH = 110.0
DETAILS_BARCODE_HEIGHT = 45.0


class LayoutMode(str, Enum):
    PAGES = "pages"
    FLOW = "flow"


class ProgressRecorder:
    """Progress listener that keeps every (done, total) pair it receives."""

    def __init__(self):
        self.events: List[Tuple[int, int]] = []

    def __call__(self, done: int, total: int) -> None:
        self.events.append((done, total))

    @property
    def last(self) -> Optional[Tuple[int, int]]:
        return self.events[-1] if self.events else None


class _DocumentRun:
    """State of a single generation call: one writer, one cursor, one counter."""

    def __init__(self, writer: DocumentWriter, page: PageGeometry, total: int,
                 on_progress: Optional[ProgressListener]):
        self.writer = writer
        self.page = page
        self.cursor = Cursor.at_top(page)
        self.total = total
        self.done = 0
        self.on_progress = on_progress

    def fresh_page(self) -> None:
        """Move to a new page unless the current one is still empty."""
        if self.writer.page_has_content:
            self.writer.new_page()
        self.cursor = self.cursor.to_top()

    def item_finished(self) -> None:
        self.done += 1
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.done, self.total)
        except Exception as e:
            logger.warning(f"Progress listener raised, ignoring: {e}")


class OrderDocumentGenerator:
    """Builds printable order documents."""

    def __init__(self,
                 mode: LayoutMode = None,
                 output_dir: Path = None,
                 loader: ImageLoader = None,
                 barcode_renderer: BarcodeRenderer = None):
        self.config = get_config()
        self.mode = self._resolve_mode(mode)
        self.output_dir = Path(output_dir or self.config.OUTPUT_FOLDER)
        self.loader = loader or ImageLoader()
        self.barcode_renderer = barcode_renderer or render_barcode

    def _resolve_mode(self, mode) -> LayoutMode:
        if mode is not None:
            return LayoutMode(mode)
        try:
            return LayoutMode(self.config.LAYOUT_MODE)
        except ValueError:
            raise ConfigurationError(
                f"Unknown LAYOUT_MODE: {self.config.LAYOUT_MODE}",
                details={'LAYOUT_MODE': self.config.LAYOUT_MODE},
                suggestions=[f"Set LAYOUT_MODE to one of: {', '.join(m.value for m in LayoutMode)}"]
            )

    # Entry points

    def generate_single(self, order: Order, on_progress: ProgressListener = None) -> Path:
        """Build the document for one order and save it as order-{orderId}.pdf."""
        writer = self.build_single(order, on_progress)
        return writer.save(self.output_dir / order_filename(order.order_id))

    def generate_combined(self, orders: Sequence[Order], group_key: str,
                          on_progress: ProgressListener = None) -> Path:
        """Build one document for several orders and save it as orders-{key}.pdf."""
        writer = self.build_combined(orders, group_key, on_progress)
        return writer.save(self.output_dir / group_filename(group_key))

    def build_single(self, order: Order, on_progress: ProgressListener = None) -> DocumentWriter:
        """Lay out one order without saving it."""
        logger.info(f"Generating {self.mode.value} document for order {order.order_id} "
                    f"({len(order.items)} items)")
        run = self._start_run(f"Order {order.order_id}", len(order.items), on_progress)

        try:
            self._layout_order(run, order)
        except Exception as e:
            logger.error(f"Document generation failed for order {order.order_id}: {e}")
            raise

        logger.info(f"Order {order.order_id} laid out on {run.writer.page_count} pages")
        return run.writer

    def build_combined(self, orders: Sequence[Order], group_key: str,
                       on_progress: ProgressListener = None) -> DocumentWriter:
        """Lay out several orders into one document without saving it."""
        if not orders:
            raise ValidationError(
                f"No orders to combine for {group_key!r}",
                details={'group_key': group_key},
                suggestions=["Select a group that contains at least one order"]
            )

        total = sum(len(order.items) for order in orders)
        logger.info(f"Generating combined {self.mode.value} document for {group_key!r}: "
                    f"{len(orders)} orders, {total} items")
        run = self._start_run(f"Orders {group_key}", total, on_progress)

        try:
            for order_index, order in enumerate(orders):
                if order_index > 0 and self.mode == LayoutMode.FLOW:
                    self._layout_order_boundary(run)
                self._layout_order(run, order)
        except Exception as e:
            logger.error(f"Combined generation failed for {group_key!r}: {e}")
            raise

        logger.info(f"Group {group_key!r} laid out on {run.writer.page_count} pages")
        return run.writer

    # Layout

    def _start_run(self, title: str, total: int,
                   on_progress: Optional[ProgressListener]) -> _DocumentRun:
        writer = DocumentWriter(title=title)
        page = PageGeometry.for_writer(writer, self.config.PAGE_MARGIN_MM)
        return _DocumentRun(writer, page, total, on_progress)

    def _layout_order(self, run: _DocumentRun, order: Order) -> None:
        for index, item in enumerate(order.items):
            if self.mode == LayoutMode.PAGES:
                self._layout_item_pages(run, order, item, index)
            else:
                self._layout_item_flow(run, order, item, index)
            run.item_finished()

    def _layout_item_pages(self, run: _DocumentRun, order: Order, item: Item, index: int) -> None:
        """Visual page, garment page and details page; missing images skip their page."""
        writer = run.writer
        label = f"{order.order_id}#{index + 1}"

        custom = self.loader.load_custom(item.custom_image_url)
        if custom is not None:
            run.fresh_page()
            place_fill_page(writer, custom, run.page, margin=self.config.COVER_MARGIN_MM,
                            label=f"visual {label}")
        elif item.custom_image_url:
            logger.warning(f"No visual page for {label}: artwork unavailable")

        garment = self.loader.load_product(item.product_image_url)
        if garment is not None:
            run.fresh_page()
            place_centered(writer, garment, run.cursor,
                           max_width=min(self.config.GARMENT_MAX_WIDTH_MM, run.page.content_width),
                           max_height=run.page.usable_height,
                           label=f"garment {label}")

        run.fresh_page()
        run.cursor = place_text_lines(writer, item.details_lines(), run.cursor,
                                      size=DETAILS_FONT_SIZE, leading=DETAILS_LEADING,
                                      bold_first=True)
        run.cursor = run.cursor.advance(DETAILS_LEADING)

        code = self.barcode_renderer(order.order_id, BarcodeTier.HIGH_FIDELITY)
        run.cursor = ensure_space(writer, run.cursor, DETAILS_BARCODE_HEIGHT)
        height = place_centered(writer, code, run.cursor,
                                max_width=DETAILS_BARCODE_WIDTH,
                                max_height=DETAILS_BARCODE_HEIGHT,
                                label=f"order barcode {label}")
        run.cursor = run.cursor.advance(height)

    def _layout_item_flow(self, run: _DocumentRun, order: Order, item: Item, index: int) -> None:
        """Header, artwork, product photo, barcode and separator on flowing pages."""
        writer = run.writer
        page = run.page
        label = f"{order.order_id}#{index + 1}"

        run.cursor = ensure_space(writer, run.cursor, HEADER_BLOCK)
        writer.text(f"Order {order.order_id} - Item {index + 1}/{len(order.items)}",
                    page.width / 2, run.cursor.y, size=12, bold=True, align='center')
        run.cursor = run.cursor.advance(HEADER_ADVANCE)

        custom = self.loader.load_custom(item.custom_image_url)
        if custom is not None:
            margin = self.config.FULL_WIDTH_MARGIN_MM
            needed = full_width_box(probe_dimensions(custom), page, run.cursor.y, margin,
                                    max_height=page.usable_height).height
            run.cursor = ensure_space(writer, run.cursor, needed)
            height = place_full_width(writer, custom, run.cursor, margin=margin,
                                      max_height=page.usable_height,
                                      label=f"artwork {label}")
            run.cursor = run.cursor.advance(height + IMAGE_GAP)

        product = self.loader.load_product(item.product_image_url)
        if product is not None:
            run.cursor = ensure_space(writer, run.cursor, PRODUCT_BLOCK)
            height = place_centered(writer, product, run.cursor,
                                    max_width=self.config.PRODUCT_MAX_WIDTH_MM,
                                    label=f"product {label}")
            run.cursor = run.cursor.advance(height + IMAGE_GAP)

        code = self.barcode_renderer(item_payload(order.order_id, index), BarcodeTier.STANDARD)
        run.cursor = ensure_space(writer, run.cursor, BARCODE_BLOCK)
        height = place_centered(writer, code, run.cursor, max_width=BARCODE_WIDTH,
                                max_height=BARCODE_HEIGHT, label=f"item barcode {label}")
        run.cursor = run.cursor.advance(height + BARCODE_GAP)

        run.cursor = ensure_space(writer, run.cursor, SEPARATOR_BLOCK)
        draw_separator(writer, run.cursor)
        run.cursor = run.cursor.advance(SEPARATOR_BLOCK)

    def _layout_order_boundary(self, run: _DocumentRun) -> None:
        run.cursor = ensure_space(run.writer, run.cursor, SEPARATOR_BLOCK)
        draw_separator(run.writer, run.cursor, thick=True)
        run.cursor = run.cursor.advance(SEPARATOR_BLOCK)


def create_generator(mode: LayoutMode = None, output_dir: Path = None) -> OrderDocumentGenerator:
    """Factory function to create an OrderDocumentGenerator instance."""
    return OrderDocumentGenerator(mode=mode, output_dir=output_dir)


def generate_single(order: Order, on_progress: ProgressListener = None,
                    mode: LayoutMode = None, output_dir: Path = None) -> Path:
    return create_generator(mode, output_dir).generate_single(order, on_progress)


def generate_combined(orders: Sequence[Order], group_key: str,
                      on_progress: ProgressListener = None,
                      mode: LayoutMode = None, output_dir: Path = None) -> Path:
    return create_generator(mode, output_dir).generate_combined(orders, group_key, on_progress)
