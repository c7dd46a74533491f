"""
Pytest configuration and fixtures for Order Sheets tests.

Provides an in-memory image transport, sample orders and a Flask test
client so generation can be exercised without network access.
"""

import io
from typing import Dict, List

import pytest
from PIL import Image, ImageDraw

from order_sheets.config import reset_config
from order_sheets.barcodes import render_barcode
from order_sheets.generator import LayoutMode, OrderDocumentGenerator
from order_sheets.imaging import ImageLoader, Transport
from order_sheets.errors import AcquisitionError
from order_sheets.models import Item, Order


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point output and logs at a temp dir and drop the cached config."""
    monkeypatch.setenv('OUTPUT_FOLDER', str(tmp_path / 'output'))
    monkeypatch.setenv('LOG_FILE', str(tmp_path / 'logs' / 'app.log'))
    monkeypatch.setenv('ORDER_SHEETS_CONFIG_DIR', str(tmp_path / 'config'))
    monkeypatch.delenv('FLASK_ENV', raising=False)
    monkeypatch.delenv('ORDERS_API_URL', raising=False)
    reset_config()
    yield
    reset_config()


def make_image_bytes(size=(400, 300), color=(30, 120, 200), mode='RGB', fmt='PNG', matte=False) -> bytes:
    """Create an encoded test image, optionally with a black matte border."""
    img = Image.new(mode, size, color)
    if matte:
        draw = ImageDraw.Draw(img)
        border = (0, 0, 0, 255) if mode == 'RGBA' else (0, 0, 0)
        draw.rectangle([0, 0, size[0] - 1, 9], fill=border)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class MemoryTransport(Transport):
    """Serves ``mem://name`` URLs from a dict; unknown names fail like a 404."""

    def __init__(self, images: Dict[str, bytes] = None):
        self.images = dict(images or {})
        self.requests: List[str] = []

    def accepts(self, url: str) -> bool:
        return url.startswith('mem://')

    def fetch(self, url: str) -> bytes:
        self.requests.append(url)
        name = url[len('mem://'):]
        if name not in self.images:
            raise AcquisitionError(url, "404 Not Found")
        return self.images[name]


@pytest.fixture
def image_store():
    """Transport preloaded with artwork, garment and broken images."""
    return MemoryTransport({
        'art.png': make_image_bytes((600, 900), (220, 40, 40), mode='RGBA'),
        'art-wide.png': make_image_bytes((1200, 400), (40, 200, 40)),
        'garment.jpg': make_image_bytes((500, 500), (240, 240, 240), fmt='JPEG', matte=True),
        'broken.png': b'definitely not an image',
    })


@pytest.fixture
def loader(image_store):
    return ImageLoader(transports=[image_store])


class RecordingBarcodeRenderer:
    """Renders real barcodes and remembers every payload and tier."""

    def __init__(self):
        self.calls = []

    def __call__(self, payload, tier):
        self.calls.append((payload, tier))
        return render_barcode(payload, tier)


@pytest.fixture
def barcodes():
    return RecordingBarcodeRenderer()


@pytest.fixture
def make_generator(tmp_path, loader, barcodes):
    def factory(mode=LayoutMode.PAGES):
        return OrderDocumentGenerator(mode=mode, output_dir=tmp_path / 'output',
                                      loader=loader, barcode_renderer=barcodes)
    return factory


def make_item(name='Custom Tee', custom=None, garment=None, **fields) -> Item:
    return Item(
        name=name,
        image_url=f"mem://{custom}" if custom else None,
        product_image_url=f"mem://{garment}" if garment else None,
        **fields
    )


def make_order(order_id, items, order_date=None) -> Order:
    return Order(order_id=order_id, items=items, order_date=order_date)


def page_kinds(writer) -> List[str]:
    """Classify every page of a PAGES layout as visual, garment or details."""
    kinds = []
    for page in writer.pages:
        labels = [el.meta.get('label') or '' for el in page if el.kind == 'image']
        if any(label.startswith('visual') for label in labels):
            kinds.append('visual')
        elif any(label.startswith('garment') for label in labels):
            kinds.append('garment')
        elif any(el.kind == 'text' for el in page):
            kinds.append('details')
        else:
            kinds.append('empty')
    return kinds


@pytest.fixture
def sample_orders_payload():
    """Order service response with two dates and one invalid record."""
    return {
        'success': True,
        'data': [
            {
                'orderId': 'ORD-100',
                'orderDate': '2026-10-19T09:15:00Z',
                'totalAmount': 799,
                'items': [
                    {'name': 'Oversized Tee', 'sku': 'TEE-01', 'quantity': 2, 'size': 'm, l',
                     'imageUrl': 'mem://art.png', 'productImageUrl': 'mem://garment.jpg'},
                ],
            },
            {
                'orderId': 'ORD-101',
                'orderDate': '2026-10-19T17:40:00Z',
                'totalAmount': 1299,
                'items': [
                    {'name': 'Hoodie', 'renderedImageUrl': 'mem://art-wide.png'},
                    {'sku': 'CAP-9'},
                ],
            },
            {
                'orderId': 'ORD-102',
                'orderDate': '2026-10-18T11:00:00Z',
                'items': [{'name': 'Mug'}],
            },
            {
                'orderId': 'ORD-BAD',
                'items': [],
            },
        ],
    }


@pytest.fixture
def app(tmp_path):
    """Create and configure a test Flask application."""
    from order_sheets import create_app

    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-key',
        'OUTPUT_FOLDER': str(tmp_path / 'output'),
        'ORDERS_API_URL': 'http://orders.test/v1/orders',
    }, environment='testing')
    yield app


@pytest.fixture
def client(app):
    """Create a test client for the Flask application."""
    return app.test_client()
