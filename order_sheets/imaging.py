"""
Image acquisition and transform module for Order Sheets.

This module handles:
- Fetching item images over HTTP, from data URIs or from local files
- Flattening images onto white or keeping transparency per target format
- Blanking near-black mattes left by the product photo pipeline
- Re-encoding to PNG or JPEG for embedding into the document

Acquisition never raises to the caller: any failure is logged and the
loader returns None so the layout can skip that visual element.
"""

import base64
import io
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
from urllib.parse import unquote_to_bytes, urlparse
from urllib.request import url2pathname

import numpy as np
import requests
from PIL import Image, UnidentifiedImageError
from loguru import logger

from .config import get_config
from .errors import AcquisitionError, ImageDecodeError
from .models import EncodedImage


DARK_PIXEL_THRESHOLD = 50
DEFAULT_DIMENSIONS = (800, 600)
SUPPORTED_FORMATS = ('png', 'jpeg')


class Transport:
    """Fetches raw image bytes for the URLs it accepts."""

    def accepts(self, url: str) -> bool:
        raise NotImplementedError

    def fetch(self, url: str) -> bytes:
        raise NotImplementedError


class HttpTransport(Transport):
    """Plain HTTP(S) download through a requests session."""

    def __init__(self, timeout: float = None, session: requests.Session = None):
        self.timeout = timeout if timeout is not None else get_config().HTTP_TIMEOUT_SEC
        self.session = session or requests.Session()

    def accepts(self, url: str) -> bool:
        return urlparse(url).scheme in ('http', 'https')

    def fetch(self, url: str) -> bytes:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise AcquisitionError(url, str(e)) from e
        return response.content


class DataUriTransport(Transport):
    """Inline ``data:`` URIs, base64 or percent-encoded."""

    def accepts(self, url: str) -> bool:
        return url.startswith('data:')

    def fetch(self, url: str) -> bytes:
        header, sep, payload = url.partition(',')
        if not sep:
            raise AcquisitionError(url[:40], "malformed data URI")
        try:
            if header.endswith(';base64'):
                return base64.b64decode(payload, validate=False)
            return unquote_to_bytes(payload)
        except ValueError as e:
            raise AcquisitionError(url[:40], str(e)) from e


class FileTransport(Transport):
    """``file://`` URLs and bare filesystem paths."""

    def accepts(self, url: str) -> bool:
        scheme = urlparse(url).scheme
        # single letters are Windows drive prefixes
        return scheme in ('', 'file') or len(scheme) == 1

    def fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        path = Path(url2pathname(parsed.path)) if parsed.scheme == 'file' else Path(url)
        try:
            return path.read_bytes()
        except OSError as e:
            raise AcquisitionError(url, str(e)) from e


def default_transports() -> List[Transport]:
    """Transports tried in order; local files need an explicit FileTransport."""
    return [DataUriTransport(), HttpTransport()]


def acquire(url: str, transports: Sequence[Transport] = None) -> Image.Image:
    """Fetch and decode an image at its native resolution."""
    if not url:
        raise AcquisitionError(str(url), "empty URL")

    transports = transports if transports is not None else default_transports()
    transport = next((t for t in transports if t.accepts(url)), None)
    if transport is None:
        raise AcquisitionError(url, "unsupported URL scheme")

    data = transport.fetch(url)

    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(url, str(e)) from e

    logger.debug(f"Acquired image {url[:80]} ({image.size}, {image.mode})")
    return image


def prepare_canvas(image: Image.Image, fmt: str) -> Image.Image:
    """
    Draw the image pixel-for-pixel onto a fresh canvas.

    PNG keeps a transparent canvas so alpha survives; every other format
    gets an opaque white canvas so transparent regions do not turn black.
    """
    rgba = image.convert('RGBA')
    if fmt == 'png':
        canvas = Image.new('RGBA', rgba.size, (0, 0, 0, 0))
        canvas.paste(rgba, (0, 0))
        return canvas

    canvas = Image.new('RGBA', rgba.size, (255, 255, 255, 255))
    canvas.alpha_composite(rgba)
    return canvas.convert('RGB')


def suppress_dark_pixels(image: Image.Image, threshold: int = DARK_PIXEL_THRESHOLD) -> Image.Image:
    """Force pixels whose R, G and B are all below threshold to opaque white."""
    pixels = np.array(image)
    if pixels.ndim != 3 or pixels.shape[2] < 3:
        pixels = np.array(image.convert('RGB'))

    mask = (
        (pixels[..., 0] < threshold)
        & (pixels[..., 1] < threshold)
        & (pixels[..., 2] < threshold)
    )
    pixels[mask, :3] = 255
    if pixels.shape[2] == 4:
        pixels[mask, 3] = 255

    logger.debug(f"Suppressed {int(mask.sum())} dark pixels")
    return Image.fromarray(pixels, 'RGBA' if pixels.shape[2] == 4 else 'RGB')


def jpeg_quality(quality: float) -> int:
    """Map a 0..1 quality to Pillow's 1..100 JPEG scale."""
    return max(1, min(100, int(round(quality * 100))))


def encode_image(image: Image.Image, fmt: str, quality: float = 1.0) -> EncodedImage:
    """Encode to PNG (lossless) or JPEG (lossy at quality)."""
    buffer = io.BytesIO()
    if fmt == 'png':
        image.save(buffer, format='PNG')
    else:
        image.convert('RGB').save(buffer, format='JPEG', quality=jpeg_quality(quality))

    return EncodedImage(data=buffer.getvalue(), fmt=fmt, width=image.width, height=image.height)


def normalize_format(fmt: str) -> str:
    fmt = (fmt or 'png').lower()
    if fmt == 'jpg':
        fmt = 'jpeg'
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported image format: {fmt}")
    return fmt


def load_image(url: Optional[str],
               quality: float = 1.0,
               suppress_dark: bool = False,
               fmt: str = 'png',
               transports: Sequence[Transport] = None,
               dark_threshold: int = DARK_PIXEL_THRESHOLD) -> Optional[EncodedImage]:
    """
    Acquire, transform and encode an image.

    Returns None on any acquisition or decode failure.
    """
    fmt = normalize_format(fmt)
    if not url:
        return None

    try:
        image = acquire(url, transports)
        canvas = prepare_canvas(image, fmt)
        if suppress_dark:
            canvas = suppress_dark_pixels(canvas, dark_threshold)
        return encode_image(canvas, fmt, quality)
    except (AcquisitionError, ImageDecodeError) as e:
        logger.warning(f"Skipping image: {e}")
        return None
    except Exception as e:
        logger.warning(f"Unexpected error processing image {url[:80]}: {e}")
        return None


def probe_dimensions(encoded: EncodedImage,
                     default: Tuple[int, int] = DEFAULT_DIMENSIONS) -> Tuple[int, int]:
    """Measure encoded image bytes, falling back to default dimensions."""
    try:
        with Image.open(io.BytesIO(encoded.data)) as image:
            width, height = image.size
        if width <= 0 or height <= 0:
            raise ValueError(f"degenerate size {width}x{height}")
        return (width, height)
    except Exception as e:
        logger.warning(f"Could not measure image, assuming {default[0]}x{default[1]}: {e}")
        return default


class ImageLoader:
    """The two loading presets used by the document generator."""

    def __init__(self, transports: Sequence[Transport] = None,
                 product_quality: float = None,
                 dark_threshold: int = None):
        config = get_config()
        self.transports = list(transports) if transports is not None else default_transports()
        self.product_quality = product_quality if product_quality is not None else config.PRODUCT_IMAGE_QUALITY
        self.dark_threshold = dark_threshold if dark_threshold is not None else config.DARK_PIXEL_THRESHOLD

    def load_custom(self, url: Optional[str]) -> Optional[EncodedImage]:
        """Customer artwork: lossless PNG, no thresholding."""
        return load_image(url, quality=1.0, suppress_dark=False, fmt='png',
                          transports=self.transports)

    def load_product(self, url: Optional[str]) -> Optional[EncodedImage]:
        """Catalog photography: JPEG with dark mattes blanked."""
        return load_image(url, quality=self.product_quality, suppress_dark=True, fmt='jpeg',
                          transports=self.transports, dark_threshold=self.dark_threshold)


def load_custom_image(url: Optional[str]) -> Optional[EncodedImage]:
    return ImageLoader().load_custom(url)


def load_product_image(url: Optional[str]) -> Optional[EncodedImage]:
    return ImageLoader().load_product(url)
