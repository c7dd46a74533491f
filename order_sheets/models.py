"""
Data models for Order Sheets.

Orders and items arrive as camelCase JSON from the order service and are
validated into pydantic models. Encoded images are plain dataclasses that
live only for the duration of a generation call.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import format_size


DEFAULT_NAME = "Customizable Product"
NOT_AVAILABLE = "N/A"


class Item(BaseModel):
    """A purchasable line of an order"""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    name: Optional[str] = None
    sku: Optional[str] = None
    quantity: Optional[int] = None
    size: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias='imageUrl')
    rendered_image_url: Optional[str] = Field(default=None, alias='renderedImageUrl')
    product_image_url: Optional[str] = Field(default=None, alias='productImageUrl')

    @field_validator('name', 'sku', 'size', mode='before')
    @classmethod
    def _stringify(cls, value):
        if value is None:
            return None
        if isinstance(value, (list, tuple)):
            return " ".join(str(v) for v in value)
        return str(value)

    @field_validator('quantity', mode='before')
    @classmethod
    def _lenient_quantity(cls, value):
        """Blank or unparseable quantities become None"""
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else None
        try:
            return int(str(value).strip())
        except (TypeError, ValueError):
            return None

    @property
    def custom_image_url(self) -> Optional[str]:
        """Customer artwork, falling back to the rendered mockup"""
        return self.image_url or self.rendered_image_url or None

    @property
    def display_name(self) -> str:
        return self.name or DEFAULT_NAME

    @property
    def display_sku(self) -> str:
        return self.sku or NOT_AVAILABLE

    @property
    def display_quantity(self) -> int:
        return self.quantity or 1

    @property
    def display_size(self) -> str:
        return format_size(self.size)

    def details_lines(self) -> List[str]:
        """Text block printed on the details page"""
        return [
            f"Name: {self.display_name}",
            f"SKU: {self.display_sku}",
            f"Quantity: {self.display_quantity}",
            f"Size: {self.display_size}",
        ]


class Order(BaseModel):
    """An order record as returned by the order service"""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    order_id: str = Field(alias='orderId', min_length=1)
    items: List[Item] = Field(min_length=1)
    total_amount: Optional[float] = Field(default=None, alias='totalAmount')
    order_date: Optional[datetime] = Field(default=None, alias='orderDate')

    @field_validator('order_id', mode='before')
    @classmethod
    def _order_id_to_str(cls, value):
        return str(value) if value is not None else value


@dataclass
class EncodedImage:
    """An image encoded to an embeddable format (PNG or JPEG bytes)"""
    data: bytes
    fmt: str
    width: int
    height: int

    @property
    def size(self) -> Tuple[int, int]:
        return (self.width, self.height)

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height if self.height else 1.0
