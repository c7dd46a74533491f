"""
Order retrieval and grouping for Order Sheets.

The order service answers ``{"success": true, "data": [...]}``; anything
else is a fetch failure. Orders are grouped by a short en-GB date label
(``19 Oct 26``) for combined documents.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError as PydanticValidationError
from loguru import logger

from .config import get_config
from .errors import OrderFetchError
from .models import Order


UNDATED_GROUP = "Undated"


def parse_orders_response(payload: Any, url: str = None) -> List[Order]:
    """Validate an order service response into Order records."""
    if not isinstance(payload, dict) or payload.get('success') is not True:
        raise OrderFetchError("order service reported failure", url=url)

    records = payload.get('data')
    if not isinstance(records, list):
        raise OrderFetchError("response has no order list", url=url)

    orders = []
    for index, record in enumerate(records):
        try:
            orders.append(Order.model_validate(record))
        except PydanticValidationError as e:
            order_id = record.get('orderId') if isinstance(record, dict) else None
            logger.warning(f"Skipping invalid order record {order_id or index}: "
                           f"{e.error_count()} validation errors")

    logger.info(f"Parsed {len(orders)} of {len(records)} order records")
    return orders


def fetch_orders(url: str = None, session: requests.Session = None,
                 timeout: float = None) -> List[Order]:
    """Fetch and validate orders from the order service."""
    config = get_config()
    url = url or config.ORDERS_API_URL
    session = session or requests.Session()
    timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_SEC

    logger.info(f"Fetching orders from {url}")
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
        payload = response.json()
    except requests.RequestException as e:
        raise OrderFetchError(str(e), url=url) from e
    except ValueError as e:
        raise OrderFetchError(f"invalid JSON: {e}", url=url) from e

    return parse_orders_response(payload, url=url)


def date_group_key(value: Optional[datetime]) -> str:
    """Short en-GB date label: day without padding, abbreviated month, 2-digit year."""
    if value is None:
        return UNDATED_GROUP
    return f"{value.day} {value.strftime('%b %y')}"


def group_orders_by_date(orders: List[Order]) -> Dict[str, List[Order]]:
    """Group orders by date label, keeping the order of first appearance."""
    grouped: Dict[str, List[Order]] = {}
    for order in orders:
        grouped.setdefault(date_group_key(order.order_date), []).append(order)
    return grouped


def find_order(orders: List[Order], order_id: str) -> Optional[Order]:
    return next((order for order in orders if order.order_id == order_id), None)
