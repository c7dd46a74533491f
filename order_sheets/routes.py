"""
Flask routes for Order Sheets
Lists grouped orders and serves generated documents
"""

import threading
from contextlib import contextmanager
from pathlib import Path
from flask import Blueprint, current_app, jsonify, request, send_file
from loguru import logger

from .errors import (
    OrderSheetsError, ValidationError, OrderFetchError,
    GenerationInProgressError, create_error_recovery_suggestions
)
from .generator import LayoutMode, OrderDocumentGenerator
from .orders import fetch_orders, find_order, group_orders_by_date
from .utils import group_filename, order_filename, truncate_text


bp = Blueprint('main', __name__, url_prefix='/api')


class InFlightRegistry:
    """Artifact names with a generation or download currently running."""

    def __init__(self):
        self._lock = threading.Lock()
        self._targets = set()

    @contextmanager
    def claim(self, target: str):
        with self._lock:
            if target in self._targets:
                raise GenerationInProgressError(target)
            self._targets.add(target)
        try:
            yield
        finally:
            with self._lock:
                self._targets.discard(target)

    def __contains__(self, target: str) -> bool:
        with self._lock:
            return target in self._targets


in_flight = InFlightRegistry()


def _layout_mode():
    mode = request.args.get('mode')
    if mode is None:
        return None
    try:
        return LayoutMode(mode)
    except ValueError:
        raise ValidationError(
            f"Unknown layout mode: {mode}",
            details={'mode': mode},
            suggestions=[f"Use one of: {', '.join(m.value for m in LayoutMode)}"]
        )


def _load_orders():
    return fetch_orders(current_app.config.get('ORDERS_API_URL'),
                        timeout=current_app.config.get('HTTP_TIMEOUT_SEC'))


def _generator():
    return OrderDocumentGenerator(mode=_layout_mode(),
                                  output_dir=Path(current_app.config['OUTPUT_FOLDER']))


def _log_progress(target: str):
    def listener(done: int, total: int):
        logger.debug(f"{target}: {done}/{total} items")
    return listener


def _send_pdf(path: Path):
    return send_file(path.resolve(), mimetype='application/pdf',
                     as_attachment=True, download_name=path.name)


@bp.route('/orders', methods=['GET'])
def list_orders():
    """Orders grouped by date"""
    grouped = group_orders_by_date(_load_orders())
    groups = []
    for date_key, orders in grouped.items():
        groups.append({
            'date': date_key,
            'orders': [{
                'orderId': order.order_id,
                'itemCount': len(order.items),
                'totalAmount': order.total_amount,
                'description': truncate_text(order.items[0].name or 'Order', 50),
                'generating': order_filename(order.order_id) in in_flight,
            } for order in orders]
        })
    return jsonify({'groups': groups})


@bp.route('/orders/<order_id>/pdf', methods=['POST'])
def order_pdf(order_id):
    """Generate and download the document for one order"""
    target = order_filename(order_id)
    with in_flight.claim(target):
        order = find_order(_load_orders(), order_id)
        if order is None:
            return jsonify({'error_type': 'NotFound', 'message': f"Unknown order {order_id}"}), 404

        path = _generator().generate_single(order, on_progress=_log_progress(target))
        return _send_pdf(path)


@bp.route('/groups/<path:group_key>/pdf', methods=['POST'])
def group_pdf(group_key):
    """Generate and download one document for every order of a date group"""
    target = group_filename(group_key)
    with in_flight.claim(target):
        orders = group_orders_by_date(_load_orders()).get(group_key)
        if not orders:
            return jsonify({'error_type': 'NotFound', 'message': f"Unknown group {group_key}"}), 404

        path = _generator().generate_combined(orders, group_key, on_progress=_log_progress(target))
        return _send_pdf(path)


@bp.errorhandler(GenerationInProgressError)
def handle_in_progress(e):
    logger.warning(str(e))
    return jsonify(e.to_dict()), 409


@bp.errorhandler(ValidationError)
def handle_validation_error(e):
    logger.warning(f"Validation error: {e}")
    return jsonify(e.to_dict()), 400


@bp.errorhandler(OrderFetchError)
def handle_fetch_error(e):
    logger.error(f"Order fetch failed: {e}")
    return jsonify(e.to_dict()), 502


@bp.errorhandler(OrderSheetsError)
def handle_processing_error(e):
    logger.error(f"Generation failed: {e}")
    payload = e.to_dict()
    payload['suggestions'] = create_error_recovery_suggestions(e)
    return jsonify(payload), 500
