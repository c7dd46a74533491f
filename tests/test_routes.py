"""
Tests for the Flask endpoints.

The order service is replaced by a parsed sample payload; item images use
an unreachable scheme so documents degrade to details pages.
"""

import pytest

from order_sheets import routes
from order_sheets.errors import OrderFetchError
from order_sheets.orders import parse_orders_response


@pytest.fixture
def orders(monkeypatch, sample_orders_payload):
    parsed = parse_orders_response(sample_orders_payload)
    calls = []

    def fake_fetch(url=None, session=None, timeout=None):
        calls.append(url)
        return parsed

    monkeypatch.setattr(routes, 'fetch_orders', fake_fetch)
    return calls


def test_list_orders_grouped(client, orders):
    response = client.get('/api/orders')

    assert response.status_code == 200
    groups = response.get_json()['groups']
    assert [g['date'] for g in groups] == ['19 Oct 26', '18 Oct 26']
    first = groups[0]['orders'][0]
    assert first == {
        'orderId': 'ORD-100',
        'itemCount': 1,
        'totalAmount': 799.0,
        'description': 'Oversized Tee',
        'generating': False,
    }
    assert orders == ['http://orders.test/v1/orders']


def test_single_order_pdf(client, orders, tmp_path):
    response = client.post('/api/orders/ORD-101/pdf')

    assert response.status_code == 200
    assert response.mimetype == 'application/pdf'
    assert 'order-ORD-101.pdf' in response.headers['Content-Disposition']
    assert response.data.startswith(b'%PDF')
    assert (tmp_path / 'output' / 'order-ORD-101.pdf').exists()


def test_group_pdf_in_flow_mode(client, orders, tmp_path):
    response = client.post('/api/groups/19%20Oct%2026/pdf?mode=flow')

    assert response.status_code == 200
    assert 'orders-19_Oct_26.pdf' in response.headers['Content-Disposition']
    assert (tmp_path / 'output' / 'orders-19_Oct_26.pdf').exists()


def test_unknown_order_and_group(client, orders):
    assert client.post('/api/orders/NOPE/pdf').status_code == 404
    assert client.post('/api/groups/1%20Jan%2099/pdf').status_code == 404


def test_bad_layout_mode(client, orders):
    response = client.post('/api/orders/ORD-100/pdf?mode=poster')

    assert response.status_code == 400
    assert response.get_json()['error_type'] == 'ValidationError'


def test_duplicate_request_is_rejected(client, orders):
    with routes.in_flight.claim('order-ORD-100.pdf'):
        listed = client.get('/api/orders').get_json()
        response = client.post('/api/orders/ORD-100/pdf')

    assert response.status_code == 409
    assert response.get_json()['error_type'] == 'GenerationInProgressError'
    assert listed['groups'][0]['orders'][0]['generating'] is True
    assert 'order-ORD-100.pdf' not in routes.in_flight


def test_claim_is_released_after_failure(client, monkeypatch):
    def failing_fetch(url=None, session=None, timeout=None):
        raise OrderFetchError("503 Service Unavailable", url=url)

    monkeypatch.setattr(routes, 'fetch_orders', failing_fetch)

    response = client.post('/api/orders/ORD-100/pdf')

    assert response.status_code == 502
    assert response.get_json()['details']['reason'] == "503 Service Unavailable"
    assert 'order-ORD-100.pdf' not in routes.in_flight


def test_save_failure_reports_suggestions(client, orders, app, tmp_path):
    blocked = tmp_path / 'blocked'
    blocked.write_text('not a directory')
    app.config['OUTPUT_FOLDER'] = str(blocked)

    response = client.post('/api/orders/ORD-100/pdf')

    assert response.status_code == 500
    body = response.get_json()
    assert body['error_type'] == 'DocumentSaveError'
    assert body['suggestions']


def test_group_keys_sharing_an_artifact_are_serialized(client, orders):
    with routes.in_flight.claim('orders-19_Oct_26.pdf'):
        response = client.post('/api/groups/19-Oct-26/pdf')

    assert response.status_code == 409
    assert response.get_json()['details']['target'] == 'orders-19_Oct_26.pdf'


def test_artifact_is_sent_while_claimed(client, orders, monkeypatch):
    held = []
    send_pdf = routes._send_pdf

    def recording_send(path):
        held.append(path.name in routes.in_flight)
        return send_pdf(path)

    monkeypatch.setattr(routes, '_send_pdf', recording_send)

    response = client.post('/api/groups/19%20Oct%2026/pdf')

    assert response.status_code == 200
    assert held == [True]
    assert 'orders-19_Oct_26.pdf' not in routes.in_flight
