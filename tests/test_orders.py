"""
Unit tests for order retrieval and date grouping.
"""

from datetime import datetime
from unittest.mock import Mock

import pytest
import requests

from order_sheets.errors import OrderFetchError
from order_sheets.orders import (
    date_group_key, fetch_orders, find_order, group_orders_by_date,
    parse_orders_response,
)

from .conftest import make_item, make_order


def mock_session(payload=None, error=None, json_error=None):
    response = Mock()
    response.raise_for_status = Mock()
    if json_error:
        response.json.side_effect = json_error
    else:
        response.json.return_value = payload
    session = Mock()
    if error:
        session.get.side_effect = error
    else:
        session.get.return_value = response
    return session


class TestParseResponse:

    def test_invalid_records_are_skipped(self, sample_orders_payload):
        orders = parse_orders_response(sample_orders_payload)

        assert [o.order_id for o in orders] == ['ORD-100', 'ORD-101', 'ORD-102']

    @pytest.mark.parametrize("payload", [
        {'success': False, 'data': []},
        {'success': 'true', 'data': []},
        {'data': []},
        {'success': True},
        {'success': True, 'data': {'orderId': 'A1'}},
        [],
        None,
    ])
    def test_unusable_responses(self, payload):
        with pytest.raises(OrderFetchError):
            parse_orders_response(payload, url='http://orders.test')

    def test_messy_item_fields_keep_the_order(self):
        orders = parse_orders_response({'success': True, 'data': [
            {'orderId': 'M1', 'items': [
                {'name': 'Tee', 'quantity': ''},
                {'name': 42, 'quantity': '2 pcs'},
            ]},
        ]})

        assert [o.order_id for o in orders] == ['M1']
        lines = [item.details_lines() for item in orders[0].items]
        assert lines[0][0] == "Name: Tee"
        assert lines[0][2] == "Quantity: 1"
        assert lines[1][0] == "Name: 42"
        assert lines[1][2] == "Quantity: 1"


class TestFetchOrders:

    def test_fetch_uses_session(self, sample_orders_payload):
        session = mock_session(sample_orders_payload)

        orders = fetch_orders('http://orders.test', session=session, timeout=3)

        assert len(orders) == 3
        session.get.assert_called_once_with('http://orders.test', timeout=3)

    def test_defaults_come_from_config(self, monkeypatch, sample_orders_payload):
        monkeypatch.setenv('ORDERS_API_URL', 'http://configured.test/orders')
        session = mock_session(sample_orders_payload)

        fetch_orders(session=session)

        session.get.assert_called_once_with('http://configured.test/orders', timeout=30.0)

    def test_network_errors(self):
        session = mock_session(error=requests.ConnectionError("refused"))

        with pytest.raises(OrderFetchError) as exc_info:
            fetch_orders('http://orders.test', session=session)

        assert exc_info.value.details['url'] == 'http://orders.test'

    def test_invalid_json(self):
        session = mock_session(json_error=ValueError("Expecting value"))

        with pytest.raises(OrderFetchError):
            fetch_orders('http://orders.test', session=session)


class TestGrouping:

    def test_date_group_key(self):
        assert date_group_key(datetime(2026, 10, 19, 9, 15)) == '19 Oct 26'
        assert date_group_key(datetime(2026, 3, 5)) == '5 Mar 26'
        assert date_group_key(None) == 'Undated'

    def test_groups_keep_first_seen_order(self, sample_orders_payload):
        grouped = group_orders_by_date(parse_orders_response(sample_orders_payload))

        assert list(grouped) == ['19 Oct 26', '18 Oct 26']
        assert [o.order_id for o in grouped['19 Oct 26']] == ['ORD-100', 'ORD-101']

    def test_undated_orders(self):
        grouped = group_orders_by_date([make_order('A1', [make_item()])])

        assert list(grouped) == ['Undated']

    def test_find_order(self):
        orders = [make_order('A1', [make_item()]), make_order('A2', [make_item()])]

        assert find_order(orders, 'A2').order_id == 'A2'
        assert find_order(orders, 'A3') is None
