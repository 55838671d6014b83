"""
Tests for the carrier adapters, against a stubbed HTTP session.
"""

import json
from decimal import Decimal
from unittest import mock

import requests
from django.test import SimpleTestCase

from order_fulfillment.exceptions import ValidationException
from ..exceptions import InvalidProviderCredentialsError, ProviderError, TransientProviderError
from ..providers import (
    Address, ShipmentItem, ShipmentPayload, ShiprocketProvider, ShipwayProvider, normalize_carrier_status,
)
from ..providers.base import extract_awb
from ..providers.shiprocket import format_phone


def http_response(status_code, body):
    response = requests.Response()
    response.status_code = status_code
    response._content = json.dumps(body).encode() if body is not None else b''
    response.url = 'https://carrier.test/'
    return response


def stub_session(*responses):
    session = mock.Mock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return session


def sample_payload(**overrides):
    values = dict(
        reference='ORD-1-VA',
        idempotency_key='ORD-1-VA',
        pr_number='PR-0001',
        pickup=Address(name='Alpha Garments', address='Plot 4', city='Bengaluru', state='Karnataka',
                       pincode='560058', phone='9876500001'),
        delivery=Address(name='Ravi Kumar', address='12 MG Road', city='Bengaluru', state='Karnataka',
                         pincode='560001', phone='+91 98765 43210', email='ravi@example.com'),
        items=[ShipmentItem(sku='SHIRT-01', name='Guard Shirt', quantity=2, unit_price=Decimal('450.00'), size='M')],
        weight_kg=Decimal('0.600'),
        declared_value=Decimal('900.00'),
    )
    values.update(overrides)
    return ShipmentPayload(**values)


LOGIN = http_response(200, {'token': 'jwt-token'})


class ShiprocketProviderTest(SimpleTestCase):

    def _provider(self, *responses):
        session = stub_session(LOGIN, *responses)
        provider = ShiprocketProvider({'email': 'ops@acme.test', 'password': 'secret'}, session=session, timeout=5)
        return provider, session

    def _call(self, session, index):
        args, kwargs = session.request.call_args_list[index]
        return args[0], args[1], kwargs

    def test_create_with_immediate_awb(self):
        provider, session = self._provider(http_response(200, {
            'order_id': 991, 'shipment_id': 5551, 'status': 'NEW', 'awb_code': 'SR123456', 'courier_name': 'Delhivery',
        }))

        result = provider.create_shipment(sample_payload())

        self.assertEqual(result.provider_reference, '5551')
        self.assertEqual(result.tracking_number, 'SR123456')
        self.assertEqual(result.courier_name, 'Delhivery')

        method, url, kwargs = self._call(session, 1)
        self.assertEqual(method, 'POST')
        self.assertTrue(url.endswith('/v1/external/orders/create/adhoc'))
        self.assertEqual(kwargs['headers']['Authorization'], 'Bearer jwt-token')
        self.assertEqual(kwargs['json']['order_id'], 'ORD-1-VA')
        self.assertEqual(kwargs['json']['billing_phone'], '9876543210')
        self.assertEqual(kwargs['timeout'], 5)

    def test_create_assigns_awb_when_missing(self):
        provider, session = self._provider(
            http_response(200, {'order_id': 991, 'shipment_id': 5551, 'status': 'NEW', 'awb_code': ''}),
            http_response(200, {'awb_assign_status': 1, 'response': {
                'data': {'awb_code': 'SR999', 'courier_name': 'Blue Dart'},
            }}),
        )

        result = provider.create_shipment(sample_payload(courier_code='12'))

        self.assertEqual(result.tracking_number, 'SR999')
        self.assertEqual(result.courier_name, 'Blue Dart')
        method, url, kwargs = self._call(session, 2)
        self.assertTrue(url.endswith('/v1/external/courier/assign/awb'))
        self.assertEqual(kwargs['json'], {'shipment_id': '5551', 'courier_id': '12'})

    def test_failed_awb_assignment_still_creates_shipment(self):
        provider, _ = self._provider(
            http_response(200, {'order_id': 991, 'shipment_id': 5551, 'status': 'NEW'}),
            http_response(400, {'message': 'Courier not serviceable'}),
        )

        with self.assertLogs('shipping.providers.shiprocket', level='WARNING'):
            result = provider.create_shipment(sample_payload())

        self.assertEqual(result.provider_reference, '5551')
        self.assertIsNone(result.tracking_number)
        self.assertEqual(result.tracking_url, '')

    def test_create_without_shipment_id_is_an_error(self):
        provider, _ = self._provider(http_response(200, {'message': 'Pickup location not found'}))

        with self.assertRaises(ProviderError) as ctx:
            provider.create_shipment(sample_payload())
        self.assertEqual(ctx.exception.message, 'Pickup location not found')
        self.assertFalse(ctx.exception.retryable)

    def test_tracking_falls_back_to_awb_endpoint(self):
        provider, session = self._provider(
            http_response(404, {'message': 'Order not found'}),
            http_response(200, {'tracking_data': {
                'shipment_status': 7,
                'shipment_track': [{'awb_code': 'SR123456', 'current_status': 'Delivered'}],
            }}),
        )

        result = provider.fetch_tracking('SR123456')

        self.assertEqual(result.status, 'DELIVERED')
        self.assertEqual(result.carrier_status, 'Delivered')
        self.assertEqual(result.tracking_number, 'SR123456')
        self.assertTrue(self._call(session, 2)[1].endswith('/v1/external/courier/track/awb/SR123456'))

    def test_tracking_without_awb_returns_none(self):
        provider, _ = self._provider(http_response(200, {'data': {'status': 'NEW', 'order_id': 991}}))

        result = provider.fetch_tracking('5551')

        self.assertIsNone(result.tracking_number)
        self.assertEqual(result.status, 'CREATED')

    def test_server_error_is_retryable(self):
        provider, _ = self._provider(http_response(503, {'message': 'Upstream down'}))

        with self.assertRaises(ProviderError) as ctx:
            provider.fetch_tracking('5551')
        self.assertEqual(ctx.exception.error_code, 'server_error')
        self.assertTrue(ctx.exception.retryable)

    def test_connection_failure_is_transient(self):
        provider, _ = self._provider(requests.ConnectionError('connection reset'))

        with self.assertRaises(TransientProviderError) as ctx:
            provider.fetch_tracking('5551')
        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.code, 'PROVIDER_UNAVAILABLE')

    def test_serviceability(self):
        provider, session = self._provider(http_response(200, {'data': {'available_courier_companies': [
            {'courier_company_id': 10, 'courier_name': 'Delhivery', 'rate': 85.5, 'estimated_delivery_days': '3'},
            {'courier_company_id': 24, 'courier_name': 'Xpressbees', 'freight_charge': 70, 'estimated_delivery_days': ''},
        ]}}))

        result = provider.check_serviceability('560058', '560001', Decimal('1.5'))

        self.assertTrue(result.serviceable)
        self.assertEqual([c.courier_code for c in result.couriers], ['10', '24'])
        self.assertEqual(result.couriers[0].rate, Decimal('85.5'))
        self.assertEqual(result.couriers[0].estimated_days, 3)
        self.assertIsNone(result.couriers[1].estimated_days)
        params = self._call(session, 1)[2]['params']
        self.assertEqual(params['pickup_postcode'], '560058')
        self.assertEqual(params['delivery_postcode'], '560001')

    def test_serviceability_rejects_malformed_pincode(self):
        provider, session = self._provider()

        with self.assertRaises(ValidationException):
            provider.check_serviceability('5600', '560001', Decimal('1'))
        session.request.assert_not_called()

    def test_cancel_by_awb_or_reference(self):
        provider, session = self._provider(
            http_response(200, {'message': 'Cancelled'}),
            http_response(200, {'message': 'Cancelled'}),
        )

        provider.cancel_shipment('5551', 'SR123456')
        provider.cancel_shipment('5551')

        _, url, kwargs = self._call(session, 1)
        self.assertTrue(url.endswith('/v1/external/orders/cancel/shipment/awbs'))
        self.assertEqual(kwargs['json'], {'awbs': ['SR123456']})
        _, url, kwargs = self._call(session, 2)
        self.assertTrue(url.endswith('/v1/external/orders/cancel'))
        self.assertEqual(kwargs['json'], {'ids': ['5551']})

    def test_missing_credentials(self):
        with self.assertRaises(InvalidProviderCredentialsError):
            ShiprocketProvider({'email': 'ops@acme.test'}, session=stub_session())


class ShipwayProviderTest(SimpleTestCase):

    def test_create_sends_key_headers(self):
        session = stub_session(http_response(201, {'shipment_id': 'SW-77', 'awb': 'SW123', 'status': 'Booked'}))
        provider = ShipwayProvider({'api_key': 'key', 'api_secret': 'secret'}, session=session)

        result = provider.create_shipment(sample_payload())

        self.assertEqual(result.provider_reference, 'SW-77')
        self.assertEqual(result.tracking_number, 'SW123')
        _, kwargs = session.request.call_args
        self.assertEqual(kwargs['headers']['X-API-Key'], 'key')
        self.assertEqual(kwargs['headers']['X-API-Secret'], 'secret')
        self.assertEqual(session.request.call_args[0][1], 'https://app.shipway.com/api/shipments')

    def test_serviceability_coerces_estimated_days(self):
        session = stub_session(http_response(200, {'serviceable': True, 'couriers': [
            {'courier_code': 'DL', 'courier_name': 'Delhivery', 'rate': '92.5', 'estimated_days': '4'},
            {'courier_code': 'EK', 'courier_name': 'Ekart', 'rate': 75, 'estimated_days': '2-3'},
            {'courier_code': 'BD', 'courier_name': 'Blue Dart', 'rate': 140, 'estimated_days': 1},
        ]}))
        provider = ShipwayProvider({'api_key': 'key', 'api_secret': 'secret'}, session=session)

        result = provider.check_serviceability('560058', '560001', Decimal('1'))

        self.assertTrue(result.serviceable)
        self.assertEqual([c.estimated_days for c in result.couriers], [4, None, 1])
        self.assertEqual(result.couriers[0].rate, Decimal('92.5'))

    def test_cancel_reports_refusal(self):
        session = stub_session(http_response(200, {'cancelled': False, 'message': 'Already delivered'}))
        provider = ShipwayProvider({'api_key': 'key', 'api_secret': 'secret'}, session=session)

        result = provider.cancel_shipment('SW-77')

        self.assertFalse(result.cancelled)
        self.assertEqual(result.message, 'Already delivered')


class CarrierResponseParsingTest(SimpleTestCase):

    def test_status_normalization(self):
        cases = {
            'Delivered': 'DELIVERED',
            'UNDELIVERED': 'IN_TRANSIT',
            'Out For Delivery': 'IN_TRANSIT',
            'In Transit': 'IN_TRANSIT',
            'Picked Up': 'PICKED_UP',
            'Pickup Scheduled': 'CREATED',
            'AWB Assigned': 'CREATED',
            'RTO Initiated': 'CANCELLED',
            'Canceled': 'CANCELLED',
            'Lost': 'FAILED',
            'Weight discrepancy raised': None,
            '': None,
            None: None,
        }
        for carrier_status, expected in cases.items():
            with self.subTest(carrier_status=carrier_status):
                self.assertEqual(normalize_carrier_status(carrier_status), expected)

    def test_awb_extraction_ignores_order_and_docket_ids(self):
        self.assertIsNone(extract_awb({'order_id': 991, 'shipment_id': 5551, 'docket_number': 'D-1'}))
        self.assertIsNone(extract_awb({'awb_code': '   '}))
        self.assertEqual(extract_awb({'data': [{'awbCode': 'X1'}]}), 'X1')
        self.assertEqual(extract_awb({'payload': {'shipment': {'tracking_number': 42}}}), '42')

    def test_phone_formatting(self):
        self.assertEqual(format_phone('+91 98765 43210'), '9876543210')
        self.assertEqual(format_phone('09876543210'), '9876543210')
        self.assertEqual(format_phone('12345'), '12345')
