"""
Tests for shipment creation, reconciliation and cancellation against the mock provider.
"""

from decimal import Decimal
from io import StringIO
from unittest import mock

import requests

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework.test import APIClient

from order_fulfillment.exceptions import StateConflictException
from order_fulfillment.models import Order, OrderStatus, PRStatus
from order_fulfillment.services import ApprovalService, OrderService
from order_fulfillment.tests.fixtures import build_catalog, cart, create_user, set_policy
from ..crypto import reset_cipher
from ..exceptions import NoShippingProviderError
from ..models import CompanyShippingProvider, Shipment, ShipmentApiLog, ShipmentStatus, ShippingProvider
from ..providers import MockShippingProvider
from ..providers import mock as mock_provider
from ..services import ShipmentReconciler, ShipmentWorkflow


class ShippingTestCase(TestCase):
    """Catalog, a MOCK provider for ACME and one cleared sub-order."""

    def setUp(self):
        reset_cipher()
        mock_provider.reset_mock_provider()
        self.addCleanup(mock_provider.reset_mock_provider)
        build_catalog(self)
        self.provider = ShippingProvider.objects.create(provider_code='MOCK', name='Mock')
        self.configure({})
        self.order_number = self.submit(('SHIRT-01', 'M', 2))[0]

    def configure(self, credentials, company=None):
        config, _ = CompanyShippingProvider.objects.get_or_create(
            company=company or self.company, provider=self.provider, defaults={'is_default': True}
        )
        config.set_credentials(credentials)
        config.save()
        return config

    def submit(self, *lines):
        _, sub_numbers = OrderService.submit_order(self.employee, cart(*lines))
        return sub_numbers


class ShipmentLifecycleTest(ShippingTestCase):

    def test_create_and_reconcile_to_delivered(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number, actor=self.vendor_user_a)

        shipment = Shipment.objects.get(shipment_number=shipment_number)
        self.assertEqual(shipment.shipment_status, ShipmentStatus.CREATED)
        self.assertEqual(shipment.attempt, 1)
        self.assertEqual(shipment.idempotency_key, self.order_number)
        self.assertEqual(shipment.provider_reference, f'MOCK-{self.order_number}')
        self.assertEqual(shipment.tracking_number, f'AWB-{self.order_number}')
        self.assertEqual(shipment.vendor_id, 'VA')
        self.assertEqual(shipment.chargeable_weight, Decimal('0.600'))

        outcomes = [ShipmentReconciler.reconcile_tracking(shipment_number) for _ in range(4)]

        self.assertEqual(
            [(o['status'], o['changed']) for o in outcomes],
            [
                (ShipmentStatus.IN_TRANSIT, True),
                (ShipmentStatus.IN_TRANSIT, False),
                (ShipmentStatus.DELIVERED, True),
                (ShipmentStatus.DELIVERED, False),
            ],
        )
        shipment.refresh_from_db()
        self.assertIsNotNone(shipment.delivered_at)
        self.assertEqual(
            list(shipment.events.values_list('source', 'to_status')),
            [('CREATE', 'CREATED'), ('RECONCILE', 'IN_TRANSIT'), ('RECONCILE', 'DELIVERED')],
        )
        # Terminal shipments are not polled again
        self.assertEqual(ShipmentApiLog.objects.filter(operation='TRACK').count(), 3)

        # A purchase-ordered sub-order still waits for its goods receipt
        order = Order.objects.get(order_number=self.order_number)
        self.assertEqual(order.pr_status, PRStatus.LINKED_TO_PO)

    def test_delivery_fulfils_order_without_purchase_order(self):
        set_policy(self.company, workflow=False)
        order_number = self.submit(('TROUSER-01', '32', 1))[0]

        shipment_number = ShipmentReconciler.create_shipment(order_number)
        for _ in range(3):
            ShipmentReconciler.reconcile_tracking(shipment_number)

        order = Order.objects.get(order_number=order_number)
        self.assertEqual(order.pr_status, PRStatus.FULFILLED)
        self.assertEqual(order.status, OrderStatus.FULFILLED)

    def test_carrier_failure_is_stored_and_retry_reuses_the_key(self):
        self.configure({'fail_create': True})

        failed_number = ShipmentReconciler.create_shipment(self.order_number)

        failed = Shipment.objects.get(shipment_number=failed_number)
        self.assertEqual(failed.shipment_status, ShipmentStatus.FAILED)
        self.assertEqual(failed.failure_code, 'validation_error')
        self.assertEqual(failed.failure_detail['status_code'], 422)
        self.assertFalse(failed.failure_detail['retryable'])
        log = ShipmentApiLog.objects.get(operation='CREATE')
        self.assertFalse(log.success)
        self.assertEqual(log.entity_ref, self.order_number)

        self.configure({})
        retry_number = ShipmentReconciler.create_shipment(self.order_number)

        retry = Shipment.objects.get(shipment_number=retry_number)
        self.assertEqual(retry.attempt, 2)
        self.assertEqual(retry.idempotency_key, self.order_number)
        self.assertEqual(retry.shipment_status, ShipmentStatus.CREATED)

    def test_one_live_shipment_per_order(self):
        ShipmentReconciler.create_shipment(self.order_number)

        with self.assertRaises(StateConflictException) as ctx:
            ShipmentReconciler.create_shipment(self.order_number)
        self.assertEqual(ctx.exception.code, 'SHIPMENT_EXISTS')

    def test_uncleared_order_cannot_ship(self):
        set_policy(self.company, site_admin=True)
        pending_number = self.submit(('SHIRT-01', 'L', 1))[0]

        with self.assertRaises(StateConflictException) as ctx:
            ShipmentReconciler.create_shipment(pending_number)
        self.assertEqual(ctx.exception.code, 'SHIPMENT_NOT_ALLOWED')

        parent_number = Order.objects.get(order_number=pending_number).parent_order_id
        with self.assertRaises(StateConflictException):
            ShipmentReconciler.create_shipment(parent_number)

    def test_no_provider_configured(self):
        CompanyShippingProvider.objects.all().delete()

        with self.assertRaises(NoShippingProviderError):
            ShipmentReconciler.create_shipment(self.order_number)
        self.assertFalse(Shipment.objects.exists())

    def test_rejected_order_freezes_its_shipment(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        ApprovalService.reject(self.order_number, self.company_admin, 'Employee left the company')

        with self.assertRaises(StateConflictException) as ctx:
            ShipmentReconciler.reconcile_tracking(shipment_number)
        self.assertEqual(ctx.exception.code, 'ORDER_REJECTED')
        self.assertEqual(ShipmentReconciler.reconcile_pending()['checked'], 0)

    def test_awb_assigned_on_a_later_poll(self):
        self.configure({'awb_delay_polls': 2})
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        self.assertEqual(Shipment.objects.get(shipment_number=shipment_number).tracking_number, '')

        first = ShipmentReconciler.reconcile_tracking(shipment_number)
        second = ShipmentReconciler.reconcile_tracking(shipment_number)

        self.assertIsNone(first['tracking_number'])
        self.assertEqual(first['status'], ShipmentStatus.IN_TRANSIT)
        self.assertEqual(second['tracking_number'], f'AWB-{self.order_number}')
        self.assertTrue(second['changed'])

    def test_missing_awb_never_clears_stored_one(self):
        self.configure({'awb_delay_polls': 5, 'delivered_after_polls': 10})
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        Shipment.objects.filter(shipment_number=shipment_number).update(tracking_number='AWB-KNOWN')

        outcome = ShipmentReconciler.reconcile_tracking(shipment_number)

        self.assertEqual(outcome['tracking_number'], 'AWB-KNOWN')
        self.assertEqual(Shipment.objects.get(shipment_number=shipment_number).tracking_number, 'AWB-KNOWN')

    def test_cancel(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)

        status = ShipmentReconciler.cancel_shipment(shipment_number, reason='Wrong size packed')

        self.assertEqual(status, ShipmentStatus.CANCELLED)
        shipment = Shipment.objects.get(shipment_number=shipment_number)
        self.assertEqual(shipment.failure_detail['cancellation_reason'], 'Wrong size packed')
        with self.assertRaises(StateConflictException):
            ShipmentReconciler.cancel_shipment(shipment_number)

        # A cancelled attempt does not block a new one, booked under a fresh key
        rebooked_number = ShipmentReconciler.create_shipment(self.order_number)
        rebooked = Shipment.objects.get(shipment_number=rebooked_number)
        self.assertEqual(rebooked.idempotency_key, f'{self.order_number}-R1')
        self.assertEqual(rebooked.shipment_status, ShipmentStatus.CREATED)

    def test_creation_timeout_is_not_marked_retryable(self):
        shiprocket = ShippingProvider.objects.create(provider_code='SHIPROCKET', name='Shiprocket')
        CompanyShippingProvider.objects.all().delete()
        config = CompanyShippingProvider(company=self.company, provider=shiprocket, is_default=True)
        config.set_credentials({'email': 'ops@acme.test', 'password': 'secret'})
        config.save()

        with mock.patch('requests.Session.request', side_effect=requests.Timeout('read timed out')):
            shipment_number = ShipmentReconciler.create_shipment(self.order_number)

        shipment = Shipment.objects.get(shipment_number=shipment_number)
        self.assertEqual(shipment.shipment_status, ShipmentStatus.FAILED)
        self.assertFalse(shipment.failure_detail['retryable'])
        self.assertTrue(shipment.failure_detail['transient'])
        self.assertIsNone(shipment.failure_detail['status_code'])

    def test_cancellation_during_tracking_poll_is_kept(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        fetch_tracking = MockShippingProvider.fetch_tracking

        def cancelled_while_polling(provider, reference):
            result = fetch_tracking(provider, reference)
            Shipment.objects.filter(shipment_number=shipment_number).update(
                shipment_status=ShipmentStatus.CANCELLED
            )
            return result

        with mock.patch.object(MockShippingProvider, 'fetch_tracking', autospec=True,
                               side_effect=cancelled_while_polling):
            outcome = ShipmentReconciler.reconcile_tracking(shipment_number)

        self.assertEqual(outcome['status'], ShipmentStatus.CANCELLED)
        self.assertFalse(outcome['changed'])
        shipment = Shipment.objects.get(shipment_number=shipment_number)
        self.assertEqual(shipment.carrier_status, 'NEW')
        self.assertEqual(shipment.events.count(), 1)

    def test_carrier_refuses_cancellation(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        ShipmentReconciler.reconcile_tracking(shipment_number)
        shipment = Shipment.objects.get(shipment_number=shipment_number)
        mock_provider._shipments[shipment.provider_reference]['status'] = 'DELIVERED'

        with self.assertRaises(StateConflictException) as ctx:
            ShipmentReconciler.cancel_shipment(shipment_number)

        self.assertEqual(ctx.exception.code, 'CANCEL_REFUSED')
        shipment.refresh_from_db()
        self.assertEqual(shipment.shipment_status, ShipmentStatus.IN_TRANSIT)

    def test_chargeable_weight_uses_volumetric_weight(self):
        order_number = self.submit(('SHOES-01', '9', 1))[0]

        shipment_number = ShipmentReconciler.create_shipment(order_number)

        self.assertEqual(
            Shipment.objects.get(shipment_number=shipment_number).chargeable_weight, Decimal('2.625')
        )

    def test_serviceability(self):
        result = ShipmentReconciler.check_serviceability('ACME', '560058', '560001', Decimal('1'))
        self.assertTrue(result.serviceable)
        self.assertEqual([c.courier_code for c in result.couriers], ['MOCK1', 'MOCK2', 'MOCK3'])

        result = ShipmentReconciler.check_serviceability('ACME', '560058', '999999', Decimal('1'))
        self.assertFalse(result.serviceable)
        self.assertEqual(result.couriers, [])


class ManualShipmentTest(ShippingTestCase):

    def setUp(self):
        super().setUp()
        set_policy(self.company, workflow=False)
        self.manual_order = self.submit(('TROUSER-01', '34', 1))[0]
        self.shipment_number = ShipmentReconciler.create_manual_shipment(
            self.manual_order, ' DTDC12345 ', 'DTDC', actor=self.vendor_user_a
        )

    def test_manual_shipment_is_not_reconciled(self):
        shipment = Shipment.objects.get(shipment_number=self.shipment_number)
        self.assertEqual(shipment.tracking_number, 'DTDC12345')
        self.assertIsNone(shipment.provider_id)

        with self.assertRaises(StateConflictException) as ctx:
            ShipmentReconciler.reconcile_tracking(self.shipment_number)
        self.assertEqual(ctx.exception.code, 'MANUAL_SHIPMENT')

    def test_manual_status_moves_forward_only(self):
        ShipmentReconciler.update_manual_status(self.shipment_number, ShipmentStatus.IN_TRANSIT)

        with self.assertRaises(StateConflictException):
            ShipmentReconciler.update_manual_status(self.shipment_number, ShipmentStatus.PICKED_UP)

        ShipmentReconciler.update_manual_status(self.shipment_number, ShipmentStatus.DELIVERED)
        order = Order.objects.get(order_number=self.manual_order)
        self.assertEqual(order.pr_status, PRStatus.FULFILLED)

    def test_legacy_tracking_number_is_read_on_load(self):
        Shipment.objects.filter(shipment_number=self.shipment_number).update(
            tracking_number='',
            legacy_tracking_fields={'trackingNumber': 'OLD-REF', 'courierAwbNumber': 'OLD-AWB'},
        )

        shipment = Shipment.objects.get(shipment_number=self.shipment_number)

        self.assertEqual(shipment.tracking_number, 'OLD-AWB')


class ShipmentWorkflowTest(TestCase):

    def test_status_never_moves_backwards(self):
        self.assertTrue(ShipmentWorkflow.can_advance(ShipmentStatus.CREATED, ShipmentStatus.IN_TRANSIT))
        self.assertTrue(ShipmentWorkflow.can_advance(ShipmentStatus.CREATED, ShipmentStatus.DELIVERED))
        self.assertTrue(ShipmentWorkflow.can_advance(ShipmentStatus.IN_TRANSIT, ShipmentStatus.FAILED))
        self.assertFalse(ShipmentWorkflow.can_advance(ShipmentStatus.IN_TRANSIT, ShipmentStatus.PICKED_UP))
        self.assertFalse(ShipmentWorkflow.can_advance(ShipmentStatus.IN_TRANSIT, ShipmentStatus.CREATED))
        self.assertFalse(ShipmentWorkflow.can_advance(ShipmentStatus.DELIVERED, ShipmentStatus.CANCELLED))
        self.assertFalse(ShipmentWorkflow.can_advance(ShipmentStatus.CREATED, ShipmentStatus.CREATED))
        self.assertFalse(ShipmentWorkflow.can_advance(ShipmentStatus.CREATED, None))


class ReconcilePendingTest(ShippingTestCase):

    def test_batch_reconciliation(self):
        order_numbers = self.submit(('SHIRT-01', 'S', 1), ('SHOES-01', '8', 1))
        for order_number in order_numbers:
            ShipmentReconciler.create_shipment(order_number)

        self.assertEqual(ShipmentReconciler.reconcile_pending(), {'checked': 2, 'updated': 2, 'failed': 0})

        mock_provider.reset_mock_provider()
        self.assertEqual(ShipmentReconciler.reconcile_pending(), {'checked': 2, 'updated': 0, 'failed': 2})

    def test_management_command(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        out = StringIO()

        call_command('reconcile_shipments', stdout=out)
        self.assertIn('Checked 1 shipments: 1 updated, 0 failed', out.getvalue())

        call_command('reconcile_shipments', shipment=shipment_number, stdout=out)
        self.assertIn(f'{shipment_number}: IN_TRANSIT', out.getvalue())

        with self.assertRaises(CommandError):
            call_command('reconcile_shipments', shipment='SHP-UNKNOWN', stdout=out)


class ShipmentApiTest(ShippingTestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_vendor_books_shipment(self):
        self.client.force_authenticate(self.vendor_user_a)

        response = self.client.post('/api/shipments/', {'order_number': self.order_number}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['data']['shipment_status'], ShipmentStatus.CREATED)
        self.assertEqual(response.data['data']['order'], self.order_number)

    def test_failed_booking_is_returned_as_failed_shipment(self):
        self.configure({'fail_create': True})
        self.client.force_authenticate(self.vendor_user_a)

        response = self.client.post('/api/shipments/', {'order_number': self.order_number}, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['shipment_status'], ShipmentStatus.FAILED)

    def test_other_vendor_cannot_ship(self):
        beta_user = create_user('beta', role='VENDOR', vendor=self.vendor_b)
        self.client.force_authenticate(beta_user)

        response = self.client.post('/api/shipments/', {'order_number': self.order_number}, format='json')

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error']['code'], 'APPROVAL_SCOPE')

    def test_employee_cannot_ship(self):
        self.client.force_authenticate(self.employee)

        response = self.client.post('/api/shipments/', {'order_number': self.order_number}, format='json')

        self.assertEqual(response.status_code, 403)

    def test_without_provider_caller_is_told_to_ship_manually(self):
        CompanyShippingProvider.objects.all().delete()
        self.client.force_authenticate(self.company_admin)

        response = self.client.post('/api/shipments/', {'order_number': self.order_number}, format='json')
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['error']['code'], 'NO_SHIPPING_PROVIDER')

        response = self.client.post('/api/shipments/manual/', {
            'order_number': self.order_number, 'tracking_number': 'BD-778', 'courier_name': 'Blue Dart',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['shipment_mode'], 'MANUAL')

    def test_reconcile_endpoint(self):
        shipment_number = ShipmentReconciler.create_shipment(self.order_number)
        self.client.force_authenticate(self.company_admin)

        response = self.client.post(f'/api/shipments/{shipment_number}/reconcile/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], ShipmentStatus.IN_TRANSIT)

    def test_serviceability_endpoint(self):
        self.client.force_authenticate(self.company_admin)

        response = self.client.post('/api/shipments/serviceability/', {
            'from_pincode': '560058', 'to_pincode': '000000', 'weight': '1.5',
        }, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.data['data']['serviceable'])

    def test_employee_sees_own_shipments(self):
        ShipmentReconciler.create_shipment(self.order_number)
        self.client.force_authenticate(self.employee)

        response = self.client.get('/api/shipments/')

        self.assertEqual(response.data['count'], 1)
