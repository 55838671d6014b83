"""
Tests for purchase order issuance and goods receipt acknowledgement.
"""

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from order_fulfillment.exceptions import ApprovalScopeException, StateConflictException, ValidationException
from order_fulfillment.models import Order, PRStatus
from order_fulfillment.services import ApprovalService, OrderService
from order_fulfillment.tests.fixtures import build_catalog, cart, create_user
from ..models import GoodsReceiptNote, PurchaseOrder
from ..services import PurchaseOrderService, ReceiptService


class ReceiptServiceTest(TestCase):

    def setUp(self):
        build_catalog(self)
        _, sub_numbers = OrderService.submit_order(self.employee, cart(('SHIRT-01', 'M', 2)))
        self.order = Order.objects.get(order_number=sub_numbers[0])
        self.purchase_order = PurchaseOrder.objects.get(order=self.order)

    def test_issue_is_idempotent(self):
        po_number = PurchaseOrderService.issue_purchase_order(self.order.order_number)

        self.assertEqual(po_number, self.purchase_order.po_number)
        self.assertEqual(PurchaseOrder.objects.filter(order=self.order).count(), 1)

    def test_purchase_order_number_follows_sub_order(self):
        _, sub_numbers = OrderService.submit_order(
            self.employee, cart(('TROUSER-01', '32', 1), ('SHOES-01', '9', 1))
        )

        po_numbers = [PurchaseOrder.objects.get(order_id=number).po_number for number in sub_numbers]
        self.assertEqual(po_numbers, [f'PO-{number}' for number in sub_numbers])
        self.assertEqual(self.purchase_order.po_number, f'PO-{self.order.order_number}')

    def test_acknowledge_is_idempotent(self):
        first = ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.company_admin)
        second = ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.company_admin)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(second.status, 'APPROVED')
        self.assertEqual(second.acknowledged_by_id, self.company_admin.employee_code)
        self.assertEqual(GoodsReceiptNote.objects.count(), 1)

    def test_acknowledged_but_unapproved_grn_is_repaired(self):
        GoodsReceiptNote.objects.create(
            purchase_order=self.purchase_order,
            acknowledged=True,
            acknowledged_by=self.company_admin,
            acknowledged_at=timezone.now(),
        )

        with self.assertLogs('vendor_management.services.receipt_service', level='WARNING'):
            grn = ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.company_admin)

        self.assertEqual(grn.status, 'APPROVED')
        self.order.refresh_from_db()
        self.assertEqual(self.order.pr_status, PRStatus.FULFILLED)

    def test_employee_of_ordering_company_may_acknowledge(self):
        grn = ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.employee)

        self.assertTrue(grn.acknowledged)

    def test_other_company_cannot_acknowledge(self):
        with self.assertRaises(ApprovalScopeException):
            ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.other_admin)

    def test_unknown_purchase_order(self):
        with self.assertRaises(ValidationException):
            ReceiptService.acknowledge_receipt('PO999999', self.company_admin)

    def test_cancelled_purchase_order_cannot_be_received(self):
        ApprovalService.reject(self.order.order_number, self.company_admin, 'Budget exceeded')

        with self.assertRaises(StateConflictException):
            ReceiptService.acknowledge_receipt(self.purchase_order.po_number, self.company_admin)
        with self.assertRaises(StateConflictException):
            ReceiptService.raise_grn(self.purchase_order.po_number, self.vendor_user_a)

    def test_only_the_supplying_vendor_raises_grn(self):
        beta_user = create_user('beta', role='VENDOR', vendor=self.vendor_b)

        with self.assertRaises(ApprovalScopeException):
            ReceiptService.raise_grn(self.purchase_order.po_number, beta_user)

        grn = ReceiptService.raise_grn(self.purchase_order.po_number, self.vendor_user_a)
        again = ReceiptService.raise_grn(self.purchase_order.po_number, self.vendor_user_a)
        self.assertEqual(grn.pk, again.pk)
        self.assertEqual(grn.grn_number, f'GRN-{self.purchase_order.po_number}')


class PurchaseOrderApiTest(TestCase):

    def setUp(self):
        build_catalog(self)
        _, sub_numbers = OrderService.submit_order(self.employee, cart(('SHIRT-01', 'M', 1)))
        self.purchase_order = PurchaseOrder.objects.get(order_id=sub_numbers[0])
        self.client = APIClient()

    def test_vendor_sees_only_own_purchase_orders(self):
        beta_user = create_user('beta', role='VENDOR', vendor=self.vendor_b)
        self.client.force_authenticate(beta_user)

        response = self.client.get('/api/purchase-orders/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['count'], 0)

    def test_raise_and_acknowledge(self):
        po_url = f'/api/purchase-orders/{self.purchase_order.po_number}'

        self.client.force_authenticate(self.vendor_user_a)
        response = self.client.post(f'{po_url}/raise-grn/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'RAISED')

        self.client.force_authenticate(self.company_admin)
        response = self.client.post(f'{po_url}/acknowledge/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], 'APPROVED')

        response = self.client.get(f'{po_url}/')
        self.assertEqual(response.data['status'], 'COMPLETED')
        self.assertEqual(response.data['grn']['grn_number'], f'GRN-{self.purchase_order.po_number}')
