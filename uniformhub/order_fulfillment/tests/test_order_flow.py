"""
Tests for the complete uniform order flow, through the services and the API.
"""

from django.test import TestCase
from rest_framework.test import APIClient

from vendor_management.models import PurchaseOrder
from vendor_management.services import ReceiptService
from ..models import AuditLog, Order, OrderStatus, PRStatus
from ..services import ApprovalService, OrderService
from .fixtures import build_catalog, cart, set_policy


class OrderFulfillmentFlowTest(TestCase):
    """Cart to fulfilled sub-order."""

    def setUp(self):
        build_catalog(self)

    def test_complete_flow_with_two_gates(self):
        set_policy(self.company, site_admin=True, company_admin=True)

        # 1. Submit cart
        order, sub_numbers = OrderService.submit_order(
            self.employee, cart(('SHIRT-01', 'M', 2), ('SHOES-01', '9', 1))
        )
        self.assertEqual(len(sub_numbers), 2)
        self.assertEqual(order.status, OrderStatus.SPLIT)
        sub_number = sub_numbers[0]

        # 2. Walk the gates
        ApprovalService.approve(sub_number, self.site_admin, pr_number='PR-2024-0001')
        ApprovalService.approve(sub_number, self.company_admin)

        sub_order = Order.objects.get(order_number=sub_number)
        self.assertEqual(sub_order.pr_status, PRStatus.LINKED_TO_PO)
        self.assertEqual(sub_order.status, OrderStatus.AWAITING_FULFILMENT)
        purchase_order = PurchaseOrder.objects.get(order=sub_order)
        self.assertEqual(purchase_order.vendor_id, 'VA')
        self.assertEqual(purchase_order.total_amount, sub_order.total_amount)

        # 3. Vendor raises the GRN, company acknowledges receipt
        grn = ReceiptService.raise_grn(purchase_order.po_number, self.vendor_user_a)
        self.assertEqual(grn.status, 'RAISED')
        grn = ReceiptService.acknowledge_receipt(purchase_order.po_number, self.company_admin)
        self.assertEqual(grn.status, 'APPROVED')

        sub_order.refresh_from_db()
        purchase_order.refresh_from_db()
        self.assertEqual(purchase_order.status, 'COMPLETED')
        self.assertEqual(sub_order.pr_status, PRStatus.FULFILLED)
        self.assertEqual(sub_order.status, OrderStatus.FULFILLED)

        # The sibling is untouched
        sibling = Order.objects.get(order_number=sub_numbers[1])
        self.assertEqual(sibling.pr_status, PRStatus.PENDING_SITE_ADMIN_APPROVAL)

    def test_every_recorded_transition_is_an_allowed_edge(self):
        from ..services import PRWorkflow

        set_policy(self.company, site_admin=True, company_admin=True)
        _, sub_numbers = OrderService.submit_order(self.employee, cart(('SHIRT-01', 'M', 1)))
        ApprovalService.approve(sub_numbers[0], self.site_admin)
        ApprovalService.approve(sub_numbers[0], self.company_admin)

        sub_order = Order.objects.get(order_number=sub_numbers[0])
        transitions = AuditLog.transitions_for(sub_order)
        self.assertEqual(len(transitions), 5)
        for old, new in transitions:
            self.assertIn(new, PRWorkflow.ALLOWED_TRANSITIONS[old])


class OrderApiTest(TestCase):
    """The order endpoints and their response envelope."""

    def setUp(self):
        build_catalog(self)
        set_policy(self.company, site_admin=True)
        self.client = APIClient()

    def _submit(self):
        self.client.force_authenticate(self.employee)
        response = self.client.post('/api/orders/', {
            'items': [
                {'product_code': 'SHIRT-01', 'size': 'M', 'quantity': 2},
                {'product_code': 'SHOES-01', 'size': '9', 'quantity': 1},
            ],
            'notes': 'Joining kit',
        }, format='json')
        self.assertEqual(response.status_code, 201)
        return response.data['data']

    def test_submit_cart(self):
        data = self._submit()

        self.assertEqual(data['order']['status'], OrderStatus.SPLIT)
        self.assertEqual(len(data['sub_orders']), 2)

    def test_submit_without_vendor_returns_error_envelope(self):
        self.client.force_authenticate(self.employee)
        self.trouser.vendor_links.all().delete()

        response = self.client.post('/api/orders/', {
            'items': [{'product_code': 'TROUSER-01', 'size': '32', 'quantity': 1}],
        }, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['error']['code'], 'NO_ELIGIBLE_VENDOR')

    def test_split_after_product_withdrawn_returns_error_envelope(self):
        self.client.force_authenticate(self.employee)
        response = self.client.post('/api/orders/?split=false', {
            'items': [{'product_code': 'SHIRT-01', 'size': 'M', 'quantity': 1}],
        }, format='json')
        order_number = response.data['data']['order']['order_number']
        self.shirt.is_active = False
        self.shirt.save()

        response = self.client.post(f'/api/orders/{order_number}/split/', {}, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error']['code'], 'NO_ELIGIBLE_VENDOR')

    def test_site_admin_sees_and_approves_pending_order(self):
        sub_number = self._submit()['sub_orders'][0]

        self.client.force_authenticate(self.site_admin)
        response = self.client.get('/api/orders/pending-approvals/')
        self.assertEqual(response.status_code, 200)
        listed = [row['order_number'] for row in response.data['results']]
        self.assertEqual(len(listed), 2)
        self.assertIn(sub_number, listed)

        response = self.client.post(f'/api/orders/{sub_number}/approve/', {'pr_number': 'PR-API-1'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['pr_status'], PRStatus.LINKED_TO_PO)
        self.assertEqual(response.data['data']['pr_number'], 'PR-API-1')

    def test_approve_twice_is_a_conflict(self):
        sub_number = self._submit()['sub_orders'][0]
        self.client.force_authenticate(self.site_admin)
        self.client.post(f'/api/orders/{sub_number}/approve/', {}, format='json')

        response = self.client.post(f'/api/orders/{sub_number}/approve/', {}, format='json')

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error']['code'], 'STALE_APPROVAL')

    def test_employee_cannot_approve(self):
        sub_number = self._submit()['sub_orders'][0]

        response = self.client.post(f'/api/orders/{sub_number}/approve/', {}, format='json')

        self.assertEqual(response.status_code, 403)

    def test_other_company_admin_gets_scope_error(self):
        sub_number = self._submit()['sub_orders'][0]
        self.client.force_authenticate(self.other_admin)

        response = self.client.post(
            f'/api/orders/{sub_number}/reject/', {'reason': 'Not ours', 'reason_code': 'OTHER'}, format='json'
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error']['code'], 'APPROVAL_SCOPE')

    def test_reject(self):
        sub_number = self._submit()['sub_orders'][0]
        self.client.force_authenticate(self.site_admin)

        response = self.client.post(
            f'/api/orders/{sub_number}/reject/',
            {'reason': 'Size chart mismatch', 'reason_code': 'INCORRECT_DETAILS'},
            format='json',
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['pr_status'], PRStatus.REJECTED)

    def test_employee_only_lists_own_orders(self):
        self._submit()
        OrderService.submit_order(self.site_admin, cart(('SHIRT-01', 'L', 1)))

        self.client.force_authenticate(self.employee)
        response = self.client.get('/api/orders/')

        employees = {row['employee'] for row in response.data['results']}
        self.assertEqual(employees, {self.employee.employee_code})
