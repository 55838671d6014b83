"""
Shared test data: one company with two locations, three vendors and a small uniform catalog.
"""

from decimal import Decimal

from django.contrib.auth import get_user_model

from companies.models import Company, Location, ApprovalPolicy
from products.models import Product
from vendor_management.models import Vendor, VendorProduct


def create_user(username, role='EMPLOYEE', company=None, location=None, vendor=None, **extra):
    defaults = {
        'email': f'{username}@example.com',
        'address': '12 MG Road',
        'city': 'Bengaluru',
        'state': 'Karnataka',
        'pincode': '560001',
        'phone': '+91 98765 43210',
    }
    defaults.update(extra)
    return get_user_model().objects.create_user(
        username=username,
        password='testpass123',
        role=role,
        company=company,
        location=location,
        vendor=vendor,
        **defaults
    )


def set_policy(company, workflow=True, site_admin=False, company_admin=False):
    ApprovalPolicy.objects.update_or_create(
        company=company,
        defaults={
            'pr_po_workflow_enabled': workflow,
            'site_admin_approval_required': site_admin,
            'company_admin_approval_required': company_admin,
        },
    )


def build_catalog(test):
    """Attach the standard catalog to a TestCase instance."""
    test.company = Company.objects.create(company_code='ACME', name='Acme Security')
    test.other_company = Company.objects.create(company_code='GLOBEX', name='Globex')
    test.location = Location.objects.create(
        location_code='ACME-BLR', company=test.company, name='Bengaluru', pincode='560001'
    )
    test.other_location = Location.objects.create(
        location_code='ACME-PNQ', company=test.company, name='Pune', pincode='411001'
    )

    test.vendor_a = Vendor.objects.create(
        name='Alpha Garments', vendor_code='VA', phone='9876500001',
        address='Plot 4, Peenya', city='Bengaluru', state='Karnataka', pincode='560058',
    )
    test.vendor_b = Vendor.objects.create(
        name='Beta Footwear', vendor_code='VB', phone='9876500002',
        address='Sector 9', city='Noida', state='Uttar Pradesh', pincode='201301',
    )
    test.vendor_c = Vendor.objects.create(
        name='Gamma Apparel', vendor_code='VC', phone='9876500003',
        address='Ring Road', city='Surat', state='Gujarat', pincode='395002',
    )

    test.shirt = Product.objects.create(
        product_code='SHIRT-01', name='Guard Shirt', category='Shirt',
        price=Decimal('450.00'), weight=Decimal('0.300'),
    )
    test.trouser = Product.objects.create(
        product_code='TROUSER-01', name='Guard Trouser', category='Trouser',
        price=Decimal('600.00'), weight=Decimal('0.500'),
    )
    test.shoes = Product.objects.create(
        product_code='SHOES-01', name='Safety Shoes', category='Shoes',
        price=Decimal('1200.00'), weight=Decimal('1.200'),
        length=Decimal('35'), width=Decimal('25'), height=Decimal('15'),
    )

    VendorProduct.objects.create(vendor=test.vendor_a, product=test.shirt, company=test.company)
    VendorProduct.objects.create(vendor=test.vendor_a, product=test.trouser, company=test.company)
    VendorProduct.objects.create(vendor=test.vendor_b, product=test.shoes, company=test.company)

    test.employee = create_user('ravi', company=test.company, location=test.location)
    test.site_admin = create_user('sita', role='SITE_ADMIN', company=test.company, location=test.location)
    test.site_admin.managed_locations.add(test.location)
    test.company_admin = create_user('kiran', role='COMPANY_ADMIN', company=test.company)
    test.other_admin = create_user('hank', role='COMPANY_ADMIN', company=test.other_company)
    test.vendor_user_a = create_user('alpha', role='VENDOR', vendor=test.vendor_a)


def cart(*lines):
    """``cart(('SHIRT-01', 'M', 2), ...)`` -> item dicts accepted by OrderService."""
    return [{'product_code': code, 'size': size, 'quantity': quantity} for code, size, quantity in lines]
