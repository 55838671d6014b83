"""
Catalog Adapter for uniform orders.

Provides the order pipeline with current product pricing, vendor
resolution and company approval policy, without the pipeline ever
writing to the catalog.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from companies.models import ApprovalPolicySnapshot


class CatalogAdapterInterface(ABC):
    """
    Interface for the product/vendor/company catalog.

    This abstract base class defines the read-only contract the splitter
    and order service need.
    """

    @abstractmethod
    def get_product(self, product_code: str):
        """
        Return the active product for ``product_code``.

        Raises:
            LookupError: If the product does not exist or is inactive
        """
        pass

    @abstractmethod
    def get_current_price(self, product_code: str) -> Decimal:
        """Return the authoritative current unit price for a product."""
        pass

    @abstractmethod
    def resolve_vendor(self, product_code: str, company_code: str) -> Optional[str]:
        """
        Resolve the vendor supplying a product to a company.

        Returns:
            The vendor_code, or None when no active vendor supplies it
        """
        pass

    @abstractmethod
    def get_approval_policy(self, company_code: str) -> ApprovalPolicySnapshot:
        """Return the company's approval policy as an immutable snapshot."""
        pass


class DjangoCatalogAdapter(CatalogAdapterInterface):
    """Catalog adapter backed by the products, vendor_management and companies apps."""

    def get_product(self, product_code: str):
        from products.models import Product

        try:
            return Product.objects.get(product_code=product_code, is_active=True)
        except Product.DoesNotExist:
            raise LookupError(f"Product {product_code} not found")

    def get_current_price(self, product_code: str) -> Decimal:
        return self.get_product(product_code).price

    def resolve_vendor(self, product_code: str, company_code: str) -> Optional[str]:
        from vendor_management.models import VendorProduct

        # Preferred vendors first, then lowest vendor code for a stable choice
        link = (
            VendorProduct.objects
            .filter(
                product_id=product_code,
                company_id=company_code,
                is_active=True,
                product__is_active=True,
                vendor__status='ACTIVE',
            )
            .order_by('-vendor__is_preferred', 'vendor__vendor_code')
            .first()
        )
        return link.vendor_id if link else None

    def get_approval_policy(self, company_code: str) -> ApprovalPolicySnapshot:
        from companies.models import Company

        return Company.objects.get(company_code=company_code).get_approval_policy()


# Global adapter instance - can be swapped in tests or for another catalog
_catalog_adapter: CatalogAdapterInterface = DjangoCatalogAdapter()


def get_catalog_adapter() -> CatalogAdapterInterface:
    """Get the configured catalog adapter instance."""
    return _catalog_adapter


def set_catalog_adapter(adapter: CatalogAdapterInterface) -> None:
    """Set a custom catalog adapter."""
    global _catalog_adapter
    _catalog_adapter = adapter


def reset_catalog_adapter() -> None:
    """Restore the database-backed adapter."""
    global _catalog_adapter
    _catalog_adapter = DjangoCatalogAdapter()
