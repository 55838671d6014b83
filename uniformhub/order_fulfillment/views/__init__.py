"""
Uniform order views
"""

from .order_views import OrderViewSet

__all__ = [
    'OrderViewSet',
]
