"""
Uniform order services
"""

from .workflow import (
    OrderWorkflow, PRWorkflow, validate_order_workflow, validate_pr_workflow,
    transition_pr_status, transition_order_status,
)
from .order_service import OrderService
from .approval_service import ApprovalService, initial_pr_status
from .splitter import OrderSplitter

__all__ = [
    # Workflow
    'OrderWorkflow', 'PRWorkflow', 'validate_order_workflow', 'validate_pr_workflow',
    'transition_pr_status', 'transition_order_status',

    # Services
    'OrderService', 'ApprovalService', 'OrderSplitter', 'initial_pr_status',
]
