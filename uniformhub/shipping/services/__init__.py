from .api_log import call_provider
from .reconciler import ShipmentReconciler, ShipmentWorkflow

__all__ = ['call_provider', 'ShipmentReconciler', 'ShipmentWorkflow']
