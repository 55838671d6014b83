from django.contrib import admin
from .models import ShippingProvider, CompanyShippingProvider, Shipment, ShipmentStatusEvent, ShipmentApiLog


@admin.register(ShippingProvider)
class ShippingProviderAdmin(admin.ModelAdmin):
    list_display = ['provider_code', 'name', 'api_base_url', 'is_active']
    list_filter = ['is_active']


@admin.register(CompanyShippingProvider)
class CompanyShippingProviderAdmin(admin.ModelAdmin):
    list_display = ['company', 'provider', 'is_enabled', 'is_default', 'updated_at']
    list_filter = ['is_enabled', 'is_default', 'provider']
    exclude = ['encrypted_credentials']


class ShipmentStatusEventInline(admin.TabularInline):
    model = ShipmentStatusEvent
    extra = 0
    readonly_fields = ['from_status', 'to_status', 'old_tracking_number', 'new_tracking_number',
                       'carrier_status', 'source', 'created_at']


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['shipment_number', 'order', 'attempt', 'shipment_mode', 'provider',
                    'tracking_number', 'shipment_status', 'last_synced_at']
    list_filter = ['shipment_mode', 'shipment_status', 'provider']
    search_fields = ['shipment_number', 'tracking_number', 'order__order_number', 'pr_number']
    readonly_fields = ['shipment_number', 'idempotency_key', 'raw_provider_response', 'legacy_tracking_fields']
    inlines = [ShipmentStatusEventInline]


@admin.register(ShipmentApiLog)
class ShipmentApiLogAdmin(admin.ModelAdmin):
    list_display = ['operation', 'provider', 'company', 'entity_ref', 'success', 'http_status',
                    'latency_ms', 'created_at']
    list_filter = ['operation', 'success', 'provider']
    search_fields = ['entity_ref', 'error_code']
