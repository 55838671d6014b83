"""
Shipment serializers.
"""

from decimal import Decimal

from rest_framework import serializers

from .models import Shipment, ShipmentStatus, ShipmentStatusEvent, ShippingProvider, CompanyShippingProvider


class ShipmentStatusEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShipmentStatusEvent
        fields = [
            'from_status', 'to_status', 'old_tracking_number', 'new_tracking_number',
            'carrier_status', 'source', 'created_at',
        ]
        read_only_fields = fields


class ShipmentSerializer(serializers.ModelSerializer):
    """Serializer for shipment details."""

    events = ShipmentStatusEventSerializer(many=True, read_only=True)
    is_terminal = serializers.BooleanField(read_only=True)

    class Meta:
        model = Shipment
        fields = [
            'shipment_number', 'order', 'pr_number', 'vendor', 'attempt', 'shipment_mode',
            'provider', 'provider_reference', 'tracking_number', 'tracking_url', 'courier_name',
            'shipment_status', 'carrier_status', 'is_terminal', 'chargeable_weight',
            'failure_code', 'failure_detail', 'last_synced_at', 'delivered_at',
            'created_by', 'created_at', 'updated_at', 'events',
        ]
        read_only_fields = fields


class ShipmentListSerializer(serializers.ModelSerializer):
    """Serializer for shipment listing."""

    class Meta:
        model = Shipment
        fields = [
            'shipment_number', 'order', 'vendor', 'shipment_mode', 'provider',
            'tracking_number', 'courier_name', 'shipment_status', 'last_synced_at', 'created_at',
        ]


class ShipmentCreateSerializer(serializers.Serializer):
    order_number = serializers.CharField(max_length=60)
    provider_code = serializers.CharField(max_length=30, required=False, allow_blank=True)
    courier_code = serializers.CharField(max_length=50, required=False, allow_blank=True)


class ManualShipmentSerializer(serializers.Serializer):
    order_number = serializers.CharField(max_length=60)
    tracking_number = serializers.CharField(max_length=100)
    courier_name = serializers.CharField(max_length=100)
    tracking_url = serializers.URLField(max_length=500, required=False, allow_blank=True, default='')


class ManualStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ShipmentStatus.choices)


class CancelShipmentSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ServiceabilitySerializer(serializers.Serializer):
    company_code = serializers.CharField(max_length=20, required=False)
    from_pincode = serializers.CharField(max_length=10)
    to_pincode = serializers.CharField(max_length=10)
    weight = serializers.DecimalField(max_digits=8, decimal_places=3, min_value=Decimal('0.001'))
    provider_code = serializers.CharField(max_length=30, required=False, allow_blank=True)


class ShippingProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ShippingProvider
        fields = ['provider_code', 'name', 'api_base_url', 'is_active']


class CompanyShippingProviderSerializer(serializers.ModelSerializer):
    """Credentials are write-only; they are encrypted before storage and never returned."""

    credentials = serializers.DictField(write_only=True, required=False)
    has_credentials = serializers.SerializerMethodField()

    class Meta:
        model = CompanyShippingProvider
        fields = ['id', 'company', 'provider', 'is_enabled', 'is_default', 'credentials', 'has_credentials',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def get_has_credentials(self, obj):
        return bool(obj.encrypted_credentials)

    def _save_with_credentials(self, instance, credentials):
        if credentials is not None:
            instance.set_credentials(credentials)
            instance.save(update_fields=['encrypted_credentials', 'updated_at'])
        return instance

    def create(self, validated_data):
        credentials = validated_data.pop('credentials', None)
        return self._save_with_credentials(super().create(validated_data), credentials)

    def update(self, instance, validated_data):
        credentials = validated_data.pop('credentials', None)
        return self._save_with_credentials(super().update(instance, validated_data), credentials)
