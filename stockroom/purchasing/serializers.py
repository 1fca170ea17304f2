from decimal import Decimal

from rest_framework import serializers

from stockroom.core.whitelist import WhitelistedModelSerializer
from .models import ProductPurchase


class ProductPurchaseSerializer(WhitelistedModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    supplier_name = serializers.CharField(source='supplier.name', read_only=True, default=None)
    available_quantity = serializers.DecimalField(max_digits=10, decimal_places=3, required=False, min_value=Decimal('0'))
    received_quantity = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0'))
    line_total = serializers.SerializerMethodField()

    class Meta:
        model = ProductPurchase
        fields = [
            'id', 'product', 'product_name', 'receipt', 'invoice', 'purchase', 'supplier', 'supplier_name',
            'batch_number', 'expiry_date', 'received_quantity', 'available_quantity',
            'purchase_price', 'selling_price', 'unit_purchase_price', 'unit_selling_price',
            'line_total', 'created_by', 'updated_by', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']
        extra_kwargs = {
            'purchase_price': {'min_value': Decimal('0')},
            'selling_price': {'min_value': Decimal('0')},
            'unit_purchase_price': {'min_value': Decimal('0')},
            'unit_selling_price': {'min_value': Decimal('0')},
        }

    def get_line_total(self, obj):
        return str(obj.line_total())

    def validate(self, attrs):
        """Keep available quantity within received quantity and never let it grow"""
        instance = self.instance
        received = attrs.get('received_quantity', instance.received_quantity if instance else None)
        available = attrs.get('available_quantity')

        if instance is None:
            if available is None:
                attrs['available_quantity'] = received
                available = received
        elif available is not None and available > instance.available_quantity:
            raise serializers.ValidationError({
                'available_quantity': 'Available quantity can only decrease.'
            })
        elif available is None:
            available = instance.available_quantity

        if received is not None and available is not None and available > received:
            raise serializers.ValidationError({
                'available_quantity': 'Available quantity cannot exceed received quantity.'
            })
        return attrs


class ConsumeSerializer(serializers.Serializer):
    quantity = serializers.DecimalField(max_digits=10, decimal_places=3, min_value=Decimal('0.001'))
