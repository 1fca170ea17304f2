import django_filters

from .models import ProductPurchase


class ProductPurchaseFilter(django_filters.FilterSet):
    """Query filters for received stock lines"""

    product = django_filters.NumberFilter(field_name='product_id', lookup_expr='exact')
    supplier = django_filters.NumberFilter(field_name='supplier_id', lookup_expr='exact')
    purchase = django_filters.NumberFilter(field_name='purchase_id', lookup_expr='exact')
    batch_number = django_filters.CharFilter(field_name='batch_number', lookup_expr='iexact')
    expiring_before = django_filters.DateFilter(field_name='expiry_date', lookup_expr='lt')
    in_stock = django_filters.BooleanFilter(method='filter_in_stock', label='In Stock')

    class Meta:
        model = ProductPurchase
        fields = ['product', 'supplier', 'purchase', 'batch_number', 'expiring_before', 'in_stock']

    def filter_in_stock(self, queryset, name, value):
        if value:
            return queryset.filter(available_quantity__gt=0)
        return queryset.filter(available_quantity__lte=0)
