from django.contrib import admin
from .models import Supplier, Purchase, Receipt, Invoice, ProductPurchase


@admin.register(Supplier)
class SupplierAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'email', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'phone', 'email']
    ordering = ['name']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    list_display = ['purchase_number', 'supplier', 'purchase_date', 'created_at']
    list_filter = ['supplier', 'purchase_date']
    search_fields = ['purchase_number']
    ordering = ['-purchase_date', '-created_at']


@admin.register(Receipt)
class ReceiptAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'purchase', 'received_at']
    search_fields = ['receipt_number']
    ordering = ['-received_at']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'supplier', 'invoice_date']
    list_filter = ['supplier']
    search_fields = ['invoice_number']
    ordering = ['-invoice_date']


@admin.register(ProductPurchase)
class ProductPurchaseAdmin(admin.ModelAdmin):
    list_display = ['product', 'batch_number', 'supplier', 'received_quantity', 'available_quantity', 'unit_purchase_price', 'unit_selling_price', 'expiry_date']
    list_filter = ['supplier', 'expiry_date', 'created_at']
    search_fields = ['batch_number', 'product__name', 'product__sku']
    ordering = ['-created_at']
    readonly_fields = ['created_by', 'updated_by', 'created_at', 'updated_at']

    def get_readonly_fields(self, request, obj=None):
        # Stock on an existing line only goes down through consumption
        if obj is not None:
            return self.readonly_fields + ['available_quantity']
        return self.readonly_fields
