from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.db.models import F
from django.utils import timezone

from stockroom.catalog.models import Product
from stockroom.core.exceptions import InsufficientStock


class Supplier(models.Model):
    """Suppliers"""
    name = models.CharField(max_length=200)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'suppliers'


class Purchase(models.Model):
    """Purchase order placed with a supplier"""
    purchase_number = models.CharField(max_length=100, unique=True, blank=True, null=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name='purchases')
    purchase_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.purchase_number or f"Purchase-{self.id}"

    class Meta:
        db_table = 'purchases'
        ordering = ['-purchase_date', '-created_at']


class Receipt(models.Model):
    """Goods receipt recorded against a purchase"""
    receipt_number = models.CharField(max_length=100, unique=True)
    purchase = models.ForeignKey(Purchase, on_delete=models.SET_NULL, null=True, blank=True, related_name='receipts')
    received_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.receipt_number

    class Meta:
        db_table = 'receipts'


class Invoice(models.Model):
    """Supplier invoice (bill)"""
    invoice_number = models.CharField(max_length=100)
    supplier = models.ForeignKey(Supplier, on_delete=models.CASCADE, related_name='invoices')
    invoice_date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.invoice_number

    class Meta:
        db_table = 'supplier_invoices'
        unique_together = [('supplier', 'invoice_number')]


class ProductPurchase(models.Model):
    """Received stock line: one batch of a product with its prices and remaining quantity"""
    # Relations are written through their *_id columns
    WRITABLE_FIELDS = (
        'product',
        'receipt',
        'invoice',
        'purchase',
        'supplier',
        'batch_number',
        'expiry_date',
        'received_quantity',
        'available_quantity',
        'purchase_price',
        'selling_price',
        'unit_purchase_price',
        'unit_selling_price',
        'created_by',
        'updated_by',
    )

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='product_purchases')
    receipt = models.ForeignKey(Receipt, on_delete=models.SET_NULL, null=True, blank=True, related_name='product_purchases')
    invoice = models.ForeignKey(Invoice, on_delete=models.SET_NULL, null=True, blank=True, related_name='product_purchases')
    purchase = models.ForeignKey(Purchase, on_delete=models.SET_NULL, null=True, blank=True, related_name='product_purchases')
    supplier = models.ForeignKey(Supplier, on_delete=models.SET_NULL, null=True, blank=True, related_name='product_purchases')
    batch_number = models.CharField(max_length=100, blank=True, null=True, db_index=True)
    expiry_date = models.DateField(null=True, blank=True)
    received_quantity = models.DecimalField(max_digits=10, decimal_places=3)
    available_quantity = models.DecimalField(max_digits=10, decimal_places=3)
    purchase_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    selling_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    unit_purchase_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    unit_selling_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_product_purchases')
    updated_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='updated_product_purchases')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product.name} - {self.batch_number or 'NO-BATCH'}"

    def save(self, *args, **kwargs):
        # New lines start with everything they received still available
        if self._state.adding and self.available_quantity is None:
            self.available_quantity = self.received_quantity
        super().save(*args, **kwargs)

    def clean(self):
        errors = {}
        if self.received_quantity is not None and self.received_quantity < 0:
            errors['received_quantity'] = 'Received quantity cannot be negative.'
        if self.available_quantity is not None:
            if self.available_quantity < 0:
                errors['available_quantity'] = 'Available quantity cannot be negative.'
            elif self.received_quantity is not None and self.available_quantity > self.received_quantity:
                errors['available_quantity'] = 'Available quantity cannot exceed received quantity.'
            elif self.pk:
                stored = ProductPurchase.objects.filter(pk=self.pk).values_list('available_quantity', flat=True).first()
                if stored is not None and self.available_quantity > stored:
                    errors['available_quantity'] = 'Available quantity can only decrease.'
        if errors:
            raise ValidationError(errors)

    def line_total(self):
        """Purchase value of everything received on this line"""
        return self.received_quantity * self.unit_purchase_price

    def is_expired(self, on=None):
        if not self.expiry_date:
            return False
        return self.expiry_date < (on or timezone.localdate())

    def consume(self, quantity, user=None):
        """Take ``quantity`` out of available stock, atomically per row"""
        quantity = Decimal(str(quantity))
        if quantity <= 0:
            raise ValueError('Quantity to consume must be positive.')

        with transaction.atomic():
            locked = ProductPurchase.objects.select_for_update().get(pk=self.pk)
            if quantity > locked.available_quantity:
                raise InsufficientStock(quantity, locked.available_quantity)
            changes = {'available_quantity': F('available_quantity') - quantity, 'updated_at': timezone.now()}
            if user is not None:
                changes['updated_by'] = user
            ProductPurchase.objects.filter(pk=self.pk).update(**changes)

        self.refresh_from_db(fields=['available_quantity', 'updated_by', 'updated_at'])
        return self.available_quantity

    class Meta:
        db_table = 'product_purchases'
        ordering = ['-created_at', '-id']
        indexes = [
            models.Index(fields=['product', 'expiry_date'], name='idx_pp_product_expiry'),
            models.Index(fields=['supplier'], name='idx_pp_supplier'),
        ]
