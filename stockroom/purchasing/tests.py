"""
Test suite for the Purchasing module
Tests: received stock lines, quantity invariants, stock consumption and the JSON API
"""
from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.contrib import admin
from django.test import RequestFactory, TestCase
from django.utils import timezone
from rest_framework import status

from stockroom.core.exceptions import InsufficientStock
from stockroom.core.models import AuditLog
from stockroom.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from stockroom.purchasing.models import ProductPurchase
from stockroom.purchasing.serializers import ProductPurchaseSerializer


class ProductPurchaseModelTests(TestCase):
    """Test ProductPurchase model methods"""

    def setUp(self):
        self.product = TestDataFactory.create_product()
        self.supplier = TestDataFactory.create_supplier()

    def test_available_starts_at_received(self):
        line = TestDataFactory.create_product_purchase(product=self.product, received_quantity=Decimal('12.000'))
        self.assertEqual(line.available_quantity, Decimal('12.000'))

    def test_explicit_available_kept(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('12.000'), available_quantity=Decimal('4.000'))
        line.refresh_from_db()
        self.assertEqual(line.available_quantity, Decimal('4.000'))

    def test_line_total(self):
        line = TestDataFactory.create_product_purchase(
            received_quantity=Decimal('10.500'),
            unit_purchase_price=Decimal('99.99')
        )
        self.assertEqual(line.line_total(), Decimal('1049.895'))

    def test_is_expired(self):
        today = timezone.localdate()
        expired = TestDataFactory.create_product_purchase(expiry_date=today - timedelta(days=1))
        fresh = TestDataFactory.create_product_purchase(expiry_date=today + timedelta(days=30))
        undated = TestDataFactory.create_product_purchase()
        self.assertTrue(expired.is_expired())
        self.assertFalse(fresh.is_expired())
        self.assertFalse(undated.is_expired())
        self.assertTrue(fresh.is_expired(on=today + timedelta(days=31)))

    def test_clean_rejects_available_above_received(self):
        line = ProductPurchase(
            product=self.product,
            received_quantity=Decimal('5.000'),
            available_quantity=Decimal('6.000')
        )
        with self.assertRaises(ValidationError) as ctx:
            line.clean()
        self.assertIn('available_quantity', ctx.exception.message_dict)

    def test_clean_rejects_restocking_a_consumed_line(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'))
        line.consume(Decimal('8'))
        line.available_quantity = Decimal('10.000')
        with self.assertRaises(ValidationError) as ctx:
            line.full_clean()
        self.assertIn('available_quantity', ctx.exception.message_dict)
        line.refresh_from_db()
        self.assertEqual(line.available_quantity, Decimal('2.000'))

    def test_clean_allows_lowering_available(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'))
        line.available_quantity = Decimal('5.000')
        line.full_clean()

    def test_consume_decreases_available(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'))
        remaining = line.consume(Decimal('3'))
        self.assertEqual(remaining, Decimal('7.000'))
        line.refresh_from_db()
        self.assertEqual(line.available_quantity, Decimal('7.000'))
        self.assertEqual(line.received_quantity, Decimal('10.000'))

    def test_consume_records_updater(self):
        user = TestDataFactory.create_user()
        line = TestDataFactory.create_product_purchase()
        line.consume(1, user=user)
        self.assertEqual(line.updated_by, user)

    def test_consume_more_than_available(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('2.000'))
        with self.assertRaises(InsufficientStock) as ctx:
            line.consume(Decimal('2.5'))
        self.assertEqual(ctx.exception.available, Decimal('2.000'))
        line.refresh_from_db()
        self.assertEqual(line.available_quantity, Decimal('2.000'))

    def test_consume_rejects_non_positive(self):
        line = TestDataFactory.create_product_purchase()
        with self.assertRaises(ValueError):
            line.consume(0)


class ProductPurchaseSerializerTests(TestCase):
    """Test the writable-field boundary and quantity rules"""

    def setUp(self):
        self.product = TestDataFactory.create_product()
        self.supplier = TestDataFactory.create_supplier()

    def payload(self, **overrides):
        data = {
            'product': self.product.id,
            'supplier': self.supplier.id,
            'batch_number': 'B-001',
            'received_quantity': '10.000',
            'unit_purchase_price': '50.00',
            'unit_selling_price': '65.00',
        }
        data.update(overrides)
        return data

    def test_unknown_field_rejected(self):
        serializer = ProductPurchaseSerializer(data=self.payload(line_total='999'))
        self.assertFalse(serializer.is_valid())
        self.assertIn('line_total', serializer.errors)

    def test_read_only_id_rejected(self):
        serializer = ProductPurchaseSerializer(data=self.payload(id=42))
        self.assertFalse(serializer.is_valid())
        self.assertIn('id', serializer.errors)

    def test_available_defaults_to_received(self):
        serializer = ProductPurchaseSerializer(data=self.payload())
        self.assertTrue(serializer.is_valid(), serializer.errors)
        line = serializer.save()
        self.assertEqual(line.available_quantity, Decimal('10.000'))

    def test_available_above_received_rejected(self):
        serializer = ProductPurchaseSerializer(data=self.payload(available_quantity='11.000'))
        self.assertFalse(serializer.is_valid())
        self.assertIn('available_quantity', serializer.errors)

    def test_available_cannot_grow_on_update(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'), available_quantity=Decimal('4.000'))
        serializer = ProductPurchaseSerializer(line, data={'available_quantity': '6.000'}, partial=True)
        self.assertFalse(serializer.is_valid())
        self.assertIn('available_quantity', serializer.errors)

    def test_received_cannot_drop_below_available(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'))
        serializer = ProductPurchaseSerializer(line, data={'received_quantity': '8.000'}, partial=True)
        self.assertFalse(serializer.is_valid())
        self.assertIn('available_quantity', serializer.errors)

    def test_negative_quantity_rejected(self):
        serializer = ProductPurchaseSerializer(data=self.payload(received_quantity='-1'))
        self.assertFalse(serializer.is_valid())
        self.assertIn('received_quantity', serializer.errors)


class ProductPurchaseAPITests(TestCase):
    """Test ProductPurchase API endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.product = TestDataFactory.create_product()
        self.supplier = TestDataFactory.create_supplier()
        self.purchase = TestDataFactory.create_purchase(supplier=self.supplier)
        self.receipt = TestDataFactory.create_receipt(purchase=self.purchase)
        self.invoice = TestDataFactory.create_invoice(supplier=self.supplier)

    def test_create_product_purchase(self):
        data = {
            'product': self.product.id,
            'supplier': self.supplier.id,
            'purchase': self.purchase.id,
            'receipt': self.receipt.id,
            'invoice': self.invoice.id,
            'batch_number': 'LOT-42',
            'expiry_date': (timezone.localdate() + timedelta(days=90)).isoformat(),
            'received_quantity': '24.000',
            'purchase_price': '1200.00',
            'selling_price': '1680.00',
            'unit_purchase_price': '50.00',
            'unit_selling_price': '70.00',
        }
        response = self.client.post('/api/v1/product-purchases/', data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['available_quantity'], '24.000')
        self.assertEqual(response.data['created_by'], self.user.id)
        self.assertEqual(response.data['updated_by'], self.user.id)
        self.assertEqual(response.data['product_name'], self.product.name)
        self.assertTrue(AuditLog.objects.filter(model_name='ProductPurchase', action='create').exists())

    def test_create_rejects_unlisted_field(self):
        data = {
            'product': self.product.id,
            'received_quantity': '5.000',
            'created_at': '2020-01-01T00:00:00Z',
        }
        response = self.client.post('/api/v1/product-purchases/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('created_at', response.data)

    def test_list_with_filters(self):
        other_product = TestDataFactory.create_product()
        TestDataFactory.create_product_purchase(product=self.product, supplier=self.supplier, batch_number='A1')
        empty = TestDataFactory.create_product_purchase(product=self.product, supplier=self.supplier, batch_number='A2')
        empty.consume(empty.available_quantity)
        TestDataFactory.create_product_purchase(product=other_product, batch_number='B1')

        response = self.client.get(f'/api/v1/product-purchases/?product={self.product.id}')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

        response = self.client.get(f'/api/v1/product-purchases/?product={self.product.id}&in_stock=true')
        self.assertEqual([row['batch_number'] for row in response.data['results']], ['A1'])

        response = self.client.get('/api/v1/product-purchases/?batch_number=b1')
        self.assertEqual(response.data['count'], 1)

    def test_list_expiring_before(self):
        today = timezone.localdate()
        TestDataFactory.create_product_purchase(expiry_date=today + timedelta(days=5))
        TestDataFactory.create_product_purchase(expiry_date=today + timedelta(days=60))

        response = self.client.get(f'/api/v1/product-purchases/?expiring_before={(today + timedelta(days=10)).isoformat()}')
        self.assertEqual(response.data['count'], 1)

    def test_expiring_before_excludes_the_date_itself(self):
        cutoff = timezone.localdate() + timedelta(days=10)
        TestDataFactory.create_product_purchase(expiry_date=cutoff - timedelta(days=1), batch_number='EARLY')
        TestDataFactory.create_product_purchase(expiry_date=cutoff, batch_number='ON-CUTOFF')

        response = self.client.get(f'/api/v1/product-purchases/?expiring_before={cutoff.isoformat()}')
        self.assertEqual([row['batch_number'] for row in response.data['results']], ['EARLY'])

    def test_list_pagination(self):
        for _ in range(3):
            TestDataFactory.create_product_purchase(product=self.product)
        response = self.client.get('/api/v1/product-purchases/?limit=2&page=2')
        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['previous'], 1)
        self.assertIsNone(response.data['next'])

    def test_invalid_filter_value(self):
        response = self.client.get('/api/v1/product-purchases/?expiring_before=not-a-date')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_detail(self):
        line = TestDataFactory.create_product_purchase(product=self.product)
        response = self.client.get(f'/api/v1/product-purchases/{line.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], line.id)

    def test_patch_prices_stamps_updater(self):
        line = TestDataFactory.create_product_purchase(product=self.product)
        response = self.client.patch(f'/api/v1/product-purchases/{line.id}/', {'unit_selling_price': '150.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['unit_selling_price'], '150.00')
        self.assertEqual(response.data['updated_by'], self.user.id)

    def test_delete_not_allowed(self):
        line = TestDataFactory.create_product_purchase()
        response = self.client.delete(f'/api/v1/product-purchases/{line.id}/')
        self.assertEqual(response.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
        self.assertTrue(ProductPurchase.objects.filter(pk=line.id).exists())

    def test_consume(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('10.000'))
        response = self.client.post(f'/api/v1/product-purchases/{line.id}/consume/', {'quantity': '4'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['available_quantity'], '6.000')
        self.assertTrue(AuditLog.objects.filter(action='stock_consume', object_id=str(line.id)).exists())

    def test_consume_insufficient_stock(self):
        line = TestDataFactory.create_product_purchase(received_quantity=Decimal('1.000'))
        response = self.client.post(f'/api/v1/product-purchases/{line.id}/consume/', {'quantity': '2'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('quantity', response.data)

    def test_missing_line(self):
        response = self.client.get('/api/v1/product-purchases/999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProductPurchaseAdminTests(TestCase):
    """Test admin restrictions on stock lines"""

    def setUp(self):
        self.model_admin = admin.site._registry[ProductPurchase]
        self.request = RequestFactory().get('/admin/')

    def test_available_editable_when_adding(self):
        self.assertNotIn('available_quantity', self.model_admin.get_readonly_fields(self.request))

    def test_available_read_only_on_existing_line(self):
        line = TestDataFactory.create_product_purchase()
        readonly = self.model_admin.get_readonly_fields(self.request, line)
        self.assertIn('available_quantity', readonly)
        self.assertNotIn('available_quantity', self.model_admin.readonly_fields)
