"""
Test utilities and factories for creating test data
"""
import json
import random
import string
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import Client
from django.utils import timezone
from rest_framework.test import APIClient

from stockroom.catalog.models import Category, Product
from stockroom.purchasing.models import Supplier, Purchase, Receipt, Invoice, ProductPurchase
from .exceptions import TransportError
from .transport import Transport, Visit, VALIDATION_STATUSES, extract_errors

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(name=name, description=description)

    @staticmethod
    def create_product(name=None, sku=None, category=None):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        return Product.objects.create(name=name, sku=sku, category=category)

    @staticmethod
    def create_supplier(name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(name=name, phone=phone, email=email)

    @staticmethod
    def create_purchase(supplier=None, purchase_date=None):
        """Create a test purchase"""
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        return Purchase.objects.create(
            purchase_number=f'PUR-{TestDataFactory.random_string(8).upper()}',
            supplier=supplier,
            purchase_date=purchase_date or timezone.now().date()
        )

    @staticmethod
    def create_receipt(purchase=None):
        """Create a test goods receipt"""
        return Receipt.objects.create(
            receipt_number=f'RCV-{TestDataFactory.random_string(8).upper()}',
            purchase=purchase
        )

    @staticmethod
    def create_invoice(supplier=None, invoice_date=None):
        """Create a test supplier invoice"""
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        return Invoice.objects.create(
            invoice_number=f'INV-{TestDataFactory.random_string(8).upper()}',
            supplier=supplier,
            invoice_date=invoice_date or timezone.now().date()
        )

    @staticmethod
    def create_product_purchase(product=None, supplier=None, received_quantity=None, unit_purchase_price=None,
                                batch_number=None, expiry_date=None, **kwargs):
        """Create a received stock line; available quantity defaults to the received quantity"""
        if not product:
            product = TestDataFactory.create_product()
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        if received_quantity is None:
            received_quantity = Decimal('10.000')
        if unit_purchase_price is None:
            unit_purchase_price = Decimal('100.00')
        return ProductPurchase.objects.create(
            product=product,
            supplier=supplier,
            received_quantity=received_quantity,
            unit_purchase_price=unit_purchase_price,
            purchase_price=received_quantity * unit_purchase_price,
            batch_number=batch_number or f'B-{TestDataFactory.random_string(6).upper()}',
            expiry_date=expiry_date,
            **kwargs
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        self.force_authenticate(user=user)
        return self

    def logout(self):
        """Remove authentication"""
        self.force_authenticate(user=None)
        super().logout()


class ClientTransport(Transport):
    """Transport that drives the Django test client in-process, following redirects"""

    def __init__(self, client=None):
        self.client = client or Client()
        self.calls = []

    def get(self, path):
        return self._visit('get', path)

    def post(self, path, data):
        return self._visit('post', path, data)

    def put(self, path, data):
        return self._visit('put', path, data, encode_json=True)

    def delete(self, path):
        return self._visit('delete', path)

    def _visit(self, method, path, data=None, encode_json=False):
        self.calls.append((method.upper(), path, data))
        handler = getattr(self.client, method)
        kwargs = {'follow': True, 'HTTP_ACCEPT': 'application/json'}
        if data is None:
            response = handler(path, **kwargs)
        elif encode_json:
            response = handler(path, json.dumps(data), content_type='application/json', **kwargs)
        else:
            response = handler(path, data, **kwargs)

        body = None
        if response.content and 'json' in response.get('Content-Type', ''):
            body = response.json()
        url = response.request['PATH_INFO']

        if response.status_code in VALIDATION_STATUSES:
            return Visit(status=response.status_code, url=url, data=body, errors=extract_errors(body))
        if response.status_code >= 400:
            raise TransportError(f"{method.upper()} {path} returned {response.status_code}", status=response.status_code)
        return Visit(status=response.status_code, url=url, data=body)
