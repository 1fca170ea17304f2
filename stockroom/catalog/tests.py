"""
Test suite for the category admin
Tests: page state (list/form), server routes (HTML and JSON), and full round trips
"""
import json
from io import StringIO
from unittest import mock
from datetime import datetime, timezone as dt_timezone

from django.core.management import call_command
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework import status

from stockroom.catalog.models import Category
from stockroom.catalog.serializers import CategorySerializer
from stockroom.catalog.pages import (
    CategoryFormPage, CategoryListPage, CategoryRow, Create, Edit,
    DELETE_CONFIRMATION, EMPTY_MESSAGE, PLACEHOLDER_DESCRIPTION,
)
from stockroom.core.exceptions import TransportError
from stockroom.core.models import AuditLog
from stockroom.core.test_utils import TestDataFactory, ClientTransport
from stockroom.core.transport import Transport, Visit


class RecordingTransport(Transport):
    """Transport double that records calls and replies with a fixed Visit"""

    def __init__(self, visit=None, on_call=None, error=None):
        self.calls = []
        self.visit = visit or Visit(status=200, url='/categories', data={'categories': []})
        self.on_call = on_call
        self.error = error

    def get(self, path):
        return self._record('GET', path)

    def post(self, path, data):
        return self._record('POST', path, data)

    def put(self, path, data):
        return self._record('PUT', path, data)

    def delete(self, path):
        return self._record('DELETE', path)

    def _record(self, method, path, data=None):
        self.calls.append((method, path, data))
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return self.visit


BEVERAGES = {'id': 7, 'name': 'Beverages', 'description': 'Drinks', 'created_at': '2024-03-05T10:00:00Z'}
SNACKS = {'id': 8, 'name': 'Snacks', 'description': None, 'created_at': '2024-03-06T10:00:00Z'}


class CategoryListPageTests(SimpleTestCase):
    """List page rows, placeholders and confirmed delete"""

    def test_one_row_per_record_in_server_order(self):
        page = CategoryListPage([SNACKS, BEVERAGES])
        rows = page.rows
        self.assertEqual([row.id for row in rows], [8, 7])
        self.assertEqual([row.name for row in rows], ['Snacks', 'Beverages'])
        self.assertEqual(rows[0].description_display, PLACEHOLDER_DESCRIPTION)
        self.assertEqual(rows[1].description_display, 'Drinks')
        self.assertFalse(page.is_empty)

    def test_empty_description_uses_placeholder(self):
        row = CategoryRow.from_record({'id': 1, 'name': 'Misc', 'description': '', 'created_at': None})
        self.assertEqual(row.description_display, '-')
        self.assertEqual(row.created_display, '')

    def test_empty_collection(self):
        page = CategoryListPage([])
        self.assertTrue(page.is_empty)
        self.assertEqual(page.rows, [])
        self.assertEqual(page.empty_message, EMPTY_MESSAGE)

    def test_created_date_uses_locale_format(self):
        row = CategoryRow.from_record(BEVERAGES)
        created = datetime(2024, 3, 5, 10, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(row.created_at, created)
        self.assertEqual(row.created_display, created.strftime('%x'))

    @override_settings(TIME_ZONE='America/New_York')
    def test_created_date_shown_in_local_time_zone(self):
        row = CategoryRow.from_record({'id': 1, 'name': 'Late', 'created_at': '2024-03-05T02:00:00Z'})
        self.assertEqual(row.created_display, datetime(2024, 3, 4).strftime('%x'))

    def test_row_links(self):
        row = CategoryRow.from_record(BEVERAGES)
        self.assertEqual(row.edit_url, '/categories/edit/7')
        self.assertEqual(row.delete_url, '/categories/delete/7')

    def test_declined_delete_sends_nothing(self):
        prompts = []
        transport = RecordingTransport()
        page = CategoryListPage([BEVERAGES], transport=transport, confirm=lambda message: prompts.append(message) or False)

        self.assertIsNone(page.delete(7))

        self.assertEqual(prompts, [DELETE_CONFIRMATION])
        self.assertEqual(transport.calls, [])
        self.assertEqual(len(page.rows), 1)

    def test_delete_without_prompt_never_deletes(self):
        transport = RecordingTransport()
        page = CategoryListPage([BEVERAGES], transport=transport)
        page.delete(7)
        self.assertEqual(transport.calls, [])

    def test_confirmed_delete_sends_one_request_and_shows_server_list(self):
        transport = RecordingTransport(visit=Visit(status=200, url='/categories', data={'categories': [SNACKS]}))
        page = CategoryListPage([BEVERAGES, SNACKS], transport=transport, confirm=lambda message: True)

        page.delete(7)

        self.assertEqual(transport.calls, [('DELETE', '/categories/delete/7', None)])
        self.assertEqual([row.id for row in page.rows], [8])

    def test_row_stays_until_server_answers(self):
        seen = []
        page = CategoryListPage([BEVERAGES], confirm=lambda message: True)
        page.transport = RecordingTransport(on_call=lambda: seen.append(len(page.rows)))
        page.delete(7)
        self.assertEqual(seen, [1])
        self.assertTrue(page.is_empty)

    def test_delete_failure_propagates(self):
        transport = RecordingTransport(error=TransportError('boom', status=500))
        page = CategoryListPage([BEVERAGES], transport=transport, confirm=lambda message: True)
        with self.assertRaises(TransportError):
            page.delete(7)
        self.assertEqual(len(page.rows), 1)


class CategoryFormPageTests(SimpleTestCase):
    """Form page modes, submission and error display"""

    def test_create_starts_empty(self):
        page = CategoryFormPage(Create())
        self.assertEqual(page.data.snapshot(), {'name': '', 'description': ''})
        self.assertEqual(page.title, 'Create Category')
        self.assertEqual(page.submit_label, 'Create')
        self.assertEqual(page.action, '/categories/store')

    def test_edit_starts_from_record(self):
        page = CategoryFormPage(Edit({'id': 7, 'name': 'Beverages', 'description': 'Drinks'}))
        self.assertEqual(page.data.name, 'Beverages')
        self.assertEqual(page.data.description, 'Drinks')
        self.assertEqual(page.title, 'Edit Category')
        self.assertEqual(page.submit_label, 'Update')
        self.assertEqual(page.action, '/categories/update/7')

    def test_edit_with_null_description_starts_blank(self):
        page = CategoryFormPage(Edit(SNACKS))
        self.assertEqual(page.data.description, '')

    def test_unknown_mode_rejected(self):
        with self.assertRaises(TypeError):
            CategoryFormPage({'id': 7})

    def test_create_submits_to_store(self):
        transport = RecordingTransport()
        page = CategoryFormPage(Create(), transport=transport)
        page.data.set_name('Beverages')
        page.data.set_description('Drinks')

        page.submit()

        self.assertEqual(transport.calls, [('POST', '/categories/store', {'name': 'Beverages', 'description': 'Drinks'})])
        self.assertEqual(page.redirect_to, '/categories')

    def test_edit_submits_update_for_record(self):
        transport = RecordingTransport()
        page = CategoryFormPage(Edit(BEVERAGES), transport=transport)
        page.data.set_name('Cold Drinks')

        page.submit()

        self.assertEqual(transport.calls, [('PUT', '/categories/update/7', {'name': 'Cold Drinks', 'description': 'Drinks'})])

    def test_blank_name_is_not_sent(self):
        transport = RecordingTransport()
        page = CategoryFormPage(Create(), transport=transport)
        page.data.set_description('Drinks')

        self.assertIsNone(page.submit())
        self.assertEqual(transport.calls, [])
        self.assertEqual(page.errors, {})

    def test_submit_disabled_while_in_flight(self):
        seen = []
        page = CategoryFormPage(Create())
        page.transport = RecordingTransport(on_call=lambda: seen.append((page.processing, page.submit_disabled, page.submit_label)))
        page.data.set_name('Beverages')

        self.assertFalse(page.submit_disabled)
        page.submit()

        self.assertEqual(seen, [(True, True, 'Saving...')])
        self.assertFalse(page.processing)
        self.assertFalse(page.submit_disabled)
        self.assertEqual(page.submit_label, 'Create')

    def test_submit_reenabled_after_transport_failure(self):
        page = CategoryFormPage(Create(), transport=RecordingTransport(error=TransportError('down')))
        page.data.set_name('Beverages')

        with self.assertRaises(TransportError):
            page.submit()
        self.assertFalse(page.submit_disabled)

    def test_server_errors_shown_per_field(self):
        visit = Visit(status=422, url='/categories/store', errors={'name': 'Name already taken'})
        page = CategoryFormPage(Create(), transport=RecordingTransport(visit=visit))
        page.data.set_name('Beverages')

        page.submit()

        self.assertEqual(page.error_for('name'), 'Name already taken')
        self.assertIsNone(page.error_for('description'))
        self.assertIsNone(page.redirect_to)

    def test_snapshot_is_taken_at_dispatch(self):
        page = CategoryFormPage(Create())
        page.transport = RecordingTransport(on_call=lambda: page.data.set_name('Changed'))
        page.data.set_name('Beverages')
        page.submit()
        self.assertEqual(page.transport.calls[0][2]['name'], 'Beverages')


class CategoryViewTests(TestCase):
    """Server routes for category pages"""

    def test_index_html_lists_rows(self):
        TestDataFactory.create_category(name='Beverages', description='Drinks')
        TestDataFactory.create_category(name='Snacks')

        response = self.client.get('/categories')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.content.decode().count('data-category-id='), 2)
        self.assertContains(response, 'Beverages')
        self.assertContains(response, 'Drinks')
        self.assertContains(response, '<td>-</td>')
        self.assertContains(response, 'href="/categories/create"')
        self.assertContains(response, 'action="/categories/delete/')
        self.assertNotContains(response, EMPTY_MESSAGE)

    def test_index_html_empty_placeholder_row(self):
        response = self.client.get('/categories')
        self.assertContains(response, EMPTY_MESSAGE, count=1)
        self.assertNotContains(response, 'data-category-id=')

    def test_index_json_keeps_storage_order(self):
        first = TestDataFactory.create_category(name='Zeta')
        second = TestDataFactory.create_category(name='Alpha')

        response = self.client.get('/categories', HTTP_ACCEPT='application/json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([c['id'] for c in response.json()['categories']], [first.id, second.id])

    def test_create_form(self):
        response = self.client.get('/categories/create')
        self.assertContains(response, 'Create Category')
        self.assertContains(response, 'action="/categories/store"')
        self.assertContains(response, 'required')

    def test_store_redirects_to_list(self):
        response = self.client.post('/categories/store', {'name': 'Beverages', 'description': ''})

        self.assertRedirects(response, '/categories')
        category = Category.objects.get(name='Beverages')
        self.assertIsNone(category.description)
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Category', object_id=str(category.id)).exists())

    def test_store_blank_name_rejected(self):
        response = self.client.post('/categories/store', {'name': '   '}, HTTP_ACCEPT='application/json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertIn('name', response.json()['errors'])
        self.assertEqual(Category.objects.count(), 0)

    def test_store_duplicate_name_renders_error_under_name(self):
        TestDataFactory.create_category(name='Beverages')

        response = self.client.post('/categories/store', {'name': 'Beverages', 'description': 'Again'})

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertContains(response, 'Name already taken', status_code=422)
        self.assertContains(response, 'id="name-error"', status_code=422)
        self.assertNotContains(response, 'id="description-error"', status_code=422)
        self.assertContains(response, 'Again', status_code=422)

    def validate_then_insert(self, name):
        """is_valid that lets another request claim the name right after validation"""
        original = CategorySerializer.is_valid

        def is_valid(serializer, *args, **kwargs):
            result = original(serializer, *args, **kwargs)
            Category.objects.create(name=name)
            return result
        return mock.patch.object(CategorySerializer, 'is_valid', autospec=True, side_effect=is_valid)

    def test_store_name_taken_after_validation(self):
        with self.validate_then_insert('Beverages'):
            response = self.client.post('/categories/store', {'name': 'Beverages'}, HTTP_ACCEPT='application/json')

        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.json()['errors'], {'name': 'Name already taken'})
        self.assertEqual(Category.objects.filter(name='Beverages').count(), 1)
        self.assertFalse(AuditLog.objects.filter(action='create').exists())

    def test_update_name_taken_after_validation(self):
        category = TestDataFactory.create_category(name='Snacks')

        with self.validate_then_insert('Beverages'):
            response = self.client.post(f'/categories/update/{category.id}', {'name': 'Beverages', '_method': 'PUT'})

        self.assertContains(response, 'Name already taken', status_code=422)
        self.assertContains(response, 'id="name-error"', status_code=422)
        category.refresh_from_db()
        self.assertEqual(category.name, 'Snacks')

    def test_store_rejects_fields_outside_whitelist(self):
        response = self.client.post('/categories/store', {'name': 'Beverages', 'id': '99'}, HTTP_ACCEPT='application/json')
        self.assertEqual(response.status_code, status.HTTP_422_UNPROCESSABLE_ENTITY)
        self.assertEqual(response.json()['errors'], {'id': 'This field is not writable.'})

    def test_edit_form_prefilled(self):
        category = TestDataFactory.create_category(name='Beverages', description='Drinks')

        response = self.client.get(f'/categories/edit/{category.id}')

        self.assertContains(response, 'Edit Category')
        self.assertContains(response, 'value="Beverages"')
        self.assertContains(response, 'Drinks')
        self.assertContains(response, f'action="/categories/update/{category.id}"')
        self.assertContains(response, 'name="_method" value="PUT"')

    def test_edit_json(self):
        category = TestDataFactory.create_category(name='Beverages', description='Drinks')
        response = self.client.get(f'/categories/edit/{category.id}', HTTP_ACCEPT='application/json')
        self.assertEqual(response.json()['category']['name'], 'Beverages')

    def test_edit_missing_category(self):
        response = self.client.get('/categories/edit/999')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_update_with_put(self):
        category = TestDataFactory.create_category(name='Beverages', description='Drinks')

        response = self.client.put(
            f'/categories/update/{category.id}',
            json.dumps({'name': 'Cold Drinks', 'description': 'Chilled'}),
            content_type='application/json',
        )

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertEqual(response['Location'], '/categories')
        category.refresh_from_db()
        self.assertEqual(category.name, 'Cold Drinks')
        self.assertEqual(category.description, 'Chilled')

    def test_update_with_html_form_post(self):
        category = TestDataFactory.create_category(name='Beverages')

        response = self.client.post(f'/categories/update/{category.id}', {'_method': 'PUT', 'name': 'Juices', 'description': ''})

        self.assertRedirects(response, '/categories')
        category.refresh_from_db()
        self.assertEqual(category.name, 'Juices')

    def test_update_keeps_own_name(self):
        category = TestDataFactory.create_category(name='Beverages')
        response = self.client.post(f'/categories/update/{category.id}', {'name': 'Beverages', 'description': 'More'})
        self.assertRedirects(response, '/categories')

    def test_update_missing_category(self):
        response = self.client.post('/categories/update/999', {'name': 'X'})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delete(self):
        category = TestDataFactory.create_category(name='Beverages')

        response = self.client.delete(f'/categories/delete/{category.id}')

        self.assertEqual(response.status_code, status.HTTP_302_FOUND)
        self.assertFalse(Category.objects.filter(pk=category.id).exists())
        self.assertTrue(AuditLog.objects.filter(action='delete', object_id=str(category.id)).exists())

    def test_delete_missing_category_is_idempotent(self):
        response = self.client.post('/categories/delete/999', {'_method': 'DELETE'})
        self.assertRedirects(response, '/categories')
        self.assertFalse(AuditLog.objects.filter(action='delete').exists())


class CategoryRoundTripTests(TestCase):
    """Pages driving the real views through the in-process transport"""

    def setUp(self):
        self.transport = ClientTransport(self.client)

    def test_create_then_list(self):
        page = CategoryFormPage(Create(), transport=self.transport)
        page.data.set_name('Beverages')
        page.data.set_description('Drinks')

        visit = page.submit()

        self.assertEqual(page.redirect_to, '/categories')
        self.assertEqual([c['name'] for c in visit.data['categories']], ['Beverages'])
        self.assertEqual(self.transport.calls[0][:2], ('POST', '/categories/store'))

    def test_edit_existing(self):
        category = TestDataFactory.create_category(name='Beverages', description='Drinks')
        page = CategoryFormPage(Edit(category), transport=self.transport)
        page.data.set_description('')

        page.submit()

        category.refresh_from_db()
        self.assertIsNone(category.description)
        self.assertEqual(self.transport.calls[0][:2], ('PUT', f'/categories/update/{category.id}'))

    def test_duplicate_name_error_reaches_page(self):
        TestDataFactory.create_category(name='Beverages')
        page = CategoryFormPage(Create(), transport=self.transport)
        page.data.set_name('Beverages')

        page.submit()

        self.assertEqual(page.error_for('name'), 'Name already taken')
        self.assertIsNone(page.error_for('description'))
        self.assertFalse(page.submit_disabled)

    def test_confirmed_delete_refreshes_list(self):
        keep = TestDataFactory.create_category(name='Snacks')
        drop = TestDataFactory.create_category(name='Beverages')
        page = CategoryListPage([], transport=self.transport, confirm=lambda message: True)
        page.reload()
        self.assertEqual(len(page.rows), 2)

        page.delete(drop.id)

        self.assertEqual([row.id for row in page.rows], [keep.id])
        self.assertEqual(self.transport.calls[-1], ('DELETE', f'/categories/delete/{drop.id}', None))

    def test_missing_edit_target_raises(self):
        page = CategoryFormPage(Edit({'id': 999, 'name': 'Ghost'}), transport=self.transport)
        with self.assertRaises(TransportError) as ctx:
            page.submit()
        self.assertEqual(ctx.exception.status, 404)


class AddCategoriesCommandTests(TestCase):
    """Test the add_categories management command"""

    def test_adds_named_categories_and_skips_duplicates(self):
        TestDataFactory.create_category(name='Beverages')
        out = StringIO()

        call_command('add_categories', 'Beverages', 'Snacks', '  ', stdout=out)

        self.assertEqual(list(Category.objects.values_list('name', flat=True)), ['Beverages', 'Snacks'])
        self.assertIn('Skipped (Name already taken): Beverages', out.getvalue())
        self.assertIn('Categories Created: 1', out.getvalue())

    def test_defaults_and_clear(self):
        TestDataFactory.create_category(name='Old')
        call_command('add_categories', '--clear', stdout=StringIO())
        self.assertFalse(Category.objects.filter(name='Old').exists())
        self.assertTrue(Category.objects.filter(name='Beverages').exists())
