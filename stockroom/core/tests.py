"""
Tests for core utilities: audit logging, the writable-field boundary and the HTTP transport
"""
from unittest import mock

import requests
from django.test import SimpleTestCase, TestCase, RequestFactory
from rest_framework.exceptions import ErrorDetail

from stockroom.catalog.serializers import CategorySerializer
from stockroom.core.exceptions import NotWritableError, TransportError
from stockroom.core.models import AuditLog
from stockroom.core.test_utils import TestDataFactory
from stockroom.core.transport import HttpTransport, extract_errors
from stockroom.core.utils import create_audit_log, get_client_ip
from stockroom.core.whitelist import check_writable, first_errors


class AuditLogTests(TestCase):
    """Test audit log helpers"""

    def setUp(self):
        self.factory = RequestFactory()

    def test_create_audit_log_records_user_and_ip(self):
        user = TestDataFactory.create_user()
        request = self.factory.post('/categories/store', REMOTE_ADDR='10.0.0.5')
        request.user = user

        log = create_audit_log(request=request, action='create', model_name='Category',
                               object_id=3, object_name='Beverages', changes={'name': 'Beverages'})

        self.assertIsNotNone(log)
        self.assertEqual(log.user, user)
        self.assertEqual(log.ip_address, '10.0.0.5')
        self.assertEqual(log.object_id, '3')
        self.assertEqual(log.changes, {'name': 'Beverages'})

    def test_create_audit_log_skips_missing_fields(self):
        self.assertIsNone(create_audit_log(action='create', model_name='Category'))
        self.assertEqual(AuditLog.objects.count(), 0)

    def test_forwarded_for_header_wins(self):
        request = self.factory.get('/', HTTP_X_FORWARDED_FOR='203.0.113.7, 10.0.0.1', REMOTE_ADDR='10.0.0.1')
        self.assertEqual(get_client_ip(request), '203.0.113.7')


class WhitelistTests(TestCase):
    """Test the writable-field boundary"""

    def test_check_writable_accepts_declared_fields(self):
        check_writable({'name': 'x', 'description': 'y'}, ('name', 'description'))

    def test_check_writable_ignores_form_transport_keys(self):
        check_writable({'name': 'x', 'csrfmiddlewaretoken': 'abc', '_method': 'PUT'}, ('name',))

    def test_check_writable_rejects_unknown_fields(self):
        with self.assertRaises(NotWritableError) as ctx:
            check_writable({'name': 'x', 'id': 9, 'created_at': 'now'}, ('name',))
        self.assertEqual(ctx.exception.fields, ['created_at', 'id'])

    def test_serializer_reports_unknown_fields_as_errors(self):
        serializer = CategorySerializer(data={'name': 'Snacks', 'created_at': '2020-01-01'})
        self.assertFalse(serializer.is_valid())
        self.assertEqual(first_errors(serializer.errors), {'created_at': 'This field is not writable.'})

    def test_first_errors_flattens_lists_and_nested_dicts(self):
        errors = {
            'name': [ErrorDetail('Name already taken', code='unique'), ErrorDetail('Other', code='x')],
            'items': {'0': ['Bad item']},
            'detail': 'Plain',
        }
        self.assertEqual(first_errors(errors), {'name': 'Name already taken', 'items': 'Bad item', 'detail': 'Plain'})


def fake_response(status_code, url, body=None):
    response = mock.Mock()
    response.status_code = status_code
    response.url = url
    response.content = b'{}' if body is not None else b''
    response.json.return_value = body
    return response


class HttpTransportTests(SimpleTestCase):
    """Test the requests-backed transport against a mocked session"""

    def setUp(self):
        self.session = mock.Mock(spec=requests.Session)
        self.session.headers = {}
        self.transport = HttpTransport('http://stock.test', session=self.session, timeout=5)

    def test_asks_for_json_without_touching_session_defaults(self):
        self.session.request.return_value = fake_response(200, 'http://stock.test/categories', {'categories': []})

        self.transport.get('/categories')

        sent = self.session.request.call_args.kwargs['headers']
        self.assertEqual(sent['Accept'], 'application/json')
        self.assertEqual(self.session.headers, {})

    def test_put_follows_redirect_and_reports_final_path(self):
        self.session.request.return_value = fake_response(200, 'http://stock.test/categories', {'categories': []})

        visit = self.transport.put('/categories/update/7', {'name': 'Beverages', 'description': ''})

        self.session.request.assert_called_once_with(
            'PUT', 'http://stock.test/categories/update/7',
            data={'name': 'Beverages', 'description': ''},
            headers=self.transport.headers, timeout=5, allow_redirects=True,
        )
        self.assertEqual(visit.url, '/categories')
        self.assertEqual(visit.data, {'categories': []})
        self.assertTrue(visit.ok)

    def test_validation_response_becomes_errors(self):
        self.session.request.return_value = fake_response(
            422, 'http://stock.test/categories/store', {'errors': {'name': 'Name already taken'}}
        )

        visit = self.transport.post('/categories/store', {'name': 'Beverages'})

        self.assertEqual(visit.status, 422)
        self.assertEqual(visit.errors, {'name': 'Name already taken'})
        self.assertFalse(visit.ok)

    def test_server_error_raises(self):
        self.session.request.return_value = fake_response(500, 'http://stock.test/categories/delete/1')
        with self.assertRaises(TransportError) as ctx:
            self.transport.delete('/categories/delete/1')
        self.assertEqual(ctx.exception.status, 500)

    def test_connection_failure_raises_transport_error(self):
        self.session.request.side_effect = requests.ConnectionError('refused')
        with self.assertRaises(TransportError):
            self.transport.get('/categories')

    def test_extract_errors_accepts_drf_lists(self):
        self.assertEqual(extract_errors({'quantity': ['Too much']}), {'quantity': 'Too much'})
        self.assertEqual(extract_errors(None), {})
