"""
Request dispatch for the admin pages.

A transport performs one round trip per call and follows the server's
redirect, returning a ``Visit`` that describes where the client ended up.
Field validation failures come back as ``Visit.errors``; anything else that
is not a success raises ``TransportError``.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import urljoin, urlsplit

import requests

from .exceptions import TransportError

logger = logging.getLogger(__name__)

VALIDATION_STATUSES = (400, 422)
DEFAULT_TIMEOUT = 10


@dataclass
class Visit:
    """Result of a round trip"""
    status: int
    url: str
    data: Optional[Any] = None
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self):
        return not self.errors


def extract_errors(body):
    """Pull a field -> message map out of an error response body"""
    if not isinstance(body, dict):
        return {}
    errors = body.get('errors', body)
    if not isinstance(errors, dict):
        return {}
    flat = {}
    for key, value in errors.items():
        if isinstance(value, (list, tuple)):
            value = value[0] if value else ''
        flat[key] = str(value)
    return flat


class Transport:
    """Interface shared by the HTTP transport and in-process test transports"""

    def get(self, path):
        raise NotImplementedError

    def post(self, path, data):
        raise NotImplementedError

    def put(self, path, data):
        raise NotImplementedError

    def delete(self, path):
        raise NotImplementedError


class HttpTransport(Transport):
    """Transport talking to a running stockroom server through requests"""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/') + '/'
        self.session = session or requests.Session()
        # Sent per request so a shared session keeps its own defaults
        self.headers = {
            'Accept': 'application/json',
            'X-Requested-With': 'XMLHttpRequest',
        }
        self.timeout = timeout

    def get(self, path):
        return self.request('GET', path)

    def post(self, path, data):
        return self.request('POST', path, data)

    def put(self, path, data):
        return self.request('PUT', path, data)

    def delete(self, path):
        return self.request('DELETE', path)

    def request(self, method: str, path: str, data: Optional[dict] = None) -> Visit:
        url = urljoin(self.base_url, path.lstrip('/'))
        try:
            response = self.session.request(method, url, data=data, headers=self.headers,
                                            timeout=self.timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.warning(f"{method} {path} failed: {str(e)}")
            raise TransportError(f"{method} {path} failed: {str(e)}") from e

        body = self._decode(response)
        final_path = urlsplit(response.url).path or path

        if response.status_code in VALIDATION_STATUSES:
            errors = extract_errors(body)
            logger.debug(f"{method} {path} rejected with {response.status_code}: {errors}")
            return Visit(status=response.status_code, url=final_path, data=body, errors=errors)

        if response.status_code >= 400:
            raise TransportError(f"{method} {path} returned {response.status_code}", status=response.status_code)

        return Visit(status=response.status_code, url=final_path, data=body)

    @staticmethod
    def _decode(response):
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None
