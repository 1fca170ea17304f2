"""
Writable-field boundary for model serializers.

Each model declares the exact tuple of field names a client may set
(``WRITABLE_FIELDS``). Payloads are checked against it before validation;
unknown keys are reported back as field errors instead of being dropped.
"""
from rest_framework import serializers

from .exceptions import NotWritableError

# Keys added by HTML forms that never reach the model
TRANSPORT_KEYS = frozenset({'csrfmiddlewaretoken', '_method'})

NOT_WRITABLE_MESSAGE = 'This field is not writable.'


def check_writable(data, writable_fields):
    """Raise NotWritableError if ``data`` carries keys outside ``writable_fields``"""
    keys = set(data.keys()) - TRANSPORT_KEYS
    unknown = keys - set(writable_fields)
    if unknown:
        raise NotWritableError(unknown)


class WhitelistedModelSerializer(serializers.ModelSerializer):
    """ModelSerializer that only accepts the model's declared writable fields"""

    def get_writable_fields(self):
        return getattr(self.Meta.model, 'WRITABLE_FIELDS', ())

    def to_internal_value(self, data):
        if hasattr(data, 'keys'):
            try:
                check_writable(data, self.get_writable_fields())
            except NotWritableError as e:
                raise serializers.ValidationError({field: [NOT_WRITABLE_MESSAGE] for field in e.fields})
        return super().to_internal_value(data)


def first_errors(errors):
    """Flatten a DRF error dict to one message per field"""
    flat = {}
    for field, messages in errors.items():
        if isinstance(messages, (list, tuple)):
            flat[field] = str(messages[0]) if messages else ''
        elif isinstance(messages, dict):
            flat[field] = next(iter(first_errors(messages).values()), '')
        else:
            flat[field] = str(messages)
    return flat
