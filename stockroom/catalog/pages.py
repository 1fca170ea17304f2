"""
Category admin pages.

``CategoryListPage`` and ``CategoryFormPage`` hold the state of the two
category screens and perform their round trips through a transport
(see ``stockroom.core.transport``). The server renders its HTML templates
from the same objects, so labels, placeholders and URLs live here only.
"""
from dataclasses import dataclass
from datetime import date, datetime

from django.utils import timezone

INDEX_URL = '/categories'
CREATE_URL = '/categories/create'
STORE_URL = '/categories/store'

PLACEHOLDER_DESCRIPTION = '-'
EMPTY_MESSAGE = 'No categories found. Create your first category!'
DELETE_CONFIRMATION = 'Are you sure you want to delete this category?'


def edit_url(category_id):
    return f'/categories/edit/{category_id}'


def update_url(category_id):
    return f'/categories/update/{category_id}'


def delete_url(category_id):
    return f'/categories/delete/{category_id}'


def _field(record, name, default=None):
    """Read a field from a model instance or a decoded JSON dict"""
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def parse_timestamp(value):
    if value is None or isinstance(value, (datetime, date)):
        return value
    text = str(value)
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass
class CategoryRow:
    id: int
    name: str
    description: object = None
    created_at: object = None

    @classmethod
    def from_record(cls, record):
        return cls(
            id=_field(record, 'id'),
            name=_field(record, 'name'),
            description=_field(record, 'description'),
            created_at=parse_timestamp(_field(record, 'created_at')),
        )

    @property
    def description_display(self):
        return self.description or PLACEHOLDER_DESCRIPTION

    @property
    def created_display(self):
        """Creation date in the current locale's date format"""
        if self.created_at is None:
            return ''
        created = self.created_at
        if isinstance(created, datetime) and timezone.is_aware(created):
            created = timezone.localtime(created)
        return created.strftime('%x')

    @property
    def edit_url(self):
        return edit_url(self.id)

    @property
    def delete_url(self):
        return delete_url(self.id)


def _always_decline(message):
    return False


class CategoryListPage:
    """Table of categories with create/edit navigation and confirmed delete"""

    title = 'Categories'
    create_url = CREATE_URL
    empty_message = EMPTY_MESSAGE
    delete_confirmation = DELETE_CONFIRMATION

    def __init__(self, categories, transport=None, confirm=None):
        self.categories = list(categories)
        self.transport = transport
        # Blocking yes/no prompt; without one nothing is ever deleted
        self.confirm = confirm or _always_decline

    @property
    def rows(self):
        return [CategoryRow.from_record(category) for category in self.categories]

    @property
    def is_empty(self):
        return not self.categories

    def delete(self, category_id):
        """Delete a category after confirmation; returns the Visit or None when declined"""
        if not self.confirm(self.delete_confirmation):
            return None
        visit = self.transport.delete(delete_url(category_id))
        self._load(visit)
        return visit

    def reload(self):
        visit = self.transport.get(INDEX_URL)
        self._load(visit)
        return visit

    def _load(self, visit):
        if isinstance(visit.data, dict) and 'categories' in visit.data:
            self.categories = list(visit.data['categories'])


@dataclass(frozen=True)
class Create:
    """Form mode for a category that does not exist yet"""


@dataclass(frozen=True)
class Edit:
    """Form mode for an existing category"""
    category: object

    @property
    def category_id(self):
        return _field(self.category, 'id')


@dataclass
class CategoryFormData:
    name: str = ''
    description: str = ''

    @classmethod
    def for_mode(cls, mode):
        if isinstance(mode, Edit):
            return cls(
                name=_field(mode.category, 'name') or '',
                description=_field(mode.category, 'description') or '',
            )
        return cls()

    def set_name(self, value):
        self.name = value

    def set_description(self, value):
        self.description = value

    def snapshot(self):
        return {'name': self.name, 'description': self.description}


class CategoryFormPage:
    """Create/edit form for a single category"""

    cancel_url = INDEX_URL

    def __init__(self, mode, transport=None, errors=None):
        if not isinstance(mode, (Create, Edit)):
            raise TypeError(f"Unknown form mode: {mode!r}")
        self.mode = mode
        self.transport = transport
        self.data = CategoryFormData.for_mode(mode)
        self.errors = dict(errors or {})
        self.processing = False
        self.redirect_to = None

    @property
    def is_edit(self):
        return isinstance(self.mode, Edit)

    @property
    def title(self):
        return 'Edit Category' if self.is_edit else 'Create Category'

    @property
    def action(self):
        if isinstance(self.mode, Edit):
            return update_url(self.mode.category_id)
        return STORE_URL

    @property
    def method(self):
        return 'PUT' if self.is_edit else 'POST'

    @property
    def submit_disabled(self):
        return self.processing

    @property
    def submit_label(self):
        if self.processing:
            return 'Saving...'
        return 'Update' if self.is_edit else 'Create'

    def error_for(self, field):
        return self.errors.get(field)

    def submit(self):
        """Dispatch one create or update request from a snapshot of the form"""
        payload = self.data.snapshot()
        if not payload['name']:
            # name is a required input; nothing leaves the page
            return None

        self.processing = True
        try:
            visit = self._dispatch(payload)
        finally:
            self.processing = False

        self.errors = dict(visit.errors)
        self.redirect_to = None if visit.errors else visit.url
        return visit

    def _dispatch(self, payload):
        if isinstance(self.mode, Edit):
            return self.transport.put(update_url(self.mode.category_id), payload)
        if isinstance(self.mode, Create):
            return self.transport.post(STORE_URL, payload)
        raise TypeError(f"Unknown form mode: {self.mode!r}")
