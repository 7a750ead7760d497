"""
Field descriptors: one per model attribute the admin can display or edit.

Fields are derived from the SQLAlchemy mapper at registration time. Each
field carries an accessor (getter, setter) built once, so the engine never
looks attributes up by name while serving a request.
"""

import enum
import logging
from dataclasses import dataclass, field as dc_field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, FrozenSet, Optional

from sqlalchemy import Text, inspect

logger = logging.getLogger(__name__)


class FieldKind(enum.Enum):
    TEXT = 'text'
    TEXTAREA = 'textarea'
    NUMBER = 'number'
    DECIMAL = 'decimal'
    BOOLEAN = 'boolean'
    DATE = 'date'
    DATETIME = 'datetime'
    IMAGE = 'image'
    FILE = 'file'
    REFERENCE = 'reference'
    PASSWORD = 'password'

    @classmethod
    def parse(cls, value):
        """Map a kind name to a FieldKind, falling back to TEXT for unknown names"""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            logger.warning('Unknown field kind %r, using text', value)
            return cls.TEXT

    @property
    def is_upload(self):
        return self in (FieldKind.IMAGE, FieldKind.FILE)


class View(enum.Enum):
    LIST = 'list'
    SHOW = 'show'
    EDIT = 'edit'


ALL_VIEWS = frozenset(View)


@dataclass(frozen=True)
class FieldAccessor:
    getter: Callable[[Any], Any]
    setter: Callable[[Any, Any], None]


def build_accessor(model, name):
    """Build the (getter, setter) pair for a mapped attribute, or None if the model has no such attribute"""
    mapper = inspect(model)
    if name not in mapper.all_orm_descriptors:
        return None

    def getter(instance):
        return getattr(instance, name)

    def setter(instance, value):
        setattr(instance, name, value)

    return FieldAccessor(getter=getter, setter=setter)


@dataclass(frozen=True)
class Field:
    name: str
    label: str
    kind: FieldKind = FieldKind.TEXT
    readonly: bool = False
    searchable: bool = False
    search_resource: Optional[str] = None
    visible_in: FrozenSet[View] = ALL_VIEWS
    transform: Optional[Callable[[Any], Any]] = None
    value_type: Optional[type] = None
    primary_key: bool = False
    accessor: Optional[FieldAccessor] = dc_field(default=None, compare=False, repr=False)

    def is_visible_in(self, view):
        return View(view) in self.visible_in

    @property
    def writable(self):
        return not self.readonly and self.accessor is not None

    def raw_value(self, instance):
        return self.accessor.getter(instance)

    def display_value(self, instance):
        """Value for rendering: the raw attribute passed through the decorator, if any"""
        value = self.raw_value(instance)
        if self.transform is not None:
            return self.transform(value)
        return value

    def assign(self, instance, value):
        self.accessor.setter(instance, value)


def default_label(name):
    return name.replace('_', ' ').title()


def column_python_type(column):
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def infer_kind(column):
    """Guess the field kind from a column; unsupported types map to TEXT"""
    if column.foreign_keys:
        return FieldKind.REFERENCE
    if isinstance(column.type, Text):
        return FieldKind.TEXTAREA
    python_type = column_python_type(column)
    if python_type is None:
        return FieldKind.TEXT
    # bool before int: bool is a subclass of int
    if issubclass(python_type, bool):
        return FieldKind.BOOLEAN
    if issubclass(python_type, int):
        return FieldKind.NUMBER
    if issubclass(python_type, (float, Decimal)):
        return FieldKind.DECIMAL
    if issubclass(python_type, datetime):
        return FieldKind.DATETIME
    if issubclass(python_type, date):
        return FieldKind.DATE
    return FieldKind.TEXT


def is_generated_key(column, single_key):
    """True when the database or the model supplies the key value on insert"""
    if column.default is not None or column.server_default is not None:
        return True
    if column.autoincrement is True:
        return True
    if column.autoincrement != 'auto' or not single_key or column.foreign_keys:
        return False
    python_type = column_python_type(column)
    return python_type is not None and issubclass(python_type, int) and not issubclass(python_type, bool)


def derive_fields(model):
    """Derive one Field per mapped column, in declaration order.

    Generated primary keys are read-only and kept off the edit form. Natural
    keys stay editable so new records can be created with them.
    """
    mapper = inspect(model)
    primary_keys = {mapper.get_property_by_column(col).key for col in mapper.primary_key}
    single_key = len(primary_keys) == 1
    fields = []
    for attr in mapper.column_attrs:
        column = attr.columns[0]
        is_pk = attr.key in primary_keys
        generated = is_pk and is_generated_key(column, single_key)
        fields.append(Field(
            name=attr.key,
            label=default_label(attr.key),
            kind=infer_kind(column),
            readonly=generated,
            visible_in=frozenset({View.LIST, View.SHOW}) if generated else ALL_VIEWS,
            value_type=column_python_type(column),
            primary_key=is_pk,
            accessor=build_accessor(model, attr.key),
        ))
    return fields


def override_field(base, options, model=None):
    """Apply a form_fields override dict to a Field (or create one from scratch when base is None)"""
    changes = {}
    if 'label' in options:
        changes['label'] = options['label']
    if 'type' in options:
        changes['kind'] = FieldKind.parse(options['type'])
    if 'readonly' in options:
        changes['readonly'] = bool(options['readonly'])
    if 'source' in options:
        changes['search_resource'] = options['source']
    if 'searchable' in options:
        changes['searchable'] = bool(options['searchable'])
    if 'visible_in' in options:
        changes['visible_in'] = frozenset(View(v) for v in options['visible_in'])
    if 'decorator' in options:
        changes['transform'] = options['decorator']
    if base is None:
        name = options['name']
        base = Field(name=name, label=default_label(name),
                     accessor=build_accessor(model, name) if model is not None else None)
    return replace(base, **changes)
