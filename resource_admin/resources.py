"""
Resource descriptors and the extension points attached to them
"""

import enum
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Mapping, Optional, Tuple

from resource_admin.coercion import coerce_key
from resource_admin.fields import Field

DEFAULT_GROUP = 'Default'


class AssociationKind(enum.Enum):
    BELONGS_TO = 'belongs_to'
    HAS_MANY = 'has_many'


@dataclass(frozen=True)
class Association:
    kind: AssociationKind
    name: str
    target: str
    foreign_key: str


def belongs_to(name, target, foreign_key):
    return Association(AssociationKind.BELONGS_TO, name, target, foreign_key)


def has_many(name, target, foreign_key):
    return Association(AssociationKind.HAS_MANY, name, target, foreign_key)


@dataclass(frozen=True)
class Scope:
    """A named query transform; handler(query) -> query"""
    name: str
    handler: Callable[[Any], Any]

    def apply(self, query):
        return self.handler(query)


@dataclass(frozen=True)
class ActionContext:
    """What an action handler may see: the resource, the repository, the acting user and the request parameters"""
    resource: 'Resource'
    repository: Any
    user: Any
    params: Mapping[str, Any] = dc_field(default_factory=dict)


@dataclass(frozen=True)
class Action:
    """A custom operation; handler(context, targets) -> result.

    targets is the list of selected ids for batch actions, the record id for
    member actions, and None for collection actions.
    """
    name: str
    handler: Callable[[ActionContext, Any], Any]
    label: Optional[str] = None

    def execute(self, context, targets):
        return self.handler(context, targets)

    @property
    def display_label(self):
        return self.label or self.name.replace('_', ' ').title()


class ActionKind(enum.Enum):
    BATCH = 'batch_action'
    COLLECTION = 'collection_action'
    MEMBER = 'action'


@dataclass(frozen=True)
class Page:
    """A custom, non-model page rendered inside the admin layout"""
    name: str
    view: Callable[..., Any]
    group: str = DEFAULT_GROUP
    title: Optional[str] = None


class ChartType(enum.Enum):
    BAR = 'bar'
    LINE = 'line'
    PIE = 'pie'


@dataclass(frozen=True)
class Chart:
    """A dashboard widget; provider(repository) -> (labels, values)"""
    label: str
    type: ChartType
    provider: Callable[[Any], Tuple[list, list]]

    def data(self, repository):
        labels, values = self.provider(repository)
        return list(labels), [float(v) for v in values]


@dataclass(frozen=True)
class Resource:
    name: str
    model: Any
    primary_key: str
    group: str = DEFAULT_GROUP
    fields: Tuple[Field, ...] = ()
    associations: Tuple[Association, ...] = ()
    scopes: Tuple[Scope, ...] = ()
    batch_actions: Tuple[Action, ...] = ()
    collection_actions: Tuple[Action, ...] = ()
    member_actions: Tuple[Action, ...] = ()
    omitted_fields: Tuple[str, ...] = ()

    def fields_for(self, view):
        """Fields visible in the given view, in declaration order"""
        return [f for f in self.fields if f.is_visible_in(view)]

    def field(self, name):
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def scope(self, name):
        for s in self.scopes:
            if s.name == name:
                return s
        return None

    def actions(self, kind):
        kind = ActionKind(kind)
        if kind is ActionKind.BATCH:
            return self.batch_actions
        if kind is ActionKind.COLLECTION:
            return self.collection_actions
        return self.member_actions

    def find_action(self, kind, name):
        for action in self.actions(kind):
            if action.name == name:
                return action
        return None

    def associations_of(self, kind):
        return [a for a in self.associations if a.kind is kind]

    def identify(self, instance):
        return getattr(instance, self.primary_key)

    def parse_identifier(self, raw):
        """Identifier from request text, typed like the primary key column"""
        key_field = self.field(self.primary_key)
        return coerce_key(raw, key_field.value_type if key_field is not None else None)

    def to_dict(self, instance, fields):
        """Project an instance through the given fields (decorators applied), always including the id"""
        data = {}
        for f in fields:
            if f.accessor is None:
                continue
            data[f.name] = f.display_value(instance)
        data[self.primary_key] = self.identify(instance)
        return data
