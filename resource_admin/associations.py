"""
Association resolver: expands has_many / belongs_to relations at request time
"""

import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, List, Optional

from sqlalchemy import or_

from resource_admin.fields import FieldKind, View
from resource_admin.repository import column_for, contains, equals
from resource_admin.resources import AssociationKind

logger = logging.getLogger(__name__)

TEXT_KINDS = (FieldKind.TEXT, FieldKind.TEXTAREA)
LABEL_CANDIDATES = ('name', 'title', 'label', 'email', 'code', 'username')


@dataclass
class AssociationData:
    resource: Any
    fields: List[Any] = dc_field(default_factory=list)
    items: List[dict] = dc_field(default_factory=list)
    options: List[dict] = dc_field(default_factory=list)
    search_driven: bool = False
    foreign_key: Optional[str] = None


def record_label(resource, instance):
    """Human label for a record: the first name-like field, else the id"""
    for candidate in LABEL_CANDIDATES:
        f = resource.field(candidate)
        if f is not None and f.accessor is not None:
            value = f.raw_value(instance)
            if value not in (None, ''):
                return str(value)
    return f'{resource.name} #{resource.identify(instance)}'


class AssociationResolver:
    """Resolves associations against the repository; nothing is cached"""

    def __init__(self, registry, repository, search_threshold):
        self.registry = registry
        self.repository = repository
        self.search_threshold = search_threshold

    def has_many(self, resource, record_id):
        """Child records for every has_many association, projected through the target's list fields"""
        resolved = {}
        if record_id is None:
            return resolved
        for association in resource.associations_of(AssociationKind.HAS_MANY):
            target = self.registry.resource(association.target)
            target_fields = target.fields_for(View.LIST)
            children = self.repository.find_where(
                target, equals(target, association.foreign_key, record_id))
            resolved[association.name] = AssociationData(
                resource=target,
                fields=target_fields,
                items=[target.to_dict(child, target_fields) for child in children],
                foreign_key=association.foreign_key,
            )
        return resolved

    def belongs_to(self, resource):
        """Selectable options for belongs_to associations and searchable fields.

        Small target collections are expanded eagerly; at or above the search
        threshold the association is marked search-driven and nothing is fetched.
        """
        resolved = {}
        for association in resource.associations_of(AssociationKind.BELONGS_TO):
            target = self.registry.resource(association.target)
            total = self.repository.count(target)
            if total < self.search_threshold:
                options = self.repository.find(target, target_query(self.repository, target))
                resolved[association.name] = AssociationData(
                    resource=target,
                    fields=public_fields(target),
                    options=[self.option(target, o) for o in options],
                    foreign_key=association.foreign_key,
                )
            else:
                resolved[association.name] = AssociationData(
                    resource=target, search_driven=True, foreign_key=association.foreign_key)

        for f in resource.fields_for(View.EDIT):
            if f.searchable and f.search_resource:
                target = self.registry.resource(f.search_resource)
                resolved[f.name] = AssociationData(resource=target, search_driven=True, foreign_key=f.name)
        return resolved

    def option(self, target, instance):
        data = target.to_dict(instance, public_fields(target))
        data['_label'] = record_label(target, instance)
        return data

    def search(self, target, term, limit=20):
        """Lookup for async widgets: OR-match the term against every text field"""
        query = target_query(self.repository, target)
        term = (term or '').strip()
        if term:
            clauses = [contains(target, f.name, term) for f in target.fields
                       if f.kind in TEXT_KINDS and f.accessor is not None]
            if clauses:
                query = query.filter(or_(*clauses))
        records = self.repository.find(target, query, limit=limit)
        return [{'id': target.identify(r), 'label': record_label(target, r)} for r in records]


def public_fields(target):
    return [f for f in target.fields if f.kind is not FieldKind.PASSWORD]


def target_query(repository, target):
    return repository.query(target).order_by(column_for(target, target.primary_key).asc())
