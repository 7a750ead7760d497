"""
Admin operation engine.

Orchestrates the registry, authorization gate, query builder and association
resolver to implement list, show, form, save, delete, export and custom
actions. Every method returns plain data for the rendering layer; nothing is
kept between calls.
"""

import logging
from dataclasses import dataclass, field as dc_field
from typing import Any, Dict, List, Optional

from models import AuditAction
from resource_admin.associations import AssociationResolver
from resource_admin.coercion import (
    CoercionStatus, coerce, is_new_identifier, ok, omitted,
)
from resource_admin.fields import FieldKind, View
from resource_admin.query import Pagination, QueryBuilder
from resource_admin.resources import ActionContext, ActionKind

logger = logging.getLogger(__name__)

AUDIT_CREATE = 'Create'
AUDIT_UPDATE = 'Update'
AUDIT_DELETE = 'Delete'


# ===========================================
# RESULT BUNDLES
# ===========================================

@dataclass
class ViewBundle:
    """Everything a list/show/form template needs"""
    resource: Any
    fields: list
    user: Any = None
    items: List[dict] = dc_field(default_factory=list)
    item: Dict[str, Any] = dc_field(default_factory=dict)
    pagination: Optional[Pagination] = None
    filters: Dict[str, str] = dc_field(default_factory=dict)
    current_scope: str = ''
    current_sort: str = ''
    associations: Dict[str, Any] = dc_field(default_factory=dict)
    error: Optional[str] = None

    @property
    def scopes(self):
        return self.resource.scopes

    @property
    def found(self):
        return bool(self.item)


@dataclass(frozen=True)
class Stat:
    label: str
    value: int


@dataclass(frozen=True)
class ChartWidget:
    id: str
    label: str
    type: str
    labels: list
    values: list


@dataclass
class DashboardBundle:
    stats: List[Stat]
    charts: List[ChartWidget]
    user: Any = None
    resources: Dict[str, list] = dc_field(default_factory=dict)
    pages: Dict[str, list] = dc_field(default_factory=dict)


@dataclass
class SaveResult:
    record_id: str
    kind: str
    coercions: Dict[str, Any] = dc_field(default_factory=dict)

    @property
    def created(self):
        return self.kind == AUDIT_CREATE

    @property
    def defaulted_fields(self):
        return [name for name, result in self.coercions.items()
                if result.status is CoercionStatus.DEFAULTED]


def flat_params(params):
    """One value per key, whether params is a plain dict or a werkzeug MultiDict"""
    if params is None:
        return {}
    if hasattr(params, 'to_dict'):
        return params.to_dict()
    return dict(params)


def role_of(user):
    return getattr(user, 'role', None)


def user_label(user):
    if user is None:
        return 'system'
    return getattr(user, 'email', None) or str(user)


# ===========================================
# ENGINE
# ===========================================

class AdminEngine:

    def __init__(self, registry, repository, gate, settings, uploads=None):
        self.registry = registry
        self.repository = repository
        self.gate = gate
        self.settings = settings
        self.uploads = uploads
        self.resolver = AssociationResolver(registry, repository, settings.search_threshold)

    def _authorized_resource(self, user, resource_name, action):
        resource = self.registry.resource(resource_name)
        self.gate.authorize(role_of(user), resource.name, action)
        return resource

    def dashboard(self, user):
        """Record counts per resource plus chart data"""
        stats = [Stat(label=name, value=self.repository.count(resource))
                 for name, resource in self.registry.resources.items()]
        charts = []
        for index, chart in enumerate(self.registry.charts):
            labels, values = chart.data(self.repository)
            charts.append(ChartWidget(id=f'chart-{index}', label=chart.label,
                                      type=chart.type.value, labels=labels, values=values))
        return DashboardBundle(stats=stats, charts=charts, user=user,
                               resources=self.registry.grouped_resources(),
                               pages=self.registry.grouped_pages())

    def list(self, user, resource_name, params):
        resource = self._authorized_resource(user, resource_name, 'list')
        fields = resource.fields_for(View.LIST)
        builder = QueryBuilder(self.repository, resource, params, self.settings.default_per_page)
        result = builder.run()
        return ViewBundle(
            resource=resource,
            fields=fields,
            user=user,
            items=[resource.to_dict(record, fields) for record in result.records],
            pagination=result.pagination,
            filters=result.filters,
            current_scope=result.current_scope,
            current_sort=result.current_sort,
        )

    def show(self, user, resource_name, record_id):
        """Single record with its has_many children; an unknown id yields an empty item"""
        resource = self._authorized_resource(user, resource_name, 'show')
        fields = resource.fields_for(View.SHOW)
        record = self.repository.get(resource, record_id)
        bundle = ViewBundle(resource=resource, fields=fields, user=user)
        if record is not None:
            bundle.item = resource.to_dict(record, fields)
            bundle.associations = self.resolver.has_many(resource, resource.identify(record))
        return bundle

    def form(self, user, resource_name, record_id=None):
        """New (record_id None) or edit form with belongs_to options"""
        action = 'new' if record_id is None else 'edit'
        resource = self._authorized_resource(user, resource_name, action)
        fields = resource.fields_for(View.EDIT)
        bundle = ViewBundle(resource=resource, fields=fields, user=user)
        if record_id is not None:
            record = self.repository.get(resource, record_id)
            if record is not None:
                raw_fields = [f for f in fields if f.kind is not FieldKind.PASSWORD]
                bundle.item = {f.name: f.raw_value(record) for f in raw_fields}
                bundle.item[resource.primary_key] = resource.identify(record)
        bundle.associations = self.resolver.belongs_to(resource)
        return bundle

    def save(self, user, resource_name, form, files=None):
        """Create or update from submitted values and append one audit entry.

        A missing, empty or zero identifier creates. An identifier that does
        not resolve to a record also creates. A natural (non-generated) key
        is taken from the form on create and never changed on update.
        """
        resource = self._authorized_resource(user, resource_name, 'save')
        raw_id = form.get(resource.primary_key)
        key_field = resource.field(resource.primary_key)
        natural_key = key_field is not None and key_field.writable

        instance = None
        if not is_new_identifier(raw_id):
            instance = self.repository.get(resource, raw_id)
            if instance is None and not natural_key:
                logger.warning('%s #%s not found on save; creating a new record', resource.name, raw_id)
        is_update = instance is not None
        if instance is None:
            instance = self.repository.new(resource)

        coercions = {}
        for f in resource.fields_for(View.EDIT):
            if not f.writable or (is_update and f.primary_key):
                continue
            if f.kind.is_upload:
                coercions[f.name] = self._store_upload(instance, f, files)
                continue
            result = coerce(f.kind, form.get(f.name), f.value_type)
            coercions[f.name] = result
            if result.status is CoercionStatus.DEFAULTED:
                logger.warning('%s.%s: could not parse %r, using %r',
                               resource.name, f.name, result.raw, result.value)
            if result.should_assign:
                f.assign(instance, result.value)

        self.repository.save(resource, instance)
        record_id = str(resource.identify(instance))
        kind = AUDIT_UPDATE if is_update else AUDIT_CREATE
        self.record_action(user, resource, record_id, kind, 'Saved from form')
        return SaveResult(record_id=record_id, kind=kind, coercions=coercions)

    def _store_upload(self, instance, f, files):
        upload = (files or {}).get(f.name)
        if self.uploads is None or upload is None:
            return omitted()
        reference = self.uploads.save(upload)
        if reference is None:
            return omitted()
        f.assign(instance, reference)
        return ok(reference, upload.filename)

    def delete(self, user, resource_name, record_id):
        """Delete by id; unknown ids are a no-op. The attempt is always audited."""
        resource = self._authorized_resource(user, resource_name, 'delete')
        deleted = self.repository.delete(resource, record_id)
        if not deleted:
            logger.info('%s #%s not found on delete', resource.name, record_id)
        self.record_action(user, resource, str(record_id), AUDIT_DELETE, 'Record deleted')
        return deleted

    def export(self, user, resource_name, params=None):
        """Header row of labels plus an iterator of raw-value rows for every matching record"""
        resource = self._authorized_resource(user, resource_name, 'export')
        fields = [f for f in resource.fields
                  if f.accessor is not None and f.kind is not FieldKind.PASSWORD]
        records = QueryBuilder(self.repository, resource, params,
                               self.settings.default_per_page).all()
        headers = [f.label for f in fields]
        rows = ([f.raw_value(record) for f in fields] for record in records)
        return headers, rows

    def run_action(self, user, resource_name, kind, action_name, targets=None, params=None):
        """Invoke a batch, collection or member action; the result is returned uninterpreted.

        Returns None when the action is unknown or a batch action has no targets.
        """
        kind = ActionKind(kind)
        resource = self._authorized_resource(user, resource_name, kind.value)
        action = resource.find_action(kind, action_name)
        if action is None:
            logger.info('%s has no %s named %r', resource.name, kind.value, action_name)
            return None
        if kind is ActionKind.BATCH:
            targets = [resource.parse_identifier(t) for t in (targets or []) if t not in (None, '')]
            if not targets:
                return None
        elif kind is ActionKind.MEMBER:
            targets = resource.parse_identifier(targets)
        else:
            targets = None
        context = ActionContext(resource=resource, repository=self.repository,
                                user=user, params=flat_params(params))
        logger.info('Running %s %s.%s', kind.value, resource.name, action.name)
        return action.execute(context, targets)

    def search(self, user, resource_name, term):
        """Async lookup options; needs list permission on the searched resource"""
        resource = self._authorized_resource(user, resource_name, 'list')
        return self.resolver.search(resource, term)

    def record_action(self, user, resource, record_id, kind, description):
        """Append an audit entry; written after (and separately from) the data change"""
        entry = AuditAction(
            user=user_label(user),
            resource_name=resource.name,
            record_id=record_id,
            action=kind,
            description=description,
        )
        return self.repository.append(entry)
