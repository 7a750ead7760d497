"""
Resource registry.

Registration happens on a RegistryBuilder; build() returns an immutable
Registry snapshot that the engine and views share by reference.
"""

import logging
from collections import OrderedDict
from types import MappingProxyType

from sqlalchemy import inspect

from resource_admin.errors import RegistrationError, ResourceNotFound
from resource_admin.fields import View, derive_fields, override_field
from resource_admin.resources import (
    DEFAULT_GROUP, Chart, ChartType, Page, Resource,
)

logger = logging.getLogger(__name__)


class RegistryBuilder:
    """Collects model registrations, pages and charts at startup"""

    def __init__(self):
        self._resources = OrderedDict()
        self._pages = OrderedDict()
        self._charts = []

    def register(self, model, name=None, group=DEFAULT_GROUP, list_display=None,
                 exclude=(), readonly_fields=(), form_fields=None, decorators=None,
                 associations=(), scopes=(), batch_actions=(), collection_actions=(),
                 member_actions=()):
        """Register a model and derive its Resource descriptor.

        Options mirror the admin config dicts: list_display limits the list
        view, readonly_fields excludes fields from writes, form_fields maps a
        field name to overrides (type, label, source, searchable, visible_in)
        and decorators maps a field name to a display transform.
        """
        resource_name = name or model.__name__
        if resource_name in self._resources:
            raise RegistrationError(f'Resource {resource_name!r} registered twice')

        mapper = inspect(model)
        primary_key = mapper.get_property_by_column(mapper.primary_key[0]).key

        excluded = set(exclude)
        fields = OrderedDict((f.name, f) for f in derive_fields(model) if f.name not in excluded)
        omitted = []

        for field_name, options in (form_fields or {}).items():
            base = fields.get(field_name)
            candidate = override_field(base, dict(options, name=field_name), model=model)
            if candidate.accessor is None:
                logger.warning('%s has no attribute %r; field omitted', resource_name, field_name)
                omitted.append(field_name)
                continue
            fields[field_name] = candidate

        for field_name, decorator in (decorators or {}).items():
            if field_name not in fields:
                logger.warning('%s has no field %r to decorate', resource_name, field_name)
                omitted.append(field_name)
                continue
            fields[field_name] = override_field(fields[field_name], {'decorator': decorator})

        for field_name in readonly_fields:
            if field_name in fields:
                fields[field_name] = override_field(fields[field_name], {'readonly': True})
            else:
                omitted.append(field_name)

        if list_display is not None:
            shown = set(list_display)
            for missing in sorted(shown - set(fields)):
                omitted.append(missing)
            for field_name, f in list(fields.items()):
                views = set(f.visible_in)
                if field_name in shown:
                    views.add(View.LIST)
                else:
                    views.discard(View.LIST)
                fields[field_name] = override_field(f, {'visible_in': [v.value for v in views]})

        resource = Resource(
            name=resource_name,
            model=model,
            primary_key=primary_key,
            group=group or DEFAULT_GROUP,
            fields=tuple(fields.values()),
            associations=tuple(associations),
            scopes=tuple(scopes),
            batch_actions=tuple(batch_actions),
            collection_actions=tuple(collection_actions),
            member_actions=tuple(member_actions),
            omitted_fields=tuple(omitted),
        )
        self._resources[resource_name] = resource
        logger.info('Registered resource: %s', resource_name)
        return resource

    def add_page(self, name, view, group=DEFAULT_GROUP, title=None):
        """Register a custom page"""
        if name in self._pages:
            raise RegistrationError(f'Page {name!r} registered twice')
        self._pages[name] = Page(name=name, view=view, group=group or DEFAULT_GROUP, title=title)

    def add_chart(self, label, chart_type, provider):
        """Register a dashboard chart; provider(repository) -> (labels, values)"""
        self._charts.append(Chart(label=label, type=ChartType(chart_type), provider=provider))

    def build(self):
        """Check cross-references and freeze everything into a Registry"""
        for resource in self._resources.values():
            for association in resource.associations:
                if association.target not in self._resources:
                    raise RegistrationError(
                        f'{resource.name}.{association.name} targets unknown resource {association.target!r}')
            for f in resource.fields:
                if f.search_resource and f.search_resource not in self._resources:
                    raise RegistrationError(
                        f'{resource.name}.{f.name} searches unknown resource {f.search_resource!r}')
            if resource.name in self._pages:
                raise RegistrationError(f'Page and resource share the name {resource.name!r}')
        return Registry(self._resources, self._pages, self._charts)


class Registry:
    """Read-only table of resources, pages and charts"""

    def __init__(self, resources, pages, charts):
        self._resources = MappingProxyType(OrderedDict(resources))
        self._pages = MappingProxyType(OrderedDict(pages))
        self._charts = tuple(charts)

    @property
    def resources(self):
        return self._resources

    @property
    def pages(self):
        return self._pages

    @property
    def charts(self):
        return self._charts

    def get(self, name):
        return self._resources.get(name)

    def resource(self, name):
        """Look up a resource, raising ResourceNotFound when absent"""
        resource = self._resources.get(name)
        if resource is None:
            raise ResourceNotFound(name)
        return resource

    def page(self, name):
        return self._pages.get(name)

    def grouped_resources(self):
        groups = OrderedDict()
        for resource in self._resources.values():
            groups.setdefault(resource.group or DEFAULT_GROUP, []).append(resource)
        return groups

    def grouped_pages(self):
        groups = OrderedDict()
        for page in self._pages.values():
            groups.setdefault(page.group or DEFAULT_GROUP, []).append(page)
        return groups
