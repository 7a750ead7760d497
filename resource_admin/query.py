"""
Query builder: turns request parameters into a scoped, filtered, paginated fetch.

Recognised parameters:
    scope=<name>        apply the named scope first
    q_<field>=<text>    substring match (LIKE %text%)
    min_<field>=<v>     inclusive lower bound
    max_<field>=<v>     inclusive upper bound
    sort=<field>        ascending order, sort=-<field> for descending
    page=<n>            1-based page number

Empty values never constrain the query. Field names in filters are not
validated against the resource.
"""

import logging
import math
from dataclasses import dataclass

from resource_admin.coercion import coerce_filter_value
from resource_admin.repository import at_least, at_most, column_for, contains

logger = logging.getLogger(__name__)

FILTER_PREFIXES = ('q_', 'min_', 'max_')
SCOPE_PARAM = 'scope'
SORT_PARAM = 'sort'
PAGE_PARAM = 'page'
EXPORT_BATCH_SIZE = 500


@dataclass(frozen=True)
class Pagination:
    page: int
    per_page: int
    total_count: int
    total_pages: int
    has_prev: bool
    has_next: bool

    @property
    def prev_page(self):
        return self.page - 1

    @property
    def next_page(self):
        return self.page + 1

    @property
    def offset(self):
        return (self.page - 1) * self.per_page

    @classmethod
    def compute(cls, page, per_page, total_count):
        total_pages = int(math.ceil(total_count / float(per_page))) if per_page else 0
        return cls(
            page=page,
            per_page=per_page,
            total_count=total_count,
            total_pages=total_pages,
            has_prev=page > 1,
            has_next=page < total_pages,
        )


@dataclass(frozen=True)
class ListResult:
    records: list
    pagination: Pagination
    filters: dict
    current_scope: str
    current_sort: str = ''


def parse_page(value):
    """Page number from a raw parameter; defaults to 1 and never goes below 1"""
    try:
        page = int(value)
    except (TypeError, ValueError):
        return 1
    return max(page, 1)


def first_value(params, key):
    """Single value for a key from a plain dict or a werkzeug MultiDict"""
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


class QueryBuilder:
    """Builds and runs list queries for one resource"""

    def __init__(self, repository, resource, params, per_page):
        self.repository = repository
        self.resource = resource
        self.params = params or {}
        self.per_page = per_page
        self.filters = {}
        self.current_scope = ''
        self.current_sort = ''

    def build(self):
        """Scoped and filtered query, without ordering or pagination"""
        query = self.repository.query(self.resource)

        scope_name = first_value(self.params, SCOPE_PARAM) or ''
        if scope_name:
            scope = self.resource.scope(scope_name)
            if scope is not None:
                query = scope.apply(query)
                self.current_scope = scope_name
            else:
                logger.debug('Unknown scope %r on %s ignored', scope_name, self.resource.name)

        for key in self.params:
            value = first_value(self.params, key)
            if value is None or value == '':
                continue
            predicate = self._predicate(key, value)
            if predicate is None:
                continue
            self.filters[key] = value
            query = query.filter(predicate)
        return query

    def _predicate(self, key, value):
        for prefix in FILTER_PREFIXES:
            if key.startswith(prefix):
                field_name = key[len(prefix):]
                break
        else:
            return None
        if not field_name:
            return None

        field = self.resource.field(field_name)
        if prefix == 'q_':
            return contains(self.resource, field_name, value)
        if field is not None:
            value = coerce_filter_value(field.kind, value, field.value_type)
        if prefix == 'min_':
            return at_least(self.resource, field_name, value)
        return at_most(self.resource, field_name, value)

    def ordered(self, query):
        """Apply sort=<field> / sort=-<field>, always breaking ties on the primary key"""
        sort = first_value(self.params, SORT_PARAM) or ''
        descending = sort.startswith('-')
        sort_field = sort.lstrip('-')
        primary = column_for(self.resource, self.resource.primary_key)
        if sort_field and self.resource.field(sort_field) is not None:
            self.current_sort = sort
            criterion = column_for(self.resource, sort_field)
            query = query.order_by(criterion.desc() if descending else criterion.asc())
            if sort_field != self.resource.primary_key:
                query = query.order_by(primary.asc())
            return query
        return query.order_by(primary.asc())

    def run(self):
        """Count, then fetch one page, against the same predicate.

        Both round-trips happen in the current session transaction; no
        commit is issued in between.
        """
        query = self.build()
        total_count = self.repository.count(self.resource, query)
        page = parse_page(first_value(self.params, PAGE_PARAM))
        pagination = Pagination.compute(page, self.per_page, total_count)
        records = self.repository.find(
            self.resource, self.ordered(query), offset=pagination.offset, limit=self.per_page)
        return ListResult(records=records, pagination=pagination,
                          filters=dict(self.filters), current_scope=self.current_scope,
                          current_sort=self.current_sort)

    def export_query(self):
        """Scoped, filtered and ordered query without pagination"""
        return self.ordered(self.build())

    def all(self):
        """Every matching record, ignoring pagination, fetched in batches as it is iterated"""
        return self.repository.stream(self.resource, self.export_query(), batch_size=EXPORT_BATCH_SIZE)
