"""
Model repository backed by a Flask-SQLAlchemy session.

Every method is an independent round-trip. Failures are rolled back and
re-raised as StorageError carrying the operation and resource name.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import and_, column
from sqlalchemy.orm import ColumnProperty
from sqlalchemy.exc import SQLAlchemyError

from resource_admin.errors import StorageError

logger = logging.getLogger(__name__)


# ===========================================
# PREDICATES
# ===========================================

def column_for(resource, name):
    """Mapped column attribute for a field name.

    Anything else (unknown names, relationships) becomes a bare column
    reference, so the database rejects it as a storage error.
    """
    attr = getattr(resource.model, name, None)
    if isinstance(getattr(attr, 'property', None), ColumnProperty):
        return attr
    return column(name)


def equals(resource, name, value):
    return column_for(resource, name) == value


def contains(resource, name, value):
    return column_for(resource, name).like(f'%{value}%')


def at_least(resource, name, value):
    return column_for(resource, name) >= value


def at_most(resource, name, value):
    return column_for(resource, name) <= value


def all_of(*predicates):
    return and_(*predicates)


# ===========================================
# REPOSITORY
# ===========================================

class ModelRepository:
    """Count, find, get, save and delete for any registered resource"""

    def __init__(self, session):
        self.session = session

    @contextmanager
    def _guard(self, operation, resource_name):
        try:
            yield
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error('Storage failure during %s on %s: %s', operation, resource_name, e)
            raise StorageError(operation, resource_name, str(e)) from e

    def query(self, resource):
        """Base query over the resource's model"""
        return self.session.query(resource.model)

    def count(self, resource, query=None):
        with self._guard('count', resource.name):
            if query is None:
                query = self.query(resource)
            return query.order_by(None).count()

    def find(self, resource, query=None, offset=None, limit=None):
        with self._guard('find', resource.name):
            if query is None:
                query = self.query(resource)
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def stream(self, resource, query=None, batch_size=500):
        """Iterate over every matching record, fetching batch_size rows at a time"""
        if query is None:
            query = self.query(resource)
        with self._guard('stream', resource.name):
            yield from query.yield_per(batch_size)

    def find_where(self, resource, *predicates):
        with self._guard('find', resource.name):
            query = self.query(resource)
            if predicates:
                query = query.filter(all_of(*predicates))
            return query.all()

    def get(self, resource, record_id):
        """Fetch one record by identifier, or None"""
        identifier = resource.parse_identifier(record_id)
        if identifier is None:
            return None
        with self._guard('get', resource.name):
            return self.session.get(resource.model, identifier)

    def new(self, resource):
        return resource.model()

    def save(self, resource, instance):
        """Insert or update, then commit"""
        with self._guard('save', resource.name):
            self.session.add(instance)
            self.session.commit()
            return instance

    def delete(self, resource, record_id):
        """Delete by identifier; returns False when nothing matched"""
        instance = self.get(resource, record_id)
        if instance is None:
            return False
        with self._guard('delete', resource.name):
            self.session.delete(instance)
            self.session.commit()
            return True

    def append(self, instance):
        """Persist a standalone row (audit entries); committed on its own"""
        name = type(instance).__name__
        with self._guard('append', name):
            self.session.add(instance)
            self.session.commit()
            return instance
