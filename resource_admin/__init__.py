"""
Resource Admin
Metadata-driven admin console for Flask-SQLAlchemy models
"""

from dataclasses import dataclass
from typing import Any

from config import AdminSettings
from models import db
from resource_admin.errors import (
    AdminError, AuthorizationDenied, RegistrationError, ResourceNotFound, StorageError,
)
from resource_admin.fields import Field, FieldKind, View
from resource_admin.resources import (
    Action, ActionContext, ActionKind, Association, ChartType, Resource, Scope,
    belongs_to, has_many,
)
from resource_admin.registry import Registry, RegistryBuilder
from resource_admin.repository import ModelRepository
from resource_admin.uploads import UploadStore
from resource_admin.engine import AdminEngine
from resource_admin.views import admin_bp, render_custom_page


@dataclass(frozen=True)
class AdminState:
    """What the blueprints find under app.extensions['resource_admin']"""
    registry: Registry
    engine: AdminEngine
    gate: Any
    settings: Any


def init_admin(app, registry):
    """Wire the engine for an application and register the admin blueprint"""
    from access_control.gate import AuthorizationGate

    settings = AdminSettings.from_mapping(app.config)
    gate = AuthorizationGate(db.session)
    engine = AdminEngine(
        registry=registry,
        repository=ModelRepository(db.session),
        gate=gate,
        settings=settings,
        uploads=UploadStore(settings.upload_dir),
    )
    app.extensions['resource_admin'] = AdminState(
        registry=registry, engine=engine, gate=gate, settings=settings)
    app.register_blueprint(admin_bp)
    return engine


__all__ = [
    'AdminError', 'AuthorizationDenied', 'RegistrationError', 'ResourceNotFound', 'StorageError',
    'Field', 'FieldKind', 'View',
    'Action', 'ActionContext', 'ActionKind', 'Association', 'ChartType', 'Resource', 'Scope',
    'belongs_to', 'has_many',
    'Registry', 'RegistryBuilder', 'ModelRepository', 'UploadStore', 'AdminEngine',
    'AdminState', 'admin_bp', 'init_admin', 'render_custom_page',
]
