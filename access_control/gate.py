"""
Authorization gate: decides whether a role may perform an action on a resource
"""

import logging

from models import Permission
from resource_admin.errors import AuthorizationDenied

logger = logging.getLogger(__name__)

ADMIN_ROLE = 'admin'

# These actions skip the mandatory check: they gate themselves or are open
SELF_GATED_ACTIONS = frozenset({'export', 'action', 'collection_action', 'batch_action'})


class AuthorizationGate:
    """Default-deny permission check over the Permission table"""

    def __init__(self, session):
        self.session = session

    def is_allowed(self, role, resource_name, action):
        """admin is always allowed; anyone else needs an exact (role, resource, action) row"""
        if role == ADMIN_ROLE:
            return True
        if not role:
            return False
        match = self.session.query(Permission).filter_by(
            role=role,
            resource_name=resource_name,
            action=action,
        ).first()
        return match is not None

    def authorize(self, role, resource_name, action):
        """Raise AuthorizationDenied unless the action is allowed or self-gated"""
        if action in SELF_GATED_ACTIONS:
            return
        if not self.is_allowed(role, resource_name, action):
            logger.info('Denied %s on %s for role %s', action, resource_name, role)
            raise AuthorizationDenied(role, resource_name, action)

    def permissions_for(self, role=None):
        query = self.session.query(Permission)
        if role:
            query = query.filter_by(role=role)
        return query.order_by(Permission.role, Permission.resource_name, Permission.action).all()

    def grant(self, role, resource_name, action):
        """Create the permission row if missing; returns it either way"""
        permission = self.session.query(Permission).filter_by(
            role=role, resource_name=resource_name, action=action).first()
        if permission is None:
            permission = Permission(role=role, resource_name=resource_name, action=action)
            self.session.add(permission)
            self.session.commit()
        return permission

    def revoke(self, permission_id):
        """Delete a permission row; returns False when it did not exist"""
        permission = self.session.get(Permission, permission_id)
        if permission is None:
            return False
        self.session.delete(permission)
        self.session.commit()
        return True
