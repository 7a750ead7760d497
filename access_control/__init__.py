"""
Access Control Module for the Resource Admin console
Manages (role, resource, action) permission grants
"""

import logging
from functools import wraps

from flask import Blueprint, abort, current_app, jsonify, request
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from access_control.gate import ADMIN_ROLE, AuthorizationGate

logger = logging.getLogger(__name__)

access_control_bp = Blueprint('access_control', __name__, url_prefix='/access-control')


def admin_required(view):
    """Restrict a view to the admin role"""
    @wraps(view)
    def wrapped(*args, **kwargs):
        if getattr(current_user, 'role', None) != ADMIN_ROLE:
            abort(403)
        return view(*args, **kwargs)
    return wrapped


def gate():
    return current_app.extensions['resource_admin'].gate


def permission_to_dict(permission):
    return {
        'id': permission.id,
        'role': permission.role,
        'resource_name': permission.resource_name,
        'action': permission.action,
    }


@access_control_bp.route('/permissions')
@login_required
@admin_required
def list_permissions():
    """All permissions, optionally for one role (?role=editor)"""
    permissions = gate().permissions_for(request.args.get('role'))
    return jsonify([permission_to_dict(p) for p in permissions])


@access_control_bp.route('/permissions', methods=['POST'])
@login_required
@admin_required
def grant_permission():
    """Grant an action on a resource to a role"""
    data = request.get_json(silent=True) or request.form
    role = (data.get('role') or '').strip()
    resource_name = (data.get('resource_name') or '').strip()
    action = (data.get('action') or '').strip()

    if not role or not resource_name or not action:
        return jsonify({'success': False, 'error': 'role, resource_name and action are required'}), 400

    registry = current_app.extensions['resource_admin'].registry
    if registry.get(resource_name) is None:
        return jsonify({'success': False, 'error': f'Unknown resource {resource_name}'}), 404

    try:
        permission = gate().grant(role, resource_name, action)
    except SQLAlchemyError as e:
        gate().session.rollback()
        logger.error('Could not grant %s on %s to %s: %s', action, resource_name, role, e)
        return jsonify({'success': False, 'error': str(e)}), 500

    logger.info('Granted %s on %s to %s', action, resource_name, role)
    return jsonify({'success': True, 'permission': permission_to_dict(permission)})


@access_control_bp.route('/permissions/<int:permission_id>', methods=['DELETE'])
@login_required
@admin_required
def revoke_permission(permission_id):
    """Remove a permission grant"""
    try:
        removed = gate().revoke(permission_id)
    except SQLAlchemyError as e:
        gate().session.rollback()
        logger.error('Could not revoke permission %s: %s', permission_id, e)
        return jsonify({'success': False, 'error': str(e)}), 500

    if not removed:
        return jsonify({'success': False, 'error': 'Permission not found'}), 404
    return jsonify({'success': True, 'message': 'Permission removed successfully'})


__all__ = ['access_control_bp', 'admin_required', 'AuthorizationGate']
