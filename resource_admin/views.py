"""
Admin blueprint: routing, session login and rendering around the engine
"""

import csv
import io
import logging
import os

from flask import (
    Blueprint, abort, current_app, flash, jsonify, make_response, redirect,
    render_template, request, send_from_directory, url_for,
)
from flask_login import current_user, login_required, login_user, logout_user
from markupsafe import Markup

from models import db, AdminSession, AdminUser
from resource_admin.errors import AuthorizationDenied, ResourceNotFound, StorageError
from resource_admin.resources import ActionKind

logger = logging.getLogger(__name__)

# Create admin blueprint
admin_bp = Blueprint('resource_admin', __name__, url_prefix='/admin', template_folder='templates')


def admin_state():
    return current_app.extensions['resource_admin']


def acting_user():
    return current_user._get_current_object()


def back_to_list(name):
    return redirect(url_for('resource_admin.resource_action', name=name))


def render_custom_page(title, content):
    """Render developer-supplied HTML inside the admin layout"""
    return render_template('admin/page.html', title=title, content=Markup(content))


# ===========================================
# AUTHENTICATION
# ===========================================

@admin_bp.route('/login', methods=['GET', 'POST'])
def login():
    if request.method == 'POST':
        email = request.form.get('email', '').strip()
        password = request.form.get('password', '')

        user = AdminUser.query.filter_by(email=email).first()
        if user and user.is_active and user.check_password(password):
            admin_session = AdminSession.open_for(user, admin_state().settings.session_ttl)
            db.session.add(admin_session)
            db.session.commit()
            user.active_session_id = admin_session.id
            login_user(user)
            logger.info('Login for %s', email)
            return redirect(url_for('resource_admin.dashboard'))

        flash('Invalid credentials', 'error')

    return render_template('admin/login.html')


@admin_bp.route('/logout')
def logout():
    session_id = current_user.get_id() if current_user.is_authenticated else None
    if session_id:
        AdminSession.query.filter_by(id=session_id).delete()
        db.session.commit()
    logout_user()
    return redirect(url_for('resource_admin.login'))


# ===========================================
# DASHBOARD & UPLOADS
# ===========================================

@admin_bp.route('/')
@login_required
def dashboard():
    """Admin dashboard with record counts and charts"""
    try:
        bundle = admin_state().engine.dashboard(acting_user())
    except StorageError as e:
        flash(f'Error loading dashboard: {e}', 'error')
        bundle = None
    return render_template('admin/dashboard.html', bundle=bundle)


@admin_bp.route('/uploads/<path:filename>')
@login_required
def uploaded_file(filename):
    return send_from_directory(os.path.abspath(admin_state().settings.upload_dir), filename)


# ===========================================
# RESOURCE ROUTES
# ===========================================

@admin_bp.route('/<name>/search')
@login_required
def search(name):
    """JSON lookup used by search-driven association widgets"""
    try:
        options = admin_state().engine.search(acting_user(), name, request.args.get('q', ''))
    except ResourceNotFound:
        return jsonify({'error': 'Resource not found'}), 404
    except AuthorizationDenied:
        return jsonify({'error': 'Forbidden'}), 403
    except StorageError as e:
        return jsonify({'error': str(e)}), 500
    return jsonify(options)


@admin_bp.route('/<name>/', methods=['GET', 'POST'])
@admin_bp.route('/<name>/<action>', methods=['GET', 'POST'])
@login_required
def resource_action(name, action='list'):
    """Dispatch /admin/<resource>/<action> to the engine; custom pages win over resources"""
    state = admin_state()
    page = state.registry.page(name)
    if page is not None:
        return page.view()

    try:
        return _dispatch(state.engine, name, action or 'list')
    except ResourceNotFound:
        abort(404)
    except AuthorizationDenied:
        abort(403)
    except StorageError as e:
        flash(f'Error: {e}', 'error')
        if action == 'list':
            return redirect(url_for('resource_admin.dashboard'))
        return back_to_list(name)


def _dispatch(engine, name, action):
    user = acting_user()

    if action == 'export':
        return _export_response(engine, user, name)

    if action in (ActionKind.MEMBER.value, ActionKind.COLLECTION.value):
        targets = request.values.get('id') if action == ActionKind.MEMBER.value else None
        result = engine.run_action(user, name, action, request.values.get('action_name'),
                                   targets=targets, params=request.values)
        return result if result is not None else back_to_list(name)

    if action == ActionKind.BATCH.value:
        if request.method != 'POST':
            abort(405)
        action_name = request.form.get('action_name')
        ids = request.form.getlist('ids')
        if not action_name or not ids:
            return back_to_list(name)
        result = engine.run_action(user, name, action, action_name, targets=ids, params=request.form)
        return result if result is not None else back_to_list(name)

    if action == 'save':
        if request.method != 'POST':
            abort(405)
        result = engine.save(user, name, request.form, request.files)
        if result.defaulted_fields:
            flash(f'Some values could not be read and were reset: {", ".join(result.defaulted_fields)}', 'warning')
        flash(f'{name} {"created" if result.created else "updated"} successfully!', 'success')
        return back_to_list(name)

    if action == 'new':
        return render_template('admin/form.html', bundle=engine.form(user, name))

    if action == 'edit':
        bundle = engine.form(user, name, request.args.get('id', ''))
        return render_template('admin/form.html', bundle=bundle)

    if action == 'show':
        bundle = engine.show(user, name, request.args.get('id', ''))
        return render_template('admin/show.html', bundle=bundle)

    if action == 'delete':
        if request.method != 'POST':
            abort(405)
        engine.delete(user, name, request.form.get('id', ''))
        flash(f'{name} deleted', 'success')
        return back_to_list(name)

    bundle = engine.list(user, name, request.args)
    return render_template('admin/list.html', bundle=bundle)


def _export_response(engine, user, name):
    """CSV of every matching record; filters and scope apply, pagination does not"""
    headers, rows = engine.export(user, name, request.args)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(headers)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])

    response = make_response(output.getvalue())
    response.headers['Content-Type'] = 'text/csv'
    response.headers['Content-Disposition'] = f'attachment; filename={name}_export.csv'
    return response


# ===========================================
# TEMPLATE CONTEXT
# ===========================================

@admin_bp.context_processor
def admin_context():
    """Navigation and site title for every admin template"""
    state = admin_state()
    return {
        'site_title': state.settings.site_title,
        'grouped_resources': state.registry.grouped_resources(),
        'grouped_pages': state.registry.grouped_pages(),
    }


@admin_bp.app_template_filter('admin_cell')
def admin_cell_filter(value):
    """Display helper for raw values in tables"""
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'Yes' if value else 'No'
    if hasattr(value, 'strftime'):
        return value.strftime('%Y-%m-%d %H:%M') if hasattr(value, 'hour') else value.strftime('%Y-%m-%d')
    return value
