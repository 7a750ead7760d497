import logging
import os
import platform
import sys
from importlib.metadata import version

from flask import Flask, render_template_string
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect, generate_csrf
from sqlalchemy import func

# Import models and admin package
from models import *
from config import Config
from resource_admin import RegistryBuilder, init_admin, render_custom_page
from access_control import access_control_bp

logger = logging.getLogger(__name__)

csrf = CSRFProtect()
login_manager = LoginManager()
login_manager.login_view = 'resource_admin.login'
login_manager.login_message = 'Please log in to access this page.'


@login_manager.user_loader
def load_user(session_id):
    return find_user_by_session(session_id)


# ===========================================
# LOGGING
# ===========================================

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(level='INFO'):
    """Send application logs to stderr at the configured level"""
    root = logging.getLogger()
    if not any(getattr(h, '_resource_admin', False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._resource_admin = True
        root.addHandler(handler)
    root.setLevel(str(level).upper())


# ===========================================
# DEFAULT ADMIN REGISTRATIONS
# ===========================================

def audit_actions_per_kind(repository):
    """Chart provider: number of audit entries per action kind"""
    rows = (repository.session.query(AuditAction.action, func.count(AuditAction.id))
            .group_by(AuditAction.action)
            .order_by(AuditAction.action)
            .all())
    return [r[0] for r in rows], [r[1] for r in rows]


def system_info_page():
    """Custom page with interpreter and library versions"""
    content = render_template_string(
        '<dl>{% for key, value in info %}<dt>{{ key }}</dt><dd>{{ value }}</dd>{% endfor %}</dl>',
        info=[
            ('Python', platform.python_version()),
            ('Flask', version('flask')),
            ('SQLAlchemy', version('sqlalchemy')),
            ('Platform', platform.platform()),
        ],
    )
    return render_custom_page('System Info', content)


def build_registry():
    """Register the admin's own models"""
    builder = RegistryBuilder()
    builder.register(
        AdminUser,
        name='AdminUser',
        group='Access',
        list_display=['id', 'email', 'name', 'role', 'is_active'],
        readonly_fields=['created_at'],
        form_fields={
            'password_hash': {'type': 'password', 'label': 'Password', 'visible_in': ['edit']},
        },
    )
    builder.register(
        Permission,
        name='Permission',
        group='Access',
        list_display=['id', 'role', 'resource_name', 'action'],
        readonly_fields=['created_at'],
    )
    builder.register(
        AuditAction,
        name='AuditAction',
        group='Audit',
        list_display=['id', 'user', 'resource_name', 'record_id', 'action', 'created_at'],
        readonly_fields=['user', 'resource_name', 'record_id', 'action', 'description', 'created_at'],
    )
    builder.add_chart('Audit entries per action', 'bar', audit_actions_per_kind)
    builder.add_page('system', system_info_page, group='Audit', title='System Info')
    return builder.build()


# ===========================================
# APPLICATION FACTORY
# ===========================================

def create_app(config_object=None, registry=None):
    """Create the Flask application; registry defaults to build_registry()"""
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.from_prefixed_env()

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)
    csrf.init_app(app)
    login_manager.init_app(app)

    @app.context_processor
    def inject_csrf_token():
        """Make CSRF token available in all templates"""
        return dict(csrf_token=generate_csrf)

    init_admin(app, registry if registry is not None else build_registry())
    app.register_blueprint(access_control_bp)

    logger.info('Application created with %s', app.config['SQLALCHEMY_DATABASE_URI'])
    return app


# ===========================================
# INITIALIZATION FUNCTIONS
# ===========================================

def create_admin_user(email='admin@example.com', password='admin123'):
    """Create the admin user if it doesn't exist"""
    admin_user = AdminUser.query.filter_by(email=email).first()
    if admin_user:
        logger.info('Admin user already exists')
        return admin_user

    try:
        admin_user = AdminUser(email=email, name='Administrator', role='admin', is_active=True)
        admin_user.set_password(password)
        db.session.add(admin_user)
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Error creating admin user')
        raise

    logger.info("Admin user created: email='%s'", email)
    return admin_user


def initialize_app(app):
    """Create tables and the first admin user"""
    with app.app_context():
        initialize_database()
        create_admin_user(
            email=os.environ.get('ADMIN_EMAIL', 'admin@example.com'),
            password=os.environ.get('ADMIN_PASSWORD', 'admin123'),
        )


if __name__ == '__main__':
    application = create_app()
    initialize_app(application)
    logger.info('Admin Panel: http://localhost:5000/admin/')
    application.run(debug=True)
