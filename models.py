from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime, timedelta
from sqlalchemy import Index
import uuid

db = SQLAlchemy()

# ===========================================
# 1. ADMIN USERS & SESSIONS
# ===========================================

class AdminUser(db.Model, UserMixin):
    __tablename__ = 'admin_users'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255))
    password_hash = db.Column(db.String(255))
    role = db.Column(db.String(100), nullable=False, default='viewer')
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    sessions = db.relationship('AdminSession', backref='user', lazy='dynamic', cascade='all, delete-orphan')

    # Set by the session loader; Flask-Login keys the cookie on it
    active_session_id = None

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    def get_id(self):
        return self.active_session_id

    def __repr__(self):
        return f'<AdminUser {self.email}>'

class AdminSession(db.Model):
    __tablename__ = 'admin_sessions'

    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = db.Column(db.Integer, db.ForeignKey('admin_users.id'), nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False)

    @classmethod
    def open_for(cls, user, ttl_hours):
        """Create a session row for a user, valid for ttl_hours"""
        return cls(id=str(uuid.uuid4()), user_id=user.id,
                   expires_at=datetime.utcnow() + timedelta(hours=ttl_hours))

    @property
    def is_expired(self):
        return self.expires_at <= datetime.utcnow()

    def __repr__(self):
        return f'<AdminSession {self.id}>'

# ===========================================
# 2. PERMISSIONS
# ===========================================

class Permission(db.Model):
    __tablename__ = 'permissions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    role = db.Column(db.String(100), nullable=False)
    resource_name = db.Column(db.String(255), nullable=False)
    action = db.Column(db.String(100), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (
        db.UniqueConstraint('role', 'resource_name', 'action', name='unique_role_resource_action'),
    )

    def __repr__(self):
        return f'<Permission {self.role}:{self.resource_name}:{self.action}>'

# ===========================================
# 3. AUDIT
# ===========================================

class AuditAction(db.Model):
    __tablename__ = 'audit_actions'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    user = db.Column(db.String(255))
    resource_name = db.Column(db.String(255), nullable=False)
    record_id = db.Column(db.String(100))
    action = db.Column(db.String(50), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<AuditAction {self.action} {self.resource_name}#{self.record_id}>'

# Audit Log indexes
Index('idx_audit_resource_record', AuditAction.resource_name, AuditAction.record_id)
Index('idx_audit_created_at', AuditAction.created_at)

# ===========================================
# 4. HELPER FUNCTIONS
# ===========================================

def find_user_by_session(session_id):
    """Resolve a live session id to its user, or None when missing or expired"""
    if not session_id:
        return None
    admin_session = db.session.get(AdminSession, session_id)
    if admin_session is None or admin_session.is_expired:
        return None
    user = admin_session.user
    if user is None or not user.is_active:
        return None
    user.active_session_id = admin_session.id
    return user

def initialize_database():
    """Create all tables"""
    db.create_all()

# Export all models for easy importing
__all__ = [
    'db',
    'AdminUser', 'AdminSession',
    'Permission',
    'AuditAction',
    'find_user_by_session', 'initialize_database',
]
