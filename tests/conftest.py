"""
Pytest fixtures for the resource admin tests.
"""

import pytest

from app import create_app
from config import TestingConfig
from models import db, AdminUser, Permission
from sample_models import Author, Book, Product, build_sample_registry

PASSWORD = 'secret-pass'


@pytest.fixture
def registry():
    """Sample registry: Author, Book, Product."""
    return build_sample_registry()


@pytest.fixture
def app(registry, tmp_path):
    """Application bound to an in-memory database."""

    class Config(TestingConfig):
        ADMIN_UPLOAD_DIR = str(tmp_path / 'uploads')

    application = create_app(Config, registry=registry)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture
def engine(app):
    return app.extensions['resource_admin'].engine


@pytest.fixture
def gate(app):
    return app.extensions['resource_admin'].gate


@pytest.fixture
def users(app):
    """One user per role: admin, editor, viewer."""
    created = {}
    for role in ('admin', 'editor', 'viewer'):
        user = AdminUser(email=f'{role}@example.com', name=role.title(), role=role)
        user.set_password(PASSWORD)
        db.session.add(user)
        created[role] = user
    db.session.commit()
    return created


@pytest.fixture
def grant(app):
    """Seed a permission row."""
    def _grant(role, resource_name, action):
        db.session.add(Permission(role=role, resource_name=resource_name, action=action))
        db.session.commit()
    return _grant


@pytest.fixture
def authors(app):
    """Three authors aged 17, 25 and 40."""
    rows = [
        Author(name='Ada', email='ada@example.com', age=17),
        Author(name='Grace', email='grace@example.com', age=25),
        Author(name='Linus', email='linus@example.com', age=40),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def books(app, authors):
    rows = [
        Book(title='Notes', price=10.0, pages=120, published=True, author_id=authors[0].id),
        Book(title='Compilers', price=55.5, pages=800, published=False, author_id=authors[1].id),
        Book(title='Kernels', price=30.0, pages=400, published=True, author_id=authors[1].id),
    ]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def products(app):
    """25 products named Product 01..25."""
    rows = [Product(name=f'Product {i:02d}', price=i) for i in range(1, 26)]
    db.session.add_all(rows)
    db.session.commit()
    return rows


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def login(client, users):
    """Log the test client in as the given role."""
    def _login(role):
        return client.post('/admin/login', data={
            'email': f'{role}@example.com',
            'password': PASSWORD,
        })
    return _login
