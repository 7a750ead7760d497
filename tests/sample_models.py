"""
Models and registrations used by the test suite.
"""

from datetime import datetime

from sqlalchemy import func

from models import db
from resource_admin import Action, RegistryBuilder, Scope, belongs_to, has_many, render_custom_page


class Author(db.Model):
    __tablename__ = 'sample_authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255))
    age = db.Column(db.Integer)
    bio = db.Column(db.Text)


class Book(db.Model):
    __tablename__ = 'sample_books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(200), nullable=False, default='')
    price = db.Column(db.Float)
    pages = db.Column(db.Integer)
    published = db.Column(db.Boolean, default=False)
    published_on = db.Column(db.Date)
    cover = db.Column(db.String(255))
    author_id = db.Column(db.Integer, db.ForeignKey('sample_authors.id'))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    author = db.relationship('Author')


class Product(db.Model):
    __tablename__ = 'sample_products'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100))
    price = db.Column(db.Integer)


class Category(db.Model):
    __tablename__ = 'sample_categories'

    code = db.Column(db.String(20), primary_key=True)
    name = db.Column(db.String(100))


class Item(db.Model):
    __tablename__ = 'sample_items'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(100))
    category_code = db.Column(db.String(20), db.ForeignKey('sample_categories.code'))


# ===========================================
# ACTION HANDLERS
# ===========================================

def publish_books(context, ids):
    books = context.repository.find_where(context.resource, Book.id.in_(ids))
    for book in books:
        book.published = True
        context.repository.save(context.resource, book)
    return f'published {len(books)}'


def count_books(context, targets):
    return {'count': context.repository.count(context.resource), 'targets': targets}


def describe_book(context, record_id):
    book = context.repository.get(context.resource, record_id)
    return {'id': record_id, 'title': book.title if book else None,
            'user': context.user.email, 'note': context.params.get('note')}


def books_per_author(repository):
    rows = (repository.session.query(Book.author_id, func.count(Book.id))
            .group_by(Book.author_id).order_by(Book.author_id).all())
    return [str(author_id) for author_id, _ in rows], [total for _, total in rows]


def about_page():
    return render_custom_page('About', '<p>Sample library</p>')


def build_sample_registry():
    builder = RegistryBuilder()
    builder.register(
        Author,
        group='Library',
        list_display=['id', 'name', 'email', 'age'],
        associations=[has_many('books', 'Book', 'author_id')],
    )
    builder.register(
        Book,
        group='Library',
        readonly_fields=['created_at'],
        form_fields={
            'cover': {'type': 'image'},
            'subtitle': {'type': 'text'},
        },
        decorators={'title': lambda value: (value or '').upper()},
        associations=[belongs_to('author', 'Author', 'author_id')],
        scopes=[Scope('published', lambda query: query.filter(Book.published.is_(True)))],
        batch_actions=[Action('publish', publish_books)],
        collection_actions=[Action('count', count_books)],
        member_actions=[Action('describe', describe_book)],
    )
    builder.register(Product)
    builder.register(Category, group='Catalog')
    builder.register(Item, group='Catalog',
                     associations=[belongs_to('category', 'Category', 'category_code')])
    builder.add_chart('Books per author', 'bar', books_per_author)
    builder.add_page('about', about_page, group='Library', title='About')
    return builder.build()
