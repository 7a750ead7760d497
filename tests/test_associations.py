"""Tests for the association resolver."""

from models import db
from resource_admin import RegistryBuilder
from resource_admin.associations import AssociationResolver, record_label
from sample_models import Author, Book


class CountingRepository:
    """Wraps a repository and records find() calls."""

    def __init__(self, inner):
        self.inner = inner
        self.finds = []

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def find(self, resource, query=None, offset=None, limit=None):
        self.finds.append(resource.name)
        return self.inner.find(resource, query, offset=offset, limit=limit)


def add_authors(count):
    db.session.add_all([Author(name=f'Author {i}') for i in range(count)])
    db.session.commit()


class TestBelongsTo:

    def test_below_threshold_returns_all_options(self, engine, registry):
        add_authors(4)
        repository = CountingRepository(engine.repository)
        resolver = AssociationResolver(registry, repository, search_threshold=5)

        author = resolver.belongs_to(registry.resource('Book'))['author']

        assert author.search_driven is False
        assert len(author.options) == 4
        assert [o['_label'] for o in author.options] == [f'Author {i}' for i in range(4)]
        assert author.foreign_key == 'author_id'

    def test_at_threshold_fetches_nothing(self, engine, registry):
        add_authors(5)
        repository = CountingRepository(engine.repository)
        resolver = AssociationResolver(registry, repository, search_threshold=5)

        author = resolver.belongs_to(registry.resource('Book'))['author']

        assert author.search_driven is True
        assert author.options == []
        assert repository.finds == []

    def test_searchable_field_is_search_driven(self, engine):
        builder = RegistryBuilder()
        builder.register(Author)
        builder.register(Book, form_fields={
            'author_id': {'searchable': True, 'source': 'Author'},
        })
        registry = builder.build()
        add_authors(1)

        resolver = AssociationResolver(registry, engine.repository, search_threshold=5)
        resolved = resolver.belongs_to(registry.resource('Book'))

        assert resolved['author_id'].search_driven is True
        assert resolved['author_id'].resource.name == 'Author'


class TestHasMany:

    def test_children_for_record(self, engine, registry, authors, books):
        resolver = AssociationResolver(registry, engine.repository, search_threshold=5)

        resolved = resolver.has_many(registry.resource('Author'), authors[0].id)

        assert [child['id'] for child in resolved['books'].items] == [books[0].id]

    def test_no_children(self, engine, registry, authors, books):
        resolver = AssociationResolver(registry, engine.repository, search_threshold=5)
        resolved = resolver.has_many(registry.resource('Author'), authors[2].id)
        assert resolved['books'].items == []


class TestSearchAndLabels:

    def test_search_matches_text_fields(self, engine, registry, authors):
        resolver = AssociationResolver(registry, engine.repository, search_threshold=5)

        by_email = resolver.search(registry.resource('Author'), 'linus@')
        assert by_email == [{'id': authors[2].id, 'label': 'Linus'}]

    def test_blank_search_returns_first_records(self, engine, registry, authors):
        resolver = AssociationResolver(registry, engine.repository, search_threshold=5)
        assert len(resolver.search(registry.resource('Author'), '', limit=2)) == 2

    def test_label_falls_back_to_id(self, registry, products):
        assert record_label(registry.resource('Author'), Author(id=9)) == 'Author #9'
        assert record_label(registry.resource('Product'), products[0]) == 'Product 01'
