"""Tests for field derivation, coercion and registration."""

import pytest

from resource_admin import FieldKind, RegistrationError, RegistryBuilder, ResourceNotFound, View, belongs_to
from resource_admin.coercion import (
    CoercionStatus, coerce, coerce_filter_value, coerce_identifier, coerce_key, is_new_identifier,
)
from resource_admin.fields import default_label, derive_fields, override_field
from sample_models import Author, Book, Category, Item, Product


class TestDeriveFields:

    def test_kinds_inferred_from_columns(self):
        kinds = {f.name: f.kind for f in derive_fields(Book)}

        assert kinds['id'] is FieldKind.NUMBER
        assert kinds['title'] is FieldKind.TEXT
        assert kinds['price'] is FieldKind.DECIMAL
        assert kinds['pages'] is FieldKind.NUMBER
        assert kinds['published'] is FieldKind.BOOLEAN
        assert kinds['published_on'] is FieldKind.DATE
        assert kinds['created_at'] is FieldKind.DATETIME
        assert kinds['author_id'] is FieldKind.REFERENCE

    def test_text_column_is_textarea(self):
        kinds = {f.name: f.kind for f in derive_fields(Author)}
        assert kinds['bio'] is FieldKind.TEXTAREA

    def test_primary_key_is_readonly_and_not_editable(self):
        pk = derive_fields(Product)[0]

        assert pk.name == 'id'
        assert pk.readonly is True
        assert pk.writable is False
        assert pk.visible_in == frozenset({View.LIST, View.SHOW})
        assert pk.is_visible_in('list') is True
        assert pk.is_visible_in(View.EDIT) is False

    def test_natural_key_stays_editable(self):
        key = derive_fields(Category)[0]

        assert key.name == 'code'
        assert key.primary_key is True
        assert key.readonly is False
        assert key.writable is True
        assert key.is_visible_in(View.EDIT) is True
        assert key.value_type is str

    def test_reference_carries_column_type(self):
        fields = {f.name: f for f in derive_fields(Item)}

        assert fields['category_code'].kind is FieldKind.REFERENCE
        assert fields['category_code'].value_type is str
        assert {f.name: f for f in derive_fields(Book)}['author_id'].value_type is int

    def test_labels(self):
        assert default_label('published_on') == 'Published On'

    def test_override_keeps_accessor(self):
        base = derive_fields(Author)[1]
        overridden = override_field(base, {'label': 'Full name', 'type': 'textarea', 'searchable': True})

        assert overridden.label == 'Full name'
        assert overridden.kind is FieldKind.TEXTAREA
        assert overridden.searchable is True
        assert overridden.accessor is base.accessor

    def test_unknown_kind_falls_back_to_text(self):
        assert FieldKind.parse('colour') is FieldKind.TEXT


class TestFieldsFor:
    """Visibility filtering on a registered resource."""

    def test_subset_in_declaration_order(self, registry):
        author = registry.resource('Author')

        listed = [f.name for f in author.fields_for(View.LIST)]
        expected = [f.name for f in author.fields if View.LIST in f.visible_in]

        assert listed == expected == ['id', 'name', 'email', 'age']

    def test_deterministic(self, registry):
        book = registry.resource('Book')
        assert book.fields_for('edit') == book.fields_for(View.EDIT)

    def test_list_display_only_touches_list_view(self, registry):
        author = registry.resource('Author')
        assert 'bio' in [f.name for f in author.fields_for(View.EDIT)]
        assert 'bio' not in [f.name for f in author.fields_for(View.LIST)]


class TestRegistration:

    def test_unknown_field_is_omitted(self, registry):
        book = registry.resource('Book')

        assert book.field('subtitle') is None
        assert 'subtitle' in book.omitted_fields

    def test_override_applies_kind(self, registry):
        assert registry.resource('Book').field('cover').kind is FieldKind.IMAGE

    def test_readonly_fields(self, registry):
        created_at = registry.resource('Book').field('created_at')
        assert created_at.readonly is True
        assert created_at.writable is False

    def test_duplicate_name_rejected(self):
        builder = RegistryBuilder()
        builder.register(Product)
        with pytest.raises(RegistrationError):
            builder.register(Product)

    def test_unknown_association_target_rejected(self):
        builder = RegistryBuilder()
        builder.register(Book, associations=[belongs_to('author', 'Author', 'author_id')])
        with pytest.raises(RegistrationError):
            builder.build()

    def test_unknown_resource_lookup(self, registry):
        with pytest.raises(ResourceNotFound):
            registry.resource('Nope')
        assert registry.get('Nope') is None

    def test_grouping(self, registry):
        groups = registry.grouped_resources()
        assert [r.name for r in groups['Library']] == ['Author', 'Book']
        assert [r.name for r in groups['Default']] == ['Product']

    def test_registry_is_read_only(self, registry):
        with pytest.raises(TypeError):
            registry.resources['Other'] = registry.resource('Product')


class TestCoercion:

    def test_numbers(self):
        assert coerce(FieldKind.NUMBER, '42').value == 42
        assert coerce(FieldKind.NUMBER, '3.0').value == 3
        assert coerce(FieldKind.DECIMAL, '9.5').value == 9.5

    def test_malformed_numbers_default_to_zero(self):
        result = coerce(FieldKind.NUMBER, 'abc')
        assert result.status is CoercionStatus.DEFAULTED
        assert result.value == 0
        assert result.raw == 'abc'

        assert coerce(FieldKind.DECIMAL, '').value == 0.0

    @pytest.mark.parametrize('raw', ['on', 'true', '1', 'yes', 'YES'])
    def test_boolean_true(self, raw):
        assert coerce(FieldKind.BOOLEAN, raw).value is True

    @pytest.mark.parametrize('raw', [None, '', 'off', 'no'])
    def test_boolean_false(self, raw):
        assert coerce(FieldKind.BOOLEAN, raw).value is False

    def test_empty_reference_is_none(self):
        result = coerce(FieldKind.REFERENCE, '')
        assert result.status is CoercionStatus.OK
        assert result.value is None

    def test_reference_follows_column_type(self):
        assert coerce(FieldKind.REFERENCE, 'BOOKS', str).value == 'BOOKS'
        assert coerce(FieldKind.REFERENCE, 'BOOKS', str).status is CoercionStatus.OK
        assert coerce(FieldKind.REFERENCE, ' 12 ', int).value == 12
        assert coerce(FieldKind.REFERENCE, 'x', int).status is CoercionStatus.DEFAULTED

    def test_untyped_reference_keeps_text_ids(self):
        assert coerce(FieldKind.REFERENCE, '12').value == 12
        assert coerce(FieldKind.REFERENCE, 'abc').value == 'abc'

    def test_dates(self):
        assert coerce(FieldKind.DATE, '2024-03-01').value.isoformat() == '2024-03-01'
        assert coerce(FieldKind.DATE, 'yesterday').status is CoercionStatus.DEFAULTED

    def test_empty_password_is_omitted(self):
        result = coerce(FieldKind.PASSWORD, '')
        assert result.status is CoercionStatus.OMITTED
        assert result.should_assign is False

    def test_password_is_hashed(self):
        result = coerce(FieldKind.PASSWORD, 'hunter2')
        assert result.value != 'hunter2'
        assert result.raw is None

    def test_filter_value_passes_through_when_unparsable(self):
        assert coerce_filter_value(FieldKind.NUMBER, '18') == 18
        assert coerce_filter_value(FieldKind.NUMBER, 'x') == 'x'

    def test_identifiers(self):
        assert coerce_identifier('7') == 7
        assert coerce_identifier('abc-1') == 'abc-1'
        assert coerce_identifier('  ') is None
        assert is_new_identifier('0') is True
        assert is_new_identifier('') is True
        assert is_new_identifier(None) is True
        assert is_new_identifier('3') is False

    def test_string_keys_are_kept_verbatim(self):
        assert coerce_key('007', str) == '007'
        assert coerce_key(' ', str) is None
        assert coerce_key('007', int) == 7
