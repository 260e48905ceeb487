"""Tests for schema parsing, collection tagging and i18n resolution."""

import pytest
import yaml

from cms_content_compiler.exceptions import SchemaError
from cms_content_compiler.models.schema import (
    FieldI18n,
    FilesCollection,
    FolderCollection,
    I18nStructure,
    ListField,
    NumberField,
    ObjectField,
    SelectField,
    StringField,
    WIDGETS,
    check_schema,
    load_schema_file,
    match_collection,
    parse_schema,
    resolve_collection_i18n,
    resolve_item_i18n,
    tag_collection,
)

from conftest import BLOG_SCHEMA


def test_blog_schema_collections_are_tagged():
    schema = parse_schema(yaml.safe_load(BLOG_SCHEMA))

    posts = schema.get_collection("posts")
    settings = schema.get_collection("settings")
    assert isinstance(posts, FolderCollection)
    assert isinstance(settings, FilesCollection)
    assert posts.folder == "content/posts"
    assert settings.get_item("site").file == "content/settings/site.yml"
    assert schema.i18n.structure == I18nStructure.MULTIPLE_FILES
    assert schema.i18n.locales == ("en", "fr")


def test_fields_are_built_per_widget():
    schema = parse_schema(yaml.safe_load(BLOG_SCHEMA))
    title, date, price, tags, body = schema.get_collection("posts").fields

    assert isinstance(title, StringField) and title.required
    assert isinstance(price, NumberField) and price.is_decimal and not price.required
    assert price.min == 0
    assert isinstance(tags, ListField)
    assert isinstance(tags.item_field(), StringField)
    assert body.widget == "markdown"

    theme = schema.get_collection("settings").get_item("site").fields[1]
    assert isinstance(theme, SelectField)
    assert theme.option_values == ["light", "dark"]


def test_every_widget_has_a_field_type():
    assert sorted(WIDGETS) == [
        "boolean", "code", "color", "datetime", "file", "hidden", "image", "list",
        "map", "markdown", "number", "object", "relation", "select", "string", "text",
    ]


def test_list_item_field_identity_is_stable():
    schema = parse_schema({
        "collections": [{
            "name": "links",
            "folder": "links",
            "fields": [{
                "name": "items",
                "widget": "list",
                "fields": [{"name": "url", "widget": "string"}],
            }],
        }],
    })
    items = schema.get_collection("links").fields[0]
    item = items.item_field()
    assert isinstance(item, ObjectField)
    assert item is items.item_field()
    assert [f.name for f in item.fields] == ["url"]


def test_field_i18n_values():
    assert FieldI18n.from_raw(True) is FieldI18n.TRANSLATE
    assert FieldI18n.from_raw("duplicate") is FieldI18n.DUPLICATE
    assert FieldI18n.from_raw(False) is FieldI18n.NONE
    assert FieldI18n.from_raw(None) is FieldI18n.NONE


def test_collection_tagging_tries_folder_then_files():
    folder = tag_collection({"name": "a", "folder": "a", "fields": []})
    files = tag_collection({"name": "b", "files": []})
    assert folder.kind == "folder"
    assert files.kind == "files"
    assert match_collection(folder, folder=lambda c: "F", files=lambda c: "X") == "F"
    assert match_collection(files, folder=lambda c: "F", files=lambda c: "X") == "X"


def test_collection_matching_no_shape_names_the_collection():
    with pytest.raises(SchemaError, match="Invalid collection: weird"):
        tag_collection({"name": "weird", "fields": []})


def test_unknown_widget_is_a_schema_error():
    with pytest.raises(SchemaError, match="Invalid collection: posts"):
        parse_schema({
            "collections": [
                {"name": "posts", "folder": "p", "fields": [{"name": "x", "widget": "slider"}]},
            ],
        })


def test_duplicate_collection_names_are_rejected():
    raw = {"collections": [
        {"name": "a", "folder": "a", "fields": []},
        {"name": "a", "folder": "b", "fields": []},
    ]}
    with pytest.raises(SchemaError, match="Duplicate collection name: a"):
        parse_schema(raw)


def test_root_must_be_a_mapping():
    with pytest.raises(SchemaError):
        parse_schema(["collections"])


def test_missing_collections_fails_validation():
    with pytest.raises(SchemaError, match="Schema validation failed"):
        parse_schema({"i18n": {"structure": "single_file", "locales": ["en"]}})


def test_locale_key_is_carried():
    schema = parse_schema({"locale": "en", "collections": []})
    assert schema.locale == "en"
    assert schema.collections == ()


def test_load_schema_file_reports_yaml_errors(tmp_path):
    path = tmp_path / "schema.yml"
    path.write_text("collections: [\n", encoding="utf-8")
    with pytest.raises(SchemaError, match="Failed to parse YAML"):
        load_schema_file(path)


def test_load_schema_file_missing(tmp_path):
    with pytest.raises(SchemaError, match="Failed to read schema file"):
        load_schema_file(tmp_path / "nope.yml")


class TestI18nResolution:
    """Effective i18n structure per collection."""

    def _schema(self, global_structure, collection):
        raw = {"collections": [collection]}
        if global_structure is not None:
            raw["i18n"] = {"structure": global_structure, "locales": ["en", "fr"]}
        return parse_schema(raw)

    def test_folder_without_i18n(self):
        schema = self._schema("multiple_files", {"name": "a", "folder": "a", "fields": []})
        assert resolve_collection_i18n(schema, schema.collections[0]).structure is None

    def test_folder_inherits_global_structure(self):
        schema = self._schema("multiple_folders", {"name": "a", "folder": "a", "fields": [], "i18n": True})
        resolution = resolve_collection_i18n(schema, schema.collections[0])
        assert resolution.structure == I18nStructure.MULTIPLE_FOLDERS
        assert resolution.warning is None

    def test_folder_explicit_structure_wins(self):
        schema = self._schema(
            "multiple_files",
            {"name": "a", "folder": "a", "fields": [], "i18n": {"structure": "single_file"}},
        )
        assert resolve_collection_i18n(schema, schema.collections[0]).structure == I18nStructure.SINGLE_FILE

    def test_folder_without_global_structure_warns(self):
        schema = self._schema(None, {"name": "a", "folder": "a", "fields": [], "i18n": True})
        resolution = resolve_collection_i18n(schema, schema.collections[0])
        assert resolution.structure is None
        assert resolution.warning == "No global i18n structure provided"
        assert [message for _, message in check_schema(schema)] == ["No global i18n structure provided"]

    def test_files_requires_single_file_global_structure(self):
        collection = {
            "name": "s",
            "i18n": True,
            "files": [{"name": "site", "file": "site.yml", "i18n": True, "fields": []}],
        }
        schema = self._schema("multiple_files", collection)
        resolution = resolve_collection_i18n(schema, schema.collections[0])
        assert resolution.structure is None
        assert resolution.warning == "Global i18n structure should be 'single_file'"

        schema = self._schema("single_file", collection)
        files = schema.collections[0]
        assert resolve_item_i18n(schema, files, files.files[0]) == I18nStructure.SINGLE_FILE

    def test_files_item_without_i18n_is_untranslated(self):
        schema = self._schema("single_file", {
            "name": "s",
            "i18n": True,
            "files": [{"name": "site", "file": "site.yml", "fields": []}],
        })
        files = schema.collections[0]
        assert resolve_item_i18n(schema, files, files.files[0]) is None
