# Copyright 2025 TIER IV, inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Typed model of the CMS schema dialect.

The raw schema document is validated against the bundled JSON Schema and then
converted into frozen dataclasses. Field dataclasses use identity equality so
they can key per-field caches.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

import yaml
from jsonschema.exceptions import best_match

from ..exceptions import SchemaError
from .json_schema_loader import get_validator

logger = logging.getLogger(__name__)


class I18nStructure(str, Enum):
    SINGLE_FILE = "single_file"
    MULTIPLE_FILES = "multiple_files"
    MULTIPLE_FOLDERS = "multiple_folders"


class FieldI18n(str, Enum):
    NONE = "none"
    TRANSLATE = "translate"
    DUPLICATE = "duplicate"

    @classmethod
    def from_raw(cls, raw: Any) -> "FieldI18n":
        if raw is True or raw == "translate":
            return cls.TRANSLATE
        if raw == "duplicate":
            return cls.DUPLICATE
        return cls.NONE


class NumberValueType(str, Enum):
    INT = "int"
    FLOAT = "float"


# Field widgets


@dataclass(frozen=True, eq=False, kw_only=True)
class BaseField:
    widget: ClassVar[str] = ""

    name: str
    required: bool = True
    i18n: FieldI18n = FieldI18n.NONE


@dataclass(frozen=True, eq=False, kw_only=True)
class BooleanField(BaseField):
    widget: ClassVar[str] = "boolean"


@dataclass(frozen=True, eq=False, kw_only=True)
class CodeField(BaseField):
    widget: ClassVar[str] = "code"


@dataclass(frozen=True, eq=False, kw_only=True)
class ColorField(BaseField):
    widget: ClassVar[str] = "color"


@dataclass(frozen=True, eq=False, kw_only=True)
class DateTimeField(BaseField):
    widget: ClassVar[str] = "datetime"


@dataclass(frozen=True, eq=False, kw_only=True)
class FileField(BaseField):
    widget: ClassVar[str] = "file"

    allow_multiple: bool = False


@dataclass(frozen=True, eq=False, kw_only=True)
class HiddenField(BaseField):
    widget: ClassVar[str] = "hidden"


@dataclass(frozen=True, eq=False, kw_only=True)
class ImageField(BaseField):
    widget: ClassVar[str] = "image"

    allow_multiple: bool = False


@dataclass(frozen=True, eq=False, kw_only=True)
class ListField(BaseField):
    """List widget.

    ``field`` describes a homogeneous list, ``fields`` a list of implicit
    objects. With neither, items are plain strings.
    """

    widget: ClassVar[str] = "list"

    field: Optional["FieldSpec"] = None
    fields: Optional[Tuple["FieldSpec", ...]] = None
    min: Optional[int] = None
    max: Optional[int] = None

    def item_field(self) -> "FieldSpec":
        """Return the FieldSpec every list item is validated and emitted with."""
        cached = self.__dict__.get("_item_field")
        if cached is not None:
            return cached
        if self.field is not None:
            item: FieldSpec = self.field
        elif self.fields is not None:
            item = ObjectField(name=f"{self.name}.item", i18n=self.i18n, fields=self.fields)
        else:
            item = StringField(name=f"{self.name}.item", i18n=self.i18n)
        # frozen dataclass: memoize the implicit item spec so its identity is stable
        object.__setattr__(self, "_item_field", item)
        return item


@dataclass(frozen=True, eq=False, kw_only=True)
class MapField(BaseField):
    widget: ClassVar[str] = "map"


@dataclass(frozen=True, eq=False, kw_only=True)
class MarkdownField(BaseField):
    widget: ClassVar[str] = "markdown"


@dataclass(frozen=True, eq=False, kw_only=True)
class NumberField(BaseField):
    widget: ClassVar[str] = "number"

    value_type: NumberValueType = NumberValueType.INT
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_decimal(self) -> bool:
        return self.value_type == NumberValueType.FLOAT


@dataclass(frozen=True, eq=False, kw_only=True)
class ObjectField(BaseField):
    widget: ClassVar[str] = "object"

    fields: Tuple["FieldSpec", ...] = ()


@dataclass(frozen=True, eq=False, kw_only=True)
class RelationField(BaseField):
    widget: ClassVar[str] = "relation"

    collection: Optional[str] = None
    multiple: bool = False
    min: Optional[int] = None
    max: Optional[int] = None


@dataclass(frozen=True)
class SelectOption:
    value: str
    label: Optional[str] = None


@dataclass(frozen=True, eq=False, kw_only=True)
class SelectField(BaseField):
    widget: ClassVar[str] = "select"

    options: Tuple[SelectOption, ...] = ()
    multiple: bool = False
    min: Optional[int] = None
    max: Optional[int] = None

    @property
    def option_values(self) -> List[str]:
        values: List[str] = []
        for option in self.options:
            if option.value not in values:
                values.append(option.value)
        return values


@dataclass(frozen=True, eq=False, kw_only=True)
class StringField(BaseField):
    widget: ClassVar[str] = "string"


@dataclass(frozen=True, eq=False, kw_only=True)
class TextField(BaseField):
    widget: ClassVar[str] = "text"


FieldSpec = Union[
    BooleanField,
    CodeField,
    ColorField,
    DateTimeField,
    FileField,
    HiddenField,
    ImageField,
    ListField,
    MapField,
    MarkdownField,
    NumberField,
    ObjectField,
    RelationField,
    SelectField,
    StringField,
    TextField,
]

FIELD_TYPES: Tuple[type, ...] = FieldSpec.__args__

WIDGETS: Dict[str, type] = {field_type.widget: field_type for field_type in FIELD_TYPES}


# Collections


@dataclass(frozen=True)
class CollectionI18n:
    """Collection level i18n declaration.

    ``structure`` is None when the collection declares ``i18n: true`` and
    inherits the global structure.
    """

    structure: Optional[I18nStructure] = None


@dataclass(frozen=True, eq=False)
class FolderCollection:
    kind: ClassVar[str] = "folder"

    name: str
    folder: str
    fields: Tuple[FieldSpec, ...]
    i18n: Optional[CollectionI18n] = None


@dataclass(frozen=True, eq=False)
class FilesCollectionItem:
    name: str
    file: str
    fields: Tuple[FieldSpec, ...]
    i18n: bool = False


@dataclass(frozen=True, eq=False)
class FilesCollection:
    kind: ClassVar[str] = "files"

    name: str
    files: Tuple[FilesCollectionItem, ...]
    i18n: Optional[CollectionI18n] = None

    def get_item(self, name: str) -> Optional[FilesCollectionItem]:
        for item in self.files:
            if item.name == name:
                return item
        return None


Collection = Union[FolderCollection, FilesCollection]


@dataclass(frozen=True)
class GlobalI18n:
    structure: I18nStructure
    locales: Tuple[str, ...]


@dataclass(frozen=True, eq=False)
class Schema:
    collections: Tuple[Collection, ...]
    i18n: Optional[GlobalI18n] = None
    locale: Optional[str] = None

    def get_collection(self, name: str) -> Optional[Collection]:
        for collection in self.collections:
            if collection.name == name:
                return collection
        return None


# Raw document -> dataclasses


def _format_jsonschema_error(error) -> str:
    path = "/" + "/".join(str(p) for p in error.absolute_path) if error.absolute_path else ""
    return f"{error.message}" + (f" (at {path})" if path else "")


def _build_field(raw: Mapping[str, Any]) -> FieldSpec:
    widget = raw["widget"]
    field_type = WIDGETS.get(widget)
    if field_type is None:
        raise SchemaError(f"Unknown field widget '{widget}' for field '{raw.get('name')}'")

    common: Dict[str, Any] = {
        "name": raw["name"],
        "required": raw.get("required", True) is not False,
        "i18n": FieldI18n.from_raw(raw.get("i18n")),
    }

    if field_type is ListField:
        child = raw.get("field")
        children = raw.get("fields")
        return ListField(
            **common,
            field=_build_field(child) if child is not None else None,
            fields=tuple(_build_field(c) for c in children) if children is not None else None,
            min=raw.get("min"),
            max=raw.get("max"),
        )
    if field_type is ObjectField:
        return ObjectField(**common, fields=tuple(_build_field(c) for c in raw.get("fields", [])))
    if field_type is NumberField:
        return NumberField(
            **common,
            value_type=NumberValueType(raw.get("value_type", "int")),
            min=raw.get("min"),
            max=raw.get("max"),
        )
    if field_type is RelationField:
        return RelationField(
            **common,
            collection=raw.get("collection"),
            multiple=bool(raw.get("multiple", False)),
            min=raw.get("min"),
            max=raw.get("max"),
        )
    if field_type is SelectField:
        options = tuple(
            SelectOption(value=option) if isinstance(option, str)
            else SelectOption(value=option["value"], label=option.get("label"))
            for option in raw["options"]
        )
        return SelectField(
            **common,
            options=options,
            multiple=bool(raw.get("multiple", False)),
            min=raw.get("min"),
            max=raw.get("max"),
        )
    if field_type in (FileField, ImageField):
        return field_type(**common, allow_multiple=bool(raw.get("allow_multiple", False)))
    return field_type(**common)


def _build_collection_i18n(raw: Any) -> Optional[CollectionI18n]:
    if raw is None or raw is False:
        return None
    if raw is True:
        return CollectionI18n()
    return CollectionI18n(structure=I18nStructure(raw["structure"]))


def tag_collection(raw: Mapping[str, Any]) -> Collection:
    """Discriminate a raw collection as ``folder`` or ``files`` by its shape.

    The folder shape is attempted first, then the files shape. This is the only
    place collection kind is derived.
    """
    name = raw.get("name", "<unnamed>") if isinstance(raw, Mapping) else "<invalid>"

    folder_errors = list(get_validator("folderCollection").iter_errors(raw))
    if not folder_errors:
        return FolderCollection(
            name=raw["name"],
            folder=raw["folder"],
            fields=tuple(_build_field(f) for f in raw["fields"]),
            i18n=_build_collection_i18n(raw.get("i18n")),
        )

    files_errors = list(get_validator("filesCollection").iter_errors(raw))
    if not files_errors:
        return FilesCollection(
            name=raw["name"],
            files=tuple(
                FilesCollectionItem(
                    name=item["name"],
                    file=item["file"],
                    fields=tuple(_build_field(f) for f in item["fields"]),
                    i18n=bool(item.get("i18n", False)),
                )
                for item in raw["files"]
            ),
            i18n=_build_collection_i18n(raw.get("i18n")),
        )

    # report against the shape the collection was most likely meant to have
    errors = files_errors if isinstance(raw, Mapping) and "files" in raw else folder_errors
    error = best_match(errors)
    raise SchemaError(f"Invalid collection: {name}: {_format_jsonschema_error(error)}")


FolderResult = TypeVar("FolderResult")
FilesResult = TypeVar("FilesResult")


def match_collection(
    collection: Collection,
    *,
    folder: Callable[[FolderCollection], FolderResult],
    files: Callable[[FilesCollection], FilesResult],
) -> Union[FolderResult, FilesResult]:
    """Dispatch on the collection kind assigned by ``tag_collection``."""
    if collection.kind == FolderCollection.kind:
        return folder(collection)
    if collection.kind == FilesCollection.kind:
        return files(collection)
    raise TypeError(f"Unknown collection kind: {collection.kind}")


def parse_schema(raw: Any) -> Schema:
    """Validate a raw schema document and build the typed Schema."""
    if not isinstance(raw, Mapping):
        raise SchemaError("Schema document root must be a mapping/object")

    errors = list(get_validator().iter_errors(raw))
    if errors:
        details = "\n".join(f"  - {_format_jsonschema_error(e)}" for e in errors)
        raise SchemaError(f"Schema validation failed:\n{details}")

    collections = tuple(tag_collection(c) for c in raw["collections"])

    seen = set()
    for collection in collections:
        if collection.name in seen:
            raise SchemaError(f"Duplicate collection name: {collection.name}")
        seen.add(collection.name)

    raw_i18n = raw.get("i18n")
    i18n = None
    if raw_i18n is not None:
        i18n = GlobalI18n(
            structure=I18nStructure(raw_i18n["structure"]),
            locales=tuple(raw_i18n["locales"]),
        )

    return Schema(collections=collections, i18n=i18n, locale=raw.get("locale"))


def load_schema_file(path: Union[str, Path]) -> Schema:
    """Read a YAML schema document from disk and parse it."""
    schema_path = Path(path)
    try:
        content = schema_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaError(f"Failed to read schema file {schema_path}: {exc}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise SchemaError(f"Failed to parse YAML schema file {schema_path}: {exc}") from exc

    logger.debug("Loaded schema document: %s", schema_path)
    return parse_schema(raw if raw is not None else {})


# i18n resolution


@dataclass(frozen=True)
class I18nResolution:
    """Effective i18n structure of a collection.

    ``warning`` is set when the declaration could not be honoured; the
    structure is then None and the collection is treated as untranslated.
    """

    structure: Optional[I18nStructure]
    warning: Optional[str] = None


def _resolve_folder_i18n(schema: Schema, collection: FolderCollection) -> I18nResolution:
    if collection.i18n is None:
        return I18nResolution(structure=None)
    if collection.i18n.structure is not None:
        return I18nResolution(structure=collection.i18n.structure)
    if schema.i18n is None:
        return I18nResolution(structure=None, warning="No global i18n structure provided")
    return I18nResolution(structure=schema.i18n.structure)


def _resolve_files_i18n(schema: Schema, collection: FilesCollection) -> I18nResolution:
    if collection.i18n is None:
        return I18nResolution(structure=None)
    if collection.i18n.structure is not None:
        return I18nResolution(structure=collection.i18n.structure)
    if schema.i18n is None or schema.i18n.structure != I18nStructure.SINGLE_FILE:
        return I18nResolution(structure=None, warning="Global i18n structure should be 'single_file'")
    return I18nResolution(structure=schema.i18n.structure)


def resolve_collection_i18n(schema: Schema, collection: Collection) -> I18nResolution:
    return match_collection(
        collection,
        folder=lambda c: _resolve_folder_i18n(schema, c),
        files=lambda c: _resolve_files_i18n(schema, c),
    )


def resolve_item_i18n(
    schema: Schema, collection: FilesCollection, item: FilesCollectionItem
) -> Optional[I18nStructure]:
    """Structure applied to a files-collection item (only ``single_file`` is honoured)."""
    if not item.i18n:
        return None
    structure = resolve_collection_i18n(schema, collection).structure
    return structure if structure == I18nStructure.SINGLE_FILE else None


def check_schema(schema: Schema) -> List[Tuple[Collection, str]]:
    """Return (collection, message) for every i18n declaration that cannot be honoured."""
    issues: List[Tuple[Collection, str]] = []
    for collection in schema.collections:
        resolution = resolve_collection_i18n(schema, collection)
        if resolution.warning:
            issues.append((collection, resolution.warning))
    return issues


def declared_locales(schema: Schema) -> Tuple[str, ...]:
    return schema.i18n.locales if schema.i18n is not None else ()
