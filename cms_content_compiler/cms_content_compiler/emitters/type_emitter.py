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

"""Static type declarations for the generated module.

Every collection (or files-collection item) gets a ``<Name>Content`` TypedDict
whose ``props`` mirrors the value literal built by the data emitter. The
widget table below must stay in sync with the data emitter's one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from ..config.compiler_options import CompilerOptions
from ..models.content import ParseResult
from ..models.schema import (
    FieldSpec,
    FilesCollection,
    FolderCollection,
    HiddenField,
    Schema,
    declared_locales,
    match_collection,
    resolve_collection_i18n,
    resolve_item_i18n,
)
from ..utils import pascal_case
from .python_source import literal_type, typed_dict

logger = logging.getLogger(__name__)

CODE_VALUE_TYPE = "CodeValue"
LOCALE_TYPE = "Locale"
CONTENTS_TYPE = "Contents"
CONTENT_UNION_TYPE = "Content"


@dataclass
class TypeDeclarations:
    """Declarations in emission order (dependencies first)."""

    declarations: List[str] = field(default_factory=list)
    # collection name -> content TypedDict name, or file item name -> name for files collections
    content_types: Dict[str, object] = field(default_factory=dict)

    def source(self) -> str:
        return "\n\n".join(self.declarations)


def _is_optional(spec: FieldSpec) -> bool:
    # hidden values may be absent even when required
    return not spec.required or isinstance(spec, HiddenField)


class TypeEmitter:
    def __init__(self, schema: Schema, options: CompilerOptions, parse_result: Optional[ParseResult] = None):
        self.schema = schema
        self.options = options
        self.parse_result = parse_result
        self._result = TypeDeclarations()
        self._names: Dict[str, int] = {}
        self._widget_types: Dict[str, Callable[[FieldSpec, str], str]] = {
            "boolean": lambda spec, owner: "bool",
            "code": lambda spec, owner: CODE_VALUE_TYPE,
            "color": lambda spec, owner: "str",
            "datetime": lambda spec, owner: "datetime.datetime",
            "file": lambda spec, owner: "List[str]" if spec.allow_multiple else "str",
            "hidden": lambda spec, owner: "Any",
            "image": lambda spec, owner: "List[str]" if spec.allow_multiple else "str",
            "list": lambda spec, owner: f"List[{self.field_type(spec.item_field(), owner)}]",
            "map": lambda spec, owner: "str",
            "markdown": lambda spec, owner: "Markdown",
            "number": lambda spec, owner: "Decimal" if spec.is_decimal else "int",
            "object": lambda spec, owner: self._fields_type(owner + pascal_case(spec.name), spec.fields),
            "relation": lambda spec, owner: "List[str]" if spec.multiple else "str",
            "select": self._select_type,
            "string": lambda spec, owner: "str",
            "text": lambda spec, owner: "str",
        }

    # naming

    def _unique_name(self, name: str) -> str:
        count = self._names.get(name, 0) + 1
        self._names[name] = count
        return name if count == 1 else f"{name}{count}"

    def _declare(self, declaration: str) -> None:
        self._result.declarations.append(declaration)

    # field types

    def field_type(self, spec: FieldSpec, owner: str) -> str:
        return self._widget_types[spec.widget](spec, owner)

    @staticmethod
    def _select_type(spec, owner: str) -> str:
        options = literal_type(spec.option_values)
        return f"List[{options}]" if spec.multiple else options

    def _fields_type(self, name: str, fields: Sequence[FieldSpec]) -> str:
        name = self._unique_name(name)
        keys = [(spec.name, self.field_type(spec, name), not _is_optional(spec)) for spec in fields]
        self._declare(typed_dict(name, keys))
        return name

    # content types

    def _slug_type(self, collection_name: str, file: Optional[str]) -> str:
        if not self.options.narrow_slugs or self.parse_result is None:
            return "str"
        slugs = set()
        for node in self.parse_result.collections:
            if node.collection.name != collection_name:
                continue
            for content in node.contents:
                if content.file == file:
                    slugs.add(content.slug)
        return literal_type(sorted(slugs))

    def _locale_type(self, translated: bool) -> str:
        if not translated:
            return "None"
        return LOCALE_TYPE if declared_locales(self.schema) else "str"

    def _content_type(
        self,
        base_name: str,
        collection_name: str,
        kind: str,
        fields: Sequence[FieldSpec],
        translated: bool,
        file: Optional[str] = None,
    ) -> str:
        props = self._fields_type(f"{base_name}Props", fields)
        keys: List[Tuple[str, str, bool]] = [
            ("collection", literal_type([collection_name]), True),
            ("kind", literal_type([kind]), True),
        ]
        if file is not None:
            keys.append(("file", literal_type([file]), True))
        keys += [
            ("slug", self._slug_type(collection_name, file), True),
            ("locale", self._locale_type(translated), True),
            ("props", props, True),
        ]
        if self.options.raw:
            keys.append(("raw", "str", True))
        if self.options.source_location:
            keys.append(("source_location", "str", True))
        name = self._unique_name(f"{base_name}Content")
        self._declare(typed_dict(name, keys))
        return name

    def _folder_collection(self, collection: FolderCollection) -> str:
        base = pascal_case(collection.name)
        translated = resolve_collection_i18n(self.schema, collection).structure is not None
        content = self._content_type(base, collection.name, collection.kind, collection.fields, translated)
        self._result.content_types[collection.name] = content
        return f"List[{content}]"

    def _files_collection(self, collection: FilesCollection) -> str:
        base = pascal_case(collection.name)
        item_types: Dict[str, str] = {}
        for item in collection.files:
            translated = resolve_item_i18n(self.schema, collection, item) is not None
            item_types[item.name] = self._content_type(
                base + pascal_case(item.name),
                collection.name,
                collection.kind,
                item.fields,
                translated,
                file=item.name,
            )
        self._result.content_types[collection.name] = item_types
        name = self._unique_name(f"{base}Contents")
        self._declare(typed_dict(name, [(k, f"List[{v}]", True) for k, v in item_types.items()]))
        return name

    def emit(self) -> TypeDeclarations:
        self._declare(typed_dict(CODE_VALUE_TYPE, [("code", "str", True), ("lang", "str", False)]))
        self._declare(f"{LOCALE_TYPE} = {literal_type(list(declared_locales(self.schema)))}")
        self._names.update({CODE_VALUE_TYPE: 1, LOCALE_TYPE: 1, CONTENTS_TYPE: 1, CONTENT_UNION_TYPE: 1})

        collection_types: List[Tuple[str, str, bool]] = []
        for collection in sorted(self.schema.collections, key=lambda c: c.name):
            type_expr = match_collection(
                collection,
                folder=self._folder_collection,
                files=self._files_collection,
            )
            collection_types.append((collection.name, type_expr, True))
        self._declare(typed_dict(CONTENTS_TYPE, collection_types))

        members: List[str] = []
        for value in self._result.content_types.values():
            members.extend(value.values() if isinstance(value, dict) else [value])
        union = f"Union[{', '.join(members)}]" if members else "Never"
        self._declare(f"{CONTENT_UNION_TYPE} = {union}")

        logger.debug("Emitted %d type declarations", len(self._result.declarations))
        return self._result


def emit_types(schema: Schema, options: CompilerOptions, parse_result: Optional[ParseResult] = None) -> TypeDeclarations:
    return TypeEmitter(schema, options, parse_result).emit()
