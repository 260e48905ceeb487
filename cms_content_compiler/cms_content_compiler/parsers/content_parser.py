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

"""Content parser: walks collections and builds the validated content AST."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import (
    CollectionReadError,
    ContentBatchError,
    ContentFileError,
    FieldValidationError,
)
from ..models.content import (
    CollectionNode,
    ContentNode,
    FieldNode,
    ListNode,
    MarkdownNode,
    ObjectNode,
    ParseResult,
    ValueNode,
)
from ..models.diagnostics import ParserContext, Stack, log_diagnostics, push_stack_frame
from ..models.schema import (
    Collection,
    FieldSpec,
    FilesCollection,
    FilesCollectionItem,
    FolderCollection,
    I18nStructure,
    ListField,
    NumberField,
    ObjectField,
    Schema,
    declared_locales,
    match_collection,
    resolve_collection_i18n,
    resolve_item_i18n,
)
from ..utils.logging_utils import indent
from .field_validator import FieldRuleCache, get_rule_cache, normalize_decimal, parse_datetime
from .yaml_parser import ContentFile, is_content_file, parse_content_file

logger = logging.getLogger(__name__)


def resolve_slug_and_locale(
    source_location: str, structure: Optional[I18nStructure]
) -> Tuple[str, Optional[str]]:
    """Map a content file path to its (slug, locale) identity.

    ``single_file`` resolves like no structure: the locales come from the
    file's contents, not its path.
    """
    path = PurePosixPath(source_location)
    if structure == I18nStructure.MULTIPLE_FILES:
        # {slug}.{locale}.{ext}
        parts = path.stem.split(".")
        if len(parts) < 2:
            raise ContentFileError(
                source_location, "Expected '{slug}.{locale}.{ext}' file name for multiple_files"
            )
        return ".".join(parts[:-1]), parts[-1]
    if structure == I18nStructure.MULTIPLE_FOLDERS:
        # {locale}/{slug}.{ext}
        return path.stem, path.parent.name
    return path.stem, None


# Value -> FieldNode conversion for already validated values, one entry per widget.


def _value_node(spec: FieldSpec, value: Any) -> FieldNode:
    return ValueNode(spec=spec, value=list(value) if isinstance(value, list) else value)


def _code_node(spec: FieldSpec, value: Dict[str, Any]) -> FieldNode:
    code = {"code": value["code"]}
    if value.get("lang") is not None:
        code["lang"] = value["lang"]
    return ValueNode(spec=spec, value=code)


def _number_node(spec: NumberField, value: Any) -> FieldNode:
    if spec.is_decimal:
        return ValueNode(spec=spec, value=normalize_decimal(value))
    # integer rules accept integral floats such as 3.0
    return ValueNode(spec=spec, value=int(value))


def _list_node(spec: ListField, value: List[Any]) -> FieldNode:
    item_spec = spec.item_field()
    return ListNode(spec=spec, items=tuple(to_field_node(item_spec, item) for item in value))


def _object_node(spec: ObjectField, value: Dict[str, Any]) -> FieldNode:
    children: Dict[str, FieldNode] = {}
    for child in spec.fields:
        child_value = value.get(child.name)
        if child_value is not None:
            children[child.name] = to_field_node(child, child_value)
    return ObjectNode(spec=spec, children=children)


_NODE_BUILDERS: Dict[str, Callable[[Any, Any], FieldNode]] = {
    "boolean": _value_node,
    "code": _code_node,
    "color": _value_node,
    "datetime": lambda spec, value: ValueNode(spec=spec, value=parse_datetime(value)),
    "file": _value_node,
    "hidden": _value_node,
    "image": _value_node,
    "list": _list_node,
    "map": _value_node,
    "markdown": lambda spec, value: MarkdownNode(spec=spec, value=value),
    "number": _number_node,
    "object": _object_node,
    "relation": _value_node,
    "select": _value_node,
    "string": _value_node,
    "text": _value_node,
}


def to_field_node(spec: FieldSpec, value: Any) -> FieldNode:
    return _NODE_BUILDERS[spec.widget](spec, value)


def _prefix_issues(child: FieldValidationError) -> List[Dict[str, str]]:
    return [
        {"message": issue["message"], "path": f"/{child.field_name}{issue.get('path', '')}"}
        for issue in child.issues
    ]


@dataclass
class _ReadBatch:
    """File reads of one collection, waiting to be parsed."""

    stack: Stack
    locations: Sequence[str]
    reads: Sequence[Union[str, BaseException]]
    parse_one: Callable[[int, str, str], List[ContentNode]]


class ContentParser:
    """Builds a ParseResult for every collection of a schema.

    Files of every collection are read concurrently. Parsing and validation
    then run on the event loop thread, collection by collection in name order
    and file by file in source order, so diagnostics come out in a stable order.
    """

    def __init__(
        self,
        cwd: Union[str, Path],
        schema: Schema,
        *,
        fail_on_file_error: bool = False,
        rules: Optional[FieldRuleCache] = None,
    ):
        self.cwd = Path(cwd).resolve()
        self.schema = schema
        self.fail_on_file_error = fail_on_file_error
        self.rules = rules or get_rule_cache()
        self.ctx = ParserContext()
        self._locales = declared_locales(schema)

    async def parse(self) -> ParseResult:
        stack = push_stack_frame((), "parse_collections")

        for collection in self.schema.collections:
            resolution = resolve_collection_i18n(self.schema, collection)
            if resolution.warning:
                self.ctx.push(
                    resolution.warning,
                    push_stack_frame(stack, "resolve_collection_i18n", collection=collection.name),
                    collection=collection.name,
                )

        collections = sorted(self.schema.collections, key=lambda collection: collection.name)
        batches = await asyncio.gather(
            *(self._read_collection(collection, stack) for collection in collections)
        )
        nodes = tuple(
            self._parse_collection(collection, batch) for collection, batch in zip(collections, batches)
        )
        return ParseResult(
            schema=self.schema,
            diagnostics=tuple(self.ctx.diagnostics),
            collections=nodes,
        )

    # Collection level

    async def _read_collection(self, collection: Collection, parent_stack: Stack) -> _ReadBatch:
        stack = push_stack_frame(parent_stack, "parse_collection", collection=collection.name)
        return await match_collection(
            collection,
            folder=lambda c: self._read_folder_collection(c, stack),
            files=lambda c: self._read_files_collection(c, stack),
        )

    def _parse_collection(self, collection: Collection, batch: _ReadBatch) -> CollectionNode:
        contents = self._parse_batch(collection, batch)
        contents.sort(key=lambda content: content.source_location)
        logger.debug("Parsed collection '%s': %d contents", collection.name, len(contents))
        return CollectionNode(collection=collection, contents=tuple(contents))

    async def _read_folder_collection(self, collection: FolderCollection, stack: Stack) -> _ReadBatch:
        root = self.cwd / collection.folder
        try:
            paths = await asyncio.to_thread(self._enumerate_folder, root)
        except OSError as exc:
            raise CollectionReadError(
                f"Cannot read folder of collection '{collection.name}': {root}: {exc}"
            ) from exc

        structure = resolve_collection_i18n(self.schema, collection).structure

        def parse_one(index: int, location: str, raw: str) -> List[ContentNode]:
            return self._parse_folder_file(collection, structure, location, raw, stack)

        return _ReadBatch(
            stack=stack,
            locations=[path.relative_to(self.cwd).as_posix() for path in paths],
            reads=await self._read_files(paths),
            parse_one=parse_one,
        )

    async def _read_files_collection(self, collection: FilesCollection, stack: Stack) -> _ReadBatch:
        paths = [self.cwd / item.file for item in collection.files]

        # items are addressed by position: several items may share one file
        def parse_one(index: int, location: str, raw: str) -> List[ContentNode]:
            return self._parse_files_item(collection, collection.files[index], location, raw, stack)

        return _ReadBatch(
            stack=stack,
            locations=[PurePosixPath(item.file).as_posix() for item in collection.files],
            reads=await self._read_files(paths),
            parse_one=parse_one,
        )

    @staticmethod
    def _enumerate_folder(root: Path) -> List[Path]:
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")
        return sorted(p for p in root.rglob("*") if p.is_file() and is_content_file(p.name))

    @staticmethod
    def _read_file(path: Path) -> str:
        return path.read_text(encoding="utf-8")

    async def _read_files(self, paths: Sequence[Path]) -> List[Union[str, BaseException]]:
        return await asyncio.gather(
            *(asyncio.to_thread(self._read_file, path) for path in paths),
            return_exceptions=True,
        )

    def _parse_batch(self, collection: Collection, batch: _ReadBatch) -> List[ContentNode]:
        contents: List[ContentNode] = []
        errors: List[Exception] = []
        for index, (location, raw) in enumerate(zip(batch.locations, batch.reads)):
            file_stack = push_stack_frame(batch.stack, "parse_file", source_location=location)
            if isinstance(raw, BaseException):
                if not isinstance(raw, Exception):
                    raise raw
                error: Exception = ContentFileError(location, f"Failed to read file: {raw}")
            else:
                try:
                    contents.extend(batch.parse_one(index, location, raw))
                    continue
                except Exception as exc:
                    error = exc
            errors.append(error)
            self.ctx.push(
                str(error),
                file_stack,
                source_location=location,
                error=type(error).__name__,
            )

        if errors and self.fail_on_file_error:
            raise ContentBatchError(collection.name, errors)
        return contents

    # File level

    def _parse_folder_file(
        self,
        collection: FolderCollection,
        structure: Optional[I18nStructure],
        source_location: str,
        raw: str,
        parent_stack: Stack,
    ) -> List[ContentNode]:
        stack = push_stack_frame(
            parent_stack,
            "parse_folder_collection_file",
            collection=collection.name,
            source_location=source_location,
        )
        content_file = parse_content_file(source_location, raw)
        slug, locale = resolve_slug_and_locale(source_location, structure)

        def make(locale: Optional[str], props: ObjectNode) -> ContentNode:
            return ContentNode(
                source_location=source_location,
                collection=collection,
                slug=slug,
                locale=locale,
                raw=raw,
                props=props,
            )

        if structure == I18nStructure.SINGLE_FILE:
            return self._parse_locale_map(content_file, collection.fields, make, stack)

        if locale is not None and not self._accepts_locale(locale, stack):
            return []
        props = self._parse_props(
            collection.fields,
            content_file.record(),
            push_stack_frame(stack, "parse_props", i18n=structure, locale=locale),
        )
        return [make(locale, props)] if props is not None else []

    def _parse_files_item(
        self,
        collection: FilesCollection,
        item: FilesCollectionItem,
        source_location: str,
        raw: str,
        parent_stack: Stack,
    ) -> List[ContentNode]:
        stack = push_stack_frame(
            parent_stack,
            "parse_files_collection_file",
            collection=collection.name,
            file=item.name,
            source_location=source_location,
        )
        content_file = parse_content_file(source_location, raw)
        slug, _ = resolve_slug_and_locale(source_location, None)

        def make(locale: Optional[str], props: ObjectNode) -> ContentNode:
            return ContentNode(
                source_location=source_location,
                collection=collection,
                file=item.name,
                slug=slug,
                locale=locale,
                raw=raw,
                props=props,
            )

        if resolve_item_i18n(self.schema, collection, item) == I18nStructure.SINGLE_FILE:
            return self._parse_locale_map(content_file, item.fields, make, stack)

        props = self._parse_props(
            item.fields, content_file.record(), push_stack_frame(stack, "parse_props", i18n=None)
        )
        return [make(None, props)] if props is not None else []

    def _accepts_locale(self, locale: str, stack: Stack) -> bool:
        if not self._locales or locale in self._locales:
            return True
        self.ctx.push(
            f"Unknown locale '{locale}'",
            stack,
            locale=locale,
            declared_locales=list(self._locales),
        )
        return False

    def _parse_locale_map(
        self,
        content_file: ContentFile,
        fields: Sequence[FieldSpec],
        make: Callable[[Optional[str], ObjectNode], ContentNode],
        stack: Stack,
    ) -> List[ContentNode]:
        records = content_file.locale_records()
        if not isinstance(records, dict):
            self.ctx.push(
                "Expected a map of locale to fields at the root of a single_file content",
                stack,
                found=type(records).__name__,
            )
            return []

        contents: List[ContentNode] = []
        for locale, record in records.items():
            locale = str(locale)
            locale_stack = push_stack_frame(stack, "parse_props", i18n="single_file", locale=locale)
            if not self._accepts_locale(locale, locale_stack):
                continue
            props = self._parse_props(fields, record, locale_stack)
            if props is not None:
                contents.append(make(locale, props))
        return contents

    # Field level

    def _parse_props(
        self, fields: Sequence[FieldSpec], record: Any, stack: Stack
    ) -> Optional[ObjectNode]:
        """Validate a metadata record field by field.

        Returns None (and records one diagnostic) when any required field is
        invalid; invalid optional fields are reported and omitted.
        """
        if not isinstance(record, dict):
            self.ctx.push(
                "Content metadata must be a mapping",
                stack,
                found=type(record).__name__,
            )
            return None

        children: Dict[str, FieldNode] = {}
        failures: List[FieldValidationError] = []
        for spec in fields:
            field_stack = push_stack_frame(stack, "parse_field", field=spec.name, widget=spec.widget)
            try:
                node = self._parse_field(spec, record.get(spec.name), field_stack)
            except FieldValidationError as exc:
                if spec.required:
                    failures.append(exc)
                else:
                    self.ctx.push(
                        f"Optional field '{spec.name}' omitted: {exc}",
                        field_stack,
                        field=spec.name,
                        issues=exc.issues,
                    )
                continue
            if node is not None:
                children[spec.name] = node

        if failures:
            self.ctx.push(
                "Content dropped, invalid required field(s): "
                + ", ".join(f"'{failure.field_name}'" for failure in failures),
                stack,
                issues=[
                    {"field": failure.field_name, **issue}
                    for failure in failures
                    for issue in failure.issues
                ],
            )
            return None
        return ObjectNode(spec=None, children=children)

    def _parse_field(self, spec: FieldSpec, value: Any, stack: Stack) -> Optional[FieldNode]:
        issues = self.rules.issues(spec, value)
        if not issues:
            return to_field_node(spec, value) if value is not None else None

        # isolate an object's failing children so invalid optional ones degrade alone
        if isinstance(spec, ObjectField) and isinstance(value, dict):
            children: Dict[str, FieldNode] = {}
            for child in spec.fields:
                child_stack = push_stack_frame(stack, "parse_field", field=child.name, widget=child.widget)
                try:
                    node = self._parse_field(child, value.get(child.name), child_stack)
                except FieldValidationError as exc:
                    if child.required:
                        raise FieldValidationError(spec.name, _prefix_issues(exc), value) from exc
                    self.ctx.push(
                        f"Optional field '{spec.name}.{child.name}' omitted: {exc}",
                        child_stack,
                        field=child.name,
                        issues=exc.issues,
                    )
                    continue
                if node is not None:
                    children[child.name] = node
            return ObjectNode(spec=spec, children=children)

        raise FieldValidationError(spec.name, issues, value)


async def parse(
    cwd: Union[str, Path],
    schema: Schema,
    *,
    fail_on_file_error: bool = False,
    rules: Optional[FieldRuleCache] = None,
) -> ParseResult:
    """Parse every collection of ``schema`` relative to ``cwd``."""
    parser = ContentParser(cwd, schema, fail_on_file_error=fail_on_file_error, rules=rules)
    return await parser.parse()


def pretty_print_parse_result(result: ParseResult, log: logging.Logger = logger) -> None:
    collections = result.collections
    log.info(
        "%d collections parsed with total %d contents and %d diagnostics.",
        len(collections),
        result.content_count(),
        len(result.diagnostics),
    )
    log.info(indent(2, f"Collections ({len(collections)}):"))
    for k, node in enumerate(collections):
        log.info(
            indent(
                4,
                f"({k + 1}/{len(collections)}) collection '{node.collection.name}': "
                f"{len(node.contents)} contents.",
            )
        )
        for content in node.contents:
            log.debug(indent(6, content.source_location))
    if result.diagnostics:
        log_diagnostics(result.diagnostics, log)
