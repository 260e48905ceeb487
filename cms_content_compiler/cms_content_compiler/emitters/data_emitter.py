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

"""Runtime data literal and markdown asset emission."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..config.compiler_options import CompilerOptions
from ..file_io.source_formatter import format_source, load_formatter_mode
from ..file_io.template_renderer import TemplateRenderer
from ..models.content import (
    Asset,
    CollectionNode,
    ContentNode,
    EmitResult,
    FieldNode,
    ListNode,
    MarkdownNode,
    ObjectNode,
    ParseResult,
    ValueNode,
)
from ..models.diagnostics import ParserContext, Stack, push_stack_frame
from ..models.schema import FilesCollection, FolderCollection, match_collection
from ..utils import param_case
from .python_source import Expr, render_literal
from .type_emitter import CONTENTS_TYPE, CONTENT_UNION_TYPE, TypeDeclarations, emit_types

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "index.py"
INDEX_TEMPLATE = "index.py.jinja2"
MARKDOWN_EXTENSION = ".md"


class MarkdownAssets:
    """Accumulates markdown assets and keeps their paths unique."""

    def __init__(self, ctx: ParserContext):
        self.ctx = ctx
        self.assets: List[Asset] = []
        self._paths = set()

    def add(self, segments: Sequence[str], content: str, stack: Stack) -> str:
        base = "/".join(param_case(segment) or "_" for segment in segments)
        path = f"{base}{MARKDOWN_EXTENSION}"
        suffix = 1
        while path in self._paths:
            suffix += 1
            path = f"{base}-{suffix}{MARKDOWN_EXTENSION}"
        if suffix > 1:
            self.ctx.push(
                f"Markdown asset path conflict: {base}{MARKDOWN_EXTENSION} renamed to {path}",
                stack,
                requested=f"{base}{MARKDOWN_EXTENSION}",
                assigned=path,
            )
        self._paths.add(path)
        self.assets.append(Asset(path=path, content=content))
        return path


class DataEmitter:
    """Builds the ``contents`` literal from a ParseResult.

    Values are first assembled as plain Python data with ``Expr`` nodes for
    the parts that must stay code, then rendered in one pass.
    """

    def __init__(self, options: CompilerOptions, ctx: Optional[ParserContext] = None):
        self.options = options
        self.ctx = ctx or ParserContext()
        self.markdown = MarkdownAssets(self.ctx)
        self._widget_values: Dict[str, Callable[[FieldNode, List[str], Stack], Any]] = {
            "boolean": self._plain_value,
            "code": self._plain_value,
            "color": self._plain_value,
            "datetime": self._plain_value,
            "file": self._plain_value,
            "hidden": self._plain_value,
            "image": self._plain_value,
            "list": self._list_value,
            "map": self._plain_value,
            "markdown": self._markdown_value,
            "number": self._number_value,
            "object": self._object_value,
            "relation": self._plain_value,
            "select": self._plain_value,
            "string": self._plain_value,
            "text": self._plain_value,
        }

    # field values

    def field_value(self, node: FieldNode, path: List[str], stack: Stack) -> Any:
        stack = push_stack_frame(stack, "emit_field", path="/".join(path))
        return self._widget_values[node.spec.widget](node, path, stack)

    @staticmethod
    def _plain_value(node: ValueNode, path: List[str], stack: Stack) -> Any:
        return node.value

    @staticmethod
    def _number_value(node: ValueNode, path: List[str], stack: Stack) -> Any:
        if isinstance(node.value, str):
            # decimal numbers travel as strings and are rebuilt without float rounding
            return Decimal(node.value)
        return node.value

    def _markdown_value(self, node: MarkdownNode, path: List[str], stack: Stack) -> Any:
        asset_path = self.markdown.add(path, node.value, stack)
        return Expr(f"load_markdown(ASSETS_DIR / {asset_path!r})")

    def _list_value(self, node: ListNode, path: List[str], stack: Stack) -> Any:
        return [self.field_value(item, path + [str(k)], stack) for k, item in enumerate(node.items)]

    def _object_value(self, node: ObjectNode, path: List[str], stack: Stack) -> Any:
        return {
            key: self.field_value(child, path + [key], stack) for key, child in node.children.items()
        }

    # contents

    def content_value(self, content: ContentNode, stack: Stack) -> Dict[str, Any]:
        stack = push_stack_frame(
            stack, "emit_content", source_location=content.source_location, locale=content.locale
        )
        base_path = [content.collection.name, content.slug]
        if content.locale is not None:
            base_path.append(content.locale)

        value: Dict[str, Any] = {"collection": content.collection.name, "kind": content.kind}
        if content.file is not None:
            value["file"] = content.file
        value["slug"] = content.slug
        value["locale"] = content.locale
        value["props"] = {
            key: self.field_value(child, base_path + [key], stack)
            for key, child in content.props.children.items()
        }
        if self.options.raw:
            value["raw"] = content.raw
        if self.options.source_location:
            value["source_location"] = content.source_location
        return value

    def collection_value(self, node: CollectionNode, stack: Stack) -> Any:
        stack = push_stack_frame(stack, "emit_collection", collection=node.collection.name)

        def folder(collection: FolderCollection) -> Any:
            return [self.content_value(content, stack) for content in node.contents]

        def files(collection: FilesCollection) -> Any:
            return {
                item.name: [
                    self.content_value(content, stack)
                    for content in node.contents
                    if content.file == item.name
                ]
                for item in collection.files
            }

        return match_collection(node.collection, folder=folder, files=files)

    def contents_value(self, parse_result: ParseResult) -> Dict[str, Any]:
        stack = push_stack_frame((), "emit_contents")
        return {
            node.collection.name: self.collection_value(node, stack)
            for node in parse_result.collections
        }

    def contents_source(self, parse_result: ParseResult) -> str:
        return render_literal(self.contents_value(parse_result))


def _content_list_keys(types: TypeDeclarations) -> List[Tuple[str, ...]]:
    """Subscript keys into ``contents`` of every content list, for the query runtime."""
    keys: List[Tuple[str, ...]] = []
    for collection, content_type in types.content_types.items():
        if isinstance(content_type, dict):
            keys.extend((collection, item) for item in content_type)
        else:
            keys.append((collection,))
    return keys


def render_index_source(
    options: CompilerOptions,
    types: TypeDeclarations,
    contents_source: str,
    renderer: Optional[TemplateRenderer] = None,
) -> str:
    renderer = renderer or TemplateRenderer()
    return renderer.render_template(
        INDEX_TEMPLATE,
        markdown_loader_module=options.markdown_loader_module,
        markdown_loader_identifier=options.markdown_loader_identifier,
        markdown_type_module=options.markdown_type_module,
        markdown_type_identifier=options.markdown_type_identifier,
        declarations=types.declarations,
        contents_type=CONTENTS_TYPE,
        content_union_type=CONTENT_UNION_TYPE,
        contents=contents_source,
        runtime=options.runtime,
        content_lists=_content_list_keys(types),
    )


def emit(parse_result: ParseResult, options: CompilerOptions) -> EmitResult:
    """Emit the formatted index module and the markdown assets.

    Raises:
        SourceFormatError: the formatter rejected the generated source
    """
    ctx = ParserContext()
    emitter = DataEmitter(options, ctx)
    contents_source = emitter.contents_source(parse_result)
    types = emit_types(parse_result.schema, options, parse_result)

    raw_source = render_index_source(options, types, contents_source)
    source = format_source(raw_source, load_formatter_mode(options.format_config_path))

    return EmitResult(
        index=Asset(path=INDEX_FILE_NAME, content=source),
        assets=tuple(emitter.markdown.assets),
        diagnostics=tuple(ctx.diagnostics),
    )


def pretty_print_emit_result(result: EmitResult, log: logging.Logger = logger) -> None:
    log.info("Index and %d markdown assets emitted.", len(result.assets))
    for diagnostic in result.diagnostics:
        log.warning("  %s", diagnostic.message)
