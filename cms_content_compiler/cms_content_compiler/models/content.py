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

"""Content AST produced by the parser and consumed by both emitters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .diagnostics import Diagnostic
from .schema import Collection, FieldSpec, ObjectField, Schema


@dataclass(frozen=True)
class ValueNode:
    """Validated leaf value.

    ``value`` is already normalised: datetimes are timezone-aware UTC, decimal
    numbers are strings, code values are ``{"code", "lang"?}`` dicts.
    """

    spec: FieldSpec
    value: Any


@dataclass(frozen=True)
class MarkdownNode:
    spec: FieldSpec
    value: str


@dataclass(frozen=True)
class ObjectNode:
    # None for the root props node of a content item
    spec: Optional[ObjectField]
    children: Dict[str, "FieldNode"] = field(default_factory=dict)


@dataclass(frozen=True)
class ListNode:
    spec: FieldSpec
    items: Tuple["FieldNode", ...] = ()


FieldNode = Union[ValueNode, MarkdownNode, ObjectNode, ListNode]


@dataclass(frozen=True)
class ContentNode:
    source_location: str
    collection: Collection
    slug: str
    locale: Optional[str]
    raw: str
    props: ObjectNode
    # files collections only
    file: Optional[str] = None

    @property
    def kind(self) -> str:
        return self.collection.kind


@dataclass(frozen=True)
class CollectionNode:
    collection: Collection
    contents: Tuple[ContentNode, ...] = ()


@dataclass(frozen=True)
class ParseResult:
    schema: Schema
    diagnostics: Tuple[Diagnostic, ...] = ()
    collections: Tuple[CollectionNode, ...] = ()

    def content_count(self) -> int:
        return sum(len(c.contents) for c in self.collections)


@dataclass(frozen=True)
class Asset:
    path: str
    content: str


@dataclass(frozen=True)
class EmitResult:
    index: Asset
    assets: Tuple[Asset, ...] = ()
    diagnostics: Tuple[Diagnostic, ...] = ()
