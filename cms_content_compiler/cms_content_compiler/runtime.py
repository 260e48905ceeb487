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

"""Query helpers exported by generated modules built with the runtime option.

A filter is a deep-partial mapping: every key present must match. Nested
mappings recurse, lists match element-wise and must have the same length,
anything else is compared with ``==``.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Sequence

from .exceptions import ContentNotFoundError, MultipleContentsFoundError


def matches(value: Any, filter_: Any) -> bool:
    if isinstance(filter_, Mapping):
        if not isinstance(value, Mapping):
            return False
        return all(key in value and matches(value[key], sub) for key, sub in filter_.items())
    if isinstance(filter_, list):
        if not isinstance(value, list) or len(value) != len(filter_):
            return False
        return all(matches(v, f) for v, f in zip(value, filter_))
    return value == filter_


@dataclass(frozen=True)
class Runtime:
    find_all: Callable[[Dict[str, Any]], List[Dict[str, Any]]]
    find_unique: Callable[[Dict[str, Any]], Dict[str, Any]]
    match: Callable[[Dict[str, Any]], Callable[[Dict[str, Any]], bool]]


def create_runtime(contents: Sequence[Dict[str, Any]]) -> Runtime:
    contents = list(contents)

    def match(filter_: Dict[str, Any]) -> Callable[[Dict[str, Any]], bool]:
        return lambda content: matches(content, filter_)

    def find_all(filter_: Dict[str, Any]) -> List[Dict[str, Any]]:
        predicate = match(filter_)
        return [content for content in contents if predicate(content)]

    def find_unique(filter_: Dict[str, Any]) -> Dict[str, Any]:
        found = find_all(filter_)
        if not found:
            raise ContentNotFoundError(f"No content found for filter: {filter_!r}")
        if len(found) > 1:
            raise MultipleContentsFoundError(len(found), filter_)
        return found[0]

    return Runtime(find_all=find_all, find_unique=find_unique, match=match)
