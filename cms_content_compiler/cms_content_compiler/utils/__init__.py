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

"""Small string helpers shared by the parser and the emitters."""

import re
from typing import List

_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^A-Za-z0-9]+")


def split_words(text: str) -> List[str]:
    """Split text into words on case changes and non-alphanumeric runs."""
    # example: 'heroImage URL_v2' -> ['hero', 'Image', 'URL', 'v2']
    text = _ACRONYM_BOUNDARY.sub(r"\1 \2", text)
    text = _CAMEL_BOUNDARY.sub(r"\1 \2", text)
    return [word for word in _NON_ALNUM.split(text) if word]


def param_case(text: str) -> str:
    """Convert text to a lowercase, hyphen-separated, URL-safe segment."""
    return "-".join(word.lower() for word in split_words(text))


def pascal_case(text: str) -> str:
    """Convert text to PascalCase, suitable for generated type names."""
    result = "".join(word[:1].upper() + word[1:].lower() for word in split_words(text))
    if not result:
        return "Unnamed"
    if result[0].isdigit():
        return f"_{result}"
    return result
