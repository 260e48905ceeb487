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

"""Content file parser for markdown front matter and structured data files."""

import json
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Dict, Optional, Tuple

import frontmatter
import yaml

from ..exceptions import ContentFileError

logger = logging.getLogger(__name__)

MARKDOWN_EXTENSIONS: Tuple[str, ...] = (".md", ".mdx")
YAML_EXTENSIONS: Tuple[str, ...] = (".yml", ".yaml")
JSON_EXTENSIONS: Tuple[str, ...] = (".json",)
CONTENT_EXTENSIONS: Tuple[str, ...] = MARKDOWN_EXTENSIONS + YAML_EXTENSIONS + JSON_EXTENSIONS

# implicit field receiving the markdown document body
BODY_FIELD = "body"


@dataclass(frozen=True)
class ContentFile:
    """Metadata record extracted from one content file.

    ``body`` is the markdown document body, None for structured data files.
    """

    metadata: Any
    body: Optional[str] = None

    def record(self) -> Any:
        """The metadata record with the body injected as the implicit ``body`` field."""
        return inject_body(self.metadata, self.body)

    def locale_records(self) -> Any:
        """The metadata root read as a locale map, body injected per locale."""
        if not isinstance(self.metadata, dict):
            return self.metadata
        return {
            locale: inject_body(record, self.body) for locale, record in self.metadata.items()
        }


def inject_body(record: Any, body: Optional[str]) -> Any:
    if body is None or not isinstance(record, dict) or BODY_FIELD in record:
        return record
    return {**record, BODY_FIELD: body}


def is_content_file(path: str) -> bool:
    return PurePosixPath(path).suffix.lower() in CONTENT_EXTENSIONS


def parse_content_file(source_location: str, raw: str) -> ContentFile:
    """Parse raw file text according to its extension.

    Raises:
        ContentFileError: unknown extension or unparseable content
    """
    suffix = PurePosixPath(source_location).suffix.lower()

    if suffix in MARKDOWN_EXTENSIONS:
        try:
            post = frontmatter.loads(raw)
        except yaml.YAMLError as exc:
            raise ContentFileError(source_location, f"Failed to parse front matter: {exc}") from exc
        return ContentFile(metadata=dict(post.metadata), body=post.content)

    if suffix in YAML_EXTENSIONS:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ContentFileError(source_location, f"Failed to parse YAML: {exc}") from exc
        return ContentFile(metadata=data if data is not None else {})

    if suffix in JSON_EXTENSIONS:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ContentFileError(source_location, f"Failed to parse JSON: {exc}") from exc
        return ContentFile(metadata=data)

    raise ContentFileError(source_location, f"Unknown file extension: {suffix or '<none>'}")


def load_mapping_file(path) -> Dict[str, Any]:
    """Load a YAML or JSON mapping (used for option files)."""
    text = path.read_text(encoding="utf-8")
    if str(path).lower().endswith(JSON_EXTENSIONS):
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    logger.debug("Loaded mapping file: %s", path)
    return data if data is not None else {}
