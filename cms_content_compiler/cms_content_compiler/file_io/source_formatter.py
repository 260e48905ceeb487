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

"""Formatting of generated source with black."""

import logging
from pathlib import Path
from typing import Optional

import black

from ..exceptions import ConfigurationError, SourceFormatError

logger = logging.getLogger(__name__)


def load_formatter_mode(config_path: Optional[Path] = None) -> black.Mode:
    """Build a black Mode, optionally from the ``[tool.black]`` table of a pyproject file."""
    if config_path is None:
        return black.Mode()

    if not config_path.is_file():
        raise ConfigurationError(f"Formatter config not found: {config_path}")
    try:
        config = black.parse_pyproject_toml(str(config_path))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Invalid formatter config {config_path}: {exc}") from exc

    logger.debug("Loaded formatter config: %s", config_path)
    return black.Mode(
        line_length=int(config.get("line_length", black.DEFAULT_LINE_LENGTH)),
        string_normalization=not config.get("skip_string_normalization", False),
        magic_trailing_comma=not config.get("skip_magic_trailing_comma", False),
    )


def format_source(source: str, mode: Optional[black.Mode] = None) -> str:
    """Format ``source``; a rejection carries the formatter message and the source."""
    try:
        return black.format_str(source, mode=mode or black.Mode())
    except black.InvalidInput as exc:
        raise SourceFormatError(f"Generated source rejected by formatter: {exc}", source) from exc
