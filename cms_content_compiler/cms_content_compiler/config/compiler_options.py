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

"""Configuration management for the content compiler."""

import os
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..exceptions import ConfigurationError
from ..utils.logging_utils import PACKAGE_LOGGER_NAME, configure_split_stream_logging, set_silent

ENV_PREFIX = "CMS_CONTENT_COMPILER_"

MIN_LOCK_STALE_MS = 5000
MIN_LOCK_UPDATE_MS = 1000


@dataclass
class LockOptions:
    """Output folder lock parameters (milliseconds)."""
    stale_ms: int = 10000
    update_ms: int = 5000
    retries: int = 10
    warning_threshold_ms: Optional[int] = None

    def validate(self) -> None:
        if self.stale_ms < MIN_LOCK_STALE_MS:
            raise ConfigurationError(f"lock.stale_ms must be >= {MIN_LOCK_STALE_MS}, got {self.stale_ms}")
        if self.update_ms < MIN_LOCK_UPDATE_MS:
            raise ConfigurationError(f"lock.update_ms must be >= {MIN_LOCK_UPDATE_MS}, got {self.update_ms}")
        if self.update_ms >= self.stale_ms:
            raise ConfigurationError("lock.update_ms must be lower than lock.stale_ms")
        if self.retries < 0:
            raise ConfigurationError(f"lock.retries must be >= 0, got {self.retries}")
        if self.warning_threshold_ms is not None and self.warning_threshold_ms < 0:
            raise ConfigurationError("lock.warning_threshold_ms must be >= 0")


@dataclass
class CompilerOptions:
    """Options of one compiler invocation."""
    cwd: str = "."
    schema: str = "schema.yml"
    out_folder: str = "out"

    # generated module
    markdown_loader_module: str = "cms_content_compiler.markdown"
    markdown_loader_identifier: str = "load_markdown"
    markdown_type_module: str = "cms_content_compiler.markdown"
    markdown_type_identifier: str = "Markdown"
    raw: bool = False
    source_location: bool = False
    narrow_slugs: bool = False
    runtime: bool = False
    format_config: Optional[str] = None

    # run behaviour
    dry_run: bool = False
    save_parse_result: bool = False
    save_emit_result: bool = False
    silent: bool = False
    watch: bool = False
    exit_on_error: bool = True
    fail_on_file_error: bool = False
    use_lockfile: bool = True
    lock: LockOptions = field(default_factory=LockOptions)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "CompilerOptions":
        """Create options from environment variables."""
        return cls(log_level=os.getenv(f"{ENV_PREFIX}LOG_LEVEL", "INFO"))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], base: Optional["CompilerOptions"] = None) -> "CompilerOptions":
        """Overlay ``data`` (e.g. a parsed config file) on ``base``.

        Keys may use ``snake_case`` or the ``camelCase`` spelling of the CLI.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError("Compiler options must be a mapping")

        options = base if base is not None else cls.from_env()
        known = {f.name for f in fields(cls)}
        updates: Dict[str, Any] = {}
        for raw_key, value in data.items():
            key = _snake_case(str(raw_key))
            if key not in known:
                raise ConfigurationError(f"Unknown compiler option: {raw_key}")
            if key == "lock":
                value = _lock_options(value, options.lock)
            updates[key] = value

        result = replace(options, **updates)
        result.validate()
        return result

    def validate(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type in ("bool", bool) and not isinstance(value, bool):
                raise ConfigurationError(f"Option '{f.name}' must be a boolean, got {value!r}")
        for name in ("cwd", "schema", "out_folder", "markdown_loader_module", "markdown_loader_identifier",
                     "markdown_type_module", "markdown_type_identifier"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value:
                raise ConfigurationError(f"Option '{name}' must be a non-empty string")
        for name in ("markdown_loader_identifier", "markdown_type_identifier"):
            if not getattr(self, name).isidentifier():
                raise ConfigurationError(f"Option '{name}' must be a Python identifier")
        if getattr(logging, str(self.log_level).upper(), None) is None:
            raise ConfigurationError(f"Unknown log level: {self.log_level}")
        self.lock.validate()

    # resolved paths

    @property
    def cwd_path(self) -> Path:
        return Path(self.cwd).resolve()

    @property
    def schema_path(self) -> Path:
        return self.cwd_path / self.schema

    @property
    def out_path(self) -> Path:
        return self.cwd_path / self.out_folder

    @property
    def format_config_path(self) -> Optional[Path]:
        return self.cwd_path / self.format_config if self.format_config else None

    def set_logging(self) -> logging.Logger:
        """Setup logging based on configuration."""
        level = getattr(logging, self.log_level.upper(), logging.INFO)
        configure_split_stream_logging(level=level)
        set_silent(self.silent)
        return logging.getLogger(PACKAGE_LOGGER_NAME)


def _snake_case(key: str) -> str:
    out = []
    for char in key:
        if char.isupper():
            out.append("_")
            out.append(char.lower())
        elif char == "-":
            out.append("_")
        else:
            out.append(char)
    return "".join(out)


def _lock_options(value: Any, base: LockOptions) -> LockOptions:
    if isinstance(value, LockOptions):
        return value
    if not isinstance(value, Mapping):
        raise ConfigurationError("Option 'lock' must be a mapping")
    known = {f.name for f in fields(LockOptions)}
    updates = {}
    for raw_key, item in value.items():
        key = _snake_case(str(raw_key))
        if key not in known:
            raise ConfigurationError(f"Unknown lock option: {raw_key}")
        if key == "warning_threshold_ms":
            if item is not None and (isinstance(item, bool) or not isinstance(item, int)):
                raise ConfigurationError(f"Lock option '{raw_key}' must be an integer or null")
        elif isinstance(item, bool) or not isinstance(item, int):
            raise ConfigurationError(f"Lock option '{raw_key}' must be an integer")
        updates[key] = item
    return replace(base, **updates)
