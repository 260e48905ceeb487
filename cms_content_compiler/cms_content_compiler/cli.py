#!/usr/bin/env python3
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

"""CLI entry point: ``cms-content-compiler compile [options]``."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .compiler import run
from .config.compiler_options import CompilerOptions
from .exceptions import ConfigurationError, ContentCompilerError
from .parsers.yaml_parser import load_mapping_file

# (flag, option name, help) for string options
_STRING_OPTIONS = [
    ("--cwd", "cwd", "Directory the schema and content paths are relative to (default: .)"),
    ("--schema", "schema", "Schema file (default: schema.yml)"),
    ("--out-folder", "out_folder", "Output folder (default: out)"),
    ("--markdown-loader-module", "markdown_loader_module", "Module providing the markdown loader"),
    ("--markdown-loader-identifier", "markdown_loader_identifier", "Name of the markdown loader"),
    ("--markdown-type-module", "markdown_type_module", "Module providing the markdown type"),
    ("--markdown-type-identifier", "markdown_type_identifier", "Name of the markdown type"),
    ("--format-config", "format_config", "pyproject.toml holding [tool.black] settings"),
    ("--log-level", "log_level", "Log level (default: INFO)"),
]

_FLAG_OPTIONS = [
    ("--raw", "raw", "Include the raw front matter in every content entry"),
    ("--source-location", "source_location", "Include the source location in every content entry"),
    ("--narrow-slugs", "narrow_slugs", "Type slugs as the literal union of known slugs"),
    ("--runtime", "runtime", "Export find_all / find_unique / match from the generated module"),
    ("--dry-run", "dry_run", "Compile without writing anything"),
    ("--save-parse-result", "save_parse_result", "Write parser.out.json"),
    ("--save-emit-result", "save_emit_result", "Write emitter.out.json"),
    ("--silent", "silent", "Do not log anything"),
    ("--watch", "watch", "Recompile when the schema or content changes"),
    ("--exit-on-error", "exit_on_error", "Stop watching after a failed compile"),
    ("--fail-on-file-error", "fail_on_file_error", "Treat unreadable content files as fatal"),
    ("--use-lockfile", "use_lockfile", "Lock the output folder while compiling"),
]

_LOCK_OPTIONS = [
    ("--lock-stale-ms", "stale_ms", "Age after which a lock is considered abandoned"),
    ("--lock-update-ms", "update_ms", "Lock refresh interval"),
    ("--lock-retries", "retries", "Lock acquisition retries"),
    ("--lock-warning-threshold-ms", "warning_threshold_ms", "Warn when acquiring or holding the lock takes longer"),
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cms-content-compiler",
        description="Compile a CMS schema and its content into a typed Python module",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    compile_parser = subparsers.add_parser("compile", help="Compile the content")
    compile_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML or JSON file with compiler options; flags override it",
    )
    # SUPPRESS keeps unset flags out of the namespace so the config file values stay
    for flag, dest, help_text in _STRING_OPTIONS:
        compile_parser.add_argument(flag, dest=dest, default=argparse.SUPPRESS, help=help_text)
    for flag, dest, help_text in _FLAG_OPTIONS:
        compile_parser.add_argument(
            flag, dest=dest, action=argparse.BooleanOptionalAction, default=argparse.SUPPRESS, help=help_text
        )
    for flag, dest, help_text in _LOCK_OPTIONS:
        compile_parser.add_argument(
            flag, dest=f"lock_{dest}", type=int, default=argparse.SUPPRESS, help=help_text
        )
    return parser


def options_from_args(args: argparse.Namespace) -> CompilerOptions:
    data: Dict[str, Any] = {}
    if args.config is not None:
        try:
            data.update(load_mapping_file(args.config))
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read config file {args.config}: {e}") from e

    values = vars(args)
    for _, dest, _ in _STRING_OPTIONS + _FLAG_OPTIONS:
        if dest in values:
            data[dest] = values[dest]
    lock = {dest: values[f"lock_{dest}"] for _, dest, _ in _LOCK_OPTIONS if f"lock_{dest}" in values}
    if lock:
        base_lock = data.get("lock") or {}
        if not isinstance(base_lock, dict):
            raise ConfigurationError("Option 'lock' must be a mapping")
        data["lock"] = {**base_lock, **lock}
    return CompilerOptions.from_mapping(data)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the compiler CLI."""
    args = build_parser().parse_args(argv)

    try:
        options = options_from_args(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    options.set_logging()
    try:
        asyncio.run(run(options))
    except ContentCompilerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
