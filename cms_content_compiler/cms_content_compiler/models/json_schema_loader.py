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

"""JSON Schema loader for the CMS schema document dialect."""

import json
from pathlib import Path
from typing import Dict

from jsonschema import Draft202012Validator

SCHEMA_FILE_NAME = "content_schema.json"

# Schema cache to avoid reloading files
_SCHEMA_CACHE: Dict[str, dict] = {}
_VALIDATOR_CACHE: Dict[str, Draft202012Validator] = {}


def get_schema_path(file_name: str = SCHEMA_FILE_NAME) -> Path:
    """Get the path to a bundled JSON Schema file."""
    schema_dir = Path(__file__).parent.parent / "schema"
    return schema_dir / file_name


def load_schema(file_name: str = SCHEMA_FILE_NAME) -> dict:
    """Load a bundled JSON Schema file.

    Raises:
        FileNotFoundError: If the schema file doesn't exist
        json.JSONDecodeError: If the schema file is invalid JSON
    """
    if file_name in _SCHEMA_CACHE:
        return _SCHEMA_CACHE[file_name]

    schema_path = get_schema_path(file_name)
    if not schema_path.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_path}")

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)
    except json.JSONDecodeError as e:
        raise json.JSONDecodeError(
            f"Invalid JSON in schema file {schema_path}: {e.msg}",
            e.doc,
            e.pos,
        ) from e

    _SCHEMA_CACHE[file_name] = schema
    return schema


def get_validator(definition: str = "") -> Draft202012Validator:
    """Return a cached validator for the whole document or one of its ``$defs``.

    ``definition`` names an entry under ``$defs`` (e.g. ``"folderCollection"``);
    an empty string validates against the document root.
    """
    if definition in _VALIDATOR_CACHE:
        return _VALIDATOR_CACHE[definition]

    schema = load_schema()
    if definition:
        if definition not in schema.get("$defs", {}):
            raise KeyError(f"Unknown schema definition: {definition}")
        schema = {
            "$schema": schema["$schema"],
            "$defs": schema["$defs"],
            "$ref": f"#/$defs/{definition}",
        }

    validator = Draft202012Validator(schema)
    _VALIDATOR_CACHE[definition] = validator
    return validator


def clear_cache() -> None:
    """Clear the schema cache. Useful for testing."""
    _SCHEMA_CACHE.clear()
    _VALIDATOR_CACHE.clear()
