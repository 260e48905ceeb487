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

"""Custom exceptions for the CMS content compiler."""

from typing import Any, Dict, List, Optional, Sequence


class ContentCompilerError(Exception):
    """Base exception for content compiler related errors."""
    pass


class ConfigurationError(ContentCompilerError):
    """Exception raised for invalid compiler options."""
    pass


class SchemaError(ContentCompilerError):
    """Exception raised when the schema document is malformed."""
    pass


class FieldValidationError(ContentCompilerError):
    """Exception raised when a field value does not satisfy its widget rule.

    ``issues`` holds one ``{"message": ..., "path": ...}`` entry per violation,
    where ``path`` is a JSON-pointer-like location inside the field value.
    """

    def __init__(self, field_name: str, issues: Sequence[Dict[str, str]], value: Any = None):
        self.field_name = field_name
        self.issues: List[Dict[str, str]] = list(issues)
        self.value = value
        summary = "; ".join(
            f"{issue['message']}" + (f" (at {issue['path']})" if issue.get("path") else "")
            for issue in self.issues
        )
        super().__init__(f"Invalid value for field '{field_name}': {summary}")


class ContentFileError(ContentCompilerError):
    """Exception raised when a single content file cannot be read or parsed."""

    def __init__(self, source_location: str, message: str):
        self.source_location = source_location
        super().__init__(f"{source_location}: {message}")


class CollectionReadError(ContentCompilerError):
    """Exception raised when a collection root cannot be enumerated."""
    pass


class ContentBatchError(ContentCompilerError):
    """Exception raised when file-level failures are configured to be fatal."""

    def __init__(self, collection: str, errors: Sequence[BaseException]):
        self.collection = collection
        self.errors: List[BaseException] = list(errors)
        super().__init__(
            f"{len(self.errors)} file(s) failed in collection '{collection}': "
            + "; ".join(str(e) for e in self.errors)
        )


class SourceFormatError(ContentCompilerError):
    """Exception raised when the formatter rejects generated source."""

    def __init__(self, message: str, source: str):
        self.message = message
        self.source = source
        super().__init__(f"{message}\n{source}")


class LockError(ContentCompilerError):
    """Exception raised when the output folder lock cannot be acquired."""
    pass


class ContentNotFoundError(ContentCompilerError):
    """Exception raised by runtime queries that match no content."""
    pass


class MultipleContentsFoundError(ContentCompilerError):
    """Exception raised by runtime queries expecting a unique match."""

    def __init__(self, count: int, filter_: Optional[Dict[str, Any]] = None):
        self.count = count
        self.filter = filter_
        super().__init__(f"Multiple contents found ({count}) for filter: {filter_!r}")
