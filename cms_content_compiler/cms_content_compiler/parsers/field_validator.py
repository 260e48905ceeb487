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

"""Per-field structural validation rules.

Every FieldSpec is translated into a JSON Schema fragment, compiled once with
an extended Draft 2020-12 validator and cached by FieldSpec identity. The
extension adds two instance types, ``datetime`` and ``decimal``, and the
``decimalMinimum`` / ``decimalMaximum`` keywords which compare decimal strings
without going through binary floating point.
"""

from __future__ import annotations

import datetime
import weakref
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from jsonschema import Draft202012Validator, validators
from jsonschema.exceptions import ValidationError, best_match

from ..exceptions import FieldValidationError
from ..models.schema import (
    BooleanField,
    CodeField,
    ColorField,
    DateTimeField,
    FieldSpec,
    FileField,
    HiddenField,
    ImageField,
    ListField,
    MapField,
    MarkdownField,
    NumberField,
    ObjectField,
    RelationField,
    SelectField,
    StringField,
    TextField,
)


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """Return ``value`` as a timezone-aware UTC datetime, or None if it is not one.

    Dates become midnight UTC, naive datetimes are taken to be UTC.
    """
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=datetime.timezone.utc)
    return parsed.astimezone(datetime.timezone.utc)


def parse_decimal(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        value = repr(value)
    if not isinstance(value, str):
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def normalize_decimal(value: Any) -> str:
    """Decimal values are carried as strings; YAML numbers keep their literal form."""
    if isinstance(value, str):
        return value.strip()
    return repr(value)


def _is_datetime(checker, instance) -> bool:
    return parse_datetime(instance) is not None


def _is_decimal(checker, instance) -> bool:
    return parse_decimal(instance) is not None


def _is_serializable(checker, instance) -> bool:
    """Plain data a generated module can hold as a literal."""
    if instance is None or isinstance(instance, (str, bool, int, float, datetime.date)):
        return True
    if isinstance(instance, list):
        return all(_is_serializable(checker, item) for item in instance)
    if isinstance(instance, dict):
        return all(
            isinstance(key, str) and _is_serializable(checker, value) for key, value in instance.items()
        )
    return False


def _decimal_bound(compare: Callable[[Decimal, Decimal], bool], description: str):
    def check(validator, bound, instance, schema):
        number = parse_decimal(instance)
        if number is None:
            return
        if not compare(number, Decimal(str(bound))):
            yield ValidationError(f"{instance!r} is {description} {bound}")

    return check


_TYPE_CHECKER = Draft202012Validator.TYPE_CHECKER.redefine_many(
    {"datetime": _is_datetime, "decimal": _is_decimal, "serializable": _is_serializable}
)

FieldRuleValidator = validators.extend(
    Draft202012Validator,
    validators={
        "decimalMinimum": _decimal_bound(lambda n, b: n >= b, "less than the minimum of"),
        "decimalMaximum": _decimal_bound(lambda n, b: n <= b, "greater than the maximum of"),
    },
    type_checker=_TYPE_CHECKER,
)


def _bounds(schema: Dict[str, Any], minimum_key: str, maximum_key: str, spec) -> Dict[str, Any]:
    if spec.min is not None:
        schema[minimum_key] = spec.min
    if spec.max is not None:
        schema[maximum_key] = spec.max
    return schema


def _multiple(item: Dict[str, Any], spec) -> Dict[str, Any]:
    if not spec.multiple:
        return item
    return _bounds({"type": "array", "items": item}, "minItems", "maxItems", spec)


def _nullable(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"anyOf": [{"type": "null"}, schema]}


def _object_schema(fields) -> Dict[str, Any]:
    return {
        "type": "object",
        "required": [f.name for f in fields if f.required and not isinstance(f, HiddenField)],
        "properties": {
            f.name: (rule_schema(f) if f.required else _nullable(rule_schema(f))) for f in fields
        },
    }


_STRING = {"type": "string"}

# widget name -> builder of the JSON Schema fragment for that widget
_RULE_BUILDERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    BooleanField.widget: lambda spec: {"type": "boolean"},
    CodeField.widget: lambda spec: {
        "type": "object",
        "required": ["code"],
        "properties": {"code": _STRING, "lang": _STRING},
    },
    ColorField.widget: lambda spec: _STRING,
    DateTimeField.widget: lambda spec: {"type": "datetime"},
    FileField.widget: lambda spec: {"type": "array", "items": _STRING} if spec.allow_multiple else _STRING,
    HiddenField.widget: lambda spec: {"type": "serializable"},
    ImageField.widget: lambda spec: {"type": "array", "items": _STRING} if spec.allow_multiple else _STRING,
    ListField.widget: lambda spec: _bounds(
        {"type": "array", "items": rule_schema(spec.item_field())}, "minItems", "maxItems", spec
    ),
    MapField.widget: lambda spec: _STRING,
    MarkdownField.widget: lambda spec: _STRING,
    NumberField.widget: lambda spec: (
        _bounds({"type": "decimal"}, "decimalMinimum", "decimalMaximum", spec)
        if spec.is_decimal
        else _bounds({"type": "integer"}, "minimum", "maximum", spec)
    ),
    ObjectField.widget: lambda spec: _object_schema(spec.fields),
    RelationField.widget: lambda spec: _multiple(_STRING, spec),
    SelectField.widget: lambda spec: _multiple({"enum": spec.option_values}, spec),
    StringField.widget: lambda spec: _STRING,
    TextField.widget: lambda spec: _STRING,
}


_FRAGMENTS: "weakref.WeakKeyDictionary[Any, Dict[str, Any]]" = weakref.WeakKeyDictionary()


def rule_schema(spec: FieldSpec) -> Dict[str, Any]:
    """JSON Schema fragment validating a present, non-null value of ``spec``."""
    fragment = _FRAGMENTS.get(spec)
    if fragment is None:
        fragment = _RULE_BUILDERS[spec.widget](spec)
        _FRAGMENTS[spec] = fragment
    return fragment


def _issue(error: ValidationError) -> Dict[str, str]:
    # anyOf wrappers for optional children hide the useful message one level down
    if error.context:
        candidates = [e for e in error.context if e.validator_value != "null"]
        error = best_match(candidates or error.context)
    path = "/" + "/".join(str(p) for p in error.absolute_path) if error.absolute_path else ""
    return {"message": error.message, "path": path}


class FieldRuleCache:
    """Compiled validators keyed by FieldSpec identity.

    Large flat collections validate the same field tree once per item; keying
    by identity keeps the compiled rule alive exactly as long as the schema.
    """

    def __init__(self) -> None:
        self._validators: "weakref.WeakKeyDictionary[Any, Draft202012Validator]" = (
            weakref.WeakKeyDictionary()
        )
        self.hits = 0
        self.misses = 0

    def get(self, spec: FieldSpec):
        validator = self._validators.get(spec)
        if validator is None:
            self.misses += 1
            validator = FieldRuleValidator(rule_schema(spec))
            self._validators[spec] = validator
        else:
            self.hits += 1
        return validator

    def issues(self, spec: FieldSpec, value: Any) -> List[Dict[str, str]]:
        """Return every issue of ``value`` against ``spec``; absence is ``value is None``."""
        if value is None:
            if spec.required and not isinstance(spec, HiddenField):
                return [{"message": "Required field is missing", "path": ""}]
            return []
        errors = sorted(self.get(spec).iter_errors(value), key=lambda e: [str(p) for p in e.absolute_path])
        return [_issue(error) for error in errors]

    def validate(self, spec: FieldSpec, value: Any) -> None:
        """Raise FieldValidationError if ``value`` does not satisfy ``spec``."""
        issues = self.issues(spec, value)
        if issues:
            raise FieldValidationError(spec.name, issues, value)


_default_cache = FieldRuleCache()


def get_rule_cache() -> FieldRuleCache:
    return _default_cache
