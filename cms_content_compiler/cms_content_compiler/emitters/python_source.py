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

"""Rendering of Python values and type expressions as source text."""

import datetime
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Sequence


@dataclass(frozen=True)
class Expr:
    """Source text inserted verbatim into a rendered literal."""

    code: str


def render_literal(value: Any) -> str:
    """Render ``value`` as a Python expression.

    The output is compact single-line source; layout is left to the formatter.
    """
    if isinstance(value, Expr):
        return value.code
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, int):
        return repr(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            return f"float({str(value)!r})"
        return repr(value)
    if isinstance(value, Decimal):
        return f"Decimal({str(value)!r})"
    if isinstance(value, datetime.datetime):
        return f"datetime.datetime.fromisoformat({value.isoformat()!r})"
    if isinstance(value, datetime.date):
        return f"datetime.date.fromisoformat({value.isoformat()!r})"
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(render_literal(item) for item in value) + "]"
    if isinstance(value, dict):
        return (
            "{"
            + ", ".join(f"{render_literal(str(k))}: {render_literal(v)}" for k, v in value.items())
            + "}"
        )
    raise TypeError(f"Cannot render value of type {type(value).__name__} as a literal")


def literal_type(values: Sequence[str]) -> str:
    """``Literal[...]`` over string values; ``Never`` when there are none."""
    if not values:
        return "Never"
    return "Literal[" + ", ".join(repr(v) for v in values) + "]"


def typed_dict(name: str, keys: Iterable[tuple]) -> str:
    """Functional TypedDict declaration; keys are (key, type, required) tuples."""
    items = []
    for key, type_expr, required in keys:
        items.append(f"{key!r}: {type_expr if required else f'NotRequired[{type_expr}]'}")
    return f"{name} = TypedDict({name!r}, {{{', '.join(items)}}})"
