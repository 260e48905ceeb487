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

"""Non-fatal diagnostics with a reified call path."""

from __future__ import annotations

import logging
import pprint
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from ..utils.logging_utils import indent


@dataclass(frozen=True)
class StackFrame:
    fn: str
    params: Dict[str, Any] = field(default_factory=dict)


Stack = Tuple[StackFrame, ...]


def push_stack_frame(stack: Stack, fn: str, **params: Any) -> Stack:
    """Return a new stack with one more frame; the input stack is never modified."""
    return stack + (StackFrame(fn=fn, params=params),)


@dataclass(frozen=True)
class Diagnostic:
    message: str
    stack: Stack = ()
    details: Dict[str, Any] = field(default_factory=dict)

    def format_stack(self) -> str:
        lines = []
        for frame in self.stack:
            params = ", ".join(f"{k}={v!r}" for k, v in frame.params.items())
            lines.append(f"{frame.fn}({params})")
        return "\n".join(lines)


class ParserContext:
    """Diagnostics accumulator created once per compile and threaded explicitly."""

    def __init__(self) -> None:
        self.diagnostics: List[Diagnostic] = []

    def push(self, message: str, stack: Stack, **details: Any) -> None:
        self.diagnostics.append(Diagnostic(message=message, stack=stack, details=details))


def _format_details(details: Dict[str, Any]) -> str:
    return pprint.pformat(details, depth=4, width=100)


def log_diagnostics(diagnostics: Sequence[Diagnostic], log: logging.Logger) -> None:
    log.warning(indent(2, f"Diagnostics ({len(diagnostics)}):"))
    for k, diagnostic in enumerate(diagnostics):
        log.warning(indent(4, f"({k + 1}/{len(diagnostics)}) diagnostic: {diagnostic.message}"))
        if diagnostic.details:
            log.debug(indent(6, "details"))
            log.debug(indent(8, _format_details(diagnostic.details)))
        if diagnostic.stack:
            log.debug(indent(6, "stack"))
            log.debug(indent(8, diagnostic.format_stack()))
