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

"""Phase timing for a single compile run."""

import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Chrono:
    """Record named marks and report the time spent between them."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.perf_counter
        self._marks: List[Tuple[str, float]] = []

    def mark(self, label: str) -> None:
        self._marks.append((label, self._clock()))

    def phases(self) -> List[Tuple[str, float]]:
        """Return (label, elapsed_ms) for every mark after the first."""
        result: List[Tuple[str, float]] = []
        for (_, prev), (label, current) in zip(self._marks, self._marks[1:]):
            result.append((label, (current - prev) * 1000.0))
        return result

    def total_ms(self) -> float:
        if len(self._marks) < 2:
            return 0.0
        return (self._marks[-1][1] - self._marks[0][1]) * 1000.0

    def report(self, log: logging.Logger = logger) -> None:
        for label, elapsed_ms in self.phases():
            log.info("  %-28s %8.1f ms", label, elapsed_ms)
        log.info("  %-28s %8.1f ms", "Total", self.total_ms())
