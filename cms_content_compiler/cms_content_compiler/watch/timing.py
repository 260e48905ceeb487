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

"""Async counters and the debounce / throttle trigger combinators used by watch mode."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Tuple

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class CounterSnapshot:
    current: int
    max: int
    total: int


class AsyncCounter:
    """Counts in-flight operations and exposes an awaitable quiescent point."""

    def __init__(self, on_change: Optional[Callable[[CounterSnapshot], None]] = None):
        self._current = 0
        self._max = 0
        self._total = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._on_change = on_change
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.snapshot())

    def incr(self) -> None:
        self._total += 1
        self._current += 1
        self._max = max(self._max, self._current)
        self._idle.clear()
        self._notify()

    def decr(self) -> None:
        if self._current == 0:
            raise RuntimeError("AsyncCounter is already 0.")
        self._current -= 1
        if self._current == 0:
            self._idle.set()
        self._notify()

    def clear(self) -> None:
        while self._current > 0:
            self.decr()

    async def wait(self) -> None:
        """Return once no operation is in flight."""
        await self._idle.wait()

    def snapshot(self) -> CounterSnapshot:
        return CounterSnapshot(current=self._current, max=self._max, total=self._total)


class ThrottleState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    RUNNING_WITH_PENDING = "running_with_pending"


class Throttled:
    """Run at most one call at a time, keeping only the latest pending call.

    Calls made while running replace the pending arguments; when the current
    run finishes the pending call (if any) starts. Intermediate calls are
    coalesced and never run individually.
    """

    def __init__(self, fn: Callable[..., Awaitable[None]]):
        self._fn = fn
        self.state = ThrottleState.IDLE
        self._pending: Optional[Tuple[Any, ...]] = None
        self._task: Optional[asyncio.Task] = None

    def __call__(self, *args: Any) -> None:
        if self.state is ThrottleState.IDLE:
            self.state = ThrottleState.RUNNING
            self._task = asyncio.get_running_loop().create_task(self._drain(args))
        else:
            self._pending = args
            self.state = ThrottleState.RUNNING_WITH_PENDING

    async def _drain(self, args: Tuple[Any, ...]) -> None:
        while True:
            try:
                await self._fn(*args)
            except Exception:
                logger.exception("Throttled call failed")
            if self.state is not ThrottleState.RUNNING_WITH_PENDING:
                self.state = ThrottleState.IDLE
                self._task = None
                return
            args, self._pending = self._pending, None
            self.state = ThrottleState.RUNNING

    async def wait(self) -> None:
        """Wait until the current run and any pending run have completed."""
        while self._task is not None:
            await asyncio.shield(self._task)


class Debounced:
    """Delay calls by ``delay`` seconds; a new call restarts the delay.

    ``sleep`` is injectable so the state machine can be driven without real time.
    """

    def __init__(self, fn: Callable[..., Any], delay: float, *, sleep: Sleep = asyncio.sleep):
        self._fn = fn
        self.delay = delay
        self._sleep = sleep
        self._timer: Optional[asyncio.Task] = None

    @property
    def scheduled(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def __call__(self, *args: Any) -> None:
        self.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._fire(args))

    async def _fire(self, args: Tuple[Any, ...]) -> None:
        await self._sleep(self.delay)
        self._timer = None
        self._fn(*args)

    def cancel(self) -> None:
        if self.scheduled:
            self._timer.cancel()
        self._timer = None


class Limited:
    """``Debounced(Throttled(fn))``: one run per settled burst, at most one queued."""

    def __init__(self, fn: Callable[..., Awaitable[None]], delay: float, *, sleep: Sleep = asyncio.sleep):
        self.throttled = Throttled(fn)
        self.debounced = Debounced(self.throttled, delay, sleep=sleep)

    def __call__(self, *args: Any) -> None:
        self.debounced(*args)

    def cancel(self) -> None:
        self.debounced.cancel()

    async def wait(self) -> None:
        await self.throttled.wait()


def limited(fn: Callable[..., Awaitable[None]], delay: float, *, sleep: Sleep = asyncio.sleep) -> Limited:
    return Limited(fn, delay, sleep=sleep)
