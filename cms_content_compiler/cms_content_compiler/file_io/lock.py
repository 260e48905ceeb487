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

"""Cross-process lock on the output folder.

The lock is the directory ``<out_folder>/.lock``: ``mkdir`` is atomic on every
platform we care about. The holder touches it every ``update_ms``; a lock whose
mtime is older than ``stale_ms`` is considered abandoned and is removed.
"""

import asyncio
import logging
import os
import shutil
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Awaitable, Callable, Optional

from ..config.compiler_options import LockOptions
from ..exceptions import LockError

logger = logging.getLogger(__name__)

LOCK_DIR_NAME = ".lock"

# backoff between attempts, in seconds
MIN_RETRY_DELAY = 0.1
MAX_RETRY_DELAY = 1.0


class OutputLock:
    def __init__(
        self,
        out_folder: Path,
        options: Optional[LockOptions] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.out_folder = Path(out_folder)
        self.options = options or LockOptions()
        self.lock_path = self.out_folder / LOCK_DIR_NAME
        self._sleep = sleep
        self._heartbeat: Optional[asyncio.Task] = None
        self._acquired_at: Optional[float] = None

    @property
    def locked(self) -> bool:
        return self._acquired_at is not None

    def _is_stale(self) -> bool:
        try:
            mtime = self.lock_path.stat().st_mtime
        except FileNotFoundError:
            return False
        return (time.time() - mtime) * 1000.0 > self.options.stale_ms

    def _try_acquire(self) -> bool:
        try:
            os.mkdir(self.lock_path)
            return True
        except FileExistsError:
            pass
        if self._is_stale():
            logger.warning("Removing stale lock: %s", self.lock_path)
            shutil.rmtree(self.lock_path, ignore_errors=True)
            try:
                os.mkdir(self.lock_path)
                return True
            except FileExistsError:
                return False
        return False

    async def acquire(self) -> None:
        if self.locked:
            raise LockError(f"Lock already held: {self.lock_path}")
        self.out_folder.mkdir(parents=True, exist_ok=True)

        started = time.monotonic()
        attempts = self.options.retries + 1
        for attempt in range(attempts):
            if self._try_acquire():
                break
            if attempt + 1 < attempts:
                await self._sleep(min(MAX_RETRY_DELAY, MIN_RETRY_DELAY * (2 ** attempt)))
        else:
            raise LockError(f"Lock is already being held: {self.lock_path} ({attempts} attempts)")

        waited_ms = (time.monotonic() - started) * 1000.0
        self._warn_if_slow("acquired", waited_ms)
        self._acquired_at = time.monotonic()
        self._heartbeat = asyncio.create_task(self._keep_alive())
        logger.debug("Lock acquired: %s", self.lock_path)

    async def _keep_alive(self) -> None:
        interval = self.options.update_ms / 1000.0
        while True:
            await asyncio.sleep(interval)
            try:
                os.utime(self.lock_path)
            except FileNotFoundError:
                logger.error("Lock was removed while held: %s", self.lock_path)
                return

    async def release(self) -> None:
        if not self.locked:
            return
        if self._heartbeat is not None:
            self._heartbeat.cancel()
            try:
                await self._heartbeat
            except asyncio.CancelledError:
                pass
            self._heartbeat = None
        held_ms = (time.monotonic() - self._acquired_at) * 1000.0
        self._acquired_at = None
        shutil.rmtree(self.lock_path, ignore_errors=True)
        self._warn_if_slow("held", held_ms)
        logger.debug("Lock released: %s", self.lock_path)

    def _warn_if_slow(self, what: str, elapsed_ms: float) -> None:
        threshold = self.options.warning_threshold_ms
        if threshold is not None and elapsed_ms > threshold:
            logger.warning(
                "Lock %s after %.0f ms (warning threshold %d ms): %s",
                what,
                elapsed_ms,
                threshold,
                self.lock_path,
            )

    async def __aenter__(self) -> "OutputLock":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()


@asynccontextmanager
async def compiler_lock(
    out_folder: Path, options: Optional[LockOptions] = None, *, enabled: bool = True
) -> AsyncIterator[Optional[OutputLock]]:
    """Hold the output folder lock for the duration of the block (no-op when disabled)."""
    if not enabled:
        yield None
        return
    async with OutputLock(out_folder, options) as lock:
        yield lock
