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

"""Watch mode: re-run the compiler when the schema or content files change.

watchdog delivers events on its observer threads; they are handed over to the
event loop with ``call_soon_threadsafe`` and every reaction runs there.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Set, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..config.compiler_options import CompilerOptions
from ..file_io.lock import compiler_lock
from ..models.schema import Collection, Schema, load_schema_file, match_collection
from ..parsers.yaml_parser import is_content_file
from .timing import AsyncCounter, ThrottleState, limited

logger = logging.getLogger(__name__)

ON_CHANGE_DELAY = 0.1

WATCHED_EVENT_TYPES = frozenset({"created", "modified", "deleted", "moved"})


@dataclass(frozen=True)
class WatchTarget:
    """One watched location: a whole folder tree, or a single file within a folder."""

    directory: Path
    recursive: bool
    file: Optional[Path] = None


def collection_watch_targets(cwd: Path, collection: Collection) -> Tuple[WatchTarget, ...]:
    return match_collection(
        collection,
        folder=lambda c: (WatchTarget(directory=cwd / c.folder, recursive=True),),
        files=lambda c: tuple(
            WatchTarget(directory=(cwd / item.file).parent, recursive=False, file=cwd / item.file)
            for item in c.files
        ),
    )


def schema_watch_targets(cwd: Path, schema: Schema) -> FrozenSet[WatchTarget]:
    targets: Set[WatchTarget] = set()
    for collection in schema.collections:
        targets.update(collection_watch_targets(cwd, collection))
    return frozenset(targets)


def diff_targets(
    prev: Iterable[WatchTarget], next_: Iterable[WatchTarget]
) -> Tuple[FrozenSet[WatchTarget], FrozenSet[WatchTarget]]:
    """Return (added, removed)."""
    prev, next_ = frozenset(prev), frozenset(next_)
    return next_ - prev, prev - next_


class _ForwardingHandler(FileSystemEventHandler):
    """Forward matching events from an observer thread to the event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[str, str], None],
        recursive: bool,
        files: FrozenSet[Path] = frozenset(),
    ):
        super().__init__()
        self._loop = loop
        self._callback = callback
        self.recursive = recursive
        # replaced wholesale from the loop thread, read from the observer thread
        self.files = files

    def _matches(self, path: str) -> bool:
        if self.recursive:
            return is_content_file(path)
        return Path(path) in self.files

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in WATCHED_EVENT_TYPES:
            return
        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", "")
        if dest_path:
            paths.append(dest_path)
        for path in paths:
            path = path.decode() if isinstance(path, bytes) else path
            if self._matches(path):
                self._loop.call_soon_threadsafe(self._callback, event.event_type, path)
                return


class Watcher:
    """Schema watcher plus collections watcher feeding one limited trigger.

    ``on_change`` runs one compile; ``on_error`` receives every error raised
    while reacting to a change.
    """

    def __init__(
        self,
        options: CompilerOptions,
        on_change: Callable[[str, str], Awaitable[None]],
        on_error: Callable[[BaseException], None],
        *,
        delay: float = ON_CHANGE_DELAY,
    ):
        self.options = options
        self._on_change = on_change
        self._on_error = on_error
        self.counter = AsyncCounter()
        self._stopped = False
        self._trigger = limited(self._run_change, delay)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._schema_observer = Observer()
        self._collections_observer = Observer()
        self._targets: FrozenSet[WatchTarget] = frozenset()
        # (directory, recursive) -> (handler, watch)
        self._scheduled: Dict[Tuple[Path, bool], Tuple[_ForwardingHandler, object]] = {}

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def start(self) -> None:
        self._loop = asyncio.get_running_loop()
        schema_path = self.options.schema_path
        handler = _ForwardingHandler(
            self._loop, self._on_schema_event, recursive=False, files=frozenset({schema_path})
        )
        self._schema_observer.schedule(handler, str(schema_path.parent), recursive=False)
        self._schema_observer.start()
        self._collections_observer.start()
        logger.info("Watching %s", schema_path)
        # initial pass: resolve the watch targets and compile once
        self._on_schema_event("initial", str(schema_path))

    # schema

    def _on_schema_event(self, event_type: str, path: str) -> None:
        if self._stopped:
            return
        self.counter.incr()
        self._loop.create_task(self._on_schema_change(event_type, path))

    async def _on_schema_change(self, event_type: str, path: str) -> None:
        try:
            if self._stopped:
                return
            async with compiler_lock(
                self.options.out_path, self.options.lock, enabled=self.options.use_lockfile
            ):
                schema = await asyncio.to_thread(load_schema_file, self.options.schema_path)
            if self._stopped:
                return
            targets = schema_watch_targets(self.options.cwd_path, schema)
            added, removed = diff_targets(self._targets, targets)
            self._targets = targets
            self._reschedule()
            if added or removed:
                logger.debug("Watch targets: +%d -%d", len(added), len(removed))
                self._trigger(event_type, path)
        except Exception as exc:
            self._on_error(exc)
        finally:
            self.counter.decr()

    def _reschedule(self) -> None:
        groups: Dict[Tuple[Path, bool], Set[Path]] = {}
        for target in self._targets:
            files = groups.setdefault((target.directory, target.recursive), set())
            if target.file is not None:
                files.add(target.file)

        for key in list(self._scheduled):
            if key not in groups:
                handler, watch = self._scheduled.pop(key)
                self._collections_observer.unschedule(watch)
                logger.debug("Unwatched %s", key[0])

        for key, files in groups.items():
            directory, recursive = key
            if key in self._scheduled:
                self._scheduled[key][0].files = frozenset(files)
                continue
            if not directory.is_dir():
                logger.warning("Cannot watch missing folder: %s", directory)
                continue
            handler = _ForwardingHandler(
                self._loop, self._on_collections_event, recursive=recursive, files=frozenset(files)
            )
            watch = self._collections_observer.schedule(handler, str(directory), recursive=recursive)
            self._scheduled[key] = (handler, watch)
            logger.debug("Watching %s", directory)

    # collections

    def _on_collections_event(self, event_type: str, path: str) -> None:
        if self._stopped:
            return
        self._trigger(event_type, path)

    async def _run_change(self, event_type: str, path: str) -> None:
        if self._stopped:
            return
        self.counter.incr()
        try:
            await self._on_change(event_type, path)
        except Exception as exc:
            self._on_error(exc)
        finally:
            self.counter.decr()

    # lifecycle

    async def wait(self) -> None:
        """Return once no compile is running, queued or waiting out its debounce delay."""
        while True:
            await self.counter.wait()
            if self._trigger.debounced.scheduled:
                await asyncio.sleep(self._trigger.debounced.delay)
            elif self._trigger.throttled.state is not ThrottleState.IDLE:
                await self._trigger.wait()
            else:
                return

    async def stop(self) -> None:
        """Stop reacting to changes and wait for in-flight work."""
        self._stopped = True
        self._trigger.cancel()
        for observer in (self._schema_observer, self._collections_observer):
            if observer.is_alive():
                observer.stop()
                await asyncio.to_thread(observer.join)
        await self._trigger.wait()
        await self.counter.wait()
