"""Tests for watch targets, event forwarding and the watcher lifecycle."""

import asyncio
from pathlib import Path

from watchdog.events import DirModifiedEvent, FileClosedEvent, FileModifiedEvent, FileMovedEvent

from cms_content_compiler.compiler import compile_once
from cms_content_compiler.models.schema import load_schema_file
from cms_content_compiler.watch.watcher import (
    WatchTarget,
    Watcher,
    _ForwardingHandler,
    diff_targets,
    schema_watch_targets,
)

from conftest import write_tree


class RecordingLoop:
    def __init__(self):
        self.calls = []

    def call_soon_threadsafe(self, callback, *args):
        self.calls.append(args)


def test_schema_watch_targets(blog_project):
    schema = load_schema_file(blog_project / "schema.yml")
    targets = schema_watch_targets(blog_project, schema)
    assert targets == {
        WatchTarget(directory=blog_project / "content/posts", recursive=True),
        WatchTarget(
            directory=blog_project / "content/settings",
            recursive=False,
            file=blog_project / "content/settings/site.yml",
        ),
    }


def test_diff_targets():
    a = WatchTarget(directory=Path("a"), recursive=True)
    b = WatchTarget(directory=Path("b"), recursive=True)
    c = WatchTarget(directory=Path("c"), recursive=False, file=Path("c/x.yml"))
    assert diff_targets({a, b}, {b, c}) == ({c}, {a})
    assert diff_targets({a}, {a}) == (frozenset(), frozenset())


def test_recursive_handler_forwards_content_files_only():
    loop = RecordingLoop()
    handler = _ForwardingHandler(loop, print, recursive=True)

    handler.dispatch(FileModifiedEvent("/site/posts/a.md"))
    handler.dispatch(FileModifiedEvent("/site/posts/a.png"))
    handler.dispatch(DirModifiedEvent("/site/posts"))
    handler.dispatch(FileClosedEvent("/site/posts/b.md"))
    handler.dispatch(FileMovedEvent("/site/posts/a.tmp", "/site/posts/c.yml"))

    assert loop.calls == [("modified", "/site/posts/a.md"), ("moved", "/site/posts/c.yml")]


def test_file_handler_forwards_listed_files_only():
    loop = RecordingLoop()
    handler = _ForwardingHandler(loop, print, recursive=False, files=frozenset({Path("/site/s/site.yml")}))

    handler.dispatch(FileModifiedEvent("/site/s/site.yml"))
    handler.dispatch(FileModifiedEvent("/site/s/other.yml"))

    assert loop.calls == [("modified", "/site/s/site.yml")]


def test_watcher_compiles_on_start_and_on_change(blog_project, make_options):
    options = make_options()
    index = blog_project / "out/assets/index.py"

    async def scenario():
        changes = []
        errors = []

        async def on_change(event_type, path):
            changes.append(event_type)
            await compile_once(options)

        watcher = Watcher(options, on_change, errors.append, delay=0.01)
        await watcher.start()
        try:
            await asyncio.wait_for(watcher.wait(), 10)
            assert changes == ["initial"]
            assert "Bonjour" in index.read_text(encoding="utf-8")

            write_tree(blog_project, {
                "content/posts/hello.fr.md": """
                    ---
                    title: Salut
                    date: 2024-01-02
                    ---
                    Salut.
                """,
            })
            for _ in range(200):
                if len(changes) > 1:
                    break
                await asyncio.sleep(0.05)
            await asyncio.wait_for(watcher.wait(), 10)
        finally:
            await watcher.stop()
        return changes, errors

    changes, errors = asyncio.run(scenario())
    assert errors == []
    assert len(changes) >= 2
    assert "Salut" in index.read_text(encoding="utf-8")


def test_stopped_watcher_ignores_events(blog_project, make_options):
    async def scenario():
        calls = []

        async def on_change(event_type, path):
            calls.append(path)

        watcher = Watcher(make_options(), on_change, print, delay=0.01)
        await watcher.stop()
        watcher._on_collections_event("modified", "x.md")
        await asyncio.sleep(0.05)
        return watcher, calls

    watcher, calls = asyncio.run(scenario())
    assert watcher.stopped
    assert calls == []
