"""End-to-end tests for the compile pipeline."""

import asyncio
import json
import runpy

import pytest

from cms_content_compiler import compiler
from cms_content_compiler.compiler import compile_once
from cms_content_compiler.exceptions import ContentNotFoundError, SchemaError
from cms_content_compiler.markdown import Markdown

from conftest import write_tree


def test_compile_writes_assets(blog_project, make_options):
    result = asyncio.run(compile_once(make_options()))

    out = blog_project / "out"
    assets = out / "assets"
    assert result.assets_dir == assets
    assert (assets / "index.py").is_file()
    assert (assets / "posts/hello/en/body.md").read_text(encoding="utf-8") == "Hello *world*."
    assert sorted(p.name for p in out.iterdir()) == ["assets"]
    assert result.parse_result.content_count() == 3


def test_generated_module_runs_with_runtime(blog_project, make_options):
    asyncio.run(compile_once(make_options(runtime=True)))

    module = runpy.run_path(str(blog_project / "out/assets/index.py"))
    hello = module["find_unique"]({"collection": "posts", "slug": "hello", "locale": "fr"})
    assert hello["props"]["title"] == "Bonjour"
    assert isinstance(hello["props"]["body"], Markdown)
    assert str(hello["props"]["body"]) == "Bonjour le monde."
    assert len(module["find_all"]({"collection": "posts"})) == 2
    with pytest.raises(ContentNotFoundError):
        module["find_unique"]({"slug": "broken"})


def test_recompile_replaces_previous_assets(blog_project, make_options):
    asyncio.run(compile_once(make_options()))
    (blog_project / "content/posts/hello.fr.md").unlink()
    asyncio.run(compile_once(make_options()))

    assets = blog_project / "out/assets"
    assert (assets / "posts/hello/en/body.md").is_file()
    assert not (assets / "posts/hello/fr").exists()
    assert not (blog_project / "out/assets.prev").exists()
    assert not (blog_project / "out/assets.next").exists()


def test_dry_run_writes_nothing(blog_project, make_options):
    result = asyncio.run(compile_once(make_options(dry_run=True, save_parse_result=True)))

    assert result.assets_dir is None
    assert result.emit_result.index.content
    assert not (blog_project / "out").exists()


def test_saved_debug_results(blog_project, make_options):
    asyncio.run(compile_once(make_options(save_parse_result=True, save_emit_result=True)))

    parsed = json.loads((blog_project / "out/parser.out.json").read_text(encoding="utf-8"))
    assert [c["collection"]["name"] for c in parsed["collections"]] == ["posts", "settings"]
    assert parsed["collections"][0]["collection"]["kind"] == "folder"
    assert parsed["diagnostics"][0]["message"].startswith("Content dropped")

    emitted = json.loads((blog_project / "out/emitter.out.json").read_text(encoding="utf-8"))
    assert emitted["index"]["path"] == "index.py"
    assert len(emitted["assets"]) == 2


def test_formatter_config_is_applied(blog_project, make_options):
    write_tree(blog_project, {
        "pyproject.toml": """
            [tool.black]
            line-length = 200
            skip-string-normalization = true
        """,
    })
    result = asyncio.run(compile_once(make_options(format_config="pyproject.toml", dry_run=True)))
    assert "from typing import Any, List, Literal, Never, NotRequired, TypedDict, Union" in (
        result.emit_result.index.content
    )
    assert "'posts'" in result.emit_result.index.content


def test_invalid_schema_is_fatal_and_releases_the_lock(blog_project, make_options):
    (blog_project / "schema.yml").write_text("collections: [{name: x}]\n", encoding="utf-8")
    with pytest.raises(SchemaError):
        asyncio.run(compile_once(make_options()))
    assert not (blog_project / "out/.lock").exists()


def test_watch_keeps_only_the_last_error(monkeypatch, make_options):
    class FailingWatcher:
        def __init__(self, options, on_change, on_error):
            self.on_error = on_error

        async def start(self):
            for k in range(3):
                self.on_error(RuntimeError(f"compile {k}"))

        async def stop(self):
            pass

    monkeypatch.setattr(compiler, "Watcher", FailingWatcher)
    summary = asyncio.run(compiler.watch(make_options(exit_on_error=True)))

    assert summary.error_count == 3
    assert str(summary.last_error) == "compile 2"


def test_run_in_watch_mode_raises_the_last_error(monkeypatch, make_options):
    async def fake_watch(options):
        return compiler.WatchSummary(error_count=2, last_error=SchemaError("bad schema"))

    monkeypatch.setattr(compiler, "watch", fake_watch)
    with pytest.raises(SchemaError, match="bad schema"):
        asyncio.run(compiler.run(make_options(watch=True)))
