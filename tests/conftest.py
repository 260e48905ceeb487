"""Pytest configuration and shared fixtures.

Tests import from the installed cms_content_compiler package.
"""

import logging
import textwrap
from pathlib import Path
from typing import Dict

import pytest

from cms_content_compiler.config.compiler_options import CompilerOptions
from cms_content_compiler.utils.logging_utils import PACKAGE_LOGGER_NAME


BLOG_SCHEMA = """
i18n:
  structure: multiple_files
  locales: [en, fr]
collections:
  - name: posts
    folder: content/posts
    i18n: true
    fields:
      - { name: title, widget: string }
      - { name: date, widget: datetime }
      - { name: price, widget: number, value_type: float, required: false, min: 0 }
      - { name: tags, widget: list, required: false }
      - { name: body, widget: markdown }
  - name: settings
    files:
      - name: site
        file: content/settings/site.yml
        fields:
          - { name: siteName, widget: string }
          - { name: theme, widget: select, options: [light, dark] }
"""

BLOG_FILES = {
    "content/posts/hello.en.md": """
        ---
        title: Hello
        date: 2024-01-02
        price: "1.50"
        tags: [intro, news]
        ---
        Hello *world*.
    """,
    "content/posts/hello.fr.md": """
        ---
        title: Bonjour
        date: 2024-01-02T10:00:00Z
        ---
        Bonjour le monde.
    """,
    "content/posts/broken.en.md": """
        ---
        date: 2024-01-03
        ---
        No title here.
    """,
    "content/settings/site.yml": """
        siteName: My blog
        theme: dark
    """,
}


def write_tree(root: Path, files: Dict[str, str]) -> Path:
    """Write ``files`` (relative path -> dedented text) under ``root``."""
    for relative, text in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text).lstrip("\n"), encoding="utf-8")
    return root


@pytest.fixture
def blog_project(tmp_path: Path) -> Path:
    write_tree(tmp_path, {"schema.yml": BLOG_SCHEMA, **BLOG_FILES})
    return tmp_path


@pytest.fixture
def make_options(blog_project: Path):
    def make(**overrides) -> CompilerOptions:
        return CompilerOptions.from_mapping({"cwd": str(blog_project), **overrides}, base=CompilerOptions())

    return make


@pytest.fixture(autouse=True)
def _restore_logging():
    """The CLI reconfigures the root logger; put it back after every test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    logging.getLogger(PACKAGE_LOGGER_NAME).setLevel(logging.NOTSET)
