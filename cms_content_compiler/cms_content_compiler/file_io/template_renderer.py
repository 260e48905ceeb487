"""Jinja2 rendering of generated Python modules."""

from __future__ import annotations

import os

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ..emitters.python_source import render_literal


def _get_template_directories() -> list[str]:
    # Base dir is .../cms_content_compiler/file_io
    base_dir = os.path.dirname(os.path.abspath(__file__))
    core_template_dir = os.path.abspath(os.path.join(base_dir, "../templates"))

    if os.path.exists(core_template_dir):
        return [core_template_dir]
    return []


class TemplateRenderer:
    """Renders package templates into Python source.

    Templates see a ``pyliteral`` filter that renders a value as a Python
    expression. Undefined variables are errors so a renamed context key cannot
    silently produce a module missing its data.
    """

    def __init__(self, template_dir: str | list[str] | None = None):
        if template_dir is None:
            template_dirs = _get_template_directories()
        elif isinstance(template_dir, str):
            template_dirs = [template_dir]
        else:
            template_dirs = list(template_dir)

        self.template_dirs = template_dirs
        self.env = Environment(
            loader=FileSystemLoader(self.template_dirs),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            newline_sequence="\n",
            autoescape=False,
            undefined=StrictUndefined,
        )
        self.env.filters["pyliteral"] = render_literal

    def render_template(self, template_name: str, **kwargs) -> str:
        template = self.env.get_template(template_name)
        return template.render(**kwargs)
