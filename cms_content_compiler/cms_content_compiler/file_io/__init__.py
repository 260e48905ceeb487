"""File I/O related utilities.

This package groups the modules that write compiler output: the rendered
index, the staged assets folder, the debug JSON dumps and the output lock.
"""

from .assets import deploy_assets, stage_assets, swap_assets, write_assets
from .lock import OutputLock, compiler_lock
from .result_json import save_emit_result, save_parse_result, to_json_value
from .source_formatter import format_source, load_formatter_mode
from .template_renderer import TemplateRenderer

__all__ = [
    "deploy_assets",
    "stage_assets",
    "swap_assets",
    "write_assets",
    "OutputLock",
    "compiler_lock",
    "save_emit_result",
    "save_parse_result",
    "to_json_value",
    "format_source",
    "load_formatter_mode",
    "TemplateRenderer",
]
