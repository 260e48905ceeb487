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

"""Compile pipeline: schema -> parse -> emit -> deploy."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config.compiler_options import CompilerOptions
from .emitters.data_emitter import emit, pretty_print_emit_result
from .file_io.assets import deploy_assets
from .file_io.lock import compiler_lock
from .file_io.result_json import save_emit_result, save_parse_result
from .models.content import EmitResult, ParseResult
from .models.schema import load_schema_file
from .parsers.content_parser import parse, pretty_print_parse_result
from .parsers.field_validator import FieldRuleCache
from .utils.chrono import Chrono
from .watch.watcher import Watcher

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    parse_result: ParseResult
    emit_result: EmitResult
    assets_dir: Optional[Path] = None


async def compile_once(
    options: CompilerOptions, *, rules: Optional[FieldRuleCache] = None
) -> CompileResult:
    """Run one full compile.

    The output folder lock is held for the whole run unless this is a dry
    run, which writes nothing.
    """
    chrono = Chrono()
    chrono.mark("Start")
    async with compiler_lock(
        options.out_path, options.lock, enabled=options.use_lockfile and not options.dry_run
    ):
        chrono.mark("Acquire lock")
        schema = await asyncio.to_thread(load_schema_file, options.schema_path)
        chrono.mark("Load schema")

        parse_result = await parse(
            options.cwd_path, schema, fail_on_file_error=options.fail_on_file_error, rules=rules
        )
        chrono.mark("Parse")
        pretty_print_parse_result(parse_result)
        if options.save_parse_result and not options.dry_run:
            save_parse_result(str(options.out_path), parse_result)
            chrono.mark("Save parse result")

        emit_result = emit(parse_result, options)
        chrono.mark("Emit")
        pretty_print_emit_result(emit_result)
        if options.save_emit_result and not options.dry_run:
            save_emit_result(str(options.out_path), emit_result)
            chrono.mark("Save emit result")

        assets_dir = None
        if options.dry_run:
            logger.info("Dry run: nothing written.")
        else:
            assets_dir = await asyncio.to_thread(deploy_assets, options.out_path, emit_result)
            chrono.mark("Write assets")
            logger.info("Assets written to %s", assets_dir)

    chrono.mark("Release lock")
    chrono.report(logger)
    return CompileResult(parse_result=parse_result, emit_result=emit_result, assets_dir=assets_dir)


@dataclass
class WatchSummary:
    """Failed compiles of a watch session; only the most recent error is kept."""

    error_count: int = 0
    last_error: Optional[BaseException] = None


async def watch(options: CompilerOptions) -> WatchSummary:
    """Compile on every change until stopped (or until the first error with ``exit_on_error``)."""
    summary = WatchSummary()
    done = asyncio.Event()
    rules = FieldRuleCache()

    async def on_change(event_type: str, path: str) -> None:
        logger.info("Change detected (%s): %s", event_type, path)
        await compile_once(options, rules=rules)

    def on_error(exc: BaseException) -> None:
        logger.error("Compile failed: %s", exc)
        summary.error_count += 1
        summary.last_error = exc
        if options.exit_on_error:
            done.set()

    watcher = Watcher(options, on_change, on_error)
    await watcher.start()
    try:
        await done.wait()
    finally:
        await watcher.stop()
    return summary


async def run(options: CompilerOptions) -> Optional[CompileResult]:
    if options.watch:
        summary = await watch(options)
        if summary.last_error is not None:
            raise summary.last_error
        return None
    return await compile_once(options)
