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

"""Staged deployment of the generated assets directory."""

import logging
import os
import shutil
from pathlib import Path
from typing import Iterable

from ..models.content import Asset, EmitResult

logger = logging.getLogger(__name__)

ASSETS_DIR_NAME = "assets"
ASSETS_NEXT_DIR_NAME = "assets.next"
ASSETS_PREV_DIR_NAME = "assets.prev"


def write_assets(folder: Path, assets: Iterable[Asset]) -> int:
    count = 0
    for asset in assets:
        target = folder / asset.path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(asset.content, encoding="utf-8")
        count += 1
    return count


def stage_assets(out_folder: Path, result: EmitResult) -> Path:
    """Write every asset and the index into a fresh ``assets.next`` folder."""
    next_folder = out_folder / ASSETS_NEXT_DIR_NAME
    shutil.rmtree(next_folder, ignore_errors=True)
    next_folder.mkdir(parents=True)

    count = write_assets(next_folder, result.assets)
    logger.debug("Wrote %d markdown assets to %s", count, next_folder)
    write_assets(next_folder, [result.index])
    return next_folder


def swap_assets(out_folder: Path) -> Path:
    """Replace ``assets`` by ``assets.next``, going through ``assets.prev``.

    Missing previous state (first run, interrupted run) is tolerated.
    """
    live = out_folder / ASSETS_DIR_NAME
    next_folder = out_folder / ASSETS_NEXT_DIR_NAME
    prev = out_folder / ASSETS_PREV_DIR_NAME

    shutil.rmtree(prev, ignore_errors=True)
    try:
        os.rename(live, prev)
    except FileNotFoundError:
        logger.debug("No previous assets folder: %s", live)
    os.rename(next_folder, live)
    shutil.rmtree(prev, ignore_errors=True)
    return live


def deploy_assets(out_folder: Path, result: EmitResult) -> Path:
    stage_assets(out_folder, result)
    return swap_assets(out_folder)
