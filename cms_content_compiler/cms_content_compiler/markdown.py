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

"""Default markdown loader used by generated modules."""

from functools import cached_property
from pathlib import Path
from typing import Union


class Markdown:
    """Lazily loaded markdown asset."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    @cached_property
    def text(self) -> str:
        return self.path.read_text(encoding="utf-8")

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Markdown({str(self.path)!r})"


def load_markdown(path: Union[str, Path]) -> Markdown:
    return Markdown(path)
