# This file is part of Popopt, a tool for building CPU-optimized Ubuntu packages.
#
# Copyright 2025 System76, Inc.
#
# SPDX-License-Identifier: GPL-3.0-only
#
# Popopt is free software: you can redistribute it and/or modify it under
# the terms of the GNU General Public License version 3, as published by the
# Free Software Foundation.
#
# Popopt is distributed in the hope that it will be useful, but WITHOUT
# ANY WARRANTY; without even the implied warranties of MERCHANTABILITY,
# SATISFACTORY QUALITY, or FITNESS FOR A PARTICULAR PURPOSE. See the GNU
# General Public License for more details.
#
# You should have received a copy of the GNU General Public License along with
# Popopt. If not, see <http://www.gnu.org/licenses/>.

"""Checkpointed stage directories.

Every pipeline stage (source preparation, each architecture's sbuild) owns
a pair of paths under the per-version work directory:

- ``<stage>.partial``: work in progress, or a failed attempt kept for
  inspection.
- ``<stage>``: committed output.

The rename from the partial path to the canonical one is the commit point,
so a later invocation sees a stage as either fully done or not done. Path
existence is the only state; there are no lock or PID files.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TypeVar

from popopt.exceptions import StageInProgressError

logger = logging.getLogger(__name__)

T = TypeVar("T")

PARTIAL_SUFFIX = ".partial"


class StageState(str, Enum):
    """On-disk state of a stage."""

    ABSENT = "absent"
    PARTIAL = "partial"
    COMPLETE = "complete"


@dataclass(frozen=True)
class StageDirectory:
    """The partial/complete path pair for one stage."""

    root: Path
    name: str

    @property
    def complete_path(self) -> Path:
        return self.root / self.name

    @property
    def partial_path(self) -> Path:
        return self.root / f"{self.name}{PARTIAL_SUFFIX}"

    def state(self) -> StageState:
        """Return the stage state; a committed stage wins over a partial one."""
        if self.complete_path.is_dir():
            return StageState.COMPLETE
        if self.partial_path.is_dir():
            return StageState.PARTIAL
        return StageState.ABSENT

    def discard_complete(self) -> None:
        logger.info("Discarding committed stage %s", self.complete_path)
        shutil.rmtree(self.complete_path)

    def discard_partial(self) -> None:
        logger.info("Discarding partial stage %s", self.partial_path)
        shutil.rmtree(self.partial_path)

    def begin(self) -> Path:
        """Create the partial directory and return it."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.partial_path.mkdir()
        return self.partial_path

    def commit(self) -> Path:
        """Atomically rename the partial directory into place."""
        self.partial_path.rename(self.complete_path)
        logger.info("Committed stage %s", self.complete_path)
        return self.complete_path


def run_stage(
    stage: StageDirectory,
    *,
    rebuild: bool,
    retry: bool,
    work: Callable[[Path], None],
    collect: Callable[[Path], T],
) -> T:
    """Run one stage according to its on-disk state.

    ============================  =========================================
    State                         Action
    ============================  =========================================
    complete, not rebuild         ``collect`` the committed directory
    complete, rebuild             discard it and run from scratch
    partial, not retry            raise StageInProgressError
    partial, retry                discard it and run from scratch
    absent                        run from scratch
    ============================  =========================================

    Running from scratch calls ``work`` with the fresh partial directory,
    commits it, and then calls ``collect`` on the committed directory. If
    ``work`` raises, the partial directory is left in place and the error
    propagates.

    Args:
        stage: The stage's directory pair.
        rebuild: Redo the stage even if it is committed.
        retry: Redo the stage if a partial directory exists.
        work: Writes the stage's outputs into the given directory.
        collect: Produces the stage result from the committed directory.

    Returns:
        Whatever ``collect`` returns.
    """
    if stage.complete_path.is_dir():
        if not rebuild:
            logger.debug("Stage %s already complete", stage.complete_path)
            return collect(stage.complete_path)
        stage.discard_complete()

    if stage.partial_path.is_dir():
        if not retry:
            raise StageInProgressError(
                message=(
                    f"'{stage.partial_path}' already exists, "
                    "build is in progress or already failed"
                ),
                path=str(stage.partial_path),
            )
        stage.discard_partial()

    work(stage.begin())
    return collect(stage.commit())
