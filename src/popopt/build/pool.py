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

"""Artifact pool aggregation.

Successful binary packages are hard-linked into ``<pool>/<package>/`` so a
single on-disk copy is shared between the build tree and the publishable
pool. Repository index generation reads this tree; it is not done here.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class AggregateResult:
    """Outcome of linking one package's artifacts into the pool."""

    package: str
    linked: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    error: OSError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def total(self) -> int:
        return len(self.linked) + len(self.skipped)


def aggregate(package_name: str, artifacts: list[Path], pool_dir: Path) -> AggregateResult:
    """Hard-link ``artifacts`` into the package's pool directory.

    A file whose name already exists in the pool is left alone, so
    aggregating the same artifacts again (or after an interrupted
    aggregation) is a no-op for them. A filesystem error (for example a
    pool on another filesystem than the build tree) stops this package's
    aggregation and is recorded in the result's ``error``; the files linked
    before it stay listed in ``linked``.

    Args:
        package_name: Source package name; names the pool subdirectory.
        artifacts: Files to publish.
        pool_dir: Pool root.

    Returns:
        AggregateResult listing linked and skipped pool paths.
    """
    package_dir = pool_dir / package_name
    result = AggregateResult(package=package_name)

    try:
        package_dir.mkdir(parents=True, exist_ok=True)
        for artifact in artifacts:
            target = package_dir / artifact.name
            if target.exists():
                logger.debug("Pool already has %s", target)
                result.skipped.append(target)
                continue
            os.link(artifact, target)
            logger.info("Linked %s -> %s", artifact, target)
            result.linked.append(target)
    except OSError as e:
        logger.error("Aggregating %s into %s failed: %s", package_name, package_dir, e)
        result.error = e

    return result
