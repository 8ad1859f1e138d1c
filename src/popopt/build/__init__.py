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

"""Build pipeline for Popopt.

Version resolution, checkpointed source preparation, per-architecture
sbuild builds and pool aggregation.
"""

from popopt.build.context import BuildContext, BuildSettings
from popopt.build.coordinator import (
    ArchResult,
    PackageResult,
    build_arches,
    build_package,
    build_packages,
    publish,
)
from popopt.build.interrupt import InterruptFlag
from popopt.build.pool import AggregateResult, aggregate
from popopt.build.runner import CommandResult, CommandRunner
from popopt.build.sbuild import build_one
from popopt.build.source import prepare_source
from popopt.build.stage import StageDirectory, StageState, run_stage
from popopt.build.version import resolve_version, select_highest

__all__ = [
    "AggregateResult",
    "ArchResult",
    "BuildContext",
    "BuildSettings",
    "CommandResult",
    "CommandRunner",
    "InterruptFlag",
    "PackageResult",
    "StageDirectory",
    "StageState",
    "aggregate",
    "build_arches",
    "build_one",
    "build_package",
    "build_packages",
    "prepare_source",
    "publish",
    "resolve_version",
    "run_stage",
    "select_highest",
]
