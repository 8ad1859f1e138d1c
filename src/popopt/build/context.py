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

"""Build configuration shared by the stages of one package build."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from popopt.arch import ArchitectureProfile
from popopt.build.interrupt import InterruptFlag

DEFAULT_SBUILD_BUILD_ROOT = Path("/var/lib/sbuild/build")


@dataclass(frozen=True)
class BuildSettings:
    """Run-wide settings, identical for every package.

    Attributes:
        primary_arch: The one target architecture that also builds
            architecture-independent packages.
        vendor_tag: Marker inserted into re-versioned packages.
        changelog_message: Text of the changelog entry for the new version.
        sbuild_build_root: Host directory shared with the chroots, used as
            scratch space for source downloads.
        extra_repositories: sbuild ``--extra-repository`` lines.
        rebuild: Redo stages that are already committed.
        retry: Redo stages left partial by an earlier run.
        interrupt: Flag read at checkpoints between stages.
    """

    primary_arch: str = "amd64"
    vendor_tag: str = "popopt"
    changelog_message: str = "CPU-optimized rebuild"
    sbuild_build_root: Path = DEFAULT_SBUILD_BUILD_ROOT
    extra_repositories: tuple[str, ...] = ()
    rebuild: bool = False
    retry: bool = False
    interrupt: InterruptFlag = field(default_factory=InterruptFlag, compare=False)


@dataclass(frozen=True)
class BuildContext:
    """Configuration for one (package, version) build.

    Constructed once the version is resolved and passed unchanged to every
    stage.
    """

    arch: ArchitectureProfile
    distribution: str
    version: str
    work_dir: Path
    settings: BuildSettings = field(default_factory=BuildSettings)

    @property
    def rebuild(self) -> bool:
        return self.settings.rebuild

    @property
    def retry(self) -> bool:
        return self.settings.retry

    @property
    def primary_arch(self) -> str:
        return self.settings.primary_arch

    def checkpoint(self, name: str) -> None:
        """Stop here if an interrupt has been acknowledged."""
        self.settings.interrupt.check(name)
