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

"""Source package preparation.

Produces the patched, re-versioned source package that every architecture
build consumes. The work happens once per (package, version, tier) in the
``source`` stage directory::

    source.partial/
        original/           extracted upstream source, left untouched
        patched/            copy with patches and changelog entry applied
        <name>_<new>.dsc    rebuilt source package
        ...

The stage only counts as done once it has been renamed to ``source/``.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from popopt.build.context import BuildContext
from popopt.build.runner import CommandRunner
from popopt.build.schroot import get_chroot_name
from popopt.build.stage import StageDirectory, run_stage
from popopt.build.version import dsc_file_name, synthetic_version
from popopt.exceptions import (
    ArtifactMissingError,
    CommandFailedError,
    PatchFailedError,
    SourceNotFoundError,
)
from popopt.package import PackageSpec

logger = logging.getLogger(__name__)

SOURCE_STAGE = "source"

# Inside each chroot, sbuild_build_root is mounted at this path.
CHROOT_BUILD_DIR = "/build"

PATCH_STRIP_LEVEL = 1


def share_name(package: str, context: BuildContext) -> str:
    """Return the scratch directory name for a source download.

    The name covers tier, distribution, package and version so concurrent
    unrelated downloads sharing the build root never collide.
    """
    return f"popopt_{context.arch.name}_{context.distribution}_{package}_{context.version}"


def _clean_dir(path: Path) -> Path:
    if path.is_dir():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def fetch_source(package: PackageSpec, context: BuildContext, runner: CommandRunner) -> Path:
    """Download the source package into a fresh scratch directory.

    Returns:
        Path to the downloaded ``.dsc`` file.

    Raises:
        SourceNotFoundError: If the download did not produce the ``.dsc``.
    """
    name = share_name(package.name, context)
    share_dir = _clean_dir(context.settings.sbuild_build_root / name)

    runner.run(
        [
            "schroot",
            "--chroot", get_chroot_name(context.distribution, context.primary_arch),
            "--directory", f"{CHROOT_BUILD_DIR}/{name}",
            "--",
            "apt-get", "source", "--only-source", "--download-only",
            f"{package.name}={context.version}",
        ],
        cwd=context.work_dir,
    )

    dsc_file = share_dir / dsc_file_name(package.name, context.version)
    if not dsc_file.is_file():
        raise SourceNotFoundError(
            message=f"failed to find DSC file '{dsc_file}'",
            path=str(dsc_file),
        )
    return dsc_file


def apply_patches(patches: tuple[Path, ...], source_dir: Path, runner: CommandRunner) -> None:
    """Apply patches to ``source_dir`` in the given order.

    Stops at the first patch that does not apply; later patches are never
    attempted and no patch is ever skipped.

    Raises:
        PatchFailedError: With the position and path of the failing patch.
    """
    for index, patch in enumerate(patches):
        if not patch.is_file():
            raise PatchFailedError(
                message=f"patch {index} '{patch}' does not exist",
                index=index,
                patch=str(patch),
            )
        logger.info("Applying patch %d: %s", index, patch)
        try:
            runner.run(
                ["patch", f"-p{PATCH_STRIP_LEVEL}", "-i", str(patch)],
                cwd=source_dir,
            )
        except CommandFailedError as e:
            raise PatchFailedError(
                message=f"patch {index} '{patch}' failed to apply (status {e.exit_status})",
                index=index,
                patch=str(patch),
            ) from e


def _prepare(
    package: PackageSpec,
    context: BuildContext,
    runner: CommandRunner,
    new_version: str,
    stage_dir: Path,
) -> None:
    dsc_file = fetch_source(package, context, runner)

    original_dir = stage_dir / "original"
    runner.run(["dpkg-source", "--extract", str(dsc_file), str(original_dir)], cwd=stage_dir)
    shutil.rmtree(dsc_file.parent)

    patched_dir = stage_dir / "patched"
    shutil.copytree(original_dir, patched_dir, symlinks=True)
    apply_patches(package.patches, patched_dir, runner)

    runner.run(
        [
            "dch",
            "--distribution", context.distribution,
            "--newversion", new_version,
            f"{context.settings.changelog_message} ({context.arch.name})",
        ],
        cwd=patched_dir,
    )

    runner.run(["dpkg-source", "--build", str(patched_dir)], cwd=stage_dir)


def prepare_source(package: PackageSpec, context: BuildContext, runner: CommandRunner) -> Path:
    """Return the re-versioned ``.dsc`` for a package, preparing it if needed.

    Args:
        package: Package to prepare.
        context: Build context with the resolved upstream version.
        runner: Command runner.

    Returns:
        Path to the ``.dsc`` inside the committed ``source`` directory.

    Raises:
        StageInProgressError: If an earlier attempt left ``source.partial``
            and retry is off.
        ArtifactMissingError: If the committed stage has no matching ``.dsc``.
        SourceNotFoundError: If the download produced no ``.dsc``.
        PatchFailedError: If a patch does not apply.
        CommandFailedError: If any other tool fails.
    """
    new_version = synthetic_version(
        context.version, context.settings.vendor_tag, context.arch.level
    )
    new_dsc_name = dsc_file_name(package.name, new_version)
    stage = StageDirectory(context.work_dir, SOURCE_STAGE)

    def work(stage_dir: Path) -> None:
        _prepare(package, context, runner, new_version, stage_dir)

    def collect(complete_dir: Path) -> Path:
        dsc = complete_dir / new_dsc_name
        if not dsc.is_file():
            raise ArtifactMissingError(
                message=f"failed to find DSC file '{dsc}'",
                path=str(dsc),
            )
        return dsc

    context.checkpoint(f"preparing {package.name}")
    return run_stage(stage, rebuild=context.rebuild, retry=context.retry, work=work, collect=collect)
