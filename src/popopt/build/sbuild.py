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

"""Per-architecture binary builds with sbuild.

Each target architecture gets its own ``sbuild-<arch>`` stage directory,
so builds for different architectures of the same source never share a
path and can run concurrently without locking.

Optimization flags reach the compiler only through sbuild's
``$build_environment``, written to an ``sbuild.conf`` in the stage
directory and selected with ``SBUILD_CONFIG``. Popopt never calls the
compiler itself.
"""

from __future__ import annotations

import logging
from pathlib import Path

from popopt.arch import ArchitectureProfile
from popopt.build.context import BuildContext
from popopt.build.runner import CommandRunner
from popopt.build.schroot import get_chroot_name
from popopt.build.stage import StageDirectory, run_stage

logger = logging.getLogger(__name__)

BINARY_EXTENSION = ".deb"
SBUILD_CONF_NAME = "sbuild.conf"
SBUILD_LOG_NAME = "sbuild.log"


def stage_name(target_arch: str) -> str:
    return f"sbuild-{target_arch}"


def perl_quote(value: str) -> str:
    """Quote a string as a Perl single-quoted literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def build_environment(arch: ArchitectureProfile) -> dict[str, str]:
    """Return the environment overrides for builds of ``arch``."""
    return {
        "DEB_CFLAGS_APPEND": " ".join(arch.cflags()),
        "DEB_CXXFLAGS_APPEND": " ".join(arch.cxxflags()),
        "POPOPT_ARCH": arch.name,
        "RUSTFLAGS": " ".join(arch.rustflags()),
    }


def render_sbuild_conf(arch: ArchitectureProfile) -> str:
    """Render the sbuild configuration carrying the tier's flags."""
    lines = ["$build_environment = {"]
    for key, value in build_environment(arch).items():
        lines.append(f"    {perl_quote(key)} => {perl_quote(value)},")
    lines.append("};")
    return "\n".join(lines) + "\n"


def write_sbuild_conf(arch: ArchitectureProfile, directory: Path) -> Path:
    conf = directory / SBUILD_CONF_NAME
    conf.write_text(render_sbuild_conf(arch), encoding="utf-8")
    return conf


def build_sbuild_command(source_dsc: Path, target_arch: str, context: BuildContext) -> list[str]:
    """Build the sbuild command line for one architecture.

    Only the primary architecture builds ``Architecture: all`` packages;
    the others pass ``--no-arch-all`` so those packages are produced once.
    """
    dist = context.distribution
    cmd = ["sbuild"]
    cmd.append("--arch-all" if target_arch == context.primary_arch else "--no-arch-all")
    cmd.extend([
        "--no-apt-distupgrade",
        "--quiet",
        f"--chroot={get_chroot_name(dist, target_arch)}",
        f"--dist={dist}",
        f"--arch={target_arch}",
    ])
    for repo in context.settings.extra_repositories:
        cmd.append(f"--extra-repository={repo}")
    # DSC file (must be last)
    cmd.append(str(source_dsc))
    return cmd


def list_binaries(directory: Path) -> list[Path]:
    """Return the binary packages in a build directory, sorted by name."""
    return sorted(p for p in directory.iterdir() if p.suffix == BINARY_EXTENSION and p.is_file())


def build_one(
    source_dsc: Path,
    target_arch: str,
    context: BuildContext,
    runner: CommandRunner,
) -> list[Path]:
    """Build binary packages of ``source_dsc`` for one architecture.

    Safe to call concurrently for different ``target_arch`` values with the
    same source.

    Returns:
        The ``.deb`` files in the committed ``sbuild-<arch>`` directory.

    Raises:
        StageInProgressError: If an earlier attempt left a partial directory
            and retry is off.
        CommandFailedError: If sbuild fails; the partial directory and its
            log are kept.
    """
    stage = StageDirectory(context.work_dir, stage_name(target_arch))

    def work(stage_dir: Path) -> None:
        conf = write_sbuild_conf(context.arch, stage_dir)
        logger.info("sbuild %s for %s in %s", source_dsc.name, target_arch, stage_dir)
        runner.run(
            build_sbuild_command(source_dsc, target_arch, context),
            cwd=stage_dir,
            env={"SBUILD_CONFIG": str(conf)},
            log_path=stage_dir / SBUILD_LOG_NAME,
        )

    context.checkpoint(f"sbuild {target_arch}")
    return run_stage(stage, rebuild=context.rebuild, retry=context.retry, work=work, collect=list_binaries)
