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

"""Source version arbitration and re-versioning.

The version to rebuild is the highest one the chroot's APT sources know
about. ``apt-cache showsrc`` lists one stanza per pocket that carries the
source, so there can be several candidates; they are ordered with Debian
version semantics (epoch, upstream, revision), never lexically.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from debian.debian_support import Version

from popopt.build.runner import CommandRunner
from popopt.build.schroot import get_chroot_name
from popopt.exceptions import CommandFailedError, MetadataFormatError, PackageMismatchError

logger = logging.getLogger(__name__)

VersionComparator = Callable[[str, str], bool]


def source_values(source: str, key: str) -> list[str]:
    """Return every value of ``key`` in ``Key: value`` formatted text.

    Raises:
        MetadataFormatError: If no line carries the key.
    """
    prefix = f"{key}: "
    values = [line[len(prefix):] for line in source.splitlines() if line.startswith(prefix)]
    if not values:
        raise MetadataFormatError(message=f"failed to find '{key}' key in source", key=key)
    return values


class DpkgVersionComparator:
    """Compare versions with ``dpkg --compare-versions``."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def __call__(self, candidate: str, current: str) -> bool:
        """Return True if ``candidate`` is strictly greater than ``current``."""
        cmd = ["dpkg", "--compare-versions", candidate, "gt", current]
        result = self.runner.run(cmd, check=False)
        if result.returncode == 0:
            return True
        if result.returncode == 1:
            return False
        raise CommandFailedError(
            message=f"dpkg --compare-versions exited with status {result.returncode}",
            command=cmd,
            exit_status=result.returncode,
        )


def debian_is_greater(candidate: str, current: str) -> bool:
    """Return True if ``candidate`` sorts strictly after ``current``."""
    return Version(candidate) > Version(current)


def select_highest(versions: list[str], is_greater: VersionComparator) -> str:
    """Reduce ``versions`` to its maximum with pairwise comparisons.

    A candidate only replaces the running maximum when it is strictly
    greater, so among equal versions the first one listed wins.

    Raises:
        ValueError: If ``versions`` is empty.
    """
    if not versions:
        raise ValueError("no versions to select from")
    highest = versions[0]
    for candidate in versions[1:]:
        if is_greater(candidate, highest):
            highest = candidate
    return highest


def query_source_metadata(
    package: str,
    distribution: str,
    primary_arch: str,
    runner: CommandRunner,
) -> str:
    """Return ``apt-cache showsrc`` output for ``package`` from its chroot."""
    result = runner.run(
        [
            "schroot",
            "--chroot", get_chroot_name(distribution, primary_arch),
            "--directory", "/root",
            "--user", "root",
            "--",
            "apt-cache", "showsrc", "--only-source", package,
        ],
        capture=True,
    )
    return result.stdout


def resolve_version(
    package: str,
    distribution: str,
    primary_arch: str,
    runner: CommandRunner,
    is_greater: VersionComparator | None = None,
) -> str:
    """Return the highest available version of a source package.

    Args:
        package: Source package name.
        distribution: Distribution codename (e.g. "noble").
        primary_arch: Architecture whose chroot answers the query.
        runner: Command runner.
        is_greater: Version comparator; defaults to dpkg's.

    Raises:
        MetadataFormatError: If the listing has no Package/Version lines.
        PackageMismatchError: If the listing names another source package.
    """
    source = query_source_metadata(package, distribution, primary_arch, runner)

    for listed in source_values(source, "Package"):
        if listed != package:
            raise PackageMismatchError(
                message=f"requested source '{package}' does not match source '{listed}'",
                requested=package,
                found=listed,
            )

    versions = source_values(source, "Version")
    version = select_highest(versions, is_greater or DpkgVersionComparator(runner))
    logger.info("Resolved %s to %s (candidates: %s)", package, version, ", ".join(versions))
    return version


def strip_epoch(version: str) -> str:
    """Return ``version`` without its epoch, as used in file names."""
    _, sep, rest = version.partition(":")
    return rest if sep else version


def synthetic_version(version: str, vendor_tag: str, level: int) -> str:
    """Return the re-versioned package version for an architecture tier.

    The result is ``<version><vendor_tag><level>``. It depends only on its
    inputs, so repeated builds of the same source for the same tier produce
    the same version.

    Raises:
        ValueError: If the result is not a valid version sorting after
            ``version``.
    """
    new_version = f"{version}{vendor_tag}{level}"
    if not Version(new_version) > Version(version):
        raise ValueError(f"version '{new_version}' does not sort after '{version}'")
    return new_version


def dsc_file_name(package: str, version: str) -> str:
    """Return the ``.dsc`` file name for a package version."""
    return f"{package}_{strip_epoch(version)}.dsc"
