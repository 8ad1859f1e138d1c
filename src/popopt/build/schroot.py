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

"""Schroot naming and lookup for Popopt builds.

Chroot creation is handled outside Popopt; this module only knows how the
chroots are named and whether they exist.
"""

from __future__ import annotations

import shutil
import subprocess

CHROOT_SUFFIX = "popopt"


def get_chroot_name(distribution: str, arch: str) -> str:
    """Return the chroot name for a distribution/architecture pair."""
    return f"{distribution}-{arch}-{CHROOT_SUFFIX}"


def schroot_exists(name: str) -> bool:
    """Check if a schroot exists."""
    if shutil.which("schroot") is None:
        return False
    result = subprocess.run(
        ["schroot", "-c", name, "--info"],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
        check=False,
    )
    return result.returncode == 0


def missing_chroots(distribution: str, arches: list[str]) -> list[str]:
    """Return the names of chroots needed for ``arches`` that do not exist."""
    names = [get_chroot_name(distribution, arch) for arch in arches]
    return [name for name in names if not schroot_exists(name)]
