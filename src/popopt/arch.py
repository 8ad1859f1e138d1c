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

"""CPU micro-architecture profiles and Debian architecture helpers.

A profile names an optimization tier (e.g. ``x86-64-v3``) and yields the
compiler flags that builds for that tier receive. Profiles are JSON files,
one per tier, sorted by file name when loaded as a set.
"""

from __future__ import annotations

import json
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from popopt.exceptions import ConfigError, UnknownProfileError

# Mapping from platform.machine() values to Debian architecture names.
MACHINE_TO_DEB_ARCH: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "i386",
    "i686": "i386",
    "aarch64": "arm64",
    "arm64": "arm64",
}


@dataclass(frozen=True)
class ArchitectureProfile:
    """An optimization tier and the flags that select it.

    Attributes:
        name: Compiler micro-architecture name, used for ``-march`` and
            Rust's ``target-cpu``.
        level: Numeric tier embedded in re-versioned packages.
        wiki: Reference URL describing the tier.
        features: CPU feature flags the tier requires.
    """

    name: str
    level: int
    wiki: str = ""
    features: tuple[str, ...] = field(default_factory=tuple)

    def cflags(self) -> list[str]:
        return [f"-march={self.name}"]

    def cxxflags(self) -> list[str]:
        return [f"-march={self.name}"]

    def rustflags(self) -> list[str]:
        return ["--codegen", f"target-cpu={self.name}"]

    @classmethod
    def from_dict(cls, data: dict[str, Any], source: str = "") -> ArchitectureProfile:
        """Create a profile from parsed JSON data."""
        try:
            name = str(data["name"])
            level = int(data["level"])
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(message=f"Invalid architecture profile {source}: {e}") from e
        return cls(
            name=name,
            level=level,
            wiki=str(data.get("wiki", "")),
            features=tuple(data.get("features", [])),
        )

    @classmethod
    def load(cls, path: Path) -> ArchitectureProfile:
        """Load a single profile from a JSON file."""
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(message=f"Invalid architecture profile {path}: {e}") from e
        return cls.from_dict(data, str(path))

    @classmethod
    def load_all(cls, directory: Path) -> list[ArchitectureProfile]:
        """Load every ``*.json`` profile in a directory, in file name order."""
        return [cls.load(p) for p in sorted(directory.glob("*.json"))]


def find_profile(directory: Path, name: str) -> ArchitectureProfile:
    """Return the profile called ``name`` from ``directory``.

    Raises:
        UnknownProfileError: If no profile with that name exists.
    """
    for profile in ArchitectureProfile.load_all(directory):
        if profile.name == name:
            return profile
    raise UnknownProfileError(
        message=f"Unknown architecture profile '{name}' in {directory}",
        profile=name,
    )


def get_host_arch() -> str:
    """Return the Debian architecture name for the current host.

    Raises:
        ValueError: If the host architecture is unknown.
    """
    machine = platform.machine()
    deb_arch = MACHINE_TO_DEB_ARCH.get(machine)
    if deb_arch is None:
        raise ValueError(f"Unknown host architecture: {machine}")
    return deb_arch


def resolve_arches(arches: list[str]) -> list[str]:
    """Resolve an architecture list, replacing 'host' with the host arch."""
    result: list[str] = []
    for arch in arches:
        resolved = get_host_arch() if arch.lower() == "host" else arch
        if resolved not in result:
            result.append(resolved)
    return result
