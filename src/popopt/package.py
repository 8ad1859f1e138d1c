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

"""Package definitions: which sources to rebuild and which patches to apply.

Each package is one YAML file in the packages directory::

    name: zstd
    patches:
      - patches/zstd/0001-enable-lto.patch

Patch paths are relative to the file that lists them. The patch order is
part of the package's contract and is preserved exactly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from popopt.exceptions import ConfigError

PACKAGE_SUFFIXES = (".yaml", ".yml")


@dataclass(frozen=True)
class PackageSpec:
    """A source package to rebuild."""

    name: str
    patches: tuple[Path, ...] = field(default_factory=tuple)

    @classmethod
    def load(cls, path: Path) -> PackageSpec:
        """Load a package definition from a YAML file."""
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(message=f"Invalid package file {path}: {e}") from e

        if not isinstance(data, dict) or not data.get("name"):
            raise ConfigError(message=f"Package file {path} has no 'name'")

        patches = data.get("patches") or []
        if not isinstance(patches, list):
            raise ConfigError(message=f"Package file {path}: 'patches' must be a list")

        base = path.parent
        return cls(
            name=str(data["name"]),
            patches=tuple((base / str(p)).resolve() for p in patches),
        )

    @classmethod
    def load_all(cls, directory: Path) -> list[PackageSpec]:
        """Load every package definition in a directory, in file name order.

        Raises:
            ConfigError: If two files define the same package name.
        """
        specs: list[PackageSpec] = []
        seen: dict[str, Path] = {}
        for path in sorted(directory.iterdir()):
            if path.suffix not in PACKAGE_SUFFIXES or not path.is_file():
                continue
            spec = cls.load(path)
            if spec.name in seen:
                raise ConfigError(
                    message=f"Package '{spec.name}' defined in both {seen[spec.name]} and {path}"
                )
            seen[spec.name] = path
            specs.append(spec)
        return specs


def select_packages(specs: list[PackageSpec], names: list[str]) -> list[PackageSpec]:
    """Return the specs named in ``names`` (all specs when empty).

    Repeated names are selected once, at their first position.

    Raises:
        ConfigError: If a requested name has no definition.
    """
    if not names:
        return list(specs)
    by_name = {s.name: s for s in specs}
    missing = [n for n in names if n not in by_name]
    if missing:
        raise ConfigError(message=f"No package definition for: {', '.join(missing)}")
    return [by_name[n] for n in dict.fromkeys(names)]
