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

"""Path helpers for Popopt."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

# Profiles shipped with the package, used when paths.arch_dir is unset.
BUILTIN_ARCH_DIR = Path(__file__).resolve().parent / "profiles" / "x86_64"


def resolve_paths(cfg: Mapping[str, Any]) -> dict[str, Path]:
    """Return resolved Path objects for configured paths.

    Unset (empty) entries are left out, except ``arch_dir`` which falls
    back to the builtin profiles.
    """
    paths: Mapping[str, Any] = cfg.get("paths", {})
    resolved: dict[str, Path] = {}
    for key, val in paths.items():
        if not val:
            continue
        resolved[key] = Path(str(val)).expanduser().resolve()
    resolved.setdefault("arch_dir", BUILTIN_ARCH_DIR)
    return resolved

