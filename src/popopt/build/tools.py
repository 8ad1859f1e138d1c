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

"""External tool validation for Popopt builds."""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolCheck:
    """Result of checking for required external tools."""

    tools: dict[str, Path | None] = field(default_factory=dict)
    missing: list[str] = field(default_factory=list)

    def is_complete(self) -> bool:
        """Return True if all required tools are available."""
        return len(self.missing) == 0


REQUIRED_TOOLS = [
    "schroot",
    "sbuild",
    "dpkg",
    "dpkg-source",
    "dch",
    "patch",
]

# Package names for apt install command
TOOL_PACKAGES: dict[str, str] = {
    "schroot": "schroot",
    "sbuild": "sbuild",
    "dpkg": "dpkg",
    "dpkg-source": "dpkg-dev",
    "dch": "devscripts",
    "patch": "patch",
}


def find_tool(name: str) -> Path | None:
    """Find an executable tool in PATH."""
    path = shutil.which(name)
    return Path(path) if path else None


def check_required_tools() -> ToolCheck:
    """Check for the external tools the build pipeline runs."""
    result = ToolCheck()
    for tool in REQUIRED_TOOLS:
        path = find_tool(tool)
        result.tools[tool] = path
        if path is None:
            result.missing.append(tool)
    return result


def get_missing_tools_message(missing: list[str]) -> str:
    """Generate a user-friendly message for installing missing tools."""
    if not missing:
        return ""
    packages = sorted({TOOL_PACKAGES.get(tool, tool) for tool in missing})
    lines = [f"Missing required tools: {', '.join(missing)}"]
    lines.append(f"Install with: sudo apt install {' '.join(packages)}")
    return "\n".join(lines)
