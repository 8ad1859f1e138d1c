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

"""Popopt-specific exception types with associated exit codes."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class PopoptError(Exception):
    """Base class for Popopt errors with an exit code."""

    message: str = "An error occurred"
    exit_code: int = field(default=1)

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.message} (exit {self.exit_code})"


@dataclass
class ConfigError(PopoptError):
    exit_code: int = field(default=1)


@dataclass
class UnknownProfileError(ConfigError):
    """Error raised when a named architecture profile does not exist."""

    profile: str = ""


@dataclass
class MetadataFormatError(PopoptError):
    """Error raised when source metadata lacks an expected key."""

    exit_code: int = field(default=3)
    key: str = ""


@dataclass
class PackageMismatchError(PopoptError):
    """Error raised when metadata lists a different source package."""

    exit_code: int = field(default=3)
    requested: str = ""
    found: str = ""


@dataclass
class SourceNotFoundError(PopoptError):
    """Error raised when the downloaded source control file is missing."""

    exit_code: int = field(default=3)
    path: str = ""


@dataclass
class PatchFailedError(PopoptError):
    """Error raised when a configured patch does not apply.

    ``index`` is the zero-based position of the patch in the package's
    declared patch list.
    """

    exit_code: int = field(default=4)
    index: int = 0
    patch: str = ""


@dataclass
class StageInProgressError(PopoptError):
    """Error raised when a stage's partial directory already exists."""

    exit_code: int = field(default=5)
    path: str = ""


@dataclass
class StageIncompleteError(PopoptError):
    """Error raised when a committed stage lacks its expected output."""

    exit_code: int = field(default=6)
    path: str = ""


@dataclass
class ArtifactMissingError(StageIncompleteError):
    pass


@dataclass
class CommandFailedError(PopoptError):
    """Error raised when an external tool exits with a non-zero status."""

    exit_code: int = field(default=7)
    command: list[str] = field(default_factory=list)
    exit_status: int = -1


@dataclass
class BuildInterrupted(PopoptError):
    """Error raised at a checkpoint after an interrupt was acknowledged."""

    exit_code: int = field(default=130)
