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

"""Implementation of `popopt profiles`."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from popopt.arch import ArchitectureProfile
from popopt.config import load_config
from popopt.paths import resolve_paths


def profiles(
    arch_dir: str = typer.Option("", "--arch-dir", help="Directory of architecture profiles"),
) -> None:
    """List architecture tier profiles and the flags they add."""
    directory = Path(arch_dir).expanduser() if arch_dir else resolve_paths(load_config())["arch_dir"]
    loaded = ArchitectureProfile.load_all(directory)
    if not loaded:
        typer.echo(f"No architecture profiles in {directory}", err=True)
        raise typer.Exit(code=1)

    table = Table(title="Architecture profiles")
    table.add_column("Name")
    table.add_column("Level", justify="right")
    table.add_column("C/C++ flags")
    table.add_column("Rust flags")
    for profile in loaded:
        table.add_row(
            profile.name,
            str(profile.level),
            " ".join(profile.cflags()),
            " ".join(profile.rustflags()),
        )
    Console().print(table)
