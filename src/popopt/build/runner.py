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

"""External command execution for build stages.

Every external tool invocation in the pipeline goes through a
CommandRunner. A non-zero exit becomes CommandFailedError; there is no
partial-success reading of exit codes. Tests substitute a runner that
simulates the tools' effects on disk.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

from popopt.exceptions import CommandFailedError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """Result of a finished external command."""

    command: list[str]
    returncode: int
    stdout: str = ""


class CommandRunner:
    """Runs external commands as blocking subprocesses."""

    def run(
        self,
        cmd: list[str],
        *,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
        capture: bool = False,
        check: bool = True,
        log_path: Path | None = None,
    ) -> CommandResult:
        """Run ``cmd`` and wait for it to exit.

        Args:
            cmd: Command and arguments.
            cwd: Working directory.
            env: Variables added to the inherited environment.
            capture: Return stdout in the result instead of logging it.
            check: Raise CommandFailedError on a non-zero exit.
            log_path: Write combined stdout/stderr to this file.

        Returns:
            CommandResult with the exit status and captured stdout.
        """
        logger.debug("Running: %s (cwd=%s)", shlex.join(cmd), cwd)
        full_env = {**os.environ, **env} if env else None

        if log_path is not None:
            with log_path.open("w", encoding="utf-8") as log_f:
                proc = subprocess.run(
                    cmd,
                    cwd=cwd,
                    env=full_env,
                    stdout=log_f,
                    stderr=subprocess.STDOUT,
                    text=True,
                    check=False,
                )
            stdout = ""
        else:
            proc = subprocess.run(
                cmd,
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
            if proc.stderr:
                logger.debug("%s stderr:\n%s", cmd[0], proc.stderr.rstrip())
            stdout = proc.stdout if capture else ""
            if not capture and proc.stdout:
                logger.debug("%s stdout:\n%s", cmd[0], proc.stdout.rstrip())

        result = CommandResult(command=list(cmd), returncode=proc.returncode, stdout=stdout)
        if check and proc.returncode != 0:
            raise CommandFailedError(
                message=f"{cmd[0]} exited with status {proc.returncode}",
                command=list(cmd),
                exit_status=proc.returncode,
            )
        return result
