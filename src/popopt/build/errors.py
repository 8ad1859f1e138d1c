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

"""Exit codes and phase logging helpers for build commands.

Every phase action is reported twice: a human-readable activity line on the
terminal and a structured event in the run's events.jsonl.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from popopt.run import activity

if TYPE_CHECKING:
    from popopt.run import RunContext


def log_phase_event(
    run: RunContext,
    phase: str,
    message: str,
    event_key: str,
    **event_data: Any,
) -> None:
    """Log a phase activity message and structured event together.

    Args:
        run: RunContext for structured logging.
        phase: Phase name for activity logging (e.g., "source", "sbuild").
        message: Human-readable message for activity output.
        event_key: Event key for structured logging (e.g., "package.version").
        **event_data: Additional data to include in the log event.
    """
    activity(phase, message)
    run.log_event({"event": event_key, **event_data})


def phase_error(
    run: RunContext,
    phase: str,
    message: str,
    exit_code: int,
    *,
    event_key: str | None = None,
    **event_data: Any,
) -> int:
    """Log a phase error and write summary, returning the exit code.

    The event key defaults to "{phase}.error".

    Returns:
        The exit_code parameter, for use in `return phase_error(...)`.
    """
    activity(phase, f"ERROR: {message}")
    run.log_event({
        "event": event_key or f"{phase}.error",
        "message": message,
        "exit_code": exit_code,
        **event_data,
    })
    run.write_summary(status="failed", error=message, exit_code=exit_code)
    return exit_code


EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_TOOL_MISSING = 2
EXIT_BUILD_FAILED = 7
EXIT_INTERRUPTED = 130
