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

"""Interrupt acknowledgement for long-running builds.

SIGINT/SIGTERM do not kill the process outright while external builds are
running. The handler only records that an interrupt was requested; the
pipeline reads the flag at checkpoints between stages and stops there. Any
stage that was running is left in its partial directory and the next
invocation's ``--retry`` policy decides what happens to it.
"""

from __future__ import annotations

import logging
import signal
import threading
from types import FrameType

from popopt.exceptions import BuildInterrupted

logger = logging.getLogger(__name__)


class InterruptFlag:
    """Thread-safe record of an acknowledged interrupt."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        self._event.set()

    def check(self, checkpoint: str = "") -> None:
        """Raise BuildInterrupted if an interrupt has been acknowledged."""
        if self._event.is_set():
            where = f" before {checkpoint}" if checkpoint else ""
            raise BuildInterrupted(message=f"Interrupted{where}")

    def _handle(self, signum: int, frame: FrameType | None) -> None:
        logger.warning("Received %s; stopping at the next checkpoint", signal.Signals(signum).name)
        self._event.set()

    def install(self) -> None:
        """Install SIGINT and SIGTERM handlers that set this flag.

        Must be called from the main thread.
        """
        for sig in (signal.SIGINT, signal.SIGTERM):
            signal.signal(sig, self._handle)
