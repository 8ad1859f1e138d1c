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

"""Popopt: rebuild Ubuntu packages for a CPU micro-architecture tier."""

__version__ = "0.1.0"
