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

"""Tests for popopt.build.tools module."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from popopt.build import tools


class TestToolCheck:
    """Tests for ToolCheck dataclass."""

    def test_is_complete_with_all_tools(self) -> None:
        check = tools.ToolCheck(tools={"sbuild": Path("/usr/bin/sbuild")}, missing=[])
        assert check.is_complete() is True

    def test_is_complete_with_missing_tools(self) -> None:
        check = tools.ToolCheck(tools={"sbuild": None}, missing=["sbuild"])
        assert check.is_complete() is False


class TestFindTool:
    """Tests for find_tool function."""

    def test_returns_none_for_missing_tool(self) -> None:
        assert tools.find_tool("definitely-nonexistent-tool-12345") is None

    def test_returns_path_object(self) -> None:
        with patch("shutil.which") as mock_which:
            mock_which.return_value = "/usr/bin/sbuild"
            assert tools.find_tool("sbuild") == Path("/usr/bin/sbuild")


class TestCheckRequiredTools:
    """Tests for check_required_tools function."""

    def test_all_present(self) -> None:
        with patch.object(tools, "find_tool", side_effect=lambda name: Path("/usr/bin") / name):
            result = tools.check_required_tools()
        assert result.is_complete()
        assert set(result.tools) == set(tools.REQUIRED_TOOLS)

    def test_reports_missing(self) -> None:
        def fake_find(name: str) -> Path | None:
            return None if name in ("dch", "sbuild") else Path("/usr/bin") / name

        with patch.object(tools, "find_tool", side_effect=fake_find):
            result = tools.check_required_tools()
        assert result.missing == ["sbuild", "dch"]
        assert result.tools["dch"] is None


class TestMissingToolsMessage:
    """Tests for get_missing_tools_message function."""

    def test_empty(self) -> None:
        assert tools.get_missing_tools_message([]) == ""

    def test_maps_to_packages(self) -> None:
        message = tools.get_missing_tools_message(["dch", "dpkg-source"])
        assert "Missing required tools: dch, dpkg-source" in message
        assert "sudo apt install devscripts dpkg-dev" in message
