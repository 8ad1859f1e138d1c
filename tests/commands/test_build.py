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

"""Tests for popopt.commands.build module."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from popopt.build.coordinator import ArchResult, PackageResult
from popopt.build.interrupt import InterruptFlag
from popopt.build.pool import AggregateResult
from popopt.build.tools import ToolCheck
from popopt.cli import app
from popopt.commands import build as build_cmd
from popopt.commands.build import BuildRequest, render_summary
from popopt.exceptions import CommandFailedError
from popopt.run import RunContext

NEW_VERSION = "1.5.5+dfsg2-2ubuntu1popopt3"


@pytest.fixture
def build_env(mock_config: Path, temp_home: Path, tmp_path: Path, patch_dir: Path, fake_runner):
    """Package definitions and a runner whose scratch dir matches the config."""
    packages_dir = temp_home / ".config" / "popopt" / "packages"
    packages_dir.mkdir(parents=True)
    (packages_dir / "zstd.yaml").write_text(
        f"name: zstd\npatches:\n  - {patch_dir / '0001-optimize.patch'}\n  - {patch_dir / '0002-aggressive.patch'}\n"
    )
    fake_runner.build_root = (temp_home / ".cache" / "popopt" / "sbuild-build").resolve()
    return fake_runner


def _request(tmp_path: Path, **overrides) -> BuildRequest:
    values = {
        "work_dir": str(tmp_path / "work"),
        "pool_dir": str(tmp_path / "pool"),
        "check_environment": False,
    }
    values.update(overrides)
    return BuildRequest(**values)


def _run(tmp_path: Path, request: BuildRequest, runner, interrupt: InterruptFlag | None = None) -> tuple[int, dict]:
    with RunContext("build", runs_root=tmp_path / "runs") as run:
        code = build_cmd._run_build(run, request, runner, interrupt or InterruptFlag())
    summary = json.loads((run.run_path / "summary.json").read_text())
    return code, summary


class TestRunBuild:
    """Tests for _run_build."""

    def test_success_publishes_pool(self, tmp_path: Path, build_env) -> None:
        code, summary = _run(tmp_path, _request(tmp_path), build_env)

        assert code == 0
        assert summary["status"] == "success"
        assert summary["failed"] == []
        pool = tmp_path / "pool" / "zstd"
        assert sorted(p.name for p in pool.iterdir()) == [
            f"zstd-doc_{NEW_VERSION}_all.deb",
            f"zstd_{NEW_VERSION}_amd64.deb",
            f"zstd_{NEW_VERSION}_i386.deb",
        ]

    def test_passes_extra_repositories(self, tmp_path: Path, build_env) -> None:
        _run(tmp_path, _request(tmp_path), build_env)
        sbuild = build_env.commands("sbuild")[0]
        assert "--extra-repository=deb http://archive.ubuntu.com/ubuntu noble-updates main restricted universe multiverse" in sbuild

    def test_arch_failure_still_publishes_others(self, tmp_path: Path, build_env) -> None:
        build_env.fail_arches.add("i386")

        code, summary = _run(tmp_path, _request(tmp_path), build_env)

        assert code == 7
        assert summary["status"] == "failed"
        assert summary["failed"] == ["zstd"]
        names = sorted(p.name for p in (tmp_path / "pool" / "zstd").iterdir())
        assert f"zstd_{NEW_VERSION}_amd64.deb" in names
        assert not any("i386" in n for n in names)

    def test_pool_failure_fails_run(self, tmp_path: Path, build_env) -> None:
        pool = tmp_path / "pool"
        pool.mkdir()
        (pool / "zstd").write_text("not a directory")

        code, summary = _run(tmp_path, _request(tmp_path), build_env)

        assert code == 7
        assert summary["status"] == "failed"
        assert summary["failed"] == ["zstd"]
        assert summary["pool_failed"] == ["zstd"]

    def test_repeated_package_built_once(self, tmp_path: Path, build_env) -> None:
        code, summary = _run(tmp_path, _request(tmp_path, packages=["zstd", "zstd"]), build_env)

        assert code == 0
        assert [p["package"] for p in summary["packages"]] == ["zstd"]
        assert build_env.count("sbuild") == 2

    def test_rerun_does_no_new_builds(self, tmp_path: Path, build_env) -> None:
        _run(tmp_path, _request(tmp_path), build_env)
        sbuilds = build_env.count("sbuild")
        pool_deb = tmp_path / "pool" / "zstd" / f"zstd_{NEW_VERSION}_amd64.deb"

        code, _ = _run(tmp_path, _request(tmp_path), build_env)

        assert code == 0
        assert build_env.count("sbuild") == sbuilds
        assert os.stat(pool_deb).st_nlink == 2

    def test_primary_arch_must_be_target(self, tmp_path: Path, build_env) -> None:
        code, summary = _run(tmp_path, _request(tmp_path, target_arches=["i386"]), build_env)
        assert code == 1
        assert "Primary architecture amd64" in summary["error"]
        assert build_env.calls == []

    def test_unknown_profile(self, tmp_path: Path, build_env) -> None:
        code, summary = _run(tmp_path, _request(tmp_path, arch_profile="x86-64-v9"), build_env)
        assert code == 1
        assert "x86-64-v9" in summary["error"]

    def test_unknown_package(self, tmp_path: Path, build_env) -> None:
        code, summary = _run(tmp_path, _request(tmp_path, packages=["xz"]), build_env)
        assert code == 1
        assert "xz" in summary["error"]

    def test_missing_tools(self, tmp_path: Path, build_env) -> None:
        check = ToolCheck(tools={"sbuild": None}, missing=["sbuild"])
        with patch.object(build_cmd, "check_required_tools", return_value=check):
            code, summary = _run(tmp_path, _request(tmp_path, check_environment=True), build_env)
        assert code == 2
        assert "sbuild" in summary["error"]

    def test_missing_chroots(self, tmp_path: Path, build_env) -> None:
        check = ToolCheck(tools={}, missing=[])
        with (
            patch.object(build_cmd, "check_required_tools", return_value=check),
            patch.object(build_cmd, "missing_chroots", return_value=["noble-i386-popopt"]),
        ):
            code, summary = _run(tmp_path, _request(tmp_path, check_environment=True), build_env)
        assert code == 2
        assert "noble-i386-popopt" in summary["error"]

    def test_interrupted(self, tmp_path: Path, build_env) -> None:
        interrupt = InterruptFlag()
        interrupt.set()

        code, _ = _run(tmp_path, _request(tmp_path), build_env, interrupt)

        assert code == 130
        assert build_env.calls == []
        assert not (tmp_path / "pool" / "zstd").exists()


class TestRenderSummary:
    """Tests for render_summary function."""

    def test_one_row_per_package(self) -> None:
        results = [
            PackageResult(
                package="zstd",
                version="1.0-1",
                results={
                    "amd64": ArchResult(arch="amd64", artifacts=[Path("a.deb")]),
                    "i386": ArchResult(arch="i386", error=CommandFailedError(message="x")),
                },
            ),
            PackageResult(package="lz4", error=RuntimeError("boom")),
        ]
        table = render_summary(results, ["amd64", "i386"])
        assert table.row_count == 2
        assert [c.header for c in table.columns] == ["Package", "Version", "amd64", "i386", "Pool"]

    def test_pool_column(self) -> None:
        results = [PackageResult(package="zstd", version="1.0-1")]
        published = [AggregateResult(package="zstd", error=FileExistsError("pool/zstd"))]

        table = render_summary(results, ["amd64"], published)

        assert list(table.columns[-1].cells) == ["[red]FileExistsError[/red]"]


class TestBuildCommand:
    """Tests for the build CLI command."""

    def test_passes_options_to_request(self, mock_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        captured: list[BuildRequest] = []

        def fake_run_build(run, request, runner, interrupt) -> int:
            captured.append(request)
            return 0

        monkeypatch.setattr(InterruptFlag, "install", lambda self: None)
        monkeypatch.setattr(build_cmd, "_run_build", fake_run_build)

        result = CliRunner().invoke(
            app,
            ["build", "zstd", "lz4", "-a", "x86-64-v2", "-t", "amd64", "-t", "i386", "--retry", "-j", "2"],
        )

        assert result.exit_code == 0
        request = captured[0]
        assert request.packages == ["zstd", "lz4"]
        assert request.arch_profile == "x86-64-v2"
        assert request.target_arches == ["amd64", "i386"]
        assert request.retry is True
        assert request.rebuild is False
        assert request.parallel == 2
        assert request.check_environment is True

    def test_exit_code_propagates(self, mock_config: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(InterruptFlag, "install", lambda self: None)
        monkeypatch.setattr(build_cmd, "_run_build", lambda run, request, runner, interrupt: 7)
        result = CliRunner().invoke(app, ["build"])
        assert result.exit_code == 7
