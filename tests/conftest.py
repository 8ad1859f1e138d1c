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

"""Pytest fixtures and configuration for Popopt tests."""

from __future__ import annotations

import tempfile
import threading
from collections.abc import Generator
from pathlib import Path

import pytest

from popopt.arch import ArchitectureProfile
from popopt.build.context import BuildContext, BuildSettings
from popopt.build.runner import CommandResult
from popopt.build.version import debian_is_greater, strip_epoch
from popopt.exceptions import CommandFailedError

ZSTD_SHOWSRC = """\
Package: zstd
Binary: zstd, libzstd-dev, libzstd1
Version: 1.5.5+dfsg2-2
Maintainer: Ubuntu Developers <ubuntu-devel-discuss@lists.ubuntu.com>
Package-List:
 libzstd1 deb libs optional arch=any
 zstd deb utils optional arch=any

Package: zstd
Binary: zstd, libzstd-dev, libzstd1
Version: 1.5.5+dfsg2-2ubuntu1
Maintainer: Ubuntu Developers <ubuntu-devel-discuss@lists.ubuntu.com>

"""

ORIGINAL_SOURCE_TEXT = "optimize = false\nlto = false\n"


class FakeRunner:
    """CommandRunner stand-in that simulates the build tools on disk.

    - ``schroot ... apt-cache showsrc`` prints the configured metadata.
    - ``schroot ... apt-get source`` writes a ``.dsc`` into the share dir.
    - ``dpkg --compare-versions`` answers with python-debian ordering.
    - ``dpkg-source --extract`` creates a tree with a changelog and
      ``settings.txt``. ``--build`` writes the ``.dsc`` named after the
      top changelog entry.
    - ``patch`` reads lines of ``OLD => NEW`` and fails if OLD is absent.
    - ``dch`` prepends a changelog entry.
    - ``sbuild`` writes one ``.deb`` per arch (plus an arch:all one with
      ``--arch-all``) and a ``.changes`` file.
    """

    def __init__(self, build_root: Path, metadata: dict[str, str] | None = None) -> None:
        self.build_root = build_root
        self.metadata = metadata if metadata is not None else {}
        self.fail_arches: set[str] = set()
        self.skip_download: set[str] = set()
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []
        self._lock = threading.Lock()

    def count(self, tool: str) -> int:
        """Return how many recorded commands invoke ``tool``."""
        return sum(1 for cmd in self.calls if tool in cmd)

    def commands(self, tool: str) -> list[list[str]]:
        return [cmd for cmd in self.calls if tool in cmd]

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
        with self._lock:
            self.calls.append(list(cmd))
            if env:
                self.envs.append(dict(env))

        returncode, stdout = self._dispatch(cmd, cwd)
        if log_path is not None:
            log_path.write_text(f"{cmd[0]} exited with {returncode}\n")
        if check and returncode != 0:
            raise CommandFailedError(
                message=f"{cmd[0]} exited with status {returncode}",
                command=list(cmd),
                exit_status=returncode,
            )
        return CommandResult(command=list(cmd), returncode=returncode, stdout=stdout if capture else "")

    def _dispatch(self, cmd: list[str], cwd: Path | None) -> tuple[int, str]:
        tool = cmd[0]
        if tool == "schroot":
            return self._schroot(cmd)
        if tool == "dpkg":
            return (0 if debian_is_greater(cmd[2], cmd[4]) else 1), ""
        if tool == "dpkg-source" and cmd[1] == "--extract":
            return self._extract(Path(cmd[2]), Path(cmd[3]))
        if tool == "dpkg-source" and cmd[1] == "--build":
            return self._build_source(Path(cmd[2]), cwd)
        if tool == "patch":
            return self._patch(Path(cmd[cmd.index("-i") + 1]), cwd)
        if tool == "dch":
            return self._dch(cmd, cwd)
        if tool == "sbuild":
            return self._sbuild(cmd, cwd)
        raise AssertionError(f"unexpected command: {cmd}")

    def _schroot(self, cmd: list[str]) -> tuple[int, str]:
        inner = cmd[cmd.index("--") + 1:]
        if inner[:2] == ["apt-cache", "showsrc"]:
            return 0, self.metadata.get(inner[-1], "")
        if inner[:2] == ["apt-get", "source"]:
            name, version = inner[-1].split("=", 1)
            if name in self.skip_download:
                return 0, ""
            share_dir = self.build_root / Path(cmd[cmd.index("--directory") + 1]).name
            dsc = share_dir / f"{name}_{strip_epoch(version)}.dsc"
            dsc.write_text(f"Source: {name}\nVersion: {version}\n")
            return 0, ""
        raise AssertionError(f"unexpected chroot command: {inner}")

    def _extract(self, dsc: Path, dest: Path) -> tuple[int, str]:
        fields = dict(line.split(": ", 1) for line in dsc.read_text().splitlines())
        (dest / "debian").mkdir(parents=True)
        (dest / "debian" / "changelog").write_text(
            f"{fields['Source']} ({fields['Version']}) noble; urgency=medium\n"
        )
        (dest / "settings.txt").write_text(ORIGINAL_SOURCE_TEXT)
        return 0, ""

    def _build_source(self, source_dir: Path, cwd: Path | None) -> tuple[int, str]:
        assert cwd is not None
        top = (source_dir / "debian" / "changelog").read_text().splitlines()[0]
        name, version = top.split(" ")[0], top.split("(")[1].split(")")[0]
        (cwd / f"{name}_{strip_epoch(version)}.dsc").write_text(f"Source: {name}\nVersion: {version}\n")
        return 0, ""

    def _patch(self, patch_file: Path, cwd: Path | None) -> tuple[int, str]:
        assert cwd is not None
        target = cwd / "settings.txt"
        text = target.read_text()
        for line in patch_file.read_text().splitlines():
            old, new = line.split(" => ", 1)
            if old not in text:
                return 1, ""
            text = text.replace(old, new, 1)
        target.write_text(text)
        return 0, ""

    def _dch(self, cmd: list[str], cwd: Path | None) -> tuple[int, str]:
        assert cwd is not None
        changelog = cwd / "debian" / "changelog"
        existing = changelog.read_text()
        name = existing.split(" ")[0]
        version = cmd[cmd.index("--newversion") + 1]
        dist = cmd[cmd.index("--distribution") + 1]
        changelog.write_text(f"{name} ({version}) {dist}; urgency=medium\n{existing}")
        return 0, ""

    def _sbuild(self, cmd: list[str], cwd: Path | None) -> tuple[int, str]:
        assert cwd is not None
        arch = next(arg.split("=", 1)[1] for arg in cmd if arg.startswith("--arch="))
        if arch in self.fail_arches:
            return 2, ""
        name, version = Path(cmd[-1]).stem.split("_", 1)
        (cwd / f"{name}_{version}_{arch}.deb").write_text("deb")
        if "--arch-all" in cmd:
            (cwd / f"{name}-doc_{version}_all.deb").write_text("deb")
        (cwd / f"{name}_{version}_{arch}.changes").write_text("changes")
        return 0, ""


@pytest.fixture
def temp_home(monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    """Create a temporary home directory and set HOME/XDG paths."""
    with tempfile.TemporaryDirectory() as tmpdir:
        home = Path(tmpdir)
        monkeypatch.setenv("HOME", str(home))
        monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
        monkeypatch.setenv("XDG_CACHE_HOME", str(home / ".cache"))
        # Also patch Path.home() to return our temp home
        monkeypatch.setattr(Path, "home", lambda: home)
        yield home


@pytest.fixture
def mock_config(temp_home: Path) -> Path:
    """Create a minimal config file in the temp home."""
    config_dir = temp_home / ".config" / "popopt"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_file = config_dir / "config.yaml"
    config_file.write_text("""
paths:
  work_root: "~/.cache/popopt/build"
  pool_root: "~/.cache/popopt/pool"
  runs_root: "~/.cache/popopt/runs"
  packages_dir: "~/.config/popopt/packages"
  sbuild_build_root: "~/.cache/popopt/sbuild-build"

defaults:
  distribution: "noble"
  arch_profile: "x86-64-v3"
  target_arches: ["amd64", "i386"]
  primary_arch: "amd64"

mirrors:
  ubuntu_archive: "http://archive.ubuntu.com/ubuntu"
  pockets: ["updates"]
""")
    return config_file


@pytest.fixture
def fake_runner(tmp_path: Path) -> FakeRunner:
    """Runner simulating the build tools, with zstd metadata available."""
    return FakeRunner(build_root=tmp_path / "sbuild-build", metadata={"zstd": ZSTD_SHOWSRC})


@pytest.fixture
def v3_profile() -> ArchitectureProfile:
    return ArchitectureProfile(name="x86-64-v3", level=3)


@pytest.fixture
def build_settings(fake_runner: FakeRunner) -> BuildSettings:
    return BuildSettings(sbuild_build_root=fake_runner.build_root)


@pytest.fixture
def build_context(tmp_path: Path, v3_profile: ArchitectureProfile, build_settings: BuildSettings) -> BuildContext:
    """Context for zstd 1.5.5+dfsg2-2ubuntu1 at tier x86-64-v3."""
    work_dir = tmp_path / "work" / "x86-64-v3" / "zstd" / "1.5.5+dfsg2-2ubuntu1"
    work_dir.mkdir(parents=True)
    return BuildContext(
        arch=v3_profile,
        distribution="noble",
        version="1.5.5+dfsg2-2ubuntu1",
        work_dir=work_dir,
        settings=build_settings,
    )


@pytest.fixture
def patch_dir(tmp_path: Path) -> Path:
    """Two patches that only apply in order: A then B."""
    directory = tmp_path / "patches"
    directory.mkdir()
    (directory / "0001-optimize.patch").write_text("optimize = false => optimize = true\n")
    (directory / "0002-aggressive.patch").write_text("optimize = true => optimize = aggressive\n")
    return directory
