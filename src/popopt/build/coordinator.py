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

"""Per-package build coordination and the multi-package driver.

For one package: resolve the version, prepare the source, then fan out one
worker per target architecture and join them. An architecture's failure is
recorded in its own ArchResult and never cancels its siblings.

Across packages, ``build_packages`` submits every package to an outer pool
so one package's source preparation can overlap another's architecture
builds. All packages are joined before it returns, which is the barrier
between building and pool aggregation.
"""

from __future__ import annotations

import concurrent.futures
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from popopt.arch import ArchitectureProfile
from popopt.build.context import BuildContext, BuildSettings
from popopt.build.pool import AggregateResult, aggregate
from popopt.build.runner import CommandRunner
from popopt.build.sbuild import build_one
from popopt.build.source import prepare_source
from popopt.build.version import VersionComparator, resolve_version
from popopt.package import PackageSpec

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]


def _describe(error: BaseException) -> dict[str, Any]:
    return {"error_type": type(error).__name__, "error": str(error)}


@dataclass
class ArchResult:
    """Result of one architecture's build: artifacts or an error."""

    arch: str
    artifacts: list[Path] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "arch": self.arch,
            "ok": self.ok,
            "artifacts": [str(p) for p in self.artifacts],
        }
        if self.error is not None:
            data.update(_describe(self.error))
        return data


@dataclass
class PackageResult:
    """Result of building one package for every target architecture.

    ``error`` is set when the package failed before any architecture build
    started (version resolution or source preparation).
    """

    package: str
    version: str = ""
    results: dict[str, ArchResult] = field(default_factory=dict)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and all(r.ok for r in self.results.values())

    @property
    def artifacts(self) -> list[Path]:
        """Artifacts of every architecture that succeeded."""
        return [p for r in self.results.values() if r.ok for p in r.artifacts]

    @property
    def failed_arches(self) -> list[str]:
        return [arch for arch, r in self.results.items() if not r.ok]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "package": self.package,
            "version": self.version,
            "ok": self.ok,
            "results": {arch: r.to_dict() for arch, r in self.results.items()},
        }
        if self.error is not None:
            data.update(_describe(self.error))
        return data


def package_work_dir(work_root: Path, arch: ArchitectureProfile, package: str, version: str) -> Path:
    """Return (and create) the work directory for one package version."""
    path = work_root / arch.name / package / version
    path.mkdir(parents=True, exist_ok=True)
    return path


def build_arches(
    source_dsc: Path,
    target_arches: list[str],
    context: BuildContext,
    runner: CommandRunner,
    on_event: EventCallback | None = None,
) -> dict[str, ArchResult]:
    """Build ``source_dsc`` for every target architecture concurrently.

    Returns:
        One ArchResult per architecture, in ``target_arches`` order.
    """
    results: dict[str, ArchResult] = {}
    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(len(target_arches), 1),
        thread_name_prefix=f"sbuild-{source_dsc.stem}",
    ) as executor:
        futures = {
            executor.submit(build_one, source_dsc, arch, context, runner): arch
            for arch in target_arches
        }
        for future in concurrent.futures.as_completed(futures):
            arch = futures[future]
            try:
                result = ArchResult(arch=arch, artifacts=future.result())
            except Exception as e:
                logger.error("sbuild %s for %s failed: %s", source_dsc.name, arch, e)
                result = ArchResult(arch=arch, error=e)
            results[arch] = result
            if on_event:
                on_event({"event": "arch.complete", "source": source_dsc.name, **result.to_dict()})

    return {arch: results[arch] for arch in target_arches}


def build_package(
    package: PackageSpec,
    arch: ArchitectureProfile,
    distribution: str,
    target_arches: list[str],
    work_root: Path,
    runner: CommandRunner,
    settings: BuildSettings | None = None,
    is_greater: VersionComparator | None = None,
    on_event: EventCallback | None = None,
) -> PackageResult:
    """Build one package for every target architecture.

    Version resolution and source preparation errors propagate; errors in
    individual architecture builds are returned in the result.

    Args:
        package: Package to build.
        arch: Optimization tier.
        distribution: Distribution codename.
        target_arches: Debian architectures to build for.
        work_root: Root of all stage directories.
        runner: Command runner.
        settings: Run-wide build settings.
        is_greater: Version comparator for version resolution.
        on_event: Called with progress events.
    """
    settings = settings or BuildSettings()
    settings.interrupt.check(f"building {package.name}")

    version = resolve_version(package.name, distribution, settings.primary_arch, runner, is_greater)
    work_dir = package_work_dir(work_root, arch, package.name, version)
    if on_event:
        on_event({"event": "package.version", "package": package.name, "version": version, "work_dir": str(work_dir)})

    context = BuildContext(
        arch=arch,
        distribution=distribution,
        version=version,
        work_dir=work_dir,
        settings=settings,
    )
    source_dsc = prepare_source(package, context, runner)
    if on_event:
        on_event({"event": "package.source", "package": package.name, "dsc": str(source_dsc)})

    results = build_arches(source_dsc, target_arches, context, runner, on_event)
    return PackageResult(package=package.name, version=version, results=results)


def build_packages(
    packages: list[PackageSpec],
    arch: ArchitectureProfile,
    distribution: str,
    target_arches: list[str],
    work_root: Path,
    runner: CommandRunner,
    settings: BuildSettings | None = None,
    parallel: int = 0,
    is_greater: VersionComparator | None = None,
    on_event: EventCallback | None = None,
) -> list[PackageResult]:
    """Build several packages, overlapping their pipelines.

    A package-level failure is recorded in that package's result and the
    remaining packages continue.

    Args:
        parallel: Maximum packages in flight (0 = all of them).

    Returns:
        One PackageResult per package, in ``packages`` order.
    """
    if not packages:
        return []
    settings = settings or BuildSettings()
    workers = parallel if parallel > 0 else len(packages)

    results: dict[str, PackageResult] = {}
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers, thread_name_prefix="package") as executor:
        futures = {
            executor.submit(
                build_package,
                package,
                arch,
                distribution,
                target_arches,
                work_root,
                runner,
                settings,
                is_greater,
                on_event,
            ): package
            for package in packages
        }
        for future in concurrent.futures.as_completed(futures):
            package = futures[future]
            try:
                result = future.result()
            except Exception as e:
                logger.error("Package %s failed: %s", package.name, e)
                result = PackageResult(package=package.name, error=e)
            results[package.name] = result
            if on_event:
                on_event({"event": "package.complete", **result.to_dict()})

    return [results[p.name] for p in packages]


def publish(results: list[PackageResult], pool_dir: Path) -> list[AggregateResult]:
    """Link the successful artifacts of every package into the pool.

    Every package is aggregated even when an earlier one failed; failures
    are reported in the returned results.
    """
    published: list[AggregateResult] = []
    for result in results:
        artifacts = result.artifacts
        if artifacts:
            published.append(aggregate(result.package, artifacts, pool_dir))
    return published
