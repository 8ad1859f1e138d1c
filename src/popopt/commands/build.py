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

"""Implementation of `popopt build`.

Builds the selected packages for one architecture tier and every target
architecture, then links the successful artifacts into the pool.

Exit codes:
  0 - Every package built for every target architecture
  1 - Configuration error
  2 - Required tool or chroot missing
  7 - At least one package or architecture failed, or a package could
      not be linked into the pool
  130 - Interrupted
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from popopt.arch import ArchitectureProfile, find_profile, resolve_arches
from popopt.build.context import BuildSettings
from popopt.build.coordinator import EventCallback, PackageResult, build_packages, publish
from popopt.build.pool import AggregateResult
from popopt.build.errors import (
    EXIT_BUILD_FAILED,
    EXIT_CONFIG_ERROR,
    EXIT_INTERRUPTED,
    EXIT_SUCCESS,
    EXIT_TOOL_MISSING,
    log_phase_event,
    phase_error,
)
from popopt.build.interrupt import InterruptFlag
from popopt.build.runner import CommandRunner
from popopt.build.schroot import missing_chroots
from popopt.build.tools import check_required_tools, get_missing_tools_message
from popopt.config import extra_repositories, load_config
from popopt.exceptions import ConfigError
from popopt.package import PackageSpec, select_packages
from popopt.paths import resolve_paths
from popopt.run import RunContext, activity


@dataclass
class BuildRequest:
    """CLI inputs for a build, before defaults are applied.

    Empty strings and lists mean "use the configured default".
    """

    packages: list[str] = field(default_factory=list)
    distribution: str = ""
    arch_profile: str = ""
    target_arches: list[str] = field(default_factory=list)
    primary_arch: str = ""
    rebuild: bool = False
    retry: bool = False
    parallel: int | None = None
    work_dir: str = ""
    pool_dir: str = ""
    packages_dir: str = ""
    check_environment: bool = True


def _event_reporter(run: RunContext) -> EventCallback:
    def report(event: dict[str, Any]) -> None:
        key = event.get("event", "")
        data = {k: v for k, v in event.items() if k != "event"}
        if key == "package.version":
            log_phase_event(run, "version", f"{event['package']} {event['version']} in {event['work_dir']}", key, **data)
        elif key == "package.source":
            log_phase_event(run, "source", f"{event['package']}: {Path(event['dsc']).name}", key, **data)
        elif key == "arch.complete":
            if event["ok"]:
                message = f"{event['source']} {event['arch']}: {len(event['artifacts'])} packages"
            else:
                message = f"{event['source']} {event['arch']}: FAILED: {event['error']}"
            log_phase_event(run, "sbuild", message, key, **data)
        elif key == "package.complete" and "error" in event and not event["results"]:
            log_phase_event(run, "build", f"{event['package']}: FAILED: {event['error']}", key, **data)
        else:
            run.log_event(event)

    return report


def render_summary(
    results: list[PackageResult],
    target_arches: list[str],
    published: list[AggregateResult] | None = None,
) -> Table:
    """Return a table with one row per package, a column per architecture
    and the package's pool outcome.
    """
    pool = {agg.package: agg for agg in published or []}
    table = Table(title="Build summary")
    table.add_column("Package")
    table.add_column("Version")
    for arch in target_arches:
        table.add_column(arch)
    table.add_column("Pool")

    for result in results:
        if result.error is not None:
            cells = [f"[red]{type(result.error).__name__}[/red]"] * len(target_arches)
        else:
            cells = []
            for arch in target_arches:
                arch_result = result.results.get(arch)
                if arch_result is None:
                    cells.append("-")
                elif arch_result.ok:
                    cells.append(f"[green]{len(arch_result.artifacts)} debs[/green]")
                else:
                    cells.append(f"[red]{type(arch_result.error).__name__}[/red]")
        agg = pool.get(result.package)
        if agg is None:
            pool_cell = "-"
        elif agg.ok:
            pool_cell = f"{agg.total} files"
        else:
            pool_cell = f"[red]{type(agg.error).__name__}[/red]"
        table.add_row(result.package, result.version or "?", *cells, pool_cell)
    return table


def _run_build(
    run: RunContext,
    request: BuildRequest,
    runner: CommandRunner,
    interrupt: InterruptFlag,
) -> int:
    """Main build implementation.

    Returns:
        Exit code.
    """
    cfg = load_config()
    paths = resolve_paths(cfg)
    defaults = cfg.get("defaults", {})

    distribution = request.distribution or defaults["distribution"]
    profile_name = request.arch_profile or defaults["arch_profile"]
    target_arches = resolve_arches(request.target_arches or list(defaults["target_arches"]))
    primary_arch = request.primary_arch or defaults["primary_arch"]
    parallel = request.parallel if request.parallel is not None else int(defaults.get("parallel", 0))
    work_root = Path(request.work_dir).expanduser().resolve() if request.work_dir else paths["work_root"]
    pool_root = Path(request.pool_dir).expanduser().resolve() if request.pool_dir else paths["pool_root"]
    packages_dir = (
        Path(request.packages_dir).expanduser().resolve() if request.packages_dir else paths["packages_dir"]
    )

    if primary_arch not in target_arches:
        return phase_error(
            run, "config",
            f"Primary architecture {primary_arch} is not a target ({', '.join(target_arches)})",
            EXIT_CONFIG_ERROR,
        )

    try:
        arch: ArchitectureProfile = find_profile(paths["arch_dir"], profile_name)
        specs = select_packages(PackageSpec.load_all(packages_dir), request.packages)
    except (ConfigError, OSError) as e:
        message = e.message if isinstance(e, ConfigError) else str(e)
        return phase_error(run, "config", message, EXIT_CONFIG_ERROR)

    if request.check_environment:
        tools = check_required_tools()
        if not tools.is_complete():
            return phase_error(
                run, "tools", get_missing_tools_message(tools.missing), EXIT_TOOL_MISSING,
                missing=tools.missing,
            )
        chroots = missing_chroots(distribution, target_arches)
        if chroots:
            return phase_error(
                run, "tools", f"Missing chroots: {', '.join(chroots)}", EXIT_TOOL_MISSING,
                missing=chroots,
            )

    settings = BuildSettings(
        primary_arch=primary_arch,
        vendor_tag=defaults["vendor_tag"],
        changelog_message=defaults["changelog_message"],
        sbuild_build_root=paths["sbuild_build_root"],
        extra_repositories=tuple(extra_repositories(cfg, distribution)),
        rebuild=request.rebuild,
        retry=request.retry,
        interrupt=interrupt,
    )

    activity("build", f"Tier {arch.name} (level {arch.level}) on {distribution} for {', '.join(target_arches)}")
    activity("build", f"Packages: {', '.join(s.name for s in specs) or '(none)'}")
    run.log_event({
        "event": "build.start",
        "arch_profile": arch.name,
        "distribution": distribution,
        "target_arches": target_arches,
        "primary_arch": primary_arch,
        "packages": [s.name for s in specs],
        "rebuild": request.rebuild,
        "retry": request.retry,
        "work_root": str(work_root),
    })

    results = build_packages(
        specs,
        arch,
        distribution,
        target_arches,
        work_root,
        runner,
        settings=settings,
        parallel=parallel,
        on_event=_event_reporter(run),
    )

    published = publish(results, pool_root)
    for agg in published:
        if agg.ok:
            message = f"{agg.package}: {len(agg.linked)} linked, {len(agg.skipped)} already present"
        else:
            message = f"{agg.package}: FAILED: {agg.error}"
        log_phase_event(
            run, "pool", message, "pool.aggregate",
            package=agg.package,
            ok=agg.ok,
            linked=[str(p) for p in agg.linked],
            skipped=[str(p) for p in agg.skipped],
            error=str(agg.error) if agg.error else None,
        )

    Console(file=sys.__stdout__).print(render_summary(results, target_arches, published))

    pool_failed = {agg.package for agg in published if not agg.ok}
    failed = [r.package for r in results if not r.ok or r.package in pool_failed]
    if interrupt.is_set:
        exit_code = EXIT_INTERRUPTED
    elif failed:
        exit_code = EXIT_BUILD_FAILED
    else:
        exit_code = EXIT_SUCCESS

    run.write_summary(
        status="success" if exit_code == EXIT_SUCCESS else "failed",
        exit_code=exit_code,
        failed=failed,
        pool_failed=sorted(pool_failed),
        packages=[r.to_dict() for r in results],
        pool=str(pool_root),
    )
    return exit_code


def build(
    packages: list[str] = typer.Argument(None, help="Packages to build (default: every defined package)"),
    distribution: str = typer.Option("", "-d", "--dist", help="Distribution codename (e.g., noble)"),
    arch_profile: str = typer.Option("", "-a", "--arch-profile", help="Architecture tier profile (e.g., x86-64-v3)"),
    target_arch: list[str] = typer.Option([], "-t", "--target-arch", help="Target architecture (repeatable)"),
    primary_arch: str = typer.Option("", "--primary-arch", help="Architecture that also builds arch:all packages"),
    rebuild: bool = typer.Option(False, "--rebuild", help="Redo stages that are already complete"),
    retry: bool = typer.Option(False, "--retry", help="Redo stages left partial by an earlier run"),
    parallel: int | None = typer.Option(None, "-j", "--parallel", help="Packages in flight (0=all)"),
    work_dir: str = typer.Option("", "--work-dir", help="Root of the build stage directories"),
    pool_dir: str = typer.Option("", "--pool-dir", help="Root of the artifact pool"),
    packages_dir: str = typer.Option("", "--packages-dir", help="Directory of package definitions"),
) -> None:
    """Build CPU-optimized binary packages and link them into the pool."""
    interrupt = InterruptFlag()
    interrupt.install()

    request = BuildRequest(
        packages=list(packages or []),
        distribution=distribution,
        arch_profile=arch_profile,
        target_arches=list(target_arch),
        primary_arch=primary_arch,
        rebuild=rebuild,
        retry=retry,
        parallel=parallel,
        work_dir=work_dir,
        pool_dir=pool_dir,
        packages_dir=packages_dir,
    )
    with RunContext("build") as run:
        exit_code = _run_build(run, request, CommandRunner(), interrupt)

    sys.exit(exit_code)
