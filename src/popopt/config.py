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

"""Configuration utilities for Popopt."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

DEFAULT_CONFIG: dict[str, Any] = {
    "paths": {
        "work_root": "~/.cache/popopt/build",
        "pool_root": "~/.cache/popopt/pool",
        "runs_root": "~/.cache/popopt/runs",
        "packages_dir": "~/.config/popopt/packages",
        # Empty means the profiles shipped with Popopt.
        "arch_dir": "",
        "sbuild_build_root": "/var/lib/sbuild/build",
    },
    "defaults": {
        "distribution": "noble",
        "arch_profile": "x86-64-v3",
        "target_arches": ["amd64", "i386"],
        "primary_arch": "amd64",
        "vendor_tag": "popopt",
        "changelog_message": "CPU-optimized rebuild",
        "parallel": 0,
    },
    "mirrors": {
        "ubuntu_archive": "http://archive.ubuntu.com/ubuntu",
        "pockets": ["updates", "security"],
        "components": ["main", "restricted", "universe", "multiverse"],
    },
}


def get_config_path() -> Path:
    """Return the path to the config file."""
    return Path.home() / ".config" / "popopt" / "config.yaml"


def ensure_config_exists() -> None:
    """Create the config file with defaults if it does not exist."""
    cfg_path = get_config_path()
    cfg_dir = cfg_path.parent
    cfg_dir.mkdir(parents=True, exist_ok=True)
    if not cfg_path.exists():
        cfg_path.write_text(yaml.safe_dump(DEFAULT_CONFIG))


def load_config() -> dict[str, Any]:
    """Load configuration from disk and merge with defaults.

    The returned dictionary is a shallow per-section merge of DEFAULT_CONFIG
    and the values stored in the on-disk config file.
    """
    ensure_config_exists()
    cfg_path = get_config_path()
    try:
        raw = yaml.safe_load(cfg_path.read_text()) or {}
    except yaml.YAMLError:
        raw = {}

    merged: dict[str, Any] = {}
    for key, val in DEFAULT_CONFIG.items():
        if key in raw and isinstance(raw[key], dict):
            merged[key] = {**val, **raw[key]}
        elif isinstance(val, dict):
            merged[key] = raw.get(key, dict(val))
        else:
            merged[key] = raw.get(key, val)

    for pkey, pval in merged.get("paths", {}).items():
        if pval:
            merged["paths"][pkey] = str(Path(pval).expanduser())

    return merged


def extra_repositories(cfg: dict[str, Any], distribution: str) -> list[str]:
    """Return the sbuild extra repository lines for a distribution.

    One ``deb`` line is produced per configured pocket so builds see the
    same updates and security fixes as an installed system.
    """
    mirrors = cfg.get("mirrors", {})
    mirror = mirrors.get("ubuntu_archive", DEFAULT_CONFIG["mirrors"]["ubuntu_archive"])
    components = " ".join(mirrors.get("components", DEFAULT_CONFIG["mirrors"]["components"]))
    return [
        f"deb {mirror} {distribution}-{pocket} {components}"
        for pocket in mirrors.get("pockets", [])
    ]

