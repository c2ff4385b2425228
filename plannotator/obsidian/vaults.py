"""Discover Obsidian vaults registered in the desktop app configuration."""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Mapping

logger = logging.getLogger("plannotator.obsidian.vaults")

OBSIDIAN_CONFIG_NAME = "obsidian.json"


def obsidian_config_path(
    platform_name: str | None = None,
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> Path:
    """Return OS-specific location of obsidian.json."""
    platform_name = platform_name or sys.platform
    env = os.environ if env is None else env
    home = home or Path.home()
    if platform_name.startswith("darwin"):
        return home / "Library" / "Application Support" / "obsidian" / OBSIDIAN_CONFIG_NAME
    if platform_name.startswith("win"):
        appdata = str(env.get("APPDATA", "")).strip()
        base = Path(appdata) if appdata else home / "AppData" / "Roaming"
        return base / "obsidian" / OBSIDIAN_CONFIG_NAME
    xdg = str(env.get("XDG_CONFIG_HOME", "")).strip()
    base = Path(xdg) if xdg else home / ".config"
    return base / "obsidian" / OBSIDIAN_CONFIG_NAME


def detect_obsidian_vaults(config_path: Path | None = None) -> list[str]:
    """List existing vault directories; any config problem yields []."""
    path = config_path or obsidian_config_path()
    if not path.exists():
        return []
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Unreadable Obsidian config %s: %s", path, exc)
        return []
    if not isinstance(raw, dict) or not isinstance(raw.get("vaults"), dict):
        return []
    vaults: list[str] = []
    for entry in raw["vaults"].values():
        if not isinstance(entry, dict):
            continue
        vault_path = entry.get("path")
        if not isinstance(vault_path, str) or not vault_path:
            continue
        if vault_path in vaults or not Path(vault_path).is_dir():
            continue
        vaults.append(vault_path)
    return sorted(vaults)
