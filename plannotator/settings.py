"""Persistent user settings for identity and Obsidian integration."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping
from uuid import uuid4

from plannotator.obsidian.writer import DEFAULT_FOLDER

SETTINGS_PATH = Path.home() / ".plannotator" / "settings.json"
SETTINGS_ENV_VAR = "PLANNOTATOR_SETTINGS"
SETTINGS_SCHEMA_VERSION = "settings.v1"


def new_identity() -> str:
    return f"reviewer-{uuid4().hex[:8]}"


@dataclass(frozen=True)
class ObsidianSettings:
    enabled: bool = False
    vault_path: str = ""
    folder: str = DEFAULT_FOLDER


@dataclass(frozen=True)
class Settings:
    """Explicitly passed configuration; mutate via dataclasses.replace."""

    identity: str = field(default_factory=new_identity)
    obsidian: ObsidianSettings = field(default_factory=ObsidianSettings)

    def to_dict(self) -> dict[str, Any]:
        return {"schema_version": SETTINGS_SCHEMA_VERSION, **asdict(self)}


def settings_path(env: Mapping[str, str] | None = None) -> Path:
    env = os.environ if env is None else env
    override = str(env.get(SETTINGS_ENV_VAR, "")).strip()
    return Path(override).expanduser() if override else SETTINGS_PATH


def validate_settings(raw: dict[str, Any]) -> Settings:
    """Validate raw settings payload and fill defaults."""
    if not isinstance(raw, dict):
        raise ValueError("settings must be object")
    schema_version = raw.get("schema_version", SETTINGS_SCHEMA_VERSION)
    if schema_version != SETTINGS_SCHEMA_VERSION:
        raise ValueError("unsupported settings schema_version")
    identity = str(raw.get("identity", "")).strip() or new_identity()
    obsidian_raw = raw.get("obsidian", {})
    if obsidian_raw is None:
        obsidian_raw = {}
    if not isinstance(obsidian_raw, dict):
        raise ValueError("obsidian must be object")
    obsidian = ObsidianSettings(
        enabled=bool(obsidian_raw.get("enabled", False)),
        vault_path=str(obsidian_raw.get("vault_path", "")).strip(),
        folder=str(obsidian_raw.get("folder", "")).strip() or DEFAULT_FOLDER,
    )
    return Settings(identity=identity, obsidian=obsidian)


def is_obsidian_configured(settings: Settings) -> bool:
    return settings.obsidian.enabled and bool(settings.obsidian.vault_path.strip())


def regenerate_identity(settings: Settings) -> Settings:
    return replace(settings, identity=new_identity())


def update_obsidian(settings: Settings, **changes: Any) -> Settings:
    return replace(settings, obsidian=replace(settings.obsidian, **changes))


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from disk or return defaults."""
    path = path or settings_path()
    if not path.exists():
        return Settings()
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Settings()
    try:
        return validate_settings(raw)
    except ValueError:
        return Settings()


def save_settings(settings: Settings, path: Path | None = None) -> Settings:
    """Persist settings to disk."""
    path = path or settings_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
    return settings
