"""Write approved plans into an Obsidian vault."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from plannotator.errors import VaultError, VaultPathError
from plannotator.obsidian.notes import generate_filename, prepare_note_content

logger = logging.getLogger("plannotator.obsidian.writer")

DEFAULT_FOLDER = "plannotator"
MAX_NAME_ATTEMPTS = 100


class VaultTarget(BaseModel):
    """Client-supplied vault destination for an approved plan."""

    model_config = ConfigDict(extra="ignore")

    vault_path: str = Field(default="", validation_alias=AliasChoices("vaultPath", "vault_path"))
    folder: str = ""
    plan_text: str = Field(default="", validation_alias=AliasChoices("plan", "planText", "plan_text"))

    def is_complete(self) -> bool:
        return bool(self.vault_path.strip()) and bool(self.plan_text)


@dataclass(frozen=True)
class VaultSaveResult:
    success: bool
    path: str | None = None
    error: str | None = None


def normalize_vault_path(vault_path: str) -> Path:
    """Expand a leading ``~`` and require an existing directory."""
    raw = (vault_path or "").strip()
    if not raw:
        raise VaultPathError("Vault path is empty")
    path = Path(raw).expanduser() if raw.startswith("~") else Path(raw)
    if not path.exists():
        raise VaultPathError(f"Vault path does not exist: {path}")
    if not path.is_dir():
        raise VaultPathError(f"Vault path is not a directory: {path}")
    return path


def _resolve_target_folder(vault_root: Path, folder: str) -> Path:
    """Target folder inside the vault; absolute or escaping folders are rejected."""
    root = vault_root.resolve()
    target_folder = (root / folder).resolve()
    if not target_folder.is_relative_to(root):
        raise VaultPathError(f"Folder must stay inside the vault: {folder}")
    return target_folder


def _note_candidates(filename: str):
    stem, suffix = os.path.splitext(filename)
    yield filename
    for index in range(2, MAX_NAME_ATTEMPTS + 1):
        yield f"{stem} ({index}){suffix}"


def _write_exclusive(folder: Path, filename: str, content: str) -> Path:
    """Create a new note next to any existing ones; never replaces a file."""
    for candidate in _note_candidates(filename):
        path = folder / candidate
        try:
            handle = open(path, "x", encoding="utf-8")
        except FileExistsError:
            continue
        try:
            with handle:
                handle.write(content)
        except BaseException:
            try:
                os.unlink(path)
            except OSError:
                pass
            raise
        return path
    raise VaultError(f"Too many notes named {filename} in {folder}")


def write_plan_note(target: VaultTarget, now: datetime | None = None) -> Path:
    """Write the note and return its path; raises VaultError on failure."""
    now = now or datetime.now().astimezone()
    vault_root = normalize_vault_path(target.vault_path)
    folder = target.folder.strip() or DEFAULT_FOLDER
    target_folder = _resolve_target_folder(vault_root, folder)
    try:
        target_folder.mkdir(parents=True, exist_ok=True)
        return _write_exclusive(
            target_folder,
            generate_filename(target.plan_text, now),
            prepare_note_content(target.plan_text, now),
        )
    except OSError as exc:
        raise VaultError(f"Failed to write note into {target_folder}: {exc}") from exc


def save_to_obsidian(target: VaultTarget, now: datetime | None = None) -> VaultSaveResult:
    """Save plan note; failures are reported in the result, never raised."""
    try:
        note_path = write_plan_note(target, now)
    except VaultError as exc:
        return VaultSaveResult(success=False, error=str(exc))
    logger.info("Saved plan to Obsidian: %s", note_path)
    return VaultSaveResult(success=True, path=str(note_path))
