import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import typer

from plannotator.errors import PlanInputError, PortInUseError
from plannotator.hook import run_hook
from plannotator.obsidian.vaults import detect_obsidian_vaults
from plannotator.review import submit_plan
from plannotator.settings import (
    is_obsidian_configured,
    load_settings,
    regenerate_identity,
    save_settings,
    settings_path,
    update_obsidian,
)

app = typer.Typer(help="Interactive plan review for coding agents.")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_logging(verbose: bool) -> None:
    # stdout carries the hook payload; logs go to stderr.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _fail(message: str) -> None:
    typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(code=1)


@app.command()
def hook(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Read a hook event from stdin, wait for review, print the decision JSON."""
    _configure_logging(verbose)
    event_json = sys.stdin.read()
    try:
        output = asyncio.run(run_hook(event_json))
    except PlanInputError as exc:
        _fail(str(exc))
    except PortInUseError as exc:
        _fail(str(exc))
    except OSError as exc:
        _fail(f"Could not start server: {exc}")
    typer.echo(json.dumps(output))


@app.command()
def review(
    plan_file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    summary: str = typer.Option("", "--summary", "-s", help="One or two sentence plan summary."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """Submit a markdown plan for review and print the agent-facing result."""
    _configure_logging(verbose)
    plan = plan_file.read_text(encoding="utf-8")
    try:
        result = asyncio.run(submit_plan(plan, summary))
    except PlanInputError as exc:
        _fail(str(exc))
    typer.echo(result)


@app.command()
def vaults():
    """List Obsidian vaults found in the desktop app configuration."""
    found = detect_obsidian_vaults()
    if not found:
        typer.echo("No Obsidian vaults detected.")
        return
    for vault in found:
        typer.echo(vault)


@app.command("settings")
def settings_command(
    vault: Optional[str] = typer.Option(None, "--vault", help="Obsidian vault path."),
    folder: Optional[str] = typer.Option(None, "--folder", help="Folder inside the vault."),
    enable: Optional[bool] = typer.Option(None, "--enable/--disable", help="Toggle Obsidian saving."),
    new_identity: bool = typer.Option(False, "--regenerate-identity", help="Pick a new reviewer identity."),
    as_json: bool = typer.Option(False, "--json", help="Print settings as JSON."),
):
    """Show or update persisted reviewer settings."""
    path = settings_path()
    current = load_settings(path)
    changes = {}
    if vault is not None:
        changes["vault_path"] = vault.strip()
    if folder is not None:
        changes["folder"] = folder.strip() or current.obsidian.folder
    if enable is not None:
        changes["enabled"] = enable
    updated = update_obsidian(current, **changes) if changes else current
    if new_identity:
        updated = regenerate_identity(updated)
    if updated != current or not path.exists():
        save_settings(updated, path)

    if as_json:
        typer.echo(json.dumps(updated.to_dict(), indent=2))
        return
    typer.echo(f"Identity: {updated.identity}")
    typer.echo(f"Obsidian: {'configured' if is_obsidian_configured(updated) else 'not configured'}")
    typer.echo(f"  enabled: {updated.obsidian.enabled}")
    typer.echo(f"  vault:   {updated.obsidian.vault_path or '-'}")
    typer.echo(f"  folder:  {updated.obsidian.folder}")
    typer.echo(f"Settings file: {path}")


if __name__ == "__main__":
    app()
