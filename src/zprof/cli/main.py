import logging
from enum import Enum
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from ..config import VERSION, ZprofPaths
from ..domain.errors import OrchestratorError, ZprofError
from ..domain.models import (
    RestorationChoice,
    RestorationKind,
    RestorationOption,
    RestorationReport,
    ShellConfigInfo,
    UninstallSummary,
)
from ..operations import detect_shell_config, run_restoration
from ..profiles import ProfileManager
from ..services.init import InitService
from ..services.uninstall import RestorationOrchestrator
from ..ui.progress import ProgressManager
from .backup_commands import app as backup_app, format_size
from .profile_commands import app as profile_app

app = typer.Typer(help="zprof: isolated zsh profiles with safe install and uninstall.")
console = Console()

app.add_typer(backup_app, name="backup", help="Inspect and create backups")
app.add_typer(profile_app, name="profile", help="Manage shell profiles")

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


class RestoreOption(str, Enum):
    original = "original"
    promote = "promote"
    clean = "clean"


RESTORE_KINDS = {
    RestoreOption.original: RestorationKind.RESTORE_ORIGINAL,
    RestoreOption.promote: RestorationKind.PROMOTE_PROFILE,
    RestoreOption.clean: RestorationKind.CLEAN_REMOVAL,
}


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


@app.command()
def version():
    """show the zprof version."""
    console.print(f"zprof {VERSION}")


@app.command()
def init(
    force_backup: bool = typer.Option(False, "--force-backup", help="Re-capture the pre-zprof backup"),
):
    """initialize zprof, backing up your current shell configuration first."""
    service = InitService(ZprofPaths())

    try:
        with ProgressManager(console).spinner("Backing up existing shell configuration"):
            result = service.init(force_backup=force_backup)
    except (ZprofError, RuntimeError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    render_shell_config(result.shell_config)

    manifest = result.backup.manifest
    console.print(
        f"[green]✓[/green] Pre-zprof backup: {len(manifest.captured_files)} file(s) at "
        f"[cyan]{result.backup.archive_path}[/cyan]"
    )
    if result.created_structure:
        console.print(f"[green]✓[/green] Created directory structure at [cyan]{service.paths.root}[/cyan]")
        console.print("\nzprof initialized successfully!")
    else:
        console.print(f"[yellow]Note:[/yellow] {service.paths.root} already exists; existing data preserved")


@app.command()
def detect():
    """show the shell configuration files and framework found in your home directory."""
    render_shell_config(detect_shell_config())


@app.command()
def uninstall(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt (requires --restore)"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Skip the safety snapshot"),
    restore: Optional[RestoreOption] = typer.Option(None, "--restore", help="Restoration strategy"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Profile to promote (with --restore promote)"),
    keep_backups: bool = typer.Option(False, "--keep-backups", help="Keep the backups/ directory"),
):
    """remove zprof and restore a shell configuration."""
    paths = ZprofPaths()

    if yes and restore is None:
        console.print("[red]Error:[/red] --yes requires --restore to choose a strategy")
        raise typer.Exit(code=1)

    if restore is None:
        kind = choose_strategy(RestorationOrchestrator(paths).available_options())
    else:
        kind = RESTORE_KINDS[restore]

    if kind == RestorationKind.PROMOTE_PROFILE and not profile and not yes:
        profile = choose_profile(ProfileManager(paths))

    choice = RestorationChoice(
        kind=kind,
        profile_name=profile if kind == RestorationKind.PROMOTE_PROFILE else None,
        skip_confirmation=yes,
        skip_safety_backup=no_backup,
        keep_backups=keep_backups,
    )

    if no_backup:
        console.print("[yellow]Warning:[/yellow] skipping safety snapshot (--no-backup)")

    try:
        with ProgressManager(console).archive_progress("Creating safety snapshot") as on_progress:
            report = run_restoration(choice, home=paths.home, confirm=confirm_uninstall, on_progress=on_progress)
    except OrchestratorError as e:
        render_abort(e)
        raise typer.Exit(code=1)

    render_report(report)


def choose_strategy(options: List[RestorationOption]) -> RestorationKind:
    labels = {
        RestorationKind.RESTORE_ORIGINAL: "Restore original configuration (pre-zprof backup)",
        RestorationKind.PROMOTE_PROFILE: "Promote a profile to your root configuration",
        RestorationKind.CLEAN_REMOVAL: "Clean removal (no restoration)",
    }

    table = Table(title="How should your shell be left?")
    table.add_column("#", style="cyan")
    table.add_column("Option")
    table.add_column("Status", style="dim")

    enabled = {}
    for i, option in enumerate(options, 1):
        if option.enabled:
            enabled[str(i)] = option.kind
        table.add_row(str(i), labels[option.kind], "" if option.enabled else f"unavailable: {option.reason}")
    console.print(table)

    if not enabled:
        console.print("[red]Error:[/red] no restoration option is available")
        raise typer.Exit(code=1)

    answer = Prompt.ask("Choice", choices=list(enabled), default=list(enabled)[0])
    return enabled[answer]


def choose_profile(manager: ProfileManager) -> Optional[str]:
    names = [p.name for p in manager.list_profiles()]
    if not names:
        # validation reports the missing profiles
        return None
    return Prompt.ask("Profile to promote", choices=names, default=names[0])


def confirm_uninstall(summary: UninstallSummary) -> bool:
    lines = [f"[bold]Restoration:[/bold] {summary.choice.describe()}"]
    if summary.files_to_restore:
        lines.append(f"  Files to restore: {summary.files_to_restore}")
    if summary.history_entries is not None:
        lines.append(f"  History entries:  {summary.history_entries}")
    if summary.source_date is not None:
        lines.append(f"  Source date:      {summary.source_date:%Y-%m-%d %H:%M}")

    lines.append("")
    lines.append(f"[bold]Removing:[/bold] {summary.managed_root}")
    lines.append(f"  Profiles: {summary.profile_count}")
    lines.append(f"  Size:     {format_size(summary.managed_size_bytes)}")
    if summary.entry_point_managed:
        lines.append("  zprof section of ~/.zshenv")

    lines.append("")
    if summary.snapshot_planned:
        lines.append("[green]A safety snapshot will be created first.[/green]")
    else:
        lines.append("[yellow]No safety snapshot will be created.[/yellow]")

    for warning in summary.warnings:
        lines.append(f"[yellow]Warning:[/yellow] {warning}")

    console.print(Panel("\n".join(lines), title="Uninstall zprof", border_style="yellow"))
    return Confirm.ask("[yellow]Continue with uninstall?[/yellow]", default=False)


def render_shell_config(info: ShellConfigInfo):
    table = Table(title=f"Shell configuration in {info.home}")
    table.add_column("File", style="cyan")
    table.add_column("Type")
    for f in info.files:
        kind = f"symlink -> {f.symlink_target}" if f.is_symlink else "file"
        table.add_row(f.name, kind)

    if info.files:
        console.print(table)
    else:
        console.print("[dim]No shell configuration files found.[/dim]")

    if info.detected_framework is not None:
        fw = info.detected_framework
        console.print(f"Framework: [cyan]{fw.name}[/cyan]" + (f" ({fw.install_path})" if fw.install_path else ""))
        if fw.theme:
            console.print(f"  Theme:   {fw.theme}")
        if fw.plugins:
            console.print(f"  Plugins: {', '.join(fw.plugins)}")
    else:
        console.print("Framework: [dim]none[/dim]")


def render_abort(error: OrchestratorError):
    if error.declined:
        console.print("[dim]Uninstall cancelled. No changes were made.[/dim]")
        return

    console.print(f"[red]Aborted during {error.state.value}:[/red] {error.cause}")
    if not error.mutated:
        console.print("No destructive change was made.")
    else:
        console.print("Changes made before the failure:")
        for change in error.changes:
            console.print(f"  ✓ {change}")
        console.print("[yellow]Restoration is incomplete; finish it manually.[/yellow]")

    if error.snapshot is not None and not error.snapshot.is_empty:
        console.print(f"Safety snapshot: [cyan]{error.snapshot.archive_path}[/cyan]")


def render_report(report: RestorationReport):
    console.print("\n[green]✓[/green] zprof uninstalled successfully")

    kind = report.choice.kind
    if kind == RestorationKind.RESTORE_ORIGINAL:
        console.print(f"  Restored {report.restored_count} file(s) to their pre-zprof state.")
    elif kind == RestorationKind.PROMOTE_PROFILE:
        console.print(
            f"  Profile '{report.choice.profile_name}' promoted: {report.restored_count} file(s) copied."
        )
    else:
        console.print("  All zprof files have been removed.")
    console.print(f"  Removed {report.removed_count} item(s).")

    snapshot = report.snapshot
    if snapshot is not None and not snapshot.is_empty:
        console.print(f"\n  Safety snapshot ({format_size(snapshot.size_bytes)}):")
        console.print(f"  [cyan]{snapshot.archive_path}[/cyan]")

    console.print("\n  Restart your shell to finish: [cyan]exec zsh[/cyan]")


if __name__ == "__main__":
    app()
