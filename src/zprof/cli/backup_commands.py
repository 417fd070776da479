from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..backup.pre_zprof import PreZprofBackupManager, list_previous_generations
from ..backup.snapshot import SafetySnapshotManager
from ..config import ZprofPaths
from ..domain.errors import ZprofError
from ..operations import create_safety_snapshot
from ..ui.progress import ProgressManager

app = typer.Typer()
console = Console()


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


@app.command("show")
def show_backup():
    """show the pre-zprof backup manifest."""
    paths = ZprofPaths()
    manager = PreZprofBackupManager(paths.home, paths.pre_zprof_dir)

    if not manager.exists():
        console.print("[yellow]No pre-zprof backup found.[/yellow]")
        console.print("\nCreate one with: [cyan]zprof init[/cyan]")
        raise typer.Exit(code=1)

    try:
        backup = manager.load()
    except ZprofError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    manifest = backup.manifest
    console.print(f"\n[bold]Pre-zprof backup:[/bold] [cyan]{backup.archive_path}[/cyan]")
    console.print(f"  Captured:  {manifest.captured_at:%Y-%m-%d %H:%M:%S %Z}")
    console.print(f"  zsh:       {manifest.zsh_version}")
    console.print(f"  OS:        {manifest.os}")
    console.print(f"  zprof:     {manifest.zprof_version}")
    framework = manifest.detected_framework.name if manifest.detected_framework else "none"
    console.print(f"  Framework: {framework}\n")

    if not manifest.captured_files:
        console.print("[dim]No files were captured.[/dim]")
        return

    table = Table(title="Captured files")
    table.add_column("Path", style="cyan")
    table.add_column("Size", justify="right")
    table.add_column("Mode", style="dim")
    table.add_column("Checksum", style="dim")
    for f in manifest.captured_files:
        path = f"{f.path} -> {f.symlink_target}" if f.is_symlink else f.path
        table.add_row(path, format_size(f.size), oct(f.permissions), f.checksum[:12])
    console.print(table)


@app.command("list")
def list_backups():
    """list the pre-zprof backup, earlier generations and safety snapshots."""
    paths = ZprofPaths()
    rows = []

    manager = PreZprofBackupManager(paths.home, paths.pre_zprof_dir)
    if manager.exists():
        rows.append(("pre-zprof", manager.archive_path))
    for previous in list_previous_generations(paths.pre_zprof_dir):
        rows.append(("pre-zprof (replaced)", previous))
    for snapshot in SafetySnapshotManager(paths.backups_dir).list_snapshots():
        rows.append(("snapshot", snapshot))
    for snapshot in SafetySnapshotManager(paths.preserved_snapshots_dir).list_snapshots():
        rows.append(("snapshot (preserved)", snapshot))

    if not rows:
        console.print("[yellow]No backups found.[/yellow]")
        return

    table = Table(title="Backups")
    table.add_column("Kind", style="cyan")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="dim")
    for kind, path in rows:
        table.add_row(kind, str(path), format_size(_size(path)), _modified(path))
    console.print(table)


@app.command("snapshot")
def snapshot():
    """create a safety snapshot of ~/.zsh-profiles now."""
    try:
        with ProgressManager(console).archive_progress("Creating safety snapshot") as on_progress:
            result = create_safety_snapshot(on_progress=on_progress)
    except ZprofError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if result is None or result.is_empty:
        console.print("[yellow]Nothing to back up.[/yellow]")
        return
    console.print(
        f"[green]✓[/green] Safety snapshot created ({format_size(result.size_bytes)}): "
        f"[cyan]{result.archive_path}[/cyan]"
    )


def _size(path: Path) -> int:
    if path.is_file():
        return path.stat().st_size
    return sum(p.stat().st_size for p in path.rglob("*") if p.is_file() and not p.is_symlink())


def _modified(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime).strftime("%Y-%m-%d %H:%M")
