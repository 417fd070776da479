from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config import ZprofPaths
from ..profiles import ProfileManager, ProfileError

app = typer.Typer()
console = Console()


def get_profile_manager() -> ProfileManager:
    """get profile manager instance."""
    return ProfileManager(ZprofPaths())


@app.command("list")
def list_profiles():
    """list all profiles."""
    manager = get_profile_manager()
    profiles = manager.list_profiles()

    if not profiles:
        console.print("[yellow]No profiles found.[/yellow]")
        return

    table = Table(title="Profiles")
    table.add_column("Name", style="cyan")
    table.add_column("Framework", style="white")
    table.add_column("Created", style="dim")
    table.add_column("Status", style="green")

    for profile in profiles:
        status = "active" if profile.active else ""
        table.add_row(profile.name, profile.framework, f"{profile.created_at:%Y-%m-%d}", status)

    console.print(table)


@app.command("show")
def show_profile(name: Optional[str] = typer.Argument(None, help="Profile name (defaults to the active profile)")):
    """show profile details."""
    manager = get_profile_manager()

    name = name or manager.get_active_profile()
    if not name:
        console.print("[red]Error:[/red] No active profile. Pass a profile name.")
        raise typer.Exit(code=1)

    try:
        profile = manager.get_profile(name)
    except ProfileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    status = " [green](active)[/green]" if profile.active else ""
    console.print(f"\n[bold]Profile:[/bold] [cyan]{profile.name}[/cyan]{status}")
    console.print(f"  Framework:  {profile.framework}")
    if profile.prompt_engine:
        console.print(f"  Prompt:     {profile.prompt_engine} (prompt engine)")
    elif profile.framework_theme:
        console.print(f"  Theme:      {profile.framework_theme}")
    if profile.plugins:
        console.print(f"  Plugins:    {', '.join(sorted(profile.plugins))}")
    for key, value in sorted(profile.env_vars.items()):
        console.print(f"  Env:        {key}={value}")
    console.print(f"  Created:    {profile.created_at:%Y-%m-%d %H:%M}\n")


@app.command("use")
def use_profile(name: str):
    """switch to a different profile."""
    manager = get_profile_manager()

    try:
        manager.switch_profile(name)
    except ProfileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Switched to profile '{name}'")
    console.print("Start a new shell to use it: [cyan]exec zsh[/cyan]")


@app.command("remove")
def remove_profile(
    name: str,
    force: bool = typer.Option(False, "--force", "-f", help="Remove even if it's the active profile"),
):
    """remove a profile."""
    manager = get_profile_manager()

    try:
        manager.remove_profile(name, force=force)
    except ProfileError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(f"[green]✓[/green] Profile '{name}' removed")


if __name__ == "__main__":
    app()
