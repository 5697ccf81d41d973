"""
Requirements Gatherer CLI - Command-line interface.

Commands:
- reqgather init → Create the data directory and storage files
- reqgather status → Show configuration and record counts
- reqgather projects [SEARCH] → List or search projects
- reqgather requirements [--project ID] → List requirements
- reqgather migrate → Copy JSON data into SQLite
- reqgather api → Run the REST API
- reqgather mcp → Run the MCP server
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from reqgather.core.config import settings, setup_logging
from reqgather.core.errors import PersistenceError
from reqgather.storage.factory import create_storage

app = typer.Typer(
    name="reqgather",
    help="Requirements Gatherer - projects and requirements",
    no_args_is_help=True,
)
console = Console()


def _open_store():
    """Create the configured store, exiting cleanly if it cannot be opened."""
    try:
        return create_storage()
    except PersistenceError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)


@app.command()
def init():
    """Initialize the data directory and the configured storage backend."""
    setup_logging()

    console.print("[bold]Initializing Requirements Gatherer...[/bold]\n")

    settings.ensure_directories()
    console.print(f"  ✓ Data directory: {settings.data_dir}")

    store = _open_store()
    store.close()
    console.print(f"  ✓ Storage backend: {store.storage_type}")

    console.print("\n[green]✓ Initialization complete![/green]")


@app.command()
def status():
    """Show system status."""
    setup_logging()

    console.print("[bold]Requirements Gatherer Status[/bold]\n")

    console.print(f"Data directory: {settings.data_dir}")
    console.print(f"  Exists: {'✓' if settings.data_dir.exists() else '✗'}")

    store = _open_store()
    with store:
        console.print(f"\nStorage: {store.storage_type}")
        console.print(f"  Projects: {len(store.list_projects())}")
        console.print(f"  Requirements: {len(store.list_requirements())}")


@app.command()
def projects(
    search: Optional[str] = typer.Argument(None, help="Case-insensitive name filter"),
):
    """List or search projects."""
    setup_logging()

    with _open_store() as store:
        project_list = store.find_projects_by_name(search)

    if project_list:
        table = Table(title="Projects")
        table.add_column("ID", style="dim")
        table.add_column("Name", style="cyan")
        table.add_column("Description", style="white")
        table.add_column("Updated", style="green")

        for project in project_list:
            table.add_row(
                project.id,
                project.name,
                project.description or "-",
                project.updated_at[:10],
            )

        console.print(table)
    else:
        console.print("[dim]No projects found[/dim]")


@app.command()
def requirements(
    project: Optional[str] = typer.Option(None, "--project", "-p", help="Only this project ID"),
):
    """List requirements."""
    setup_logging()

    with _open_store() as store:
        req_list = (
            store.list_requirements_by_project(project)
            if project
            else store.list_requirements()
        )

    if req_list:
        table = Table(title="Requirements")
        table.add_column("Title", style="cyan")
        table.add_column("Type", style="white")
        table.add_column("Priority", style="yellow")
        table.add_column("Status", style="green")
        table.add_column("Tags", style="dim")

        for req in req_list:
            table.add_row(
                req.title,
                req.type,
                req.priority,
                req.status,
                ", ".join(req.tags) or "-",
            )

        console.print(table)
    else:
        console.print("[dim]No requirements found[/dim]")


@app.command()
def migrate(
    source_dir: Optional[Path] = typer.Option(None, help="Directory with projects.json/requirements.json"),
    backup: bool = typer.Option(True, "--backup/--no-backup", help="Copy the JSON files to .bak files"),
):
    """Migrate data from the JSON files into the SQLite database."""
    setup_logging()

    from reqgather.storage.migration import migrate_json_to_sqlite

    console.print("[bold]=== JSON to SQLite Migration ===[/bold]")
    console.print("[dim]Make sure the server is not running during migration[/dim]\n")

    with console.status("Migrating..."):
        result = migrate_json_to_sqlite(source_dir=source_dir, backup=backup)

    if not result.success:
        console.print(f"[red]Migration failed: {result.error}[/red]")
        raise typer.Exit(code=1)

    console.print(f"Projects migrated: {result.projects_imported}/{result.projects_count}")
    console.print(f"Requirements migrated: {result.requirements_imported}/{result.requirements_count}")
    if result.skipped_requirements:
        console.print(f"[yellow]Skipped {len(result.skipped_requirements)} requirements without a project[/yellow]")
    for path in result.backups:
        console.print(f"[dim]Backup: {path}[/dim]")

    console.print("\n[green]✓ Migration complete. Set REQG_STORAGE_TYPE=sqlite to use it.[/green]")


@app.command()
def api(
    host: str = typer.Option(settings.api_host, help="Bind address"),
    port: int = typer.Option(settings.api_port, help="Port"),
):
    """Run the REST API."""
    setup_logging()

    import uvicorn
    from reqgather.interface.api import create_app

    store = _open_store()
    try:
        uvicorn.run(create_app(store), host=host, port=port)
    finally:
        store.close()


@app.command()
def mcp(
    host: str = typer.Option(settings.mcp_host, help="Bind address"),
    port: int = typer.Option(settings.mcp_port, help="Port"),
):
    """Run the MCP server."""
    setup_logging()

    from reqgather.interface.mcp_server import MCPServer

    store = _open_store()
    try:
        asyncio.run(MCPServer(store).start(host=host, port=port))
    except KeyboardInterrupt:
        console.print("[dim]Server stopped[/dim]")
    finally:
        store.close()


if __name__ == "__main__":
    app()
