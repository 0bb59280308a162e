"""CLI for Video Catalogue.

Commands:
    init-db              - Create database tables
    serve                - Run the HTTP API
    upload <path>        - Upload video files (file or directory)
    list                 - List catalogued videos
    show <id>            - Show a video's metadata
    fetch <id>           - Download a video to disk
    delete <id>          - Delete a video
    orphans              - Report records whose payload is missing
"""

from __future__ import annotations

import asyncio
import mimetypes
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, TypeVar

import typer
import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from video_catalogue.app import build_manager, create_app
from video_catalogue.config import get_settings
from video_catalogue.db import build_context, build_memory_context, init_db
from video_catalogue.errors import (
    DuplicateContentError,
    EmptyPayloadError,
    NotFoundError,
    StoreFailure,
)
from video_catalogue.logging_config import configure_logging
from video_catalogue.services.catalogue import CatalogueManager

app = typer.Typer(
    name="video-catalogue",
    help="Video Catalogue: content-addressed storage for video files",
    no_args_is_help=True,
)
console = Console()

T = TypeVar("T")


def run_async(coro):
    """Run an async coroutine in sync context."""
    return asyncio.run(coro)


def with_manager(fn: Callable[[CatalogueManager], Awaitable[T]]) -> T:
    """Build the stores, run ``fn`` with a manager, and dispose the engine."""
    settings = get_settings()

    async def _run() -> T:
        context = build_context(settings)
        try:
            if context.engine is not None:
                await init_db(context.engine)
            return await fn(build_manager(context, settings))
        finally:
            await context.close()

    try:
        return run_async(_run())
    except NotFoundError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e
    except StoreFailure as e:
        console.print(f"[red]Storage failure:[/red] {e}")
        raise typer.Exit(code=2) from e


@app.callback()
def main() -> None:
    """Configure logging from settings before any command runs."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_file)


@app.command("init-db")
def init_db_command():
    """Create the catalogue tables."""
    settings = get_settings()

    async def _init():
        context = build_context(settings)
        try:
            if context.engine is not None:
                await init_db(context.engine)
        finally:
            await context.close()

    run_async(_init())
    console.print("[green]Database schema initialized.[/green]")


@app.command()
def serve(
    host: Annotated[str, typer.Option(help="Bind address")] = "0.0.0.0",
    port: Annotated[int, typer.Option(envvar="PORT", help="Bind port")] = 8080,
    memory: Annotated[
        bool, typer.Option("--memory", help="Use in-memory stores instead of the database")
    ] = False,
):
    """Run the HTTP API."""
    settings = get_settings()
    context = build_memory_context(settings) if memory else None
    console.print(f"[blue]Serving on {host}:{port}[/blue]")
    uvicorn.run(create_app(settings, context), host=host, port=port, log_config=None)


@app.command()
def upload(
    path: Annotated[Path, typer.Argument(help="Video file or directory")],
    mime_type: Annotated[
        str | None, typer.Option("--mime-type", "-m", help="Override the guessed MIME type")
    ] = None,
):
    """Upload video files.

    Directories are scanned (non-recursively) for files whose guessed MIME
    type is in the supported list.
    """
    settings = get_settings()
    if not path.exists():
        console.print(f"[red]Error:[/red] Path does not exist: {path}")
        raise typer.Exit(code=1)

    files = sorted(p for p in path.iterdir() if p.is_file()) if path.is_dir() else [path]

    async def _upload(manager: CatalogueManager) -> tuple[int, int]:
        uploaded = duplicates = 0
        for file_path in files:
            mime = mime_type or mimetypes.guess_type(file_path.name)[0]
            if mime not in settings.supported_media_types:
                console.print(f"  {file_path.name}: [yellow]SKIP[/yellow] (type {mime})")
                continue
            try:
                file_id = await manager.upload_video(file_path.read_bytes(), file_path.name, mime)
            except DuplicateContentError as e:
                console.print(f"  {file_path.name}: [yellow]DUPLICATE[/yellow] of {e.existing_id}")
                duplicates += 1
            except EmptyPayloadError:
                console.print(f"  {file_path.name}: [yellow]SKIP[/yellow] (empty file)")
            else:
                console.print(f"  {file_path.name}: [green]OK[/green] → {file_id}")
                uploaded += 1
        return uploaded, duplicates

    uploaded, duplicates = with_manager(_upload)
    console.print(f"\n[bold]Summary:[/bold] {uploaded} uploaded, {duplicates} duplicates")


@app.command("list")
def list_files():
    """List catalogued videos."""
    projections = with_manager(lambda manager: manager.list_video_files())
    if not projections:
        console.print("[yellow]No videos found.[/yellow]")
        return

    table = Table(title="Videos")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for p in sorted(projections, key=lambda p: p.created_at):
        table.add_row(p.id, p.name, str(p.size), p.created_at.isoformat(timespec="seconds"))
    console.print(table)


@app.command()
def show(file_id: Annotated[str, typer.Argument(help="Video ID")]):
    """Show a video's metadata."""
    record = with_manager(lambda manager: manager.get_metadata_by_id(file_id))
    panel_content = [
        f"[bold]ID:[/bold] {record.id}",
        f"[bold]Name:[/bold] {record.name}",
        f"[bold]Size:[/bold] {record.size} bytes",
        f"[bold]MIME type:[/bold] {record.mime_type}",
        f"[bold]Created:[/bold] {record.created_at.isoformat()}",
        f"[bold]Content hash:[/bold] {record.content_hash}",
    ]
    console.print(Panel("\n".join(panel_content), title="Video Details"))


@app.command()
def fetch(
    file_id: Annotated[str, typer.Argument(help="Video ID")],
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Destination (defaults to stored name)")
    ] = None,
):
    """Download a video to disk."""
    video = with_manager(lambda manager: manager.get_file_by_id(file_id))
    destination = output or Path(video.name)
    destination.write_bytes(video.data)
    console.print(f"[green]Wrote[/green] {len(video.data)} bytes to {destination}")


@app.command()
def delete(file_id: Annotated[str, typer.Argument(help="Video ID")]):
    """Delete a video's record and payload."""
    with_manager(lambda manager: manager.delete_video_file(file_id))
    console.print(f"[green]Deleted[/green] {file_id}")


@app.command()
def orphans():
    """Report records whose payload is missing.

    Orphans are left in place; delete them explicitly once inspected.
    """
    records = with_manager(lambda manager: manager.find_orphans())
    if not records:
        console.print("[green]No orphaned records.[/green]")
        return

    table = Table(title="Orphaned Records")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Size", justify="right")
    for r in records:
        table.add_row(r.id, r.name, str(r.size))
    console.print(table)
    console.print(f"\n[dim]{len(records)} orphaned record(s)[/dim]")
    console.print(
        "[dim]Their content is still claimed by the duplicate check; "
        "delete a record to allow a fresh upload.[/dim]"
    )


if __name__ == "__main__":
    app()
