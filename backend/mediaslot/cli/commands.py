"""CLI commands for mediaslot using Typer and Rich.

Implements the operator commands:
- status: Show the objects currently in the slot
- transcode: Run the audio transcode pipeline once
- clear: Delete every object from the bucket
- upload-url: Issue a presigned upload URL for a local file name
- setup-cors: Apply the bucket CORS configuration (one-time)
- serve: Run the HTTP API
"""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mediaslot import validate_dependencies
from mediaslot.config import settings
from mediaslot.errors import StoreError, TranscodeError
from mediaslot.orchestrator.pipeline import run_transcode
from mediaslot.schemas.slot import CANONICAL_KEY, SLOT_CATEGORIES, SUBTITLE_PREFIX, VIDEO_PREFIX, slot_key
from mediaslot.services.object_store import close_object_store, get_object_store

app = typer.Typer(name="mediaslot", help="Shared video slot backed by object storage")
console = Console()


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", "-l", help="Python logging level"),
):
    """Configure logging for every command."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )


@app.command()
def status():
    """Show the video and subtitle currently in the slot."""
    asyncio.run(_status_async())


async def _status_async():
    """Async implementation of status command."""
    store = _get_store()
    try:
        objects = await store.list_objects()
    except StoreError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await close_object_store()

    if not objects:
        console.print("[yellow]Slot is empty[/yellow]")
        return

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Key")
    table.add_column("Role")
    table.add_column("Size", justify="right")
    table.add_column("Modified")

    for obj in objects:
        table.add_row(
            obj.key,
            _role_for_key(obj.key),
            _format_size(obj.size),
            obj.last_modified.strftime("%Y-%m-%d %H:%M") if obj.last_modified else "-",
        )

    console.print(table)


@app.command()
def transcode():
    """Re-encode the current video's audio to AAC and publish it as video.mp4."""
    # Fail-fast dependency validation
    try:
        validate_dependencies()
    except RuntimeError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)

    asyncio.run(_transcode_async())


async def _transcode_async():
    """Async implementation of transcode command."""
    store = _get_store()
    try:
        with console.status("[bold green]Starting transcode...") as status_display:

            def callback(msg: str):
                status_display.update(f"[bold green]{msg}")

            result = await run_transcode(store, progress_callback=callback)

    except TranscodeError as e:
        console.print(f"[red]✗ Transcode failed:[/red] {e.message}")
        if e.detail:
            console.print(Panel(e.detail[-2000:], title="Details", border_style="red"))
        raise typer.Exit(code=1)
    finally:
        await close_object_store()

    console.print(f"[green]✓[/green] Published {result.key}")
    console.print(f"[green]URL:[/green] {store.public_url(CANONICAL_KEY)}")
    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every video and subtitle object from the bucket."""
    if not yes:
        typer.confirm("Delete all files in the slot?", abort=True)
    asyncio.run(_clear_async())


async def _clear_async():
    """Async implementation of clear command."""
    store = _get_store()
    try:
        keys = await store.delete_all()
    except StoreError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await close_object_store()

    console.print(f"[green]✓[/green] Deleted {len(keys)} file(s)")


@app.command(name="upload-url")
def upload_url(
    file_name: str = typer.Argument(..., help="Name of the file to be uploaded"),
    file_type: str = typer.Option(..., "--type", "-t", help="MIME type of the file"),
    category: str = typer.Option("video", "--category", "-c", help="video or subtitle"),
):
    """Issue a presigned PUT URL for uploading a file into the slot."""
    if category not in SLOT_CATEGORIES:
        console.print('[red]Error:[/red] Category must be "video" or "subtitle"')
        raise typer.Exit(code=1)
    asyncio.run(_upload_url_async(file_name, file_type, category))


async def _upload_url_async(file_name: str, file_type: str, category: str):
    """Async implementation of upload-url command."""
    key = slot_key(category, file_name)
    store = _get_store()
    try:
        url = await store.presigned_upload_url(
            key, file_type, expires_in=settings.storage.upload_url_expiry
        )
    except StoreError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await close_object_store()

    console.print(f"[green]Key:[/green] {key}")
    console.print(url)


@app.command(name="setup-cors")
def setup_cors():
    """Apply the CORS rules browsers need to upload and play slot objects."""
    asyncio.run(_setup_cors_async())


async def _setup_cors_async():
    """Async implementation of setup-cors command."""
    store = _get_store()
    try:
        await store.configure_cors()
    except StoreError as e:
        console.print(f"[red]✗ Failed to set CORS:[/red] {str(e)}")
        raise typer.Exit(code=1)
    finally:
        await close_object_store()

    console.print(f"[green]✓[/green] CORS configuration applied to bucket: {store.bucket}")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default from settings)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default from settings)"),
):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "mediaslot.api.app:app",
        host=host or settings.server.host,
        port=port or settings.server.port,
        reload=False,
    )


def _get_store():
    try:
        return get_object_store()
    except ValueError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        raise typer.Exit(code=1)


def _role_for_key(key: str) -> str:
    """Describe a key's role in the slot."""
    if key.startswith(VIDEO_PREFIX):
        return "[green]video[/green]"
    elif key.startswith(SUBTITLE_PREFIX):
        return "[blue]subtitle[/blue]"
    else:
        return "[dim]other[/dim]"


def _format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    elif size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    else:
        return f"{size / (1024 * 1024 * 1024):.2f} GB"
