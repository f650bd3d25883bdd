"""Command-line entry point: serve the read API, run the scheduler, manage the cache."""

from __future__ import annotations

import asyncio
import json
import logging

import typer

from f1x.api_logging import configure_logging
from f1x.config import Settings
from f1x.context import AppContext

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="f1x",
    help="F1X cache backend: scheduled upstream refresh and cache-only read API.",
    no_args_is_help=True,
)


def _context() -> AppContext:
    settings = Settings()
    configure_logging(settings)
    return AppContext.build(settings)


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
) -> None:
    """Serve the cache-only read API."""
    import uvicorn

    from f1x.api import create_app

    uvicorn.run(create_app(_context()), host=host, port=port, log_config=None)


@app.command()
def schedule() -> None:
    """Run every refresh job on its cadence until interrupted."""
    ctx = _context()

    async def main() -> None:
        try:
            await ctx.scheduler.run_forever()
        finally:
            await ctx.aclose()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Interrupted")


@app.command()
def refresh(
    job: str = typer.Argument(..., help="calendar, standings, live or baseline"),
) -> None:
    """Run one refresh job once, ignoring its day-of-week gate."""
    ctx = _context()
    if job not in ctx.scheduler.job_names:
        raise typer.BadParameter(f"Unknown job {job!r}; choose from {', '.join(ctx.scheduler.job_names)}")

    async def main() -> None:
        try:
            await ctx.scheduler.run_once(job, force=True)
        finally:
            await ctx.aclose()

    asyncio.run(main())


@app.command()
def show(key: str = typer.Argument(..., help="Cache key, e.g. meetings_2026")) -> None:
    """Print a cached document and when it was written."""
    ctx = _context()
    entry = ctx.store.read_entry(key)
    if entry is None:
        typer.echo(f"{key}: not cached")
        raise typer.Exit(code=1)
    typer.echo(f"{key} (written {entry.timestamp})")
    typer.echo(json.dumps(entry.data, indent=2))


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", help="Skip confirmation.")) -> None:
    """Delete every cached document."""
    if not yes:
        typer.confirm("Delete all cached documents?", abort=True)
    ctx = _context()
    removed = ctx.store.reset()
    typer.echo(f"Deleted {removed} documents")
