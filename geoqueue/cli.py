from __future__ import annotations

import asyncio
import importlib.metadata as md
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import typer
from rich.console import Console

from .config import GeoQueueConfig, LoggingConfig, load_config, load_or_default, resolve_config_path
from .core.identity import get_or_create_device_id
from .core.tracking import BackgroundTracker, ConfigPermissionProvider, LocationTask
from .domain.models import LocationPoint
from .errors import PermissionDeniedError
from .infrastructure.gps.gpsd_client import AsyncGPSClient, MockGPSClient
from .infrastructure.storage.kv_store import KeyValueStore
from .infrastructure.uplink.client import LocationClient
from .infrastructure.uplink.queue import LocationQueue

# Typer application: tests import this
app = typer.Typer(no_args_is_help=True, add_completion=False, help="GeoQueue CLI")
console = Console()


def _configure_logging(cfg: LoggingConfig) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if cfg.file is not None:
        cfg.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(cfg.file, encoding="utf-8"))
    logging.basicConfig(
        level=getattr(logging, cfg.level),
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=handlers,
        force=True,
    )


def _load(config: Path | None) -> GeoQueueConfig:
    try:
        cfg = load_or_default(config)
    except (OSError, ValueError) as exc:
        console.print(f"[red]Config error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    _configure_logging(cfg.logging)
    return cfg


@asynccontextmanager
async def _open_queue(cfg: GeoQueueConfig) -> AsyncIterator[tuple[KeyValueStore, LocationQueue]]:
    async with KeyValueStore(cfg.storage.db_path) as store:
        device_id = await get_or_create_device_id(store, cfg.storage.device_id_key)
        async with LocationClient(cfg.uplink, device_id=device_id) as client:
            yield store, LocationQueue(store, client, cfg.storage.queue_key)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Entry point for `geoqueue` command."""
    if ctx.invoked_subcommand is None:
        console.print("GeoQueue CLI - use `geoqueue --help` to see commands.")
        raise typer.Exit(code=0)


@app.command()
def version() -> None:
    """Print version information."""
    try:
        console.print(f"geoqueue {md.version('geoqueue')}")
    except md.PackageNotFoundError:
        from . import __version__

        console.print(f"geoqueue {__version__}")
    raise typer.Exit(code=0)


@app.command(name="config-validate")
def config_validate(path: Path = typer.Argument(Path("configs/geoqueue.yml"))) -> None:
    """Validate and show resolved configuration."""
    resolved = resolve_config_path(path)
    console.print(f"Using config: {resolved}")
    try:
        cfg = load_config(resolved)
    except Exception as exc:
        console.print(f"Config validation failed: {exc}")
        raise typer.Exit(code=1) from exc
    console.print("Config OK.")
    console.print(f"- storage: {cfg.storage.db_path} (key {cfg.storage.queue_key})")
    console.print(f"- endpoint: {cfg.uplink.endpoint}")
    console.print(f"- gps: {'mock' if cfg.gps.mock_mode else f'{cfg.gps.host}:{cfg.gps.port}'}")


@app.command(name="config-which")
def config_which(config: Path | None = typer.Option(None, "--config", "-c")) -> None:
    """Print resolved config path by priority rules."""
    console.print(str(resolve_config_path(config)))


@app.command()
def run(
    config: Path | None = typer.Option(None, "--config", "-c"),
    mock: bool = typer.Option(False, "--mock", help="Use simulated GPS fixes"),
    max_fixes: int | None = typer.Option(None, "--max-fixes", min=1),
) -> None:
    """Start background location tracking."""
    cfg = _load(config)
    use_mock = mock or cfg.gps.mock_mode

    async def _run() -> tuple[int, int]:
        async with _open_queue(cfg) as (_store, queue):
            source = MockGPSClient.from_config(cfg.gps) if use_mock else AsyncGPSClient(cfg.gps)
            tracker = BackgroundTracker(
                LocationTask(queue),
                source,
                ConfigPermissionProvider(cfg.tracking),
                cfg.tracking,
            )
            await tracker.start(max_fixes=max_fixes)
            try:
                accepted = await tracker.wait()
            finally:
                await tracker.stop()
            return accepted, await queue.count()

    console.print(f"Tracking to {cfg.uplink.endpoint} ({'mock' if use_mock else 'gpsd'} source)")
    try:
        accepted, pending = asyncio.run(_run())
    except PermissionDeniedError as exc:
        console.print(f"[red]Location access denied:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    except KeyboardInterrupt:
        console.print("Tracking stopped.")
        return
    console.print({"accepted_fixes": accepted, "pending": pending})


@app.command()
def enqueue(
    latitude: float = typer.Argument(..., min=-90, max=90),
    longitude: float = typer.Argument(..., min=-180, max=180),
    timestamp: int | None = typer.Option(None, "--timestamp", help="Epoch milliseconds"),
    config: Path | None = typer.Option(None, "--config", "-c"),
) -> None:
    """Append one point to the pending queue."""
    cfg = _load(config)
    if timestamp is None:
        point = LocationPoint.now(latitude, longitude)
    else:
        point = LocationPoint(latitude=latitude, longitude=longitude, timestamp=timestamp)

    async def _enqueue() -> int:
        async with _open_queue(cfg) as (_store, queue):
            return await queue.enqueue([point])

    console.print({"queued": 1, "pending": asyncio.run(_enqueue())})


@app.command()
def flush(config: Path | None = typer.Option(None, "--config", "-c")) -> None:
    """Try to deliver the pending queue once."""
    cfg = _load(config)

    async def _flush() -> tuple[int, bool]:
        async with _open_queue(cfg) as (_store, queue):
            pending = await queue.count()
            delivered = await queue.flush() if pending else False
            return pending, delivered

    pending, delivered = asyncio.run(_flush())
    if not pending:
        console.print("Queue empty, nothing to flush.")
    elif delivered:
        console.print(f"[green]Delivered {pending} points.[/green]")
    else:
        console.print(f"[yellow]Delivery failed, {pending} points stay queued.[/yellow]")
        raise typer.Exit(code=2)


@app.command()
def status(config: Path | None = typer.Option(None, "--config", "-c")) -> None:
    """Show queue length, device id and endpoint."""
    cfg = _load(config)

    async def _status() -> dict:
        async with _open_queue(cfg) as (store, queue):
            points = await queue.pending()
            return {
                "device_id": await get_or_create_device_id(store, cfg.storage.device_id_key),
                "pending": len(points),
                "oldest": points[0].timestamp if points else None,
                "newest": points[-1].timestamp if points else None,
                "endpoint": cfg.uplink.endpoint,
                "storage": str(cfg.storage.db_path),
            }

    console.print(asyncio.run(_status()))


@app.command()
def clear(
    config: Path | None = typer.Option(None, "--config", "-c"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Drop all pending points without sending them."""
    cfg = _load(config)
    if not yes and not typer.confirm("Drop all pending points?"):
        raise typer.Exit(code=1)

    async def _clear() -> int:
        async with _open_queue(cfg) as (_store, queue):
            return await queue.clear()

    console.print({"dropped": asyncio.run(_clear())})


def launch() -> None:
    """Entry point when executed as a module/script."""
    cli()


# Click command export (entrypoint)
cli = typer.main.get_command(app)

__all__ = ["app", "cli"]

if __name__ == "__main__":
    launch()
