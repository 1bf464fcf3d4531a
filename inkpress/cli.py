"""Command-line interface for Inkpress.

Running ``inkpress`` in a project root builds the site once. ``--watch``
keeps rebuilding after source changes and ``--serve`` serves the output
directory over HTTP; the two can be combined, in which case served pages
reload after every rebuild.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from . import __version__

console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    logging.getLogger("watchdog").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)


@click.command()
@click.version_option(version=__version__, prog_name="inkpress")
@click.option("--watch", is_flag=True, help="Rebuild when content, templates or static files change")
@click.option("--serve", is_flag=True, help="Serve the output directory over HTTP")
def cli(watch: bool, serve: bool):
    """Build the site in the current directory."""
    _setup_logging(verbose=False)
    project_root = Path.cwd()
    from .build import SiteBuilder
    from .config import load_config

    try:
        config = load_config(project_root)
        builder = SiteBuilder(config)
    except Exception as exc:
        click.echo(click.style("Startup failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None

    result = builder.build()
    click.echo(f"Built {len(result.written)} pages into {result.output_dir}")
    if not (watch or serve):
        return
    _run_dev(config, watch=watch, serve=serve)


def _run_dev(config, watch: bool, serve: bool) -> None:
    from .server import DevServer, SiteWatcher

    server = DevServer(config, live_reload=watch) if serve else None
    watcher = None
    if watch:
        watcher = SiteWatcher(
            config, on_rebuild=server.broadcast_reload if server else None
        )
        watcher.start()
    if server:
        server.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        if watcher:
            watcher.stop()
        if server:
            server.stop()


def main():
    """Entry point for the CLI application."""
    cli()
