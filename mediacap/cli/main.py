#!/usr/bin/env python3
"""Main CLI entry point for media capture using Typer.

This module provides the command-line interface: running the API server,
one-shot page captures, URL canonicalization and configuration helpers.
"""

import asyncio
import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from .. import __version__
from ..capture.classifier import classify
from ..config import ConfigLoadError, MediaCapConfig, load_config, save_default_config
from ..models.media import MediaReference
from ..sessions.service import CaptureService
from ..utils.url_canonicalizer import URLCanonicalizer


class ExitCode(IntEnum):
    """CLI exit codes."""
    SUCCESS = 0
    NOTHING_FOUND = 1
    CONFIG_ERROR = 3
    RUNTIME_ERROR = 4


# Create the main Typer app
app = typer.Typer(
    name="mediacap",
    help="Media capture - find the media a web page loads",
    add_completion=False,
    rich_markup_mode="rich"
)


def version_callback(value: bool):
    """Show version information."""
    if value:
        typer.echo(f"mediacap v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit")
    ] = None,
):
    """
    Media capture - render a page in a headless browser and report the
    video, audio and image resources it loads.
    """
    pass


@app.command(name="version")
def show_version():
    """Show version information."""
    typer.echo(f"mediacap v{__version__}")


def _configure_logging(log_level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_file: Optional[Path], env: Optional[str], overrides=None) -> MediaCapConfig:
    try:
        return load_config(str(config_file) if config_file else None, environment=env, overrides=overrides)
    except ConfigLoadError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)


@app.command()
def serve(
    host: Annotated[str, typer.Option("--host", help="Bind address")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Bind port")] = 8000,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration file")
    ] = None,
    env: Annotated[
        Optional[str],
        typer.Option("--env", "-e", help="Configuration environment")
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level")] = "info",
):
    """
    Run the capture API server.

    Examples:

        mediacap serve --port 8080

        mediacap serve --config config/mediacap.yaml --env development
    """
    import uvicorn

    from ..api.dependencies import set_capture_service

    _configure_logging(log_level)
    config = _load(config_file, env)
    set_capture_service(CaptureService(config))

    typer.echo(f"🚀 Serving on http://{host}:{port} (environment: {config.environment})")
    uvicorn.run("mediacap.api.main:app", host=host, port=port, log_level=log_level.lower())


def _format_reference(entry: MediaReference) -> str:
    marker = "★" if entry.trusted else " "
    playable = {True: "playable", False: "unplayable", None: ""}[entry.playable]
    return f"{marker} {entry.kind.value:<6} {entry.source:<17} {entry.display_url} {playable}".rstrip()


@app.command()
def capture(
    url: Annotated[str, typer.Argument(help="Page to capture")],
    dwell_ms: Annotated[
        Optional[int],
        typer.Option("--dwell-ms", help="How long the page stays open after navigation")
    ] = None,
    timeout_ms: Annotated[
        Optional[int],
        typer.Option("--timeout-ms", help="Navigation timeout")
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results as JSON")
    ] = False,
    headful: Annotated[
        bool,
        typer.Option("--headful", help="Run browser with GUI (for debugging)")
    ] = False,
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration file")
    ] = None,
    env: Annotated[
        Optional[str],
        typer.Option("--env", "-e", help="Configuration environment")
    ] = None,
    log_level: Annotated[str, typer.Option("--log-level", help="Logging level")] = "warning",
):
    """
    Capture one page and print the media it loaded, trusted hosts first.

    Examples:

        mediacap capture https://example.com/watch/123

        mediacap capture --dwell-ms 5000 --json https://example.com
    """
    _configure_logging(log_level)

    overrides = {}
    if dwell_ms is not None:
        overrides.setdefault("capture", {})["dwell_ms"] = dwell_ms
    if timeout_ms is not None:
        overrides.setdefault("capture", {})["navigation_timeout_ms"] = timeout_ms
    if headful:
        overrides["browser"] = {"headless": False}
    config = _load(config_file, env, overrides or None)

    async def _run() -> List[MediaReference]:
        service = CaptureService(config)
        try:
            return await service.capture_once(url)
        finally:
            await service.shutdown()

    try:
        results = asyncio.run(_run())
    except Exception as e:
        typer.echo(f"❌ Capture failed: {e}", err=True)
        raise typer.Exit(code=ExitCode.RUNTIME_ERROR.value)

    if json_output:
        typer.echo(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
    else:
        for entry in results:
            typer.echo(_format_reference(entry))
        typer.echo(f"\n{len(results)} media reference(s) found on {url}")

    if not results:
        raise typer.Exit(code=ExitCode.NOTHING_FOUND.value)


@app.command()
def canonicalize(
    urls: Annotated[List[str], typer.Argument(help="URLs to canonicalize")],
    config_file: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to YAML configuration file")
    ] = None,
):
    """Show the canonical form, trusted flag and media kind of URLs."""
    config = _load(config_file, None)
    canonicalizer = URLCanonicalizer.from_settings(config.urls)

    for raw in urls:
        result = canonicalizer.canonicalize(raw)
        kind = classify(None, result.canonical_url)
        trusted = "trusted" if result.trusted else "untrusted"
        typer.echo(f"{result.canonical_url}\t{trusted}\t{kind.value}")


@app.command(name="init-config")
def init_config(
    path: Annotated[Path, typer.Argument(help="Where to write the configuration")] = Path("config/mediacap.yaml"),
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing file")] = False,
):
    """Write a default configuration file."""
    if path.exists() and not force:
        typer.echo(f"❌ {path} already exists (use --force to overwrite)", err=True)
        raise typer.Exit(code=ExitCode.CONFIG_ERROR.value)
    save_default_config(str(path))
    typer.echo(f"✅ Wrote default configuration to {path}")


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    app()
