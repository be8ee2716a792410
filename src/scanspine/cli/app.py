"""
Root Typer application for the scanspine CLI.

    scanspine scan ./project https://github.com/org/repo --no-backend regexp
    scanspine scan pkg.tar.gz --json
    scanspine backends
"""

from __future__ import annotations

import asyncio
import json
import signal
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as pkg_version
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table
from typer import Typer

from scanspine import __version__
from scanspine.core.cache import DirectoryCache, InMemoryCache, VerdictCache
from scanspine.core.errors import ConfigError
from scanspine.core.logging import configure_logging, get_logger
from scanspine.core.settings import ScanSettings, load_settings
from scanspine.execution.engine import ScanEngine
from scanspine.execution.results import ScanResult
from scanspine.framework.backends import create_backends, get_backend_class, list_backends
from scanspine.framework.backends.protocol import BaseBackend
from scanspine.framework.iterators.protocol import BaseIterator
from scanspine.framework.resolver import resolve_inputs
from scanspine.licenses.license import join_licenses
from scanspine.licenses.registry import LicenseRegistry

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

EXIT_ERRORS = 1
EXIT_CONFIG = 2
EXIT_CANCELLED = 130

app = Typer(
    name="scanspine",
    help="scanspine: find the licenses in paths, git repositories and archives.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        try:
            v = pkg_version("scanspine")
        except PackageNotFoundError:
            v = __version__
        typer.echo(f"scanspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """scanspine CLI: scan sources for license claims."""


# ── scan ─────────────────────────────────────────────────────────────────


async def _run_scan(
    settings: ScanSettings,
    roots: list[BaseIterator],
    backends: list[BaseBackend],
    cache: VerdictCache,
) -> ScanResult:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        # no signal handlers off the main thread or on Windows loops
        pass
    try:
        return await ScanEngine(settings).run(roots, backends, cache, cancel=cancel)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def _render(result: ScanResult) -> None:
    aggregate = result.aggregate
    table = Table(title="Licenses")
    table.add_column("Source", style="cyan", overflow="fold")
    table.add_column("Licenses", style="green")
    table.add_column("Errors", justify="right")
    for source in aggregate.roots():
        licenses = aggregate.licenses_for(source, recursive=True)
        errors = aggregate.errors_for(source, recursive=True)
        table.add_row(
            source,
            join_licenses(licenses) or "[dim]none found[/dim]",
            f"[red]{len(errors)}[/red]" if errors else "0",
        )
    console.print(table)

    if result.errors:
        errors = Table(title="Errors")
        errors.add_column("Source", overflow="fold")
        errors.add_column("Backend")
        errors.add_column("Message", style="red", overflow="fold")
        for error in result.errors:
            errors.add_row(error.context.item or error.context.source or "", error.context.backend or "", error.message)
        err_console.print(errors)

    if result.cancelled:
        err_console.print("[yellow]Scan cancelled; results are partial.[/yellow]")


@app.command()
def scan(
    inputs: list[str] = typer.Argument(..., help="Paths, git URLs, or https archive URLs."),
    yes_backend: list[str] = typer.Option([], "--yes-backend", "-y", help="Run only these backends."),
    no_backend: list[str] = typer.Option([], "--no-backend", "-n", help="Run every backend except these."),
    config: Path | None = typer.Option(None, "--config", "-c", help="JSON config file."),  # noqa: UP007
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Persistent verdict cache directory."),  # noqa: UP007
    regexp_rules: Path | None = typer.Option(None, "--regexp-rules", help="JSON rules for the regexp backend."),  # noqa: UP007
    allow_http: bool | None = typer.Option(None, "--allow-http/--no-allow-http", help="Permit plain http URLs."),  # noqa: UP007
    max_concurrency: int | None = typer.Option(None, "--max-concurrency", help="In-flight backend scans."),  # noqa: UP007
    as_json: bool = typer.Option(False, "--json", help="Output the full result as JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors."),
) -> None:
    """Scan INPUTS and report the licenses found under each."""
    try:
        settings = load_settings(
            config,
            cache_dir=cache_dir,
            regexp_path=regexp_rules,
            allow_http=allow_http,
            max_concurrency=max_concurrency,
        )
        configure_logging(
            level="ERROR" if quiet else settings.log_level,
            json_format=settings.log_format == "json",
            service="scanspine",
        )
        registry = LicenseRegistry.load(settings.registry_path) if settings.registry_path else None
        backends = create_backends(settings, yes=yes_backend, no=no_backend, registry=registry)
        roots = resolve_inputs(inputs, settings)
        cache: VerdictCache = DirectoryCache(settings.cache_dir) if settings.cache_dir else InMemoryCache()
        result = asyncio.run(_run_scan(settings, roots, backends, cache))
    except ConfigError as e:
        err_console.print(f"[bold red]Error[/bold red]: {e.message}")
        raise typer.Exit(code=EXIT_CONFIG) from e

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        _render(result)

    if result.cancelled:
        raise typer.Exit(code=EXIT_CANCELLED)
    if result.errors:
        raise typer.Exit(code=EXIT_ERRORS)


# ── backends ─────────────────────────────────────────────────────────────


@app.command("backends")
def backends_cmd(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON."),
) -> None:
    """List registered backends."""
    rows = []
    for name in list_backends():
        cls = get_backend_class(name)
        rows.append({"name": name, "default": cls.default_enabled, "description": cls.description})

    if as_json:
        typer.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="Backends")
    table.add_column("Name", style="cyan")
    table.add_column("Default")
    table.add_column("Description")
    for row in rows:
        table.add_row(row["name"], "on" if row["default"] else "off", row["description"])
    console.print(table)
