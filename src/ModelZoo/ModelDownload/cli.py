# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.cli",
#   "purpose": "Typer CLI for listing, pulling, and verifying pretrained models",
#   "sections": [
#     {"id": "clicontext", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "list-models", "name": "list_models", "anchor": "function-list-models", "kind": "function"},
#     {"id": "pull", "name": "pull", "anchor": "function-pull", "kind": "function"},
#     {"id": "pull-url", "name": "pull_url", "anchor": "function-pull-url", "kind": "function"},
#     {"id": "verify", "name": "verify", "anchor": "function-verify", "kind": "function"},
#     {"id": "cache", "name": "cache", "anchor": "function-cache", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Command line interface for the model downloader.

Examples:
    $ modelfetch list --language en
    $ modelfetch pull en sentence-detector
    $ modelfetch pull-url https://example.org/models/en-ud-ewt-tokens.bin
    $ modelfetch verify https://example.org/models/en-ud-ewt-tokens.bin
    $ modelfetch cache
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .acquire import ModelAcquirer
from .catalog import Catalog, load_catalog
from .errors import ModelDownloadError, UserConfigError
from .kinds import ModelKind
from .logging_utils import setup_logging
from .settings import ResolvedConfig, get_default_config, load_config

_console = Console()
_err_console = Console(stderr=True)


class CliContext:
    """Shared state for one CLI invocation: settings, console, and verbosity."""

    def __init__(self, config: Optional[Path] = None, verbosity: int = 0) -> None:
        self.config_path = config
        self.verbosity = verbosity
        self.console = _console
        self.settings: ResolvedConfig = (
            load_config(config) if config is not None else get_default_config()
        )

    def acquirer(self, catalog: Optional[Catalog] = None) -> ModelAcquirer:
        return ModelAcquirer(catalog, config=self.settings)

    def log_debug(self, message: str) -> None:
        """Print ``message`` when running with ``-vv``."""

        if self.verbosity >= 2:
            self.console.print(f"[dim]DEBUG: {message}[/dim]")


app = typer.Typer(
    name="modelfetch",
    help="Discover, download, and verify pretrained NLP models",
    no_args_is_help=True,
)

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    """Return the context initialised by the app callback."""

    if _context is None:
        raise RuntimeError("CLI context not initialized")
    return _context


def _fail(message: str) -> NoReturn:
    _err_console.print(f"[red]✗ {escape(message)}[/red]", soft_wrap=True)
    raise typer.Exit(1)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"modelfetch {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="MODELFETCH_CONFIG",
        help="Path to a YAML configuration file",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Model downloader CLI. Global options go before the subcommand."""

    global _context

    try:
        _context = CliContext(config=config, verbosity=verbosity)
    except UserConfigError as exc:
        _fail(str(exc))

    if verbosity:
        logging_config = _context.settings.logging
        setup_logging(
            level="DEBUG" if verbosity >= 2 else "INFO",
            retention_days=logging_config.retention_days,
            max_log_size_mb=logging_config.max_log_size_mb,
        )
    _context.log_debug(f"Config file: {config}")
    _context.log_debug(f"Config hash: {_context.settings.config_hash()}")


@app.command("list")
def list_models(
    language: Optional[str] = typer.Option(
        None, "--language", "-l", help="Only show models for this language code"
    ),
    format_output: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """List the models published on the remote index."""

    ctx = get_context()
    try:
        catalog = load_catalog(ctx.settings)
    except ModelDownloadError as exc:
        _fail(str(exc))

    rows = [row for row in catalog.items() if language is None or row[0] == language]
    if format_output == "json":
        payload = {}
        for lang, kind, url in rows:
            payload.setdefault(lang, {})[kind.name] = url
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
    else:
        table = Table(title=f"Models at {catalog.source_url}")
        table.add_column("Language", no_wrap=True)
        table.add_column("Kind", no_wrap=True)
        table.add_column("URL", overflow="fold")
        for lang, kind, url in rows:
            table.add_row(lang, kind.name, url)
        ctx.console.print(table)

    if not catalog.complete:
        _err_console.print("[yellow]Model index could not be read; catalog is empty.[/yellow]")


@app.command()
def pull(
    language: str = typer.Argument(..., help="ISO language code, e.g. en"),
    kind: str = typer.Argument(..., help="Model kind, e.g. tokenizer or sentence-detector"),
) -> None:
    """Download and verify the catalogued model for LANGUAGE and KIND."""

    ctx = get_context()
    try:
        model_kind = ModelKind.parse(kind)
    except ValueError as exc:
        _fail(str(exc))
    try:
        acquirer = ctx.acquirer(load_catalog(ctx.settings))
        artifact = acquirer.fetch(acquirer.resolve(language, model_kind))
    except ModelDownloadError as exc:
        _fail(str(exc))
    typer.echo(str(artifact.local_path))


@app.command("pull-url")
def pull_url(url: str = typer.Argument(..., help="Model artifact URL")) -> None:
    """Download and verify the model at URL."""

    ctx = get_context()
    try:
        artifact = ctx.acquirer().fetch(url)
    except ModelDownloadError as exc:
        _fail(str(exc))
    typer.echo(str(artifact.local_path))


@app.command()
def verify(
    url: str = typer.Argument(..., help="URL of a model already in the cache"),
    evict: bool = typer.Option(
        False, "--evict", help="Delete the cached file when verification fails"
    ),
) -> None:
    """Re-check a cached model against its published SHA-512 digest."""

    ctx = get_context()
    try:
        artifact = ctx.acquirer().verify_cached(url, evict_on_mismatch=evict)
    except ModelDownloadError as exc:
        _fail(str(exc))
    ctx.console.print(f"[green]✓[/green] {artifact.local_path}")


@app.command()
def cache() -> None:
    """List the models mirrored in the local cache."""

    ctx = get_context()
    acquirer = ctx.acquirer()
    table = Table(title=f"Cached models in {acquirer.cache.root}")
    table.add_column("File", no_wrap=True)
    table.add_column("Bytes", justify="right")
    for path in acquirer.cache.artifacts():
        table.add_row(path.name, str(path.stat().st_size))
    ctx.console.print(table)


__all__ = ["app", "CliContext", "get_context", "main"]
