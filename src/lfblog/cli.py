"""Command line interface for lfblog."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from lfblog.config import DEFAULT_CONFIG_FILE, AppConfig
from lfblog.errors import LfBlogError
from lfblog.index.compiler import Compiler
from lfblog.index.search import Searcher
from lfblog.index.storage import SQLiteStorage

console = Console()
app = typer.Typer(help="lfblog - compile a content tree into a servable page snapshot")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _ensure_db_parent(db_path: Path) -> None:
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _load_config(
    config_path: Path,
    *,
    content: Optional[Path] = None,
    db: Optional[Path] = None,
    prune: Optional[bool] = None,
) -> AppConfig:
    try:
        config = AppConfig.load(config_path)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if content is not None:
        config.content_dir = content
    if db is not None:
        config.db_path = db
    if prune is not None:
        config.prune = prune
    return config


def _open_existing_store(config: AppConfig) -> SQLiteStorage:
    resolved_db = config.resolve_db_path(Path.cwd())
    if not resolved_db.exists():
        raise typer.BadParameter(f"Database not found: {resolved_db}")
    return SQLiteStorage(resolved_db)


@app.command("compile")
def compile_site(
    config_path: Path = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="TOML config file"),
    content: Optional[Path] = typer.Option(None, "--content", help="Content directory"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    prune: Optional[bool] = typer.Option(
        None, "--prune/--no-prune", help="Delete pages whose source was removed"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Scan the content directory and store the compiled pages."""
    _setup_logging(verbose)
    config = _load_config(config_path, content=content, db=db, prune=prune)

    resolved_db = config.resolve_db_path(Path.cwd())
    _ensure_db_parent(resolved_db)

    console.print(f"Compiling [bold]{config.content_dir}[/bold] into [bold]{resolved_db}[/bold]...")
    try:
        store = SQLiteStorage(resolved_db)
        try:
            result = Compiler.from_config(config, store, base_dir=Path.cwd()).compile()
        finally:
            store.close()
    except LfBlogError as exc:
        console.print(f"[red]Compilation failed ({exc.kind.value}): {exc}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"Categories: {result.total_categories}, items: {result.total_items}, "
        f"attachments: {result.total_attachments}, pages: {result.total_pages}"
    )
    if config.prune:
        console.print(
            f"Pruned {result.pruned_pages} pages and {result.pruned_attachments} attachments."
        )


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    config_path: Path = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="TOML config file"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
    limit: int = typer.Option(20, help="Number of results to display"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Search compiled pages by title and content."""
    _setup_logging(verbose)
    config = _load_config(config_path, db=db)
    store = _open_existing_store(config)
    try:
        searcher = Searcher(store)
        results = searcher.search(query, limit=limit)
        total = searcher.count(query)
    finally:
        store.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Slug")
    table.add_column("Type")
    table.add_column("Title")
    table.add_column("Snippet")

    for result in results:
        table.add_row(result.slug, result.page_type, result.title, result.snippet[:180])

    console.print(table)
    console.print(f"Showing {len(results)} of {total} matches.")


@app.command()
def stats(
    config_path: Path = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="TOML config file"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Show counts of stored pages and attachments."""
    config = _load_config(config_path, db=db)
    store = _open_existing_store(config)
    try:
        site_stats = store.get_stats()
    finally:
        store.close()

    table = Table(show_header=False)
    table.add_row("Categories", str(site_stats.total_categories))
    table.add_row("Items", str(site_stats.total_items))
    table.add_row("Attachments", str(site_stats.total_attachments))
    table.add_row("Last compiled", site_stats.last_compiled or "never")
    console.print(table)


@app.command()
def serve(
    config_path: Path = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="TOML config file"),
    host: Optional[str] = typer.Option(None, help="Host interface"),
    port: Optional[int] = typer.Option(None, help="Server port"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database path"),
) -> None:
    """Compile on startup and serve the stored pages."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - defensive
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    from lfblog.web.app import create_app

    config = _load_config(config_path, db=db)
    if host is not None:
        config.host = host
    if port is not None:
        config.port = port
    _ensure_db_parent(config.resolve_db_path(Path.cwd()))

    console.print(f"Starting server on http://{config.host}:{config.port}")
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        reload=False,
        log_level="info",
    )


if __name__ == "__main__":  # pragma: no cover
    app()
