#!/usr/bin/env python3
"""
AuthorFeed - Curated Author Feed Aggregation
============================================

Main application entry point with CLI interface for management and testing.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py seed                      # Seed built-in curated sources
    python main.py list-sources              # Show curated sources
    python main.py show-posts 1              # Show cached posts of a source
    python main.py check-feed URL [URL...]   # Run the fetch strategy chain
    python main.py refresh                   # Run one fleet pass and wait
    python main.py serve                     # Run fleet passes on schedule
"""

import sys
import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from authorfeed.config.settings import get_settings
from authorfeed.database.schema import DatabaseSchema
from authorfeed.database.connection import get_db_manager
from authorfeed.utils.logging import configure_application_logging
from authorfeed.utils.exceptions import AuthorFeedError

console = Console()
logger = logging.getLogger(__name__)


def _setup_logging(debug: bool = False):
    """Configure logging from settings and return them."""
    settings = get_settings()
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )
    return settings


def _truncate(text: str, width: int) -> str:
    return text[:width - 3] + "..." if len(text) > width else text


def _get_db(settings):
    return get_db_manager(settings.database.path, settings.database.pool_size)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, debug):
    """AuthorFeed - curated author feed aggregation."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
def check_config():
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking AuthorFeed Configuration[/bold blue]")

    try:
        settings = get_settings()

        table = Table(title="Configuration Status")
        table.add_column("Component", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Details")

        checks = [
            ("Database", _check_database_config),
            ("Logging", _check_logging_config),
            ("Fetching", _check_fetch_config),
            ("Retention", _check_retention_config),
            ("Scheduler", _check_scheduler_config),
        ]

        all_passed = True
        for name, check_func in checks:
            status, details = check_func(settings)
            table.add_row(name, "✅ Valid" if status else "❌ Invalid", details)
            all_passed = all_passed and status

        console.print(table)

        if all_passed:
            console.print("[bold green]✅ All configuration checks passed![/bold green]")
        else:
            console.print("[bold red]❌ Configuration validation failed[/bold red]")
            sys.exit(1)

    except AuthorFeedError as e:
        console.print(f"[bold red]❌ Configuration error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
def init_db():
    """Initialize database schema."""
    console.print("[bold blue]🗄️ Initializing AuthorFeed Database[/bold blue]")

    try:
        settings = get_settings()
        schema = DatabaseSchema(settings.database.path)
        schema.create_tables()

        if not schema.verify_schema():
            console.print("[bold red]❌ Database schema verification failed[/bold red]")
            sys.exit(1)

        console.print("[bold green]✅ Database initialized successfully![/bold green]")

        info = _get_db(settings).get_database_info()
        info_table = Table(title="Database Information")
        info_table.add_column("Property", style="cyan")
        info_table.add_column("Value", style="green")

        info_table.add_row("Database Path", settings.database.path)
        info_table.add_row("Size", f"{info['database_size_mb']:.2f} MB")
        for table_name, count in info['table_counts'].items():
            info_table.add_row(f"Rows in {table_name}", str(count))
        info_table.add_row("Last Refresh", info["last_refreshed_at"] or "Never")

        console.print(info_table)

    except AuthorFeedError as e:
        console.print(f"[bold red]❌ Database initialization error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
def seed():
    """Upsert the built-in curated sources."""
    from authorfeed.database.seed import seed_sources
    from authorfeed.storage.source_repository import SourceRepository

    console.print("[bold blue]🌱 Seeding curated sources[/bold blue]")

    try:
        settings = get_settings()
        DatabaseSchema(settings.database.path).create_tables()
        repository = SourceRepository(_get_db(settings))

        ids = seed_sources(repository)
        console.print(f"[bold green]✅ Upserted {len(ids)} curated sources[/bold green]")

    except AuthorFeedError as e:
        console.print(f"[bold red]❌ Seed error: {e}[/bold red]")
        sys.exit(1)


@cli.command()
def list_sources():
    """Show curated sources with their feeds and refresh status."""
    from authorfeed.services.catalog_service import CatalogService

    console.print("[bold blue]📚 Curated Sources[/bold blue]")

    try:
        settings = get_settings()
        catalog = CatalogService(_get_db(settings), settings)
        sources = catalog.list_sources()

        if not sources:
            console.print("[yellow]⚠️ No curated sources found, run 'seed' first[/yellow]")
            return

        table = Table(title=f"{len(sources)} sources")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Feeds", style="blue")
        table.add_column("Cached", style="yellow")
        table.add_column("Last Refreshed")

        for source in sources:
            table.add_row(
                str(source.id),
                source.name,
                "\n".join(_truncate(url, 50) for url in source.feed_urls) or "-",
                str(catalog.posts.count_by_source(source.id)),
                str(source.last_refreshed_at) if source.last_refreshed_at else "Never",
            )

        console.print(table)

    except AuthorFeedError as e:
        console.print(f"[bold red]❌ Error listing sources: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('source_id', type=int)
@click.option('--page', default=1, help='Page number (default: 1)')
@click.option('--limit', default=20, help='Posts per page (default: 20)')
def show_posts(source_id, page, limit):
    """Show cached posts of one curated source, newest first."""
    from authorfeed.services.catalog_service import CatalogService

    try:
        settings = get_settings()
        catalog = CatalogService(_get_db(settings), settings)
        source = catalog.get_source(source_id)
        result = catalog.list_source_posts(source_id, page=page, limit=limit)

        console.print(
            f"[bold blue]📰 {source.name}[/bold blue] "
            f"page {result.page}/{max(result.total_pages, 1)} ({result.total} posts)"
        )

        table = Table()
        table.add_column("Published", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("Link", style="blue")

        for post in result.items:
            table.add_row(
                post.published_at.strftime("%Y-%m-%d %H:%M"),
                _truncate(post.title, 50),
                _truncate(post.link, 60),
            )

        console.print(table)

    except AuthorFeedError as e:
        console.print(f"[bold red]❌ {e.user_message}: {e}[/bold red]")
        sys.exit(1)


@cli.command()
@click.argument('urls', nargs=-1, required=True)
@click.pass_context
def check_feed(ctx, urls):
    """Run the full fetch strategy chain against feed URLs."""
    from authorfeed.ingestion.feed_fetcher import FeedFetcher

    settings = _setup_logging(ctx.obj.get('debug'))

    async def run_checks():
        fetcher = FeedFetcher(settings)
        async with fetcher.get_session() as session:
            for url in urls:
                console.print(f"\n[bold blue]📡 Testing feed: {url}[/bold blue]")
                items = await fetcher.fetch(url, session=session)
                console.print(f"Items fetched: {len(items)}")

                if items:
                    sample = items[0]
                    console.print("  Sample item:")
                    console.print(f"   title: {sample.title}")
                    console.print(f"   link : {sample.link}")
                    console.print(f"   date : {sample.published_at.isoformat()}")
                else:
                    console.print("  [yellow]No items parsed.[/yellow]")

    asyncio.run(run_checks())
    console.print("\n[bold green]Feed check complete.[/bold green]")


@cli.command()
@click.pass_context
def refresh(ctx):
    """Run one fleet pass and wait for every source to finish."""
    from authorfeed.scheduler.fleet_scheduler import build_fleet_scheduler

    settings = _setup_logging(ctx.obj.get('debug'))
    console.print("[bold blue]🔄 Refreshing all curated sources[/bold blue]")

    async def run_pass():
        scheduler = build_fleet_scheduler(settings)
        return await scheduler.run_fleet_pass(wait=True)

    result = asyncio.run(run_pass())

    if result.error:
        console.print(f"[bold red]❌ Fleet pass failed: {result.error}[/bold red]")
        sys.exit(1)

    table = Table(title="Refresh Results")
    table.add_column("Source", style="cyan")
    table.add_column("Feeds", style="blue")
    table.add_column("Fetched")
    table.add_column("Unique")
    table.add_column("Retained", style="green")
    table.add_column("Evicted", style="yellow")
    table.add_column("Status")

    for item in result.results:
        if item.skipped:
            status = "⏭️ no feeds"
        elif item.success:
            status = "✅"
        else:
            status = f"❌ {_truncate(item.error, 40)}"
        table.add_row(
            item.source_name,
            f"{item.feeds_with_items}/{item.feeds_attempted}",
            str(item.items_fetched),
            str(item.unique_items),
            str(item.retained),
            str(item.evicted),
            status,
        )

    console.print(table)
    if result.failed_sources:
        console.print(f"[yellow]⚠️ {len(result.failed_sources)} sources failed[/yellow]")


@cli.command()
@click.pass_context
def serve(ctx):
    """Run fleet passes on the configured schedule until interrupted."""
    from authorfeed.scheduler.fleet_scheduler import run_service

    settings = _setup_logging(ctx.obj.get('debug'))
    console.print(
        f"[bold blue]⏰ Refreshing curated sources every "
        f"{settings.scheduler.interval_minutes} minutes (Ctrl+C to stop)[/bold blue]"
    )

    try:
        asyncio.run(run_service(settings))
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 Scheduler stopped[/yellow]")


# Helper functions for configuration checks
def _check_database_config(settings) -> tuple[bool, str]:
    """Check database configuration."""
    try:
        db_path = Path(settings.database.path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Path: {settings.database.path}, Pool: {settings.database.pool_size}"
    except OSError as e:
        return False, str(e)


def _check_logging_config(settings) -> tuple[bool, str]:
    """Check logging configuration."""
    try:
        if settings.logging.file_path:
            log_path = Path(settings.logging.file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
        return True, f"Level: {settings.logging.level.value}, Console: {settings.logging.console_logging}"
    except OSError as e:
        return False, str(e)


def _check_fetch_config(settings) -> tuple[bool, str]:
    fetch = settings.fetch
    return True, f"Timeout: {fetch.request_timeout}s, Suffixes: {', '.join(fetch.feed_suffixes)}"


def _check_retention_config(settings) -> tuple[bool, str]:
    retention = settings.retention
    if retention.hard_cap < retention.window_size:
        return False, f"Hard cap {retention.hard_cap} below window {retention.window_size}"
    return True, f"Window: {retention.window_size}, Hard cap: {retention.hard_cap}"


def _check_scheduler_config(settings) -> tuple[bool, str]:
    scheduler = settings.scheduler
    return True, (
        f"Every {scheduler.interval_minutes} min, aligned: {scheduler.align_to_clock}, "
        f"skip if running: {scheduler.skip_if_running}"
    )


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 AuthorFeed interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[bold red]❌ Unexpected error: {e}[/bold red]")
        sys.exit(1)
