#!/usr/bin/env python3
"""
NewsQueue - Scheduled Content Ingestion
=======================================

Main application entry point with CLI interface for management and operation.

Usage:
    python main.py --help                          # Show all commands
    python main.py check-config                    # Validate configuration
    python main.py init-db                         # Initialize database
    python main.py load-sources sources.txt        # Fill the source catalogue
    python main.py subscribe 42 --source ...       # Create or update a subscriber
    python main.py serve                           # Run recurring ingestion
    python main.py run-once 42                     # Run one cycle now
    python main.py status                          # Show subscribers and queues
    python main.py next 42                         # Mark current item read, show next
"""

import signal
import sys
import threading
import logging
from pathlib import Path

import click
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from newsqueue.config.settings import NewsQueueSettings, load_settings
from newsqueue.context import AppContext
from newsqueue.database.models import Language, SubscriberUpdate, AGE_GROUPS, INTERVAL_CHOICES
from newsqueue.database.schema import DatabaseSchema
from newsqueue.delivery.formatting import FEED_CLEARED, ItemFormat, format_item
from newsqueue.utils.logging import configure_application_logging
from newsqueue.utils.exceptions import NewsQueueError
from newsqueue.utils.validators import SubscriberValidator

console = Console()
logger = logging.getLogger(__name__)


def _settings(ctx) -> NewsQueueSettings:
    """Load settings once per invocation and configure logging from them."""
    if "settings" not in ctx.obj:
        settings = load_settings(ctx.obj.get("env_file"))
        if ctx.obj.get("debug"):
            settings.debug = True
        configure_application_logging(
            log_level=settings.get_effective_log_level(),
            log_file=settings.logging.file_path,
            enable_console=settings.logging.console_logging,
            structured_logging=settings.logging.structured_logging,
            max_file_size_mb=settings.logging.max_file_size_mb,
            backup_count=settings.logging.backup_count,
        )
        ctx.obj["settings"] = settings
    return ctx.obj["settings"]


@click.group(invoke_without_command=True)
@click.option('--env-file', default=".env", show_default=True, help='Dotenv file to load')
@click.option('--debug', is_flag=True, help='Enable debug mode')
@click.pass_context
def cli(ctx, env_file, debug):
    """NewsQueue - scheduled per-subscriber content ingestion."""
    ctx.ensure_object(dict)
    ctx.obj['env_file'] = env_file
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and environment variables."""
    console.print("[bold blue]🔧 Checking NewsQueue Configuration[/bold blue]")

    try:
        settings = _settings(ctx)
    except NewsQueueError as e:
        console.print(f"[bold red]❌ Configuration error: {escape(str(e))}[/bold red]")
        sys.exit(1)

    table = Table(title="Configuration Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    table.add_row("Database", "✅ Valid", f"Path: {settings.database.path}, pool: {settings.database.pool_size}")
    table.add_row("Logging", "✅ Valid", f"Level: {settings.get_effective_log_level()}, file: {settings.logging.file_path}")
    table.add_row(
        "Telegram Bot",
        "✅ Valid" if settings.telegram.bot_token else "⚠️ Missing",
        "Bot token configured" if settings.telegram.bot_token else "Only --dry-run delivery available",
    )
    table.add_row(
        "Scheduler", "✅ Valid",
        f"Workers: {settings.scheduler.max_workers}, minute: {settings.scheduler.seconds_per_minute}s",
    )
    table.add_row(
        "Extraction", "✅ Valid",
        f"Timeout: {settings.extraction.request_timeout}s, retries: {settings.extraction.max_retries}",
    )

    console.print(table)


@cli.command()
@click.pass_context
def init_db(ctx):
    """Initialize database with schema."""
    console.print("[bold blue]🗄️ Initializing NewsQueue Database[/bold blue]")

    settings = _settings(ctx)
    schema = DatabaseSchema(settings.database.path)
    schema.create_tables()

    if not schema.verify_schema():
        console.print("[bold red]❌ Database schema verification failed[/bold red]")
        sys.exit(1)

    console.print(f"[bold green]✅ Database initialized at {settings.database.path}[/bold green]")


@cli.command()
@click.argument('path', required=False)
@click.pass_context
def load_sources(ctx, path):
    """Load source links (one per line) into the catalogue."""
    settings = _settings(ctx)
    path = path or settings.extraction.sources_file
    if not path:
        console.print("[bold red]❌ No sources file given or configured[/bold red]")
        sys.exit(1)

    with AppContext(settings, dry_run=True) as app:
        total = app.sources.load_from_file(path)

        table = Table(title=f"Source Catalogue ({total})")
        table.add_column("Name", style="cyan")
        table.add_column("Link")
        table.add_column("Subscribers", justify="right")
        for source in app.sources.list_sources():
            table.add_row(source.name, source.link, str(len(app.subscribers.subscribers_of(source.link))))
        console.print(table)


@cli.command()
@click.argument('subscriber_id')
@click.option('--source', help='Source link or catalogue name')
@click.option('--interval', type=int, help=f'Poll interval in minutes (offered: {INTERVAL_CHOICES})')
@click.option('--language', type=click.Choice([lang.value for lang in Language]))
@click.option('--age-group', type=click.Choice(AGE_GROUPS))
@click.pass_context
def subscribe(ctx, subscriber_id, source, interval, language, age_group):
    """Create a subscriber or update its configuration.

    A running ``serve`` process picks the change up on its next restart.
    """
    settings = _settings(ctx)

    with AppContext(settings, dry_run=True) as app:
        if source and not source.startswith(("http://", "https://")):
            link = app.sources.link_for(source)
            if link is None:
                console.print(f"[bold red]❌ Unknown source name: {escape(source)}[/bold red]")
                sys.exit(1)
            source = link

        fields = {
            "source_ref": source,
            "interval_minutes": interval,
            "language": language,
            "age_group": age_group,
        }
        try:
            update = SubscriberUpdate(
                subscriber_id=SubscriberValidator.validate_subscriber_id(subscriber_id),
                **{name: value for name, value in fields.items() if value is not None},
            )
        except (PydanticValidationError, NewsQueueError) as e:
            console.print(f"[bold red]❌ Invalid subscriber update: {escape(str(e))}[/bold red]")
            sys.exit(1)

        subscriber = app.coordinator.apply_update(update, reschedule=False)

        if not subscriber.is_complete:
            missing = subscriber.missing_fields(schedule_only=True)
            console.print(f"[yellow]Subscriber {subscriber.subscriber_id} saved; still missing: {', '.join(missing)}[/yellow]")
            return

        console.print(
            f"[bold green]✅ {subscriber.subscriber_id} follows {subscriber.source_ref} "
            f"every {subscriber.interval_minutes} min[/bold green]"
        )
        profile = subscriber.missing_fields()
        if profile:
            console.print(f"[dim]Profile not set: {', '.join(profile)}[/dim]")


@cli.command()
@click.option('--dry-run', is_flag=True, help='Log notifications instead of sending them')
@click.pass_context
def serve(ctx, dry_run):
    """Schedule every configured subscriber and run until interrupted."""
    settings = _settings(ctx)
    stop = threading.Event()

    def _request_stop(signum, frame):
        stop.set()

    signal.signal(signal.SIGINT, _request_stop)
    signal.signal(signal.SIGTERM, _request_stop)

    with AppContext(settings, dry_run=dry_run) as app:
        scheduled = app.coordinator.restore_all()
        console.print(f"[bold green]🚀 Serving {scheduled} subscribers (Ctrl+C to stop)[/bold green]")
        stop.wait()
        console.print("[yellow]Stopping scheduler...[/yellow]")

    console.print("[green]👋 NewsQueue stopped[/green]")


@cli.command()
@click.argument('subscriber_id')
@click.option('--dry-run', is_flag=True, help='Log notifications instead of sending them')
@click.pass_context
def run_once(ctx, subscriber_id, dry_run):
    """Run one ingestion cycle for a subscriber right now."""
    settings = _settings(ctx)

    with AppContext(settings, dry_run=dry_run) as app:
        config = app.subscribers.config_of(subscriber_id)
        if config is None:
            console.print(f"[bold red]❌ Subscriber {subscriber_id} is unknown or incomplete[/bold red]")
            sys.exit(1)

        result = app.pipeline.run_cycle(subscriber_id, config.source_ref)

        table = Table(title=f"Cycle for {subscriber_id}")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Outcome", result.outcome.value)
        table.add_row("Indexed", str(result.indexed))
        table.add_row("Stored", str(result.stored))
        table.add_row("Already known", str(result.skipped_existing))
        table.add_row("Failed", str(result.failed))
        table.add_row("Unread", str(result.unread_count))
        table.add_row("Duration", f"{result.duration_seconds:.2f}s")
        if result.error:
            table.add_row("Error", result.error)
        console.print(table)

        if not result.success:
            sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show subscribers, their configuration and unread counts."""
    settings = _settings(ctx)

    with AppContext(settings, dry_run=True) as app:
        info = app.db.get_database_info()

        table = Table(title=f"Subscribers ({info['table_counts'].get('subscribers', 0)})")
        table.add_column("Subscriber", style="cyan")
        table.add_column("Source")
        table.add_column("Interval")
        table.add_column("Language")
        table.add_column("Unread", style="green")

        for subscriber in app.subscribers.list_all():
            table.add_row(
                subscriber.subscriber_id,
                subscriber.source_ref or "-",
                f"{subscriber.interval_minutes} min" if subscriber.interval_minutes else "-",
                subscriber.language.value if subscriber.language else "-",
                str(app.delivery_queue.unread_count(subscriber.subscriber_id)),
            )

        console.print(table)
        console.print(
            f"Content items: {info['table_counts'].get('content_items', 0)}, "
            f"database size: {info['database_size_mb']:.2f} MB"
        )


@cli.command()
@click.argument('subscriber_id')
@click.option('--full', is_flag=True, help='Include the full story')
@click.pass_context
def show(ctx, subscriber_id, full):
    """Show the first unread item of a subscriber."""
    settings = _settings(ctx)

    with AppContext(settings, dry_run=True) as app:
        result = app.delivery_queue.first_unread(subscriber_id)
        console.print(format_item(result, ItemFormat.DETAILED if full else ItemFormat.BRIEF), markup=False)


@cli.command(name="next")
@click.argument('subscriber_id')
@click.pass_context
def next_item(ctx, subscriber_id):
    """Mark the current item read and show the next unread one."""
    settings = _settings(ctx)

    with AppContext(settings, dry_run=True) as app:
        result = app.delivery_queue.advance(subscriber_id)
        console.print(format_item(result), markup=False)


@cli.command()
@click.argument('subscriber_id')
@click.pass_context
def clear(ctx, subscriber_id):
    """Mark every unread item of a subscriber read."""
    settings = _settings(ctx)

    with AppContext(settings, dry_run=True) as app:
        app.delivery_queue.mark_all_read(subscriber_id)
        console.print(FEED_CLEARED)


if __name__ == "__main__":
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]👋 NewsQueue interrupted by user[/yellow]")
        sys.exit(130)
    except NewsQueueError as e:
        console.print(f"\n[bold red]❌ {escape(str(e))}[/bold red]")
        sys.exit(1)
