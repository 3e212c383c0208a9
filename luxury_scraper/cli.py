"""Command-line interface for the luxury estate scraper."""

import asyncio
import signal
from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from luxury_scraper.config import get_settings
from luxury_scraper.context import AppContext
from luxury_scraper.models.database import Database
from luxury_scraper.scrapers.dispatcher import WorkDispatcher
from luxury_scraper.storage import export_to_csv, get_image_count, get_property_count
from luxury_scraper.utils.logs import setup_logging
from luxury_scraper.worker import QueueWorker

app = typer.Typer(
    name="lxscraper",
    help="Queue-driven scraper for luxuryestate.com listings",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Configure logging before any command runs."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


def _install_signal_handlers(stop) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop)
        except (NotImplementedError, RuntimeError):
            # Not available on this platform; Ctrl+C raises KeyboardInterrupt instead
            pass


@app.command()
def init():
    """Initialize the database."""
    Database(get_settings().database_url).init()
    console.print("[green]✓ Database initialized[/green]")


@app.command()
def dispatch(
    max_pages: Optional[int] = typer.Option(
        None,
        "--pages", "-p",
        help="Maximum search result pages to walk",
    ),
    start_page: int = typer.Option(1, "--start-page", help="First results page"),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Discover URLs without publishing them",
    ),
):
    """Discover listing URLs and publish them to the work queue."""
    settings = get_settings()

    console.print(f"[bold blue]Dispatching from {settings.search_url}...[/bold blue]")
    console.print(f"  Max pages: {settings.max_pages if max_pages is None else max_pages}")
    console.print(f"  Queue: {'(dry run)' if dry_run else settings.queue_url}")
    console.print()

    async def run_dispatcher():
        async with AppContext(settings) as ctx:
            queue = None if dry_run else ctx.queue
            dispatcher = WorkDispatcher(settings, queue, retry=ctx.retry)
            page = await ctx.browser.new_page()
            try:
                return await dispatcher.run(
                    page,
                    max_pages=max_pages,
                    start_page=start_page,
                    dry_run=dry_run,
                )
            finally:
                await page.close()

    stats = asyncio.run(run_dispatcher())

    console.print()
    console.print(f"[green]✓ Published {stats.published} URLs from {stats.pages} pages[/green]")
    if stats.failed_pages:
        console.print(f"[yellow]Failed pages: {stats.failed_pages}[/yellow]")
    if stats.send_errors:
        console.print(f"[red]Send errors: {stats.send_errors}[/red]")


@app.command()
def work(
    batch: bool = typer.Option(
        True,
        "--batch/--service",
        help="Exit after repeated empty receives (batch) or poll forever (service)",
    ),
    max_empty: Optional[int] = typer.Option(
        None,
        "--max-empty",
        help="Consecutive empty receives before a batch run exits",
    ),
):
    """Consume the work queue and persist each listing."""
    settings = get_settings()
    if max_empty is not None:
        settings = settings.model_copy(update={"max_empty_receives": max_empty})

    console.print("[bold blue]Starting property worker...[/bold blue]")
    console.print(f"  Mode: {'batch' if batch else 'service'}")
    console.print(f"  Images: {settings.image_strategy.value} -> {settings.storage_backend.value}")
    console.print(f"  Records: {settings.record_sink.value} (on duplicate: {settings.on_duplicate.value})")
    console.print()

    async def run_worker():
        async with AppContext(settings) as ctx:
            worker = QueueWorker(settings, ctx.queue, ctx.pipeline(), ctx.browser, batch=batch)
            _install_signal_handlers(worker.stop)
            return await worker.run()

    stats = asyncio.run(run_worker())

    console.print()
    console.print(f"[green]✓ Processed {stats.processed} properties[/green]")
    console.print(f"  Inserted: {stats.inserted}  Updated: {stats.updated}  Skipped: {stats.skipped}")
    if stats.failed:
        console.print(f"[red]✗ Failed: {stats.failed}[/red]")


@app.command()
def scrape_url(
    url: str = typer.Argument(..., help="Listing URL to process"),
    save: bool = typer.Option(
        True,
        "--save/--no-save",
        help="Store images and the record",
    ),
):
    """Run the pipeline on a single listing URL, bypassing the queue."""
    settings = get_settings()
    console.print(f"[bold]Scraping {url}...[/bold]")

    async def run_single():
        async with AppContext(settings) as ctx:
            page = await ctx.browser.new_page()
            try:
                if save:
                    return await ctx.pipeline().process(page, url)
                pipeline = ctx.pipeline()
                await pipeline.extractor.load(page, url)
                return None, await pipeline.extractor.extract(page, url)
            finally:
                await page.close()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Extracting...", total=None)
            result, record = asyncio.run(run_single())
    except Exception as e:
        console.print(f"\n[red]✗ Failed: {e}[/red]")
        raise typer.Exit(1)

    if record is None:
        console.print("[red]✗ No property data found[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ {record.reference}[/green]")
    console.print(f"  Title: {record.title}")
    console.print(f"  Price: {record.price.currency} {record.price.amount}")
    console.print(f"  City: {record.location.city}")
    console.print(f"  Images: {len(record.images) if save else len(record.media.images)}")
    if result is not None:
        console.print(f"  Result: {result.value}")


@app.command()
def stats():
    """Show database statistics."""
    database = Database(get_settings().database_url)
    database.init()

    table = Table(title="Database Statistics")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", style="green", justify="right")

    table.add_row("properties", str(get_property_count(database)))
    table.add_row("property_images", str(get_image_count(database)))

    console.print(table)
    database.dispose()


@app.command()
def export(
    filepath: str = typer.Argument(
        "properties.csv",
        help="Output CSV file path",
    ),
    city: Optional[str] = typer.Option(
        None,
        "--city", "-c",
        help="Filter by city",
    ),
):
    """Export properties to CSV file."""
    database = Database(get_settings().database_url)
    database.init()

    console.print(f"[bold]Exporting to {filepath}...[/bold]")

    count = export_to_csv(database, filepath, city)
    database.dispose()

    if count > 0:
        console.print(f"[green]✓ Exported {count} properties to {filepath}[/green]")
    else:
        console.print("[yellow]No properties to export[/yellow]")


if __name__ == "__main__":
    app()
