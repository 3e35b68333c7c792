"""Command-line interface for xcard."""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from xcard import CardConfig, CardMaker, __version__
from xcard.cache import create_cache
from xcard.config import CacheBackend, LogFormat, PageSize
from xcard.core.compositor import compose_single, document_filename, layout as plan_layout
from xcard.core.exporter import save_batch_summary, save_card_images, save_pdf
from xcard.core.urls import validate_profile_url
from xcard.exceptions import NoValidProfilesError, XcardError
from xcard.logging import configure_logging
from xcard.models.layout import DuplexMode, FrameSize, TileConfig

app = typer.Typer(
    name="xcard",
    help="Printable name tags from X profiles",
    add_completion=False,
)
cache_app = typer.Typer(help="Manage the profile cache")
app.add_typer(cache_app, name="cache")
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"xcard version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """xcard - printable name tags from X profiles."""
    pass


def _config(headless: bool = True, quiet: bool = False, **overrides) -> CardConfig:
    config = CardConfig(
        headless=headless,
        log_format=LogFormat.JSON if quiet else LogFormat.CONSOLE,
        **overrides,
    )
    configure_logging(config)
    return config


def _fail(error: XcardError) -> None:
    console.print(f"[red]✗[/red] [bold]{error.code.value}[/bold]: {error.message}")
    if error.retryable:
        console.print("  [dim]This is usually temporary; try again shortly.[/dim]")
    if isinstance(error, NoValidProfilesError):
        for item in error.failed:
            console.print(f"  [dim]{item.url}[/dim]  {item.code.value}: {item.reason}")
    raise typer.Exit(1)


def _frame(width: Optional[float], height: Optional[float], default: FrameSize) -> FrameSize:
    """Frame from CLI options; a missing side falls back to the default's."""
    return FrameSize(w=width or default.w, h=height or default.h)


def _tile_config(
    page_size: PageSize,
    margin: float,
    columns: Optional[int],
    rows: Optional[int],
    spacing: float,
    double_sided: bool,
    split: bool,
    front: FrameSize,
    back_width: Optional[float] = None,
    back_height: Optional[float] = None,
) -> TileConfig:
    back = None
    if back_width or back_height:
        back = _frame(back_width, back_height, front)
    return TileConfig(
        page_size=page_size,
        margin=margin,
        columns=columns,
        rows=rows,
        spacing=spacing,
        double_sided=double_sided or split,
        duplex_mode=DuplexMode.SPLIT if split else DuplexMode.PAGES,
        front_frame_size=front,
        back_frame_size=back,
    )


def _read_urls(sources: list[str]) -> list[str]:
    """URLs given directly, or read line by line from files."""
    urls = []
    for source in sources:
        path = Path(source)
        if not source.startswith(("http://", "https://")) and path.is_file():
            urls.extend(path.read_text(encoding="utf-8").splitlines())
        else:
            urls.append(source)
    return urls


@app.command()
def make(
    url: str = typer.Argument(..., help="X profile URL"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output PDF path (default: nametag-<handle>.pdf)"
    ),
    simple: bool = typer.Option(False, "--simple", help="Front only, no QR back"),
    page_size: PageSize = typer.Option(PageSize.LETTER, "--page-size", help="Paper size"),
    images: Optional[Path] = typer.Option(
        None, "--images", help="Also save the card sides as PNG files in this directory"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Force refresh, skip cache"),
    headless: bool = typer.Option(True, "--headless/--no-headless", help="Run browser in headless mode"),
):
    """Generate a name tag PDF for one profile."""
    config = _config(headless)

    async def run():
        async with CardMaker(config) as maker:
            card = await maker.make_card(url, include_back=not simple, force_refresh=force)

        frame = FrameSize(w=config.card_width_pt, h=config.card_height_pt)
        path = save_pdf(compose_single(card, page_size, frame), output or document_filename([card.username]))
        console.print(f"[green]✓[/green] @{card.username} -> {path}")
        if card.placeholders:
            console.print(f"  [yellow]placeholders used:[/yellow] {', '.join(card.placeholders)}")
        if images:
            for saved in save_card_images(card, images):
                console.print(f"  [dim]Saved {saved}[/dim]")

    try:
        asyncio.run(run())
    except XcardError as e:
        _fail(e)


@app.command()
def batch(
    sources: list[str] = typer.Argument(..., help="Profile URLs, or files with one URL per line"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Output PDF path (default: nametags-<n>.pdf)"
    ),
    page_size: PageSize = typer.Option(PageSize.LETTER, "--page-size", help="Paper size"),
    columns: Optional[int] = typer.Option(None, "--columns", min=1, help="Cards per row"),
    rows: Optional[int] = typer.Option(None, "--rows", min=1, help="Cards per column"),
    spacing: float = typer.Option(10.0, "--spacing", min=0, help="Gap between cards (pt)"),
    margin: float = typer.Option(36.0, "--margin", min=0, help="Page margin (pt)"),
    double_sided: bool = typer.Option(False, "--double-sided", help="Include QR backs"),
    width: Optional[float] = typer.Option(None, "--width", min=1, help="Front width (pt, default: configured card width)"),
    height: Optional[float] = typer.Option(None, "--height", min=1, help="Front height (pt, default: configured card height)"),
    back_width: Optional[float] = typer.Option(None, "--back-width", min=1, help="Back width (pt, default: front width)"),
    back_height: Optional[float] = typer.Option(None, "--back-height", min=1, help="Back height (pt, default: front height)"),
    split: bool = typer.Option(False, "--split", help="Backs beside fronts on the same page"),
    summary: Optional[Path] = typer.Option(None, "--summary", help="Write a JSON batch summary"),
    delay: int = typer.Option(1000, "--delay", "-d", help="Delay between page loads in ms"),
    headless: bool = typer.Option(True, "--headless/--no-headless", help="Run browser in headless mode"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output, only show errors"),
):
    """Tile name tags for many profiles into one paginated PDF."""
    config = _config(headless, quiet, request_delay_ms=delay)
    card_frame = FrameSize(w=config.card_width_pt, h=config.card_height_pt)
    try:
        tile_config = _tile_config(
            page_size, margin, columns, rows, spacing, double_sided, split,
            _frame(width, height, card_frame), back_width, back_height,
        )
        # Reject an impossible layout before the browser starts
        plan_layout(0, tile_config)
    except XcardError as e:
        _fail(e)
    urls = _read_urls(sources)

    async def run():
        async with CardMaker(config) as maker:
            result = await maker.build_document(urls, tile_config=tile_config)

        path = save_pdf(result.pdf, output or result.filename)
        if not quiet:
            for card in result.batch.succeeded:
                note = f" [yellow](placeholders: {', '.join(card.placeholders)})[/yellow]" if card.placeholders else ""
                console.print(f"[green]✓[/green] @{card.username}{note}")
        for item in result.batch.failed:
            console.print(f"[red]✗[/red] {item.url}: {item.code.value} {item.reason}")
        if summary:
            save_batch_summary(result.batch, summary)

        console.print(
            f"\n[bold]{len(result.batch.succeeded)}/{result.batch.total} name tags "
            f"on {result.plan.page_count} page(s)[/bold] -> {path}"
        )

    try:
        asyncio.run(run())
    except XcardError as e:
        _fail(e)


@app.command()
def validate(
    url: str = typer.Argument(..., help="X profile URL"),
):
    """Check a profile URL without loading it."""
    result = validate_profile_url(url)
    if not result.valid:
        console.print(f"[red]✗[/red] {result.error}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] @{result.username} -> {result.normalized_url}")


@app.command()
def layout(
    count: int = typer.Argument(..., min=0, help="Number of cards"),
    page_size: PageSize = typer.Option(PageSize.LETTER, "--page-size", help="Paper size"),
    columns: Optional[int] = typer.Option(None, "--columns", min=1, help="Cards per row"),
    rows: Optional[int] = typer.Option(None, "--rows", min=1, help="Cards per column"),
    spacing: float = typer.Option(10.0, "--spacing", min=0, help="Gap between cards (pt)"),
    margin: float = typer.Option(36.0, "--margin", min=0, help="Page margin (pt)"),
    width: float = typer.Option(252.0, "--width", help="Card width (pt)"),
    height: float = typer.Option(162.0, "--height", help="Card height (pt)"),
    back_width: Optional[float] = typer.Option(None, "--back-width", min=1, help="Back width (pt, default: front width)"),
    back_height: Optional[float] = typer.Option(None, "--back-height", min=1, help="Back height (pt, default: front height)"),
    double_sided: bool = typer.Option(False, "--double-sided", help="Include back placements"),
    split: bool = typer.Option(False, "--split", help="Backs beside fronts on the same page"),
):
    """Print the placement plan for a number of cards."""
    try:
        plan = plan_layout(count, _tile_config(
            page_size, margin, columns, rows, spacing, double_sided, split,
            FrameSize(w=width, h=height), back_width, back_height,
        ))
    except XcardError as e:
        _fail(e)

    console.print(
        f"[bold]{plan.items_per_row} x {plan.items_per_column}[/bold] per page, "
        f"{plan.page_count} page(s), spacing {plan.spacing_x:.1f} x {plan.spacing_y:.1f} pt"
    )
    table = Table(show_header=True)
    table.add_column("Card", justify="right")
    table.add_column("Side")
    table.add_column("Page", justify="right")
    table.add_column("x", justify="right")
    table.add_column("y", justify="right")
    for p in plan.placements:
        table.add_row(str(p.card_index), p.side.value, str(p.page_index + 1), f"{p.x:.1f}", f"{p.y:.1f}")
    console.print(table)


@cache_app.command("clear")
def cache_clear():
    """Clear the persistent profile cache."""
    config = CardConfig(cache_backend=CacheBackend.SQLITE)

    async def run():
        async with create_cache(config) as cache:
            await cache.clear()

    asyncio.run(run())
    console.print("[green]✓[/green] Cleared all cache")


@cache_app.command("info")
def cache_info():
    """Show cache settings and size."""
    config = CardConfig()
    console.print(f"Cache backend: {config.cache_backend.value}")
    console.print(f"TTL: {config.cache_ttl_seconds}s, capacity: {config.cache_max_entries}")
    if config.cache_backend == CacheBackend.SQLITE:
        path = Path(config.sqlite_path)
        if path.exists():
            console.print(f"Cache path: {path} ({path.stat().st_size / 1024:.1f} KB)")
        else:
            console.print("Cache is empty")


if __name__ == "__main__":
    app()
