"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Optional, Annotated, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import BookingEngineError
from ..domain.models import BookingRequest, ConflictResult
from ..services.engine import BookingEngine

app = typer.Typer(
    name="bookingengine",
    help="Check appointment availability and booking conflicts",
    add_completion=False
)

console = Console()

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DataOption = Annotated[
    Optional[Path],
    typer.Option("--data", help="Path to the YAML seed data. Overrides data_file from the config."),
]


def setup_logging(level: str) -> None:
    """Route library logging through Rich at the configured level."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_engine(
    config_file: Optional[Path],
    data_file: Optional[Path],
) -> Tuple[AppConfig, InMemoryBookingStore, BookingEngine]:
    """
    Load configuration and seed data, then wire the engine.

    A missing default config falls back to built-in defaults; a missing
    config passed explicitly is an error.
    """
    config_path = config_file or get_default_config_path()
    if config_file is not None or config_path.exists():
        config = AppConfig.load_from_yaml(config_path)
    else:
        config = AppConfig()

    setup_logging(config.log_level)

    data_path = data_file or config.data_file
    if data_path is None:
        raise FileNotFoundError(
            "No data file configured. Pass --data or set data_file in config.yaml."
        )

    store = InMemoryBookingStore.from_yaml(data_path, config.timezone)
    engine = BookingEngine.build(store, config.timezone, config.engine)
    return config, store, engine


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def hours(
    store_id: Annotated[str, typer.Argument(help="Store id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Show the weekly business hours of a store.
    """
    try:
        _, store, engine = _load_engine(config_file, data_file)

        week = {h.day_of_week: h for h in engine.business_hours.get_business_hours(store_id)}

        table = Table(
            title=f"Business hours: {store.store_name(store_id) or store_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Day", style="bold yellow")
        table.add_column("Hours")

        for day, name in enumerate(WEEKDAY_NAMES):
            entry = week.get(day)
            table.add_row(name, entry.format_display() if entry else "[dim]Not configured[/dim]")

        console.print()
        console.print(table)
        if not engine.business_hours.is_business_hours_complete(store_id):
            console.print("[yellow]⚠ Business hours are not configured for every day.[/yellow]")
        console.print()

    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)


@app.command()
def slots(
    store_id: Annotated[str, typer.Argument(help="Store id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Day to list (YYYY-MM-DD)")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service id")],
    staff: Annotated[Optional[str], typer.Option("--staff", help="Only list this staff member")] = None,
    free_only: Annotated[bool, typer.Option("--free-only", help="Hide slots that are already booked")] = False,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List the bookable slots of a day.

    Examples:

        bookingengine slots downtown --date 2024-11-25 --service cut
        bookingengine slots downtown -d 2024-11-25 -s cut --staff alice --free-only
    """
    try:
        config, _, engine = _load_engine(config_file, data_file)

        try:
            day = pendulum.from_format(date, "YYYY-MM-DD", tz=config.timezone)
        except ValueError as e:
            console.print(f"[red]Could not parse date: {e}[/red]")
            raise typer.Exit(1)

        found = engine.availability.find_available_slots(store_id, day, service, staff)
        if free_only:
            found = [slot for slot in found if slot.is_available]

        console.print()
        if not found:
            console.print(
                "[yellow]⚠ No slots found.[/yellow]\n"
                "The store may be closed that day, or the service or staff member is unavailable."
            )
        else:
            free = sum(1 for slot in found if slot.is_available)
            console.print(f"[bold green]✓ {len(found)} slot(s), {free} free:[/bold green]\n")
            for slot in found:
                style = "green" if slot.is_available else "dim"
                console.print(f"  [{style}]{slot.format_display()}[/{style}]")
        console.print()

    except typer.Exit:
        raise
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)


def _print_conflict(result: ConflictResult) -> None:
    console.print(Panel.fit(
        f"[bold red]✗ {result.conflict_type.value}[/bold red]\n\n{result.detail}",
        title="Conflict"
    ))

    if not result.alternatives:
        console.print("[yellow]No alternatives found nearby.[/yellow]\n")
        return

    table = Table(title="Alternatives", show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Staff", style="bold yellow")
    table.add_column("Start")
    table.add_column("End")

    for idx, alternative in enumerate(result.alternatives, 1):
        table.add_row(
            str(idx),
            alternative.staff_name,
            alternative.start_time.format("YYYY-MM-DD HH:mm"),
            alternative.end_time.format("HH:mm"),
        )

    console.print(table)
    console.print()


@app.command()
def check(
    store_id: Annotated[str, typer.Argument(help="Store id")],
    service: Annotated[str, typer.Option("--service", "-s", help="Service id")],
    start: Annotated[str, typer.Option("--start", help="Start time (YYYY-MM-DD HH:mm)")],
    staff: Annotated[Optional[str], typer.Option("--staff", help="Requested staff member")] = None,
    exclude: Annotated[Optional[str], typer.Option("--exclude", help="Booking id to ignore (reschedule check)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether a booking request can be honoured.

    Exits with code 2 when the request conflicts.
    """
    try:
        config, _, engine = _load_engine(config_file, data_file)

        try:
            start_time = pendulum.from_format(start, "YYYY-MM-DD HH:mm", tz=config.timezone)
        except ValueError as e:
            console.print(f"[red]Could not parse start time: {e}[/red]")
            raise typer.Exit(1)

        built = BookingRequest.build(
            store_id=store_id,
            service_id=service,
            start_time=start_time,
            staff_id=staff,
            exclude_booking_id=exclude,
            timezone=config.timezone,
        )
        if not built.is_ok:
            console.print(f"[bold red]Invalid request:[/bold red] {built.error}")
            raise typer.Exit(1)

        result = engine.detector.check_conflicts(built.value)

        console.print()
        if result.has_conflict:
            _print_conflict(result)
            raise typer.Exit(2)

        console.print(
            f"[bold green]✓ Available[/bold green] "
            f"({result.service_duration_minutes} min, staff: {result.assigned_staff_id})\n"
        )

    except typer.Exit:
        raise
    except (FileNotFoundError, ValueError, BookingEngineError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]bookingengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
