"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import JsonAppointmentStore
from ..adapters.schedule_file import ScheduleRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    AvailabilityError,
    InvalidScheduleConfig,
    SlotUnavailable,
    UpstreamReadFailure,
)
from ..domain.intervals import Interval, format_minutes, parse_minutes
from ..domain.models import AppointmentStatus, Service, Weekday
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="specialist-availability",
    help="Compute bookable slots from specialist work schedules",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Log engine details.")]
DurationOption = Annotated[
    Optional[int],
    typer.Option("--service-duration", "--duration", "-d", help="Service duration in minutes"),
]
ConfirmedOption = Annotated[
    bool, typer.Option("--confirmed", help="Store the booking as confirmed instead of pending.")
]


def _configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load(config_file: Optional[Path], verbose: bool = False) -> tuple[AppConfig, AvailabilityService]:
    """
    Load configuration, schedules and appointments, and build the service.
    """
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging(config.log_level, verbose)

    schedules = ScheduleRepository.load_from_yaml(config.data.schedules_file)
    store = JsonAppointmentStore(config.data.appointments_file)

    service = AvailabilityService(
        schedules,
        store,
        timezone=config.timezone,
        step_minutes=config.defaults.step_minutes,
        default_status=config.booking.default_status,
    )
    return config, service


def _parse_date(value: str, tz: str, label: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse {label}: {e}[/red]")
        raise typer.Exit(1)


def _service(config: AppConfig, duration: Optional[int]) -> Service:
    return Service(duration_minutes=config.defaults.duration_minutes if duration is None else duration)


def _fail(error: Exception) -> None:
    if isinstance(error, InvalidScheduleConfig):
        console.print("[bold red]Invalid schedule configuration:[/bold red]")
        for problem in error.problems:
            console.print(f"  • {problem}")
    elif isinstance(error, UpstreamReadFailure):
        console.print(f"[bold red]Could not compute availability, try again:[/bold red] {error}")
    else:
        console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _print_appointment(heading: str, appointment) -> None:
    console.print(Panel.fit(
        f"[bold green]{heading}[/bold green]\n\n"
        f"[bold]Specialist:[/bold] {appointment.specialist_id}\n"
        f"[bold]Date:[/bold] {appointment.date.isoformat()}\n"
        f"[bold]Time:[/bold] {format_minutes(appointment.start_time)} - {format_minutes(appointment.end_time)}\n"
        f"[bold]Status:[/bold] {appointment.status.value}\n"
        f"[bold]Id:[/bold] {appointment.appointment_id}",
        title="Booking"
    ))


@app.command()
def slots(
    specialist: Annotated[str, typer.Argument(help="Specialist id")],
    config_file: ConfigOption = None,
    duration: DurationOption = None,
    step: Annotated[Optional[int], typer.Option("--step", help="Slot granularity in minutes")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last date (YYYY-MM-DD)")] = None,
    on: Annotated[Optional[str], typer.Option("--date", help="Only this date (YYYY-MM-DD)")] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", help="Stop after this many slots")] = None,
    verbose: VerboseOption = False,
):
    """
    List bookable slots across the booking horizon.

    Examples:

        specialist-availability slots anna
        specialist-availability slots anna --service-duration 90 --step 15
        specialist-availability slots anna --date 2025-03-03
    """
    try:
        config, service = _load(config_file, verbose)
        tz = config.timezone

        start_date = _parse_date(start, tz, "start date") if start else None
        end_date = _parse_date(end, tz, "end date") if end else None
        if on:
            start_date = end_date = _parse_date(on, tz, "date")

        found = service.list_available_slots(
            specialist,
            _service(config, duration),
            start_date=start_date,
            end_date=end_date,
            step_minutes=step,
            limit=config.defaults.max_slots if limit is None else limit,
        )
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not found:
        console.print("[yellow]⚠ No bookable slots found.[/yellow]")
    else:
        console.print(f"[bold green]✓ {len(found)} bookable slot(s):[/bold green]\n")
        for slot in found:
            console.print(f"  {slot.format_display()}")
    console.print()


@app.command()
def dates(
    specialist: Annotated[str, typer.Argument(help="Specialist id")],
    config_file: ConfigOption = None,
    duration: DurationOption = None,
    verbose: VerboseOption = False,
):
    """
    List dates with at least one bookable slot.
    """
    try:
        config, service = _load(config_file, verbose)
        found = service.list_available_dates(
            specialist,
            _service(config, duration),
        )
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not found:
        console.print("[yellow]⚠ No bookable dates within the booking horizon.[/yellow]")
        return

    table = Table(title=f"Bookable dates for {specialist}", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold yellow")
    table.add_column("Weekday", style="dim")
    for day in found:
        table.add_row(day.isoformat(), Weekday.of(day).name.capitalize())

    console.print()
    console.print(table)
    console.print()


@app.command()
def day(
    specialist: Annotated[str, typer.Argument(help="Specialist id")],
    on: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Explain the free time of one date.
    """
    try:
        config, service = _load(config_file, verbose)
        availability = service.explain_day(specialist, _parse_date(on, config.timezone, "date"))
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    lines = [f"[bold]Status:[/bold] {availability.reason.value}"]
    for interval in availability.free_intervals:
        lines.append(f"  {interval}")
    if availability.booked_intervals:
        lines.append("[bold]Booked:[/bold]")
        lines.extend(f"  {interval}" for interval in availability.booked_intervals)
    console.print(Panel.fit("\n".join(lines), title=f"{specialist} · {availability.date.isoformat()}"))


@app.command()
def book(
    specialist: Annotated[str, typer.Argument(help="Specialist id")],
    on: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    config_file: ConfigOption = None,
    duration: DurationOption = None,
    confirmed: ConfirmedOption = False,
    service_id: Annotated[Optional[str], typer.Option("--service", help="Service id to store on the appointment")] = None,
    verbose: VerboseOption = False,
):
    """
    Book a slot after re-checking it against current bookings.
    """
    try:
        config, service = _load(config_file, verbose)
        start_minute = parse_minutes(start)
        length = config.defaults.duration_minutes if duration is None else duration
        appointment = service.commit_booking(
            specialist,
            _parse_date(on, config.timezone, "date"),
            Interval(start_minute, start_minute + length),
            AppointmentStatus.CONFIRMED if confirmed else None,
            service_id=service_id,
        )
    except SlotUnavailable as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        console.print("List the slots again and pick another one.")
        raise typer.Exit(2)
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_appointment("✓ Booked", appointment)


@app.command()
def reschedule(
    appointment_id: Annotated[str, typer.Argument(help="Id of the booking to move")],
    on: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="New start time (HH:MM)")],
    config_file: ConfigOption = None,
    duration: Annotated[
        Optional[int],
        typer.Option(
            "--service-duration", "--duration", "-d",
            help="New length in minutes. Defaults to the current length",
        ),
    ] = None,
    confirmed: ConfirmedOption = False,
    verbose: VerboseOption = False,
):
    """
    Move a booking to another slot.
    """
    try:
        config, service = _load(config_file, verbose)
        current = service.get_appointment(appointment_id)
        start_minute = parse_minutes(start)
        length = current.interval.length if duration is None else duration
        appointment = service.reschedule_booking(
            appointment_id,
            _parse_date(on, config.timezone, "date"),
            Interval(start_minute, start_minute + length),
            AppointmentStatus.CONFIRMED if confirmed else None,
        )
    except SlotUnavailable as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        console.print("List the slots again and pick another one.")
        raise typer.Exit(2)
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_appointment("✓ Rescheduled", appointment)


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Id of the booking to cancel")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Cancel a booking and free its slot.
    """
    try:
        _, service = _load(config_file, verbose)
        appointment = service.cancel_booking(appointment_id)
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_appointment("✓ Cancelled", appointment)


@app.command()
def validate(
    config_file: ConfigOption = None,
):
    """
    Validate the schedules file.
    """
    try:
        config_path = config_file or get_default_config_path()
        config = AppConfig.load_from_yaml(config_path)
        repository = ScheduleRepository.load_from_yaml(config.data.schedules_file)
    except (AvailabilityError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"[green]✓ {len(repository.specialist_ids())} schedule(s) valid:[/green] "
        f"{', '.join(repository.specialist_ids())}"
    )


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]specialist-availability[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
