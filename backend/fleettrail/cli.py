"""FleetTrail CLI — vehicle telemetry sampler and trip trails.

Commands:
  init-db    — create tables (and the PostGIS extension on PostgreSQL)
  poll       — run the telemetry sampler loop (or one cycle with --once)
  vehicles   — list tracked vehicles
  trip       — print a vehicle's movement trail
  status     — database and data freshness summary
  serve      — run the HTTP API
"""
from __future__ import annotations

import logging
import typer
from typing import Optional
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="fleettrail",
    help="Vehicle telemetry sampler and trip trails.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_PERIODS = {"daily": 0, "weekly": 1, "monthly": 2}


@app.callback()
def main() -> None:
    from fleettrail.config import settings

    logging.basicConfig(level=settings.LOG_LEVEL)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db_command():
    """Create the database schema."""
    from fleettrail.database import init_db

    with console.status("[bold]Creating database..."):
        init_db()
    console.print("[green]Database ready.[/green]")


@app.command("poll")
def poll(
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit"),
    vin: Optional[str] = typer.Option(None, "--vin", help="VIN to track (default: VIN setting)"),
    interval: Optional[str] = typer.Option(None, "--interval", help="Cycle interval (e.g. 30s, 5m, 1h)"),
):
    """Poll the telemetry API and record vehicle snapshots."""
    from fleettrail.config import settings
    from fleettrail.modules.ingest_sampler import Sampler, start_sampler_thread
    from fleettrail.modules.token_provider import TokenProvider

    vin = vin or settings.VIN
    if not vin:
        console.print("[red]No VIN configured.[/red] Set VIN or pass [cyan]--vin[/cyan].")
        raise typer.Exit(1)

    interval_s = _parse_duration(interval) if interval else None
    sampler = Sampler(vin=vin, token_provider=TokenProvider(), interval_seconds=interval_s)

    if once:
        result = sampler.run_once()
        if result is None:
            console.print("[red]Cycle failed — see log for details.[/red]")
            raise typer.Exit(1)
        console.print(
            f"Vehicle [cyan]{result.vehicle_id}[/cyan] "
            f"{'created' if result.vehicle_created else 'updated'}; "
            f"location sample {'written' if result.sample_written else 'skipped'}."
        )
        return

    console.print(f"Sampling VIN [cyan]{vin}[/cyan] every {sampler.interval_seconds:.0f}s — press Ctrl+C to stop")
    # The loop runs on a worker thread so Ctrl+C lands here, not mid-cycle
    thread, stop_event = start_sampler_thread(sampler)
    try:
        while thread.is_alive():
            thread.join(0.5)
    except KeyboardInterrupt:
        console.print("Stopping after the current cycle...")
        stop_event.set()
        thread.join()
    console.print("Stopped.")


@app.command("vehicles")
def vehicles():
    """List tracked vehicles."""
    from fleettrail.database import SessionLocal
    from fleettrail.models.vehicle import Vehicle

    db = SessionLocal()
    try:
        rows = db.query(Vehicle).order_by(Vehicle.created_at, Vehicle.vin).all()
        if not rows:
            console.print("[yellow]No vehicles yet.[/yellow] Run [cyan]fleettrail poll --once[/cyan].")
            return

        table = Table(title=f"Vehicles ({len(rows)})")
        table.add_column("ID", style="cyan")
        table.add_column("VIN")
        table.add_column("Name")
        table.add_column("SoC %", justify="right")
        table.add_column("Range", justify="right")
        table.add_column("Odometer", justify="right")
        for v in rows:
            table.add_row(
                str(v.id),
                v.vin,
                v.name,
                str(v.battery_state_of_charge_value),
                str(v.est_range),
                f"{v.odometer_value:,.1f}",
            )
        console.print(table)
    finally:
        db.close()


@app.command("trip")
def trip(
    vehicle_id: str = typer.Argument(..., help="Vehicle UUID"),
    period: str = typer.Option("daily", "--period", help="daily, weekly or monthly"),
):
    """Print a vehicle's movement trail."""
    import uuid

    from fleettrail.database import SessionLocal
    from fleettrail.modules.trip_reconstructor import reconstruct, report_window_start

    try:
        vid = uuid.UUID(vehicle_id)
    except ValueError:
        console.print(f"[red]Not a vehicle id: {vehicle_id}[/red]")
        raise typer.Exit(1)

    if period not in _PERIODS:
        console.print(f"[red]Unknown period '{period}'.[/red] Use daily, weekly or monthly.")
        raise typer.Exit(1)

    db = SessionLocal()
    try:
        events = reconstruct(db, vid, report_window_start(_PERIODS[period]))
    finally:
        db.close()

    if not events:
        console.print(f"[dim]No movement in the {period} window.[/dim]")
        return

    table = Table(title=f"Trail ({period}, {len(events)} points)")
    table.add_column("Time (UTC)", style="cyan")
    table.add_column("Latitude", justify="right")
    table.add_column("Longitude", justify="right")
    table.add_column("Moved (km)", justify="right")
    total_m = 0.0
    for e in events:
        if e.moved_meters is not None:
            total_m += e.moved_meters
        table.add_row(
            e.timestamp.strftime("%Y-%m-%d %H:%M"),
            f"{e.latitude:.5f}",
            f"{e.longitude:.5f}",
            "start" if e.moved_meters is None else f"{e.moved_meters / 1000:.2f}",
        )
    console.print(table)
    console.print(f"  Total: [bold]{total_m / 1000:.1f} km[/bold]")


@app.command("status")
def status():
    """Show database health and data freshness."""
    from datetime import timedelta

    from sqlalchemy import func

    from fleettrail.database import SessionLocal
    from fleettrail.models.location_sample import LocationSample
    from fleettrail.models.vehicle import Vehicle
    from fleettrail.utils.clock import utcnow

    db = SessionLocal()
    try:
        vehicle_count = db.query(Vehicle).count()
        sample_count = db.query(LocationSample).count()
        latest = db.query(func.max(LocationSample.created_at)).scalar()

        console.print("[bold]System[/bold]")
        console.print("  Database: [green]OK[/green]")
        console.print(f"  Vehicles tracked: {vehicle_count:,}")
        console.print(f"  Location samples: {sample_count:,}")

        console.print("\n[bold]Data Freshness[/bold]")
        if latest:
            age = utcnow() - latest
            age_hours = age.total_seconds() / 3600
            freshness_color = "green" if age < timedelta(hours=2) else "yellow" if age_hours < 24 else "red"
            console.print(f"  Last sample: [{freshness_color}]{age_hours:.1f} hours ago[/{freshness_color}]")
        else:
            console.print("  Last sample: [red]No data yet[/red]")
    finally:
        db.close()


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the HTTP API (and the sampler, if enabled)."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}[/cyan] — press Ctrl+C to stop")
    uvicorn.run("fleettrail.main:app", host=host, port=port)


def _parse_duration(s: str) -> int:
    """Parse duration string (30s, 5m, 1h) to seconds."""
    s = s.strip().lower()
    multiplier = {"s": 1, "m": 60, "h": 3600}.get(s[-1:], None)
    try:
        if multiplier is None:
            return int(s)
        return int(s[:-1]) * multiplier
    except ValueError:
        raise typer.BadParameter(f"Invalid duration: {s}")
