"""Command-line interface: fetch Enedis readings, price them and push them to InfluxDB."""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .analysis.summary import compare_tariffs, format_summary_text
from .collectors import csv_file, enedis
from .config import AppConfig, load_config
from .errors import PricingError
from .models import PeriodSummary, ProviderTariff
from .pipeline import run_pipeline
from .sinks.influx import InfluxError, InfluxSink

console = Console()


def fail(ctx: click.Context, error: Exception) -> None:
    """Report a fatal error with its kind and stop."""
    console.print(f"[red]{type(error).__name__}: {escape(str(error))}[/red]")
    ctx.exit(1)


def get_config(ctx: click.Context) -> AppConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except PricingError as e:
        fail(ctx, e)


def print_subscription(tariff: ProviderTariff) -> None:
    console.print(f"You are subscribed to [bold]{escape(tariff.name or 'unknown provider')}[/bold]")
    console.print(f"  -> Price of your annual contract : {tariff.annual_fee:.2f} €")
    console.print(f"  -> Price of the kWh              : {tariff.price_per_kwh:.4f} €")
    console.print(f"  -> Price of the kWh (peak)       : {tariff.price_per_kwh_peak:.4f} €")
    console.print(f"  -> Price of the kWh (off-peak)   : {tariff.price_per_kwh_offpeak:.4f} €")


def print_summary(summary: PeriodSummary, tariff: ProviderTariff, skipped: int) -> None:
    prices = compare_tariffs(summary, tariff)

    table = Table(title="Period Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Total kWh", f"{summary.total_kwh:.4f}")
    table.add_row("  └ peak", f"{summary.total_kwh_peak:.4f}")
    table.add_row("  └ off-peak", f"{summary.total_kwh_offpeak:.4f}")
    table.add_row("Total price", f"{summary.total_price:.4f} €")
    table.add_row("Price (NORMAL)", f"{prices['flat']:.4f} €")
    table.add_row("Price (PEAK/OFFPEAK)", f"{prices['peak_offpeak']:.4f} €")

    console.print(table)
    if skipped:
        console.print(f"[yellow]Skipped {skipped} readings[/yellow]")


def resolve_range(days: int, from_date: str | None, to_date: str | None, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Work out the [start, end) range to fetch."""
    end = datetime.fromisoformat(to_date) if to_date else datetime.now(tz)
    if end.tzinfo is None:
        end = end.replace(tzinfo=tz)

    if from_date:
        start = datetime.fromisoformat(from_date)
        if start.tzinfo is None:
            start = start.replace(tzinfo=tz)
    else:
        start = end - timedelta(days=days)
    return start, end


@click.group()
@click.option("--config", "config_path", type=click.Path(exists=True), help="Path to enedis2influx.yaml")
@click.option("-v", "--verbose", is_flag=True, help="Log every priced reading")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Price Enedis consumption readings and store them in InfluxDB."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@cli.command()
@click.option("--days", default=1, help="Number of days to get from Enedis (default: 1)")
@click.option("--from-date", help="Start date (YYYY-MM-DD)")
@click.option("--to-date", help="End date, exclusive (YYYY-MM-DD)")
@click.option("--csv", "csv_path", type=click.Path(exists=True), help="Read readings from a CSV file instead of Enedis")
@click.option("--save-csv", type=click.Path(), help="Also save the fetched readings to a CSV file")
@click.option("--skip-invalid", is_flag=True, help="Skip readings with invalid energy instead of aborting")
@click.option("--workers", default=1, help="Number of pricing threads (default: 1)")
@click.option("--dry-run", is_flag=True, help="Price readings without writing to InfluxDB")
@click.pass_context
def run(ctx, days, from_date, to_date, csv_path, save_csv, skip_invalid, workers, dry_run):
    """Fetch readings, price them and push the points to InfluxDB."""
    cfg = get_config(ctx)
    tz = ZoneInfo(cfg.enedis.timezone)

    try:
        start, end = resolve_range(days, from_date, to_date, tz)
    except ValueError as e:
        fail(ctx, e)

    try:
        if csv_path:
            console.print(f"[cyan]Reading measures from {csv_path}...[/cyan]")
            if from_date or to_date:
                readings = csv_file.parse_csv(Path(csv_path), cfg.enedis.timezone, start, end)
            else:
                readings = csv_file.parse_csv(Path(csv_path), cfg.enedis.timezone)
        else:
            console.print(f"[cyan]Getting data from Enedis ({start:%Y-%m-%d %H:%M} → {end:%Y-%m-%d %H:%M})...[/cyan]")
            readings = enedis.fetch_readings(
                start,
                end,
                prm=cfg.enedis.prm,
                token=cfg.enedis.token,
                base_url=cfg.enedis.base_url,
                timezone=cfg.enedis.timezone,
            )
    except (KeyError, ValueError) as e:
        fail(ctx, ValueError(f"Malformed readings CSV: {e}"))
    except enedis.EnedisError as e:
        fail(ctx, e)

    console.print(f"[green]Got {len(readings)} readings[/green]")
    if save_csv:
        count = csv_file.write_csv(readings, Path(save_csv))
        console.print(f"[green]Saved {count} readings to {save_csv}[/green]")

    print_subscription(cfg.provider)

    try:
        points, summary, skipped = run_pipeline(
            readings,
            cfg.provider,
            cfg.enedis.offpeak_periods,
            cfg.influx.measure,
            skip_invalid=skip_invalid,
            workers=workers,
        )
    except PricingError as e:
        fail(ctx, e)

    print_summary(summary, cfg.provider, skipped)

    if dry_run:
        console.print(f"[yellow]Dry run: not pushing {len(points)} points[/yellow]")
        return

    console.print(f"[cyan]Pushing {len(points)} points to InfluxDB...[/cyan]")
    sink = InfluxSink(
        cfg.influx.url,
        cfg.influx.database,
        user=cfg.influx.user,
        password=cfg.influx.password,
    )
    try:
        written = sink.write(points)
    except InfluxError as e:
        fail(ctx, e)
    console.print(f"[green]Wrote {written} points to {escape(cfg.influx.database)}[/green]")


@cli.command()
@click.option("--csv", "csv_path", type=click.Path(exists=True), required=True, help="Path to readings CSV")
@click.option("--skip-invalid", is_flag=True, help="Skip readings with invalid energy instead of aborting")
@click.option("--text", "as_text", is_flag=True, help="Output as plain text")
@click.pass_context
def report(ctx, csv_path, skip_invalid, as_text):
    """Price readings from a CSV file and print the period summary."""
    cfg = get_config(ctx)
    try:
        readings = csv_file.parse_csv(Path(csv_path), cfg.enedis.timezone)
    except (KeyError, ValueError) as e:
        fail(ctx, ValueError(f"Malformed readings CSV: {e}"))

    try:
        result = run_pipeline(
            readings,
            cfg.provider,
            cfg.enedis.offpeak_periods,
            cfg.influx.measure,
            skip_invalid=skip_invalid,
        )
    except PricingError as e:
        fail(ctx, e)

    if as_text:
        click.echo(format_summary_text(result.summary, cfg.provider, result.skipped))
        return

    print_subscription(cfg.provider)
    print_summary(result.summary, cfg.provider, result.skipped)


@cli.command()
@click.pass_context
def tariff(ctx):
    """Show the configured tariff and off-peak periods."""
    cfg = get_config(ctx)
    provider = cfg.provider

    table = Table(title=f"Tariff: {escape(provider.name or 'unnamed')}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Annual fee", f"{provider.annual_fee:.2f} €")
    table.add_row("Max power", f"{provider.max_power} kVA")
    table.add_row("Peak/off-peak", "enabled" if provider.peak_offpeak_enabled else "disabled")
    table.add_row("Price per kWh", f"{provider.price_per_kwh:.4f} €")
    table.add_row("Price per kWh (peak)", f"{provider.price_per_kwh_peak:.4f} €")
    table.add_row("Price per kWh (off-peak)", f"{provider.price_per_kwh_offpeak:.4f} €")

    periods = cfg.enedis.offpeak_periods
    table.add_row("Off-peak periods", ", ".join(str(p) for p in periods) if periods else "none")

    console.print(table)


if __name__ == "__main__":
    cli()
