"""Period totals over priced readings, and their text report."""

import math
from functools import reduce
from typing import Iterable

from ..errors import AggregationError
from ..models import PeriodSummary, PricedReading, ProviderTariff


def _checked(summary: PeriodSummary) -> PeriodSummary:
    totals = (
        summary.total_kwh,
        summary.total_kwh_peak,
        summary.total_kwh_offpeak,
        summary.total_price,
    )
    if not all(math.isfinite(v) for v in totals):
        raise AggregationError(f"Non-finite total in period summary: {summary}")
    return summary


def accumulate(
    summary: PeriodSummary, priced: PricedReading, peak_offpeak_enabled: bool
) -> PeriodSummary:
    """Fold one priced reading into a summary."""
    peak = summary.total_kwh_peak
    offpeak = summary.total_kwh_offpeak
    if peak_offpeak_enabled:
        if priced.is_offpeak:
            offpeak += priced.energy_kwh
        else:
            peak += priced.energy_kwh

    return _checked(
        PeriodSummary(
            total_kwh=summary.total_kwh + priced.energy_kwh,
            total_kwh_peak=peak,
            total_kwh_offpeak=offpeak,
            total_price=summary.total_price + priced.cost,
        )
    )


def merge_summaries(left: PeriodSummary, right: PeriodSummary) -> PeriodSummary:
    """Combine two partial summaries."""
    return _checked(
        PeriodSummary(
            total_kwh=left.total_kwh + right.total_kwh,
            total_kwh_peak=left.total_kwh_peak + right.total_kwh_peak,
            total_kwh_offpeak=left.total_kwh_offpeak + right.total_kwh_offpeak,
            total_price=left.total_price + right.total_price,
        )
    )


def summarize(priced_readings: Iterable[PricedReading], peak_offpeak_enabled: bool) -> PeriodSummary:
    """Reduce priced readings into totals, starting from the zero summary."""
    return reduce(
        lambda acc, priced: accumulate(acc, priced, peak_offpeak_enabled),
        priced_readings,
        PeriodSummary(),
    )


def compare_tariffs(summary: PeriodSummary, tariff: ProviderTariff) -> dict:
    """Price the period's energy under both the flat and peak/off-peak rates.

    The peak/off-peak figure is only meaningful when the run classified
    readings, since the split is zero otherwise.
    """
    return {
        "flat": summary.total_kwh * tariff.price_per_kwh,
        "peak_offpeak": (
            summary.total_kwh_peak * tariff.price_per_kwh_peak
            + summary.total_kwh_offpeak * tariff.price_per_kwh_offpeak
        ),
    }


def format_summary_text(summary: PeriodSummary, tariff: ProviderTariff, skipped: int = 0) -> str:
    """Format a period summary as plain text."""
    prices = compare_tariffs(summary, tariff)
    lines = [
        f"Total kWh for period           : {summary.total_kwh:.4f}",
        f"Total kWh (peak) for period    : {summary.total_kwh_peak:.4f}",
        f"Total kWh (off-peak) for period: {summary.total_kwh_offpeak:.4f}",
        "--",
        f"Total price                    : {summary.total_price:.4f} €",
        f"Total price (NORMAL)           : {prices['flat']:.4f} €",
        f"Total price (PEAK/OFFPEAK)     : {prices['peak_offpeak']:.4f} €",
    ]
    if skipped:
        lines.append(f"Skipped readings               : {skipped}")
    return "\n".join(lines)
