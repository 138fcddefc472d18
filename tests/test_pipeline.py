import logging
import math
from datetime import datetime, time, timedelta

import pytest
from enedis_influx.errors import AggregationError, ConfigurationError, InvalidReading
from enedis_influx.models import MeterReading, OffPeakPeriod, PeriodSummary, ProviderTariff
from enedis_influx.pipeline import PipelineResult, run_pipeline

NIGHT = OffPeakPeriod(time(22, 0), time(6, 0))
MIDDAY_TO_MIDNIGHT = OffPeakPeriod(time(12, 0), time(0, 0))

FLAT = ProviderTariff(name="flat", price_per_kwh=0.20)
PEAK_OFFPEAK = ProviderTariff(
    name="hc/hp",
    price_per_kwh=0.20,
    price_per_kwh_peak=0.25,
    price_per_kwh_offpeak=0.15,
    peak_offpeak_enabled=True,
)


def hourly(kwh_values, start=datetime(2026, 1, 1)):
    return [MeterReading(start + timedelta(hours=i), kwh) for i, kwh in enumerate(kwh_values)]


def test_empty_input():
    points, summary, skipped = run_pipeline([], PEAK_OFFPEAK, [NIGHT], "electricity")
    assert points == []
    assert summary == PeriodSummary()
    assert skipped == 0


def test_flat_tariff_scenario():
    readings = [MeterReading(datetime(2026, 1, 1, 10), 1.5)]
    result = run_pipeline(readings, FLAT, [], "electricity")

    assert isinstance(result, PipelineResult)
    assert len(result.points) == 1
    point = result.points[0]
    assert point.price == pytest.approx(0.30)
    assert point.heures_normales == "1"
    assert point.heures_creuses == "0"
    assert point.heures_pleines == "0"
    assert result.summary.total_price == pytest.approx(0.30)


def test_peak_offpeak_scenario():
    readings = [MeterReading(datetime(2026, 1, 1, 23), 2.0)]
    points, summary, _ = run_pipeline(readings, PEAK_OFFPEAK, [NIGHT], "electricity")

    assert points[0].price == pytest.approx(0.30)
    assert points[0].heures_creuses == "1"
    assert points[0].heures_pleines == "0"
    assert summary.total_kwh_offpeak == pytest.approx(2.0)
    assert summary.total_kwh_peak == 0.0


def test_full_day_split():
    """24 hourly readings, half inside a 12:00-00:00 off-peak window."""
    readings = hourly([1.0] * 24)
    points, summary, skipped = run_pipeline(readings, PEAK_OFFPEAK, [MIDDAY_TO_MIDNIGHT], "electricity")

    assert len(points) == 24
    assert skipped == 0
    assert summary.total_kwh_peak == 12.0
    assert summary.total_kwh_offpeak == 12.0
    assert summary.total_kwh == 24.0
    assert summary.total_price == pytest.approx(12 * 0.25 + 12 * 0.15)


def test_no_periods_every_point_normal():
    readings = hourly([0.5] * 48)
    points, summary, _ = run_pipeline(readings, PEAK_OFFPEAK, [], "electricity")

    assert all(p.heures_normales == "1" for p in points)
    # Nothing is off-peak, so everything is billed at the peak rate
    assert summary.total_kwh_peak == pytest.approx(24.0)
    assert summary.total_kwh_offpeak == 0.0


def test_points_keep_input_order():
    readings = list(reversed(hourly([1.0, 2.0, 3.0])))
    points, _, _ = run_pipeline(readings, FLAT, [], "electricity")
    assert [p.timestamp for p in points] == [r.timestamp for r in readings]


def test_invalid_reading_aborts_by_default():
    readings = hourly([1.0, -1.0, 1.0])
    with pytest.raises(InvalidReading):
        run_pipeline(readings, FLAT, [], "electricity")


def test_invalid_reading_skipped_on_request():
    readings = hourly([1.0, -1.0, math.nan, 2.0])
    points, summary, skipped = run_pipeline(readings, FLAT, [], "electricity", skip_invalid=True)

    assert len(points) == 2
    assert skipped == 2
    assert summary.total_kwh == pytest.approx(3.0)
    assert summary.total_price == pytest.approx(0.6)


def test_point_errors_are_skipped_and_logged(caplog):
    readings = hourly([1.0, 2.0])
    with caplog.at_level(logging.WARNING, logger="enedis_influx.pipeline"):
        points, summary, skipped = run_pipeline(readings, FLAT, [], "")

    assert points == []
    assert skipped == 2
    # Pricing succeeded, so the readings still count in the totals
    assert summary.total_kwh == pytest.approx(3.0)
    assert "Could not build point" in caplog.text


def test_aggregation_overflow_is_fatal():
    readings = hourly([1e308, 1e308])
    with pytest.raises(AggregationError):
        run_pipeline(readings, FLAT, [], "electricity")


def test_configuration_checked_before_readings():
    with pytest.raises(ConfigurationError):
        run_pipeline(hourly([-1.0]), {"price_per_kwh": 0.2}, [], "electricity")
    with pytest.raises(ConfigurationError):
        run_pipeline(hourly([-1.0]), FLAT, [("22:00", "06:00")], "electricity")


def test_debug_log_per_reading(caplog):
    readings = [MeterReading(datetime(2026, 1, 1, 23), 2.0)]
    with caplog.at_level(logging.DEBUG, logger="enedis_influx.pipeline"):
        run_pipeline(readings, PEAK_OFFPEAK, [NIGHT], "electricity")
    assert "HC:1 | HP:0 | HN:0 | PRICE:0.3000" in caplog.text


@pytest.mark.parametrize("workers", [2, 3, 8, 100])
def test_parallel_matches_sequential(workers):
    readings = hourly([0.1 * (i % 7) for i in range(24 * 14)])
    sequential = run_pipeline(readings, PEAK_OFFPEAK, [NIGHT], "electricity")
    parallel = run_pipeline(readings, PEAK_OFFPEAK, [NIGHT], "electricity", workers=workers)

    assert parallel.points == sequential.points
    assert parallel.skipped == sequential.skipped
    assert parallel.summary.total_kwh == pytest.approx(sequential.summary.total_kwh, rel=1e-9)
    assert parallel.summary.total_kwh_peak == pytest.approx(sequential.summary.total_kwh_peak, rel=1e-9)
    assert parallel.summary.total_kwh_offpeak == pytest.approx(sequential.summary.total_kwh_offpeak, rel=1e-9)
    assert parallel.summary.total_price == pytest.approx(sequential.summary.total_price, rel=1e-9)


def test_parallel_invalid_reading_aborts():
    readings = hourly([1.0] * 10 + [-1.0] + [1.0] * 10)
    with pytest.raises(InvalidReading):
        run_pipeline(readings, FLAT, [], "electricity", workers=4)


def test_parallel_skips_are_counted():
    readings = hourly([1.0] * 10 + [-1.0] + [1.0] * 10)
    points, summary, skipped = run_pipeline(readings, FLAT, [], "electricity", skip_invalid=True, workers=4)
    assert len(points) == 20
    assert skipped == 1
    assert summary.total_kwh == pytest.approx(20.0)
