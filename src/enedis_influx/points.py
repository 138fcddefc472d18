"""Output point construction."""

from .models import OutputPoint, PricedReading

# kWh are written as Wh, the unit the dashboards expect for "power"
POWER_SCALE = 1000


def build_point(
    measurement: str,
    priced: PricedReading,
    peak_offpeak_enabled: bool,
    has_offpeak_periods: bool,
) -> OutputPoint:
    """Map a priced reading to an output point.

    Tag selection depends only on whether off-peak periods are configured;
    peak_offpeak_enabled affects pricing, not tagging.

    Raises PointConstructionError if the point fails schema validation.
    """
    creuses = pleines = normales = "0"
    if not has_offpeak_periods:
        normales = "1"
    elif priced.is_offpeak:
        creuses = "1"
    else:
        pleines = "1"

    return OutputPoint(
        measurement=measurement,
        heures_creuses=creuses,
        heures_pleines=pleines,
        heures_normales=normales,
        power=priced.energy_kwh * POWER_SCALE,
        price=priced.cost,
        timestamp=priced.timestamp,
    )

