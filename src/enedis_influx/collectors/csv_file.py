"""CSV meter reading importer.

Reads readings exported by other tools, or saved from a previous run.
CSV format: timestamp, energy_kwh (ISO 8601 timestamps)
"""

import csv
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from ..models import MeterReading


def parse_csv(
    csv_path: Path,
    timezone: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[MeterReading]:
    """Parse a readings CSV file.

    Args:
        csv_path: Path to the CSV file
        timezone: Timezone for naive timestamps (left naive if None)
        start: Drop readings before this time
        end: Drop readings at or after this time

    Returns:
        List of MeterReading objects in file order
    """
    tz = ZoneInfo(timezone) if timezone else None
    readings = []
    with open(csv_path, newline="") as f:
        reader = csv.DictReader(f)
        for row in reader:
            # DictReader fills missing cells of a short row with None
            if row["timestamp"] is None or row["energy_kwh"] is None:
                raise ValueError(f"Incomplete row on line {reader.line_num}")
            timestamp = datetime.fromisoformat(row["timestamp"])
            if timestamp.tzinfo is None and tz is not None:
                timestamp = timestamp.replace(tzinfo=tz)

            if start is not None and timestamp < start:
                continue
            if end is not None and timestamp >= end:
                continue

            readings.append(
                MeterReading(
                    timestamp=timestamp,
                    energy_kwh=float(row["energy_kwh"]),
                )
            )
    return readings


def write_csv(readings: list[MeterReading], csv_path: Path) -> int:
    """Write readings to a CSV file. Returns number of rows written."""
    with open(csv_path, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["timestamp", "energy_kwh"])
        for reading in readings:
            writer.writerow([reading.timestamp.isoformat(), reading.energy_kwh])
    return len(readings)
