"""InfluxDB sink.

Writes a batch of points with a single synchronous write, at second
precision. InfluxDB 1.8+ is reached through the client's v1 compatibility
mode: the bucket is "<database>/autogen" and the token "<user>:<password>".
"""

from typing import Sequence

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS
from influxdb_client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError

from ..models import OutputPoint

DEFAULT_TIMEOUT_MS = 30_000
# v1 compatibility mode ignores the organisation
V1_ORG = "-"


class InfluxError(Exception):
    """Base exception for InfluxDB sink errors."""
    pass


def to_point(point: OutputPoint) -> Point:
    """Create an InfluxDB point from an output point.

    Naive timestamps are written as UTC.
    """
    record = Point(point.measurement)
    for key, value in point.tags.items():
        record = record.tag(key, value)
    for key, value in point.fields.items():
        record = record.field(key, value)
    return record.time(point.timestamp, WritePrecision.S)


class InfluxSink:
    """Commits output points to an InfluxDB database."""

    def __init__(
        self,
        url: str,
        database: str,
        user: str | None = None,
        password: str | None = None,
    ):
        self.url = url.rstrip("/")
        self.database = database
        self.token = f"{user}:{password or ''}" if user else None

    @property
    def bucket(self) -> str:
        return f"{self.database}/autogen"

    def write(self, points: Sequence[OutputPoint]) -> int:
        """Write the batch. Returns number of points written."""
        if not points:
            return 0

        records = [to_point(p) for p in points]
        try:
            with InfluxDBClient(
                url=self.url, token=self.token, org=V1_ORG, timeout=DEFAULT_TIMEOUT_MS
            ) as client:
                write_api = client.write_api(write_options=SYNCHRONOUS)
                write_api.write(bucket=self.bucket, record=records, write_precision=WritePrecision.S)
        except ApiException as e:
            raise InfluxError(f"HTTP error from InfluxDB: {e.status} - {e.reason}")
        except TransportError as e:
            raise InfluxError(f"Network error connecting to InfluxDB: {e}")
        return len(records)
