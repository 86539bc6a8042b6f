"""Sample source backed by a JSON history endpoint served next to the sensor."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, List, Mapping, Optional

import httpx

from ..core.models import QualityIndex, Reading, SensorError, SensorErrorKind, SensorStatus

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def _parse_time(raw: Any) -> float:
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return float(raw)
    if not isinstance(raw, str):
        raise ValueError(f"unsupported time value {raw!r}")
    text = raw.strip()
    try:
        stamp = datetime.strptime(text, TIME_FORMAT)
    except ValueError:
        # Entries logged exactly on a whole second drop the fractional part.
        stamp = datetime.fromisoformat(text)
    # Naive stamps are local wall-clock time, which datetime.timestamp() assumes.
    return stamp.timestamp()


def parse_record(record: Mapping[str, Any]) -> Reading:
    """Convert one ``{time, status, qi, tvoc, co2}`` object into a :class:`Reading`."""
    try:
        return Reading(
            timestamp=_parse_time(record["time"]),
            co2_ppm=float(record["co2"]),
            tvoc_ppb=float(record["tvoc"]),
            quality=QualityIndex(int(record.get("qi", 0))),
            sensor_status=SensorStatus(int(record.get("status", 0))),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise SensorError(SensorErrorKind.PARSE_ERROR, f"bad record {record!r}: {exc}") from exc


def parse_payload(payload: Any) -> List[Reading]:
    """
    Parse a decoded JSON payload (a list of records or a single record).

    The result is sorted by time with duplicate timestamps dropped so it can
    be appended to a history store as-is.
    """
    if isinstance(payload, Mapping):
        records = [payload]
    elif isinstance(payload, list):
        records = payload
    else:
        raise SensorError(
            SensorErrorKind.PARSE_ERROR,
            f"expected a list or object, got {type(payload).__name__}",
        )
    readings: List[Reading] = []
    for record in records:
        if not isinstance(record, Mapping):
            raise SensorError(SensorErrorKind.PARSE_ERROR, f"bad record {record!r}")
        readings.append(parse_record(record))
    readings.sort(key=lambda r: r.timestamp)
    unique: List[Reading] = []
    for reading in readings:
        if unique and reading.timestamp <= unique[-1].timestamp:
            continue
        unique.append(reading)
    return unique


class HttpSampleSource:
    """Poll an HTTP endpoint returning sensor records; the newest one is the reading."""

    def __init__(self, url: str, *, client: Optional[httpx.Client] = None) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.Client(follow_redirects=True)

    @property
    def url(self) -> str:
        return self._url

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def fetch(self, timeout: float) -> Reading:
        readings = self.fetch_history(timeout)
        if not readings:
            raise SensorError(SensorErrorKind.PARSE_ERROR, "endpoint returned no readings")
        return readings[-1]

    def fetch_history(self, timeout: float) -> List[Reading]:
        """All readings the endpoint currently serves, oldest first."""
        payload = self._get_json(timeout)
        return parse_payload(payload)

    def _get_json(self, timeout: float) -> Any:
        try:
            response = self._client.get(self._url, timeout=timeout)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise SensorError(SensorErrorKind.TIMEOUT, f"{self._url} timed out") from exc
        except httpx.ConnectError as exc:
            raise SensorError(SensorErrorKind.NOT_FOUND, f"cannot reach {self._url}: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            kind = SensorErrorKind.NOT_FOUND if status == 404 else SensorErrorKind.IO_ERROR
            raise SensorError(kind, f"{self._url} returned HTTP {status}") from exc
        except httpx.HTTPError as exc:
            raise SensorError(SensorErrorKind.IO_ERROR, f"{self._url}: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            logger.debug("Non-JSON body from %s: %.200r", self._url, response.text)
            raise SensorError(SensorErrorKind.PARSE_ERROR, f"invalid JSON from {self._url}") from exc
