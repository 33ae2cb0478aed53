"""CSV recorder for applied usage samples and device scan outcomes."""
from __future__ import annotations

import csv
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence

from ultraspeed.models import UsageSample


DEFAULT_FIELDS: Sequence[str] = (
    "timestamp",
    "event",
    "status",
    "rx_kbps",
    "tx_kbps",
    "value",
    "message",
)


def _ensure_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _cell(value: Optional[float]) -> Any:
    if value is None:
        return ""
    return round(value, 3)


@dataclass(slots=True)
class UsageRecord:
    """Simple value container representing a single CSV row."""

    timestamp: str
    event: str
    status: Optional[str] = None
    rx_kbps: Optional[float] = None
    tx_kbps: Optional[float] = None
    value: Optional[float] = None
    message: Optional[str] = None

    def as_row(self, fields: Sequence[str]) -> Dict[str, Any]:
        row: Dict[str, Any] = {
            "timestamp": self.timestamp,
            "event": self.event,
            "status": self.status or "",
            "rx_kbps": _cell(self.rx_kbps),
            "tx_kbps": _cell(self.tx_kbps),
            "value": _cell(self.value),
            "message": self.message or "",
        }
        return {key: row.get(key, "") for key in fields}


class UsageLog:
    """Append-only CSV log of what the dashboard applied.

    Rows are written unbuffered so the file can be tailed while the
    dashboard runs. The log is never read back into dashboard state.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        fields: Sequence[str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.path = Path(path)
        self.fields: Sequence[str] = tuple(fields) if fields else DEFAULT_FIELDS
        if not self.fields:
            raise ValueError("fields must contain at least one column")

        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._ensure_header()

    def _ensure_header(self) -> None:
        if self.path.exists() and self.path.stat().st_size > 0:
            return
        with self._lock:
            with self.path.open("w", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore")
                writer.writeheader()
                handle.flush()

    def log(
        self,
        event: str,
        *,
        status: Optional[str] = None,
        rx_kbps: Optional[float] = None,
        tx_kbps: Optional[float] = None,
        value: Optional[float] = None,
        message: Optional[str] = None,
    ) -> None:
        record = UsageRecord(
            timestamp=self._timestamp(),
            event=event,
            status=status,
            rx_kbps=rx_kbps,
            tx_kbps=tx_kbps,
            value=value,
            message=message,
        )
        self._write_row(record)

    def record_sample(self, sample: UsageSample) -> None:
        self.log("usage", status="ok", rx_kbps=sample.rx, tx_kbps=sample.tx, message=sample.label)

    def record_scan(self, device_count: Optional[int], *, duration: Optional[float] = None) -> None:
        if device_count is None:
            self.log("scan", status="error", value=duration)
            return
        self.log("scan", status="ok", value=duration, message=f"{device_count} devices")

    def _write_row(self, record: UsageRecord) -> None:
        row = record.as_row(self.fields)
        with self._lock:
            with self.path.open("a", newline="", encoding="utf-8") as handle:
                writer = csv.DictWriter(handle, fieldnames=self.fields, extrasaction="ignore")
                writer.writerow(row)
                handle.flush()

    def _timestamp(self) -> str:
        dt = self._clock()
        if not isinstance(dt, datetime):
            return str(dt)
        return _ensure_utc(dt).isoformat(timespec="milliseconds")


__all__ = [
    "UsageLog",
    "UsageRecord",
    "DEFAULT_FIELDS",
]
