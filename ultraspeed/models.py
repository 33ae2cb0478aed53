"""Data shapes exchanged between the coordinator and the display side.

Field names match the JSON wire format of the coordinator API.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Mapping, Optional

MEDIUM_WIRED = "wired"
MEDIUM_WIRELESS = "wireless"
MEDIUM_NONE = "none"

STATE_UP = "up"
STATE_DOWN = "down"


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


@dataclass(slots=True, frozen=True)
class ConnectionSnapshot:
    """Point-in-time read of the active network interface."""

    ssid: str
    type: str = MEDIUM_NONE
    status: str = STATE_DOWN
    ip4: str = "0.0.0.0"
    speed: float = 0
    signal_level: int = 100
    security: str = "N/A"
    mac: str = ""
    iface: str = ""

    @classmethod
    def disconnected(cls) -> "ConnectionSnapshot":
        return cls(ssid="No Connection", signal_level=0)

    @property
    def online(self) -> bool:
        return self.status == STATE_UP

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ConnectionSnapshot":
        return cls(
            ssid=_as_str(payload.get("ssid")),
            type=_as_str(payload.get("type"), MEDIUM_NONE),
            status=_as_str(payload.get("status"), STATE_DOWN),
            ip4=_as_str(payload.get("ip4"), "0.0.0.0"),
            speed=_as_float(payload.get("speed")),
            signal_level=_as_int(payload.get("signal_level"), 100),
            security=_as_str(payload.get("security"), "N/A"),
            mac=_as_str(payload.get("mac")),
            iface=_as_str(payload.get("iface")),
        )


@dataclass(slots=True, frozen=True)
class DeviceRecord:
    """A host seen on the LAN during one scan."""

    ip: str
    mac: str
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DeviceRecord":
        return cls(
            ip=_as_str(payload.get("ip")),
            mac=_as_str(payload.get("mac")),
            name=_as_str(payload.get("name")),
        )


@dataclass(slots=True, frozen=True)
class NetworkRates:
    """Byte rates for one interface, as reported by the coordinator."""

    rx_sec: float
    tx_sec: float
    iface: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"iface": self.iface, "rx_sec": self.rx_sec, "tx_sec": self.tx_sec}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "NetworkRates":
        iface = payload.get("iface")
        return cls(
            rx_sec=_as_float(payload.get("rx_sec")),
            tx_sec=_as_float(payload.get("tx_sec")),
            iface=str(iface) if iface is not None else None,
        )


@dataclass(slots=True, frozen=True)
class UsageSample:
    """One point of the rolling bandwidth chart, rates in KB/s."""

    label: str
    rx: float
    tx: float

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


__all__ = [
    "ConnectionSnapshot",
    "DeviceRecord",
    "NetworkRates",
    "UsageSample",
    "MEDIUM_WIRED",
    "MEDIUM_WIRELESS",
    "MEDIUM_NONE",
    "STATE_UP",
    "STATE_DOWN",
]
