"""System probe adapter: interface status, Wi-Fi details, traffic rates and LAN discovery.

All blocking provider calls (psutil, nmcli/netsh, arp) run in worker threads.
The async entry points never raise; failures come back as ``None`` so an
unattended polling loop keeps going.
"""
from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import socket
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import psutil

from ultraspeed.config import TOOL_TIMEOUT
from ultraspeed.models import (
	MEDIUM_WIRED,
	MEDIUM_WIRELESS,
	STATE_DOWN,
	STATE_UP,
	ConnectionSnapshot,
	DeviceRecord,
	NetworkRates,
)

logger = logging.getLogger(__name__)

_WIRELESS_PREFIXES = ("wl", "wlan", "wi-fi", "wifi", "wireless", "airport")


@dataclass(slots=True, frozen=True)
class InterfaceInfo:
	"""Static facts about one interface, as read from psutil."""

	name: str
	type: str
	status: str
	ip4: str
	mac: str
	speed: float = 0

	def snapshot(self) -> ConnectionSnapshot:
		return ConnectionSnapshot(
			ssid=self.name,
			type=self.type,
			status=self.status,
			ip4=self.ip4,
			speed=self.speed,
			mac=self.mac,
			iface=self.name,
		)


@dataclass(slots=True, frozen=True)
class WifiStatus:
	ssid: str
	signal_level: int
	security: str


# ----------------------------------------------------------------------
# Interface helpers
# ----------------------------------------------------------------------
def resolve_default_interface() -> Optional[str]:
	"""Name of the interface owning the address used for outbound traffic.

	Connecting a UDP socket selects a route without sending anything.
	"""
	try:
		with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
			sock.connect(("8.8.8.8", 80))
			local_ip = sock.getsockname()[0]
	except OSError:
		return None
	for name, addrs in psutil.net_if_addrs().items():
		for addr in addrs:
			if addr.family == socket.AF_INET and addr.address == local_ip:
				return name
	return None


def detect_interface_type(name: str) -> str:
	if sys.platform.startswith("linux") and os.path.isdir(f"/sys/class/net/{name}/wireless"):
		return MEDIUM_WIRELESS
	if name.lower().startswith(_WIRELESS_PREFIXES):
		return MEDIUM_WIRELESS
	return MEDIUM_WIRED


def _first_address(addrs: List[Any], family: Any) -> str:
	for addr in addrs:
		if addr.family == family and addr.address:
			return addr.address
	return ""


# ----------------------------------------------------------------------
# Wi-Fi status
# ----------------------------------------------------------------------
def _split_terse(line: str) -> List[str]:
	return [part.replace("\\:", ":") for part in re.split(r"(?<!\\):", line)]


def parse_nmcli_wifi(output: str) -> Optional[WifiStatus]:
	"""Parse ``nmcli -t -f ACTIVE,SSID,SIGNAL,SECURITY device wifi list``."""
	for line in output.splitlines():
		fields = _split_terse(line.strip())
		if len(fields) < 4 or fields[0] != "yes":
			continue
		ssid, signal, security = fields[1], fields[2], fields[3]
		try:
			level = int(signal)
		except ValueError:
			level = 0
		return WifiStatus(ssid=ssid, signal_level=level, security=security or "Open")
	return None


def parse_netsh_interfaces(output: str) -> Optional[WifiStatus]:
	"""Parse ``netsh wlan show interfaces``."""
	info: Dict[str, str] = {}
	for raw in output.splitlines():
		line = raw.strip()
		if ":" not in line:
			continue
		key, value = (part.strip() for part in line.split(":", 1))
		lowered = key.lower()
		if lowered == "ssid":
			info["ssid"] = value
		elif lowered == "signal":
			info["signal"] = value.rstrip("%")
		elif lowered == "authentication":
			info["security"] = value
	if not info.get("ssid"):
		return None
	try:
		level = int(info.get("signal", "0"))
	except ValueError:
		level = 0
	return WifiStatus(ssid=info["ssid"], signal_level=level, security=info.get("security") or "N/A")


def query_wifi_status(iface: str) -> Optional[WifiStatus]:
	"""Ask the platform Wi-Fi tooling about the current association.

	Raises when no usable tool exists or the tool fails; callers treat that
	as "no enrichment available".
	"""
	if sys.platform.startswith("win"):
		result = subprocess.run(
			["netsh", "wlan", "show", "interfaces"],
			capture_output=True,
			text=True,
			timeout=TOOL_TIMEOUT,
			check=True,
		)
		return parse_netsh_interfaces(result.stdout)
	if shutil.which("nmcli"):
		result = subprocess.run(
			["nmcli", "-t", "-f", "ACTIVE,SSID,SIGNAL,SECURITY", "device", "wifi", "list", "ifname", iface],
			capture_output=True,
			text=True,
			timeout=TOOL_TIMEOUT,
			check=True,
		)
		return parse_nmcli_wifi(result.stdout)
	raise RuntimeError("no wireless status tool available on this platform")


# ----------------------------------------------------------------------
# LAN discovery
# ----------------------------------------------------------------------
_ARP_UNIX = re.compile(
	r"^(?P<name>\S+)\s+\((?P<ip>\d{1,3}(?:\.\d{1,3}){3})\)\s+at\s+(?P<mac>[0-9a-fA-F]{1,2}(?::[0-9a-fA-F]{1,2}){5})"
)
_ARP_WINDOWS = re.compile(
	r"^\s*(?P<ip>\d{1,3}(?:\.\d{1,3}){3})\s+(?P<mac>[0-9a-fA-F]{2}(?:-[0-9a-fA-F]{2}){5})\s+\w+"
)


def normalize_mac(mac: str) -> str:
	parts = re.split(r"[:-]", mac.strip())
	return ":".join(part.zfill(2) for part in parts).lower()


def _skip_host(ip: str, mac: str) -> bool:
	if mac == "ff:ff:ff:ff:ff:ff" or mac == "00:00:00:00:00:00":
		return True
	first_octet = int(ip.split(".")[0])
	return 224 <= first_octet <= 239 or ip.endswith(".255")


def parse_arp_table(output: str) -> List[DeviceRecord]:
	"""Parse ``arp -a`` output from BSD/macOS, Linux net-tools or Windows."""
	devices: Dict[str, DeviceRecord] = {}
	for line in output.splitlines():
		match = _ARP_UNIX.search(line)
		name = ""
		if match:
			name = match.group("name")
			if name == "?":
				name = ""
		else:
			match = _ARP_WINDOWS.search(line)
			if not match:
				continue
		ip = match.group("ip")
		mac = normalize_mac(match.group("mac"))
		if _skip_host(ip, mac) or ip in devices:
			continue
		devices[ip] = DeviceRecord(ip=ip, mac=mac, name=name)
	return list(devices.values())


def parse_proc_arp(output: str) -> List[DeviceRecord]:
	"""Parse the Linux ``/proc/net/arp`` table."""
	devices: Dict[str, DeviceRecord] = {}
	for line in output.splitlines()[1:]:
		fields = line.split()
		if len(fields) < 4:
			continue
		ip, flags, mac = fields[0], fields[2], normalize_mac(fields[3])
		# 0x0 marks an incomplete entry
		if flags == "0x0" or _skip_host(ip, mac) or ip in devices:
			continue
		devices[ip] = DeviceRecord(ip=ip, mac=mac, name="")
	return list(devices.values())


def read_arp_table() -> List[DeviceRecord]:
	"""Blocking LAN discovery from the system neighbour table."""
	if shutil.which("arp"):
		result = subprocess.run(
			["arp", "-a"],
			capture_output=True,
			text=True,
			timeout=TOOL_TIMEOUT,
			check=True,
		)
		return parse_arp_table(result.stdout)
	if os.path.exists("/proc/net/arp"):
		with open("/proc/net/arp", "r", encoding="utf-8") as handle:
			return parse_proc_arp(handle.read())
	raise RuntimeError("no ARP table source available on this platform")


# ----------------------------------------------------------------------
# Traffic rates
# ----------------------------------------------------------------------
class RateSampler:
	"""Turn cumulative per-interface byte counters into per-second rates.

	The first reading of an interface has no baseline and reports zero.
	"""

	def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
		self._clock = clock
		self._last: Dict[str, Tuple[int, int, float]] = {}
		self._lock = threading.Lock()

	def sample(self, counters: Mapping[str, Any]) -> Dict[str, NetworkRates]:
		rates: Dict[str, NetworkRates] = {}
		with self._lock:
			now = self._clock()
			for name, counter in counters.items():
				previous = self._last.get(name)
				self._last[name] = (counter.bytes_recv, counter.bytes_sent, now)
				if previous is None:
					rates[name] = NetworkRates(rx_sec=0.0, tx_sec=0.0, iface=name)
					continue
				prev_rx, prev_tx, prev_time = previous
				elapsed = max(now - prev_time, 1e-3)
				rates[name] = NetworkRates(
					rx_sec=max(0.0, (counter.bytes_recv - prev_rx) / elapsed),
					tx_sec=max(0.0, (counter.bytes_sent - prev_tx) / elapsed),
					iface=name,
				)
		return rates


# ----------------------------------------------------------------------
# Probe
# ----------------------------------------------------------------------
class SystemProbe:
	"""Adapter over psutil and the platform network tools."""

	def __init__(
		self,
		*,
		default_interface: Callable[[], Optional[str]] = resolve_default_interface,
		interface_type: Callable[[str], str] = detect_interface_type,
		wifi_status: Callable[[str], Optional[WifiStatus]] = query_wifi_status,
		discover: Callable[[], List[DeviceRecord]] = read_arp_table,
		sampler: Optional[RateSampler] = None,
	) -> None:
		self._default_interface = default_interface
		self._interface_type = interface_type
		self._wifi_status = wifi_status
		self._discover = discover
		self._sampler = sampler or RateSampler()

	async def get_active_connection(self) -> Optional[ConnectionSnapshot]:
		try:
			iface = await asyncio.to_thread(self.select_interface)
			if iface is None:
				return ConnectionSnapshot.disconnected()

			snapshot = iface.snapshot()
			if iface.type == MEDIUM_WIRELESS:
				try:
					status = await asyncio.to_thread(self._wifi_status, iface.name)
				except Exception as exc:
					logger.warning("WiFi info fetch failed, falling back to iface name: %s", exc)
				else:
					if status is not None:
						snapshot = replace(
							snapshot,
							ssid=status.ssid or iface.name,
							signal_level=status.signal_level,
							security=status.security,
						)
			else:
				snapshot = replace(snapshot, ssid="Ethernet Connection")
			return snapshot
		except Exception:
			logger.exception("Connection check error")
			return None

	async def get_network_usage(self) -> Optional[NetworkRates]:
		try:
			return await asyncio.to_thread(self.read_usage)
		except Exception:
			logger.exception("Network usage error")
			return None

	def discover_devices(self) -> List[DeviceRecord]:
		"""Blocking discovery; may raise or take arbitrarily long."""
		return list(self._discover())

	def select_interface(self) -> Optional[InterfaceInfo]:
		stats = psutil.net_if_stats()
		addrs = psutil.net_if_addrs()

		default_name = self._default_interface()
		if default_name and default_name in stats:
			return self._describe(default_name, stats[default_name], addrs.get(default_name, []))

		for name, st in stats.items():
			info = self._describe(name, st, addrs.get(name, []))
			if info.status == STATE_UP and info.ip4 and not info.ip4.startswith("127."):
				return info
		return None

	def read_usage(self) -> Optional[NetworkRates]:
		rates = self._sampler.sample(psutil.net_io_counters(pernic=True))
		default_name = self._default_interface()
		if default_name and default_name in rates:
			return rates[default_name]
		for entry in rates.values():
			if entry.rx_sec > 0 or entry.tx_sec > 0:
				return entry
		return next(iter(rates.values()), None)

	def _describe(self, name: str, st: Any, addrs: List[Any]) -> InterfaceInfo:
		return InterfaceInfo(
			name=name,
			type=self._interface_type(name),
			status=STATE_UP if st.isup else STATE_DOWN,
			ip4=_first_address(addrs, socket.AF_INET),
			mac=_first_address(addrs, psutil.AF_LINK),
			speed=st.speed or 0,
		)


__all__ = [
	"InterfaceInfo",
	"RateSampler",
	"SystemProbe",
	"WifiStatus",
	"detect_interface_type",
	"normalize_mac",
	"parse_arp_table",
	"parse_netsh_interfaces",
	"parse_nmcli_wifi",
	"parse_proc_arp",
	"query_wifi_status",
	"read_arp_table",
	"resolve_default_interface",
]
