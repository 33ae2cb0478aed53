"""UltraSpeed command-line interface."""
from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from ultraspeed.aggregator import Aggregator, DisplayState
from ultraspeed.bridge import HttpBridge, LocalBridge
from ultraspeed.config import API_HOST, API_PORT, INITIAL_SCAN_DELAY, POLL_INTERVAL, SCAN_TIMEOUT, WEB_PORT
from ultraspeed.coordinator import Coordinator
from ultraspeed.metrics import UsageLog
from ultraspeed.units import GAUGE_MAX, format_speed, gauge_fill

_SPARK = "▁▂▃▄▅▆▇█"


def sparkline(values: List[float]) -> str:
	if not values:
		return ""
	peak = max(max(values), 1.0)
	top = len(_SPARK) - 1
	return "".join(_SPARK[min(top, int(value / peak * top))] for value in values)


def _gauge_bar(value: int, width: int = 20) -> str:
	filled = int(round(gauge_fill(value, GAUGE_MAX) * width))
	return "█" * filled + "·" * (width - filled)


def device_label(name: str) -> str:
	lowered = (name or "").lower()
	if "mac" in lowered:
		kind = "laptop"
	elif "phone" in lowered:
		kind = "mobile"
	else:
		kind = "desktop"
	return f"{name or 'Unknown'} [dim]({kind})[/dim]"


def render_dashboard(payload: Dict[str, Any]) -> Group:
	connection = payload.get("connection")
	info = Table.grid(padding=(0, 2))
	info.add_column(style="bold")
	info.add_column()
	if connection:
		info.add_row("Type / SSID", f"{connection['type']} / {connection['ssid']}")
		info.add_row("Interface", connection.get("iface") or "...")
		info.add_row("Status", "[green]Online[/green]" if connection["status"] == "up" else "[red]Offline[/red]")
		info.add_row("IPv4 Address", connection.get("ip4") or "0.0.0.0")
		info.add_row("Encryption", connection.get("security") or "N/A")
		info.add_row("MAC Address", connection.get("mac") or "...")
	else:
		info.add_row("Type / SSID", "Searching...")

	history = payload.get("history", [])
	download, upload, gauges = payload["download"], payload["upload"], payload["gauges"]
	activity = Table.grid(padding=(0, 2))
	activity.add_column(style="bold")
	activity.add_column()
	activity.add_row("Download (KB/s)", f"[green]{sparkline([s['rx'] for s in history])}[/green]")
	activity.add_row("Upload (KB/s)", f"[magenta]{sparkline([s['tx'] for s in history])}[/magenta]")
	activity.add_row("Download Rate", f"{download['value']} {download['unit']}")
	activity.add_row("Upload Rate", f"{upload['value']} {upload['unit']}")

	gauge_table = Table.grid(padding=(0, 2))
	gauge_table.add_column(style="bold")
	gauge_table.add_column()
	gauge_table.add_column(justify="right")
	gauge_table.add_row("Download", _gauge_bar(gauges["download"]), f"{gauges['download']} Mbps")
	gauge_table.add_row("Upload", _gauge_bar(gauges["upload"]), f"{gauges['upload']} Mbps")
	gauge_table.add_row("Latency*", _gauge_bar(gauges["latency"]), f"{gauges['latency']} ms")
	gauge_table.add_row("Uptime", _gauge_bar(gauges["uptime"]), f"{gauges['uptime']} %")

	devices = payload.get("devices", [])
	scanning = payload.get("scanning", False)
	device_table = Table(title=f"Discovered Devices ({len(devices)})", expand=True)
	for column in ("device", "mac", "ip"):
		device_table.add_column(column.upper())
	for entry in devices:
		device_table.add_row(device_label(entry.get("name", "")), entry.get("mac", ""), entry.get("ip", ""))
	if not devices:
		device_table.add_row("Scanning network for devices..." if scanning else "No devices detected.", "", "")

	return Group(
		Panel(info, title="Basic Information"),
		Panel(activity, title="Network Activity"),
		Panel(gauge_table, title="Performance Gauges", subtitle="* latency is a placeholder, not measured"),
		device_table,
	)


async def _cmd_status(args: argparse.Namespace) -> int:
	coordinator = Coordinator()
	connection = await coordinator.get_active_connection()
	# rates need a baseline reading before they mean anything
	await coordinator.get_network_usage()
	await asyncio.sleep(args.interval)
	usage = await coordinator.get_network_usage()
	data = {
		"connection": connection.to_dict() if connection else None,
		"usage": usage.to_dict() if usage else None,
	}
	if args.json:
		json.dump(data, sys.stdout, indent=2)
		sys.stdout.write("\n")
		return 0
	console = Console()
	table = Table(title="UltraSpeed Status", show_header=False)
	for key, value in (data["connection"] or {}).items():
		table.add_row(key, str(value))
	if usage:
		down, up = format_speed(usage.rx_sec), format_speed(usage.tx_sec)
		table.add_row("download", f"{down.value} {down.unit}")
		table.add_row("upload", f"{up.value} {up.unit}")
	console.print(table)
	return 0 if connection is not None else 1


async def _cmd_scan(args: argparse.Namespace) -> int:
	coordinator = Coordinator(scan_timeout=args.timeout)
	devices = await coordinator.get_local_devices()
	data = [device.to_dict() for device in devices]
	if args.json:
		json.dump(data, sys.stdout, indent=2)
		sys.stdout.write("\n")
		return 0
	console = Console()
	table = Table(title="UltraSpeed Scan Results", show_lines=False)
	for column in ("ip", "mac", "name"):
		table.add_column(column.upper())
	for entry in data:
		table.add_row(entry["ip"], entry["mac"], entry["name"] or "Unknown")
	console.print(table)
	return 0


async def _cmd_watch(args: argparse.Namespace) -> int:
	bridge = HttpBridge(args.api) if args.api else LocalBridge()
	usage_log: Optional[UsageLog] = None
	if args.log:
		usage_log = UsageLog(Path(args.log))
	state = DisplayState()
	aggregator = Aggregator(
		bridge,
		state,
		poll_interval=args.poll_interval,
		initial_scan_delay=args.initial_scan_delay,
		usage_log=usage_log,
	)

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()
	for sig in (signal.SIGINT, signal.SIGTERM):
		with contextlib.suppress(NotImplementedError):
			loop.add_signal_handler(sig, stop_event.set)
	rescan_signal = getattr(signal, "SIGUSR1", None)
	if rescan_signal is not None:
		with contextlib.suppress(NotImplementedError):
			loop.add_signal_handler(rescan_signal, aggregator.request_scan)

	aggregator.start()
	try:
		with Live(render_dashboard(state.snapshot()), refresh_per_second=2, screen=False) as live:
			unsubscribe = state.subscribe(lambda _event: live.update(render_dashboard(state.snapshot())))
			try:
				await asyncio.wait_for(stop_event.wait(), timeout=args.runtime)
			except asyncio.TimeoutError:
				pass
			finally:
				unsubscribe()
	finally:
		aggregator.stop()
	return 0


def _cmd_serve(args: argparse.Namespace) -> int:
	import uvicorn

	uvicorn.run("ultraspeed.api:app", host=args.host, port=args.port, log_level=args.log_level.lower())
	return 0


def _cmd_web(args: argparse.Namespace) -> int:
	from ultraspeed import web_ui

	web_ui.main(api_base=args.api, port=args.port, open_browser=not args.no_browser)
	return 0


def _build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="UltraSpeed network dashboard")
	parser.add_argument("--log-level", default="WARNING", help="Python logging level")
	sub = parser.add_subparsers(dest="command", required=True)

	serve = sub.add_parser("serve", help="Run the coordinator API")
	serve.add_argument("--host", default=API_HOST)
	serve.add_argument("--port", type=int, default=API_PORT)
	serve.set_defaults(handler=_cmd_serve)

	web = sub.add_parser("web", help="Run the browser dashboard against a coordinator API")
	web.add_argument("--api", help="Coordinator base URL")
	web.add_argument("--port", type=int, default=WEB_PORT)
	web.add_argument("--no-browser", action="store_true", help="Do not open a browser window")
	web.set_defaults(handler=_cmd_web)

	status = sub.add_parser("status", help="Print the active connection and current rates")
	status.add_argument("--interval", type=float, default=1.0, help="Seconds between rate readings")
	status.add_argument("--json", action="store_true", help="Output JSON")
	status.set_defaults(handler=_cmd_status)

	scan = sub.add_parser("scan", help="Discover devices on the local network")
	scan.add_argument("--timeout", type=float, default=SCAN_TIMEOUT, help="Discovery deadline in seconds")
	scan.add_argument("--json", action="store_true", help="Output JSON")
	scan.set_defaults(handler=_cmd_scan)

	watch = sub.add_parser("watch", help="Live terminal dashboard (send SIGUSR1 to rescan)")
	watch.add_argument("--api", help="Coordinator base URL; in-process coordinator when omitted")
	watch.add_argument("--poll-interval", type=float, default=POLL_INTERVAL, help="Seconds between polls")
	watch.add_argument("--initial-scan-delay", type=float, default=INITIAL_SCAN_DELAY, help="Seconds before the first device scan")
	watch.add_argument("--runtime", type=float, help="Optional dashboard duration seconds")
	watch.add_argument("--log", help="Path to a CSV usage log")
	watch.set_defaults(handler=_cmd_watch)

	return parser


def main(argv: Optional[List[str]] = None) -> int:
	parser = _build_parser()
	args = parser.parse_args(argv)
	logging.basicConfig(
		level=getattr(logging, args.log_level.upper(), logging.WARNING),
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)
	result = args.handler(args)
	if asyncio.iscoroutine(result):
		return asyncio.run(result)
	return result


if __name__ == "__main__":
	sys.exit(main())
