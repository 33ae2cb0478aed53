"""Integration-style tests for the coordinator API using fakes."""
from __future__ import annotations

import unittest
from typing import List, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient

import ultraspeed.api as api_module
from ultraspeed.config import CONTENT_SECURITY_POLICY
from ultraspeed.coordinator import ScanGuard
from ultraspeed.models import ConnectionSnapshot, DeviceRecord, NetworkRates


class _FakeCoordinator:
    def __init__(
        self,
        connection: Optional[ConnectionSnapshot] = None,
        devices: Optional[List[DeviceRecord]] = None,
        usage: Optional[NetworkRates] = None,
    ) -> None:
        self.connection = connection
        self.devices = devices or []
        self.usage = usage
        self.guard = ScanGuard()
        self.scan_calls = 0

    async def get_active_connection(self) -> Optional[ConnectionSnapshot]:
        return self.connection

    async def get_local_devices(self) -> List[DeviceRecord]:
        self.scan_calls += 1
        return list(self.devices)

    async def get_network_usage(self) -> Optional[NetworkRates]:
        return self.usage


class ApiSimulationTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(api_module.app)

    def tearDown(self) -> None:
        self.client.close()

    def test_active_connection_returns_snapshot_fields(self) -> None:
        fake = _FakeCoordinator(
            connection=ConnectionSnapshot(
                ssid="HomeNet",
                type="wireless",
                status="up",
                ip4="192.168.1.5",
                speed=866,
                signal_level=70,
                security="WPA2",
                mac="aa:bb:cc:dd:ee:01",
                iface="wlan0",
            )
        )
        with patch("ultraspeed.api.coordinator", fake):
            response = self.client.get("/active-connection")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["ssid"], "HomeNet")
        self.assertEqual(payload["signal_level"], 70)
        self.assertEqual(payload["iface"], "wlan0")
        self.assertEqual(
            set(payload),
            {"ssid", "type", "status", "ip4", "speed", "signal_level", "security", "mac", "iface"},
        )

    def test_failures_are_null_or_empty(self) -> None:
        with patch("ultraspeed.api.coordinator", _FakeCoordinator()):
            connection = self.client.get("/active-connection")
            devices = self.client.get("/local-devices")
            usage = self.client.get("/network-usage")

        self.assertIsNone(connection.json())
        self.assertEqual(devices.json(), [])
        self.assertIsNone(usage.json())

    def test_local_devices_and_usage_payloads(self) -> None:
        fake = _FakeCoordinator(
            devices=[DeviceRecord(ip="192.168.1.9", mac="aa:bb:cc:dd:ee:09", name="tv")],
            usage=NetworkRates(rx_sec=2048.0, tx_sec=512.0, iface="eth0"),
        )
        with patch("ultraspeed.api.coordinator", fake):
            devices = self.client.get("/local-devices").json()
            usage = self.client.get("/network-usage").json()

        self.assertEqual(devices, [{"ip": "192.168.1.9", "mac": "aa:bb:cc:dd:ee:09", "name": "tv"}])
        self.assertEqual(usage["rx_sec"], 2048.0)
        self.assertEqual(usage["tx_sec"], 512.0)
        self.assertEqual(fake.scan_calls, 1)

    def test_health_reports_scan_guard_and_sets_csp(self) -> None:
        fake = _FakeCoordinator()
        with patch("ultraspeed.api.coordinator", fake):
            idle = self.client.get("/health")
            with fake.guard.hold():
                busy = self.client.get("/health")

        self.assertEqual(idle.json()["status"], "ok")
        self.assertFalse(idle.json()["scanning"])
        self.assertTrue(busy.json()["scanning"])
        self.assertEqual(idle.headers["content-security-policy"], CONTENT_SECURITY_POLICY)


if __name__ == "__main__":
    unittest.main()
