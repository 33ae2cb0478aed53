"""Tests for the HTTP bridge with requests faked."""
from __future__ import annotations

import unittest
from unittest.mock import MagicMock, patch

import requests

from ultraspeed.bridge import HttpBridge, LocalBridge
from ultraspeed.models import ConnectionSnapshot


def _response(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


class HttpBridgeTest(unittest.IsolatedAsyncioTestCase):
    async def test_decodes_coordinator_payloads(self) -> None:
        bridge = HttpBridge("http://coordinator:8000/", scan_timeout=2.0)
        payloads = {
            "http://coordinator:8000/active-connection": {"ssid": "HomeNet", "status": "up", "type": "wireless"},
            "http://coordinator:8000/local-devices": [{"ip": "10.0.0.2", "mac": "aa:bb:cc:dd:ee:02", "name": "tv"}, "junk"],
            "http://coordinator:8000/network-usage": {"rx_sec": 100, "tx_sec": 50, "iface": "wlan0"},
        }
        calls = []

        def fake_get(url, timeout):
            calls.append((url, timeout))
            return _response(payloads[url])

        with patch("ultraspeed.bridge.requests.get", side_effect=fake_get):
            connection = await bridge.get_active_connection()
            devices = await bridge.get_local_devices()
            usage = await bridge.get_network_usage()

        self.assertEqual(connection.ssid, "HomeNet")
        self.assertTrue(connection.online)
        self.assertEqual([d.name for d in devices], ["tv"])
        self.assertEqual((usage.rx_sec, usage.tx_sec, usage.iface), (100.0, 50.0, "wlan0"))
        self.assertIn(("http://coordinator:8000/local-devices", 10.0), calls)

    async def test_null_payloads_become_none(self) -> None:
        bridge = HttpBridge("http://coordinator:8000")
        with patch("ultraspeed.bridge.requests.get", return_value=_response(None)):
            self.assertIsNone(await bridge.get_active_connection())
            self.assertIsNone(await bridge.get_network_usage())
            with self.assertLogs("ultraspeed.bridge", level="WARNING"):
                self.assertIsNone(await bridge.get_local_devices())

    async def test_transport_errors_propagate(self) -> None:
        bridge = HttpBridge("http://coordinator:8000")
        with patch("ultraspeed.bridge.requests.get", side_effect=requests.ConnectionError("refused")):
            with self.assertRaises(requests.RequestException):
                await bridge.get_active_connection()


class LocalBridgeTest(unittest.IsolatedAsyncioTestCase):
    async def test_forwards_to_coordinator(self) -> None:
        coordinator = MagicMock()

        async def connection():
            return ConnectionSnapshot.disconnected()

        coordinator.get_active_connection = connection
        bridge = LocalBridge(coordinator)
        snapshot = await bridge.get_active_connection()
        self.assertEqual(snapshot.ssid, "No Connection")
        self.assertEqual(bridge.describe(), {"mode": "local"})


if __name__ == "__main__":
    unittest.main()
