"""Display-side access to the coordinator, in-process or over HTTP."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ultraspeed.config import DEFAULT_API_BASE, SCAN_TIMEOUT
from ultraspeed.coordinator import Coordinator
from ultraspeed.models import ConnectionSnapshot, DeviceRecord, NetworkRates

logger = logging.getLogger(__name__)


class LocalBridge:
    """Calls a :class:`Coordinator` living in the same process."""

    def __init__(self, coordinator: Optional[Coordinator] = None) -> None:
        self.coordinator = coordinator or Coordinator()

    async def get_active_connection(self) -> Optional[ConnectionSnapshot]:
        return await self.coordinator.get_active_connection()

    async def get_local_devices(self) -> Optional[List[DeviceRecord]]:
        return await self.coordinator.get_local_devices()

    async def get_network_usage(self) -> Optional[NetworkRates]:
        return await self.coordinator.get_network_usage()

    def describe(self) -> Dict[str, Any]:
        return {"mode": "local"}


class HttpBridge:
    """Calls the coordinator API of another process.

    Transport errors propagate as :class:`requests.RequestException`; the
    aggregator treats them as "no data this tick".
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: float = 5.0,
        scan_timeout: float = SCAN_TIMEOUT,
    ) -> None:
        self.base_url = (base_url or DEFAULT_API_BASE).strip().rstrip("/")
        self.timeout = timeout
        self.scan_timeout = scan_timeout

    async def get_active_connection(self) -> Optional[ConnectionSnapshot]:
        payload = await asyncio.to_thread(self._get, "/active-connection", self.timeout)
        if not isinstance(payload, dict):
            return None
        return ConnectionSnapshot.from_dict(payload)

    async def get_local_devices(self) -> Optional[List[DeviceRecord]]:
        payload = await asyncio.to_thread(
            self._get,
            "/local-devices",
            max(self.scan_timeout + 5.0, 10.0),
        )
        if not isinstance(payload, list):
            logger.warning("No devices returned or invalid format")
            return None
        return [DeviceRecord.from_dict(item) for item in payload if isinstance(item, dict)]

    async def get_network_usage(self) -> Optional[NetworkRates]:
        payload = await asyncio.to_thread(self._get, "/network-usage", self.timeout)
        if not isinstance(payload, dict):
            return None
        return NetworkRates.from_dict(payload)

    def _get(self, path: str, timeout: float) -> Any:
        response = requests.get(f"{self.base_url}{path}", timeout=timeout)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError:
            if response.text:
                return json.loads(response.text)
            return None

    def describe(self) -> Dict[str, Any]:
        return {"mode": "http", "base_url": self.base_url}


__all__ = ["HttpBridge", "LocalBridge"]
