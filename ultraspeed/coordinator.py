"""Privileged coordinator: owns the probe and the device-scan guard."""
from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from typing import Awaitable, Iterator, List, Optional, TypeVar

from ultraspeed.config import SCAN_TIMEOUT
from ultraspeed.models import ConnectionSnapshot, DeviceRecord, NetworkRates
from ultraspeed.probe import SystemProbe

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DiscoveryTimeout(TimeoutError):
    """Raised when device discovery loses the race against its deadline."""


class ScanGuard:
    """Single-holder flag for device scans.

    Acquisition never waits: a caller that finds the guard held gets
    ``False`` back and is expected to try again later.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._lock.locked()

    @contextlib.contextmanager
    def hold(self) -> Iterator[bool]:
        acquired = self._lock.acquire(blocking=False)
        try:
            yield acquired
        finally:
            if acquired:
                self._lock.release()


def _consume_late_result(task: "asyncio.Future[object]") -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug("Late discovery branch failed after its deadline: %s", exc)
    else:
        logger.debug("Late discovery result dropped after deadline")


async def first_or_deadline(awaitable: Awaitable[T], timeout: float) -> T:
    """Await ``awaitable`` unless ``timeout`` seconds elapse first.

    On timeout the pending branch is left running and its eventual result
    is dropped; it is not cancelled.
    """
    task = asyncio.ensure_future(awaitable)
    done, _ = await asyncio.wait({task}, timeout=timeout)
    if task not in done:
        task.add_done_callback(_consume_late_result)
        raise DiscoveryTimeout(f"discovery exceeded {timeout:.1f}s")
    return task.result()


class Coordinator:
    """Request/response surface over the system probe."""

    def __init__(self, probe: Optional[SystemProbe] = None, *, scan_timeout: float = SCAN_TIMEOUT) -> None:
        self.probe = probe or SystemProbe()
        self.scan_timeout = scan_timeout
        self.guard = ScanGuard()

    async def get_active_connection(self) -> Optional[ConnectionSnapshot]:
        return await self.probe.get_active_connection()

    async def get_network_usage(self) -> Optional[NetworkRates]:
        return await self.probe.get_network_usage()

    async def get_local_devices(self) -> List[DeviceRecord]:
        with self.guard.hold() as acquired:
            if not acquired:
                logger.debug("Device scan already running; returning empty result")
                return []
            try:
                return await first_or_deadline(
                    asyncio.to_thread(self.probe.discover_devices),
                    self.scan_timeout,
                )
            except DiscoveryTimeout as exc:
                logger.warning("Local devices scan error: %s", exc)
            except Exception:
                logger.exception("Local devices scan error")
            return []


__all__ = [
    "Coordinator",
    "DiscoveryTimeout",
    "ScanGuard",
    "first_or_deadline",
]
