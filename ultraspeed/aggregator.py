"""Display state aggregator: polls the coordinator and feeds a single state owner."""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from time import perf_counter
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Set, Tuple

from ultraspeed.config import HISTORY_LIMIT, INITIAL_SCAN_DELAY, POLL_INTERVAL
from ultraspeed.metrics import UsageLog
from ultraspeed.models import ConnectionSnapshot, DeviceRecord, NetworkRates, UsageSample
from ultraspeed.units import rates_summary

logger = logging.getLogger(__name__)

CONNECTION_UPDATED = "connection-updated"
USAGE_APPENDED = "usage-appended"
DEVICES_UPDATED = "devices-updated"
SCANNING_CHANGED = "scanning-changed"


class Bridge(Protocol):
    async def get_active_connection(self) -> Optional[ConnectionSnapshot]: ...

    async def get_local_devices(self) -> Optional[List[DeviceRecord]]: ...

    async def get_network_usage(self) -> Optional[NetworkRates]: ...


@dataclass(slots=True, frozen=True)
class StateEvent:
    kind: str
    payload: Any


Subscriber = Callable[[StateEvent], None]


class DisplayState:
    """Sole owner of what the dashboard shows.

    Changes arrive as :class:`StateEvent` batches through :meth:`apply`;
    a batch is folded in under one lock so readers never observe half of a
    poll cycle. Readers take copies through :meth:`snapshot`.
    """

    def __init__(self, history_limit: int = HISTORY_LIMIT) -> None:
        if history_limit <= 0:
            raise ValueError("history_limit must be positive")
        self._lock = threading.Lock()
        self._connection: Optional[ConnectionSnapshot] = None
        self._devices: Tuple[DeviceRecord, ...] = ()
        self._history: Deque[UsageSample] = deque(maxlen=history_limit)
        self._scanning = False
        self._subscribers: List[Subscriber] = []

    @property
    def connection(self) -> Optional[ConnectionSnapshot]:
        with self._lock:
            return self._connection

    @property
    def devices(self) -> Tuple[DeviceRecord, ...]:
        with self._lock:
            return self._devices

    @property
    def history(self) -> List[UsageSample]:
        with self._lock:
            return list(self._history)

    @property
    def scanning(self) -> bool:
        with self._lock:
            return self._scanning

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def apply(self, *events: StateEvent) -> None:
        with self._lock:
            for event in events:
                self._fold(event)
        for event in events:
            for callback in list(self._subscribers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("State subscriber raised for %s", event.kind)

    def _fold(self, event: StateEvent) -> None:
        if event.kind == CONNECTION_UPDATED:
            self._connection = event.payload
        elif event.kind == USAGE_APPENDED:
            self._history.append(event.payload)
        elif event.kind == DEVICES_UPDATED:
            self._devices = tuple(event.payload)
        elif event.kind == SCANNING_CHANGED:
            self._scanning = bool(event.payload)
        else:
            raise ValueError(f"unknown state event: {event.kind}")

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            connection = self._connection
            devices = self._devices
            history = list(self._history)
            scanning = self._scanning
        payload: Dict[str, Any] = {
            "connection": connection.to_dict() if connection is not None else None,
            "devices": [device.to_dict() for device in devices],
            "history": [sample.to_dict() for sample in history],
            "scanning": scanning,
        }
        payload.update(rates_summary(history[-1] if history else None))
        return payload


class Aggregator:
    """Poll timer, initial scan timer and manual rescans over a bridge.

    ``start`` must be called from inside a running event loop. ``stop``
    tears both timers down and marks the aggregator dead; requests already
    in flight finish on their own and their results are discarded.
    """

    def __init__(
        self,
        bridge: Bridge,
        state: Optional[DisplayState] = None,
        *,
        poll_interval: float = POLL_INTERVAL,
        initial_scan_delay: Optional[float] = INITIAL_SCAN_DELAY,
        clock: Callable[[], datetime] = datetime.now,
        usage_log: Optional[UsageLog] = None,
    ) -> None:
        self.bridge = bridge
        self.state = state or DisplayState()
        self.poll_interval = max(0.05, poll_interval)
        self.initial_scan_delay = initial_scan_delay
        self.usage_log = usage_log
        self._clock = clock
        self._alive = False
        self._scanning = False
        self._poll_task: Optional[asyncio.Task] = None
        self._scan_timer: Optional[asyncio.TimerHandle] = None
        self._pending: Set[asyncio.Future] = set()

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def scanning(self) -> bool:
        return self._scanning

    def start(self) -> None:
        if self._alive:
            return
        loop = asyncio.get_running_loop()
        self._alive = True
        self._poll_task = loop.create_task(self._poll_loop())
        if self.initial_scan_delay is not None:
            self._scan_timer = loop.call_later(self.initial_scan_delay, self.request_scan)

    def stop(self) -> None:
        self._alive = False
        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None
        if self._scan_timer is not None:
            self._scan_timer.cancel()
            self._scan_timer = None

    async def drain(self) -> None:
        """Wait for requests issued before :meth:`stop` to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _poll_loop(self) -> None:
        while self._alive:
            self._spawn(self.tick())
            await asyncio.sleep(self.poll_interval)

    def _spawn(self, coro: Any) -> asyncio.Future:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def tick(self) -> None:
        """Fetch connection and usage once and apply both together."""
        if not self._alive:
            return
        connection, usage = await asyncio.gather(
            self.bridge.get_active_connection(),
            self.bridge.get_network_usage(),
            return_exceptions=True,
        )
        if not self._alive:
            logger.debug("Discarding poll result that arrived after teardown")
            return

        events: List[StateEvent] = []
        if isinstance(connection, BaseException):
            logger.warning("Connection polling failed: %s", connection)
        elif connection is not None:
            events.append(StateEvent(CONNECTION_UPDATED, connection))

        sample: Optional[UsageSample] = None
        if isinstance(usage, BaseException):
            logger.warning("Usage polling failed: %s", usage)
        elif usage is not None:
            sample = UsageSample(
                label=self._clock().strftime("%H:%M:%S"),
                rx=usage.rx_sec / 1024,
                tx=usage.tx_sec / 1024,
            )
            events.append(StateEvent(USAGE_APPENDED, sample))

        if events:
            self.state.apply(*events)
        if sample is not None and self.usage_log is not None:
            await self._record(self.usage_log.record_sample, sample)

    def request_scan(self) -> bool:
        """Start a device scan unless one from this display is already running."""
        if self._scanning or not self._alive:
            return False
        self._scanning = True
        self.state.apply(StateEvent(SCANNING_CHANGED, True))
        self._spawn(self._scan())
        return True

    async def _scan(self) -> None:
        logger.info("Starting device scan")
        started = perf_counter()
        devices: Optional[List[DeviceRecord]] = None
        try:
            devices = await self.bridge.get_local_devices()
        except Exception as exc:
            logger.warning("Scanning failed: %s", exc)
        finally:
            self._scanning = False

        if not self._alive:
            logger.debug("Discarding scan result that arrived after teardown")
            return

        events = []
        if devices is not None:
            events.append(StateEvent(DEVICES_UPDATED, list(devices)))
        events.append(StateEvent(SCANNING_CHANGED, False))
        self.state.apply(*events)
        if self.usage_log is not None:
            count = len(devices) if devices is not None else None
            await self._record(self.usage_log.record_scan, count, duration=perf_counter() - started)

    async def _record(self, writer: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        try:
            await asyncio.to_thread(writer, *args, **kwargs)
        except Exception:
            logger.debug("Usage log write failed", exc_info=True)


__all__ = [
    "Aggregator",
    "Bridge",
    "DisplayState",
    "StateEvent",
    "CONNECTION_UPDATED",
    "USAGE_APPENDED",
    "DEVICES_UPDATED",
    "SCANNING_CHANGED",
]
