"""Flask host for the UltraSpeed dashboard.

The aggregator runs on its own event loop in a background thread and talks
to the coordinator API over HTTP. Flask handlers only read
:class:`DisplayState` snapshots and forward rescan requests.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser
from datetime import datetime
from typing import Any, Dict, Optional

from flask import Flask, jsonify, render_template

from ultraspeed.aggregator import Aggregator, Bridge, DisplayState
from ultraspeed.bridge import HttpBridge
from ultraspeed.config import CONTENT_SECURITY_POLICY, DEFAULT_API_BASE, WEB_PORT


app = Flask(__name__)
logger = logging.getLogger("ultraspeed.web_ui")


class DisplayRuntime:
    """Owns the background loop that drives an :class:`Aggregator`."""

    def __init__(self, bridge: Bridge, state: Optional[DisplayState] = None, **aggregator_kwargs: Any) -> None:
        self.state = state or DisplayState()
        self.aggregator = Aggregator(bridge, self.state, **aggregator_kwargs)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="ultraspeed-aggregator", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)

    def stop(self) -> None:
        loop, stop = self._loop, self._stop
        if loop is not None and stop is not None:
            loop.call_soon_threadsafe(stop.set)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def request_scan(self) -> bool:
        loop = self._loop
        if loop is None:
            return False
        future = asyncio.run_coroutine_threadsafe(self._request_scan(), loop)
        return future.result(timeout=5.0)

    def payload(self) -> Dict[str, Any]:
        return self.state.snapshot()

    async def _request_scan(self) -> bool:
        return self.aggregator.request_scan()

    def _run(self) -> None:
        asyncio.run(self._main())

    async def _main(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        self.aggregator.start()
        self._ready.set()
        try:
            await self._stop.wait()
        finally:
            self.aggregator.stop()
            self._loop = None


_runtime: Optional[DisplayRuntime] = None


def _get_runtime() -> DisplayRuntime:
    global _runtime
    if _runtime is None:
        _runtime = DisplayRuntime(HttpBridge(DEFAULT_API_BASE))
        _runtime.start()
    return _runtime


@app.after_request
def apply_content_security_policy(response):
    response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    return response


@app.get("/api/health")
def api_health():
    return jsonify({"status": "ok", "time": datetime.now().isoformat(timespec="seconds")})


@app.get("/api/state")
def api_state():
    return jsonify(_get_runtime().payload())


@app.post("/api/scan")
def api_scan():
    try:
        started = _get_runtime().request_scan()
    except Exception as exc:
        logger.exception("Manual rescan could not be scheduled")
        return jsonify({"ok": False, "error": str(exc)}), 502
    return jsonify({"ok": True, "started": started})


@app.get("/")
def dashboard():
    return render_template("dashboard.html", poll_ms=int(_get_runtime().aggregator.poll_interval * 1000))


def main(api_base: Optional[str] = None, port: int = WEB_PORT, open_browser: bool = True) -> None:
    global _runtime
    _runtime = DisplayRuntime(HttpBridge(api_base or DEFAULT_API_BASE))
    _runtime.start()
    url = f"http://127.0.0.1:{port}"
    if open_browser:
        threading.Timer(1.5, lambda: webbrowser.open(url)).start()
    try:
        app.run(debug=False, host="127.0.0.1", port=port, use_reloader=False)
    finally:
        _runtime.stop()


if __name__ == "__main__":
    main()
