from __future__ import annotations
import time
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ultraspeed import __version__
from ultraspeed.config import CONTENT_SECURITY_POLICY
from ultraspeed.coordinator import Coordinator

app = FastAPI(title="UltraSpeed Coordinator", version=__version__)

coordinator = Coordinator()


@app.middleware("http")
async def content_security_policy(request: Request, call_next):
    response = await call_next(request)
    response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
    return response


@app.get("/health")
async def health():
    return {"status": "ok", "time": time.time(), "scanning": coordinator.guard.active}


@app.get("/active-connection")
async def active_connection():
    """Current connection snapshot, or ``null`` when the probe failed this time."""
    snapshot = await coordinator.get_active_connection()
    return JSONResponse(snapshot.to_dict() if snapshot is not None else None)


@app.get("/local-devices")
async def local_devices():
    """Devices seen on the LAN.

    Returns an empty list when discovery fails, times out, or another scan
    is already running.
    """
    devices = await coordinator.get_local_devices()
    return JSONResponse([device.to_dict() for device in devices])


@app.get("/network-usage")
async def network_usage():
    rates = await coordinator.get_network_usage()
    return JSONResponse(rates.to_dict() if rates is not None else None)
