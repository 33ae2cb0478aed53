"""Runtime settings shared by the coordinator and display processes.

Values come from ``ULTRASPEED_*`` environment variables and can be
overridden on the command line.
"""
from __future__ import annotations

import os

DEFAULT_API_BASE = os.getenv("ULTRASPEED_API_BASE", "http://127.0.0.1:8000")
API_HOST = os.getenv("ULTRASPEED_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("ULTRASPEED_API_PORT", "8000"))
WEB_PORT = int(os.getenv("ULTRASPEED_WEB_PORT", "5000"))

POLL_INTERVAL = float(os.getenv("ULTRASPEED_POLL_INTERVAL", "1.5"))
INITIAL_SCAN_DELAY = float(os.getenv("ULTRASPEED_INITIAL_SCAN_DELAY", "3.0"))
SCAN_TIMEOUT = float(os.getenv("ULTRASPEED_SCAN_TIMEOUT", "15.0"))
HISTORY_LIMIT = int(os.getenv("ULTRASPEED_HISTORY_LIMIT", "40"))

# Seconds allowed for each nmcli, netsh or arp invocation.
TOOL_TIMEOUT = float(os.getenv("ULTRASPEED_TOOL_TIMEOUT", "5.0"))

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; "
    "script-src 'self' 'unsafe-inline'; "
    "style-src 'self' 'unsafe-inline' https://fonts.googleapis.com; "
    "font-src 'self' https://fonts.gstatic.com; "
    "img-src 'self' data: https://*"
)
