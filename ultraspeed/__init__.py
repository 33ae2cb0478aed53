"""UltraSpeed: local network status, bandwidth and LAN device dashboard."""

__version__ = "0.1.0"
