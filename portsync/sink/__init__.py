"""Downstream port sink (Deluge Web UI)."""

from portsync.sink.deluge import DelugeClient, DelugeError
from portsync.sink.port_sink import PortSink, SinkState

__all__ = ["DelugeClient", "DelugeError", "PortSink", "SinkState"]
