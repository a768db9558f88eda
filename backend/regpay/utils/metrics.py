"""
Best-effort StatsD counters and timers for the reconciliation pipeline.

Usage (non-blocking, never raises):
  from regpay.utils.metrics import incr, Timer
  incr('webhook.received', tags={'event': 'charge.success'})
  with Timer('receipt.dispatch.ms', tags={'service': 'dinner'}):
      ...

Env:
  METRICS_STATSD_ADDR = "host:port" (e.g., "127.0.0.1:8125"); unset disables
  METRICS_TAGS = "0" drops the Datadog-style tag suffix (|#key:val,...)
"""

from __future__ import annotations

import os
import socket
import time
from typing import Dict, Optional

_ADDR = os.getenv("METRICS_STATSD_ADDR", "").strip()
_USE_TAGS = os.getenv("METRICS_TAGS", "1") not in ("0", "false", "False")
_PREFIX = "regpay."
_SOCK: Optional[socket.socket] = None


def _get_sock() -> Optional[socket.socket]:
    global _SOCK
    if not _ADDR:
        return None
    if _SOCK is None:
        host, port = _ADDR.split(":", 1)
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.connect((host, int(port)))
        _SOCK = sock
    return _SOCK


def _format_tags(tags: Optional[Dict[str, object]]) -> str:
    if not tags or not _USE_TAGS:
        return ""
    parts = [
        f"{str(k).replace(',', '_')}:{str(v).replace(',', '_')}"
        for k, v in tags.items()
        if k is not None and v is not None
    ]
    return "|#" + ",".join(parts) if parts else ""


def _send(line: str) -> None:
    try:
        sock = _get_sock()
        if sock is not None:
            sock.send(line.encode("utf-8"))
    except (OSError, ValueError):
        # metrics are best-effort only
        pass


def incr(name: str, value: int = 1, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{_PREFIX}{name}:{int(value)}|c{_format_tags(tags)}")


def timing_ms(name: str, ms: float, tags: Optional[Dict[str, object]] = None) -> None:
    _send(f"{_PREFIX}{name}:{float(ms):.2f}|ms{_format_tags(tags)}")


class Timer:
    """Context manager reporting elapsed wall time; ``elapsed_ms`` stays readable after exit."""

    def __init__(self, name: str, tags: Optional[Dict[str, object]] = None):
        self.name = name
        self.tags = tags or {}
        self.elapsed_ms: float = 0.0
        self._t0: Optional[float] = None

    def __enter__(self):
        self._t0 = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        if self._t0 is not None:
            self.elapsed_ms = (time.perf_counter() - self._t0) * 1000.0
            timing_ms(self.name, self.elapsed_ms, tags=self.tags)
        return False
