from __future__ import annotations

import threading
from typing import Dict


class MetricsStore:
    """Thread-safe in-memory metrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {
            "uploads": 0,
            "remote_uploads": 0,
            "bytes_uploaded": 0,
            "links_issued": 0,
            "failures": 0,
        }

    def record_upload(self, size_bytes: int, remote: bool = False) -> None:
        with self._lock:
            self._counters["uploads"] += 1
            self._counters["bytes_uploaded"] += size_bytes
            if remote:
                self._counters["remote_uploads"] += 1

    def record_link(self) -> None:
        with self._lock:
            self._counters["links_issued"] += 1

    def record_failure(self) -> None:
        with self._lock:
            self._counters["failures"] += 1

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._counters)


metrics = MetricsStore()
