"""Service monitoring.

Request metrics are collected by the FastAPI middleware in index.py;
the learning services count engine events (attempts, sessions, level
changes, explanations). Everything is exported in Prometheus text
format at /api/metrics.
"""

import re
from collections import defaultdict
from threading import Lock

METRIC_PREFIX = "satprep"

_UUID_PATTERN = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
)


def normalize_path(path: str) -> str:
    """Replace UUIDs in paths with :id to keep label cardinality bounded."""
    return _UUID_PATTERN.sub(":id", path)


def _labels(**labels) -> str:
    return ",".join(f'{name}="{value}"' for name, value in labels.items())


def _family(name: str, help_text: str, metric_type: str, samples: list[tuple[str, object]]) -> list[str]:
    """Render one metric family: HELP and TYPE lines plus its samples."""
    metric = f"{METRIC_PREFIX}_{name}"
    lines = [f"# HELP {metric} {help_text}", f"# TYPE {metric} {metric_type}"]
    for labels, value in samples:
        lines.append(f"{metric}{{{labels}}} {value}" if labels else f"{metric} {value}")
    return lines


class MetricsCollector:
    """Thread-safe counters for HTTP traffic and learning-engine events."""

    def __init__(self):
        self.requests: dict[tuple[str, str], int] = defaultdict(int)
        self.latency: dict[tuple[str, str], list[float]] = defaultdict(lambda: [0.0, 0])
        self.errors: dict[tuple[str, str, int], int] = defaultdict(int)
        self.events: dict[str, int] = defaultdict(int)
        self.active_requests = 0
        self._lock = Lock()

    def record_request(self, method: str, path: str, status: int, duration: float):
        key = (method, path)
        with self._lock:
            self.requests[key] += 1
            self.latency[key][0] += duration
            self.latency[key][1] += 1
            if status >= 400:
                self.errors[(method, path, status)] += 1

    def record_event(self, event: str):
        """Count an engine event such as "attempt" or "level_change"."""
        with self._lock:
            self.events[event] += 1

    def increment_active(self):
        with self._lock:
            self.active_requests += 1

    def decrement_active(self):
        with self._lock:
            self.active_requests -= 1

    def to_prometheus(self) -> str:
        with self._lock:
            families = [
                _family(
                    "requests_total",
                    "Total HTTP requests",
                    "counter",
                    [(_labels(method=m, path=p), n) for (m, p), n in sorted(self.requests.items())],
                ),
                _family(
                    "request_duration_avg_seconds",
                    "Average request latency",
                    "gauge",
                    [
                        (_labels(method=m, path=p), f"{total / max(count, 1):.4f}")
                        for (m, p), (total, count) in sorted(self.latency.items())
                    ],
                ),
                _family(
                    "errors_total",
                    "HTTP responses with status 400 or above",
                    "counter",
                    [
                        (_labels(method=m, path=p, status=s), n)
                        for (m, p, s), n in sorted(self.errors.items())
                    ],
                ),
                _family(
                    "learning_events_total",
                    "Learning engine events",
                    "counter",
                    [(_labels(event=e), n) for e, n in sorted(self.events.items())],
                ),
                _family(
                    "active_requests",
                    "Requests currently in flight",
                    "gauge",
                    [("", self.active_requests)],
                ),
            ]

        return "\n\n".join("\n".join(family) for family in families) + "\n"


metrics = MetricsCollector()
