from __future__ import annotations

import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram

UPSTREAM_LATENCY = Histogram(
    "stock_helper_upstream_latency_seconds",
    "Latency of upstream API calls",
    labelnames=("service", "operation"),
)
UPSTREAM_ERRORS = Counter(
    "stock_helper_upstream_errors_total",
    "Upstream calls that returned an error",
    labelnames=("service", "operation", "status"),
)
TOOL_CALLS = Counter(
    "stock_helper_tool_calls_total",
    "MCP tool and resource calls by outcome",
    labelnames=("server", "name", "outcome"),
)
SESSION_CONNECTS = Counter(
    "stock_helper_session_connects_total",
    "Upstream session establishment attempts",
    labelnames=("service", "outcome"),
)


@contextmanager
def record_latency(service: str, operation: str):
    start = time.time()
    try:
        yield
    finally:
        UPSTREAM_LATENCY.labels(service=service, operation=operation).observe(time.time() - start)


def record_upstream_error(service: str, operation: str, status: str) -> None:
    UPSTREAM_ERRORS.labels(service=service, operation=operation, status=status).inc()


def record_call(server: str, name: str, outcome: str) -> None:
    TOOL_CALLS.labels(server=server, name=name, outcome=outcome).inc()


def record_session_connect(service: str, ok: bool) -> None:
    SESSION_CONNECTS.labels(service=service, outcome="ok" if ok else "error").inc()
