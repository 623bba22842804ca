"""Invocation tracing and latency accounting."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from influence_mcp.types import ToolTrace


@dataclass(slots=True)
class TraceRecord:
    timestamp_utc: str
    trace: ToolTrace


class TraceStore:
    """Bounded in-memory trace storage for API-level observability."""

    def __init__(self, max_records: int = 1000) -> None:
        self._records: deque[TraceRecord] = deque(maxlen=max_records)

    def record(self, trace: ToolTrace) -> TraceRecord:
        record = TraceRecord(
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            trace=trace,
        )
        self._records.append(record)
        return record

    def list_recent(self, limit: int = 20) -> list[TraceRecord]:
        if limit <= 0:
            return []
        return list(self._records)[-limit:]

    def summary(self) -> dict[str, Any]:
        """Aggregate invocation counts and latency for dashboard display."""
        records = list(self._records)
        total = len(records)
        if total == 0:
            return {
                "total_invocations": 0,
                "error_invocations": 0,
                "avg_latency_ms": 0.0,
                "p95_latency_ms": 0.0,
                "by_tool": {},
            }

        latencies = sorted(record.trace.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        by_tool: dict[str, int] = {}
        for record in records:
            by_tool[record.trace.name] = by_tool.get(record.trace.name, 0) + 1

        return {
            "total_invocations": total,
            "error_invocations": sum(1 for r in records if r.trace.status != "ok"),
            "avg_latency_ms": sum(latencies) / total,
            "p95_latency_ms": latencies[p95_index],
            "by_tool": by_tool,
        }


class Timer:
    """Simple context timer used by the dispatcher."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
