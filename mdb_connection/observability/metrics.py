"""
Metrics collection for MDB_CONNECTION.

Records durations and failure counts of connection and maintenance
operations (connection.open, connection.disconnect, maintenance.clear,
maintenance.sync_indexes, maintenance.drop). Samples may carry tags such as
``db_name`` or ``model_name``; each distinct tag set is tracked separately
and rolled up by operation on demand.
"""

import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

TagSet = tuple[tuple[str, Any], ...]


@dataclass
class OperationMetrics:
    """Running statistics of one operation (and tag set)."""

    operation_name: str
    tags: TagSet = ()
    count: int = 0
    failures: int = 0
    total_ms: float = 0.0
    min_ms: float | None = None
    max_ms: float = 0.0
    last_seen: datetime | None = field(default=None, compare=False)

    @property
    def label(self) -> str:
        """Display key, e.g. ``maintenance.clear[model_name=User]``."""
        if not self.tags:
            return self.operation_name
        return f"{self.operation_name}[{','.join(f'{k}={v}' for k, v in self.tags)}]"

    @property
    def mean_ms(self) -> float:
        return self.total_ms / self.count if self.count else 0.0

    @property
    def failure_rate(self) -> float:
        """Failures as a percentage of executions."""
        return self.failures * 100 / self.count if self.count else 0.0

    def record(self, duration_ms: float, success: bool = True) -> None:
        self.count += 1
        self.total_ms += duration_ms
        self.min_ms = duration_ms if self.min_ms is None else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        if not success:
            self.failures += 1
        self.last_seen = datetime.now()

    def merge(self, other: "OperationMetrics") -> None:
        """Fold another tag set's statistics into this one."""
        self.count += other.count
        self.failures += other.failures
        self.total_ms += other.total_ms
        if other.min_ms is not None:
            self.min_ms = other.min_ms if self.min_ms is None else min(self.min_ms, other.min_ms)
        self.max_ms = max(self.max_ms, other.max_ms)
        if other.last_seen and (self.last_seen is None or other.last_seen > self.last_seen):
            self.last_seen = other.last_seen

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation_name,
            "tags": dict(self.tags),
            "count": self.count,
            "failures": self.failures,
            "failure_rate_percent": round(self.failure_rate, 2),
            "mean_ms": round(self.mean_ms, 2),
            "min_ms": round(self.min_ms, 2) if self.min_ms is not None else 0.0,
            "max_ms": round(self.max_ms, 2),
            "last_seen": self.last_seen.isoformat() if self.last_seen else None,
        }


class MetricsCollector:
    """
    Thread-safe collector of operation statistics.

    At most ``max_metrics`` (operation, tags) entries are kept; recording a
    new entry past that limit evicts the least recently recorded one.
    """

    def __init__(self, max_metrics: int = 1000):
        self._entries: OrderedDict[tuple[str, TagSet], OperationMetrics] = OrderedDict()
        self._lock = threading.Lock()
        self._max_metrics = max_metrics

    def record_operation(
        self, operation_name: str, duration_ms: float, success: bool = True, **tags: Any
    ) -> None:
        """
        Record one execution of an operation.

        Args:
            operation_name: Name of the operation (e.g. "maintenance.clear")
            duration_ms: Duration in milliseconds
            success: Whether the operation succeeded
            **tags: Tags the sample is tracked under (db_name, model_name ...)
        """
        tag_set: TagSet = tuple(sorted(tags.items()))
        key = (operation_name, tag_set)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                if len(self._entries) >= self._max_metrics:
                    self._entries.popitem(last=False)
                entry = self._entries[key] = OperationMetrics(operation_name, tag_set)
            else:
                self._entries.move_to_end(key)
            entry.record(duration_ms, success)

    def get_metrics(self, prefix: str | None = None) -> dict[str, Any]:
        """
        Statistics of every tracked (operation, tags) entry.

        Args:
            prefix: Only include operations whose name starts with this

        Returns:
            Dictionary with ``timestamp``, ``metrics`` keyed by label and
            ``total_operations`` (number of tracked entries)
        """
        with self._lock:
            metrics = {
                entry.label: entry.to_dict()
                for (name, _), entry in self._entries.items()
                if prefix is None or name.startswith(prefix)
            }
            total = len(self._entries)
        return {
            "timestamp": datetime.now().isoformat(),
            "metrics": metrics,
            "total_operations": total,
        }

    def summary(self) -> dict[str, dict[str, Any]]:
        """Statistics rolled up per operation, across tag sets."""
        rolled: dict[str, OperationMetrics] = {}
        with self._lock:
            for (name, _), entry in self._entries.items():
                rolled.setdefault(name, OperationMetrics(name)).merge(entry)
        return {name: entry.to_dict() for name, entry in sorted(rolled.items())}

    def get_operation_count(self, operation_name: str) -> int:
        """Executions of an operation, across tag sets."""
        with self._lock:
            return sum(e.count for (n, _), e in self._entries.items() if n == operation_name)

    def get_failure_count(self, operation_name: str) -> int:
        """Failed executions of an operation, across tag sets."""
        with self._lock:
            return sum(e.failures for (n, _), e in self._entries.items() if n == operation_name)

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Return the process-wide metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        with _collector_lock:
            if _metrics_collector is None:
                _metrics_collector = MetricsCollector()
    return _metrics_collector


def record_operation(
    operation_name: str, duration_ms: float, success: bool = True, **tags: Any
) -> None:
    """Record an operation in the process-wide collector."""
    get_metrics_collector().record_operation(operation_name, duration_ms, success, **tags)
