"""
Rolling per-agent execution metrics.

Each agent owns a :class:`MetricsCollector`. ``BaseAgent.execute`` records one
entry per run: an execution record when the run returns a successful result,
an error record when it returns a failed one or raises. Both histories are
bounded, so a long-lived process keeps only the most recent ``max_entries``
of each.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import Counter, deque
from typing import Dict, List, Literal

from pydantic import Field

from app.api.ai.schemas import AgentMetadata, CamelModel

logger = logging.getLogger(__name__)

HealthLevel = Literal["healthy", "warning", "critical"]

# (warning, critical) thresholds for health_check
ERROR_RATE_THRESHOLDS = (5.0, 20.0)
EXECUTION_TIME_THRESHOLDS_MS = (10000, 30000)
QUALITY_THRESHOLDS = (70.0, 50.0)


class ExecutionRecord(CamelModel):
    timestamp: float
    request_id: str
    execution_time_ms: int
    tokens_used: int = 0
    api_calls: int = 0
    cache_hit: bool = False
    quality_score: float = 0
    fallback_count: int = 0


class ErrorRecord(CamelModel):
    timestamp: float
    request_id: str
    code: str
    message: str
    execution_time_ms: int = 0


class AggregatedMetrics(CamelModel):
    total_executions: int = 0
    total_errors: int = 0
    success_rate: float = 100.0
    average_execution_time_ms: float = 0
    average_tokens_used: float = 0
    average_quality_score: float = 0
    cache_hit_rate: float = 0
    time_range_hours: float = 24


class AgentHealth(CamelModel):
    status: HealthLevel = "healthy"
    issues: List[str] = Field(default_factory=list)
    metrics: AggregatedMetrics = Field(default_factory=AggregatedMetrics)


def percentile(values: List[float], p: float) -> float:
    """Nearest-rank percentile; 0 for an empty list."""
    if not values:
        return 0
    ordered = sorted(values)
    index = max(0, math.ceil(p / 100.0 * len(ordered)) - 1)
    return ordered[index]


def _mean(values) -> float:
    values = list(values)
    return round(sum(values) / len(values), 2) if values else 0


class MetricsCollector:
    def __init__(self, agent_id: str, max_entries: int = 1000, clock=time.time):
        self.agent_id = agent_id
        self.max_entries = max_entries
        self._clock = clock
        self._executions = deque(maxlen=max_entries)
        self._errors = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def record_execution(self, metadata: AgentMetadata, request_id: str) -> ExecutionRecord:
        record = ExecutionRecord(
            timestamp=self._clock(),
            request_id=request_id,
            execution_time_ms=metadata.duration_ms,
            tokens_used=metadata.tokens_used,
            api_calls=metadata.metrics.api_calls,
            cache_hit=metadata.cached,
            quality_score=metadata.metrics.quality_score,
            fallback_count=len(metadata.fallback_stages),
        )
        with self._lock:
            self._executions.append(record)
        return record

    def record_error(self, code: str, message: str, request_id: str, execution_time_ms: int = 0) -> ErrorRecord:
        record = ErrorRecord(
            timestamp=self._clock(),
            request_id=request_id,
            code=code,
            message=message,
            execution_time_ms=execution_time_ms,
        )
        with self._lock:
            self._errors.append(record)
        logger.debug("%s recorded error %s for request %s", self.agent_id, code, request_id)
        return record

    def _window(self, hours: float):
        cutoff = self._clock() - hours * 3600
        with self._lock:
            executions = [r for r in self._executions if r.timestamp >= cutoff]
            errors = [r for r in self._errors if r.timestamp >= cutoff]
        return executions, errors

    def aggregated(self, time_range_hours: float = 24) -> AggregatedMetrics:
        executions, errors = self._window(time_range_hours)
        runs = len(executions) + len(errors)
        return AggregatedMetrics(
            total_executions=len(executions),
            total_errors=len(errors),
            success_rate=round(len(executions) / runs * 100, 2) if runs else 100.0,
            average_execution_time_ms=_mean(r.execution_time_ms for r in executions),
            average_tokens_used=_mean(r.tokens_used for r in executions),
            average_quality_score=_mean(r.quality_score for r in executions),
            cache_hit_rate=_mean(100.0 if r.cache_hit else 0.0 for r in executions),
            time_range_hours=time_range_hours,
        )

    def percentiles(self, time_range_hours: float = 24) -> Dict[str, Dict[str, float]]:
        executions, _ = self._window(time_range_hours)
        series = {
            "executionTimeMs": [r.execution_time_ms for r in executions],
            "tokensUsed": [r.tokens_used for r in executions],
            "qualityScore": [r.quality_score for r in executions],
        }
        return {
            name: {"p50": percentile(values, 50), "p95": percentile(values, 95), "p99": percentile(values, 99)}
            for name, values in series.items()
        }

    def error_distribution(self, time_range_hours: float = 24) -> Dict[str, int]:
        _, errors = self._window(time_range_hours)
        return dict(Counter(r.code for r in errors))

    def recent_executions(self, limit: int = 10) -> List[ExecutionRecord]:
        with self._lock:
            return list(self._executions)[-limit:]

    def recent_errors(self, limit: int = 10) -> List[ErrorRecord]:
        with self._lock:
            return list(self._errors)[-limit:]

    def health_check(self) -> AgentHealth:
        """Grade the last hour of runs; an idle agent is healthy."""
        metrics = self.aggregated(time_range_hours=1)
        runs = metrics.total_executions + metrics.total_errors
        if not runs:
            return AgentHealth(metrics=metrics)

        critical: List[str] = []
        warnings: List[str] = []
        error_rate = 100 - metrics.success_rate
        if error_rate > ERROR_RATE_THRESHOLDS[1]:
            critical.append("High error rate: %.1f%%" % error_rate)
        elif error_rate > ERROR_RATE_THRESHOLDS[0]:
            warnings.append("Elevated error rate: %.1f%%" % error_rate)

        if metrics.total_executions:
            avg_ms = metrics.average_execution_time_ms
            if avg_ms > EXECUTION_TIME_THRESHOLDS_MS[1]:
                critical.append("Very slow executions: %.0fms average" % avg_ms)
            elif avg_ms > EXECUTION_TIME_THRESHOLDS_MS[0]:
                warnings.append("Slow executions: %.0fms average" % avg_ms)

            quality = metrics.average_quality_score
            if quality < QUALITY_THRESHOLDS[1]:
                critical.append("Low quality score: %.1f" % quality)
            elif quality < QUALITY_THRESHOLDS[0]:
                warnings.append("Below-target quality score: %.1f" % quality)

        status: HealthLevel = "critical" if critical else "warning" if warnings else "healthy"
        if status != "healthy":
            logger.warning("%s health %s: %s", self.agent_id, status, "; ".join(critical + warnings))
        return AgentHealth(status=status, issues=critical + warnings, metrics=metrics)

    def export(self) -> Dict[str, object]:
        with self._lock:
            executions = list(self._executions)
            errors = list(self._errors)
        return {
            "agentId": self.agent_id,
            "executions": [r.model_dump(by_alias=True) for r in executions],
            "errors": [r.model_dump(by_alias=True) for r in errors],
        }

    def clear(self):
        with self._lock:
            self._executions.clear()
            self._errors.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._executions) + len(self._errors)
