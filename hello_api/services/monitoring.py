"""In-process API monitoring: per-endpoint metrics, a rolling request log and the analytics dashboard.

One ``MonitoringService`` lives on ``app.state`` for the lifetime of the
process. Every business operation reports exactly one sample through
``record_request``; dashboard reads derive everything from the current
counters and the rolling log. Nothing is persisted across restarts.
"""

import math
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

import structlog

from hello_api.schemas.analytics import (
    ActivityEntry,
    AnalyticsDashboard,
    EndpointAnalytics,
    PerformanceMetrics,
    SystemOverview,
)

logger = structlog.get_logger()

REQUEST_LOG_CAPACITY = 1000
RECENT_WINDOW = timedelta(minutes=10)
RECENT_ACTIVITY_LIMIT = 20
POPULAR_ENDPOINT_MIN_REQUESTS = 5

# Matches routes such as POST /api/users/validate. Tied to the routing
# convention; rename the route and this insight silently stops firing.
VALIDATION_ROUTE_MARKER = "/validate"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def nearest_rank(sorted_values: list[int], percentile: float) -> int:
    """Nearest-rank percentile: the sample at index ceil(n * p) - 1, clamped to the list."""
    rank = math.ceil(round(len(sorted_values) * percentile, 9))
    index = min(max(0, rank - 1), len(sorted_values) - 1)
    return sorted_values[index]


def coerce_duration_ms(value) -> int:
    """Duration in whole milliseconds; missing or unparseable values count as 0."""
    if value is None:
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("monitoring_bad_duration", value=repr(value))
        return 0


def format_window(delta: timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    if minutes == 1:
        return "1 minute"
    return f"{minutes} minutes"


def format_uptime(delta: timedelta) -> str:
    total_minutes = int(delta.total_seconds() // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


@dataclass(frozen=True)
class RequestLogEntry:
    request_id: str
    endpoint: str
    method: str
    execution_time_ms: int
    success: bool
    timestamp: datetime


@dataclass(frozen=True)
class EndpointStats:
    """Point-in-time copy of one endpoint's counters."""

    endpoint: str
    total_requests: int
    successful_requests: int
    failed_requests: int
    total_execution_time_ms: int
    min_response_time_ms: int
    max_response_time_ms: int

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 100.0
        return self.successful_requests * 100.0 / self.total_requests

    @property
    def average_response_time_ms(self) -> int:
        if self.total_requests == 0:
            return 0
        return self.total_execution_time_ms // self.total_requests


class EndpointMetrics:
    """Latency and outcome counters for one "METHOD path" key."""

    def __init__(self, endpoint: str):
        self.endpoint = endpoint
        self._lock = threading.Lock()
        self._total_requests = 0
        self._successful_requests = 0
        self._failed_requests = 0
        self._total_execution_time_ms = 0
        self._min_response_time_ms: float = math.inf
        self._max_response_time_ms = 0

    def record_request(self, execution_time_ms: int, success: bool) -> None:
        with self._lock:
            self._total_requests += 1
            self._total_execution_time_ms += execution_time_ms
            if success:
                self._successful_requests += 1
            else:
                self._failed_requests += 1
            self._min_response_time_ms = min(self._min_response_time_ms, execution_time_ms)
            self._max_response_time_ms = max(self._max_response_time_ms, execution_time_ms)

    def snapshot(self) -> EndpointStats:
        with self._lock:
            min_ms = self._min_response_time_ms
            return EndpointStats(
                endpoint=self.endpoint,
                total_requests=self._total_requests,
                successful_requests=self._successful_requests,
                failed_requests=self._failed_requests,
                total_execution_time_ms=self._total_execution_time_ms,
                min_response_time_ms=0 if min_ms == math.inf else int(min_ms),
                max_response_time_ms=self._max_response_time_ms,
            )

    @property
    def total_requests(self) -> int:
        return self.snapshot().total_requests

    @property
    def min_response_time_ms(self) -> int:
        return self.snapshot().min_response_time_ms

    @property
    def max_response_time_ms(self) -> int:
        return self.snapshot().max_response_time_ms

    @property
    def success_rate(self) -> float:
        return self.snapshot().success_rate

    @property
    def average_response_time_ms(self) -> int:
        return self.snapshot().average_response_time_ms


class MonitoringService:
    """Accumulates request samples and derives the analytics dashboard.

    Writers only contend on ``_lock``; each dashboard sub-view copies what
    it needs under the lock and computes outside it, so sub-views of one
    dashboard may reflect slightly different moments.
    """

    def __init__(
        self,
        log_capacity: int = REQUEST_LOG_CAPACITY,
        recent_window: timedelta = RECENT_WINDOW,
        clock: Callable[[], datetime] | None = None,
    ):
        self._clock = clock or _utcnow
        self._recent_window = recent_window
        self._lock = threading.Lock()
        self._endpoint_metrics: dict[str, EndpointMetrics] = {}
        self._request_log: deque[RequestLogEntry] = deque(maxlen=log_capacity)
        self._total_requests = 0
        self._total_errors = 0
        self._total_execution_time_ms = 0
        self.system_start_time = self._clock()

    # ── Recording ───────────────────────────────────────────────────────────

    def record_request(
        self,
        endpoint: str,
        method: str,
        execution_time_ms: int,
        success: bool,
        request_id: str,
    ) -> None:
        """Record one request outcome. Never raises."""
        try:
            self._record(endpoint, method, execution_time_ms, success, request_id)
        except Exception:
            logger.exception("monitoring_record_failed", endpoint=endpoint, method=method)

    def _record(
        self,
        endpoint: str,
        method: str,
        execution_time_ms,
        success: bool,
        request_id: str,
    ) -> None:
        # Negative durations are kept as reported.
        elapsed = coerce_duration_ms(execution_time_ms)
        key = f"{method} {endpoint}"
        entry = RequestLogEntry(
            request_id=request_id,
            endpoint=endpoint,
            method=method,
            execution_time_ms=elapsed,
            success=bool(success),
            timestamp=self._clock(),
        )

        with self._lock:
            self._total_requests += 1
            self._total_execution_time_ms += elapsed
            if not success:
                self._total_errors += 1

            metrics = self._endpoint_metrics.get(key)
            if metrics is None:
                metrics = self._endpoint_metrics[key] = EndpointMetrics(key)
            metrics.record_request(elapsed, bool(success))

            # deque(maxlen=...) evicts the oldest entry as part of the append
            self._request_log.append(entry)

    # ── State accessors ─────────────────────────────────────────────────────

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._total_requests

    @property
    def total_errors(self) -> int:
        with self._lock:
            return self._total_errors

    @property
    def total_execution_time_ms(self) -> int:
        with self._lock:
            return self._total_execution_time_ms

    def request_log(self) -> list[RequestLogEntry]:
        """Copy of the rolling log, oldest first."""
        with self._lock:
            return list(self._request_log)

    def endpoint_stats(self) -> list[EndpointStats]:
        with self._lock:
            metrics = list(self._endpoint_metrics.values())
        return [m.snapshot() for m in metrics]

    def _counters(self) -> tuple[int, int, int]:
        with self._lock:
            return self._total_requests, self._total_errors, self._total_execution_time_ms

    # ── Dashboard ───────────────────────────────────────────────────────────

    def get_analytics_dashboard(self) -> AnalyticsDashboard:
        return AnalyticsDashboard(
            system_overview=self._system_overview(),
            performance_metrics=self._performance_metrics(),
            endpoint_analytics=self._endpoint_analytics(),
            recent_activity=self._recent_activity(),
            performance_insights=self._performance_insights(),
        )

    def _system_overview(self) -> SystemOverview:
        total, errors, execution_ms = self._counters()
        if total > 0:
            success_rate = f"{(total - errors) * 100.0 / total:.2f}%"
            error_rate = f"{errors * 100.0 / total:.2f}%"
            average = f"{execution_ms // total}ms"
        else:
            success_rate, error_rate, average = "100.00%", "0.00%", "0ms"

        return SystemOverview(
            total_requests=total,
            total_errors=errors,
            success_rate=success_rate,
            error_rate=error_rate,
            system_uptime=format_uptime(self._clock() - self.system_start_time),
            average_response_time=average,
        )

    def _performance_metrics(self) -> PerformanceMetrics:
        cutoff = self._clock() - self._recent_window
        times = sorted(e.execution_time_ms for e in self.request_log() if e.timestamp > cutoff)

        if not times:
            return PerformanceMetrics(
                last10_min_requests=0,
                message=f"No requests in the last {format_window(self._recent_window)}",
            )

        return PerformanceMetrics(
            last10_min_requests=len(times),
            average_response_time_last10_min=f"{sum(times) / len(times):.2f}ms",
            min_response_time=f"{times[0]}ms",
            max_response_time=f"{times[-1]}ms",
            p50_response_time=f"{nearest_rank(times, 0.50)}ms",
            p95_response_time=f"{nearest_rank(times, 0.95)}ms",
            p99_response_time=f"{nearest_rank(times, 0.99)}ms",
        )

    def _endpoint_analytics(self) -> list[EndpointAnalytics]:
        stats = sorted(self.endpoint_stats(), key=lambda s: s.total_requests, reverse=True)
        return [
            EndpointAnalytics(
                endpoint=s.endpoint,
                total_requests=s.total_requests,
                successful_requests=s.successful_requests,
                failed_requests=s.failed_requests,
                success_rate=f"{s.success_rate:.2f}%",
                average_response_time=f"{s.average_response_time_ms}ms",
                min_response_time=f"{s.min_response_time_ms}ms",
                max_response_time=f"{s.max_response_time_ms}ms",
            )
            for s in stats
        ]

    def _recent_activity(self) -> list[ActivityEntry]:
        # Newest insertion first among equal timestamps
        newest_first = sorted(
            reversed(self.request_log()), key=lambda e: e.timestamp, reverse=True
        )
        return [
            ActivityEntry(
                request_id=e.request_id,
                endpoint=e.endpoint,
                method=e.method,
                execution_time=f"{e.execution_time_ms}ms",
                success=e.success,
                status="SUCCESS" if e.success else "ERROR",
                timestamp=e.timestamp.strftime("%H:%M:%S"),
            )
            for e in newest_first[:RECENT_ACTIVITY_LIMIT]
        ]

    def _performance_insights(self) -> list[str]:
        total, errors, execution_ms = self._counters()
        insights: list[str] = []

        if total > 10 and errors > 0:
            error_rate = errors * 100.0 / total
            if error_rate > 5.0:
                insights.append(
                    f"HIGH ERROR RATE: {error_rate:.1f}% - Consider investigating validation failures"
                )
            elif error_rate > 1.0:
                insights.append(f"MODERATE ERROR RATE: {error_rate:.1f}% - Monitor for patterns")

        if total > 0:
            average = execution_ms // total
            if average > 1000:
                insights.append(
                    f"SLOW RESPONSE TIMES: Average {average}ms - Consider database optimization"
                )
            elif average > 500:
                insights.append(
                    f"MODERATE RESPONSE TIMES: Average {average}ms - Performance is acceptable"
                )
            else:
                insights.append(
                    f"EXCELLENT RESPONSE TIMES: Average {average}ms - API performing optimally"
                )

        stats = self.endpoint_stats()
        if stats:
            most_popular = max(stats, key=lambda s: s.total_requests)
            if most_popular.total_requests > POPULAR_ENDPOINT_MIN_REQUESTS:
                insights.append(
                    f"MOST POPULAR ENDPOINT: {most_popular.endpoint} "
                    f"({most_popular.total_requests} requests)"
                )

        validation_failures = sum(
            1 for e in self.request_log() if VALIDATION_ROUTE_MARKER in e.endpoint and not e.success
        )
        if validation_failures > 0:
            insights.append(
                f"VALIDATION WORKING: {validation_failures} validation failures blocked invalid data"
            )

        if not insights:
            insights.append("SYSTEM HEALTHY: All metrics within normal ranges")

        return insights
