"""Unit tests for the in-process monitoring service."""

import threading
from datetime import timedelta

import pytest

from hello_api.services.monitoring import (
    EndpointMetrics,
    EndpointStats,
    MonitoringService,
    format_uptime,
    format_window,
    nearest_rank,
)


def _record(monitoring, endpoint="/api/users", method="GET", ms=100, success=True, request_id="r"):
    monitoring.record_request(endpoint, method, ms, success, request_id)


def _rate(value: str) -> float:
    return float(value.rstrip("%"))


class TestNearestRank:
    def test_five_samples(self):
        times = [10, 20, 30, 40, 50]
        assert nearest_rank(times, 0.50) == 30
        assert nearest_rank(times, 0.95) == 50
        assert nearest_rank(times, 0.99) == 50

    def test_single_sample(self):
        assert nearest_rank([7], 0.5) == 7
        assert nearest_rank([7], 0.99) == 7

    def test_exact_rank_is_not_rounded_up(self):
        """100 samples at p95 pick the 95th value, not the 96th."""
        times = list(range(1, 101))
        assert nearest_rank(times, 0.95) == 95
        assert nearest_rank(times, 0.50) == 50


class TestFormatWindow:
    def test_plural(self):
        assert format_window(timedelta(minutes=10)) == "10 minutes"

    def test_singular(self):
        assert format_window(timedelta(seconds=90)) == "1 minute"


class TestFormatUptime:
    def test_minutes_only(self):
        assert format_uptime(timedelta(minutes=5, seconds=59)) == "5m"

    def test_hours_and_minutes(self):
        assert format_uptime(timedelta(hours=2, minutes=3)) == "2h 3m"

    def test_zero(self):
        assert format_uptime(timedelta(0)) == "0m"


class TestEndpointMetrics:
    def test_empty_reports_zero_min(self):
        metrics = EndpointMetrics("GET /api/users")
        assert metrics.total_requests == 0
        assert metrics.min_response_time_ms == 0
        assert metrics.max_response_time_ms == 0
        assert metrics.success_rate == 100.0
        assert metrics.average_response_time_ms == 0

    def test_min_never_exceeds_max(self):
        metrics = EndpointMetrics("GET /api/users")
        for ms in (50, 10, 300, 25):
            metrics.record_request(ms, True)
            assert metrics.min_response_time_ms <= metrics.max_response_time_ms
        assert metrics.min_response_time_ms == 10
        assert metrics.max_response_time_ms == 300

    def test_counts_successes_and_failures(self):
        metrics = EndpointMetrics("POST /api/users")
        metrics.record_request(10, True)
        metrics.record_request(20, False)
        snap = metrics.snapshot()
        assert isinstance(snap, EndpointStats)
        assert snap.total_requests == 2
        assert snap.successful_requests == 1
        assert snap.failed_requests == 1
        assert snap.success_rate == 50.0
        assert snap.average_response_time_ms == 15


class TestRecording:
    def test_totals_track_calls(self, monitoring):
        outcomes = [True, False, True, True, False, True]
        for i, ok in enumerate(outcomes):
            _record(monitoring, success=ok, request_id=f"r{i}")

        assert monitoring.total_requests == len(outcomes)
        assert monitoring.total_errors == outcomes.count(False)

    def test_log_keeps_most_recent_entries_in_order(self, monitoring):
        for i in range(1005):
            _record(monitoring, request_id=f"r{i}")

        log = monitoring.request_log()
        assert len(log) == 1000
        assert [e.request_id for e in log] == [f"r{i}" for i in range(5, 1005)]
        assert monitoring.total_requests == 1005

    def test_custom_log_capacity(self, clock):
        monitoring = MonitoringService(log_capacity=3, clock=clock)
        for i in range(5):
            _record(monitoring, request_id=f"r{i}")
        assert [e.request_id for e in monitoring.request_log()] == ["r2", "r3", "r4"]

    def test_endpoint_key_combines_method_and_path(self, monitoring):
        _record(monitoring, endpoint="/api/users", method="GET")
        _record(monitoring, endpoint="/api/users", method="POST")
        keys = {s.endpoint for s in monitoring.endpoint_stats()}
        assert keys == {"GET /api/users", "POST /api/users"}

    def test_missing_execution_time_counts_as_zero(self, monitoring):
        monitoring.record_request("/api/users", "GET", None, True, "r1")
        assert monitoring.total_requests == 1
        assert monitoring.total_execution_time_ms == 0
        assert monitoring.request_log()[0].execution_time_ms == 0

    def test_unparseable_execution_time_counts_as_zero(self, monitoring):
        monitoring.record_request("/api/users", "GET", "not-a-number", True, "r1")
        monitoring.record_request("/api/users", "GET", object(), False, "r2")
        assert monitoring.total_requests == 2
        assert monitoring.total_errors == 1
        assert [e.execution_time_ms for e in monitoring.request_log()] == [0, 0]
        assert monitoring.endpoint_stats()[0].total_requests == 2

    def test_numeric_strings_are_accepted(self, monitoring):
        monitoring.record_request("/api/users", "GET", "15", True, "r1")
        assert monitoring.total_execution_time_ms == 15

    def test_concurrent_recording(self, monitoring):
        def worker(n):
            for i in range(250):
                _record(monitoring, success=i % 5 != 0, request_id=f"{n}-{i}")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert monitoring.total_requests == 2000
        assert monitoring.total_errors == 400
        assert len(monitoring.request_log()) == 1000
        stats = monitoring.endpoint_stats()
        assert sum(s.total_requests for s in stats) == 2000


class TestSystemOverview:
    def test_empty_dashboard(self, monitoring):
        dashboard = monitoring.get_analytics_dashboard()
        overview = dashboard.system_overview
        assert overview.total_requests == 0
        assert overview.total_errors == 0
        assert overview.success_rate == "100.00%"
        assert overview.error_rate == "0.00%"
        assert overview.average_response_time == "0ms"
        assert dashboard.endpoint_analytics == []
        assert dashboard.recent_activity == []
        assert dashboard.performance_insights == ["SYSTEM HEALTHY: All metrics within normal ranges"]

    def test_rates_sum_to_hundred(self, monitoring):
        for i in range(7):
            _record(monitoring, success=i % 3 != 0)
        overview = monitoring.get_analytics_dashboard().system_overview
        assert _rate(overview.success_rate) + _rate(overview.error_rate) == pytest.approx(100.0, abs=0.011)

    def test_average_uses_integer_division(self, monitoring):
        _record(monitoring, ms=10)
        _record(monitoring, ms=15)
        assert monitoring.get_analytics_dashboard().system_overview.average_response_time == "12ms"

    def test_uptime_follows_clock(self, monitoring, clock):
        clock.advance(hours=1, minutes=7)
        assert monitoring.get_analytics_dashboard().system_overview.system_uptime == "1h 7m"


class TestPerformanceMetrics:
    def test_percentiles_over_recent_window(self, monitoring):
        for ms in (50, 10, 40, 20, 30):
            _record(monitoring, ms=ms)

        perf = monitoring.get_analytics_dashboard().performance_metrics
        assert perf.last10_min_requests == 5
        assert perf.p50_response_time == "30ms"
        assert perf.p95_response_time == "50ms"
        assert perf.p99_response_time == "50ms"
        assert perf.min_response_time == "10ms"
        assert perf.max_response_time == "50ms"
        assert perf.average_response_time_last10_min == "30.00ms"

    def test_old_entries_fall_out_of_window(self, monitoring, clock):
        _record(monitoring, ms=999)
        clock.advance(minutes=11)
        _record(monitoring, ms=5)

        perf = monitoring.get_analytics_dashboard().performance_metrics
        assert perf.last10_min_requests == 1
        assert perf.max_response_time == "5ms"

    def test_empty_window_reports_message(self, monitoring, clock):
        _record(monitoring)
        clock.advance(minutes=30)

        perf = monitoring.get_analytics_dashboard().performance_metrics
        assert perf.last10_min_requests == 0
        assert perf.message == "No requests in the last 10 minutes"
        assert perf.p50_response_time is None

    def test_empty_window_message_follows_configured_window(self, clock):
        monitoring = MonitoringService(recent_window=timedelta(minutes=5), clock=clock)
        _record(monitoring)
        clock.advance(minutes=6)

        perf = monitoring.get_analytics_dashboard().performance_metrics
        assert perf.last10_min_requests == 0
        assert perf.message == "No requests in the last 5 minutes"


class TestEndpointAnalytics:
    def test_mixed_outcomes_row(self, monitoring):
        for _ in range(10):
            _record(monitoring, ms=100)
        _record(monitoring, ms=2000, success=False)

        rows = monitoring.get_analytics_dashboard().endpoint_analytics
        assert len(rows) == 1
        row = rows[0]
        assert row.endpoint == "GET /api/users"
        assert row.total_requests == 11
        assert row.successful_requests == 10
        assert row.failed_requests == 1
        assert row.success_rate == "90.91%"
        assert row.average_response_time == "272ms"
        assert row.min_response_time == "100ms"
        assert row.max_response_time == "2000ms"

    def test_sorted_by_volume(self, monitoring):
        _record(monitoring, endpoint="/api/users/stats")
        for _ in range(3):
            _record(monitoring, endpoint="/api/users")
        _record(monitoring, endpoint="/api/users/{id}")
        _record(monitoring, endpoint="/api/users/{id}")

        rows = monitoring.get_analytics_dashboard().endpoint_analytics
        assert [r.total_requests for r in rows] == [3, 2, 1]
        assert rows[0].endpoint == "GET /api/users"


class TestRecentActivity:
    def test_newest_first_and_capped(self, monitoring, clock):
        for i in range(25):
            _record(monitoring, request_id=f"r{i}", success=i % 2 == 0)
            clock.advance(seconds=1)

        activity = monitoring.get_analytics_dashboard().recent_activity
        assert len(activity) == 20
        assert activity[0].request_id == "r24"
        assert activity[-1].request_id == "r5"
        assert activity[0].status == "SUCCESS"
        assert activity[1].status == "ERROR"

    def test_entry_formatting(self, monitoring):
        _record(monitoring, endpoint="/api/users/{id}", method="DELETE", ms=42, request_id="abc12345")
        entry = monitoring.get_analytics_dashboard().recent_activity[0]
        assert entry.request_id == "abc12345"
        assert entry.endpoint == "/api/users/{id}"
        assert entry.method == "DELETE"
        assert entry.execution_time == "42ms"
        assert entry.timestamp == "09:30:00"


class TestPerformanceInsights:
    def test_high_error_rate(self, monitoring):
        for i in range(12):
            _record(monitoring, success=i != 0)

        insights = monitoring.get_analytics_dashboard().performance_insights
        assert any(i.startswith("HIGH ERROR RATE: 8.3%") for i in insights)
        assert not any(i.startswith("MODERATE ERROR RATE") for i in insights)

    def test_moderate_error_rate(self, monitoring):
        for i in range(50):
            _record(monitoring, success=i != 0)

        insights = monitoring.get_analytics_dashboard().performance_insights
        assert "MODERATE ERROR RATE: 2.0% - Monitor for patterns" in insights

    def test_error_rate_ignored_below_minimum_volume(self, monitoring):
        for _ in range(5):
            _record(monitoring, success=False)

        insights = monitoring.get_analytics_dashboard().performance_insights
        assert not any("ERROR RATE" in i for i in insights)

    @pytest.mark.parametrize(
        "ms, expected",
        [
            (1500, "SLOW RESPONSE TIMES: Average 1500ms - Consider database optimization"),
            (700, "MODERATE RESPONSE TIMES: Average 700ms - Performance is acceptable"),
            (40, "EXCELLENT RESPONSE TIMES: Average 40ms - API performing optimally"),
        ],
    )
    def test_response_time_tiers(self, monitoring, ms, expected):
        _record(monitoring, ms=ms)
        insights = monitoring.get_analytics_dashboard().performance_insights
        assert expected in insights
        assert "SYSTEM HEALTHY: All metrics within normal ranges" not in insights

    def test_popular_endpoint(self, monitoring):
        for _ in range(6):
            _record(monitoring, endpoint="/api/users/stats")

        insights = monitoring.get_analytics_dashboard().performance_insights
        assert "MOST POPULAR ENDPOINT: GET /api/users/stats (6 requests)" in insights

    def test_popular_endpoint_needs_more_than_five(self, monitoring):
        for _ in range(5):
            _record(monitoring)
        insights = monitoring.get_analytics_dashboard().performance_insights
        assert not any(i.startswith("MOST POPULAR ENDPOINT") for i in insights)

    def test_validation_failures(self, monitoring):
        _record(monitoring, endpoint="/api/users/validate", method="POST", success=False)
        _record(monitoring, endpoint="/api/users/validate", method="POST", success=False)
        _record(monitoring, endpoint="/api/users/validate", method="POST", success=True)
        _record(monitoring, endpoint="/api/users", method="POST", success=False)

        insights = monitoring.get_analytics_dashboard().performance_insights
        assert "VALIDATION WORKING: 2 validation failures blocked invalid data" in insights
