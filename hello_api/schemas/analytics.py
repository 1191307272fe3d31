from hello_api.schemas.envelope import CamelModel


class SystemOverview(CamelModel):
    total_requests: int
    total_errors: int
    success_rate: str
    error_rate: str
    system_uptime: str
    average_response_time: str


class PerformanceMetrics(CamelModel):
    # Percentile fields are absent when the recent window is empty
    last10_min_requests: int
    average_response_time_last10_min: str | None = None
    min_response_time: str | None = None
    max_response_time: str | None = None
    p50_response_time: str | None = None
    p95_response_time: str | None = None
    p99_response_time: str | None = None
    message: str | None = None


class EndpointAnalytics(CamelModel):
    endpoint: str
    total_requests: int
    successful_requests: int
    failed_requests: int
    success_rate: str
    average_response_time: str
    min_response_time: str
    max_response_time: str


class ActivityEntry(CamelModel):
    request_id: str
    endpoint: str
    method: str
    execution_time: str
    success: bool
    status: str
    timestamp: str


class AnalyticsDashboard(CamelModel):
    system_overview: SystemOverview
    performance_metrics: PerformanceMetrics
    endpoint_analytics: list[EndpointAnalytics]
    recent_activity: list[ActivityEntry]
    performance_insights: list[str]
