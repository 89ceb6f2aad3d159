"""
Shared metrics configuration for the ISPyB Sessions service.
"""

from typing import Dict, Any, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest

from shared import __version__


class MetricsCollector:
    """Centralized metrics collector for a service.

    Each collector owns its registry so that several service instances (as
    in tests) never collide on metric names.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": __version__
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type"],
            registry=self.registry
        )

        # Authorization
        self._metrics["policy_decisions_total"] = Counter(
            "policy_decisions_total",
            "Total policy decisions by outcome",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["policy_decision_duration_seconds"] = Histogram(
            "policy_decision_duration_seconds",
            "Policy decision round-trip duration in seconds",
            registry=self.registry
        )

        # Storage
        self._metrics["storage_queries_total"] = Counter(
            "storage_queries_total",
            "Total database queries",
            ["operation", "status"],
            registry=self.registry
        )

    def latest(self) -> bytes:
        """Render the registry in the Prometheus exposition format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str):
        """Record error metrics."""
        self._metrics["errors_total"].labels(error_type=error_type).inc()

    def record_policy_decision(self, outcome: str, duration: float):
        """Record the outcome of one policy decision."""
        self._metrics["policy_decisions_total"].labels(outcome=outcome).inc()
        self._metrics["policy_decision_duration_seconds"].observe(duration)

    def record_storage_query(self, operation: str, status: str):
        """Record a database query."""
        self._metrics["storage_queries_total"].labels(operation=operation, status=status).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
