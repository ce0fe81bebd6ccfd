"""
Shared metrics configuration for the UI Rules layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Info, CollectorRegistry, generate_latest


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Private registry per collector
        self.registry = registry if registry is not None else CollectorRegistry()
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
            "version": "1.0.0"
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
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_rule_engine_metrics()

    def _setup_rule_engine_metrics(self):
        """Set up rule engine metrics."""
        self._metrics["rules_evaluated_total"] = Counter(
            "rules_evaluated_total",
            "Total rules evaluated against a context",
            ["matched"],
            registry=self.registry
        )

        self._metrics["effects_applied_total"] = Counter(
            "effects_applied_total",
            "Total effects applied to a state snapshot",
            ["action"],
            registry=self.registry
        )

        self._metrics["effects_skipped_total"] = Counter(
            "effects_skipped_total",
            "Total effects skipped",
            ["reason"],
            registry=self.registry
        )

        self._metrics["render_duration_seconds"] = Histogram(
            "render_duration_seconds",
            "Duration of one render pass in seconds",
            ["screen"],
            registry=self.registry
        )

        self._metrics["default_effects_fetch_total"] = Counter(
            "default_effects_fetch_total",
            "Default effects fetch attempts",
            ["status"],
            registry=self.registry
        )

        self._metrics["catalog_cache_events_total"] = Counter(
            "catalog_cache_events_total",
            "Catalog cache hits, misses and stale fallbacks",
            ["event"],
            registry=self.registry
        )

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
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

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

    def get_sample_value(self, metric_name: str, **labels) -> Optional[float]:
        """Read back a sample value; counters are exposed with a _total suffix."""
        return self.registry.get_sample_value(metric_name, labels)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)


