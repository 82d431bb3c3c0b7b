"""
Prometheus metrics for watcher outcomes.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, start_http_server


class WatcherMetrics:
    """Counters and timings for watcher invocations."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        reg = registry or CollectorRegistry()
        self._registry = reg

        self.invocations = Counter(
            'slm_watch_invocations_total',
            'Watcher job invocations',
            registry=reg
        )
        self.outcomes = Counter(
            'slm_watch_outcomes_total',
            'Watcher outcomes by reason',
            labelnames=['reason'],
            registry=reg
        )
        self.exit_orders = Counter(
            'slm_exit_orders_total',
            'Compensating exit orders by result',
            labelnames=['result'],
            registry=reg
        )
        self.requeues = Counter(
            'slm_requeue_total',
            'Exit order requeue attempts by result',
            labelnames=['result'],
            registry=reg
        )
        self.duration_ms = Histogram(
            'slm_watch_duration_ms',
            'Watcher invocation duration (milliseconds)',
            buckets=[10, 50, 100, 250, 500, 1000, 2500, 5000],
            registry=reg
        )

    def get_registry(self) -> CollectorRegistry:
        return self._registry


def start_metrics_server(metrics: WatcherMetrics, port: int) -> None:
    """Expose ``metrics`` on ``port`` (no-op when port is 0)."""
    if port <= 0:
        return
    start_http_server(port, registry=metrics.get_registry())
