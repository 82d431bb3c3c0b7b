"""
Monitoring package: webhook alerting and Prometheus metrics.
"""

from slm_watcher.monitoring.alerting import (
    Alert,
    AlertConfig,
    AlertManager,
    AlertSeverity,
    AlertType,
    configure_alerts,
)
from slm_watcher.monitoring.metrics import WatcherMetrics, start_metrics_server

__all__ = [
    "Alert",
    "AlertConfig",
    "AlertManager",
    "AlertSeverity",
    "AlertType",
    "configure_alerts",
    "WatcherMetrics",
    "start_metrics_server",
]
