"""Prometheus metrics for probes, notifications and sweeps."""

from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    generate_latest,
    CONTENT_TYPE_LATEST
)

from uptime_monitor.utils.logger import get_logger

logger = get_logger(__name__)

__all__ = ["MetricsCollector", "metrics_collector", "CONTENT_TYPE_LATEST"]


class MetricsCollector:
    """Prometheus metrics collector for Uptime Monitor."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Initialize metrics collector.

        Args:
            registry: Optional custom registry
        """
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self) -> None:
        self.probes_total = Counter(
            'uptime_monitor_probes_total',
            'Total number of probes performed',
            ['status'],
            registry=self.registry
        )

        self.probe_latency = Histogram(
            'uptime_monitor_probe_latency_seconds',
            'Latency of probes that received a response',
            registry=self.registry
        )

        self.monitor_status = Gauge(
            'uptime_monitor_monitor_up',
            'Current monitor status (1=up, 0=down)',
            ['monitor_id'],
            registry=self.registry
        )

        self.notifications_total = Counter(
            'uptime_monitor_notifications_total',
            'Total number of notification attempts',
            ['kind', 'status'],
            registry=self.registry
        )

        self.sweeps_total = Counter(
            'uptime_monitor_sweeps_total',
            'Total number of completed sweeps',
            registry=self.registry
        )

        self.sweep_duration = Histogram(
            'uptime_monitor_sweep_duration_seconds',
            'Sweep duration in seconds',
            buckets=(1, 5, 15, 30, 60, 120, 300, 600, 1800),
            registry=self.registry
        )

        self.monitors_checked = Gauge(
            'uptime_monitor_monitors_last_sweep',
            'Number of monitors loaded by the last sweep',
            registry=self.registry
        )

    def record_probe(self, monitor_id: int, status: str, latency_ms: Optional[int]) -> None:
        """
        Record one probe outcome.

        Args:
            monitor_id: Monitor ID
            status: "up" or "down"
            latency_ms: Observed latency, if any
        """
        self.probes_total.labels(status=status).inc()
        if latency_ms is not None:
            self.probe_latency.observe(latency_ms / 1000)
        self.monitor_status.labels(monitor_id=str(monitor_id)).set(1 if status == "up" else 0)

    def record_notification(self, kind: str, success: bool) -> None:
        self.notifications_total.labels(
            kind=kind,
            status="sent" if success else "failed"
        ).inc()

    def record_sweep(self, monitor_count: int, duration: float) -> None:
        self.sweeps_total.inc()
        self.sweep_duration.observe(duration)
        self.monitors_checked.set(monitor_count)

    def forget_monitor(self, monitor_id: int) -> None:
        """Drop the status series of a deleted monitor."""
        try:
            self.monitor_status.remove(str(monitor_id))
        except KeyError:
            pass

    def generate_metrics(self) -> bytes:
        """
        Generate Prometheus metrics output.

        Returns:
            bytes: Prometheus metrics in text format
        """
        return generate_latest(self.registry)


# Global metrics collector instance
metrics_collector = MetricsCollector()
