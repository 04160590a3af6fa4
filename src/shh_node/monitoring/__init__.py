"""Telemetry and health reporting."""

from shh_node.monitoring.health import HealthReporter, HealthServer
from shh_node.monitoring.metrics import NodeMetrics

__all__ = ["HealthReporter", "HealthServer", "NodeMetrics"]
