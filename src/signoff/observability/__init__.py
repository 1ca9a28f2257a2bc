"""Metrics and health reporting."""

from signoff.observability.health import HealthStatus, build_health_report, run_health_check

__all__ = ["HealthStatus", "build_health_report", "run_health_check"]
