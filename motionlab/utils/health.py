"""Health reporting for the proxy server."""

import logging
import time
import psutil
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Dict, Iterable

from motionlab.core.base_client import BaseUpstreamClient
from motionlab.core.registry import get_all_models

logger = logging.getLogger(__name__)


class HealthStatus(Enum):
    """Health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


@dataclass
class HealthCheckResult:
    """Result of a health check."""
    status: HealthStatus
    message: str
    details: Dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict:
        return {
            "status": self.status.value,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


class HealthChecker:
    """Tracks proxy traffic and reports server health.

    Reports CPU and memory pressure, proxy request/error counters and
    whether requests can be authenticated at all. A server with no
    process-wide API key is still healthy: browsers can supply their own.
    """

    def __init__(self, server_key_configured: bool = False):
        self.start_time = time.time()
        self.server_key_configured = server_key_configured
        self.request_count = 0
        self.error_count = 0
        self._lock = Lock()

    def record_request(self, success: bool = True) -> None:
        """Count one proxy request."""
        with self._lock:
            self.request_count += 1
            if not success:
                self.error_count += 1

    def check_health(self, include_details: bool = True) -> HealthCheckResult:
        """Evaluate overall health.

        Args:
            include_details: Whether to include metrics in the result

        Returns:
            HealthCheckResult with status and details
        """
        try:
            cpu_usage = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory()
        except Exception as e:
            logger.error(f"Health check failed: {e}")
            return HealthCheckResult(
                status=HealthStatus.UNHEALTHY,
                message=f"Health check error: {e}",
                details={"error": str(e)}
            )

        status = HealthStatus.HEALTHY
        issues = []

        for label, value in (("CPU", cpu_usage), ("memory", memory.percent)):
            if value > 95:
                status = HealthStatus.UNHEALTHY
                issues.append(f"Critical {label} usage: {value:.1f}%")
            elif value > 85:
                if status != HealthStatus.UNHEALTHY:
                    status = HealthStatus.DEGRADED
                issues.append(f"High {label} usage: {value:.1f}%")

        model_count = len(get_all_models())
        if model_count == 0:
            status = HealthStatus.UNHEALTHY
            issues.append("No models registered")

        if status == HealthStatus.HEALTHY:
            message = "All systems operational"
        else:
            message = f"System {status.value}: {', '.join(issues)}"

        details = {}
        if include_details:
            uptime_seconds = time.time() - self.start_time
            with self._lock:
                requests_total, errors_total = self.request_count, self.error_count
            details = {
                "uptime_seconds": round(uptime_seconds, 2),
                "uptime_human": format_uptime(uptime_seconds),
                "cpu_usage_percent": round(cpu_usage, 2),
                "memory_usage_percent": round(memory.percent, 2),
                "requests_total": requests_total,
                "requests_failed": errors_total,
                "error_rate": round(errors_total / max(requests_total, 1), 4),
                "server_key_configured": self.server_key_configured,
                "models_registered": model_count,
            }

        return HealthCheckResult(status=status, message=message, details=details)

    def check_upstreams(self, clients: Iterable[BaseUpstreamClient]) -> Dict[str, bool]:
        """Check each upstream service.

        Returns:
            Mapping of service name to reachability
        """
        results = {client.name: client.health_check() for client in clients}
        logger.info(f"Upstream health: {results}")
        return results

    def __repr__(self) -> str:
        uptime = format_uptime(time.time() - self.start_time)
        return f"HealthChecker(uptime={uptime}, requests={self.request_count})"


def format_uptime(seconds: float) -> str:
    """Format a duration like ``1d 2h 3m 4s``."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")

    return " ".join(parts)
