"""Health reporting — /health payload and the CLI probe."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from signoff.broker.store import SessionStore


class HealthStatus(StrEnum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"


def build_health_report(
    store: "SessionStore", version: str, reaper_expected: bool = True
) -> dict[str, Any]:
    status = HealthStatus.HEALTHY
    if reaper_expected and not store.running:
        status = HealthStatus.DEGRADED
    return {
        'ok': True,
        'status': status.value,
        'service': 'signoff',
        'version': version,
        'ts': datetime.now(tz=UTC).isoformat(),
        'store': store.stats(),
    }


async def run_health_check(base_url: str, timeout: float = 3.0) -> tuple[str, dict[str, Any] | None]:
    """Probe a running server's /health. Returns (label, body)."""
    async with httpx.AsyncClient(timeout=timeout) as client:
        try:
            resp = await client.get(f"{base_url.rstrip('/')}/health")
        except httpx.HTTPError:
            return "FAIL", None
    if resp.status_code >= 500:
        return "DEGRADED", None
    body = resp.json()
    label = "OK" if body.get("status") == HealthStatus.HEALTHY.value else "DEGRADED"
    return label, body
