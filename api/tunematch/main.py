"""FastAPI application entrypoint and health reporting utilities.

Invariants:
- Health detail is only exposed to allowlisted hosts.
"""

import ipaddress
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from tunematch.api.router import api_router
from tunematch.core.config import settings
from tunematch.core.logging import configure_logging
from tunematch.scoring.gemini import gemini_client
from tunematch.scoring.observability import scoring_monitor
from tunematch.services.task_queue import task_queue

logger = logging.getLogger("tunematch.main")

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(api_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def _startup() -> None:
    configure_logging()


@app.on_event("shutdown")
async def _shutdown() -> None:
    """Let in-process enrichment finish, then release the scoring client."""
    await task_queue.drain(timeout=settings.enrichment_job_timeout_seconds)
    await gemini_client.aclose()


def _summarize_scoring(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Flag providers whose circuit is open or whose calls keep failing."""
    issues: list[dict[str, Any]] = []
    for source, payload in snapshot.items():
        remaining = float(payload.get("circuit", {}).get("remaining_cooldown") or 0.0)
        if remaining > 0:
            issues.append({"source": source, "reason": "circuit_open", "remaining_cooldown": remaining})
        for operation, counters in payload.get("operations", {}).items():
            if int(counters.get("failed") or 0) >= settings.scoring_circuit_threshold:
                issues.append({"source": source, "operation": operation, "reason": "repeated_failures"})
    return {"sources": snapshot, "issues": issues}


def _detail_allowed(request: Request) -> bool:
    """True when the client address falls inside an allowlisted IP or network."""
    if not settings.health_allowlist or request.client is None:
        return False
    try:
        address = ipaddress.ip_address(request.client.host)
    except ValueError:
        return False
    for entry in settings.health_allowlist:
        try:
            if address in ipaddress.ip_network(entry, strict=False):
                return True
        except ValueError:
            logger.warning("Ignoring health allowlist entry %r: not an IP address or network", entry)
    return False


@app.get("/health", tags=["internal"])
@app.get(f"{settings.api_prefix}/health", tags=["internal"])
async def health(request: Request) -> dict[str, Any]:
    """Return health status and, for allowlisted hosts, scoring and queue telemetry."""
    if not _detail_allowed(request):
        return {"status": "ok"}

    telemetry = _summarize_scoring(await scoring_monitor.snapshot())
    status = "ok" if not telemetry["issues"] else "degraded"
    return {"status": status, "scoring": telemetry, "task_queue": task_queue.snapshot()}
