"""Circuit breaker and call counters for external scoring providers."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from tunematch.core.config import settings

logger = logging.getLogger("tunematch.scoring")


class CircuitOpenError(Exception):
    """Raised when a provider circuit is open and calls are temporarily blocked."""


@dataclass
class OperationCounters:
    started: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    last_latency_ms: float | None = None
    last_error: str | None = None


@dataclass
class ProviderState:
    """Failure streak, cooldown deadline and per-operation counters for one provider."""
    failure_streak: int = 0
    open_until: float = 0.0
    operations: dict[str, OperationCounters] = field(default_factory=dict)

    def remaining_cooldown(self) -> float:
        return max(0.0, self.open_until - time.monotonic())

    def counters(self, operation: str) -> OperationCounters:
        return self.operations.setdefault(operation, OperationCounters())

    def as_dict(self) -> dict[str, Any]:
        return {
            "circuit": {
                "failure_streak": self.failure_streak,
                "remaining_cooldown": round(self.remaining_cooldown(), 2),
            },
            "operations": {name: vars(counters).copy() for name, counters in self.operations.items()},
        }


class ScoringMonitor:
    """Track provider calls and refuse new ones while a circuit is open.

    A circuit opens after ``circuit_threshold`` consecutive failures and stays
    open for ``cooldown_seconds``; the next success resets the streak.
    """

    def __init__(self, *, circuit_threshold: int = 3, cooldown_seconds: float = 30.0) -> None:
        self.circuit_threshold = circuit_threshold
        self.cooldown_seconds = cooldown_seconds
        self._providers: dict[str, ProviderState] = {}
        self._lock = asyncio.Lock()

    def _state(self, source: str) -> ProviderState:
        return self._providers.setdefault(source, ProviderState())

    def allow_call(self, source: str) -> bool:
        state = self._providers.get(source)
        return state is None or state.remaining_cooldown() == 0.0

    @staticmethod
    def _log(level: int, event: str, source: str, operation: str, **fields: Any) -> None:
        logger.log(level, json.dumps({"event": event, "source": source, "operation": operation, **fields}, default=str))

    async def track(
        self,
        source: str,
        operation: str,
        func: Callable[[], Awaitable[Any]],
        *,
        context: dict[str, Any] | None = None,
    ) -> Any:
        """Run a provider call, updating counters and the circuit for ``source``."""
        async with self._lock:
            state = self._state(source)
            counters = state.counters(operation)
            remaining = state.remaining_cooldown()
            if remaining > 0:
                counters.skipped += 1
                self._log(logging.WARNING, "scoring_circuit_open", source, operation, remaining_cooldown=round(remaining, 2))
                raise CircuitOpenError(f"{source} circuit open for {remaining:.2f}s")
            counters.started += 1

        start = time.monotonic()
        try:
            result = await func()
        except Exception as exc:  # noqa: BLE001
            latency_ms = round((time.monotonic() - start) * 1000, 2)
            async with self._lock:
                counters.failed += 1
                counters.last_latency_ms = latency_ms
                counters.last_error = str(exc) or exc.__class__.__name__
                state.failure_streak += 1
                if state.failure_streak >= self.circuit_threshold:
                    state.open_until = time.monotonic() + self.cooldown_seconds
                    state.failure_streak = 0
            self._log(
                logging.WARNING, "scoring_failure", source, operation,
                error=counters.last_error, latency_ms=latency_ms, context=context or {},
            )
            raise

        latency_ms = round((time.monotonic() - start) * 1000, 2)
        async with self._lock:
            counters.succeeded += 1
            counters.last_latency_ms = latency_ms
            counters.last_error = None
            state.failure_streak = 0
            state.open_until = 0.0
        self._log(logging.INFO, "scoring_success", source, operation, latency_ms=latency_ms)
        return result

    async def snapshot(self) -> dict[str, Any]:
        async with self._lock:
            return {source: state.as_dict() for source, state in self._providers.items()}

    async def reset(self) -> None:
        """Forget all counters and close every circuit."""
        async with self._lock:
            self._providers.clear()


scoring_monitor = ScoringMonitor(
    circuit_threshold=settings.scoring_circuit_threshold,
    cooldown_seconds=settings.scoring_circuit_cooldown_seconds,
)
