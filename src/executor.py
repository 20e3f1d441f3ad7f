"""Executes selected handlers with per-handler timeouts and failure isolation."""
from __future__ import annotations

import time
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from types import MappingProxyType
from typing import Any, List, Mapping, Optional, Sequence

from handlers import Handler
from logging_utils import logger
from models import HandlerResult


class ExecutionCoordinator:
    """
    Runs the primary handler first, then any secondaries concurrently.

    Secondary handlers receive a read-only context enriched with the primary
    result. Results come back in selection order. A handler that raises or
    exceeds the timeout yields a failed HandlerResult and never aborts its
    siblings.
    """

    def __init__(self, timeout_s: float = 30.0, max_workers: int = 4) -> None:
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        self.timeout_s = timeout_s
        self.max_workers = max(1, max_workers)

    def execute(self, selected: Sequence[Handler], text: str, context: Optional[Mapping[str, Any]] = None) -> List[HandlerResult]:
        if not selected:
            return []
        base = dict(context or {})
        correlation_id = base.get("correlation_id")

        # At least one worker per selected handler so a stuck primary cannot starve the secondaries.
        pool = ThreadPoolExecutor(
            max_workers=max(self.max_workers, len(selected)),
            thread_name_prefix="triage-handler",
        )
        try:
            primary = selected[0]
            primary_context = MappingProxyType(base)
            started = time.time()
            primary_result = self._collect(
                primary, pool.submit(primary.execute, text, primary_context), started, correlation_id
            )
            if len(selected) == 1:
                return [primary_result]

            enriched = MappingProxyType({**base, "primary_result": primary_result, "multi_handler_execution": True})
            started = time.time()
            futures = [(handler, pool.submit(handler.execute, text, enriched)) for handler in selected[1:]]
            # All secondaries share one deadline since they run concurrently.
            secondary_results = [self._collect(handler, future, started, correlation_id) for handler, future in futures]
            return [primary_result, *secondary_results]
        finally:
            # Do not wait on handlers that timed out.
            pool.shutdown(wait=False, cancel_futures=True)

    def _collect(self, handler: Handler, future: Future, started: float, correlation_id: Any) -> HandlerResult:
        remaining = max(0.0, self.timeout_s - (time.time() - started))
        try:
            outcome = future.result(timeout=remaining)
        except FuturesTimeoutError:
            future.cancel()
            error = f"Handler timed out after {self.timeout_s}s"
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
        else:
            elapsed_ms = int((time.time() - started) * 1000)
            logger.info(
                "Handler completed",
                extra={"extra": {"correlation_id": correlation_id, "handler": handler.name, "elapsed_ms": elapsed_ms}},
            )
            return HandlerResult(handler=handler.name, success=True, outcome=outcome, elapsed_ms=elapsed_ms)

        elapsed_ms = int((time.time() - started) * 1000)
        logger.error(
            "Handler failed",
            extra={
                "extra": {
                    "correlation_id": correlation_id,
                    "handler": handler.name,
                    "error": error,
                    "elapsed_ms": elapsed_ms,
                }
            },
        )
        return HandlerResult(handler=handler.name, success=False, error=error, elapsed_ms=elapsed_ms)
