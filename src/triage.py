"""Classify, route and execute a single request, with metrics and analytics."""
from __future__ import annotations

import time
from typing import Any, Mapping, Optional

import intent_classifier
from analytics import RoutingAnalytics
from collaborators import Notifier, WorkItemStore
from config import AppConfig, default_config
from executor import ExecutionCoordinator
from handlers import HandlerRegistry, build_registry
from logging_utils import logger
from metrics import TriageMetrics
from models import LOG_TEXT_LIMIT, RoutingLogEntry, TriageOutcome
from text_generation import TextGenerator
from triage_router import TriageRouter


class TriageEngine:
    def __init__(
        self,
        config: Optional[AppConfig] = None,
        registry: Optional[HandlerRegistry] = None,
        analytics: Optional[RoutingAnalytics] = None,
        coordinator: Optional[ExecutionCoordinator] = None,
    ) -> None:
        self.config = config or default_config()
        self.registry = registry or build_registry(automation=self.config.automation)
        self.analytics = analytics or RoutingAnalytics(self.config.routing.analytics_capacity)
        self.coordinator = coordinator or ExecutionCoordinator(
            timeout_s=self.config.routing.handler_timeout_s,
            max_workers=self.config.routing.max_workers,
        )
        self.router = TriageRouter(self.registry, self.analytics, self.config.routing)

    @classmethod
    def create(
        cls,
        config: Optional[AppConfig] = None,
        store: Optional[WorkItemStore] = None,
        notifier: Optional[Notifier] = None,
        generator: Optional[TextGenerator] = None,
    ) -> TriageEngine:
        """Wire an engine whose handlers share the given collaborators."""
        config = config or default_config()
        registry = build_registry(generator=generator, store=store, notifier=notifier, automation=config.automation)
        return cls(config=config, registry=registry)

    def handle(self, text: str, context: Optional[Mapping[str, Any]] = None) -> TriageOutcome:
        """
        Run the full triage flow for one request.

        The outcome reports failure only when every selected handler failed.
        """
        metrics = TriageMetrics()
        text = text if isinstance(text, str) else ""
        logger.info(
            "Processing request",
            extra={"extra": {"correlation_id": metrics.correlation_id, "text": text[:LOG_TEXT_LIMIT]}},
        )

        step = time.time()
        classification = intent_classifier.classify(text, context)
        metrics.intent = classification.intent
        metrics.intent_confidence = classification.confidence
        metrics.classify_latency_ms = int((time.time() - step) * 1000)
        logger.info(
            "Intent classified",
            extra={
                "extra": {
                    "correlation_id": metrics.correlation_id,
                    **classification.to_dict(),
                }
            },
        )

        # Handlers read the correlation id and classification from context.
        enriched = {
            **(context or {}),
            "correlation_id": metrics.correlation_id,
            "intent": classification.intent,
        }
        if classification.entity and "entity" not in enriched:
            enriched["entity"] = classification.entity

        step = time.time()
        decision = self.router.route(text, enriched)
        metrics.handlers_selected = decision.selected_names
        metrics.routing_fallback = decision.used_fallback
        metrics.routing_latency_ms = int((time.time() - step) * 1000)

        step = time.time()
        results = self.coordinator.execute(decision.selected, text, enriched)
        execution_ms = int((time.time() - step) * 1000)
        metrics.execution_latency_ms = execution_ms
        metrics.handler_failures = sum(1 for r in results if not r.success)

        self.analytics.record(RoutingLogEntry.create(text, decision, results, execution_ms))

        success = any(r.success for r in results)
        outcome = TriageOutcome(
            success=success,
            classification=classification,
            decision=decision,
            results=tuple(results),
            execution_ms=execution_ms,
            correlation_id=metrics.correlation_id,
        )

        logger.info(
            "Final triage outcome",
            extra={
                "extra": {
                    "correlation_id": metrics.correlation_id,
                    "success": success,
                    "handlers": [r.handler for r in results],
                    "metrics": metrics.finalize(),
                }
            },
        )
        return outcome
