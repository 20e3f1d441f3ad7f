"""Selects an ordered, bounded set of handlers for a request."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from analytics import RoutingAnalytics
from config import RoutingConfig
from handlers import Handler, HandlerRegistry
from logging_utils import logger
from models import RoutingCandidate, RoutingDecision

KEYWORD_BONUS = 0.1
HISTORY_WEIGHT = 0.2
BASE_CONFIDENCE = 0.5

# (context key, expected value, handler specialty, bonus)
CONTEXT_BONUSES: Tuple[Tuple[str, str, str, float], ...] = (
    ("priority", "high", "escalation", 0.3),
    ("role", "new_hire", "onboarding", 0.4),
)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


class TriageRouter:
    def __init__(
        self,
        registry: HandlerRegistry,
        analytics: Optional[RoutingAnalytics] = None,
        config: Optional[RoutingConfig] = None,
    ) -> None:
        self.registry = registry
        self.analytics = analytics
        self.config = config or RoutingConfig()

    def historical_success(self, handler: Handler) -> float:
        rate = self.analytics.handler_success_rate(handler.name) if self.analytics else None
        return self.config.historical_prior if rate is None else rate

    def contextual_bonus(self, handler: Handler, context: Mapping[str, Any]) -> float:
        return sum(
            bonus
            for key, value, specialty, bonus in CONTEXT_BONUSES
            if context.get(key) == value and handler.specializes_in(specialty)
        )

    def calculate_confidence(self, handler: Handler, text: str, context: Mapping[str, Any]) -> float:
        score = (
            BASE_CONFIDENCE
            + KEYWORD_BONUS * handler.keyword_matches(text)
            + self.contextual_bonus(handler, context)
            + HISTORY_WEIGHT * self.historical_success(handler)
        )
        return _clamp(score)

    def reasoning(self, handler: Handler, text: str, context: Mapping[str, Any]) -> str:
        parts: List[str] = []
        matches = handler.keyword_matches(text)
        if matches:
            parts.append(f"{matches} keyword matches")
        bonus = self.contextual_bonus(handler, context)
        if bonus:
            parts.append(f"context bonus +{bonus:.1f}")
        parts.append(f"historical success {self.historical_success(handler):.0%}")
        return f"{handler.name}: " + ", ".join(parts)

    def route(self, text: str, context: Optional[Mapping[str, Any]] = None) -> RoutingDecision:
        """
        Score every capable handler and select the strongest ones.

        Candidates below the confidence threshold are dropped; the rest are
        sorted by confidence (ties keep registration order) and truncated to
        max_handlers. An empty selection falls back to the registry fallback.
        """
        context = context or {}
        candidates: List[RoutingCandidate] = []
        for handler in self.registry.handlers:
            try:
                capable = handler.can_handle(text, context)
            except Exception as exc:
                logger.warning(
                    "Capability check failed",
                    extra={"extra": {"handler": handler.name, "error": str(exc)}},
                )
                continue
            if not capable:
                continue
            candidates.append(
                RoutingCandidate(
                    handler=handler,
                    confidence=self.calculate_confidence(handler, text, context),
                    reasoning=self.reasoning(handler, text, context),
                )
            )

        # sorted() is stable, so equal confidences keep registration order.
        ranked = sorted(candidates, key=lambda c: c.confidence, reverse=True)
        limit = self.config.max_handlers if self.config.enable_multi_handler else 1
        kept = [c for c in ranked if c.confidence >= self.config.confidence_threshold][:limit]

        if not kept:
            fallback = self.registry.fallback
            decision = RoutingDecision(
                candidates=tuple(ranked),
                selected=(fallback,),
                confidence=BASE_CONFIDENCE,
                reasoning=f"No handler above threshold {self.config.confidence_threshold}; using fallback {fallback.name}",
                used_fallback=True,
            )
        else:
            decision = RoutingDecision(
                candidates=tuple(ranked),
                selected=tuple(c.handler for c in kept),
                confidence=kept[0].confidence,
                reasoning="; ".join(c.reasoning for c in kept),
            )

        logger.info(
            "Routing decision made",
            extra={
                "extra": {
                    "correlation_id": context.get("correlation_id"),
                    "selected": decision.selected_names,
                    "confidence": round(decision.confidence, 4),
                    "used_fallback": decision.used_fallback,
                    "candidates": len(candidates),
                }
            },
        )
        return decision

    def force_route(self, name: str, text: str, context: Optional[Mapping[str, Any]] = None) -> RoutingDecision:
        """Select one handler by name, bypassing scoring; unknown names use the fallback."""
        context = context or {}
        handler = self.registry.get(name)
        if handler is None:
            handler = self.registry.fallback
            return RoutingDecision(
                candidates=(),
                selected=(handler,),
                confidence=0.0,
                reasoning=f"Unknown handler '{name}'; using fallback {handler.name}",
                used_fallback=True,
            )
        return RoutingDecision(
            candidates=(RoutingCandidate(handler, 1.0, f"Forced routing to {handler.name}"),),
            selected=(handler,),
            confidence=1.0,
            reasoning=f"Forced routing to {handler.name}",
        )

    def available_handlers(self) -> List[Dict[str, Any]]:
        handlers = []
        for metadata in self.registry.metadata():
            rate = self.analytics.handler_success_rate(metadata["name"]) if self.analytics else None
            handlers.append({**metadata, "success_rate": rate})
        return handlers
