"""Tests for triage_router.py - Handler scoring, selection and fallback."""
import pytest

from analytics import RoutingAnalytics
from config import RoutingConfig
from handlers import EscalationHandler, HandlerRegistry, ITSupportHandler, OnboardingHandler
from models import HandlerKind, HandlerResult, RoutingDecision, RoutingLogEntry
from triage_router import TriageRouter


class StaticHandler(ITSupportHandler):
    """IT support handler with a fixed capability answer."""

    def __init__(self, name: str, capable: bool = True):
        super().__init__()
        self.name = name
        self.capable = capable

    def can_handle(self, text, context):
        return self.capable


@pytest.fixture
def router(registry):
    return TriageRouter(registry, RoutingAnalytics())


def _record(analytics, handler, success):
    decision = RoutingDecision(candidates=(), selected=(handler,), confidence=1.0, reasoning="seed")
    analytics.record(
        RoutingLogEntry.create("seed", decision, [HandlerResult(handler=handler.name, success=success)], 1)
    )


@pytest.mark.unit
class TestRoute:
    def test_urgent_high_priority_selects_escalation(self, router):
        decision = router.route("My laptop is broken and urgent", {"priority": "high"})
        escalation = [h for h in decision.selected if h.kind is HandlerKind.ESCALATION]
        assert escalation
        candidate = next(c for c in decision.candidates if c.handler is escalation[0])
        assert candidate.confidence >= 0.7

    @pytest.mark.parametrize(
        "text,context",
        [
            ("", {}),
            ("zzzz", {}),
            ("My laptop is broken", {}),
            ("How to set up VPN?", {"role": "new_hire"}),
            ("Production outage urgent critical emergency", {"priority": "high"}),
        ],
    )
    def test_selection_never_empty_and_bounded(self, router, text, context):
        decision = router.route(text, context)
        assert 1 <= len(decision.selected) <= router.config.max_handlers

    def test_no_capable_handler_uses_fallback(self, router, registry):
        decision = router.route("zzzz", {})
        assert decision.used_fallback is True
        assert decision.selected == (registry.fallback,)

    def test_candidates_below_threshold_use_fallback(self, router, registry):
        # IT support is capable (laptop, broken) but matches no specialization keyword: 0.5 + 0.16 < 0.7
        decision = router.route("My laptop is broken", {})
        assert decision.used_fallback is True
        assert any(c.handler.kind is HandlerKind.IT_SUPPORT for c in decision.candidates)

    def test_multi_handler_disabled_selects_one(self, registry):
        router = TriageRouter(registry, config=RoutingConfig(enable_multi_handler=False))
        decision = router.route("urgent production outage, need access to AWS account", {"priority": "high"})
        assert len(decision.selected) == 1

    def test_truncates_to_max_handlers(self):
        handlers = tuple(StaticHandler(f"H{i}") for i in range(4))
        registry = HandlerRegistry(handlers=handlers, fallback=handlers[0])
        router = TriageRouter(registry, config=RoutingConfig(confidence_threshold=0.5, max_handlers=2))
        decision = router.route("anything", {})
        assert decision.selected_names == ["H0", "H1"]

    def test_ties_keep_registration_order(self):
        handlers = (StaticHandler("B"), StaticHandler("A"), StaticHandler("C"))
        registry = HandlerRegistry(handlers=handlers, fallback=handlers[0])
        router = TriageRouter(registry, config=RoutingConfig(confidence_threshold=0.0, max_handlers=3))
        assert router.route("text", {}).selected_names == ["B", "A", "C"]

    def test_failing_capability_check_is_skipped(self):
        class Broken(StaticHandler):
            def can_handle(self, text, context):
                raise RuntimeError("bad predicate")

        fallback = StaticHandler("Fallback")
        registry = HandlerRegistry(handlers=(Broken("Broken"),), fallback=fallback)
        decision = TriageRouter(registry).route("text", {})
        assert decision.selected == (fallback,)


@pytest.mark.unit
class TestConfidence:
    def test_high_priority_beats_medium_for_escalation(self, router):
        handler = EscalationHandler()
        text = "urgent printer problem"
        high = router.calculate_confidence(handler, text, {"priority": "high"})
        medium = router.calculate_confidence(handler, text, {"priority": "medium"})
        assert high > medium

    def test_new_hire_bonus_for_onboarding(self, router):
        handler = OnboardingHandler()
        base = router.calculate_confidence(handler, "onboarding", {})
        bonus = router.calculate_confidence(handler, "onboarding", {"role": "new_hire"})
        assert base == pytest.approx(0.5 + 0.1 + 0.16)
        assert bonus == pytest.approx(1.0)

    def test_confidence_is_clamped(self, router):
        handler = EscalationHandler()
        text = "urgent critical emergency escalate production outage"
        assert router.calculate_confidence(handler, text, {"priority": "high"}) == 1.0

    def test_historical_success_feeds_back(self):
        handler = ITSupportHandler()
        analytics = RoutingAnalytics()
        registry = HandlerRegistry(handlers=(handler,), fallback=handler)
        router = TriageRouter(registry, analytics)
        assert router.calculate_confidence(handler, "software", {}) == pytest.approx(0.5 + 0.1 + 0.16)
        _record(analytics, handler, success=False)
        assert router.calculate_confidence(handler, "software", {}) == pytest.approx(0.6)
        _record(analytics, handler, success=True)
        assert router.calculate_confidence(handler, "software", {}) == pytest.approx(0.7)


@pytest.mark.unit
class TestForceRouteAndMetadata:
    def test_force_route_known_handler(self, router):
        decision = router.force_route("OnboardingHandler", "anything")
        assert decision.selected_names == ["OnboardingHandler"]
        assert decision.used_fallback is False

    def test_force_route_unknown_uses_fallback(self, router, registry):
        decision = router.force_route("NoSuchHandler", "anything")
        assert decision.selected == (registry.fallback,)
        assert decision.used_fallback is True

    def test_available_handlers(self, router):
        handlers = router.available_handlers()
        assert len(handlers) == 6
        assert handlers[0]["success_rate"] is None
