"""Deterministic keyword + pattern intent classifier for IT workflow requests."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from models import UNKNOWN_INTENT, ClassificationResult, IntentDefinition

KEYWORD_WEIGHT = 0.4
PATTERN_SCORE = 0.6

DEFAULT_INTENTS: Sequence[IntentDefinition] = (
    IntentDefinition.build(
        "access_request",
        patterns=[
            r"need access to (.+)",
            r"can I (?:get|have) access to (.+)",
            r"(?:grant|give) (?:me )?access to (.+)",
            r"I need (.+) access",
        ],
        keywords=["access", "need", "permission", "grant", "allow", "enable"],
        weight=0.8,
    ),
    IntentDefinition.build(
        "ticket_creation",
        patterns=[
            r"(.+) (?:is|isn't|not) working",
            r"(?:having|got) (?:a )?problem with (.+)",
            r"(.+) broken",
            r"issue with (.+)",
        ],
        keywords=["broken", "not working", "issue", "problem", "help", "fix", "repair", "error"],
        weight=0.7,
    ),
    IntentDefinition.build(
        "ticket_query",
        patterns=[
            r"show (?:me )?(?:all |the )?(?:open )?tickets",
            r"(?:list|display) tickets",
            r"tickets from (.+)",
            r"what (?:are|is) (?:the|my) tickets",
        ],
        keywords=["show", "list", "view", "display", "tickets", "open", "pending"],
        weight=0.75,
    ),
    IntentDefinition.build(
        "onboarding_query",
        patterns=[
            r"onboarding (?:for|checklist)",
            r"new (?:hire|employee) (.+)",
            r"show (?:me )?(?:the )?(?:onboarding )?checklist",
        ],
        keywords=["onboarding", "new hire", "checklist", "employee", "orientation"],
        weight=0.8,
    ),
    IntentDefinition.build(
        "greeting",
        patterns=[
            r"^(?:hello|hi|hey|greetings)",
            r"good (?:morning|afternoon|evening)",
        ],
        keywords=["hello", "hi", "hey", "good morning", "good afternoon", "greetings"],
        weight=0.9,
    ),
    IntentDefinition.build(
        "help",
        patterns=[
            r"(?:can you )?help(?: me)?",
            r"what can you do",
            r"how (?:do I|to)",
        ],
        keywords=["help", "what can you do", "how", "guide", "assist"],
        weight=0.85,
    ),
    IntentDefinition.build(
        "status_check",
        patterns=[
            r"(?:what's|what is) (?:the )?status",
            r"check status of (.+)",
            r"status (?:on|of) (.+)",
        ],
        keywords=["status", "state", "progress", "update"],
        weight=0.7,
    ),
)

SUGGESTIONS: Dict[str, List[str]] = {
    "access_request": [
        "I need access to Figma",
        "Can I get access to GitHub?",
        "Grant me access to AWS console",
    ],
    "ticket_creation": [
        "My laptop is not working",
        "Issue with printer on 3rd floor",
        "Email client keeps crashing",
    ],
    "ticket_query": [
        "Show open tickets from this week",
        "List all my tickets",
        "Display pending tickets",
    ],
    "onboarding_query": [
        "Show onboarding checklist for new hire",
        "New employee onboarding steps",
        "Create onboarding for Sarah",
    ],
    "greeting": [
        "What can you help me with?",
        "Show me what you can do",
    ],
    UNKNOWN_INTENT: [
        "I need access to Figma",
        "Show open tickets",
        "Create onboarding checklist",
    ],
}


def _keyword_score(lowered: str, definition: IntentDefinition) -> float:
    if not definition.keywords:
        return 0.0
    matches = sum(1 for keyword in definition.keywords if keyword in lowered)
    return matches / len(definition.keywords) * KEYWORD_WEIGHT


def _pattern_score(text: str, definition: IntentDefinition) -> tuple[float, Optional[str]]:
    for pattern in definition.patterns:
        match = pattern.search(text)
        if match:
            entity = None
            if match.groups() and match.group(1):
                entity = match.group(1).strip() or None
            return PATTERN_SCORE, entity
    return 0.0, None


def score_intent(text: str, definition: IntentDefinition) -> tuple[float, Optional[str]]:
    """Score one intent definition against text; returns (score, extracted entity)."""
    keyword_score = _keyword_score(text.lower(), definition)
    pattern_score, entity = _pattern_score(text, definition)
    total = (keyword_score + pattern_score) * definition.weight
    return min(max(total, 0.0), 1.0), entity


def classify(
    text: Any,
    context: Optional[Mapping[str, Any]] = None,
    definitions: Sequence[IntentDefinition] = DEFAULT_INTENTS,
) -> ClassificationResult:
    """
    Classify free text into the best-matching intent.

    Each definition scores keyword coverage (x0.4) plus the first matching
    pattern (0.6), scaled by its weight. The highest total wins and ties keep
    definition order. Empty or non-matching text yields "unknown" at 0.0.
    Never raises.
    """
    if not isinstance(text, str) or not text.strip():
        return ClassificationResult(intent=UNKNOWN_INTENT, confidence=0.0)

    best_intent = UNKNOWN_INTENT
    best_score = 0.0
    best_entity: Optional[str] = None

    for definition in definitions:
        score, entity = score_intent(text, definition)
        if score > best_score:
            best_intent, best_score, best_entity = definition.id, score, entity

    return ClassificationResult(intent=best_intent, confidence=best_score, entity=best_entity)


def get_suggestions(intent: str) -> List[str]:
    """Example utterances for an intent, used to nudge users after a weak match."""
    return list(SUGGESTIONS.get(intent, SUGGESTIONS[UNKNOWN_INTENT]))
