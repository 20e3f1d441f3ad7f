"""Data models and constants for the triage engine."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Pattern, Tuple, Union

if TYPE_CHECKING:
    from handlers import Handler

UNKNOWN_INTENT = "unknown"
LOG_TEXT_LIMIT = 200
WARNING_RATIO = 0.8

# (APPROVED | MANUAL_REVIEW, reason)
Decision = Tuple[str, Optional[str]]


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Status(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    ESCALATED = "escalated"
    RESOLVED = "resolved"
    CLOSED = "closed"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class WorkItemKind(str, Enum):
    TICKET = "ticket"
    ACCESS_REQUEST = "access_request"


class HandlerKind(str, Enum):
    ESCALATION = "escalation"
    PERFORMANCE = "performance"
    KNOWLEDGE = "knowledge"
    IT_SUPPORT = "it_support"
    ACCESS_MANAGEMENT = "access_management"
    ONBOARDING = "onboarding"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so ages can always be computed."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a datetime or ISO-8601 string; None when missing or malformed."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        return None


@dataclass(frozen=True)
class IntentDefinition:
    """Author-defined intent: ordered patterns (first match wins), keywords and a weight."""
    id: str
    patterns: Tuple[Pattern[str], ...]
    keywords: Tuple[str, ...]
    weight: float

    @classmethod
    def build(cls, intent_id: str, patterns: List[str], keywords: List[str], weight: float) -> IntentDefinition:
        return cls(
            id=intent_id,
            patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
            keywords=tuple(k.lower() for k in keywords),
            weight=weight,
        )


@dataclass(frozen=True)
class ClassificationResult:
    """Best-matching intent for a piece of text."""
    intent: str
    confidence: float
    entity: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": round(self.confidence, 4),
            "entity": self.entity,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TicketClassification:
    category: str
    priority: Priority
    assignee: Optional[str]


@dataclass(frozen=True)
class SlaPolicy:
    """Priority -> violation threshold. Warning threshold is always 0.8x the violation threshold."""
    thresholds: Mapping[Priority, timedelta] = field(hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "thresholds", MappingProxyType(dict(self.thresholds)))
        for priority, threshold in self.thresholds.items():
            if threshold <= timedelta(0):
                raise ValueError(f"SLA threshold for {priority} must be positive")

    @classmethod
    def from_hours(cls, hours: Mapping[Union[str, Priority], float]) -> SlaPolicy:
        return cls({Priority(p): timedelta(hours=float(h)) for p, h in hours.items()})

    def threshold(self, priority: Union[str, Priority]) -> timedelta:
        """Raises KeyError when the policy has no threshold for this priority."""
        return self.thresholds[Priority(priority)]

    def warning_threshold(self, priority: Union[str, Priority]) -> timedelta:
        return self.threshold(priority) * WARNING_RATIO


@dataclass
class WorkItem:
    """Ticket or access request tracked by the automation sweeps."""
    id: Any
    kind: WorkItemKind = WorkItemKind.TICKET
    title: str = ""
    description: str = ""
    category: str = "general"
    priority: Priority = Priority.MEDIUM
    status: Status = Status.OPEN
    risk: Optional[RiskLevel] = None
    created_at: Optional[datetime] = None
    escalation_level: int = 0
    escalated_at: Optional[datetime] = None
    resource: Optional[str] = None
    justification: Optional[str] = None
    assignee: Optional[str] = None
    decision: Optional[str] = None
    approver: Optional[str] = None

    @property
    def is_escalated(self) -> bool:
        return self.escalation_level > 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkItem:
        """Build a work item from a JSON-like record. Unknown enum values raise ValueError."""
        risk = data.get("risk")
        return cls(
            id=data.get("id"),
            kind=WorkItemKind(data.get("kind", WorkItemKind.TICKET)),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            category=str(data.get("category", "general")),
            priority=Priority(str(data.get("priority", "medium")).lower()),
            status=Status(str(data.get("status", "open")).lower()),
            risk=RiskLevel(risk) if risk else None,
            created_at=parse_timestamp(data.get("created_at")),
            escalation_level=int(data.get("escalation_level") or 0),
            escalated_at=parse_timestamp(data.get("escalated_at")),
            resource=data.get("resource"),
            justification=data.get("justification"),
            assignee=data.get("assignee"),
            decision=data.get("decision"),
            approver=data.get("approver"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority.value,
            "status": self.status.value,
            "risk": self.risk.value if self.risk else None,
            "created_at": self.created_at.isoformat() if isinstance(self.created_at, datetime) else None,
            "escalation_level": self.escalation_level,
            "escalated_at": self.escalated_at.isoformat() if isinstance(self.escalated_at, datetime) else None,
            "resource": self.resource,
            "justification": self.justification,
            "assignee": self.assignee,
            "decision": self.decision,
            "approver": self.approver,
        }


# Handler outcomes, one per handler kind.

@dataclass
class EscalationOutcome:
    analysis: str
    priority_level: str
    urgency_score: int
    escalation_path: List[str]
    notifications_sent: int = 0
    actions: List[str] = field(default_factory=list)
    requires_immediate_action: bool = False
    estimated_resolution: str = "1-2 days"
    kind: HandlerKind = field(default=HandlerKind.ESCALATION, init=False)


@dataclass
class PerformanceOutcome:
    analysis: str
    performance_level: str
    critical_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    ticket_id: Any = None
    kind: HandlerKind = field(default=HandlerKind.PERFORMANCE, init=False)


@dataclass
class KnowledgeOutcome:
    answer: str
    articles: List[str] = field(default_factory=list)
    category: str = "general"
    kind: HandlerKind = field(default=HandlerKind.KNOWLEDGE, init=False)


@dataclass
class SupportOutcome:
    analysis: str
    category: str
    recommended_priority: Priority
    escalated: bool = False
    ticket_id: Any = None
    kind: HandlerKind = field(default=HandlerKind.IT_SUPPORT, init=False)


@dataclass
class AccessOutcome:
    analysis: str
    resource: str
    risk_level: RiskLevel
    access_type: str
    decision: str
    reason: Optional[str] = None
    request_id: Any = None
    auto_approved: bool = False
    kind: HandlerKind = field(default=HandlerKind.ACCESS_MANAGEMENT, init=False)


@dataclass
class OnboardingOutcome:
    plan: str
    checklist: List[str] = field(default_factory=list)
    systems_to_provision: List[str] = field(default_factory=list)
    timeline: List[str] = field(default_factory=list)
    kind: HandlerKind = field(default=HandlerKind.ONBOARDING, init=False)


HandlerOutcome = Union[
    EscalationOutcome,
    PerformanceOutcome,
    KnowledgeOutcome,
    SupportOutcome,
    AccessOutcome,
    OnboardingOutcome,
]


@dataclass(frozen=True)
class HandlerResult:
    """Result of one handler invocation; failures carry an error instead of an outcome."""
    handler: str
    success: bool
    outcome: Optional[HandlerOutcome] = None
    error: Optional[str] = None
    elapsed_ms: int = 0
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        outcome: Optional[Dict[str, Any]] = None
        if self.outcome is not None:
            outcome = {k: (v.value if isinstance(v, Enum) else v) for k, v in vars(self.outcome).items()}
        return {
            "handler": self.handler,
            "success": self.success,
            "outcome": outcome,
            "error": self.error,
            "elapsed_ms": self.elapsed_ms,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RoutingCandidate:
    handler: "Handler"
    confidence: float
    reasoning: str


@dataclass(frozen=True)
class RoutingDecision:
    """Ranked candidates and the non-empty, bounded selection made from them."""
    candidates: Tuple[RoutingCandidate, ...]
    selected: Tuple["Handler", ...]
    confidence: float
    reasoning: str
    used_fallback: bool = False
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not self.selected:
            raise ValueError("RoutingDecision requires at least one selected handler")

    @property
    def selected_names(self) -> List[str]:
        return [handler.name for handler in self.selected]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected": self.selected_names,
            "candidates": [
                {"handler": c.handler.name, "confidence": round(c.confidence, 4), "reasoning": c.reasoning}
                for c in self.candidates
            ],
            "confidence": round(self.confidence, 4),
            "reasoning": self.reasoning,
            "used_fallback": self.used_fallback,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RoutingLogEntry:
    text: str
    decision: RoutingDecision
    results: Tuple[HandlerResult, ...]
    execution_ms: int
    success: bool
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, text: str, decision: RoutingDecision, results: List[HandlerResult], execution_ms: int) -> RoutingLogEntry:
        return cls(
            text=(text or "")[:LOG_TEXT_LIMIT],
            decision=decision,
            results=tuple(results),
            execution_ms=execution_ms,
            success=bool(results) and all(r.success for r in results),
        )


@dataclass(frozen=True)
class TriageOutcome:
    """Combined classify + route + execute result."""
    success: bool
    classification: ClassificationResult
    decision: RoutingDecision
    results: Tuple[HandlerResult, ...]
    execution_ms: int
    correlation_id: str

    @property
    def primary_result(self) -> HandlerResult:
        return self.results[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "correlation_id": self.correlation_id,
            "classification": self.classification.to_dict(),
            "routing": self.decision.to_dict(),
            "results": [r.to_dict() for r in self.results],
            "handlers_used": [r.handler for r in self.results],
            "execution_ms": self.execution_ms,
        }
