"""Specialist handlers that act on triaged requests, plus the default registry."""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from collaborators import Notifier, WorkItemStore, safe_notify
from config import AutomationConfig
from logging_utils import logger
from models import (
    AccessOutcome,
    EscalationOutcome,
    HandlerKind,
    HandlerOutcome,
    KnowledgeOutcome,
    OnboardingOutcome,
    PerformanceOutcome,
    Priority,
    Status,
    SupportOutcome,
    WorkItemKind,
    utcnow,
)
from rules_engine import APPROVED, PENDING, assess_risk, classify_ticket, evaluate_access_request
from text_generation import GenerationResult, TextGenerator, generate_or_fallback


class Handler(ABC):
    """Base class for specialist handlers."""

    name: str = "Handler"
    kind: HandlerKind
    description: str = ""
    # Specialization keywords counted by the router's keyword bonus.
    keywords: Tuple[str, ...] = ()
    # Keywords that make the handler capable of taking the request at all.
    trigger_keywords: Tuple[str, ...] = ()
    specialties: FrozenSet[str] = frozenset()

    def __init__(
        self,
        generator: Optional[TextGenerator] = None,
        store: Optional[WorkItemStore] = None,
        notifier: Optional[Notifier] = None,
        automation: Optional[AutomationConfig] = None,
    ) -> None:
        self.generator = generator
        self.store = store
        self.notifier = notifier
        self.automation = automation or AutomationConfig()

    def can_handle(self, text: str, context: Mapping[str, Any]) -> bool:
        """Check if text mentions any of this handler's trigger keywords."""
        lowered = (text or "").lower()
        return any(keyword in lowered for keyword in self.trigger_keywords)

    def keyword_matches(self, text: str) -> int:
        lowered = (text or "").lower()
        return sum(1 for keyword in self.keywords if keyword in lowered)

    def specializes_in(self, specialty: str) -> bool:
        return specialty in self.specialties

    @abstractmethod
    def execute(self, text: str, context: Mapping[str, Any]) -> HandlerOutcome:
        """Process the request. Raising marks this handler's result as failed."""

    def metadata(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "description": self.description,
            "keywords": list(self.keywords),
            "specialties": sorted(self.specialties),
        }

    def _generate(self, prompt: str, fallback: str) -> GenerationResult:
        return generate_or_fallback(self.generator, prompt, fallback, handler=self.name)

    def _can_persist(self, context: Mapping[str, Any]) -> bool:
        return self.store is not None and context.get("user_id") is not None and context.get("auto_create", True) is not False


# ---------------------------------------------------------------------------
# Escalation

ESCALATION_PROMPT = (
    "You are an Escalation Manager handling critical IT issues.\n\n"
    "Issue Details: {issue}\nSeverity: {severity}\nTime Elapsed (minutes): {time_elapsed}\n"
    "Previous Actions: {previous_actions}\nBusiness Impact: {business_impact}\nUser Role: {role}\n\n"
    "Provide an urgency assessment, escalation path, communication plan, resolution strategy, "
    "SLA implications and risk mitigation.\n"
    "Escalation matrix: P0 production down, security breach, data loss; P1 major functionality "
    "impaired; P2 minor issues with workarounds; P3 cosmetic.\n"
    "Start the response with the priority level (P0/P1/P2/P3)."
)

PRIORITY_LEVEL_NAMES = ("critical", "high", "medium", "low")
# Escalation never lowers a stored priority.
PRIORITY_ORDER = (Priority.LOW, Priority.MEDIUM, Priority.HIGH, Priority.URGENT)
RESOLUTION_ESTIMATES = {0: "2-4 hours", 1: "4-8 hours", 2: "1-2 days", 3: "3-5 days"}
CRITICAL_TERMS = ("production down", "outage", "security breach", "data loss", "system failure", "down")
URGENT_TERMS = ("urgent", "critical", "emergency", "high priority", "immediate attention", "production")


def _minutes(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class EscalationHandler(Handler):
    name = "EscalationHandler"
    kind = HandlerKind.ESCALATION
    description = "Escalation management, urgent issues and cross-team coordination"
    keywords = ("urgent", "critical", "emergency", "escalate", "production", "outage")
    trigger_keywords = (
        "urgent", "critical", "emergency", "down", "outage", "escalate",
        "production", "security breach", "data loss", "system failure",
        "major issue", "high priority", "immediate attention",
    )
    specialties = frozenset({"escalation"})

    def can_handle(self, text: str, context: Mapping[str, Any]) -> bool:
        has_severity = context.get("severity") == "high" or context.get("priority") == "high"
        elapsed = _minutes(context.get("time_elapsed"))
        has_time = elapsed is not None and elapsed > 240
        return super().can_handle(text, context) or has_severity or has_time

    def execute(self, text: str, context: Mapping[str, Any]) -> EscalationOutcome:
        prompt = ESCALATION_PROMPT.format(
            issue=text,
            severity=context.get("severity") or context.get("priority") or "unknown",
            time_elapsed=context.get("time_elapsed", "unknown"),
            previous_actions=context.get("previous_actions", "No previous actions recorded"),
            business_impact=context.get("business_impact", "Unknown business impact"),
            role=context.get("role", "employee"),
        )
        fallback_level = self._baseline_level(text, context)
        generated = self._generate(prompt, self._canned_analysis(fallback_level))
        level = fallback_level if generated.fallback_used else extract_priority_level(generated.text)
        analysis = generated.text

        actions: List[str] = []
        ticket_id = context.get("ticket_id")
        if ticket_id is not None and self.store is not None:
            try:
                stored = self.store.find({"id": ticket_id})
                if not stored:
                    actions.append(f"Ticket {ticket_id} not found")
                else:
                    current = stored[0]
                    target = Priority.URGENT if level == 0 else Priority(PRIORITY_LEVEL_NAMES[level])
                    self.store.update(
                        ticket_id,
                        {
                            "priority": max(current.priority, target, key=PRIORITY_ORDER.index),
                            "escalated_at": utcnow(),
                            "escalation_level": current.escalation_level + 1,
                            "status": Status.ESCALATED,
                        },
                    )
                    actions.append(f"Updated ticket {ticket_id} with escalation")
            except Exception as exc:
                logger.warning(
                    "Escalation ticket update failed",
                    extra={"extra": {"correlation_id": context.get("correlation_id"), "ticket_id": ticket_id, "error": str(exc)}},
                )
                actions.append(f"Failed to update ticket: {exc}")

        notifications_sent = 0
        if level <= 1:
            for channel, recipient in escalation_notifications(level):
                delivered = safe_notify(
                    self.notifier,
                    channel,
                    {
                        "recipient": recipient,
                        "subject": f"Escalation Alert: {PRIORITY_LEVEL_NAMES[level].upper()} Priority Issue",
                        "message": f"Issue: {text}\n\nEscalation Analysis:\n{analysis}",
                        "urgency": PRIORITY_LEVEL_NAMES[level],
                    },
                )
                if delivered:
                    notifications_sent += 1
                    actions.append(f"Sent {channel} notification to {recipient}")

        return EscalationOutcome(
            analysis=analysis,
            priority_level=PRIORITY_LEVEL_NAMES[level],
            urgency_score=urgency_score(f"{text}\n{analysis}", context),
            escalation_path=escalation_path(analysis),
            notifications_sent=notifications_sent,
            actions=actions,
            requires_immediate_action=level <= 1,
            estimated_resolution=RESOLUTION_ESTIMATES.get(level, "1-2 days"),
        )

    @staticmethod
    def _baseline_level(text: str, context: Mapping[str, Any]) -> int:
        lowered = (text or "").lower()
        if any(term in lowered for term in CRITICAL_TERMS):
            return 0
        if any(term in lowered for term in URGENT_TERMS) or context.get("priority") == "high" or context.get("severity") == "high":
            return 1
        return 2

    @staticmethod
    def _canned_analysis(level: int) -> str:
        label = PRIORITY_LEVEL_NAMES[level].capitalize()
        return (
            f"P{level}: {label} priority issue. Notify the direct manager and the IT director, "
            f"keep stakeholders updated until resolution. Target resolution: {RESOLUTION_ESTIMATES[level]}."
        )


def extract_priority_level(analysis: str) -> int:
    lowered = analysis.lower()
    if "p0" in lowered or "critical" in lowered:
        return 0
    if "p1" in lowered or "high" in lowered:
        return 1
    if "p2" in lowered or "medium" in lowered:
        return 2
    if "p3" in lowered or "low" in lowered:
        return 3
    return 2


def urgency_score(text: str, context: Mapping[str, Any]) -> int:
    lowered = text.lower()
    score = 5
    if "production" in lowered or "outage" in lowered:
        score += 3
    if "security" in lowered or "breach" in lowered:
        score += 4
    if "data loss" in lowered or "corruption" in lowered:
        score += 4
    if "many users" in lowered or "widespread" in lowered:
        score += 2
    elapsed = _minutes(context.get("time_elapsed"))
    if elapsed is not None:
        hours = elapsed / 60
        if hours > 4:
            score += 2
        if hours > 8:
            score += 3
    return min(score, 10)


def escalation_path(analysis: str) -> List[str]:
    lowered = analysis.lower()
    path: List[str] = []
    if "manager" in lowered or "supervisor" in lowered:
        path.append("Direct Manager")
    if "it director" in lowered or "it manager" in lowered:
        path.append("IT Director")
    if "security" in lowered or "ciso" in lowered:
        path.append("Security Team")
    if "executive" in lowered or "ceo" in lowered or "senior leadership" in lowered:
        path.append("Executive Team")
    return path or ["Direct Manager", "IT Director"]


def escalation_notifications(level: int) -> List[Tuple[str, str]]:
    if level == 0:
        return [("email", "it-director@company.com"), ("webhook", "incident-response-channel")]
    if level == 1:
        return [("email", "it-manager@company.com")]
    return []


# ---------------------------------------------------------------------------
# Performance monitoring

PERFORMANCE_PROMPT = (
    "You are a Performance Monitoring specialist.\n\n"
    "Performance Query: {query}\nSystem Context: {system_context}\nMetrics: {metrics}\n"
    "Alert Level: {alert_level}\n\n"
    "Give a performance assessment, bottlenecks, root cause, optimization recommendations "
    "and monitoring thresholds, prioritized by impact."
)

CRITICAL_THRESHOLDS = {"cpu": 90, "memory": 85, "disk": 90, "response_time_ms": 5000, "error_rate": 5}
WARNING_THRESHOLDS = {"cpu": 70, "memory": 70, "disk": 75}
ALERT_TO_LEVEL = {"critical": "critical", "warning": "degraded", "normal": "normal"}


def _metric(metrics: Mapping[str, Any], key: str) -> float:
    try:
        return float(metrics.get(key, 0) or 0)
    except (TypeError, ValueError):
        return 0.0


def assess_alert_level(metrics: Mapping[str, Any]) -> str:
    if any(_metric(metrics, key) > limit for key, limit in CRITICAL_THRESHOLDS.items()):
        return "critical"
    if any(_metric(metrics, key) > limit for key, limit in WARNING_THRESHOLDS.items()):
        return "warning"
    return "normal"


def identify_critical_issues(metrics: Mapping[str, Any]) -> List[str]:
    issues: List[str] = []
    if _metric(metrics, "cpu") > CRITICAL_THRESHOLDS["cpu"]:
        issues.append(f"CPU usage at {_metric(metrics, 'cpu'):.1f}% - immediate attention required")
    if _metric(metrics, "memory") > CRITICAL_THRESHOLDS["memory"]:
        issues.append(f"Memory usage at {_metric(metrics, 'memory'):.1f}% - risk of system instability")
    if _metric(metrics, "response_time_ms") > CRITICAL_THRESHOLDS["response_time_ms"]:
        issues.append(
            f"Application response time {_metric(metrics, 'response_time_ms'):.0f}ms - user experience severely impacted"
        )
    return issues


def extract_performance_level(analysis: str) -> str:
    lowered = analysis.lower()
    if "critical" in lowered or "severe" in lowered or "urgent" in lowered:
        return "critical"
    if "degraded" in lowered or "warning" in lowered or "attention" in lowered:
        return "degraded"
    if "optimal" in lowered or "good" in lowered or "healthy" in lowered:
        return "optimal"
    return "normal"


def extract_recommendations(analysis: str) -> List[str]:
    lowered = analysis.lower()
    recommendations: List[str] = []
    if "scale" in lowered or "capacity" in lowered:
        recommendations.append("Scale infrastructure resources")
    if "optimize" in lowered or "performance" in lowered:
        recommendations.append("Optimize application performance")
    return recommendations


class PerformanceMonitoringHandler(Handler):
    name = "PerformanceMonitoringHandler"
    kind = HandlerKind.PERFORMANCE
    description = "System performance monitoring, analysis and optimization recommendations"
    keywords = ("performance", "slow", "monitor", "metrics", "cpu", "memory", "optimization")
    trigger_keywords = (
        "performance", "slow", "lag", "bottleneck", "optimization", "monitor",
        "cpu", "memory", "disk", "network", "latency", "throughput",
        "response time", "load time", "server", "infrastructure",
        "scaling", "capacity", "utilization", "metrics", "dashboard",
        "alert", "monitoring", "uptime", "downtime", "availability",
    )

    def execute(self, text: str, context: Mapping[str, Any]) -> PerformanceOutcome:
        metrics = context.get("metrics") or {}
        alert_level = assess_alert_level(metrics)
        critical_issues = identify_critical_issues(metrics)
        prompt = PERFORMANCE_PROMPT.format(
            query=text,
            system_context=context.get("system_context", "General IT infrastructure"),
            metrics=dict(metrics) or "No metrics supplied",
            alert_level=alert_level,
        )
        canned = (
            f"Alert level {alert_level}. Review capacity and optimize the slowest services; "
            "set alerts on CPU, memory, disk and response time."
        )
        generated = self._generate(prompt, canned)
        level = ALERT_TO_LEVEL[alert_level] if generated.fallback_used else extract_performance_level(generated.text)

        ticket_id = None
        if critical_issues and self._can_persist(context):
            ticket_id = self.store.create(
                {
                    "kind": WorkItemKind.TICKET,
                    "title": f"Performance Issue: {critical_issues[0]}"[:120],
                    "description": "\n".join(f"- {issue}" for issue in critical_issues) + f"\n\n{generated.text}",
                    "priority": Priority.URGENT,
                    "category": "performance",
                    "assignee": "infrastructure-team",
                    "status": Status.OPEN,
                }
            )

        return PerformanceOutcome(
            analysis=generated.text,
            performance_level=level,
            critical_issues=critical_issues,
            recommendations=extract_recommendations(generated.text),
            ticket_id=ticket_id,
        )


# ---------------------------------------------------------------------------
# Knowledge base

KNOWLEDGE_PROMPT = (
    "You are an IT Knowledge Base specialist.\n\n"
    "Query: {query}\nRelevant entries: {entries}\nDepartment: {department}\n\n"
    "Give a direct answer, the related procedure steps, common issues and who to contact."
)


@dataclass(frozen=True)
class KnowledgeArticle:
    title: str
    category: str
    body: Tuple[str, ...]
    terms: Tuple[str, ...]


KNOWLEDGE_BASE: Tuple[KnowledgeArticle, ...] = (
    KnowledgeArticle(
        "Password Policy Requirements", "policy",
        ("Passwords must be at least 12 characters with upper, lower, digit and symbol.",
         "Passwords are changed every 90 days."),
        ("password", "policy"),
    ),
    KnowledgeArticle(
        "Remote Access Guidelines", "policy",
        ("VPN is required for all remote connections.", "Multi-factor authentication is mandatory."),
        ("remote", "vpn", "policy"),
    ),
    KnowledgeArticle(
        "VPN Setup Instructions", "procedure",
        ("Download the VPN client from the IT portal.", "Import the configuration file provided by IT.",
         "Test the connection with your credentials."),
        ("vpn", "setup", "remote"),
    ),
    KnowledgeArticle(
        "Password Reset Procedure", "procedure",
        ("Open the password reset portal.", "Complete identity verification.",
         "Create a new password following policy."),
        ("password", "reset", "locked"),
    ),
    KnowledgeArticle(
        "WiFi Connection Issues", "troubleshooting",
        ("Forget and reconnect to the network.", "Update network drivers.", "Contact IT if the issue persists."),
        ("wifi", "internet", "connect"),
    ),
    KnowledgeArticle(
        "Printer Offline Issues", "troubleshooting",
        ("Check printer power and connections.", "Restart the print spooler service.", "Remove and re-add the printer."),
        ("printer", "print"),
    ),
    KnowledgeArticle(
        "IT Helpdesk Contact", "contact",
        ("helpdesk@company.com, +1-555-0123, 8 AM - 6 PM EST, Mon-Fri.",),
        ("contact", "helpdesk", "phone", "support"),
    ),
)


def identify_knowledge_type(text: str) -> str:
    lowered = text.lower()
    if any(term in lowered for term in ("policy", "rule", "requirement")):
        return "policy"
    if any(term in lowered for term in ("how to", "procedure", "step")):
        return "procedure"
    if any(term in lowered for term in ("problem", "issue", "trouble", "not working")):
        return "troubleshooting"
    if any(term in lowered for term in ("contact", "phone", "email", "call")):
        return "contact"
    if any(term in lowered for term in ("best practice", "standard", "guideline")):
        return "best_practice"
    return "general"


def search_knowledge_base(text: str) -> List[KnowledgeArticle]:
    words = set(re.findall(r"[a-z0-9]+", text.lower()))
    return [article for article in KNOWLEDGE_BASE if words.intersection(article.terms)]


class KnowledgeBaseHandler(Handler):
    name = "KnowledgeBaseHandler"
    kind = HandlerKind.KNOWLEDGE
    description = "Knowledge base queries, documentation and IT best-practice guidance"
    keywords = ("how to", "procedure", "policy", "documentation", "guide", "help", "information")
    trigger_keywords = (
        "how to", "procedure", "policy", "documentation", "guide", "manual",
        "instructions", "setup", "configure", "install", "troubleshoot",
        "best practice", "standard", "protocol", "process", "workflow",
        "contact", "phone number", "email", "help", "support", "knowledge",
        "information", "wiki", "faq", "tutorial",
    )

    def can_handle(self, text: str, context: Mapping[str, Any]) -> bool:
        lowered = (text or "").lower().strip()
        return (
            super().can_handle(text, context)
            or "?" in lowered
            or lowered.startswith(("what", "how", "where"))
        )

    def execute(self, text: str, context: Mapping[str, Any]) -> KnowledgeOutcome:
        articles = search_knowledge_base(text)
        prompt = KNOWLEDGE_PROMPT.format(
            query=text,
            entries="; ".join(article.title for article in articles) or "none",
            department=context.get("department", "General IT"),
        )
        if articles:
            canned = "\n".join(f"{article.title}: " + " ".join(article.body) for article in articles)
        else:
            canned = "No matching article found. Please contact the IT helpdesk at helpdesk@company.com."
        generated = self._generate(prompt, canned)
        return KnowledgeOutcome(
            answer=generated.text,
            articles=[article.title for article in articles],
            category=identify_knowledge_type(text),
        )


# ---------------------------------------------------------------------------
# IT support

SUPPORT_PROMPT = (
    "You are an expert IT Support specialist.\n\n"
    "Issue Description: {issue}\nUser Role: {role}\nPriority Level: {priority}\n"
    "Previous Context: {history}\n\n"
    "Give an immediate diagnosis, a priority assessment, step-by-step resolution, escalation "
    'criteria and prevention. If this needs immediate escalation, start with "ESCALATE:".'
)


def extract_support_priority(analysis: str) -> Priority:
    lowered = analysis.lower()
    if "urgent" in lowered or "critical" in lowered or "high priority" in lowered:
        return Priority.HIGH
    if "low priority" in lowered or "minor" in lowered:
        return Priority.LOW
    return Priority.MEDIUM


class ITSupportHandler(Handler):
    name = "ITSupportHandler"
    kind = HandlerKind.IT_SUPPORT
    description = "IT support, troubleshooting and technical issue resolution"
    keywords = ("error", "bug", "not working", "computer", "software", "hardware", "technical")
    trigger_keywords = (
        "error", "bug", "crash", "not working", "broken", "failed", "issue",
        "computer", "laptop", "software", "hardware", "network", "wifi",
        "login", "password", "access", "printer", "email", "vpn",
    )

    def execute(self, text: str, context: Mapping[str, Any]) -> SupportOutcome:
        ticket = classify_ticket(text, self.automation)
        prompt = SUPPORT_PROMPT.format(
            issue=text,
            role=context.get("role", "employee"),
            priority=context.get("priority", "medium"),
            history=context.get("previous_messages", "No previous context"),
        )
        canned = (
            f"{ticket.category.capitalize()} issue logged with {ticket.priority.value} priority. "
            "Restart the affected device or application and note any error message; "
            "the support team will follow up."
        )
        generated = self._generate(prompt, canned)
        escalated = generated.text.lower().startswith("escalate:")
        priority = ticket.priority if generated.fallback_used else extract_support_priority(generated.text)

        ticket_id = None
        if self._can_persist(context):
            ticket_id = self.store.create(
                {
                    "kind": WorkItemKind.TICKET,
                    "title": text if len(text) <= 50 else text[:50] + "...",
                    "description": f"{text}\n\n--- IT Support Analysis ---\n{generated.text}",
                    "priority": priority,
                    "category": ticket.category,
                    "assignee": ticket.assignee,
                    "status": Status.ESCALATED if escalated else Status.OPEN,
                }
            )
            logger.info(
                "Support ticket created",
                extra={"extra": {"ticket_id": ticket_id, "category": ticket.category, "priority": priority.value}},
            )

        return SupportOutcome(
            analysis=generated.text,
            category=ticket.category,
            recommended_priority=priority,
            escalated=escalated,
            ticket_id=ticket_id,
        )


# ---------------------------------------------------------------------------
# Access management

ACCESS_PROMPT = (
    "You are a Security and Access Management specialist.\n\n"
    "Access Request: {request}\nUser Role: {role}\nResource: {resource}\nJustification: {justification}\n"
    "Assessed Risk: {risk}\nPolicy Decision: {decision}\n\n"
    "Explain the risk, the appropriate access type (read/write/admin), security conditions and "
    "monitoring requirements. Do not change the policy decision."
)

UNKNOWN_RESOURCE = "Unknown Resource"

# First word after "access to" plus any capitalized words that follow it.
RESOURCE_PATTERNS = (
    re.compile(r"\b[Aa]ccess to\s+(?:the\s+)?([A-Za-z0-9][\w.-]*(?:\s+[A-Z][\w.-]*)*)"),
    re.compile(r"\b(GitHub|Slack|Figma|Jira|AWS|Azure|Office|Confluence|Notion|Salesforce)\b", re.IGNORECASE),
    re.compile(r"\b(?:need|want|get)\s+(?:the\s+)?([A-Z][\w.-]*(?:\s+[A-Z][\w.-]*)*)"),
)


def extract_resource(text: str) -> str:
    for pattern in RESOURCE_PATTERNS:
        match = pattern.search(text or "")
        if match and match.group(1).strip():
            return match.group(1).strip()
    return UNKNOWN_RESOURCE


def extract_access_type(text: str) -> str:
    lowered = text.lower()
    if "admin" in lowered or "administrator" in lowered:
        return "admin"
    if "write" in lowered or "edit" in lowered or "modify" in lowered:
        return "write"
    return "read"


class AccessManagementHandler(Handler):
    name = "AccessManagementHandler"
    kind = HandlerKind.ACCESS_MANAGEMENT
    description = "Access management, permissions and security compliance"
    keywords = ("access", "permission", "login", "account", "authorize", "security")
    trigger_keywords = (
        "access", "permission", "need access to", "can i get", "authorize",
        "login", "account", "credentials", "system access", "resource",
    )

    def execute(self, text: str, context: Mapping[str, Any]) -> AccessOutcome:
        resource = extract_resource(text)
        if resource == UNKNOWN_RESOURCE and context.get("entity"):
            resource = context["entity"]
        justification = context.get("justification") or text
        risk = assess_risk(resource, self.automation)
        decision, reason = evaluate_access_request(resource, justification, self.automation)
        auto_approved = decision == APPROVED

        prompt = ACCESS_PROMPT.format(
            request=text,
            role=context.get("role", "employee"),
            resource=resource,
            justification=justification,
            risk=risk.value,
            decision=decision,
        )
        canned = f"{risk.value.capitalize()} risk request for {resource}: {reason}."
        generated = self._generate(prompt, canned)

        request_id = None
        if self._can_persist(context):
            request_id = self.store.create(
                {
                    "kind": WorkItemKind.ACCESS_REQUEST,
                    "title": f"Access request: {resource}",
                    "description": f"{text}\n\n--- Access Analysis ---\n{generated.text}",
                    "category": "access",
                    "resource": resource,
                    "justification": justification,
                    "risk": risk,
                    "decision": APPROVED if auto_approved else PENDING,
                    "approver": "access-handler-auto" if auto_approved else None,
                    "status": Status.RESOLVED if auto_approved else Status.OPEN,
                }
            )

        return AccessOutcome(
            analysis=generated.text,
            resource=resource,
            risk_level=risk,
            access_type=extract_access_type(text),
            decision=decision,
            reason=reason,
            request_id=request_id,
            auto_approved=auto_approved,
        )


# ---------------------------------------------------------------------------
# Onboarding

ONBOARDING_PROMPT = (
    "You are an HR and Onboarding specialist.\n\n"
    "Request: {request}\nEmployee Name: {name}\nRole: {role}\nDepartment: {department}\n\n"
    "Give a step-by-step onboarding checklist with a Day 1 / Week 1 timeline, the systems to "
    "provision, key contacts and required training."
)

ROLE_TEMPLATES: Dict[str, List[str]] = {
    "developer": [
        "Setup development environment",
        "GitHub account and repository access",
        "Code review process training",
        "Development tools installation",
        "Team coding standards review",
    ],
    "designer": [
        "Design tool access (Figma, Adobe)",
        "Design system familiarization",
        "Brand guidelines review",
        "Creative team introductions",
    ],
    "marketing": [
        "CRM system training",
        "Social media account access",
        "Brand guidelines and assets",
        "Campaign management training",
    ],
    "sales": [
        "CRM system setup",
        "Sales process training",
        "Customer database access",
        "Territory assignment",
    ],
}
DEFAULT_CHECKLIST = [
    "Complete employee information form",
    "Setup workspace and equipment",
    "IT system access setup",
    "Meet with direct manager",
    "Complete mandatory training",
]
KNOWN_SYSTEMS = re.compile(r"\b(GitHub|Slack|Figma|Jira|AWS|Office|Confluence|Salesforce|Adobe|CRM)\b", re.IGNORECASE)
CHECKLIST_LINE = re.compile(r"^\s*(?:\d+[.)]|[-*•])\s*(.+)$")
TIMELINE_LINE = re.compile(r"day\s+\d+|week\s+\d+|first\s+day|first\s+week", re.IGNORECASE)


def role_template(role: Optional[str]) -> List[str]:
    return list(ROLE_TEMPLATES.get((role or "").lower(), DEFAULT_CHECKLIST))


def parse_checklist(plan: str) -> List[str]:
    items: List[str] = []
    for line in plan.splitlines():
        match = CHECKLIST_LINE.match(line)
        if match:
            task = match.group(1).strip()
            if 3 < len(task) < 100:
                items.append(task)
    return items


def extract_systems(plan: str) -> List[str]:
    seen: Dict[str, None] = {}
    for match in KNOWN_SYSTEMS.finditer(plan):
        seen.setdefault(match.group(1), None)
    return list(seen)[:10]


class OnboardingHandler(Handler):
    name = "OnboardingHandler"
    kind = HandlerKind.ONBOARDING
    description = "Employee onboarding, task management and process guidance"
    keywords = ("onboarding", "new employee", "setup", "welcome", "checklist", "hire")
    trigger_keywords = (
        "onboarding", "new employee", "new hire", "starting", "first day",
        "checklist", "orientation", "setup", "welcome", "join the team",
        "employee setup", "workspace setup",
    )
    specialties = frozenset({"onboarding"})

    def execute(self, text: str, context: Mapping[str, Any]) -> OnboardingOutcome:
        role = context.get("employee_role") or context.get("role")
        template = role_template(role)
        prompt = ONBOARDING_PROMPT.format(
            request=text,
            name=context.get("employee_name", "New Employee"),
            role=role or "Employee",
            department=context.get("department", "General"),
        )
        canned = "Day 1 / Week 1 onboarding plan:\n" + "\n".join(f"- {task}" for task in template)
        generated = self._generate(prompt, canned)
        checklist = parse_checklist(generated.text) or template
        return OnboardingOutcome(
            plan=generated.text,
            checklist=checklist,
            systems_to_provision=extract_systems(generated.text + "\n" + "\n".join(checklist)),
            timeline=[line.strip() for line in generated.text.splitlines() if TIMELINE_LINE.search(line)],
        )


# ---------------------------------------------------------------------------
# Registry

@dataclass(frozen=True)
class HandlerRegistry:
    """Ordered handlers plus the fallback that guarantees a non-empty selection."""

    handlers: Tuple[Handler, ...]
    fallback: Handler

    def get(self, name: str) -> Optional[Handler]:
        for handler in self.handlers:
            if handler.name == name:
                return handler
        return None

    def metadata(self) -> List[Dict[str, Any]]:
        return [handler.metadata() for handler in self.handlers]


def build_registry(
    generator: Optional[TextGenerator] = None,
    store: Optional[WorkItemStore] = None,
    notifier: Optional[Notifier] = None,
    automation: Optional[AutomationConfig] = None,
) -> HandlerRegistry:
    """Register the specialist handlers in routing order with an IT support fallback."""
    deps = {"generator": generator, "store": store, "notifier": notifier, "automation": automation}
    handlers = (
        EscalationHandler(**deps),
        PerformanceMonitoringHandler(**deps),
        KnowledgeBaseHandler(**deps),
        ITSupportHandler(**deps),
        AccessManagementHandler(**deps),
        OnboardingHandler(**deps),
    )
    return HandlerRegistry(handlers=handlers, fallback=ITSupportHandler(**deps))
