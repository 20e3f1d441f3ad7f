"""Deterministic automation rules: ticket categorization, access risk and SLA escalation."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from config import AutomationConfig
from logging_utils import logger
from models import (
    Decision,
    Priority,
    RiskLevel,
    SlaPolicy,
    Status,
    TicketClassification,
    WorkItem,
    WorkItemKind,
    ensure_utc,
    parse_timestamp,
)

APPROVED = "APPROVED"
MANUAL_REVIEW = "MANUAL_REVIEW"
PENDING = "PENDING"
AUTO_APPROVER = "auto-agent"

CATEGORY_ORDER = ("hardware", "network", "access", "software")
GENERAL_CATEGORY = "general"

ALLOWED_TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    Status.OPEN: frozenset({Status.IN_PROGRESS, Status.ESCALATED, Status.RESOLVED, Status.CLOSED}),
    Status.IN_PROGRESS: frozenset({Status.OPEN, Status.ESCALATED, Status.RESOLVED}),
    Status.ESCALATED: frozenset({Status.IN_PROGRESS, Status.RESOLVED}),
    Status.RESOLVED: frozenset({Status.OPEN, Status.CLOSED}),
    Status.CLOSED: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a work item status change is not in the transition table."""


@dataclass
class AccessScan:
    scanned: int
    approved: List[WorkItem] = field(default_factory=list)


@dataclass
class SlaSweep:
    scanned: int
    escalated: List[WorkItem] = field(default_factory=list)
    skipped: List[object] = field(default_factory=list)


@dataclass
class SlaStatusEntry:
    item: WorkItem
    hours_elapsed: float
    hours_overdue: float = 0.0
    hours_remaining: float = 0.0


@dataclass
class SlaReport:
    compliant: List[SlaStatusEntry] = field(default_factory=list)
    warning: List[SlaStatusEntry] = field(default_factory=list)
    violated: List[SlaStatusEntry] = field(default_factory=list)


def _contains_any(text: str, terms: Iterable[str]) -> bool:
    return any(term.lower() in text for term in terms)


def classify_ticket(text: Optional[str], config: Optional[AutomationConfig] = None) -> TicketClassification:
    """Category by first matching keyword set (hardware, network, access, software), priority by urgency words."""
    config = config or AutomationConfig()
    lowered = (text or "").lower()

    category = GENERAL_CATEGORY
    for candidate in CATEGORY_ORDER:
        if _contains_any(lowered, config.ticket_categories.get(candidate, [])):
            category = candidate
            break

    priority = Priority.MEDIUM
    if _contains_any(lowered, config.ticket_priority.get("high", [])):
        priority = Priority.HIGH
    elif _contains_any(lowered, config.ticket_priority.get("low", [])):
        priority = Priority.LOW

    return TicketClassification(category=category, priority=priority, assignee=config.assignees.get(category))


def assess_risk(resource: Optional[str], config: Optional[AutomationConfig] = None) -> RiskLevel:
    """Low-risk list is checked first, then high-risk; anything else is medium."""
    config = config or AutomationConfig()
    lowered = (resource or "").strip().lower()
    if not lowered:
        return RiskLevel.MEDIUM
    if _contains_any(lowered, config.low_risk_resources):
        return RiskLevel.LOW
    if _contains_any(lowered, config.high_risk_resources):
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def has_routine_justification(justification: Optional[str], config: Optional[AutomationConfig] = None) -> bool:
    config = config or AutomationConfig()
    return _contains_any((justification or "").lower(), config.routine_markers)


def evaluate_access_request(
    resource: Optional[str],
    justification: Optional[str],
    config: Optional[AutomationConfig] = None,
) -> Decision:
    """
    Decide whether an access request can be auto-approved.

    Returns: (APPROVED | MANUAL_REVIEW, reason)
    """
    config = config or AutomationConfig()
    risk = assess_risk(resource, config)

    if risk is RiskLevel.HIGH:
        decision, reason = MANUAL_REVIEW, f"High-risk resource '{resource}' requires approval"
    elif risk is RiskLevel.MEDIUM:
        decision, reason = MANUAL_REVIEW, f"Resource '{resource}' is not on the low-risk list"
    elif not has_routine_justification(justification, config):
        decision, reason = MANUAL_REVIEW, "Justification lacks a routine-use marker"
    else:
        decision, reason = APPROVED, "Low-risk resource with routine-use justification"

    logger.info(
        "Access request evaluated",
        extra={"extra": {"resource": resource, "risk": risk.value, "decision": decision, "reason": reason}},
    )
    return decision, reason


def qualifies_for_auto_approval(
    resource: Optional[str],
    justification: Optional[str],
    config: Optional[AutomationConfig] = None,
) -> bool:
    return evaluate_access_request(resource, justification, config)[0] == APPROVED


def _is_pending_access(item: WorkItem) -> bool:
    return (
        item.kind == WorkItemKind.ACCESS_REQUEST
        and item.status == Status.OPEN
        and (item.decision is None or item.decision == PENDING)
    )


def scan_access_requests(items: Iterable[WorkItem], config: Optional[AutomationConfig] = None) -> AccessScan:
    """Return approved copies of every pending access request that qualifies for auto-approval."""
    config = config or AutomationConfig()
    scan = AccessScan(scanned=0)
    for item in items:
        if not _is_pending_access(item):
            continue
        scan.scanned += 1
        if qualifies_for_auto_approval(item.resource, item.justification, config):
            scan.approved.append(
                dataclasses.replace(
                    item,
                    decision=APPROVED,
                    approver=AUTO_APPROVER,
                    risk=RiskLevel.LOW,
                    status=Status.RESOLVED,
                )
            )
    return scan


def _item_age(now: datetime, item: WorkItem) -> Tuple[Optional[timedelta], Optional[str]]:
    created_at = parse_timestamp(item.created_at)
    if created_at is None:
        return None, "missing or malformed created_at"
    return now - created_at, None


def _threshold(policy: SlaPolicy, item: WorkItem) -> Tuple[Optional[timedelta], Optional[str]]:
    try:
        return policy.threshold(item.priority), None
    except (KeyError, ValueError):
        return None, f"no SLA threshold for priority {item.priority!r}"


def monitor_sla(now: datetime, items: Iterable[WorkItem], policy: SlaPolicy) -> SlaSweep:
    """
    Escalate open work items that have outlived their SLA threshold.

    An item escalates only while escalation_level == 0: the level rises by
    exactly one, escalated_at becomes now, and priority is bumped only from
    medium to high. Status stays open. Items are not mutated; the returned
    sweep holds updated copies. Malformed records are logged and skipped.
    """
    now = ensure_utc(now)
    sweep = SlaSweep(scanned=0)

    for item in items:
        has_status = hasattr(item, "status")
        if has_status and item.status != Status.OPEN:
            continue
        sweep.scanned += 1

        age, threshold = None, None
        if not has_status:
            problem = "missing status"
        else:
            age, problem = _item_age(now, item)
        if problem is None:
            threshold, problem = _threshold(policy, item)
        if problem is None and (not isinstance(item.escalation_level, int) or item.escalation_level < 0):
            problem = f"invalid escalation_level {item.escalation_level!r}"
        if problem is not None:
            logger.warning(
                "Skipping malformed work item during SLA sweep",
                extra={"extra": {"item_id": getattr(item, "id", None), "problem": problem}},
            )
            sweep.skipped.append(getattr(item, "id", None))
            continue

        if age > threshold and item.escalation_level == 0:
            escalated = dataclasses.replace(
                item,
                escalation_level=item.escalation_level + 1,
                escalated_at=now,
                priority=Priority.HIGH if item.priority == Priority.MEDIUM else item.priority,
                status=Status.OPEN,
            )
            sweep.escalated.append(escalated)
            logger.info(
                "SLA violation escalated",
                extra={
                    "extra": {
                        "item_id": item.id,
                        "age_hours": round(age.total_seconds() / 3600, 2),
                        "threshold_hours": round(threshold.total_seconds() / 3600, 2),
                        "priority": escalated.priority.value,
                        "escalation_level": escalated.escalation_level,
                    }
                },
            )

    return sweep


def sla_report(now: datetime, items: Iterable[WorkItem], policy: SlaPolicy) -> SlaReport:
    """Bucket items into compliant / warning (past 0.8x threshold) / violated."""
    now = ensure_utc(now)
    report = SlaReport()

    for item in items:
        if item.status in (Status.RESOLVED, Status.CLOSED):
            report.compliant.append(SlaStatusEntry(item=item, hours_elapsed=0.0))
            continue

        age, problem = _item_age(now, item)
        threshold = None
        if problem is None:
            threshold, problem = _threshold(policy, item)
        if problem is not None:
            logger.warning(
                "Skipping malformed work item in SLA report",
                extra={"extra": {"item_id": item.id, "problem": problem}},
            )
            continue

        hours = age.total_seconds() / 3600
        threshold_hours = threshold.total_seconds() / 3600
        warning_hours = policy.warning_threshold(item.priority).total_seconds() / 3600

        if hours > threshold_hours:
            report.violated.append(
                SlaStatusEntry(item=item, hours_elapsed=hours, hours_overdue=round(hours - threshold_hours, 2))
            )
        elif hours > warning_hours:
            report.warning.append(
                SlaStatusEntry(item=item, hours_elapsed=hours, hours_remaining=round(threshold_hours - hours, 2))
            )
        else:
            report.compliant.append(
                SlaStatusEntry(item=item, hours_elapsed=hours, hours_remaining=round(threshold_hours - hours, 2))
            )

    return report


def transition_status(item: WorkItem, new_status: Status) -> WorkItem:
    """Return a copy of item in new_status, or raise InvalidTransitionError."""
    new_status = Status(new_status)
    if new_status == item.status:
        return item
    if new_status not in ALLOWED_TRANSITIONS[item.status]:
        raise InvalidTransitionError(f"Cannot move work item {item.id} from {item.status.value} to {new_status.value}")
    return dataclasses.replace(item, status=new_status)
