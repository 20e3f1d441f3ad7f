"""Tests for rules_engine.py - Ticket classification, access risk and SLA escalation."""
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from config import AutomationConfig
from models import Priority, RiskLevel, SlaPolicy, Status, WorkItem, WorkItemKind
from rules_engine import (
    APPROVED,
    AUTO_APPROVER,
    MANUAL_REVIEW,
    InvalidTransitionError,
    assess_risk,
    classify_ticket,
    evaluate_access_request,
    monitor_sla,
    qualifies_for_auto_approval,
    scan_access_requests,
    sla_report,
    transition_status,
)


@pytest.fixture
def policy():
    return SlaPolicy.from_hours({"urgent": 4, "high": 4, "medium": 24, "low": 48})


@pytest.mark.unit
class TestClassifyTicket:
    def test_hardware_high_priority(self):
        result = classify_ticket("My laptop is broken and urgent")
        assert result.category == "hardware"
        assert result.priority is Priority.HIGH
        assert result.assignee == "helpdesk"

    def test_category_order_hardware_before_network(self):
        assert classify_ticket("laptop cannot join the wifi").category == "hardware"

    def test_network_category(self):
        assert classify_ticket("VPN keeps dropping").category == "network"

    def test_low_priority(self):
        result = classify_ticket("Minor typo in the software error dialog")
        assert result.category == "software"
        assert result.priority is Priority.LOW

    def test_general_and_medium_by_default(self):
        result = classify_ticket("Please order a new chair")
        assert result.category == "general"
        assert result.priority is Priority.MEDIUM
        assert result.assignee is None

    def test_empty_text(self):
        assert classify_ticket(None).category == "general"

    def test_uses_policy_keywords(self, sample_policy):
        config = AutomationConfig.from_policy(sample_policy)
        assert classify_ticket("device fell over", config).category == "general"
        assert classify_ticket("keyboard fell over", config).category == "hardware"


@pytest.mark.unit
class TestAssessRisk:
    def test_aws_is_high_and_figma_is_low(self):
        assert assess_risk("AWS") is RiskLevel.HIGH
        assert assess_risk("Figma") is RiskLevel.LOW

    def test_case_insensitive(self):
        assert assess_risk("SLACK") is RiskLevel.LOW
        assert assess_risk("payroll system") is RiskLevel.HIGH

    def test_unknown_is_medium(self):
        assert assess_risk("Photoshop") is RiskLevel.MEDIUM
        assert assess_risk("") is RiskLevel.MEDIUM
        assert assess_risk(None) is RiskLevel.MEDIUM

    def test_low_risk_list_checked_first(self):
        # Matches "jira" (low) and "admin" (high)
        assert assess_risk("Jira admin") is RiskLevel.LOW


@pytest.mark.unit
class TestAccessApproval:
    def test_low_risk_with_routine_justification_approved(self):
        decision, reason = evaluate_access_request("Figma", "routine design review")
        assert decision == APPROVED
        assert reason

    @pytest.mark.parametrize(
        "justification",
        ["routine", "routine team daily standard collaboration", "", None],
    )
    def test_high_risk_never_auto_approved(self, justification):
        decision, _ = evaluate_access_request("AWS", justification)
        assert decision == MANUAL_REVIEW
        assert not qualifies_for_auto_approval("production database", justification)

    def test_low_risk_without_marker_needs_review(self):
        decision, reason = evaluate_access_request("Slack", "I want it")
        assert decision == MANUAL_REVIEW
        assert "routine" in reason

    def test_medium_risk_needs_review(self):
        assert evaluate_access_request("Photoshop", "routine")[0] == MANUAL_REVIEW

    def test_scan_approves_only_qualifying_pending_requests(self):
        items = [
            WorkItem(id=1, kind=WorkItemKind.ACCESS_REQUEST, resource="Figma", justification="team collaboration"),
            WorkItem(id=2, kind=WorkItemKind.ACCESS_REQUEST, resource="AWS", justification="routine"),
            WorkItem(id=3, kind=WorkItemKind.ACCESS_REQUEST, resource="Slack", justification="daily",
                     decision=APPROVED, status=Status.RESOLVED),
            WorkItem(id=4, kind=WorkItemKind.TICKET, resource="Figma", justification="routine"),
        ]
        scan = scan_access_requests(items)
        assert scan.scanned == 2
        assert [item.id for item in scan.approved] == [1]
        approved = scan.approved[0]
        assert approved.decision == APPROVED
        assert approved.approver == AUTO_APPROVER
        assert approved.risk is RiskLevel.LOW
        assert approved.status is Status.RESOLVED
        # Inputs are not mutated
        assert items[0].decision is None


@pytest.mark.unit
class TestMonitorSla:
    def test_high_priority_violation_escalates(self, now, policy):
        item = WorkItem(id=1, priority=Priority.HIGH, created_at=now - timedelta(hours=5))
        sweep = monitor_sla(now, [item], policy)
        assert len(sweep.escalated) == 1
        escalated = sweep.escalated[0]
        assert escalated.escalation_level == 1
        assert escalated.status is Status.OPEN
        assert escalated.escalated_at == now
        assert escalated.priority is Priority.HIGH

    def test_medium_bumped_to_high(self, now, policy):
        item = WorkItem(id=1, priority=Priority.MEDIUM, created_at=now - timedelta(hours=25))
        assert monitor_sla(now, [item], policy).escalated[0].priority is Priority.HIGH

    def test_urgent_and_low_priority_unchanged(self, now, policy):
        items = [
            WorkItem(id=1, priority=Priority.URGENT, created_at=now - timedelta(hours=5)),
            WorkItem(id=2, priority=Priority.LOW, created_at=now - timedelta(hours=49)),
        ]
        escalated = monitor_sla(now, items, policy).escalated
        assert [i.priority for i in escalated] == [Priority.URGENT, Priority.LOW]

    def test_within_threshold_not_escalated(self, now, policy):
        item = WorkItem(id=1, priority=Priority.HIGH, created_at=now - timedelta(hours=3))
        assert monitor_sla(now, [item], policy).escalated == []

    def test_exactly_at_threshold_not_escalated(self, now, policy):
        item = WorkItem(id=1, priority=Priority.HIGH, created_at=now - timedelta(hours=4))
        assert monitor_sla(now, [item], policy).escalated == []

    def test_sweep_is_idempotent(self, now, policy):
        items = [WorkItem(id=1, priority=Priority.HIGH, created_at=now - timedelta(hours=5))]
        first = monitor_sla(now, items, policy)
        items = first.escalated
        second = monitor_sla(now, items, policy)
        assert second.escalated == []
        assert items[0].escalation_level == 1

    def test_items_not_mutated(self, now, policy):
        item = WorkItem(id=1, priority=Priority.MEDIUM, created_at=now - timedelta(hours=30))
        monitor_sla(now, [item], policy)
        assert item.escalation_level == 0
        assert item.priority is Priority.MEDIUM

    def test_non_open_items_ignored(self, now, policy):
        item = WorkItem(id=1, priority=Priority.HIGH, status=Status.RESOLVED, created_at=now - timedelta(days=3))
        sweep = monitor_sla(now, [item], policy)
        assert sweep.scanned == 0
        assert sweep.escalated == []

    def test_malformed_record_skipped(self, now, policy):
        items = [
            WorkItem(id="bad", priority=Priority.HIGH, created_at=None),
            WorkItem(id="good", priority=Priority.HIGH, created_at=now - timedelta(hours=6)),
        ]
        sweep = monitor_sla(now, items, policy)
        assert sweep.skipped == ["bad"]
        assert [i.id for i in sweep.escalated] == ["good"]

    def test_missing_threshold_skipped(self, now):
        partial = SlaPolicy.from_hours({"high": 4})
        item = WorkItem(id=9, priority=Priority.LOW, created_at=now - timedelta(days=10))
        assert monitor_sla(now, [item], partial).skipped == [9]

    def test_record_without_status_skipped_with_warning(self, now, policy):
        raw = SimpleNamespace(id="raw", priority=Priority.HIGH, created_at=now - timedelta(hours=6))
        with patch("rules_engine.logger") as mock_logger:
            sweep = monitor_sla(now, [raw], policy)
        assert sweep.skipped == ["raw"]
        assert sweep.escalated == []
        mock_logger.warning.assert_called_once()


@pytest.mark.unit
class TestSlaReport:
    def test_buckets(self, now, policy):
        items = [
            WorkItem(id="ok", priority=Priority.MEDIUM, created_at=now - timedelta(hours=1)),
            WorkItem(id="warn", priority=Priority.MEDIUM, created_at=now - timedelta(hours=20)),
            WorkItem(id="late", priority=Priority.HIGH, created_at=now - timedelta(hours=6)),
            WorkItem(id="done", priority=Priority.HIGH, status=Status.CLOSED, created_at=now - timedelta(days=9)),
        ]
        report = sla_report(now, items, policy)
        assert {e.item.id for e in report.compliant} == {"ok", "done"}
        assert [e.item.id for e in report.warning] == ["warn"]
        assert [e.item.id for e in report.violated] == ["late"]
        assert report.violated[0].hours_overdue == pytest.approx(2.0)


@pytest.mark.unit
class TestTransitionStatus:
    def test_allowed_transition(self):
        item = WorkItem(id=1)
        assert transition_status(item, Status.IN_PROGRESS).status is Status.IN_PROGRESS

    def test_closed_is_terminal(self):
        item = WorkItem(id=1, status=Status.CLOSED)
        with pytest.raises(InvalidTransitionError):
            transition_status(item, Status.OPEN)

    def test_same_status_is_noop(self):
        item = WorkItem(id=1, status=Status.ESCALATED)
        assert transition_status(item, "escalated") is item
