"""Periodic SLA sweep and low-risk access auto-approval driven by APScheduler."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from collaborators import Notifier, WorkItemStore, safe_notify
from config import AutomationConfig
from logging_utils import logger
from models import SlaPolicy, Status, WorkItem, WorkItemKind, utcnow
from rules_engine import AccessScan, SlaSweep, monitor_sla, scan_access_requests

SLA_JOB_ID = "sla_sweep"
ACCESS_JOB_ID = "access_scan"


class AutomationJobs:
    """
    Store-backed sweep jobs.

    Each job has a single-active guard: a call made while the same job is
    still running returns None immediately instead of queueing.
    """

    def __init__(
        self,
        store: WorkItemStore,
        config: Optional[AutomationConfig] = None,
        notifier: Optional[Notifier] = None,
    ) -> None:
        self.store = store
        self.config = config or AutomationConfig()
        self.notifier = notifier
        self.policy = SlaPolicy.from_hours(self.config.sla_hours)
        self._sla_guard = threading.Lock()
        self._access_guard = threading.Lock()

    def run_sla_sweep(self, now: Optional[datetime] = None) -> Optional[SlaSweep]:
        if not self._sla_guard.acquire(blocking=False):
            logger.info("SLA sweep already running, skipping")
            return None
        try:
            items = self.store.find({"kind": WorkItemKind.TICKET, "status": Status.OPEN})
            sweep = monitor_sla(now or utcnow(), items, self.policy)
            for item in sweep.escalated:
                changes = {
                    "escalation_level": item.escalation_level,
                    "escalated_at": item.escalated_at,
                    "priority": item.priority,
                }
                if self._persist(item, changes):
                    safe_notify(self.notifier, "ticket_escalated", _notification(item))
            logger.info(
                "SLA sweep completed",
                extra={
                    "extra": {
                        "scanned": sweep.scanned,
                        "escalated": len(sweep.escalated),
                        "skipped": len(sweep.skipped),
                    }
                },
            )
            return sweep
        finally:
            self._sla_guard.release()

    def run_access_scan(self) -> Optional[AccessScan]:
        if not self._access_guard.acquire(blocking=False):
            logger.info("Access scan already running, skipping")
            return None
        try:
            items = self.store.find({"kind": WorkItemKind.ACCESS_REQUEST, "status": Status.OPEN})
            scan = scan_access_requests(items, self.config)
            for item in scan.approved:
                changes = {
                    "decision": item.decision,
                    "approver": item.approver,
                    "risk": item.risk,
                    "status": item.status,
                }
                if self._persist(item, changes):
                    safe_notify(self.notifier, "access_approved", _notification(item))
            logger.info(
                "Access scan completed",
                extra={"extra": {"scanned": scan.scanned, "approved": len(scan.approved)}},
            )
            return scan
        finally:
            self._access_guard.release()

    def _persist(self, item: WorkItem, changes: Dict[str, Any]) -> bool:
        """One partial update per item; store failures are logged and the sweep continues."""
        try:
            changed = self.store.update(item.id, changes)
        except Exception as exc:
            logger.error(
                "Failed to persist work item update",
                extra={"extra": {"item_id": item.id, "error": str(exc)}},
            )
            return False
        if not changed:
            logger.warning("Work item disappeared before update", extra={"extra": {"item_id": item.id}})
            return False
        return True


def _notification(item: WorkItem) -> Dict[str, Any]:
    return {
        "item_id": item.id,
        "title": item.title,
        "priority": item.priority.value,
        "escalation_level": item.escalation_level,
        "status": item.status.value,
        "resource": item.resource,
    }


class AutomationScheduler:
    """Interval trigger for the automation jobs; the jobs themselves stay unit-testable."""

    def __init__(self, jobs: AutomationJobs, scheduler: Optional[BackgroundScheduler] = None) -> None:
        self.jobs = jobs
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def start(self) -> None:
        config = self.jobs.config
        self.scheduler.add_job(
            self._run,
            trigger=IntervalTrigger(minutes=config.sla_sweep_minutes),
            args=[SLA_JOB_ID],
            id=SLA_JOB_ID,
            name="SLA sweep",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.add_job(
            self._run,
            trigger=IntervalTrigger(minutes=config.access_scan_minutes),
            args=[ACCESS_JOB_ID],
            id=ACCESS_JOB_ID,
            name="Low-risk access scan",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
        )
        self.scheduler.start()
        logger.info(
            "Automation scheduler started",
            extra={
                "extra": {
                    "sla_sweep_minutes": config.sla_sweep_minutes,
                    "access_scan_minutes": config.access_scan_minutes,
                }
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Automation scheduler stopped")

    def _run(self, job_id: str) -> None:
        try:
            if job_id == SLA_JOB_ID:
                self.jobs.run_sla_sweep()
            else:
                self.jobs.run_access_scan()
        except Exception as exc:
            logger.error("Scheduled job failed", extra={"extra": {"job": job_id, "error": str(exc)}})
