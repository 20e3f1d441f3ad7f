"""Batch CLI for the triage engine: triage requests or run one SLA sweep."""
from __future__ import annotations

import argparse
import json
import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from collaborators import InMemoryWorkItemStore, LogNotifier
from config import AppConfig
from logging_utils import logger
from models import WorkItem, utcnow
from sla_scheduler import AutomationJobs
from text_generation import TextGenerator
from triage import TriageEngine


def load_json_list(path: Path) -> List[Dict[str, Any]]:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")
    return data


def process_requests(engine: TriageEngine, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Triage every {id, user_id, text, context} record."""
    results = []
    for record in records:
        context = dict(record.get("context") or {})
        if record.get("user_id") is not None:
            context.setdefault("user_id", record["user_id"])
        outcome = engine.handle(str(record.get("text", "")), context)
        results.append({"request_id": record.get("id"), **outcome.to_dict()})
    return results


def run_sweep(config: AppConfig, records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Load work items into an in-memory store and run one SLA sweep over them."""
    store = InMemoryWorkItemStore()
    invalid = []
    for record in records:
        try:
            item = WorkItem.from_dict(record)
        except (TypeError, ValueError) as exc:
            logger.warning("Skipping invalid work item", extra={"extra": {"item_id": record.get("id"), "error": str(exc)}})
            invalid.append(record.get("id"))
            continue
        store.create(vars(item))

    jobs = AutomationJobs(store, config.automation, LogNotifier())
    sweep = jobs.run_sla_sweep(utcnow())
    return {
        "scanned": sweep.scanned if sweep else 0,
        "escalated": [item.to_dict() for item in sweep.escalated] if sweep else [],
        "skipped": (sweep.skipped if sweep else []) + invalid,
    }


def build_engine(config: AppConfig) -> TriageEngine:
    generator: Optional[TextGenerator] = TextGenerator(config.llm) if os.getenv("OPENAI_API_KEY") else None
    return TriageEngine.create(config, store=InMemoryWorkItemStore(), notifier=LogNotifier(), generator=generator)


def main() -> None:
    parser = argparse.ArgumentParser(description="helpdesk triage engine CLI")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--input", help="Path to a JSON array of requests to triage")
    group.add_argument("--sweep", help="Path to a JSON array of work items for one SLA sweep")
    args = parser.parse_args()

    config = AppConfig.from_env()
    config.validate()

    start = time.time()
    if args.input:
        records = load_json_list(Path(args.input).resolve())
        output: Any = process_requests(build_engine(config), records)
        count = len(output)
    else:
        records = load_json_list(Path(args.sweep).resolve())
        output = run_sweep(config, records)
        count = len(records)

    total_latency_ms = int((time.time() - start) * 1000)
    logger.info("Completed batch", extra={"extra": {"total_latency_ms": total_latency_ms, "count": count}})
    print(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    main()
