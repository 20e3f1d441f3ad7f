"""Centralized automation policy loading for the triage engine."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

# Policy file path
POLICY_PATH = Path(__file__).resolve().parent.parent / "policy.json"

REQUIRED_SECTIONS = ("risk", "sla_hours", "ticket_categories", "ticket_priority")


def load_policy(path: Path = POLICY_PATH) -> Dict[str, Any]:
    """
    Load automation policy (risk lists, SLA hours, ticket keywords) from JSON.

    Args:
        path: Path to policy.json file (default: POLICY_PATH)

    Returns:
        Dictionary containing policy configuration

    Raises:
        FileNotFoundError: If policy file doesn't exist
        json.JSONDecodeError: If policy file is malformed
    """
    with Path(path).open("r", encoding="utf-8") as policy_file:
        return json.load(policy_file)


def missing_sections(raw_policy: Dict[str, Any]) -> list[str]:
    """Return the required top-level sections absent from a loaded policy."""
    return [section for section in REQUIRED_SECTIONS if section not in raw_policy]
