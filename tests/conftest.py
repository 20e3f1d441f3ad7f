"""Pytest configuration and shared fixtures."""
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict
from unittest.mock import MagicMock

import pytest

# Add src directory to Python path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def sample_policy() -> Dict[str, Any]:
    """Sample policy.json contents for testing."""
    return {
        "risk": {
            "low_risk_resources": ["figma", "slack", "jira"],
            "high_risk_resources": ["aws", "production", "payroll"],
            "routine_markers": ["routine", "team"],
        },
        "sla_hours": {"urgent": 2, "high": 4, "medium": 24, "low": 48},
        "ticket_categories": {
            "hardware": ["laptop", "keyboard"],
            "network": ["vpn", "wifi"],
            "access": ["login", "permission"],
            "software": ["error", "crash"],
        },
        "ticket_priority": {"high": ["urgent", "outage"], "low": ["minor"]},
        "assignees": {"hardware": "helpdesk"},
        "schedule": {"sla_sweep_minutes": 15, "access_scan_minutes": 3},
    }


@pytest.fixture
def automation_config():
    from config import AutomationConfig
    return AutomationConfig()


@pytest.fixture
def store():
    from collaborators import InMemoryWorkItemStore
    return InMemoryWorkItemStore()


@pytest.fixture
def notifier():
    """Notifier double recording every notify() call."""
    from collaborators import Notifier
    return MagicMock(spec=Notifier)


def make_llm_response(content: str, prompt_tokens: int = 100, completion_tokens: int = 50) -> MagicMock:
    """Build a MagicMock shaped like an OpenAI chat completion."""
    mock_response = MagicMock()
    mock_choice = MagicMock()
    mock_message = MagicMock()
    mock_message.content = content
    mock_choice.message = mock_message
    mock_response.choices = [mock_choice]

    mock_usage = MagicMock()
    mock_usage.prompt_tokens = prompt_tokens
    mock_usage.completion_tokens = completion_tokens
    mock_response.usage = mock_usage
    return mock_response


@pytest.fixture
def mock_llm_response():
    """Mock OpenAI response for an escalation analysis."""
    return make_llm_response("P0: Critical production outage. Notify the IT director and security team.")


@pytest.fixture
def mock_openai_client(mock_llm_response):
    client = MagicMock()
    client.chat.completions.create.return_value = mock_llm_response
    return client


@pytest.fixture
def failing_openai_client():
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("insufficient_quota")
    return client


@pytest.fixture
def registry(store, notifier, automation_config):
    """Handler registry with no text generator, so handlers use canned text."""
    from handlers import build_registry
    return build_registry(store=store, notifier=notifier, automation=automation_config)


@pytest.fixture
def mock_metrics():
    from metrics import TriageMetrics
    return TriageMetrics()
