"""Centralized configuration management for the triage engine."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from policy import POLICY_PATH, load_policy


class ConfigError(ValueError):
    """Raised when configuration values are out of range."""


DEFAULT_LOW_RISK_RESOURCES: List[str] = [
    "figma", "canva", "notion", "slack", "zoom", "teams",
    "office365", "google workspace", "confluence", "jira",
    "trello", "asana", "monday.com",
]
DEFAULT_HIGH_RISK_RESOURCES: List[str] = [
    "aws", "azure", "gcp", "production", "database",
    "admin", "root", "billing", "payroll", "financial",
]
DEFAULT_ROUTINE_MARKERS: List[str] = ["routine", "standard", "daily", "team", "collaboration"]
DEFAULT_SLA_HOURS: Dict[str, float] = {"urgent": 4, "high": 4, "medium": 24, "low": 48}
DEFAULT_TICKET_CATEGORIES: Dict[str, List[str]] = {
    "hardware": ["laptop", "hardware", "device", "keyboard", "mouse"],
    "network": ["vpn", "network", "wifi", "lan"],
    "access": ["login", "access", "permission", "authorize"],
    "software": ["error", "bug", "issue", "crash", "exception"],
}
DEFAULT_TICKET_PRIORITY: Dict[str, List[str]] = {
    "high": ["outage", "down", "cannot access", "urgent", "production"],
    "low": ["slow", "minor", "typo"],
}
DEFAULT_ASSIGNEES: Dict[str, str] = {
    "hardware": "helpdesk",
    "network": "network-team",
    "access": "iam-team",
    "software": "app-support",
}


@dataclass
class LLMConfig:
    """Configuration for the text-generation provider used by handlers."""

    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    max_tokens: int = 1000
    timeout: int = 30

    @classmethod
    def from_env(cls) -> LLMConfig:
        """Load LLM configuration from environment variables."""
        return cls(
            model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1000")),
            timeout=int(os.getenv("LLM_TIMEOUT", "30")),
        )


@dataclass
class RoutingConfig:
    """Configuration for handler selection and execution."""

    confidence_threshold: float = 0.7
    max_handlers: int = 2
    enable_multi_handler: bool = True
    handler_timeout_s: float = 30.0
    max_workers: int = 4
    analytics_capacity: int = 100
    historical_prior: float = 0.8

    @classmethod
    def from_env(cls) -> RoutingConfig:
        """Load routing configuration from environment variables."""
        return cls(
            confidence_threshold=float(os.getenv("ROUTING_CONFIDENCE_THRESHOLD", "0.7")),
            max_handlers=int(os.getenv("ROUTING_MAX_HANDLERS", "2")),
            enable_multi_handler=os.getenv("ROUTING_MULTI_HANDLER", "true").lower() == "true",
            handler_timeout_s=float(os.getenv("HANDLER_TIMEOUT", "30")),
            max_workers=int(os.getenv("HANDLER_MAX_WORKERS", "4")),
            analytics_capacity=int(os.getenv("ANALYTICS_CAPACITY", "100")),
        )


@dataclass
class AutomationConfig:
    """Risk lists, SLA thresholds and ticket keyword sets for the rules engine."""

    low_risk_resources: List[str] = field(default_factory=lambda: list(DEFAULT_LOW_RISK_RESOURCES))
    high_risk_resources: List[str] = field(default_factory=lambda: list(DEFAULT_HIGH_RISK_RESOURCES))
    routine_markers: List[str] = field(default_factory=lambda: list(DEFAULT_ROUTINE_MARKERS))
    sla_hours: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SLA_HOURS))
    ticket_categories: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_TICKET_CATEGORIES))
    ticket_priority: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_TICKET_PRIORITY))
    assignees: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_ASSIGNEES))
    sla_sweep_minutes: int = 10
    access_scan_minutes: int = 5

    @classmethod
    def from_policy(cls, raw_policy: Dict[str, Any]) -> AutomationConfig:
        """Build automation config from a loaded policy.json, keeping defaults for absent keys."""
        defaults = cls()
        risk = raw_policy.get("risk", {})
        schedule = raw_policy.get("schedule", {})
        return cls(
            low_risk_resources=list(risk.get("low_risk_resources", defaults.low_risk_resources)),
            high_risk_resources=list(risk.get("high_risk_resources", defaults.high_risk_resources)),
            routine_markers=list(risk.get("routine_markers", defaults.routine_markers)),
            sla_hours={k: float(v) for k, v in raw_policy.get("sla_hours", defaults.sla_hours).items()},
            ticket_categories=dict(raw_policy.get("ticket_categories", defaults.ticket_categories)),
            ticket_priority=dict(raw_policy.get("ticket_priority", defaults.ticket_priority)),
            assignees=dict(raw_policy.get("assignees", defaults.assignees)),
            sla_sweep_minutes=int(schedule.get("sla_sweep_minutes", defaults.sla_sweep_minutes)),
            access_scan_minutes=int(schedule.get("access_scan_minutes", defaults.access_scan_minutes)),
        )

    @classmethod
    def from_file(cls, path: Path = POLICY_PATH) -> AutomationConfig:
        """Load automation config from a policy file."""
        return cls.from_policy(load_policy(path))


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    log_level: str = "INFO"
    log_path: Path = field(default_factory=lambda: Path("logs/triage.log"))
    json_format: bool = True
    console_output: bool = True

    @classmethod
    def from_env(cls) -> LoggingConfig:
        """Load logging configuration from environment variables."""
        base_dir = Path(__file__).resolve().parent.parent
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_path=Path(os.getenv("LOG_PATH", base_dir / "logs" / "triage.log")),
            json_format=os.getenv("LOG_JSON_FORMAT", "true").lower() == "true",
            console_output=os.getenv("LOG_CONSOLE", "true").lower() == "true",
        )


@dataclass
class AppConfig:
    """Main application configuration."""

    policy_path: Path
    llm: LLMConfig
    routing: RoutingConfig
    automation: AutomationConfig
    logging: LoggingConfig
    environment: str = "production"

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load complete configuration from environment variables and the policy file."""
        policy_path = Path(os.getenv("POLICY_PATH", POLICY_PATH))
        automation = AutomationConfig.from_file(policy_path) if policy_path.exists() else AutomationConfig()

        return cls(
            policy_path=policy_path,
            llm=LLMConfig.from_env(),
            routing=RoutingConfig.from_env(),
            automation=automation,
            logging=LoggingConfig.from_env(),
            environment=os.getenv("ENVIRONMENT", "production"),
        )

    def validate(self) -> None:
        """Validate configuration values."""
        if not 0 <= self.llm.temperature <= 2:
            raise ConfigError(f"Invalid LLM temperature: {self.llm.temperature}")

        if not 0 <= self.routing.confidence_threshold <= 1:
            raise ConfigError(f"Invalid confidence_threshold: {self.routing.confidence_threshold}")

        if self.routing.max_handlers < 1:
            raise ConfigError(f"Invalid max_handlers: {self.routing.max_handlers}")

        if self.routing.max_workers < self.routing.max_handlers:
            raise ConfigError(
                f"max_workers ({self.routing.max_workers}) must be at least max_handlers ({self.routing.max_handlers})"
            )

        if self.routing.analytics_capacity < 1:
            raise ConfigError(f"Invalid analytics_capacity: {self.routing.analytics_capacity}")

        if self.routing.handler_timeout_s <= 0:
            raise ConfigError(f"Invalid handler_timeout_s: {self.routing.handler_timeout_s}")

        for priority, hours in self.automation.sla_hours.items():
            if hours <= 0:
                raise ConfigError(f"Invalid SLA hours for {priority}: {hours}")


def default_config() -> AppConfig:
    """Configuration with built-in defaults only, independent of the environment."""
    return AppConfig(
        policy_path=POLICY_PATH,
        llm=LLMConfig(),
        routing=RoutingConfig(),
        automation=AutomationConfig(),
        logging=LoggingConfig(),
        environment="test",
    )
