"""Health check utilities for monitoring system status."""
from __future__ import annotations

import json
import shutil
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from logging_utils import LOG_PATH, logger
from policy import POLICY_PATH, load_policy, missing_sections
from text_generation import GenerationError, TextGenerator


@dataclass
class HealthCheck:
    """Individual health check result."""

    name: str
    healthy: bool
    message: str
    latency_ms: Optional[int] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class HealthStatus:
    """Overall health status of the system."""

    healthy: bool
    checks: Dict[str, HealthCheck]
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "healthy": self.healthy,
            "timestamp": self.timestamp,
            "checks": {
                name: {
                    "healthy": check.healthy,
                    "message": check.message,
                    "latency_ms": check.latency_ms,
                    "metadata": check.metadata,
                }
                for name, check in self.checks.items()
            },
        }


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


def check_policy_file(path: Path = POLICY_PATH) -> HealthCheck:
    """Check that the automation policy file is readable and has every required section."""
    start = time.time()

    if not path.exists():
        return HealthCheck("policy_file", False, f"Policy file not found: {path}", _elapsed_ms(start))

    try:
        policy = load_policy(path)
    except (OSError, json.JSONDecodeError) as exc:
        return HealthCheck("policy_file", False, f"Error loading policy: {exc}", _elapsed_ms(start))

    missing = missing_sections(policy)
    if missing:
        return HealthCheck("policy_file", False, f"Policy missing required sections: {missing}", _elapsed_ms(start))

    risk = policy.get("risk", {})
    return HealthCheck(
        name="policy_file",
        healthy=True,
        message="Policy file loaded successfully",
        latency_ms=_elapsed_ms(start),
        metadata={
            "low_risk_count": len(risk.get("low_risk_resources", [])),
            "high_risk_count": len(risk.get("high_risk_resources", [])),
            "sla_priorities": sorted(policy.get("sla_hours", {})),
        },
    )


def check_llm_connection(generator: Optional[TextGenerator] = None) -> HealthCheck:
    """Check if the text-generation API is reachable with a minimal call."""
    start = time.time()
    generator = generator or TextGenerator()

    try:
        generator.generate("ping", max_tokens=1, temperature=0)
    except GenerationError as exc:
        return HealthCheck("llm_connection", False, f"LLM API error: {str(exc)[:100]}", _elapsed_ms(start))

    return HealthCheck(
        name="llm_connection",
        healthy=True,
        message="LLM API is reachable",
        latency_ms=_elapsed_ms(start),
        metadata={"model": generator.config.model},
    )


def check_logging() -> HealthCheck:
    start = time.time()
    try:
        logger.info("Health check test log", extra={"extra": {"test": True}})
    except Exception as exc:
        return HealthCheck("logging", False, f"Logging error: {exc}", _elapsed_ms(start))
    return HealthCheck("logging", True, "Logging system is functional", _elapsed_ms(start))


def check_disk_space(log_path: Path = LOG_PATH) -> HealthCheck:
    """Check if there's sufficient disk space for logs."""
    start = time.time()

    try:
        stat = shutil.disk_usage(log_path.parent)
    except OSError as exc:
        return HealthCheck("disk_space", False, f"Disk space check error: {exc}", _elapsed_ms(start))

    free_gb = stat.free / (1024**3)
    total_gb = stat.total / (1024**3)
    percent_free = (stat.free / stat.total) * 100
    metadata = {"free_gb": round(free_gb, 2), "total_gb": round(total_gb, 2)}

    # Warn if less than 1GB or less than 10% free
    if free_gb < 1.0 or percent_free < 10:
        return HealthCheck(
            "disk_space", False, f"Low disk space: {free_gb:.2f}GB free ({percent_free:.1f}%)", _elapsed_ms(start), metadata
        )
    return HealthCheck("disk_space", True, f"Sufficient disk space: {free_gb:.2f}GB free", _elapsed_ms(start), metadata)


def get_health_status(include_llm_check: bool = False, generator: Optional[TextGenerator] = None) -> HealthStatus:
    """
    Get overall system health status.

    Args:
        include_llm_check: Whether to include LLM connectivity check (slower)
        generator: Text generator to check (default: a fresh OpenAI-backed one)

    Returns:
        HealthStatus with all check results
    """
    checks: Dict[str, HealthCheck] = {
        "policy_file": check_policy_file(),
        "logging": check_logging(),
        "disk_space": check_disk_space(),
    }

    # Optionally check LLM (slower and may cost money)
    if include_llm_check:
        checks["llm_connection"] = check_llm_connection(generator)

    return HealthStatus(healthy=all(check.healthy for check in checks.values()), checks=checks)


def health_check_cli() -> int:
    """
    CLI command for health checks.

    Returns:
        0 if healthy, 1 if unhealthy
    """
    include_llm = "--full" in sys.argv or "-f" in sys.argv
    status = get_health_status(include_llm_check=include_llm)
    print(json.dumps(status.to_dict(), indent=2))
    return 0 if status.healthy else 1


if __name__ == "__main__":
    sys.exit(health_check_cli())
