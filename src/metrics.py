"""Metrics collection for a single triage call."""
from __future__ import annotations

import time
import uuid
from typing import Any, Dict, List


class TriageMetrics:
    def __init__(self) -> None:
        self.correlation_id = str(uuid.uuid4())
        self.start_time = time.time()

        # Text generation metrics
        self.llm_calls: int = 0
        self.tokens_prompt: int = 0
        self.tokens_completion: int = 0
        self.fallback_used: bool = False

        # Classifier metrics
        self.intent: str | None = None
        self.intent_confidence: float = 0.0
        self.classify_latency_ms: int = 0

        # Router metrics
        self.handlers_selected: List[str] = []
        self.routing_fallback: bool = False
        self.routing_latency_ms: int = 0

        # Execution metrics
        self.handler_failures: int = 0
        self.execution_latency_ms: int = 0

        # End-to-end metrics
        self.total_latency_ms: int = 0

    @property
    def tokens_total(self) -> int:
        """Calculate total tokens as sum of prompt and completion tokens."""
        return self.tokens_prompt + self.tokens_completion

    def finalize(self) -> Dict[str, Any]:
        """Finalize metrics and return as dictionary with computed fields."""
        self.total_latency_ms = int((time.time() - self.start_time) * 1000)
        result = self.__dict__.copy()
        result["tokens_total"] = self.tokens_total
        return result
