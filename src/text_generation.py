"""Text-generation client used by handlers, with deterministic fallback text."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import openai

from config import LLMConfig
from logging_utils import logger
from metrics import TriageMetrics


class GenerationError(RuntimeError):
    """Raised when the text-generation service fails (quota, network, empty response)."""


@dataclass
class GenerationResult:
    text: str
    usage: Dict[str, int] = field(default_factory=dict)
    fallback_used: bool = False


class TextGenerator:
    """Thin wrapper over the OpenAI chat completions API."""

    def __init__(self, config: Optional[LLMConfig] = None, client: Any = None) -> None:
        self.config = config or LLMConfig()
        self._client = client if client is not None else openai

    def generate(
        self,
        prompt: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        metrics: Optional[TriageMetrics] = None,
    ) -> GenerationResult:
        start = time.time()
        try:
            if metrics:
                metrics.llm_calls += 1
            response = self._client.chat.completions.create(
                model=model or self.config.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=self.config.temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.config.max_tokens,
                timeout=self.config.timeout,
            )
        except Exception as exc:
            raise GenerationError(f"Text generation failed: {exc}") from exc

        if not getattr(response, "choices", None):
            raise GenerationError("No choices returned from text generation")

        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationError("Empty text generation response")

        usage: Dict[str, int] = {}
        raw_usage = getattr(response, "usage", None)
        if raw_usage:
            usage = {
                "prompt_tokens": getattr(raw_usage, "prompt_tokens", 0) or 0,
                "completion_tokens": getattr(raw_usage, "completion_tokens", 0) or 0,
            }
            if metrics:
                metrics.tokens_prompt += usage["prompt_tokens"]
                metrics.tokens_completion += usage["completion_tokens"]

        logger.debug(
            "Text generation completed",
            extra={"extra": {"latency_ms": int((time.time() - start) * 1000), "usage": usage}},
        )
        return GenerationResult(text=content.strip(), usage=usage)


def generate_or_fallback(
    generator: Optional[TextGenerator],
    prompt: str,
    fallback: str,
    handler: str,
    metrics: Optional[TriageMetrics] = None,
) -> GenerationResult:
    """Generate text, degrading to canned fallback text on any generation failure."""
    if generator is None:
        return GenerationResult(text=fallback, fallback_used=True)
    try:
        return generator.generate(prompt, metrics=metrics)
    except GenerationError as exc:
        logger.warning(
            "Text generation unavailable, using canned response",
            extra={
                "extra": {
                    "correlation_id": metrics.correlation_id if metrics else None,
                    "handler": handler,
                    "error": str(exc),
                }
            },
        )
        if metrics:
            metrics.fallback_used = True
        return GenerationResult(text=fallback, fallback_used=True)
