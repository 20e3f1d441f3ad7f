"""Tests for text_generation.py - OpenAI wrapper and canned fallback."""
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_llm_response
from config import LLMConfig
from text_generation import GenerationError, TextGenerator, generate_or_fallback


@pytest.mark.unit
class TestTextGenerator:
    def test_generate_returns_text_and_usage(self, mock_openai_client, mock_metrics):
        generator = TextGenerator(LLMConfig(model="test-model", max_tokens=50), client=mock_openai_client)
        result = generator.generate("hello", metrics=mock_metrics)

        assert result.text.startswith("P0")
        assert result.usage == {"prompt_tokens": 100, "completion_tokens": 50}
        assert result.fallback_used is False
        assert mock_metrics.llm_calls == 1
        assert mock_metrics.tokens_total == 150
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"] == [{"role": "user", "content": "hello"}]

    def test_overrides_take_precedence(self, mock_openai_client):
        TextGenerator(client=mock_openai_client).generate("hi", model="other", temperature=0, max_tokens=1)
        kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "other"
        assert kwargs["temperature"] == 0
        assert kwargs["max_tokens"] == 1

    def test_api_error_wrapped(self, failing_openai_client):
        with pytest.raises(GenerationError, match="insufficient_quota"):
            TextGenerator(client=failing_openai_client).generate("hello")

    def test_empty_content_raises(self):
        client = MagicMock()
        client.chat.completions.create.return_value = make_llm_response("   ")
        with pytest.raises(GenerationError):
            TextGenerator(client=client).generate("hello")

    def test_no_choices_raises(self):
        client = MagicMock()
        response = make_llm_response("x")
        response.choices = []
        client.chat.completions.create.return_value = response
        with pytest.raises(GenerationError):
            TextGenerator(client=client).generate("hello")

    def test_defaults_to_openai_module(self):
        with patch("text_generation.openai") as mock_openai:
            mock_openai.chat.completions.create.return_value = make_llm_response("pong")
            assert TextGenerator().generate("ping").text == "pong"


@pytest.mark.unit
class TestGenerateOrFallback:
    def test_no_generator_uses_fallback(self):
        result = generate_or_fallback(None, "prompt", "canned", handler="ITSupportHandler")
        assert result.text == "canned"
        assert result.fallback_used is True

    def test_failure_uses_fallback_and_logs(self, failing_openai_client, mock_metrics):
        with patch("text_generation.logger") as mock_logger:
            result = generate_or_fallback(
                TextGenerator(client=failing_openai_client), "prompt", "canned", "ITSupportHandler", mock_metrics
            )
        assert result.text == "canned"
        assert mock_metrics.fallback_used is True
        mock_logger.warning.assert_called_once()

    def test_success_passes_through(self, mock_openai_client):
        result = generate_or_fallback(TextGenerator(client=mock_openai_client), "prompt", "canned", "EscalationHandler")
        assert result.fallback_used is False
        assert result.text != "canned"
