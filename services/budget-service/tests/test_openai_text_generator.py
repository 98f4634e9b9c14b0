"""
Tests for the OpenAI-compatible text generator.

The OpenAI client is patched so no real API calls are made; the recommendation
service is layered on top to check that SDK errors end in the fallback.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest
from httpx import Request, Response
from openai import APIStatusError, APITimeoutError

from shared.provider_settings import OpenAIConfig, ProviderSettings
from src.providers.openai_text import OpenAITextGenerator
from src.recommendation_service import RecommendationService
from src.text_generation import TextGenerationRequest


@pytest.fixture
def mock_settings() -> ProviderSettings:
    return ProviderSettings(
        provider_name="openai",
        timeout_seconds=15.0,
        temperature=0.1,
        max_output_tokens=1500,
        openai=OpenAIConfig(
            api_key="test-api-key",
            model="llama3-70b-8192",
            api_base="https://api.groq.com/openai/v1",
        ),
    )


def _completion(content):
    mock_choice = MagicMock()
    mock_choice.message.content = content
    mock_completion = MagicMock()
    mock_completion.choices = [mock_choice]
    return mock_completion


def _recommendation_json() -> str:
    return json.dumps(
        {
            "budgetPlan": [{"category": "Savings", "amount": 3470, "percent": 69.4, "reasoning": "All in"}],
            "insights": [],
            "warnings": [],
            "summary": "Save it all.",
        }
    )


class TestOpenAITextGenerator:
    def test_sends_prompt_with_sampling_bounds(self, mock_settings: ProviderSettings):
        generator = OpenAITextGenerator(settings=mock_settings)
        captured = {}

        def capture_create(**kwargs):
            captured.update(kwargs)
            return _completion("hello")

        with patch.object(generator._client.chat.completions, "create", side_effect=capture_create):
            response = generator.generate(
                TextGenerationRequest(prompt="Analyze this budget", temperature=0.1, max_output_tokens=1500)
            )

        assert response.text == "hello"
        assert captured["model"] == "llama3-70b-8192"
        assert captured["messages"] == [{"role": "user", "content": "Analyze this budget"}]
        assert captured["temperature"] == 0.1
        assert captured["max_tokens"] == 1500

    def test_empty_content_is_an_error(self, mock_settings: ProviderSettings):
        generator = OpenAITextGenerator(settings=mock_settings)

        with patch.object(generator._client.chat.completions, "create", return_value=_completion(None)):
            with pytest.raises(ValueError, match="empty response"):
                generator.generate(TextGenerationRequest(prompt="x", temperature=0.1, max_output_tokens=10))

    def test_raises_without_client(self):
        generator = OpenAITextGenerator(settings=None)

        with pytest.raises(RuntimeError, match="OpenAI client not configured"):
            generator.generate(TextGenerationRequest(prompt="x", temperature=0.1, max_output_tokens=10))


class TestOpenAIBackedRecommendations:
    def test_model_reply_becomes_recommendation(self, balanced_budget, mock_settings: ProviderSettings):
        generator = OpenAITextGenerator(settings=mock_settings)
        service = RecommendationService(generator)

        with patch.object(
            generator._client.chat.completions,
            "create",
            return_value=_completion("```json\n" + _recommendation_json() + "\n```"),
        ):
            recommendation = service.get_recommendation(balanced_budget)

        assert recommendation.summary == "Save it all."
        assert recommendation.budget_plan[0].amount == 3470.0

    def test_rate_limit_falls_back(self, balanced_budget, mock_settings: ProviderSettings):
        generator = OpenAITextGenerator(settings=mock_settings)
        service = RecommendationService(generator)
        mock_request = Request("POST", "https://api.groq.com/openai/v1/chat/completions")
        mock_response = Response(429, request=mock_request)

        with patch.object(
            generator._client.chat.completions,
            "create",
            side_effect=APIStatusError("Rate limit exceeded", response=mock_response, body=None),
        ):
            recommendation = service.get_recommendation(balanced_budget)

        assert recommendation.warnings[0] == "Rate limit exceeded"
        assert [entry.category for entry in recommendation.budget_plan] == ["Emergency Savings", "Discretionary"]

    def test_timeout_falls_back(self, balanced_budget, mock_settings: ProviderSettings):
        generator = OpenAITextGenerator(settings=mock_settings)
        service = RecommendationService(generator)
        mock_request = Request("POST", "https://api.groq.com/openai/v1/chat/completions")

        with patch.object(
            generator._client.chat.completions,
            "create",
            side_effect=APITimeoutError(request=mock_request),
        ):
            recommendation = service.get_recommendation(balanced_budget)

        assert "timed out" in recommendation.warnings[0].lower()
        emergency, discretionary = recommendation.budget_plan
        assert emergency.amount == pytest.approx(694.0)
        assert discretionary.amount == pytest.approx(2776.0)
