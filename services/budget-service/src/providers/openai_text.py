"""
OpenAI-compatible text generation backend.

Works against any endpoint that speaks the OpenAI chat completions API, including
hosted OpenAI models and Groq's OpenAI-compatible gateway; `OPENAI_API_BASE`
selects which.
"""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI
from shared.observability.privacy import hash_payload

from ..text_generation import TextGenerationRequest, TextGenerationResponse

logger = logging.getLogger(__name__)


class OpenAITextGenerator:
    """
    Chat-completions-backed generator.

    The prompt is sent as a single user message. SDK errors (APIError,
    APITimeoutError, ...) propagate to the caller, which decides on the fallback.
    """

    name = "openai"

    def __init__(self, settings: Any | None = None):
        self._settings = settings
        if settings and settings.openai:
            self._client = OpenAI(
                api_key=settings.openai.api_key,
                base_url=settings.openai.api_base,
                timeout=settings.timeout_seconds,
                # Retries are owned by the recommendation service.
                max_retries=0,
            )
            self._model = settings.openai.model
        else:
            self._client = None
            self._model = None

    def generate(self, request: TextGenerationRequest) -> TextGenerationResponse:
        if not self._client:
            raise RuntimeError("OpenAI client not configured. Check OPENAI_API_KEY, OPENAI_MODEL, OPENAI_API_BASE.")

        logger.info(
            {
                "event": "openai_text_request",
                "provider": self.name,
                "model": self._model,
                "prompt_hash": hash_payload(request.prompt),
                "temperature": request.temperature,
                "max_output_tokens": request.max_output_tokens,
            }
        )

        completion = self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": request.prompt}],
            temperature=request.temperature,
            max_tokens=request.max_output_tokens,
        )

        if not completion.choices:
            raise ValueError("Model returned no choices")
        content = completion.choices[0].message.content
        if not content:
            raise ValueError("Model returned an empty response")

        logger.info(
            {
                "event": "openai_text_response",
                "provider": self.name,
                "response_hash": hash_payload(content),
                "response_length": len(content),
            }
        )
        return TextGenerationResponse(text=content)
